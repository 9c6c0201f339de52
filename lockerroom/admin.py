from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.contrib.auth.models import Group
from django.urls import reverse
from django.utils.html import format_html

from .models import (
    AdminRole, AnalyticsLog, Banner, Notification, PaymentTransaction, Post, PostComment, ReportedPost,
    School, SchoolApplication, SchoolPaymentRecord, Student, StudentFollower, StudentRating,
    SystemSetting, User,
)
from .notifications import set_school_members_frozen

# ==================== ADMIN CLASSES ====================

@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ('email', 'name', 'role', 'school', 'is_frozen', 'email_verified', 'date_joined')
    list_filter = ('role', 'is_frozen', 'email_verified')
    search_fields = ('email', 'name', 'xen_id')
    ordering = ('email',)
    actions = ['freeze_users', 'unfreeze_users']
    fieldsets = (
        (None, {'fields': ('email', 'password')}),
        ('Profile', {'fields': ('name', 'role', 'school', 'bio', 'phone', 'position', 'profile_pic_url', 'xen_id')}),
        ('Account state', {'fields': ('email_verified', 'is_one_time_password', 'otp_expires_at', 'is_frozen')}),
        ('Permissions', {'fields': ('is_active', 'is_staff', 'is_superuser')}),
        ('Dates', {'fields': ('last_login', 'date_joined')}),
    )
    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'name', 'role', 'school', 'password1', 'password2'),
        }),
    )

    def freeze_users(self, request, queryset):
        queryset.update(is_frozen=True)
        self.message_user(request, f"{queryset.count()} users frozen")
    freeze_users.short_description = "Freeze selected users"

    def unfreeze_users(self, request, queryset):
        queryset.update(is_frozen=False)
        self.message_user(request, f"{queryset.count()} users unfrozen")
    unfreeze_users.short_description = "Unfreeze selected users"

@admin.register(AdminRole)
class AdminRoleAdmin(admin.ModelAdmin):
    list_display = ('user', 'role', 'assigned_by', 'created_at')
    list_filter = ('role',)
    search_fields = ('user__email',)

@admin.register(School)
class SchoolAdmin(admin.ModelAdmin):
    list_display = ('name', 'is_active', 'payment_frequency', 'payment_amount',
                    'subscription_expires_at', 'student_count', 'max_students')
    list_filter = ('is_active', 'payment_frequency')
    search_fields = ('name', 'contact_email')
    actions = ['deactivate_schools', 'activate_schools']

    def student_count(self, obj):
        return obj.students.count()
    student_count.short_description = 'Players'

    def deactivate_schools(self, request, queryset):
        for school in queryset:
            school.is_active = False
            school.save(update_fields=['is_active', 'updated_at'])
            set_school_members_frozen(school, True)
        self.message_user(request, f"{queryset.count()} academies deactivated")
    deactivate_schools.short_description = "Deactivate selected academies"

    def activate_schools(self, request, queryset):
        for school in queryset:
            school.is_active = True
            school.save(update_fields=['is_active', 'updated_at'])
            set_school_members_frozen(school, False)
        self.message_user(request, f"{queryset.count()} academies activated")
    activate_schools.short_description = "Activate selected academies"

@admin.register(SchoolPaymentRecord)
class SchoolPaymentRecordAdmin(admin.ModelAdmin):
    list_display = ('school', 'payment_type', 'payment_amount', 'payment_frequency', 'recorded_by', 'recorded_at')
    list_filter = ('payment_type', 'payment_frequency')
    search_fields = ('school__name',)

@admin.register(SchoolApplication)
class SchoolApplicationAdmin(admin.ModelAdmin):
    list_display = ('school_name', 'contact_email', 'expected_students', 'status', 'created_at')
    list_filter = ('status',)
    search_fields = ('school_name', 'contact_name', 'contact_email')

@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ('name', 'school', 'sport', 'position', 'role_number', 'created_at')
    list_filter = ('sport', 'school')
    search_fields = ('name', 'user__email', 'sport')

@admin.register(StudentFollower)
class StudentFollowerAdmin(admin.ModelAdmin):
    list_display = ('id', 'follower', 'student', 'created_at')
    search_fields = ('follower__email', 'student__name')

@admin.register(StudentRating)
class StudentRatingAdmin(admin.ModelAdmin):
    list_display = ('student', 'rating', 'category', 'rated_by', 'created_at')
    list_filter = ('category', 'rating')

@admin.register(Post)
class PostAdmin(admin.ModelAdmin):
    list_display = ('id', 'type', 'author_link', 'status', 'media_type', 'created_at', 'caption_short')
    list_filter = ('type', 'status', 'media_type', 'scope')
    search_fields = ('caption', 'title', 'student__name')

    def author_link(self, obj):
        if obj.student is None:
            return obj.created_by_admin or "-"
        url = reverse("admin:lockerroom_student_change", args=[obj.student.id])
        return format_html('<a href="{}">{}</a>', url, obj.student.name)
    author_link.short_description = 'Author'
    author_link.admin_order_field = 'student__name'

    def caption_short(self, obj):
        text = obj.title or obj.caption
        if text:
            return text[:80] + '...' if len(text) > 80 else text
        return "(no caption)"
    caption_short.short_description = 'Caption'

@admin.register(PostComment)
class PostCommentAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'post', 'created_at', 'content_short')
    search_fields = ('content', 'user__email', 'post__id')

    def content_short(self, obj):
        return obj.content[:50] + '...' if len(obj.content) > 50 else obj.content
    content_short.short_description = 'Content'

@admin.register(ReportedPost)
class ReportedPostAdmin(admin.ModelAdmin):
    list_display = ('id', 'post', 'user', 'reason', 'created_at')
    search_fields = ('reason', 'user__email')

@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'type', 'title', 'created_at', 'is_read')
    list_filter = ('is_read', 'type')
    search_fields = ('user__email', 'title')

@admin.register(Banner)
class BannerAdmin(admin.ModelAdmin):
    list_display = ('title', 'category', 'is_active', 'priority', 'start_date', 'end_date')
    list_filter = ('is_active', 'category')

@admin.register(SystemSetting)
class SystemSettingAdmin(admin.ModelAdmin):
    list_display = ('key', 'value', 'category', 'updated_at')
    list_filter = ('category',)
    search_fields = ('key',)

@admin.register(PaymentTransaction)
class PaymentTransactionAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'type', 'amount_cents', 'currency', 'status', 'provider', 'created_at')
    list_filter = ('type', 'status', 'provider')

@admin.register(AnalyticsLog)
class AnalyticsLogAdmin(admin.ModelAdmin):
    list_display = ('event_type', 'entity_type', 'entity_id', 'timestamp')
    list_filter = ('event_type',)
    search_fields = ('event_type', 'entity_id')

# Unregister Django's default Group
admin.site.unregister(Group)

admin.site.site_header = "LockerRoom Admin"
admin.site.site_title = "LockerRoom Admin Portal"
admin.site.index_title = "Welcome"
