"""
================================================================================
LOCKERROOM - DATABASE MODELS
================================================================================

@file        models.py
@description Django ORM models defining the LockerRoom schema

MODULE PURPOSE
================================================================================
This module defines all database models for the LockerRoom platform:
- User model (AbstractUser, email login, role based)
- Academies (schools), their subscriptions and payment audit trail
- Student (player) profiles and ratings
- Posts, announcements and their interactions
- Follows, notifications, banners
- Platform configuration, school applications and payment transactions

MODEL RELATIONSHIPS
================================================================================
School (1) ──────> (N) User (school admins, students)
School (1) ──────> (N) Student
School (1) ──────> (N) SchoolPaymentRecord
User   (1) ──────> (1) Student
Student (1) ─────> (N) Post
Post   (1) ──────> (N) PostLike / PostComment / PostView / SavedPost
User   (N) <─────> (N) Student (StudentFollower)
User   (1) ──────> (N) Notification

MEDIA HANDLING
================================================================================
Media lives on Cloudinary. Models store the delivered URL and public id,
never the file itself, because post media is uploaded after the row exists.

================================================================================
"""

import calendar
from datetime import timedelta

from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

from .roles import ROLE_CHOICES, STUDENT, VIEWER


# ============================================================================
# CONSTANTS & CHOICES
# ============================================================================

PAYMENT_FREQUENCY_CHOICES = [
    ('monthly', 'Monthly'),
    ('annual', 'Annual'),
]

GENDER_CHOICES = [
    ('male', 'Male'),
    ('female', 'Female'),
    ('other', 'Other'),
]

PLACEHOLDER_PROCESSING = '/api/placeholder/processing'
PLACEHOLDER_VIDEO_THUMBNAIL = '/api/placeholder/video-thumbnail'
PLACEHOLDER_FAILED = '/api/placeholder/failed'
PLACEHOLDER_FAILED_THUMBNAIL = '/api/placeholder/failed-thumbnail'


def add_months(moment, months):
    """Calendar-aware month addition, clamping to the last day of the month."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


# ============================================================================
# SECTION 1: USER & AUTHENTICATION
# ============================================================================

class UserManager(BaseUserManager):
    """Manager for the email-login User model."""

    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError('The email address must be set')
        email = self.normalize_email(email).lower()
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', False)
        extra_fields.setdefault('is_superuser', False)
        extra_fields.setdefault('role', VIEWER)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('role', 'system_admin')
        extra_fields.setdefault('email_verified', True)
        return self._create_user(email, password, **extra_fields)


class User(AbstractUser):
    """
    Platform account. Every person who signs in is a User with one role.

    Students additionally own a Student profile; school admins and students
    belong to a School. Accounts created by an administrator start with a
    one-time password (``is_one_time_password``) that must be replaced on
    first login.

    Attributes:
        email (EmailField): Unique login identifier
        name (CharField): Display name
        role (CharField): One of roles.ROLES
        school (ForeignKey): Academy for school admins and students
        is_one_time_password (BooleanField): Password is an issued OTP
        otp_expires_at (DateTimeField): OTP validity limit
        xen_id (CharField): Scout identifier (XSA-<yy><nnn>)
        is_frozen (BooleanField): Account disabled by an administrator
        email_verified (BooleanField): Email ownership confirmed

    Properties:
        linked_id: Student profile id for students, else the user id

    Example:
        user = User.objects.create_user('coach@example.com', 'secret123', role='coach')
    """

    username = None
    first_name = None
    last_name = None

    email = models.EmailField(
        unique=True,
        help_text="Login email address (stored lowercase)"
    )
    name = models.CharField(
        max_length=150,
        blank=True,
        help_text="Display name"
    )
    role = models.CharField(
        max_length=20,
        choices=ROLE_CHOICES,
        default=VIEWER,
        db_index=True,
        help_text="Platform role"
    )
    school = models.ForeignKey(
        'School',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='members',
        help_text="Academy this account belongs to"
    )

    # --- Profile ---
    bio = models.TextField(blank=True, default='', help_text="Short biography")
    phone = models.CharField(max_length=40, blank=True, default='', help_text="Contact number")
    position = models.CharField(max_length=100, blank=True, default='', help_text="Job title for staff")
    profile_pic_url = models.URLField(max_length=500, blank=True, default='', help_text="Cloudinary avatar URL")

    # --- Account state ---
    email_verified = models.BooleanField(default=False, help_text="Email ownership confirmed")
    is_one_time_password = models.BooleanField(
        default=False,
        help_text="Password was issued as an OTP and must be reset"
    )
    otp_expires_at = models.DateTimeField(null=True, blank=True, help_text="OTP expiry")
    xen_id = models.CharField(
        max_length=20,
        unique=True,
        null=True,
        blank=True,
        help_text="XEN scout identifier"
    )
    is_frozen = models.BooleanField(default=False, help_text="Disabled by an administrator")

    # --- Tokens ---
    email_verification_token = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    email_verification_expires_at = models.DateTimeField(null=True, blank=True)
    password_reset_token = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    password_reset_expires_at = models.DateTimeField(null=True, blank=True)
    last_email_sent_at = models.DateTimeField(null=True, blank=True, help_text="Throttles resend requests")

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    class Meta:
        ordering = ['-date_joined']

    def __str__(self):
        return f"{self.name or self.email} ({self.role})"

    def get_full_name(self):
        return self.name or self.email

    def get_short_name(self):
        return self.name.split(' ')[0] if self.name else self.email

    @property
    def linked_id(self):
        if self.role == STUDENT:
            student = getattr(self, 'student_profile', None)
            if student is not None:
                return student.id
        return self.id

    @property
    def otp_expired(self):
        return bool(
            self.is_one_time_password
            and self.otp_expires_at
            and self.otp_expires_at <= timezone.now()
        )


class AdminRole(models.Model):
    """Role and permission grant recorded when an admin account is created."""

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='admin_role')
    role = models.CharField(max_length=20, choices=ROLE_CHOICES)
    permissions = models.JSONField(default=list, blank=True, help_text="Permission codes")
    assigned_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='assigned_admin_roles'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.user.email}: {self.role}"


# ============================================================================
# SECTION 2: ACADEMIES
# ============================================================================

class School(models.Model):
    """
    An academy subscribed to the platform.

    Subscriptions are paid monthly or annually. When ``subscription_expires_at``
    passes, the school is deactivated and its members are frozen until it is
    renewed. ``max_students`` caps enrollment.
    """

    name = models.CharField(max_length=200, help_text="Academy name")
    address = models.TextField(blank=True, default='')
    contact_email = models.EmailField(blank=True, default='')
    contact_phone = models.CharField(max_length=40, blank=True, default='')
    profile_pic_url = models.URLField(max_length=500, blank=True, default='')

    payment_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=0,
        help_text="Subscription amount per period"
    )
    payment_frequency = models.CharField(
        max_length=10,
        choices=PAYMENT_FREQUENCY_CHOICES,
        default='monthly'
    )
    subscription_expires_at = models.DateTimeField(null=True, blank=True)
    last_payment_date = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    max_students = models.PositiveIntegerField(default=100, help_text="Enrollment limit")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name

    def extend_subscription(self, frequency, now=None):
        """
        Push the expiry one period forward.

        Extends from the current expiry when it is still in the future,
        otherwise from ``now``. Returns the new expiry (not saved).
        """
        now = now or timezone.now()
        start = self.subscription_expires_at
        if not start or start <= now:
            start = now
        if frequency == 'annual':
            expires = add_months(start, 12)
        else:
            expires = add_months(start, 1)
        self.payment_frequency = frequency
        self.subscription_expires_at = expires
        self.last_payment_date = now
        return expires

    @property
    def days_until_expiry(self):
        if not self.subscription_expires_at:
            return None
        delta = self.subscription_expires_at - timezone.now()
        return max(0, delta.days + (1 if delta.seconds else 0))


class SchoolPaymentRecord(models.Model):
    """Audit row for every payment or plan change on a school."""

    PAYMENT_TYPES = [
        ('initial', 'Initial'),
        ('renewal', 'Renewal'),
        ('student_limit_increase', 'Student limit increase'),
        ('student_limit_decrease', 'Student limit decrease'),
        ('frequency_change', 'Frequency change'),
    ]

    school = models.ForeignKey(School, on_delete=models.CASCADE, related_name='payment_records')
    payment_amount = models.DecimalField(max_digits=10, decimal_places=2)
    payment_frequency = models.CharField(max_length=10, choices=PAYMENT_FREQUENCY_CHOICES)
    payment_type = models.CharField(max_length=30, choices=PAYMENT_TYPES)
    student_limit_before = models.PositiveIntegerField(null=True, blank=True)
    student_limit_after = models.PositiveIntegerField(null=True, blank=True)
    subscription_expires_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True, default='')
    recorded_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    recorded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-recorded_at']

    def __str__(self):
        return f"{self.school.name} {self.payment_type} {self.payment_amount}"


class SchoolSetting(models.Model):
    school = models.ForeignKey(School, on_delete=models.CASCADE, related_name='settings')
    key = models.CharField(max_length=100)
    value = models.TextField(blank=True, default='')
    category = models.CharField(max_length=50, default='general')
    updated_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ('school', 'key')
        ordering = ['category', 'key']


class SchoolApplication(models.Model):
    """A request from an academy to join the platform."""

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('approved', 'Approved'),
        ('rejected', 'Rejected'),
    ]

    school_name = models.CharField(max_length=200)
    contact_name = models.CharField(max_length=150)
    contact_email = models.EmailField()
    contact_phone = models.CharField(max_length=40, blank=True, default='')
    address = models.TextField(blank=True, default='')
    expected_students = models.PositiveIntegerField(default=100)
    payment_frequency = models.CharField(
        max_length=10,
        choices=PAYMENT_FREQUENCY_CHOICES,
        default='monthly'
    )
    notes = models.TextField(blank=True, default='')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='pending', db_index=True)
    reviewed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    reviewed_at = models.DateTimeField(null=True, blank=True)
    school = models.ForeignKey(School, on_delete=models.SET_NULL, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']


# ============================================================================
# SECTION 3: STUDENTS (PLAYERS)
# ============================================================================

class Student(models.Model):
    """
    Player profile attached to a student account.

    Posts, followers and ratings hang off this profile rather than off the
    User, which is why tokens carry ``linkedId``.
    """

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='student_profile')
    school = models.ForeignKey(School, on_delete=models.CASCADE, related_name='students')
    name = models.CharField(max_length=150)
    phone = models.CharField(max_length=40, blank=True, default='')
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES, blank=True, default='')
    date_of_birth = models.DateField(null=True, blank=True)
    grade = models.CharField(max_length=40, blank=True, default='')
    guardian_contact = models.CharField(max_length=150, blank=True, default='')
    profile_pic_url = models.URLField(max_length=500, blank=True, default='')
    cover_photo = models.URLField(max_length=500, blank=True, default='')
    role_number = models.CharField(max_length=20, blank=True, default='', help_text="Jersey number")
    position = models.CharField(max_length=100, blank=True, default='')
    sport = models.CharField(max_length=100, blank=True, default='')
    bio = models.TextField(blank=True, default='')
    height = models.DecimalField(max_digits=5, decimal_places=1, null=True, blank=True, help_text="cm")
    weight = models.DecimalField(max_digits=5, decimal_places=1, null=True, blank=True, help_text="kg")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.school.name})"


class StudentFollower(models.Model):
    follower = models.ForeignKey(User, on_delete=models.CASCADE, related_name='following_students')
    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name='followers')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ('follower', 'student')
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.follower.email} follows {self.student.name}"


class StudentRating(models.Model):
    CATEGORY_CHOICES = [
        ('overall', 'Overall'),
        ('academic', 'Academic'),
        ('athletic', 'Athletic'),
        ('behavior', 'Behavior'),
    ]

    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name='ratings')
    rating = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(5)])
    comments = models.TextField(blank=True, default='')
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default='overall')
    rated_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='ratings_given')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']


# ============================================================================
# SECTION 4: POSTS & ANNOUNCEMENTS
# ============================================================================

class Post(models.Model):
    """
    A student media post or an administrator announcement.

    Student posts are created in ``processing`` state with placeholder URLs
    and become ``ready`` (or ``failed``) once the background upload finishes.
    Announcements have no student, carry a ``title`` and a ``scope``:
    ``global`` (everyone) or ``school`` (one academy).

    Example:
        Post.objects.filter(type='post').exclude(status='processing')
    """

    STATUS_CHOICES = [
        ('ready', 'Ready'),
        ('processing', 'Processing'),
        ('failed', 'Failed'),
    ]
    TYPE_CHOICES = [
        ('post', 'Post'),
        ('announcement', 'Announcement'),
    ]
    SCOPE_CHOICES = [
        ('school', 'School'),
        ('global', 'Global'),
        ('staff', 'Staff'),
    ]
    MEDIA_TYPE_CHOICES = [
        ('image', 'Image'),
        ('video', 'Video'),
        ('text', 'Text'),
    ]

    student = models.ForeignKey(
        Student,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='posts'
    )
    media_url = models.CharField(max_length=500, blank=True, default='')
    media_type = models.CharField(max_length=10, choices=MEDIA_TYPE_CHOICES, default='image')
    caption = models.TextField(blank=True, default='')
    status = models.CharField(max_length=12, choices=STATUS_CHOICES, default='ready', db_index=True)
    cloudinary_public_id = models.CharField(max_length=255, blank=True, default='')
    thumbnail_url = models.CharField(max_length=500, blank=True, default='')

    # --- Announcements ---
    type = models.CharField(max_length=15, choices=TYPE_CHOICES, default='post', db_index=True)
    title = models.CharField(max_length=200, blank=True, default='')
    broadcast = models.BooleanField(default=False)
    scope = models.CharField(max_length=10, choices=SCOPE_CHOICES, blank=True, default='')
    school = models.ForeignKey(
        School,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='announcements'
    )
    created_by_admin = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='announcements'
    )

    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        if self.type == 'announcement':
            return f"Announcement: {self.title}"
        return f"Post {self.id} by {self.student.name if self.student else 'unknown'}"

    @property
    def is_announcement(self):
        return self.type == 'announcement'

    @property
    def has_valid_media_url(self):
        return bool(self.media_url) and not self.media_url.startswith('/api/placeholder/')


class PostLike(models.Model):
    post = models.ForeignKey(Post, on_delete=models.CASCADE, related_name='likes')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='post_likes')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ('post', 'user')


class PostComment(models.Model):
    post = models.ForeignKey(Post, on_delete=models.CASCADE, related_name='comments')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='post_comments')
    content = models.TextField(max_length=2000)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at']


class PostView(models.Model):
    post = models.ForeignKey(Post, on_delete=models.CASCADE, related_name='views')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='post_views')
    viewed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ('post', 'user')


class SavedPost(models.Model):
    post = models.ForeignKey(Post, on_delete=models.CASCADE, related_name='saves')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='saved_posts')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ('post', 'user')
        ordering = ['-created_at']


class ReportedPost(models.Model):
    post = models.ForeignKey(Post, on_delete=models.CASCADE, related_name='reports')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='post_reports')
    reason = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ('post', 'user')
        ordering = ['-created_at']


# ============================================================================
# SECTION 5: NOTIFICATIONS & BANNERS
# ============================================================================

class Notification(models.Model):
    """
    In-app notification for a single user.

    ``entity_type``/``entity_id`` point at the thing the notification is
    about (post, school, student) so the client can link to it.
    """

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='notifications')
    type = models.CharField(max_length=40, db_index=True)
    title = models.CharField(max_length=200)
    message = models.TextField()
    entity_type = models.CharField(max_length=30, blank=True, default='')
    entity_id = models.CharField(max_length=40, blank=True, default='')
    related_user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='caused_notifications'
    )
    metadata = models.JSONField(default=dict, blank=True)
    is_read = models.BooleanField(default=False, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.user.email}: {self.title}"


class Banner(models.Model):
    CATEGORY_CHOICES = [
        ('info', 'Info'),
        ('warning', 'Warning'),
        ('success', 'Success'),
        ('error', 'Error'),
        ('announcement', 'Announcement'),
    ]

    title = models.CharField(max_length=200)
    message = models.TextField()
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default='info')
    target_roles = models.JSONField(default=list, help_text="Roles shown this banner; 'xen_watch' = students and viewers")
    target_school_ids = models.JSONField(null=True, blank=True, help_text="Restrict school admins to these schools")
    start_date = models.DateTimeField(null=True, blank=True)
    end_date = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    priority = models.IntegerField(default=0)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='banners')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-priority', '-created_at']

    def __str__(self):
        return self.title


# ============================================================================
# SECTION 6: PLATFORM CONFIGURATION & PAYMENTS
# ============================================================================

class SystemSetting(models.Model):
    key = models.CharField(max_length=100, unique=True)
    value = models.TextField(blank=True, default='')
    category = models.CharField(max_length=50, default='general')
    description = models.TextField(blank=True, default='')
    updated_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['category', 'key']

    @classmethod
    def get_value(cls, key, default=None):
        setting = cls.objects.filter(key=key).first()
        return setting.value if setting else default


class PaymentTransaction(models.Model):
    TYPE_CHOICES = [
        ('xen_watch', 'XEN Watch'),
        ('scout_ai', 'Scout AI'),
    ]
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('completed', 'Completed'),
        ('failed', 'Failed'),
        ('refunded', 'Refunded'),
    ]

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='payment_transactions')
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    amount_cents = models.PositiveIntegerField()
    currency = models.CharField(max_length=3, default='USD')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='pending')
    provider = models.CharField(max_length=20, default='mock')
    provider_transaction_id = models.CharField(max_length=100, blank=True, default='')
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']


class AnalyticsLog(models.Model):
    """
    Platform event log (user_signup, post_created, school_onboarded, ...).

    Server-side milestones are recorded automatically; clients may add their
    own events through POST /api/analytics/log.
    """

    event_type = models.CharField(max_length=50, db_index=True)
    entity_type = models.CharField(max_length=30, blank=True, default='')
    entity_id = models.CharField(max_length=40, blank=True, default='')
    metadata = models.JSONField(default=dict, blank=True)
    timestamp = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ['-timestamp']

    def __str__(self):
        return f"{self.event_type} @ {self.timestamp:%Y-%m-%d %H:%M}"


def otp_expiry(days=7):
    return timezone.now() + timedelta(days=days)
