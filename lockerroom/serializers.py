"""
Model -> JSON dict conversion for API responses.

Keys are camelCase because that is what the web client consumes. Post
querysets should go through ``with_engagement`` first so counts and the
caller's like/save/follow state arrive in one query.
"""

from django.db.models import Count, Exists, IntegerField, OuterRef, Subquery, Value
from django.db.models.functions import Coalesce

from .models import PostComment, PostLike, PostView, SavedPost, StudentFollower
from .roles import SYSTEM_ADMIN, role_display_name

ANNOUNCEMENT_BRAND = 'XEN SPORTS ARMOURY'


def iso(value):
    return value.isoformat() if value else None


def decimal_or_none(value):
    return float(value) if value is not None else None


def _related_count(model, field='post'):
    counts = (
        model.objects.filter(**{field: OuterRef('pk')})
        .order_by()
        .values(field)
        .annotate(total=Count('id'))
        .values('total')[:1]
    )
    return Coalesce(Subquery(counts, output_field=IntegerField()), Value(0))


def with_engagement(queryset, user):
    """Annotate a Post queryset with counts and the viewer's own interactions."""
    queryset = queryset.select_related(
        'student__user', 'student__school', 'school', 'created_by_admin'
    ).annotate(
        likes_count=_related_count(PostLike),
        comments_count=_related_count(PostComment),
        saves_count=_related_count(SavedPost),
        view_count=_related_count(PostView),
    )
    if user is not None and user.is_authenticated:
        queryset = queryset.annotate(
            is_liked=Exists(PostLike.objects.filter(post=OuterRef('pk'), user=user)),
            is_saved=Exists(SavedPost.objects.filter(post=OuterRef('pk'), user=user)),
            is_following_author=Exists(
                StudentFollower.objects.filter(student=OuterRef('student'), follower=user)
            ),
        )
    return queryset


# ============================================================================
# USERS & SCHOOLS
# ============================================================================

def user_to_dict(user):
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "roleDisplay": role_display_name(user.role),
        "schoolId": user.school_id,
        "linkedId": user.linked_id,
        "profilePicUrl": user.profile_pic_url or None,
        "bio": user.bio,
        "phone": user.phone,
        "position": user.position,
        "xenId": user.xen_id,
        "emailVerified": user.email_verified,
        "isOneTimePassword": user.is_one_time_password,
        "isFrozen": user.is_frozen,
        "createdAt": iso(user.date_joined),
    }


def school_to_dict(school, include_billing=False):
    if school is None:
        return None
    data = {
        "id": school.id,
        "name": school.name,
        "address": school.address,
        "contactEmail": school.contact_email,
        "contactPhone": school.contact_phone,
        "profilePicUrl": school.profile_pic_url or None,
        "isActive": school.is_active,
        "maxStudents": school.max_students,
        "createdAt": iso(school.created_at),
    }
    if include_billing:
        data.update({
            "paymentAmount": decimal_or_none(school.payment_amount),
            "paymentFrequency": school.payment_frequency,
            "subscriptionExpiresAt": iso(school.subscription_expires_at),
            "lastPaymentDate": iso(school.last_payment_date),
            "daysUntilExpiry": school.days_until_expiry,
        })
    return data


def payment_record_to_dict(record):
    return {
        "id": record.id,
        "schoolId": record.school_id,
        "paymentAmount": decimal_or_none(record.payment_amount),
        "paymentFrequency": record.payment_frequency,
        "paymentType": record.payment_type,
        "studentLimitBefore": record.student_limit_before,
        "studentLimitAfter": record.student_limit_after,
        "subscriptionExpiresAt": iso(record.subscription_expires_at),
        "notes": record.notes,
        "recordedBy": record.recorded_by_id,
        "recordedAt": iso(record.recorded_at),
    }


# ============================================================================
# STUDENTS
# ============================================================================

def student_to_dict(student, is_following=None):
    data = {
        "id": student.id,
        "userId": student.user_id,
        "schoolId": student.school_id,
        "name": student.name,
        "email": student.user.email,
        "phone": student.phone,
        "gender": student.gender,
        "dateOfBirth": iso(student.date_of_birth),
        "grade": student.grade,
        "guardianContact": student.guardian_contact,
        "profilePicUrl": student.profile_pic_url or student.user.profile_pic_url or None,
        "coverPhoto": student.cover_photo or None,
        "roleNumber": student.role_number,
        "position": student.position,
        "sport": student.sport,
        "bio": student.bio,
        "height": decimal_or_none(student.height),
        "weight": decimal_or_none(student.weight),
        "createdAt": iso(student.created_at),
    }
    if is_following is not None:
        data["isFollowing"] = is_following
    return data


def rating_to_dict(rating):
    return {
        "id": rating.id,
        "studentId": rating.student_id,
        "rating": rating.rating,
        "comments": rating.comments,
        "category": rating.category,
        "ratedBy": rating.rated_by_id,
        "raterName": rating.rated_by.name if rating.rated_by else None,
        "createdAt": iso(rating.created_at),
        "updatedAt": iso(rating.updated_at),
    }


# ============================================================================
# POSTS
# ============================================================================

def announcement_display_name(post):
    admin = post.created_by_admin
    if admin is not None and admin.role == SYSTEM_ADMIN:
        return ANNOUNCEMENT_BRAND
    if post.scope == 'school' and post.school is not None:
        return post.school.name
    if admin is not None and admin.name:
        return admin.name
    return 'School Administration'


def _author_block(post):
    if post.is_announcement:
        admin = post.created_by_admin
        return {
            "id": "announcement",
            "userId": admin.id if admin else None,
            "name": announcement_display_name(post),
            "sport": "",
            "position": "",
            "roleNumber": "",
            "profilePicUrl": (admin.profile_pic_url if admin else None) or None,
            "isFollowing": False,
        }
    student = post.student
    return {
        "id": student.id,
        "userId": student.user_id,
        "name": student.name,
        "sport": student.sport,
        "position": student.position,
        "roleNumber": student.role_number,
        "profilePicUrl": student.profile_pic_url or student.user.profile_pic_url or None,
        "schoolId": student.school_id,
        "schoolName": student.school.name,
        "isFollowing": bool(getattr(post, 'is_following_author', False)),
    }


def post_to_dict(post):
    """Serialize a post annotated by ``with_engagement``."""
    data = {
        "id": post.id,
        "studentId": post.student_id,
        "mediaUrl": post.media_url,
        "mediaType": post.media_type,
        "caption": post.caption,
        "status": post.status,
        "thumbnailUrl": post.thumbnail_url or None,
        "cloudinaryPublicId": post.cloudinary_public_id or None,
        "type": post.type,
        "title": post.title or None,
        "createdAt": iso(post.created_at),
        "student": _author_block(post),
        "likesCount": getattr(post, 'likes_count', 0),
        "commentsCount": getattr(post, 'comments_count', 0),
        "savesCount": getattr(post, 'saves_count', 0),
        "viewCount": getattr(post, 'view_count', 0),
        "isLiked": bool(getattr(post, 'is_liked', False)),
        "isSaved": bool(getattr(post, 'is_saved', False)),
        "effectiveMediaUrl": post.media_url or '',
        "effectiveMediaType": post.media_type or 'image',
        "effectiveStatus": post.status or 'ready',
    }
    if post.is_announcement:
        data.update({
            "isAnnouncement": True,
            "announcementScope": post.scope,
            "announcementSchool": school_to_dict(post.school),
            "broadcast": post.broadcast,
            "createdByAdminId": post.created_by_admin_id,
        })
    return data


def comment_to_dict(comment):
    return {
        "id": comment.id,
        "postId": comment.post_id,
        "content": comment.content,
        "createdAt": iso(comment.created_at),
        "user": {
            "id": comment.user_id,
            "name": comment.user.name,
            "role": comment.user.role,
            "profilePicUrl": comment.user.profile_pic_url or None,
        },
    }


# ============================================================================
# NOTIFICATIONS, BANNERS, MISC
# ============================================================================

def notification_to_dict(notification):
    return {
        "id": notification.id,
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "entityType": notification.entity_type or None,
        "entityId": notification.entity_id or None,
        "relatedUserId": notification.related_user_id,
        "metadata": notification.metadata,
        "isRead": notification.is_read,
        "createdAt": iso(notification.created_at),
    }


def banner_to_dict(banner):
    return {
        "id": banner.id,
        "title": banner.title,
        "message": banner.message,
        "category": banner.category,
        "targetRoles": banner.target_roles,
        "targetSchoolIds": banner.target_school_ids,
        "startDate": iso(banner.start_date),
        "endDate": iso(banner.end_date),
        "isActive": banner.is_active,
        "priority": banner.priority,
        "createdBy": banner.created_by_id,
        "createdAt": iso(banner.created_at),
        "updatedAt": iso(banner.updated_at),
    }


def application_to_dict(application):
    return {
        "id": application.id,
        "schoolName": application.school_name,
        "contactName": application.contact_name,
        "contactEmail": application.contact_email,
        "contactPhone": application.contact_phone,
        "address": application.address,
        "expectedStudents": application.expected_students,
        "paymentFrequency": application.payment_frequency,
        "notes": application.notes,
        "status": application.status,
        "schoolId": application.school_id,
        "reviewedBy": application.reviewed_by_id,
        "reviewedAt": iso(application.reviewed_at),
        "createdAt": iso(application.created_at),
    }


def setting_to_dict(setting):
    return {
        "key": setting.key,
        "value": setting.value,
        "category": setting.category,
        "updatedAt": iso(setting.updated_at),
    }


def transaction_to_dict(transaction):
    return {
        "id": transaction.id,
        "type": transaction.type,
        "amountCents": transaction.amount_cents,
        "currency": transaction.currency,
        "status": transaction.status,
        "provider": transaction.provider,
        "providerTransactionId": transaction.provider_transaction_id,
        "createdAt": iso(transaction.created_at),
    }


def analytics_log_to_dict(log):
    return {
        "id": log.id,
        "eventType": log.event_type,
        "entityType": log.entity_type or None,
        "entityId": log.entity_id or None,
        "metadata": log.metadata,
        "timestamp": iso(log.timestamp),
    }
