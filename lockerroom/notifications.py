"""
Notification fan-out and subscription lifecycle jobs.

Creation helpers are called from views after the primary write succeeded;
a failure to notify is logged and never undoes the user's action.
"""

import logging
import math
from datetime import timedelta

from django.db import DatabaseError, transaction
from django.utils import timezone

from .models import Notification, School, User
from .roles import SCHOOL_ADMIN, STUDENT, SYSTEM_ADMIN

logger = logging.getLogger(__name__)

EXPIRY_WARNING_DAYS = {
    'monthly': 7,
    'annual': 30,
}

# Subscription reminders are re-sent at most this often per user and school
REMINDER_INTERVAL = timedelta(hours=24)


def notify(user, type, title, message, entity_type='', entity_id='', related_user=None, metadata=None):
    """Create one notification; returns None when the insert fails."""
    try:
        with transaction.atomic():
            return Notification.objects.create(
                user=user,
                type=type,
                title=title,
                message=message,
                entity_type=entity_type or '',
                entity_id=str(entity_id) if entity_id is not None else '',
                related_user=related_user,
                metadata=metadata or {},
            )
    except DatabaseError as e:
        logger.error(f"Failed to create '{type}' notification for user {user.id}: {e}", exc_info=True)
        return None


def notify_many(users, type, title, message, **kwargs):
    """Bulk create one notification per user; returns the count created."""
    entity_id = kwargs.get('entity_id')
    rows = [
        Notification(
            user=user,
            type=type,
            title=title,
            message=message,
            entity_type=kwargs.get('entity_type', ''),
            entity_id=str(entity_id) if entity_id is not None else '',
            related_user=kwargs.get('related_user'),
            metadata=kwargs.get('metadata') or {},
        )
        for user in users
    ]
    try:
        with transaction.atomic():
            Notification.objects.bulk_create(rows)
    except DatabaseError as e:
        logger.error(f"Failed to create {len(rows)} '{type}' notifications: {e}", exc_info=True)
        return 0
    return len(rows)


def system_admins():
    return User.objects.filter(role=SYSTEM_ADMIN, is_active=True, is_frozen=False)


def notify_system_admins(type, title, message, exclude=None, **kwargs):
    admins = system_admins()
    if exclude is not None:
        admins = admins.exclude(id=exclude.id)
    return notify_many(admins, type, title, message, **kwargs)


# ============================================================================
# SOCIAL EVENTS
# ============================================================================

def notify_followers_of_new_post(post):
    student = post.student
    if student is None:
        return 0
    followers = User.objects.filter(following_students__student=student).exclude(id=student.user_id)
    count = notify_many(
        followers,
        'following_posted',
        'New Post',
        f"{student.name} posted something new",
        entity_type='post',
        entity_id=post.id,
        related_user=student.user,
        metadata={'studentId': student.id, 'postId': post.id},
    )
    logger.info(f"Notified {count} follower(s) of post {post.id}")
    return count


def notify_post_liked(post, actor):
    if post.student is None or post.student.user_id == actor.id:
        return None
    return notify(
        post.student.user,
        'post_liked',
        'New Like',
        f"{actor.name or 'Someone'} liked your post",
        entity_type='post',
        entity_id=post.id,
        related_user=actor,
    )


def notify_post_commented(post, actor, comment):
    if post.student is None or post.student.user_id == actor.id:
        return None
    return notify(
        post.student.user,
        'post_commented',
        'New Comment',
        f"{actor.name or 'Someone'} commented on your post",
        entity_type='post',
        entity_id=post.id,
        related_user=actor,
        metadata={'commentId': comment.id},
    )


def notify_new_follower(student, follower):
    if student.user_id == follower.id:
        return None
    return notify(
        student.user,
        'new_follower',
        'New Follower',
        f"{follower.name or 'Someone'} started following you",
        entity_type='student',
        entity_id=student.id,
        related_user=follower,
    )


# ============================================================================
# SUBSCRIPTIONS
# ============================================================================

def days_until(moment, now):
    return math.ceil((moment - now).total_seconds() / 86400)


def _already_reminded(user, school, now):
    return Notification.objects.filter(
        user=user,
        type='subscription_expiring',
        entity_type='school',
        entity_id=str(school.id),
        created_at__gte=now - REMINDER_INTERVAL,
    ).exists()


def expiring_schools(now):
    schools = School.objects.filter(
        is_active=True,
        subscription_expires_at__isnull=False,
        subscription_expires_at__gt=now,
    )
    for school in schools:
        window = timedelta(days=EXPIRY_WARNING_DAYS.get(school.payment_frequency, 7))
        if school.subscription_expires_at <= now + window:
            yield school


def notify_expiring_subscriptions(now=None):
    """
    Warn system admins and the school's admins about upcoming expiry.

    Monthly plans are warned 7 days ahead, annual plans 30 days ahead.
    Returns the number of notifications created.
    """
    now = now or timezone.now()
    created = 0

    for school in expiring_schools(now):
        days = days_until(school.subscription_expires_at, now)
        plural = '' if days == 1 else 's'
        metadata = {
            'schoolId': school.id,
            'schoolName': school.name,
            'expiresAt': school.subscription_expires_at.isoformat(),
            'daysUntilExpiry': days,
            'paymentAmount': str(school.payment_amount),
            'paymentFrequency': school.payment_frequency,
        }

        recipients = [
            (admin, 'School Subscription Expiring',
             f"{school.name}'s {school.payment_frequency} subscription expires in {days} day{plural}. "
             f"Please renew to avoid service interruption.")
            for admin in system_admins()
        ]
        recipients += [
            (admin, 'Subscription Expiring Soon',
             f"Your school's {school.payment_frequency} subscription expires in {days} day{plural}. "
             f"Please contact your administrator to renew.")
            for admin in school.members.filter(role=SCHOOL_ADMIN)
        ]

        for user, title, message in recipients:
            if _already_reminded(user, school, now):
                continue
            note = notify(user, 'subscription_expiring', title, message,
                          entity_type='school', entity_id=school.id, metadata=metadata)
            if note is not None:
                created += 1

    logger.info(f"Created {created} notification(s) for expiring subscriptions")
    return created


def set_school_members_frozen(school, frozen):
    """Freeze or unfreeze every school admin and student account of ``school``."""
    return User.objects.filter(school=school, role__in=[SCHOOL_ADMIN, STUDENT]).update(is_frozen=frozen)


def deactivate_expired_subscriptions(now=None):
    """Deactivate schools whose subscription has lapsed and freeze their members."""
    now = now or timezone.now()
    expired = list(School.objects.filter(
        is_active=True,
        subscription_expires_at__isnull=False,
        subscription_expires_at__lte=now,
    ))

    for school in expired:
        school.is_active = False
        school.save(update_fields=['is_active', 'updated_at'])
        frozen = set_school_members_frozen(school, True)
        logger.warning(f"Deactivated school {school.id} ({school.name}); froze {frozen} account(s)")
        notify_system_admins(
            'subscription_expired',
            'School Subscription Expired',
            f"{school.name}'s subscription has expired and the school has been deactivated.",
            entity_type='school',
            entity_id=school.id,
        )

    return expired
