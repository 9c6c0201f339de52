from datetime import timedelta

import pytest
from django.core.management import call_command
from django.utils import timezone

from lockerroom.models import Notification, Post
from lockerroom.notifications import (
    deactivate_expired_subscriptions, notify, notify_expiring_subscriptions,
    notify_followers_of_new_post, notify_system_admins,
)

pytestmark = pytest.mark.django_db


# ==================== INBOX API ====================

def test_list_and_unread_count(api, viewer):
    notify(viewer, 'new_follower', 'New Follower', 'Someone followed you')
    read = notify(viewer, 'post_liked', 'New Like', 'Someone liked your post')
    read.is_read = True
    read.save()

    body = api('get', '/api/notifications', user=viewer).json()
    assert len(body['notifications']) == 2
    assert body['unreadCount'] == 1

    unread = api('get', '/api/notifications', user=viewer, data={'unreadOnly': 'true'}).json()
    assert [n['type'] for n in unread['notifications']] == ['new_follower']

    assert api('get', '/api/notifications/unread-count', user=viewer).json() == {'count': 1}


def test_mark_read_only_touches_own(api, viewer, sysadmin):
    mine = notify(viewer, 'x', 'T', 'M')
    theirs = notify(sysadmin, 'x', 'T', 'M')

    assert api('post', f'/api/notifications/{mine.id}/read', user=viewer).status_code == 200
    assert api('post', f'/api/notifications/{theirs.id}/read', user=viewer).status_code == 404
    theirs.refresh_from_db()
    assert not theirs.is_read


def test_mark_all_and_clear(api, viewer):
    for i in range(3):
        notify(viewer, 'x', f'T{i}', 'M')
    assert api('post', '/api/notifications/read-all', user=viewer).json()['updated'] == 3
    assert api('delete', '/api/notifications', user=viewer).json()['deleted'] == 3
    assert not Notification.objects.filter(user=viewer).exists()


def test_delete_single(api, viewer):
    note = notify(viewer, 'x', 'T', 'M')
    assert api('delete', f'/api/notifications/{note.id}', user=viewer).status_code == 200
    assert api('delete', f'/api/notifications/{note.id}', user=viewer).status_code == 404


# ==================== FAN-OUT ====================

def test_notify_system_admins_excludes_actor_and_frozen(sysadmin, db):
    from .conftest import make_user

    other = make_user('second@example.com', 'system_admin')
    frozen = make_user('frozen@example.com', 'system_admin', is_frozen=True)

    created = notify_system_admins('school_created', 'New School', 'msg', exclude=sysadmin, entity_id=5)
    assert created == 1
    note = Notification.objects.get()
    assert note.user == other
    assert note.entity_id == '5'
    assert not Notification.objects.filter(user=frozen).exists()


def test_followers_notified_except_author(student, viewer):
    from lockerroom.models import StudentFollower

    StudentFollower.objects.create(follower=viewer, student=student)
    StudentFollower.objects.create(follower=student.user, student=student)
    post = Post.objects.create(student=student, media_url='https://cdn/x.jpg')

    assert notify_followers_of_new_post(post) == 1
    assert Notification.objects.get().user == viewer


# ==================== SUBSCRIPTIONS ====================

def test_monthly_school_warned_within_seven_days(school, school_admin, sysadmin):
    now = timezone.now()
    school.subscription_expires_at = now + timedelta(days=3)
    school.save()

    created = notify_expiring_subscriptions(now)
    assert created == 2
    admin_note = Notification.objects.get(user=school_admin)
    assert admin_note.type == 'subscription_expiring'
    assert 'expires in 3 days' in admin_note.message
    assert admin_note.metadata['daysUntilExpiry'] == 3


def test_monthly_school_not_warned_early(school, sysadmin):
    now = timezone.now()
    school.subscription_expires_at = now + timedelta(days=10)
    school.save()
    assert notify_expiring_subscriptions(now) == 0


def test_annual_school_warned_thirty_days_ahead(other_school, sysadmin):
    now = timezone.now()
    other_school.subscription_expires_at = now + timedelta(days=25)
    other_school.save()
    assert notify_expiring_subscriptions(now) == 1


def test_reminders_are_not_repeated_within_a_day(school, sysadmin):
    now = timezone.now()
    school.subscription_expires_at = now + timedelta(days=1)
    school.save()

    assert notify_expiring_subscriptions(now) == 1
    assert notify_expiring_subscriptions(now + timedelta(hours=6)) == 0
    note = Notification.objects.get()
    assert 'expires in 1 day.' in note.message


def test_expired_school_deactivated_and_members_frozen(school, school_admin, student, sysadmin):
    now = timezone.now()
    school.subscription_expires_at = now - timedelta(minutes=5)
    school.save()

    expired = deactivate_expired_subscriptions(now)
    assert [s.id for s in expired] == [school.id]
    school.refresh_from_db()
    school_admin.refresh_from_db()
    student.user.refresh_from_db()
    assert not school.is_active
    assert school_admin.is_frozen
    assert student.user.is_frozen
    assert Notification.objects.filter(user=sysadmin, type='subscription_expired').exists()
    sysadmin.refresh_from_db()
    assert not sysadmin.is_frozen


def test_check_subscriptions_command(school, sysadmin, capsys):
    school.subscription_expires_at = timezone.now() - timedelta(days=1)
    school.save()
    call_command('check_subscriptions')
    school.refresh_from_db()
    assert not school.is_active
    assert 'Deactivated Riverside Academy' in capsys.readouterr().out


# ==================== FAILURES ====================

def test_notify_returns_none_when_insert_fails(viewer, monkeypatch):
    from django.db import DatabaseError

    def broken_create(**kwargs):
        raise DatabaseError("notifications table is locked")

    monkeypatch.setattr(Notification.objects, 'create', broken_create)
    assert notify(viewer, 'new_follower', 'New Follower', 'Someone followed you') is None


def test_like_succeeds_when_notification_fails(api, student, viewer, monkeypatch):
    from django.db import DatabaseError

    from lockerroom.models import PostLike

    def broken_create(**kwargs):
        raise DatabaseError("notifications table is locked")

    post = Post.objects.create(student=student, media_url='https://res.cloudinary.com/demo/a1',
                               media_type='image', status='ready')
    monkeypatch.setattr(Notification.objects, 'create', broken_create)
    response = api('post', f'/api/posts/{post.id}/like', user=viewer)
    assert response.status_code == 200
    assert response.json()['likesCount'] == 1
    assert PostLike.objects.filter(post=post, user=viewer).exists()
