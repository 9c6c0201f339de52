from datetime import timedelta
from decimal import Decimal

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.utils import timezone

from lockerroom.auth import issue_token
from lockerroom.models import (
    AdminRole, Notification, School, SchoolApplication, SchoolPaymentRecord, Student,
    StudentFollower, SystemSetting, User,
)

from .conftest import make_user

pytestmark = pytest.mark.django_db


# ==================== SCHOOLS ====================

def test_create_school_records_initial_payment(api, sysadmin):
    response = api('post', '/api/system-admin/schools', user=sysadmin, data={
        'name': 'Northside FC Academy', 'paymentAmount': '250.00', 'paymentFrequency': 'annual', 'maxStudents': 40,
    })
    assert response.status_code == 201
    school = School.objects.get(name='Northside FC Academy')
    assert school.max_students == 40
    assert school.subscription_expires_at > timezone.now() + timedelta(days=360)
    record = SchoolPaymentRecord.objects.get(school=school)
    assert record.payment_type == 'initial'
    assert record.payment_amount == Decimal('250.00')


@pytest.mark.parametrize('payload', [
    {'name': '', 'paymentAmount': 10, 'paymentFrequency': 'monthly'},
    {'name': 'X', 'paymentAmount': 0, 'paymentFrequency': 'monthly'},
    {'name': 'X', 'paymentAmount': 'abc', 'paymentFrequency': 'monthly'},
    {'name': 'X', 'paymentAmount': 10, 'paymentFrequency': 'weekly'},
])
def test_create_school_validation(api, sysadmin, payload):
    assert api('post', '/api/system-admin/schools', user=sysadmin, data=payload).status_code == 400


def test_school_admin_cannot_create_school(api, school_admin):
    response = api('post', '/api/system-admin/schools', user=school_admin,
                   data={'name': 'X', 'paymentAmount': 10, 'paymentFrequency': 'monthly'})
    assert response.status_code == 403


def test_list_schools_with_counts(api, sysadmin, school, school_admin, student):
    schools = api('get', '/api/system-admin/schools', user=sysadmin).json()['schools']
    entry = next(s for s in schools if s['id'] == school.id)
    assert entry['studentCount'] == 1
    assert entry['adminCount'] == 1
    assert entry['paymentFrequency'] == 'monthly'


def test_disable_and_enable_school(api, sysadmin, school, school_admin, student):
    response = api('put', f'/api/system-admin/schools/{school.id}/disable', user=sysadmin)
    assert response.json()['accountsAffected'] == 2
    school_admin.refresh_from_db()
    assert school_admin.is_frozen

    api('put', f'/api/system-admin/schools/{school.id}/enable', user=sysadmin)
    school.refresh_from_db()
    student.user.refresh_from_db()
    assert school.is_active
    assert not student.user.is_frozen


def test_renew_extends_from_current_expiry(api, sysadmin, school):
    before = school.subscription_expires_at
    response = api('post', f'/api/system-admin/schools/{school.id}/renew', user=sysadmin,
                   data={'paymentAmount': 120, 'paymentFrequency': 'monthly'})
    assert response.status_code == 200
    school.refresh_from_db()
    assert school.subscription_expires_at > before + timedelta(days=27)
    assert school.payment_records.filter(payment_type='renewal').exists()


def test_renew_reactivates_lapsed_school(api, sysadmin, school, school_admin):
    school.is_active = False
    school.subscription_expires_at = timezone.now() - timedelta(days=3)
    school.save()
    school_admin.is_frozen = True
    school_admin.save()

    api('post', f'/api/system-admin/schools/{school.id}/renew', user=sysadmin,
        data={'paymentAmount': 900, 'paymentFrequency': 'annual'})
    school.refresh_from_db()
    school_admin.refresh_from_db()
    assert school.is_active
    assert school.payment_frequency == 'annual'
    assert school.subscription_expires_at > timezone.now() + timedelta(days=360)
    assert not school_admin.is_frozen


def test_renew_requires_amount(api, sysadmin, school):
    response = api('post', f'/api/system-admin/schools/{school.id}/renew', user=sysadmin,
                   data={'paymentFrequency': 'monthly'})
    assert response.status_code == 400


def test_student_limit_cannot_drop_below_enrollment(api, sysadmin, school, student):
    response = api('put', f'/api/system-admin/schools/{school.id}/student-limit', user=sysadmin,
                   data={'maxStudents': 0})
    assert response.status_code == 400

    Student.objects.create(user=make_user('p2@riverside.test', 'student', school=school), school=school, name='P2')
    response = api('put', f'/api/system-admin/schools/{school.id}/student-limit', user=sysadmin,
                   data={'maxStudents': 1})
    assert response.status_code == 400
    assert response.json()['error']['code'] == 'limit_below_enrollment'


def test_student_limit_increase_is_recorded(api, sysadmin, school):
    response = api('put', f'/api/system-admin/schools/{school.id}/student-limit', user=sysadmin,
                   data={'maxStudents': 50, 'paymentAmount': 30})
    assert response.status_code == 200
    record = school.payment_records.get(payment_type='student_limit_increase')
    assert (record.student_limit_before, record.student_limit_after) == (5, 50)


def test_delete_school_removes_members(api, sysadmin, school, school_admin, student):
    response = api('delete', f'/api/system-admin/schools/{school.id}', user=sysadmin)
    assert response.status_code == 200
    assert not School.objects.filter(id=school.id).exists()
    assert not User.objects.filter(id__in=[school_admin.id, student.user_id]).exists()


def test_school_detail_not_found(api, sysadmin):
    assert api('get', '/api/system-admin/schools/424242', user=sysadmin).status_code == 404


def test_school_profile_picture(client, sysadmin, school, fake_cloudinary):
    response = client.post(
        f'/api/system-admin/schools/{school.id}/profile-pic',
        {'file': SimpleUploadedFile('crest.png', b'png', content_type='image/png')},
        HTTP_AUTHORIZATION=f"Bearer {issue_token(sysadmin)}",
    )
    assert response.status_code == 200
    school.refresh_from_db()
    assert school.profile_pic_url.startswith('https://res.cloudinary.com/demo/lockerroom/school-profiles')


# ==================== SCHOOL ADMINS ====================

def test_create_school_admin_with_otp(api, sysadmin, school, student):
    response = api('post', '/api/system-admin/school-admins', user=sysadmin,
                   data={'schoolId': school.id, 'name': 'New Coach', 'email': 'NewCoach@riverside.test'})
    assert response.status_code == 201
    body = response.json()
    assert len(body['otp']) == 10
    assert body['emailSent'] is False

    user = User.objects.get(email='newcoach@riverside.test')
    assert user.role == 'school_admin'
    assert user.is_one_time_password
    assert user.otp_expires_at > timezone.now() + timedelta(days=6)
    assert user.check_password(body['otp'])
    assert StudentFollower.objects.filter(follower=user, student=student).exists()

    admins = api('get', f'/api/system-admin/schools/{school.id}/admins', user=sysadmin).json()['admins']
    assert [a['email'] for a in admins] == ['newcoach@riverside.test']


def test_create_school_admin_errors(api, sysadmin, school, viewer):
    missing = api('post', '/api/system-admin/school-admins', user=sysadmin,
                  data={'schoolId': 99999, 'name': 'A', 'email': 'a@x.com'})
    assert missing.status_code == 404

    taken = api('post', '/api/system-admin/school-admins', user=sysadmin,
                data={'schoolId': school.id, 'name': 'A', 'email': viewer.email})
    assert taken.status_code == 409


# ==================== ENROLLMENT ====================

def test_enrollment_status(api, school_admin, student):
    status = api('get', '/api/school-admin/enrollment-status', user=school_admin).json()['enrollmentStatus']
    assert status == {
        'currentCount': 1,
        'maxStudents': 5,
        'availableSlots': 4,
        'utilizationPercentage': 20.0,
        'warningLevel': 'none',
        'canEnroll': True,
    }


def test_system_admin_enrollment_status_needs_school_id(api, sysadmin, school):
    assert api('get', '/api/school-admin/enrollment-status', user=sysadmin).status_code == 400
    ok = api('get', '/api/school-admin/enrollment-status', user=sysadmin, data={'schoolId': school.id})
    assert ok.json()['enrollmentStatus']['maxStudents'] == 5


def test_add_student_creates_profile_and_follows(api, school_admin, school):
    response = api('post', '/api/school-admin/students', user=school_admin, data={
        'name': 'Alex Keeper', 'email': 'alex@riverside.test', 'sport': 'Football', 'position': 'Goalkeeper',
        'height': 188,
    })
    assert response.status_code == 201
    body = response.json()
    student = Student.objects.get(id=body['student']['id'])
    assert student.school == school
    assert student.position == 'Goalkeeper'
    assert student.user.is_one_time_password
    assert StudentFollower.objects.filter(follower=school_admin, student=student).exists()
    assert body['enrollmentStatus']['currentCount'] == 1


def test_add_student_enforces_limit(api, school_admin, school):
    school.max_students = 1
    school.save()
    Student.objects.create(user=make_user('p1@riverside.test', 'student', school=school), school=school, name='P1')

    response = api('post', '/api/school-admin/students', user=school_admin,
                   data={'name': 'Late Signing', 'email': 'late@riverside.test'})
    assert response.status_code == 403
    body = response.json()
    assert body['error']['code'] == 'enrollment_limit_reached'
    assert body['enrollmentStatus']['warningLevel'] == 'at_limit'
    assert not User.objects.filter(email='late@riverside.test').exists()


def test_add_student_rejected_for_inactive_school(api, sysadmin, school):
    school.is_active = False
    school.save()
    response = api('post', '/api/school-admin/students', user=sysadmin,
                   data={'schoolId': school.id, 'name': 'X', 'email': 'x@riverside.test'})
    assert response.status_code == 403
    assert response.json()['error']['code'] == 'school_inactive'


def test_add_student_duplicate_email(api, school_admin, student):
    response = api('post', '/api/school-admin/students', user=school_admin,
                   data={'name': 'Dup', 'email': student.user.email})
    assert response.status_code == 409


def test_school_students_search_and_scope(api, school_admin, student, other_school):
    found = api('get', f'/api/schools/{student.school_id}/students', user=school_admin,
                data={'q': 'striker'}).json()['students']
    assert [s['id'] for s in found] == [student.id]

    other = api('get', f'/api/schools/{other_school.id}/students', user=school_admin)
    assert other.status_code == 403


def test_school_stats(api, school_admin, student):
    body = api('get', f'/api/schools/{student.school_id}/stats', user=school_admin).json()
    assert body['totalStudents'] == 1
    assert body['enrollment']['availableSlots'] == 4
    assert body['topStudents'][0]['name'] == 'Jordan Player'


def test_school_settings_roundtrip(api, school_admin, school):
    api('post', f'/api/schools/{school.id}/settings', user=school_admin,
        data={'key': 'season', 'value': '2026/27', 'category': 'calendar'})
    api('post', f'/api/schools/{school.id}/settings', user=school_admin, data={'key': 'season', 'value': '2027/28'})

    settings = api('get', f'/api/schools/{school.id}/settings', user=school_admin).json()['settings']
    assert [(s['key'], s['value']) for s in settings] == [('season', '2027/28')]

    assert api('delete', f'/api/schools/{school.id}/settings/season', user=school_admin).status_code == 200
    assert api('delete', f'/api/schools/{school.id}/settings/season', user=school_admin).status_code == 404


# ==================== PLATFORM ADMINS ====================

def test_create_scout_gets_xen_id(api, sysadmin):
    response = api('post', '/api/admin/admins', user=sysadmin,
                   data={'name': 'Eagle Eye', 'email': 'eagle@example.com', 'role': 'xen_scout'})
    assert response.status_code == 201
    admin = response.json()['admin']
    assert admin['xenId'].startswith(f"XSA-{timezone.now():%y}")
    assert len(admin['xenId']) == 9
    assert admin['permissions'] == ['rate_students', 'view_students']
    assert AdminRole.objects.get(user_id=admin['id']).assigned_by == sysadmin


def test_create_admin_rejects_unknown_role(api, sysadmin):
    response = api('post', '/api/admin/admins', user=sysadmin,
                   data={'name': 'X', 'email': 'x@example.com', 'role': 'student'})
    assert response.status_code == 400


def test_create_admin_duplicate_xen_id(api, sysadmin, scout):
    response = api('post', '/api/admin/admins', user=sysadmin,
                   data={'name': 'X', 'email': 'x@example.com', 'role': 'scout_admin', 'xenId': scout.xen_id})
    assert response.status_code == 409


def test_list_admins_by_role(api, sysadmin, scout, scout_admin):
    admins = api('get', '/api/admin/admins', user=sysadmin, data={'role': 'xen_scout'}).json()['admins']
    assert [a['email'] for a in admins] == [scout.email]


def test_disable_enable_delete_admin(api, sysadmin, scout):
    api('put', f'/api/admin/admins/{scout.id}/disable', user=sysadmin)
    scout.refresh_from_db()
    assert scout.is_frozen

    api('put', f'/api/admin/admins/{scout.id}/enable', user=sysadmin)
    scout.refresh_from_db()
    assert not scout.is_frozen

    assert api('delete', f'/api/admin/admins/{scout.id}', user=sysadmin).status_code == 200
    assert not User.objects.filter(id=scout.id).exists()


def test_admin_cannot_act_on_self(api, sysadmin):
    assert api('put', f'/api/admin/admins/{sysadmin.id}/disable', user=sysadmin).status_code == 400
    assert api('delete', f'/api/admin/admins/{sysadmin.id}', user=sysadmin).status_code == 400


# ==================== APPLICATIONS ====================

def test_school_application_approval(api, sysadmin):
    response = api('post', '/api/school-applications', data={
        'schoolName': 'Eastfield Academy', 'contactName': 'Pat Lee', 'contactEmail': 'pat@eastfield.test',
        'expectedStudents': 30, 'paymentFrequency': 'annual',
    })
    assert response.status_code == 201
    application_id = response.json()['application']['id']
    assert Notification.objects.filter(user=sysadmin, type='school_application').exists()

    no_amount = api('post', f'/api/admin/school-applications/{application_id}/approve', user=sysadmin)
    assert no_amount.status_code == 400

    approved = api('post', f'/api/admin/school-applications/{application_id}/approve', user=sysadmin,
                   data={'paymentAmount': 500})
    assert approved.status_code == 200
    school = School.objects.get(name='Eastfield Academy')
    assert school.max_students == 30
    assert school.payment_frequency == 'annual'

    again = api('post', f'/api/admin/school-applications/{application_id}/approve', user=sysadmin,
                data={'paymentAmount': 500})
    assert again.status_code == 409


def test_school_application_rejection(api, sysadmin):
    application = SchoolApplication.objects.create(
        school_name='Westgate', contact_name='Kim', contact_email='kim@westgate.test',
    )
    response = api('post', f'/api/admin/school-applications/{application.id}/reject', user=sysadmin,
                   data={'notes': 'Outside service area'})
    assert response.json()['application']['status'] == 'rejected'

    listed = api('get', '/api/admin/school-applications', user=sysadmin, data={'status': 'rejected'})
    assert [a['id'] for a in listed.json()['applications']] == [application.id]


def test_school_application_requires_valid_email(api):
    response = api('post', '/api/school-applications',
                   data={'schoolName': 'X', 'contactName': 'Y', 'contactEmail': 'not-an-email'})
    assert response.status_code == 400


# ==================== SETTINGS & STATS ====================

def test_system_settings(api, sysadmin):
    api('post', '/api/admin/system-settings', user=sysadmin,
        data={'key': 'xen_watch_price_cents', 'value': 1500, 'category': 'payments'})
    assert SystemSetting.get_value('xen_watch_price_cents') == '1500'

    listed = api('get', '/api/admin/system-settings', user=sysadmin, data={'category': 'payments'}).json()
    assert listed['settings'][0]['key'] == 'xen_watch_price_cents'

    assert api('delete', '/api/admin/system-settings/xen_watch_price_cents', user=sysadmin).status_code == 200


def test_platform_stats(api, sysadmin, school, student, viewer):
    SchoolPaymentRecord.objects.create(school=school, payment_amount=100, payment_frequency='monthly',
                                       payment_type='initial')
    body = api('get', '/api/system-admin/stats', user=sysadmin).json()
    assert body['users']['byRole']['student'] == 1
    assert body['users']['byRole']['viewer'] == 1
    assert body['schools'] == {'total': 1, 'active': 1}
    assert body['revenue']['schoolPayments'] == 100.0


def test_platform_stats_forbidden_for_school_admin(api, school_admin):
    assert api('get', '/api/system-admin/stats', user=school_admin).status_code == 403


# ==================== MANAGEMENT COMMANDS ====================

def test_ensure_sysadmin_creates_then_updates(monkeypatch):
    monkeypatch.setenv('SYSADMIN_EMAIL', 'root@lockerroom.test')
    call_command('ensure_sysadmin', '--email', 'root@lockerroom.test', '--password', 'first-password')
    user = User.objects.get(email='root@lockerroom.test')
    assert user.role == 'system_admin'
    assert user.is_superuser

    user.role = 'viewer'
    user.save()
    call_command('ensure_sysadmin', '--email', 'root@lockerroom.test', '--password', '')
    user.refresh_from_db()
    assert user.role == 'system_admin'
    assert user.check_password('first-password')
    assert AdminRole.objects.filter(user=user, role='system_admin').count() == 1
