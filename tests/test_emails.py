from unittest import mock

import pytest
import requests

from lockerroom.emails import account_email_subject, send_account_created_email, send_email, send_verification_email

pytestmark = pytest.mark.django_db


@pytest.fixture
def resend(settings):
    settings.RESEND_API_KEY = 're_test_key'
    with mock.patch('lockerroom.emails.requests.post') as post:
        post.return_value.raise_for_status.return_value = None
        yield post


def test_send_email_without_key_reports_failure(viewer):
    result = send_email(viewer.email, 'Hello', 'welcome.html', {'name': 'Fan', 'login_link': '/login'})
    assert result.success is False
    assert result.error == 'Email service not configured'


def test_verification_email_posts_to_resend(resend, viewer):
    result = send_verification_email(viewer, 'tok123')
    assert result.success is True

    payload = resend.call_args.kwargs['json']
    assert payload['to'] == [viewer.email]
    assert 'http://frontend.test/verify-email?token=tok123' in payload['html']
    assert 'tok123' in payload['text']
    assert resend.call_args.kwargs['headers']['Authorization'] == 'Bearer re_test_key'


def test_resend_http_error_is_reported(resend, viewer):
    resend.return_value.raise_for_status.side_effect = requests.HTTPError('422 Unprocessable')
    result = send_verification_email(viewer, 'tok')
    assert result.success is False
    assert '422' in result.error


def test_account_created_email_includes_credentials(resend, scout):
    send_account_created_email(scout, 'OTPcode123')
    payload = resend.call_args.kwargs['json']
    assert payload['subject'] == 'Welcome to LockerRoom - XEN Scout Account'
    assert 'OTPcode123' in payload['html']
    assert scout.xen_id in payload['html']


def test_student_subject_names_school(school):
    assert account_email_subject('student', school) == 'Welcome to LockerRoom - Riverside Academy'
    assert account_email_subject('school_admin') == 'Welcome to LockerRoom - Academy Admin Account'
    assert account_email_subject('coach') == 'Welcome to LockerRoom - Coach Account'


def test_role_filter_library():
    from django.template import Context, Template

    from lockerroom.templatetags.lockerroom_filters import register

    assert set(register.filters) == {'role_display'}
    rendered = Template('{% load lockerroom_filters %}{{ role|role_display }}').render(Context({'role': 'student'}))
    assert rendered == 'Player'
