import pytest
from django.test import override_settings

from lockerroom.models import Notification, PaymentTransaction, SystemSetting
from lockerroom.roles import has_role_permission, requires_otp, role_display_name

pytestmark = pytest.mark.django_db


# ==================== ROLES ====================

def test_role_hierarchy():
    assert has_role_permission('system_admin', 'school_admin')
    assert has_role_permission('school_admin', 'student')
    assert not has_role_permission('viewer', 'student')
    assert not has_role_permission('unknown', 'viewer')


def test_role_display_names():
    assert role_display_name('school_admin') == 'Academy Admin'
    assert role_display_name('student') == 'Player'
    assert role_display_name('scout_admin') == 'Scout Admin'
    assert role_display_name('') == ''


def test_only_scouts_require_otp():
    assert requires_otp('xen_scout')
    assert requires_otp('scout_admin')
    assert not requires_otp('coach')


# ==================== MIDDLEWARE ====================

def test_api_responses_carry_security_headers(api):
    response = api('get', '/api/health')
    assert response.status_code == 200
    assert response['X-Content-Type-Options'] == 'nosniff'
    assert response['Cache-Control'] == 'no-store'


def test_invalid_json_body(api):
    response = api('post', '/api/auth/register', data='{not json', content_type='application/json')
    assert response.status_code == 400
    assert response.json()['error']['code'] == 'invalid_json'


def test_unexpected_errors_become_json_500(api, viewer, monkeypatch):
    from lockerroom import views

    def explode(*args, **kwargs):
        raise RuntimeError("database on fire")

    monkeypatch.setattr(views, 'feed_queryset', explode)
    response = api('get', '/api/posts', user=viewer)
    assert response.status_code == 500
    assert response.json() == {'error': {'code': 'server_error', 'message': 'An unexpected error occurred'}}


def test_rate_limit_returns_429(api, settings):
    settings.ENABLE_RATE_LIMIT = True
    with override_settings(CACHES={'default': {'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
                                               'LOCATION': 'rate-limit-test'}}):
        statuses = [
            api('post', '/api/auth/forgot-password', data={'email': 'x@example.com'}).status_code
            for _ in range(6)
        ]
    assert statuses[:5] == [200] * 5
    assert statuses[5] == 429


def test_health_reports_services(api):
    body = api('get', '/api/health').json()
    assert body['status'] == 'ok'
    assert body['dbConnected'] is True
    assert body['cloudinaryConfigured'] is True


# ==================== PAYMENTS ====================

def test_mock_checkout_uses_configured_price(api, viewer, sysadmin):
    SystemSetting.objects.create(key='xen_watch_price_cents', value='2500')
    response = api('post', '/api/payments/checkout', user=viewer, data={'type': 'xen_watch'})
    assert response.status_code == 201
    transaction = response.json()['transaction']
    assert transaction['amountCents'] == 2500
    assert transaction['status'] == 'completed'
    assert transaction['provider'] == 'mock'
    assert Notification.objects.filter(user=sysadmin, type='payment_received').exists()

    mine = api('get', '/api/payments/me', user=viewer).json()['transactions']
    assert [t['id'] for t in mine] == [transaction['id']]


def test_checkout_default_price_and_validation(api, viewer):
    assert api('post', '/api/payments/checkout', user=viewer, data={'type': 'gold'}).status_code == 400
    response = api('post', '/api/payments/checkout', user=viewer, data={'type': 'scout_ai'})
    assert response.json()['transaction']['amountCents'] == 1000
    assert PaymentTransaction.objects.count() == 1


def test_checkout_currency_must_be_iso_code(api, viewer):
    response = api('post', '/api/payments/checkout', user=viewer, data={'type': 'xen_watch', 'currency': 'dollars'})
    assert response.status_code == 400
    assert response.json()['error']['code'] == 'validation_error'
    assert not PaymentTransaction.objects.exists()

    response = api('post', '/api/payments/checkout', user=viewer, data={'type': 'xen_watch', 'currency': 'eur'})
    assert response.status_code == 201
    assert response.json()['transaction']['currency'] == 'EUR'
    assert PaymentTransaction.objects.get().currency == 'EUR'
