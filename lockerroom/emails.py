"""
Transactional email through the Resend HTTP API.

Bodies are rendered from ``lockerroom/emails/*.html`` templates; the plain
text part is derived with ``strip_tags``. Senders never raise: they log and
return an ``EmailResult`` so account creation can continue (and report the
failure) when email delivery is down.
"""

import logging
from collections import namedtuple
from datetime import datetime

import requests
from django.conf import settings
from django.template.loader import render_to_string
from django.utils.html import strip_tags

from .roles import SCHOOL_ADMIN, SCOUT_ADMIN, STUDENT, SYSTEM_ADMIN, XEN_SCOUT, role_display_name

logger = logging.getLogger(__name__)

EmailResult = namedtuple('EmailResult', ['success', 'error'])

RESEND_TIMEOUT = 10


def frontend_link(path, **params):
    url = settings.FRONTEND_URL.rstrip('/') + path
    if params:
        url += '?' + '&'.join(f"{key}={value}" for key, value in params.items())
    return url


def send_email(to, subject, template, context):
    """Render ``template`` and deliver it to ``to`` via Resend."""
    context = {
        'site_name': settings.EMAIL_FROM_NAME,
        'frontend_url': settings.FRONTEND_URL,
        'current_year': datetime.now().year,
        **context,
    }
    html_content = render_to_string(f'lockerroom/emails/{template}', context)
    text_content = strip_tags(html_content)

    if not settings.RESEND_API_KEY:
        logger.warning(f"RESEND_API_KEY not set; email '{subject}' to {to} not sent")
        return EmailResult(False, "Email service not configured")

    try:
        response = requests.post(
            settings.RESEND_API_URL,
            json={
                "from": f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM}>",
                "to": [to],
                "subject": subject,
                "html": html_content,
                "text": text_content,
            },
            headers={
                "Authorization": f"Bearer {settings.RESEND_API_KEY}",
                "Content-Type": "application/json",
            },
            timeout=RESEND_TIMEOUT,
        )
        response.raise_for_status()
    except requests.RequestException as e:
        logger.error(f"Email send failed for {to} ({subject}): {e}")
        return EmailResult(False, str(e))

    logger.info(f"Email '{subject}' sent to {to}")
    return EmailResult(True, None)


def send_verification_email(user, token):
    return send_email(
        user.email,
        "Verify your LockerRoom email",
        'verification.html',
        {
            'name': user.name or user.email,
            'verify_link': frontend_link('/verify-email', token=token),
            'expires_hours': 24,
        },
    )


def send_password_reset_email(user, token):
    return send_email(
        user.email,
        "Reset your LockerRoom password",
        'password_reset.html',
        {
            'name': user.name or user.email,
            'reset_link': frontend_link('/reset-password', token=token),
            'expires_hours': 1,
        },
    )


def send_otp_email(user, otp):
    return send_email(
        user.email,
        "Your LockerRoom one-time password",
        'otp.html',
        {'name': user.name or user.email, 'otp': otp, 'login_link': frontend_link('/login')},
    )


def send_welcome_email(user):
    return send_email(
        user.email,
        "Welcome to LockerRoom",
        'welcome.html',
        {'name': user.name or user.email, 'login_link': frontend_link('/login')},
    )


def account_email_subject(role, school=None):
    if role == STUDENT:
        return f"Welcome to LockerRoom - {school.name}" if school else "Welcome to LockerRoom"
    if role == SCHOOL_ADMIN:
        return "Welcome to LockerRoom - Academy Admin Account"
    if role == SCOUT_ADMIN:
        return "Welcome to LockerRoom - Scout Admin Account"
    if role == XEN_SCOUT:
        return "Welcome to LockerRoom - XEN Scout Account"
    if role == SYSTEM_ADMIN:
        return "Welcome to LockerRoom - System Admin Account"
    return f"Welcome to LockerRoom - {role_display_name(role)} Account"


def send_account_created_email(user, otp, school=None):
    """Credentials email for accounts created by an administrator."""
    return send_email(
        user.email,
        account_email_subject(user.role, school),
        'account_created.html',
        {
            'name': user.name or user.email,
            'email': user.email,
            'role': user.role,
            'otp': otp,
            'xen_id': user.xen_id,
            'school': school,
            'login_link': frontend_link('/login'),
        },
    )
