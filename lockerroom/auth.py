"""
Bearer-token authentication, role guards and credential helpers.

Tokens are HS256 JWTs carrying ``id``, ``email``, ``role``, ``schoolId`` and
``linkedId``. The token is only a pointer: the account is re-read from the
database on every request so freezing an account takes effect immediately.
"""

import logging
import secrets
import string
from datetime import datetime, timedelta, timezone as dt_timezone
from functools import wraps

import jwt
from django.conf import settings
from django.core.cache import cache

from .api import error_response
from .roles import SYSTEM_ADMIN

logger = logging.getLogger(__name__)

OTP_ALPHABET = string.ascii_letters + string.digits
OTP_LENGTH = 10


# ============================================================================
# TOKENS
# ============================================================================

def issue_token(user):
    now = datetime.now(dt_timezone.utc)
    payload = {
        "id": user.id,
        "email": user.email,
        "role": user.role,
        "schoolId": user.school_id,
        "linkedId": user.linked_id,
        "iat": now,
        "exp": now + timedelta(days=settings.JWT_EXPIRY_DAYS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token):
    """Return the token payload; raises jwt.InvalidTokenError when bad or expired."""
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])


def bearer_token(request):
    header = request.META.get('HTTP_AUTHORIZATION', '')
    if header.lower().startswith('bearer '):
        return header[7:].strip() or None
    return None


def generate_otp(length=OTP_LENGTH):
    return ''.join(secrets.choice(OTP_ALPHABET) for _ in range(length))


def generate_token():
    """Random URL-safe token for verification and reset links."""
    return secrets.token_urlsafe(32)


# ============================================================================
# VIEW DECORATORS
# ============================================================================

def api_login_required(view_func):
    """Reject anonymous or frozen callers with a JSON error."""

    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        user = request.user
        if not user.is_authenticated:
            if getattr(request, 'auth_error', None):
                return error_response(401, "invalid_token", "Invalid or expired token")
            return error_response(401, "auth_required", "Authentication required")
        if user.is_frozen:
            return error_response(403, "account_frozen", "This account has been disabled")
        return view_func(request, *args, **kwargs)

    return wrapper


def role_required(*roles):
    """
    Allow only the given roles. System admins always pass.

    Usage:
        @role_required('school_admin')
        def add_student(request): ...
    """

    def decorator(view_func):
        @wraps(view_func)
        @api_login_required
        def wrapper(request, *args, **kwargs):
            role = request.user.role
            if role != SYSTEM_ADMIN and role not in roles:
                logger.info(f"Role {role} denied access to {request.path}")
                return error_response(403, "forbidden", "You do not have permission to perform this action")
            return view_func(request, *args, **kwargs)

        return wrapper

    return decorator


def client_ip(request):
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR', 'unknown')


def rate_limit(max_requests, window_seconds):
    """Fixed-window limiter keyed by client IP and path, stored in the cache."""

    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            if not settings.ENABLE_RATE_LIMIT:
                return view_func(request, *args, **kwargs)

            key = f"ratelimit:{request.path}:{client_ip(request)}"
            if cache.add(key, 1, timeout=window_seconds):
                count = 1
            else:
                try:
                    count = cache.incr(key)
                except ValueError:
                    cache.set(key, 1, timeout=window_seconds)
                    count = 1

            if count > max_requests:
                logger.warning(f"Rate limit exceeded for {client_ip(request)} on {request.path}")
                return error_response(
                    429,
                    "rate_limit_exceeded",
                    "Too many requests, please try again later",
                    retryAfter=window_seconds,
                )
            return view_func(request, *args, **kwargs)

        return wrapper

    return decorator
