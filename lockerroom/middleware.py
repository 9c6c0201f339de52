"""
================================================================================
LOCKERROOM - CUSTOM MIDDLEWARE
================================================================================

@file        middleware.py
@description Request logging, bearer-token auth, API error rendering and
             security headers

MODULE PURPOSE
================================================================================
1. RequestLogMiddleware
   - Logs every /api request as "METHOD path status in Nms"

2. TokenAuthenticationMiddleware
   - Resolves "Authorization: Bearer <jwt>" into request.user / request.auth

3. ApiErrorMiddleware
   - Renders ApiError as the standard JSON error body
   - Turns unexpected exceptions on /api paths into 500 JSON responses
     and reports them to Sentry when it is configured

4. SecurityHeadersMiddleware
   - Adds browser hardening headers and disables caching of API responses

ORDERING
================================================================================
RequestLogMiddleware goes first so its timing covers the whole stack.
TokenAuthenticationMiddleware must come after Django's
AuthenticationMiddleware, which it overrides for /api paths.

================================================================================
"""

import logging
import time

import jwt
import sentry_sdk
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser

from .api import ApiError, error_response
from .auth import bearer_token, decode_token

logger = logging.getLogger(__name__)

API_PREFIX = '/api/'


def is_api_request(request):
    return request.path.startswith(API_PREFIX)


# ============================================================================
# REQUEST LOGGING
# ============================================================================

class RequestLogMiddleware:
    """
    Log one line per API request with status code and duration.

    Example output:
        INFO GET /api/posts 200 in 12ms
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        started = time.monotonic()
        response = self.get_response(request)

        if is_api_request(request):
            duration_ms = int((time.monotonic() - started) * 1000)
            line = f"{request.method} {request.path} {response.status_code} in {duration_ms}ms"
            if response.status_code >= 500:
                logger.error(line)
            else:
                logger.info(line)

        return response


# ============================================================================
# BEARER TOKEN AUTHENTICATION
# ============================================================================

class TokenAuthenticationMiddleware:
    """
    Authenticate API requests from the Authorization header.

    API paths never use the session: without a valid bearer token the
    request is anonymous. Outside /api (the Django admin) the session user
    set by AuthenticationMiddleware is left untouched.

    Attributes set on the request:
        request.user:        User instance or AnonymousUser
        request.auth:        Decoded token payload, or None
        request.auth_error:  "invalid_token" when a token was sent but rejected
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.auth = None
        request.auth_error = None

        if is_api_request(request):
            request.user = AnonymousUser()
            token = bearer_token(request)
            if token:
                self.authenticate(request, token)

        return self.get_response(request)

    def authenticate(self, request, token):
        try:
            payload = decode_token(token)
        except jwt.InvalidTokenError as exc:
            logger.info(f"Rejected bearer token on {request.path}: {exc}")
            request.auth_error = "invalid_token"
            return

        User = get_user_model()
        user = User.objects.select_related('school').filter(id=payload.get('id')).first()
        if user is None or not user.is_active:
            request.auth_error = "invalid_token"
            return

        request.user = user
        request.auth = payload


# ============================================================================
# ERROR RENDERING
# ============================================================================

class ApiErrorMiddleware:
    """Convert exceptions raised by API views into JSON error responses."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        return self.get_response(request)

    def process_exception(self, request, exception):
        if isinstance(exception, ApiError):
            return error_response(exception.status, exception.code, exception.message, **exception.extra)

        if not is_api_request(request):
            return None

        logger.error(f"Unhandled error on {request.method} {request.path}: {exception}", exc_info=True)
        sentry_sdk.capture_exception(exception)
        return error_response(500, "server_error", "An unexpected error occurred")


# ============================================================================
# SECURITY HEADERS
# ============================================================================

class SecurityHeadersMiddleware:
    """
    Browser hardening headers for every response.

    X-Frame-Options and Referrer-Policy come from Django's own middleware;
    this adds the legacy XSS header and keeps API responses out of shared
    and browser caches (clients poll post status through plain GETs).
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        response = self.get_response(request)

        response.setdefault('X-Content-Type-Options', 'nosniff')
        response.setdefault('X-XSS-Protection', '1; mode=block')
        response.setdefault('Referrer-Policy', 'strict-origin-when-cross-origin')

        if is_api_request(request):
            response.setdefault('Cache-Control', 'no-store')

        return response
