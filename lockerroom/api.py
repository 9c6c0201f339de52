"""
Shared request/response helpers for the JSON API.

Every error leaves the API in the same shape::

    {"error": {"code": "not_found", "message": "Post not found"}}
"""

import json

from django.core.exceptions import ValidationError
from django.db.models import QuerySet
from django.http import JsonResponse


class ApiError(Exception):
    """Raised from helpers and views; rendered by ApiErrorMiddleware."""

    def __init__(self, status, code, message, **extra):
        super().__init__(message)
        self.status = status
        self.code = code
        self.message = message
        self.extra = extra


def error_response(status, code, message, **extra):
    body = {"error": {"code": code, "message": message}}
    body.update(extra)
    return JsonResponse(body, status=status)


def bad_request(message, code="validation_error"):
    return ApiError(400, code, message)


def not_found(what):
    return ApiError(404, "not_found", f"{what} not found")


def forbidden(message="You do not have permission to perform this action"):
    return ApiError(403, "forbidden", message)


def parse_json(request):
    """Decode a JSON request body; form posts fall back to request.POST."""
    content_type = request.content_type or ''
    if content_type.startswith('multipart/') or content_type == 'application/x-www-form-urlencoded':
        return request.POST.dict()
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (ValueError, UnicodeDecodeError):
        raise ApiError(400, "invalid_json", "Request body must be valid JSON")
    if not isinstance(data, dict):
        raise ApiError(400, "invalid_json", "Request body must be a JSON object")
    return data


def get_object_or_error(model, what, **lookup):
    """``model`` may be a model class or a queryset."""
    queryset = model if isinstance(model, QuerySet) else model.objects.all()
    try:
        return queryset.get(**lookup)
    except (queryset.model.DoesNotExist, ValueError, ValidationError):
        raise not_found(what)


def pagination_params(request, default_limit=20, max_limit=50):
    """Read ``limit``/``offset`` query params, clamped to sane bounds."""
    try:
        limit = int(request.GET.get('limit', default_limit))
    except (TypeError, ValueError):
        limit = default_limit
    try:
        offset = int(request.GET.get('offset', 0))
    except (TypeError, ValueError):
        offset = 0
    return max(1, min(limit, max_limit)), max(0, offset)


def query_flag(request, name, default=False):
    value = request.GET.get(name)
    if value is None:
        return default
    return value.lower() in ('1', 'true', 'yes')


TRUE_STRINGS = ('1', 'true', 'yes', 'on')
FALSE_STRINGS = ('0', 'false', 'no', 'off')


def parse_bool(value, field):
    """Accept JSON booleans or the usual form spellings; anything else is a 400."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_STRINGS:
        return True
    if text in FALSE_STRINGS:
        return False
    raise bad_request(f"{field} must be true or false")


def clean_str(data, key, max_length=None):
    value = data.get(key)
    if value is None:
        return ''
    value = str(value).strip()
    if max_length and len(value) > max_length:
        raise bad_request(f"{key} cannot exceed {max_length} characters.")
    return value
