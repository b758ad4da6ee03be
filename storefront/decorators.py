"""
Access control and request parsing helpers shared by the JSON views
"""

import json
from functools import wraps

from django.http import JsonResponse


def login_required_json(view_func):
    """
    Reject anonymous callers with a 401 JSON envelope instead of a login redirect

    Usage:
        @login_required_json
        def my_orders(request):
            ...
    """
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return JsonResponse({"success": False, "error": "Authentication required"}, status=401)
        return view_func(request, *args, **kwargs)

    return wrapper


def staff_required_json(view_func):
    """
    Decorator for back-office endpoints: the user must be signed in and is_staff
    """
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return JsonResponse({"success": False, "error": "Authentication required"}, status=401)
        if not request.user.is_staff:
            return JsonResponse({"success": False, "error": "Admin access required"}, status=403)
        return view_func(request, *args, **kwargs)

    return wrapper


def parse_json_body(request):
    """Return the decoded JSON object from the request body, or None when it isn't one"""
    try:
        data = json.loads(request.body or b"{}")
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(data, dict):
        return None
    return data


def parse_id(value):
    """Positive integer (an id, limit or day count) from a query param or JSON field, else None"""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    value = str(value or "").strip()
    if not (value.isascii() and value.isdigit()):
        return None
    return int(value) or None
