# utils/utils.py

import json
import re
from decimal import Decimal, InvalidOperation

from django.core.paginator import Paginator, EmptyPage, PageNotAnInteger
from django.http import JsonResponse

# =============================================================================
# REQUEST HELPERS
# =============================================================================

def paginate_queryset(request, queryset, per_page=20):
    per_page = request.GET.get('per_page', per_page)
    try:
        per_page = max(1, min(int(per_page), 200))
    except (TypeError, ValueError):
        per_page = 20

    paginator = Paginator(queryset, per_page)
    page = request.GET.get('page', 1)
    try:
        page_obj = paginator.page(page)
    except PageNotAnInteger:
        page_obj = paginator.page(1)
    except EmptyPage:
        page_obj = paginator.page(paginator.num_pages)
    return page_obj, paginator


def pagination_meta(page_obj, paginator):
    return {
        'page': page_obj.number,
        'pages': paginator.num_pages,
        'total': paginator.count,
        'has_next': page_obj.has_next(),
        'has_previous': page_obj.has_previous(),
    }


def parse_filters(request, filter_keys):
    """
    Extract filter values from request.GET.
    Returns dict: {key: value or None}
    """
    filters = {}
    for key in filter_keys:
        value = request.GET.get(key, '').strip()
        filters[key] = value if value else None
    return filters


def parse_json_body(request):
    """
    Decode a JSON request body, falling back to form-encoded POST data.

    Raises:
        ValueError: body is not valid JSON or not an object
    """
    if request.content_type == 'application/json':
        if not request.body:
            return {}
        try:
            data = json.loads(request.body)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON body: {e}")
        if not isinstance(data, dict):
            raise ValueError("JSON body must be an object")
        return data

    return {key: values if len(values) > 1 else values[0] for key, values in request.POST.lists()}


# =============================================================================
# RESPONSES
# =============================================================================

def json_success(data=None, status=200, **extra):
    payload = {'success': True}
    if data is not None:
        payload['data'] = data
    payload.update(extra)
    return JsonResponse(payload, status=status)


def json_error(message, status=400, errors=None):
    payload = {'success': False, 'error': message}
    if errors:
        payload['errors'] = errors
    return JsonResponse(payload, status=status)


# =============================================================================
# MONEY
# =============================================================================

TWO_PLACES = Decimal('0.01')


def to_decimal(value, default=Decimal('0.00')):
    """Coerce numbers and numeric strings to a 2dp Decimal"""
    if value is None or value == '':
        return default
    try:
        number = Decimal(str(value))
        if not number.is_finite():
            return default
        return number.quantize(TWO_PLACES)
    except (InvalidOperation, ValueError):
        return default


def money(value):
    """Decimal to float for JSON payloads"""
    return float(to_decimal(value))


def snake_case_keys(data):
    """Top-level camelCase keys to snake_case: {'studentId': 1} -> {'student_id': 1}"""
    return {
        re.sub(r'(?<!^)(?=[A-Z])', '_', key).lower() if isinstance(key, str) else key: value
        for key, value in data.items()
    }
