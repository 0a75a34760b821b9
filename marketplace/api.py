"""Small helpers shared by the JSON API views."""

import json

from django.core.paginator import Paginator
from django.http import JsonResponse

from marketplace.services.exceptions import ValidationFailed

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def json_body(request) -> dict:
    if not request.body:
        return {}
    try:
        payload = json.loads(request.body)
    except (ValueError, UnicodeDecodeError):
        raise ValidationFailed("Request body is not valid JSON.")
    if not isinstance(payload, dict):
        raise ValidationFailed("Request body must be a JSON object.")
    return payload


def validated(form):
    """Return ``form.cleaned_data`` or raise ValidationFailed with field errors."""
    if not form.is_valid():
        raise ValidationFailed(
            "Invalid request data.", details=form.errors.get_json_data()
        )
    return form.cleaned_data


def _int_param(request, name, default):
    raw = request.GET.get(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationFailed(f"Query parameter '{name}' must be an integer.")


def paginated(request, queryset, serializer, key):
    page_size = min(max(_int_param(request, "limit", DEFAULT_PAGE_SIZE), 1), MAX_PAGE_SIZE)
    paginator = Paginator(queryset, page_size)
    page = paginator.get_page(_int_param(request, "page", 1))
    return JsonResponse(
        {
            key: [serializer(obj) for obj in page.object_list],
            "pagination": {
                "page": page.number,
                "limit": page_size,
                "total": paginator.count,
                "pages": paginator.num_pages,
            },
        }
    )


def ok(payload, status=200):
    return JsonResponse(payload, status=status)
