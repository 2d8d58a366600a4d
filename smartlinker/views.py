"""JSON endpoints for reviewing, refreshing and applying link suggestions.

Each view delegates to the service layer and translates the engine's typed
failures into HTTP status codes. An analysis pass with nothing to suggest
is a normal 200 response with an empty list.
"""

from __future__ import annotations

import logging

from django.contrib.admin.views.decorators import staff_member_required
from django.http import HttpRequest, JsonResponse
from django.views.decorators.http import require_GET, require_POST

from .engine.errors import (
    DocumentNotFound,
    InvalidResponse,
    LinkNotFound,
    NoApiKey,
    ProviderError,
    RateLimitExceeded,
    SmartLinkerError,
    StoreError,
    SuggestionNotPending,
)
from .forms import ApplySuggestionForm
from .services import apply_suggestion, get_services, refresh_suggestions

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    NoApiKey: 400,
    RateLimitExceeded: 429,
    ProviderError: 502,
    InvalidResponse: 502,
    LinkNotFound: 409,
    SuggestionNotPending: 404,
    DocumentNotFound: 404,
    StoreError: 500,
}


def _error_response(exc: SmartLinkerError) -> JsonResponse:
    status = next((code for kind, code in ERROR_STATUS.items() if isinstance(exc, kind)), 500)
    if status >= 500:
        logger.warning('Request failed: %s', exc)
    return JsonResponse({'error': type(exc).__name__, 'detail': str(exc)}, status=status)


@staff_member_required
@require_GET
def document_suggestions(request: HttpRequest, document_id: int) -> JsonResponse:
    """Return the active suggestions and the applied-link log of a document."""

    services = get_services()
    try:
        document = services.repository.get_document(document_id)
    except DocumentNotFound as exc:
        return _error_response(exc)

    return JsonResponse(
        {
            'document_id': document.pk,
            'suggestions': [suggestion.to_dict() for suggestion in services.store.load(document)],
            'applied_links': [link.to_dict() for link in services.store.applied_links(document)],
        }
    )


@staff_member_required
@require_POST
def refresh_document_suggestions(request: HttpRequest, document_id: int) -> JsonResponse:
    """Run one analysis pass over the document and return its new suggestions."""

    try:
        result = refresh_suggestions(document_id)
    except SmartLinkerError as exc:
        return _error_response(exc)

    return JsonResponse(
        {
            'document_id': document_id,
            'status': result.status.value,
            'reason': result.reason.value if result.reason else None,
            'suggestions': [suggestion.to_dict() for suggestion in result.suggestions],
        }
    )


@staff_member_required
@require_POST
def apply_document_suggestion(request: HttpRequest, document_id: int) -> JsonResponse:
    """Apply one pending suggestion identified by section and target."""

    form = ApplySuggestionForm(request.POST)
    if not form.is_valid():
        return JsonResponse({'error': 'ValidationError', 'detail': form.errors.get_json_data()}, status=400)

    try:
        document, record = apply_suggestion(
            document_id,
            form.cleaned_data['section_index'],
            form.cleaned_data['target_document_id'],
        )
    except SmartLinkerError as exc:
        return _error_response(exc)

    return JsonResponse(
        {
            'document_id': document.pk,
            'applied_link': record.to_dict(),
            'target_url': get_services().repository.get_permalink(record.target_document_id),
        }
    )
