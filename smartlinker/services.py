"""Service functions for analyzing documents and applying link suggestions.

These functions assemble the engine with its Django collaborators so the
views, signals and management commands share one code path. The service
container is built lazily once per process from settings and treated as
read-only afterwards.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from functools import lru_cache, partial
from typing import Callable, List, Optional, Tuple

from django.conf import settings
from django.core.cache import caches
from django.db import DatabaseError, transaction
from django.utils import timezone

from .backends import DjangoCacheBackend
from .engine.applier import apply_suggestion as splice_link
from .engine.cache import SuggestionCache
from .engine.config import EngineConfig, load_config
from .engine.errors import BackendUnavailable, DocumentNotFound, SuggestionNotPending
from .engine.pipeline import AnalysisPipeline, AnalysisResult
from .engine.providers import AIProvider, build_provider
from .engine.segmenter import segment
from .engine.types import AppliedLinkRecord, Section
from .firestore import FirestoreCacheBackend, FirestoreClient, credentials_are_valid, delete_mirror, load_credentials, mirror_document
from .models import Document
from .repository import DjangoDocumentRepository
from .store import SuggestionStore

logger = logging.getLogger(__name__)


@dataclass
class LinkerServices:
    """Process-wide collaborators, assembled once from settings."""

    config: EngineConfig
    repository: DjangoDocumentRepository
    store: SuggestionStore
    cache: SuggestionCache
    provider: AIProvider
    pipeline: AnalysisPipeline
    firestore: Optional[FirestoreClient] = None


def build_services() -> LinkerServices:
    """Read settings and build the service container."""

    overrides = {}
    provider_name = getattr(settings, 'SMARTLINKER_PROVIDER', '')
    if provider_name:
        overrides['provider'] = provider_name.lower()
    config = load_config(getattr(settings, 'SMARTLINKER_CONFIG', None), overrides)

    local = DjangoCacheBackend(caches[getattr(settings, 'SMARTLINKER_CACHE_ALIAS', 'default')])

    firestore = None
    credentials = load_credentials(getattr(settings, 'SMARTLINKER_FIREBASE_CREDENTIALS', ''))
    if credentials_are_valid(credentials):
        firestore = FirestoreClient(credentials, timeout=float(config.get('request_timeout', 30.0)))
    elif credentials:
        logger.warning('Firestore credentials are incomplete; using the local cache only')

    cache = SuggestionCache(
        local,
        FirestoreCacheBackend(firestore) if firestore is not None else None,
        ttl=int(config.get('cache_ttl', 86400)),
    )
    api_keys = getattr(settings, 'SMARTLINKER_API_KEYS', {})
    provider = build_provider(
        config,
        api_keys.get(config.provider),
        cache=cache,
        counter_store=local,
        model_store=local,
    )
    repository = DjangoDocumentRepository()
    return LinkerServices(
        config=config,
        repository=repository,
        store=SuggestionStore(),
        cache=cache,
        provider=provider,
        pipeline=AnalysisPipeline(repository, provider, config),
        firestore=firestore,
    )


@lru_cache(maxsize=1)
def get_services() -> LinkerServices:
    return build_services()


def refresh_suggestions(document_id: int, services: LinkerServices | None = None) -> AnalysisResult:
    """Run one analysis pass and replace the document's active suggestions.

    Empty results also replace the active set, so stale suggestions never
    outlive a fresh pass. Provider failures propagate and leave the stored
    set untouched.
    """

    services = services or get_services()
    document = services.repository.get_document(document_id)
    result = services.pipeline.analyze(document.pk, document.content)

    if result.sections:
        services.repository.store_sections(document, result.sections)
    services.store.save(document, result.suggestions)
    if result.is_empty:
        logger.info('Document %s: no suggestions (%s)', document.pk, result.reason.value)
    return result


def apply_suggestion(
    document_id: int,
    section_index: int,
    target_document_id: int,
    services: LinkerServices | None = None,
) -> Tuple[Document, AppliedLinkRecord]:
    """Insert the link for one pending suggestion and record it as applied.

    Everything happens in one transaction holding the document row lock:
    a missing anchor or a concurrent apply leaves content and suggestion
    state unchanged.

    Raises
    ------
    DocumentNotFound, SuggestionNotPending, LinkNotFound, StoreError
    """

    services = services or get_services()
    with transaction.atomic():
        document = Document.objects.select_for_update().filter(pk=document_id).first()
        if document is None:
            raise DocumentNotFound(f'Document {document_id} does not exist')

        suggestion = services.store.get(document, section_index, target_document_id)
        if suggestion is None:
            raise SuggestionNotPending(
                f'No pending suggestion for section {section_index} → document {target_document_id}'
            )

        url = services.repository.get_permalink(target_document_id)
        document.content = splice_link(document.content, suggestion, url)
        document.save(update_fields=['content', 'modified_at'])

        record = AppliedLinkRecord(
            section_index=suggestion.section_index,
            target_document_id=suggestion.target_document_id,
            anchor_text=suggestion.anchor_text,
            applied_at=timezone.now(),
        )
        services.store.record_applied(document, record)

    logger.info(
        'Applied link "%s" in document %s → %s',
        record.anchor_text,
        document.pk,
        record.target_document_id,
    )
    return document, record


def _mirror_quietly(firestore: FirestoreClient, document: Document) -> None:
    try:
        mirror_document(firestore, document)
    except BackendUnavailable as exc:
        logger.warning('Could not mirror document %s: %s', document.pk, exc)


def _delete_mirror_quietly(firestore: FirestoreClient, document_id: int) -> None:
    try:
        delete_mirror(firestore, document_id)
    except BackendUnavailable as exc:
        logger.warning('Could not delete mirror of document %s: %s', document_id, exc)


def is_indexable(document: Document, config: EngineConfig) -> bool:
    """True for live documents of a kind that takes part in linking."""

    kinds = config.get('candidate_kinds', ['article', 'page'])
    return document.status != Document.Status.TRASH and document.kind in kinds


def index_document(document: Document, services: LinkerServices | None = None, *, strict: bool = False) -> List[Section]:
    """Re-segment ``document``, refresh its sections artifact and remote mirror.

    Documents of kinds outside ``candidate_kinds`` are neither segmented nor
    mirrored. The mirror call runs after the surrounding transaction commits
    and its failures are logged. With ``strict`` it runs immediately and
    ``BackendUnavailable`` propagates so a batch caller can retry.
    """

    services = services or get_services()
    indexable = is_indexable(document, services.config)
    sections: List[Section] = []
    if indexable:
        sections = segment(document.content, min_words=int(services.config.get('min_paragraph_words', 5)))

    if sections:
        services.repository.store_sections(document, sections)
    else:
        services.repository.clear_sections(document)

    if indexable and services.firestore is not None and document.is_published:
        if strict:
            mirror_document(services.firestore, document)
        else:
            transaction.on_commit(partial(_mirror_quietly, services.firestore, document))
    return sections


def remove_document_mirror(document_id: int, services: LinkerServices | None = None) -> None:
    services = services or get_services()
    if services.firestore is None:
        return
    transaction.on_commit(partial(_delete_mirror_quietly, services.firestore, document_id))


@dataclass
class SyncReport:
    """Outcome of one batch sweep."""

    processed: int = 0
    retried: int = 0
    failed: List[int] = field(default_factory=list)


TRANSIENT_ERRORS = (BackendUnavailable, DatabaseError)


def sync_all_documents(
    services: LinkerServices | None = None,
    *,
    retry_delay: float | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> SyncReport:
    """Re-index every published candidate document, one at a time.

    A transient failure on one document is retried once after
    ``retry_delay`` seconds; a second failure is logged and the sweep moves
    on. The sweep itself never aborts.
    """

    services = services or get_services()
    delay = float(services.config.get('sync_retry_delay', 5.0) if retry_delay is None else retry_delay)
    kinds = services.config.get('candidate_kinds', ['article', 'page'])
    report = SyncReport()

    for document in services.repository.list_published_documents(kinds):
        try:
            try:
                index_document(document, services, strict=True)
            except TRANSIENT_ERRORS as exc:
                logger.warning('Sync of document %s failed (%s); retrying in %.1fs', document.pk, exc, delay)
                report.retried += 1
                sleep(delay)
                index_document(document, services, strict=True)
        except Exception:  # noqa: BLE001 - one bad document must not stop the sweep
            logger.exception('Sync of document %s failed', document.pk)
            report.failed.append(document.pk)
            continue
        report.processed += 1

    logger.info(
        'Sync complete: %d processed, %d retried, %d failed',
        report.processed,
        report.retried,
        len(report.failed),
    )
    return report
