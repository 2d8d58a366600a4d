"""Persistence of the active suggestion set and the applied-link log."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from django.db import DatabaseError, transaction

from .engine.errors import StoreError, SuggestionNotPending
from .engine.types import AppliedLinkRecord, ValidatedSuggestion
from .models import AppliedLink, Document, LinkSuggestion

logger = logging.getLogger(__name__)


def _to_validated(row: LinkSuggestion) -> ValidatedSuggestion:
    return ValidatedSuggestion(
        section_index=row.section_index,
        target_document_id=row.target_id,
        anchor_text=row.anchor_text,
        relevance_score=row.relevance_score,
        section_content=row.section_content,
        target_title=row.target_title,
    )


def _to_record(row: AppliedLink) -> AppliedLinkRecord:
    return AppliedLinkRecord(
        section_index=row.section_index,
        target_document_id=row.target_document_id,
        anchor_text=row.anchor_text,
        applied_at=row.applied_at,
    )


class SuggestionStore:
    """Per-document suggestion storage.

    ``save`` supersedes the whole active set (last writer wins).
    ``record_applied`` removes the applied suggestion and appends to the
    log in one transaction, so a suggestion can be applied at most once.
    """

    def save(self, document: Document, suggestions: Sequence[ValidatedSuggestion]) -> None:
        try:
            with transaction.atomic():
                LinkSuggestion.objects.filter(document=document).delete()
                LinkSuggestion.objects.bulk_create(
                    [
                        LinkSuggestion(
                            document=document,
                            target_id=suggestion.target_document_id,
                            section_index=suggestion.section_index,
                            anchor_text=suggestion.anchor_text,
                            relevance_score=suggestion.relevance_score,
                            section_content=suggestion.section_content,
                            target_title=suggestion.target_title,
                            position=position,
                        )
                        for position, suggestion in enumerate(suggestions)
                    ]
                )
        except DatabaseError as exc:
            raise StoreError(f'Failed to save suggestions for document {document.pk}: {exc}') from exc
        logger.debug('Stored %d suggestions for document %s', len(suggestions), document.pk)

    def load(self, document: Document) -> List[ValidatedSuggestion]:
        rows = LinkSuggestion.objects.filter(document=document).order_by('position')
        return [_to_validated(row) for row in rows]

    def get(self, document: Document, section_index: int, target_document_id: int) -> Optional[ValidatedSuggestion]:
        row = LinkSuggestion.objects.filter(
            document=document,
            section_index=section_index,
            target_id=target_document_id,
        ).first()
        return _to_validated(row) if row is not None else None

    def remove_suggestion(self, document: Document, section_index: int, target_document_id: int) -> bool:
        deleted, _ = LinkSuggestion.objects.filter(
            document=document,
            section_index=section_index,
            target_id=target_document_id,
        ).delete()
        return deleted > 0

    def record_applied(self, document: Document, link: AppliedLinkRecord) -> None:
        """Remove the matching suggestion and append ``link`` to the log.

        Raises
        ------
        SuggestionNotPending
            When no matching suggestion is in the active set; nothing is logged.
        StoreError
            When the database rejects either write; both are rolled back.
        """

        try:
            with transaction.atomic():
                Document.objects.select_for_update().filter(pk=document.pk).first()
                if not self.remove_suggestion(document, link.section_index, link.target_document_id):
                    raise SuggestionNotPending(
                        f'No pending suggestion for section {link.section_index} '
                        f'→ document {link.target_document_id}'
                    )
                AppliedLink.objects.create(
                    document=document,
                    target_document_id=link.target_document_id,
                    section_index=link.section_index,
                    anchor_text=link.anchor_text,
                    applied_at=link.applied_at,
                )
        except DatabaseError as exc:
            raise StoreError(f'Failed to record applied link for document {document.pk}: {exc}') from exc

    def applied_links(self, document: Document) -> List[AppliedLinkRecord]:
        return [_to_record(row) for row in AppliedLink.objects.filter(document=document)]
