"""ORM-backed implementation of the engine's document repository."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from django.db.models import QuerySet

from .engine.errors import DocumentNotFound
from .engine.types import CandidateDocument, Section
from .models import Document, DocumentSections


def to_candidate(document: Document) -> CandidateDocument:
    return CandidateDocument(
        id=document.pk,
        title=document.title,
        excerpt=document.get_excerpt(),
        categories=frozenset(category.name for category in document.categories.all()),
        last_modified=document.modified_at,
    )


class DjangoDocumentRepository:
    """Read access to documents plus the sections artifact they carry."""

    def get_document(self, document_id: int) -> Document:
        try:
            return Document.objects.get(pk=document_id)
        except Document.DoesNotExist as exc:
            raise DocumentNotFound(f'Document {document_id} does not exist') from exc

    def list_published_documents(
        self,
        kinds: Sequence[str] | None = None,
        *,
        exclude_id: int | None = None,
        with_sections: bool = False,
        limit: int | None = None,
    ) -> QuerySet[Document]:
        queryset = Document.objects.filter(status=Document.Status.PUBLISH)
        if kinds:
            queryset = queryset.filter(kind__in=list(kinds))
        if exclude_id is not None:
            queryset = queryset.exclude(pk=exclude_id)
        if with_sections:
            queryset = queryset.filter(sections_artifact__isnull=False)
        queryset = queryset.order_by('-modified_at', '-pk').prefetch_related('categories')
        if limit is not None:
            queryset = queryset[:limit]
        return queryset

    def list_candidates(self, exclude_id: int, kinds: List[str], limit: int) -> List[CandidateDocument]:
        documents = self.list_published_documents(kinds, exclude_id=exclude_id, with_sections=True, limit=limit)
        return [to_candidate(document) for document in documents]

    def get_published(self, document_id: int) -> Optional[CandidateDocument]:
        document = (
            Document.objects.filter(pk=document_id, status=Document.Status.PUBLISH)
            .prefetch_related('categories')
            .first()
        )
        return to_candidate(document) if document is not None else None

    def get_permalink(self, document_id: int) -> str:
        return self.get_document(document_id).permalink

    def get_excerpt(self, document_id: int) -> str:
        return self.get_document(document_id).get_excerpt()

    def get_categories(self, document_id: int) -> List[str]:
        return list(self.get_document(document_id).categories.values_list('name', flat=True))

    def store_sections(self, document: Document, sections: Iterable[Section]) -> None:
        DocumentSections.objects.update_or_create(
            document=document,
            defaults={'sections': [section.to_dict() for section in sections]},
        )

    def clear_sections(self, document: Document) -> None:
        DocumentSections.objects.filter(document=document).delete()

    def load_sections(self, document: Document) -> List[Section]:
        artifact = DocumentSections.objects.filter(document=document).first()
        if artifact is None:
            return []
        return [Section.from_dict(item) for item in artifact.sections]
