"""Shared fixtures for engine tests."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional
from uuid import uuid4

import httpx
import pytest
from django.core.cache.backends.locmem import LocMemCache

from smartlinker.backends import DjangoCacheBackend
from smartlinker.engine.config import load_config
from smartlinker.engine.types import CandidateDocument, Section, SectionKind


@pytest.fixture()
def engine_config():
    """Provide a fresh copy of the default engine configuration."""

    return load_config(None)


@pytest.fixture()
def local_backend():
    """A private in-process cache so tests never share entries."""

    return DjangoCacheBackend(LocMemCache(f"test-{uuid4().hex}", {}))


class FakeRepository:
    """In-memory document repository keyed by id."""

    def __init__(self, documents: Iterable[CandidateDocument] = (), unpublished: Iterable[int] = ()) -> None:
        self.documents: Dict[int, CandidateDocument] = {doc.id: doc for doc in documents}
        self.unpublished = set(unpublished)
        self.calls: List[tuple] = []

    def list_candidates(self, exclude_id: int, kinds: List[str], limit: int) -> List[CandidateDocument]:
        self.calls.append((exclude_id, tuple(kinds), limit))
        published = [doc for doc in self.documents.values() if doc.id not in self.unpublished]
        published.sort(key=lambda doc: doc.last_modified or datetime.min.replace(tzinfo=timezone.utc), reverse=True)
        return published

    def get_published(self, document_id: int) -> Optional[CandidateDocument]:
        if document_id in self.unpublished:
            return None
        return self.documents.get(document_id)


def make_candidate(
    document_id: int,
    title: str,
    *,
    excerpt: str = "",
    categories: Iterable[str] = (),
    modified: str = "2024-01-01",
) -> CandidateDocument:
    return CandidateDocument(
        id=document_id,
        title=title,
        excerpt=excerpt or f"All about {title.lower()}.",
        categories=frozenset(categories),
        last_modified=datetime.fromisoformat(modified).replace(tzinfo=timezone.utc),
    )


def make_paragraph(index: int, content: str, heading: str = "") -> Section:
    return Section(
        index=index,
        content=content,
        kind=SectionKind.PARAGRAPH,
        word_count=len(content.split()),
        heading=heading,
    )


def make_heading(index: int, content: str, level: int = 2) -> Section:
    return Section(
        index=index,
        content=content,
        kind=SectionKind.HEADING,
        word_count=len(content.split()),
        heading_level=level,
        heading=content,
    )


def chat_reply(content: str, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json={"choices": [{"message": {"content": content}}]})


def mock_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))
