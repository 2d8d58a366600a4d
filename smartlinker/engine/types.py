"""Typed data structures shared by the suggestion pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Protocol


class SectionKind(str, Enum):
    HEADING = "heading"
    PARAGRAPH = "paragraph"


@dataclass(frozen=True)
class Section:
    """One analyzable unit of document text produced by segmentation."""

    index: int
    content: str
    kind: SectionKind
    word_count: int
    heading_level: int = 0
    heading: str = ""

    @property
    def is_paragraph(self) -> bool:
        return self.kind is SectionKind.PARAGRAPH

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Section":
        return cls(
            index=int(data["index"]),
            content=str(data["content"]),
            kind=SectionKind(data["kind"]),
            word_count=int(data["word_count"]),
            heading_level=int(data.get("heading_level", 0)),
            heading=str(data.get("heading", "")),
        )


@dataclass(frozen=True)
class CandidateDocument:
    """A published document eligible as a link target."""

    id: int
    title: str
    excerpt: str
    categories: FrozenSet[str] = field(default_factory=frozenset)
    last_modified: Optional[datetime] = None


@dataclass(frozen=True)
class ValidatedSuggestion:
    """A provider suggestion that passed every structural and content check."""

    section_index: int
    target_document_id: int
    anchor_text: str
    relevance_score: float
    section_content: str
    target_title: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AppliedLinkRecord:
    """Entry of a document's append-only applied-link log."""

    section_index: int
    target_document_id: int
    anchor_text: str
    applied_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["applied_at"] = self.applied_at.isoformat()
        return data


class DocumentRepository(Protocol):
    """Read access to the hosting document store used by the engine."""

    def list_candidates(self, exclude_id: int, kinds: List[str], limit: int) -> List[CandidateDocument]:
        ...

    def get_published(self, document_id: int) -> Optional[CandidateDocument]:
        ...
