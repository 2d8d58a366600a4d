"""Coordinator running one analysis pass over a document."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .candidates import select_candidates
from .config import EngineConfig
from .errors import NoApiKey
from .prompt import build_prompt
from .providers import AIProvider
from .segmenter import segment
from .types import DocumentRepository, Section, ValidatedSuggestion
from .validator import validate_suggestions

logger = logging.getLogger(__name__)


class AnalysisStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"


class EmptyReason(str, Enum):
    NO_SECTIONS = "no_sections"
    NO_CANDIDATES = "no_candidates"
    NO_PARAGRAPHS = "no_paragraphs"
    NO_SUGGESTIONS = "no_suggestions"


@dataclass
class AnalysisResult:
    """Outcome of one pass; ``empty`` results are benign, not failures."""

    status: AnalysisStatus
    sections: List[Section] = field(default_factory=list)
    suggestions: List[ValidatedSuggestion] = field(default_factory=list)
    reason: Optional[EmptyReason] = None

    @classmethod
    def ok(cls, sections: List[Section], suggestions: List[ValidatedSuggestion]) -> "AnalysisResult":
        return cls(AnalysisStatus.OK, sections, suggestions)

    @classmethod
    def empty(cls, reason: EmptyReason, sections: List[Section] | None = None) -> "AnalysisResult":
        return cls(AnalysisStatus.EMPTY, list(sections or []), [], reason)

    @property
    def is_empty(self) -> bool:
        return self.status is AnalysisStatus.EMPTY


class AnalysisPipeline:
    """segment -> candidates -> prompt -> provider -> validate."""

    def __init__(self, repository: DocumentRepository, provider: AIProvider, config: EngineConfig) -> None:
        self.repository = repository
        self.provider = provider
        self.config = config

    def analyze(self, document_id: int, content: str) -> AnalysisResult:
        """Analyze ``content`` of document ``document_id``.

        Provider failures (``NoApiKey``, ``RateLimitExceeded``,
        ``ProviderError``, ``InvalidResponse``) propagate to the caller.
        """

        if not self.provider.is_configured():
            raise NoApiKey(
                f"No {self.provider.label} API key configured. Please add your API key in the settings."
            )

        sections = segment(content, min_words=int(self.config.get("min_paragraph_words", 5)))
        if not sections:
            return AnalysisResult.empty(EmptyReason.NO_SECTIONS)

        candidates = select_candidates(
            document_id,
            self.repository,
            limit=int(self.config.get("max_candidates", 20)),
            kinds=self.config.get("candidate_kinds", ["article", "page"]),
        )
        if not candidates:
            return AnalysisResult.empty(EmptyReason.NO_CANDIDATES, sections)

        prompt = build_prompt(sections, candidates)
        if prompt is None:
            return AnalysisResult.empty(EmptyReason.NO_PARAGRAPHS, sections)

        raw = self.provider.complete(prompt)
        suggestions = validate_suggestions(
            raw,
            sections,
            self.repository,
            min_relevance=float(self.config.get("suggestion_threshold", 0.0)),
        )
        logger.info(
            "Document %s: %d sections, %d candidates, %d suggestions",
            document_id,
            len(sections),
            len(candidates),
            len(suggestions),
        )
        if not suggestions:
            return AnalysisResult.empty(EmptyReason.NO_SUGGESTIONS, sections)
        return AnalysisResult.ok(sections, suggestions)
