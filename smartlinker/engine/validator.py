"""Filter raw provider suggestions down to ones that can actually be applied."""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Dict, List, Optional, Sequence, Set

from .types import DocumentRepository, Section, ValidatedSuggestion

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("section_index", "target_post_id", "anchor_text", "relevance_score")


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _as_score(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        score = float(value)
    elif isinstance(value, str):
        try:
            score = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return score if math.isfinite(score) else None


def _reject(entry: Any, reason: str) -> None:
    logger.debug("Dropping suggestion %r: %s", entry, reason)


def validate_suggestions(
    raw: Any,
    sections: Sequence[Section],
    repository: DocumentRepository,
    *,
    min_relevance: float = 0.0,
) -> List[ValidatedSuggestion]:
    """Return the subset of ``raw["suggestions"]`` that is safe to store.

    An entry survives when all required fields are present, its section is an
    in-range paragraph whose text contains the anchor (case-insensitive), the
    score lies in ``[0, 1]`` and reaches ``min_relevance``, and the target is a
    published document. At most one suggestion per section is kept; the first
    one in reply order wins. Bad entries are dropped one by one, never raised.
    """

    if not isinstance(raw, dict):
        return []
    entries = raw.get("suggestions")
    if not isinstance(entries, list):
        return []

    by_index: Dict[int, Section] = {section.index: section for section in sections}
    seen_sections: Set[int] = set()
    accepted: List[ValidatedSuggestion] = []

    for entry in entries:
        if not isinstance(entry, dict) or any(entry.get(name) is None for name in REQUIRED_FIELDS):
            _reject(entry, "missing required fields")
            continue

        section_index = _as_int(entry["section_index"])
        section = by_index.get(section_index) if section_index is not None else None
        if section is None:
            _reject(entry, "section index out of range")
            continue
        if not section.is_paragraph:
            _reject(entry, "section is not a paragraph")
            continue

        anchor = str(entry["anchor_text"]).strip()
        if not anchor:
            _reject(entry, "empty anchor text")
            continue

        score = _as_score(entry["relevance_score"])
        if score is None or not 0.0 <= score <= 1.0:
            _reject(entry, "relevance score outside [0, 1]")
            continue
        if score < min_relevance:
            _reject(entry, f"relevance {score:.2f} below threshold {min_relevance:.2f}")
            continue

        target_id = _as_int(entry["target_post_id"])
        target = repository.get_published(target_id) if target_id is not None else None
        if target is None:
            _reject(entry, "target is not a published document")
            continue

        if section_index in seen_sections:
            _reject(entry, "section already has a suggestion")
            continue

        match = re.search(re.escape(anchor), section.content, re.IGNORECASE)
        if match is None:
            _reject(entry, "anchor text not found in section")
            continue

        seen_sections.add(section_index)
        accepted.append(
            ValidatedSuggestion(
                section_index=section_index,
                target_document_id=target.id,
                anchor_text=match.group(0),
                relevance_score=score,
                section_content=section.content,
                target_title=target.title,
            )
        )

    logger.debug("Validated %d of %d suggestions", len(accepted), len(entries))
    return accepted
