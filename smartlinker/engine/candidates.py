"""Candidate target selection for the suggestion prompt."""

from __future__ import annotations

from typing import List, Sequence

from .types import CandidateDocument, DocumentRepository

DEFAULT_POOL_SIZE = 20
DEFAULT_KINDS = ("article", "page")


def select_candidates(
    current_document_id: int,
    repository: DocumentRepository,
    *,
    limit: int = DEFAULT_POOL_SIZE,
    kinds: Sequence[str] = DEFAULT_KINDS,
) -> List[CandidateDocument]:
    """Return the bounded pool of documents the current one may link to.

    The repository is expected to return published documents of the given
    kinds that already carry a sections artifact, most recently modified
    first. The current document is excluded and the pool is capped here as
    well, so a loose repository cannot inflate the prompt. An empty list
    means there is nothing to suggest.
    """

    if limit <= 0:
        return []
    pool = repository.list_candidates(current_document_id, list(kinds), limit)
    return [candidate for candidate in pool if candidate.id != current_document_id][:limit]
