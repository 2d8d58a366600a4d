"""Typed failures raised by the suggestion engine and its collaborators."""

from __future__ import annotations


class SmartLinkerError(Exception):
    """Base class for every failure the linker reports to its callers."""


class NoApiKey(SmartLinkerError):
    """A provider was invoked without a configured credential."""


class RateLimitExceeded(SmartLinkerError):
    """The hourly provider call budget is exhausted."""


class ProviderError(SmartLinkerError):
    """Transport or HTTP failure while talking to the AI endpoint."""


class InvalidResponse(SmartLinkerError):
    """The AI reply could not be parsed into a ``suggestions`` payload."""

    def __init__(self, message: str, raw: str | None = None) -> None:
        super().__init__(message)
        self.raw = raw


class LinkNotFound(SmartLinkerError):
    """Anchor text could not be located verbatim in the current content."""


class BackendUnavailable(SmartLinkerError):
    """A cache or mirror backend failed; callers recover locally."""


class SuggestionNotPending(SmartLinkerError):
    """The suggestion is not in the document's active set (already applied or superseded)."""


class StoreError(SmartLinkerError):
    """Persisting suggestions or applied links failed."""


class DocumentNotFound(SmartLinkerError):
    """The requested document does not exist."""
