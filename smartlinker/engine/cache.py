"""Content-addressed cache of provider suggestion payloads."""

from __future__ import annotations

import hashlib
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Protocol

from .errors import BackendUnavailable
from .text import normalize_whitespace

logger = logging.getLogger(__name__)

DEFAULT_TTL = 24 * 60 * 60
KEY_PREFIX = "smartlinker:suggestions"


class CacheBackend(Protocol):
    """Key/value store used for caching; failures raise ``BackendUnavailable``."""

    def get(self, key: str) -> Any:
        ...

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


def make_cache_key(prompt: str, model: str) -> str:
    """Return a deterministic key for ``(normalized prompt, model)``."""

    digest = hashlib.sha256()
    digest.update(normalize_whitespace(prompt).encode("utf-8"))
    digest.update(b"\x00")
    digest.update(model.encode("utf-8"))
    return f"{KEY_PREFIX}:{digest.hexdigest()}"


class SuggestionCache:
    """Prompt-keyed cache with an optional remote store in front of a local one.

    Entries carry their own ``expires_at`` so both backends expire them the
    same way. The remote backend is consulted first when present; any backend
    failure is logged and treated as a miss, never raised.
    """

    def __init__(
        self,
        local: CacheBackend,
        remote: Optional[CacheBackend] = None,
        *,
        ttl: int = DEFAULT_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.local = local
        self.remote = remote
        self.ttl = ttl
        self.clock = clock

    def _backends(self) -> List[tuple[str, CacheBackend]]:
        backends = []
        if self.remote is not None:
            backends.append(("remote", self.remote))
        backends.append(("local", self.local))
        return backends

    def get(self, prompt: str, model: str) -> Optional[List[Dict[str, Any]]]:
        """Return the cached payload, or None on a miss."""

        key = make_cache_key(prompt, model)
        for label, backend in self._backends():
            try:
                entry = backend.get(key)
            except BackendUnavailable as exc:
                logger.warning("Suggestion cache %s backend unavailable on read: %s", label, exc)
                continue
            payload = self._unwrap(entry)
            if payload is not None:
                logger.debug("Suggestion cache hit (%s) for %s", label, key)
                return payload
        logger.debug("Suggestion cache miss for %s", key)
        return None

    def put(self, prompt: str, model: str, payload: List[Dict[str, Any]], ttl: Optional[int] = None) -> None:
        """Store ``payload`` unconditionally, remote first, local on remote failure."""

        key = make_cache_key(prompt, model)
        lifetime = self.ttl if ttl is None else ttl
        entry = {"payload": list(payload), "expires_at": self.clock() + lifetime}

        if self.remote is not None:
            try:
                self.remote.set(key, entry, lifetime)
                return
            except BackendUnavailable as exc:
                logger.warning("Suggestion cache remote backend unavailable on write: %s", exc)
        try:
            self.local.set(key, entry, lifetime)
        except BackendUnavailable as exc:
            logger.warning("Suggestion cache local backend unavailable on write: %s", exc)

    def _unwrap(self, entry: Any) -> Optional[List[Dict[str, Any]]]:
        if not isinstance(entry, dict):
            return None
        payload = entry.get("payload")
        expires_at = entry.get("expires_at")
        if not isinstance(payload, list) or not isinstance(expires_at, (int, float)):
            return None
        if expires_at <= self.clock():
            return None
        return payload
