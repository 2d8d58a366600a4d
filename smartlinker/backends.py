"""Adapters exposing Django caches as engine cache backends."""

from __future__ import annotations

from typing import Any, Optional

from django.core.cache import BaseCache

from .engine.errors import BackendUnavailable


class DjangoCacheBackend:
    """Wraps a Django cache; any cache failure becomes ``BackendUnavailable``."""

    def __init__(self, cache: BaseCache) -> None:
        self.cache = cache

    def get(self, key: str) -> Any:
        try:
            return self.cache.get(key)
        except Exception as exc:  # noqa: BLE001 - cache clients raise arbitrary errors
            raise BackendUnavailable(f'Local cache read failed: {exc}') from exc

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        try:
            self.cache.set(key, value, timeout=ttl)
        except Exception as exc:  # noqa: BLE001
            raise BackendUnavailable(f'Local cache write failed: {exc}') from exc

    def delete(self, key: str) -> None:
        try:
            self.cache.delete(key)
        except Exception as exc:  # noqa: BLE001
            raise BackendUnavailable(f'Local cache delete failed: {exc}') from exc
