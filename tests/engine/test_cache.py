"""Suggestion cache tests."""

from __future__ import annotations

from uuid import uuid4

from django.core.cache.backends.locmem import LocMemCache

from smartlinker.backends import DjangoCacheBackend
from smartlinker.engine.cache import SuggestionCache, make_cache_key
from smartlinker.engine.errors import BackendUnavailable

PAYLOAD = [{"section_index": 0, "target_post_id": 5, "anchor_text": "pour over", "relevance_score": 0.9}]


class Clock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class BrokenBackend:
    def __init__(self) -> None:
        self.writes = 0

    def get(self, key):
        raise BackendUnavailable("remote down")

    def set(self, key, value, ttl=None):
        self.writes += 1
        raise BackendUnavailable("remote down")

    def delete(self, key):
        raise BackendUnavailable("remote down")


def test_cache_key_is_deterministic_and_model_scoped():
    assert make_cache_key("prompt  text", "gpt-4o") == make_cache_key("prompt text", "gpt-4o")
    assert make_cache_key("prompt text", "gpt-4o") != make_cache_key("prompt text", "gpt-4o-mini")
    assert make_cache_key("prompt text", "gpt-4o") != make_cache_key("other text", "gpt-4o")


def test_entries_expire_after_ttl(local_backend):
    clock = Clock()
    cache = SuggestionCache(local_backend, ttl=60, clock=clock)
    cache.put("prompt", "model", PAYLOAD)
    assert cache.get("prompt", "model") == PAYLOAD

    clock.now += 61
    assert cache.get("prompt", "model") is None


def test_put_overwrites_unconditionally(local_backend):
    cache = SuggestionCache(local_backend)
    cache.put("prompt", "model", PAYLOAD)
    cache.put("prompt", "model", [])
    assert cache.get("prompt", "model") == []


def test_miss_returns_none(local_backend):
    assert SuggestionCache(local_backend).get("never stored", "model") is None


def test_remote_failure_falls_back_to_local(local_backend):
    remote = BrokenBackend()
    cache = SuggestionCache(local_backend, remote)
    cache.put("prompt", "model", PAYLOAD)
    assert remote.writes == 1
    assert cache.get("prompt", "model") == PAYLOAD


def test_remote_is_preferred_when_available(local_backend):
    remote = DjangoCacheBackend(LocMemCache(f"remote-{uuid4().hex}", {}))
    cache = SuggestionCache(local_backend, remote)
    cache.put("prompt", "model", PAYLOAD)
    assert local_backend.get(make_cache_key("prompt", "model")) is None
    assert cache.get("prompt", "model") == PAYLOAD
