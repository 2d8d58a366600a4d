"""Configuration helpers for the suggestion engine."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml


@dataclass(frozen=True)
class EngineConfig:
    """Typed wrapper around the engine configuration dictionary."""

    raw: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.raw.get(key, default)

    @property
    def provider(self) -> str:
        return str(self.raw.get("provider", "openai")).lower()

    def provider_settings(self, name: str) -> Dict[str, Any]:
        providers = self.raw.get("providers", {})
        return dict(providers.get(name, {}))


DEFAULTS: Dict[str, Any] = {
    "provider": "openai",
    "max_candidates": 20,
    "candidate_kinds": ["article", "page"],
    "min_paragraph_words": 5,
    "suggestion_threshold": 0.7,
    "cache_ttl": 86400,
    "model_list_ttl": 86400,
    "request_timeout": 30.0,
    "sync_retry_delay": 5.0,
    "providers": {
        "openai": {
            "model": "gpt-4o-mini",
            "temperature": 0.8,
            "max_tokens": 1500,
            "hourly_limit": 10,
        },
        "deepseek": {
            "model": "deepseek-chat",
            "temperature": 0.7,
            "max_tokens": 1500,
            "hourly_limit": 0,
        },
        "gemini": {
            "model": "gemini-1.5-flash",
            "temperature": 0.7,
            "max_tokens": 1500,
            "hourly_limit": 0,
        },
    },
}


def load_config(path: str | Path | None = None, overrides: Dict[str, Any] | None = None) -> EngineConfig:
    """Load configuration from YAML, merging with defaults and explicit overrides."""

    data: Dict[str, Any] = copy.deepcopy(DEFAULTS)

    if path is not None and Path(path).exists():
        with Path(path).open("r", encoding="utf-8") as stream:
            user = yaml.safe_load(stream) or {}
        merge_into(data, user)

    if overrides:
        merge_into(data, overrides)

    return EngineConfig(data)


def merge_into(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Recursively merge override into base dict."""

    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            merge_into(base[key], value)
        else:
            base[key] = value
