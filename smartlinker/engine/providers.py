"""AI provider adapters sharing one request, parse and cache pipeline.

Every adapter sends the analysis prompt as a single user turn framed by a
fixed system instruction, strips markdown fences from the reply, and
requires a JSON object with a ``suggestions`` array. Vendors differ only in
how the request is shaped, how the reply text is extracted, and how the
model catalogue is listed.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Type

import httpx

from .cache import CacheBackend, SuggestionCache
from .config import EngineConfig
from .errors import BackendUnavailable, InvalidResponse, NoApiKey, ProviderError, RateLimitExceeded
from .ratelimit import SlidingWindowCounter

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert content editor and SEO specialist who understands how to create natural, "
    "engaging internal links that enhance readability while improving SEO. Focus on creating links "
    "that feel like a natural part of the conversation, adding value to the reader's experience. "
    "Respond with valid JSON only."
)

DEFAULT_TIMEOUT = 30.0
HOUR = 60 * 60

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)


class ProviderName(str, Enum):
    OPENAI = "openai"
    DEEPSEEK = "deepseek"
    GEMINI = "gemini"


def strip_code_fences(text: str) -> str:
    """Remove markdown code-fence markers wrapping a JSON reply."""

    return _FENCE_RE.sub("", text).strip()


def parse_suggestion_payload(text: str) -> Dict[str, Any]:
    """Parse reply text into a dict that has a ``suggestions`` list."""

    cleaned = strip_code_fences(text)
    try:
        payload = json.loads(cleaned)
    except ValueError as exc:
        raise InvalidResponse(f"Invalid JSON in API response: {exc}", raw=text) from exc
    if not isinstance(payload, dict) or not isinstance(payload.get("suggestions"), list):
        raise InvalidResponse("Invalid response structure: missing suggestions array", raw=text)
    return payload


class AIProvider(ABC):
    """Base adapter. Subclasses describe the vendor's wire format."""

    name: ProviderName
    label: str = ""
    default_model: str = ""
    fallback_models: Dict[str, str] = {}

    def __init__(
        self,
        api_key: str | None,
        model: str | None = None,
        *,
        cache: SuggestionCache | None = None,
        limiter: SlidingWindowCounter | None = None,
        model_store: CacheBackend | None = None,
        client: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        temperature: float = 0.7,
        max_tokens: int = 1500,
        model_list_ttl: int = 24 * HOUR,
    ) -> None:
        self.api_key = api_key or ""
        self.model = model or self.default_model
        self.cache = cache
        self.limiter = limiter
        self.model_store = model_store
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.model_list_ttl = model_list_ttl
        self._client = client

    # -- public API -------------------------------------------------

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def complete(self, prompt: str, model: str | None = None) -> Dict[str, Any]:
        """Run ``prompt`` against the model and return the parsed reply.

        Cached payloads are returned without a network call or a rate-limit
        hit. Fresh, well-formed replies are written to the cache before they
        are returned; malformed ones are logged and never cached.

        Raises
        ------
        NoApiKey, RateLimitExceeded, ProviderError, InvalidResponse
        """

        if not self.is_configured():
            raise NoApiKey(
                f"No {self.label or self.name.value} API key configured. "
                "Please add your API key in the settings."
            )
        model_id = model or self.model

        if self.cache is not None:
            cached = self.cache.get(prompt, model_id)
            if cached is not None:
                return {"suggestions": cached}

        self._check_rate_limit()

        text = self._send(prompt, model_id)
        try:
            payload = parse_suggestion_payload(text)
        except InvalidResponse:
            logger.warning("%s returned an unusable reply: %.500s", self.label, text)
            raise

        if self.cache is not None:
            self.cache.put(prompt, model_id, payload["suggestions"])
        return payload

    def list_models(self) -> Dict[str, str]:
        """Return ``{model_id: display_name}``, cached, with a built-in fallback."""

        cache_key = f"smartlinker:models:{self.name.value}"
        if self.model_store is not None:
            try:
                cached = self.model_store.get(cache_key)
            except BackendUnavailable as exc:
                logger.warning("Model list cache unavailable: %s", exc)
                cached = None
            if isinstance(cached, dict) and cached:
                return dict(cached)

        if not self.is_configured():
            return dict(self.fallback_models)

        try:
            models = self._fetch_models()
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Failed to fetch %s models, using defaults: %s", self.label, exc)
            return dict(self.fallback_models)
        if not models:
            return dict(self.fallback_models)

        if self.model_store is not None:
            try:
                self.model_store.set(cache_key, models, self.model_list_ttl)
            except BackendUnavailable as exc:
                logger.warning("Model list cache unavailable: %s", exc)
        return models

    def is_valid_model(self, model_id: str) -> bool:
        return model_id in self.list_models()

    def resolve_model(self, model_id: str | None = None) -> str:
        """Return ``model_id`` when the provider lists it, else the default model."""

        candidate = model_id or self.model
        if self.is_valid_model(candidate):
            return candidate
        logger.warning("Model %s is not offered by %s; using %s", candidate, self.label, self.default_model)
        return self.default_model

    # -- shared transport -------------------------------------------

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout)
        return self._client

    def _check_rate_limit(self) -> None:
        if self.limiter is None or self.limiter.limit <= 0:
            return
        try:
            allowed = self.limiter.hit(f"smartlinker:ratelimit:{self.name.value}")
        except BackendUnavailable as exc:
            logger.warning("Rate limit store unavailable, allowing call: %s", exc)
            return
        if not allowed:
            logger.info("%s hourly rate limit reached", self.label)
            raise RateLimitExceeded(
                f"Rate limit exceeded. Maximum {self.limiter.limit} requests per hour. "
                "Please try again later."
            )

    def _send(self, prompt: str, model: str) -> str:
        url, headers, body = self._build_request(prompt, model)
        try:
            response = self.client.post(url, headers=headers, json=body, timeout=self.timeout)
        except httpx.RequestError as exc:
            raise ProviderError(f"API Request Error: {exc}") from exc

        if response.status_code != 200:
            raise ProviderError(f"{self.label} API Error: {self._error_message(response)}")

        try:
            data = response.json()
        except ValueError as exc:
            raise InvalidResponse(f"Invalid API response: body is not JSON ({exc})", raw=response.text) from exc

        text = self._extract_text(data)
        if not text:
            raise InvalidResponse(f"Invalid API response: No content returned from {self.label}", raw=response.text)
        return text

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return f"HTTP {response.status_code}"
        error = data.get("error") if isinstance(data, dict) else None
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        return "Unknown API error occurred"

    # -- vendor specifics -------------------------------------------

    @abstractmethod
    def _build_request(self, prompt: str, model: str) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        """Return ``(url, headers, json_body)`` for a completion call."""

    @abstractmethod
    def _extract_text(self, data: Any) -> Optional[str]:
        """Return the assistant text from a decoded completion response."""

    @abstractmethod
    def _fetch_models(self) -> Dict[str, str]:
        """Fetch the vendor's model catalogue."""


class OpenAICompatibleProvider(AIProvider):
    """Chat-completions adapter for OpenAI-style endpoints."""

    base_url = ""
    extra_body: Dict[str, Any] = {}

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _build_request(self, prompt: str, model: str) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        body: Dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        body.update(self.extra_body)
        return f"{self.base_url}/chat/completions", self._headers(), body

    def _extract_text(self, data: Any) -> Optional[str]:
        if not isinstance(data, dict):
            return None
        choices = data.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            return None
        message = choices[0].get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        return None if content is None else str(content)

    def _include_model(self, model_id: str) -> bool:
        return True

    def _fetch_models(self) -> Dict[str, str]:
        response = self.client.get(f"{self.base_url}/models", headers=self._headers(), timeout=self.timeout)
        response.raise_for_status()
        data = response.json()["data"]
        return {
            item["id"]: item["id"]
            for item in data
            if isinstance(item, dict) and item.get("id") and self._include_model(item["id"])
        }


class OpenAIProvider(OpenAICompatibleProvider):
    name = ProviderName.OPENAI
    label = "OpenAI"
    base_url = "https://api.openai.com/v1"
    default_model = "gpt-4o-mini"
    fallback_models = {
        "gpt-4o-mini": "GPT-4o mini",
        "gpt-4o": "GPT-4o",
        "gpt-4-turbo": "GPT-4 Turbo",
        "gpt-3.5-turbo": "GPT-3.5 Turbo",
    }
    extra_body = {"frequency_penalty": 0.3, "presence_penalty": 0.3}

    def _include_model(self, model_id: str) -> bool:
        # Only chat models are usable for completions.
        return "gpt" in model_id


class DeepSeekProvider(OpenAICompatibleProvider):
    name = ProviderName.DEEPSEEK
    label = "DeepSeek"
    base_url = "https://api.deepseek.com/v1"
    default_model = "deepseek-chat"
    fallback_models = {
        "deepseek-chat": "DeepSeek Chat",
        "deepseek-coder": "DeepSeek Coder",
    }


class GeminiProvider(AIProvider):
    """Adapter for the native ``generateContent`` API."""

    name = ProviderName.GEMINI
    label = "Gemini"
    base_url = "https://generativelanguage.googleapis.com/v1beta"
    default_model = "gemini-1.5-flash"
    fallback_models = {
        "gemini-1.5-flash": "Gemini 1.5 Flash",
        "gemini-1.5-pro": "Gemini 1.5 Pro",
    }

    def _headers(self) -> Dict[str, str]:
        return {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}

    def _build_request(self, prompt: str, model: str) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        body = {
            "systemInstruction": {"parts": [{"text": SYSTEM_PROMPT}]},
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_tokens,
                "responseMimeType": "application/json",
            },
        }
        return f"{self.base_url}/models/{model}:generateContent", self._headers(), body

    def _extract_text(self, data: Any) -> Optional[str]:
        if not isinstance(data, dict):
            return None
        candidates = data.get("candidates") or []
        if not candidates or not isinstance(candidates[0], dict):
            return None
        parts = (candidates[0].get("content") or {}).get("parts") or []
        texts = [str(part["text"]) for part in parts if isinstance(part, dict) and part.get("text")]
        return "".join(texts) or None

    def _fetch_models(self) -> Dict[str, str]:
        response = self.client.get(f"{self.base_url}/models", headers=self._headers(), timeout=self.timeout)
        response.raise_for_status()
        models: Dict[str, str] = {}
        for item in response.json()["models"]:
            if "generateContent" not in item.get("supportedGenerationMethods", []):
                continue
            model_id = item["name"].split("/", 1)[-1]
            models[model_id] = item.get("displayName") or model_id
        return models


PROVIDER_CLASSES: Dict[ProviderName, Type[AIProvider]] = {
    ProviderName.OPENAI: OpenAIProvider,
    ProviderName.DEEPSEEK: DeepSeekProvider,
    ProviderName.GEMINI: GeminiProvider,
}


def provider_class(name: str | ProviderName) -> Type[AIProvider]:
    try:
        return PROVIDER_CLASSES[ProviderName(name)]
    except ValueError as exc:
        raise ValueError(f"Unknown AI provider: {name}") from exc


def build_provider(
    config: EngineConfig,
    api_key: str | None,
    *,
    name: str | None = None,
    cache: SuggestionCache | None = None,
    counter_store: CacheBackend | None = None,
    model_store: CacheBackend | None = None,
    client: httpx.Client | None = None,
) -> AIProvider:
    """Instantiate the configured provider with its per-vendor settings."""

    provider_name = ProviderName(name or config.provider)
    settings = config.provider_settings(provider_name.value)
    limiter = None
    hourly_limit = int(settings.get("hourly_limit", 0) or 0)
    if counter_store is not None and hourly_limit > 0:
        limiter = SlidingWindowCounter(counter_store, limit=hourly_limit, window=HOUR)

    return provider_class(provider_name)(
        api_key,
        settings.get("model"),
        cache=cache,
        limiter=limiter,
        model_store=model_store,
        client=client,
        timeout=float(config.get("request_timeout", DEFAULT_TIMEOUT)),
        temperature=float(settings.get("temperature", 0.7)),
        max_tokens=int(settings.get("max_tokens", 1500)),
        model_list_ttl=int(config.get("model_list_ttl", 24 * HOUR)),
    )
