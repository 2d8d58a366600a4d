from __future__ import annotations

from typing import Callable

from django.conf import settings
from django.core.cache import caches
from django.http import HttpRequest, HttpResponse, JsonResponse

from .backends import DjangoCacheBackend
from .engine.errors import BackendUnavailable
from .engine.ratelimit import SlidingWindowCounter

DEFAULT_THROTTLE_LIMIT = 100  # requests
DEFAULT_THROTTLE_WINDOW = 60  # seconds
DEFAULT_THROTTLE_KEY_PREFIX = 'smartlinker:throttle'


class SlidingWindowRateThrottle:
    """Per-IP, per-route sliding-window limiter backed by a Django cache."""

    def __init__(
        self,
        get_response: Callable[[HttpRequest], HttpResponse],
        *,
        limit: int | None = None,
        window: int | None = None,
        cache_alias: str | None = None,
        key_prefix: str | None = None,
    ) -> None:
        self.get_response = get_response
        self.limit = limit or getattr(settings, 'THROTTLE_LIMIT', DEFAULT_THROTTLE_LIMIT)
        self.window = window or getattr(settings, 'THROTTLE_WINDOW', DEFAULT_THROTTLE_WINDOW)
        alias = cache_alias or getattr(settings, 'SMARTLINKER_CACHE_ALIAS', 'default')
        self.counter = SlidingWindowCounter(
            DjangoCacheBackend(caches[alias]),
            limit=self.limit,
            window=self.window,
        )
        self.key_prefix = key_prefix or getattr(settings, 'THROTTLE_KEY_PREFIX', DEFAULT_THROTTLE_KEY_PREFIX)

    def __call__(self, request: HttpRequest) -> HttpResponse:
        return self.get_response(request)

    def process_view(self, request: HttpRequest, view_func, view_args, view_kwargs) -> HttpResponse | None:
        if request.method not in ('GET', 'POST'):
            return None

        resolved = getattr(request, 'resolver_match', None)
        if resolved is None:
            return None

        route_name = resolved.view_name
        protected_routes = getattr(settings, 'THROTTLED_ROUTES', [])
        if route_name not in protected_routes:
            return None

        try:
            allowed = self.counter.hit(self._build_cache_key(request, route_name))
        except BackendUnavailable:
            return None
        if not allowed:
            return self._reject(request)
        return None

    def _build_cache_key(self, request: HttpRequest, route_name: str) -> str:
        ip = self._get_client_ip(request)
        return f"{self.key_prefix}:{route_name}:{ip}"

    def _get_client_ip(self, request: HttpRequest) -> str:
        header = getattr(settings, 'THROTTLE_IP_HEADER', 'HTTP_X_FORWARDED_FOR')
        if header in request.META:
            value = request.META[header]
            return value.split(',')[0].strip()
        return request.META.get('REMOTE_ADDR', '0.0.0.0')

    def _reject(self, request: HttpRequest) -> HttpResponse:
        payload = {
            'detail': 'Rate limit exceeded. Try again shortly.',
            'route': getattr(request.resolver_match, 'view_name', 'unknown'),
        }
        return JsonResponse(payload, status=429)


def sliding_window_rate_throttle(get_response: Callable[[HttpRequest], HttpResponse]) -> SlidingWindowRateThrottle:
    return SlidingWindowRateThrottle(get_response)
