"""Shared service orchestration helpers."""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from income_planner.cache.ttl_cache import TTLCache
from income_planner.utils.rate_limit import RateLimiterRegistry

SYMBOL_PATTERN = re.compile(r"^[A-Z0-9][A-Z0-9.\-]{0,14}$")
T = TypeVar("T")


@dataclass
class ErrorEnvelope:
    code: str
    message: str
    retriable: bool = True
    provider: str | None = None


@dataclass
class ServiceResult(Generic[T]):
    data: T | None
    source: str | None = None
    warning: str | None = None
    error: ErrorEnvelope | None = None
    fetched_at: float | None = None


@dataclass
class ServiceContext:
    providers: dict[str, object]
    cache: TTLCache
    rate_limiter: RateLimiterRegistry
    quote_ttl_seconds: float = 30

    def get_provider(self, name: str) -> object | None:
        return self.providers.get(name)


def normalize_symbol(symbol: str) -> str:
    return str(symbol or "").strip().upper()


def validate_symbol(symbol: str) -> str:
    clean = normalize_symbol(symbol)
    if not clean or not SYMBOL_PATTERN.match(clean):
        raise ValueError(f"Invalid ticker: {symbol!r}. Use 1-15 chars: A-Z, 0-9, dot, hyphen.")
    return clean


def run_with_cache(
    ctx: ServiceContext,
    cache_key: str,
    call: Callable[[], ServiceResult[T]],
    ttl_seconds: float | None = None,
) -> ServiceResult[T]:
    """Serve a cached successful result or compute, caching only hits."""
    cached = ctx.cache.get(cache_key)
    if isinstance(cached, ServiceResult):
        return cached  # type: ignore[return-value]
    value = call()
    if value.data is not None:
        value.fetched_at = value.fetched_at or time.time()
        ctx.cache.set(cache_key, value, ttl_seconds=ttl_seconds or ctx.quote_ttl_seconds)
    return value
