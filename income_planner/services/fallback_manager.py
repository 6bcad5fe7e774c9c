"""Central fallback orchestration for market data provider calls."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from income_planner.providers.http import ProviderError
from income_planner.services.base import ErrorEnvelope, ServiceContext, ServiceResult
from income_planner.services.provider_status import ProviderStatus

T = TypeVar("T")
LOGGER = logging.getLogger(__name__)
RATE_LIMIT_PATTERNS = (
    "rate limit",
    "requests per day",
    "api credits",
    "limit exceeded",
    "too many requests",
)
DEFAULT_RATE_LIMIT_DISABLE_SECONDS = 60 * 15


@dataclass(frozen=True)
class ProviderAttempt(Generic[T]):
    key: str
    label: str
    call: Callable[[], T | None]


class FallbackManager:
    """Walks an ordered provider list until one returns usable data.

    A provider error, an unexpected exception or a ``None`` payload all fall
    through to the next attempt. Exhausting the list yields an error envelope
    naming the symbol; nothing is raised to the caller.
    """

    def __init__(
        self,
        ctx: ServiceContext,
        provider_status: ProviderStatus,
        rate_limit_disable_seconds: dict[str, int] | None = None,
    ) -> None:
        self._ctx = ctx
        self._provider_status = provider_status
        self._rate_limit_disable_seconds = rate_limit_disable_seconds or {}

    def execute(
        self,
        operation: str,
        symbol: str,
        attempts: list[ProviderAttempt[T]],
        accept: Callable[[T], bool] | None = None,
    ) -> ServiceResult[T]:
        had_fallback = False
        for attempt in attempts:
            if self._provider_status.is_disabled(attempt.key):
                had_fallback = True
                LOGGER.info(
                    "provider skipped (disabled window): op=%s symbol=%s provider=%s",
                    operation,
                    symbol,
                    attempt.key,
                )
                continue

            started = time.perf_counter()
            try:
                self._ctx.rate_limiter.wait(attempt.key)
                value = attempt.call()
                elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
                usable = value is not None and (accept is None or accept(value))
                LOGGER.info(
                    "provider attempt complete: op=%s symbol=%s provider=%s success=%s latency_ms=%s",
                    operation,
                    symbol,
                    attempt.key,
                    usable,
                    elapsed_ms,
                )
                if usable:
                    warning = "Used fallback provider due to upstream issue." if had_fallback else None
                    return ServiceResult(data=value, source=attempt.label, warning=warning, fetched_at=time.time())
                had_fallback = True
            except ProviderError as error:
                had_fallback = True
                self._provider_status.record_failure(attempt.key)
                elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
                LOGGER.warning(
                    "provider attempt failed: op=%s symbol=%s provider=%s code=%s status=%s latency_ms=%s",
                    operation,
                    symbol,
                    attempt.key,
                    error.code,
                    error.status,
                    elapsed_ms,
                )
                if self.is_rate_limited(error):
                    ttl_seconds = self._rate_limit_disable_seconds.get(attempt.key, DEFAULT_RATE_LIMIT_DISABLE_SECONDS)
                    disabled_until = self._provider_status.disable_provider(attempt.key, ttl_seconds)
                    LOGGER.warning(
                        "provider disabled after rate limit: provider=%s disabled_until=%s op=%s symbol=%s",
                        attempt.key,
                        disabled_until,
                        operation,
                        symbol,
                    )
            except Exception:
                had_fallback = True
                self._provider_status.record_failure(attempt.key)
                elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
                LOGGER.exception(
                    "provider attempt unexpected failure: op=%s symbol=%s provider=%s latency_ms=%s",
                    operation,
                    symbol,
                    attempt.key,
                    elapsed_ms,
                )

        return ServiceResult(
            data=None,
            error=ErrorEnvelope(
                code="QUOTE_UNAVAILABLE" if operation == "quote" else "NOT_FOUND",
                message=f"No market data found for symbol: {symbol}",
                retriable=True,
            ),
        )

    @staticmethod
    def is_rate_limited(error: ProviderError) -> bool:
        if error.code == "RATE_LIMIT" or error.status == 429:
            return True
        message = (error.message or "").lower()
        return any(pattern in message for pattern in RATE_LIMIT_PATTERNS)
