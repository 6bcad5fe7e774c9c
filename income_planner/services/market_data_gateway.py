"""Market data gateway: quotes, history and dividends behind one fallback chain."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Literal

from income_planner.portfolio.metrics import build_enriched_holding
from income_planner.portfolio.models import EnrichedHolding, Holding
from income_planner.providers.models import DividendEvent, DividendSummary, PricePoint, Quote
from income_planner.services.base import (
    ErrorEnvelope,
    ServiceContext,
    ServiceResult,
    normalize_symbol,
    run_with_cache,
    validate_symbol,
)
from income_planner.services.fallback_manager import FallbackManager, ProviderAttempt
from income_planner.services.provider_status import ProviderStatus

LOGGER = logging.getLogger(__name__)
FetchMode = Literal["sequential", "concurrent"]
DEFAULT_PROVIDER_ORDER = ("finnhub", "fmp", "eodhd", "yahoo")
DIVIDEND_LOOKBACK_DAYS = 365
SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class FetchPolicy:
    provider_order: tuple[str, ...] = DEFAULT_PROVIDER_ORDER
    mode: FetchMode = "sequential"
    call_timeout_seconds: float = 10.0
    inter_call_delay_seconds: float = 0.3
    max_workers: int = 8
    include_history: bool = True


@dataclass
class EnrichmentPass:
    holdings: list[EnrichedHolding] = field(default_factory=list)
    stale_symbols: list[str] = field(default_factory=list)


def summarize_dividends(symbol: str, events: Iterable[DividendEvent], now: float) -> DividendSummary:
    """Trailing twelve-month dividend per share from raw payment events."""
    cutoff = (datetime.fromtimestamp(now, tz=timezone.utc) - timedelta(days=DIVIDEND_LOOKBACK_DAYS)).strftime("%Y-%m-%d")
    recent = [event for event in events if event.date[:10] >= cutoff]
    if not recent:
        return DividendSummary(symbol=symbol, trailing_annual_amount=0.0)
    latest = max(recent, key=lambda event: event.date)
    return DividendSummary(
        symbol=symbol,
        trailing_annual_amount=sum(event.amount for event in recent),
        last_payment_date=latest.date[:10],
        source=latest.source,
    )


class MarketDataGateway:
    """Single entry point for external market data used by the portfolio.

    Providers are tried in ``policy.provider_order``; any provider failure
    falls through to the next one. Only successful quotes are cached.
    """

    def __init__(
        self,
        ctx: ServiceContext,
        policy: FetchPolicy | None = None,
        provider_status: ProviderStatus | None = None,
        rate_limit_disable_seconds: dict[str, int] | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.ctx = ctx
        self.policy = policy or FetchPolicy()
        status = provider_status or self.ctx.get_provider("provider_status")
        if not isinstance(status, ProviderStatus):
            status = ProviderStatus()
        self.provider_status = status
        self.fallback_manager = FallbackManager(
            ctx=self.ctx,
            provider_status=status,
            rate_limit_disable_seconds=rate_limit_disable_seconds,
        )
        self._clock = clock
        self._sleep = sleep

    def _attempts(self, method: str, *args: object) -> list[ProviderAttempt]:
        attempts: list[ProviderAttempt] = []
        for key in self.policy.provider_order:
            client = self.ctx.get_provider(key)
            call = getattr(client, method, None) if client is not None else None
            if call is None:
                continue
            label = getattr(client, "label", key)
            attempts.append(ProviderAttempt(key, label, lambda call=call: call(*args)))
        return attempts

    def _window(self, days: int) -> tuple[int, int]:
        now = int(self._clock())
        return now - days * SECONDS_PER_DAY, now

    def _checked_symbol(self, operation: str, symbol: str) -> str | None:
        try:
            return validate_symbol(symbol)
        except ValueError:
            LOGGER.warning("invalid symbol skipped: op=%s symbol=%r", operation, symbol)
            return None

    def quote(self, symbol: str) -> ServiceResult[Quote]:
        clean = self._checked_symbol("quote", symbol)
        if clean is None:
            return ServiceResult(
                data=None,
                error=ErrorEnvelope(
                    code="QUOTE_UNAVAILABLE",
                    message=f"No market data found for symbol: {normalize_symbol(symbol)}",
                    retriable=False,
                ),
            )
        return run_with_cache(
            self.ctx,
            f"quote:{clean}",
            lambda: self.fallback_manager.execute(
                operation="quote",
                symbol=clean,
                attempts=self._attempts("get_quote", clean),
                accept=lambda value: value.price > 0,
            ),
            ttl_seconds=self.ctx.quote_ttl_seconds,
        )

    def historical(self, symbol: str, days: int = 7) -> list[PricePoint]:
        clean = self._checked_symbol("historical", symbol)
        if clean is None:
            return []
        from_unix, to_unix = self._window(max(1, days))
        result = self.fallback_manager.execute(
            operation="historical",
            symbol=clean,
            attempts=self._attempts("get_history", clean, from_unix, to_unix),
            accept=lambda value: len(value) > 0,
        )
        return sorted(result.data or [], key=lambda point: point.date)

    def dividends(self, symbol: str) -> DividendSummary | None:
        clean = self._checked_symbol("dividends", symbol)
        if clean is None:
            return None
        from_unix, to_unix = self._window(DIVIDEND_LOOKBACK_DAYS)
        result = self.fallback_manager.execute(
            operation="dividends",
            symbol=clean,
            attempts=self._attempts("get_dividends", clean, from_unix, to_unix),
            accept=lambda value: len(value) > 0,
        )
        if result.data is None:
            return None
        return summarize_dividends(clean, result.data, self._clock())

    def enrich_one(self, holding: Holding) -> EnrichedHolding:
        quote_result = self.quote(holding.symbol)
        if quote_result.data is None:
            return build_enriched_holding(holding, None)
        dividend = self.dividends(holding.symbol)
        history = self.historical(holding.symbol) if self.policy.include_history else []
        return build_enriched_holding(holding, quote_result.data, dividend, history)

    def _safe_enrich(self, holding: Holding) -> EnrichedHolding:
        try:
            return self.enrich_one(holding)
        except Exception:
            LOGGER.exception("enrichment failed: symbol=%s", holding.symbol)
            return build_enriched_holding(holding, None)

    def enrich(self, holdings: Iterable[Holding]) -> EnrichmentPass:
        """Run one enrichment pass; a failing symbol only marks itself stale."""
        items = list(holdings)
        if self.policy.mode == "concurrent":
            enriched = self._enrich_concurrent(items)
        else:
            enriched = self._enrich_sequential(items)
        stale = [item.symbol for item in enriched if item.stale]
        LOGGER.info(
            "enrichment pass complete: mode=%s holdings=%s stale=%s",
            self.policy.mode,
            len(enriched),
            len(stale),
        )
        return EnrichmentPass(holdings=enriched, stale_symbols=stale)

    def _enrich_sequential(self, items: list[Holding]) -> list[EnrichedHolding]:
        enriched: list[EnrichedHolding] = []
        for index, holding in enumerate(items):
            if index and self.policy.inter_call_delay_seconds > 0:
                self._sleep(self.policy.inter_call_delay_seconds)
            enriched.append(self._safe_enrich(holding))
        return enriched

    def _enrich_concurrent(self, items: list[Holding]) -> list[EnrichedHolding]:
        if not items:
            return []
        executor = ThreadPoolExecutor(max_workers=max(1, self.policy.max_workers))
        try:
            futures = [executor.submit(self._safe_enrich, holding) for holding in items]
            enriched: list[EnrichedHolding] = []
            for holding, future in zip(items, futures):
                try:
                    enriched.append(future.result(timeout=self.policy.call_timeout_seconds))
                except FutureTimeoutError:
                    LOGGER.warning(
                        "enrichment timed out: symbol=%s timeout_s=%s",
                        holding.symbol,
                        self.policy.call_timeout_seconds,
                    )
                    enriched.append(build_enriched_holding(holding, None))
            return enriched
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
