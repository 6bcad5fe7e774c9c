"""Portfolio orchestration: import, enrichment passes, analytics and persistence."""

from __future__ import annotations

import io
import logging
import threading
import time
from dataclasses import asdict, fields, replace
from typing import TYPE_CHECKING, Any, Callable

import pandas as pd

from income_planner.portfolio.aggregator import aggregate_positions, dividend_income_by_symbol
from income_planner.portfolio.intelligence import answer_portfolio_question, top_performer, worst_performer
from income_planner.portfolio.metrics import build_enriched_holding, calculate_allocation, calculate_metrics
from income_planner.portfolio.models import (
    EnrichedHolding,
    Holding,
    PortfolioMetrics,
    ProjectionResult,
    ProjectionSettings,
    Recommendation,
    RowSkip,
    Transaction,
)
from income_planner.portfolio.projection import project_portfolio
from income_planner.portfolio.recommendations import generate_recommendations
from income_planner.portfolio.storage import KeyValueStore, MemoryStore, SnapshotRepository
from income_planner.portfolio.transaction_parser import FormatError, parse_transactions
from income_planner.services.base import validate_symbol

if TYPE_CHECKING:
    from income_planner.services.market_data_gateway import MarketDataGateway

LOGGER = logging.getLogger(__name__)
EXPORT_COLUMNS = [
    "symbol",
    "shares",
    "buyPrice",
    "currentPrice",
    "totalCost",
    "currentValue",
    "profitLoss",
    "profitLossPercent",
]


def _error(error_type: str, message: str, **extra: Any) -> dict[str, Any]:
    return {"ok": False, "error": {"type": error_type, "message": message, **extra}}


def _skip_payload(skip: RowSkip) -> dict[str, Any]:
    return {"row": skip.row, "reason": skip.reason}


def _placeholders(holdings: dict[str, Holding]) -> list[EnrichedHolding]:
    return [build_enriched_holding(holding, None) for holding in holdings.values()]


class PortfolioService:
    """Owns the current portfolio state and serializes enrichment passes.

    Every import, rename or refresh runs one enrichment pass under the pass
    lock. Installing new holdings bumps a generation counter; a pass that
    finishes after its generation was superseded is discarded instead of
    overwriting newer state.
    """

    def __init__(
        self,
        gateway: MarketDataGateway,
        store: KeyValueStore | None = None,
        settings: ProjectionSettings | None = None,
        snapshot_stale_hours: float = 24.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.gateway = gateway
        self.repository = SnapshotRepository(store if store is not None else MemoryStore())
        self.snapshot_stale_hours = snapshot_stale_hours
        self._clock = clock
        self._settings = settings or ProjectionSettings()
        self._state_lock = threading.Lock()
        self._pass_lock = threading.Lock()
        self._generation = 0
        self._holdings: dict[str, Holding] = {}
        self._transactions: list[Transaction] = []
        self._enriched: list[EnrichedHolding] = []
        self._stale: list[str] = []
        self._warnings: list[str] = []
        self._skipped: list[RowSkip] = []
        self._last_refreshed_at: float | None = None

    @property
    def busy(self) -> bool:
        return self._pass_lock.locked()

    @property
    def generation(self) -> int:
        with self._state_lock:
            return self._generation

    @property
    def settings(self) -> ProjectionSettings:
        with self._state_lock:
            return self._settings

    def _install(self, holdings: dict[str, Holding], transactions: list[Transaction]) -> int:
        with self._state_lock:
            self._generation += 1
            self._holdings = holdings
            self._transactions = transactions
            self._enriched = _placeholders(holdings)
            self._stale = [item.symbol for item in self._enriched]
            return self._generation

    def _run_pass(self, reason: str) -> bool:
        with self._pass_lock:
            with self._state_lock:
                generation = self._generation
                holdings = [Holding(item.symbol, item.shares, item.cost_basis) for item in self._holdings.values()]
            result = self.gateway.enrich(holdings)
            with self._state_lock:
                if generation != self._generation:
                    LOGGER.warning(
                        "enrichment pass discarded: reason=%s generation=%s current=%s",
                        reason,
                        generation,
                        self._generation,
                    )
                    return False
                self._enriched = result.holdings
                self._stale = result.stale_symbols
                self._last_refreshed_at = self._clock()
                holdings_copy = dict(self._holdings)
                transactions_copy = list(self._transactions)
                settings = self._settings
            self.repository.save(holdings_copy, transactions_copy, settings, saved_at=self._last_refreshed_at)
            return True

    def import_csv(self, text: str) -> dict[str, Any]:
        try:
            parsed = parse_transactions(text)
        except FormatError as error:
            LOGGER.warning("import rejected: missing=%s", error.missing)
            return _error("format_error", str(error), missing=error.missing)

        aggregated = aggregate_positions(parsed.transactions)
        with self._state_lock:
            self._warnings = list(aggregated.warnings)
            self._skipped = list(parsed.skipped)
        self._install(aggregated.holdings, parsed.transactions)
        applied = self._run_pass("import")
        return {
            "ok": True,
            "shape": parsed.shape,
            "transactions": len(parsed.transactions),
            "holdings": len(aggregated.holdings),
            "skipped_rows": [_skip_payload(skip) for skip in parsed.skipped],
            "warnings": aggregated.warnings,
            "stale_symbols": self.stale_symbols(),
            "discarded": not applied,
        }

    def refresh(self) -> dict[str, Any]:
        applied = self._run_pass("refresh")
        with self._state_lock:
            refreshed_at = self._last_refreshed_at
            count = len(self._holdings)
        return {
            "ok": True,
            "discarded": not applied,
            "holdings": count,
            "last_refreshed_at": refreshed_at,
            "stale_symbols": self.stale_symbols(),
        }

    def load_snapshot(self) -> dict[str, Any]:
        snapshot = self.repository.load()
        if snapshot.settings is not None:
            with self._state_lock:
                self._settings = snapshot.settings
        self._install(snapshot.holdings, snapshot.transactions)
        stale = bool(snapshot.holdings) and self.repository.is_stale(
            snapshot, self.snapshot_stale_hours, now=self._clock()
        )
        LOGGER.info("snapshot loaded: holdings=%s stale=%s", len(snapshot.holdings), stale)
        return {"loaded": bool(snapshot.holdings), "holdings": len(snapshot.holdings), "stale": stale, "saved_at": snapshot.saved_at}

    def enriched_holdings(self) -> list[EnrichedHolding]:
        with self._state_lock:
            return list(self._enriched)

    def metrics(self) -> PortfolioMetrics | None:
        return calculate_metrics(self.enriched_holdings())

    def projection(self, settings: ProjectionSettings | None = None) -> ProjectionResult | None:
        return project_portfolio(self.metrics(), settings or self.settings)

    def recommendations(self) -> list[Recommendation]:
        enriched = self.enriched_holdings()
        metrics = calculate_metrics(enriched)
        settings = self.settings
        return generate_recommendations(metrics, project_portfolio(metrics, settings), len(enriched), settings)

    def ask(self, question: str) -> str:
        enriched = self.enriched_holdings()
        return answer_portfolio_question(question, enriched, calculate_metrics(enriched), self.recommendations())

    def stale_symbols(self) -> list[dict[str, str]]:
        with self._state_lock:
            symbols = list(self._stale)
        return [
            {"symbol": symbol, "message": f"No market data found for symbol: {symbol}. Check the ticker."}
            for symbol in symbols
        ]

    def list_transactions(self) -> list[dict[str, Any]]:
        with self._state_lock:
            return [asdict(item) for item in self._transactions]

    def update_settings(self, **changes: Any) -> ProjectionSettings:
        known = {item.name for item in fields(ProjectionSettings)}
        unknown = sorted(set(changes) - known)
        if unknown:
            raise ValueError(f"Unknown setting(s): {', '.join(unknown)}")
        candidate = replace(self.settings, **{key: value for key, value in changes.items() if value is not None})
        issues = candidate.validate()
        if issues:
            raise ValueError("; ".join(f"{issue.field}: {issue.message}" for issue in issues))
        with self._state_lock:
            self._settings = candidate
        self.repository.save_settings(candidate)
        return candidate

    def rename_symbol(self, old: str, new: str) -> dict[str, Any]:
        source = old.strip().upper()
        try:
            target = validate_symbol(new)
        except ValueError as error:
            return _error("invalid_symbol", str(error))
        with self._state_lock:
            holdings = {key: Holding(item.symbol, item.shares, item.cost_basis) for key, item in self._holdings.items()}
            transactions = list(self._transactions)
        moved = holdings.pop(source, None)
        if moved is None:
            return _error("not_found", f"No holding for symbol: {source}")
        existing = holdings.get(target)
        if existing is None:
            holdings[target] = Holding(target, moved.shares, moved.cost_basis)
        else:
            existing.shares += moved.shares
            existing.cost_basis += moved.cost_basis
        transactions = [replace(item, ticker=target) if item.ticker == source else item for item in transactions]
        LOGGER.info("symbol renamed: old=%s new=%s", source, target)
        self._install(holdings, transactions)
        applied = self._run_pass("rename")
        return {"ok": True, "old": source, "new": target, "discarded": not applied, "stale_symbols": self.stale_symbols()}

    def export_csv(self) -> str:
        rows = [
            {
                "symbol": item.symbol,
                "shares": item.shares,
                "buyPrice": item.average_unit_cost or 0.0,
                "currentPrice": item.current_price,
                "totalCost": item.cost_basis,
                "currentValue": item.market_value,
                "profitLoss": item.unrealized_pl,
                "profitLossPercent": item.unrealized_pl_percent,
            }
            for item in self.enriched_holdings()
        ]
        frame = pd.DataFrame(rows, columns=EXPORT_COLUMNS)
        buffer = io.StringIO()
        frame.to_csv(buffer, index=False, float_format="%.2f", lineterminator="\n")
        return buffer.getvalue()

    def report(self) -> dict[str, Any]:
        enriched = self.enriched_holdings()
        metrics = calculate_metrics(enriched)
        settings = self.settings
        try:
            projection = project_portfolio(metrics, settings)
        except ValueError as error:
            LOGGER.warning("projection skipped: %s", error)
            projection = None
        recommendations = generate_recommendations(metrics, projection, len(enriched), settings)
        best = top_performer(enriched)
        worst = worst_performer(enriched)
        with self._state_lock:
            transactions = list(self._transactions)
            warnings = list(self._warnings)
            skipped = list(self._skipped)
            refreshed_at = self._last_refreshed_at
        return {
            "holdings": [_holding_payload(item) for item in enriched],
            "metrics": _metrics_payload(metrics),
            "allocation": calculate_allocation(enriched),
            "projection": projection_payload(projection),
            "recommendations": [asdict(item) for item in recommendations],
            "dividends_received": dividend_income_by_symbol(transactions),
            "top_performer": best.symbol if best else None,
            "worst_performer": worst.symbol if worst else None,
            "stale_symbols": self.stale_symbols(),
            "warnings": warnings,
            "skipped_rows": [_skip_payload(skip) for skip in skipped],
            "settings": asdict(settings),
            "busy": self.busy,
            "last_refreshed_at": refreshed_at,
        }


def _holding_payload(item: EnrichedHolding) -> dict[str, Any]:
    return {
        "symbol": item.symbol,
        "shares": item.shares,
        "cost_basis": item.cost_basis,
        "average_unit_cost": item.average_unit_cost,
        "current_price": item.current_price,
        "market_value": item.market_value,
        "unrealized_pl": item.unrealized_pl,
        "unrealized_pl_percent": item.unrealized_pl_percent,
        "annual_dividend_income": item.annual_dividend_income,
        "stale": item.stale,
        "source": item.quote.source if item.quote else None,
        "history": [asdict(point) for point in item.history],
    }


def _metrics_payload(metrics: PortfolioMetrics | None) -> dict[str, Any] | None:
    if metrics is None:
        return None
    payload = asdict(metrics)
    payload["monthly_dividend_income"] = metrics.monthly_dividend_income
    return payload


def projection_payload(projection: ProjectionResult | None) -> dict[str, Any] | None:
    if projection is None:
        return None
    return asdict(projection)
