"""Holding valuation and portfolio-level metrics."""

from __future__ import annotations

import math
from typing import Iterable, Sequence

import numpy as np
import pandas as pd

from income_planner.portfolio.models import EnrichedHolding, Holding, PortfolioMetrics
from income_planner.providers.models import DividendSummary, PricePoint, Quote


def safe_ratio(numerator: float, denominator: float) -> float:
    """Divide, resolving zero or non-finite results to 0."""
    if not denominator:
        return 0.0
    value = numerator / denominator
    return value if math.isfinite(value) else 0.0


def build_enriched_holding(
    holding: Holding,
    quote: Quote | None,
    dividend: DividendSummary | None = None,
    history: Iterable[PricePoint] = (),
) -> EnrichedHolding:
    """Value one holding; without a quote it is stale and held at cost."""
    stale = quote is None or quote.price <= 0
    average_cost = holding.average_unit_cost
    if stale:
        current_price = average_cost or 0.0
        market_value = holding.cost_basis
    else:
        current_price = quote.price
        market_value = holding.shares * quote.price
    unrealized_pl = market_value - holding.cost_basis
    annual_income = holding.shares * dividend.trailing_annual_amount if dividend else 0.0
    return EnrichedHolding(
        symbol=holding.symbol,
        shares=holding.shares,
        cost_basis=holding.cost_basis,
        average_unit_cost=average_cost,
        current_price=current_price,
        market_value=market_value,
        unrealized_pl=unrealized_pl,
        unrealized_pl_percent=safe_ratio(unrealized_pl, holding.cost_basis) * 100.0,
        annual_dividend_income=annual_income if math.isfinite(annual_income) else 0.0,
        stale=stale,
        quote=None if stale else quote,
        dividend=dividend,
        history=tuple(history),
    )


def holdings_frame(enriched: Sequence[EnrichedHolding]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "Symbol": item.symbol,
                "Shares": item.shares,
                "Cost_Basis": item.cost_basis,
                "Market_Value": item.market_value,
                "PnL": item.unrealized_pl,
                "Annual_Income": item.annual_dividend_income,
                "Stale": item.stale,
            }
            for item in enriched
        ],
        columns=["Symbol", "Shares", "Cost_Basis", "Market_Value", "PnL", "Annual_Income", "Stale"],
    )


def calculate_metrics(enriched: Sequence[EnrichedHolding]) -> PortfolioMetrics | None:
    """Aggregate valuation figures; ``None`` for an empty portfolio."""
    if not enriched:
        return None
    frame = holdings_frame(enriched)
    invested = float(frame["Cost_Basis"].sum())
    current_value = float(frame["Market_Value"].sum())
    profit_loss = float(frame["PnL"].sum())
    annual_income = float(frame["Annual_Income"].sum())
    return PortfolioMetrics(
        total_invested=invested,
        total_current_value=current_value,
        total_profit_loss=profit_loss,
        total_profit_loss_percent=safe_ratio(profit_loss, invested) * 100.0,
        count_gainers=int((frame["PnL"] > 0).sum()),
        count_losers=int((frame["PnL"] < 0).sum()),
        total_annual_dividend_income=annual_income,
        average_dividend_yield=safe_ratio(annual_income, current_value) * 100.0,
        holding_count=int(len(frame)),
        stale_count=int(frame["Stale"].sum()),
    )


def calculate_allocation(enriched: Sequence[EnrichedHolding]) -> dict[str, float]:
    """Market-value weight per symbol, summing to 1 for a non-empty book."""
    if not enriched:
        return {}
    frame = holdings_frame(enriched)
    total = float(frame["Market_Value"].sum())
    weights = np.where(total > 0, frame["Market_Value"].to_numpy(dtype=float) / (total or 1.0), 0.0)
    return {symbol: float(weight) for symbol, weight in zip(frame["Symbol"], weights)}
