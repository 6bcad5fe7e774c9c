"""Performer ranking and the keyword portfolio assistant."""

from __future__ import annotations

from typing import Sequence

from income_planner.portfolio.models import EnrichedHolding, PortfolioMetrics, Recommendation


def top_performer(enriched: Sequence[EnrichedHolding]) -> EnrichedHolding | None:
    live = [item for item in enriched if not item.stale]
    if not live:
        return None
    return max(live, key=lambda item: item.unrealized_pl_percent)


def worst_performer(enriched: Sequence[EnrichedHolding]) -> EnrichedHolding | None:
    live = [item for item in enriched if not item.stale]
    if not live:
        return None
    return min(live, key=lambda item: item.unrealized_pl_percent)


def risk_level(metrics: PortfolioMetrics) -> str:
    swing = abs(metrics.total_profit_loss_percent)
    if metrics.holding_count < 5 or swing > 30:
        return "high"
    if metrics.holding_count < 10 or swing > 15:
        return "moderate"
    return "low"


def answer_portfolio_question(
    question: str,
    enriched: Sequence[EnrichedHolding],
    metrics: PortfolioMetrics | None,
    recommendations: Sequence[Recommendation],
) -> str:
    text = question.strip().lower()
    if metrics is None:
        return "No portfolio loaded yet. Import a transactions CSV first."

    if "recommend" in text:
        if not recommendations:
            return "No recommendations right now; the portfolio meets every rule."
        first = recommendations[0]
        action = f" {first.suggested_action}" if first.suggested_action else ""
        return f"{first.title}: {first.message}{action}"

    if "risk" in text:
        level = risk_level(metrics)
        return (
            f"Portfolio risk looks {level}: {metrics.holding_count} holdings and "
            f"{metrics.total_profit_loss_percent:+.2f}% unrealized return."
        )

    if "worst" in text:
        worst = worst_performer(enriched)
        if worst is None:
            return "No live prices are available to rank holdings."
        return f"Your weakest position is {worst.symbol} at {worst.unrealized_pl_percent:+.2f}%."

    if "best" in text or "top" in text:
        best = top_performer(enriched)
        if best is None:
            return "No live prices are available to rank holdings."
        return f"Your top performer is {best.symbol} with a {best.unrealized_pl_percent:+.2f}% return."

    return (
        f"The portfolio holds {metrics.holding_count} positions worth {metrics.total_current_value:.2f} "
        f"with {metrics.total_annual_dividend_income:.2f} in annual dividends. "
        "Ask about recommendations, risk, or your best and worst holdings."
    )
