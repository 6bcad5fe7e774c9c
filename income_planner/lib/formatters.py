"""Response formatting helpers."""

from __future__ import annotations

from typing import Sequence

from income_planner.portfolio.models import PortfolioMetrics, ProjectionResult, Recommendation

FINANCIAL_DISCLAIMER = "Informational use only. This is not financial advice."
SEVERITY_LABELS = {"high": "HIGH", "medium": "MEDIUM", "low": "LOW"}


def format_money(value: float | None) -> str:
    if value is None:
        return "n/a"
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def format_percent(value: float | None, signed: bool = False) -> str:
    if value is None:
        return "n/a"
    return f"{value:+.2f}%" if signed else f"{value:.2f}%"


def format_response(
    title: str,
    lines: list[str],
    source: str | None = None,
    warning: str | None = None,
    include_disclaimer: bool = True,
) -> str:
    chunks: list[str] = [title]
    if source:
        chunks.append(f"Source: {source}")
    if warning:
        chunks.append(f"Warning: {warning}")
    chunks.extend(lines)
    if include_disclaimer:
        chunks.extend(["---", FINANCIAL_DISCLAIMER])
    return "\n".join(chunks)


def line_money(label: str, value: float | None) -> str:
    return f"{label}: {format_money(value)}"


def line_percent(label: str, value: float | None) -> str:
    return f"{label}: {format_percent(value)}"


def render_recommendations(recommendations: Sequence[Recommendation]) -> str:
    if not recommendations:
        return format_response("Recommendations", ["No recommendations right now."])
    lines: list[str] = []
    for idx, item in enumerate(recommendations, start=1):
        lines.append(f"{idx}. [{SEVERITY_LABELS[item.severity]}] {item.title}: {item.message}")
        if item.suggested_action:
            lines.append(f"   Action: {item.suggested_action}")
    return format_response("Recommendations", lines)


def render_metrics(metrics: PortfolioMetrics | None) -> str:
    if metrics is None:
        return format_response("Portfolio Metrics", ["No holdings loaded."], include_disclaimer=False)
    lines = [
        line_money("Invested", metrics.total_invested),
        line_money("Current value", metrics.total_current_value),
        f"Profit/loss: {format_money(metrics.total_profit_loss)} ({format_percent(metrics.total_profit_loss_percent, signed=True)})",
        f"Gainers/losers: {metrics.count_gainers}/{metrics.count_losers}",
        line_money("Annual dividends", metrics.total_annual_dividend_income),
        line_money("Monthly dividends", metrics.monthly_dividend_income),
        line_percent("Average yield", metrics.average_dividend_yield),
    ]
    if metrics.stale_count:
        lines.append(f"Holdings without market data: {metrics.stale_count}")
    return format_response("Portfolio Metrics", lines)


def render_projection(projection: ProjectionResult | None) -> str:
    if projection is None:
        return format_response("Income Projection", ["No holdings loaded."], include_disclaimer=False)
    lines = [line_money("Needed portfolio value", projection.needed_value)]
    for name, scenario in projection.scenarios.items():
        final = scenario.final_point
        if final is None:
            continue
        lines.append(
            f"{name.title()} ({format_percent(scenario.annual_growth_rate_percent)}): "
            f"{format_money(final.portfolio_value)} value, {format_money(final.monthly_income)}/month"
        )
    if projection.reached_within_horizon:
        lines.append(f"Goal reached in year {projection.years_to_goal}.")
    elif projection.goal_reached:
        lines.append(f"Goal reached in year {projection.years_to_goal}, beyond the horizon. Gap: {format_money(projection.gap)}")
    else:
        lines.append(f"Goal not reached within {projection.years_to_goal} years. Gap: {format_money(projection.gap)}")
    return format_response("Income Projection", lines)
