"""Rule-based advisory messages derived from metrics and projections."""

from __future__ import annotations

from income_planner.portfolio.models import (
    PortfolioMetrics,
    ProjectionResult,
    ProjectionSettings,
    Recommendation,
    Severity,
)

SEVERITY_RANK: dict[Severity, int] = {"high": 0, "medium": 1, "low": 2}
MIN_DIVERSIFIED_HOLDINGS = 10
REINVEST_MONTHLY_THRESHOLD = 100.0
VOLATILITY_THRESHOLD_PERCENT = 20.0


def _goal_timeline(projection: ProjectionResult, settings: ProjectionSettings) -> Recommendation:
    months = max(1, projection.horizon_years * 12)
    increase = projection.gap / months
    values = {
        "needed_value": projection.needed_value,
        "years_to_goal": float(projection.years_to_goal),
        "gap": projection.gap,
        "required_monthly_increase": increase,
    }
    if projection.reached_within_horizon:
        return Recommendation(
            key="goal_timeline",
            title="On track for income goal",
            message=(
                f"Target income of {settings.target_annual_income:.2f}/yr is reached in year "
                f"{projection.years_to_goal} of the {projection.horizon_years}-year plan."
            ),
            severity="low",
            values=values,
        )
    action = f"Increase monthly contribution by {increase:.2f} to close the gap within the horizon."
    if projection.goal_reached:
        return Recommendation(
            key="goal_timeline",
            title="Income goal beyond horizon",
            message=(
                f"At the target growth rate the goal is reached in {projection.years_to_goal} years, "
                f"past the {projection.horizon_years}-year horizon. Gap at horizon: {projection.gap:.2f}."
            ),
            severity="medium",
            suggested_action=action,
            values=values,
        )
    return Recommendation(
        key="goal_timeline",
        title="Income goal not reached",
        message=(
            f"The goal is not reached within {projection.years_to_goal} years. "
            f"Gap at horizon: {projection.gap:.2f} against a needed value of {projection.needed_value:.2f}."
        ),
        severity="high",
        suggested_action=action,
        values=values,
    )


def _yield_gap(metrics: PortfolioMetrics, settings: ProjectionSettings) -> Recommendation:
    target = settings.target_dividend_yield_percent
    actual = metrics.average_dividend_yield
    values = {"average_yield": actual, "target_yield": target, "difference": actual - target}
    if actual < target:
        return Recommendation(
            key="yield_gap",
            title="Dividend yield below target",
            message=f"Portfolio yield is {actual:.2f}% versus a {target:.2f}% target.",
            severity="medium",
            suggested_action="Shift new contributions toward higher-yielding holdings.",
            values=values,
        )
    return Recommendation(
        key="yield_gap",
        title="Dividend yield on target",
        message=f"Portfolio yield is {actual:.2f}%, at or above the {target:.2f}% target.",
        severity="low",
        values=values,
    )


def _diversification(holding_count: int) -> Recommendation | None:
    if holding_count >= MIN_DIVERSIFIED_HOLDINGS:
        return None
    return Recommendation(
        key="diversification",
        title="Limited diversification",
        message=f"The portfolio holds {holding_count} positions; fewer than {MIN_DIVERSIFIED_HOLDINGS} concentrates risk.",
        severity="medium",
        suggested_action="Add positions across different sectors.",
        values={"holding_count": float(holding_count)},
    )


def _scenario_spread(projection: ProjectionResult) -> Recommendation | None:
    conservative = projection.scenarios["conservative"].final_point
    optimistic = projection.scenarios["optimistic"].final_point
    if conservative is None or optimistic is None:
        return None
    return Recommendation(
        key="scenario_spread",
        title="Projection range",
        message=(
            f"After {projection.horizon_years} years the portfolio ranges from {conservative.portfolio_value:.2f} "
            f"(conservative) to {optimistic.portfolio_value:.2f} (optimistic)."
        ),
        severity="low",
        values={
            "conservative_final_value": conservative.portfolio_value,
            "optimistic_final_value": optimistic.portfolio_value,
            "spread": optimistic.portfolio_value - conservative.portfolio_value,
        },
    )


def _reinvestment(metrics: PortfolioMetrics) -> Recommendation | None:
    monthly = metrics.monthly_dividend_income
    if monthly <= REINVEST_MONTHLY_THRESHOLD:
        return None
    return Recommendation(
        key="reinvestment",
        title="Reinvest dividends",
        message=f"Dividends average {monthly:.2f} per month.",
        severity="low",
        suggested_action="Enable dividend reinvestment to compound income.",
        values={"monthly_dividend_income": monthly},
    )


def _volatility(metrics: PortfolioMetrics) -> Recommendation | None:
    change = metrics.total_profit_loss_percent
    if abs(change) <= VOLATILITY_THRESHOLD_PERCENT:
        return None
    if change < 0:
        return Recommendation(
            key="volatility",
            title="Large unrealized loss",
            message=f"The portfolio is down {abs(change):.2f}% against its cost basis.",
            severity="high",
            suggested_action="Review losing positions and confirm the thesis for each.",
            values={"total_profit_loss_percent": change},
        )
    return Recommendation(
        key="volatility",
        title="Large unrealized gain",
        message=f"The portfolio is up {change:.2f}% against its cost basis.",
        severity="medium",
        suggested_action="Consider rebalancing concentrated winners.",
        values={"total_profit_loss_percent": change},
    )


def generate_recommendations(
    metrics: PortfolioMetrics | None,
    projection: ProjectionResult | None,
    holding_count: int,
    settings: ProjectionSettings,
) -> list[Recommendation]:
    """Evaluate every rule independently and order results high to low."""
    if metrics is None or projection is None:
        return []
    candidates = [
        _goal_timeline(projection, settings),
        _yield_gap(metrics, settings),
        _diversification(holding_count),
        _scenario_spread(projection),
        _reinvestment(metrics),
        _volatility(metrics),
    ]
    found = [item for item in candidates if item is not None]
    return sorted(found, key=lambda item: SEVERITY_RANK[item.severity])
