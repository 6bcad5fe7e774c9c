"""Compounding growth projection and income goal seeking."""

from __future__ import annotations

from income_planner.portfolio.models import (
    PortfolioMetrics,
    ProjectionResult,
    ProjectionScenario,
    ProjectionSettings,
    YearlyPoint,
)

MAX_EXTRA_YEARS = 50
SCENARIO_NAMES = ("conservative", "target", "optimistic")


def _step(value: float, monthly_contribution: float, rate_percent: float) -> float:
    # Contribution lands before growth is applied; the order is load-bearing.
    return (value + monthly_contribution * 12) * (1 + rate_percent / 100)


def simulate_scenario(
    name: str,
    start_value: float,
    monthly_contribution: float,
    annual_growth_rate_percent: float,
    dividend_yield_percent: float,
    years: int,
) -> ProjectionScenario:
    value = start_value
    contributed = 0.0
    points: list[YearlyPoint] = []
    for year in range(1, years + 1):
        value = _step(value, monthly_contribution, annual_growth_rate_percent)
        contributed += monthly_contribution * 12
        income = value * dividend_yield_percent / 100
        points.append(
            YearlyPoint(
                year=year,
                portfolio_value=value,
                annual_income=income,
                monthly_income=income / 12,
                cumulative_contributions=contributed,
            )
        )
    return ProjectionScenario(
        name=name,
        annual_growth_rate_percent=annual_growth_rate_percent,
        yearly_points=tuple(points),
    )


def _scenario_rates(settings: ProjectionSettings) -> dict[str, float]:
    return {
        "conservative": settings.conservative_growth_percent,
        "target": settings.target_growth_percent,
        "optimistic": settings.optimistic_growth_percent,
    }


def run_projection(
    current_value: float,
    current_annual_income: float,
    settings: ProjectionSettings,
) -> ProjectionResult:
    """Simulate the three growth scenarios and search for the income goal.

    The goal is the portfolio value that produces ``target_annual_income`` at
    the target yield. The target scenario is scanned year by year; past the
    horizon the search continues at the same contribution and target rate for
    at most ``MAX_EXTRA_YEARS`` more years.
    """
    issues = settings.validate()
    if issues:
        raise ValueError("; ".join(f"{issue.field}: {issue.message}" for issue in issues))

    horizon = int(settings.horizon_years)
    target_yield = settings.target_dividend_yield_percent
    scenarios = {
        name: simulate_scenario(name, current_value, settings.monthly_contribution, rate, target_yield, horizon)
        for name, rate in _scenario_rates(settings).items()
    }
    needed_value = settings.target_annual_income / (target_yield / 100)

    target = scenarios["target"]
    years_to_goal: int | None = None
    for point in target.yearly_points:
        if point.portfolio_value >= needed_value:
            years_to_goal = point.year
            break
    reached_within_horizon = years_to_goal is not None

    horizon_value = target.yearly_points[-1].portfolio_value
    if years_to_goal is None:
        value = horizon_value
        for extra in range(1, MAX_EXTRA_YEARS + 1):
            value = _step(value, settings.monthly_contribution, settings.target_growth_percent)
            if value >= needed_value:
                years_to_goal = horizon + extra
                break

    goal_reached = years_to_goal is not None
    return ProjectionResult(
        scenarios=scenarios,
        needed_value=needed_value,
        goal_reached=goal_reached,
        reached_within_horizon=reached_within_horizon,
        years_to_goal=years_to_goal if years_to_goal is not None else horizon + MAX_EXTRA_YEARS,
        gap=0.0 if reached_within_horizon else max(0.0, needed_value - horizon_value),
        starting_value=current_value,
        starting_annual_income=current_annual_income,
        horizon_years=horizon,
    )


def project_portfolio(metrics: PortfolioMetrics | None, settings: ProjectionSettings) -> ProjectionResult | None:
    if metrics is None:
        return None
    return run_projection(metrics.total_current_value, metrics.total_annual_dividend_income, settings)
