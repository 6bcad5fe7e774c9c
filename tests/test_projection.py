import pytest

from income_planner.portfolio.models import PortfolioMetrics, ProjectionSettings
from income_planner.portfolio.projection import (
    MAX_EXTRA_YEARS,
    project_portfolio,
    run_projection,
    simulate_scenario,
)


def test_contribution_is_added_before_growth() -> None:
    scenario = simulate_scenario("target", 10000, 500, 5.0, 4.0, 1)
    point = scenario.yearly_points[0]
    assert point.portfolio_value == pytest.approx(16800)
    assert point.annual_income == pytest.approx(672)
    assert point.monthly_income == pytest.approx(56)
    assert point.cumulative_contributions == 6000


def test_goal_reached_in_first_year() -> None:
    settings = ProjectionSettings(monthly_contribution=500, target_annual_income=3000, target_dividend_yield_percent=4.0)
    result = run_projection(80000, 3200, settings)
    assert result.needed_value == pytest.approx(75000)
    assert result.goal_reached is True
    assert result.reached_within_horizon is True
    assert result.years_to_goal == 1
    assert result.gap == 0


def test_three_scenarios_over_horizon() -> None:
    settings = ProjectionSettings(horizon_years=5)
    result = run_projection(10000, 400, settings)
    assert set(result.scenarios) == {"conservative", "target", "optimistic"}
    finals = [result.scenarios[name].final_point.portfolio_value for name in ("conservative", "target", "optimistic")]
    assert finals == sorted(finals)
    assert all(len(scenario.yearly_points) == 5 for scenario in result.scenarios.values())


def test_goal_reached_beyond_horizon() -> None:
    settings = ProjectionSettings(
        monthly_contribution=500,
        target_annual_income=12000,
        target_dividend_yield_percent=4.0,
        horizon_years=1,
        target_growth_percent=7.0,
    )
    result = run_projection(0, 0, settings)
    assert result.needed_value == pytest.approx(300000)
    assert result.goal_reached is True
    assert result.reached_within_horizon is False
    assert result.years_to_goal == 22
    assert result.gap == pytest.approx(300000 - 6420)


def test_goal_never_reached() -> None:
    settings = ProjectionSettings(
        monthly_contribution=0,
        target_annual_income=12000,
        horizon_years=3,
        conservative_growth_percent=0.0,
        target_growth_percent=0.0,
        optimistic_growth_percent=0.0,
    )
    result = run_projection(1000, 40, settings)
    assert result.goal_reached is False
    assert result.years_to_goal == 3 + MAX_EXTRA_YEARS
    assert result.gap == pytest.approx(300000 - 1000)


def test_invalid_settings_raise_value_error() -> None:
    with pytest.raises(ValueError) as excinfo:
        run_projection(1000, 0, ProjectionSettings(target_dividend_yield_percent=0, horizon_years=0))
    assert "target_dividend_yield_percent" in str(excinfo.value)
    assert "horizon_years" in str(excinfo.value)


def test_project_portfolio_uses_metrics() -> None:
    assert project_portfolio(None, ProjectionSettings()) is None
    metrics = PortfolioMetrics(
        total_invested=9000,
        total_current_value=10000,
        total_profit_loss=1000,
        total_profit_loss_percent=11.1,
        count_gainers=1,
        count_losers=0,
        total_annual_dividend_income=400,
        average_dividend_yield=4.0,
        holding_count=1,
        stale_count=0,
    )
    result = project_portfolio(metrics, ProjectionSettings())
    assert result is not None
    assert result.starting_value == 10000
    assert result.starting_annual_income == 400
