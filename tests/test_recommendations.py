import pytest

from income_planner.portfolio.models import PortfolioMetrics, ProjectionSettings
from income_planner.portfolio.projection import run_projection
from income_planner.portfolio.recommendations import generate_recommendations


def _metrics(**overrides) -> PortfolioMetrics:
    values = {
        "total_invested": 10000.0,
        "total_current_value": 10500.0,
        "total_profit_loss": 500.0,
        "total_profit_loss_percent": 5.0,
        "count_gainers": 3,
        "count_losers": 1,
        "total_annual_dividend_income": 420.0,
        "average_dividend_yield": 4.0,
        "holding_count": 4,
        "stale_count": 0,
    }
    values.update(overrides)
    return PortfolioMetrics(**values)


def _keys(items) -> list[str]:
    return [item.key for item in items]


def test_empty_inputs_give_no_recommendations() -> None:
    assert generate_recommendations(None, None, 0, ProjectionSettings()) == []


def test_unmet_goal_is_high_and_sorted_first() -> None:
    settings = ProjectionSettings(
        monthly_contribution=0,
        target_annual_income=100000,
        horizon_years=2,
        conservative_growth_percent=0.0,
        target_growth_percent=0.0,
        optimistic_growth_percent=0.0,
    )
    metrics = _metrics()
    projection = run_projection(metrics.total_current_value, metrics.total_annual_dividend_income, settings)
    items = generate_recommendations(metrics, projection, 4, settings)
    assert items[0].key == "goal_timeline"
    assert items[0].severity == "high"
    assert items[0].values["required_monthly_increase"] == pytest.approx(projection.gap / 24)
    ranks = [{"high": 0, "medium": 1, "low": 2}[item.severity] for item in items]
    assert ranks == sorted(ranks)


def test_on_track_goal_is_low() -> None:
    settings = ProjectionSettings(target_annual_income=100, horizon_years=3)
    metrics = _metrics()
    projection = run_projection(metrics.total_current_value, 420.0, settings)
    items = generate_recommendations(metrics, projection, 12, settings)
    goal = next(item for item in items if item.key == "goal_timeline")
    assert goal.severity == "low"
    assert "diversification" not in _keys(items)


def test_diversification_reinvestment_and_yield_rules() -> None:
    settings = ProjectionSettings(target_dividend_yield_percent=5.0)
    metrics = _metrics(total_annual_dividend_income=1800.0, average_dividend_yield=3.5)
    projection = run_projection(metrics.total_current_value, 1800.0, settings)
    items = generate_recommendations(metrics, projection, 4, settings)
    keys = _keys(items)
    assert "diversification" in keys
    assert "reinvestment" in keys
    assert "scenario_spread" in keys
    yield_gap = next(item for item in items if item.key == "yield_gap")
    assert yield_gap.severity == "medium"
    assert yield_gap.values["difference"] == pytest.approx(-1.5)


def test_volatility_severity_depends_on_direction() -> None:
    settings = ProjectionSettings()
    loss = _metrics(total_profit_loss_percent=-25.0)
    gain = _metrics(total_profit_loss_percent=35.0)
    calm = _metrics(total_profit_loss_percent=10.0)
    for metrics, expected in ((loss, "high"), (gain, "medium")):
        projection = run_projection(metrics.total_current_value, 420.0, settings)
        items = generate_recommendations(metrics, projection, 4, settings)
        assert next(item for item in items if item.key == "volatility").severity == expected
    projection = run_projection(calm.total_current_value, 420.0, settings)
    assert "volatility" not in _keys(generate_recommendations(calm, projection, 4, settings))


def test_messages_use_plain_numbers() -> None:
    settings = ProjectionSettings()
    metrics = _metrics()
    projection = run_projection(metrics.total_current_value, 420.0, settings)
    for item in generate_recommendations(metrics, projection, 4, settings):
        assert "$" not in item.message
