"""Typed portfolio models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from income_planner.providers.models import DividendSummary, PricePoint, Quote

Action = Literal["BUY", "SELL", "DIVIDEND", "CASH", "OTHER"]
Severity = Literal["high", "medium", "low"]
ACTIONS: tuple[Action, ...] = ("BUY", "SELL", "DIVIDEND", "CASH", "OTHER")


@dataclass(frozen=True)
class Transaction:
    date: str | None
    ticker: str
    action: Action
    quantity: float
    price_per_unit: float
    total_amount: float | None = None


@dataclass(frozen=True)
class RowSkip:
    row: int | None
    reason: str
    raw: str = ""


@dataclass
class Holding:
    symbol: str
    shares: float
    cost_basis: float

    @property
    def average_unit_cost(self) -> float | None:
        if self.shares <= 0:
            return None
        return self.cost_basis / self.shares


@dataclass(frozen=True)
class EnrichedHolding:
    symbol: str
    shares: float
    cost_basis: float
    average_unit_cost: float | None
    current_price: float
    market_value: float
    unrealized_pl: float
    unrealized_pl_percent: float
    annual_dividend_income: float
    stale: bool
    quote: Quote | None = None
    dividend: DividendSummary | None = None
    history: tuple[PricePoint, ...] = ()


@dataclass(frozen=True)
class PortfolioMetrics:
    total_invested: float
    total_current_value: float
    total_profit_loss: float
    total_profit_loss_percent: float
    count_gainers: int
    count_losers: int
    total_annual_dividend_income: float
    average_dividend_yield: float
    holding_count: int
    stale_count: int

    @property
    def monthly_dividend_income(self) -> float:
        return self.total_annual_dividend_income / 12.0


@dataclass
class ValidationIssue:
    field: str
    message: str
    row: int | None = None
    code: str = "invalid_value"


@dataclass
class ProjectionSettings:
    monthly_contribution: float = 500.0
    target_annual_income: float = 12000.0
    target_dividend_yield_percent: float = 4.0
    horizon_years: int = 10
    conservative_growth_percent: float = 4.0
    target_growth_percent: float = 7.0
    optimistic_growth_percent: float = 10.0

    def validate(self) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        if self.target_dividend_yield_percent <= 0:
            issues.append(
                ValidationIssue(
                    field="target_dividend_yield_percent",
                    code="invalid_yield",
                    message="Target dividend yield must be greater than 0.",
                )
            )
        if int(self.horizon_years) < 1:
            issues.append(
                ValidationIssue(field="horizon_years", code="invalid_horizon", message="Horizon must be at least 1 year.")
            )
        if self.monthly_contribution < 0:
            issues.append(
                ValidationIssue(
                    field="monthly_contribution",
                    code="invalid_contribution",
                    message="Monthly contribution cannot be negative.",
                )
            )
        if self.target_annual_income < 0:
            issues.append(
                ValidationIssue(
                    field="target_annual_income",
                    code="invalid_income",
                    message="Target annual income cannot be negative.",
                )
            )
        for name in ("conservative_growth_percent", "target_growth_percent", "optimistic_growth_percent"):
            if getattr(self, name) <= -100:
                issues.append(
                    ValidationIssue(field=name, code="invalid_growth", message="Growth rate must be above -100%.")
                )
        return issues


@dataclass(frozen=True)
class YearlyPoint:
    year: int
    portfolio_value: float
    annual_income: float
    monthly_income: float
    cumulative_contributions: float


@dataclass(frozen=True)
class ProjectionScenario:
    name: str
    annual_growth_rate_percent: float
    yearly_points: tuple[YearlyPoint, ...]

    @property
    def final_point(self) -> YearlyPoint | None:
        return self.yearly_points[-1] if self.yearly_points else None


@dataclass(frozen=True)
class ProjectionResult:
    scenarios: dict[str, ProjectionScenario]
    needed_value: float
    goal_reached: bool
    reached_within_horizon: bool
    years_to_goal: int
    gap: float
    starting_value: float
    starting_annual_income: float
    horizon_years: int


@dataclass(frozen=True)
class Recommendation:
    key: str
    title: str
    message: str
    severity: Severity
    suggested_action: str | None = None
    values: dict[str, float] = field(default_factory=dict)
