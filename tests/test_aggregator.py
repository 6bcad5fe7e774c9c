import pytest

from income_planner.portfolio.aggregator import aggregate_positions, dividend_income_by_symbol, trade_amount
from income_planner.portfolio.models import Transaction


def _tx(action: str, ticker: str, quantity: float, price: float, total: float | None = None) -> Transaction:
    return Transaction(date=None, ticker=ticker, action=action, quantity=quantity, price_per_unit=price, total_amount=total)


def test_buys_accumulate_average_cost() -> None:
    result = aggregate_positions([_tx("BUY", "AAPL", 10, 100), _tx("BUY", "AAPL", 10, 120)])
    holding = result.holdings["AAPL"]
    assert holding.shares == 20
    assert holding.cost_basis == 2200
    assert holding.average_unit_cost == 110
    assert result.warnings == []


def test_cost_basis_sum_matches_buys_minus_sells() -> None:
    transactions = [
        _tx("BUY", "AAPL", 10, 100),
        _tx("BUY", "MSFT", 5, 50),
        _tx("SELL", "AAPL", 4, 110, total=-440.0),
        _tx("DIVIDEND", "AAPL", 0, 0, total=2.4),
    ]
    result = aggregate_positions(transactions)
    assert sum(item.cost_basis for item in result.holdings.values()) == pytest.approx(1000 + 250 - 440)
    assert result.holdings["AAPL"].shares == 6


def test_selling_to_zero_removes_holding() -> None:
    result = aggregate_positions([_tx("BUY", "T", 5, 20), _tx("SELL", "T", 5, 22)])
    assert "T" not in result.holdings
    assert result.warnings == []


def test_oversell_closes_position_with_warning() -> None:
    result = aggregate_positions([_tx("BUY", "T", 5, 20), _tx("SELL", "T", 8, 22)])
    assert "T" not in result.holdings
    assert len(result.warnings) == 1
    assert "exceeds" in result.warnings[0]


def test_sell_without_position_is_ignored() -> None:
    result = aggregate_positions([_tx("SELL", "KO", 1, 60)])
    assert result.holdings == {}
    assert "no tracked position" in result.warnings[0]


def test_negative_cost_basis_is_clamped() -> None:
    result = aggregate_positions([_tx("BUY", "PFE", 10, 10), _tx("SELL", "PFE", 5, 30)])
    holding = result.holdings["PFE"]
    assert holding.shares == 5
    assert holding.cost_basis == 0
    assert "clamped" in result.warnings[0]


def test_average_unit_cost_undefined_at_zero_shares() -> None:
    result = aggregate_positions([_tx("BUY", "O", 1, 50)])
    holding = result.holdings["O"]
    holding.shares = 0
    assert holding.average_unit_cost is None


def test_trade_amount_prefers_absolute_total() -> None:
    assert trade_amount(_tx("SELL", "O", 2, 50, total=-99.5)) == 99.5
    assert trade_amount(_tx("BUY", "O", 2, 50)) == 100


def test_dividend_income_by_symbol() -> None:
    transactions = [
        _tx("DIVIDEND", "AAPL", 0, 0, total=2.4),
        _tx("DIVIDEND", "AAPL", 0, 0, total=2.6),
        _tx("DIVIDEND", "KO", 10, 0.46),
        _tx("CASH", "", 0, 0, total=500),
    ]
    assert dividend_income_by_symbol(transactions) == pytest.approx({"AAPL": 5.0, "KO": 4.6})
