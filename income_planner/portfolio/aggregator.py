"""Average-cost position aggregation over an ordered transaction log."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable

from income_planner.portfolio.models import Holding, Transaction

LOGGER = logging.getLogger(__name__)
SHARE_EPSILON = 1e-9


@dataclass
class AggregationResult:
    holdings: dict[str, Holding]
    warnings: list[str] = field(default_factory=list)


def trade_amount(transaction: Transaction) -> float:
    """Absolute cash amount of a trade, falling back to quantity x price."""
    if transaction.total_amount:
        return abs(transaction.total_amount)
    return abs(transaction.quantity * transaction.price_per_unit)


def aggregate_positions(transactions: Iterable[Transaction]) -> AggregationResult:
    """Fold transactions in file order into current holdings.

    Buys add shares and cost; sells remove shares and their cash amount from
    cost. A holding is dropped as soon as its shares reach zero. Selling more
    than is held clamps at zero and drops the holding. Dividend, cash and other
    rows do not affect holdings.
    """
    holdings: dict[str, Holding] = {}
    warnings: list[str] = []

    def _warn(message: str) -> None:
        warnings.append(message)
        LOGGER.warning("aggregation warning: %s", message)

    for transaction in transactions:
        symbol = transaction.ticker
        if transaction.action == "BUY":
            holding = holdings.setdefault(symbol, Holding(symbol=symbol, shares=0.0, cost_basis=0.0))
            holding.shares += transaction.quantity
            holding.cost_basis += trade_amount(transaction)
        elif transaction.action == "SELL":
            holding = holdings.get(symbol)
            if holding is None:
                _warn(f"SELL of {transaction.quantity:g} {symbol} ignored: no tracked position.")
                continue
            if transaction.quantity > holding.shares + SHARE_EPSILON:
                _warn(
                    f"SELL of {transaction.quantity:g} {symbol} exceeds tracked {holding.shares:g} shares; "
                    "position closed."
                )
                del holdings[symbol]
                continue
            holding.shares -= transaction.quantity
            holding.cost_basis -= trade_amount(transaction)
            if holding.shares <= SHARE_EPSILON:
                del holdings[symbol]
                continue
            if holding.cost_basis < 0:
                _warn(f"Cost basis for {symbol} fell below zero after SELL; clamped to 0.")
                holding.cost_basis = 0.0

    return AggregationResult(holdings=holdings, warnings=warnings)


def dividend_income_by_symbol(transactions: Iterable[Transaction]) -> dict[str, float]:
    """Received dividend cash per ticker, from DIVIDEND rows of the log."""
    totals: defaultdict[str, float] = defaultdict(float)
    for transaction in transactions:
        if transaction.action != "DIVIDEND" or not transaction.ticker:
            continue
        amount = transaction.total_amount
        if amount is None:
            amount = transaction.quantity * transaction.price_per_unit
        totals[transaction.ticker] += abs(amount)
    return dict(totals)
