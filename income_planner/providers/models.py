"""Normalized market data models shared across providers and the gateway."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ProviderName = Literal["finnhub", "fmp", "eodhd", "yahoo"]


@dataclass(frozen=True)
class Quote:
    symbol: str
    price: float
    as_of: float
    source: ProviderName


@dataclass(frozen=True)
class PricePoint:
    date: str
    close: float


@dataclass(frozen=True)
class DividendEvent:
    symbol: str
    date: str
    amount: float
    source: ProviderName


@dataclass(frozen=True)
class DividendSummary:
    symbol: str
    trailing_annual_amount: float
    last_payment_date: str | None = None
    source: ProviderName | None = None
