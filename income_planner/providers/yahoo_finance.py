"""Yahoo Finance chart adapter with normalized outputs."""

from __future__ import annotations

import time
from urllib.parse import quote_plus

from income_planner.providers.http import as_float, fetch_json, unix_to_date
from income_planner.providers.models import DividendEvent, PricePoint, Quote

YAHOO_CHART_URL = "https://query1.finance.yahoo.com/v8/finance/chart"


class YahooFinanceClient:
    """Keyless provider backed by the public chart endpoint."""

    label = "Yahoo Finance"

    def __init__(self, timeout_seconds: float = 10.0) -> None:
        self.timeout_seconds = timeout_seconds

    def _chart(self, symbol: str, query: str) -> dict | None:
        encoded = quote_plus(symbol)
        url = f"{YAHOO_CHART_URL}/{encoded}?{query}"
        data = fetch_json(url, provider="yahoo", timeout_seconds=self.timeout_seconds)
        results = ((data or {}).get("chart") or {}).get("result") if isinstance(data, dict) else None
        if not isinstance(results, list) or not results or not isinstance(results[0], dict):
            return None
        return results[0]

    def get_quote(self, symbol: str) -> Quote | None:
        result = self._chart(symbol, "range=1d&interval=1d")
        if not result:
            return None
        meta = result.get("meta") or {}
        price = as_float(meta.get("regularMarketPrice"))
        if price is None or price <= 0:
            return None
        timestamp = as_float(meta.get("regularMarketTime"))
        return Quote(symbol=symbol, price=price, as_of=timestamp or time.time(), source="yahoo")

    def get_history(self, symbol: str, from_unix: int, to_unix: int) -> list[PricePoint] | None:
        result = self._chart(symbol, f"period1={from_unix}&period2={to_unix}&interval=1d")
        if not result:
            return None
        stamps = result.get("timestamp") or []
        quotes = ((result.get("indicators") or {}).get("quote") or [{}])[0] or {}
        closes = quotes.get("close") or []
        points: list[PricePoint] = []
        for stamp, close in zip(stamps, closes):
            value = as_float(close)
            if value is None or value <= 0 or not isinstance(stamp, (int, float)):
                continue
            points.append(PricePoint(date=unix_to_date(stamp), close=value))
        points.sort(key=lambda point: point.date)
        return points or None

    def get_dividends(self, symbol: str, from_unix: int, to_unix: int) -> list[DividendEvent] | None:
        result = self._chart(symbol, f"period1={from_unix}&period2={to_unix}&interval=1mo&events=div")
        if not result:
            return None
        dividends = (result.get("events") or {}).get("dividends") or {}
        if not isinstance(dividends, dict):
            return None
        events: list[DividendEvent] = []
        for item in dividends.values():
            if not isinstance(item, dict):
                continue
            amount = as_float(item.get("amount"))
            stamp = item.get("date")
            if amount is None or amount <= 0 or not isinstance(stamp, (int, float)):
                continue
            events.append(DividendEvent(symbol=symbol, date=unix_to_date(stamp), amount=amount, source="yahoo"))
        events.sort(key=lambda event: event.date)
        return events or None
