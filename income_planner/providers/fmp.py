"""Financial Modeling Prep adapter."""

from __future__ import annotations

import time
from urllib.parse import quote_plus

from income_planner.providers.http import as_float, fetch_json, unix_to_date
from income_planner.providers.models import DividendEvent, PricePoint, Quote


class FmpClient:
    label = "FMP"

    def __init__(self, api_key: str, timeout_seconds: float = 10.0) -> None:
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.base = "https://financialmodelingprep.com/api/v3"

    def _get(self, path: str) -> object:
        sep = "&" if "?" in path else "?"
        url = f"{self.base}{path}{sep}apikey={self.api_key}"
        return fetch_json(
            url,
            provider="fmp",
            timeout_seconds=self.timeout_seconds,
            headers={"apikey": self.api_key},
        )

    def get_quote(self, symbol: str) -> Quote | None:
        encoded = quote_plus(symbol)
        data = self._get(f"/quote/{encoded}")
        if not isinstance(data, list) or not data:
            return None
        item = data[0] if isinstance(data[0], dict) else None
        if not item:
            return None
        price = as_float(item.get("price"))
        if price is None or price <= 0:
            return None
        timestamp = as_float(item.get("timestamp"))
        return Quote(symbol=symbol, price=price, as_of=timestamp or time.time(), source="fmp")

    def get_history(self, symbol: str, from_unix: int, to_unix: int) -> list[PricePoint] | None:
        encoded = quote_plus(symbol)
        window = f"from={unix_to_date(from_unix)}&to={unix_to_date(to_unix)}"
        data = self._get(f"/historical-price-full/{encoded}?{window}")
        rows = data.get("historical") if isinstance(data, dict) else None
        if not isinstance(rows, list):
            return None
        points: list[PricePoint] = []
        for item in rows:
            if not isinstance(item, dict):
                continue
            close = as_float(item.get("close"))
            date = item.get("date")
            if close is None or close <= 0 or not isinstance(date, str):
                continue
            points.append(PricePoint(date=date[:10], close=close))
        points.sort(key=lambda point: point.date)
        return points or None

    def get_dividends(self, symbol: str, from_unix: int, to_unix: int) -> list[DividendEvent] | None:
        encoded = quote_plus(symbol)
        window = f"from={unix_to_date(from_unix)}&to={unix_to_date(to_unix)}"
        data = self._get(f"/historical-price-full/stock_dividend/{encoded}?{window}")
        historical = data.get("historical") if isinstance(data, dict) else None
        if not isinstance(historical, list):
            return None
        events: list[DividendEvent] = []
        for item in historical:
            if not isinstance(item, dict):
                continue
            amount = as_float(item.get("dividend"))
            date = item.get("paymentDate") or item.get("date")
            if amount is None or amount <= 0 or not isinstance(date, str):
                continue
            events.append(DividendEvent(symbol=symbol, date=date[:10], amount=amount, source="fmp"))
        events.sort(key=lambda event: event.date)
        return events or None
