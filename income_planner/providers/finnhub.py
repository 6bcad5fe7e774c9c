"""Finnhub API client with normalized response models."""

from __future__ import annotations

import time
from urllib.parse import urlencode

from income_planner.providers.http import ProviderError, as_float, fetch_json, unix_to_date
from income_planner.providers.models import DividendEvent, PricePoint, Quote

FINNHUB_BASE_URL = "https://finnhub.io/api/v1"


class FinnhubClient:
    """Thin wrapper around the Finnhub REST endpoints used by the gateway."""

    label = "Finnhub"

    def __init__(self, api_key: str, timeout_seconds: float = 10.0) -> None:
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds

    def _request(self, endpoint: str, query: dict[str, str | int | float | None]) -> object:
        params: dict[str, str | int | float] = {}
        for key, value in query.items():
            if value is not None:
                params[key] = value
        params["token"] = self.api_key
        url = f"{FINNHUB_BASE_URL}{endpoint}?{urlencode(params)}"
        data = fetch_json(url, provider="finnhub", timeout_seconds=self.timeout_seconds)
        if isinstance(data, dict) and data.get("error"):
            text = str(data["error"])
            lower = text.lower()
            if "limit" in lower:
                raise ProviderError("finnhub", "RATE_LIMIT", text)
            if "token" in lower or "auth" in lower:
                raise ProviderError("finnhub", "AUTH", text)
            raise ProviderError("finnhub", "UPSTREAM", text)
        return data

    def get_quote(self, symbol: str) -> Quote | None:
        data = self._request("/quote", {"symbol": symbol})
        if not isinstance(data, dict):
            return None
        # Finnhub answers unknown symbols with c=0 instead of an error.
        price = as_float(data.get("c"))
        if price is None or price <= 0:
            return None
        timestamp = as_float(data.get("t"))
        return Quote(symbol=symbol, price=price, as_of=timestamp or time.time(), source="finnhub")

    def get_history(self, symbol: str, from_unix: int, to_unix: int) -> list[PricePoint] | None:
        data = self._request(
            "/stock/candle",
            {"symbol": symbol, "resolution": "D", "from": from_unix, "to": to_unix},
        )
        if not isinstance(data, dict) or data.get("s") != "ok":
            return None
        closes = data.get("c") or []
        stamps = data.get("t") or []
        points: list[PricePoint] = []
        for stamp, close in zip(stamps, closes):
            value = as_float(close)
            if value is None or value <= 0 or not isinstance(stamp, (int, float)):
                continue
            points.append(PricePoint(date=unix_to_date(stamp), close=value))
        points.sort(key=lambda point: point.date)
        return points or None

    def get_dividends(self, symbol: str, from_unix: int, to_unix: int) -> list[DividendEvent] | None:
        data = self._request("/stock/dividend", {"symbol": symbol, "from": unix_to_date(from_unix), "to": unix_to_date(to_unix)})
        if not isinstance(data, list):
            return None
        events: list[DividendEvent] = []
        for item in data:
            if not isinstance(item, dict):
                continue
            amount = as_float(item.get("amount"))
            date = item.get("payDate") or item.get("date")
            if amount is None or amount <= 0 or not isinstance(date, str):
                continue
            events.append(DividendEvent(symbol=symbol, date=date, amount=amount, source="finnhub"))
        events.sort(key=lambda event: event.date)
        return events or None
