"""EOD Historical Data adapter."""

from __future__ import annotations

import time
from urllib.parse import quote_plus, urlencode

from income_planner.providers.http import ProviderError, as_float, fetch_json, unix_to_date
from income_planner.providers.models import DividendEvent, PricePoint, Quote

EODHD_BASE_URL = "https://eodhd.com/api"


def _exchange_symbol(symbol: str, default_exchange: str) -> str:
    # EODHD tickers carry an exchange suffix; bare symbols default to US listings.
    return symbol if "." in symbol else f"{symbol}.{default_exchange}"


class EodhdClient:
    label = "EODHD"

    def __init__(self, api_key: str, timeout_seconds: float = 10.0, default_exchange: str = "US") -> None:
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.default_exchange = default_exchange

    def _request(self, endpoint: str, symbol: str, params: dict[str, str] | None = None) -> object:
        query = dict(params or {})
        query["api_token"] = self.api_key
        query["fmt"] = "json"
        encoded = quote_plus(_exchange_symbol(symbol, self.default_exchange))
        url = f"{EODHD_BASE_URL}{endpoint}/{encoded}?{urlencode(query)}"
        data = fetch_json(url, provider="eodhd", timeout_seconds=self.timeout_seconds)
        if isinstance(data, dict) and data.get("errors"):
            message = str(data.get("message") or data["errors"])
            if "limit" in message.lower():
                raise ProviderError("eodhd", "RATE_LIMIT", message)
            raise ProviderError("eodhd", "UPSTREAM", message)
        return data

    def get_quote(self, symbol: str) -> Quote | None:
        data = self._request("/real-time", symbol)
        if not isinstance(data, dict):
            return None
        # Closed or unknown tickers report "NA" for close.
        price = as_float(data.get("close"))
        if price is None or price <= 0:
            return None
        timestamp = as_float(data.get("timestamp"))
        return Quote(symbol=symbol, price=price, as_of=timestamp or time.time(), source="eodhd")

    def get_history(self, symbol: str, from_unix: int, to_unix: int) -> list[PricePoint] | None:
        data = self._request("/eod", symbol, {"from": unix_to_date(from_unix), "to": unix_to_date(to_unix), "period": "d"})
        if not isinstance(data, list):
            return None
        points: list[PricePoint] = []
        for item in data:
            if not isinstance(item, dict):
                continue
            close = as_float(item.get("adjusted_close") or item.get("close"))
            date = item.get("date")
            if close is None or close <= 0 or not isinstance(date, str):
                continue
            points.append(PricePoint(date=date, close=close))
        points.sort(key=lambda point: point.date)
        return points or None

    def get_dividends(self, symbol: str, from_unix: int, to_unix: int) -> list[DividendEvent] | None:
        data = self._request("/div", symbol, {"from": unix_to_date(from_unix), "to": unix_to_date(to_unix)})
        if not isinstance(data, list):
            return None
        events: list[DividendEvent] = []
        for item in data:
            if not isinstance(item, dict):
                continue
            amount = as_float(item.get("value"))
            date = item.get("paymentDate") or item.get("date")
            if amount is None or amount <= 0 or not isinstance(date, str):
                continue
            events.append(DividendEvent(symbol=symbol, date=date, amount=amount, source="eodhd"))
        events.sort(key=lambda event: event.date)
        return events or None
