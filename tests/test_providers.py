import pytest

from income_planner.providers import eodhd, finnhub, fmp, yahoo_finance
from income_planner.providers.eodhd import EodhdClient
from income_planner.providers.finnhub import FinnhubClient
from income_planner.providers.fmp import FmpClient
from income_planner.providers.http import ProviderError, as_float, unix_to_date
from income_planner.providers.yahoo_finance import YahooFinanceClient


def _stub(monkeypatch, module, payload) -> list[str]:
    urls: list[str] = []

    def _fetch(url, provider, timeout_seconds=10.0, headers=None, max_retries=2):
        urls.append(url)
        return payload

    monkeypatch.setattr(module, "fetch_json", _fetch)
    return urls


def test_finnhub_quote_requires_positive_price(monkeypatch) -> None:
    _stub(monkeypatch, finnhub, {"c": 0, "t": 0})
    assert FinnhubClient("key").get_quote("ZZZZ") is None

    urls = _stub(monkeypatch, finnhub, {"c": 189.5, "t": 1700000000})
    quote = FinnhubClient("key").get_quote("AAPL")
    assert quote is not None
    assert quote.price == 189.5
    assert quote.source == "finnhub"
    assert "token=key" in urls[0]


def test_finnhub_candles_sorted_and_no_data(monkeypatch) -> None:
    _stub(monkeypatch, finnhub, {"s": "ok", "c": [11.0, 10.0], "t": [1700000000, 1699913600]})
    points = FinnhubClient("key").get_history("AAPL", 1699300000, 1700000000)
    assert [point.close for point in points] == [10.0, 11.0]

    _stub(monkeypatch, finnhub, {"s": "no_data"})
    assert FinnhubClient("key").get_history("AAPL", 1699300000, 1700000000) is None


def test_finnhub_error_body_maps_to_rate_limit(monkeypatch) -> None:
    _stub(monkeypatch, finnhub, {"error": "API limit reached. Please try again later."})
    with pytest.raises(ProviderError) as excinfo:
        FinnhubClient("key").get_quote("AAPL")
    assert excinfo.value.code == "RATE_LIMIT"


def test_finnhub_dividends(monkeypatch) -> None:
    _stub(monkeypatch, finnhub, [{"amount": 0.24, "payDate": "2023-08-17"}, {"amount": 0, "payDate": "2023-05-18"}])
    events = FinnhubClient("key").get_dividends("AAPL", 1668000000, 1700000000)
    assert [(event.date, event.amount) for event in events] == [("2023-08-17", 0.24)]


def test_fmp_quote_and_dividends(monkeypatch) -> None:
    _stub(monkeypatch, fmp, [{"price": 61.2, "timestamp": 1700000000}])
    quote = FmpClient("key").get_quote("KO")
    assert quote is not None
    assert quote.source == "fmp"

    _stub(
        monkeypatch,
        fmp,
        {"historical": [{"dividend": 0.46, "paymentDate": "2023-10-02"}, {"dividend": 0.46, "date": "2023-06-15"}]},
    )
    events = FmpClient("key").get_dividends("KO", 1668000000, 1700000000)
    assert [event.date for event in events] == ["2023-06-15", "2023-10-02"]


def test_eodhd_adds_exchange_suffix_and_rejects_na(monkeypatch) -> None:
    urls = _stub(monkeypatch, eodhd, {"close": "NA"})
    assert EodhdClient("key").get_quote("VZ") is None
    assert "/real-time/VZ.US?" in urls[0]

    urls = _stub(monkeypatch, eodhd, {"close": 38.5, "timestamp": 1700000000})
    quote = EodhdClient("key").get_quote("VOD.LSE")
    assert quote is not None
    assert quote.price == 38.5
    assert "/real-time/VOD.LSE?" in urls[0]


def test_yahoo_chart_dividend_events(monkeypatch) -> None:
    payload = {
        "chart": {
            "result": [
                {
                    "meta": {"regularMarketPrice": 30.1},
                    "events": {"dividends": {"1": {"amount": 0.55, "date": 1696204800}}},
                }
            ]
        }
    }
    _stub(monkeypatch, yahoo_finance, payload)
    client = YahooFinanceClient()
    assert client.get_quote("PFE").price == 30.1
    events = client.get_dividends("PFE", 1668000000, 1700000000)
    assert events[0].amount == 0.55
    assert events[0].date == unix_to_date(1696204800)


def test_yahoo_empty_result_is_none(monkeypatch) -> None:
    _stub(monkeypatch, yahoo_finance, {"chart": {"result": None}})
    assert YahooFinanceClient().get_quote("ZZZZ") is None


def test_as_float_rejects_non_finite() -> None:
    assert as_float("1.5") == 1.5
    assert as_float("nan") is None
    assert as_float(True) is None
