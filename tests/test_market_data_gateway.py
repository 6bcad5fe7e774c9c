import threading

from income_planner.cache.ttl_cache import TTLCache
from income_planner.portfolio.models import Holding
from income_planner.providers.http import ProviderError
from income_planner.providers.models import DividendEvent, PricePoint, Quote
from income_planner.services.base import ServiceContext
from income_planner.services.market_data_gateway import FetchPolicy, MarketDataGateway, summarize_dividends
from income_planner.utils.rate_limit import RateLimiterRegistry

NOW = 1_700_000_000.0  # 2023-11-14


class _FakeProvider:
    label = "Fake"

    def __init__(self, prices=None, dividends=None, history=None, errors=None) -> None:
        self.prices = prices or {}
        self.dividends = dividends or {}
        self.history = history or {}
        self.errors = errors or {}
        self.quote_calls: list[str] = []
        self.history_windows: list[tuple[int, int]] = []

    def get_quote(self, symbol: str):
        self.quote_calls.append(symbol)
        if symbol in self.errors:
            raise self.errors[symbol]
        price = self.prices.get(symbol)
        return Quote(symbol=symbol, price=price, as_of=NOW, source="finnhub") if price is not None else None

    def get_history(self, symbol: str, from_unix: int, to_unix: int):
        self.history_windows.append((from_unix, to_unix))
        return self.history.get(symbol)

    def get_dividends(self, symbol: str, from_unix: int, to_unix: int):
        return self.dividends.get(symbol)


def _gateway(providers: dict, policy: FetchPolicy | None = None, sleep=None) -> MarketDataGateway:
    ctx = ServiceContext(providers=providers, cache=TTLCache(), rate_limiter=RateLimiterRegistry(0.0))
    return MarketDataGateway(
        ctx,
        policy or FetchPolicy(inter_call_delay_seconds=0.0),
        clock=lambda: NOW,
        sleep=sleep or (lambda _: None),
    )


def test_quote_is_cached_after_success() -> None:
    provider = _FakeProvider(prices={"AAPL": 189.5})
    gateway = _gateway({"finnhub": provider})
    first = gateway.quote("aapl")
    second = gateway.quote("AAPL")
    assert first.data is not None
    assert second.data == first.data
    assert provider.quote_calls == ["AAPL"]


def test_failed_quote_is_not_cached() -> None:
    provider = _FakeProvider()
    gateway = _gateway({"finnhub": provider})
    first = gateway.quote("ZZZZ")
    assert first.data is None
    assert first.error is not None
    assert first.error.code == "QUOTE_UNAVAILABLE"
    gateway.quote("ZZZZ")
    assert provider.quote_calls == ["ZZZZ", "ZZZZ"]


def test_quote_falls_back_in_provider_order() -> None:
    failing = _FakeProvider(errors={"AAPL": ProviderError("finnhub", "UPSTREAM", "down", 503)})
    backup = _FakeProvider(prices={"AAPL": 190.0})
    backup.label = "Backup"
    gateway = _gateway({"finnhub": failing, "fmp": backup})
    result = gateway.quote("AAPL")
    assert result.data is not None
    assert result.data.price == 190.0
    assert result.source == "Backup"


def test_unknown_symbol_is_stale_and_valued_at_cost() -> None:
    provider = _FakeProvider(prices={"AAPL": 150.0})
    gateway = _gateway({"finnhub": provider, "fmp": _FakeProvider(), "yahoo": _FakeProvider()})
    result = gateway.enrich([Holding("AAPL", 10, 1000), Holding("ZZZZ", 5, 50)])
    aapl, zzzz = result.holdings
    assert result.stale_symbols == ["ZZZZ"]
    assert zzzz.stale is True
    assert zzzz.quote is None
    assert zzzz.market_value == 50
    assert zzzz.unrealized_pl == 0
    assert aapl.stale is False
    assert aapl.market_value == 1500


def test_unexpected_provider_error_only_marks_that_symbol() -> None:
    provider = _FakeProvider(prices={"KO": 60.0, "PEP": 170.0}, errors={"BAD": RuntimeError("boom")})
    gateway = _gateway({"finnhub": provider})
    result = gateway.enrich([Holding("KO", 1, 50), Holding("BAD", 1, 10), Holding("PEP", 1, 160)])
    assert [item.stale for item in result.holdings] == [False, True, False]


def test_sequential_mode_sleeps_between_symbols() -> None:
    delays: list[float] = []
    provider = _FakeProvider(prices={"A": 1.0, "B": 2.0, "C": 3.0})
    gateway = _gateway({"finnhub": provider}, FetchPolicy(inter_call_delay_seconds=0.3), sleep=delays.append)
    gateway.enrich([Holding("A", 1, 1), Holding("B", 1, 1), Holding("C", 1, 1)])
    assert delays == [0.3, 0.3]


def test_concurrent_mode_matches_sequential_results() -> None:
    prices = {"A": 10.0, "B": 20.0, "C": 30.0}
    holdings = [Holding("A", 1, 5), Holding("B", 2, 30), Holding("C", 3, 100)]
    sequential = _gateway({"finnhub": _FakeProvider(prices=prices)}).enrich(holdings)
    concurrent = _gateway(
        {"finnhub": _FakeProvider(prices=prices)},
        FetchPolicy(mode="concurrent", max_workers=3, inter_call_delay_seconds=0.0),
    ).enrich(holdings)
    assert concurrent.holdings == sequential.holdings


def test_concurrent_timeout_marks_symbol_stale() -> None:
    release = threading.Event()

    class _SlowProvider(_FakeProvider):
        def get_quote(self, symbol: str):
            if symbol == "SLOW":
                release.wait(5)
            return super().get_quote(symbol)

    provider = _SlowProvider(prices={"FAST": 10.0, "SLOW": 20.0})
    gateway = _gateway(
        {"finnhub": provider},
        FetchPolicy(mode="concurrent", call_timeout_seconds=0.05, max_workers=2),
    )
    try:
        result = gateway.enrich([Holding("FAST", 1, 5), Holding("SLOW", 1, 5)])
    finally:
        release.set()
    assert result.stale_symbols == ["SLOW"]
    assert result.holdings[0].stale is False


def test_enrichment_is_deterministic_against_constant_data() -> None:
    provider = _FakeProvider(
        prices={"O": 55.0},
        dividends={"O": [DividendEvent("O", "2023-10-13", 0.256, "finnhub")]},
        history={"O": [PricePoint("2023-11-13", 55.0), PricePoint("2023-11-10", 54.0)]},
    )
    gateway = _gateway({"finnhub": provider})
    holdings = [Holding("O", 100, 5000)]
    assert gateway.enrich(holdings) == gateway.enrich(holdings)


def test_historical_requests_seven_day_window_and_sorts() -> None:
    provider = _FakeProvider(history={"AAPL": [PricePoint("2023-11-13", 2.0), PricePoint("2023-11-08", 1.0)]})
    gateway = _gateway({"finnhub": provider})
    points = gateway.historical("AAPL")
    assert [point.date for point in points] == ["2023-11-08", "2023-11-13"]
    assert provider.history_windows == [(int(NOW) - 7 * 86400, int(NOW))]
    assert gateway.historical("MSFT") == []


def test_dividends_sum_trailing_twelve_months() -> None:
    events = [
        DividendEvent("KO", "2022-08-01", 0.44, "fmp"),
        DividendEvent("KO", "2023-04-01", 0.46, "fmp"),
        DividendEvent("KO", "2023-10-01", 0.46, "fmp"),
    ]
    provider = _FakeProvider(dividends={"KO": events})
    summary = _gateway({"fmp": provider}).dividends("KO")
    assert summary is not None
    assert round(summary.trailing_annual_amount, 4) == 0.92
    assert summary.last_payment_date == "2023-10-01"
    assert summary.source == "fmp"


def test_summarize_dividends_without_recent_events() -> None:
    summary = summarize_dividends("T", [DividendEvent("T", "2020-01-01", 0.52, "yahoo")], NOW)
    assert summary.trailing_annual_amount == 0.0
    assert summary.last_payment_date is None


def test_history_skipped_when_policy_excludes_it() -> None:
    provider = _FakeProvider(prices={"O": 55.0}, history={"O": [PricePoint("2023-11-13", 55.0)]})
    gateway = _gateway({"finnhub": provider}, FetchPolicy(include_history=False, inter_call_delay_seconds=0.0))
    result = gateway.enrich([Holding("O", 1, 50)])
    assert result.holdings[0].history == ()
    assert provider.history_windows == []


def test_unsupported_ticker_is_unavailable_not_raised() -> None:
    provider = _FakeProvider(prices={"AAPL": 189.5})
    gateway = _gateway({"finnhub": provider})
    result = gateway.quote("brk/b")
    assert result.data is None
    assert result.error is not None
    assert result.error.code == "QUOTE_UNAVAILABLE"
    assert result.error.message == "No market data found for symbol: BRK/B"
    assert gateway.historical("BRK/B") == []
    assert gateway.dividends("BRK/B") is None
    assert provider.quote_calls == []

    enriched = gateway.enrich([Holding("BRK/B", 2, 600), Holding("AAPL", 1, 150)])
    assert enriched.stale_symbols == ["BRK/B"]
