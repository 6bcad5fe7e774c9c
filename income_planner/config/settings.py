"""Environment-driven settings."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

DEFAULT_PROVIDER_ORDER = ("finnhub", "fmp", "eodhd", "yahoo")


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the income planner server and its pipeline."""

    app_name: str = "income-planner"
    app_version: str = "1.0.0"
    transport_mode: str = "auto"
    http_transport: str = "sse"
    host: str = "0.0.0.0"
    port: int = 8000
    mcp_path: str = "/mcp"
    health_path: str = "/health"
    log_level: str = "INFO"
    finnhub_api_key: str | None = None
    fmp_api_key: str | None = None
    eodhd_api_key: str | None = None
    yahoo_finance_enabled: bool = True
    provider_order: tuple[str, ...] = DEFAULT_PROVIDER_ORDER
    fetch_mode: str = "sequential"
    request_timeout_seconds: float = 10.0
    inter_call_delay_seconds: float = 0.3
    fetch_max_workers: int = 8
    provider_min_interval_seconds: float = 0.0
    cache_ttl_quote_seconds: int = 30
    auto_refresh_seconds: int = 30
    snapshot_path: str = "portfolio_snapshot.json"
    snapshot_stale_hours: float = 24.0
    monthly_contribution: float = 500.0
    target_annual_income: float = 12000.0
    target_dividend_yield: float = 4.0
    horizon_years: int = 10
    conservative_growth: float = 4.0
    target_growth: float = 7.0
    optimistic_growth: float = 10.0
    rate_limit_disable_seconds: dict[str, int] = field(default_factory=dict)


def _as_int(value: str | None, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _as_float(value: str | None, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _as_list(value: str | None, default: tuple[str, ...]) -> tuple[str, ...]:
    if value is None or value.strip() == "":
        return default
    items = tuple(item.strip().lower() for item in value.split(",") if item.strip())
    return items or default


def _as_mode(value: str | None) -> str:
    mode = (value or "sequential").strip().lower()
    return mode if mode in {"sequential", "concurrent"} else "sequential"


def get_settings() -> Settings:
    """Load runtime settings from environment variables."""
    load_dotenv()

    return Settings(
        app_name=os.getenv("APP_NAME", "income-planner"),
        transport_mode=os.getenv("TRANSPORT_MODE", "auto").strip().lower(),
        http_transport=os.getenv("HTTP_TRANSPORT", "sse").strip().lower(),
        host=os.getenv("HOST", "0.0.0.0"),
        port=_as_int(os.getenv("PORT"), 8000),
        mcp_path=os.getenv("MCP_PATH", "/mcp"),
        health_path=os.getenv("HEALTH_PATH", "/health"),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
        finnhub_api_key=os.getenv("FINNHUB_API_KEY"),
        fmp_api_key=os.getenv("FMP_API_KEY"),
        eodhd_api_key=os.getenv("EODHD_API_KEY"),
        yahoo_finance_enabled=_as_bool(os.getenv("YAHOO_FINANCE_ENABLED"), True),
        provider_order=_as_list(os.getenv("PROVIDER_ORDER"), DEFAULT_PROVIDER_ORDER),
        fetch_mode=_as_mode(os.getenv("FETCH_MODE")),
        request_timeout_seconds=_as_float(os.getenv("REQUEST_TIMEOUT_SECONDS"), 10.0),
        inter_call_delay_seconds=_as_float(os.getenv("INTER_CALL_DELAY_SECONDS"), 0.3),
        fetch_max_workers=_as_int(os.getenv("FETCH_MAX_WORKERS"), 8),
        provider_min_interval_seconds=_as_float(os.getenv("PROVIDER_MIN_INTERVAL_SECONDS"), 0.0),
        cache_ttl_quote_seconds=_as_int(os.getenv("CACHE_TTL_QUOTE_SECONDS"), 30),
        auto_refresh_seconds=_as_int(os.getenv("AUTO_REFRESH_SECONDS"), 30),
        snapshot_path=os.getenv("SNAPSHOT_PATH", "portfolio_snapshot.json"),
        snapshot_stale_hours=_as_float(os.getenv("SNAPSHOT_STALE_HOURS"), 24.0),
        monthly_contribution=_as_float(os.getenv("MONTHLY_CONTRIBUTION"), 500.0),
        target_annual_income=_as_float(os.getenv("TARGET_ANNUAL_INCOME"), 12000.0),
        target_dividend_yield=_as_float(os.getenv("TARGET_DIVIDEND_YIELD"), 4.0),
        horizon_years=_as_int(os.getenv("HORIZON_YEARS"), 10),
        conservative_growth=_as_float(os.getenv("CONSERVATIVE_GROWTH"), 4.0),
        target_growth=_as_float(os.getenv("TARGET_GROWTH"), 7.0),
        optimistic_growth=_as_float(os.getenv("OPTIMISTIC_GROWTH"), 10.0),
        rate_limit_disable_seconds={"finnhub": 60, "fmp": 60 * 60, "eodhd": 60 * 60, "yahoo": 60 * 5},
    )
