"""Application entrypoint for the income planner MCP server."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import asdict

from mcp.server.fastmcp import FastMCP
from starlette.responses import JSONResponse, Response

from income_planner.cache.ttl_cache import TTLCache
from income_planner.config.settings import Settings, get_settings
from income_planner.portfolio.models import ProjectionSettings
from income_planner.portfolio.storage import JsonFileStore
from income_planner.providers.eodhd import EodhdClient
from income_planner.providers.finnhub import FinnhubClient
from income_planner.providers.fmp import FmpClient
from income_planner.providers.yahoo_finance import YahooFinanceClient
from income_planner.resources.portfolio_resources import register_portfolio_resources
from income_planner.runtime.monitoring import ServerMetrics
from income_planner.runtime.scheduler import RefreshScheduler
from income_planner.services.base import ServiceContext
from income_planner.services.market_data_gateway import FetchPolicy
from income_planner.services.provider_status import ProviderStatus
from income_planner.tools.registry import build_tool_services, register_all_tools
from income_planner.utils.rate_limit import RateLimiterRegistry

LOGGER = logging.getLogger(__name__)


def resolve_transport_mode(configured_mode: str) -> str:
    if os.getenv("RENDER") and configured_mode == "stdio":
        return "http"
    if configured_mode in {"stdio", "http"}:
        return configured_mode
    if os.getenv("RENDER") or os.getenv("PORT"):
        return "http"
    return "stdio"


def resolve_http_transport(configured_transport: str) -> str:
    if configured_transport in {"sse", "streamable"}:
        return configured_transport
    return "sse"


def build_providers(settings: Settings) -> dict[str, object | None]:
    timeout = settings.request_timeout_seconds
    return {
        "finnhub": FinnhubClient(settings.finnhub_api_key, timeout) if settings.finnhub_api_key else None,
        "fmp": FmpClient(settings.fmp_api_key, timeout) if settings.fmp_api_key else None,
        "eodhd": EodhdClient(settings.eodhd_api_key, timeout) if settings.eodhd_api_key else None,
        "yahoo": YahooFinanceClient(timeout) if settings.yahoo_finance_enabled else None,
    }


def build_fetch_policy(settings: Settings) -> FetchPolicy:
    return FetchPolicy(
        provider_order=settings.provider_order,
        mode="concurrent" if settings.fetch_mode == "concurrent" else "sequential",
        call_timeout_seconds=settings.request_timeout_seconds,
        inter_call_delay_seconds=settings.inter_call_delay_seconds,
        max_workers=settings.fetch_max_workers,
    )


def build_projection_settings(settings: Settings) -> ProjectionSettings:
    projection = ProjectionSettings(
        monthly_contribution=settings.monthly_contribution,
        target_annual_income=settings.target_annual_income,
        target_dividend_yield_percent=settings.target_dividend_yield,
        horizon_years=settings.horizon_years,
        conservative_growth_percent=settings.conservative_growth,
        target_growth_percent=settings.target_growth,
        optimistic_growth_percent=settings.optimistic_growth,
    )
    issues = projection.validate()
    if issues:
        raise ValueError("; ".join(f"{issue.field}: {issue.message}" for issue in issues))
    return projection


async def run() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    server_metrics = ServerMetrics()
    providers = build_providers(settings)
    provider_status = ProviderStatus()
    service_ctx = ServiceContext(
        providers={**providers, "provider_status": provider_status},
        cache=TTLCache(default_ttl_seconds=settings.cache_ttl_quote_seconds),
        rate_limiter=RateLimiterRegistry(min_interval_seconds=settings.provider_min_interval_seconds),
        quote_ttl_seconds=settings.cache_ttl_quote_seconds,
    )
    services = build_tool_services(
        service_ctx,
        policy=build_fetch_policy(settings),
        store=JsonFileStore(settings.snapshot_path),
        settings=build_projection_settings(settings),
        rate_limit_disable_seconds=settings.rate_limit_disable_seconds,
        snapshot_stale_hours=settings.snapshot_stale_hours,
        metrics=server_metrics,
    )
    mcp = FastMCP(
        name=settings.app_name,
        host=settings.host,
        port=settings.port,
        streamable_http_path=settings.mcp_path,
    )
    register_all_tools(mcp, services)
    register_portfolio_resources(mcp, services)
    resolved_mode = resolve_transport_mode(settings.transport_mode)
    resolved_http_transport = resolve_http_transport(settings.http_transport)

    @mcp.custom_route(settings.health_path, methods=["GET"])
    async def health_check(_: object) -> Response:
        snapshot = server_metrics.snapshot(
            provider_status.snapshot(),
            portfolio={
                "busy": services.portfolio.busy,
                "holdings": len(services.portfolio.enriched_holdings()),
                "stale_symbols": len(services.portfolio.stale_symbols()),
            },
        )
        return JSONResponse(
            {
                "status": "ok",
                "service": settings.app_name,
                "version": settings.app_version,
                "mode": resolved_mode,
                **asdict(snapshot),
            }
        )

    if not any(providers.values()):
        LOGGER.warning(
            "no market data providers configured: set FINNHUB_API_KEY / FMP_API_KEY / EODHD_API_KEY "
            "or enable YAHOO_FINANCE_ENABLED"
        )

    loaded = services.portfolio.load_snapshot()
    if loaded["stale"]:
        LOGGER.info("snapshot older than %sh, refreshing", settings.snapshot_stale_hours)
        await asyncio.to_thread(services.portfolio.refresh)
    elif loaded["loaded"] and settings.auto_refresh_seconds <= 0:
        LOGGER.info("auto refresh disabled, pricing restored snapshot now")
        await asyncio.to_thread(services.portfolio.refresh)

    scheduler = RefreshScheduler(
        settings.auto_refresh_seconds,
        services.portfolio.refresh,
        is_busy=lambda: services.portfolio.busy,
        on_result=server_metrics.record_refresh,
    )
    scheduler.start()
    try:
        if resolved_mode == "stdio":
            await mcp.run_stdio_async()
        elif resolved_http_transport == "streamable":
            await mcp.run_streamable_http_async()
        else:
            await mcp.run_sse_async()
    finally:
        scheduler.stop()


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
