"""Domain tool registry entrypoint."""

from __future__ import annotations

from dataclasses import dataclass, field

from mcp.server.fastmcp import FastMCP

from income_planner.portfolio.models import ProjectionSettings
from income_planner.portfolio.portfolio_service import PortfolioService
from income_planner.portfolio.storage import KeyValueStore
from income_planner.runtime.monitoring import ServerMetrics
from income_planner.services.base import ServiceContext
from income_planner.services.market_data_gateway import FetchPolicy, MarketDataGateway
from income_planner.tools.market_data_tools import register_market_data_tools
from income_planner.tools.portfolio_tools import register_portfolio_tools


@dataclass
class ToolServices:
    gateway: MarketDataGateway
    portfolio: PortfolioService
    metrics: ServerMetrics = field(default_factory=ServerMetrics)


def build_tool_services(
    ctx: ServiceContext,
    policy: FetchPolicy | None = None,
    store: KeyValueStore | None = None,
    settings: ProjectionSettings | None = None,
    rate_limit_disable_seconds: dict[str, int] | None = None,
    snapshot_stale_hours: float = 24.0,
    metrics: ServerMetrics | None = None,
) -> ToolServices:
    gateway = MarketDataGateway(ctx, policy, rate_limit_disable_seconds=rate_limit_disable_seconds)
    return ToolServices(
        gateway=gateway,
        portfolio=PortfolioService(gateway, store, settings, snapshot_stale_hours=snapshot_stale_hours),
        metrics=metrics or ServerMetrics(),
    )


def register_all_tools(mcp: FastMCP, services: ToolServices) -> None:
    register_market_data_tools(mcp, services)
    register_portfolio_tools(mcp, services)
