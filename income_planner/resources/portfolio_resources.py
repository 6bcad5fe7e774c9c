"""Portfolio resource definitions."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from mcp.server.fastmcp import FastMCP

if TYPE_CHECKING:
    from income_planner.tools.registry import ToolServices

CURRENT_PORTFOLIO_URI = "portfolio://current"
TRANSACTIONS_URI = "portfolio://transactions"


def register_portfolio_resources(mcp: FastMCP, services: "ToolServices") -> None:
    @mcp.resource(
        CURRENT_PORTFOLIO_URI,
        name="current-portfolio",
        title="Current Portfolio Report",
        description="Holdings, metrics, projection and recommendations from the latest enrichment pass.",
        mime_type="application/json",
    )
    def current_portfolio_resource() -> str:
        report = services.portfolio.report()
        if not report["holdings"]:
            raise ValueError("Portfolio resource not found. Import a transactions CSV first.")
        return json.dumps(report, ensure_ascii=True)

    @mcp.resource(
        TRANSACTIONS_URI,
        name="portfolio-transactions",
        title="Imported Transaction Log",
        description="Transactions from the last import, in file order.",
        mime_type="application/json",
    )
    def transactions_resource() -> str:
        return json.dumps(services.portfolio.list_transactions(), ensure_ascii=True)
