"""Market data tools backed by the gateway fallback chain."""

from __future__ import annotations

from dataclasses import asdict
from typing import TYPE_CHECKING, Any

from mcp.server.fastmcp import FastMCP

from income_planner.services.base import validate_symbol
from income_planner.tools.common import error_payload, no_data_message, run_tool

if TYPE_CHECKING:
    from income_planner.tools.registry import ToolServices


def register_market_data_tools(mcp: FastMCP, services: ToolServices) -> None:
    gateway = services.gateway

    @mcp.tool(description="Get the latest price for a ticker symbol.")
    def get_quote(symbol: str) -> str:
        def _call() -> dict[str, Any]:
            clean = validate_symbol(symbol)
            result = gateway.quote(clean)
            if result.data is None:
                message = result.error.message if result.error else no_data_message(clean)
                return error_payload("not_found", message)
            payload: dict[str, Any] = {"ok": True, "data": asdict(result.data), "source": result.source}
            if result.warning:
                payload["warning"] = result.warning
            return payload

        return run_tool(services, "get_quote", _call, symbol=symbol)

    @mcp.tool(description="Get daily closing prices for the last N days (default 7).")
    def get_price_history(symbol: str, days: int = 7) -> str:
        def _call() -> dict[str, Any]:
            if days < 1 or days > 365:
                raise ValueError("days must be between 1 and 365.")
            clean = validate_symbol(symbol)
            points = gateway.historical(clean, days=days)
            if not points:
                return error_payload("not_found", no_data_message(clean))
            return {"ok": True, "data": [asdict(point) for point in points]}

        return run_tool(services, "get_price_history", _call, symbol=symbol)

    @mcp.tool(description="Get trailing twelve-month dividend per share for a ticker.")
    def get_dividend_summary(symbol: str) -> str:
        def _call() -> dict[str, Any]:
            clean = validate_symbol(symbol)
            summary = gateway.dividends(clean)
            if summary is None:
                return error_payload("not_found", no_data_message(clean))
            return {"ok": True, "data": asdict(summary)}

        return run_tool(services, "get_dividend_summary", _call, symbol=symbol)
