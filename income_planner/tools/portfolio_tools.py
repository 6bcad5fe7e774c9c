"""Portfolio-domain MCP tools."""

from __future__ import annotations

from dataclasses import asdict, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any

from mcp.server.fastmcp import FastMCP

from income_planner.lib.formatters import render_metrics, render_projection, render_recommendations
from income_planner.portfolio.portfolio_service import projection_payload
from income_planner.tools.common import error_payload, run_tool

if TYPE_CHECKING:
    from income_planner.tools.registry import ToolServices


def _read_csv_source(csv_text: str, file_path: str) -> str:
    if csv_text.strip():
        return csv_text
    if not file_path.strip():
        raise ValueError("Provide csv_text or file_path.")
    path = Path(file_path).expanduser()
    if not path.is_file():
        raise ValueError(f"File not found: {file_path}")
    return path.read_text(encoding="utf-8-sig")


def _settings_changes(**values: Any) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


def register_portfolio_tools(mcp: FastMCP, services: ToolServices) -> None:
    portfolio = services.portfolio

    @mcp.tool(description="Import brokerage transactions (CSV text or file path) and rebuild the portfolio.")
    def import_transactions_csv(csv_text: str = "", file_path: str = "") -> str:
        return run_tool(services, "import_transactions_csv", lambda: portfolio.import_csv(_read_csv_source(csv_text, file_path)))

    @mcp.tool(description="Refresh quotes and dividends for every holding.")
    def refresh_portfolio() -> str:
        return run_tool(services, "refresh_portfolio", portfolio.refresh)

    @mcp.tool(description="Return portfolio valuation and dividend metrics.")
    def portfolio_metrics(output_format: str = "json") -> str:
        def _call() -> dict[str, Any]:
            metrics = portfolio.metrics()
            if output_format == "text":
                return {"ok": True, "text": render_metrics(metrics)}
            payload = asdict(metrics) if metrics else None
            if metrics is not None:
                payload["monthly_dividend_income"] = metrics.monthly_dividend_income
            return {"ok": True, "metrics": payload, "stale_symbols": portfolio.stale_symbols()}

        return run_tool(services, "portfolio_metrics", _call)

    @mcp.tool(description="Project portfolio value and dividend income under three growth scenarios.")
    def project_income(
        monthly_contribution: float | None = None,
        target_annual_income: float | None = None,
        target_dividend_yield_percent: float | None = None,
        horizon_years: int | None = None,
        output_format: str = "json",
    ) -> str:
        def _call() -> dict[str, Any]:
            settings = replace(
                portfolio.settings,
                **_settings_changes(
                    monthly_contribution=monthly_contribution,
                    target_annual_income=target_annual_income,
                    target_dividend_yield_percent=target_dividend_yield_percent,
                    horizon_years=horizon_years,
                ),
            )
            projection = portfolio.projection(settings)
            if output_format == "text":
                return {"ok": True, "text": render_projection(projection)}
            return {"ok": True, "projection": projection_payload(projection)}

        return run_tool(services, "project_income", _call)

    @mcp.tool(description="Update and persist the default projection settings.")
    def update_projection_settings(
        monthly_contribution: float | None = None,
        target_annual_income: float | None = None,
        target_dividend_yield_percent: float | None = None,
        horizon_years: int | None = None,
        conservative_growth_percent: float | None = None,
        target_growth_percent: float | None = None,
        optimistic_growth_percent: float | None = None,
    ) -> str:
        changes = _settings_changes(
            monthly_contribution=monthly_contribution,
            target_annual_income=target_annual_income,
            target_dividend_yield_percent=target_dividend_yield_percent,
            horizon_years=horizon_years,
            conservative_growth_percent=conservative_growth_percent,
            target_growth_percent=target_growth_percent,
            optimistic_growth_percent=optimistic_growth_percent,
        )
        return run_tool(
            services,
            "update_projection_settings",
            lambda: {"ok": True, "settings": asdict(portfolio.update_settings(**changes))},
        )

    @mcp.tool(description="Return rule-based portfolio recommendations ordered by severity.")
    def portfolio_recommendations(output_format: str = "json") -> str:
        def _call() -> dict[str, Any]:
            items = portfolio.recommendations()
            if output_format == "text":
                return {"ok": True, "text": render_recommendations(items)}
            return {"ok": True, "recommendations": [asdict(item) for item in items]}

        return run_tool(services, "portfolio_recommendations", _call)

    @mcp.tool(description="Return the full portfolio report: holdings, metrics, projection and recommendations.")
    def portfolio_report() -> str:
        return run_tool(services, "portfolio_report", lambda: {"ok": True, **portfolio.report()})

    @mcp.tool(description="Export current holdings as CSV text.")
    def export_portfolio_csv() -> str:
        return run_tool(services, "export_portfolio_csv", lambda: {"ok": True, "csv": portfolio.export_csv()})

    @mcp.tool(description="List the imported transaction log in file order.")
    def list_transactions() -> str:
        return run_tool(services, "list_transactions", lambda: {"ok": True, "transactions": portfolio.list_transactions()})

    @mcp.tool(description="Replace a mistyped ticker in holdings and transactions, then refresh it.")
    def fix_ticker(old_symbol: str, new_symbol: str) -> str:
        return run_tool(services, "fix_ticker", lambda: portfolio.rename_symbol(old_symbol, new_symbol), symbol=new_symbol)

    @mcp.tool(description="Ask a question about the portfolio (recommendations, risk, best or worst holding).")
    def ask_portfolio_assistant(question: str) -> str:
        def _call() -> dict[str, Any]:
            if not question.strip():
                return error_payload("validation_error", "Question must not be empty.")
            return {"ok": True, "answer": portfolio.ask(question)}

        return run_tool(services, "ask_portfolio_assistant", _call)
