"""Shared tool-layer helpers."""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any, Callable

from income_planner.runtime.monitoring import log_tool_event

if TYPE_CHECKING:
    from income_planner.tools.registry import ToolServices

LOGGER = logging.getLogger(__name__)


def no_data_message(symbol: str) -> str:
    return f"No market data found for symbol: {symbol}"


def error_payload(error_type: str, message: str, **extra: Any) -> dict[str, Any]:
    return {"ok": False, "error": {"type": error_type, "message": message, **extra}}


def run_tool(
    services: ToolServices,
    tool: str,
    call: Callable[[], dict[str, Any] | list[Any]],
    symbol: str | None = None,
) -> str:
    """Run a tool body, turning validation errors into an error JSON payload."""
    started = time.perf_counter()
    success = True
    try:
        payload = call()
        if isinstance(payload, dict) and payload.get("ok") is False:
            success = False
    except ValueError as error:
        success = False
        payload = error_payload("validation_error", str(error))
    except Exception:
        success = False
        LOGGER.exception("tool failed: tool=%s symbol=%s", tool, symbol)
        payload = error_payload("internal_error", "Request failed.")
    latency_ms = (time.perf_counter() - started) * 1000.0
    warning = "slow_response" if latency_ms > 2000 else None
    log_tool_event(tool=tool, symbol=symbol, latency_ms=latency_ms, success=success, warning=warning)
    services.metrics.record(latency_ms=latency_ms, success=success)
    return json.dumps(payload, ensure_ascii=True)
