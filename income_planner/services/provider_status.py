"""In-memory provider disable windows for fallback orchestration."""

from __future__ import annotations

import threading
import time


class ProviderStatus:
    """Tracks temporary provider disable windows after rate-limit events."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._disabled_until: dict[str, float] = {}
        self._failures: dict[str, int] = {}

    def disable_provider(self, provider: str, ttl_seconds: int) -> float:
        until = time.time() + max(1, ttl_seconds)
        with self._lock:
            current = self._disabled_until.get(provider, 0.0)
            self._disabled_until[provider] = max(current, until)
            return self._disabled_until[provider]

    def is_disabled(self, provider: str) -> bool:
        with self._lock:
            until = self._disabled_until.get(provider)
            if not until:
                return False
            if until <= time.time():
                self._disabled_until.pop(provider, None)
                return False
            return True

    def record_failure(self, provider: str) -> None:
        with self._lock:
            self._failures[provider] = self._failures.get(provider, 0) + 1

    def snapshot(self) -> dict[str, dict[str, float | int | None]]:
        now = time.time()
        out: dict[str, dict[str, float | int | None]] = {}
        with self._lock:
            for name in sorted(set(self._disabled_until) | set(self._failures)):
                until = self._disabled_until.get(name)
                out[name] = {
                    "disabled_until": until if until and until > now else None,
                    "failures": self._failures.get(name, 0),
                }
        return out
