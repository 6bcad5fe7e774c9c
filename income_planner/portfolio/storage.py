"""Key-value persistence for the portfolio snapshot."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Protocol

from income_planner.portfolio.models import ACTIONS, Holding, ProjectionSettings, Transaction

LOGGER = logging.getLogger(__name__)

HOLDINGS_KEY = "portfolio:holdings"
TRANSACTIONS_KEY = "portfolio:transactions"
SETTINGS_KEY = "portfolio:settings"
SAVED_AT_KEY = "portfolio:saved_at"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...


class MemoryStore:
    def __init__(self) -> None:
        self._data: dict[str, Any] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value


class JsonFileStore:
    """All keys in one JSON document, rewritten atomically on every set."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            LOGGER.warning("snapshot file unreadable, starting empty: path=%s", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> Any | None:
        with self._lock:
            return self._read().get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".snapshot-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(data, handle, ensure_ascii=True)
                os.replace(tmp_name, self.path)
            except Exception:
                os.unlink(tmp_name)
                raise


@dataclass
class Snapshot:
    holdings: dict[str, Holding] = field(default_factory=dict)
    transactions: list[Transaction] = field(default_factory=list)
    settings: ProjectionSettings | None = None
    saved_at: float | None = None

    def age_hours(self, now: float) -> float | None:
        if self.saved_at is None:
            return None
        return max(0.0, now - self.saved_at) / 3600.0


def _holding_from_dict(item: dict[str, Any]) -> Holding | None:
    try:
        return Holding(symbol=str(item["symbol"]), shares=float(item["shares"]), cost_basis=float(item["cost_basis"]))
    except (KeyError, TypeError, ValueError):
        return None


def _transaction_from_dict(item: dict[str, Any]) -> Transaction | None:
    try:
        action = str(item["action"])
        if action not in ACTIONS:
            return None
        total = item.get("total_amount")
        return Transaction(
            date=item.get("date"),
            ticker=str(item["ticker"]),
            action=action,  # type: ignore[arg-type]
            quantity=float(item["quantity"]),
            price_per_unit=float(item["price_per_unit"]),
            total_amount=float(total) if total is not None else None,
        )
    except (KeyError, TypeError, ValueError):
        return None


class SnapshotRepository:
    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def save(
        self,
        holdings: dict[str, Holding],
        transactions: list[Transaction],
        settings: ProjectionSettings,
        saved_at: float | None = None,
    ) -> float:
        stamp = saved_at if saved_at is not None else time.time()
        self.store.set(HOLDINGS_KEY, [asdict(holding) for holding in holdings.values()])
        self.store.set(TRANSACTIONS_KEY, [asdict(transaction) for transaction in transactions])
        self.store.set(SETTINGS_KEY, asdict(settings))
        self.store.set(SAVED_AT_KEY, stamp)
        LOGGER.info("snapshot saved: holdings=%s transactions=%s", len(holdings), len(transactions))
        return stamp

    def save_settings(self, settings: ProjectionSettings) -> None:
        self.store.set(SETTINGS_KEY, asdict(settings))

    def load(self) -> Snapshot:
        snapshot = Snapshot()
        for item in self.store.get(HOLDINGS_KEY) or []:
            holding = _holding_from_dict(item) if isinstance(item, dict) else None
            if holding is not None and holding.shares > 0:
                snapshot.holdings[holding.symbol] = holding
        for item in self.store.get(TRANSACTIONS_KEY) or []:
            transaction = _transaction_from_dict(item) if isinstance(item, dict) else None
            if transaction is not None:
                snapshot.transactions.append(transaction)
        raw_settings = self.store.get(SETTINGS_KEY)
        if isinstance(raw_settings, dict):
            known = set(ProjectionSettings.__dataclass_fields__)
            snapshot.settings = ProjectionSettings(**{key: value for key, value in raw_settings.items() if key in known})
        saved_at = self.store.get(SAVED_AT_KEY)
        snapshot.saved_at = float(saved_at) if isinstance(saved_at, (int, float)) else None
        return snapshot

    def is_stale(self, snapshot: Snapshot, max_age_hours: float, now: float | None = None) -> bool:
        age = snapshot.age_hours(now if now is not None else time.time())
        return age is None or age >= max_age_hours
