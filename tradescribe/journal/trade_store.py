"""
Trade Store — in-memory record set with filtering, sorting, pagination
=======================================================================

Explicit store object (no process-global state): seeded once from a JSON
file or a list, resettable back to that seed.

Thread-safe: a single RLock guards the record list; every read returns
deep copies and every write stores a deep copy, so callers never share
mutable state with the store and a replace is atomic.

Insertion order doubles as a recency hint: upsert moves a record to the
front. It is never used as a sort key.
"""

from __future__ import annotations
import copy
import json
import os
import threading
from typing import Any, Iterable, List, Mapping, Optional, Union

from tradescribe.journal.filters import FilterExpression, to_comparable
from tradescribe.journal.trade_models import TRADE_FIELDS, TradeRecord
from tradescribe.utils.logger import get_logger

logger = get_logger(__name__)

FilterInput = Union[FilterExpression, Mapping[str, Any], None]

DEFAULT_SORT_FIELD = "created_at"
_SORTABLE_FIELDS = TRADE_FIELDS - {"notes", "attachments"}


def _sort_key(trade: TradeRecord, field_name: str):
    value = to_comparable(getattr(trade, field_name, None))
    if value is None:
        return (0, 0.0)
    if isinstance(value, str):
        return (2, value)
    return (1, value)


def sort_trades(trades: Iterable[TradeRecord], sort_by: str = DEFAULT_SORT_FIELD,
                direction: str = "desc") -> List[TradeRecord]:
    """Stable sort on a normalized field; unknown fields fall back to created_at."""
    if sort_by not in _SORTABLE_FIELDS:
        sort_by = DEFAULT_SORT_FIELD
    return sorted(
        trades,
        key=lambda t: _sort_key(t, sort_by),
        reverse=str(direction).lower() != "asc",
    )


def load_seed_file(path: str) -> List[TradeRecord]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        return [TradeRecord.from_dict(d) for d in raw]
    except (OSError, ValueError, TypeError) as e:
        logger.warning("trade_store_seed_failed", path=path, error=str(e))
        return []


class TradeStore:
    """The record set. Query, replace, remove, look up."""

    def __init__(self, trades: Optional[Iterable[TradeRecord]] = None):
        self._lock = threading.RLock()
        self._seed: List[TradeRecord] = [copy.deepcopy(t) for t in trades or []]
        self._trades: List[TradeRecord] = copy.deepcopy(self._seed)
        logger.info("trade_store_initialized", trades=len(self._trades))

    @classmethod
    def from_seed_file(cls, path: Optional[str]) -> "TradeStore":
        if not path or not os.path.exists(path):
            if path:
                logger.warning("trade_store_seed_missing", path=path)
            return cls()
        return cls(load_seed_file(path))

    # ─── LIFECYCLE ──────────────────────────────────────────────

    def reset(self) -> None:
        """Drop every change since construction and restore the seed records."""
        with self._lock:
            self._trades = copy.deepcopy(self._seed)

    def clear(self) -> None:
        with self._lock:
            self._trades = []

    def count(self) -> int:
        with self._lock:
            return len(self._trades)

    def all(self) -> List[TradeRecord]:
        with self._lock:
            return copy.deepcopy(self._trades)

    # ─── QUERIES ────────────────────────────────────────────────

    def list_trades(
        self,
        filter_: FilterInput = None,
        sort_by: str = DEFAULT_SORT_FIELD,
        direction: str = "desc",
        limit: Optional[int] = None,
    ) -> List[TradeRecord]:
        expression = FilterExpression.coerce(filter_)
        with self._lock:
            snapshot = copy.deepcopy(self._trades)
        filtered = [t for t in snapshot if expression.matches(t)]
        ordered = sort_trades(filtered, sort_by, direction)
        if limit:
            ordered = ordered[:limit]
        return ordered

    def get_trade(self, trade_id: str) -> Optional[TradeRecord]:
        with self._lock:
            for trade in self._trades:
                if trade.trade_id == trade_id:
                    return copy.deepcopy(trade)
        return None

    def exists(self, trade_id: str) -> bool:
        with self._lock:
            return any(t.trade_id == trade_id for t in self._trades)

    # ─── MUTATIONS ──────────────────────────────────────────────

    def upsert_trade(self, trade: TradeRecord) -> TradeRecord:
        """Replace by id (or insert) and move the record to the front."""
        stored = copy.deepcopy(trade)
        with self._lock:
            self._trades = [stored] + [t for t in self._trades if t.trade_id != stored.trade_id]
        logger.debug("trade_upserted", trade_id=stored.trade_id)
        return copy.deepcopy(stored)

    def delete_trade(self, trade_id: str) -> bool:
        with self._lock:
            before = len(self._trades)
            self._trades = [t for t in self._trades if t.trade_id != trade_id]
            removed = len(self._trades) < before
        if removed:
            logger.info("trade_deleted", trade_id=trade_id)
        return removed

