"""
Shared fixtures for the trade journal tests.

Provides a record factory, a small in-memory store, service instances with
test settings, and stub capabilities (extraction, embedding, answering,
vector index) that succeed, fail, raise or stall on demand.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Sequence

import pytest

from tradescribe.ai.capabilities import Failure, Ok
from tradescribe.journal.service import JournalService
from tradescribe.journal.trade_models import TradeNote, TradeRecord
from tradescribe.journal.trade_store import TradeStore
from tradescribe.utils.config import Settings


# ─────────────────────────────────────────────────────────
# Record factory
# ─────────────────────────────────────────────────────────

def make_trade(trade_id: str = "t-1", ticker: str = "AAPL", status: str = "open",
               created_at: str = "2026-01-01T10:00:00Z", notes: Sequence[str] = (),
               **overrides: Any) -> TradeRecord:
    """Build a TradeRecord with sane defaults; closed trades get closed_at."""
    fields: Dict[str, Any] = {
        "trade_id": trade_id,
        "ticker": ticker,
        "trade_type": "long",
        "status": status,
        "created_at": created_at,
        "updated_at": created_at,
        "opened_at": created_at,
        "closed_at": created_at if status == "closed" else None,
        "notes": [
            TradeNote(id=f"{trade_id}-n{i}", text=text, created_at=created_at)
            for i, text in enumerate(notes)
        ],
    }
    fields.update(overrides)
    return TradeRecord(**fields)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        openai_api_key="",
        seed_file="",
        log_file="",
        extraction_timeout_seconds=0.2,
        embedding_timeout_seconds=0.2,
    )


@pytest.fixture
def empty_store() -> TradeStore:
    return TradeStore()


@pytest.fixture
def sample_store() -> TradeStore:
    return TradeStore([
        make_trade("aapl-open", "AAPL", "open", "2026-01-03T10:00:00Z",
                   notes=["Bought AAPL calls, feeling confident"], trade_type="call",
                   sentiment="bullish", entry_price=5.2, size=100),
        make_trade("tsla-closed", "TSLA", "closed", "2026-01-02T10:00:00Z",
                   notes=["Shorted TSLA, was nervous the whole time"], trade_type="short",
                   sentiment="bearish", pnl_usd=-200.0),
        make_trade("msft-closed", "MSFT", "closed", "2026-01-01T10:00:00Z",
                   notes=["MSFT breakout worked"], sentiment="neutral", pnl_usd=300.0),
    ])


@pytest.fixture
def service(empty_store: TradeStore, settings: Settings) -> JournalService:
    return JournalService(empty_store, settings=settings)


@pytest.fixture
def sample_service(sample_store: TradeStore, settings: Settings) -> JournalService:
    return JournalService(sample_store, settings=settings)


# ─────────────────────────────────────────────────────────
# Stub capabilities
# ─────────────────────────────────────────────────────────

class StubExtractor:
    """Returns a fixed result and records every call."""

    def __init__(self, result: Any):
        self.result = result
        self.calls: List[Dict[str, Any]] = []

    async def extract(self, note: str, forced_target_id: Optional[str],
                      open_trade_context: Sequence[Dict[str, Any]]):
        self.calls.append({
            "note": note,
            "forced_target_id": forced_target_id,
            "open_trade_context": list(open_trade_context),
        })
        return self.result


class RaisingExtractor:
    async def extract(self, note, forced_target_id, open_trade_context):
        raise RuntimeError("boom")


class SlowExtractor:
    async def extract(self, note, forced_target_id, open_trade_context):
        await asyncio.sleep(5)
        return Ok({"action": "create", "trade": {}})


class StubAnswerer:
    """Returns (or raises) a fixed result and records the context it was given."""

    def __init__(self, result: Any):
        self.result = result
        self.calls: List[Dict[str, Any]] = []

    async def answer(self, query: str, context: Sequence[str]):
        self.calls.append({"query": query, "context": list(context)})
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class StubEmbedder:
    """Deterministic vectors: one dimension per keyword."""

    KEYWORDS = ("aapl", "tsla", "msft", "confident", "nervous")

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = 0

    async def embed(self, text: str):
        self.calls += 1
        if self.fail:
            return Failure.of("embedding unavailable", 503)
        lower = text.lower()
        return Ok([float(lower.count(word)) for word in self.KEYWORDS])


class InMemoryVectorIndex:
    """Dot-product similarity over upserted vectors."""

    def __init__(self):
        self.vectors: Dict[str, List[float]] = {}

    async def upsert(self, trade_id: str, vector: Sequence[float]):
        self.vectors[trade_id] = list(vector)
        return Ok(None)

    async def query(self, vector: Sequence[float], filter_: Any, limit: int):
        scored = [
            (sum(a * b for a, b in zip(vector, stored)), trade_id)
            for trade_id, stored in self.vectors.items()
        ]
        scored = [pair for pair in scored if pair[0] > 0]
        scored.sort(key=lambda pair: -pair[0])
        return Ok([trade_id for _, trade_id in scored[:limit]])
