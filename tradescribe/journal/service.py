"""
Journal Service — the operations exposed to the HTTP/UI layer
==============================================================

  interpret_note  note (+ attachments, optional target id) → create or update
  update_trade    manual edit of a stored record
  list_trades     filter / sort / limit
  search          similarity search when configured, lexical ranking otherwise;
                  optional answer written by the model, digest otherwise
  analytics       summary statistics over the (filtered) record set

Writes to one trade id are serialized with a per-id asyncio.Lock that is
dropped from the registry once no writer holds or awaits it. The store
replaces whole records atomically, so readers never observe a half-merged
record.
"""

from __future__ import annotations
import asyncio
import threading
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from tradescribe.ai.capabilities import (
    AnswerCapability,
    EmbeddingCapability,
    ExtractionCapability,
    Failure,
    VectorIndex,
)
from tradescribe.ai.openai_client import create_ai_client
from tradescribe.journal.extraction import ExtractionCoordinator
from tradescribe.journal.filters import FilterExpression, build_filter
from tradescribe.journal.heuristics import HeuristicExtractor
from tradescribe.journal.merge import build_trade, merge_trade, normalize_attachments
from tradescribe.journal.narrative import build_search_answer
from tradescribe.journal.ranking import TradeRanker
from tradescribe.journal.trade_analytics import AnalyticsSummary, calculate_analytics
from tradescribe.journal.trade_models import (
    DraftAction,
    DraftTrade,
    SearchCriteria,
    TradeRecord,
    build_embedding_text,
    new_id,
    utc_now_iso,
)
from tradescribe.journal.trade_store import TradeStore
from tradescribe.utils.config import Settings, get_settings
from tradescribe.utils.exceptions import (
    JournalError,
    ErrorCategory,
    NoteRequiredError,
    TradeNotFoundError,
)
from tradescribe.utils.logger import get_logger

logger = get_logger(__name__)

CriteriaInput = Union[SearchCriteria, Mapping[str, Any], None]

# Never taken from a manual update payload.
_PROTECTED_FIELDS = frozenset({"trade_id", "notes", "attachments", "created_at", "updated_at"})


@dataclass
class InterpretResult:
    action: str
    trade: TradeRecord
    reasoning: Optional[str] = None


@dataclass
class SearchResult:
    results: List[TradeRecord]
    answer: Optional[str] = None


@dataclass
class _TradeLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class JournalService:

    def __init__(
        self,
        store: TradeStore,
        extractor: Optional[ExtractionCapability] = None,
        embedder: Optional[EmbeddingCapability] = None,
        vector_index: Optional[VectorIndex] = None,
        settings: Optional[Settings] = None,
        answerer: Optional[AnswerCapability] = None,
    ):
        self._settings = settings or get_settings()
        self._store = store
        self._extractor = extractor
        self._embedder = embedder
        self._vector_index = vector_index
        self._answerer = answerer
        self._coordinator = ExtractionCoordinator(
            capability=extractor,
            heuristics=HeuristicExtractor(
                ticker_exclusions=self._settings.ticker_exclusions,
                summary_max_chars=self._settings.summary_max_chars,
            ),
            timeout_seconds=self._settings.extraction_timeout_seconds,
        )
        self._ranker = TradeRanker(store)
        self._locks: Dict[str, _TradeLock] = {}
        self._locks_guard = threading.Lock()

    @property
    def store(self) -> TradeStore:
        return self._store

    @property
    def settings(self) -> Settings:
        return self._settings

    async def close(self) -> None:
        """Release capability resources (HTTP sessions). Each one is closed once."""
        seen = set()
        for capability in (self._extractor, self._embedder, self._answerer):
            if capability is None or id(capability) in seen:
                continue
            seen.add(id(capability))
            close = getattr(capability, "close", None)
            if close is not None:
                await close()

    @asynccontextmanager
    async def _trade_lock(self, trade_id: str) -> AsyncIterator[None]:
        with self._locks_guard:
            entry = self._locks.get(trade_id)
            if entry is None:
                entry = self._locks[trade_id] = _TradeLock()
            entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[trade_id]

    # ─── NOTE INTERPRETATION ────────────────────────────────────

    async def interpret_note(self, note: str, attachments: Optional[Iterable[Any]] = None,
                             trade_id: Optional[str] = None) -> InterpretResult:
        if not note or not note.strip():
            raise NoteRequiredError()

        forced_id = trade_id.strip() if trade_id and trade_id.strip() else None
        normalized = normalize_attachments(attachments)
        open_trades = self._store.list_trades(
            {"status": "open"}, sort_by="updated_at", direction="desc",
            limit=self._settings.open_trade_context_limit,
        )

        draft = await self._coordinator.extract(note, forced_id, open_trades)

        if draft.action == DraftAction.UPDATE:
            target = forced_id or draft.target_trade_id or draft.trade.trade_id
            if not target:
                raise TradeNotFoundError(message="Unable to identify trade to update.")
            if not self._store.exists(target):
                raise TradeNotFoundError(target)
            async with self._trade_lock(target):
                existing = self._store.get_trade(target)
                if existing is None:
                    raise TradeNotFoundError(target)
                updated = merge_trade(existing, draft.trade, note=note, attachments=normalized,
                                      now=utc_now_iso())
                self._store.upsert_trade(updated)
            logger.info("trade_updated_from_note", trade_id=target, status=updated.status)
            await self._index_trade(updated)
            return InterpretResult("update", updated, draft.reasoning)

        # A fresh id has no other writer, so the create path takes no lock.
        trade_id = draft.trade.trade_id
        if not trade_id or self._store.exists(trade_id):
            trade_id = new_id()
        created = build_trade(draft.trade, note, normalized, now=utc_now_iso(), trade_id=trade_id)
        self._store.upsert_trade(created)
        logger.info("trade_created_from_note", trade_id=trade_id, ticker=created.ticker)
        await self._index_trade(created)
        return InterpretResult("create", created, draft.reasoning)

    # ─── MANUAL EDITS ───────────────────────────────────────────

    async def update_trade(
        self,
        trade_id: str,
        updates: Optional[Mapping[str, Any]] = None,
        note: Optional[str] = None,
        attachments: Optional[Iterable[Any]] = None,
        remove_attachment_ids: Optional[Sequence[str]] = None,
        reanalyze: bool = False,
    ) -> TradeRecord:
        """
        Manual edit. With reanalyze and a note, the extraction model may then
        correct the numbers, sentiment and summary; if it is unavailable the
        manual edit is stored as is.
        """
        payload = {k: v for k, v in (updates or {}).items() if k not in _PROTECTED_FIELDS}
        try:
            fields = DraftTrade.model_validate(payload)
        except ValidationError as e:
            raise JournalError(f"Invalid trade update: {e.error_count()} error(s)",
                               ErrorCategory.VALIDATION, 400) from e

        if not self._store.exists(trade_id):
            raise TradeNotFoundError(trade_id)
        clean_note = note.strip() if note and note.strip() else None

        async with self._trade_lock(trade_id):
            existing = self._store.get_trade(trade_id)
            if existing is None:
                raise TradeNotFoundError(trade_id)
            now = utc_now_iso()
            updated = merge_trade(
                existing, fields,
                note=clean_note,
                attachments=normalize_attachments(attachments),
                remove_attachment_ids=remove_attachment_ids,
                now=now,
            )
            if reanalyze and clean_note:
                updated = await self._reanalyze(clean_note, updated, now)
            self._store.upsert_trade(updated)
        logger.info("trade_edited", trade_id=trade_id, reanalyzed=bool(reanalyze and clean_note))
        await self._index_trade(updated)
        return updated

    async def _reanalyze(self, note: str, trade: TradeRecord, now: str) -> TradeRecord:
        result = await self._coordinator.refine(note, trade)
        if isinstance(result, Failure):
            logger.info("reanalysis_skipped", trade_id=trade.trade_id, reason=result.reason)
            return trade
        return merge_trade(trade, result.value, now=now)

    async def delete_trade(self, trade_id: str) -> bool:
        async with self._trade_lock(trade_id):
            return self._store.delete_trade(trade_id)

    def get_trade(self, trade_id: str) -> TradeRecord:
        trade = self._store.get_trade(trade_id)
        if trade is None:
            raise TradeNotFoundError(trade_id)
        return trade

    # ─── QUERIES ────────────────────────────────────────────────

    def list_trades(
        self,
        filter_: Union[FilterExpression, Mapping[str, Any], None] = None,
        sort_by: str = "created_at",
        direction: str = "desc",
        limit: Optional[int] = None,
    ) -> List[TradeRecord]:
        return self._store.list_trades(
            filter_, sort_by=sort_by, direction=direction,
            limit=limit or self._settings.list_default_limit,
        )

    async def search(self, query: str, criteria: CriteriaInput = None,
                     limit: Optional[int] = None, include_answer: bool = False) -> SearchResult:
        if not query or not query.strip():
            raise JournalError("Query text is required.", ErrorCategory.VALIDATION, 400)
        limit = limit or self._settings.search_default_limit
        expression = build_filter(criteria)

        results = await self._vector_search(query, expression, limit)
        if results is None:
            results = self._ranker.search(query, expression, limit)

        answer = await self._answer(query, results) if include_answer else None
        return SearchResult(results=results, answer=answer)

    async def _answer(self, query: str, results: List[TradeRecord]) -> str:
        """Model-written answer over the top hits; the deterministic digest otherwise."""
        if self._answerer is None or not results:
            return build_search_answer(query, results)
        context = [build_embedding_text(t) for t in results[:self._settings.answer_context_limit]]
        try:
            result = await asyncio.wait_for(
                self._answerer.answer(query, context),
                timeout=self._settings.answer_timeout_seconds,
            )
        except asyncio.TimeoutError:
            result = Failure.of(f"answer timed out after {self._settings.answer_timeout_seconds}s")
        except Exception as e:
            result = Failure.of(f"answer raised {type(e).__name__}: {e}")
        if isinstance(result, Failure):
            logger.warning("search_answer_fallback", reason=result.reason)
            return build_search_answer(query, results)
        return result.value

    def analytics(self, criteria: CriteriaInput = None,
                  limit: Optional[int] = None) -> AnalyticsSummary:
        """Summary over the newest `limit` matching trades, or all of them when limit is None."""
        trades = self._store.list_trades(
            build_filter(criteria), sort_by="created_at", direction="desc", limit=limit,
        )
        return calculate_analytics(trades)

    # ─── EMBEDDINGS (optional) ──────────────────────────────────

    @property
    def vector_search_enabled(self) -> bool:
        return self._embedder is not None and self._vector_index is not None

    async def _embed(self, text: str) -> Optional[List[float]]:
        try:
            result = await asyncio.wait_for(
                self._embedder.embed(text), timeout=self._settings.embedding_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning("embedding_fallback", reason="timeout")
            return None
        except Exception as e:
            logger.warning("embedding_fallback", reason=f"{type(e).__name__}: {e}")
            return None
        if isinstance(result, Failure):
            logger.warning("embedding_fallback", reason=result.reason)
            return None
        return result.value

    async def _index_trade(self, trade: TradeRecord) -> None:
        if not self.vector_search_enabled:
            return
        vector = await self._embed(build_embedding_text(trade))
        if vector is None:
            return
        result = await self._vector_index.upsert(trade.trade_id, vector)
        if isinstance(result, Failure):
            logger.warning("vector_index_upsert_failed", trade_id=trade.trade_id,
                           reason=result.reason)

    async def _vector_search(self, query: str, expression: FilterExpression,
                             limit: int) -> Optional[List[TradeRecord]]:
        """Trades in similarity order, or None to fall back to lexical ranking."""
        if not self.vector_search_enabled:
            return None
        vector = await self._embed(query)
        if vector is None:
            return None
        result = await self._vector_index.query(vector, expression, limit)
        if isinstance(result, Failure):
            logger.warning("vector_search_fallback", reason=result.reason)
            return None
        trades = []
        for trade_id in result.value:
            trade = self._store.get_trade(trade_id)
            if trade is not None and expression.matches(trade):
                trades.append(trade)
        if not trades:
            return None
        return trades[:limit]


def create_service(settings: Optional[Settings] = None,
                   store: Optional[TradeStore] = None) -> JournalService:
    """Seeded store plus the OpenAI client when an API key is configured."""
    settings = settings or get_settings()
    store = store if store is not None else TradeStore.from_seed_file(settings.seed_file)
    client = create_ai_client(settings)
    return JournalService(store, extractor=client, embedder=client, settings=settings,
                          answerer=client)
