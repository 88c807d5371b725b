"""
Lexical ranking over a per-record search corpus.

Score per query token: +3 when it equals the ticker, plus the number of
non-overlapping occurrences in the corpus. Order: score desc, then
updated_at desc, then candidate order (stable).
"""

from __future__ import annotations
import re
from typing import Any, List, Mapping, Optional, Sequence, Set, Tuple, Union

from tradescribe.journal.filters import FilterExpression
from tradescribe.journal.trade_models import TradeRecord, build_embedding_text, parse_timestamp
from tradescribe.journal.trade_store import TradeStore
from tradescribe.utils.logger import get_logger

logger = get_logger(__name__)

TICKER_MATCH_BONUS = 3
DEFAULT_SEARCH_LIMIT = 15

_SPLIT = re.compile(r"[^a-z0-9]+")


def tokenize(query: str) -> Set[str]:
    return {token for token in _SPLIT.split((query or "").lower()) if token}


def build_corpus(trade: TradeRecord) -> str:
    note_text = " ".join(note.text for note in trade.notes)
    metadata = f"{trade.ticker} {trade.trade_type} {trade.status} {trade.sentiment or ''}"
    return "\n".join([
        metadata, note_text, trade.raw_summary or "", build_embedding_text(trade),
    ]).lower()


def score(trade: TradeRecord, tokens: Set[str], corpus: Optional[str] = None) -> int:
    if not tokens:
        return 0
    corpus = build_corpus(trade) if corpus is None else corpus
    ticker = trade.ticker.lower()
    total = 0
    for token in tokens:
        if token == ticker:
            total += TICKER_MATCH_BONUS
        total += corpus.count(token)
    return total


def _updated_ts(trade: TradeRecord) -> float:
    return parse_timestamp(trade.updated_at) or 0.0


def rank(trades: Sequence[TradeRecord], tokens: Set[str]) -> List[Tuple[TradeRecord, int]]:
    scored = [(trade, score(trade, tokens)) for trade in trades]
    return sorted(scored, key=lambda pair: (-pair[1], -_updated_ts(pair[0])))


class TradeRanker:
    """Candidate retrieval through the store, then lexical re-ranking."""

    def __init__(self, store: TradeStore):
        self._store = store

    def search(self, query: str,
               filter_: Union[FilterExpression, Mapping[str, Any], None] = None,
               limit: Optional[int] = None) -> List[TradeRecord]:
        tokens = tokenize(query)
        candidates = self._store.list_trades(filter_, sort_by="updated_at", direction="desc")
        ranked = rank(candidates, tokens)
        if tokens:
            # A query that matches nothing returns nothing.
            ranked = [(trade, s) for trade, s in ranked if s > 0]
        limit = limit or DEFAULT_SEARCH_LIMIT
        logger.debug("lexical_search", tokens=len(tokens), candidates=len(candidates),
                     matched=len(ranked))
        return [trade for trade, _ in ranked[:limit]]
