"""
Trade Journal — prose notes in, structured trade records out
=============================================================

  trade_models.py    — TradeRecord / TradeNote / TradeAttachment, drafts, criteria
  sanitize.py        — ticker / kind / status / number normalization
  heuristics.py      — pattern-based note extraction (no model call)
  extraction.py      — create-vs-update decision, model call with fallback
  merge.py           — record assembly and merge (notes, attachments, status)
  filters.py         — FilterExpression (Equals / OneOf / Range)
  trade_store.py     — in-memory record set: query, sort, paginate, upsert
  ranking.py         — lexical search ranking
  trade_analytics.py — win rate, streaks, rollups, P&L timeline
  narrative.py       — display formatting and search digest
  service.py         — JournalService, the operations used by the API
"""

from tradescribe.journal.trade_models import (
    TradeType,
    TradeStatus,
    DraftAction,
    TradeNote,
    TradeAttachment,
    TradeRecord,
    DraftTrade,
    ExtractionDraft,
    SearchCriteria,
)
from tradescribe.journal.filters import FilterExpression, Equals, OneOf, Range, build_filter
from tradescribe.journal.trade_store import TradeStore
from tradescribe.journal.trade_analytics import AnalyticsSummary, calculate_analytics
from tradescribe.journal.service import JournalService, create_service

__all__ = [
    # Models
    "TradeType", "TradeStatus", "DraftAction",
    "TradeNote", "TradeAttachment", "TradeRecord",
    "DraftTrade", "ExtractionDraft", "SearchCriteria",
    # Filters
    "FilterExpression", "Equals", "OneOf", "Range", "build_filter",
    # Engines
    "TradeStore", "AnalyticsSummary", "calculate_analytics",
    "JournalService", "create_service",
]
