"""
Heuristic Note Extractor — pattern rules, no model call
========================================================

Turns a free-text journal note into an ExtractionDraft when the external
extraction service is not configured or did not return a usable answer.

Every numeric field has a priority-ordered list of patterns; the first
pattern that matches AND yields a parseable number wins. Every detector
has a default, so extract() cannot fail.
"""

from __future__ import annotations
import re
from typing import Iterable, List, Optional, Pattern, Sequence

from tradescribe.journal.sanitize import sanitize_ticker
from tradescribe.journal.trade_models import (
    DraftAction,
    DraftTrade,
    ExtractionDraft,
    TradeRecord,
)
from tradescribe.utils.config import DEFAULT_TICKER_EXCLUSIONS
from tradescribe.utils.logger import get_logger

logger = get_logger(__name__)

HEURISTIC_REASONING = (
    "Fallback heuristics were applied because the AI trade extraction service was unavailable."
)

_NUM = r"(-?\d+(?:,\d{3})*(?:\.\d+)?)"
# Rejects a price capture that is really a P&L figure, a percentage or a truncated number.
_NOT_PNL = r"(?!\s*(?:%|profit|loss|gain|pnl|[\d.,]))"
# The whole number must be captured and must not be a percentage.
_WHOLE_AMOUNT = r"(?!\d|[.,]\d|\s*%)"

ENTRY_PATTERNS: List[Pattern[str]] = [
    re.compile(r"entry(?: price)?[^0-9-]*" + _NUM, re.I),
    re.compile(r"@\s*\$?\s*" + _NUM),
    re.compile(r"\b(?:bought|buy|added|long)\b[^@\n]*?\bat\s+\$?\s*" + _NUM, re.I),
    re.compile(r"\b(?:bought|buy|added|long|calls?)\b[^$0-9-]*\$?\s*" + _NUM + _NOT_PNL, re.I),
]

EXIT_PATTERNS: List[Pattern[str]] = [
    re.compile(r"exit(?:ed| price)?[^0-9-]*" + _NUM + _NOT_PNL, re.I),
    re.compile(
        r"\b(?:sold|close[ds]?|trim(?:med|ming)?|took profit|tp|target)\b[^$0-9-]*\$?\s*" + _NUM + _NOT_PNL,
        re.I,
    ),
    re.compile(r"\bstop(?:ped)?(?: out)?\b[^$0-9-]*\$?\s*" + _NUM + _NOT_PNL, re.I),
]

SIZE_PATTERNS: List[Pattern[str]] = [
    re.compile(r"(\d+(?:\.\d+)?)\s*(?:shares|contracts|lots)\b", re.I),
    re.compile(r"(\d+(?:\.\d+)?)\s+\$?[A-Za-z]{1,5}\s+(?:shares|contracts|lots|calls|puts)\b", re.I),
    re.compile(r"size\s*:?\s*(\d+(?:\.\d+)?)", re.I),
    re.compile(r"qty\s*:?\s*(\d+(?:\.\d+)?)", re.I),
]

PNL_USD_PATTERNS: List[Pattern[str]] = [
    re.compile(r"\b(?:pnl|profit|gain|loss)\b[^$0-9-]*\$\s*" + _NUM, re.I),
    re.compile(r"\$\s*" + _NUM + r"[^%a-zA-Z]*\b(?:pnl|profit|gain|loss)\b", re.I),
    re.compile(r"\b(?:pnl|profit|gain|loss)\b[^$0-9-]*" + _NUM + _WHOLE_AMOUNT, re.I),
]

PNL_PCT_PATTERNS: List[Pattern[str]] = [
    re.compile(r"(-?\d+(?:\.\d+)?)\s*%"),
]

RR_PATTERNS: List[Pattern[str]] = [
    re.compile(r"(\d+(?:\.\d+)?)\s*R\b", re.I),
    re.compile(r"\bR\s*[:=]\s*(\d+(?:\.\d+)?)", re.I),
]

_MINUTES = re.compile(r"(\d+(?:\.\d+)?)\s*(?:minutes|mins|min|m)\b", re.I)
_HOURS = re.compile(r"(\d+(?:\.\d+)?)\s*(?:hours|hrs|hr|h)\b", re.I)

_LOSS_WORDS = re.compile(r"\b(?:loss|lost)\b", re.I)

_DOLLAR_TICKER = re.compile(r"\$([A-Za-z]{1,5})\b")
_UPPER_TOKEN = re.compile(r"\b[A-Z]{2,5}\b")

_PUT = re.compile(r"\bputs?\b", re.I)
_CALL = re.compile(r"\bcalls?\b", re.I)
_SHORT = re.compile(r"\bshort(?:ed|ing)?\b", re.I)

CLOSING_KEYWORDS = re.compile(
    r"\b(?:close|closed|closing|exit|exited|trim|trimmed|stop|stopped|stopped out|"
    r"take profit|took profit|tp|sold)\b",
    re.I,
)

UPDATE_HINTS = re.compile(
    r"\b(?:update|add note|still in|holding|trim(?:med|ming)?|scale[ds]?|scaling|reduce[ds]?|adding)\b",
    re.I,
)

SENTIMENT_CLASSES = [
    ("bearish", re.compile(r"\b(?:bearish|fearful|anxious|worried|nervous|scared)\b", re.I)),
    ("bullish", re.compile(r"\b(?:bullish|confident|optimistic|excited|positive)\b", re.I)),
    ("neutral", re.compile(r"\b(?:neutral|meh|indifferent)\b", re.I)),
    ("frustrated", re.compile(r"\b(?:frustrated|upset|angry|annoyed|disappointed)\b", re.I)),
    ("happy", re.compile(r"\b(?:happy|pleased|relieved|proud)\b", re.I)),
]


def extract_number(note: str, patterns: Sequence[Pattern[str]]) -> Optional[float]:
    for pattern in patterns:
        match = pattern.search(note)
        if not match:
            continue
        raw = next((g for g in match.groups() if g), None)
        if not raw:
            continue
        normalized = re.sub(r"[^0-9.\-]", "", raw)
        if not normalized:
            continue
        try:
            return float(normalized)
        except ValueError:
            continue
    return None


def extract_pnl_usd(note: str) -> Optional[float]:
    for pattern in PNL_USD_PATTERNS:
        match = pattern.search(note)
        if not match:
            continue
        value = extract_number(match.group(0), [pattern])
        if value is None:
            continue
        if value > 0 and _LOSS_WORDS.search(match.group(0)):
            value = -value
        return value
    return None


def extract_duration_minutes(note: str) -> Optional[float]:
    minute_match = _MINUTES.search(note)
    if minute_match:
        return float(round(float(minute_match.group(1))))
    hour_match = _HOURS.search(note)
    if hour_match:
        return float(round(float(hour_match.group(1)) * 60))
    return None


def detect_trade_type(note: str) -> Optional[str]:
    """put > call > short. None when no keyword is present."""
    if _PUT.search(note):
        return "put"
    if _CALL.search(note):
        return "call"
    if _SHORT.search(note):
        return "short"
    return None


def detect_closing(note: str) -> bool:
    return bool(CLOSING_KEYWORDS.search(note))


def detect_sentiment(note: str) -> Optional[str]:
    for label, pattern in SENTIMENT_CLASSES:
        if pattern.search(note):
            return label
    return None


class HeuristicExtractor:
    """Deterministic note parser. Ticker exclusions are configuration data."""

    def __init__(self, ticker_exclusions: Optional[Iterable[str]] = None,
                 summary_max_chars: int = 280):
        words = DEFAULT_TICKER_EXCLUSIONS if ticker_exclusions is None else ticker_exclusions
        self._exclusions = frozenset(w.upper() for w in words)
        self._summary_max_chars = summary_max_chars

    @property
    def ticker_exclusions(self) -> frozenset:
        return self._exclusions

    def detect_ticker(self, note: str) -> Optional[str]:
        symbol = _DOLLAR_TICKER.search(note)
        if symbol:
            return symbol.group(1).upper()
        for candidate in _UPPER_TOKEN.findall(note.upper()):
            if candidate in self._exclusions or candidate.isdigit():
                continue
            return candidate
        return None

    def infer_target(self, note: str, ticker: Optional[str],
                     open_trades: Sequence[TradeRecord]) -> Optional[str]:
        """Open trade with the same ticker, when the note reads like a follow-up."""
        if not ticker:
            return None
        if not (UPDATE_HINTS.search(note) or detect_closing(note)):
            return None
        wanted = sanitize_ticker(ticker)
        for trade in open_trades:
            if trade.ticker == wanted and not trade.is_closed:
                return trade.trade_id
        return None

    def extract(self, note: str, target_trade_id: Optional[str] = None,
                open_trades: Sequence[TradeRecord] = ()) -> ExtractionDraft:
        ticker = self.detect_ticker(note)
        target = target_trade_id or self.infer_target(note, ticker, open_trades)
        is_update = target is not None

        trade_type = detect_trade_type(note)
        closing = detect_closing(note)
        if closing:
            status = "closed"
        else:
            # An update without closing words leaves the stored status alone.
            status = None if is_update else "open"
        if trade_type is None and not is_update:
            trade_type = "long"

        summary = note.strip()[: self._summary_max_chars] or None

        trade = DraftTrade(
            trade_id=target,
            ticker=ticker,
            trade_type=trade_type,
            size=extract_number(note, SIZE_PATTERNS),
            entry_price=extract_number(note, ENTRY_PATTERNS),
            exit_price=extract_number(note, EXIT_PATTERNS),
            pnl_pct=extract_number(note, PNL_PCT_PATTERNS),
            pnl_usd=extract_pnl_usd(note),
            duration_minutes=extract_duration_minutes(note),
            rr_ratio=extract_number(note, RR_PATTERNS),
            sentiment=detect_sentiment(note),
            status=status,
            raw_summary=summary,
        )
        logger.debug("heuristic_extraction", ticker=ticker, target=target, status=status)
        return ExtractionDraft(
            action=DraftAction.UPDATE if is_update else DraftAction.CREATE,
            target_trade_id=target,
            trade=trade,
            reasoning=HEURISTIC_REASONING,
        )
