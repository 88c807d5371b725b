"""
Trade Journal Data Models
=========================

TradeRecord  — one structured journal entry per position (open → closed)
TradeNote    — append-only free-text note attached to a record
TradeAttachment — inline file reference, identity by id

ExtractionDraft — transient result of interpreting a note (create/update)
SearchCriteria  — user-facing search filters, mapped to a FilterExpression

Records are dataclasses with to_dict()/from_dict() for JSON seed files.
Drafts and criteria are pydantic models so that external (model-produced)
payloads are validated before they touch a record.
Timestamps are ISO-8601 strings.
"""

from __future__ import annotations
import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tradescribe.journal.sanitize import coerce_number


# ── Enums ────────────────────────────────────────────────────

class TradeType(str, Enum):
    LONG = "long"
    SHORT = "short"
    CALL = "call"
    PUT = "put"


class TradeStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class DraftAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"


TRADE_TYPES = [t.value for t in TradeType]


# ── Time helpers ─────────────────────────────────────────────

def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: Any) -> Optional[float]:
    """ISO-8601 (or date-only) string → epoch seconds. Naive values are UTC."""
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def new_id() -> str:
    return str(uuid.uuid4())


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# PERSISTED RECORDS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass(frozen=True)
class TradeNote:
    """Single journal note. Never edited after creation."""
    id: str = field(default_factory=new_id)
    text: str = ""
    created_at: str = field(default_factory=utc_now_iso)

    @classmethod
    def create(cls, text: str) -> "TradeNote":
        return cls(text=text)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "TradeNote":
        return cls(**{k: v for k, v in d.items() if k in cls.__dataclass_fields__})


@dataclass
class TradeAttachment:
    id: str = field(default_factory=new_id)
    name: str = ""
    type: str = ""               # media type, e.g. image/png
    data_url: str = ""           # inline content reference

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "TradeAttachment":
        valid = {k: v for k, v in d.items() if k in cls.__dataclass_fields__}
        if not valid.get("id"):
            valid.pop("id", None)
        return cls(**valid)


@dataclass
class TradeRecord:
    """
    Complete journal entry for one position.

    status == "closed" always carries closed_at; status == "open" never does.
    notes only ever grow; attachment ids are unique; created_at is fixed
    at first write.
    """
    # ── Identity ──
    trade_id: str = field(default_factory=new_id)
    ticker: str = "UNKNOWN"
    trade_type: str = TradeType.LONG.value
    status: str = TradeStatus.OPEN.value

    # ── Numbers (all optional) ──
    size: Optional[float] = None
    entry_price: Optional[float] = None
    exit_price: Optional[float] = None
    pnl_usd: Optional[float] = None
    pnl_pct: Optional[float] = None
    duration_minutes: Optional[float] = None
    rr_ratio: Optional[float] = None

    sentiment: Optional[str] = None

    # ── Journal ──
    notes: List[TradeNote] = field(default_factory=list)
    attachments: List[TradeAttachment] = field(default_factory=list)
    raw_summary: Optional[str] = None

    # ── Timestamps ──
    opened_at: Optional[str] = None
    closed_at: Optional[str] = None
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    @property
    def is_closed(self) -> bool:
        return self.status == TradeStatus.CLOSED.value

    @property
    def latest_note(self) -> Optional[TradeNote]:
        return self.notes[-1] if self.notes else None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "TradeRecord":
        valid = {k: v for k, v in d.items() if k in cls.__dataclass_fields__}
        valid["notes"] = [
            n if isinstance(n, TradeNote) else TradeNote.from_dict(n)
            for n in valid.get("notes") or []
        ]
        valid["attachments"] = [
            a if isinstance(a, TradeAttachment) else TradeAttachment.from_dict(a)
            for a in valid.get("attachments") or []
        ]
        return cls(**valid)


TRADE_FIELDS = frozenset(TradeRecord.__dataclass_fields__)


def _format_metric(value: Any) -> str:
    if value is None:
        return "n/a"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def build_embedding_text(trade: TradeRecord) -> str:
    """Descriptive text for a record: metric lines, summary, then every note."""
    metric_lines = [
        f"Ticker: {trade.ticker}",
        f"Type: {trade.trade_type}",
        f"Status: {trade.status}",
        f"Size: {_format_metric(trade.size)}",
        f"Entry: {_format_metric(trade.entry_price)}",
        f"Exit: {_format_metric(trade.exit_price)}",
        f"PnL USD: {_format_metric(trade.pnl_usd)}",
        f"PnL %: {_format_metric(trade.pnl_pct)}",
        f"R:R: {_format_metric(trade.rr_ratio)}",
        f"Sentiment: {trade.sentiment or 'n/a'}",
    ]
    note_block = "\n".join(f"Note @{n.created_at}: {n.text}" for n in trade.notes)
    summary = f"Summary: {trade.raw_summary}" if trade.raw_summary else ""
    return "\n".join(part for part in [*metric_lines, summary, note_block] if part)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# REQUEST-SCOPED VALUES
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

_NUMERIC_DRAFT_FIELDS = (
    "size", "entry_price", "exit_price", "pnl_pct", "pnl_usd",
    "duration_minutes", "rr_ratio",
)


class DraftTrade(BaseModel):
    """Partial TradeRecord payload. Missing or null means "no change"."""

    model_config = ConfigDict(extra="forbid")

    trade_id: Optional[str] = None
    ticker: Optional[str] = None
    trade_type: Optional[TradeType] = None
    size: Optional[float] = None
    entry_price: Optional[float] = None
    exit_price: Optional[float] = None
    pnl_pct: Optional[float] = None
    pnl_usd: Optional[float] = None
    duration_minutes: Optional[float] = None
    rr_ratio: Optional[float] = None
    sentiment: Optional[str] = None
    status: Optional[TradeStatus] = None
    opened_at: Optional[str] = None
    closed_at: Optional[str] = None
    raw_summary: Optional[str] = None

    @field_validator(*_NUMERIC_DRAFT_FIELDS, mode="before")
    @classmethod
    def _coerce_numeric(cls, value: Any) -> Optional[float]:
        return coerce_number(value)

    @field_validator("trade_type", "status", mode="before")
    @classmethod
    def _lower_enum(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    def provided(self) -> Dict[str, Any]:
        """Fields carrying a value, enums unwrapped to their strings."""
        return {
            k: (v.value if isinstance(v, Enum) else v)
            for k, v in self.model_dump().items()
            if v is not None
        }


class ExtractionDraft(BaseModel):
    """Create-or-update decision plus the extracted fields. Never persisted."""

    model_config = ConfigDict(extra="forbid")

    action: DraftAction
    target_trade_id: Optional[str] = None
    trade: DraftTrade = Field(default_factory=DraftTrade)
    reasoning: Optional[str] = None


class SearchCriteria(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    status: Optional[TradeStatus] = None
    tickers: List[str] = Field(default_factory=list)
    sentiments: List[str] = Field(default_factory=list)
    from_date: Optional[str] = Field(default=None, alias="from")
    to_date: Optional[str] = Field(default=None, alias="to")
    min_pnl_usd: Optional[float] = Field(default=None, alias="minPnlUsd")
    max_pnl_usd: Optional[float] = Field(default=None, alias="maxPnlUsd")
