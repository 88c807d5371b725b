"""
Merge Engine — combine a stored TradeRecord with new values
============================================================

Notes are append-only and re-sorted by creation time; attachments are
deduplicated by id (last write wins); status and closed_at move together.
"""

from __future__ import annotations
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from tradescribe.journal.sanitize import (
    coerce_number,
    sanitize_status,
    sanitize_ticker,
    sanitize_trade_type,
)
from tradescribe.journal.trade_models import (
    DraftTrade,
    TradeAttachment,
    TradeNote,
    TradeRecord,
    new_id,
    parse_timestamp,
    utc_now_iso,
)

_NUMERIC_FIELDS = (
    "size", "entry_price", "exit_price", "pnl_usd", "pnl_pct",
    "duration_minutes", "rr_ratio",
)

AttachmentInput = Union[TradeAttachment, Mapping[str, Any]]


def _note_sort_key(note: TradeNote) -> float:
    ts = parse_timestamp(note.created_at)
    return ts if ts is not None else 0.0


def merge_notes(existing: Sequence[TradeNote],
                incoming: Optional[Iterable[TradeNote]] = None) -> List[TradeNote]:
    incoming = list(incoming or [])
    if not incoming:
        return list(existing)
    seen = {note.id for note in existing}
    merged = list(existing)
    for note in incoming:
        if note.id not in seen:
            merged.append(note)
            seen.add(note.id)
    return sorted(merged, key=_note_sort_key)


def merge_attachments(existing: Sequence[TradeAttachment],
                      incoming: Optional[Iterable[TradeAttachment]] = None) -> List[TradeAttachment]:
    incoming = list(incoming or [])
    if not incoming:
        return list(existing)
    by_id: Dict[str, TradeAttachment] = {a.id: a for a in existing}
    for attachment in incoming:
        by_id[attachment.id] = attachment
    return list(by_id.values())


def normalize_attachments(attachments: Optional[Iterable[AttachmentInput]]) -> List[TradeAttachment]:
    """Accept dicts or TradeAttachment; mint ids for entries without one."""
    normalized = []
    for attachment in attachments or []:
        if isinstance(attachment, TradeAttachment):
            normalized.append(attachment if attachment.id else
                              TradeAttachment(name=attachment.name, type=attachment.type,
                                              data_url=attachment.data_url))
        else:
            data = dict(attachment)
            if "dataUrl" in data and "data_url" not in data:
                data["data_url"] = data.pop("dataUrl")
            normalized.append(TradeAttachment.from_dict(data))
    return normalized


def _as_updates(updates: Union[DraftTrade, Mapping[str, Any], None]) -> Dict[str, Any]:
    if updates is None:
        return {}
    if isinstance(updates, DraftTrade):
        return updates.provided()
    return {k: v for k, v in updates.items() if v is not None}


def _resolve_closed_at(status: str, new_value: Optional[str],
                       existing_value: Optional[str], now: str) -> Optional[str]:
    if status == "closed":
        return new_value or existing_value or now
    return None


def build_trade(draft: Union[DraftTrade, Mapping[str, Any], None], note: str,
                attachments: Optional[Sequence[TradeAttachment]] = None,
                now: Optional[str] = None, trade_id: Optional[str] = None) -> TradeRecord:
    """Create path: a brand-new record from extracted fields and the triggering note."""
    now = now or utc_now_iso()
    fields = _as_updates(draft)
    raw_status = fields.get("status")
    if raw_status is None and fields.get("exit_price") is not None:
        raw_status = "closed"
    status = sanitize_status(raw_status)
    return TradeRecord(
        trade_id=trade_id or fields.get("trade_id") or new_id(),
        ticker=sanitize_ticker(fields.get("ticker")),
        trade_type=sanitize_trade_type(fields.get("trade_type")),
        status=status,
        **{name: coerce_number(fields.get(name)) for name in _NUMERIC_FIELDS},
        sentiment=fields.get("sentiment"),
        notes=[TradeNote(text=note, created_at=now)],
        attachments=list(attachments or []),
        raw_summary=fields.get("raw_summary"),
        opened_at=fields.get("opened_at") or now,
        closed_at=_resolve_closed_at(status, fields.get("closed_at"), None, now),
        created_at=now,
        updated_at=now,
    )


def merge_trade(existing: TradeRecord,
                updates: Union[DraftTrade, Mapping[str, Any], None],
                note: Optional[str] = None,
                attachments: Optional[Sequence[TradeAttachment]] = None,
                remove_attachment_ids: Optional[Iterable[str]] = None,
                now: Optional[str] = None) -> TradeRecord:
    """
    Update path. Absent/None fields keep the stored value; closing forces
    closed_at (new → existing → now), reopening clears it. trade_id and
    created_at are never taken from the updates.
    """
    now = now or utc_now_iso()
    fields = _as_updates(updates)

    status = sanitize_status(fields.get("status", existing.status))

    removed = set(remove_attachment_ids or [])
    kept = [a for a in existing.attachments if a.id not in removed]

    notes = existing.notes
    if note:
        notes = merge_notes(existing.notes, [TradeNote(text=note, created_at=now)])

    numbers = {}
    for name in _NUMERIC_FIELDS:
        value = coerce_number(fields.get(name))
        numbers[name] = value if value is not None else getattr(existing, name)

    return TradeRecord(
        trade_id=existing.trade_id,
        ticker=sanitize_ticker(fields.get("ticker", existing.ticker)),
        trade_type=sanitize_trade_type(fields.get("trade_type", existing.trade_type)),
        status=status,
        **numbers,
        sentiment=fields.get("sentiment", existing.sentiment),
        notes=list(notes),
        attachments=merge_attachments(kept, attachments),
        raw_summary=fields.get("raw_summary", existing.raw_summary),
        opened_at=fields.get("opened_at") or existing.opened_at or now,
        closed_at=_resolve_closed_at(status, fields.get("closed_at"), existing.closed_at, now),
        created_at=existing.created_at,
        updated_at=now,
    )
