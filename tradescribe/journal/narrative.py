"""Display helpers: money/percent/duration formatting and the search digest."""

from __future__ import annotations
from typing import Optional, Sequence

from tradescribe.journal.trade_models import TradeRecord

EMPTY_DASH = "—"


def format_currency(value: Optional[float], symbol: str = "$") -> str:
    if value is None or value != value:
        return EMPTY_DASH
    digits = 4 if abs(value) < 1 else 2
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.{digits}f}"


def format_percentage(value: Optional[float]) -> str:
    if value is None or value != value:
        return EMPTY_DASH
    return f"{value:.2f}%"


def format_duration(minutes: Optional[float]) -> str:
    if not minutes or minutes != minutes:
        return EMPTY_DASH
    total = abs(minutes)
    days = int(total // (60 * 24))
    hours = int((total % (60 * 24)) // 60)
    mins = int(total % 60)
    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if mins or not parts:
        parts.append(f"{mins}m")
    return " ".join(parts)


def format_pnl(trade: TradeRecord) -> str:
    if trade.pnl_usd is not None:
        direction = "up" if trade.pnl_usd >= 0 else "down"
        return f"{direction} ${abs(trade.pnl_usd):.2f}"
    if trade.pnl_pct is not None:
        direction = "up" if trade.pnl_pct >= 0 else "down"
        return f"{direction} {abs(trade.pnl_pct):.2f}%"
    return "no recorded PnL"


def empty_search_message(query: str) -> str:
    return (
        f'I couldn\'t find any journal entries related to "{query}". '
        "Try adjusting your filters or add more detail to future notes."
    )


def build_search_answer(query: str, trades: Sequence[TradeRecord], max_items: int = 3) -> str:
    if not trades:
        return empty_search_message(query)
    if len(trades) == 1:
        header = f'I found one trade related to "{query}".'
    else:
        header = f'I found {len(trades)} trades related to "{query}".'
    bullets = []
    for trade in trades[:max_items]:
        latest = trade.latest_note.text if trade.latest_note else "No journal notes recorded yet."
        bullets.append(
            f"• {trade.ticker} {trade.trade_type} ({trade.status}) — {format_pnl(trade)}. {latest}"
        )
    return "\n".join([header, *bullets])
