"""
Trade Analytics Engine — summary statistics over a record set
==============================================================

Pure function of the records passed in; nothing is persisted.

  - Win rate over closed trades (pnl_usd first, pnl_pct as fallback)
  - Average R:R and hold time over records that carry them
  - Longest / current win streak in close-time order
  - Best / worst closed trade
  - Per-ticker and per-sentiment rollups
  - Cumulative USD P&L timeline
"""

from __future__ import annotations
import math
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Sequence

from tradescribe.journal.trade_models import TradeRecord, parse_timestamp

UNSPECIFIED_SENTIMENT = "unspecified"


@dataclass
class TickerPerformance:
    ticker: str
    trades: int = 0
    total_pnl_usd: float = 0.0
    win_rate: float = 0.0


@dataclass
class SentimentPerformance:
    sentiment: str
    trades: int = 0
    average_pnl_usd: float = 0.0
    win_rate: float = 0.0


@dataclass
class TimelinePoint:
    date: str
    cumulative_pnl_usd: float
    trade_id: str
    label: str


@dataclass
class AnalyticsSummary:
    total_trades: int = 0
    open_trades: int = 0
    closed_trades: int = 0
    win_rate: float = 0.0
    average_rr: Optional[float] = None
    average_hold_minutes: Optional[float] = None
    longest_win_streak: int = 0
    current_win_streak: int = 0
    best_trade: Optional[TradeRecord] = None
    worst_trade: Optional[TradeRecord] = None
    performance_by_ticker: List[TickerPerformance] = field(default_factory=list)
    sentiment_performance: List[SentimentPerformance] = field(default_factory=list)
    pnl_timeline: List[TimelinePoint] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value):
        return None
    return float(value)


def _pct(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


def is_win(trade: TradeRecord) -> bool:
    usd = _number(trade.pnl_usd)
    if usd is not None:
        return usd > 0
    pct = _number(trade.pnl_pct)
    if pct is not None:
        return pct > 0
    return False


def _pnl_score(trade: TradeRecord, missing: float) -> float:
    usd = _number(trade.pnl_usd)
    if usd is not None:
        return usd
    pct = _number(trade.pnl_pct)
    return pct if pct is not None else missing


def _mean(values: List[float]) -> Optional[float]:
    return round(sum(values) / len(values), 2) if values else None


def _streaks(closed: Sequence[TradeRecord]) -> tuple:
    ordered = sorted(closed, key=lambda t: parse_timestamp(t.closed_at) or 0.0)
    longest = current = 0
    for trade in ordered:
        if is_win(trade):
            current += 1
            longest = max(longest, current)
        else:
            current = 0
    return longest, current


def _best_and_worst(closed: Sequence[TradeRecord]) -> tuple:
    best = worst = None
    for trade in closed:
        if best is None or _pnl_score(trade, -math.inf) > _pnl_score(best, -math.inf):
            best = trade
        if worst is None or _pnl_score(trade, math.inf) < _pnl_score(worst, math.inf):
            worst = trade
    return best, worst


def _by_ticker(trades: Sequence[TradeRecord]) -> List[TickerPerformance]:
    groups: Dict[str, Dict[str, float]] = {}
    for trade in trades:
        g = groups.setdefault(trade.ticker.upper(), {"trades": 0, "pnl": 0.0, "wins": 0})
        g["trades"] += 1
        g["pnl"] += _number(trade.pnl_usd) or 0.0
        g["wins"] += 1 if is_win(trade) else 0
    return [
        TickerPerformance(
            ticker=ticker,
            trades=int(g["trades"]),
            total_pnl_usd=round(g["pnl"], 2),
            win_rate=_pct(int(g["wins"]), int(g["trades"])),
        )
        for ticker, g in groups.items()
    ]


def _by_sentiment(trades: Sequence[TradeRecord]) -> List[SentimentPerformance]:
    groups: Dict[str, Dict[str, float]] = {}
    for trade in trades:
        key = (trade.sentiment or UNSPECIFIED_SENTIMENT).lower()
        g = groups.setdefault(key, {"trades": 0, "pnl": 0.0, "wins": 0})
        g["trades"] += 1
        g["pnl"] += _number(trade.pnl_usd) or 0.0
        g["wins"] += 1 if is_win(trade) else 0
    return [
        SentimentPerformance(
            sentiment=sentiment,
            trades=int(g["trades"]),
            average_pnl_usd=round(g["pnl"] / g["trades"], 2) if g["trades"] else 0.0,
            win_rate=_pct(int(g["wins"]), int(g["trades"])),
        )
        for sentiment, g in groups.items()
    ]


def _timeline(trades: Sequence[TradeRecord]) -> List[TimelinePoint]:
    dated = [(trade.closed_at or trade.created_at, trade) for trade in trades]
    dated.sort(key=lambda pair: parse_timestamp(pair[0]) or 0.0)
    points = []
    running = 0.0
    for date, trade in dated:
        running += _number(trade.pnl_usd) or 0.0
        points.append(TimelinePoint(
            date=date,
            cumulative_pnl_usd=round(running, 2),
            trade_id=trade.trade_id,
            label=f"{trade.ticker} {trade.trade_type.upper()}",
        ))
    return points


def calculate_analytics(trades: Sequence[TradeRecord]) -> AnalyticsSummary:
    closed = [t for t in trades if t.is_closed]

    rr_values = [v for v in (_number(t.rr_ratio) for t in trades) if v is not None]
    hold_values = [v for v in (_number(t.duration_minutes) for t in trades) if v is not None]

    wins = sum(1 for t in closed if is_win(t))
    longest, current = _streaks(closed)
    best, worst = _best_and_worst(closed)

    return AnalyticsSummary(
        total_trades=len(trades),
        open_trades=len(trades) - len(closed),
        closed_trades=len(closed),
        win_rate=_pct(wins, len(closed)),
        average_rr=_mean(rr_values),
        average_hold_minutes=_mean(hold_values),
        longest_win_streak=longest,
        current_win_streak=current,
        best_trade=best,
        worst_trade=worst,
        performance_by_ticker=_by_ticker(trades),
        sentiment_performance=_by_sentiment(trades),
        pnl_timeline=_timeline(trades),
    )
