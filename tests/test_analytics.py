"""
Tests for the analytics engine: win rate, averages, streaks, best/worst,
rollups and the cumulative P&L timeline.
"""

from conftest import make_trade
from tradescribe.journal.trade_analytics import (
    UNSPECIFIED_SENTIMENT,
    calculate_analytics,
    is_win,
)


def _closed(trade_id, pnl, closed_at, **overrides):
    return make_trade(trade_id, "AAPL", "closed", created_at="2026-01-01T00:00:00Z",
                      closed_at=closed_at, pnl_usd=pnl, **overrides)


class TestIsWin:

    def test_usd_takes_precedence(self):
        assert is_win(make_trade(pnl_usd=10.0, pnl_pct=-5.0))
        assert not is_win(make_trade(pnl_usd=0.0, pnl_pct=5.0))

    def test_pct_fallback_and_missing(self):
        assert is_win(make_trade(pnl_pct=1.0))
        assert not is_win(make_trade())


class TestCalculateAnalytics:
    """Summary over a mixed record set"""

    def test_empty_set(self):
        summary = calculate_analytics([])
        assert summary.total_trades == 0
        assert summary.win_rate == 0.0
        assert summary.average_rr is None
        assert summary.best_trade is None
        assert summary.pnl_timeline == []

    def test_three_closed_trades(self):
        trades = [
            _closed("c", 75.0, "2026-01-03T00:00:00Z"),
            _closed("a", 100.0, "2026-01-01T00:00:00Z"),
            _closed("b", -50.0, "2026-01-02T00:00:00Z"),
        ]
        summary = calculate_analytics(trades)

        assert summary.closed_trades == 3
        assert summary.win_rate == 66.67
        assert summary.longest_win_streak == 1
        assert summary.current_win_streak == 1
        assert summary.best_trade.trade_id == "a"
        assert summary.worst_trade.trade_id == "b"
        assert [p.cumulative_pnl_usd for p in summary.pnl_timeline] == [100.0, 50.0, 125.0]
        assert summary.pnl_timeline[0].label == "AAPL LONG"

    def test_streaks_follow_close_order(self):
        trades = [
            _closed("w1", 10.0, "2026-01-01T00:00:00Z"),
            _closed("w2", 10.0, "2026-01-02T00:00:00Z"),
            _closed("l1", -5.0, "2026-01-03T00:00:00Z"),
            _closed("w3", 10.0, "2026-01-04T00:00:00Z"),
        ]
        summary = calculate_analytics(trades)
        assert summary.longest_win_streak == 2
        assert summary.current_win_streak == 1

    def test_missing_close_time_sorts_first_in_streaks(self):
        trades = [
            _closed("w1", 10.0, "2026-01-01T00:00:00Z"),
            _closed("w2", 10.0, "2026-01-02T00:00:00Z"),
            _closed("undated-loss", -5.0, None),
        ]
        summary = calculate_analytics(trades)
        assert summary.longest_win_streak == 2
        assert summary.current_win_streak == 2

    def test_best_and_worst_ties_keep_first_seen(self):
        trades = [
            _closed("best-1", 50.0, "2026-01-01T00:00:00Z"),
            _closed("worst-1", -20.0, "2026-01-02T00:00:00Z"),
            _closed("best-2", 50.0, "2026-01-03T00:00:00Z"),
            _closed("worst-2", -20.0, "2026-01-04T00:00:00Z"),
        ]
        summary = calculate_analytics(trades)
        assert summary.best_trade.trade_id == "best-1"
        assert summary.worst_trade.trade_id == "worst-1"

    def test_open_trades_counted_but_not_scored(self):
        trades = [_closed("a", 10.0, "2026-01-01T00:00:00Z"), make_trade("o", status="open")]
        summary = calculate_analytics(trades)
        assert summary.open_trades == 1
        assert summary.win_rate == 100.0

    def test_averages_skip_missing(self):
        trades = [make_trade("a", rr_ratio=2.0, duration_minutes=30.0),
                  make_trade("b", rr_ratio=3.0), make_trade("c")]
        summary = calculate_analytics(trades)
        assert summary.average_rr == 2.5
        assert summary.average_hold_minutes == 30.0

    def test_rollups(self):
        trades = [
            _closed("a", 100.0, "2026-01-01T00:00:00Z", sentiment="Bullish"),
            _closed("b", -40.0, "2026-01-02T00:00:00Z", sentiment="bullish"),
            make_trade("c", "msft", "open"),
        ]
        summary = calculate_analytics(trades)

        by_ticker = {p.ticker: p for p in summary.performance_by_ticker}
        assert by_ticker["AAPL"].trades == 2
        assert by_ticker["AAPL"].total_pnl_usd == 60.0
        assert by_ticker["AAPL"].win_rate == 50.0
        assert by_ticker["MSFT"].trades == 1

        by_sentiment = {p.sentiment: p for p in summary.sentiment_performance}
        assert by_sentiment["bullish"].average_pnl_usd == 30.0
        assert by_sentiment[UNSPECIFIED_SENTIMENT].trades == 1

    def test_to_dict_is_plain_data(self):
        summary = calculate_analytics([_closed("a", 10.0, "2026-01-01T00:00:00Z")])
        data = summary.to_dict()
        assert data["best_trade"]["trade_id"] == "a"
        assert data["pnl_timeline"][0]["trade_id"] == "a"
