"""
Tests for the field sanitizer and the pattern-based note extractor.

Covers ticker/kind/status normalization, number coercion, each numeric
pattern family, sentiment classes and the create-vs-update decision.
"""

import pytest

from conftest import make_trade
from tradescribe.journal.heuristics import (
    HEURISTIC_REASONING,
    HeuristicExtractor,
    detect_closing,
    detect_sentiment,
    detect_trade_type,
    extract_duration_minutes,
    extract_number,
    extract_pnl_usd,
    ENTRY_PATTERNS,
    RR_PATTERNS,
    SIZE_PATTERNS,
)
from tradescribe.journal.sanitize import (
    UNKNOWN_TICKER,
    coerce_number,
    sanitize_status,
    sanitize_ticker,
    sanitize_trade_type,
)
from tradescribe.journal.trade_models import DraftAction


class TestSanitize:
    """Loose values → canonical field values"""

    def test_ticker_trimmed_and_uppercased(self):
        assert sanitize_ticker("  aapl ") == "AAPL"

    @pytest.mark.parametrize("value", [None, "", "   ", 42])
    def test_ticker_unknown_for_blank_or_non_text(self, value):
        assert sanitize_ticker(value) == UNKNOWN_TICKER

    def test_trade_type_lowercased(self):
        assert sanitize_trade_type(" PUT ") == "put"

    @pytest.mark.parametrize("value", [None, "straddle", 3])
    def test_trade_type_defaults_to_long(self, value):
        assert sanitize_trade_type(value) == "long"

    def test_status_closed_only_on_exact_word(self):
        assert sanitize_status("Closed") == "closed"
        assert sanitize_status("closing") == "open"
        assert sanitize_status(None) == "open"

    def test_coerce_number_accepts_numeric_strings(self):
        assert coerce_number("1,250.50") == 1250.5
        assert coerce_number(7) == 7.0

    @pytest.mark.parametrize("value", [None, True, "abc", "", float("nan"), float("inf"), [1]])
    def test_coerce_number_rejects_non_numbers(self, value):
        assert coerce_number(value) is None


class TestPatterns:
    """Individual detectors"""

    def test_entry_from_at_sign(self):
        assert extract_number("Bought 100 AAPL calls @ 5.20", ENTRY_PATTERNS) == 5.2

    def test_entry_from_bought_at(self):
        assert extract_number("bought NVDA at 131.40 on the open", ENTRY_PATTERNS) == 131.4

    def test_size_from_shares(self):
        assert extract_number("picked up 250 shares", SIZE_PATTERNS) == 250.0

    def test_size_from_ticker_and_contract_word(self):
        assert extract_number("Bought 100 AAPL calls @ 5.20", SIZE_PATTERNS) == 100.0

    def test_rr_ratio(self):
        assert extract_number("aiming for 2.5R on this one", RR_PATTERNS) == 2.5

    def test_first_matching_pattern_wins(self):
        assert extract_number("entry 10, @ 12", ENTRY_PATTERNS) == 10.0

    def test_no_match_is_none(self):
        assert extract_number("nothing numeric here", ENTRY_PATTERNS) is None

    def test_pnl_profit_after_amount(self):
        assert extract_pnl_usd("Closed AAPL for $350 profit") == 350.0

    def test_pnl_loss_is_negative(self):
        assert extract_pnl_usd("took a loss of $120 on it") == -120.0

    @pytest.mark.parametrize("note", [
        "Closed TSLA, took profit, up 15%",
        "Closed TSLA, loss of 12.5%",
        "pnl 8 %",
    ])
    def test_percentages_are_not_dollar_pnl(self, note):
        assert extract_pnl_usd(note) is None

    def test_bare_pnl_amount_is_taken_whole(self):
        assert extract_pnl_usd("loss of 1,250.50, lesson learned") == -1250.5

    def test_duration_minutes_and_hours(self):
        assert extract_duration_minutes("held for 45 minutes") == 45.0
        assert extract_duration_minutes("held for 2.5 hours") == 150.0
        assert extract_duration_minutes("held overnight") is None

    def test_trade_type_priority(self):
        assert detect_trade_type("short the puts") == "put"
        assert detect_trade_type("calls, then shorted") == "call"
        assert detect_trade_type("shorted the open") == "short"
        assert detect_trade_type("bought shares") is None

    def test_closing_keywords(self):
        assert detect_closing("Stopped out at the lows")
        assert detect_closing("took profit into strength")
        assert not detect_closing("still holding")

    def test_sentiment_first_class_wins(self):
        assert detect_sentiment("confident but nervous") == "bearish"
        assert detect_sentiment("felt confident") == "bullish"
        assert detect_sentiment("pretty frustrated") == "frustrated"
        assert detect_sentiment("just a trade") is None


class TestHeuristicExtractor:
    """Note → ExtractionDraft"""

    @pytest.fixture
    def extractor(self):
        return HeuristicExtractor()

    def test_dollar_symbol_ticker_preferred(self, extractor):
        assert extractor.detect_ticker("NOTE: long $tsla here") == "TSLA"

    def test_excluded_words_skipped(self, extractor):
        assert extractor.detect_ticker("LONG CALL AMD") == "AMD"

    def test_exclusions_are_configurable(self):
        extractor = HeuristicExtractor(ticker_exclusions=["LONG", "AMD"])
        assert extractor.detect_ticker("LONG AMD NVDA") == "NVDA"

    def test_create_from_opening_note(self, extractor):
        draft = extractor.extract("Bought 100 AAPL calls @ 5.20")

        assert draft.action == DraftAction.CREATE
        assert draft.target_trade_id is None
        assert draft.reasoning == HEURISTIC_REASONING
        fields = draft.trade.provided()
        assert fields["ticker"] == "AAPL"
        assert fields["trade_type"] == "call"
        assert fields["entry_price"] == 5.2
        assert fields["size"] == 100.0
        assert fields["status"] == "open"

    def test_closing_note_targets_open_trade_with_same_ticker(self, extractor):
        open_trade = make_trade("open-aapl", "AAPL", "open", trade_type="call")
        draft = extractor.extract("Closed AAPL for $350 profit, felt confident",
                                  open_trades=[open_trade])

        assert draft.action == DraftAction.UPDATE
        assert draft.target_trade_id == "open-aapl"
        fields = draft.trade.provided()
        assert fields["status"] == "closed"
        assert fields["pnl_usd"] == 350.0
        assert fields["sentiment"] == "bullish"
        assert "exit_price" not in fields
        assert "trade_type" not in fields

    def test_closing_note_without_matching_trade_creates(self, extractor):
        other = make_trade("open-msft", "MSFT", "open")
        draft = extractor.extract("Closed AAPL for $350 profit", open_trades=[other])

        assert draft.action == DraftAction.CREATE
        assert draft.trade.provided()["status"] == "closed"

    def test_plain_update_hint(self, extractor):
        open_trade = make_trade("open-aapl", "AAPL", "open")
        draft = extractor.extract("AAPL still in, adding on dips", open_trades=[open_trade])
        assert draft.action == DraftAction.UPDATE
        assert draft.trade.status is None

    def test_forced_target_makes_update(self, extractor):
        draft = extractor.extract("some thoughts", target_trade_id="abc")
        assert draft.action == DraftAction.UPDATE
        assert draft.target_trade_id == "abc"

    def test_summary_is_truncated(self):
        extractor = HeuristicExtractor(summary_max_chars=10)
        draft = extractor.extract("AAPL " + "x" * 50)
        assert draft.trade.raw_summary == "AAPL xxxxx"
