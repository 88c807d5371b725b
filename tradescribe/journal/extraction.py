"""
Extraction Coordinator — note → validated ExtractionDraft
==========================================================

1. If an extraction capability is configured, ask it (bounded by a timeout)
   with the note, the forced target id and a condensed view of open trades.
2. Validate its JSON against the strict draft schema (extra keys rejected).
3. Any Failure, timeout or schema violation → heuristic extractor.
4. A caller-supplied target id always forces action=update.

refine() reuses the same capability to correct an existing trade from a new
note. It has no heuristic fallback: a Failure means "keep the manual edit".
"""

from __future__ import annotations
import asyncio
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from tradescribe.ai.capabilities import ExtractionCapability, Failure, Ok, Result
from tradescribe.journal.heuristics import HeuristicExtractor
from tradescribe.journal.trade_models import DraftAction, ExtractionDraft, TradeRecord
from tradescribe.utils.exceptions import CapabilityError
from tradescribe.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_EXTRACTION_TIMEOUT = 20.0

# Fields a reanalysis may overwrite on a stored trade.
REFINABLE_FIELDS = frozenset({
    "size", "entry_price", "exit_price", "pnl_pct", "pnl_usd",
    "duration_minutes", "rr_ratio", "sentiment", "raw_summary",
})


def collect_open_trade_context(trades: Sequence[TradeRecord]) -> List[Dict[str, Any]]:
    return [
        {
            "trade_id": t.trade_id,
            "ticker": t.ticker,
            "trade_type": t.trade_type,
            "entry_price": t.entry_price,
            "opened_at": t.opened_at,
            "sentiment": t.sentiment,
            "latest_note": t.latest_note.text if t.latest_note else "",
        }
        for t in trades
    ]


def parse_draft(raw: Any) -> Result[ExtractionDraft]:
    try:
        return Ok(ExtractionDraft.model_validate(raw))
    except ValidationError as e:
        return Failure.of(f"draft schema violation: {e.error_count()} error(s)")


class ExtractionCoordinator:
    """Decides create vs update and always returns a valid draft."""

    def __init__(self, capability: Optional[ExtractionCapability] = None,
                 heuristics: Optional[HeuristicExtractor] = None,
                 timeout_seconds: float = DEFAULT_EXTRACTION_TIMEOUT):
        self._capability = capability
        self._heuristics = heuristics or HeuristicExtractor()
        self._timeout = timeout_seconds

    @property
    def uses_model(self) -> bool:
        return self._capability is not None

    async def _call_capability(self, note: str, forced_target_id: Optional[str],
                               open_trades: Sequence[TradeRecord]) -> Result[ExtractionDraft]:
        context = collect_open_trade_context(open_trades)
        try:
            result = await asyncio.wait_for(
                self._capability.extract(note, forced_target_id, context),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            return Failure.of(f"extraction timed out after {self._timeout}s")
        except Exception as e:
            # Misbehaving plugins are treated like any other unavailable capability.
            return Failure(CapabilityError(f"extraction raised {type(e).__name__}: {e}"))
        if isinstance(result, Failure):
            return result
        return parse_draft(result.value)

    async def extract(self, note: str, forced_target_id: Optional[str] = None,
                      open_trades: Sequence[TradeRecord] = ()) -> ExtractionDraft:
        draft: Optional[ExtractionDraft] = None

        if self._capability is not None:
            result = await self._call_capability(note, forced_target_id, open_trades)
            if isinstance(result, Ok):
                draft = result.value
            else:
                logger.warning("extraction_fallback", reason=result.reason)

        if draft is None:
            draft = self._heuristics.extract(note, forced_target_id, open_trades)

        if forced_target_id:
            draft = draft.model_copy(update={
                "action": DraftAction.UPDATE,
                "target_trade_id": forced_target_id,
            })

        logger.info("note_extracted", action=draft.action.value,
                    target=draft.target_trade_id, model=self.uses_model)
        return draft

    async def refine(self, note: str, trade: TradeRecord) -> Result[Dict[str, Any]]:
        """Model corrections for the numbers, sentiment and summary of a stored trade."""
        if self._capability is None:
            return Failure.of("no extraction capability configured")
        result = await self._call_capability(note, trade.trade_id, [trade])
        if isinstance(result, Failure):
            return result
        fields = {
            name: value for name, value in result.value.trade.provided().items()
            if name in REFINABLE_FIELDS
        }
        logger.info("trade_refined", trade_id=trade.trade_id, fields=sorted(fields))
        return Ok(fields)
