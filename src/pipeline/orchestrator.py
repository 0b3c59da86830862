"""
Pipeline Orchestrator — composes history parsing and feed reconciliation
into a single ``reconcile_history()`` call.

Used by the reconcile route; pure, no file or network access.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from src.pipeline.reconciliation_engine import (
    MappingResult,
    match_to_feed,
    parse_history,
    to_feed_transactions,
)
from src.pipeline.reconciliation_engine.reconciler import TransactionInput

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Result of a full reconciliation run."""
    spreads_parsed: int
    opening_spreads: int
    closing_spreads: int
    trades_numbered: int
    next_counter: int
    mappings: List[MappingResult] = field(default_factory=list)
    unmapped_transaction_ids: List[str] = field(default_factory=list)

    @property
    def opening_mapped(self) -> int:
        return sum(1 for m in self.mappings if not m.is_closing)

    @property
    def closing_mapped(self) -> int:
        return sum(1 for m in self.mappings if m.is_closing)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mappings": [m.to_dict() for m in self.mappings],
            "nextTradeNum": self.next_counter,
            "unmappedTransactionIds": self.unmapped_transaction_ids,
            "spreadsParsed": self.spreads_parsed,
            "openingSpreads": self.opening_spreads,
            "closingSpreads": self.closing_spreads,
            "tradesNumbered": self.trades_numbered,
            "openingMapped": self.opening_mapped,
            "closingMapped": self.closing_mapped,
        }


def reconcile_history(
    history_text: str,
    transactions: Sequence[TransactionInput],
    starting_counter: int = 1,
    today: Optional[date] = None,
) -> PipelineResult:
    """Parse ``history_text`` and reconcile it against ``transactions``.

    Steps:
      1. parse_history(): text -> chronologically sorted spreads
      2. match_to_feed(): Phase 1 opens, Phase 2 closes
      3. collect the feed ids nothing matched, for manual review
    """
    feed = to_feed_transactions(transactions)

    # ── Step 1: parse ────────────────────────────────────────────────
    spreads = parse_history(history_text, today=today)
    opening = sum(1 for s in spreads if s.is_open)
    logger.info("Step 1: parsed %d spreads (%d opening)", len(spreads), opening)

    if not spreads:
        logger.info("No spreads found, nothing to reconcile")
        return PipelineResult(
            spreads_parsed=0,
            opening_spreads=0,
            closing_spreads=0,
            trades_numbered=0,
            next_counter=starting_counter,
            unmapped_transaction_ids=[t.id for t in feed],
        )

    # ── Step 2: reconcile ────────────────────────────────────────────
    outcome = match_to_feed(spreads, feed, starting_counter=starting_counter, today=today)
    logger.info(
        "Step 2: mapped %d transactions (%d closing)",
        len(outcome.results), len(outcome.closing_results),
    )

    # ── Step 3: leftovers ────────────────────────────────────────────
    leftovers = outcome.unmatched_transactions if outcome.results else feed
    unmapped = [t.id for t in leftovers]
    if unmapped:
        logger.info("Step 3: %d transactions remain unmapped", len(unmapped))

    return PipelineResult(
        spreads_parsed=len(spreads),
        opening_spreads=opening,
        closing_spreads=len(spreads) - opening,
        trades_numbered=outcome.next_counter - starting_counter,
        next_counter=outcome.next_counter,
        mappings=outcome.results,
        unmapped_transaction_ids=unmapped,
    )
