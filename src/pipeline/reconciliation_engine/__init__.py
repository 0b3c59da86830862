"""Reconciliation engine: brokerage history text vs. aggregator feed.

Public API:
    parse_history(text) -> List[Spread]
    match_to_feed(spreads, transactions, starting_counter) -> ReconciliationResult
    HistoryReconciler: parse_history / match_to_plaid / reset_counter
"""

from .parser import parse_history
from .reconciler import HistoryReconciler, match_to_feed, to_feed_transactions
from .classification import assign_coa, map_strategy
from .types import (
    Action,
    Confidence,
    FeedTransaction,
    Leg,
    MappingResult,
    OptionType,
    PositionEffect,
    ReconciliationResult,
    Spread,
)

__all__ = [
    "parse_history",
    "match_to_feed",
    "to_feed_transactions",
    "HistoryReconciler",
    "assign_coa",
    "map_strategy",
    "Action",
    "Confidence",
    "FeedTransaction",
    "Leg",
    "MappingResult",
    "OptionType",
    "PositionEffect",
    "ReconciliationResult",
    "Spread",
]
