"""Two-phase reconciliation of parsed spreads against the transaction feed.

Phase 1 numbers every opening spread in chronological order and matches its
legs to feed transactions. Phase 2 pairs every closing spread with the
opening spread it unwinds, reuses that trade number, and matches the closing
legs.

The trade counter is threaded explicitly: ``match_to_feed`` takes the first
number to hand out and reports the next one. ``HistoryReconciler`` wraps the
same call for callers that keep numbering across imports of one account.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Set, Union

from .matching import match_spread_legs, spreads_match
from .parser import parse_history
from .types import FeedTransaction, MappingResult, ReconciliationResult, Spread

logger = logging.getLogger(__name__)

TransactionInput = Union[FeedTransaction, Dict[str, Any]]


def to_feed_transactions(transactions: Sequence[TransactionInput]) -> List[FeedTransaction]:
    return [
        t if isinstance(t, FeedTransaction) else FeedTransaction.from_dict(t)
        for t in transactions
    ]


def _describe(spread: Spread) -> str:
    legs = "Single" if len(spread.legs) == 1 else f"{len(spread.legs)} legs"
    return (
        f"{spread.symbol} {spread.strategy_name} "
        f"(date {spread.legs[0].filled_date}, price ${spread.limit_price}, {legs})"
    )


def _map_opening(
    opening: List[Spread],
    feed: List[FeedTransaction],
    starting_counter: int,
    consumed: Set[int],
    result: ReconciliationResult,
    today: Optional[date],
) -> int:
    counter = starting_counter
    for spread in opening:
        trade_num = counter
        counter += 1
        spread.trade_num = trade_num

        logger.info("Trade #%d: %s", trade_num, _describe(spread))
        matches = match_spread_legs(spread, feed, trade_num, False, consumed, today)
        if matches:
            result.results.extend(matches)
            logger.info("Mapped %d opening transaction(s)", len(matches))
        else:
            result.unmatched_spreads.append(spread)
            logger.info("No match found for trade #%d", trade_num)
    return counter


def _map_closing(
    opening: List[Spread],
    closing: List[Spread],
    feed: List[FeedTransaction],
    consumed: Set[int],
    result: ReconciliationResult,
    today: Optional[date],
) -> None:
    for spread in closing:
        opener = next((o for o in opening if spreads_match(o, spread, today)), None)
        if opener is None or opener.trade_num is None:
            result.unmatched_spreads.append(spread)
            logger.info("Close %s: no matching open found", _describe(spread))
            continue

        trade_num = opener.trade_num
        spread.trade_num = trade_num
        logger.info("Trade #%d CLOSE: %s", trade_num, _describe(spread))
        matches = match_spread_legs(spread, feed, trade_num, True, consumed, today)
        if matches:
            result.results.extend(matches)
            logger.info("Mapped %d closing transaction(s)", len(matches))
        else:
            result.unmatched_spreads.append(spread)
            logger.info("No match found for close of trade #%d", trade_num)


def match_to_feed(
    spreads: List[Spread],
    transactions: Sequence[TransactionInput],
    starting_counter: int = 1,
    today: Optional[date] = None,
) -> ReconciliationResult:
    """Reconcile ``spreads`` against ``transactions``.

    Transactions are never modified; each can be consumed by at most one
    match (tracked by object identity), and the consumed feed ids are
    returned along with the transactions left over. Unexpected failures are
    logged and produce an empty result that leaves the counter where it was.
    """
    try:
        feed = to_feed_transactions(transactions)
        result = ReconciliationResult(next_counter=starting_counter)
        consumed: Set[int] = set()

        opening = [s for s in spreads if s.is_open]
        closing = [s for s in spreads if not s.is_open]

        logger.info("PHASE 1: %d opening positions to map", len(opening))
        result.next_counter = _map_opening(
            opening, feed, starting_counter, consumed, result, today
        )
        logger.info(
            "PHASE 1 complete: %d opening transactions mapped", len(result.results)
        )

        logger.info("PHASE 2: %d closing positions to map", len(closing))
        _map_closing(opening, closing, feed, consumed, result, today)
        logger.info(
            "PHASE 2 complete: %d closing transactions mapped",
            len(result.closing_results),
        )

        result.consumed_ids = {t.id for t in feed if id(t) in consumed}
        result.unmatched_transactions = [t for t in feed if id(t) not in consumed]
        logger.info(
            "Total: %d transactions mapped across %d trades",
            len(result.results), result.next_counter - starting_counter,
        )
        return result
    except Exception:
        logger.exception("Matching failed")
        return ReconciliationResult(next_counter=starting_counter)


class HistoryReconciler:
    """Stateful front end that keeps the trade counter between runs.

    Call ``reset_counter()`` before reconciling an unrelated import;
    otherwise numbering continues where the previous run stopped.
    """

    def __init__(self, today: Optional[date] = None):
        self._trade_counter = 1
        self._today = today

    @property
    def trade_counter(self) -> int:
        return self._trade_counter

    @trade_counter.setter
    def trade_counter(self, value: int) -> None:
        if value < 1:
            raise ValueError("trade counter starts at 1")
        self._trade_counter = value

    def parse_history(self, history_text: str) -> List[Spread]:
        return parse_history(history_text, today=self._today)

    def match_to_plaid(
        self,
        spreads: List[Spread],
        transactions: Sequence[TransactionInput],
    ) -> List[MappingResult]:
        outcome = match_to_feed(
            spreads, transactions, starting_counter=self._trade_counter, today=self._today
        )
        self._trade_counter = outcome.next_counter
        return outcome.results

    def reset_counter(self) -> None:
        self._trade_counter = 1
