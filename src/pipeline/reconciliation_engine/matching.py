"""Leg-matching primitives shared by both reconciliation phases.

A spread is matched against the feed as a unit: every leg must find its own
transaction inside a single same-date combination, or nothing is matched.
"""

import logging
from datetime import date, timedelta
from itertools import combinations
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .classification import assign_coa, map_strategy
from .constants import (
    CLOSE_PHRASE,
    COMBO_PRICE_TOLERANCE,
    DATE_BUCKET_SPREAD_DAYS,
    LEG_EXPIRY_TOLERANCE_DAYS,
    LEG_PRICE_TOLERANCE_FLOOR,
    LEG_PRICE_TOLERANCE_PCT,
    SPREAD_EXPIRY_TOLERANCE_DAYS,
    STRIKE_TOLERANCE,
)
from .dates import days_between, parse_feed_date, parse_feed_expiry, parse_history_expiry
from .types import Confidence, FeedTransaction, Leg, MappingResult, PositionEffect, Spread

logger = logging.getLogger(__name__)

LegAssignment = List[Tuple[Leg, FeedTransaction]]


def format_strike(strike: float) -> str:
    return str(int(strike)) if float(strike).is_integer() else str(strike)


# ---------------------------------------------------------------------------
# Candidate pools
# ---------------------------------------------------------------------------

def build_date_buckets(
    transactions: Iterable[FeedTransaction],
    symbol: str,
    consumed: Set[int],
) -> Dict[str, List[FeedTransaction]]:
    """Group unconsumed transactions for ``symbol`` by calendar date.

    ``consumed`` holds the ``id()`` of every transaction already matched, so
    transactions without a feed id stay independent of each other.

    Each transaction also joins the buckets of the neighbouring days so a
    fill reported a day early or late still meets the other legs. Buckets
    keep first-seen order, which fixes the search order.
    """
    buckets: Dict[str, List[FeedTransaction]] = {}
    for txn in transactions:
        if id(txn) in consumed or txn.underlying != symbol:
            continue

        buckets.setdefault(txn.date_key, []).append(txn)

        txn_date = parse_feed_date(txn.date)
        if txn_date is None:
            continue
        for offset in (-DATE_BUCKET_SPREAD_DAYS, DATE_BUCKET_SPREAD_DAYS):
            key = (txn_date + timedelta(days=offset)).isoformat()
            bucket = buckets.setdefault(key, [])
            if all(existing is not txn for existing in bucket):
                bucket.append(txn)
    return buckets


def combo_within_tolerance(combo: Tuple[FeedTransaction, ...], limit_price: float) -> bool:
    """Uniform quantity and a per-contract total near the order's limit price."""
    first_qty = combo[0].quantity or 1
    if any(t.quantity != first_qty for t in combo):
        logger.debug(
            "Quantity mismatch in combo: %s",
            ", ".join(str(t.quantity) for t in combo),
        )
        return False

    per_contract = abs(sum(t.amount for t in combo)) / first_qty
    diff = round(abs(per_contract - limit_price), 2)
    if diff > COMBO_PRICE_TOLERANCE:
        logger.debug(
            "Price mismatch: combo=$%.2f, limit=$%.2f, diff=$%.2f",
            per_contract, limit_price, diff,
        )
        return False
    return True


# ---------------------------------------------------------------------------
# Per-leg predicate
# ---------------------------------------------------------------------------

def position_effect_agrees(leg: Leg, txn: FeedTransaction) -> bool:
    """Whether the feed name's "to close" phrase agrees with the leg."""
    has_close = CLOSE_PHRASE in (txn.name or "").lower()
    if leg.position is PositionEffect.CLOSE:
        return has_close
    return not has_close


def leg_price_tolerance(leg_price: float) -> float:
    return max(leg_price * LEG_PRICE_TOLERANCE_PCT, LEG_PRICE_TOLERANCE_FLOOR)


def leg_matches_transaction(leg: Leg, txn: FeedTransaction, today: Optional[date] = None) -> bool:
    strike = txn.option_strike_price
    if not strike or abs(strike - leg.strike) > STRIKE_TOLERANCE:
        return False

    if (txn.option_contract_type or "").lower() != leg.option_type.value:
        return False

    if (txn.type or "").lower() != leg.action.value:
        return False

    if not position_effect_agrees(leg, txn):
        # Advisory only; the remaining checks decide.
        logger.debug("Position effect disagrees for txn %s, accepting", txn.id)

    price_diff = round(abs(abs(txn.price) - leg.price), 2)
    if price_diff > round(leg_price_tolerance(leg.price), 2):
        return False

    if txn.quantity != leg.quantity:
        return False

    history_expiry = parse_history_expiry(leg.expiry, today)
    feed_expiry = parse_feed_expiry(txn.option_expiration_date)
    if history_expiry and feed_expiry:
        if days_between(history_expiry, feed_expiry) > LEG_EXPIRY_TOLERANCE_DAYS:
            return False

    return True


def assign_legs(
    legs: List[Leg],
    combo: Tuple[FeedTransaction, ...],
    today: Optional[date] = None,
) -> Optional[LegAssignment]:
    """Give every leg its own transaction from ``combo``; None if any leg fails."""
    used: Set[int] = set()
    pairs: LegAssignment = []
    for leg in legs:
        found = None
        for pos, txn in enumerate(combo):
            if pos not in used and leg_matches_transaction(leg, txn, today):
                found = pos
                break
        if found is None:
            logger.debug(
                "Failed to match leg: %s %s $%s %s",
                leg.action.value, leg.symbol, format_strike(leg.strike), leg.option_type.value,
            )
            return None
        used.add(found)
        pairs.append((leg, combo[found]))
    return pairs


# ---------------------------------------------------------------------------
# Spread-level matching
# ---------------------------------------------------------------------------

def expiries_match(expiry_a: str, expiry_b: str, today: Optional[date] = None) -> bool:
    a = parse_history_expiry(expiry_a, today)
    b = parse_history_expiry(expiry_b, today)
    if a is None or b is None:
        return False
    return days_between(a, b) < SPREAD_EXPIRY_TOLERANCE_DAYS


def spreads_match(opening: Spread, closing: Spread, today: Optional[date] = None) -> bool:
    """Whether ``closing`` unwinds the same option contracts as ``opening``."""
    if opening.symbol != closing.symbol:
        return False
    if len(opening.legs) != len(closing.legs):
        return False

    for close_leg in closing.legs:
        if not any(
            abs(open_leg.strike - close_leg.strike) < STRIKE_TOLERANCE
            and open_leg.option_type is close_leg.option_type
            and expiries_match(open_leg.expiry, close_leg.expiry, today)
            for open_leg in opening.legs
        ):
            return False
    return True


def _to_results(
    spread: Spread,
    pairs: LegAssignment,
    trade_num: int,
    is_closing: bool,
) -> List[MappingResult]:
    strategy = map_strategy(spread.strategy_name)
    return [
        MappingResult(
            txn_id=txn.id,
            trade_num=str(trade_num),
            strategy=strategy,
            coa=assign_coa(leg, is_closing),
            confidence=Confidence.HIGH,
            matched_to=f"{spread.symbol} {format_strike(leg.strike)} {leg.option_type.value}",
            rh_quantity=leg.quantity,
            rh_price=leg.price,
            rh_principal=leg.principal,
            rh_fees=leg.fees,
            rh_net_amount=leg.net_amount,
            rh_action=leg.action.value.upper(),
            is_closing=is_closing,
        )
        for leg, txn in pairs
    ]


def match_spread_legs(
    spread: Spread,
    transactions: List[FeedTransaction],
    trade_num: int,
    is_closing: bool,
    consumed: Set[int],
    today: Optional[date] = None,
) -> List[MappingResult]:
    """Match all legs of ``spread`` or none.

    On success the matched transactions are added to ``consumed`` by ``id()``.
    Buckets are tried in first-seen order, combinations in generation order;
    the first combination that satisfies every leg wins.
    """
    symbol_count = sum(1 for t in transactions if t.underlying == spread.symbol)
    logger.debug("Found %d transactions for %s", symbol_count, spread.symbol)
    if symbol_count == 0:
        return []

    leg_count = len(spread.legs)
    buckets = build_date_buckets(transactions, spread.symbol, consumed)

    for day, candidates in buckets.items():
        if len(candidates) < leg_count:
            logger.debug(
                "Skipping date %s: only %d txns, need %d", day, len(candidates), leg_count
            )
            continue

        for combo in combinations(candidates, leg_count):
            if not combo_within_tolerance(combo, spread.limit_price):
                continue
            pairs = assign_legs(spread.legs, combo, today)
            if pairs is None:
                continue

            logger.debug("All %d leg(s) matched on %s", leg_count, day)
            consumed.update(id(txn) for _, txn in pairs)
            return _to_results(spread, pairs, trade_num, is_closing)

    return []
