"""Block parser: token stream -> chronologically ordered spreads.

Two record shapes are recognised:

* a spread header (``AAPL Put Credit Spread``) followed by submit date,
  limit price and one or more leg lines, ending at the next header, a
  ``Download Trade Confirmation`` line or a pager line;
* a bare leg line, which becomes a one-leg spread.

Malformed legs (no fill price or no fill date) are dropped; the parse never
raises to the caller.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Tuple

from .classification import single_leg_strategy
from .constants import SCAN_WINDOW
from .dates import parse_fill_datetime
from .tokenizer import Token, TokenKind, tokenize
from .types import Action, Leg, OptionType, PositionEffect, Spread

logger = logging.getLogger(__name__)


@dataclass
class _LegDetails:
    """Fields collected by the look-ahead scan that follows a leg line."""
    position: PositionEffect = PositionEffect.OPEN
    price: float = 0.0
    quantity: int = 1
    filled_date: str = ""
    filled_time: str = ""
    fees: float = 0.0
    net_amount: float = 0.0


def _next_amount(tokens: List[Token], j: int) -> Optional[float]:
    if j + 1 >= len(tokens):
        return None
    return tokens[j + 1].amount


def _scan_leg_details(tokens: List[Token], start: int, end: int) -> _LegDetails:
    """Collect execution details in ``tokens[start:end]``.

    The scan stops after the first line that starts another leg.
    """
    details = _LegDetails()
    for j in range(start, end):
        token = tokens[j]

        if token.kind is TokenKind.POSITION_EFFECT_LABEL:
            effect = tokens[j + 1].text if j + 1 < len(tokens) else ""
            details.position = (
                PositionEffect.CLOSE if "close" in effect.lower() else PositionEffect.OPEN
            )
        elif token.kind is TokenKind.CONTRACTS:
            details.quantity = int(token.groups[0])
            details.price = float(token.groups[1].replace(",", ""))
        elif token.kind is TokenKind.FILL_TIME:
            details.filled_date, details.filled_time = token.groups[0], token.groups[1]
        elif token.kind is TokenKind.FEES_LABEL:
            fees = _next_amount(tokens, j)
            if fees is not None:
                details.fees = fees
        elif token.kind is TokenKind.NET_AMOUNT_LABEL:
            net = _next_amount(tokens, j)
            if net is not None:
                details.net_amount = net

        if token.opens_leg:
            break
    return details


def _build_leg(token: Token, details: _LegDetails) -> Optional[Leg]:
    if details.price <= 0 or not details.filled_date:
        logger.debug("Dropping incomplete leg: %s", token.text)
        return None
    action, symbol, strike, option_type, expiry = token.groups
    return Leg(
        action=Action(action.lower()),
        symbol=symbol,
        strike=float(strike.replace(",", "")),
        expiry=expiry,
        option_type=OptionType(option_type.lower()),
        position=details.position,
        price=details.price,
        quantity=details.quantity,
        filled_date=details.filled_date,
        filled_time=details.filled_time,
        fees=details.fees,
        net_amount=details.net_amount,
    )


def _find_limit_price(tokens: List[Token], start: int) -> Optional[float]:
    end = min(start + SCAN_WINDOW, len(tokens))
    for j in range(start, end):
        if tokens[j].kind is TokenKind.LIMIT_PRICE_LABEL:
            value = _next_amount(tokens, j)
            if value is not None:
                return value
    return None


def _parse_spread_block(tokens: List[Token], i: int) -> Tuple[Optional[Spread], int]:
    """Parse a header block starting at ``tokens[i]``; returns (spread, next index)."""
    n = len(tokens)
    symbol, strategy_name = tokens[i].groups

    i += 1
    submit_date = tokens[i].text if i < n else ""
    i += 1
    provisional = tokens[i].amount if i < n else None
    limit_price = _find_limit_price(tokens, i)
    if limit_price is None:
        limit_price = provisional or 0.0

    legs: List[Leg] = []
    while i < n:
        token = tokens[i]
        if token.opens_block:
            break
        if token.kind is TokenKind.CONFIRMATION:
            i += 1
            break
        if token.kind is TokenKind.PAGER:
            break

        if token.kind is TokenKind.LEG:
            details = _scan_leg_details(tokens, i + 1, min(i + SCAN_WINDOW, n))
            leg = _build_leg(token, details)
            if leg:
                legs.append(leg)
        i += 1

    if not legs:
        logger.debug("Header %s %s produced no legs", symbol, strategy_name)
        return None, i

    return Spread(
        strategy_name=strategy_name,
        symbol=symbol,
        submit_date=submit_date,
        limit_price=limit_price,
        legs=legs,
    ), i


def _parse_single_option(tokens: List[Token], i: int) -> Tuple[Optional[Spread], int]:
    """Parse a bare leg line at ``tokens[i]`` as a one-leg spread."""
    n = len(tokens)
    leg_token = tokens[i]

    i += 1
    submit_date = tokens[i].text if i < n else ""
    i += 1
    details = _scan_leg_details(tokens, i, min(i + SCAN_WINDOW, n))
    leg = _build_leg(leg_token, details)
    if not leg:
        return None, i

    return Spread(
        strategy_name=single_leg_strategy(leg.action, leg.option_type, leg.is_open),
        symbol=leg.symbol,
        submit_date=submit_date,
        limit_price=leg.price,
        legs=[leg],
    ), i


def parse_history(history_text: str, today: Optional[date] = None) -> List[Spread]:
    """Parse pasted order history into spreads sorted by first-leg fill time.

    Returns an empty list (and logs) instead of raising.
    """
    try:
        tokens = tokenize(history_text)
        logger.info("Parsing %d lines from history", len(tokens))

        spreads: List[Spread] = []
        i = 0
        while i < len(tokens):
            token = tokens[i]
            if token.kind is TokenKind.SPREAD_HEADER:
                spread, i = _parse_spread_block(tokens, i)
            elif token.kind is TokenKind.LEG:
                spread, i = _parse_single_option(tokens, i)
            else:
                i += 1
                continue
            if spread:
                spreads.append(spread)

        spreads.sort(
            key=lambda s: parse_fill_datetime(
                s.legs[0].filled_date, s.legs[0].filled_time, today
            )
        )

        open_count = sum(1 for s in spreads if s.is_open)
        logger.info(
            "Parsed %d positions: %d opens, %d closes",
            len(spreads), open_count, len(spreads) - open_count,
        )
        return spreads
    except Exception:
        logger.exception("Failed to parse history text")
        return []
