"""Strategy tag normalization and chart-of-accounts assignment."""

from .constants import (
    COA_LONG_CALL,
    COA_LONG_PUT,
    COA_REALIZED_GAIN,
    COA_SHORT_CALL,
    COA_SHORT_PUT,
    STRATEGY_TAGS,
    UNCLASSIFIED,
)
from .types import Action, Leg, OptionType


def map_strategy(strategy_name: str) -> str:
    """Normalize a brokerage strategy label to a strategy tag.

    Names that match none of the known substrings return ``UNCLASSIFIED``
    so callers can surface them instead of booking them as a long call.
    """
    name = strategy_name or ""
    for needle, call_tag, tag in STRATEGY_TAGS:
        if needle not in name:
            continue
        if call_tag is not None and "Call" in name:
            return call_tag
        return tag
    return UNCLASSIFIED


def assign_coa(leg: Leg, is_closing: bool = False) -> str:
    """Account code for a matched leg.

    Opening legs follow the long/short x call/put matrix; closing legs all
    book to the realized gain account.
    """
    if is_closing:
        return COA_REALIZED_GAIN
    if leg.action is Action.BUY:
        return COA_LONG_CALL if leg.option_type is OptionType.CALL else COA_LONG_PUT
    return COA_SHORT_CALL if leg.option_type is OptionType.CALL else COA_SHORT_PUT


def single_leg_strategy(action: Action, option_type: OptionType, is_open: bool) -> str:
    """Strategy label for a one-leg order.

    A close is assumed to reverse the original open, so selling to close
    belongs to a long position and buying to close to a short one.
    """
    side = "Call" if option_type is OptionType.CALL else "Put"
    if is_open:
        return f"Long {side}" if action is Action.BUY else f"Short {side}"
    return f"Long {side}" if action is Action.SELL else f"Short {side}"
