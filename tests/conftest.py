"""
Shared pytest fixtures plus history-text and feed-transaction factory helpers
for reconciliation tests.

All engine tests pin "today" to TODAY so year resolution is deterministic.
"""

import pytest
from datetime import date

from src.pipeline.reconciliation_engine import HistoryReconciler

TODAY = date(2025, 3, 1)


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def reconciler():
    return HistoryReconciler(today=TODAY)


@pytest.fixture
def history_file(tmp_path):
    """Path to a not-yet-existing history file, auto-cleaned."""
    return tmp_path / "robinhood_history.txt"


# ---------------------------------------------------------------------------
# History text factory helpers
# ---------------------------------------------------------------------------

def make_leg_lines(
    *,
    action="Sell",
    symbol="AAPL",
    strike="150",
    option_type="Put",
    expiry="6/20",
    position="Open",
    quantity=2,
    price="1.50",
    filled="2/10, 10:31 AM",
    fees="0.04",
    net_label="Est credit",
    net="300.00",
    include_leg_line=True,
):
    """Lines for one leg as they appear in a pasted order detail view.

    Pass None for position/price/filled/fees/net to leave that part out.
    """
    lines = []
    if include_leg_line:
        lines.append(f"{action} {symbol} ${strike} {option_type} {expiry}")
    if position is not None:
        lines += ["Position effect", position]
    if price is not None:
        lines.append(f"{quantity} contracts at ${price}")
    if filled is not None:
        lines.append(filled)
    if fees is not None:
        lines += ["Est regulatory fees", f"${fees}"]
    if net is not None:
        lines += [net_label, f"${net}"]
    return lines


def make_spread_block(
    *,
    header="AAPL Put Credit Spread",
    submit_date="2/10",
    provisional_limit="$1.50",
    limit_price="$1.50",
    legs=None,
    terminator="Download Trade Confirmation",
):
    """Lines for a multi-leg order; ``legs`` is a list of make_leg_lines() results."""
    if legs is None:
        legs = [
            make_leg_lines(action="Sell", strike="150"),
            make_leg_lines(action="Buy", strike="145", net_label="Est cost"),
        ]
    lines = [header, submit_date, provisional_limit, "Filled"]
    if limit_price is not None:
        lines += ["Limit price", limit_price]
    for leg in legs:
        lines += leg
    if terminator:
        lines.append(terminator)
    return lines


def make_single_block(*, submit_date="2/10", provisional_limit="$1.50", **leg_kwargs):
    """Lines for a one-leg order: leg line, submit date, limit, then details."""
    leg_line = make_leg_lines(**leg_kwargs)[0]
    details = make_leg_lines(include_leg_line=False, **leg_kwargs)
    return [leg_line, submit_date, provisional_limit] + details + ["Download Trade Confirmation"]


def history_text(*blocks):
    """Join blocks of lines the way a copy-paste would, with stray blank lines."""
    return "\n\n".join("\n".join(block) for block in blocks)


# ---------------------------------------------------------------------------
# Feed transaction factory helpers
# ---------------------------------------------------------------------------

def make_feed_transaction(
    *,
    id="txn-001",
    date="2025-02-10",
    name=None,
    symbol="AAPL",
    type="sell",
    price=1.50,
    quantity=2,
    amount=-3.50,
    strike=150.0,
    expiration="2025-06-20",
    contract_type="put",
    underlying="AAPL",
):
    """Build a raw feed transaction dict in the aggregator's documented shape."""
    if name is None:
        name = f"{type.upper()} {quantity} {symbol} {contract_type.upper()} {strike}"
    return {
        "id": id,
        "date": date,
        "name": name,
        "symbol": symbol,
        "type": type,
        "subtype": type,
        "price": price,
        "quantity": quantity,
        "amount": amount,
        "security": {
            "ticker_symbol": symbol,
            "option_underlying_ticker": underlying,
            "option_strike_price": strike,
            "option_expiration_date": expiration,
            "option_contract_type": contract_type,
        },
    }


def credit_spread_feed(*, prefix="open", date="2025-02-10", to_close=False):
    """Feed pair matching the default AAPL 150/145 put credit spread (limit 1.50)."""
    suffix = " to close" if to_close else ""
    return [
        make_feed_transaction(
            id=f"{prefix}-sell", date=date, type="sell", strike=150.0,
            amount=-3.50, name=f"Sell AAPL Put{suffix}",
        ),
        make_feed_transaction(
            id=f"{prefix}-buy", date=date, type="buy", strike=145.0,
            amount=0.50, name=f"Buy AAPL Put{suffix}",
        ),
    ]
