"""
Tests for two-phase reconciliation and trade numbering.

Source: src/pipeline/reconciliation_engine/reconciler.py
"""

import copy

import pytest

from src.pipeline.reconciliation_engine import (
    Confidence,
    FeedTransaction,
    HistoryReconciler,
    match_to_feed,
    parse_history,
)
from src.pipeline.reconciliation_engine import reconciler as reconciler_module
from tests.conftest import (
    TODAY,
    credit_spread_feed,
    history_text,
    make_feed_transaction,
    make_leg_lines,
    make_spread_block,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _closing_block(filled="2/20, 1:15 PM", symbol="AAPL", strikes=("150", "145")):
    return make_spread_block(
        header=f"{symbol} Put Credit Spread",
        submit_date="2/20",
        provisional_limit="$0.50",
        limit_price="$0.50",
        legs=[
            make_leg_lines(action="Buy", symbol=symbol, strike=strikes[0], position="Close",
                           price="0.75", filled=filled, net_label="Est cost", net="150.00"),
            make_leg_lines(action="Sell", symbol=symbol, strike=strikes[1], position="Close",
                           price="0.25", filled=filled, net="50.00"),
        ],
    )


def _closing_feed(prefix="close", date="2025-02-20"):
    return [
        make_feed_transaction(
            id=f"{prefix}-buy", date=date, type="buy", strike=150.0, price=0.75,
            amount=1.50, name="Buy AAPL Put to close",
        ),
        make_feed_transaction(
            id=f"{prefix}-sell", date=date, type="sell", strike=145.0, price=0.25,
            amount=-0.50, name="Sell AAPL Put to close",
        ),
    ]


def _spreads(*blocks):
    return parse_history(history_text(*blocks), today=TODAY)


# ---------------------------------------------------------------------------
# Phase 1: opening spreads
# ---------------------------------------------------------------------------

class TestOpeningPhase:
    def test_round_trip(self):
        spreads = _spreads(make_spread_block(header="AAPL Short Put Credit Spread"))
        assert len(spreads) == 1
        assert spreads[0].is_open
        assert len(spreads[0].legs) == 2
        assert spreads[0].limit_price == 1.50

        outcome = match_to_feed(spreads, credit_spread_feed(), today=TODAY)

        assert len(outcome.results) == 2
        assert all(r.trade_num == "1" for r in outcome.results)
        assert all(not r.is_closing for r in outcome.results)
        assert all(r.confidence is Confidence.HIGH for r in outcome.results)
        assert outcome.next_counter == 2
        assert outcome.consumed_ids == {"open-sell", "open-buy"}

    def test_numbering_starts_at_starting_counter(self):
        spreads = _spreads(make_spread_block())
        outcome = match_to_feed(spreads, credit_spread_feed(), starting_counter=5, today=TODAY)
        assert {r.trade_num for r in outcome.results} == {"5"}
        assert outcome.next_counter == 6
        assert spreads[0].trade_num == 5

    def test_unmatched_opening_still_consumes_a_number(self):
        first = make_spread_block(
            header="MSFT Put Credit Spread",
            legs=[
                make_leg_lines(action="Sell", symbol="MSFT", strike="400", filled="2/9, 9:31 AM"),
                make_leg_lines(action="Buy", symbol="MSFT", strike="395", filled="2/9, 9:31 AM"),
            ],
        )
        spreads = _spreads(first, make_spread_block())
        outcome = match_to_feed(spreads, credit_spread_feed(), today=TODAY)

        # MSFT has no feed transactions but still took #1.
        assert {r.trade_num for r in outcome.results} == {"2"}
        assert outcome.next_counter == 3
        assert [s.symbol for s in outcome.unmatched_spreads] == ["MSFT"]

    def test_transactions_are_never_matched_twice(self):
        spreads = _spreads(make_spread_block(), make_spread_block())
        outcome = match_to_feed(spreads, credit_spread_feed(), today=TODAY)

        ids = [r.txn_id for r in outcome.results]
        assert len(ids) == len(set(ids)) == 2
        assert {r.trade_num for r in outcome.results} == {"1"}
        assert outcome.next_counter == 3
        assert len(outcome.unmatched_spreads) == 1

    def test_inputs_are_not_modified(self):
        transactions = credit_spread_feed()
        snapshot = copy.deepcopy(transactions)
        match_to_feed(_spreads(make_spread_block()), transactions, today=TODAY)
        assert transactions == snapshot

    def test_reusing_the_same_feed_matches_again(self):
        transactions = credit_spread_feed()
        first = match_to_feed(_spreads(make_spread_block()), transactions, today=TODAY)
        second = match_to_feed(_spreads(make_spread_block()), transactions, today=TODAY)
        assert len(first.results) == len(second.results) == 2

    def test_transactions_without_ids_match_independently(self):
        second = make_spread_block(legs=[
            make_leg_lines(action="Sell", strike="150", filled="2/12, 10:00 AM"),
            make_leg_lines(action="Buy", strike="145", filled="2/12, 10:00 AM",
                           net_label="Est cost"),
        ])
        feed = credit_spread_feed() + credit_spread_feed(date="2025-02-12")
        for txn in feed:
            txn["id"] = None

        outcome = match_to_feed(_spreads(make_spread_block(), second), feed, today=TODAY)

        assert len(outcome.results) == 4
        assert [r.trade_num for r in outcome.results] == ["1", "1", "2", "2"]
        assert outcome.unmatched_transactions == []

    def test_unmatched_transactions_reported(self):
        stray = make_feed_transaction(id="stray", symbol="NFLX", underlying="NFLX")
        outcome = match_to_feed(
            _spreads(make_spread_block()), credit_spread_feed() + [stray], today=TODAY
        )
        assert [t.id for t in outcome.unmatched_transactions] == ["stray"]

    def test_accepts_feed_transaction_objects(self):
        feed = [FeedTransaction.from_dict(t) for t in credit_spread_feed()]
        outcome = match_to_feed(_spreads(make_spread_block()), feed, today=TODAY)
        assert len(outcome.results) == 2

    def test_no_spreads(self):
        outcome = match_to_feed([], credit_spread_feed(), starting_counter=4, today=TODAY)
        assert outcome.results == []
        assert outcome.next_counter == 4


# ---------------------------------------------------------------------------
# Phase 2: closing spreads
# ---------------------------------------------------------------------------

class TestClosingPhase:
    def test_close_inherits_opening_trade_number(self):
        spreads = _spreads(make_spread_block(), _closing_block())
        feed = credit_spread_feed() + _closing_feed()
        outcome = match_to_feed(spreads, feed, starting_counter=3, today=TODAY)

        assert len(outcome.opening_results) == 2
        assert len(outcome.closing_results) == 2
        assert {r.trade_num for r in outcome.closing_results} == {"3"}
        assert {r.coa for r in outcome.closing_results} == {"T-4100"}
        assert {r.txn_id for r in outcome.closing_results} == {"close-buy", "close-sell"}
        # Closing spreads never take a new number.
        assert outcome.next_counter == 4

    def test_close_without_opener_produces_nothing(self):
        spreads = _spreads(_closing_block())
        outcome = match_to_feed(spreads, _closing_feed(), today=TODAY)

        assert outcome.results == []
        assert outcome.next_counter == 1
        assert len(outcome.unmatched_spreads) == 1
        assert outcome.unmatched_spreads[0].trade_num is None

    def test_close_of_different_strikes_is_not_paired(self):
        spreads = _spreads(make_spread_block(), _closing_block(strikes=("160", "155")))
        outcome = match_to_feed(spreads, credit_spread_feed() + _closing_feed(), today=TODAY)
        assert outcome.closing_results == []

    def test_close_pairs_with_first_matching_opener(self):
        early = make_spread_block()
        late = make_spread_block(legs=[
            make_leg_lines(action="Sell", strike="150", filled="2/12, 10:00 AM"),
            make_leg_lines(action="Buy", strike="145", filled="2/12, 10:00 AM",
                           net_label="Est cost"),
        ])
        spreads = _spreads(early, late, _closing_block())
        feed = (
            credit_spread_feed()
            + credit_spread_feed(prefix="again", date="2025-02-12")
            + _closing_feed()
        )
        outcome = match_to_feed(spreads, feed, today=TODAY)
        assert {r.trade_num for r in outcome.closing_results} == {"1"}

    def test_close_with_no_feed_match_is_reported(self):
        spreads = _spreads(make_spread_block(), _closing_block())
        outcome = match_to_feed(spreads, credit_spread_feed(), today=TODAY)
        assert outcome.closing_results == []
        assert len(outcome.unmatched_spreads) == 1
        assert outcome.unmatched_spreads[0].trade_num == 1


# ---------------------------------------------------------------------------
# Failure handling
# ---------------------------------------------------------------------------

class TestFailures:
    def test_unexpected_error_returns_empty_result(self, monkeypatch):
        def boom(*_args, **_kwargs):
            raise RuntimeError("matcher exploded")

        monkeypatch.setattr(reconciler_module, "match_spread_legs", boom)
        outcome = match_to_feed(
            _spreads(make_spread_block()), credit_spread_feed(), starting_counter=7, today=TODAY
        )
        assert outcome.results == []
        assert outcome.next_counter == 7

    def test_malformed_transaction_returns_empty_result(self):
        bad = credit_spread_feed()
        bad[0]["price"] = "not-a-number"
        outcome = match_to_feed(_spreads(make_spread_block()), bad, today=TODAY)
        assert outcome.results == []
        assert outcome.next_counter == 1


# ---------------------------------------------------------------------------
# HistoryReconciler
# ---------------------------------------------------------------------------

class TestHistoryReconciler:
    def test_counter_continues_across_runs(self, reconciler):
        text = history_text(make_spread_block())

        first = reconciler.match_to_plaid(reconciler.parse_history(text), credit_spread_feed())
        assert {r.trade_num for r in first} == {"1"}
        assert reconciler.trade_counter == 2

        second = reconciler.match_to_plaid(
            reconciler.parse_history(text), credit_spread_feed(prefix="next")
        )
        assert {r.trade_num for r in second} == {"2"}
        assert reconciler.trade_counter == 3

    def test_reset_counter(self, reconciler):
        spreads = reconciler.parse_history(history_text(make_spread_block()))
        reconciler.match_to_plaid(spreads, credit_spread_feed())
        reconciler.reset_counter()
        assert reconciler.trade_counter == 1

        results = reconciler.match_to_plaid(
            reconciler.parse_history(history_text(make_spread_block())), credit_spread_feed()
        )
        assert {r.trade_num for r in results} == {"1"}

    def test_counter_setter(self):
        reconciler = HistoryReconciler(today=TODAY)
        reconciler.trade_counter = 10
        assert reconciler.trade_counter == 10

    def test_counter_setter_rejects_zero(self):
        with pytest.raises(ValueError):
            HistoryReconciler().trade_counter = 0

    def test_to_dict_wire_shape(self, reconciler):
        spreads = reconciler.parse_history(history_text(make_spread_block()))
        payload = reconciler.match_to_plaid(spreads, credit_spread_feed())[0].to_dict()
        assert payload == {
            "txnId": "open-sell",
            "tradeNum": "1",
            "strategy": "put-credit",
            "coa": "T-2110",
            "confidence": "high",
            "matchedTo": "AAPL 150 put",
            "rhQuantity": 2,
            "rhPrice": 1.50,
            "rhPrincipal": pytest.approx(300.0),
            "rhFees": 0.04,
            "rhNetAmount": 300.0,
            "rhAction": "SELL",
            "isClosing": False,
        }
