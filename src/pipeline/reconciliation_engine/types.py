"""Data types for the history reconciliation engine."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set


class Action(Enum):
    BUY = "buy"
    SELL = "sell"


class OptionType(Enum):
    CALL = "call"
    PUT = "put"


class PositionEffect(Enum):
    OPEN = "open"
    CLOSE = "close"


class Confidence(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class Leg:
    """A single option execution parsed from the history text."""
    action: Action
    symbol: str
    strike: float
    expiry: str                 # raw "M/D", year resolved on demand
    option_type: OptionType
    position: PositionEffect
    price: float                # fill price per contract
    quantity: int               # contracts
    filled_date: str            # raw "M/D"
    filled_time: str            # "H:MM AM/PM"
    fees: float = 0.0
    net_amount: float = 0.0

    @property
    def principal(self) -> float:
        return self.quantity * self.price * 100

    @property
    def is_open(self) -> bool:
        return self.position is PositionEffect.OPEN


@dataclass
class Spread:
    """One strategy order made of 1..N legs.

    ``trade_num`` stays None until Phase 1 numbers an opening spread.
    """
    strategy_name: str
    symbol: str
    submit_date: str
    limit_price: float
    legs: List[Leg] = field(default_factory=list)
    trade_num: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return all(leg.is_open for leg in self.legs)

    @property
    def first_leg(self) -> Optional[Leg]:
        return self.legs[0] if self.legs else None


@dataclass(frozen=True)
class FeedTransaction:
    """A transaction imported from the aggregator feed (Plaid shape)."""
    id: str
    date: str
    name: str
    symbol: str
    type: str
    price: float
    quantity: float
    amount: float
    subtype: Optional[str] = None
    ticker_symbol: Optional[str] = None
    option_underlying_ticker: Optional[str] = None
    option_strike_price: Optional[float] = None
    option_expiration_date: Optional[str] = None
    option_contract_type: Optional[str] = None

    @property
    def underlying(self) -> str:
        return self.option_underlying_ticker or self.symbol

    @property
    def date_key(self) -> str:
        return (self.date or "")[:10]

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "FeedTransaction":
        security = raw.get("security") or {}
        if not isinstance(security, dict):
            raise ValueError(f"security must be an object, got {type(security).__name__}")
        strike = security.get("option_strike_price")
        return cls(
            id=str(raw.get("id") or raw.get("investment_transaction_id") or ""),
            date=str(raw.get("date") or ""),
            name=raw.get("name") or "",
            symbol=raw.get("symbol") or "",
            type=raw.get("type") or "",
            subtype=raw.get("subtype"),
            price=float(raw.get("price") or 0),
            quantity=float(raw.get("quantity") or 0),
            amount=float(raw.get("amount") or 0),
            ticker_symbol=security.get("ticker_symbol"),
            option_underlying_ticker=security.get("option_underlying_ticker"),
            option_strike_price=float(strike) if strike is not None else None,
            option_expiration_date=security.get("option_expiration_date"),
            option_contract_type=security.get("option_contract_type"),
        )


@dataclass(frozen=True)
class MappingResult:
    """One matched (leg, feed transaction) pair."""
    txn_id: str
    trade_num: str
    strategy: str
    coa: str
    confidence: Confidence
    matched_to: Optional[str]
    rh_quantity: int
    rh_price: float
    rh_principal: float
    rh_fees: float
    rh_net_amount: float
    rh_action: str
    is_closing: bool

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape consumed by the commit API."""
        return {
            "txnId": self.txn_id,
            "tradeNum": self.trade_num,
            "strategy": self.strategy,
            "coa": self.coa,
            "confidence": self.confidence.value,
            "matchedTo": self.matched_to,
            "rhQuantity": self.rh_quantity,
            "rhPrice": self.rh_price,
            "rhPrincipal": self.rh_principal,
            "rhFees": self.rh_fees,
            "rhNetAmount": self.rh_net_amount,
            "rhAction": self.rh_action,
            "isClosing": self.is_closing,
        }


@dataclass
class ReconciliationResult:
    """Output of match_to_feed(): mappings plus the threaded counter state."""
    results: List[MappingResult] = field(default_factory=list)
    next_counter: int = 1
    consumed_ids: Set[str] = field(default_factory=set)
    unmatched_transactions: List[FeedTransaction] = field(default_factory=list)
    unmatched_spreads: List[Spread] = field(default_factory=list)

    @property
    def opening_results(self) -> List[MappingResult]:
        return [r for r in self.results if not r.is_closing]

    @property
    def closing_results(self) -> List[MappingResult]:
        return [r for r in self.results if r.is_closing]
