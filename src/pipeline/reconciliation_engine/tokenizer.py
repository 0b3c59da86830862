"""Line classifier for pasted brokerage order history.

The history export is not a documented format, so every line is classified
independently into a typed token and the block parser works on the token
stream instead of raw strings.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

_NUMBER = r"(\d[\d,]*(?:\.\d*)?|\.\d+)"

_STRATEGY_SUFFIX = (
    r"(?:Credit Spread|Debit Spread|Short Iron Condor|Iron Condor|"
    r"Long Call|Short Call|Long Put|Short Put|2-Option Order)"
)

SPREAD_HEADER_RE = re.compile(
    rf"^([A-Z]{{2,5}})\s+(.+{_STRATEGY_SUFFIX})$", re.IGNORECASE
)
# A line that merely starts like a header still ends the current block.
SPREAD_HEADER_PREFIX_RE = re.compile(
    rf"^([A-Z]{{2,5}})\s+(.+{_STRATEGY_SUFFIX})", re.IGNORECASE
)
LEG_RE = re.compile(
    rf"^(Buy|Sell)\s+([A-Z]{{2,5}})\s+\$?{_NUMBER}\s+(Call|Put)\s+([\d/]+)$",
    re.IGNORECASE,
)
# Case-sensitive on purpose: only the brokerage's own leg lines stop a scan.
LEG_START_RE = re.compile(r"^(Buy|Sell)\s+([A-Z]{2,5})\s+\$")
CONTRACTS_RE = re.compile(rf"^(\d+)\s+contracts?\s+at\s+\$?{_NUMBER}$", re.IGNORECASE)
FILL_TIME_RE = re.compile(r"^(\d+/\d+),\s+(\d+:\d+\s+[AP]M)", re.IGNORECASE)
AMOUNT_RE = re.compile(rf"^\$?{_NUMBER}$")

CONFIRMATION_TEXT = "Download Trade Confirmation"
PAGER_TEXTS = ("Older", "Recent")


class TokenKind(Enum):
    CONFIRMATION = "CONFIRMATION"
    PAGER = "PAGER"
    SPREAD_HEADER = "SPREAD_HEADER"
    LEG = "LEG"
    LIMIT_PRICE_LABEL = "LIMIT_PRICE_LABEL"
    POSITION_EFFECT_LABEL = "POSITION_EFFECT_LABEL"
    FEES_LABEL = "FEES_LABEL"
    NET_AMOUNT_LABEL = "NET_AMOUNT_LABEL"
    CONTRACTS = "CONTRACTS"
    FILL_TIME = "FILL_TIME"
    AMOUNT = "AMOUNT"
    TEXT = "TEXT"


_LABELS = {
    "Limit price": TokenKind.LIMIT_PRICE_LABEL,
    "Position effect": TokenKind.POSITION_EFFECT_LABEL,
    "Est regulatory fees": TokenKind.FEES_LABEL,
    "Est cost": TokenKind.NET_AMOUNT_LABEL,
    "Est credit": TokenKind.NET_AMOUNT_LABEL,
}


@dataclass(frozen=True)
class Token:
    index: int
    text: str
    kind: TokenKind
    groups: Tuple[str, ...] = ()
    opens_block: bool = False
    opens_leg: bool = False

    @property
    def amount(self) -> Optional[float]:
        return parse_amount(self.text)


def parse_amount(text: str) -> Optional[float]:
    """``$1,234.50`` -> 1234.5; None when the line is not a bare amount."""
    match = AMOUNT_RE.match(text or "")
    if not match:
        return None
    try:
        return float(match.group(1).replace(",", ""))
    except ValueError:
        return None


def classify_line(index: int, text: str) -> Token:
    opens_block = SPREAD_HEADER_PREFIX_RE.match(text) is not None
    opens_leg = LEG_START_RE.match(text) is not None

    def token(kind: TokenKind, match=None) -> Token:
        return Token(
            index=index,
            text=text,
            kind=kind,
            groups=match.groups() if match else (),
            opens_block=opens_block,
            opens_leg=opens_leg,
        )

    if text == CONFIRMATION_TEXT:
        return token(TokenKind.CONFIRMATION)
    if text in PAGER_TEXTS:
        return token(TokenKind.PAGER)
    if text in _LABELS:
        return token(_LABELS[text])

    for kind, pattern in (
        (TokenKind.SPREAD_HEADER, SPREAD_HEADER_RE),
        (TokenKind.LEG, LEG_RE),
        (TokenKind.CONTRACTS, CONTRACTS_RE),
        (TokenKind.FILL_TIME, FILL_TIME_RE),
        (TokenKind.AMOUNT, AMOUNT_RE),
    ):
        match = pattern.match(text)
        if match:
            return token(kind, match)

    return token(TokenKind.TEXT)


def tokenize(text: str) -> List[Token]:
    """Trim lines, drop blank ones, classify the rest."""
    lines = [line.strip() for line in (text or "").split("\n")]
    lines = [line for line in lines if line]
    return [classify_line(i, line) for i, line in enumerate(lines)]
