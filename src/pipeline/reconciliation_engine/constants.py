"""Tolerances, account codes and the strategy tag table."""

from typing import List, Optional, Tuple

# -- Parser --
SCAN_WINDOW = 30                 # max lines a look-ahead scan may cover
CONTRACT_MULTIPLIER = 100

# -- Matching tolerances --
STRIKE_TOLERANCE = 0.01
COMBO_PRICE_TOLERANCE = 0.25     # |per-contract combo amount - limit price|
LEG_PRICE_TOLERANCE_PCT = 0.02
LEG_PRICE_TOLERANCE_FLOOR = 0.50
LEG_EXPIRY_TOLERANCE_DAYS = 2    # per-leg predicate: gap <= 2 days
SPREAD_EXPIRY_TOLERANCE_DAYS = 2  # open/close pairing: gap < 2 days
DATE_BUCKET_SPREAD_DAYS = 1      # a txn dated D also lands in D-1 and D+1

CLOSE_PHRASE = "to close"

# -- Chart of accounts --
COA_LONG_CALL = "T-1200"
COA_LONG_PUT = "T-1210"
COA_SHORT_CALL = "T-2100"
COA_SHORT_PUT = "T-2110"
COA_REALIZED_GAIN = "T-4100"     # every closing leg

# -- Strategy tags --
UNCLASSIFIED = "unclassified"

# Checked in order against the raw strategy name (case-sensitive).
# (substring, tag if "Call" present, tag otherwise); a None call-tag means
# the tag does not depend on the option type.
STRATEGY_TAGS: List[Tuple[str, Optional[str], str]] = [
    ("Credit",      "call-credit", "put-credit"),
    ("Debit",       "call-debit",  "put-debit"),
    ("Iron Condor", None,          "iron-condor"),
    ("Long Call",   None,          "long-call"),
    ("Short Call",  None,          "short-call"),
    ("Long Put",    None,          "long-put"),
    ("Short Put",   None,          "short-put"),
]
