"""Pydantic request models for the reconciliation API."""

from pydantic import BaseModel
from typing import Any, Dict, List, Optional


class AppendHistoryRequest(BaseModel):
    historyText: Optional[str] = None


class ReconcileRequest(BaseModel):
    historyText: Optional[str] = None
    transactions: List[Dict[str, Any]] = []
    startingTradeNum: Optional[int] = None
