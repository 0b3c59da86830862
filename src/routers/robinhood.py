"""Robinhood history routes: store pasted history and reconcile it against the feed."""

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from src.dependencies import get_history_path, get_reconciler
from src.pipeline.orchestrator import reconcile_history
from src.pipeline.reconciliation_engine import HistoryReconciler
from src.schemas import AppendHistoryRequest, ReconcileRequest
from src.services.history_service import append_history, read_history

router = APIRouter()


@router.post("/api/robinhood/append-history")
async def append_history_text(body: AppendHistoryRequest, history_path: str = Depends(get_history_path)):
    """Prepend newly pasted order history to the stored history file"""
    if not body.historyText or not body.historyText.strip():
        raise HTTPException(status_code=400, detail="No text provided")
    try:
        outcome = append_history(body.historyText, history_path)
    except OSError as e:
        logger.error(f"Error appending history: {e}")
        raise HTTPException(status_code=500, detail="Failed to update history file")

    return {
        "success": outcome["success"],
        "message": outcome["message"],
        "tradesAdded": outcome["trades_added"],
    }


@router.get("/api/robinhood/history")
async def get_history(history_path: str = Depends(get_history_path)):
    """Return the stored order history text"""
    try:
        return {"historyText": read_history(history_path)}
    except OSError as e:
        logger.error(f"Error reading history: {e}")
        raise HTTPException(status_code=500, detail="Failed to read history file")


@router.post("/api/robinhood/reconcile")
async def reconcile(
    body: ReconcileRequest,
    history_path: str = Depends(get_history_path),
    reconciler: HistoryReconciler = Depends(get_reconciler),
):
    """Map feed transactions to trade numbers using the order history.

    Without ``startingTradeNum`` numbering continues from the previous run.
    """
    if body.startingTradeNum is not None and body.startingTradeNum < 1:
        raise HTTPException(status_code=400, detail="startingTradeNum must be >= 1")

    history_text = body.historyText
    if history_text is None:
        history_text = read_history(history_path)
    if not history_text.strip():
        raise HTTPException(status_code=400, detail="No history available")

    continue_numbering = body.startingTradeNum is None
    start = reconciler.trade_counter if continue_numbering else body.startingTradeNum

    try:
        result = reconcile_history(history_text, body.transactions, starting_counter=start)
    except (TypeError, ValueError) as e:
        logger.error(f"Invalid transaction payload: {e}")
        raise HTTPException(status_code=400, detail=f"Invalid transactions: {e}")

    if continue_numbering:
        reconciler.trade_counter = result.next_counter

    logger.info(
        f"Reconciled {len(result.mappings)} transactions, "
        f"{len(result.unmapped_transaction_ids)} unmapped"
    )
    return result.to_dict()


@router.post("/api/robinhood/reset-counter")
async def reset_counter(reconciler: HistoryReconciler = Depends(get_reconciler)):
    """Restart trade numbering at 1 before importing an unrelated history"""
    reconciler.reset_counter()
    logger.info("Trade counter reset")
    return {"success": True, "nextTradeNum": reconciler.trade_counter}
