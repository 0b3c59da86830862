"""Settings and shared instances used by routers and services."""

import os

from src.pipeline.reconciliation_engine import HistoryReconciler

HISTORY_FILE_PATH = os.getenv("HISTORY_FILE_PATH", "robinhood_history.txt")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR", "logs")
PORT = int(os.getenv("PORT", "8000"))

# Keeps trade numbering across requests for incremental imports of one account.
reconciler = HistoryReconciler()


def get_history_path() -> str:
    """Resolved per request so tests and reloads can point at another file."""
    return os.getenv("HISTORY_FILE_PATH", HISTORY_FILE_PATH)


def get_reconciler() -> HistoryReconciler:
    return reconciler
