"""History service: stores pasted brokerage history text, newest first."""

from pathlib import Path
from typing import Dict, Union

from loguru import logger

CONFIRMATION_MARKER = "Download Trade Confirmation"


def count_trades(history_text: str) -> int:
    """Each completed order in the export ends with a confirmation link."""
    return (history_text or "").count(CONFIRMATION_MARKER)


def read_history(path: Union[str, Path]) -> str:
    """Return the stored history, or an empty string if none was saved yet."""
    history_path = Path(path)
    if not history_path.exists():
        return ""
    return history_path.read_text(encoding="utf-8")


def append_history(history_text: str, path: Union[str, Path]) -> Dict:
    """Prepend ``history_text`` to the history file.

    Raises ValueError when the text is blank.
    """
    if not history_text or not history_text.strip():
        raise ValueError("No text provided")

    history_path = Path(path)
    existing = read_history(history_path)
    if not existing:
        logger.info(f"Creating new history file at {history_path}")

    history_path.parent.mkdir(parents=True, exist_ok=True)
    history_path.write_text(f"{history_text.strip()}\n\n{existing}", encoding="utf-8")

    trades_added = count_trades(history_text)
    logger.info(f"Appended {trades_added} trades to {history_path}")
    return {
        "success": True,
        "message": f"Added {trades_added} trades to history file",
        "trades_added": trades_added,
    }
