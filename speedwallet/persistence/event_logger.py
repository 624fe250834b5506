"""Wallet lifecycle audit logging to JSONL files."""

import json
from datetime import date
from enum import Enum
from pathlib import Path
from time import time
from typing import Any

import aiofiles
from loguru import logger


class WalletEvent(str, Enum):
    """Lifecycle events recorded in the audit trail."""

    MASTER_CREATED = "MASTER_CREATED"
    DERIVED_CREATED = "DERIVED_CREATED"
    IMPORTED = "IMPORTED"
    DELETED = "DELETED"
    SWITCHED = "SWITCHED"
    RENAMED = "RENAMED"
    PIN_CHANGED = "PIN_CHANGED"
    SECRET_REVEALED = "SECRET_REVEALED"


class WalletEventLogger:
    """Append-only JSONL logger for wallet lifecycle events.

    Records ids, names and addresses only. Secrets and PINs never reach
    this logger. Uses daily file rotation.

    Example output (wallet_events_2026-10-18.jsonl):
        {"logged_at": 1760781600.0, "event": "IMPORTED", "wallet_id": "wallet_ab12...", ...}
    """

    def __init__(self, data_dir: Path = Path("data/audit")) -> None:
        """Initialize the event logger.

        Args:
            data_dir: Directory for storing audit logs. Created if not exists.
        """
        self._data_dir = data_dir
        self._ensure_data_dir()

    def _ensure_data_dir(self) -> None:
        """Create data directory if it doesn't exist."""
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Failed to create audit directory {}: {}", self._data_dir, e)

    def _get_daily_filepath(self) -> Path:
        """Get the filepath for today's audit log."""
        return self._data_dir / f"wallet_events_{date.today().isoformat()}.jsonl"

    async def log_event(
        self,
        event: WalletEvent,
        wallet_id: str | None = None,
        **details: Any,
    ) -> None:
        """Append one lifecycle event.

        Args:
            event: The event type.
            wallet_id: Wallet the event concerns, if any.
            **details: Extra public fields (name, public_key, ...).

        Note:
            IO errors are logged but do not raise exceptions.
            Wallet operations must not fail because auditing failed.
        """
        filepath = self._get_daily_filepath()

        record = {
            "logged_at": time(),
            "event": event.value,
            "wallet_id": wallet_id,
            **details,
        }

        try:
            async with aiofiles.open(filepath, "a") as f:
                await f.write(json.dumps(record) + "\n")
        except OSError as e:
            logger.error("Failed to write wallet event to {}: {}", filepath, e)
