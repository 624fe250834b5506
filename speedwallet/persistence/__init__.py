"""Persistence layer for the speedwallet core.

Provides:
- WalletDatabase: SQLite storage for wallet records and the active pointer
- WalletEventLogger: Append-only JSONL audit trail of lifecycle events
"""

from speedwallet.persistence.database import WalletDatabase
from speedwallet.persistence.event_logger import WalletEvent, WalletEventLogger

__all__ = ["WalletDatabase", "WalletEvent", "WalletEventLogger"]
