"""Wallet management module.

Provides PIN-gated encrypted storage and the multi-wallet lifecycle.
"""

from speedwallet.wallet.manager import WalletManager
from speedwallet.wallet.store import SecureWalletStore

__all__ = ["SecureWalletStore", "WalletManager"]
