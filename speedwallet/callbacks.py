"""Callback protocols for active-wallet change notifications."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class ActiveWalletListener(Protocol):
    """Protocol for consumers that follow the active wallet.

    Balance, price and transaction subsystems register a listener instead of
    inferring the active wallet on their own. Listeners are awaited after
    the new pointer is persisted. Implementations MUST NOT block.

    Listeners are wrapped in try/except by the manager - a failing listener
    never fails the switch itself.
    """

    async def on_active_wallet_changed(
        self,
        wallet_id: str | None,
        public_key: str | None,
    ) -> None:
        """Called when the active wallet changes or is cleared.

        Args:
            wallet_id: Id of the new active wallet, None if cleared.
            public_key: Its Base58 address, None if cleared.
        """
        ...
