"""Wallet lifecycle: master, derived and imported wallets, active wallet switching."""

import asyncio
import io
import secrets

import segno
from loguru import logger

from speedwallet.callbacks import ActiveWalletListener
from speedwallet.config import PolicyConfig
from speedwallet.crypto.derivation import solana_derivation_path
from speedwallet.crypto.keypair import (
    KeyPair,
    keypair_from_mnemonic,
    keypair_from_secret_key,
    short_address,
)
from speedwallet.crypto.mnemonic import EntropySource, check_mnemonic, generate_mnemonic
from speedwallet.exceptions import (
    InvalidSecretKeyError,
    MasterAlreadyExistsError,
    SecretKindError,
    WalletLockedError,
    WalletNotFoundError,
)
from speedwallet.models import CreatedWallet, NewWallet, SecretKind, WalletRecord, WalletSummary
from speedwallet.persistence import WalletEvent, WalletEventLogger
from speedwallet.wallet.store import SecureWalletStore


class WalletManager:
    """Creates, imports, derives, deletes and switches wallets.

    Wallets derived from the master share its mnemonic and differ only by
    account index (``m/44'/501'/0'/{index}'``). Imported wallets have their
    own mnemonic and always use index 0.

    An unlocked session keeps the PIN in memory so derived wallets can be
    added without prompting again; ``lock()`` forgets it.

    Usage:
        manager = WalletManager(store)

        # First run
        created = await manager.create_master_wallet("Main", "123456")
        print(created.mnemonic)  # show once for backup

        # More accounts from the same phrase
        await manager.create_derived_wallet("Savings")

        # Switch
        await manager.switch_active_wallet(created.record.id)
        address = await manager.get_active_wallet_public_key()
    """

    def __init__(
        self,
        store: SecureWalletStore,
        event_logger: WalletEventLogger | None = None,
        policy: PolicyConfig | None = None,
        entropy_source: EntropySource = secrets.token_bytes,
    ) -> None:
        """Initialize the wallet manager.

        Args:
            store: Loaded secure wallet store.
            event_logger: Optional JSONL audit trail.
            policy: Wallet rules. Defaults to PolicyConfig().
            entropy_source: Random byte source for new mnemonics.
        """
        self._store = store
        self._event_logger = event_logger
        self._policy = policy or PolicyConfig()
        self._entropy_source = entropy_source
        self._session_pin: str | None = None
        self._derive_lock = asyncio.Lock()
        self._listeners: list[ActiveWalletListener] = []

    @property
    def store(self) -> SecureWalletStore:
        """The underlying wallet store."""
        return self._store

    @property
    def is_unlocked(self) -> bool:
        """Whether a session PIN is held in memory."""
        return self._session_pin is not None

    # =========================================================================
    # Session
    # =========================================================================

    async def unlock(self, pin: str) -> None:
        """Verify the PIN and keep it for the session.

        Raises:
            InvalidPinError: If the PIN is wrong.
            WalletNotFoundError: If no wallet exists yet.
        """
        await self._store.verify_pin(pin)
        self._session_pin = pin
        logger.info("Wallet session unlocked")

    def lock(self) -> None:
        """Forget the session PIN."""
        if self._session_pin is not None:
            self._session_pin = None
            logger.info("Wallet session locked")

    def _resolve_pin(self, pin: str | None) -> str:
        if pin is not None:
            return pin
        if self._session_pin is None:
            raise WalletLockedError()
        return self._session_pin

    # =========================================================================
    # Listeners
    # =========================================================================

    def register_listener(self, listener: ActiveWalletListener) -> None:
        """Register a consumer of active wallet changes.

        Failing listeners are caught and logged - they never fail the switch.
        """
        self._listeners.append(listener)

    def unregister_listener(self, listener: ActiveWalletListener) -> None:
        """Remove a previously registered listener."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def _emit_active_changed(self, record: WalletRecord | None) -> None:
        """Emit active wallet change to all listeners (fail-safe)."""
        wallet_id = record.id if record is not None else None
        public_key = record.public_key if record is not None else None
        for listener in self._listeners:
            try:
                await listener.on_active_wallet_changed(wallet_id, public_key)
            except Exception as e:
                logger.error("Active wallet listener failed: {}", e)

    async def _log_event(self, event: WalletEvent, record: WalletRecord | None = None, **details: object) -> None:
        if self._event_logger is None:
            return
        if record is not None:
            details = {"name": record.name, "public_key": record.public_key, **details}
        await self._event_logger.log_event(
            event, wallet_id=record.id if record is not None else None, **details
        )

    # =========================================================================
    # Creation
    # =========================================================================

    async def create_master_wallet(
        self,
        name: str,
        pin: str,
        strength_bits: int | None = None,
    ) -> CreatedWallet:
        """Create the installation's master wallet from a fresh mnemonic.

        The master uses account index 0 and becomes the active wallet.

        Args:
            name: Display name.
            pin: Device PIN protecting all wallets.
            strength_bits: Mnemonic strength. Defaults to the policy (128 bits,
                12 words).

        Returns:
            The stored record and the mnemonic to show for backup.

        Raises:
            MasterAlreadyExistsError: If a master wallet already exists.
            DuplicateNameError: If the name is taken.
            InvalidPinFormatError: If the PIN format is wrong.
        """
        self._store.validate_pin(pin)
        if await self._store.get_master() is not None:
            raise MasterAlreadyExistsError()
        await self._store.ensure_name_available(name)

        mnemonic = generate_mnemonic(
            strength_bits or self._policy.mnemonic_strength, self._entropy_source
        )
        record = await self._store_mnemonic_wallet(name, mnemonic, pin, is_master=True)
        await self._activate(record)
        self._session_pin = pin

        await self._log_event(WalletEvent.MASTER_CREATED, record)
        logger.info("Created master wallet: {} ({})", record.name, record.short_address)
        return CreatedWallet(record=record, mnemonic=mnemonic)

    async def restore_master_wallet(self, name: str, phrase: str, pin: str) -> WalletRecord:
        """Establish the master wallet from an existing recovery phrase.

        Used when recovering an installation on a new device. The restored
        master uses account index 0 and becomes the active wallet.

        Raises:
            InvalidMnemonicError: If the phrase is invalid.
            MasterAlreadyExistsError: If a master wallet already exists.
        """
        mnemonic = check_mnemonic(phrase)
        self._store.validate_pin(pin)
        if await self._store.get_master() is not None:
            raise MasterAlreadyExistsError()
        await self._store.ensure_name_available(name)

        record = await self._store_mnemonic_wallet(name, mnemonic, pin, is_master=True)
        await self._activate(record)
        self._session_pin = pin

        await self._log_event(WalletEvent.MASTER_CREATED, record, restored=True)
        logger.info("Restored master wallet: {} ({})", record.name, record.short_address)
        return record

    async def create_derived_wallet(self, name: str, pin: str | None = None) -> WalletRecord:
        """Derive the next account from the master mnemonic.

        Args:
            name: Display name.
            pin: Device PIN. Defaults to the unlocked session PIN.

        Returns:
            The stored record, with account_index = highest used index + 1.

        Raises:
            WalletLockedError: If no PIN is given and the session is locked.
            WalletNotFoundError: If there is no master wallet.
            InvalidPinError: If the PIN is wrong.
            DuplicateNameError: If the name is taken.
        """
        pin = self._resolve_pin(pin)
        master = await self._store.get_master()
        if master is None:
            raise WalletNotFoundError("master")
        await self._store.ensure_name_available(name)

        async with self._derive_lock:
            mnemonic = await self._store.unlock(master.id, pin)
            account_index = await self._store.next_account_index(master.id)
            record = await self._store_mnemonic_wallet(
                name,
                mnemonic,
                pin,
                account_index=account_index,
                parent_id=master.id,
            )
            del mnemonic

        await self._log_event(WalletEvent.DERIVED_CREATED, record, account_index=account_index)
        logger.info(
            "Derived wallet {} at index {} ({})",
            record.name,
            account_index,
            record.short_address,
        )
        return record

    async def import_wallet(self, name: str, phrase: str, pin: str) -> WalletRecord:
        """Import a wallet from its own recovery phrase.

        Imported wallets always use account index 0, independent of the
        master's derived indices.

        Raises:
            InvalidMnemonicError: If the phrase is invalid. The subclass tells
                a wrong word count apart from an unknown word or bad checksum.
            DuplicatePublicKeyError: If the wallet is already stored.
            DuplicateNameError: If the name is taken.
            InvalidPinError: If the PIN is wrong.
        """
        mnemonic = check_mnemonic(phrase)
        self._store.validate_pin(pin)
        await self._store.ensure_name_available(name)

        record = await self._store_mnemonic_wallet(name, mnemonic, pin)

        await self._log_event(WalletEvent.IMPORTED, record, source="mnemonic")
        logger.info("Imported wallet from phrase: {} ({})", record.name, record.short_address)
        return record

    async def import_secret_key(self, name: str, secret_key: str, pin: str) -> WalletRecord:
        """Import a wallet from a Base58 64-byte Solana secret key.

        Raises:
            InvalidSecretKeyError: If the key is malformed.
            DuplicatePublicKeyError: If the wallet is already stored.
            DuplicateNameError: If the name is taken.
        """
        keypair = keypair_from_secret_key(secret_key)
        self._store.validate_pin(pin)
        await self._store.ensure_name_available(name)

        draft = NewWallet(
            name=name,
            public_key=keypair.address,
            secret_kind=SecretKind.SECRET_KEY,
        )
        record = await self._store.create(draft, keypair.to_base58_secret(), pin)

        await self._log_event(WalletEvent.IMPORTED, record, source="secret_key")
        logger.info("Imported wallet from secret key: {} ({})", record.name, record.short_address)
        return record

    async def _store_mnemonic_wallet(
        self,
        name: str,
        mnemonic: str,
        pin: str,
        *,
        account_index: int = 0,
        is_master: bool = False,
        parent_id: str | None = None,
    ) -> WalletRecord:
        """Derive the keypair off the event loop and store the record."""
        keypair = await asyncio.to_thread(keypair_from_mnemonic, mnemonic, account_index)
        draft = NewWallet(
            name=name,
            public_key=keypair.address,
            secret_kind=SecretKind.MNEMONIC,
            account_index=account_index,
            derivation_path=solana_derivation_path(account_index),
            is_master_wallet=is_master,
            parent_id=parent_id,
        )
        return await self._store.create(draft, mnemonic, pin)

    # =========================================================================
    # Deletion / Switching / Renaming
    # =========================================================================

    async def delete_wallet(self, wallet_id: str) -> None:
        """Delete a wallet.

        If it was active, the pointer is cleared and listeners are told; the
        caller chooses the replacement.

        Raises:
            CannotDeleteMasterError: If the wallet is the master.
            WalletNotFoundError: If the id is unknown.
        """
        record = await self._store.get(wallet_id)
        was_active = await self._store.remove(wallet_id)
        if was_active:
            await self._emit_active_changed(None)
        await self._log_event(WalletEvent.DELETED, record, was_active=was_active)

    async def switch_active_wallet(self, wallet_id: str) -> WalletRecord:
        """Make a wallet active. Visible to all consumers on return.

        Raises:
            WalletNotFoundError: If the id is unknown.
        """
        record = await self._activate(wallet_id)
        await self._log_event(WalletEvent.SWITCHED, record)
        logger.info("Switched active wallet to {} ({})", record.name, record.short_address)
        return record

    async def _activate(self, wallet: WalletRecord | str) -> WalletRecord:
        wallet_id = wallet.id if isinstance(wallet, WalletRecord) else wallet
        record = await self._store.set_active(wallet_id)
        await self._emit_active_changed(record)
        return record

    async def rename_wallet(self, wallet_id: str, name: str) -> WalletRecord:
        """Rename a wallet.

        Raises:
            WalletNotFoundError: If the id is unknown.
            DuplicateNameError: If the name is taken.
        """
        old = await self._store.get(wallet_id)
        record = await self._store.rename(wallet_id, name)
        await self._log_event(WalletEvent.RENAMED, record, previous_name=old.name)
        return record

    async def change_pin(self, old_pin: str, new_pin: str) -> None:
        """Re-encrypt all wallets under a new PIN.

        Raises:
            InvalidPinError: If old_pin is wrong.
            InvalidPinFormatError: If new_pin has the wrong format.
        """
        count = await self._store.change_pin(old_pin, new_pin)
        if self._session_pin is not None:
            self._session_pin = new_pin
        await self._log_event(WalletEvent.PIN_CHANGED, wallet_count=count)

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_active_wallet_public_key(self) -> str | None:
        """Address of the active wallet, None if no wallet is active."""
        record = await self._store.get_active()
        return record.public_key if record is not None else None

    async def get_active_wallet(self) -> WalletRecord | None:
        """The active wallet record, None if unset."""
        return await self._store.get_active()

    async def list_wallets(self) -> list[WalletSummary]:
        """Public listing of all wallets for the wallet switcher."""
        active_id = self._store.get_active_id()
        records = await self._store.list_all()
        return [record.to_summary(is_active=record.id == active_id) for record in records]

    async def has_wallets(self) -> bool:
        """Check if any wallets exist."""
        return len(await self._store.list_all()) > 0

    # =========================================================================
    # Secret Access
    # =========================================================================

    async def unlock_and_reveal_mnemonic(self, pin: str, wallet_id: str | None = None) -> str:
        """Decrypt a recovery phrase for display.

        Args:
            pin: Device PIN.
            wallet_id: Wallet to reveal. Defaults to the master wallet.

        Raises:
            InvalidPinError: If the PIN is wrong.
            WalletNotFoundError: If the wallet (or master) does not exist.
            SecretKindError: If the wallet was imported from a secret key.
        """
        if wallet_id is None:
            master = await self._store.get_master()
            if master is None:
                raise WalletNotFoundError("master")
            record = master
        else:
            record = await self._store.get(wallet_id)

        if record.secret_kind is not SecretKind.MNEMONIC:
            raise SecretKindError(f"Wallet {record.name} has no recovery phrase")

        mnemonic = await self._store.unlock(record.id, pin)
        await self._log_event(WalletEvent.SECRET_REVEALED, record)
        return mnemonic

    async def get_keypair(self, wallet_id: str, pin: str | None = None) -> KeyPair:
        """Rebuild a wallet's signing keypair.

        The keypair is not cached; drop it once signing is done.

        Raises:
            WalletLockedError: If no PIN is given and the session is locked.
            InvalidPinError: If the PIN is wrong.
            InvalidSecretKeyError: If the stored secret does not produce the
                stored address (corrupted record).
        """
        pin = self._resolve_pin(pin)
        record = await self._store.get(wallet_id)
        secret = await self._store.unlock(record.id, pin)

        if record.secret_kind is SecretKind.MNEMONIC:
            keypair = await asyncio.to_thread(
                keypair_from_mnemonic, secret, record.account_index or 0
            )
        else:
            keypair = keypair_from_secret_key(secret)
        del secret

        if keypair.address != record.public_key:
            raise InvalidSecretKeyError(
                f"Stored secret does not match wallet address {record.short_address}"
            )
        return keypair

    async def get_active_keypair(self, pin: str | None = None) -> KeyPair:
        """Signing keypair of the active wallet.

        Raises:
            WalletNotFoundError: If no wallet is active.
        """
        active_id = self._store.get_active_id()
        if active_id is None:
            raise WalletNotFoundError("active")
        return await self.get_keypair(active_id, pin)

    async def sign_message(
        self,
        message: bytes,
        pin: str | None = None,
        wallet_id: str | None = None,
    ) -> bytes:
        """Sign a message (e.g. a login challenge) with a wallet's key.

        Args:
            message: Bytes to sign.
            pin: Device PIN. Defaults to the session PIN.
            wallet_id: Signing wallet. Defaults to the active wallet.

        Returns:
            64-byte Ed25519 signature.
        """
        if wallet_id is None:
            keypair = await self.get_active_keypair(pin)
        else:
            keypair = await self.get_keypair(wallet_id, pin)
        signature = keypair.sign(message)
        logger.debug("Signed {} byte message with {}", len(message), keypair.short_address)
        return signature

    # =========================================================================
    # Receive
    # =========================================================================

    async def receive_qr(self, address: str | None = None) -> str:
        """Generate terminal QR code for a receive address.

        Args:
            address: Solana address to encode. If None, uses active wallet.

        Returns:
            ASCII/Unicode string representation of QR code.

        Raises:
            WalletNotFoundError: If no address provided and no active wallet.
        """
        if address is None:
            address = await self.get_active_wallet_public_key()
            if address is None:
                raise WalletNotFoundError("active")

        # Solana Pay URI format for wallet compatibility
        qr = segno.make(f"solana:{address}")

        buffer = io.StringIO()
        qr.terminal(out=buffer, compact=True)
        logger.debug("Generated receive QR for {}", short_address(address))
        return buffer.getvalue()
