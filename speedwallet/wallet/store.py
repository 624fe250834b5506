"""PIN-gated encrypted storage of wallet records.

Each record's secret (a mnemonic or a Solana secret key) is encrypted with
a key stretched from the device PIN. Public fields stay in plaintext so the
wallet list can be shown without unlocking.
"""

import asyncio
import re

from loguru import logger

from speedwallet.config import PolicyConfig
from speedwallet.crypto.cipher import SecretCipher
from speedwallet.exceptions import (
    CannotDeleteMasterError,
    DuplicateNameError,
    DuplicatePublicKeyError,
    InvalidPinFormatError,
    InvalidWalletNameError,
    MasterAlreadyExistsError,
    WalletNotFoundError,
)
from speedwallet.models import EncryptedSecret, NewWallet, WalletRecord, new_wallet_id
from speedwallet.persistence import WalletDatabase


class SecureWalletStore:
    """Encrypted wallet records plus the active wallet pointer.

    ``create``, ``remove``, ``set_active``, ``rename`` and ``change_pin``
    are serialized by one lock, so duplicate checks and writes are atomic
    with respect to each other. Key stretching and AES-GCM run in worker
    threads.

    Usage:
        async with WalletDatabase(path) as db:
            store = SecureWalletStore(db)
            await store.load()
            record = await store.create(draft, mnemonic, "123456")
            phrase = await store.unlock(record.id, "123456")
    """

    def __init__(
        self,
        database: WalletDatabase,
        cipher: SecretCipher | None = None,
        policy: PolicyConfig | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            database: Connected wallet database.
            cipher: Secret cipher. Defaults to one built from KdfConfig().
            policy: PIN and name rules. Defaults to PolicyConfig().
        """
        self._database = database
        self._cipher = cipher or SecretCipher()
        self._policy = policy or PolicyConfig()
        self._lock = asyncio.Lock()
        self._active_id: str | None = None
        self._pin_re = re.compile(rf"[0-9]{{{self._policy.pin_length}}}")

    async def load(self) -> None:
        """Load the persisted active wallet pointer."""
        active_id = await self._database.get_active_wallet_id()
        if active_id is not None and await self._database.get_wallet(active_id) is None:
            logger.warning("Active wallet {} no longer exists, clearing pointer", active_id)
            await self._database.clear_active_wallet_id()
            active_id = None
        self._active_id = active_id
        logger.debug("Wallet store loaded, active wallet: {}", active_id)

    # =========================================================================
    # Validation
    # =========================================================================

    def validate_pin(self, pin: str) -> None:
        """Check the PIN format.

        Raises:
            InvalidPinFormatError: If the PIN is not pin_length ASCII digits.
        """
        if not isinstance(pin, str) or self._pin_re.fullmatch(pin) is None:
            raise InvalidPinFormatError(
                f"PIN must be exactly {self._policy.pin_length} digits"
            )

    def validate_name(self, name: str) -> str:
        """Check a wallet name and return it trimmed.

        Raises:
            InvalidWalletNameError: If the trimmed name is too short.
        """
        trimmed = name.strip()
        if len(trimmed) < self._policy.min_name_length:
            raise InvalidWalletNameError(
                f"Name must be at least {self._policy.min_name_length} characters"
            )
        return trimmed

    async def ensure_name_available(self, name: str) -> str:
        """Validate a name and check it is not taken. Advisory, not locked.

        Raises:
            InvalidWalletNameError: If the name is too short.
            DuplicateNameError: If the name is taken.
        """
        trimmed = self.validate_name(name)
        if await self._database.find_by_name(trimmed) is not None:
            raise DuplicateNameError(trimmed)
        return trimmed

    # =========================================================================
    # Record Operations
    # =========================================================================

    async def create(self, draft: NewWallet, secret: str, pin: str) -> WalletRecord:
        """Encrypt a secret and store a new wallet record.

        Args:
            draft: Public fields of the wallet.
            secret: Mnemonic or Base58 secret key to encrypt.
            pin: Device PIN. Must match the PIN of existing records.

        Returns:
            The stored WalletRecord.

        Raises:
            InvalidPinFormatError: If the PIN format is wrong.
            InvalidPinError: If the PIN differs from the stored wallets' PIN.
            InvalidWalletNameError: If the name is too short.
            DuplicateNameError: If the name collides case-insensitively.
            DuplicatePublicKeyError: If the address is already stored.
            MasterAlreadyExistsError: If draft is a master and one exists.
        """
        self.validate_pin(pin)
        name = self.validate_name(draft.name)

        async with self._lock:
            if await self._database.find_by_name(name) is not None:
                raise DuplicateNameError(name)

            existing = await self._database.find_by_public_key(draft.public_key)
            if existing is not None:
                raise DuplicatePublicKeyError(draft.public_key, existing.id)

            if draft.is_master_wallet and await self._database.get_master_wallet() is not None:
                raise MasterAlreadyExistsError()

            await self._verify_pin_locked(pin)

            wallet_id = new_wallet_id()
            envelope = await asyncio.to_thread(
                self._cipher.encrypt, secret, pin, wallet_id.encode("utf-8")
            )
            record = WalletRecord(
                id=wallet_id,
                name=name,
                public_key=draft.public_key,
                encrypted_secret=envelope,
                secret_kind=draft.secret_kind,
                account_index=draft.account_index,
                derivation_path=draft.derivation_path,
                is_master_wallet=draft.is_master_wallet,
                parent_id=draft.parent_id,
            )
            await self._database.insert_wallet(record)

        logger.info(
            "Stored wallet {} ({}){}",
            record.name,
            record.short_address,
            " as master" if record.is_master_wallet else "",
        )
        return record

    async def unlock(self, record_id: str, pin: str) -> str:
        """Decrypt a wallet's secret.

        Raises:
            WalletNotFoundError: If the id is unknown.
            InvalidPinError: If the PIN does not authenticate the secret.
        """
        record = await self.get(record_id)
        return await self._decrypt(record, pin)

    async def remove(self, record_id: str) -> bool:
        """Delete a wallet record.

        Returns:
            True if the record was active and the pointer was cleared. The
            caller must select a new active wallet.

        Raises:
            WalletNotFoundError: If the id is unknown.
            CannotDeleteMasterError: If the record is the master wallet.
        """
        async with self._lock:
            record = await self.get(record_id)
            if record.is_master_wallet:
                raise CannotDeleteMasterError()

            was_active = await self._database.delete_wallet(record_id)
            if was_active or self._active_id == record_id:
                self._active_id = None

        logger.info("Deleted wallet {} ({})", record.name, record.short_address)
        return was_active

    async def rename(self, record_id: str, new_name: str) -> WalletRecord:
        """Change a wallet's display name.

        Raises:
            WalletNotFoundError: If the id is unknown.
            InvalidWalletNameError: If the name is too short.
            DuplicateNameError: If another wallet has the name.
        """
        name = self.validate_name(new_name)
        async with self._lock:
            existing = await self._database.find_by_name(name)
            if existing is not None and existing.id != record_id:
                raise DuplicateNameError(name)
            await self._database.rename_wallet(record_id, name)
        return await self.get(record_id)

    async def get(self, record_id: str) -> WalletRecord:
        """Get a wallet record.

        Raises:
            WalletNotFoundError: If the id is unknown.
        """
        record = await self._database.get_wallet(record_id)
        if record is None:
            raise WalletNotFoundError(record_id)
        return record

    async def list_all(self) -> list[WalletRecord]:
        """All wallet records in creation order."""
        return await self._database.get_all_wallets()

    async def get_master(self) -> WalletRecord | None:
        """The master wallet, if one exists."""
        return await self._database.get_master_wallet()

    async def next_account_index(self, master_id: str) -> int:
        """Next unused account index for wallets derived from a master."""
        current = await self._database.max_account_index(master_id)
        return 0 if current is None else current + 1

    # =========================================================================
    # Active Wallet Pointer
    # =========================================================================

    def get_active_id(self) -> str | None:
        """Id of the active wallet, None if unset."""
        return self._active_id

    async def get_active(self) -> WalletRecord | None:
        """The active wallet record, None if unset."""
        if self._active_id is None:
            return None
        return await self._database.get_wallet(self._active_id)

    async def set_active(self, record_id: str) -> WalletRecord:
        """Make a wallet active.

        Raises:
            WalletNotFoundError: If the id is unknown.
        """
        async with self._lock:
            await self._database.set_active_wallet_id(record_id)
            self._active_id = record_id
        return await self.get(record_id)

    # =========================================================================
    # PIN Operations
    # =========================================================================

    async def verify_pin(self, pin: str) -> None:
        """Authenticate a PIN against the stored wallets.

        Raises:
            InvalidPinFormatError: If the PIN format is wrong.
            InvalidPinError: If the PIN is wrong.
            WalletNotFoundError: If no wallet is stored yet.
        """
        self.validate_pin(pin)
        record = await self._pin_reference()
        if record is None:
            raise WalletNotFoundError("master")
        await self._decrypt(record, pin)

    async def change_pin(self, old_pin: str, new_pin: str) -> int:
        """Re-encrypt every wallet under a new PIN in one transaction.

        Returns:
            Number of re-encrypted wallets.

        Raises:
            InvalidPinFormatError: If the new PIN format is wrong.
            InvalidPinError: If old_pin does not open every wallet. Nothing is
                written in that case.
        """
        self.validate_pin(new_pin)
        async with self._lock:
            records = await self._database.get_all_wallets()
            envelopes: dict[str, EncryptedSecret] = {}
            for record in records:
                secret = await self._decrypt(record, old_pin)
                envelopes[record.id] = await asyncio.to_thread(
                    self._cipher.encrypt, secret, new_pin, record.id.encode("utf-8")
                )
                del secret
            await self._database.replace_secrets(envelopes)

        logger.info("PIN changed, re-encrypted {} wallets", len(envelopes))
        return len(envelopes)

    async def _pin_reference(self) -> WalletRecord | None:
        """Record used to check a PIN: the master, else the oldest wallet."""
        master = await self._database.get_master_wallet()
        if master is not None:
            return master
        records = await self._database.get_all_wallets()
        return records[0] if records else None

    async def _verify_pin_locked(self, pin: str) -> None:
        """Reject a PIN that differs from the one protecting stored wallets."""
        record = await self._pin_reference()
        if record is not None:
            await self._decrypt(record, pin)

    async def _decrypt(self, record: WalletRecord, pin: str) -> str:
        return await asyncio.to_thread(
            self._cipher.decrypt,
            record.encrypted_secret,
            pin,
            record.id.encode("utf-8"),
        )
