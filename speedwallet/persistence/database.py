"""SQLite database manager for wallet records and the active wallet pointer."""

from pathlib import Path
from time import time
from typing import Any

import aiosqlite
from loguru import logger

from speedwallet.exceptions import (
    DuplicateNameError,
    DuplicatePublicKeyError,
    MasterAlreadyExistsError,
    StoreNotConnectedError,
    WalletNotFoundError,
)
from speedwallet.models import EncryptedSecret, SecretKind, WalletRecord, name_key
from speedwallet.persistence.schema import (
    ACTIVE_WALLET_KEY,
    SCHEMA_STATEMENTS,
    SCHEMA_VERSION,
    SCHEMA_VERSION_KEY,
)


def _row_to_record(row: aiosqlite.Row) -> WalletRecord:
    """Convert a wallets row into a WalletRecord."""
    return WalletRecord(
        id=row["id"],
        name=row["name"],
        public_key=row["public_key"],
        encrypted_secret=EncryptedSecret(
            salt=row["salt"],
            nonce=row["nonce"],
            ciphertext=row["ciphertext"],
            time_cost=row["kdf_time_cost"],
            memory_cost=row["kdf_memory_cost"],
            parallelism=row["kdf_parallelism"],
        ),
        secret_kind=SecretKind(row["secret_kind"]),
        account_index=row["account_index"],
        derivation_path=row["derivation_path"],
        is_master_wallet=bool(row["is_master_wallet"]),
        parent_id=row["parent_id"],
        created_at=row["created_at"],
    )


class WalletDatabase:
    """Async SQLite database manager for wallet records.

    Every mutating method runs as a single transaction: it either commits
    completely or rolls back and raises.

    Example:
        async with WalletDatabase(Path("data/wallets.db")) as db:
            await db.insert_wallet(record)
            records = await db.get_all_wallets()
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the database manager.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = db_path
        self._connection: aiosqlite.Connection | None = None

    @property
    def db_path(self) -> Path:
        """Get the database file path."""
        return self._db_path

    @property
    def is_connected(self) -> bool:
        """Whether the connection is open."""
        return self._connection is not None

    async def connect(self) -> None:
        """Open database connection and create tables if needed.

        Logs a warning when an existing database records a different schema
        version.
        """
        # Ensure parent directory exists
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._connection = await aiosqlite.connect(self._db_path)
        self._connection.row_factory = aiosqlite.Row
        existing = await self._table_exists("wallets")

        for statement in SCHEMA_STATEMENTS:
            await self._connection.execute(statement)
        await self._connection.execute(
            "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?)",
            (SCHEMA_VERSION_KEY, str(SCHEMA_VERSION)),
        )
        await self._connection.commit()

        if not existing:
            logger.info("Created wallet database: {}", self._db_path)
            return

        stored_version = await self.get_setting(SCHEMA_VERSION_KEY)
        if stored_version != str(SCHEMA_VERSION):
            logger.warning(
                "Wallet database {} has schema version {}, expected {}",
                self._db_path,
                stored_version,
                SCHEMA_VERSION,
            )
        logger.debug("Connected to wallet database: {}", self._db_path)

    async def disconnect(self) -> None:
        """Close database connection."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.debug("Disconnected from wallet database: {}", self._db_path)

    async def __aenter__(self) -> "WalletDatabase":
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.disconnect()

    def _conn(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise StoreNotConnectedError()
        return self._connection

    async def _table_exists(self, table_name: str) -> bool:
        """Check if a table exists in the database."""
        if self._connection is None:
            return False

        cursor = await self._connection.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
            (table_name,),
        )
        row = await cursor.fetchone()
        return row is not None

    # =========================================================================
    # Wallet Operations
    # =========================================================================

    async def insert_wallet(self, record: WalletRecord) -> None:
        """Insert a wallet record.

        Args:
            record: The record to insert.

        Raises:
            DuplicateNameError: If the name collides case-insensitively.
            DuplicatePublicKeyError: If the address is already stored.
            MasterAlreadyExistsError: If inserting a second master.
        """
        conn = self._conn()
        secret = record.encrypted_secret
        try:
            await conn.execute(
                """
                INSERT INTO wallets (
                    id, name, name_key, public_key, secret_kind,
                    salt, nonce, ciphertext,
                    kdf_time_cost, kdf_memory_cost, kdf_parallelism,
                    account_index, derivation_path, is_master_wallet,
                    parent_id, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.name,
                    name_key(record.name),
                    record.public_key,
                    record.secret_kind.value,
                    secret.salt,
                    secret.nonce,
                    secret.ciphertext,
                    secret.time_cost,
                    secret.memory_cost,
                    secret.parallelism,
                    record.account_index,
                    record.derivation_path,
                    int(record.is_master_wallet),
                    record.parent_id,
                    record.created_at,
                ),
            )
            await conn.commit()
        except aiosqlite.IntegrityError as e:
            await conn.rollback()
            raise self._translate_integrity_error(e, record) from e

    @staticmethod
    def _translate_integrity_error(error: aiosqlite.IntegrityError, record: WalletRecord) -> Exception:
        """Map a UNIQUE constraint failure to the matching wallet error."""
        message = str(error)
        if "name_key" in message:
            return DuplicateNameError(record.name)
        if "public_key" in message:
            return DuplicatePublicKeyError(record.public_key)
        if "is_master_wallet" in message:
            return MasterAlreadyExistsError()
        return error

    async def get_wallet(self, wallet_id: str) -> WalletRecord | None:
        """Get a wallet by id.

        Returns:
            The WalletRecord if found, None otherwise.
        """
        cursor = await self._conn().execute("SELECT * FROM wallets WHERE id = ?", (wallet_id,))
        row = await cursor.fetchone()
        return _row_to_record(row) if row is not None else None

    async def get_all_wallets(self) -> list[WalletRecord]:
        """Get all wallets in creation order."""
        cursor = await self._conn().execute("SELECT * FROM wallets ORDER BY created_at, rowid")
        rows = await cursor.fetchall()
        return [_row_to_record(row) for row in rows]

    async def find_by_name(self, name: str) -> WalletRecord | None:
        """Find a wallet whose name matches case-insensitively."""
        cursor = await self._conn().execute(
            "SELECT * FROM wallets WHERE name_key = ?", (name_key(name),)
        )
        row = await cursor.fetchone()
        return _row_to_record(row) if row is not None else None

    async def find_by_public_key(self, public_key: str) -> WalletRecord | None:
        """Find a wallet by its address."""
        cursor = await self._conn().execute(
            "SELECT * FROM wallets WHERE public_key = ?", (public_key,)
        )
        row = await cursor.fetchone()
        return _row_to_record(row) if row is not None else None

    async def get_master_wallet(self) -> WalletRecord | None:
        """Get the master wallet, if one exists."""
        cursor = await self._conn().execute("SELECT * FROM wallets WHERE is_master_wallet = 1")
        row = await cursor.fetchone()
        return _row_to_record(row) if row is not None else None

    async def max_account_index(self, master_id: str) -> int | None:
        """Highest account index among the master and wallets derived from it."""
        cursor = await self._conn().execute(
            "SELECT MAX(account_index) AS max_index FROM wallets WHERE id = ? OR parent_id = ?",
            (master_id, master_id),
        )
        row = await cursor.fetchone()
        return row["max_index"] if row is not None else None

    async def rename_wallet(self, wallet_id: str, name: str) -> None:
        """Change a wallet's display name.

        Raises:
            WalletNotFoundError: If the id is unknown.
            DuplicateNameError: If the name is taken.
        """
        conn = self._conn()
        try:
            cursor = await conn.execute(
                "UPDATE wallets SET name = ?, name_key = ? WHERE id = ?",
                (name, name_key(name), wallet_id),
            )
            if cursor.rowcount == 0:
                await conn.rollback()
                raise WalletNotFoundError(wallet_id)
            await conn.commit()
        except aiosqlite.IntegrityError as e:
            await conn.rollback()
            raise DuplicateNameError(name) from e

    async def replace_secrets(self, secrets: dict[str, EncryptedSecret]) -> None:
        """Replace the encrypted secrets of several wallets in one transaction."""
        conn = self._conn()
        try:
            for wallet_id, secret in secrets.items():
                await conn.execute(
                    """
                    UPDATE wallets SET
                        salt = ?, nonce = ?, ciphertext = ?,
                        kdf_time_cost = ?, kdf_memory_cost = ?, kdf_parallelism = ?
                    WHERE id = ?
                    """,
                    (
                        secret.salt,
                        secret.nonce,
                        secret.ciphertext,
                        secret.time_cost,
                        secret.memory_cost,
                        secret.parallelism,
                        wallet_id,
                    ),
                )
            await conn.commit()
        except BaseException:
            await conn.rollback()
            raise

    async def delete_wallet(self, wallet_id: str) -> bool:
        """Delete a wallet, clearing the active pointer if it pointed at it.

        Returns:
            True if the active pointer was cleared.

        Raises:
            WalletNotFoundError: If the id is unknown.
        """
        conn = self._conn()
        try:
            cursor = await conn.execute("DELETE FROM wallets WHERE id = ?", (wallet_id,))
            if cursor.rowcount == 0:
                await conn.rollback()
                raise WalletNotFoundError(wallet_id)
            cursor = await conn.execute(
                "DELETE FROM settings WHERE key = ? AND value = ?",
                (ACTIVE_WALLET_KEY, wallet_id),
            )
            cleared = cursor.rowcount > 0
            await conn.commit()
        except aiosqlite.Error:
            await conn.rollback()
            raise
        return cleared

    # =========================================================================
    # Settings Operations
    # =========================================================================

    async def get_setting(self, key: str) -> str | None:
        """Get a setting value."""
        cursor = await self._conn().execute("SELECT value FROM settings WHERE key = ?", (key,))
        row = await cursor.fetchone()
        return row["value"] if row is not None else None

    async def set_setting(self, key: str, value: str) -> None:
        """Insert or update a setting."""
        conn = self._conn()
        await conn.execute(
            """
            INSERT INTO settings (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (key, value, time()),
        )
        await conn.commit()

    async def delete_setting(self, key: str) -> None:
        """Delete a setting."""
        conn = self._conn()
        await conn.execute("DELETE FROM settings WHERE key = ?", (key,))
        await conn.commit()

    async def get_active_wallet_id(self) -> str | None:
        """Get the persisted active wallet id."""
        return await self.get_setting(ACTIVE_WALLET_KEY)

    async def set_active_wallet_id(self, wallet_id: str) -> None:
        """Persist the active wallet id.

        Raises:
            WalletNotFoundError: If the id is unknown.
        """
        conn = self._conn()
        cursor = await conn.execute("SELECT 1 FROM wallets WHERE id = ?", (wallet_id,))
        if await cursor.fetchone() is None:
            raise WalletNotFoundError(wallet_id)
        await self.set_setting(ACTIVE_WALLET_KEY, wallet_id)

    async def clear_active_wallet_id(self) -> None:
        """Remove the persisted active wallet id."""
        await self.delete_setting(ACTIVE_WALLET_KEY)
