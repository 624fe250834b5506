"""Tests for the SQLite wallet database."""

from pathlib import Path

import pytest
from loguru import logger

from speedwallet.exceptions import (
    DuplicateNameError,
    DuplicatePublicKeyError,
    MasterAlreadyExistsError,
    StoreNotConnectedError,
    WalletNotFoundError,
)
from speedwallet.models import EncryptedSecret, SecretKind, WalletRecord
from speedwallet.persistence import WalletDatabase


def make_envelope(marker: bytes = b"\x01") -> EncryptedSecret:
    """Dummy envelope; the database never decrypts."""
    return EncryptedSecret(
        salt=marker * 16,
        nonce=marker * 12,
        ciphertext=marker * 40,
        time_cost=1,
        memory_cost=8,
        parallelism=1,
    )


def make_record(
    name: str = "Main Wallet",
    public_key: str = "PubKey1111",
    created_at: float = 1000.0,
    **fields: object,
) -> WalletRecord:
    """Build a wallet record for tests."""
    return WalletRecord(
        name=name,
        public_key=public_key,
        encrypted_secret=make_envelope(),
        created_at=created_at,
        **fields,
    )


class TestWalletDatabaseLifecycle:
    """Tests for WalletDatabase connection lifecycle."""

    @pytest.mark.asyncio
    async def test_connect_creates_database_file(self, tmp_path: Path) -> None:
        """Database file and parent directory should be created on connect."""
        db_path = tmp_path / "nested" / "wallets.db"
        db = WalletDatabase(db_path)
        await db.connect()
        try:
            assert db_path.exists()
            assert db.is_connected
        finally:
            await db.disconnect()

    @pytest.mark.asyncio
    async def test_connect_creates_tables(self, db: WalletDatabase) -> None:
        """Wallet and settings tables should exist after connect."""
        assert await db._table_exists("wallets")
        assert await db._table_exists("settings")

    @pytest.mark.asyncio
    async def test_records_schema_version(self, db: WalletDatabase) -> None:
        """Schema version should be stored in settings."""
        assert await db.get_setting("schema_version") == "1"

    @pytest.mark.asyncio
    async def test_warns_on_schema_version_mismatch(self, tmp_path: Path) -> None:
        """Reopening a database from another schema version should warn."""
        db_path = tmp_path / "old.db"
        async with WalletDatabase(db_path) as db:
            await db.set_setting("schema_version", "0")

        messages: list[str] = []
        sink_id = logger.add(messages.append, level="WARNING", format="{message}")
        try:
            async with WalletDatabase(db_path) as db:
                assert await db.get_setting("schema_version") == "0"
        finally:
            logger.remove(sink_id)

        assert any("schema version 0, expected 1" in m for m in messages)

    @pytest.mark.asyncio
    async def test_fresh_database_does_not_warn(self, tmp_path: Path) -> None:
        """A new database should connect without warnings."""
        messages: list[str] = []
        sink_id = logger.add(messages.append, level="WARNING", format="{message}")
        try:
            async with WalletDatabase(tmp_path / "new.db"):
                pass
        finally:
            logger.remove(sink_id)

        assert messages == []

    @pytest.mark.asyncio
    async def test_async_context_manager(self, tmp_path: Path) -> None:
        """WalletDatabase should work as async context manager."""
        async with WalletDatabase(tmp_path / "ctx.db") as db:
            assert db.is_connected
        assert not db.is_connected

    @pytest.mark.asyncio
    async def test_disconnect_is_idempotent(self, tmp_path: Path) -> None:
        """Calling disconnect multiple times should not raise."""
        db = WalletDatabase(tmp_path / "twice.db")
        await db.connect()
        await db.disconnect()
        await db.disconnect()

    @pytest.mark.asyncio
    async def test_use_before_connect(self, tmp_path: Path) -> None:
        """Queries before connect should raise StoreNotConnectedError."""
        db = WalletDatabase(tmp_path / "closed.db")
        with pytest.raises(StoreNotConnectedError):
            await db.get_all_wallets()

    @pytest.mark.asyncio
    async def test_data_survives_reconnect(self, tmp_path: Path) -> None:
        """Records and active pointer should persist across connections."""
        db_path = tmp_path / "persist.db"
        record = make_record()
        async with WalletDatabase(db_path) as db:
            await db.insert_wallet(record)
            await db.set_active_wallet_id(record.id)

        async with WalletDatabase(db_path) as db:
            assert await db.get_wallet(record.id) == record
            assert await db.get_active_wallet_id() == record.id


class TestWalletOperations:
    """Tests for wallet record storage."""

    @pytest.mark.asyncio
    async def test_insert_and_get(self, db: WalletDatabase) -> None:
        """Stored record should read back unchanged."""
        record = make_record(
            account_index=0,
            derivation_path="m/44'/501'/0'/0'",
            is_master_wallet=True,
        )
        await db.insert_wallet(record)
        assert await db.get_wallet(record.id) == record

    @pytest.mark.asyncio
    async def test_get_unknown(self, db: WalletDatabase) -> None:
        """Unknown ids should return None."""
        assert await db.get_wallet("wallet_missing") is None

    @pytest.mark.asyncio
    async def test_secret_key_record(self, db: WalletDatabase) -> None:
        """Secret kind and missing index should round trip."""
        record = make_record(secret_kind=SecretKind.SECRET_KEY)
        await db.insert_wallet(record)
        stored = await db.get_wallet(record.id)
        assert stored is not None
        assert stored.secret_kind is SecretKind.SECRET_KEY
        assert stored.account_index is None

    @pytest.mark.asyncio
    async def test_all_wallets_in_creation_order(self, db: WalletDatabase) -> None:
        """get_all_wallets should sort by creation time."""
        later = make_record("Later", "PubKey2", created_at=2000.0)
        earlier = make_record("Earlier", "PubKey1", created_at=1000.0)
        await db.insert_wallet(later)
        await db.insert_wallet(earlier)
        names = [record.name for record in await db.get_all_wallets()]
        assert names == ["Earlier", "Later"]

    @pytest.mark.asyncio
    async def test_duplicate_name_case_insensitive(self, db: WalletDatabase) -> None:
        """Names differing only in case should collide."""
        await db.insert_wallet(make_record("Main", "PubKey1"))
        with pytest.raises(DuplicateNameError):
            await db.insert_wallet(make_record("MAIN", "PubKey2"))
        assert len(await db.get_all_wallets()) == 1

    @pytest.mark.asyncio
    async def test_duplicate_public_key(self, db: WalletDatabase) -> None:
        """A second record with the same address should be rejected."""
        await db.insert_wallet(make_record("First", "SameKey"))
        with pytest.raises(DuplicatePublicKeyError) as exc_info:
            await db.insert_wallet(make_record("Second", "SameKey"))
        assert exc_info.value.public_key == "SameKey"

    @pytest.mark.asyncio
    async def test_single_master(self, db: WalletDatabase) -> None:
        """Only one master wallet may be stored."""
        await db.insert_wallet(make_record("One", "PubKey1", is_master_wallet=True))
        with pytest.raises(MasterAlreadyExistsError):
            await db.insert_wallet(make_record("Two", "PubKey2", is_master_wallet=True))

    @pytest.mark.asyncio
    async def test_find_helpers(self, db: WalletDatabase) -> None:
        """Lookups by name, address and master flag should work."""
        master = make_record("Main Wallet", "PubKey1", is_master_wallet=True)
        other = make_record("Trading", "PubKey2")
        await db.insert_wallet(master)
        await db.insert_wallet(other)

        assert await db.find_by_name("  main wallet ") == master
        assert await db.find_by_public_key("PubKey2") == other
        assert await db.get_master_wallet() == master
        assert await db.find_by_name("nope") is None

    @pytest.mark.asyncio
    async def test_max_account_index(self, db: WalletDatabase) -> None:
        """Max index should cover the master and its children only."""
        master = make_record("Main", "PubKey0", account_index=0, is_master_wallet=True)
        await db.insert_wallet(master)
        assert await db.max_account_index(master.id) == 0

        await db.insert_wallet(
            make_record("Child", "PubKey3", account_index=3, parent_id=master.id)
        )
        await db.insert_wallet(make_record("Imported", "PubKey9", account_index=0))
        assert await db.max_account_index(master.id) == 3
        assert await db.max_account_index("wallet_none") is None

    @pytest.mark.asyncio
    async def test_rename(self, db: WalletDatabase) -> None:
        """Rename should update the name and its lookup key."""
        record = make_record("Old Name", "PubKey1")
        await db.insert_wallet(record)
        await db.rename_wallet(record.id, "New Name")
        assert await db.find_by_name("new name") is not None
        assert await db.find_by_name("old name") is None

    @pytest.mark.asyncio
    async def test_rename_errors(self, db: WalletDatabase) -> None:
        """Rename should reject unknown ids and taken names."""
        first = make_record("First", "PubKey1")
        await db.insert_wallet(first)
        await db.insert_wallet(make_record("Second", "PubKey2"))

        with pytest.raises(WalletNotFoundError):
            await db.rename_wallet("wallet_missing", "Whatever")
        with pytest.raises(DuplicateNameError):
            await db.rename_wallet(first.id, "second")

    @pytest.mark.asyncio
    async def test_replace_secrets(self, db: WalletDatabase) -> None:
        """Envelopes should be swapped for every listed wallet."""
        first = make_record("First", "PubKey1")
        second = make_record("Second", "PubKey2")
        await db.insert_wallet(first)
        await db.insert_wallet(second)

        new_envelope = make_envelope(b"\x02")
        await db.replace_secrets({first.id: new_envelope, second.id: new_envelope})

        for record_id in (first.id, second.id):
            stored = await db.get_wallet(record_id)
            assert stored is not None
            assert stored.encrypted_secret == new_envelope


class TestDeleteAndActivePointer:
    """Tests for deletion and the active wallet setting."""

    @pytest.mark.asyncio
    async def test_set_and_get_active(self, db: WalletDatabase) -> None:
        """Active pointer should persist the id."""
        record = make_record()
        await db.insert_wallet(record)
        assert await db.get_active_wallet_id() is None
        await db.set_active_wallet_id(record.id)
        assert await db.get_active_wallet_id() == record.id

    @pytest.mark.asyncio
    async def test_set_active_unknown(self, db: WalletDatabase) -> None:
        """Pointing at an unknown wallet should raise."""
        with pytest.raises(WalletNotFoundError):
            await db.set_active_wallet_id("wallet_missing")

    @pytest.mark.asyncio
    async def test_delete_active_clears_pointer(self, db: WalletDatabase) -> None:
        """Deleting the active wallet should clear the pointer."""
        record = make_record()
        await db.insert_wallet(record)
        await db.set_active_wallet_id(record.id)

        assert await db.delete_wallet(record.id) is True
        assert await db.get_wallet(record.id) is None
        assert await db.get_active_wallet_id() is None

    @pytest.mark.asyncio
    async def test_delete_inactive_keeps_pointer(self, db: WalletDatabase) -> None:
        """Deleting another wallet should leave the pointer alone."""
        active = make_record("Active", "PubKey1")
        other = make_record("Other", "PubKey2")
        await db.insert_wallet(active)
        await db.insert_wallet(other)
        await db.set_active_wallet_id(active.id)

        assert await db.delete_wallet(other.id) is False
        assert await db.get_active_wallet_id() == active.id

    @pytest.mark.asyncio
    async def test_delete_unknown(self, db: WalletDatabase) -> None:
        """Deleting an unknown id should raise."""
        with pytest.raises(WalletNotFoundError):
            await db.delete_wallet("wallet_missing")

    @pytest.mark.asyncio
    async def test_clear_active_wallet_id(self, db: WalletDatabase) -> None:
        """Clearing the pointer should leave the wallet in place."""
        record = make_record()
        await db.insert_wallet(record)
        await db.set_active_wallet_id(record.id)

        await db.clear_active_wallet_id()
        assert await db.get_active_wallet_id() is None
        assert await db.get_wallet(record.id) == record

    @pytest.mark.asyncio
    async def test_settings_upsert_and_delete(self, db: WalletDatabase) -> None:
        """Settings should overwrite on set and vanish on delete."""
        await db.set_setting("theme", "dark")
        await db.set_setting("theme", "light")
        assert await db.get_setting("theme") == "light"
        await db.delete_setting("theme")
        assert await db.get_setting("theme") is None
