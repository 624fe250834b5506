"""Shared fixtures for speedwallet tests."""

from collections.abc import AsyncIterator
from pathlib import Path

import pytest

from speedwallet.config import KdfConfig, PolicyConfig
from speedwallet.crypto.cipher import SecretCipher
from speedwallet.persistence import WalletDatabase, WalletEventLogger
from speedwallet.wallet import SecureWalletStore, WalletManager


def zero_entropy(size: int) -> bytes:
    """Entropy source that always yields the ABANDON_MNEMONIC entropy."""
    return bytes(size)


@pytest.fixture
def fast_kdf() -> KdfConfig:
    """Minimal Argon2id cost so tests stay fast."""
    return KdfConfig(time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture
def policy() -> PolicyConfig:
    """Default wallet rules."""
    return PolicyConfig()


@pytest.fixture
def cipher(fast_kdf: KdfConfig) -> SecretCipher:
    """Secret cipher with test KDF parameters."""
    return SecretCipher(fast_kdf)


@pytest.fixture
async def db(tmp_path: Path) -> AsyncIterator[WalletDatabase]:
    """Create a temporary wallet database."""
    database = WalletDatabase(tmp_path / "wallets.db")
    await database.connect()
    yield database
    await database.disconnect()


@pytest.fixture
async def store(
    db: WalletDatabase, cipher: SecretCipher, policy: PolicyConfig
) -> SecureWalletStore:
    """Loaded wallet store over the temporary database."""
    wallet_store = SecureWalletStore(db, cipher=cipher, policy=policy)
    await wallet_store.load()
    return wallet_store


@pytest.fixture
def event_logger(tmp_path: Path) -> WalletEventLogger:
    """Audit logger writing into the temporary directory."""
    return WalletEventLogger(data_dir=tmp_path / "audit")


@pytest.fixture
def manager(
    store: SecureWalletStore,
    event_logger: WalletEventLogger,
    policy: PolicyConfig,
) -> WalletManager:
    """Wallet manager with a random entropy source."""
    return WalletManager(store, event_logger=event_logger, policy=policy)


@pytest.fixture
def zero_manager(store: SecureWalletStore, policy: PolicyConfig) -> WalletManager:
    """Wallet manager whose new master mnemonic is ABANDON_MNEMONIC."""
    return WalletManager(store, policy=policy, entropy_source=zero_entropy)
