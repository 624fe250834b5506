"""Domain models for the speedwallet key-management core."""

import uuid
from enum import Enum
from time import time

from pydantic import BaseModel, Field


class SecretKind(str, Enum):
    """Kind of secret material held by a wallet record."""

    MNEMONIC = "mnemonic"
    SECRET_KEY = "secret_key"


def new_wallet_id() -> str:
    """Generate a stable wallet id."""
    return f"wallet_{uuid.uuid4().hex}"


def name_key(name: str) -> str:
    """Case-insensitive key used to detect duplicate wallet names."""
    return name.strip().casefold()


class EncryptedSecret(BaseModel):
    """AES-GCM envelope of a wallet secret plus the Argon2id parameters used.

    Immutable. ``ciphertext`` carries the 16-byte authentication tag.
    """

    model_config = {"frozen": True}

    salt: bytes = Field(..., repr=False, description="Per-record KDF salt")
    nonce: bytes = Field(..., repr=False, description="AES-GCM nonce")
    ciphertext: bytes = Field(..., repr=False, description="Ciphertext with GCM tag")
    time_cost: int = Field(..., ge=1)
    memory_cost: int = Field(..., ge=8)
    parallelism: int = Field(..., ge=1)


class NewWallet(BaseModel):
    """Public fields of a wallet about to be stored.

    The store assigns the id and creation time and attaches the encrypted
    secret.
    """

    model_config = {"frozen": True}

    name: str = Field(..., description="Display name")
    public_key: str = Field(..., description="Base58 Solana address")
    secret_kind: SecretKind = Field(default=SecretKind.MNEMONIC)
    account_index: int | None = Field(default=None, ge=0, lt=2**31)
    derivation_path: str | None = Field(default=None)
    is_master_wallet: bool = Field(default=False)
    parent_id: str | None = Field(
        default=None, description="Master wallet id for wallets derived from it"
    )


class WalletRecord(BaseModel):
    """A persisted wallet.

    Immutable data structure returned by the store. Only ``encrypted_secret``
    is confidential; the remaining fields are stored in plaintext for listing.
    """

    model_config = {"frozen": True}

    id: str = Field(default_factory=new_wallet_id)
    name: str
    public_key: str
    encrypted_secret: EncryptedSecret = Field(..., repr=False)
    secret_kind: SecretKind = SecretKind.MNEMONIC
    account_index: int | None = Field(default=None, ge=0, lt=2**31)
    derivation_path: str | None = None
    is_master_wallet: bool = False
    parent_id: str | None = None
    created_at: float = Field(default_factory=time)

    @property
    def short_address(self) -> str:
        """Return shortened address for display (AbCd...WxYz)."""
        return f"{self.public_key[:4]}...{self.public_key[-4:]}"

    def to_summary(self, is_active: bool) -> "WalletSummary":
        """Public listing view of this record."""
        return WalletSummary(
            id=self.id,
            name=self.name,
            public_key=self.public_key,
            is_active=is_active,
            is_master_wallet=self.is_master_wallet,
            account_index=self.account_index,
            derivation_path=self.derivation_path,
            created_at=self.created_at,
        )


class WalletSummary(BaseModel):
    """Wallet entry for the wallet switcher. Holds no secret material."""

    model_config = {"frozen": True}

    id: str
    name: str
    public_key: str
    is_active: bool
    is_master_wallet: bool
    account_index: int | None = None
    derivation_path: str | None = None
    created_at: float


class CreatedWallet(BaseModel):
    """Result of creating a master wallet.

    The mnemonic is handed back once so it can be shown for backup.
    """

    model_config = {"frozen": True}

    record: WalletRecord
    mnemonic: str = Field(..., repr=False)
