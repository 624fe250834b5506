"""Configuration architecture using pydantic-settings for typed environment loading."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageConfig(BaseSettings):
    """Wallet storage locations."""

    model_config = SettingsConfigDict(
        env_prefix="WALLET_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    db_path: Path = Path("data/wallets.db")
    audit_dir: Path = Path("data/audit")


class KdfConfig(BaseSettings):
    """Argon2id parameters for deriving the PIN encryption key.

    Defaults follow the OWASP high-security profile. Tests lower them.
    """

    model_config = SettingsConfigDict(
        env_prefix="WALLET_KDF_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    time_cost: int = Field(default=3, ge=1)
    memory_cost: int = Field(default=65536, ge=8, description="Memory cost in KiB")
    parallelism: int = Field(default=4, ge=1)


class PolicyConfig(BaseSettings):
    """User-facing wallet rules."""

    model_config = SettingsConfigDict(
        env_prefix="WALLET_POLICY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    pin_length: int = Field(default=6, ge=4, le=12)
    min_name_length: int = Field(default=3, ge=1)
    mnemonic_strength: int = 128


class Settings:
    """Root settings aggregating all configuration sections."""

    def __init__(self) -> None:
        self.storage = StorageConfig()
        self.kdf = KdfConfig()
        self.policy = PolicyConfig()


# Global settings instance - lazily loaded
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
