"""SQL schema definitions for the wallet database."""

# Schema version for migrations
SCHEMA_VERSION = 1

# Public fields are plaintext for listing; salt/nonce/ciphertext form the
# AES-GCM envelope of the secret.
CREATE_WALLETS_TABLE = """
CREATE TABLE IF NOT EXISTS wallets (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    name_key TEXT NOT NULL UNIQUE,
    public_key TEXT NOT NULL UNIQUE,
    secret_kind TEXT NOT NULL,
    salt BLOB NOT NULL,
    nonce BLOB NOT NULL,
    ciphertext BLOB NOT NULL,
    kdf_time_cost INTEGER NOT NULL,
    kdf_memory_cost INTEGER NOT NULL,
    kdf_parallelism INTEGER NOT NULL,
    account_index INTEGER,
    derivation_path TEXT,
    is_master_wallet INTEGER NOT NULL DEFAULT 0,
    parent_id TEXT,
    created_at REAL NOT NULL
);
"""

CREATE_SETTINGS_TABLE = """
CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at REAL DEFAULT (strftime('%s', 'now'))
);
"""

# At most one master wallet per installation
CREATE_SINGLE_MASTER_INDEX = """
CREATE UNIQUE INDEX IF NOT EXISTS idx_wallets_single_master
ON wallets(is_master_wallet) WHERE is_master_wallet = 1;
"""

CREATE_WALLETS_PARENT_INDEX = """
CREATE INDEX IF NOT EXISTS idx_wallets_parent ON wallets(parent_id);
"""

# All schema statements in order
SCHEMA_STATEMENTS = [
    CREATE_WALLETS_TABLE,
    CREATE_SETTINGS_TABLE,
    CREATE_SINGLE_MASTER_INDEX,
    CREATE_WALLETS_PARENT_INDEX,
]

# Settings keys
ACTIVE_WALLET_KEY = "active_wallet_id"
SCHEMA_VERSION_KEY = "schema_version"
