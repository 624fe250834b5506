"""Key material: BIP-39 mnemonics, SLIP-0010 derivation, Ed25519 keypairs.

Provides:
- generate_mnemonic / validate_mnemonic / mnemonic_to_seed
- derive_path: hardened Ed25519 derivation at m/44'/501'/0'/{index}'
- keypair_from_mnemonic: mnemonic + account index to KeyPair
- SecretCipher: PIN-based encryption of stored secrets
"""

from speedwallet.crypto.cipher import SecretCipher
from speedwallet.crypto.derivation import (
    derive_child_key,
    derive_master_key,
    derive_path,
    solana_derivation_path,
)
from speedwallet.crypto.keypair import (
    KeyPair,
    is_valid_address,
    keypair_from_mnemonic,
    keypair_from_secret_key,
)
from speedwallet.crypto.mnemonic import (
    check_mnemonic,
    generate_mnemonic,
    mnemonic_to_seed,
    validate_mnemonic,
)

__all__ = [
    "KeyPair",
    "SecretCipher",
    "check_mnemonic",
    "derive_child_key",
    "derive_master_key",
    "derive_path",
    "generate_mnemonic",
    "is_valid_address",
    "keypair_from_mnemonic",
    "keypair_from_secret_key",
    "mnemonic_to_seed",
    "solana_derivation_path",
    "validate_mnemonic",
]
