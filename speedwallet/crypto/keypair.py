"""Ed25519 keypairs derived from mnemonics or imported secret keys.

``keypair_from_mnemonic`` zeroes its own copies of the seed and private key.
The immutable ``bytes`` returned by ``mnemonic_to_seed`` and ``derive_path``
cannot be wiped, and PyNaCl keeps its own copy inside ``SigningKey``.
"""

from dataclasses import dataclass

import base58
from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from speedwallet.crypto.derivation import derive_path, wipe
from speedwallet.crypto.mnemonic import mnemonic_to_seed
from speedwallet.exceptions import InvalidSecretKeyError

PUBLIC_KEY_LENGTH = 32
SECRET_KEY_LENGTH = 64


@dataclass(frozen=True, repr=False)
class KeyPair:
    """An Ed25519 signing key and its public key.

    The public key in Base58 is the Solana wallet address. The 64-byte
    ``secret_key`` is the Solana keypair format: 32-byte seed followed by
    the 32-byte public key.
    """

    signing_key: SigningKey

    @property
    def public_key(self) -> bytes:
        """Raw 32-byte public key."""
        return bytes(self.signing_key.verify_key)

    @property
    def address(self) -> str:
        """Base58 public key."""
        return base58.b58encode(self.public_key).decode("ascii")

    @property
    def short_address(self) -> str:
        """Return shortened address for display (AbCd...WxYz)."""
        return short_address(self.address)

    @property
    def secret_key(self) -> bytes:
        """64-byte Solana secret key (seed + public key)."""
        return bytes(self.signing_key) + self.public_key

    def to_base58_secret(self) -> str:
        """Export the secret key in the Base58 form wallets accept on import."""
        return base58.b58encode(self.secret_key).decode("ascii")

    def sign(self, message: bytes) -> bytes:
        """Return the detached 64-byte signature of message."""
        return self.signing_key.sign(message).signature

    def verify(self, message: bytes, signature: bytes) -> bool:
        """Check a detached signature against this keypair's public key."""
        return verify_signature(self.public_key, message, signature)

    def __repr__(self) -> str:
        return f"KeyPair(address={self.address!r})"


def short_address(address: str) -> str:
    """Return shortened address for display (AbCd...WxYz)."""
    return f"{address[:4]}...{address[-4:]}"


def verify_signature(public_key: bytes | str, message: bytes, signature: bytes) -> bool:
    """Verify an Ed25519 signature for a raw or Base58 public key.

    Malformed keys and signatures count as a failed verification.
    """
    try:
        if isinstance(public_key, str):
            public_key = base58.b58decode(public_key)
        VerifyKey(public_key).verify(message, signature)
    except (BadSignatureError, ValueError):
        return False
    return True


def keypair_from_seed(seed: bytes) -> KeyPair:
    """Build a keypair from a 32-byte Ed25519 seed."""
    if len(seed) != 32:
        raise InvalidSecretKeyError(f"Ed25519 seed must be 32 bytes, got {len(seed)}")
    return KeyPair(signing_key=SigningKey(bytes(seed)))


def keypair_from_mnemonic(mnemonic: str, account_index: int = 0, passphrase: str = "") -> KeyPair:
    """Derive the keypair at ``m/44'/501'/0'/{account_index}'``.

    Pure function of its inputs: the same mnemonic, index and passphrase
    always produce the same keypair.

    Raises:
        IndexOutOfRangeError: If account_index is not in [0, 2^31).
    """
    seed = bytearray(mnemonic_to_seed(mnemonic, passphrase))
    try:
        private_key = bytearray(derive_path(seed, account_index))
    finally:
        wipe(seed)
    try:
        return keypair_from_seed(private_key)
    finally:
        wipe(private_key)


def keypair_from_secret_key(secret_key: bytes | str) -> KeyPair:
    """Rebuild a keypair from a 64-byte Solana secret key.

    Args:
        secret_key: Raw bytes or Base58 string (as exported by Phantom).

    Raises:
        InvalidSecretKeyError: If the key is malformed or its public half
            does not belong to its seed half.
    """
    if isinstance(secret_key, str):
        try:
            secret_key = base58.b58decode(secret_key.strip())
        except ValueError as e:
            raise InvalidSecretKeyError(f"Secret key is not valid Base58: {e}") from e

    if len(secret_key) != SECRET_KEY_LENGTH:
        raise InvalidSecretKeyError(
            f"Secret key must be {SECRET_KEY_LENGTH} bytes, got {len(secret_key)}"
        )

    keypair = keypair_from_seed(secret_key[:32])
    if keypair.public_key != bytes(secret_key[32:]):
        raise InvalidSecretKeyError("Secret key public half does not match its seed")
    return keypair


def is_valid_address(address: str) -> bool:
    """Check whether a string is a Base58-encoded 32-byte public key."""
    try:
        return len(base58.b58decode(address)) == PUBLIC_KEY_LENGTH
    except ValueError:
        return False
