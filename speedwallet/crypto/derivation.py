"""SLIP-0010 hardened Ed25519 key derivation along Solana BIP-44 paths.

Ed25519 defines no public-only child derivation, so every level is
hardened. The account path is ``m/44'/501'/0'/{account_index}'``; for
account 0 it is the path Phantom and Solflare use for their first account.

Wiping is best-effort. Intermediate keys and chain codes are held in
``bytearray``s and zeroed, but the ``bytes`` produced by HMAC, stored in
``ExtendedKey`` and returned by ``derive_path`` are immutable and stay in
memory until garbage collected.
"""

import hashlib
import hmac
import re
import struct
from collections.abc import Sequence
from dataclasses import dataclass

from speedwallet.exceptions import IndexOutOfRangeError

HARDENED_OFFSET = 0x80000000
MAX_INDEX = 0xFFFFFFFF

PURPOSE = 44
SOLANA_COIN_TYPE = 501
SOLANA_ACCOUNT = 0

ED25519_CURVE_KEY = b"ed25519 seed"

_SEGMENT_RE = re.compile(r"^(\d+)(['hH]?)$")


@dataclass(frozen=True, repr=False)
class ExtendedKey:
    """A private key with its chain code."""

    key: bytes
    chain_code: bytes

    def __repr__(self) -> str:
        # Never render key material
        return "ExtendedKey(<redacted>)"


def wipe(buffer: bytearray) -> None:
    """Overwrite a mutable buffer with zeros."""
    for i in range(len(buffer)):
        buffer[i] = 0


def hardened(index: int) -> int:
    """Return the hardened form of a path index."""
    if not 0 <= index < HARDENED_OFFSET:
        raise IndexOutOfRangeError(index)
    return index + HARDENED_OFFSET


def _split(digest: bytes) -> ExtendedKey:
    return ExtendedKey(key=digest[:32], chain_code=digest[32:])


def derive_master_key(seed: bytes) -> ExtendedKey:
    """Derive the master key and chain code from a BIP-39 seed."""
    return _split(hmac.new(ED25519_CURVE_KEY, bytes(seed), hashlib.sha512).digest())


def derive_child_key(parent_key: bytes, parent_chain_code: bytes, index: int) -> ExtendedKey:
    """Derive one hardened child.

    Args:
        parent_key: 32-byte parent private key.
        parent_chain_code: 32-byte parent chain code.
        index: Child index including the hardened offset.

    Raises:
        IndexOutOfRangeError: If index is not a 32-bit hardened index.
    """
    if not HARDENED_OFFSET <= index <= MAX_INDEX:
        raise IndexOutOfRangeError(
            index, f"Ed25519 supports hardened indices only, got {index:#x}"
        )

    data = bytearray(b"\x00")
    data += parent_key
    data += struct.pack(">L", index)
    try:
        digest = hmac.new(bytes(parent_chain_code), bytes(data), hashlib.sha512).digest()
    finally:
        wipe(data)
    return _split(digest)


def parse_derivation_path(path: str) -> list[int]:
    """Parse a path such as ``m/44'/501'/0'/0'`` into hardened indices.

    Raises:
        ValueError: If the path is malformed.
        IndexOutOfRangeError: If a segment is not hardened or too large.
    """
    segments = path.strip().split("/")
    if segments[0] != "m":
        raise ValueError(f"Derivation path must start with 'm': {path!r}")

    indices = []
    for segment in segments[1:]:
        match = _SEGMENT_RE.match(segment)
        if match is None:
            raise ValueError(f"Invalid derivation path segment {segment!r} in {path!r}")
        number, marker = int(match.group(1)), match.group(2)
        if not marker:
            raise IndexOutOfRangeError(
                number, f"Ed25519 supports hardened segments only, got {segment!r}"
            )
        indices.append(hardened(number))
    return indices


def derive_key_at_path(seed: bytes, path: str | Sequence[int]) -> ExtendedKey:
    """Derive the extended key at an arbitrary hardened path.

    Args:
        seed: BIP-39 seed.
        path: Path string or a sequence of already-hardened indices.
    """
    indices = parse_derivation_path(path) if isinstance(path, str) else list(path)

    master = derive_master_key(seed)
    key = bytearray(master.key)
    chain_code = bytearray(master.chain_code)
    try:
        for index in indices:
            child = derive_child_key(key, chain_code, index)
            key[:] = child.key
            chain_code[:] = child.chain_code
        return ExtendedKey(key=bytes(key), chain_code=bytes(chain_code))
    finally:
        wipe(key)
        wipe(chain_code)


def solana_path_indices(account_index: int) -> list[int]:
    """Return the hardened indices of ``m/44'/501'/0'/{account_index}'``."""
    if isinstance(account_index, bool) or not isinstance(account_index, int):
        raise TypeError(f"account_index must be an int, got {type(account_index).__name__}")
    if not 0 <= account_index < HARDENED_OFFSET:
        raise IndexOutOfRangeError(
            account_index, f"Account index must be in [0, 2^31), got {account_index}"
        )
    return [
        hardened(PURPOSE),
        hardened(SOLANA_COIN_TYPE),
        hardened(SOLANA_ACCOUNT),
        hardened(account_index),
    ]


def solana_derivation_path(account_index: int) -> str:
    """Return the path string for an account index."""
    solana_path_indices(account_index)
    return f"m/{PURPOSE}'/{SOLANA_COIN_TYPE}'/{SOLANA_ACCOUNT}'/{account_index}'"


def derive_path(seed: bytes, account_index: int) -> bytes:
    """Derive the 32-byte Ed25519 private key seed for an account index.

    Raises:
        IndexOutOfRangeError: If account_index is not in [0, 2^31).
    """
    return derive_key_at_path(seed, solana_path_indices(account_index)).key
