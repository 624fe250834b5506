"""BIP-39 mnemonic generation, validation and seed derivation.

The bit layout follows BIP-39 exactly: entropy bits, then the high
``ENT / 32`` bits of SHA-256(entropy) as checksum, read as 11-bit word
indices. Hashing and PBKDF2 come from :mod:`hashlib`; the English
wordlist comes from the ``mnemonic`` package.
"""

import hashlib
import secrets
import unicodedata
from collections.abc import Callable
from functools import lru_cache

from mnemonic import Mnemonic

from speedwallet.exceptions import (
    ChecksumMismatchError,
    EntropySourceError,
    InvalidStrengthError,
    InvalidWordCountError,
    UnknownWordError,
)

# Entropy source: takes a byte count, returns that many random bytes
EntropySource = Callable[[int], bytes]

VALID_STRENGTHS = (128, 160, 192, 224, 256)
VALID_WORD_COUNTS = (12, 15, 18, 21, 24)

SEED_ITERATIONS = 2048
SEED_LENGTH = 64

_BITS_PER_WORD = 11
_WORD_MASK = (1 << _BITS_PER_WORD) - 1


@lru_cache(maxsize=1)
def get_wordlist() -> tuple[str, ...]:
    """Return the 2048-word BIP-39 English wordlist."""
    words = tuple(Mnemonic("english").wordlist)
    if len(words) != 2048:
        raise RuntimeError(f"BIP-39 wordlist has {len(words)} words, expected 2048")
    return words


@lru_cache(maxsize=1)
def _word_index() -> dict[str, int]:
    return {word: i for i, word in enumerate(get_wordlist())}


def _checksum_bits(entropy: bytes) -> int:
    """Return the high ``len(entropy) * 8 / 32`` bits of SHA-256(entropy)."""
    checksum_length = len(entropy) * 8 // 32
    digest = hashlib.sha256(entropy).digest()
    return digest[0] >> (8 - checksum_length)


def normalize_mnemonic(phrase: str) -> str:
    """Normalize user input: NFKD, lowercase, single spaces between words."""
    return " ".join(unicodedata.normalize("NFKD", phrase).lower().split())


def entropy_to_mnemonic(entropy: bytes) -> str:
    """Encode raw entropy as a mnemonic phrase.

    Args:
        entropy: 16, 20, 24, 28 or 32 bytes.

    Returns:
        Space-separated mnemonic phrase.

    Raises:
        InvalidStrengthError: If the entropy length is not supported.
    """
    strength = len(entropy) * 8
    if strength not in VALID_STRENGTHS:
        raise InvalidStrengthError(strength)

    checksum_length = strength // 32
    bits = (int.from_bytes(entropy, "big") << checksum_length) | _checksum_bits(entropy)
    word_count = (strength + checksum_length) // _BITS_PER_WORD

    wordlist = get_wordlist()
    words = [
        wordlist[(bits >> (_BITS_PER_WORD * i)) & _WORD_MASK]
        for i in reversed(range(word_count))
    ]
    return " ".join(words)


def generate_mnemonic(
    strength_bits: int = 128,
    entropy_source: EntropySource = secrets.token_bytes,
) -> str:
    """Generate a new mnemonic phrase.

    Args:
        strength_bits: Entropy size, one of 128, 160, 192, 224, 256.
        entropy_source: Callable returning cryptographically secure bytes.

    Returns:
        Space-separated mnemonic phrase (12 to 24 words).

    Raises:
        InvalidStrengthError: If strength_bits is not supported.
        EntropySourceError: If the entropy source misbehaves.
    """
    if strength_bits not in VALID_STRENGTHS:
        raise InvalidStrengthError(strength_bits)

    byte_count = strength_bits // 8
    entropy = entropy_source(byte_count)
    if not isinstance(entropy, (bytes, bytearray)) or len(entropy) != byte_count:
        raise EntropySourceError(
            f"Entropy source returned unusable output for {byte_count} bytes"
        )

    return entropy_to_mnemonic(bytes(entropy))


def _split_checked(phrase: str) -> tuple[int, int]:
    """Pack a phrase's word indices into one integer.

    Returns the packed bits and their total length.
    """
    words = normalize_mnemonic(phrase).split()
    if len(words) not in VALID_WORD_COUNTS:
        raise InvalidWordCountError(len(words))

    index = _word_index()
    bits = 0
    for position, word in enumerate(words):
        word_value = index.get(word)
        if word_value is None:
            raise UnknownWordError(word, position)
        bits = (bits << _BITS_PER_WORD) | word_value

    return bits, len(words) * _BITS_PER_WORD


def mnemonic_to_entropy(phrase: str) -> bytes:
    """Decode a mnemonic back to its entropy, verifying the checksum.

    Raises:
        InvalidWordCountError: If the word count is not supported.
        UnknownWordError: If a word is not in the wordlist.
        ChecksumMismatchError: If the checksum does not match.
    """
    bits, total_length = _split_checked(phrase)
    checksum_length = total_length // 33
    entropy_length = total_length - checksum_length

    checksum = bits & ((1 << checksum_length) - 1)
    entropy = (bits >> checksum_length).to_bytes(entropy_length // 8, "big")

    if not secrets.compare_digest(
        checksum.to_bytes(1, "big"), _checksum_bits(entropy).to_bytes(1, "big")
    ):
        raise ChecksumMismatchError()
    return entropy


def check_mnemonic(phrase: str) -> str:
    """Strictly validate a phrase and return its normalized form.

    Raises:
        InvalidMnemonicError: One of its subclasses describing the failure.
    """
    mnemonic_to_entropy(phrase)
    return normalize_mnemonic(phrase)


def validate_mnemonic(phrase: str) -> bool:
    """Check whether a phrase is a valid BIP-39 mnemonic.

    A wrong word count or checksum yields False. A word outside the
    wordlist raises UnknownWordError so callers can point at it.
    """
    try:
        mnemonic_to_entropy(phrase)
    except (InvalidWordCountError, ChecksumMismatchError):
        return False
    return True


def mnemonic_to_seed(phrase: str, passphrase: str = "") -> bytes:
    """Derive the 64-byte BIP-39 seed.

    PBKDF2-HMAC-SHA512 over the NFKD phrase, salted with
    ``"mnemonic" + NFKD(passphrase)``, 2048 rounds.
    """
    password = unicodedata.normalize("NFKD", phrase).encode("utf-8")
    salt = ("mnemonic" + unicodedata.normalize("NFKD", passphrase)).encode("utf-8")
    return hashlib.pbkdf2_hmac("sha512", password, salt, SEED_ITERATIONS, SEED_LENGTH)
