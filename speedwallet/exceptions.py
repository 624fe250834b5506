"""Custom exceptions for the speedwallet key-management core."""


class WalletError(Exception):
    """Base exception for all wallet core errors.

    Attributes:
        retryable: Whether the caller may retry with corrected input.
    """

    retryable = False


# =============================================================================
# Cryptographic / Derivation Exceptions
# =============================================================================


class CryptoError(WalletError):
    """Base exception for cryptographic and derivation failures.

    These indicate programmer error or corrupted input and are never
    retried automatically.
    """

    retryable = False


class InvalidStrengthError(CryptoError):
    """Raised when mnemonic strength is not a multiple of 32 in [128, 256]."""

    def __init__(self, strength_bits: int) -> None:
        super().__init__(
            f"Strength must be a multiple of 32 between 128 and 256, got {strength_bits}"
        )
        self.strength_bits = strength_bits


class EntropySourceError(CryptoError):
    """Raised when the entropy source returns unusable output."""

    pass


class IndexOutOfRangeError(CryptoError):
    """Raised when a derivation index does not fit the hardened range."""

    def __init__(self, index: int, message: str | None = None) -> None:
        super().__init__(message or f"Derivation index out of range: {index}")
        self.index = index


class InvalidSecretKeyError(CryptoError):
    """Raised when an imported secret key is malformed or inconsistent."""

    pass


class InvalidMnemonicError(CryptoError):
    """Raised when a mnemonic phrase fails validation."""

    pass


class InvalidWordCountError(InvalidMnemonicError):
    """Raised when a phrase does not have 12, 15, 18, 21 or 24 words."""

    def __init__(self, word_count: int) -> None:
        super().__init__(
            f"Recovery phrase must have 12, 15, 18, 21 or 24 words, got {word_count}"
        )
        self.word_count = word_count


class UnknownWordError(InvalidMnemonicError):
    """Raised when a phrase contains a word outside the BIP-39 wordlist.

    Attributes:
        word: The offending word.
        position: Zero-based position of the word in the phrase.
    """

    def __init__(self, word: str, position: int) -> None:
        super().__init__(f"Word {position + 1} is not in the wordlist: {word!r}")
        self.word = word
        self.position = position


class ChecksumMismatchError(InvalidMnemonicError):
    """Raised when the embedded checksum does not match the entropy."""

    def __init__(self) -> None:
        super().__init__("Invalid recovery phrase: checksum mismatch")


# =============================================================================
# Storage / Authentication Exceptions
# =============================================================================


class StorageError(WalletError):
    """Base exception for storage and authentication errors.

    Recoverable by user action, surfaced verbatim to the caller.
    """

    retryable = True


class InvalidPinError(StorageError):
    """Raised when a PIN fails to authenticate the stored secret."""

    def __init__(self) -> None:
        super().__init__("Incorrect PIN")


class InvalidPinFormatError(StorageError):
    """Raised when a PIN does not match the configured format."""

    pass


class WalletNotFoundError(StorageError):
    """Raised when a wallet id is unknown."""

    def __init__(self, wallet_id: str) -> None:
        super().__init__(f"Wallet not found: {wallet_id}")
        self.wallet_id = wallet_id


class DuplicateNameError(StorageError):
    """Raised when a wallet name collides case-insensitively."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Wallet name already exists: {name}")
        self.name = name


class InvalidWalletNameError(StorageError):
    """Raised when a wallet name is too short or blank."""

    pass


class DuplicatePublicKeyError(StorageError):
    """Raised when a wallet with the same address is already stored.

    Attributes:
        public_key: The address that is already stored.
        existing_id: Id of the record holding it, when known.
    """

    def __init__(self, public_key: str, existing_id: str | None = None) -> None:
        super().__init__(f"Wallet already exists: {public_key}")
        self.public_key = public_key
        self.existing_id = existing_id


class WalletLockedError(StorageError):
    """Raised when an operation needs the PIN and the session is locked."""

    def __init__(self) -> None:
        super().__init__("Wallet is locked, PIN required")


class SecretKindError(StorageError):
    """Raised when a wallet holds a different kind of secret than requested."""

    pass


class StoreNotConnectedError(StorageError):
    """Raised when the wallet database is used before connect()."""

    def __init__(self) -> None:
        super().__init__("Wallet database not connected")


# =============================================================================
# Policy Exceptions
# =============================================================================


class PolicyError(WalletError):
    """Base exception for explicit user-facing wallet rules."""

    retryable = False


class CannotDeleteMasterError(PolicyError):
    """Raised when attempting to delete the master wallet."""

    def __init__(self) -> None:
        super().__init__(
            "The main wallet cannot be deleted as it holds the master recovery phrase"
        )


class MasterAlreadyExistsError(PolicyError):
    """Raised when creating a master wallet while one already exists."""

    def __init__(self) -> None:
        super().__init__("A master wallet already exists on this device")
