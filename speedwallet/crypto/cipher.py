"""PIN-based authenticated encryption of wallet secrets.

Argon2id stretches the PIN into a 256-bit key with a random per-record
salt; AES-256-GCM encrypts the secret with a random 96-bit nonce and binds
the wallet id as associated data, so an envelope only opens for the record
it was written for. A wrong PIN fails the GCM tag check.
"""

import secrets

from argon2.low_level import Type, hash_secret_raw
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from speedwallet.config import KdfConfig
from speedwallet.exceptions import InvalidPinError
from speedwallet.models import EncryptedSecret

KEY_LENGTH = 32
SALT_LENGTH = 16
NONCE_LENGTH = 12


class SecretCipher:
    """Encrypts and decrypts secrets under a PIN.

    The KDF parameters used are stored in each envelope, so records written
    under older settings stay readable.

    Example:
        cipher = SecretCipher(KdfConfig())
        envelope = cipher.encrypt("abandon ...", "123456", b"wallet_1")
        phrase = cipher.decrypt(envelope, "123456", b"wallet_1")
    """

    def __init__(self, kdf: KdfConfig | None = None) -> None:
        self._kdf = kdf or KdfConfig()

    @staticmethod
    def derive_key(
        pin: str,
        salt: bytes,
        time_cost: int,
        memory_cost: int,
        parallelism: int,
    ) -> bytes:
        """Stretch a PIN into an AES-256 key with Argon2id."""
        return hash_secret_raw(
            secret=pin.encode("utf-8"),
            salt=salt,
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            hash_len=KEY_LENGTH,
            type=Type.ID,
        )

    def encrypt(self, secret: str, pin: str, associated_data: bytes) -> EncryptedSecret:
        """Encrypt a secret string under a PIN."""
        salt = secrets.token_bytes(SALT_LENGTH)
        nonce = secrets.token_bytes(NONCE_LENGTH)
        key = self.derive_key(
            pin,
            salt,
            self._kdf.time_cost,
            self._kdf.memory_cost,
            self._kdf.parallelism,
        )
        ciphertext = AESGCM(key).encrypt(nonce, secret.encode("utf-8"), associated_data)
        return EncryptedSecret(
            salt=salt,
            nonce=nonce,
            ciphertext=ciphertext,
            time_cost=self._kdf.time_cost,
            memory_cost=self._kdf.memory_cost,
            parallelism=self._kdf.parallelism,
        )

    def decrypt(self, envelope: EncryptedSecret, pin: str, associated_data: bytes) -> str:
        """Decrypt an envelope.

        Raises:
            InvalidPinError: If the PIN is wrong or the envelope was tampered
                with. The two cases are indistinguishable.
        """
        key = self.derive_key(
            pin,
            envelope.salt,
            envelope.time_cost,
            envelope.memory_cost,
            envelope.parallelism,
        )
        try:
            plaintext = AESGCM(key).decrypt(envelope.nonce, envelope.ciphertext, associated_data)
        except InvalidTag as e:
            raise InvalidPinError() from e
        return plaintext.decode("utf-8")
