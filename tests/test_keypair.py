"""Tests for Ed25519 keypairs."""

import base58
import pytest

from speedwallet.crypto.keypair import (
    is_valid_address,
    keypair_from_mnemonic,
    keypair_from_secret_key,
    keypair_from_seed,
    short_address,
    verify_signature,
)
from speedwallet.exceptions import IndexOutOfRangeError, InvalidSecretKeyError
from vectors import ABANDON_ADDRESS, ABANDON_MNEMONIC, LEGAL_MNEMONIC

# RFC 8032 section 7.1, test 1
RFC8032_SECRET = bytes.fromhex(
    "9d61b19deffd5a60ba844af492ec2cc44449c5697b326919703bac031cae7f60"
)
RFC8032_PUBLIC = bytes.fromhex(
    "d75a980182b10ab7d54bfed3c964073a0ee172f3daa62325af021a68f707511a"
)
RFC8032_SIGNATURE = bytes.fromhex(
    "e5564300c360ac729086e2cc806e828a84877f1eb8e5d974d873e065224901555"
    "fb8821590a33bacc61e39701cf9b46bd25bf5f0595bbe24655141438e7a100b"
)


class TestKeypairFromSeed:
    """Tests against RFC 8032."""

    def test_public_key(self) -> None:
        """Seed should expand to the reference public key."""
        assert keypair_from_seed(RFC8032_SECRET).public_key == RFC8032_PUBLIC

    def test_signature(self) -> None:
        """Signing the empty message should give the reference signature."""
        keypair = keypair_from_seed(RFC8032_SECRET)
        assert keypair.sign(b"") == RFC8032_SIGNATURE
        assert keypair.verify(b"", RFC8032_SIGNATURE)

    def test_wrong_seed_length(self) -> None:
        """Seeds must be 32 bytes."""
        with pytest.raises(InvalidSecretKeyError):
            keypair_from_seed(bytes(31))


class TestKeypairFromMnemonic:
    """Tests for mnemonic-derived keypairs."""

    def test_known_address(self) -> None:
        """Account 0 should match the address other wallets show."""
        assert keypair_from_mnemonic(ABANDON_MNEMONIC).address == ABANDON_ADDRESS

    def test_deterministic(self) -> None:
        """Same mnemonic and index should always give the same keypair."""
        first = keypair_from_mnemonic(LEGAL_MNEMONIC, 3)
        second = keypair_from_mnemonic(LEGAL_MNEMONIC, 3)
        assert first.secret_key == second.secret_key
        assert first.address == second.address

    def test_distinct_accounts(self) -> None:
        """Accounts 0 through 9 should have distinct addresses."""
        addresses = {keypair_from_mnemonic(ABANDON_MNEMONIC, i).address for i in range(10)}
        assert len(addresses) == 10

    def test_distinct_mnemonics(self) -> None:
        """Different phrases should give different account 0 keys."""
        assert (
            keypair_from_mnemonic(ABANDON_MNEMONIC).address
            != keypair_from_mnemonic(LEGAL_MNEMONIC).address
        )

    def test_passphrase_changes_key(self) -> None:
        """A BIP-39 passphrase should select a different wallet."""
        assert keypair_from_mnemonic(ABANDON_MNEMONIC, 0, "TREZOR").address != ABANDON_ADDRESS

    def test_index_out_of_range(self) -> None:
        """Account index 2^31 should raise."""
        with pytest.raises(IndexOutOfRangeError):
            keypair_from_mnemonic(ABANDON_MNEMONIC, 2**31)


class TestKeyPair:
    """Tests for KeyPair properties."""

    def test_secret_key_layout(self) -> None:
        """Secret key should be seed followed by public key."""
        keypair = keypair_from_mnemonic(ABANDON_MNEMONIC)
        assert len(keypair.secret_key) == 64
        assert keypair.secret_key[32:] == keypair.public_key

    def test_address_is_base58_public_key(self) -> None:
        """Address should decode back to the public key."""
        keypair = keypair_from_mnemonic(ABANDON_MNEMONIC)
        assert base58.b58decode(keypair.address) == keypair.public_key

    def test_short_address(self) -> None:
        """Short address should keep four characters at each end."""
        keypair = keypair_from_mnemonic(ABANDON_MNEMONIC)
        assert keypair.short_address == "HAgk...Kpqk"
        assert short_address(ABANDON_ADDRESS) == "HAgk...Kpqk"

    def test_repr_shows_only_address(self) -> None:
        """repr should never include the secret key."""
        keypair = keypair_from_mnemonic(ABANDON_MNEMONIC)
        assert repr(keypair) == f"KeyPair(address={ABANDON_ADDRESS!r})"
        assert keypair.to_base58_secret() not in repr(keypair)

    def test_sign_and_verify(self) -> None:
        """Signatures should verify against the address."""
        keypair = keypair_from_mnemonic(ABANDON_MNEMONIC, 1)
        signature = keypair.sign(b"hello solana")
        assert len(signature) == 64
        assert verify_signature(keypair.address, b"hello solana", signature)
        assert not verify_signature(keypair.address, b"hello solana!", signature)

    def test_signature_from_other_key_fails(self) -> None:
        """A signature should not verify under another account's key."""
        signature = keypair_from_mnemonic(ABANDON_MNEMONIC, 0).sign(b"msg")
        other = keypair_from_mnemonic(ABANDON_MNEMONIC, 1)
        assert not other.verify(b"msg", signature)


class TestKeypairFromSecretKey:
    """Tests for secret key import."""

    def test_round_trip_base58(self) -> None:
        """Exported secret key should import to the same address."""
        keypair = keypair_from_mnemonic(ABANDON_MNEMONIC, 2)
        imported = keypair_from_secret_key(keypair.to_base58_secret())
        assert imported.address == keypair.address

    def test_raw_bytes(self) -> None:
        """Raw 64-byte secret keys should import too."""
        keypair = keypair_from_seed(RFC8032_SECRET)
        assert keypair_from_secret_key(keypair.secret_key).public_key == RFC8032_PUBLIC

    def test_surrounding_whitespace(self) -> None:
        """Pasted keys with whitespace should import."""
        keypair = keypair_from_mnemonic(ABANDON_MNEMONIC)
        imported = keypair_from_secret_key(f"  {keypair.to_base58_secret()}\n")
        assert imported.address == ABANDON_ADDRESS

    def test_wrong_length(self) -> None:
        """Keys that are not 64 bytes should raise."""
        with pytest.raises(InvalidSecretKeyError):
            keypair_from_secret_key(bytes(32))

    def test_invalid_base58(self) -> None:
        """Characters outside the Base58 alphabet should raise."""
        with pytest.raises(InvalidSecretKeyError):
            keypair_from_secret_key("0OIl" * 20)

    def test_mismatched_public_half(self) -> None:
        """A public half from another key should raise."""
        first = keypair_from_mnemonic(ABANDON_MNEMONIC, 0)
        second = keypair_from_mnemonic(ABANDON_MNEMONIC, 1)
        forged = first.secret_key[:32] + second.public_key
        with pytest.raises(InvalidSecretKeyError):
            keypair_from_secret_key(forged)


class TestIsValidAddress:
    """Tests for address validation."""

    def test_valid(self) -> None:
        """A real address should validate."""
        assert is_valid_address(ABANDON_ADDRESS)

    def test_wrong_length(self) -> None:
        """Base58 strings of the wrong length should not validate."""
        assert not is_valid_address("abc")

    def test_bad_alphabet(self) -> None:
        """Strings with excluded characters should not validate."""
        assert not is_valid_address("0" * 44)


class TestVerifySignature:
    """Tests for verify_signature input handling."""

    def test_malformed_public_key(self) -> None:
        """A key of the wrong length should fail verification."""
        signature = keypair_from_mnemonic(ABANDON_MNEMONIC).sign(b"msg")
        assert not verify_signature(b"\x01" * 5, b"msg", signature)

    def test_malformed_signature(self) -> None:
        """A truncated signature should fail verification."""
        assert not verify_signature(ABANDON_ADDRESS, b"msg", b"\x00" * 10)
