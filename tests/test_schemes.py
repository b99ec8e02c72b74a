"""Signature scheme and registry tests."""

from pathlib import Path

import sys

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519, rsa

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from dataitem_kernel import DEFAULT_REGISTRY, MultiAptosKey, SchemeRegistry, SigningError, UnsupportedSignatureScheme
from dataitem_kernel.schemes import (
    ArweaveScheme,
    Ed25519Scheme,
    EthereumScheme,
    InjectedAptosScheme,
    MultiAptosScheme,
    SolanaScheme,
    TypedEthereumScheme,
)
from dataitem_kernel.schemes.ethereum import CURVE_ORDER, personal_message_hash

MESSAGE = b"\x01" * 48


def _seed(n: int) -> bytes:
    return bytes([n]) * 32


class TestRegistry:
    """Tests for scheme lookup."""

    def test_default_table(self):
        """Every registered code has its fixed widths."""
        expected = {
            1: ("arweave", 512, 512),
            2: ("ed25519", 64, 32),
            3: ("ethereum", 65, 65),
            4: ("solana", 64, 32),
            5: ("injectedAptos", 64, 32),
            6: ("multiAptos", 2052, 1025),
            7: ("typedEthereum", 65, 42),
        }
        assert DEFAULT_REGISTRY.types() == sorted(expected)
        for code, (name, sig_len, pub_len) in expected.items():
            scheme = DEFAULT_REGISTRY.by_type(code)
            assert (scheme.name, scheme.signature_length, scheme.public_key_length) == (name, sig_len, pub_len)

    def test_unknown_code(self):
        """Unknown codes raise, with no fallback."""
        with pytest.raises(UnsupportedSignatureScheme):
            DEFAULT_REGISTRY.by_type(99)
        assert 99 not in DEFAULT_REGISTRY

    def test_lookup_by_name(self):
        """Names resolve case-insensitively."""
        assert DEFAULT_REGISTRY.by_name("solana").signature_type == 4
        assert DEFAULT_REGISTRY.by_name("InjectedAptos").signature_type == 5
        with pytest.raises(UnsupportedSignatureScheme):
            DEFAULT_REGISTRY.by_name("cosmos")

    def test_resolve(self):
        """Codes, names and instances all resolve."""
        assert DEFAULT_REGISTRY.resolve(3).name == "ethereum"
        assert DEFAULT_REGISTRY.resolve("typedEthereum").signature_type == 7
        assert DEFAULT_REGISTRY.resolve(Ed25519Scheme()).signature_type == 2
        with pytest.raises(UnsupportedSignatureScheme):
            DEFAULT_REGISTRY.resolve(True)

    def test_custom_registry_excludes_others(self):
        """A registry only knows the schemes it was built with."""
        registry = SchemeRegistry([Ed25519Scheme()])
        assert len(registry) == 1
        with pytest.raises(UnsupportedSignatureScheme):
            registry.by_type(1)

    def test_duplicates_rejected(self):
        """Two schemes cannot share a code."""
        with pytest.raises(ValueError):
            SchemeRegistry([Ed25519Scheme(), Ed25519Scheme()])

    def test_iteration_order(self):
        """Iteration follows type codes."""
        assert [s.signature_type for s in DEFAULT_REGISTRY] == [1, 2, 3, 4, 5, 6, 7]


class TestEd25519Schemes:
    """Tests for ed25519, solana and injectedAptos."""

    def test_sign_and_verify(self, ed25519_seed):
        """A signature verifies under the derived owner."""
        scheme = Ed25519Scheme()
        owner = scheme.public_key(ed25519_seed)
        signature = scheme.sign(ed25519_seed, MESSAGE)
        assert len(owner) == 32 and len(signature) == 64
        assert scheme.verify(owner, MESSAGE, signature)

    def test_deterministic(self, ed25519_seed):
        """Signing twice yields the same bytes."""
        scheme = Ed25519Scheme()
        assert scheme.sign(ed25519_seed, MESSAGE) == scheme.sign(ed25519_seed, MESSAGE)

    def test_wrong_message_fails(self, ed25519_seed):
        """A different message does not verify."""
        scheme = Ed25519Scheme()
        owner = scheme.public_key(ed25519_seed)
        signature = scheme.sign(ed25519_seed, MESSAGE)
        assert not scheme.verify(owner, b"\x02" * 48, signature)

    def test_wrong_owner_fails(self, ed25519_seed):
        """A different key does not verify."""
        scheme = Ed25519Scheme()
        signature = scheme.sign(ed25519_seed, MESSAGE)
        assert not scheme.verify(scheme.public_key(_seed(9)), MESSAGE, signature)

    def test_wrong_lengths_fail(self, ed25519_seed):
        """Short inputs are a False result, not an exception."""
        scheme = Ed25519Scheme()
        owner = scheme.public_key(ed25519_seed)
        signature = scheme.sign(ed25519_seed, MESSAGE)
        assert not scheme.verify(owner[:31], MESSAGE, signature)
        assert not scheme.verify(owner, MESSAGE, signature[:63])

    def test_key_forms(self, ed25519_seed):
        """Key objects, seeds and seed+public keypairs sign identically."""
        scheme = SolanaScheme()
        key = ed25519.Ed25519PrivateKey.from_private_bytes(ed25519_seed)
        keypair = ed25519_seed + scheme.public_key(ed25519_seed)
        expected = scheme.sign(ed25519_seed, MESSAGE)
        assert scheme.sign(key, MESSAGE) == expected
        assert scheme.sign(keypair, MESSAGE) == expected

    def test_bad_keys(self, ed25519_seed):
        """Malformed keys raise SigningError."""
        scheme = Ed25519Scheme()
        with pytest.raises(SigningError):
            scheme.sign(b"short", MESSAGE)
        with pytest.raises(SigningError):
            scheme.sign(ed25519_seed + bytes(32), MESSAGE)
        with pytest.raises(SigningError):
            scheme.sign("not bytes", MESSAGE)

    def test_solana_matches_ed25519(self, ed25519_seed):
        """Solana signs the message exactly as plain Ed25519 does."""
        assert SolanaScheme().sign(ed25519_seed, MESSAGE) == Ed25519Scheme().sign(ed25519_seed, MESSAGE)

    def test_injected_aptos_wraps_message(self, ed25519_seed):
        """injectedAptos signs the prefixed message with the fixed nonce."""
        aptos = InjectedAptosScheme()
        plain = Ed25519Scheme()
        owner = aptos.public_key(ed25519_seed)
        signature = aptos.sign(ed25519_seed, MESSAGE)
        wrapped = b"APTOS\nmessage: " + MESSAGE + b"\nnonce: bundlr"
        assert aptos.verify(owner, MESSAGE, signature)
        assert plain.verify(owner, wrapped, signature)
        assert not plain.verify(owner, MESSAGE, signature)


class TestMultiAptos:
    """Tests for the 32-slot multi-signature scheme."""

    def _key(self, signer_slots, threshold=2):
        seeds = [_seed(n + 1) for n in range(3)]
        participants = tuple(Ed25519Scheme().public_key(seed) for seed in seeds)
        return MultiAptosKey(
            participants=participants,
            threshold=threshold,
            signers={slot: seeds[slot] for slot in signer_slots},
        )

    def test_owner_layout(self):
        """Owner is 32 key slots, zero padded, then the threshold byte."""
        key = self._key([0, 2])
        owner = MultiAptosScheme().public_key(key)
        assert len(owner) == 1025
        assert owner[:32] == key.participants[0]
        assert owner[96:1024] == bytes(928)
        assert owner[-1] == 2

    def test_sign_and_verify(self):
        """Signatures meeting the threshold verify."""
        scheme = MultiAptosScheme()
        key = self._key([0, 2])
        owner = scheme.public_key(key)
        signature = scheme.sign(key, MESSAGE)
        assert len(signature) == 2052
        assert signature[-4:] == b"\xa0\x00\x00\x00"
        assert signature[64:128] == bytes(64)
        assert scheme.verify(owner, MESSAGE, signature)

    def test_below_threshold_fails(self):
        """Clearing a bitmap bit drops the count below the threshold."""
        scheme = MultiAptosScheme()
        key = self._key([0, 2])
        owner = scheme.public_key(key)
        signature = bytearray(scheme.sign(key, MESSAGE))
        signature[-4] = 0x80
        assert not scheme.verify(owner, MESSAGE, bytes(signature))

    def test_bad_included_signature_fails(self):
        """Every signature marked in the bitmap must verify."""
        scheme = MultiAptosScheme()
        key = self._key([0, 1, 2])
        owner = scheme.public_key(key)
        signature = bytearray(scheme.sign(key, MESSAGE))
        signature[70] ^= 0x01
        assert not scheme.verify(owner, MESSAGE, bytes(signature))

    def test_too_few_signers(self):
        """Signing below the threshold is refused."""
        with pytest.raises(SigningError):
            MultiAptosScheme().sign(self._key([1]), MESSAGE)

    def test_signer_must_match_participant(self):
        """A signer key must belong to its slot."""
        key = self._key([0, 2])
        wrong = MultiAptosKey(
            participants=key.participants,
            threshold=2,
            signers={0: key.signers[0], 1: key.signers[2]},
        )
        with pytest.raises(SigningError):
            MultiAptosScheme().sign(wrong, MESSAGE)

    def test_requires_multi_key(self, ed25519_seed):
        """Plain seeds are not multi-signature keys."""
        with pytest.raises(SigningError):
            MultiAptosScheme().public_key(ed25519_seed)


class TestArweave:
    """Tests for RSA-4096 PSS."""

    def test_owner_is_modulus(self, arweave_key):
        """Owner is the big-endian modulus."""
        owner = ArweaveScheme().public_key(arweave_key)
        assert owner == arweave_key.public_key().public_numbers().n.to_bytes(512, "big")

    def test_randomized_signatures_verify(self, arweave_key):
        """Two signatures differ but both verify."""
        scheme = ArweaveScheme()
        owner = scheme.public_key(arweave_key)
        first = scheme.sign(arweave_key, MESSAGE)
        second = scheme.sign(arweave_key, MESSAGE)
        assert first != second
        assert scheme.verify(owner, MESSAGE, first)
        assert scheme.verify(owner, MESSAGE, second)

    def test_tampered_signature_fails(self, arweave_key):
        """A flipped bit does not verify."""
        scheme = ArweaveScheme()
        owner = scheme.public_key(arweave_key)
        signature = bytearray(scheme.sign(arweave_key, MESSAGE))
        signature[100] ^= 0x01
        assert not scheme.verify(owner, MESSAGE, bytes(signature))

    def test_pem_key(self, arweave_key):
        """PEM encoded keys are accepted."""
        pem = arweave_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        scheme = ArweaveScheme()
        assert scheme.public_key(pem) == scheme.public_key(arweave_key)

    def test_small_key_rejected(self):
        """Only 4096-bit keys are Arweave keys."""
        small = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        with pytest.raises(SigningError):
            ArweaveScheme().public_key(small)

    def test_garbage_key_rejected(self):
        """Undecodable key bytes raise SigningError."""
        with pytest.raises(SigningError):
            ArweaveScheme().sign(b"not a key", MESSAGE)


class TestEthereum:
    """Tests for secp256k1 schemes."""

    def test_personal_message_hash_known_value(self):
        """EIP-191 hash of a reference message."""
        expected = bytes([
            115, 94, 155, 26, 251, 67, 239, 226, 251, 85, 181, 193, 50, 136, 70, 88,
            238, 217, 84, 244, 92, 5, 82, 24, 227, 189, 141, 69, 122, 231, 149, 229,
        ])
        assert personal_message_hash(b"Hello, Bundlr!") == expected

    def test_sign_and_verify(self, ethereum_key):
        """A recoverable signature verifies against the uncompressed owner."""
        scheme = EthereumScheme()
        owner = scheme.public_key(ethereum_key)
        signature = scheme.sign(ethereum_key, MESSAGE)
        assert len(owner) == 65 and owner[0] == 0x04
        assert len(signature) == 65 and signature[64] in (27, 28)
        assert scheme.verify(owner, MESSAGE, signature)

    def test_deterministic_low_s(self, ethereum_key):
        """Signing is deterministic and s is in the lower half of the order."""
        scheme = EthereumScheme()
        signature = scheme.sign(ethereum_key, MESSAGE)
        assert scheme.sign(ethereum_key, MESSAGE) == signature
        assert int.from_bytes(signature[32:64], "big") <= CURVE_ORDER // 2

    def test_raw_recovery_id_accepted(self, ethereum_key):
        """v may also be given as 0 or 1."""
        scheme = EthereumScheme()
        owner = scheme.public_key(ethereum_key)
        signature = bytearray(scheme.sign(ethereum_key, MESSAGE))
        signature[64] -= 27
        assert scheme.verify(owner, MESSAGE, bytes(signature))

    def test_wrong_message_fails(self, ethereum_key):
        """A different message recovers a different address."""
        scheme = EthereumScheme()
        owner = scheme.public_key(ethereum_key)
        signature = scheme.sign(ethereum_key, MESSAGE)
        assert not scheme.verify(owner, b"\x02" * 48, signature)

    def test_bad_v_fails(self, ethereum_key):
        """Recovery ids outside 0/1 are rejected."""
        scheme = EthereumScheme()
        owner = scheme.public_key(ethereum_key)
        signature = bytearray(scheme.sign(ethereum_key, MESSAGE))
        signature[64] = 35
        assert not scheme.verify(owner, MESSAGE, bytes(signature))

    def test_zero_signature_fails(self, ethereum_key):
        """An all-zero signature is a False result."""
        scheme = EthereumScheme()
        owner = scheme.public_key(ethereum_key)
        assert not scheme.verify(owner, MESSAGE, bytes(64) + b"\x1b")

    def test_invalid_owner_fails(self, ethereum_key):
        """An owner that is not a curve point is a False result."""
        scheme = EthereumScheme()
        signature = scheme.sign(ethereum_key, MESSAGE)
        assert not scheme.verify(b"\x04" + bytes(64), MESSAGE, signature)

    def test_bad_keys(self):
        """Keys must be 32 bytes inside the curve order."""
        scheme = EthereumScheme()
        with pytest.raises(SigningError):
            scheme.public_key(b"short")
        with pytest.raises(SigningError):
            scheme.public_key(bytes(32))
        with pytest.raises(SigningError):
            scheme.public_key(b"\xff" * 32)

    def test_typed_owner_is_address_text(self, ethereum_key):
        """typedEthereum owners are the 0x-prefixed lowercase hex address."""
        owner = TypedEthereumScheme().public_key(ethereum_key)
        assert len(owner) == 42
        assert owner.startswith(b"0x")
        assert owner.decode("ascii") == owner.decode("ascii").lower()

    def test_typed_sign_and_verify(self, ethereum_key):
        """A typed-data signature verifies against its address owner."""
        scheme = TypedEthereumScheme()
        owner = scheme.public_key(ethereum_key)
        signature = scheme.sign(ethereum_key, MESSAGE)
        assert scheme.verify(owner, MESSAGE, signature)
        assert not scheme.verify(owner, b"\x02" * 48, signature)

    def test_typed_other_address_fails(self, ethereum_key):
        """A signature does not verify for someone else's address."""
        scheme = TypedEthereumScheme()
        other = scheme.public_key(b"1" * 32)
        signature = scheme.sign(ethereum_key, MESSAGE)
        assert not scheme.verify(other, MESSAGE, signature)

    def test_typed_and_personal_signatures_differ(self, ethereum_key):
        """The two schemes sign different digests."""
        assert TypedEthereumScheme().sign(ethereum_key, MESSAGE) != EthereumScheme().sign(ethereum_key, MESSAGE)
