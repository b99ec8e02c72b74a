"""
Ethereum schemes on secp256k1.

Both schemes produce 65-byte recoverable signatures r || s || v with
v in {27, 28}, signed deterministically per RFC 6979 with low-s
normalisation. Verification recovers the signer and compares addresses.

- ethereum (type 3): owner is the 65-byte uncompressed public key; the
  signed digest is the EIP-191 personal message hash of the deep hash.
- typedEthereum (type 7): owner is the 42-byte ASCII "0x" address; the
  signed digest is an EIP-712 typed-data hash binding the deep hash and
  the address.
"""

import hashlib
from typing import Any

from Crypto.Hash import keccak
from ecdsa import SECP256k1, BadSignatureError, SigningKey, VerifyingKey
from ecdsa.errors import MalformedPointError
from ecdsa.numbertheory import Error as NumberTheoryError
from ecdsa.util import sigdecode_string, sigencode_string_canonize

from ..errors import SigningError
from .base import SignatureScheme

SIGNATURE_LENGTH = 65
UNCOMPRESSED_KEY_LENGTH = 65
ADDRESS_TEXT_LENGTH = 42
CURVE_ORDER = SECP256k1.order

_RECOVERY_ERRORS = (BadSignatureError, MalformedPointError, NumberTheoryError, ValueError, AssertionError)


def keccak256(data: bytes) -> bytes:
    digest = keccak.new(digest_bits=256)
    digest.update(bytes(data))
    return digest.digest()


def personal_message_hash(message: bytes) -> bytes:
    """EIP-191 hash: keccak256("\\x19Ethereum Signed Message:\\n" + len + message)."""
    message = bytes(message)
    prefix = b"\x19Ethereum Signed Message:\n" + str(len(message)).encode("ascii")
    return keccak256(prefix + message)


def address_from_public_key(public_key: bytes) -> bytes:
    """20-byte address of a 65-byte uncompressed public key."""
    return keccak256(bytes(public_key)[1:])[12:]


def address_text(address: bytes) -> str:
    return "0x" + address.hex()


def load_signing_key(private_key: Any) -> SigningKey:
    if isinstance(private_key, SigningKey):
        return private_key
    if not isinstance(private_key, (bytes, bytearray, memoryview)):
        raise SigningError(f"Unsupported secp256k1 key type: {type(private_key).__name__}")
    raw = bytes(private_key)
    if len(raw) != 32:
        raise SigningError(f"secp256k1 private key must be 32 bytes, got {len(raw)}")
    if not 1 <= int.from_bytes(raw, "big") < CURVE_ORDER:
        raise SigningError("secp256k1 private key is outside the curve order")
    return SigningKey.from_string(raw, curve=SECP256k1)


def uncompressed_public_key(key: SigningKey) -> bytes:
    return key.get_verifying_key().to_string("uncompressed")


def sign_recoverable(key: SigningKey, digest: bytes) -> bytes:
    """Sign a 32-byte digest, returning r || s || v."""
    rs = key.sign_digest_deterministic(
        digest,
        hashfunc=hashlib.sha256,
        sigencode=sigencode_string_canonize,
    )
    expected = uncompressed_public_key(key)
    candidates = VerifyingKey.from_public_key_recovery_with_digest(
        rs, digest, SECP256k1, hashfunc=hashlib.sha256, sigdecode=sigdecode_string,
    )
    for recovery_id, candidate in enumerate(candidates):
        if candidate.to_string("uncompressed") == expected:
            return rs + bytes([27 + recovery_id])
    raise SigningError("Could not determine recovery id for signature")


def recover_address(digest: bytes, signature: bytes) -> bytes | None:
    """Recover the signer address from r || s || v, or None if impossible."""
    if len(signature) != SIGNATURE_LENGTH:
        return None
    v = signature[64]
    recovery_id = v - 27 if v >= 27 else v
    if recovery_id not in (0, 1):
        return None

    r = int.from_bytes(signature[:32], "big")
    s = int.from_bytes(signature[32:64], "big")
    if not (1 <= r < CURVE_ORDER and 1 <= s < CURVE_ORDER):
        return None

    try:
        candidates = VerifyingKey.from_public_key_recovery_with_digest(
            bytes(signature[:64]), digest, SECP256k1,
            hashfunc=hashlib.sha256, sigdecode=sigdecode_string,
        )
    except _RECOVERY_ERRORS:
        return None
    if recovery_id >= len(candidates):
        return None
    return address_from_public_key(candidates[recovery_id].to_string("uncompressed"))


class EthereumScheme(SignatureScheme):
    signature_type = 3
    name = "ethereum"
    signature_length = SIGNATURE_LENGTH
    public_key_length = UNCOMPRESSED_KEY_LENGTH

    def public_key(self, private_key: Any) -> bytes:
        return uncompressed_public_key(load_signing_key(private_key))

    def sign(self, private_key: Any, message: bytes) -> bytes:
        return sign_recoverable(load_signing_key(private_key), personal_message_hash(message))

    def verify(self, public_key: bytes, message: bytes, signature: bytes) -> bool:
        if not self.check_lengths(public_key, signature):
            return False
        try:
            VerifyingKey.from_string(bytes(public_key), curve=SECP256k1)
        except _RECOVERY_ERRORS:
            return False
        recovered = recover_address(personal_message_hash(message), signature)
        return recovered is not None and recovered == address_from_public_key(public_key)


# EIP-712 domain and message type used by the bundling network
_DOMAIN_TYPE_HASH = keccak256(b"EIP712Domain(string name,string version)")
_DOMAIN_SEPARATOR = keccak256(_DOMAIN_TYPE_HASH + keccak256(b"Bundlr") + keccak256(b"1"))
_MESSAGE_TYPE_HASH = keccak256(b"Bundlr(bytes Transaction hash,address address)")


def typed_data_hash(message: bytes, address: bytes) -> bytes:
    """EIP-712 digest binding a deep-hash message to a 20-byte address."""
    struct_hash = keccak256(
        _MESSAGE_TYPE_HASH + keccak256(bytes(message)) + bytes(12) + bytes(address)
    )
    return keccak256(b"\x19\x01" + _DOMAIN_SEPARATOR + struct_hash)


def _parse_address_text(owner: bytes) -> bytes | None:
    try:
        text = bytes(owner).decode("ascii")
    except UnicodeDecodeError:
        return None
    if len(text) != ADDRESS_TEXT_LENGTH or not text.lower().startswith("0x"):
        return None
    try:
        return bytes.fromhex(text[2:])
    except ValueError:
        return None


class TypedEthereumScheme(SignatureScheme):
    signature_type = 7
    name = "typedEthereum"
    signature_length = SIGNATURE_LENGTH
    public_key_length = ADDRESS_TEXT_LENGTH

    def public_key(self, private_key: Any) -> bytes:
        key = load_signing_key(private_key)
        address = address_from_public_key(uncompressed_public_key(key))
        return address_text(address).encode("ascii")

    def sign(self, private_key: Any, message: bytes) -> bytes:
        key = load_signing_key(private_key)
        address = address_from_public_key(uncompressed_public_key(key))
        return sign_recoverable(key, typed_data_hash(message, address))

    def verify(self, public_key: bytes, message: bytes, signature: bytes) -> bool:
        if not self.check_lengths(public_key, signature):
            return False
        address = _parse_address_text(public_key)
        if address is None:
            return False
        recovered = recover_address(typed_data_hash(message, address), signature)
        return recovered is not None and recovered == address
