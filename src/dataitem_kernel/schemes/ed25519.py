"""
Ed25519 based schemes: plain Ed25519, Solana and injected Aptos.

All three use 32-byte raw public keys and 64-byte signatures and are
deterministic. They differ only in the bytes that are actually signed.
"""

from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

from ..errors import SigningError
from .base import SignatureScheme

PUBLIC_KEY_LENGTH = 32
SIGNATURE_LENGTH = 64


def load_private_key(private_key: Any) -> ed25519.Ed25519PrivateKey:
    """
    Load an Ed25519 private key.

    Accepts an Ed25519PrivateKey, a 32-byte seed, or a 64-byte
    seed + public key (Solana keypair layout).
    """
    if isinstance(private_key, ed25519.Ed25519PrivateKey):
        return private_key
    if not isinstance(private_key, (bytes, bytearray, memoryview)):
        raise SigningError(f"Unsupported Ed25519 key type: {type(private_key).__name__}")

    raw = bytes(private_key)
    if len(raw) not in (32, 64):
        raise SigningError(f"Ed25519 private key must be 32 or 64 bytes, got {len(raw)}")

    key = ed25519.Ed25519PrivateKey.from_private_bytes(raw[:32])
    if len(raw) == 64 and raw[32:] != raw_public_key(key):
        raise SigningError("Ed25519 keypair public half does not match its seed")
    return key


def raw_public_key(key: ed25519.Ed25519PrivateKey) -> bytes:
    return key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )


def verify_raw(public_key: bytes, message: bytes, signature: bytes) -> bool:
    """Verify an Ed25519 signature, returning False on any failure."""
    if len(public_key) != PUBLIC_KEY_LENGTH or len(signature) != SIGNATURE_LENGTH:
        return False
    try:
        key = ed25519.Ed25519PublicKey.from_public_bytes(bytes(public_key))
        key.verify(bytes(signature), bytes(message))
    except (InvalidSignature, ValueError):
        return False
    return True


class Ed25519Scheme(SignatureScheme):
    signature_type = 2
    name = "ed25519"
    signature_length = SIGNATURE_LENGTH
    public_key_length = PUBLIC_KEY_LENGTH

    def signed_bytes(self, message: bytes) -> bytes:
        return message

    def public_key(self, private_key: Any) -> bytes:
        return raw_public_key(load_private_key(private_key))

    def sign(self, private_key: Any, message: bytes) -> bytes:
        key = load_private_key(private_key)
        return key.sign(self.signed_bytes(message))

    def verify(self, public_key: bytes, message: bytes, signature: bytes) -> bool:
        return verify_raw(public_key, self.signed_bytes(message), signature)


class SolanaScheme(Ed25519Scheme):
    signature_type = 4
    name = "solana"


class InjectedAptosScheme(Ed25519Scheme):
    """Aptos wallets sign a prefixed message with a fixed nonce."""
    signature_type = 5
    name = "injectedAptos"

    PREFIX = b"APTOS\nmessage: "
    SUFFIX = b"\nnonce: bundlr"

    def signed_bytes(self, message: bytes) -> bytes:
        return self.PREFIX + bytes(message) + self.SUFFIX
