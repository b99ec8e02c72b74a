"""
Arweave scheme: RSA-4096 with PSS padding over SHA-256.

The owner is the raw 512-byte big-endian modulus; the public exponent is
always 65537. Signatures use a random salt, so signing is randomized.
"""

from typing import Any

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from ..errors import SigningError
from .base import SignatureScheme

MODULUS_LENGTH = 512
PUBLIC_EXPONENT = 65537
SALT_LENGTH = 32


def load_private_key(private_key: Any) -> rsa.RSAPrivateKey:
    """Load an RSA private key from a key object, PEM bytes or DER bytes."""
    if isinstance(private_key, rsa.RSAPrivateKey):
        key = private_key
    elif isinstance(private_key, (bytes, bytearray, memoryview, str)):
        raw = private_key.encode("utf-8") if isinstance(private_key, str) else bytes(private_key)
        try:
            if b"BEGIN" in raw:
                key = serialization.load_pem_private_key(raw, password=None)
            else:
                key = serialization.load_der_private_key(raw, password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise SigningError(f"Invalid RSA private key ({exc})") from exc
    else:
        raise SigningError(f"Unsupported RSA key type: {type(private_key).__name__}")

    if not isinstance(key, rsa.RSAPrivateKey):
        raise SigningError("Expected an RSA private key")
    if key.key_size != MODULUS_LENGTH * 8:
        raise SigningError(f"Arweave keys must be {MODULUS_LENGTH * 8}-bit, got {key.key_size}")
    if key.public_key().public_numbers().e != PUBLIC_EXPONENT:
        raise SigningError(f"Arweave keys must use public exponent {PUBLIC_EXPONENT}")
    return key


class ArweaveScheme(SignatureScheme):
    signature_type = 1
    name = "arweave"
    signature_length = MODULUS_LENGTH
    public_key_length = MODULUS_LENGTH
    deterministic = False

    def public_key(self, private_key: Any) -> bytes:
        modulus = load_private_key(private_key).public_key().public_numbers().n
        return modulus.to_bytes(MODULUS_LENGTH, "big")

    def sign(self, private_key: Any, message: bytes) -> bytes:
        key = load_private_key(private_key)
        return key.sign(
            bytes(message),
            padding.PSS(mgf=padding.MGF1(hashes.SHA256()), salt_length=SALT_LENGTH),
            hashes.SHA256(),
        )

    def verify(self, public_key: bytes, message: bytes, signature: bytes) -> bool:
        if not self.check_lengths(public_key, signature):
            return False
        try:
            key = rsa.RSAPublicNumbers(
                PUBLIC_EXPONENT, int.from_bytes(bytes(public_key), "big")
            ).public_key()
            key.verify(
                bytes(signature),
                bytes(message),
                padding.PSS(mgf=padding.MGF1(hashes.SHA256()), salt_length=padding.PSS.AUTO),
                hashes.SHA256(),
            )
        except (InvalidSignature, ValueError, UnsupportedAlgorithm):
            return False
        return True
