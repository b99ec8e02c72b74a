"""
Signature scheme capability shared by every chain family.

Each concrete scheme declares its numeric signature type, its fixed
signature and public key widths, and implements sign/verify over the
deep-hash message. Schemes are stateless: private keys are passed in for
one call and never stored.
"""

from abc import ABC, abstractmethod
from typing import Any


class SignatureScheme(ABC):
    """
    Capability set for one signature type.

    Subclasses set the class attributes and implement public_key, sign
    and verify. verify MUST return False (not raise) for bytes that are
    not a valid signature by the given key.
    """
    signature_type: int
    name: str
    signature_length: int
    public_key_length: int
    deterministic: bool = True

    @abstractmethod
    def public_key(self, private_key: Any) -> bytes:
        """Derive the owner bytes for a private key."""

    @abstractmethod
    def sign(self, private_key: Any, message: bytes) -> bytes:
        """Sign message, returning exactly signature_length bytes."""

    @abstractmethod
    def verify(self, public_key: bytes, message: bytes, signature: bytes) -> bool:
        """Check signature over message by public_key."""

    def check_lengths(self, public_key: bytes, signature: bytes) -> bool:
        return (
            len(public_key) == self.public_key_length
            and len(signature) == self.signature_length
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} type={self.signature_type} name={self.name!r}>"
