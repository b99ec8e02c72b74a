"""
Error codes and types for dataitem-kernel.

Three failure classes are kept apart:

- Structural: malformed or truncated bytes, inconsistent lengths,
  unknown signature types. Raised as StructuralError subclasses.
- Cryptographic: a well-formed signature that does not verify. Reported
  as a False result or a SIGNATURE_INVALID VerificationError, never raised.
- Policy: requests the codec refuses before producing any bytes, such as
  bundling an unsigned item. Raised as PolicyError subclasses.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """
    Verification error codes.
    Values are stable strings suitable for audit trails and JSON reports.
    """
    TRUNCATED_ITEM = "TRUNCATED_ITEM"
    MALFORMED_ITEM = "MALFORMED_ITEM"
    MALFORMED_TAG_BLOCK = "MALFORMED_TAG_BLOCK"
    UNSUPPORTED_SIGNATURE_SCHEME = "UNSUPPORTED_SIGNATURE_SCHEME"
    TRUNCATED_BUNDLE_HEADER = "TRUNCATED_BUNDLE_HEADER"
    DECLARED_SIZE_EXCEEDS_BUFFER = "DECLARED_SIZE_EXCEEDS_BUFFER"
    LENGTH_MISMATCH = "LENGTH_MISMATCH"
    ID_MISMATCH = "ID_MISMATCH"
    SIGNATURE_INVALID = "SIGNATURE_INVALID"
    UNSIGNED_ITEM = "UNSIGNED_ITEM"
    UNSIGNED_ITEM_IN_BUNDLE = "UNSIGNED_ITEM_IN_BUNDLE"
    INVALID_FIELD = "INVALID_FIELD"
    SIGNING_FAILED = "SIGNING_FAILED"


class DataItemError(Exception):
    """Base class for every error raised by dataitem-kernel."""
    code: ErrorCode = ErrorCode.MALFORMED_ITEM

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_verification_error(self) -> "VerificationError":
        return VerificationError(code=self.code, message=self.message, details=dict(self.details))


class StructuralError(DataItemError):
    """Bytes that cannot be decoded into a well-formed item or bundle."""


class TruncatedItem(StructuralError):
    code = ErrorCode.TRUNCATED_ITEM


class MalformedItem(StructuralError):
    code = ErrorCode.MALFORMED_ITEM


class MalformedTagBlock(StructuralError):
    code = ErrorCode.MALFORMED_TAG_BLOCK


class UnsupportedSignatureScheme(StructuralError):
    code = ErrorCode.UNSUPPORTED_SIGNATURE_SCHEME


class TruncatedBundleHeader(StructuralError):
    code = ErrorCode.TRUNCATED_BUNDLE_HEADER


class DeclaredSizeExceedsBuffer(StructuralError):
    code = ErrorCode.DECLARED_SIZE_EXCEEDS_BUFFER


class PolicyError(DataItemError):
    """A request refused before any bytes are produced."""


class InvalidFieldError(PolicyError):
    code = ErrorCode.INVALID_FIELD


class UnsignedItemError(PolicyError):
    code = ErrorCode.UNSIGNED_ITEM


class UnsignedItemInBundle(PolicyError):
    code = ErrorCode.UNSIGNED_ITEM_IN_BUNDLE


class SigningError(DataItemError):
    """Private key material that cannot produce a signature for the scheme."""
    code = ErrorCode.SIGNING_FAILED


@dataclass
class VerificationError:
    """
    A single verification error with typed code and audit details.
    """
    code: ErrorCode
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


@dataclass
class VerificationResult:
    """
    Result of a verification operation.
    """
    valid: bool
    errors: list[VerificationError] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
        }
