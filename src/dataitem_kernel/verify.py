"""
Offline verification of data items and bundles.

Verification needs no private keys. Every check is reported rather than
raised, so callers can branch on the result and quarantine individual
bad items while keeping the rest of a bundle.

Per item:
- structure: the bytes parse under the registry (lengths, tags, presence)
- identity: the declared id equals SHA-256 of the signature
- signature: the scheme verifies the signature over the deep hash
- size: the item occupies exactly its declared byte range
"""

import hmac
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from .bundle import BundleEntry, BundleIndex, parse_bundle_header
from .config import DEFAULT_LIMITS, Limits
from .errors import (
    DataItemError,
    DeclaredSizeExceedsBuffer,
    ErrorCode,
    InvalidFieldError,
    StructuralError,
    VerificationError,
    VerificationResult,
)
from .item import DataItem, b64url_encode, item_id, parse_item, verify_data_item
from .schemes import DEFAULT_REGISTRY, SchemeRegistry
from .tags import encode_tags

logger = logging.getLogger(__name__)


def _safe_equal(left: bytes, right: bytes) -> bool:
    """Constant-time byte comparison."""
    return hmac.compare_digest(bytes(left), bytes(right))


@dataclass
class ItemReport:
    """Verification outcome for one bundle entry."""
    index: int
    id: bytes
    valid: bool
    errors: list[VerificationError] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "id": b64url_encode(self.id),
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
        }


@dataclass
class BundleVerificationReport:
    """
    Outcome of verifying a whole bundle.

    header_errors holds failures that concern the bundle as a whole; when
    the header cannot be read at all, items is empty.
    """
    items: list[ItemReport] = field(default_factory=list)
    header_errors: list[VerificationError] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.header_errors and all(report.valid for report in self.items)

    @property
    def valid_indices(self) -> list[int]:
        return [report.index for report in self.items if report.valid]

    @property
    def invalid_indices(self) -> list[int]:
        return [report.index for report in self.items if not report.valid]

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "header_errors": [e.to_dict() for e in self.header_errors],
            "items": [report.to_dict() for report in self.items],
        }


def _check_item(
    item: DataItem,
    registry: SchemeRegistry,
    limits: Limits,
    expected_id: bytes | None = None,
) -> list[VerificationError]:
    errors: list[VerificationError] = []

    if not item.is_signed:
        errors.append(VerificationError(
            code=ErrorCode.UNSIGNED_ITEM,
            message="Item has no signature",
            details={},
        ))
        return errors

    # In-memory items have not been through the tag decoder
    try:
        encode_tags(item.tags, limits)
    except InvalidFieldError as exc:
        errors.append(VerificationError(
            code=ErrorCode.MALFORMED_TAG_BLOCK,
            message=exc.message,
            details=dict(exc.details),
        ))

    computed = item_id(item.signature)
    if expected_id is not None and not _safe_equal(expected_id, computed):
        errors.append(VerificationError(
            code=ErrorCode.ID_MISMATCH,
            message="Declared id does not match the item signature",
            details={"declared": b64url_encode(expected_id), "computed": b64url_encode(computed)},
        ))

    try:
        signature_ok = verify_data_item(item, registry)
    except DataItemError as exc:
        errors.append(exc.to_verification_error())
        return errors

    if not signature_ok:
        errors.append(VerificationError(
            code=ErrorCode.SIGNATURE_INVALID,
            message=f"Signature does not verify for item {item.encoded_id}",
            details={"id": item.encoded_id, "signature_type": item.signature_type},
        ))
    return errors


def verify_item(
    item: DataItem | bytes,
    registry: SchemeRegistry | None = None,
    limits: Limits | None = None,
) -> VerificationResult:
    """
    Verify one item: structure, identity and signature.

    Args:
        item: A DataItem, or serialized item bytes
        registry: Scheme registry (default: DEFAULT_REGISTRY)
        limits: Decoding limits (default: DEFAULT_LIMITS)

    Returns:
        VerificationResult with valid flag and list of errors
    """
    registry = registry or DEFAULT_REGISTRY
    limits = limits or DEFAULT_LIMITS
    if not isinstance(item, DataItem):
        try:
            item = parse_item(item, registry, limits)
        except StructuralError as exc:
            return VerificationResult(valid=False, errors=[exc.to_verification_error()])

    errors = _check_item(item, registry, limits)
    return VerificationResult(valid=len(errors) == 0, errors=errors)


def _verify_entry(
    raw: memoryview,
    bundle_index: BundleIndex,
    entry: BundleEntry,
    registry: SchemeRegistry,
    limits: Limits,
) -> ItemReport:
    if not bundle_index.fits(entry):
        exc = DeclaredSizeExceedsBuffer(
            f"Item {entry.index} declares {entry.size} bytes at offset {entry.offset}, "
            f"bundle has {bundle_index.buffer_length}",
            index=entry.index,
            size=entry.size,
            offset=entry.offset,
        )
        return ItemReport(index=entry.index, id=entry.id, valid=False, errors=[exc.to_verification_error()])

    try:
        item = parse_item(raw[entry.offset:entry.end], registry, limits)
    except StructuralError as exc:
        return ItemReport(index=entry.index, id=entry.id, valid=False, errors=[exc.to_verification_error()])

    errors = _check_item(item, registry, limits, expected_id=entry.id)
    return ItemReport(index=entry.index, id=entry.id, valid=len(errors) == 0, errors=errors)


def verify_bundle(
    raw: bytes,
    registry: SchemeRegistry | None = None,
    limits: Limits | None = None,
    max_workers: int | None = None,
) -> BundleVerificationReport:
    """
    Verify every item in a bundle and report per index.

    Items are verified independently, on a thread pool once the bundle
    has at least limits.parallel_threshold items. Report order always
    follows header order.

    Args:
        raw: Serialized bundle
        registry: Scheme registry (default: DEFAULT_REGISTRY)
        limits: Limits (default: DEFAULT_LIMITS)
        max_workers: Thread pool size (default: limits.max_workers)

    Returns:
        BundleVerificationReport
    """
    registry = registry or DEFAULT_REGISTRY
    limits = limits or DEFAULT_LIMITS
    view = memoryview(bytes(raw))

    try:
        bundle_index = parse_bundle_header(view, strict=False)
    except StructuralError as exc:
        logger.warning("bundle header rejected: %s", exc.message)
        return BundleVerificationReport(header_errors=[exc.to_verification_error()])

    header_errors: list[VerificationError] = []
    if bundle_index.declared_length < bundle_index.buffer_length:
        header_errors.append(VerificationError(
            code=ErrorCode.LENGTH_MISMATCH,
            message=(
                f"Bundle has {bundle_index.buffer_length - bundle_index.declared_length} "
                "trailing bytes after the last item"
            ),
            details={
                "declared": bundle_index.declared_length,
                "actual": bundle_index.buffer_length,
            },
        ))

    def check(entry: BundleEntry) -> ItemReport:
        return _verify_entry(view, bundle_index, entry, registry, limits)

    entries = bundle_index.entries
    if len(entries) >= max(limits.parallel_threshold, 2):
        with ThreadPoolExecutor(max_workers=max_workers or limits.max_workers) as pool:
            reports = list(pool.map(check, entries))
    else:
        reports = [check(entry) for entry in entries]

    for report in reports:
        if not report.valid:
            logger.warning(
                "bundle item %d (%s) failed: %s",
                report.index,
                b64url_encode(report.id),
                ", ".join(e.code.value for e in report.errors),
            )

    return BundleVerificationReport(items=reports, header_errors=header_errors)
