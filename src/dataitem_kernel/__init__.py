"""
dataitem-kernel: Offline signing, bundling and verification of data items.

Implements the binary data item and bundle formats used by Arweave-based
bundling networks. Ids and signatures MUST match other implementations
byte for byte; see config.py for the protocol constants.
"""

import logging

from .bundle import (
    BundleEntry,
    BundleIndex,
    build_bundle,
    bundle_ids,
    item_at,
    item_bytes,
    iter_items,
    parse_bundle_header,
)
from .config import DEFAULT_LIMITS, Limits
from .deep_hash import deep_hash
from .errors import (
    DataItemError,
    DeclaredSizeExceedsBuffer,
    ErrorCode,
    InvalidFieldError,
    MalformedItem,
    MalformedTagBlock,
    PolicyError,
    SigningError,
    StructuralError,
    TruncatedBundleHeader,
    TruncatedItem,
    UnsignedItemError,
    UnsignedItemInBundle,
    UnsupportedSignatureScheme,
    VerificationError,
    VerificationResult,
)
from .item import (
    DataItem,
    create_data_item,
    item_header_length,
    item_id,
    parse_item,
    serialize_item,
    sign_data_item,
    sign_item,
    verify_data_item,
)
from .schemes import DEFAULT_REGISTRY, MultiAptosKey, SchemeRegistry, SignatureScheme
from .summary import bundle_summary, format_bundle_summary
from .tags import Tag, decode_tags, encode_tags
from .verify import (
    BundleVerificationReport,
    ItemReport,
    verify_bundle,
    verify_item,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"
__all__ = [
    # Tags
    "Tag",
    "encode_tags",
    "decode_tags",
    # Deep hash
    "deep_hash",
    # Schemes
    "SignatureScheme",
    "SchemeRegistry",
    "DEFAULT_REGISTRY",
    "MultiAptosKey",
    # Items
    "DataItem",
    "create_data_item",
    "item_id",
    "item_header_length",
    "parse_item",
    "serialize_item",
    "sign_data_item",
    "sign_item",
    "verify_data_item",
    # Bundles
    "BundleEntry",
    "BundleIndex",
    "build_bundle",
    "bundle_ids",
    "item_at",
    "item_bytes",
    "iter_items",
    "parse_bundle_header",
    # Verification
    "verify_item",
    "verify_bundle",
    "ItemReport",
    "BundleVerificationReport",
    # Summary
    "bundle_summary",
    "format_bundle_summary",
    # Config
    "Limits",
    "DEFAULT_LIMITS",
    # Errors
    "ErrorCode",
    "VerificationError",
    "VerificationResult",
    "DataItemError",
    "StructuralError",
    "PolicyError",
    "TruncatedItem",
    "MalformedItem",
    "MalformedTagBlock",
    "UnsupportedSignatureScheme",
    "TruncatedBundleHeader",
    "DeclaredSizeExceedsBuffer",
    "InvalidFieldError",
    "UnsignedItemError",
    "UnsignedItemInBundle",
    "SigningError",
]
