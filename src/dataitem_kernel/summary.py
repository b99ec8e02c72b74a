"""
Bundle summary utilities for human-readable inspection.

Reads the header and the two leading bytes of each item (its signature
type) without decoding payloads or verifying anything.
"""

import struct
from typing import Any

from .bundle import parse_bundle_header
from .config import SIGNATURE_TYPE_LENGTH
from .schemes import DEFAULT_REGISTRY, SchemeRegistry


def bundle_summary(raw: bytes, registry: SchemeRegistry | None = None) -> dict[str, Any]:
    """
    Extract a human-readable summary from a serialized bundle.

    Args:
        raw: A serialized bundle
        registry: Scheme registry used to name signature types

    Returns:
        Dict with item_count, total_bytes, payload_bytes, ids and a
        count of items per signature scheme name
    """
    registry = registry or DEFAULT_REGISTRY
    bundle_index = parse_bundle_header(raw, strict=False)

    schemes: dict[str, int] = {}
    for entry in bundle_index.entries:
        name = "truncated"
        if entry.size >= SIGNATURE_TYPE_LENGTH and bundle_index.fits(entry):
            (signature_type,) = struct.unpack_from("<H", raw, entry.offset)
            name = registry.by_type(signature_type).name if signature_type in registry else f"unknown:{signature_type}"
        schemes[name] = schemes.get(name, 0) + 1

    return {
        "item_count": len(bundle_index),
        "total_bytes": bundle_index.buffer_length,
        "payload_bytes": bundle_index.buffer_length - bundle_index.header_length,
        "ids": [entry.encoded_id for entry in bundle_index.entries],
        "schemes": dict(sorted(schemes.items())),
    }


def format_bundle_summary(raw: bytes, registry: SchemeRegistry | None = None) -> str:
    """
    Format a bundle as a single-line human-readable string.

    Args:
        raw: A serialized bundle

    Returns:
        String like "3 items [arweave: 1, ethereum: 2] | 4211 bytes | first id abc123..."
    """
    s = bundle_summary(raw, registry)
    schemes = ", ".join(f"{name}: {count}" for name, count in s["schemes"].items()) or "none"
    first = s["ids"][0] if s["ids"] else ""
    first_short = first[:12] + "..." if len(first) > 12 else first
    return f"{s['item_count']} items [{schemes}] | {s['total_bytes']} bytes | first id {first_short or '-'}"
