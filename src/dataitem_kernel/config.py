"""
Protocol constants and codec limits for dataitem-kernel.

CRITICAL: The protocol constants below are interoperability data. They
MUST match the bundled data item format used by the bundling network,
otherwise ids and signatures will not match other implementations.

Limits are local policy and may be tuned per deployment, either by
passing a Limits instance or through DATAITEM_KERNEL_* environment
variables (see Limits.from_env).
"""

import os
from dataclasses import dataclass


# Deep hash item prefix
DATAITEM_TAG = b"dataitem"
DATAITEM_VERSION = b"1"

# Item layout
SIGNATURE_TYPE_LENGTH = 2
PRESENCE_LENGTH = 1
TARGET_LENGTH = 32
ANCHOR_LENGTH = 32
TAG_COUNT_LENGTH = 8
TAG_BYTES_LENGTH = 8

# Bundle layout
BUNDLE_COUNT_LENGTH = 32
BUNDLE_SIZE_LENGTH = 32
BUNDLE_ID_LENGTH = 32
BUNDLE_ENTRY_LENGTH = BUNDLE_SIZE_LENGTH + BUNDLE_ID_LENGTH

ENV_PREFIX = "DATAITEM_KERNEL_"


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}")
    if value < 0:
        raise ValueError(f"{ENV_PREFIX}{name} must not be negative")
    return value


@dataclass(frozen=True)
class Limits:
    """Bounds applied while encoding and decoding."""
    max_tags: int = 128
    max_tag_name_bytes: int = 1024
    max_tag_value_bytes: int = 3072
    max_bundle_items: int = 1_000_000
    # Bundles smaller than this are verified inline
    parallel_threshold: int = 8
    max_workers: int | None = None

    @classmethod
    def from_env(cls) -> "Limits":
        """Build limits from DATAITEM_KERNEL_* environment variables."""
        base = cls()
        workers = _env_int("MAX_WORKERS", 0)
        return cls(
            max_tags=_env_int("MAX_TAGS", base.max_tags),
            max_tag_name_bytes=_env_int("MAX_TAG_NAME_BYTES", base.max_tag_name_bytes),
            max_tag_value_bytes=_env_int("MAX_TAG_VALUE_BYTES", base.max_tag_value_bytes),
            max_bundle_items=_env_int("MAX_BUNDLE_ITEMS", base.max_bundle_items),
            parallel_threshold=_env_int("PARALLEL_THRESHOLD", base.parallel_threshold),
            max_workers=workers or None,
        )


DEFAULT_LIMITS = Limits.from_env()
