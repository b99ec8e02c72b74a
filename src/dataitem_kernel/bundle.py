"""
Bundle codec: pack signed items into one buffer and index them again.

Layout (integers are 32-byte little endian):

    item_count
    item_count x (size, id)      header table, 64 bytes per entry
    item bytes, concatenated     in header order

Indexing reads the header only. Item bodies are parsed on demand, so a
large bundle can be listed without decoding any payload.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Iterator

from .config import (
    BUNDLE_COUNT_LENGTH,
    BUNDLE_ENTRY_LENGTH,
    BUNDLE_ID_LENGTH,
    BUNDLE_SIZE_LENGTH,
    DEFAULT_LIMITS,
    Limits,
)
from .errors import (
    DeclaredSizeExceedsBuffer,
    InvalidFieldError,
    TruncatedBundleHeader,
    UnsignedItemInBundle,
)
from .item import DataItem, b64url_encode, parse_item, serialize_item
from .schemes import DEFAULT_REGISTRY, SchemeRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BundleEntry:
    """One row of the bundle header table."""
    index: int
    id: bytes
    size: int
    offset: int

    @property
    def end(self) -> int:
        return self.offset + self.size

    @property
    def encoded_id(self) -> str:
        return b64url_encode(self.id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "id": self.encoded_id,
            "size": self.size,
            "offset": self.offset,
        }


@dataclass(frozen=True)
class BundleIndex:
    """Offset table computed once from a bundle header."""
    entries: tuple[BundleEntry, ...]
    header_length: int
    buffer_length: int

    @property
    def ids(self) -> list[bytes]:
        return [entry.id for entry in self.entries]

    @property
    def declared_length(self) -> int:
        return self.entries[-1].end if self.entries else self.header_length

    def fits(self, entry: BundleEntry) -> bool:
        return entry.end <= self.buffer_length

    def __len__(self) -> int:
        return len(self.entries)


def _int_bytes(value: int, length: int) -> bytes:
    return value.to_bytes(length, "little")


def build_bundle(
    items: Iterable[DataItem | bytes],
    registry: SchemeRegistry | None = None,
    limits: Limits | None = None,
) -> bytes:
    """
    Build a bundle from signed items.

    Args:
        items: DataItem instances or serialized signed items, in bundle order
        registry: Scheme registry (default: DEFAULT_REGISTRY)
        limits: Limits (default: DEFAULT_LIMITS)

    Returns:
        Serialized bundle

    Raises:
        UnsignedItemInBundle: If any item has no signature
        InvalidFieldError: If there are more items than limits.max_bundle_items
    """
    registry = registry or DEFAULT_REGISTRY
    limits = limits or DEFAULT_LIMITS

    serialized: list[tuple[bytes, bytes]] = []
    for idx, item in enumerate(items):
        if not isinstance(item, DataItem):
            item = parse_item(item, registry, limits)
        if not item.is_signed:
            raise UnsignedItemInBundle(f"Item {idx} is not signed", index=idx)
        serialized.append((item.id, serialize_item(item, registry, limits)))

    if len(serialized) > limits.max_bundle_items:
        raise InvalidFieldError(
            f"Bundle of {len(serialized)} items exceeds limit {limits.max_bundle_items}",
            count=len(serialized),
        )

    header = [_int_bytes(len(serialized), BUNDLE_COUNT_LENGTH)]
    for id_, raw in serialized:
        header.append(_int_bytes(len(raw), BUNDLE_SIZE_LENGTH))
        header.append(id_)

    logger.debug("built bundle of %d items", len(serialized))
    return b"".join(header) + b"".join(raw for _, raw in serialized)


def parse_bundle_header(raw: bytes, strict: bool = True) -> BundleIndex:
    """
    Read the bundle header and compute every item offset.

    Args:
        raw: Serialized bundle
        strict: Raise if a declared item runs past the buffer. With
            strict=False such entries are kept and BundleIndex.fits reports them.

    Raises:
        TruncatedBundleHeader: If the count or header table does not fit
        DeclaredSizeExceedsBuffer: If strict and an item runs past the buffer
    """
    view = memoryview(raw)
    length = len(view)
    if length < BUNDLE_COUNT_LENGTH:
        raise TruncatedBundleHeader(
            f"Bundle of {length} bytes is too short for the item count",
            length=length,
        )

    count = int.from_bytes(view[:BUNDLE_COUNT_LENGTH], "little")
    header_length = BUNDLE_COUNT_LENGTH + count * BUNDLE_ENTRY_LENGTH
    if header_length > length:
        raise TruncatedBundleHeader(
            f"Header for {count} items needs {header_length} bytes, bundle has {length}",
            count=count,
            length=length,
        )

    entries = []
    offset = header_length
    for index in range(count):
        row = BUNDLE_COUNT_LENGTH + index * BUNDLE_ENTRY_LENGTH
        size = int.from_bytes(view[row:row + BUNDLE_SIZE_LENGTH], "little")
        id_ = bytes(view[row + BUNDLE_SIZE_LENGTH:row + BUNDLE_SIZE_LENGTH + BUNDLE_ID_LENGTH])
        entry = BundleEntry(index=index, id=id_, size=size, offset=offset)
        if strict and entry.end > length:
            raise DeclaredSizeExceedsBuffer(
                f"Item {index} declares {size} bytes at offset {offset}, bundle has {length}",
                index=index,
                size=size,
                offset=offset,
            )
        entries.append(entry)
        offset = entry.end

    return BundleIndex(entries=tuple(entries), header_length=header_length, buffer_length=length)


def bundle_ids(raw: bytes) -> list[bytes]:
    """Item ids in bundle order, read from the header only."""
    return parse_bundle_header(raw, strict=False).ids


def item_bytes(raw: bytes, index: int, bundle_index: BundleIndex | None = None) -> bytes:
    """Raw bytes of the item at index."""
    if bundle_index is None:
        bundle_index = parse_bundle_header(raw, strict=False)
    if not 0 <= index < len(bundle_index):
        raise IndexError(f"Bundle has {len(bundle_index)} items, no index {index}")
    entry = bundle_index.entries[index]
    if not bundle_index.fits(entry):
        raise DeclaredSizeExceedsBuffer(
            f"Item {entry.index} declares {entry.size} bytes at offset {entry.offset}, "
            f"bundle has {bundle_index.buffer_length}",
            index=entry.index,
            size=entry.size,
            offset=entry.offset,
        )
    return bytes(memoryview(raw)[entry.offset:entry.end])


def item_at(
    raw: bytes,
    index: int,
    registry: SchemeRegistry | None = None,
    bundle_index: BundleIndex | None = None,
    limits: Limits | None = None,
) -> DataItem:
    """Parse only the item at index. Idempotent; touches no other item."""
    return parse_item(item_bytes(raw, index, bundle_index), registry, limits)


def iter_items(
    raw: bytes,
    registry: SchemeRegistry | None = None,
    limits: Limits | None = None,
) -> Iterator[DataItem]:
    """Parse items one by one in bundle order. Each call starts over."""
    bundle_index = parse_bundle_header(raw)
    for entry in bundle_index.entries:
        yield item_at(raw, entry.index, registry, bundle_index, limits)
