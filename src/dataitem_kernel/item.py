"""
Data item codec: build, parse, sign and verify single signed items.

Binary layout (all integers little endian):

    signature_type   u16
    signature        scheme.signature_length bytes
    owner            scheme.public_key_length bytes
    target           presence byte (0/1) [+ 32 bytes]
    anchor           presence byte (0/1) [+ 32 bytes]
    tag_count        u64
    tag_bytes        u64
    tags             tag_bytes bytes (Avro, see tags.py)
    data             everything remaining

The item id is SHA-256 of the signature. It is always derived, never
stored separately, so an id can never disagree with its signature.
"""

import base64
import hashlib
import logging
import struct
from dataclasses import dataclass, replace
from functools import cached_property
from typing import Any, Iterable, Mapping

from .config import (
    ANCHOR_LENGTH,
    DATAITEM_TAG,
    DATAITEM_VERSION,
    DEFAULT_LIMITS,
    PRESENCE_LENGTH,
    SIGNATURE_TYPE_LENGTH,
    TAG_BYTES_LENGTH,
    TAG_COUNT_LENGTH,
    TARGET_LENGTH,
    Limits,
)
from .deep_hash import deep_hash
from .errors import (
    InvalidFieldError,
    MalformedItem,
    MalformedTagBlock,
    SigningError,
    TruncatedItem,
    UnsignedItemError,
)
from .schemes import DEFAULT_REGISTRY, SchemeRegistry, SignatureScheme
from .tags import Tag, coerce_tags, decode_tags, encode_tags, write_tag_block

logger = logging.getLogger(__name__)


def b64url_encode(raw: bytes) -> str:
    """Unpadded base64url, the encoding ids and keys are quoted in."""
    return base64.urlsafe_b64encode(bytes(raw)).rstrip(b"=").decode("ascii")


def item_id(signature: bytes) -> bytes:
    """Compute the 32-byte id of a signature."""
    return hashlib.sha256(bytes(signature)).digest()


def _as_bytes(value: Any, name: str) -> bytes:
    if value is None:
        return b""
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise InvalidFieldError(f"{name} must be bytes or str, got {type(value).__name__}", field=name)


@dataclass(frozen=True)
class DataItem:
    """
    One signed (or not yet signed) unit of payload, metadata and signature.

    Instances are immutable. Signing returns a new instance.
    """
    signature_type: int
    signature: bytes = b""
    owner: bytes = b""
    target: bytes = b""
    anchor: bytes = b""
    tags: tuple[Tag, ...] = ()
    data: bytes = b""

    def __post_init__(self):
        if not isinstance(self.signature_type, int) or not 0 <= self.signature_type <= 0xFFFF:
            raise InvalidFieldError(
                f"signature_type must be a u16, got {self.signature_type!r}",
                field="signature_type",
            )
        for name in ("signature", "owner", "target", "anchor", "data"):
            object.__setattr__(self, name, _as_bytes(getattr(self, name), name))
        object.__setattr__(self, "tags", coerce_tags(self.tags))

        if len(self.target) not in (0, TARGET_LENGTH):
            raise InvalidFieldError(
                f"target must be empty or {TARGET_LENGTH} bytes, got {len(self.target)}",
                field="target",
            )
        if len(self.anchor) not in (0, ANCHOR_LENGTH):
            raise InvalidFieldError(
                f"anchor must be empty or {ANCHOR_LENGTH} bytes, got {len(self.anchor)}",
                field="anchor",
            )

    @property
    def is_signed(self) -> bool:
        return len(self.signature) > 0

    @cached_property
    def id(self) -> bytes | None:
        return item_id(self.signature) if self.signature else None

    @property
    def encoded_id(self) -> str | None:
        return b64url_encode(self.id) if self.id is not None else None

    @cached_property
    def encoded_tags(self) -> bytes:
        return write_tag_block(self.tags)

    def signing_message(self) -> bytes:
        """Deep hash of every signed field in fixed order."""
        return deep_hash([
            DATAITEM_TAG,
            DATAITEM_VERSION,
            str(self.signature_type).encode("ascii"),
            self.owner,
            self.target,
            self.anchor,
            self.encoded_tags,
            self.data,
        ])

    def to_bytes(self, registry: SchemeRegistry | None = None) -> bytes:
        return serialize_item(self, registry)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.encoded_id,
            "signature_type": self.signature_type,
            "signature": b64url_encode(self.signature),
            "owner": b64url_encode(self.owner),
            "target": b64url_encode(self.target),
            "anchor": b64url_encode(self.anchor),
            "tags": [tag.to_dict() for tag in self.tags],
            "data": b64url_encode(self.data),
        }


def create_data_item(
    data: bytes | str,
    signature_type: int,
    tags: Iterable[Any] | None = None,
    target: bytes | None = None,
    anchor: bytes | None = None,
    limits: Limits | None = None,
) -> DataItem:
    """
    Create an unsigned data item.

    Tags are validated against limits immediately, so an item that was
    created successfully can always be encoded.
    """
    item = DataItem(
        signature_type=signature_type,
        target=target or b"",
        anchor=anchor or b"",
        tags=coerce_tags(tags),
        data=data,
    )
    encode_tags(item.tags, limits)
    return item


def _check_scheme_lengths(item: DataItem, scheme: SignatureScheme) -> None:
    if len(item.signature) != scheme.signature_length:
        raise MalformedItem(
            f"{scheme.name} signatures are {scheme.signature_length} bytes, got {len(item.signature)}",
            field="signature",
        )
    if len(item.owner) != scheme.public_key_length:
        raise MalformedItem(
            f"{scheme.name} owners are {scheme.public_key_length} bytes, got {len(item.owner)}",
            field="owner",
        )


def serialize_item(
    item: DataItem,
    registry: SchemeRegistry | None = None,
    limits: Limits | None = None,
) -> bytes:
    """
    Serialize a signed item to its binary form.

    Raises:
        UnsignedItemError: If the item has no signature
        InvalidFieldError: If the tags violate limits
        UnsupportedSignatureScheme: If the signature type is not registered
        MalformedItem: If signature/owner widths do not match the scheme
    """
    registry = registry or DEFAULT_REGISTRY
    if not item.is_signed:
        raise UnsignedItemError("Cannot serialize an unsigned data item")
    scheme = registry.by_type(item.signature_type)
    _check_scheme_lengths(item, scheme)

    tag_block = encode_tags(item.tags, limits)
    parts = [
        struct.pack("<H", item.signature_type),
        item.signature,
        item.owner,
        b"\x01" + item.target if item.target else b"\x00",
        b"\x01" + item.anchor if item.anchor else b"\x00",
        struct.pack("<QQ", len(item.tags), len(tag_block)),
        tag_block,
        item.data,
    ]
    return b"".join(parts)


class _Cursor:
    """Bounds-checked reader over an item buffer."""

    def __init__(self, raw: bytes):
        self.raw = raw
        self.pos = 0

    def take(self, length: int, what: str) -> bytes:
        end = self.pos + length
        if length < 0 or end > len(self.raw):
            raise TruncatedItem(
                f"Item truncated reading {what}: need {length} bytes at offset {self.pos}, "
                f"buffer has {len(self.raw)}",
                field=what,
                offset=self.pos,
            )
        chunk = self.raw[self.pos:end]
        self.pos = end
        return chunk

    def optional(self, length: int, what: str) -> bytes:
        presence = self.take(PRESENCE_LENGTH, f"{what} presence")[0]
        if presence == 0:
            return b""
        if presence != 1:
            raise MalformedItem(
                f"Invalid {what} presence byte: {presence}",
                field=what,
                offset=self.pos - 1,
            )
        return self.take(length, what)


def _parse_header(
    raw: bytes,
    registry: SchemeRegistry,
    limits: Limits,
) -> tuple[dict[str, Any], int]:
    cursor = _Cursor(raw)
    (signature_type,) = struct.unpack("<H", cursor.take(SIGNATURE_TYPE_LENGTH, "signature type"))
    scheme = registry.by_type(signature_type)

    signature = cursor.take(scheme.signature_length, "signature")
    owner = cursor.take(scheme.public_key_length, "owner")
    target = cursor.optional(TARGET_LENGTH, "target")
    anchor = cursor.optional(ANCHOR_LENGTH, "anchor")

    tag_count, tag_bytes = struct.unpack(
        "<QQ", cursor.take(TAG_COUNT_LENGTH + TAG_BYTES_LENGTH, "tag lengths")
    )
    if tag_count > limits.max_tags:
        raise MalformedTagBlock(
            f"Item declares {tag_count} tags, limit is {limits.max_tags}",
            declared=tag_count,
        )
    tag_block = cursor.take(tag_bytes, "tags")
    tags = decode_tags(tag_block, expected_count=tag_count, limits=limits)

    fields = {
        "signature_type": signature_type,
        "signature": signature,
        "owner": owner,
        "target": target,
        "anchor": anchor,
        "tags": tuple(tags),
    }
    return fields, cursor.pos


def item_header_length(
    raw: bytes,
    registry: SchemeRegistry | None = None,
    limits: Limits | None = None,
) -> int:
    """Offset at which the data payload of a serialized item starts."""
    _, data_start = _parse_header(bytes(raw), registry or DEFAULT_REGISTRY, limits or DEFAULT_LIMITS)
    return data_start


def parse_item(
    raw: bytes,
    registry: SchemeRegistry | None = None,
    limits: Limits | None = None,
) -> DataItem:
    """
    Parse a serialized item. Exact inverse of serialize_item.

    The whole buffer is taken as the item: data runs to its end.

    Raises:
        TruncatedItem: If a fixed field runs past the buffer
        MalformedItem: If a presence byte is neither 0 nor 1
        MalformedTagBlock: If the tag block is inconsistent
        UnsupportedSignatureScheme: If the signature type is not registered
    """
    raw = bytes(raw)
    fields, data_start = _parse_header(raw, registry or DEFAULT_REGISTRY, limits or DEFAULT_LIMITS)
    item = DataItem(data=raw[data_start:], **fields)
    logger.debug(
        "parsed item type=%d tags=%d data=%d bytes",
        item.signature_type, len(item.tags), len(item.data),
    )
    return item


def sign_data_item(
    item: DataItem,
    private_key: Any,
    registry: SchemeRegistry | None = None,
    limits: Limits | None = None,
) -> DataItem:
    """
    Sign an item, returning a new item with owner, signature and id set.

    Any existing owner/signature is replaced. The private key is used for
    this call only.

    Raises:
        UnsupportedSignatureScheme: If the signature type is not registered
        InvalidFieldError: If the tags violate limits
        SigningError: If the key cannot sign for the scheme
    """
    registry = registry or DEFAULT_REGISTRY
    scheme = registry.by_type(item.signature_type)
    encode_tags(item.tags, limits)

    owner = scheme.public_key(private_key)
    if len(owner) != scheme.public_key_length:
        raise SigningError(
            f"{scheme.name} key produced a {len(owner)}-byte owner, expected {scheme.public_key_length}"
        )
    unsigned = replace(item, owner=owner, signature=b"")
    signature = scheme.sign(private_key, unsigned.signing_message())
    if len(signature) != scheme.signature_length:
        raise SigningError(
            f"{scheme.name} produced a {len(signature)}-byte signature, expected {scheme.signature_length}"
        )

    signed = replace(unsigned, signature=signature)
    logger.debug("signed item type=%d id=%s", signed.signature_type, signed.encoded_id)
    return signed


def verify_data_item(item: DataItem, registry: SchemeRegistry | None = None) -> bool:
    """
    Check the item signature against its owner.

    Returns False for a well-formed item whose signature does not verify.

    Raises:
        UnsignedItemError: If the item has no signature
        UnsupportedSignatureScheme: If the signature type is not registered
        MalformedItem: If signature/owner widths do not match the scheme
    """
    registry = registry or DEFAULT_REGISTRY
    if not item.is_signed:
        raise UnsignedItemError("Cannot verify an unsigned data item")
    scheme = registry.by_type(item.signature_type)
    _check_scheme_lengths(item, scheme)
    return scheme.verify(item.owner, item.signing_message(), item.signature)


def sign_item(
    fields: Mapping[str, Any],
    signature_type: int | str | SignatureScheme,
    private_key: Any,
    registry: SchemeRegistry | None = None,
    limits: Limits | None = None,
) -> bytes:
    """
    Build, sign and serialize an item in one step.

    Args:
        fields: Mapping with "data" and optional "tags", "target", "anchor"
        signature_type: Scheme type code, scheme name, or scheme instance
        private_key: Key material accepted by the scheme
        registry: Scheme registry (default: DEFAULT_REGISTRY)
        limits: Tag limits (default: DEFAULT_LIMITS)

    Returns:
        Serialized signed item
    """
    registry = registry or DEFAULT_REGISTRY
    scheme = registry.resolve(signature_type)
    item = create_data_item(
        data=fields.get("data", b""),
        signature_type=scheme.signature_type,
        tags=fields.get("tags"),
        target=fields.get("target"),
        anchor=fields.get("anchor"),
        limits=limits,
    )
    return serialize_item(sign_data_item(item, private_key, registry, limits), registry, limits)
