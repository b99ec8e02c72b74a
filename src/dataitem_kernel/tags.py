"""
Tag block codec for dataitem-kernel.

Tags are encoded with Avro binary encoding against a fixed schema
(an array of {name, value} string records). The encoding MUST match the
one used by other implementations of the bundled data item format
byte for byte, because the encoded block is part of the signed message.

An empty tag list encodes to the empty byte string.
"""

import io
import logging
from dataclasses import dataclass
from typing import Any, Iterable

import fastavro

from .config import DEFAULT_LIMITS, Limits
from .errors import InvalidFieldError, MalformedTagBlock

logger = logging.getLogger(__name__)


TAGS_SCHEMA = fastavro.parse_schema({
    "type": "array",
    "items": {
        "type": "record",
        "name": "Tag",
        "fields": [
            {"name": "name", "type": "string"},
            {"name": "value", "type": "string"},
        ],
    },
})


@dataclass(frozen=True)
class Tag:
    """A single (name, value) tag. Order within a tag list is significant."""
    name: str
    value: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "value": self.value}


def coerce_tags(tags: Iterable[Any] | None) -> tuple[Tag, ...]:
    """
    Normalise user supplied tags into a tuple of Tag.

    Accepts Tag instances, (name, value) pairs and {"name", "value"} dicts.
    """
    if not tags:
        return ()
    result = []
    for tag in tags:
        if isinstance(tag, Tag):
            result.append(tag)
        elif isinstance(tag, dict):
            result.append(Tag(tag.get("name"), tag.get("value")))
        elif isinstance(tag, (tuple, list)) and len(tag) == 2:
            result.append(Tag(tag[0], tag[1]))
        else:
            raise InvalidFieldError(f"Cannot interpret {type(tag).__name__} as a tag")
    return tuple(result)


def _tag_problem(name: Any, value: Any, limits: Limits) -> str | None:
    """Return a description of what is wrong with a tag, or None."""
    if not isinstance(name, str) or not isinstance(value, str):
        return "tag name and value must be strings"
    if not name or not value:
        return "tag name and value must not be empty"
    try:
        name_bytes = len(name.encode("utf-8"))
        value_bytes = len(value.encode("utf-8"))
    except UnicodeEncodeError:
        return "tag name and value must be valid UTF-8"
    if name_bytes > limits.max_tag_name_bytes:
        return f"tag name exceeds {limits.max_tag_name_bytes} bytes"
    if value_bytes > limits.max_tag_value_bytes:
        return f"tag value exceeds {limits.max_tag_value_bytes} bytes"
    return None


def encode_tags(tags: Iterable[Any] | None, limits: Limits | None = None) -> bytes:
    """
    Encode an ordered tag list into an Avro tag block.

    Args:
        tags: Tags (see coerce_tags for accepted shapes)
        limits: Encoding limits (default: DEFAULT_LIMITS)

    Returns:
        Encoded block, b"" for an empty list

    Raises:
        InvalidFieldError: If the list violates the configured limits
    """
    limits = limits or DEFAULT_LIMITS
    normalised = coerce_tags(tags)
    if not normalised:
        return b""

    if len(normalised) > limits.max_tags:
        raise InvalidFieldError(
            f"Too many tags: {len(normalised)} > {limits.max_tags}",
            count=len(normalised),
        )
    for idx, tag in enumerate(normalised):
        problem = _tag_problem(tag.name, tag.value, limits)
        if problem:
            raise InvalidFieldError(f"Invalid tag at index {idx}: {problem}", index=idx)

    return write_tag_block(normalised)


def write_tag_block(tags: Iterable[Tag]) -> bytes:
    """Avro-encode tags without applying limits. Empty input gives b""."""
    records = [tag.to_dict() for tag in tags]
    if not records:
        return b""
    buffer = io.BytesIO()
    try:
        fastavro.schemaless_writer(buffer, TAGS_SCHEMA, records)
    except (TypeError, ValueError) as exc:
        raise InvalidFieldError(f"Tags cannot be encoded: {exc}") from exc
    return buffer.getvalue()


def decode_tags(
    block: bytes,
    expected_count: int | None = None,
    limits: Limits | None = None,
) -> list[Tag]:
    """
    Decode an Avro tag block. Exact left inverse of encode_tags.

    Args:
        block: Encoded tag block
        expected_count: Tag count declared next to the block, if any
        limits: Decoding limits (default: DEFAULT_LIMITS)

    Raises:
        MalformedTagBlock: If the block is not a valid encoding, is not
            consumed exactly, disagrees with expected_count, or violates limits
    """
    limits = limits or DEFAULT_LIMITS
    block = bytes(block)

    if not block:
        tags: list[Tag] = []
    else:
        stream = io.BytesIO(block)
        try:
            records = fastavro.schemaless_reader(stream, TAGS_SCHEMA, None)
        except Exception as exc:
            raise MalformedTagBlock(f"Tag block is not valid Avro: {exc}", length=len(block)) from exc

        consumed = stream.tell()
        if consumed != len(block):
            raise MalformedTagBlock(
                f"Tag block declares {len(block)} bytes but encoding uses {consumed}",
                declared=len(block),
                consumed=consumed,
            )
        if not isinstance(records, list):
            raise MalformedTagBlock("Tag block did not decode to a list")
        if len(records) > limits.max_tags:
            raise MalformedTagBlock(
                f"Too many tags: {len(records)} > {limits.max_tags}",
                count=len(records),
            )

        tags = []
        for idx, record in enumerate(records):
            problem = _tag_problem(record.get("name"), record.get("value"), limits)
            if problem:
                raise MalformedTagBlock(f"Invalid tag at index {idx}: {problem}", index=idx)
            tags.append(Tag(record["name"], record["value"]))

        # Signatures cover the block bytes, so only the canonical encoding is accepted
        if write_tag_block(tags) != block:
            raise MalformedTagBlock("Tag block is not canonically encoded", length=len(block))

    if expected_count is not None and expected_count != len(tags):
        raise MalformedTagBlock(
            f"Declared {expected_count} tags but block holds {len(tags)}",
            declared=expected_count,
            actual=len(tags),
        )

    logger.debug("decoded %d tags from %d byte block", len(tags), len(block))
    return tags
