"""
Deep hash: the recursive, order-sensitive digest that signatures cover.

CRITICAL: The hash function and tag strings below MUST NOT change.
Every signature in the bundled data item format is made over this
digest, so any deviation breaks verification against other
implementations.

    blob(b)  = H(H("blob" + len(b)) + H(b))
    list(xs) = fold(acc = H("list" + len(xs)), acc = H(acc + deep(x)))

with H = SHA-384 and lengths written as decimal ASCII.
"""

import hashlib
from typing import Sequence, Union

DeepHashChunk = Union[bytes, bytearray, memoryview, Sequence["DeepHashChunk"]]

DIGEST_LENGTH = 48

_BLOB = b"blob"
_LIST = b"list"


def _sha384(data: bytes) -> bytes:
    return hashlib.sha384(data).digest()


def deep_hash(chunk: DeepHashChunk) -> bytes:
    """
    Compute the deep hash of a byte block or a (nested) list of blocks.

    Args:
        chunk: bytes-like value, or list/tuple of chunks

    Returns:
        48-byte SHA-384 digest

    Raises:
        TypeError: If a chunk is neither bytes-like nor a list/tuple
    """
    if isinstance(chunk, (bytes, bytearray, memoryview)):
        blob = bytes(chunk)
        tag = _BLOB + str(len(blob)).encode("ascii")
        return _sha384(_sha384(tag) + _sha384(blob))

    if isinstance(chunk, (list, tuple)):
        acc = _sha384(_LIST + str(len(chunk)).encode("ascii"))
        for element in chunk:
            acc = _sha384(acc + deep_hash(element))
        return acc

    raise TypeError(f"deep_hash expects bytes or a list of chunks, got {type(chunk).__name__}")
