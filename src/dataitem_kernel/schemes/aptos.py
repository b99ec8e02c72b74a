"""
Aptos multi-signature scheme.

Owner layout: 32 slots of 32-byte Ed25519 public keys followed by a
one-byte threshold. Signature layout: 32 slots of 64-byte Ed25519
signatures followed by a 4-byte bitmap. Bit i of the bitmap (most
significant bit first within each byte) marks slot i as signed.

Unused slots are zero filled.
"""

from dataclasses import dataclass, field
from typing import Any

from ..errors import SigningError
from .base import SignatureScheme
from .ed25519 import (
    PUBLIC_KEY_LENGTH as ED_PUB,
    SIGNATURE_LENGTH as ED_SIG,
    load_private_key,
    raw_public_key,
    verify_raw,
)

MAX_PARTICIPANTS = 32
BITMAP_LENGTH = 4


@dataclass(frozen=True)
class MultiAptosKey:
    """
    Signing material for a multi-signature account.

    participants: ordered public keys of the account (max 32)
    threshold: number of signatures the account requires
    signers: slot index -> Ed25519 private key for the slots that sign
    """
    participants: tuple[bytes, ...]
    threshold: int
    signers: dict[int, Any] = field(default_factory=dict)


def _pack_public_key(participants: tuple[bytes, ...], threshold: int) -> bytes:
    if not participants or len(participants) > MAX_PARTICIPANTS:
        raise SigningError(f"Multi-signature accounts need 1..{MAX_PARTICIPANTS} participants")
    if not 1 <= threshold <= len(participants):
        raise SigningError(f"Threshold {threshold} outside 1..{len(participants)}")
    for idx, participant in enumerate(participants):
        if len(participant) != ED_PUB:
            raise SigningError(f"Participant {idx} is not a {ED_PUB}-byte Ed25519 key")
    slots = b"".join(bytes(p) for p in participants)
    slots += bytes(ED_PUB * (MAX_PARTICIPANTS - len(participants)))
    return slots + bytes([threshold])


class MultiAptosScheme(SignatureScheme):
    signature_type = 6
    name = "multiAptos"
    signature_length = ED_SIG * MAX_PARTICIPANTS + BITMAP_LENGTH
    public_key_length = ED_PUB * MAX_PARTICIPANTS + 1

    def public_key(self, private_key: Any) -> bytes:
        if not isinstance(private_key, MultiAptosKey):
            raise SigningError("multiAptos signing requires a MultiAptosKey")
        return _pack_public_key(tuple(private_key.participants), private_key.threshold)

    def sign(self, private_key: Any, message: bytes) -> bytes:
        owner = self.public_key(private_key)
        if len(private_key.signers) < private_key.threshold:
            raise SigningError(
                f"{len(private_key.signers)} signers cannot meet threshold {private_key.threshold}"
            )

        slots = bytearray(ED_SIG * MAX_PARTICIPANTS)
        bitmap = bytearray(BITMAP_LENGTH)
        for slot, secret in sorted(private_key.signers.items()):
            if not 0 <= slot < len(private_key.participants):
                raise SigningError(f"Signer slot {slot} has no participant")
            key = load_private_key(secret)
            if raw_public_key(key) != owner[slot * ED_PUB:(slot + 1) * ED_PUB]:
                raise SigningError(f"Signer for slot {slot} does not match the participant key")
            slots[slot * ED_SIG:(slot + 1) * ED_SIG] = key.sign(message)
            bitmap[slot // 8] |= 128 >> (slot % 8)

        return bytes(slots) + bytes(bitmap)

    def verify(self, public_key: bytes, message: bytes, signature: bytes) -> bool:
        if not self.check_lengths(public_key, signature):
            return False

        threshold = public_key[-1]
        bitmap = signature[-BITMAP_LENGTH:]
        valid = 0
        for slot in range(MAX_PARTICIPANTS):
            if not bitmap[slot // 8] & (128 >> (slot % 8)):
                continue
            key = public_key[slot * ED_PUB:(slot + 1) * ED_PUB]
            sig = signature[slot * ED_SIG:(slot + 1) * ED_SIG]
            if not verify_raw(key, message, sig):
                return False
            valid += 1

        return threshold > 0 and valid >= threshold
