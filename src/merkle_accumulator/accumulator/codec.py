"""
Merkle Accumulator - Persisted Record Codec

Fixed-size binary layout for an accumulator:

    offset  size     field
    0       8        account discriminator
    8       32       root
    40      4        leaf count (unsigned, little-endian)
    44      30 * 32  leaf slots, unused slots zeroed

The discriminator is the first 8 bytes of SHA-256("account:MerkleTree"),
which lets a reader reject records of another type before parsing.
"""

import hashlib
import struct

from merkle_accumulator.accumulator.state import (
    MAX_LEAVES,
    AccumulatorError,
    MerkleAccumulator,
    RootStrategy,
)
from merkle_accumulator.crypto.merkle import HASH_SIZE, ZERO_HASH, Hash32, merkle_root

DISCRIMINATOR = hashlib.sha256(b"account:MerkleTree").digest()[:8]

_HEADER = struct.Struct("<8s32sI")

BODY_SIZE = HASH_SIZE + 4 + MAX_LEAVES * HASH_SIZE
RECORD_SIZE = len(DISCRIMINATOR) + BODY_SIZE


class RecordCorruptedError(AccumulatorError):
    """Raised when a persisted record cannot be decoded."""

    pass


def encode_record(acc: MerkleAccumulator) -> bytes:
    """
    Serialize an accumulator to its fixed-size record.

    Args:
        acc: Accumulator to serialize

    Returns:
        RECORD_SIZE bytes
    """
    snapshot = acc.snapshot()
    leaves = b"".join(snapshot.leaves)
    record = _HEADER.pack(DISCRIMINATOR, snapshot.root, snapshot.leaf_count) + leaves
    return record.ljust(RECORD_SIZE, b"\x00")


def decode_record(data: bytes, root_strategy: RootStrategy = "full") -> MerkleAccumulator:
    """
    Deserialize a record into an accumulator.

    The stored root is checked against a fresh computation over the
    stored leaves.

    Raises:
        RecordCorruptedError: On size, discriminator, count or root mismatch
    """
    if len(data) != RECORD_SIZE:
        raise RecordCorruptedError(f"Record must be {RECORD_SIZE} bytes, got {len(data)}")

    discriminator, root, count = _HEADER.unpack_from(data)
    if discriminator != DISCRIMINATOR:
        raise RecordCorruptedError("Record discriminator mismatch")
    if count > MAX_LEAVES:
        raise RecordCorruptedError(f"Leaf count {count} exceeds capacity {MAX_LEAVES}")

    offset = _HEADER.size
    leaves = [
        bytes(data[offset + i * HASH_SIZE:offset + (i + 1) * HASH_SIZE])
        for i in range(count)
    ]

    expected = merkle_root(leaves) if leaves else ZERO_HASH
    if root != expected:
        raise RecordCorruptedError("Stored root does not match stored leaves")

    return MerkleAccumulator.restore(leaves, root_strategy=root_strategy)


def read_header(data: bytes) -> tuple[Hash32, int]:
    """Read the stored (root, leaf count) without decoding the leaves."""
    if len(data) < _HEADER.size:
        raise RecordCorruptedError("Record too short")
    _, root, count = _HEADER.unpack_from(data)
    return root, count
