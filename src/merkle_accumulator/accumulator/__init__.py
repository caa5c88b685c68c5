"""
Merkle Accumulator - Accumulator Package

Fixed-capacity accumulator state and its persisted record layout.
"""

from merkle_accumulator.accumulator.codec import (
    DISCRIMINATOR,
    RECORD_SIZE,
    RecordCorruptedError,
    decode_record,
    encode_record,
)
from merkle_accumulator.accumulator.state import (
    MAX_LEAVES,
    AccumulatorError,
    AccumulatorSnapshot,
    InvalidLeafError,
    LeafInserted,
    MaxLeavesExceeded,
    MerkleAccumulator,
)

__all__ = [
    "DISCRIMINATOR",
    "MAX_LEAVES",
    "RECORD_SIZE",
    "AccumulatorError",
    "AccumulatorSnapshot",
    "InvalidLeafError",
    "LeafInserted",
    "MaxLeavesExceeded",
    "MerkleAccumulator",
    "RecordCorruptedError",
    "decode_record",
    "encode_record",
]
