"""
Merkle Accumulator - Accumulator State

Fixed-capacity leaf buffer plus the root that commits to it.

The buffer holds MAX_LEAVES 32-byte slots and an explicit leaf count.
insert_leaf runs the capacity check, append and root recompute under a
single lock, so readers never observe a leaf without its matching root.
"""

import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

import structlog

from merkle_accumulator.crypto.merkle import (
    HASH_SIZE,
    ZERO_HASH,
    Hash32,
    MerkleFrontier,
    merkle_root,
    parse_hash32,
)

logger = structlog.get_logger(__name__)

MAX_LEAVES = 30

RootStrategy = Literal["full", "frontier"]


class AccumulatorError(Exception):
    """Base exception for accumulator errors."""

    pass


class MaxLeavesExceeded(AccumulatorError):
    """Raised when inserting into an accumulator that is already full."""

    def __init__(self, capacity: int = MAX_LEAVES) -> None:
        super().__init__("The maximum number of leaves has been exceeded.")
        self.capacity = capacity


class InvalidLeafError(AccumulatorError, ValueError):
    """Raised when a leaf is not a 32-byte hash."""

    pass


@dataclass(frozen=True)
class LeafInserted:
    """Event emitted after every successful insertion."""

    new_root: Hash32
    leaf_index: int
    leaf_count: int

    def to_dict(self) -> dict[str, str | int]:
        return {
            "new_root": self.new_root.hex(),
            "leaf_index": self.leaf_index,
            "leaf_count": self.leaf_count,
        }


@dataclass(frozen=True)
class AccumulatorSnapshot:
    """Consistent view of leaves and root taken under the lock."""

    leaves: tuple[Hash32, ...]
    root: Hash32

    @property
    def leaf_count(self) -> int:
        return len(self.leaves)


EventListener = Callable[[LeafInserted], None]


class MerkleAccumulator:
    """
    Capacity-bounded, append-only Merkle accumulator.

    Example:
        >>> acc = MerkleAccumulator.initialize()
        >>> acc.insert_leaf(bytes([1]) * 32) == bytes([1]) * 32
        True
    """

    capacity = MAX_LEAVES

    def __init__(self, root_strategy: RootStrategy = "full") -> None:
        """
        Create an empty accumulator (use initialize()).

        Args:
            root_strategy: "full" rebuilds every level on each insert,
                "frontier" keeps one cached hash per level
        """
        if root_strategy not in ("full", "frontier"):
            raise ValueError(f"Unknown root strategy: {root_strategy}")

        self._buffer = bytearray(MAX_LEAVES * HASH_SIZE)
        self._count = 0
        self._root = ZERO_HASH
        self._root_strategy = root_strategy
        self._frontier = MerkleFrontier() if root_strategy == "frontier" else None
        self._listeners: list[EventListener] = []
        self._lock = threading.RLock()

    @classmethod
    def initialize(cls, root_strategy: RootStrategy = "full") -> "MerkleAccumulator":
        """Produce an empty accumulator with an all-zero root."""
        return cls(root_strategy=root_strategy)

    @classmethod
    def restore(
        cls,
        leaves: list[Hash32],
        root_strategy: RootStrategy = "full",
    ) -> "MerkleAccumulator":
        """
        Rebuild an accumulator from previously stored leaves.

        Raises:
            MaxLeavesExceeded: If more than MAX_LEAVES leaves are given
            InvalidLeafError: If a leaf is not 32 bytes
        """
        if len(leaves) > MAX_LEAVES:
            raise MaxLeavesExceeded()

        acc = cls(root_strategy=root_strategy)
        checked = [_coerce_leaf(leaf) for leaf in leaves]
        for i, leaf in enumerate(checked):
            acc._buffer[i * HASH_SIZE:(i + 1) * HASH_SIZE] = leaf
            if acc._frontier is not None:
                acc._frontier.append(leaf)
        acc._count = len(checked)
        if checked:
            acc._root = merkle_root(checked)
        return acc

    @property
    def root_strategy(self) -> RootStrategy:
        return self._root_strategy

    @property
    def root(self) -> Hash32:
        """Current root; 32 zero bytes while empty."""
        with self._lock:
            return self._root

    @property
    def leaves(self) -> list[Hash32]:
        """Leaves in insertion order."""
        with self._lock:
            return self._leaves_unlocked()

    @property
    def leaf_count(self) -> int:
        with self._lock:
            return self._count

    @property
    def is_empty(self) -> bool:
        """True while the all-zero sentinel root is in place."""
        with self._lock:
            return self._count == 0

    @property
    def is_full(self) -> bool:
        with self._lock:
            return self._count >= MAX_LEAVES

    def snapshot(self) -> AccumulatorSnapshot:
        """Return leaves and root from the same state."""
        with self._lock:
            return AccumulatorSnapshot(leaves=tuple(self._leaves_unlocked()), root=self._root)

    def subscribe(self, listener: EventListener) -> None:
        """Register a listener for LeafInserted events."""
        self._listeners.append(listener)

    def insert_leaf(self, leaf: Hash32 | str) -> Hash32:
        """
        Append one leaf and recompute the root.

        Args:
            leaf: 32-byte leaf hash (raw bytes or hex)

        Returns:
            The new root

        Raises:
            MaxLeavesExceeded: If the accumulator already holds MAX_LEAVES
            InvalidLeafError: If the leaf is not a 32-byte hash
        """
        leaf = _coerce_leaf(leaf)

        with self._lock:
            if self._count >= MAX_LEAVES:
                logger.warning(
                    "Rejected leaf insertion",
                    reason="max_leaves_exceeded",
                    leaf_count=self._count,
                    capacity=MAX_LEAVES,
                )
                raise MaxLeavesExceeded()

            # Compute before touching state so a failure leaves it intact
            if self._frontier is not None:
                frontier = self._frontier.copy()
                frontier.append(leaf)
                new_root = frontier.root()
            else:
                frontier = None
                new_root = merkle_root(self._leaves_unlocked() + [leaf])

            index = self._count
            self._buffer[index * HASH_SIZE:(index + 1) * HASH_SIZE] = leaf
            self._count = index + 1
            self._root = new_root
            if frontier is not None:
                self._frontier = frontier

            event = LeafInserted(new_root=new_root, leaf_index=index, leaf_count=self._count)

        logger.info(
            "Updated Merkle root",
            new_root=new_root.hex(),
            leaf_index=event.leaf_index,
            leaf_count=event.leaf_count,
        )
        for listener in list(self._listeners):
            listener(event)

        return new_root

    def _leaves_unlocked(self) -> list[Hash32]:
        return [
            bytes(self._buffer[i * HASH_SIZE:(i + 1) * HASH_SIZE])
            for i in range(self._count)
        ]

    def __repr__(self) -> str:
        return f"MerkleAccumulator(leaf_count={self.leaf_count}, root={self.root.hex()})"


def _coerce_leaf(leaf: Hash32 | str) -> Hash32:
    try:
        return parse_hash32(leaf)
    except (TypeError, ValueError) as e:
        raise InvalidLeafError(f"Leaf must be a 32-byte hash: {e}") from e
