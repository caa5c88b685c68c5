"""
Merkle Accumulator - Merkle Tree Implementation

Provides deterministic Merkle root computation with SHA-256 hashing,
inclusion proof generation, and verification.

Leaves are caller-supplied 32-byte hashes and are used as level 0 as-is.
Internal nodes are SHA-256 over the 64-byte concatenation of the left and
right child, with no domain-separation prefix.

For odd numbers of nodes at any level, the last node is paired with itself
(duplicated, not promoted).
"""

import hashlib
from dataclasses import dataclass
from enum import Enum
from typing import Any

HASH_SIZE = 32
ZERO_HASH = bytes(HASH_SIZE)

Hash32 = bytes


class EmptyLeavesError(ValueError):
    """Raised when a root is requested for an empty leaf sequence."""


class ProofDirection(str, Enum):
    """Direction indicator for proof path elements."""

    LEFT = "L"
    RIGHT = "R"


@dataclass(frozen=True)
class ProofElement:
    """
    Single element in a Merkle proof path.

    Attributes:
        hash: The sibling hash at this level
        direction: Whether sibling is LEFT or RIGHT of the path
    """

    hash: Hash32
    direction: ProofDirection

    def to_dict(self) -> dict[str, str]:
        """Serialize to dictionary."""
        return {"hash": self.hash.hex(), "direction": self.direction.value}

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> "ProofElement":
        """Deserialize from dictionary."""
        return cls(
            hash=parse_hash32(data["hash"]),
            direction=ProofDirection(data["direction"]),
        )


@dataclass
class MerkleProof:
    """
    Merkle inclusion proof for a leaf.

    Attributes:
        leaf: The leaf being proven
        leaf_index: Position of the leaf in insertion order
        proof_path: Sibling hashes with directions, leaf level first
        root: Expected Merkle root
        tree_size: Total number of leaves in the tree
    """

    leaf: Hash32
    leaf_index: int
    proof_path: list[ProofElement]
    root: Hash32
    tree_size: int

    def to_dict(self) -> dict[str, Any]:
        """Serialize proof to dictionary with hex-encoded hashes."""
        return {
            "leaf": self.leaf.hex(),
            "leaf_index": self.leaf_index,
            "proof_path": [e.to_dict() for e in self.proof_path],
            "root": self.root.hex(),
            "tree_size": self.tree_size,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MerkleProof":
        """Deserialize proof from dictionary."""
        return cls(
            leaf=parse_hash32(data["leaf"]),
            leaf_index=data["leaf_index"],
            proof_path=[ProofElement.from_dict(e) for e in data["proof_path"]],
            root=parse_hash32(data["root"]),
            tree_size=data["tree_size"],
        )


def parse_hash32(value: bytes | str) -> Hash32:
    """
    Coerce a 32-byte hash given as raw bytes or a 64-char hex string.

    Raises:
        ValueError: If the value is not a 32-byte hash
    """
    if isinstance(value, str):
        text = value[2:] if value.startswith(("0x", "0X")) else value
        if len(text) != HASH_SIZE * 2:
            raise ValueError(f"Expected {HASH_SIZE * 2} hex characters, got {len(text)}")
        try:
            return bytes.fromhex(text)
        except ValueError as e:
            raise ValueError(f"Invalid hex hash: {value!r}") from e

    value = bytes(value)
    if len(value) != HASH_SIZE:
        raise ValueError(f"Expected {HASH_SIZE} bytes, got {len(value)}")
    return value


def hash_pair(left: Hash32, right: Hash32) -> Hash32:
    """
    Compute the hash of an internal node.

    Args:
        left: Left child hash (32 bytes)
        right: Right child hash (32 bytes)

    Returns:
        SHA-256 digest of left || right
    """
    hasher = hashlib.sha256()
    hasher.update(left)
    hasher.update(right)
    return hasher.digest()


def next_level(level: list[Hash32]) -> list[Hash32]:
    """Combine one level pairwise, duplicating a trailing odd node."""
    parents = []
    for i in range(0, len(level), 2):
        left = level[i]
        right = level[i + 1] if i + 1 < len(level) else left
        parents.append(hash_pair(left, right))
    return parents


def merkle_root(leaves: list[Hash32]) -> Hash32:
    """
    Compute the Merkle root of an ordered leaf sequence.

    Rebuilds every level from scratch; a single leaf is its own root.

    Raises:
        EmptyLeavesError: If leaves is empty
    """
    if not leaves:
        raise EmptyLeavesError("Cannot compute Merkle root of empty leaves")

    level = list(leaves)
    while len(level) > 1:
        level = next_level(level)
    return level[0]


class MerkleTree:
    """
    Merkle tree over caller-supplied 32-byte leaves.

    Keeps every level so proofs can be generated without rehashing.

    Example:
        >>> tree = MerkleTree.from_leaves([bytes(32), bytes([1]) * 32])
        >>> proof = tree.get_proof(0)
        >>> verify_proof(proof)
        True
    """

    def __init__(self, levels: list[list[Hash32]]) -> None:
        """
        Initialize Merkle tree (internal use).

        Use from_leaves() to construct trees.
        """
        self._levels = levels

    @classmethod
    def from_leaves(cls, leaves: list[Hash32]) -> "MerkleTree":
        """
        Construct a Merkle tree from leaf hashes.

        Raises:
            EmptyLeavesError: If leaves is empty
        """
        if not leaves:
            raise EmptyLeavesError("Cannot create Merkle tree from empty leaves")

        levels = [[parse_hash32(leaf) for leaf in leaves]]
        while len(levels[-1]) > 1:
            levels.append(next_level(levels[-1]))
        return cls(levels)

    @property
    def root(self) -> Hash32:
        """Get the root hash (Merkle root)."""
        return self._levels[-1][0]

    @property
    def levels(self) -> list[list[Hash32]]:
        """Get all levels, leaves first."""
        return [list(level) for level in self._levels]

    @property
    def leaf_count(self) -> int:
        """Get the number of leaves."""
        return len(self._levels[0])

    def get_leaf(self, index: int) -> Hash32:
        """
        Get a leaf by index.

        Raises:
            IndexError: If index out of bounds
        """
        if index < 0 or index >= self.leaf_count:
            raise IndexError(f"Leaf index {index} out of bounds")
        return self._levels[0][index]

    def get_proof(self, leaf_index: int) -> MerkleProof:
        """
        Generate inclusion proof for a leaf.

        A node left unpaired at the end of an odd level gets itself as
        its right-hand sibling.

        Raises:
            IndexError: If leaf_index out of bounds
        """
        if leaf_index < 0 or leaf_index >= self.leaf_count:
            raise IndexError(f"Leaf index {leaf_index} out of bounds")

        proof_path = []
        index = leaf_index
        for level in self._levels[:-1]:
            if index % 2 == 0:
                sibling = level[index + 1] if index + 1 < len(level) else level[index]
                proof_path.append(ProofElement(hash=sibling, direction=ProofDirection.RIGHT))
            else:
                proof_path.append(ProofElement(hash=level[index - 1], direction=ProofDirection.LEFT))
            index //= 2

        return MerkleProof(
            leaf=self._levels[0][leaf_index],
            leaf_index=leaf_index,
            proof_path=proof_path,
            root=self.root,
            tree_size=self.leaf_count,
        )

    def get_all_proofs(self) -> list[MerkleProof]:
        """Generate proofs for all leaves."""
        return [self.get_proof(i) for i in range(self.leaf_count)]


class MerkleFrontier:
    """
    Append-only frontier yielding the same root as merkle_root().

    Stores one hash per level: the most recent complete subtree whose
    right sibling is not yet complete. Appends and root computation are
    O(log n) hashes instead of a full rebuild.
    """

    def __init__(self) -> None:
        self._nodes: list[Hash32 | None] = []
        self._count = 0

    @classmethod
    def from_leaves(cls, leaves: list[Hash32]) -> "MerkleFrontier":
        """Build a frontier by appending each leaf in order."""
        frontier = cls()
        for leaf in leaves:
            frontier.append(leaf)
        return frontier

    @property
    def count(self) -> int:
        """Number of leaves appended so far."""
        return self._count

    def copy(self) -> "MerkleFrontier":
        clone = MerkleFrontier()
        clone._nodes = list(self._nodes)
        clone._count = self._count
        return clone

    def append(self, leaf: Hash32) -> None:
        """Append a leaf, merging completed subtrees upward."""
        node = leaf
        level = 0
        while (self._count >> level) & 1:
            node = hash_pair(self._nodes[level], node)
            self._nodes[level] = None
            level += 1
        if level == len(self._nodes):
            self._nodes.append(node)
        else:
            self._nodes[level] = node
        self._count += 1

    def root(self) -> Hash32:
        """
        Compute the root under the duplicate-last-node rule.

        Raises:
            EmptyLeavesError: If no leaves were appended
        """
        if self._count == 0:
            raise EmptyLeavesError("Cannot compute Merkle root of empty leaves")

        # The lowest set bit marks the level where the rightmost node
        # is a complete subtree; below it every node is paired.
        level = (self._count & -self._count).bit_length() - 1
        node = self._nodes[level]
        width = self._count >> level

        while width > 1:
            if width % 2:
                node = hash_pair(node, node)
            else:
                node = hash_pair(self._nodes[level], node)
            level += 1
            width = (width + 1) // 2
        return node


def compute_root_from_proof(leaf: Hash32, proof_path: list[ProofElement]) -> Hash32:
    """
    Compute the root hash from a leaf and proof path.

    Args:
        leaf: Leaf hash
        proof_path: List of proof elements

    Returns:
        Computed root hash
    """
    current = leaf

    for element in proof_path:
        if element.direction == ProofDirection.LEFT:
            current = hash_pair(element.hash, current)
        else:
            current = hash_pair(current, element.hash)

    return current


def verify_proof(proof: MerkleProof) -> bool:
    """
    Verify a Merkle inclusion proof.

    Reconstructs the root from the leaf and proof path, then compares
    with the expected root.
    """
    return compute_root_from_proof(proof.leaf, proof.proof_path) == proof.root


def verify_proof_against_root(
    leaf: Hash32,
    proof_path: list[ProofElement],
    expected_root: Hash32,
) -> bool:
    """Verify a proof against a specific root hash."""
    return compute_root_from_proof(leaf, proof_path) == expected_root
