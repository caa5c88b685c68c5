"""
Unit tests for the Merkle tree implementation.

Includes test vectors and edge case coverage.
"""

import hashlib

import pytest

from merkle_accumulator.crypto.merkle import (
    ZERO_HASH,
    EmptyLeavesError,
    MerkleFrontier,
    MerkleProof,
    MerkleTree,
    ProofDirection,
    ProofElement,
    compute_root_from_proof,
    hash_pair,
    merkle_root,
    parse_hash32,
    verify_proof,
    verify_proof_against_root,
)

from conftest import make_leaf


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


class TestHashFunctions:
    """Tests for hash helpers."""

    def test_hash_pair_is_plain_sha256_of_concatenation(self) -> None:
        """Test that parents hash left || right with no prefix."""
        left = b"\xaa" * 32
        right = b"\xbb" * 32

        assert hash_pair(left, right) == sha256(left + right)

    def test_hash_pair_order_matters(self) -> None:
        """Test that swapping children changes the parent."""
        a, b = make_leaf(0), make_leaf(1)
        assert hash_pair(a, b) != hash_pair(b, a)

    def test_parse_hash32_bytes(self) -> None:
        """Test that raw 32-byte values pass through."""
        value = make_leaf(3)
        assert parse_hash32(value) == value

    def test_parse_hash32_hex(self) -> None:
        """Test hex decoding, with and without 0x prefix."""
        value = make_leaf(4)
        assert parse_hash32(value.hex()) == value
        assert parse_hash32("0x" + value.hex()) == value

    @pytest.mark.parametrize("bad", [b"", b"\x00" * 31, b"\x00" * 33, "ab" * 31, "zz" * 32])
    def test_parse_hash32_rejects_wrong_size(self, bad: bytes | str) -> None:
        """Test that anything other than 32 bytes is rejected."""
        with pytest.raises(ValueError):
            parse_hash32(bad)


class TestMerkleRoot:
    """Tests for merkle_root()."""

    def test_empty_raises(self) -> None:
        """Test that an empty sequence has no root."""
        with pytest.raises(EmptyLeavesError, match="empty"):
            merkle_root([])

    def test_single_leaf_is_root(self) -> None:
        """Test single-leaf identity."""
        leaf = make_leaf(0)
        assert merkle_root([leaf]) == leaf

    def test_two_leaves(self) -> None:
        """Test two-leaf root."""
        a, b = make_leaf(0), make_leaf(1)
        assert merkle_root([a, b]) == sha256(a + b)

    def test_three_leaves_duplicates_last(self) -> None:
        """Test the odd-duplication rule."""
        a, b, c = make_leaf(0), make_leaf(1), make_leaf(2)

        expected = sha256(sha256(a + b) + sha256(c + c))
        assert merkle_root([a, b, c]) == expected

    def test_five_leaves_duplicates_at_every_odd_level(self) -> None:
        """Test duplication applies on upper levels too."""
        a, b, c, d, e = (make_leaf(i) for i in range(5))

        ee = sha256(e + e)
        level2_right = sha256(ee + ee)
        expected = sha256(sha256(sha256(a + b) + sha256(c + d)) + level2_right)

        assert merkle_root([a, b, c, d, e]) == expected

    def test_four_leaves(self) -> None:
        """Test perfect binary tree."""
        a, b, c, d = (make_leaf(i) for i in range(4))
        assert merkle_root([a, b, c, d]) == sha256(sha256(a + b) + sha256(c + d))

    def test_deterministic(self, leaves: list[bytes]) -> None:
        """Test that the same leaves produce the same root."""
        assert merkle_root(leaves) == merkle_root(list(leaves))

    def test_order_sensitive(self) -> None:
        """Test that leaf order matters."""
        a, b = make_leaf(0), make_leaf(1)
        assert merkle_root([a, b]) != merkle_root([b, a])

    def test_duplicates_accepted(self) -> None:
        """Test that duplicate and zero leaves are hashed like any other."""
        assert merkle_root([ZERO_HASH, ZERO_HASH]) == sha256(ZERO_HASH * 2)

    def test_odd_count_differs_from_promotion(self) -> None:
        """Test that the last node is duplicated rather than promoted."""
        a, b, c = make_leaf(0), make_leaf(1), make_leaf(2)
        promoted = sha256(sha256(a + b) + c)
        assert merkle_root([a, b, c]) != promoted

    def test_does_not_mutate_input(self, leaves: list[bytes]) -> None:
        """Test that the input list is left intact."""
        original = list(leaves)
        merkle_root(leaves)
        assert leaves == original


class TestMerkleTree:
    """Tests for MerkleTree construction."""

    def test_root_matches_merkle_root(self, leaves: list[bytes]) -> None:
        """Test that the tree root agrees with merkle_root for all sizes."""
        for n in range(1, len(leaves) + 1):
            assert MerkleTree.from_leaves(leaves[:n]).root == merkle_root(leaves[:n])

    def test_levels(self) -> None:
        """Test level sizes halve rounding up."""
        tree = MerkleTree.from_leaves([make_leaf(i) for i in range(5)])
        assert [len(level) for level in tree.levels] == [5, 3, 2, 1]

    def test_empty_raises(self) -> None:
        """Test that empty leaves raise."""
        with pytest.raises(EmptyLeavesError):
            MerkleTree.from_leaves([])

    def test_get_leaf(self) -> None:
        """Test getting leaves by index."""
        tree = MerkleTree.from_leaves([make_leaf(0), make_leaf(1)])

        assert tree.leaf_count == 2
        assert tree.get_leaf(1) == make_leaf(1)

        with pytest.raises(IndexError):
            tree.get_leaf(2)

        with pytest.raises(IndexError):
            tree.get_leaf(-1)


class TestProofs:
    """Tests for proof generation and verification."""

    def test_single_leaf_proof_is_empty(self) -> None:
        """Test proof for single leaf tree."""
        leaf = make_leaf(0)
        proof = MerkleTree.from_leaves([leaf]).get_proof(0)

        assert proof.proof_path == []
        assert proof.root == leaf
        assert verify_proof(proof)

    def test_lone_last_node_is_its_own_sibling(self) -> None:
        """Test that the duplicated node appears in the path."""
        a, b, c = make_leaf(0), make_leaf(1), make_leaf(2)
        proof = MerkleTree.from_leaves([a, b, c]).get_proof(2)

        assert proof.proof_path[0] == ProofElement(hash=c, direction=ProofDirection.RIGHT)
        assert proof.proof_path[1] == ProofElement(hash=sha256(a + b), direction=ProofDirection.LEFT)
        assert verify_proof(proof)

    def test_all_proofs_verify(self, leaves: list[bytes]) -> None:
        """Test every proof for every tree size up to capacity."""
        for n in range(1, len(leaves) + 1):
            tree = MerkleTree.from_leaves(leaves[:n])
            for proof in tree.get_all_proofs():
                assert verify_proof(proof), f"Proof for leaf {proof.leaf_index} of {n} failed"

    def test_out_of_bounds(self) -> None:
        """Test that out-of-bounds proof request raises."""
        tree = MerkleTree.from_leaves([make_leaf(0), make_leaf(1)])

        with pytest.raises(IndexError):
            tree.get_proof(2)

    def test_tampered_leaf_fails(self) -> None:
        """Test that a swapped leaf fails verification."""
        tree = MerkleTree.from_leaves([make_leaf(i) for i in range(4)])
        proof = tree.get_proof(0)
        proof.leaf = make_leaf(9)

        assert not verify_proof(proof)

    def test_tampered_path_fails(self) -> None:
        """Test that a modified sibling fails verification."""
        tree = MerkleTree.from_leaves([make_leaf(i) for i in range(4)])
        proof = tree.get_proof(0)
        proof.proof_path[0] = ProofElement(hash=ZERO_HASH, direction=proof.proof_path[0].direction)

        assert not verify_proof(proof)

    def test_verify_against_root(self) -> None:
        """Test verification against a specific root."""
        tree = MerkleTree.from_leaves([make_leaf(0), make_leaf(1)])
        proof = tree.get_proof(1)

        assert verify_proof_against_root(proof.leaf, proof.proof_path, tree.root)
        assert not verify_proof_against_root(proof.leaf, proof.proof_path, ZERO_HASH)
        assert compute_root_from_proof(proof.leaf, proof.proof_path) == tree.root

    def test_dict_serialization(self) -> None:
        """Test hex dictionary form."""
        tree = MerkleTree.from_leaves([make_leaf(i) for i in range(3)])
        proof = tree.get_proof(2)

        data = proof.to_dict()
        assert data["leaf"] == make_leaf(2).hex()
        assert data["root"] == tree.root.hex()
        assert data["proof_path"][0] == {"hash": make_leaf(2).hex(), "direction": "R"}

        restored = MerkleProof.from_dict(data)
        assert restored == proof
        assert verify_proof(restored)


class TestMerkleFrontier:
    """Tests for the incremental frontier."""

    def test_empty_raises(self) -> None:
        """Test that an empty frontier has no root."""
        with pytest.raises(EmptyLeavesError):
            MerkleFrontier().root()

    def test_matches_full_recompute_for_every_size(self, leaves: list[bytes]) -> None:
        """Test root equivalence after each append."""
        frontier = MerkleFrontier()
        for n, leaf in enumerate(leaves, start=1):
            frontier.append(leaf)
            assert frontier.count == n
            assert frontier.root() == merkle_root(leaves[:n]), f"Mismatch at {n} leaves"

    def test_matches_beyond_capacity(self) -> None:
        """Test equivalence for sizes past the accumulator capacity."""
        many = [make_leaf(i) for i in range(70)]
        frontier = MerkleFrontier.from_leaves(many)
        assert frontier.root() == merkle_root(many)

    def test_copy_is_independent(self) -> None:
        """Test that appending to a copy leaves the original alone."""
        frontier = MerkleFrontier.from_leaves([make_leaf(0)])
        clone = frontier.copy()
        clone.append(make_leaf(1))

        assert frontier.count == 1
        assert frontier.root() == make_leaf(0)
        assert clone.root() == sha256(make_leaf(0) + make_leaf(1))
