"""
Merkle Accumulator - Cryptographic Utilities

Provides Merkle root computation, proof generation, and verification.
"""

from merkle_accumulator.crypto.merkle import (
    HASH_SIZE,
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

__all__ = [
    "HASH_SIZE",
    "ZERO_HASH",
    "EmptyLeavesError",
    "MerkleFrontier",
    "MerkleProof",
    "MerkleTree",
    "ProofDirection",
    "ProofElement",
    "compute_root_from_proof",
    "hash_pair",
    "merkle_root",
    "parse_hash32",
    "verify_proof",
    "verify_proof_against_root",
]
