"""
Pytest configuration and shared fixtures for accumulator tests.
"""

import hashlib
from pathlib import Path

import pytest

from merkle_accumulator.accumulator.state import MerkleAccumulator
from merkle_accumulator.services.accumulator_service import AccumulatorService
from merkle_accumulator.services.store import FileAccumulatorStore, InMemoryAccumulatorStore


def make_leaf(i: int) -> bytes:
    """Deterministic 32-byte leaf for index i."""
    return hashlib.sha256(f"leaf-{i}".encode()).digest()


@pytest.fixture
def leaves() -> list[bytes]:
    """Thirty distinct leaves, enough to fill an accumulator."""
    return [make_leaf(i) for i in range(30)]


@pytest.fixture
def h1() -> bytes:
    return bytes((i + 1) % 256 for i in range(32))


@pytest.fixture
def h2() -> bytes:
    return bytes([1]) * 32


@pytest.fixture
def h3() -> bytes:
    return bytes([2]) * 32


@pytest.fixture(params=["full", "frontier"])
def accumulator(request: pytest.FixtureRequest) -> MerkleAccumulator:
    """Empty accumulator under each root strategy."""
    return MerkleAccumulator.initialize(root_strategy=request.param)


@pytest.fixture
def memory_store() -> InMemoryAccumulatorStore:
    return InMemoryAccumulatorStore()


@pytest.fixture
def file_store(tmp_path: Path) -> FileAccumulatorStore:
    return FileAccumulatorStore(tmp_path / "accumulators")


@pytest.fixture
def accumulator_service(memory_store: InMemoryAccumulatorStore) -> AccumulatorService:
    """Create an accumulator service for testing."""
    return AccumulatorService(store=memory_store)
