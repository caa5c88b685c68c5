"""
Merkle Accumulator - Storage Collaborators

Stores provision and persist accumulators as fixed-size records.
Every store keeps the encoded record so the binary layout is the single
source of truth regardless of backend.
"""

import asyncio
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

import structlog

from merkle_accumulator.accumulator.codec import decode_record, encode_record, read_header
from merkle_accumulator.accumulator.state import MerkleAccumulator, RootStrategy
from merkle_accumulator.crypto.merkle import Hash32
from merkle_accumulator.services.errors import (
    AccumulatorExistsError,
    AccumulatorNotFoundError,
    ConcurrentModificationError,
)

logger = structlog.get_logger(__name__)


class AccumulatorStore(ABC):
    """Storage collaborator for accumulator records."""

    root_strategy: RootStrategy = "full"

    @abstractmethod
    async def create(self, accumulator_id: str, acc: MerkleAccumulator) -> None:
        """Persist a freshly initialized accumulator."""

    @abstractmethod
    async def load(self, accumulator_id: str) -> MerkleAccumulator:
        """Load an accumulator, raising AccumulatorNotFoundError if absent."""

    @abstractmethod
    async def save(
        self,
        accumulator_id: str,
        acc: MerkleAccumulator,
        expected_count: int,
        expected_root: Hash32,
    ) -> None:
        """
        Persist an updated accumulator.

        The write only applies if the stored leaf count and root still
        equal expected_count and expected_root; otherwise
        ConcurrentModificationError is raised. Checking the root as well
        catches a record that was deleted, recreated and refilled to the
        same count.
        """

    @abstractmethod
    async def delete(self, accumulator_id: str) -> None:
        """Remove an accumulator record."""

    @abstractmethod
    async def list_ids(self) -> list[str]:
        """List stored accumulator ids."""


class InMemoryAccumulatorStore(AccumulatorStore):
    """Process-local store keeping encoded records in a dict."""

    def __init__(self, root_strategy: RootStrategy = "full") -> None:
        self.root_strategy = root_strategy
        self._records: dict[str, bytes] = {}
        self._lock = asyncio.Lock()

    async def create(self, accumulator_id: str, acc: MerkleAccumulator) -> None:
        async with self._lock:
            if accumulator_id in self._records:
                raise AccumulatorExistsError(accumulator_id)
            self._records[accumulator_id] = encode_record(acc)

    async def load(self, accumulator_id: str) -> MerkleAccumulator:
        record = self._records.get(accumulator_id)
        if record is None:
            raise AccumulatorNotFoundError(accumulator_id)
        return decode_record(record, root_strategy=self.root_strategy)

    async def save(
        self,
        accumulator_id: str,
        acc: MerkleAccumulator,
        expected_count: int,
        expected_root: Hash32,
    ) -> None:
        async with self._lock:
            current = self._records.get(accumulator_id)
            if current is None:
                raise AccumulatorNotFoundError(accumulator_id)
            if read_header(current) != (expected_root, expected_count):
                raise ConcurrentModificationError(accumulator_id, expected_count)
            self._records[accumulator_id] = encode_record(acc)

    async def delete(self, accumulator_id: str) -> None:
        async with self._lock:
            if self._records.pop(accumulator_id, None) is None:
                raise AccumulatorNotFoundError(accumulator_id)

    async def list_ids(self) -> list[str]:
        return sorted(self._records)


class FileAccumulatorStore(AccumulatorStore):
    """
    One record file per accumulator under a directory.

    Files are named <id>.acc and replaced atomically on every write.
    """

    SUFFIX = ".acc"

    def __init__(self, directory: str | Path, root_strategy: RootStrategy = "full") -> None:
        self.root_strategy = root_strategy
        self._directory = Path(directory)
        self._lock = asyncio.Lock()

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, accumulator_id: str) -> Path:
        if not accumulator_id or any(sep in accumulator_id for sep in ("/", "\\", "..")):
            raise ValueError(f"Invalid accumulator id: {accumulator_id!r}")
        return self._directory / f"{accumulator_id}{self.SUFFIX}"

    def _write(self, path: Path, record: bytes) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(record)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    async def create(self, accumulator_id: str, acc: MerkleAccumulator) -> None:
        path = self._path(accumulator_id)
        async with self._lock:
            if path.exists():
                raise AccumulatorExistsError(accumulator_id)
            self._write(path, encode_record(acc))
        logger.debug("Accumulator file created", path=str(path))

    async def load(self, accumulator_id: str) -> MerkleAccumulator:
        path = self._path(accumulator_id)
        try:
            record = path.read_bytes()
        except FileNotFoundError:
            raise AccumulatorNotFoundError(accumulator_id) from None
        return decode_record(record, root_strategy=self.root_strategy)

    async def save(
        self,
        accumulator_id: str,
        acc: MerkleAccumulator,
        expected_count: int,
        expected_root: Hash32,
    ) -> None:
        path = self._path(accumulator_id)
        async with self._lock:
            try:
                current = path.read_bytes()
            except FileNotFoundError:
                raise AccumulatorNotFoundError(accumulator_id) from None
            if read_header(current) != (expected_root, expected_count):
                raise ConcurrentModificationError(accumulator_id, expected_count)
            self._write(path, encode_record(acc))

    async def delete(self, accumulator_id: str) -> None:
        path = self._path(accumulator_id)
        async with self._lock:
            try:
                path.unlink()
            except FileNotFoundError:
                raise AccumulatorNotFoundError(accumulator_id) from None

    async def list_ids(self) -> list[str]:
        if not self._directory.is_dir():
            return []
        return sorted(p.stem for p in self._directory.glob(f"*{self.SUFFIX}"))
