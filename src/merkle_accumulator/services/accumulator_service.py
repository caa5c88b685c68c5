"""
Merkle Accumulator - Accumulator Management Service

Provisions accumulators through a storage collaborator and serializes
leaf insertions so each accumulator has at most one writer at a time.
"""

import asyncio
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from uuid import uuid4

import structlog

from merkle_accumulator.accumulator.state import (
    EventListener,
    InvalidLeafError,
    LeafInserted,
    MaxLeavesExceeded,
    MerkleAccumulator,
)
from merkle_accumulator.core.config import settings
from merkle_accumulator.crypto.merkle import Hash32, MerkleProof, MerkleTree
from merkle_accumulator.metrics import AccumulatorMetrics, get_accumulator_metrics
from merkle_accumulator.services.errors import AccumulatorServiceError
from merkle_accumulator.services.store import AccumulatorStore, InMemoryAccumulatorStore

logger = structlog.get_logger(__name__)


@dataclass
class _IdLock:
    """Per-accumulator lock plus the number of tasks holding or awaiting it."""

    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class AccumulatorService:
    """
    Accumulator management service.

    Orchestrates:
    - Accumulator provisioning and teardown
    - Serialized load/insert/save per accumulator
    - New-root event fan-out
    - Metrics
    """

    def __init__(
        self,
        store: AccumulatorStore | None = None,
        metrics: AccumulatorMetrics | None = None,
    ) -> None:
        """
        Initialize accumulator service.

        Args:
            store: Storage collaborator (defaults to an in-memory store
                using the configured root strategy)
            metrics: Metrics sink (defaults to the global instance)
        """
        self._store = store or InMemoryAccumulatorStore(root_strategy=settings.ROOT_STRATEGY)
        self._metrics = metrics
        if self._metrics is None and settings.METRICS_ENABLED:
            self._metrics = get_accumulator_metrics()
            self._metrics.set_service_info(
                version=settings.VERSION,
                environment=settings.ENV,
                root_strategy=self._store.root_strategy,
            )
        self._locks: dict[str, _IdLock] = {}
        self._listeners: list[EventListener] = []

    @property
    def store(self) -> AccumulatorStore:
        return self._store

    def subscribe(self, listener: EventListener) -> None:
        """Register a listener for LeafInserted events."""
        self._listeners.append(listener)

    @asynccontextmanager
    async def _serialized(self, accumulator_id: str) -> AsyncIterator[None]:
        """Hold the lock for one accumulator, dropping it once nobody uses it."""
        entry = self._locks.get(accumulator_id)
        if entry is None:
            entry = self._locks[accumulator_id] = _IdLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[accumulator_id]

    async def initialize(
        self,
        accumulator_id: str | None = None,
    ) -> tuple[str, MerkleAccumulator]:
        """
        Provision a fresh, empty accumulator.

        Args:
            accumulator_id: Id to store it under (random when omitted)

        Returns:
            Tuple of (accumulator id, accumulator)

        Raises:
            AccumulatorExistsError: If the id is already in use
        """
        accumulator_id = accumulator_id or uuid4().hex
        acc = MerkleAccumulator.initialize(root_strategy=self._store.root_strategy)

        async with self._serialized(accumulator_id):
            await self._store.create(accumulator_id, acc)

        if self._metrics:
            self._metrics.record_initialized()

        logger.info(
            "Accumulator initialized",
            accumulator_id=accumulator_id,
            root_strategy=acc.root_strategy,
        )
        return accumulator_id, acc

    async def insert_leaf(self, accumulator_id: str, leaf: Hash32 | str) -> Hash32:
        """
        Append a leaf to a stored accumulator.

        Args:
            accumulator_id: Target accumulator
            leaf: 32-byte leaf hash (raw bytes or hex)

        Returns:
            The new root

        Raises:
            MaxLeavesExceeded: If the accumulator is full
            InvalidLeafError: If the leaf is not a 32-byte hash
            AccumulatorNotFoundError: If the accumulator does not exist
            ConcurrentModificationError: If another process wrote first
        """
        async with self._serialized(accumulator_id):
            acc = await self._store.load(accumulator_id)
            expected_count = acc.leaf_count
            expected_root = acc.root

            events: list[LeafInserted] = []
            acc.subscribe(events.append)

            started = time.perf_counter()
            if self._metrics:
                self._metrics.inserts_in_progress.inc()
            try:
                new_root = acc.insert_leaf(leaf)
            except MaxLeavesExceeded:
                if self._metrics:
                    self._metrics.record_insert_rejected("max_leaves_exceeded")
                logger.warning(
                    "Accumulator is full",
                    accumulator_id=accumulator_id,
                    leaf_count=expected_count,
                )
                raise
            except InvalidLeafError:
                if self._metrics:
                    self._metrics.record_insert_rejected("invalid_leaf")
                raise
            finally:
                if self._metrics:
                    self._metrics.inserts_in_progress.dec()
            duration = time.perf_counter() - started

            try:
                await self._store.save(accumulator_id, acc, expected_count, expected_root)
            except AccumulatorServiceError as e:
                if self._metrics:
                    self._metrics.record_insert_rejected("store_conflict")
                logger.error(
                    "Failed to persist accumulator",
                    accumulator_id=accumulator_id,
                    error=str(e),
                )
                raise

        if self._metrics:
            self._metrics.record_leaf_inserted(duration, acc.leaf_count)

        logger.info(
            "Leaf inserted",
            accumulator_id=accumulator_id,
            new_root=new_root.hex(),
            leaf_count=acc.leaf_count,
        )
        for event in events:
            for listener in list(self._listeners):
                listener(event)

        return new_root

    async def get(self, accumulator_id: str) -> MerkleAccumulator:
        """Load an accumulator snapshot."""
        async with self._serialized(accumulator_id):
            return await self._store.load(accumulator_id)

    async def get_proof(self, accumulator_id: str, leaf_index: int) -> MerkleProof:
        """
        Generate an inclusion proof against the current root.

        Raises:
            IndexError: If leaf_index is out of bounds
        """
        acc = await self.get(accumulator_id)
        snapshot = acc.snapshot()
        if not snapshot.leaves:
            raise IndexError(f"Leaf index {leaf_index} out of bounds")
        return MerkleTree.from_leaves(list(snapshot.leaves)).get_proof(leaf_index)

    async def delete(self, accumulator_id: str) -> None:
        """Tear down an accumulator."""
        async with self._serialized(accumulator_id):
            await self._store.delete(accumulator_id)

        if self._metrics:
            self._metrics.record_deleted()

        logger.info("Accumulator deleted", accumulator_id=accumulator_id)

    async def list_ids(self) -> list[str]:
        return await self._store.list_ids()
