"""
Merkle Accumulator - Accumulator Repository

Database operations for accumulator records, plus a storage collaborator
that runs each operation in its own session.
"""

import structlog
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from merkle_accumulator.accumulator.codec import decode_record, encode_record
from merkle_accumulator.accumulator.state import MerkleAccumulator, RootStrategy
from merkle_accumulator.crypto.merkle import Hash32
from merkle_accumulator.services.errors import (
    AccumulatorExistsError,
    AccumulatorNotFoundError,
    ConcurrentModificationError,
)
from merkle_accumulator.services.store import AccumulatorStore

logger = structlog.get_logger(__name__)


class AccumulatorRepository:
    """Repository for accumulator database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session
        """
        self._session = session

    async def insert(self, accumulator_id: str, acc: MerkleAccumulator) -> None:
        """
        Insert a new accumulator row.

        Raises:
            AccumulatorExistsError: If the id is already taken
        """
        query = text("""
            INSERT INTO accumulators (id, record, leaf_count, root)
            VALUES (:id, :record, :leaf_count, :root)
        """)

        try:
            await self._session.execute(query, _row_params(accumulator_id, acc))
            await self._session.commit()
        except IntegrityError as e:
            await self._session.rollback()
            raise AccumulatorExistsError(accumulator_id) from e

    async def get_record(self, accumulator_id: str) -> bytes | None:
        """
        Get the raw record for an accumulator.

        Returns:
            Record bytes or None if not found
        """
        query = text("""
            SELECT record
            FROM accumulators
            WHERE id = :id
        """)

        result = await self._session.execute(query, {"id": accumulator_id})
        row = result.fetchone()
        return bytes(row.record) if row else None

    async def update(
        self,
        accumulator_id: str,
        acc: MerkleAccumulator,
        expected_count: int,
        expected_root: Hash32,
    ) -> bool:
        """
        Compare-and-set update keyed on the stored leaf count and root.

        Returns:
            True if the row was updated, False if it was missing or changed
        """
        query = text("""
            UPDATE accumulators
            SET record = :record,
                leaf_count = :leaf_count,
                root = :root
            WHERE id = :id
              AND leaf_count = :expected_count
              AND root = :expected_root
        """)

        params = _row_params(accumulator_id, acc)
        params["expected_count"] = expected_count
        params["expected_root"] = expected_root.hex()

        result = await self._session.execute(query, params)
        await self._session.commit()
        return result.rowcount == 1

    async def exists(self, accumulator_id: str) -> bool:
        query = text("SELECT 1 FROM accumulators WHERE id = :id")
        result = await self._session.execute(query, {"id": accumulator_id})
        return result.fetchone() is not None

    async def delete(self, accumulator_id: str) -> bool:
        """
        Delete an accumulator row.

        Returns:
            True if a row was deleted
        """
        query = text("DELETE FROM accumulators WHERE id = :id")
        result = await self._session.execute(query, {"id": accumulator_id})
        await self._session.commit()
        return result.rowcount == 1

    async def list_ids(self) -> list[str]:
        query = text("SELECT id FROM accumulators ORDER BY id")
        result = await self._session.execute(query)
        return [row.id for row in result.fetchall()]


def _row_params(accumulator_id: str, acc: MerkleAccumulator) -> dict[str, object]:
    snapshot = acc.snapshot()
    return {
        "id": accumulator_id,
        "record": encode_record(acc),
        "leaf_count": snapshot.leaf_count,
        "root": snapshot.root.hex(),
    }


class SqlAccumulatorStore(AccumulatorStore):
    """Storage collaborator backed by the accumulators table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        root_strategy: RootStrategy = "full",
    ) -> None:
        self.root_strategy = root_strategy
        self._session_factory = session_factory

    async def create(self, accumulator_id: str, acc: MerkleAccumulator) -> None:
        async with self._session_factory() as session:
            await AccumulatorRepository(session).insert(accumulator_id, acc)

    async def load(self, accumulator_id: str) -> MerkleAccumulator:
        async with self._session_factory() as session:
            record = await AccumulatorRepository(session).get_record(accumulator_id)
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
        async with self._session_factory() as session:
            repo = AccumulatorRepository(session)
            if await repo.update(accumulator_id, acc, expected_count, expected_root):
                return
            if not await repo.exists(accumulator_id):
                raise AccumulatorNotFoundError(accumulator_id)

        logger.warning(
            "Accumulator changed since load",
            accumulator_id=accumulator_id,
            expected_count=expected_count,
            expected_root=expected_root.hex(),
        )
        raise ConcurrentModificationError(accumulator_id, expected_count)

    async def delete(self, accumulator_id: str) -> None:
        async with self._session_factory() as session:
            if not await AccumulatorRepository(session).delete(accumulator_id):
                raise AccumulatorNotFoundError(accumulator_id)

    async def list_ids(self) -> list[str]:
        async with self._session_factory() as session:
            return await AccumulatorRepository(session).list_ids()
