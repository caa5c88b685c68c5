"""
Merkle Accumulator - Database Package

Provides async database session management and repository layer.
"""

from merkle_accumulator.db.session import (
    accumulators,
    close_db,
    create_session_factory,
    get_engine,
    init_db,
    metadata,
)

__all__ = [
    "accumulators",
    "metadata",
    "get_engine",
    "create_session_factory",
    "init_db",
    "close_db",
]
