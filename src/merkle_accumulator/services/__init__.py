"""
Merkle Accumulator - Services Package

Provides the accumulator service and its storage collaborators.

Note: Imports are performed lazily to avoid circular import issues.
Use direct imports from submodules when needed:
    from merkle_accumulator.services.accumulator_service import AccumulatorService
    from merkle_accumulator.services.store import FileAccumulatorStore
    from merkle_accumulator.db.repository import SqlAccumulatorStore
"""
