"""
Merkle Accumulator - Service Errors
"""


class AccumulatorServiceError(Exception):
    """Base exception for accumulator service errors."""

    pass


class AccumulatorNotFoundError(AccumulatorServiceError):
    """Raised when no accumulator is stored under the given id."""

    def __init__(self, accumulator_id: str) -> None:
        super().__init__(f"Accumulator not found: {accumulator_id}")
        self.accumulator_id = accumulator_id


class AccumulatorExistsError(AccumulatorServiceError):
    """Raised when provisioning an id that is already in use."""

    def __init__(self, accumulator_id: str) -> None:
        super().__init__(f"Accumulator already exists: {accumulator_id}")
        self.accumulator_id = accumulator_id


class ConcurrentModificationError(AccumulatorServiceError):
    """Raised when a stored accumulator changed since it was loaded."""

    def __init__(self, accumulator_id: str, expected_count: int) -> None:
        super().__init__(
            f"Accumulator {accumulator_id} was modified concurrently "
            f"(expected leaf count {expected_count})"
        )
        self.accumulator_id = accumulator_id
        self.expected_count = expected_count
