"""
Outcomes of ingesting sensor readings.

Ingestion reports outcomes as values rather than exceptions: one of
IngestSuccess, ValidationFailure or PublishFailure per reading, and a
BatchResult holding them in submission order.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from ingestion.models import SensorMessage, SensorReading
from ingestion.validator import FieldViolation


@dataclass(frozen=True)
class IngestSuccess:
    message: SensorMessage

    @property
    def succeeded(self) -> bool:
        return True


@dataclass(frozen=True)
class ValidationFailure:
    """The reading broke one or more rules and was not published."""
    reading: SensorReading
    violations: Tuple[FieldViolation, ...]

    @property
    def succeeded(self) -> bool:
        return False


@dataclass(frozen=True)
class PublishFailure:
    """The publisher raised; `error` is the exception it raised, unchanged."""
    reading: SensorReading
    error: BaseException

    @property
    def succeeded(self) -> bool:
        return False


IngestOutcome = Union[IngestSuccess, ValidationFailure, PublishFailure]
IngestFailure = Union[ValidationFailure, PublishFailure]


@dataclass(frozen=True)
class BatchResult:
    """
    Joined outcome of a batch.

    `outcomes` is in submission order regardless of completion order, so
    `first_failure` is deterministic for a given input and publisher.
    """
    count: int
    outcomes: Tuple[IngestOutcome, ...] = field(default_factory=tuple)

    @property
    def succeeded(self) -> bool:
        return all(outcome.succeeded for outcome in self.outcomes)

    @property
    def failures(self) -> List[Tuple[int, IngestFailure]]:
        return [
            (index, outcome)
            for index, outcome in enumerate(self.outcomes)
            if not outcome.succeeded
        ]

    @property
    def first_failure(self) -> Optional[Tuple[int, IngestFailure]]:
        failures = self.failures
        return failures[0] if failures else None

    @property
    def published_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.succeeded)
