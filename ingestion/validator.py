"""
Business-rule validation for sensor readings.

The validator is pure: it evaluates every rule, never stops at the first
violation and never performs I/O. Its clock is injectable so the future
tolerance boundary can be tested deterministically.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

from ingestion.models import SensorReading, TelemetryKind

# Gateways clocks drift; readings up to an hour ahead of ours are accepted
FUTURE_TOLERANCE = timedelta(hours=1)


@dataclass(frozen=True)
class FieldViolation:
    """A single broken rule on one field of a reading."""
    field: str
    message: str

    def to_dict(self) -> dict:
        return {"field": self.field, "error": self.message}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(value: datetime) -> datetime:
    # Naive timestamps are UTC. Aware ones keep their offset: converting the
    # extremes of the datetime range to UTC overflows, subtraction does not.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SensorReadingValidator:
    """
    Applies the ingestion rules to a SensorReading.

    Rules:
    - plotId must be present and not the nil UUID
    - measuredAt must be present and at most FUTURE_TOLERANCE ahead of now
    - kind must be a TelemetryKind
    - value must be a finite number
    """

    def __init__(
        self,
        future_tolerance: timedelta = FUTURE_TOLERANCE,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.future_tolerance = future_tolerance
        self._clock = clock or _utc_now

    def validate(self, reading: SensorReading) -> Tuple[FieldViolation, ...]:
        """
        Return every violation in field order; an empty tuple means the
        reading is valid.
        """
        violations: List[FieldViolation] = []

        if reading.plot_id is None or reading.plot_id.int == 0:
            violations.append(FieldViolation("plotId", "plotId is required"))

        measured_at = reading.measured_at
        if measured_at is None or measured_at.replace(tzinfo=None) == datetime.min:
            violations.append(FieldViolation("measuredAt", "measuredAt is required"))
        elif _as_aware(measured_at) - _as_aware(self._clock()) > self.future_tolerance:
            violations.append(
                FieldViolation("measuredAt", "measuredAt cannot be in the future (1 hour tolerance)")
            )

        if not isinstance(reading.kind, TelemetryKind):
            violations.append(FieldViolation("kind", "Invalid telemetry type"))

        if reading.value is None or not math.isfinite(reading.value):
            violations.append(FieldViolation("value", "value must be a valid number"))

        return tuple(violations)

    def is_valid(self, reading: SensorReading) -> bool:
        return not self.validate(reading)
