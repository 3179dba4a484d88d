"""
Data models for sensor telemetry ingestion.

SensorReading is the inbound request body submitted by field-device
gateways. SensorMessage is the contract published downstream; it is only
built from a reading that has passed validation.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TelemetryKind(str, Enum):
    """
    Closed set of telemetry types a gateway can report.

    Gateways send the name (any case) or, for older firmware, the numeric
    code in LEGACY_KIND_CODES.
    """
    TEMPERATURE = "Temperature"
    HUMIDITY = "Humidity"
    PRECIPITATION = "Precipitation"

    @property
    def code(self) -> int:
        return KIND_CODES[self]


KIND_CODES: Dict[TelemetryKind, int] = {
    TelemetryKind.TEMPERATURE: 0,
    TelemetryKind.HUMIDITY: 1,
    TelemetryKind.PRECIPITATION: 2,
}

LEGACY_KIND_CODES: Dict[int, TelemetryKind] = {code: kind for kind, code in KIND_CODES.items()}

_KINDS_BY_NAME: Dict[str, TelemetryKind] = {kind.value.lower(): kind for kind in TelemetryKind}


def parse_kind(raw: Union[TelemetryKind, int, str]) -> Union[TelemetryKind, int, str]:
    """
    Resolve a wire value to a TelemetryKind.

    Unrecognised names and codes are returned unchanged so the validator can
    report them alongside every other violation.
    """
    if isinstance(raw, TelemetryKind):
        return raw
    if isinstance(raw, int):
        return LEGACY_KIND_CODES.get(raw, raw)

    name = raw.strip()
    try:
        code = int(name)
    except ValueError:
        return _KINDS_BY_NAME.get(name.lower(), raw)
    return LEGACY_KIND_CODES.get(code, raw)


class SensorReading(BaseModel):
    """
    A single timestamped measurement submitted by a gateway.

    Fields are optional at the schema level so that missing values are
    reported by SensorReadingValidator together with the other rules.
    Shape errors (a plotId that is not a UUID, a non-numeric value) are
    rejected by pydantic before the reading is built.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    plot_id: Optional[UUID] = Field(default=None, alias="plotId")
    measured_at: Optional[datetime] = Field(default=None, alias="measuredAt")
    kind: Optional[Union[TelemetryKind, int, str]] = None
    value: Optional[float] = None

    @field_validator("plot_id", mode="before")
    @classmethod
    def empty_plot_id_is_missing(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("kind", mode="before")
    @classmethod
    def resolve_kind(cls, v: Any) -> Any:
        if v is None:
            return None
        if isinstance(v, bool) or not isinstance(v, (TelemetryKind, int, str)):
            raise ValueError("kind must be a telemetry type name or numeric code")
        return parse_kind(v)

    @property
    def kind_label(self) -> str:
        """Kind as used in metric attributes and log fields."""
        if isinstance(self.kind, TelemetryKind):
            return self.kind.value
        return "Unknown" if self.kind is None else str(self.kind)

    @property
    def plot_label(self) -> str:
        return str(self.plot_id) if self.plot_id is not None else ""


@dataclass(frozen=True)
class SensorMessage:
    """Message published to the downstream queue for one validated reading."""
    plot_id: UUID
    measured_at: datetime
    kind: TelemetryKind
    value: float

    @classmethod
    def from_reading(cls, reading: SensorReading) -> "SensorMessage":
        """
        Copy a validated reading into a message without transforming values.

        Raises:
            ValueError: If the reading is missing a field or has an unknown kind
        """
        if (
            reading.plot_id is None
            or reading.measured_at is None
            or reading.value is None
            or not isinstance(reading.kind, TelemetryKind)
        ):
            raise ValueError("Only validated readings can be converted to messages")
        return cls(
            plot_id=reading.plot_id,
            measured_at=reading.measured_at,
            kind=reading.kind,
            value=reading.value,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "plotId": str(self.plot_id),
            "measuredAt": self.measured_at.isoformat(),
            "kind": self.kind.value,
            "value": self.value,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())
