"""Write-only destination for measurements and campaign errors."""

import uuid

from datetime import UTC, datetime

from typing import Protocol

from pydantic import BaseModel, Field

from src.finality.models import FinalityMeasurement


class MeasurementSink(Protocol):
    """Append target for campaign output. The engine never reads it back."""

    async def record_measurement(
        self, network_name: str, measurement: FinalityMeasurement
    ) -> str: ...

    async def record_error(
        self, network_name: str, context: str, error_detail: str
    ) -> None: ...


class RecordedMeasurement(BaseModel):
    id: str
    network: str
    measurement: FinalityMeasurement
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class RecordedError(BaseModel):
    network: str
    context: str
    error_detail: str
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class InMemoryMeasurementSink:
    """Keeps everything in lists; useful for tests and one-off campaigns."""

    def __init__(self) -> None:
        self.measurements: list[RecordedMeasurement] = []
        self.errors: list[RecordedError] = []

    async def record_measurement(
        self, network_name: str, measurement: FinalityMeasurement
    ) -> str:
        record_id = uuid.uuid4().hex
        self.measurements.append(
            RecordedMeasurement(id=record_id, network=network_name, measurement=measurement)
        )
        return record_id

    async def record_error(
        self, network_name: str, context: str, error_detail: str
    ) -> None:
        self.errors.append(
            RecordedError(network=network_name, context=context, error_detail=error_detail)
        )

    def for_network(self, network_name: str) -> list[FinalityMeasurement]:
        return [r.measurement for r in self.measurements if r.network == network_name]


__all__ = [
    "InMemoryMeasurementSink",
    "MeasurementSink",
    "RecordedError",
    "RecordedMeasurement",
]
