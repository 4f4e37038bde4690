"""
Per-location comparison snapshots and radar chart axes.

A snapshot is built from the most recent record at a location. Only the
metrics of that record's measurement type are filled in; the rest stay None.
Radar axes clamp each value to a fixed per-metric maximum.
"""

import math
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from soil_health_engine.location import latest_record
from soil_health_engine.logging_config import get_logger
from soil_health_engine.models import (
    CompositionMeasurement,
    MeasurementRecord,
    MeasurementType,
    VessMeasurement,
)
from soil_health_engine.pedotransfer import estimate
from soil_health_engine.timeseries import Estimator, Metric

logger = get_logger(__name__)

RADAR_MAXIMA: dict[Metric, float] = {
    Metric.VESS_SCORE: 5.0,
    Metric.SAND_PERCENT: 100.0,
    Metric.CLAY_PERCENT: 100.0,
    Metric.SILT_PERCENT: 100.0,
    Metric.AVAILABLE_WATER: 50.0,
}

# Relative difference (percent) beyond which a value counts as above/below
SIMILARITY_THRESHOLD = 10.0


class LocationSnapshot(BaseModel):
    """Latest known soil state at one location."""

    model_config = ConfigDict(frozen=True)

    location_key: str = Field(description="Location the snapshot describes")
    record_id: str | None = Field(None, description="Record the values come from")
    timestamp: datetime | None = Field(None, description="When that record was taken")
    measurement_type: MeasurementType | None = Field(
        None, description="Type of the latest record"
    )
    vess_score: float | None = None
    sand_percent: float | None = None
    clay_percent: float | None = None
    silt_percent: float | None = None
    taw_percent: float | None = Field(
        None, description="Total available water from the pedotransfer estimate"
    )

    def value(self, metric: Metric) -> float | None:
        """Snapshot value for a metric."""
        if metric is Metric.AVAILABLE_WATER:
            return self.taw_percent
        return getattr(self, metric.value)


class RadarAxis(BaseModel):
    """One spoke of a radar chart."""

    model_config = ConfigDict(frozen=True)

    metric: Metric
    location_value: float | None = None
    reference_value: float | None = None
    full_mark: float


class AxisSummary(BaseModel):
    """How a location compares to the reference on one axis."""

    model_config = ConfigDict(frozen=True)

    metric: Metric
    difference_percent: float
    verdict: Literal["above", "below", "similar"]


def location_snapshot(
    records: Iterable[MeasurementRecord],
    key: str,
    *,
    estimator: Estimator = estimate,
) -> LocationSnapshot | None:
    """
    Build the comparison snapshot for a location.

    Args:
        records: Measurement records
        key: Location key, as produced by ``identify``
        estimator: Pedotransfer estimator used for total available water

    Returns:
        Snapshot of the most recent dated record at the location, or None
        when the location has no dated records
    """
    latest = latest_record(records, key)
    if latest is None:
        logger.debug(f"No dated records for location {key}")
        return None

    values: dict[str, float | None] = {}
    measurement = latest.measurement

    if isinstance(measurement, VessMeasurement):
        score = measurement.vess_score
        values["vess_score"] = float(score) if score is not None else None
    elif isinstance(measurement, CompositionMeasurement):
        values["sand_percent"] = measurement.sand_percent
        values["clay_percent"] = measurement.clay_percent
        values["silt_percent"] = measurement.implied_silt_percent
        properties = estimator(measurement.clay_percent, measurement.sand_percent)
        if properties is not None:
            values["taw_percent"] = properties.available_water

    return LocationSnapshot(
        location_key=key,
        record_id=latest.id,
        timestamp=latest.timestamp,
        measurement_type=latest.measurement_type,
        **values,
    )


def normalize_value(value: float | None, maximum: float) -> float | None:
    """Clamp a value to ``[0, maximum]``; missing and NaN values give None."""
    if value is None or math.isnan(value):
        return None
    return max(0.0, min(float(value), maximum))


def radar_axes(
    snapshot: LocationSnapshot,
    reference: Mapping[Metric | str, float | None] | None = None,
) -> list[RadarAxis]:
    """
    Radar chart axes for a snapshot against optional reference values.

    Axes where both the location and the reference lack a value are left out.
    """
    reference_values = {Metric(k): v for k, v in (reference or {}).items()}

    axes = []
    for metric, maximum in RADAR_MAXIMA.items():
        axis = RadarAxis(
            metric=metric,
            location_value=normalize_value(snapshot.value(metric), maximum),
            reference_value=normalize_value(reference_values.get(metric), maximum),
            full_mark=maximum,
        )
        if axis.location_value is None and axis.reference_value is None:
            continue
        axes.append(axis)
    return axes


def summarize_axis(axis: RadarAxis) -> AxisSummary | None:
    """
    Compare the location value on an axis with the reference value.

    A zero reference counts as +100% or -100% for any non-zero difference.
    Returns None unless both values are present.
    """
    if axis.location_value is None or axis.reference_value is None:
        return None

    difference = axis.location_value - axis.reference_value
    if axis.reference_value != 0:
        percent = difference / axis.reference_value * 100
    else:
        percent = math.copysign(100.0, difference) if difference else 0.0

    if percent > SIMILARITY_THRESHOLD:
        verdict = "above"
    elif percent < -SIMILARITY_THRESHOLD:
        verdict = "below"
    else:
        verdict = "similar"

    return AxisSummary(
        metric=axis.metric, difference_percent=round(percent, 2), verdict=verdict
    )
