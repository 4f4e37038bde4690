"""
Chart-ready time series from measurement records.

Points are labelled with a short date (``"Mar 5, 24"``) and de-duplicated
per label, last write wins. Records that qualify for a metric but lack a
value produce a ``None`` point so that series sharing an x-axis stay
aligned.
"""

from collections.abc import Callable, Iterable, Sequence
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from soil_health_engine.location import identify, unique_locations
from soil_health_engine.logging_config import get_logger
from soil_health_engine.models import (
    CompositionMeasurement,
    MeasurementRecord,
    MeasurementType,
    VessMeasurement,
)
from soil_health_engine.pedotransfer import SoilProperties, estimate

logger = get_logger(__name__)

# strftime pattern; "{day}" is replaced by the unpadded day of month
DEFAULT_DATE_LABEL_FORMAT = "%b {day}, %y"

MIN_TREND_POINTS = 2

Estimator = Callable[[Any, Any], SoilProperties | None]


class Metric(str, Enum):
    """Series that can be built from records."""

    VESS_SCORE = "vess_score"
    SAND_PERCENT = "sand_percent"
    CLAY_PERCENT = "clay_percent"
    SILT_PERCENT = "silt_percent"
    AVAILABLE_WATER = "available_water"

    @property
    def measurement_type(self) -> MeasurementType:
        """Record type that supplies this metric."""
        if self is Metric.VESS_SCORE:
            return MeasurementType.VESS
        return MeasurementType.COMPOSITION


class ChartPoint(BaseModel):
    """One x-axis position of a series."""

    model_config = ConfigDict(frozen=True)

    date_label: str
    value: float | None = None


class ChartSeries(BaseModel):
    """Ordered points for one metric, optionally for one location."""

    model_config = ConfigDict(frozen=True)

    metric: Metric
    location_key: str | None = None
    points: tuple[ChartPoint, ...] = Field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.points)

    @property
    def labels(self) -> list[str]:
        return [point.date_label for point in self.points]

    @property
    def values(self) -> list[float | None]:
        return [point.value for point in self.points]

    @property
    def is_sufficient_for_trend(self) -> bool:
        """A trend line needs at least two points."""
        return len(self.points) >= MIN_TREND_POINTS


class MultiMetricSeries(BaseModel):
    """Several metrics aligned on one shared x-axis."""

    model_config = ConfigDict(frozen=True)

    location_key: str | None = None
    labels: tuple[str, ...] = Field(default_factory=tuple)
    columns: dict[Metric, tuple[float | None, ...]] = Field(default_factory=dict)

    def rows(self) -> list[dict[str, Any]]:
        """One dict per label, the shape charting libraries consume."""
        rows = []
        for index, label in enumerate(self.labels):
            row: dict[str, Any] = {"date": label}
            for metric, values in self.columns.items():
                row[metric.value] = values[index]
            rows.append(row)
        return rows


def format_date_label(
    timestamp: datetime, label_format: str = DEFAULT_DATE_LABEL_FORMAT
) -> str:
    """Short axis label for a timestamp, e.g. ``"Mar 5, 24"``."""
    return timestamp.strftime(label_format.replace("{day}", str(timestamp.day)))


def metric_value(
    record: MeasurementRecord, metric: Metric, estimator: Estimator = estimate
) -> tuple[bool, float | None]:
    """
    Extract a metric from a record.

    Returns:
        ``(qualifies, value)``. ``qualifies`` is False when the record type
        does not supply the metric, when the value was rejected on load, or
        for available water when the estimator gives no result. ``value``
        may be None for a qualifying record with the value missing.
    """
    measurement = record.measurement

    if isinstance(measurement, VessMeasurement):
        if metric is not Metric.VESS_SCORE or "vess_score" in measurement.invalid_fields:
            return False, None
        score = measurement.vess_score
        return True, float(score) if score is not None else None

    if isinstance(measurement, CompositionMeasurement):
        invalid = set(measurement.invalid_fields)
        if metric is Metric.SAND_PERCENT:
            if "sand_percent" in invalid:
                return False, None
            return True, measurement.sand_percent
        if metric is Metric.CLAY_PERCENT:
            if "clay_percent" in invalid:
                return False, None
            return True, measurement.clay_percent
        if metric is Metric.SILT_PERCENT:
            if "silt_percent" in invalid:
                return False, None
            # Implied silt needs valid sand and clay
            if measurement.silt_percent is None and invalid & {
                "sand_percent",
                "clay_percent",
            }:
                return False, None
            return True, measurement.implied_silt_percent
        if metric is Metric.AVAILABLE_WATER:
            properties = estimator(measurement.clay_percent, measurement.sand_percent)
            if properties is None:
                return False, None
            return True, properties.available_water
        return False, None

    return False, None


def _collect(
    records: Iterable[MeasurementRecord],
    metric: Metric,
    location_key: str | None,
    estimator: Estimator,
    label_format: str,
) -> list[tuple[datetime, str, float | None]]:
    """Sorted, de-duplicated ``(first timestamp, label, value)`` entries."""
    samples: list[tuple[datetime, float | None]] = []
    skipped = 0

    for record in records:
        if not record.is_well_formed():
            skipped += 1
            continue
        if location_key is not None and identify(record).key != location_key:
            continue
        if record.timestamp is None:
            skipped += 1
            logger.debug(f"Skipping record {record.id}: no valid timestamp")
            continue

        qualifies, value = metric_value(record, metric, estimator)
        if qualifies:
            samples.append((record.timestamp, value))

    if skipped:
        logger.debug(f"{metric.value}: skipped {skipped} incomplete records")

    # list.sort is stable, so same-instant records keep input order
    samples.sort(key=lambda sample: sample[0])

    by_label: dict[str, tuple[datetime, float | None]] = {}
    for timestamp, value in samples:
        label = format_date_label(timestamp, label_format)
        if label in by_label:
            by_label[label] = (by_label[label][0], value)
        else:
            by_label[label] = (timestamp, value)

    return [(first, label, value) for label, (first, value) in by_label.items()]


def build_series(
    records: Iterable[MeasurementRecord],
    metric: Metric | str,
    *,
    location_key: str | None = None,
    estimator: Estimator = estimate,
    label_format: str = DEFAULT_DATE_LABEL_FORMAT,
) -> ChartSeries:
    """
    Build the chart series of one metric.

    Args:
        records: Measurement records in any order
        metric: Metric to plot
        location_key: Restrict to records at this location
        estimator: Pedotransfer estimator used for available water
        label_format: strftime pattern for point labels

    Returns:
        Series ordered by sampling date, one point per label

    Raises:
        ValueError: If metric is not a known metric name
    """
    metric = Metric(metric)
    entries = _collect(records, metric, location_key, estimator, label_format)
    points = tuple(ChartPoint(date_label=label, value=value) for _, label, value in entries)

    if len(points) < MIN_TREND_POINTS:
        logger.debug(f"{metric.value}: {len(points)} point(s), not enough for a trend")

    return ChartSeries(metric=metric, location_key=location_key, points=points)


def build_multi_series(
    records: Iterable[MeasurementRecord],
    metrics: Sequence[Metric | str],
    *,
    location_key: str | None = None,
    estimator: Estimator = estimate,
    label_format: str = DEFAULT_DATE_LABEL_FORMAT,
) -> MultiMetricSeries:
    """
    Build several metrics on one shared, chronologically ordered x-axis.

    A metric without a point at a label gets None there.
    """
    records = list(records)
    metric_list = [Metric(m) for m in metrics]

    first_seen: dict[str, datetime] = {}
    per_metric: dict[Metric, dict[str, float | None]] = {}
    for metric in metric_list:
        entries = _collect(records, metric, location_key, estimator, label_format)
        per_metric[metric] = {label: value for _, label, value in entries}
        for timestamp, label, _ in entries:
            if label not in first_seen or timestamp < first_seen[label]:
                first_seen[label] = timestamp

    labels = tuple(sorted(first_seen, key=lambda label: first_seen[label]))
    columns = {
        metric: tuple(values.get(label) for label in labels)
        for metric, values in per_metric.items()
    }
    return MultiMetricSeries(location_key=location_key, labels=labels, columns=columns)


def build_location_series(
    records: Iterable[MeasurementRecord],
    metric: Metric | str,
    *,
    estimator: Estimator = estimate,
    label_format: str = DEFAULT_DATE_LABEL_FORMAT,
) -> dict[str, ChartSeries]:
    """
    Build one series per location.

    Returns:
        Mapping of location key to series, ordered like ``unique_locations``
    """
    metric = Metric(metric)
    well_formed = [record for record in records if record.is_well_formed()]

    grouped: dict[str, list[MeasurementRecord]] = {}
    for record in well_formed:
        grouped.setdefault(identify(record).key, []).append(record)

    output: dict[str, ChartSeries] = {}
    for identity in unique_locations(well_formed):
        entries = _collect(
            grouped[identity.key], metric, None, estimator, label_format
        )
        output[identity.key] = ChartSeries(
            metric=metric,
            location_key=identity.key,
            points=tuple(
                ChartPoint(date_label=label, value=value) for _, label, value in entries
            ),
        )
    return output
