"""
Pydantic models for field soil-health measurement records.

A record carries two tagged unions: the measurement (VESS score or particle
size composition) and the sampling location (free text or GPS). Host
documents are converted with ``MeasurementRecord.from_document``, which never
raises on bad field values: an invalid field is dropped and named in the
measurement's ``invalid_fields``, and a variant that cannot be built without
it is left as ``None``.
"""

import math
from collections.abc import Iterable, Mapping
from datetime import date, datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from soil_health_engine.logging_config import get_logger

logger = get_logger(__name__)


class MeasurementType(str, Enum):
    """Kinds of field measurement."""

    VESS = "vess"
    COMPOSITION = "composition"


class LocationOption(str, Enum):
    """How the sampling location was recorded."""

    MANUAL = "manual"
    GPS = "gps"


class Privacy(str, Enum):
    """Record visibility in the host application."""

    PUBLIC = "public"
    PRIVATE = "private"


class VessMeasurement(BaseModel):
    """Visual Evaluation of Soil Structure score."""

    model_config = ConfigDict(frozen=True)

    measurement_type: Literal["vess"] = "vess"
    vess_score: int | None = Field(
        None, ge=1, le=5, description="Structure quality, 1 poor to 5 excellent"
    )
    invalid_fields: tuple[str, ...] = Field(
        default=(),
        description="Fields dropped on load because their value was unusable",
    )


class CompositionMeasurement(BaseModel):
    """Particle-size composition from a jar test."""

    model_config = ConfigDict(frozen=True)

    measurement_type: Literal["composition"] = "composition"
    sand_percent: float | None = Field(
        None, ge=0.0, le=100.0, description="Sand content percentage"
    )
    clay_percent: float | None = Field(
        None, ge=0.0, le=100.0, description="Clay content percentage"
    )
    silt_percent: float | None = Field(
        None, ge=0.0, le=100.0, description="Silt content percentage"
    )

    # Raw sediment layer heights
    sand_cm: float | None = Field(None, ge=0.0, description="Sand layer height (cm)")
    clay_cm: float | None = Field(None, ge=0.0, description="Clay layer height (cm)")
    silt_cm: float | None = Field(None, ge=0.0, description="Silt layer height (cm)")

    invalid_fields: tuple[str, ...] = Field(
        default=(),
        description="Fields dropped on load because their value was unusable",
    )

    @property
    def implied_silt_percent(self) -> float | None:
        """Silt percentage as supplied, or the remainder after sand and clay."""
        if self.silt_percent is not None:
            return self.silt_percent
        if self.sand_percent is None or self.clay_percent is None:
            return None
        remainder = round(100.0 - self.sand_percent - self.clay_percent, 2)
        return remainder if remainder >= 0 else None


class ManualLocation(BaseModel):
    """Location entered as free text (field or paddock name)."""

    model_config = ConfigDict(frozen=True)

    location_option: Literal["manual"] = "manual"
    location_text: str = Field(description="Free-text location name")

    @field_validator("location_text")
    @classmethod
    def validate_location_text(cls, v: str) -> str:
        """Reject blank location text; the original spelling is kept."""
        if not v.strip():
            raise ValueError("location_text must not be blank")
        return v


class GpsLocation(BaseModel):
    """Location captured by GPS, with best-effort reverse-geocoded names."""

    model_config = ConfigDict(frozen=True)

    location_option: Literal["gps"] = "gps"
    latitude: float = Field(ge=-90, le=90, description="Latitude in decimal degrees")
    longitude: float = Field(
        ge=-180, le=180, description="Longitude in decimal degrees"
    )
    country: str | None = Field(default=None, description="Country name")
    region: str | None = Field(default=None, description="State, province or region")
    city: str | None = Field(default=None, description="City or town")

    @field_validator("country", "region", "city", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        """Treat empty place names as absent."""
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v


Measurement = Annotated[
    VessMeasurement | CompositionMeasurement, Field(discriminator="measurement_type")
]
Location = Annotated[ManualLocation | GpsLocation, Field(discriminator="location_option")]


class MeasurementRecord(BaseModel):
    """A single field observation, immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str | None = Field(default=None, description="Opaque record identifier")
    timestamp: datetime | None = Field(
        default=None, description="When the sample was taken"
    )
    measurement: Measurement | None = Field(
        default=None, description="VESS or composition measurement"
    )
    location: Location | None = Field(
        default=None, description="Manual or GPS sampling location"
    )
    privacy: Privacy = Field(default=Privacy.PRIVATE, description="Record visibility")

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        """Attach UTC to naive timestamps so records always sort together."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def measurement_type(self) -> MeasurementType | None:
        """Measurement variant tag, if the measurement is present."""
        if self.measurement is None:
            return None
        return MeasurementType(self.measurement.measurement_type)

    @property
    def location_option(self) -> LocationOption | None:
        """Location variant tag, if the location is present."""
        if self.location is None:
            return None
        return LocationOption(self.location.location_option)

    def is_well_formed(self) -> bool:
        """Both variants present, which aggregation requires."""
        return self.measurement is not None and self.location is not None

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "MeasurementRecord":
        """
        Build a record from a host document (camelCase keys).

        Args:
            document: Mapping as stored by the host application

        Returns:
            Record with unusable fields set to None

        Raises:
            TypeError: If document is not a mapping
        """
        if not isinstance(document, Mapping):
            raise TypeError(
                f"Expected a mapping, got {type(document).__name__}"
            )

        record_id = document.get("id")
        record_id = str(record_id) if record_id is not None else None

        timestamp = parse_timestamp(document.get("date", document.get("timestamp")))
        if timestamp is None:
            logger.warning(f"Record {record_id}: missing or unparsable date")

        privacy = document.get("privacy")
        if not isinstance(privacy, str) or privacy not in {p.value for p in Privacy}:
            privacy = Privacy.PRIVATE

        return cls(
            id=record_id,
            timestamp=timestamp,
            measurement=_measurement_from_document(document, record_id),
            location=_location_from_document(document, record_id),
            privacy=privacy,
        )


def records_from_documents(
    documents: Iterable[Any],
) -> list[MeasurementRecord]:
    """
    Convert host documents to records, skipping entries that are not mappings.

    Args:
        documents: Iterable of host documents

    Returns:
        List of records in input order
    """
    records = []
    for index, document in enumerate(documents):
        try:
            records.append(MeasurementRecord.from_document(document))
        except TypeError as e:
            logger.warning(f"Skipping document {index}: {e}")
    logger.debug(f"Loaded {len(records)} records")
    return records


def public_records(records: Iterable[MeasurementRecord]) -> list[MeasurementRecord]:
    """
    Records shared publicly, newest first.

    Undated records are left out; records with equal timestamps keep their
    input order.
    """
    shared = [
        record
        for record in records
        if record.privacy is Privacy.PUBLIC and record.timestamp is not None
    ]
    return sorted(shared, key=lambda record: record.timestamp, reverse=True)


def parse_timestamp(value: Any) -> datetime | None:
    """
    Parse the timestamp shapes hosts store.

    Accepts datetimes, dates, epoch seconds, ``{"seconds", "nanoseconds"}``
    mappings and ISO 8601 strings. Anything else gives None.
    """
    if value is None or isinstance(value, bool):
        return None

    try:
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
        if isinstance(value, int | float):
            if not math.isfinite(value):
                return None
            return datetime.fromtimestamp(value, tz=timezone.utc)
        if isinstance(value, Mapping) and "seconds" in value:
            seconds = float(value["seconds"]) + float(value.get("nanoseconds") or 0) / 1e9
            if not math.isfinite(seconds):
                return None
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        if isinstance(value, str) and value.strip():
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except (ValueError, TypeError, OverflowError, OSError) as e:
        logger.debug(f"Unparsable timestamp {value!r}: {e}")

    return None


def _build_lenient(
    model: type[BaseModel], data: dict[str, Any], record_id: str | None
) -> BaseModel | None:
    """
    Validate ``data``; on failure retry once with the offending fields removed.

    Models with an ``invalid_fields`` field record the names of the dropped
    fields.
    """
    try:
        return model.model_validate(data)
    except ValidationError as e:
        bad_fields = {str(err["loc"][0]) for err in e.errors() if err["loc"]}
        logger.warning(
            f"Record {record_id}: dropping invalid {model.__name__} fields "
            f"{sorted(bad_fields)}"
        )

    cleaned = {k: v for k, v in data.items() if k not in bad_fields}
    if "invalid_fields" in model.model_fields:
        cleaned["invalid_fields"] = tuple(sorted(bad_fields))
    try:
        return model.model_validate(cleaned)
    except ValidationError:
        logger.warning(f"Record {record_id}: unusable {model.__name__}")
        return None


def _measurement_from_document(
    document: Mapping[str, Any], record_id: str | None
) -> VessMeasurement | CompositionMeasurement | None:
    raw_type = str(document.get("measurementType") or "").strip().lower()

    if raw_type == MeasurementType.VESS.value:
        data = {"vess_score": document.get("vessScore")}
        return _build_lenient(VessMeasurement, _present(data), record_id)

    if raw_type == MeasurementType.COMPOSITION.value:
        data = {
            "sand_percent": document.get("sandPercent"),
            "clay_percent": document.get("clayPercent"),
            "silt_percent": document.get("siltPercent"),
            "sand_cm": document.get("sand"),
            "clay_cm": document.get("clay"),
            "silt_cm": document.get("silt"),
        }
        measurement = _build_lenient(CompositionMeasurement, _present(data), record_id)
        if measurement is None:
            return None
        return _with_derived_percentages(measurement, record_id)

    logger.warning(f"Record {record_id}: unknown measurement type {raw_type!r}")
    return None


def _with_derived_percentages(
    measurement: CompositionMeasurement, record_id: str | None
) -> CompositionMeasurement:
    """Fill percentages from layer heights when the document has none."""
    from soil_health_engine.pedotransfer import composition_percentages

    percent_fields = ("sand_percent", "clay_percent", "silt_percent")
    height_fields = ("sand_cm", "clay_cm", "silt_cm")

    if any(getattr(measurement, name) is not None for name in percent_fields):
        return measurement
    if set(measurement.invalid_fields) & {*percent_fields, *height_fields}:
        return measurement
    if all(getattr(measurement, name) is None for name in height_fields):
        return measurement

    derived = composition_percentages(
        measurement.sand_cm, measurement.clay_cm, measurement.silt_cm
    )
    if derived["sand_percent"] is None:
        return measurement

    logger.debug(f"Record {record_id}: percentages derived from layer heights")
    return measurement.model_copy(
        update={name: float(value) for name, value in derived.items()}
    )


def _location_from_document(
    document: Mapping[str, Any], record_id: str | None
) -> ManualLocation | GpsLocation | None:
    option = str(document.get("locationOption") or "").strip().lower()
    if not option:
        # Older documents lack the tag
        if document.get("latitude") is not None:
            option = LocationOption.GPS.value
        elif document.get("location"):
            option = LocationOption.MANUAL.value

    if option == LocationOption.MANUAL.value:
        text = document.get("location")
        if not isinstance(text, str):
            logger.warning(f"Record {record_id}: manual location without text")
            return None
        return _build_lenient(ManualLocation, {"location_text": text}, record_id)

    if option == LocationOption.GPS.value:
        data = {
            "latitude": document.get("latitude"),
            "longitude": document.get("longitude"),
            "country": document.get("country"),
            "region": document.get("region"),
            "city": document.get("city"),
        }
        return _build_lenient(GpsLocation, _present(data), record_id)

    logger.warning(f"Record {record_id}: no usable location")
    return None


def _present(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}
