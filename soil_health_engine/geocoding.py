"""Best-effort reverse geocoding of GPS sampling locations."""

from collections.abc import Mapping
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from soil_health_engine.logging_config import get_logger
from soil_health_engine.models import GpsLocation, MeasurementRecord

logger = get_logger(__name__)

PLACE_FIELDS = ("country", "region", "city")


class PlaceDetails(BaseModel):
    """Place names for a coordinate; every field is optional."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    country: str | None = Field(default=None, description="Country name")
    region: str | None = Field(
        default=None, description="Primary administrative region"
    )
    city: str | None = Field(default=None, description="City or town")

    @field_validator("country", "region", "city", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        """Treat empty or non-string names as absent."""
        if not isinstance(v, str):
            return None
        return v.strip() or None

    def is_empty(self) -> bool:
        """Check whether no place name was resolved."""
        return all(getattr(self, name) is None for name in PLACE_FIELDS)


class ReverseGeocoder(Protocol):
    """Interface for the external reverse geocoding collaborator."""

    def __call__(
        self, latitude: float, longitude: float
    ) -> PlaceDetails | Mapping[str, Any] | None:
        """
        Look up place names for a coordinate.

        Args:
            latitude: Latitude in decimal degrees
            longitude: Longitude in decimal degrees

        Returns:
            Place details, a mapping with country/region/city keys, or None
        """
        ...


def resolve_place(
    geocoder: ReverseGeocoder, latitude: float, longitude: float
) -> PlaceDetails:
    """
    Call the geocoder, treating any failure as "no place names".

    Args:
        geocoder: Reverse geocoding callable
        latitude: Latitude in decimal degrees
        longitude: Longitude in decimal degrees

    Returns:
        Resolved place details, empty on error, timeout or bad output
    """
    try:
        result = geocoder(latitude, longitude)
    except Exception as e:
        logger.warning(f"Reverse geocoding failed for ({latitude}, {longitude}): {e}")
        return PlaceDetails()

    if result is None:
        return PlaceDetails()
    if isinstance(result, PlaceDetails):
        return result
    if not isinstance(result, Mapping):
        logger.warning(
            f"Reverse geocoder returned {type(result).__name__}, expected a mapping"
        )
        return PlaceDetails()

    try:
        return PlaceDetails.model_validate(dict(result))
    except ValidationError as e:
        logger.warning(f"Unusable reverse geocoding result: {e}")
        return PlaceDetails()


def with_place_details(
    record: MeasurementRecord, geocoder: ReverseGeocoder
) -> MeasurementRecord:
    """
    Fill in missing country, region and city on a GPS record.

    Values already on the record are never overwritten, and records with
    complete place names or without GPS data are returned unchanged
    without calling the geocoder.
    """
    location = record.location
    if not isinstance(location, GpsLocation):
        return record

    missing = [name for name in PLACE_FIELDS if getattr(location, name) is None]
    if not missing:
        return record

    place = resolve_place(geocoder, location.latitude, location.longitude)
    updates = {
        name: getattr(place, name) for name in missing if getattr(place, name)
    }
    if not updates:
        return record

    logger.debug(f"Record {record.id}: filled place fields {sorted(updates)}")
    return record.model_copy(update={"location": location.model_copy(update=updates)})
