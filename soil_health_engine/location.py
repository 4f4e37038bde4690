"""
Canonical identities for sampling locations.

Manual locations are keyed on normalized text. GPS locations use three
precisions: 4 decimals for the key (about 11 m, so GPS jitter at one site
collapses to one location), 2 decimals for the short display name and 5
decimals for the full details.
"""

import hashlib
import re
import unicodedata
from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field

from soil_health_engine.logging_config import get_logger
from soil_health_engine.models import GpsLocation, ManualLocation, MeasurementRecord

logger = get_logger(__name__)

UNKNOWN_DISPLAY_NAME = "Unknown Location"
UNKNOWN_FULL_DETAILS = "No valid location data"
DETAILS_MAX_LENGTH = 30
ELLIPSIS = "..."

_WHITESPACE = re.compile(r"\s+")


class LocationIdentity(BaseModel):
    """Stable key plus human-readable labels for a sampling location."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(description="Stable location key")
    display_name: str = Field(description="Short UI label")
    full_details: str = Field(description="Verbose, unambiguous description")


def manual_key(text: str) -> str:
    """Key for free-text locations: trimmed, lower-cased, whitespace runs as '_'."""
    return "manual_" + _WHITESPACE.sub("_", text.strip().lower())


def gps_key(latitude: float, longitude: float) -> str:
    """Key for GPS locations, bucketed to 4 decimal places."""
    return f"gps_{latitude:.4f}_{longitude:.4f}"


def _place_suffix(location: GpsLocation) -> str:
    parts = [p for p in (location.city, location.region, location.country) if p]
    return f" ({', '.join(parts)})" if parts else ""


def _truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - len(ELLIPSIS)] + ELLIPSIS


def _content_digest(record: MeasurementRecord) -> str:
    """Short, repeatable stand-in id derived from the record contents."""
    return hashlib.sha1(record.model_dump_json().encode("utf-8")).hexdigest()[:8]


def identify(
    record: MeasurementRecord, *, details_max_length: int = DETAILS_MAX_LENGTH
) -> LocationIdentity:
    """
    Derive the location identity of a record.

    Args:
        record: Measurement record
        details_max_length: Longest place suffix kept in the display name

    Returns:
        Identity for the record's location; records without a usable
        location get an "unknown" identity keyed on their id
    """
    location = record.location

    if isinstance(location, ManualLocation):
        name = location.location_text.strip()
        return LocationIdentity(
            key=manual_key(location.location_text),
            display_name=name,
            full_details=name,
        )

    if isinstance(location, GpsLocation):
        lat, lon = location.latitude, location.longitude
        suffix = _place_suffix(location)
        return LocationIdentity(
            key=gps_key(lat, lon),
            display_name=f"GPS: {lat:.2f}, {lon:.2f}"
            + _truncate(suffix, details_max_length),
            full_details=f"Lat: {lat:.5f}, Lon: {lon:.5f}{suffix}",
        )

    suffix = record.id if record.id is not None else _content_digest(record)
    logger.debug(f"No resolvable location for record {record.id}, using fallback")
    return LocationIdentity(
        key=f"unknown_{suffix}",
        display_name=UNKNOWN_DISPLAY_NAME,
        full_details=UNKNOWN_FULL_DETAILS,
    )


def collation_key(identity: LocationIdentity) -> tuple[str, str, str, str]:
    """
    Case-insensitive, accent-insensitive sort key for display names.

    Falls back to case-sensitive text and then the location key so that
    ordering is total and repeatable.
    """
    name = identity.display_name
    decomposed = unicodedata.normalize("NFKD", name)
    base = "".join(c for c in decomposed if not unicodedata.combining(c))
    return (base.casefold(), name.casefold(), name, identity.key)


def unique_locations(
    records: Iterable[MeasurementRecord],
    *,
    details_max_length: int = DETAILS_MAX_LENGTH,
) -> list[LocationIdentity]:
    """
    Deduplicate record locations, keeping the first identity seen per key.

    Args:
        records: Measurement records
        details_max_length: Passed through to ``identify``

    Returns:
        Unique identities sorted by display name
    """
    by_key: dict[str, LocationIdentity] = {}
    for record in records:
        identity = identify(record, details_max_length=details_max_length)
        by_key.setdefault(identity.key, identity)

    return sorted(by_key.values(), key=collation_key)


def records_for_location(
    records: Iterable[MeasurementRecord], key: str
) -> list[MeasurementRecord]:
    """Records whose location identity has ``key``, in input order."""
    return [record for record in records if identify(record).key == key]


def latest_record(
    records: Iterable[MeasurementRecord], key: str
) -> MeasurementRecord | None:
    """
    Most recent record at a location.

    Records without a timestamp are ignored; on equal timestamps the
    earlier record in the input wins.
    """
    latest = None
    for record in records_for_location(records, key):
        if record.timestamp is None:
            continue
        if latest is None or record.timestamp > latest.timestamp:
            latest = record
    return latest
