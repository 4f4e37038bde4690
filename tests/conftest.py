"""
pytest configuration for soil-health-engine tests.

Keeps settings, environment and logging handlers from leaking between tests.
"""

import logging
from datetime import datetime, timezone
from typing import Any

import pytest

from soil_health_engine.config import clear_settings_cache
from soil_health_engine.models import (
    CompositionMeasurement,
    GpsLocation,
    ManualLocation,
    MeasurementRecord,
    VessMeasurement,
)


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch):
    """Start every test from default settings."""
    monkeypatch.delenv("SOIL_HEALTH_CONFIG", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("LOG_FILE", raising=False)
    monkeypatch.delenv("DISABLE_FILE_LOGGING", raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture(autouse=True)
def _reset_root_logger():
    """Drop handlers bound to streams that CliRunner has closed."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def at(year: int, month: int, day: int, hour: int = 12, minute: int = 0) -> datetime:
    """UTC timestamp helper."""
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def make_record():
    """Factory for records with a manual location by default."""

    def _make(
        record_id: str | None = "rec",
        timestamp: datetime | None = None,
        *,
        vess: int | None = None,
        sand: float | None = None,
        clay: float | None = None,
        silt: float | None = None,
        composition: bool = False,
        place: str | None = "North Field",
        gps: tuple[float, float] | None = None,
        **place_names: Any,
    ) -> MeasurementRecord:
        if composition or sand is not None or clay is not None or silt is not None:
            measurement = CompositionMeasurement(
                sand_percent=sand, clay_percent=clay, silt_percent=silt
            )
        else:
            measurement = VessMeasurement(vess_score=vess)

        if gps is not None:
            location = GpsLocation(latitude=gps[0], longitude=gps[1], **place_names)
        elif place is not None:
            location = ManualLocation(location_text=place)
        else:
            location = None

        return MeasurementRecord(
            id=record_id,
            timestamp=timestamp if timestamp is not None else at(2024, 3, 5),
            measurement=measurement,
            location=location,
        )

    return _make


@pytest.fixture
def sample_documents() -> list[dict[str, Any]]:
    """Host documents covering both measurement and location variants."""
    return [
        {
            "id": "v1",
            "date": "2024-03-05T09:00:00Z",
            "measurementType": "vess",
            "vessScore": 3,
            "locationOption": "manual",
            "location": "North Field",
            "privacy": "public",
        },
        {
            "id": "v2",
            "date": "2024-04-10T09:00:00Z",
            "measurementType": "vess",
            "vessScore": 4,
            "locationOption": "manual",
            "location": " north field ",
        },
        {
            "id": "c1",
            "date": {"seconds": 1712743200, "nanoseconds": 0},
            "measurementType": "composition",
            "sand": 8,
            "clay": 6,
            "silt": 6,
            "sandPercent": 40,
            "clayPercent": 30,
            "siltPercent": 30,
            "locationOption": "gps",
            "latitude": 34.0522,
            "longitude": -118.2437,
            "city": "Los Angeles",
            "region": "California",
            "country": "USA",
        },
        {
            "id": "c2",
            "date": "2024-05-01",
            "measurementType": "composition",
            "sandPercent": 20,
            "clayPercent": 50,
            "latitude": 34.05224,
            "longitude": -118.24371,
        },
    ]
