"""Soil Health Engine: soil property estimation, location identity and chart series."""

__version__ = "0.1.0"

from .comparison import LocationSnapshot, location_snapshot
from .location import LocationIdentity, identify, unique_locations
from .models import MeasurementRecord, public_records
from .pedotransfer import SoilProperties, estimate
from .timeseries import ChartSeries, Metric, build_series

__all__ = [
    "ChartSeries",
    "LocationIdentity",
    "LocationSnapshot",
    "MeasurementRecord",
    "Metric",
    "SoilProperties",
    "build_series",
    "estimate",
    "identify",
    "location_snapshot",
    "public_records",
    "unique_locations",
]
