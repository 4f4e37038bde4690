"""Pedotransfer functions: soil water and density properties from texture."""

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from soil_health_engine.logging_config import get_logger
from soil_health_engine.models import CompositionMeasurement, MeasurementRecord

logger = get_logger(__name__)

WILTING_POINT_MAX = 60.0
FIELD_CAPACITY_MAX = 70.0
BULK_DENSITY_MIN = 0.8
BULK_DENSITY_MAX = 1.8

OUTPUT_DECIMALS = 2


class SoilProperties(BaseModel):
    """Hydraulic and density properties estimated from clay and sand."""

    model_config = ConfigDict(frozen=True)

    wilting_point: float = Field(description="Wilting point, volumetric water (%)")
    field_capacity: float = Field(description="Field capacity, volumetric water (%)")
    available_water: float = Field(
        ge=0.0, description="Field capacity minus wilting point (%)"
    )
    bulk_density: float = Field(description="Bulk density (g/cm³)")


def _is_percentage(value: Any) -> bool:
    return (
        isinstance(value, int | float)
        and not isinstance(value, bool)
        and not math.isnan(value)
        and 0 <= value <= 100
    )


def _clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def estimate(clay_percent: Any, sand_percent: Any) -> SoilProperties | None:
    """
    Estimate soil properties from clay and sand content.

    Wilting point and field capacity are linear in clay and sand and
    converted from volumetric fractions to percentages. Field capacity is
    floored at the wilting point just computed, so available water is never
    negative. Values are clamped first and rounded to two decimals last.

    Args:
        clay_percent: Clay content, 0-100
        sand_percent: Sand content, 0-100

    Returns:
        Estimated properties, or None if either input is missing, not a
        number, or outside 0-100
    """
    if not (_is_percentage(clay_percent) and _is_percentage(sand_percent)):
        logger.warning(
            "Invalid pedotransfer input: clay and sand must be numbers between "
            f"0 and 100 (clay={clay_percent!r}, sand={sand_percent!r})"
        )
        return None

    clay = float(clay_percent)
    sand = float(sand_percent)

    wp_fraction = 0.0673 + 0.00064 * clay + 0.00196 * sand
    wilting_point = _clamp(wp_fraction * 100, 0.0, WILTING_POINT_MAX)

    fc_fraction = 0.2576 + 0.00203 * clay + 0.00125 * sand
    field_capacity = _clamp(fc_fraction * 100, wilting_point, FIELD_CAPACITY_MAX)

    available_water = field_capacity - wilting_point

    bulk_density = _clamp(1.6 - 0.004 * clay, BULK_DENSITY_MIN, BULK_DENSITY_MAX)

    return SoilProperties(
        wilting_point=round(wilting_point, OUTPUT_DECIMALS),
        field_capacity=round(field_capacity, OUTPUT_DECIMALS),
        available_water=round(available_water, OUTPUT_DECIMALS),
        bulk_density=round(bulk_density, OUTPUT_DECIMALS),
    )


def estimate_record(record: MeasurementRecord) -> SoilProperties | None:
    """Run ``estimate`` on a composition record; None for any other record."""
    measurement = record.measurement
    if not isinstance(measurement, CompositionMeasurement):
        return None
    return estimate(measurement.clay_percent, measurement.sand_percent)


def composition_percentages(
    sand_cm: float | None, clay_cm: float | None, silt_cm: float | None
) -> dict[str, int | None]:
    """
    Convert jar-test layer heights into whole percentages summing to 100.

    Missing heights count as zero. Each share is rounded, then any rounding
    surplus or deficit goes to the largest component (largest rounding error
    breaks ties, then sand, clay, silt order).

    Args:
        sand_cm: Sand layer height
        clay_cm: Clay layer height
        silt_cm: Silt layer height

    Returns:
        Mapping with sand_percent, clay_percent and silt_percent; all None
        when the total height is zero or any height is invalid
    """
    empty: dict[str, int | None] = {
        "sand_percent": None,
        "clay_percent": None,
        "silt_percent": None,
    }
    heights = {"sand": sand_cm, "clay": clay_cm, "silt": silt_cm}

    for name, height in heights.items():
        if height is None:
            heights[name] = 0.0
        elif (
            not isinstance(height, int | float)
            or isinstance(height, bool)
            or not math.isfinite(height)
            or height < 0
        ):
            logger.warning(f"Invalid {name} layer height: {height!r}")
            return empty

    total = sum(heights.values())
    if total == 0:
        return empty

    exact = {name: height / total * 100 for name, height in heights.items()}
    # Half-up rounding
    rounded = {name: math.floor(share + 0.5) for name, share in exact.items()}

    difference = 100 - sum(rounded.values())
    if difference:
        order = list(heights)
        target = sorted(
            order,
            key=lambda n: (-rounded[n], -abs(exact[n] - rounded[n]), order.index(n)),
        )[0]
        rounded[target] += difference

    return {f"{name}_percent": value for name, value in rounded.items()}
