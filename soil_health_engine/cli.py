"""Command-line interface for soil-health-engine."""

import json
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from soil_health_engine import __version__
from soil_health_engine.comparison import location_snapshot, radar_axes
from soil_health_engine.config import EngineSettings, get_settings
from soil_health_engine.location import unique_locations
from soil_health_engine.logging_config import get_logger, setup_logging
from soil_health_engine.models import (
    MeasurementRecord,
    public_records,
    records_from_documents,
)
from soil_health_engine.pedotransfer import estimate
from soil_health_engine.timeseries import Metric, build_series

console = Console()
logger = get_logger(__name__)

FORMAT_OPTION = click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "table"]),
    default=None,
    help="Output format (default from settings)",
)
VERBOSE_OPTION = click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose logging"
)
PUBLIC_OPTION = click.option(
    "--public-only", is_flag=True, help="Only use records shared publicly"
)


def _prepare(verbose: bool) -> EngineSettings:
    settings = get_settings()
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_file=settings.log_file,
        enable_file_logging=settings.log_file is not None,
    )
    return settings


def _load_records(
    input_file: Path, public_only: bool = False
) -> list[MeasurementRecord]:
    """Load records from a JSON array of host documents."""
    try:
        data = json.loads(input_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Error reading {input_file}: {e}")
        click.echo(f"Error: {e}", err=True)
        raise click.Abort() from e

    if not isinstance(data, list):
        click.echo("Error: input must be a JSON array of records", err=True)
        raise click.Abort()

    records = records_from_documents(data)
    if public_only:
        records = public_records(records)
        logger.debug(f"{len(records)} public records")
    return records


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """Soil Health Engine: soil properties, locations and chart series."""


@main.command(name="estimate")
@click.argument("clay", type=float)
@click.argument("sand", type=float)
@FORMAT_OPTION
@VERBOSE_OPTION
def estimate_command(
    clay: float, sand: float, output_format: str | None, verbose: bool
) -> None:
    """Estimate soil water properties from texture.

    CLAY: Clay content percentage (0-100)
    SAND: Sand content percentage (0-100)
    """
    settings = _prepare(verbose)
    output_format = output_format or settings.default_output_format

    properties = estimate(clay, sand)
    if properties is None:
        click.echo("Error: clay and sand must be between 0 and 100", err=True)
        raise click.Abort()

    if output_format == "json":
        _echo_json(properties.model_dump(mode="json"))
        return

    table = Table(title=f"Soil properties (clay {clay}%, sand {sand}%)")
    table.add_column("Property")
    table.add_column("Value", justify="right")
    table.add_row("Wilting point", f"{properties.wilting_point:.2f} %")
    table.add_row("Field capacity", f"{properties.field_capacity:.2f} %")
    table.add_row("Available water", f"{properties.available_water:.2f} %")
    table.add_row("Bulk density", f"{properties.bulk_density:.2f} g/cm³")
    console.print(table)


@main.command()
@click.argument("input_file", type=click.Path(exists=True, path_type=Path))
@PUBLIC_OPTION
@FORMAT_OPTION
@VERBOSE_OPTION
def locations(
    input_file: Path, public_only: bool, output_format: str | None, verbose: bool
) -> None:
    """List unique sampling locations in a records file.

    INPUT_FILE: JSON array of soil data records
    """
    settings = _prepare(verbose)
    output_format = output_format or settings.default_output_format

    records = _load_records(input_file, public_only)
    identities = unique_locations(
        records, details_max_length=settings.details_max_length
    )

    if output_format == "json":
        _echo_json([identity.model_dump() for identity in identities])
        return

    table = Table(title=f"{len(identities)} locations")
    table.add_column("Name")
    table.add_column("Details")
    table.add_column("Key", overflow="fold")
    for identity in identities:
        table.add_row(identity.display_name, identity.full_details, identity.key)
    console.print(table)


@main.command()
@click.argument("input_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--metric",
    type=click.Choice([m.value for m in Metric]),
    required=True,
    help="Metric to plot",
)
@click.option("--location-key", default=None, help="Only records at this location")
@PUBLIC_OPTION
@FORMAT_OPTION
@VERBOSE_OPTION
def series(
    input_file: Path,
    metric: str,
    location_key: str | None,
    public_only: bool,
    output_format: str | None,
    verbose: bool,
) -> None:
    """Build a dated chart series for one metric.

    INPUT_FILE: JSON array of soil data records
    """
    settings = _prepare(verbose)
    output_format = output_format or settings.default_output_format

    records = _load_records(input_file, public_only)
    chart = build_series(
        records,
        metric,
        location_key=location_key,
        label_format=settings.date_label_format,
    )

    if output_format == "json":
        _echo_json(chart.model_dump(mode="json"))
        return

    if not chart.points:
        click.echo(f"No data for {metric}")
        return

    table = Table(title=f"{metric} ({len(chart)} points)")
    table.add_column("Date")
    table.add_column("Value", justify="right")
    for point in chart.points:
        table.add_row(point.date_label, "-" if point.value is None else f"{point.value:g}")
    console.print(table)

    if not chart.is_sufficient_for_trend:
        click.echo("Not enough points to show a trend")


@main.command()
@click.argument("input_file", type=click.Path(exists=True, path_type=Path))
@click.argument("location_key")
@PUBLIC_OPTION
@FORMAT_OPTION
@VERBOSE_OPTION
def snapshot(
    input_file: Path,
    location_key: str,
    public_only: bool,
    output_format: str | None,
    verbose: bool,
) -> None:
    """Show the latest soil state at one location.

    INPUT_FILE: JSON array of soil data records
    LOCATION_KEY: Key from the locations command
    """
    settings = _prepare(verbose)
    output_format = output_format or settings.default_output_format

    records = _load_records(input_file, public_only)
    latest = location_snapshot(records, location_key)
    if latest is None:
        click.echo(f"Error: no dated records at {location_key}", err=True)
        raise click.Abort()

    axes = radar_axes(latest)

    if output_format == "json":
        _echo_json(
            {
                "snapshot": latest.model_dump(mode="json"),
                "axes": [axis.model_dump(mode="json") for axis in axes],
            }
        )
        return

    table = Table(title=f"{location_key} (record {latest.record_id})")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_column("Scale", justify="right")
    for axis in axes:
        table.add_row(
            axis.metric.value, f"{axis.location_value:g}", f"0-{axis.full_mark:g}"
        )
    console.print(table)


if __name__ == "__main__":
    main()
