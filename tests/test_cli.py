"""Tests for CLI functionality."""

import json

import pytest
from click.testing import CliRunner

from soil_health_engine.cli import main


@pytest.fixture
def records_file(tmp_path, sample_documents):
    """Sample documents written to a JSON file."""
    path = tmp_path / "records.json"
    path.write_text(json.dumps(sample_documents))
    return path


class TestCLI:
    """Test cases for CLI functionality."""

    def test_cli_help(self):
        """Test CLI help message."""
        runner = CliRunner()
        result = runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "Soil Health Engine" in result.output
        assert "estimate" in result.output
        assert "locations" in result.output
        assert "series" in result.output

    def test_cli_version(self):
        """Test CLI version option."""
        runner = CliRunner()
        result = runner.invoke(main, ["--version"])

        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestEstimateCommand:
    """Test the estimate command."""

    def test_json_output(self):
        """JSON output carries the four rounded properties."""
        runner = CliRunner()
        result = runner.invoke(main, ["estimate", "30", "40", "--format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data == {
            "wilting_point": 16.49,
            "field_capacity": 36.85,
            "available_water": 20.36,
            "bulk_density": 1.48,
        }

    def test_table_output(self):
        """Table output is the default."""
        runner = CliRunner()
        result = runner.invoke(main, ["estimate", "30", "40"])

        assert result.exit_code == 0
        assert "Wilting point" in result.output
        assert "Bulk density" in result.output

    def test_invalid_input(self):
        """Out-of-range texture aborts with an error."""
        runner = CliRunner()
        result = runner.invoke(main, ["estimate", "120", "10"])

        assert result.exit_code != 0
        assert "between 0 and 100" in result.output

    def test_help(self):
        """Test estimate help."""
        runner = CliRunner()
        result = runner.invoke(main, ["estimate", "--help"])

        assert result.exit_code == 0
        assert "CLAY" in result.output
        assert "--format" in result.output


class TestLocationsCommand:
    """Test the locations command."""

    def test_json_output(self, records_file):
        """Duplicate spellings and GPS jitter merge into one entry each."""
        runner = CliRunner()
        result = runner.invoke(main, ["locations", str(records_file), "--format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [entry["key"] for entry in data] == [
            "gps_34.0522_-118.2437",
            "manual_north_field",
        ]
        assert data[1]["display_name"] == "North Field"

    def test_table_output(self, records_file):
        """The table lists the location names."""
        runner = CliRunner()
        result = runner.invoke(main, ["locations", str(records_file)])

        assert result.exit_code == 0
        assert "2 locations" in result.output
        assert "North Field" in result.output

    def test_missing_file(self, tmp_path):
        """A missing input file is a usage error."""
        runner = CliRunner()
        result = runner.invoke(main, ["locations", str(tmp_path / "absent.json")])

        assert result.exit_code != 0

    def test_invalid_json(self, tmp_path):
        """Malformed JSON aborts."""
        bad_file = tmp_path / "bad.json"
        bad_file.write_text("{not json")

        runner = CliRunner()
        result = runner.invoke(main, ["locations", str(bad_file)])

        assert result.exit_code == 1
        assert "Error" in result.output

    def test_not_an_array(self, tmp_path):
        """The input must be a JSON array."""
        obj_file = tmp_path / "object.json"
        obj_file.write_text('{"id": "x"}')

        runner = CliRunner()
        result = runner.invoke(main, ["locations", str(obj_file)])

        assert result.exit_code == 1
        assert "JSON array" in result.output


class TestSeriesCommand:
    """Test the series command."""

    def test_vess_json(self, records_file):
        """VESS scores come out dated and in order."""
        runner = CliRunner()
        result = runner.invoke(
            main,
            ["series", str(records_file), "--metric", "vess_score", "--format", "json"],
        )

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["metric"] == "vess_score"
        assert data["points"] == [
            {"date_label": "Mar 5, 24", "value": 3.0},
            {"date_label": "Apr 10, 24", "value": 4.0},
        ]

    def test_location_filter(self, records_file):
        """Only the chosen location contributes points."""
        runner = CliRunner()
        result = runner.invoke(
            main,
            [
                "series",
                str(records_file),
                "--metric",
                "clay_percent",
                "--location-key",
                "gps_34.0522_-118.2437",
                "--format",
                "json",
            ],
        )

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["location_key"] == "gps_34.0522_-118.2437"
        assert [p["value"] for p in data["points"]] == [30.0, 50.0]

    def test_table_output(self, records_file):
        """The table shows dates and values."""
        runner = CliRunner()
        result = runner.invoke(
            main, ["series", str(records_file), "--metric", "sand_percent"]
        )

        assert result.exit_code == 0
        assert "Apr 10, 24" in result.output
        assert "May 1, 24" in result.output

    def test_single_point_notice(self, tmp_path, sample_documents):
        """One point is shown with a notice that a trend needs more."""
        single = tmp_path / "single.json"
        single.write_text(json.dumps(sample_documents[:1]))

        runner = CliRunner()
        result = runner.invoke(main, ["series", str(single), "--metric", "vess_score"])

        assert result.exit_code == 0
        assert "Not enough points" in result.output

    def test_no_data(self, tmp_path):
        """An empty file gives a friendly message."""
        empty = tmp_path / "empty.json"
        empty.write_text("[]")

        runner = CliRunner()
        result = runner.invoke(main, ["series", str(empty), "--metric", "vess_score"])

        assert result.exit_code == 0
        assert "No data for vess_score" in result.output

    def test_unknown_metric(self, records_file):
        """Metric names are validated by click."""
        runner = CliRunner()
        result = runner.invoke(main, ["series", str(records_file), "--metric", "ph"])

        assert result.exit_code == 2

    def test_public_only(self, records_file):
        """Private records are left out of the series."""
        runner = CliRunner()
        result = runner.invoke(
            main,
            [
                "series",
                str(records_file),
                "--metric",
                "vess_score",
                "--public-only",
                "--format",
                "json",
            ],
        )

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [p["date_label"] for p in data["points"]] == ["Mar 5, 24"]


class TestPublicLocations:
    """Test the public filter on the locations command."""

    def test_public_only(self, records_file):
        """Only locations with public records are listed."""
        runner = CliRunner()
        result = runner.invoke(
            main, ["locations", str(records_file), "--public-only", "--format", "json"]
        )

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [entry["key"] for entry in data] == ["manual_north_field"]


class TestSnapshotCommand:
    """Test the snapshot command."""

    def test_composition_json(self, records_file):
        """The latest composition record gives texture and TAW axes."""
        runner = CliRunner()
        result = runner.invoke(
            main,
            ["snapshot", str(records_file), "gps_34.0522_-118.2437", "--format", "json"],
        )

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["snapshot"]["record_id"] == "c2"
        assert data["snapshot"]["vess_score"] is None
        assert data["snapshot"]["sand_percent"] == 20
        assert [axis["metric"] for axis in data["axes"]] == [
            "sand_percent",
            "clay_percent",
            "silt_percent",
            "available_water",
        ]

    def test_vess_table(self, records_file):
        """The table lists the metric and its scale."""
        runner = CliRunner()
        result = runner.invoke(
            main, ["snapshot", str(records_file), "manual_north_field"]
        )

        assert result.exit_code == 0
        assert "vess_score" in result.output
        assert "0-5" in result.output

    def test_unknown_location(self, records_file):
        """An unknown key aborts with an error."""
        runner = CliRunner()
        result = runner.invoke(main, ["snapshot", str(records_file), "manual_nowhere"])

        assert result.exit_code == 1
        assert "no dated records" in result.output
