"""
Tests for CSV and image output.
"""

import pandas as pd
import pytest

from emission_raster import Bounds, Grid, RasterOutput, TimeSeries, to_dataframe, write_csv
from emission_raster.config import EXCLUDED, FAILED


def make_grid(value=1.0):
    grid = Grid(Bounds(0.0, 0.0, 30.0, 20.0), 10.0)
    grid.set(10.0, 10.0, value)
    grid.set(20.0, 0.0, 2 * value)
    return grid


def test_to_dataframe():
    """Test that only non-zero cells are written by default."""
    series = TimeSeries(900.0)
    series.bin(0.0).value = make_grid()
    series.bin(900.0).value = make_grid(3.0)

    frame = to_dataframe(series)

    assert list(frame.columns) == ["time", "x", "y", "value"]
    assert len(frame) == 4
    first = frame[frame.time == 0.0].sort_values("x")
    assert first[["x", "y", "value"]].values.tolist() == [[10.0, 10.0, 1.0], [20.0, 0.0, 2.0]]
    assert frame[frame.time == 900.0].value.sum() == pytest.approx(9.0)

    everything = to_dataframe(series, include_zero=True)
    assert len(everything) == 2 * make_grid().size


def test_to_dataframe_with_species():
    """Test the species column for {species: Grid} series."""
    series = TimeSeries(900.0)
    series.bin(0.0).value = {"NO2": make_grid(), "PM": make_grid(0.5)}

    frame = to_dataframe(series)

    assert list(frame.columns) == ["time", "species", "x", "y", "value"]
    assert sorted(frame.species.unique()) == ["NO2", "PM"]
    assert len(frame) == 4


def test_empty_series():
    """Test that an empty series gives an empty table."""
    frame = to_dataframe(TimeSeries(60.0))
    assert frame.empty
    assert list(frame.columns) == ["time", "x", "y", "value"]


def test_write_csv(tmp_path):
    """Test that the CSV can be read back."""
    series = TimeSeries(900.0)
    series.bin(0.0).value = make_grid()
    path = tmp_path / "raster.csv"

    write_csv(series, str(path))

    frame = pd.read_csv(path)
    assert list(frame.columns) == ["time", "x", "y", "value"]
    assert frame.value.sum() == pytest.approx(3.0)


def test_save_png_and_world_file(tmp_path):
    """Test PNG and PGW output."""
    grid = make_grid()
    grid.set_by_index(0, 0, FAILED)
    output = RasterOutput(grid)
    prefix = str(tmp_path / "raster")

    output.save_png(prefix, title="test")

    assert (tmp_path / "raster.png").exists()
    lines = (tmp_path / "raster.pgw").read_text().splitlines()
    assert len(lines) == 6
    assert float(lines[0]) == 10.0
    assert float(lines[3]) == -10.0
    assert float(lines[4]) == 5.0
    assert float(lines[5]) == 25.0


def test_save_png_log_scale(tmp_path):
    """Test an image with a large dynamic range."""
    grid = make_grid()
    grid.set_by_index(3, 2, 1e6)

    RasterOutput(grid).save_png(str(tmp_path / "log"))

    assert (tmp_path / "log.png").exists()


def test_grid_statistics():
    """Test that marker cells are kept out of the totals."""
    grid = make_grid()
    grid.set_by_index(0, 0, EXCLUDED)
    grid.set_by_index(3, 2, FAILED)

    stats = RasterOutput(grid).get_grid_statistics()

    assert stats["total_value"] == pytest.approx(3.0)
    assert stats["max_value"] == 2.0
    assert stats["affected_cells"] == 2
    assert stats["marked_cells"] == 2
    assert stats["total_cells"] == 12
    assert stats["affected_area_m2"] == 200.0
