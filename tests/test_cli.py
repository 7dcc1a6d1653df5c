"""
Tests for the command-line interface.
"""

import json

import pandas as pd
import pytest

from emission_raster.cli import main

CONFIG = {
    "bounds": [-10.0, -10.0, 110.0, 10.0],
    "cell_size": 10.0,
    "bin_width": 900.0,
    "segments": [
        {"id": "a", "from": [5.0, 0.0], "to": [95.0, 0.0]},
    ],
    "events": [
        {"time": 10.0, "segment": "a", "emissions": {"NO2": 600.0}},
        {"time": 500.0, "segment": "a", "emissions": {"NO2": 400.0}},
        {"time": 950.0, "segment": "unknown", "emissions": {"NO2": 1.0}},
    ],
}


def write_config(tmp_path, **overrides):
    config = dict(CONFIG, **overrides)
    path = tmp_path / "config.json"
    path.write_text(json.dumps(config))
    return str(path)


def test_thin_rasterization(tmp_path):
    """Test the thin rasterization of a single segment."""
    output = tmp_path / "out"

    main([write_config(tmp_path), "-o", str(output), "--log", "WARNING"])

    frame = pd.read_csv(f"{output}.csv")
    assert list(frame.columns) == ["time", "species", "x", "y", "value"]
    assert len(frame) == 10
    assert (frame.value == 1.0).all()
    assert sorted(frame.x.tolist()) == [float(x) for x in range(0, 100, 10)]


def test_gaussian_smoothing(tmp_path):
    """Test smoothing with a fixed radius and image output."""
    output = tmp_path / "smooth"

    main([write_config(tmp_path, radius=5.0), "--method", "gaussian", "-o", str(output), "--png"])

    frame = pd.read_csv(f"{output}.csv")
    assert list(frame.columns) == ["time", "x", "y", "value"]
    assert (frame.value > 0).all()
    assert (tmp_path / "smooth_0.png").exists()
    assert (tmp_path / "smooth_0.pgw").exists()


def test_calibration(tmp_path):
    """Test calibration against point targets."""
    output = tmp_path / "radii"
    targets = [{"time": 0.0, "x": 50.0, "y": 0.0, "value": 5.0}]

    main([write_config(tmp_path, radius=5.0, targets=targets),
          "--method", "calibrate", "-o", str(output)])

    frame = pd.read_csv(f"{output}.csv")
    cell = frame[(frame.x == 50.0) & (frame.y == 0.0)]
    assert len(cell) == 1
    assert 0.1 < cell.value.iloc[0] < 100.0


def test_config_errors(tmp_path):
    """Test that broken configurations exit."""
    with pytest.raises(SystemExit):
        main([str(tmp_path / "missing.json")])

    config = dict(CONFIG)
    del config["bounds"]
    path = tmp_path / "broken.json"
    path.write_text(json.dumps(config))
    with pytest.raises(SystemExit):
        main([str(path)])

    with pytest.raises(SystemExit):
        main([write_config(tmp_path), "--method", "gaussian", "-o", str(tmp_path / "x")])
