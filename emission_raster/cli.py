"""
Command-line interface for the emission raster.

All inputs are read from a JSON configuration file:

    {
        "bounds": [min_x, min_y, max_x, max_y],
        "cell_size": 10,
        "bin_width": 900,
        "segments": [{"id": "a", "from": [0, 0], "to": [100, 0], "lanes": 2}],
        "events": [{"time": 10, "segment": "a", "emissions": {"NO2": 1.5}}],
        "species": ["NO2"],
        "radius": 10,
        "targets": [{"time": 0, "x": 50, "y": 0, "value": 0.3}]
    }
"""

import argparse
import json
import logging
import sys

from .config import (BUFFER_FACTOR, DEFAULT_BIN_WIDTH, DEFAULT_CELL_SIZE,
                     LANE_WIDTH)
from .grid import Bounds, Grid
from .neighbors import NeighborIndex
from .network import LineSegment, Network, aggregate_emissions, merge_species
from .output import RasterOutput, write_csv
from .rasterizer import rasterize_time_series
from .smoothing import smooth_time_series
from .solver import RadiusSolver, calibrate_time_series, summarize_radii
from .timeseries import TimeSeries

METHODS = ("thin", "thick", "gaussian", "calibrate")


def load_config(config_file: str) -> dict:
    """Load configuration from JSON file."""
    with open(config_file, 'r') as f:
        return json.load(f)


def build_network(config: dict) -> Network:
    return Network.from_segments(
        LineSegment(
            id=s["id"],
            from_xy=tuple(s["from"]),
            to_xy=tuple(s["to"]),
            length=s.get("length"),
            lanes=s.get("lanes", 1.0),
        )
        for s in config["segments"]
    )


def build_events(config: dict):
    return [(e["time"], e["segment"], e["emissions"]) for e in config.get("events", [])]


def build_blocked(config: dict, bounds: Bounds, cell_size: float):
    """Boolean mask of building cells listed as [x, y] coordinates."""
    buildings = config.get("buildings")
    if not buildings:
        return None
    mask = Grid(bounds, cell_size, default=False, dtype=bool)
    for x, y in buildings:
        mask.set(x, y, True)
    return mask.values


def build_targets(config: dict, bounds: Bounds, cell_size: float, bin_width: float,
                  start_time: float) -> TimeSeries:
    targets: TimeSeries = TimeSeries(bin_width, start_time)
    for t in config.get("targets", []):
        grid = targets.bin(t["time"], default=lambda: Grid(bounds, cell_size)).value
        grid.set(t["x"], t["y"], t["value"])
    return targets


def save_pngs(series: TimeSeries, prefix: str):
    for time_bin in series.bins():
        if not time_bin.has_value():
            continue
        stamp = int(time_bin.start_time)
        if isinstance(time_bin.value, dict):
            for species, grid in time_bin.value.items():
                RasterOutput(grid).save_png(f"{prefix}_{species}_{stamp}",
                                            title=f"{species} at {stamp} s")
        else:
            RasterOutput(time_bin.value).save_png(f"{prefix}_{stamp}", title=f"{stamp} s")


def main(argv=None):
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description="Distribute line segment emissions onto a regular raster"
    )

    parser.add_argument(
        "config",
        type=str,
        help="Configuration file (JSON)"
    )

    parser.add_argument(
        "--method",
        choices=METHODS,
        default="thin",
        help="thin/thick rasterization, gaussian smoothing or radius calibration (default: thin)"
    )

    parser.add_argument(
        "-o", "--output",
        type=str,
        default="emission_raster",
        help="Output filename prefix (default: emission_raster)"
    )

    parser.add_argument(
        "--log",
        type=str,
        default="INFO",
        help="Log level (default: INFO)"
    )

    parser.add_argument(
        "--png",
        action="store_true",
        help="Also write a PNG + PGW image per time bin"
    )

    parser.add_argument(
        "--newton",
        action="store_true",
        help="Refine calibrated radii with Newton steps"
    )

    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log.upper(), logging.INFO),
                        format="%(asctime)s | %(levelname)s | %(message)s")

    try:
        config = load_config(args.config)
    except (OSError, json.JSONDecodeError) as e:
        print(f"Error: could not read config '{args.config}': {e}")
        sys.exit(1)

    for key in ("bounds", "segments"):
        if key not in config:
            print(f"Error: config is missing '{key}'")
            sys.exit(1)

    bounds = Bounds(*config["bounds"])
    cell_size = config.get("cell_size", DEFAULT_CELL_SIZE)
    bin_width = config.get("bin_width", DEFAULT_BIN_WIDTH)
    start_time = config.get("start_time", 0.0)
    network = build_network(config)
    species = config.get("species")

    emissions = aggregate_emissions(
        build_events(config), bin_width,
        species=species,
        scale_factor=config.get("scale_factor", 1.0),
        network=network,
        start_time=start_time,
    )
    blocked = build_blocked(config, bounds, cell_size)

    print("=" * 60)
    print("Emission Raster")
    print("=" * 60)
    print(f"Method: {args.method}")
    print(f"Segments: {len(network)}")
    print(f"Time bins: {len(emissions)} of {bin_width} s")
    print(f"Cell size: {cell_size} m")
    print("=" * 60)

    if args.method in ("thin", "thick"):
        result = rasterize_time_series(
            emissions, network, bounds, cell_size,
            method=args.method,
            lane_width=config.get("lane_width", LANE_WIDTH),
            blocked=blocked,
        )
    else:
        names = species or sorted({name for b in emissions.bins() if b.has_value() for name in b.value})
        merged = merge_species(emissions, names)

        if args.method == "gaussian":
            if "radius" not in config:
                print("Error: method 'gaussian' requires 'radius' in config")
                sys.exit(1)
            result = smooth_time_series(
                merged, network, bounds, cell_size, config["radius"], excluded=blocked
            )
        else:
            targets = build_targets(config, bounds, cell_size, bin_width, start_time)
            if len(targets) == 0:
                print("Error: method 'calibrate' requires 'targets' in config")
                sys.exit(1)
            index = NeighborIndex(
                network, bounds, cell_size,
                buffer_distance=config.get("buffer_distance",
                                           BUFFER_FACTOR * config.get("radius", cell_size)),
            )
            solver = RadiusSolver(newton=args.newton)
            result = calibrate_time_series(targets, merged, network, index, solver,
                                           excluded=blocked)
            for time_bin in result.bins():
                summary = summarize_radii(time_bin.value)
                print(f"  {time_bin.start_time} s: {summary['solved']} solved, "
                      f"{summary['failed']} failed, mean radius {summary['mean_radius']:.3f} m")

    frame = write_csv(result, f"{args.output}.csv")
    print(f"\nWrote {len(frame)} rows to {args.output}.csv")

    if args.png:
        save_pngs(result, args.output)
        print(f"Wrote images with prefix {args.output}")


if __name__ == "__main__":
    main()
