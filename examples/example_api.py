"""
Example script demonstrating the Python API.
"""

from emission_raster import (Bounds, Grid, LineSegment, Network, NeighborIndex,
                             RadiusSolver, RasterOutput, aggregate_emissions,
                             calibrate_radii, merge_species, rasterize_time_series,
                             smooth_time_series, write_csv)


def main():
    """Rasterize, smooth and calibrate a small street network."""
    print("Creating network...")
    network = Network.from_segments([
        LineSegment("main", (0.0, 100.0), (400.0, 100.0), lanes=2),
        LineSegment("side", (200.0, 0.0), (200.0, 300.0)),
        LineSegment("diagonal", (20.0, 20.0), (380.0, 280.0)),
    ])
    bounds = Bounds(0.0, 0.0, 400.0, 300.0)
    cell_size = 10.0

    print("Aggregating emission events...")
    events = [
        (10.0, "main", {"NO2": 12.0, "PM": 3.0}),
        (120.0, "main", {"NO2": 8.0}),
        (300.0, "side", {"NO2": 4.0, "PM": 1.0}),
        (950.0, "diagonal", {"NO2": 6.0}),
    ]
    emissions = aggregate_emissions(events, bin_width=900.0)

    print("Rasterizing (thin and thick)...")
    thin = rasterize_time_series(emissions, network, bounds, cell_size)
    thick = rasterize_time_series(emissions, network, bounds, cell_size, method="thick")
    write_csv(thin, "example_api_thin.csv")
    write_csv(thick, "example_api_thick.csv")

    print("Smoothing with a fixed radius of 15 m...")
    no2 = merge_species(emissions, ["NO2"])
    smoothed = smooth_time_series(no2, network, bounds, cell_size, radius=15.0)
    first = next(smoothed.bins()).value
    RasterOutput(first).save_png("example_api_smoothed", title="NO2, R = 15 m")

    print("Calibrating radii against the smoothed raster...")
    index = NeighborIndex(network, first, buffer_distance=75.0)
    target = Grid.like(first)
    target.data[:] = first.data
    radii = calibrate_radii(target, next(no2.bins()).value, network, index,
                            RadiusSolver(newton=True))

    print("\nGrid statistics:")
    for key, value in RasterOutput(radii).get_grid_statistics().items():
        print(f"  {key}: {value}")

    print("\nDone! Check example_api_*.csv, example_api_smoothed.png and .pgw")


if __name__ == "__main__":
    main()
