"""
Output of rasters as CSV tables and georeferenced PNG images.

Images are written with a PGW world file so they can be opened in GIS
software next to the road network.
"""

import logging
from typing import Optional

import numpy as np
import pandas as pd

from .grid import Grid
from .timeseries import TimeSeries

logger = logging.getLogger(__name__)

COLUMNS = ["time", "x", "y", "value"]


def _grid_frame(grid: Grid, time: float, include_zero: bool) -> pd.DataFrame:
    xs, ys = grid.coordinates()
    x, y = np.meshgrid(xs, ys, indexing="ij")
    values = grid.values.astype(float)
    keep = np.ones(values.shape, dtype=bool) if include_zero else values != 0
    return pd.DataFrame({
        "time": time,
        "x": x[keep],
        "y": y[keep],
        "value": values[keep],
    })


def to_dataframe(series: TimeSeries, include_zero: bool = False) -> pd.DataFrame:
    """
    Flatten a raster series into a table with one row per cell and bin.

    Series of {species: Grid} get an additional 'species' column.

    Args:
        series: TimeSeries of Grid or of {species: Grid}
        include_zero: Also write cells with value 0

    Returns:
        DataFrame with columns time, x, y, value (and species)
    """
    frames = []
    has_species = False
    for time_bin in series.bins():
        if not time_bin.has_value():
            continue
        if isinstance(time_bin.value, dict):
            has_species = True
            for species, grid in time_bin.value.items():
                frame = _grid_frame(grid, time_bin.start_time, include_zero)
                frame.insert(1, "species", species)
                frames.append(frame)
        else:
            frames.append(_grid_frame(time_bin.value, time_bin.start_time, include_zero))

    columns = COLUMNS[:1] + ["species"] + COLUMNS[1:] if has_species else COLUMNS
    if not frames:
        return pd.DataFrame(columns=columns)
    return pd.concat(frames, ignore_index=True)[columns]


def write_csv(series: TimeSeries, path: str, include_zero: bool = False) -> pd.DataFrame:
    """Write a raster series as time,x,y,value CSV and return the table."""
    frame = to_dataframe(series, include_zero)
    frame.to_csv(path, index=False)
    logger.info("Wrote %d rows to %s", len(frame), path)
    return frame


class RasterOutput:
    """
    Georeferenced image of a single raster.

    Produces PNG images with PGW world files for GIS compatibility. Negative
    marker values (failed or excluded cells) are masked out.
    """

    def __init__(self, grid: Grid):
        self.grid = grid
        self.bounds = grid.bounds
        self.cell_size = grid.cell_size

    def _extent(self):
        # cell values belong to the lower left corner of the cell
        b = self.bounds
        return [
            b.min_x, b.min_x + self.grid.x_length * self.cell_size,
            b.min_y, b.min_y + self.grid.y_length * self.cell_size,
        ]

    def save_png(self, filename: str, colormap: str = "viridis",
                 title: Optional[str] = None, label: str = "Value"):
        """
        Save raster as PNG with PGW world file.

        Args:
            filename: Output filename (without extension)
            colormap: Matplotlib colormap name
            title: Title of the plot
            label: Label of the color bar
        """
        import matplotlib.pyplot as plt
        from matplotlib.colors import LogNorm

        # rows of an image are y, top row is max_y
        image = np.flipud(self.grid.values.astype(float).T)
        masked = np.ma.masked_less(image, 0)

        fig, ax = plt.subplots(figsize=(10, 8))

        positive = image[image > 0]
        vmin = positive.min() if positive.size else 1e-10
        vmax = positive.max() if positive.size else 1.0

        if vmax / vmin > 100:
            norm = LogNorm(vmin=max(vmin, 1e-10), vmax=vmax)
            im = ax.imshow(np.ma.masked_less_equal(image, 0), extent=self._extent(),
                           cmap=colormap, norm=norm, interpolation="nearest")
        else:
            im = ax.imshow(masked, extent=self._extent(), cmap=colormap,
                           vmin=0, vmax=vmax, interpolation="nearest")

        plt.colorbar(im, ax=ax, label=label)
        ax.set_xlabel("x [m]")
        ax.set_ylabel("y [m]")
        ax.set_title(title or "Emission raster")

        plt.savefig(f"{filename}.png", dpi=150, bbox_inches="tight")
        plt.close(fig)

        self._save_world_file(filename)
        logger.info("Wrote %s.png and %s.pgw", filename, filename)

    def _save_world_file(self, filename: str):
        """
        Save PGW world file for georeferencing.

        Lines: x pixel size, two rotation terms, negative y pixel size and
        the coordinate of the centre of the upper left pixel.
        """
        top = self.bounds.min_y + self.grid.y_length * self.cell_size
        with open(f"{filename}.pgw", "w") as f:
            f.write(f"{self.cell_size}\n")
            f.write("0\n")
            f.write("0\n")
            f.write(f"{-self.cell_size}\n")
            f.write(f"{self.bounds.min_x + self.cell_size / 2}\n")
            f.write(f"{top - self.cell_size / 2}\n")

    def get_grid_statistics(self) -> dict:
        """
        Get statistics about the raster.

        Marker cells (negative values) are counted separately and are not
        part of the totals.
        """
        values = self.grid.values.astype(float)
        valid = values >= 0
        affected = values > 0
        return {
            "total_value": float(values[valid].sum()),
            "max_value": float(values[valid].max()) if valid.any() else 0.0,
            "affected_cells": int(affected.sum()),
            "marked_cells": int((~valid).sum()),
            "total_cells": self.grid.size,
            "affected_area_m2": float(affected.sum() * self.grid.cell_area),
        }
