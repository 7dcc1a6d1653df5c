"""
Fixed radius smoothing of segment emissions onto a raster.

Every cell receives the value the Gaussian line kernel models for the
emissions of its neighboring segments, using one radius for all cells.
"""

import logging
from typing import Hashable, Mapping, Optional

import numpy as np
from shapely.geometry.base import BaseGeometry

from .config import BUFFER_FACTOR, EXCLUDED, MAX_WORKERS
from .grid import Bounds, Grid
from .kernel import SegmentArrays, sumf
from .neighbors import NeighborIndex, buffer_distance_for_radius
from .network import Network
from .timeseries import TimeSeries

logger = logging.getLogger(__name__)


def smooth_emissions(
    emissions: Mapping[Hashable, float],
    network: Network,
    neighbor_index: NeighborIndex,
    radius: float,
    excluded=None,
    max_workers: Optional[int] = MAX_WORKERS,
) -> Grid:
    """
    Smooth the emissions of one time bin with a fixed radius.

    Args:
        emissions: Mass per segment id
        network: Segment lookup
        neighbor_index: Neighbors per cell, defines the resulting grid
        radius: Smoothing radius R
        excluded: Boolean array (or Grid) of cells set to EXCLUDED

    Returns:
        Grid with modelled values per cell
    """
    if not radius > 0:
        raise ValueError(f"Radius must be positive, was {radius}")

    mask = None
    if excluded is not None:
        mask = excluded.values.astype(bool) if isinstance(excluded, Grid) else np.asarray(excluded, dtype=bool)

    result = Grid.like(neighbor_index.grid)
    cell_area = result.cell_area

    def smooth_cell(xi, yi, x, y):
        if mask is not None and mask[xi, yi]:
            return EXCLUDED
        ids = neighbor_index.ids_at_index(xi, yi)
        if not ids:
            return 0.0
        cell_emissions = SegmentArrays.from_emissions(network, emissions, ids)
        return sumf(cell_emissions, (x, y), radius, cell_area)

    result.set_each_cell(smooth_cell, parallel=True, max_workers=max_workers)
    return result


def smooth_time_series(
    series: TimeSeries,
    network: Network,
    bounds: Bounds,
    cell_size: float,
    radius: float,
    excluded=None,
    study_area: Optional[BaseGeometry] = None,
    buffer_factor: float = BUFFER_FACTOR,
    max_workers: Optional[int] = MAX_WORKERS,
) -> TimeSeries:
    """
    Smooth every bin of a {segment_id: mass} series.

    The neighbor index is built once and shared by all bins.

    Returns:
        TimeSeries of Grid
    """
    index = NeighborIndex(
        network, bounds, cell_size,
        buffer_distance=buffer_distance_for_radius(radius, buffer_factor),
        study_area=study_area, max_workers=max_workers,
    )

    result: TimeSeries = TimeSeries(series.bin_width, series.start_time)
    for time_bin in series.bins():
        if not time_bin.has_value():
            continue
        logger.info("Smoothing time bin %s", time_bin.start_time)
        result.bin(time_bin.start_time).value = smooth_emissions(
            time_bin.value, network, index, radius, excluded, max_workers
        )

    logger.info("Total emissions on segments: %s", total_emissions(series))
    logger.info("Total of smoothed rasters: %s", total_raster(result))
    return result


def total_emissions(series: TimeSeries) -> float:
    """Sum of all masses of a {segment_id: mass} series."""
    return float(sum(sum(b.value.values()) for b in series.bins() if b.has_value()))


def total_raster(series: TimeSeries) -> float:
    """Sum of all positive cell values of a Grid series, markers are skipped."""
    total = 0.0
    for time_bin in series.bins():
        if time_bin.has_value():
            values = time_bin.value.values
            total += float(values[values > 0].sum())
    return total
