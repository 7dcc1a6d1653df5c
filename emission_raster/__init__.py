"""
Emission Raster - distribute line source emissions onto a regular raster.

This package turns time binned emissions of road segments into concentration
like rasters, either by rasterizing the segments directly or by smoothing them
with a Gaussian line kernel whose radius can be calibrated per cell.
"""

__version__ = "0.1.0"
__author__ = "emission_raster contributors"

from .errors import EmissionRasterError, InvalidBoundsError, InvalidSegmentError, OutOfBoundsError
from .grid import Bounds, Grid
from .timeseries import TimeBin, TimeSeries
from .network import LineSegment, Network, aggregate_emissions, merge_species
from .rasterizer import rasterize_network, rasterize_segment, rasterize_segment_thick, rasterize_time_series
from .kernel import SegmentArrays, calculate_weight, sumf
from .neighbors import NeighborIndex
from .monitoring import ProgressCounter, WarningRateLimiter
from .solver import RadiusSolver, calibrate_radii, calibrate_time_series
from .smoothing import smooth_emissions, smooth_time_series
from .output import RasterOutput, to_dataframe, write_csv

__all__ = [
    "EmissionRasterError",
    "InvalidBoundsError",
    "InvalidSegmentError",
    "OutOfBoundsError",
    "Bounds",
    "Grid",
    "TimeBin",
    "TimeSeries",
    "LineSegment",
    "Network",
    "aggregate_emissions",
    "merge_species",
    "rasterize_network",
    "rasterize_segment",
    "rasterize_segment_thick",
    "rasterize_time_series",
    "SegmentArrays",
    "calculate_weight",
    "sumf",
    "NeighborIndex",
    "ProgressCounter",
    "WarningRateLimiter",
    "RadiusSolver",
    "calibrate_radii",
    "calibrate_time_series",
    "smooth_emissions",
    "smooth_time_series",
    "RasterOutput",
    "to_dataframe",
    "write_csv",
]
