"""
Calibration of the smoothing radius per raster cell.

For a target value at a receptor and the emissions of the surrounding
segments the solver searches the radius R for which the Gaussian line kernel
reproduces the target. Cells where this is not possible get a marker value
instead of a radius, so a single bad cell never aborts a sweep.
"""

import logging
import math
from typing import Dict, Hashable, Mapping, Optional, Tuple

import numpy as np

from .config import (BISECT_TOLERANCE, EXCLUDED, FAILED, MAX_WORKERS,
                     NEWTON_MAX_ITERATIONS, NEWTON_STEP, NEWTON_TOLERANCE,
                     NO_TARGET, PROGRESS_INTERVAL, RADIUS_LOWER_BOUND,
                     RADIUS_UPPER_BOUND)
from .grid import Grid
from .kernel import Emissions, SegmentArrays, sumf
from .monitoring import ProgressCounter, WarningRateLimiter
from .neighbors import NeighborIndex
from .network import Network
from .timeseries import TimeSeries

logger = logging.getLogger(__name__)


class RadiusSolver:
    """
    Finds R in [lower_bound, upper_bound] with sumf(R) == target.

    The root is bracketed and bisected until the bracket is narrower than
    `tolerance`. Optionally a few Newton steps refine the bisection result.
    """

    def __init__(
        self,
        lower_bound: float = RADIUS_LOWER_BOUND,
        upper_bound: float = RADIUS_UPPER_BOUND,
        tolerance: float = BISECT_TOLERANCE,
        newton: bool = False,
        newton_step: float = NEWTON_STEP,
        newton_max_iterations: int = NEWTON_MAX_ITERATIONS,
        newton_tolerance: float = NEWTON_TOLERANCE,
        rate_limiter: Optional[WarningRateLimiter] = None,
    ):
        if not 0 < lower_bound < upper_bound:
            raise ValueError(
                f"Invalid bracket [{lower_bound}, {upper_bound}], need 0 < lower < upper"
            )
        if not tolerance > 0:
            raise ValueError(f"Tolerance must be positive, was {tolerance}")

        self.lower_bound = lower_bound
        self.upper_bound = upper_bound
        self.tolerance = tolerance
        self.newton = newton
        self.newton_step = newton_step
        self.newton_max_iterations = newton_max_iterations
        self.newton_tolerance = newton_tolerance
        self.rate_limiter = rate_limiter or WarningRateLimiter(logger=logger)

    def solve(self, emissions: Emissions, receptor: Tuple[float, float],
              target: float, cell_area: float) -> float:
        """
        Args:
            emissions: Segments and masses influencing the receptor
            receptor: Coordinate of the cell
            target: Value to reproduce
            cell_area: Area of a raster cell

        Returns:
            The radius, NO_TARGET if target <= 0 or FAILED if no radius in
            the bracket reproduces the target
        """
        if target <= 0:
            return NO_TARGET

        if not isinstance(emissions, SegmentArrays):
            emissions = SegmentArrays.from_pairs(emissions)
        if len(emissions) == 0:
            self.rate_limiter.warn("No emissions influence receptor %s, target was %s",
                                   receptor, target)
            return FAILED

        def f(radius):
            return sumf(emissions, receptor, radius, cell_area) - target

        lower, upper = self.lower_bound, self.upper_bound
        f_lower = f(lower)
        f_upper = f(upper)

        if np.sign(f_lower) == np.sign(f_upper):
            self.rate_limiter.warn(
                "No root in [%s, %s] for receptor %s. Target was %s, f(lower)=%s, f(upper)=%s",
                lower, upper, receptor, target, f_lower, f_upper,
            )
            return FAILED

        while upper - lower > self.tolerance:
            center = (lower + upper) / 2
            f_center = f(center)
            if np.sign(f_center) == np.sign(f_lower):
                lower, f_lower = center, f_center
            else:
                upper = center
        center = (lower + upper) / 2

        if self.newton:
            return self._refine(f, center, lower, upper)
        return center

    def _refine(self, f, start: float, lower: float, upper: float) -> float:
        """
        Newton iteration with a symmetric difference quotient.

        Falls back to `start` if an iterate is not finite, leaves
        [lower, upper] or doesn't converge.
        """
        h = self.newton_step
        r = start
        for _ in range(self.newton_max_iterations):
            if r - h <= 0:
                return start
            slope = (f(r + h) - f(r - h)) / (2 * h)
            if slope == 0 or not math.isfinite(slope):
                return start
            r_next = r - f(r) / slope
            if not math.isfinite(r_next) or not lower <= r_next <= upper:
                return start
            if abs(r_next - r) <= self.newton_tolerance:
                return r_next
            r = r_next
        return start


def calibrate_radii(
    target: Grid,
    emissions: Mapping[Hashable, float],
    network: Network,
    neighbor_index: NeighborIndex,
    solver: Optional[RadiusSolver] = None,
    excluded=None,
    max_workers: Optional[int] = MAX_WORKERS,
    progress_interval: int = PROGRESS_INTERVAL,
) -> Grid:
    """
    Solve the smoothing radius for every cell of `target`.

    Args:
        target: Reference values, e.g. concentrations of a dispersion model
        emissions: Mass per segment id of the matching time bin
        network: Segment lookup
        neighbor_index: Segments influencing each cell, built on target's cells
        solver: Solver to use, a default RadiusSolver if None
        excluded: Boolean array (or Grid) of cells outside of the domain
        max_workers: Threads for the per column sweep

    Returns:
        Grid of radii with EXCLUDED, NO_TARGET and FAILED markers
    """
    solver = solver or RadiusSolver()
    mask = None
    if excluded is not None:
        mask = excluded.values.astype(bool) if isinstance(excluded, Grid) else np.asarray(excluded, dtype=bool)

    result = Grid.like(target)
    progress = ProgressCounter(target.size, interval=progress_interval, logger=logger)

    def solve_cell(xi, yi, x, y):
        progress.increment()
        if mask is not None and mask[xi, yi]:
            return EXCLUDED
        value = target.data[xi, yi]
        if value <= 0:
            return NO_TARGET
        ids = neighbor_index.ids_at_index(xi, yi)
        cell_emissions = SegmentArrays.from_emissions(network, emissions, ids)
        return solver.solve(cell_emissions, (x, y), value, target.cell_area)

    result.set_each_cell(solve_cell, parallel=True, max_workers=max_workers)

    summary = summarize_radii(result)
    logger.info("Calibrated %d cells: %d solved, %d failed, %d excluded, %d without target",
                result.size, summary["solved"], summary["failed"],
                summary["excluded"], summary["no_target"])
    return result


def calibrate_time_series(
    targets: TimeSeries,
    emissions_series: TimeSeries,
    network: Network,
    neighbor_index: NeighborIndex,
    solver: Optional[RadiusSolver] = None,
    excluded=None,
    max_workers: Optional[int] = MAX_WORKERS,
) -> TimeSeries:
    """
    Calibrate one radius grid per bin of `targets`.

    Emissions are looked up by the start time of the target bin. Bins without
    emissions are calibrated against no emissions, i.e. every cell with a
    target fails.
    """
    solver = solver or RadiusSolver()
    result: TimeSeries = TimeSeries(targets.bin_width, targets.start_time)

    for time_bin in targets.bins():
        if not time_bin.has_value():
            continue
        emissions = {}
        if time_bin.start_time in emissions_series:
            emissions = emissions_series.bin(time_bin.start_time).value or {}
        logger.info("Calibrating radii for time bin %s", time_bin.start_time)
        result.bin(time_bin.start_time).value = calibrate_radii(
            time_bin.value, emissions, network, neighbor_index, solver,
            excluded=excluded, max_workers=max_workers,
        )
    return result


def summarize_radii(radii: Grid) -> Dict[str, float]:
    """Counts of marker cells and the mean of the solved radii."""
    values = radii.values
    solved = values > 0
    return {
        "solved": int(np.count_nonzero(solved)),
        "failed": int(np.count_nonzero(values == FAILED)),
        "excluded": int(np.count_nonzero(values == EXCLUDED)),
        "no_target": int(np.count_nonzero(values == NO_TARGET)),
        "mean_radius": float(values[solved].mean()) if solved.any() else float("nan"),
    }
