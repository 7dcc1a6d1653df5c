"""
Mass conserving rasterization of line segments.

The emission of a segment is spread evenly over the cells the segment
occupies and divided by the cell area, e.g. 100 g on a segment covering two
cells of 10 m results in 100 / 2 / (10 * 10) = 0.5 g/m² per cell.

Each segment is rasterized in two passes over the same cell generator. The
first pass counts the cells which may receive mass, the second one deposits
mass / count / cell_area into exactly those cells.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, Hashable, Iterator, Mapping, Optional, Tuple, Union

import numpy as np
import shapely
from shapely.geometry import LineString

from .config import BUILDING_THRESHOLD, LANE_WIDTH, MAX_WORKERS
from .grid import Bounds, Grid
from .network import LineSegment, Network
from .timeseries import TimeSeries

logger = logging.getLogger(__name__)

Cell = Tuple[int, int]
Blocked = Optional[Union[np.ndarray, Grid]]


def _keep_rasterizing(value: int, end: int, step: int) -> bool:
    # the last cell is included, so the exit condition depends on the direction
    if step > 0:
        return value <= end
    return value >= end


def bresenham_cells(x0: int, y0: int, x1: int, y1: int) -> Iterator[Cell]:
    """
    Yield the cells of a 1-cell wide line from (x0, y0) to (x1, y1).

    Both end cells are part of the result and every cell is yielded once.
    """
    dx = abs(x1 - x0)
    dy = -abs(y1 - y0)

    if dx == 0 and dy == 0:
        yield x0, y0
        return

    sx = 1 if x0 < x1 else -1
    sy = 1 if y0 < y1 else -1
    err = dx + dy

    while True:
        yield x0, y0

        e2 = 2 * err
        if e2 >= dy:
            err += dy
            x0 += sx
        if e2 <= dx:
            err += dx
            y0 += sy

        if not (_keep_rasterizing(x0, x1, sx) and _keep_rasterizing(y0, y1, sy)):
            break


def _cell_index(value: float, origin: float, cell_size: float) -> int:
    return int(math.floor((value - origin) / cell_size))


def segment_cells(segment: LineSegment, grid: Grid) -> Iterator[Cell]:
    """
    Thin cell path of a segment in index space of `grid`.

    Indices are not clamped. Cells outside of the grid are yielded as well
    and have to be skipped by the caller.
    """
    min_x, min_y = grid.bounds.min_x, grid.bounds.min_y
    x0 = _cell_index(segment.from_xy[0], min_x, grid.cell_size)
    y0 = _cell_index(segment.from_xy[1], min_y, grid.cell_size)
    x1 = _cell_index(segment.to_xy[0], min_x, grid.cell_size)
    y1 = _cell_index(segment.to_xy[1], min_y, grid.cell_size)
    return bresenham_cells(x0, y0, x1, y1)


def stroke_width_in_cells(segment: LineSegment, cell_size: float,
                          lane_width: float = LANE_WIDTH) -> float:
    """Stroke width of a segment in cells, never less than one cell."""
    return max(1.0, segment.lanes * lane_width / cell_size)


def stroke_cells(segment: LineSegment, grid: Grid, width: float) -> Iterator[Cell]:
    """
    Cells covered by the segment drawn with a stroke of `width` cells.

    A cell is covered if its centre lies inside the stroked line (square
    caps). The thin path is always part of the result, so narrow strokes
    never lose cells. Only cells inside the grid are yielded, in row-major
    order.

    Args:
        segment: Segment to draw
        grid: Target grid, defines index space and clipping
        width: Stroke width in cells
    """
    path = list(segment_cells(segment, grid))
    thin = [cell for cell in path if grid.contains_index(*cell)]

    xs = [cell[0] for cell in path]
    ys = [cell[1] for cell in path]
    padding = int(math.ceil(width * math.sqrt(2) / 2.0)) + 1
    min_xi = max(0, min(xs) - padding)
    max_xi = min(grid.x_length - 1, max(xs) + padding)
    min_yi = max(0, min(ys) - padding)
    max_yi = min(grid.y_length - 1, max(ys) + padding)

    covered = set(thin)
    if min_xi <= max_xi and min_yi <= max_yi:
        min_x, min_y = grid.bounds.min_x, grid.bounds.min_y
        start = ((segment.from_xy[0] - min_x) / grid.cell_size,
                 (segment.from_xy[1] - min_y) / grid.cell_size)
        end = ((segment.to_xy[0] - min_x) / grid.cell_size,
               (segment.to_xy[1] - min_y) / grid.cell_size)
        if start == end:
            stroke = shapely.box(start[0] - width / 2.0, start[1] - width / 2.0,
                                 start[0] + width / 2.0, start[1] + width / 2.0)
        else:
            stroke = LineString([start, end]).buffer(width / 2.0, cap_style="square")

        xi, yi = np.meshgrid(np.arange(min_xi, max_xi + 1),
                             np.arange(min_yi, max_yi + 1), indexing="ij")
        inside = shapely.contains_xy(stroke, xi + 0.5, yi + 0.5)
        covered.update(zip(xi[inside].tolist(), yi[inside].tolist()))

    for cell in sorted(covered, key=lambda c: (c[1], c[0])):
        yield cell


def _blocked_array(blocked: Blocked) -> Optional[np.ndarray]:
    if blocked is None:
        return None
    if isinstance(blocked, Grid):
        return blocked.values.astype(bool)
    return np.asarray(blocked, dtype=bool)


def building_mask(buildings: Grid, threshold: float = BUILDING_THRESHOLD) -> np.ndarray:
    """Boolean array marking non-traversable cells (value > threshold)."""
    return buildings.values > threshold


def _deposit(cells, mass: float, grid: Grid, blocked: Optional[np.ndarray]) -> int:
    def eligible(xi, yi):
        if not grid.contains_index(xi, yi):
            return False
        return blocked is None or not blocked[xi, yi]

    # first pass, count the cells which receive mass
    count = sum(1 for xi, yi in cells() if eligible(xi, yi))
    if count == 0:
        return 0

    # second pass, write the values
    value = mass / count / grid.cell_area
    for xi, yi in cells():
        if eligible(xi, yi):
            grid.data[xi, yi] += value
    return count


def rasterize_segment(segment: LineSegment, mass: float, grid: Grid,
                      blocked: Blocked = None) -> int:
    """
    Spread `mass` over the thin cell path of `segment`.

    Returns:
        Number of cells which received mass. 0 if the segment lies outside
        of the grid, in which case its mass is dropped.
    """
    return _deposit(lambda: segment_cells(segment, grid), mass, grid,
                    _blocked_array(blocked))


def rasterize_segment_thick(segment: LineSegment, mass: float, grid: Grid,
                            lane_width: float = LANE_WIDTH,
                            blocked: Blocked = None) -> int:
    """
    Spread `mass` over all cells of `segment` drawn with its lane width.

    Blocked cells (buildings) are neither counted nor written, so the whole
    mass ends up in the remaining cells.

    Returns:
        Number of cells which received mass
    """
    width = stroke_width_in_cells(segment, grid.cell_size, lane_width)
    return _deposit(lambda: stroke_cells(segment, grid, width), mass, grid,
                    _blocked_array(blocked))


def rasterize_network(
    network: Network,
    emissions: Mapping[Hashable, float],
    bounds: Bounds,
    cell_size: float,
    method: str = "thin",
    lane_width: float = LANE_WIDTH,
    blocked: Blocked = None,
) -> Grid:
    """
    Rasterize the emissions of one time bin.

    Args:
        network: Segments referenced by `emissions`
        emissions: Mass per segment id
        bounds: Bounds of the resulting grid
        cell_size: Cell size of the resulting grid
        method: 'thin' for 1-cell lines, 'thick' for lines with lane width
        lane_width: Width of a lane, only used by 'thick'
        blocked: Cells which must not receive mass, only used by 'thick'

    Returns:
        Grid with mass per area
    """
    if method not in ("thin", "thick"):
        raise ValueError(f"Unknown rasterization method '{method}'")

    grid = Grid(bounds, cell_size)
    mask = _blocked_array(blocked)
    dropped = 0

    for segment_id, mass in emissions.items():
        segment = network[segment_id]
        if method == "thin":
            count = rasterize_segment(segment, mass, grid)
        else:
            count = rasterize_segment_thick(segment, mass, grid, lane_width, mask)
        if count == 0:
            dropped += 1

    if dropped:
        logger.debug("%d segments had no cell inside the grid, their emissions were dropped", dropped)
    return grid


def rasterize_time_series(
    series: TimeSeries,
    network: Network,
    bounds: Bounds,
    cell_size: float,
    method: str = "thin",
    lane_width: float = LANE_WIDTH,
    blocked: Blocked = None,
    max_workers: Optional[int] = MAX_WORKERS,
) -> TimeSeries:
    """
    Rasterize every bin of a {species: {segment_id: mass}} series.

    Bins are independent and processed on a thread pool.

    Returns:
        TimeSeries of {species: Grid}
    """
    result: TimeSeries = TimeSeries(series.bin_width, series.start_time)
    bins = [time_bin for time_bin in series.bins() if time_bin.has_value()]

    def rasterize_bin(by_species) -> Dict[str, Grid]:
        return {
            name: rasterize_network(network, emissions, bounds, cell_size,
                                    method, lane_width, blocked)
            for name, emissions in by_species.items()
        }

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {executor.submit(rasterize_bin, time_bin.value): time_bin.start_time
                   for time_bin in bins}
        for future in as_completed(futures):
            start_time = futures[future]
            result.bin(start_time).value = future.result()
            logger.info("Rasterized time bin %s", start_time)

    return result
