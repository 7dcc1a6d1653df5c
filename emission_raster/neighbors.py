"""
Per cell lookup of the segments which can influence a cell.
"""

import logging
from typing import FrozenSet, Hashable, Optional, Union

import shapely
from shapely.geometry import LineString, Point
from shapely.geometry.base import BaseGeometry

from .config import BUFFER_FACTOR, MAX_WORKERS, PROGRESS_INTERVAL
from .grid import Bounds, Grid
from .monitoring import ProgressCounter
from .network import LineSegment, Network

logger = logging.getLogger(__name__)

EMPTY: FrozenSet[Hashable] = frozenset()


def buffer_distance_for_radius(radius: float, factor: float = BUFFER_FACTOR) -> float:
    """Buffer distance capturing nearly all smoothed mass of a segment."""
    return factor * radius


def _buffer_segment(segment: LineSegment, distance: float) -> BaseGeometry:
    if segment.from_xy == segment.to_xy:
        return Point(segment.from_xy).buffer(distance, quad_segs=1, cap_style="square")
    line = LineString([segment.from_xy, segment.to_xy])
    return line.buffer(distance, quad_segs=1, cap_style="square")


class NeighborIndex:
    """
    Sets of segment ids whose buffered geometry covers a cell.

    The spatial tree and the per cell sets are built completely in the
    constructor. Afterwards the index is read-only and may be queried from
    several threads.
    """

    def __init__(
        self,
        network: Network,
        grid_or_bounds: Union[Grid, Bounds],
        cell_size: Optional[float] = None,
        buffer_distance: float = 50.0,
        study_area: Optional[BaseGeometry] = None,
        max_workers: Optional[int] = MAX_WORKERS,
        progress_interval: int = PROGRESS_INTERVAL,
    ):
        """
        Args:
            network: Segments to index
            grid_or_bounds: Grid, or bounds of the cells to precompute
            cell_size: Cell size, required if bounds are passed
            buffer_distance: Distance by which each segment is buffered
            study_area: If given, segments whose buffer is not covered by it
                are left out of the index
            max_workers: Threads used for the per cell precomputation
            progress_interval: Log progress every n cells
        """
        if isinstance(grid_or_bounds, Grid):
            bounds, cell_size = grid_or_bounds.bounds, grid_or_bounds.cell_size
        else:
            if cell_size is None:
                raise ValueError("cell_size is required when bounds are passed")
            bounds = grid_or_bounds
        if not buffer_distance > 0:
            raise ValueError(f"Buffer distance must be positive, was {buffer_distance}")

        self.buffer_distance = buffer_distance
        logger.info("Creating spatial index for %d segments", len(network))

        ids, geometries = [], []
        for segment in network:
            geometry = _buffer_segment(segment, buffer_distance)
            if study_area is not None and not study_area.covers(geometry):
                continue
            ids.append(segment.id)
            geometries.append(geometry)

        self._ids = ids
        self._geometries = geometries
        self._tree = shapely.STRtree(geometries) if geometries else None
        logger.info("Indexed %d of %d segments", len(ids), len(network))

        self.grid = Grid(bounds, cell_size, default=EMPTY, dtype=object)
        progress = ProgressCounter(self.grid.size, interval=progress_interval, logger=logger)

        def cell_ids(xi, yi, x, y):
            result = self.query(x, y)
            progress.increment()
            return result

        self.grid.set_each_cell(cell_ids, parallel=True, max_workers=max_workers)
        logger.info("Finished neighbor lookup for %d cells", self.grid.size)

    def __len__(self) -> int:
        return len(self._geometries)

    def query(self, x: float, y: float) -> FrozenSet[Hashable]:
        """Ids of all segments whose buffer contains (x, y), boundary included."""
        if not self._geometries:
            return EMPTY
        hits = self._tree.query(Point(x, y), predicate="intersects")
        if len(hits) == 0:
            return EMPTY
        return frozenset(self._ids[i] for i in hits)

    def ids_at(self, x: float, y: float) -> FrozenSet[Hashable]:
        return self.grid.get(x, y)

    def ids_at_index(self, xi: int, yi: int) -> FrozenSet[Hashable]:
        return self.grid.get_by_index(xi, yi)

    def referenced_ids(self) -> FrozenSet[Hashable]:
        """Union of the ids of all cells, used to cut a network down."""
        result = set()
        for ids in self.grid.values.flat:
            result.update(ids)
        return frozenset(result)
