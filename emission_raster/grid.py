"""
Regular 2-D raster over a rectangular area.

A grid stores one value per cell in a numpy array of shape
(x_length, y_length). Cells are addressed either by index or by a coordinate
inside the bounds; coordinates outside the bounds are an error and never
clamped silently.
"""

import copy
import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Tuple

import numpy as np
from shapely.geometry import Polygon, box

from .config import MAX_WORKERS
from .errors import InvalidBoundsError, OutOfBoundsError


@dataclass(frozen=True)
class Bounds:
    """Axis aligned rectangle in a projected coordinate system."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    def __post_init__(self):
        values = (self.min_x, self.min_y, self.max_x, self.max_y)
        if not all(math.isfinite(v) for v in values):
            raise InvalidBoundsError(f"Bounds must be finite: {values}")
        if self.min_x >= self.max_x or self.min_y >= self.max_y:
            raise InvalidBoundsError(
                f"Bounds are degenerate: min=({self.min_x}, {self.min_y}), "
                f"max=({self.max_x}, {self.max_y})"
            )

    @classmethod
    def from_coords(cls, coords: Iterable[Tuple[float, float]]) -> "Bounds":
        """Envelope of a set of points."""
        xs, ys = zip(*coords)
        return cls(min(xs), min(ys), max(xs), max(ys))

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def covers(self, x: float, y: float) -> bool:
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y

    def buffer(self, distance: float) -> "Bounds":
        return Bounds(
            self.min_x - distance, self.min_y - distance,
            self.max_x + distance, self.max_y + distance,
        )

    def to_polygon(self) -> Polygon:
        return box(self.min_x, self.min_y, self.max_x, self.max_y)

    def aligned_to(self, other: "Bounds", cell_size: float) -> "Bounds":
        """
        Shift these bounds onto the cell lattice of `other`.

        Width and height are kept. Used to put a smoothed raster on the same
        cells as a reference raster.
        """
        cells_x = round((self.min_x - other.min_x) / cell_size)
        cells_y = round((self.min_y - other.min_y) / cell_size)
        min_x = other.min_x + cells_x * cell_size
        min_y = other.min_y + cells_y * cell_size
        return Bounds(min_x, min_y, min_x + self.width, min_y + self.height)


class Grid:
    """
    Raster holding one value per cell.

    Numeric grids are backed by a float array. Grids created with
    ``dtype=object`` hold arbitrary Python objects, e.g. sets of segment ids.
    """

    def __init__(
        self,
        bounds: Bounds,
        cell_size: float,
        default: Any = 0.0,
        dtype=np.float64,
    ):
        """
        Args:
            bounds: Area covered by the grid
            cell_size: Edge length of a (square) cell, must be positive
            default: Initial value of every cell. For object grids a callable
                is treated as a factory and called once per cell.
            dtype: numpy dtype of the backing array
        """
        if not (cell_size > 0) or not math.isfinite(cell_size):
            raise InvalidBoundsError(f"Cell size must be positive, was {cell_size}")

        self.bounds = bounds
        self.cell_size = float(cell_size)
        self.x_length = int(math.ceil(bounds.width / cell_size)) + 1
        self.y_length = int(math.ceil(bounds.height / cell_size)) + 1
        shape = (self.x_length, self.y_length)

        if dtype is object:
            self.data = np.empty(shape, dtype=object)
            if callable(default):
                for xi in range(self.x_length):
                    for yi in range(self.y_length):
                        self.data[xi, yi] = default()
            else:
                self.data.fill(default)
        else:
            self.data = np.full(shape, default, dtype=dtype)

    @classmethod
    def like(cls, other: "Grid", default: Any = 0.0, dtype=np.float64) -> "Grid":
        """Empty grid with the same bounds and cell size as `other`."""
        return cls(other.bounds, other.cell_size, default=default, dtype=dtype)

    def __repr__(self) -> str:
        return (f"Grid(bounds={self.bounds}, cell_size={self.cell_size}, "
                f"shape={self.shape}, dtype={self.data.dtype})")

    # ------------------------------------------------------------------
    # geometry

    @property
    def shape(self) -> Tuple[int, int]:
        return self.x_length, self.y_length

    @property
    def size(self) -> int:
        return self.x_length * self.y_length

    @property
    def cell_area(self) -> float:
        return self.cell_size * self.cell_size

    @property
    def values(self) -> np.ndarray:
        return self.data

    def x_index(self, x: float) -> int:
        if not self.bounds.min_x <= x <= self.bounds.max_x:
            raise OutOfBoundsError(f"x={x} is outside of {self.bounds}")
        xi = int(math.floor((x - self.bounds.min_x) / self.cell_size))
        return min(max(xi, 0), self.x_length - 1)

    def y_index(self, y: float) -> int:
        if not self.bounds.min_y <= y <= self.bounds.max_y:
            raise OutOfBoundsError(f"y={y} is outside of {self.bounds}")
        yi = int(math.floor((y - self.bounds.min_y) / self.cell_size))
        return min(max(yi, 0), self.y_length - 1)

    def index(self, x: float, y: float) -> Tuple[int, int]:
        if not self.bounds.covers(x, y):
            raise OutOfBoundsError(f"({x}, {y}) is outside of {self.bounds}")
        return self.x_index(x), self.y_index(y)

    def x_coord(self, xi: int) -> float:
        return self.bounds.min_x + xi * self.cell_size

    def y_coord(self, yi: int) -> float:
        return self.bounds.min_y + yi * self.cell_size

    def coordinates(self) -> Tuple[np.ndarray, np.ndarray]:
        """Cell coordinates along the x and the y axis."""
        xs = self.bounds.min_x + np.arange(self.x_length) * self.cell_size
        ys = self.bounds.min_y + np.arange(self.y_length) * self.cell_size
        return xs, ys

    def contains_index(self, xi: int, yi: int) -> bool:
        return 0 <= xi < self.x_length and 0 <= yi < self.y_length

    def _check_index(self, xi: int, yi: int):
        if not self.contains_index(xi, yi):
            raise OutOfBoundsError(f"index ({xi}, {yi}) is outside of shape {self.shape}")

    # ------------------------------------------------------------------
    # access by index

    def get_by_index(self, xi: int, yi: int):
        self._check_index(xi, yi)
        return self.data[xi, yi]

    def set_by_index(self, xi: int, yi: int, value):
        self._check_index(xi, yi)
        self.data[xi, yi] = value

    def add_by_index(self, xi: int, yi: int, value: float) -> float:
        self._check_index(xi, yi)
        self.data[xi, yi] += value
        return self.data[xi, yi]

    # ------------------------------------------------------------------
    # access by coordinate

    def get(self, x: float, y: float):
        xi, yi = self.index(x, y)
        return self.data[xi, yi]

    def set(self, x: float, y: float, value):
        xi, yi = self.index(x, y)
        self.data[xi, yi] = value

    def add(self, x: float, y: float, value: float) -> float:
        xi, yi = self.index(x, y)
        self.data[xi, yi] += value
        return self.data[xi, yi]

    # ------------------------------------------------------------------
    # bulk operations

    def for_each_cell(self, fn: Callable[[int, int, float, float, Any], None]):
        """
        Visit every cell in x-major order.

        Args:
            fn: Called with (xi, yi, x, y, value) for each cell
        """
        for xi in range(self.x_length):
            x = self.x_coord(xi)
            for yi in range(self.y_length):
                fn(xi, yi, x, self.y_coord(yi), self.data[xi, yi])

    def _visit_column(self, xi: int, fn):
        x = self.x_coord(xi)
        for yi in range(self.y_length):
            fn(xi, yi, x, self.y_coord(yi), self.data[xi, yi])

    def for_each_cell_parallel(
        self,
        fn: Callable[[int, int, float, float, Any], None],
        max_workers: Optional[int] = MAX_WORKERS,
    ):
        """
        Visit every cell on a thread pool, one task per x-column.

        There is no ordering guarantee. `fn` may only write to the cell it
        was called for.
        """
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [executor.submit(self._visit_column, xi, fn)
                       for xi in range(self.x_length)]
            for future in as_completed(futures):
                # re-raises exceptions of the worker
                future.result()

    def set_each_cell(
        self,
        fn: Callable[[int, int, float, float], Any],
        parallel: bool = True,
        max_workers: Optional[int] = MAX_WORKERS,
    ):
        """
        Replace every cell value with fn(xi, yi, x, y).

        Each task only writes its own cells, so no locking is required.
        """
        def write(xi, yi, x, y, _value):
            self.data[xi, yi] = fn(xi, yi, x, y)

        if parallel:
            self.for_each_cell_parallel(write, max_workers=max_workers)
        else:
            self.for_each_cell(write)

    def transform(self, fn: Callable[[Any], Any], vectorized: bool = False):
        """
        Replace every value with fn(value), e.g. for unit conversion.

        Args:
            fn: Transformation applied to each value
            vectorized: If True, `fn` is applied once to the whole array
        """
        if vectorized:
            self.data[...] = fn(self.data)
        else:
            for xi in range(self.x_length):
                for yi in range(self.y_length):
                    self.data[xi, yi] = fn(self.data[xi, yi])

    def copy(self) -> "Grid":
        result = copy.copy(self)
        result.data = self.data.copy()
        return result

    def total(self, where: Optional[np.ndarray] = None) -> float:
        """Sum of all (or of the selected) cell values of a numeric grid."""
        if where is None:
            return float(np.sum(self.data))
        return float(np.sum(self.data[where]))
