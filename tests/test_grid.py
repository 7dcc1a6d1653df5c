"""
Tests for bounds and grids.
"""

import numpy as np
import pytest

from emission_raster import Bounds, Grid, InvalidBoundsError, OutOfBoundsError


def test_grid_shape():
    """Test that a grid has one more cell than fits into the bounds."""
    grid = Grid(Bounds(0.0, 0.0, 100.0, 50.0), 10.0)

    assert grid.shape == (11, 6)
    assert grid.size == 66
    assert grid.cell_area == 100.0
    assert grid.values.shape == (11, 6)
    assert grid.total() == 0.0


def test_invalid_bounds():
    """Test that degenerate bounds and cell sizes are rejected."""
    with pytest.raises(InvalidBoundsError):
        Bounds(10.0, 0.0, 10.0, 5.0)
    with pytest.raises(InvalidBoundsError):
        Bounds(0.0, 5.0, 10.0, 0.0)
    with pytest.raises(ValueError):
        Bounds(0.0, 0.0, float("inf"), 1.0)
    with pytest.raises(InvalidBoundsError):
        Grid(Bounds(0.0, 0.0, 10.0, 10.0), 0.0)
    with pytest.raises(InvalidBoundsError):
        Grid(Bounds(0.0, 0.0, 10.0, 10.0), -1.0)


def test_index_and_coordinates():
    """Test the mapping between coordinates and cell indices."""
    grid = Grid(Bounds(-10.0, -10.0, 110.0, 10.0), 10.0)

    assert grid.x_index(-10.0) == 0
    assert grid.x_index(5.0) == 1
    assert grid.x_index(9.999) == 1
    assert grid.x_index(10.0) == 2
    assert grid.x_index(110.0) == 12
    assert grid.y_index(0.0) == 1
    assert grid.index(95.0, 0.0) == (10, 1)

    assert grid.x_coord(1) == 0.0
    assert grid.y_coord(2) == 10.0

    xs, ys = grid.coordinates()
    assert xs[0] == -10.0
    assert xs[-1] == 110.0
    assert list(ys) == [-10.0, 0.0, 10.0]


def test_out_of_bounds_is_an_error():
    """Test that coordinates outside the bounds are never clamped."""
    grid = Grid(Bounds(0.0, 0.0, 100.0, 100.0), 10.0)

    with pytest.raises(OutOfBoundsError):
        grid.get(-0.1, 50.0)
    with pytest.raises(OutOfBoundsError):
        grid.set(50.0, 100.1, 1.0)
    with pytest.raises(IndexError):
        grid.add(200.0, 200.0, 1.0)
    with pytest.raises(OutOfBoundsError):
        grid.get_by_index(11, 0)
    with pytest.raises(OutOfBoundsError):
        grid.set_by_index(-1, 0, 1.0)

    # the edges of the bounds are inside
    grid.add(100.0, 100.0, 1.0)
    assert grid.get_by_index(10, 10) == 1.0


def test_accumulation():
    """Test set, add and get by coordinate and index."""
    grid = Grid(Bounds(0.0, 0.0, 100.0, 100.0), 10.0)

    grid.set(15.0, 25.0, 2.0)
    assert grid.add(12.0, 21.0, 0.5) == 2.5
    assert grid.get(19.0, 29.0) == 2.5
    assert grid.get_by_index(1, 2) == 2.5
    assert grid.add_by_index(1, 2, 1.0) == 3.5
    assert grid.total() == 3.5


def test_for_each_cell_visits_every_cell():
    """Test sequential and parallel iteration."""
    grid = Grid(Bounds(0.0, 0.0, 50.0, 30.0), 10.0)
    grid.set_by_index(2, 1, 7.0)

    visited = []
    grid.for_each_cell(lambda xi, yi, x, y, value: visited.append((xi, yi, x, y, value)))

    assert len(visited) == grid.size
    assert visited[0] == (0, 0, 0.0, 0.0, 0.0)
    assert (2, 1, 20.0, 10.0, 7.0) in visited

    seen = set()
    grid.for_each_cell_parallel(lambda xi, yi, x, y, value: seen.add((xi, yi)), max_workers=4)
    assert len(seen) == grid.size


def test_set_each_cell_parallel_matches_sequential():
    """Test that parallel bulk assignment gives the same grid."""
    bounds = Bounds(0.0, 0.0, 200.0, 100.0)
    sequential = Grid(bounds, 10.0)
    parallel = Grid(bounds, 10.0)

    def fn(xi, yi, x, y):
        return x * 1000 + y

    sequential.set_each_cell(fn, parallel=False)
    parallel.set_each_cell(fn, parallel=True, max_workers=4)

    assert np.array_equal(sequential.values, parallel.values)
    assert parallel.get(120.0, 30.0) == 120030.0


def test_parallel_errors_are_raised():
    """Test that an exception in a worker reaches the caller."""
    grid = Grid(Bounds(0.0, 0.0, 50.0, 50.0), 10.0)

    def fail(xi, yi, x, y):
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        grid.set_each_cell(fail)


def test_transform_and_copy():
    """Test in-place transformation and independent copies."""
    grid = Grid(Bounds(0.0, 0.0, 20.0, 20.0), 10.0, default=2.0)
    copy = grid.copy()

    grid.transform(lambda v: v * 3)
    assert grid.total() == 6.0 * grid.size
    assert copy.total() == 2.0 * grid.size

    copy.transform(lambda values: values / 2, vectorized=True)
    assert copy.get(0.0, 0.0) == 1.0
    assert copy.bounds == grid.bounds


def test_object_grid_with_factory():
    """Test that a default factory creates one object per cell."""
    grid = Grid(Bounds(0.0, 0.0, 10.0, 10.0), 10.0, default=set, dtype=object)

    grid.get_by_index(0, 0).add("a")

    assert grid.get_by_index(0, 0) == {"a"}
    assert grid.get_by_index(1, 1) == set()

    empty = Grid.like(grid, default=None, dtype=object)
    assert empty.get_by_index(0, 0) is None


def test_bounds_helpers():
    """Test envelope, buffer, polygon and alignment of bounds."""
    bounds = Bounds.from_coords([(3.0, 4.0), (53.0, 1.0), (20.0, 24.0)])
    assert bounds == Bounds(3.0, 1.0, 53.0, 24.0)
    assert bounds.width == 50.0
    assert bounds.covers(3.0, 24.0)
    assert not bounds.covers(2.9, 10.0)

    assert bounds.buffer(1.0) == Bounds(2.0, 0.0, 54.0, 25.0)
    assert bounds.to_polygon().area == pytest.approx(50.0 * 23.0)

    reference = Bounds(0.0, 0.0, 100.0, 100.0)
    assert Bounds(3.0, 4.0, 53.0, 24.0).aligned_to(reference, 10.0) == Bounds(0.0, 0.0, 50.0, 20.0)
    assert Bounds(7.0, 16.0, 57.0, 36.0).aligned_to(reference, 10.0) == Bounds(10.0, 20.0, 60.0, 40.0)
