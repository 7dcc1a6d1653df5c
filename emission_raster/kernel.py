"""
Gaussian line source kernel.

A segment of length le is treated as a continuous line source whose emission
is spread by a 2-D Gaussian with effective radius R. Integrating the Gaussian
along the segment has a closed form in terms of the error function, which is
evaluated here for single receptors and vectorised over many segments.
"""

import math
from dataclasses import dataclass
from typing import Hashable, Iterable, Mapping, Optional, Tuple, Union

import numpy as np
from scipy.special import erf

from .errors import InvalidSegmentError
from .network import LineSegment, Network

Coord = Tuple[float, float]


def calculate_weight(from_xy, to_xy, receptor, le, radius):
    """
    Fraction of a line source's mass perceived at `receptor`.

    All arguments may be numpy arrays, they are broadcast against each other.

    Args:
        from_xy: Start point(s) of the segment, (x, y) or a (2, n) array
        to_xy: End point(s) of the segment
        receptor: Receptor point (x, y)
        le: Length of the segment, must be positive
        radius: Smoothing radius R, must be positive

    Returns:
        Weight, a float or an array of weights
    """
    le = np.asarray(le, dtype=float)
    if np.any(le <= 0):
        raise InvalidSegmentError(f"Segment length must be positive, was {le}")
    if np.any(np.asarray(radius) <= 0):
        raise ValueError(f"Radius must be positive, was {radius}")

    from_x, from_y = np.asarray(from_xy[0], dtype=float), np.asarray(from_xy[1], dtype=float)
    to_x, to_y = np.asarray(to_xy[0], dtype=float), np.asarray(to_xy[1], dtype=float)
    receptor_x, receptor_y = receptor

    # squared distance between segment start and receptor
    distance_sq = (from_x - receptor_x) ** 2 + (from_y - receptor_y) ** 2
    # projection of (from - receptor) onto the segment direction
    projection = (to_x - from_x) * (from_x - receptor_x) + (to_y - from_y) * (from_y - receptor_y)
    normalization = math.sqrt(math.pi) / le / 2

    upper_limit = le + projection / le
    lower_limit = projection / le
    along_line = erf(upper_limit / radius) - erf(lower_limit / radius)
    exponent = -(distance_sq - (projection * projection) / (le * le)) / (radius * radius)

    weight = np.exp(exponent) * radius * normalization * along_line
    if np.ndim(weight) == 0:
        return float(weight)
    return weight


def normalization_factor(cell_area: float, radius: float) -> float:
    """Factor turning a weighted mass into a value per cell: A_cell / (pi R²)."""
    return cell_area / (math.pi * radius * radius)


@dataclass(frozen=True)
class SegmentArrays:
    """
    Segment geometry and masses packed into numpy arrays.

    Packing once per cell (or per time bin) keeps the many kernel evaluations
    of a radius search vectorised.
    """

    from_x: np.ndarray
    from_y: np.ndarray
    to_x: np.ndarray
    to_y: np.ndarray
    length: np.ndarray
    mass: np.ndarray

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[LineSegment, float]]) -> "SegmentArrays":
        rows = []
        for segment, mass in pairs:
            if segment.is_degenerate:
                raise InvalidSegmentError(
                    f"Segment {segment.id!r} has no length and can't be used as line source"
                )
            rows.append((segment.from_xy[0], segment.from_xy[1],
                         segment.to_xy[0], segment.to_xy[1], segment.length, mass))
        if not rows:
            return cls.empty()
        columns = np.array(rows, dtype=float).T
        return cls(*columns)

    @classmethod
    def from_emissions(cls, network: Network,
                       emissions: Mapping[Hashable, float],
                       ids: Optional[Iterable[Hashable]] = None) -> "SegmentArrays":
        """
        Args:
            network: Segment lookup
            emissions: Mass per segment id
            ids: Restrict to these segment ids, e.g. the neighbours of a cell.
                Ids without emissions are skipped.
        """
        if ids is None:
            ids = emissions.keys()
        else:
            # fixed summation order for set inputs
            ids = sorted(ids, key=repr)
        pairs = ((network[i], emissions[i]) for i in ids if emissions.get(i, 0.0) != 0.0)
        return cls.from_pairs(pairs)

    @classmethod
    def empty(cls) -> "SegmentArrays":
        e = np.empty(0, dtype=float)
        return cls(e, e, e, e, e, e)

    def __len__(self) -> int:
        return len(self.mass)

    def scaled(self, factor: float) -> "SegmentArrays":
        return SegmentArrays(self.from_x, self.from_y, self.to_x, self.to_y,
                             self.length, self.mass * factor)


Emissions = Union[SegmentArrays, Iterable[Tuple[LineSegment, float]]]


def sumf(emissions: Emissions, receptor: Coord, radius: float, cell_area: float) -> float:
    """
    Modelled value at `receptor` for smoothing radius `radius`.

    Sum of weight * mass * cell_area / (pi R²) over all segments.
    """
    if not isinstance(emissions, SegmentArrays):
        emissions = SegmentArrays.from_pairs(emissions)
    if len(emissions) == 0:
        return 0.0

    weights = calculate_weight(
        (emissions.from_x, emissions.from_y),
        (emissions.to_x, emissions.to_y),
        receptor,
        emissions.length,
        radius,
    )
    return float(np.sum(weights * emissions.mass)) * normalization_factor(cell_area, radius)
