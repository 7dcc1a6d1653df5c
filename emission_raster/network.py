"""
Road network line segments and aggregation of emission events into time bins.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import (Callable, Dict, Hashable, Iterable, Iterator, Mapping,
                    Optional, Sequence, Tuple)

from shapely.geometry import LineString, Point
from shapely.geometry.base import BaseGeometry

from .grid import Bounds
from .timeseries import TimeSeries

logger = logging.getLogger(__name__)

Coord = Tuple[float, float]
SegmentEmissions = Dict[Hashable, float]
SpeciesEmissions = Dict[str, SegmentEmissions]


@dataclass(frozen=True)
class LineSegment:
    """
    A single road segment treated as a line source.

    Attributes:
        id: Identifier of the segment (link id)
        from_xy: Start point (x, y)
        to_xy: End point (x, y)
        length: Length of the segment, defaults to the endpoint distance
        lanes: Number of lanes, used for the stroke width of thick rasterization
    """

    id: Hashable
    from_xy: Coord
    to_xy: Coord
    length: Optional[float] = None
    lanes: float = 1.0

    def __post_init__(self):
        # frozen dataclass, so fields are set through object.__setattr__
        object.__setattr__(self, "from_xy", (float(self.from_xy[0]), float(self.from_xy[1])))
        object.__setattr__(self, "to_xy", (float(self.to_xy[0]), float(self.to_xy[1])))
        if self.length is None:
            dx = self.to_xy[0] - self.from_xy[0]
            dy = self.to_xy[1] - self.from_xy[1]
            object.__setattr__(self, "length", math.hypot(dx, dy))

    @property
    def is_degenerate(self) -> bool:
        return self.from_xy == self.to_xy or not self.length > 0

    def to_line_string(self) -> LineString:
        return LineString([self.from_xy, self.to_xy])


@dataclass
class Network:
    """Read-only collection of line segments keyed by id."""

    segments: Dict[Hashable, LineSegment] = field(default_factory=dict)

    @classmethod
    def from_segments(cls, segments: Iterable[LineSegment]) -> "Network":
        result = {}
        for segment in segments:
            if segment.id in result:
                raise ValueError(f"Duplicate segment id {segment.id!r}")
            result[segment.id] = segment
        return cls(result)

    def __len__(self) -> int:
        return len(self.segments)

    def __iter__(self) -> Iterator[LineSegment]:
        return iter(self.segments.values())

    def __contains__(self, segment_id) -> bool:
        return segment_id in self.segments

    def __getitem__(self, segment_id) -> LineSegment:
        return self.segments[segment_id]

    def get(self, segment_id, default=None) -> Optional[LineSegment]:
        return self.segments.get(segment_id, default)

    def ids(self):
        return self.segments.keys()

    def bounds(self) -> Bounds:
        """Envelope of all segment endpoints."""
        if not self.segments:
            raise ValueError("An empty network has no bounds")
        coords = []
        for segment in self.segments.values():
            coords.append(segment.from_xy)
            coords.append(segment.to_xy)
        return Bounds.from_coords(coords)

    def filter(self, predicate: Callable[[LineSegment], bool]) -> "Network":
        return Network({s.id: s for s in self.segments.values() if predicate(s)})

    def within(self, area: BaseGeometry) -> "Network":
        """
        Keep segments with at least one endpoint covered by `area`.

        Args:
            area: Shapely geometry, usually the study area plus a margin
        """
        def covered(segment: LineSegment) -> bool:
            return area.covers(Point(segment.from_xy)) or area.covers(Point(segment.to_xy))

        result = self.filter(covered)
        logger.info("Kept %d of %d segments inside the study area", len(result), len(self))
        return result


def aggregate_emissions(
    events: Iterable[Tuple[float, Hashable, Mapping[str, float]]],
    bin_width: float,
    species: Optional[Sequence[str]] = None,
    scale_factor: float = 1.0,
    network: Optional[Network] = None,
    start_time: float = 0.0,
) -> TimeSeries:
    """
    Sum emission events into time bins per species and segment.

    Args:
        events: (time, segment_id, {species: mass}) triples
        bin_width: Width of a time bin [s]
        species: Species to keep, all species if None
        scale_factor: Factor applied to every mass, e.g. to scale a sample
            population up to the full population
        network: If given, events on segments not part of it are dropped
        start_time: Start of the first time bin

    Returns:
        TimeSeries of {species: {segment_id: mass}}
    """
    wanted = set(species) if species is not None else None
    series: TimeSeries = TimeSeries(bin_width, start_time)
    skipped = 0

    for time, segment_id, masses in events:
        if network is not None and segment_id not in network:
            skipped += 1
            continue
        by_species = series.bin(time, default=dict).value
        for name, mass in masses.items():
            if wanted is not None and name not in wanted:
                continue
            by_segment = by_species.setdefault(name, {})
            by_segment[segment_id] = by_segment.get(segment_id, 0.0) + mass * scale_factor

    if skipped:
        logger.debug("Dropped %d events on segments outside of the network", skipped)
    return series


def merge_species(series: TimeSeries, species: Sequence[str]) -> TimeSeries:
    """
    Collapse several species into one {segment_id: mass} map per bin.

    Used e.g. to add exhaust and non-exhaust particulate matter.
    """
    def merge(by_species: SpeciesEmissions) -> SegmentEmissions:
        merged: SegmentEmissions = {}
        for name in species:
            for segment_id, mass in by_species.get(name, {}).items():
                merged[segment_id] = merged.get(segment_id, 0.0) + mass
        return merged

    return series.map_values(merge)
