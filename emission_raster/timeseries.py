"""
Sparse time series with fixed-width bins.

Bins start at start_time + k * bin_width for k >= 0 and are created on first
access. Iteration always yields them in ascending time order.
"""

import math
from typing import Any, Callable, Dict, Generic, Iterator, Optional, TypeVar

V = TypeVar("V")
W = TypeVar("W")

BIN_EDGE_TOLERANCE = 1e-9


class TimeBin(Generic[V]):
    """A single bin of a TimeSeries."""

    def __init__(self, start_time: float, value: Optional[V] = None):
        self.start_time = start_time
        self.value = value

    def __repr__(self) -> str:
        return f"TimeBin(start_time={self.start_time}, value={self.value!r})"

    def has_value(self) -> bool:
        return self.value is not None

    def compute_if_absent(self, factory: Callable[[], V]) -> V:
        if self.value is None:
            self.value = factory()
        return self.value


class TimeSeries(Generic[V]):
    """
    Ordered map from bin start time to a value.

    Binning is floor based: a time t falls into the bin starting at
    start_time + bin_width * floor((t - start_time) / bin_width).
    """

    def __init__(self, bin_width: float, start_time: float = 0.0):
        if not (bin_width > 0) or not math.isfinite(bin_width):
            raise ValueError(f"Bin width must be positive, was {bin_width}")
        self._bin_width = float(bin_width)
        self._start_time = float(start_time)
        self._bins: Dict[int, TimeBin[V]] = {}

    @property
    def bin_width(self) -> float:
        return self._bin_width

    @property
    def start_time(self) -> float:
        return self._start_time

    def _bin_number(self, time: float) -> int:
        if time < self._start_time:
            raise ValueError(
                f"Time {time} is before the start time {self._start_time} of this series"
            )
        position = (time - self._start_time) / self._bin_width
        nearest = round(position)
        # bin starts computed as start + k * width map back to k
        if abs(position - nearest) <= BIN_EDGE_TOLERANCE * max(1.0, abs(position)):
            return int(nearest)
        return int(math.floor(position))

    def bin_start(self, time: float) -> float:
        return self._start_time + self._bin_width * self._bin_number(time)

    def end_time(self, time_bin: TimeBin) -> float:
        return time_bin.start_time + self._bin_width

    def bin(self, time: float, default: Any = None) -> TimeBin[V]:
        """
        Return the bin containing `time`, creating it if absent.

        Args:
            time: Any time inside the requested bin
            default: Value for a bin without value. A callable is used as a
                factory and only called when needed.
        """
        number = self._bin_number(time)
        time_bin = self._bins.get(number)
        if time_bin is None:
            time_bin = TimeBin(self._start_time + number * self._bin_width)
            self._bins[number] = time_bin
        if time_bin.value is None and default is not None:
            time_bin.value = default() if callable(default) else default
        return time_bin

    def bins(self) -> Iterator[TimeBin[V]]:
        for number in sorted(self._bins):
            yield self._bins[number]

    def __iter__(self) -> Iterator[TimeBin[V]]:
        return self.bins()

    def __len__(self) -> int:
        return len(self._bins)

    def __contains__(self, time: float) -> bool:
        if time < self._start_time:
            return False
        return self._bin_number(time) in self._bins

    def map_values(self, fn: Callable[[V], W]) -> "TimeSeries[W]":
        """
        New series with the same bins holding fn(value) for each bin.

        Bins without a value are kept empty and fn is not called for them.
        """
        result: TimeSeries[W] = TimeSeries(self._bin_width, self._start_time)
        for number in sorted(self._bins):
            time_bin = self._bins[number]
            value = fn(time_bin.value) if time_bin.has_value() else None
            result._bins[number] = TimeBin(time_bin.start_time, value)
        return result
