"""
Exceptions raised by the emission raster core.

Only structural problems (bad bounds, coordinates outside a grid, segments
without a length) are raised. Numerical trouble during radius calibration is
reported as sentinel values in the output raster instead.
"""


class EmissionRasterError(Exception):
    """Base class for all errors raised by this package."""


class InvalidBoundsError(EmissionRasterError, ValueError):
    """Raised for degenerate bounds or a non-positive cell size."""


class OutOfBoundsError(EmissionRasterError, IndexError):
    """Raised when a coordinate or index lies outside a grid."""


class InvalidSegmentError(EmissionRasterError, ValueError):
    """Raised for line segments which can't be used by the line kernel."""
