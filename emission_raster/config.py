"""
Configuration constants for the emission raster core.

Every constant here is a default. The classes and functions which use them
accept keyword arguments to override the value per call.
"""

# ==================== RASTER ====================

# Default cell size [m]. PALM runs are usually set up with 10 m cells.
DEFAULT_CELL_SIZE = 10.0

# Default width of an emission time bin [s]
DEFAULT_BIN_WIDTH = 900.0

# ==================== RASTERIZER ====================

# Width of a single lane [m]. The stroke width of a segment is lanes * LANE_WIDTH.
LANE_WIDTH = 3.5

# Values > 0 in a building raster mark non-traversable cells
BUILDING_THRESHOLD = 0.0

# ==================== RADIUS SOLVER ====================

# Bisection bracket for the smoothing radius R [m].
# R = 0 is unusable since the kernel normalization 1 / (pi * R^2) diverges.
# Both values are empirical and depend on cell size and emission magnitudes.
RADIUS_LOWER_BOUND = 0.1
RADIUS_UPPER_BOUND = 100.0

# Bisection stops once upper - lower drops below this width [m]
BISECT_TOLERANCE = 1e-3

# Optional Newton refinement after bisection
NEWTON_STEP = 1e-10          # h of the symmetric difference quotient
NEWTON_MAX_ITERATIONS = 50
NEWTON_TOLERANCE = 1e-9      # |R_n - R_(n-1)| at which Newton stops

# ==================== SENTINELS ====================
# Markers written into radius rasters instead of a radius

FAILED = -2.0     # no root inside the bracket
EXCLUDED = -1.0   # cell is outside of the domain, e.g. a building
NO_TARGET = 0.0   # target value <= 0, nothing to solve

# ==================== NEIGHBOR INDEX ====================

# Buffer distance around segments as a multiple of the smoothing radius.
# With 5 * R more than 99% of the smoothed mass of a segment is captured.
BUFFER_FACTOR = 5.0

# ==================== MONITORING ====================

# Number of identical warnings logged before further ones are suppressed
WARNING_LIMIT = 50

# Log progress of cell sweeps every n cells
PROGRESS_INTERVAL = 100_000

# Upper limit of worker threads for parallel sweeps (None = executor default)
MAX_WORKERS = None
