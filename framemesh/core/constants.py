"""
Shared constants for mesh healing and model export.
"""

# Geometric tolerances
GEOMETRY_EPS = 1e-12           # Zero-length guard for vectors and segments
PARAM_TOL = 1e-9               # Segment parameter margin to reject endpoint hits
MIN_SEGMENT_LENGTH = 1e-6      # Shortest element a split may produce
MERGE_TOL_ALONG = 0.05         # Split hits closer than this along the axis collapse
MOVE_EPS = 1e-4                # Moves/offsets below this are treated as no-ops
PARALLEL_EPS = 1e-8            # sin^2 of the angle below which lines are parallel

# Node coordinate key precision (decimal places)
NODE_KEY_DECIMALS = 6

# Spatial hash
DEFAULT_GRID_CELL_SIZE = 5.0
MIN_ELEMENT_CELL_SIZE = 1.0
MIN_GRID_CELL_SIZE = 1e-9
MAX_CELLS_PER_ELEMENT = 4096

# Identifier ranges
NODE_ID_START = 1
ELEMENT_ID_START = 1
PROPERTY_ID_START = 1
MATERIAL_ID_START = 1
RIGID_ID_START = 9_000_001

# Rigid link degrees of freedom
DEFAULT_RIGID_DOF = "123456"

# Default structural steel (N, mm, tonne)
STEEL_NAME = "Steel"
STEEL_ELASTIC_MODULUS = 206000.0
STEEL_POISSON_RATIO = 0.3
STEEL_DENSITY = 7.85e-09

# Pipeline defaults
MAX_STAGE = 6
DEFAULT_MAX_ITERATIONS = 10
