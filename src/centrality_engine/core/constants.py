"""
Constants for the Centrality Engine.

All magic numbers and hardcoded values should be defined here.
This makes the codebase more maintainable and configurable.
"""

from typing import Dict, List

# =============================================================================
# Version Info
# =============================================================================

VERSION = "1.2.0"
VERSION_NAME = "Network Centrality Engine"

# =============================================================================
# Analysis Modes
# =============================================================================

MODE_STOCK = "stock"
MODE_SECTOR = "sector"
ANALYSIS_MODES: List[str] = [MODE_STOCK, MODE_SECTOR]

# =============================================================================
# Relationship Estimator Constants
# =============================================================================

DEFAULT_RELATIONSHIP_METHOD = "pearson"
RELATIONSHIP_METHODS: List[str] = ["pearson", "spearman"]

# Transform applied to raw price series before estimating relationships
DEFAULT_RETURNS_METHOD = "log"
RETURNS_METHODS: List[str] = ["log", "simple", "none"]

# Minimum non-NaN observations per series, and per overlapping pair
DEFAULT_MIN_SERIES_LENGTH = 10
DEFAULT_MIN_OVERLAP_OBSERVATIONS = 10

# Rolling window (rows of the aligned frame); None = full window
DEFAULT_ESTIMATION_WINDOW = None

# Lookback periods counted back from the last timestamp in the data
PERIOD_DAYS: Dict[str, int] = {
    "1M": 30,
    "3M": 90,
    "6M": 180,
    "1Y": 365,
    "3Y": 365 * 3,
    "5Y": 365 * 5,
}
DEFAULT_PERIOD = None

# =============================================================================
# Graph Builder Constants
# =============================================================================

# Minimum |strength| for edge inclusion
DEFAULT_MIN_ABSOLUTE_STRENGTH = 0.5
DEFAULT_MAX_EDGES_PER_NODE = None

# =============================================================================
# Centrality Constants
# =============================================================================

DEFAULT_NORMALIZE_BETWEENNESS = True

# Edge weight -> path cost policy for shortest paths.
#   inverse : 1 / w          (stronger relationship = shorter path)
#   unit    : 1              (hop count, weight ignored)
#   mantegna: sqrt(2(1 - w)) (correlation distance)
DISTANCE_INVERSE = "inverse"
DISTANCE_UNIT = "unit"
DISTANCE_MANTEGNA = "mantegna"
DEFAULT_DISTANCE_TRANSFORM = DISTANCE_INVERSE
DISTANCE_TRANSFORMS: List[str] = [DISTANCE_INVERSE, DISTANCE_UNIT, DISTANCE_MANTEGNA]

# Workers for the per-source betweenness fan-out (1 = sequential)
DEFAULT_CENTRALITY_WORKERS = 1

# Source chunks handed to each worker; cancellation is checked between chunks
CHUNKS_PER_WORKER = 4

# =============================================================================
# Sector Aggregation Constants
# =============================================================================

SECTOR_AGGREGATIONS: List[str] = ["mean", "sum"]
DEFAULT_SECTOR_AGGREGATION = "mean"

# =============================================================================
# Facade Constants
# =============================================================================

DEFAULT_FACADE_WORKERS = 4

# =============================================================================
# Summary / Shock Constants
# =============================================================================

DEFAULT_TOP_N = 20
DEFAULT_TOP_PAIRS = 10

# Edge density above which the market is reported as highly interconnected
HIGH_CONNECTIVITY_DENSITY = 0.5

# Shock impact = |corr| * (1 + betweenness / SHOCK_CENTRALITY_SCALE) * magnitude
SHOCK_CENTRALITY_SCALE = 100.0
SHOCK_AFFECTED_THRESHOLD = 0.01
DEFAULT_SHOCK_MAGNITUDE = 0.05

# =============================================================================
# Community Detection Constants
# =============================================================================

DEFAULT_COMMUNITY_RESOLUTION = 1.0
COMMUNITY_SEED = 42

# =============================================================================
# Data Validation Constants
# =============================================================================

# Return series shorter than this are flagged
VALIDATION_MIN_POINTS = 10
# Max spread between the shortest and longest return series
VALIDATION_MAX_LENGTH_SPREAD = 5
# Tolerance for diagonal and symmetry checks
VALIDATION_TOLERANCE = 0.01
STRONG_RELATIONSHIP = 0.7
VALIDATION_SAMPLE_NODES = 5

# =============================================================================
# File Output Constants
# =============================================================================

DEFAULT_REPORT_PREFIX = "centrality_report"

CSV_COLUMNS: List[str] = [
    "Rank",
    "Symbol",
    "Betweenness Centrality",
    "Degree Centrality",
    "Sector",
]

# Label suffixes stripped from exchange-qualified symbols for display
SYMBOL_SUFFIXES: List[str] = [".NS", ".BO"]

# =============================================================================
# Default Sector Map (NIFTY50 sample)
# =============================================================================

DEFAULT_SECTOR_LABELS: Dict[str, str] = {
    "IT": "Information Technology",
    "BANK": "Banking",
    "FIN": "Financial Services",
    "AUTO": "Automobile",
    "PHARMA": "Pharmaceuticals",
    "FMCG": "Fast Moving Consumer Goods",
    "ENERGY": "Energy",
    "METAL": "Metals & Mining",
}
