"""
Configuration management for the Centrality Engine.

Provides dataclass-based configuration with YAML loading and validation.
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional, Any, Mapping
import datetime as dt
from pathlib import Path
import json
import yaml
import logging

from .exceptions import (
    ConfigError,
    ConfigNotFoundError,
    InvalidConfigurationError,
)
from .constants import (
    DEFAULT_RELATIONSHIP_METHOD,
    RELATIONSHIP_METHODS,
    DEFAULT_RETURNS_METHOD,
    RETURNS_METHODS,
    DEFAULT_MIN_SERIES_LENGTH,
    DEFAULT_MIN_OVERLAP_OBSERVATIONS,
    DEFAULT_ESTIMATION_WINDOW,
    DEFAULT_PERIOD,
    PERIOD_DAYS,
    DEFAULT_MIN_ABSOLUTE_STRENGTH,
    DEFAULT_MAX_EDGES_PER_NODE,
    DEFAULT_NORMALIZE_BETWEENNESS,
    DEFAULT_DISTANCE_TRANSFORM,
    DISTANCE_MANTEGNA,
    DISTANCE_TRANSFORMS,
    DEFAULT_CENTRALITY_WORKERS,
    DEFAULT_SECTOR_AGGREGATION,
    SECTOR_AGGREGATIONS,
    DEFAULT_TOP_N,
    DEFAULT_REPORT_PREFIX,
    DEFAULT_SECTOR_LABELS,
)

logger = logging.getLogger(__name__)

# Flat option names accepted by ConfigLoader.from_dict, mapped to their section
FLAT_OPTIONS: Dict[str, tuple] = {
    'min_absolute_strength': ('thresholds', 'min_absolute_strength'),
    'max_edges_per_node': ('thresholds', 'max_edges_per_node'),
    'min_overlap_observations': ('estimator', 'min_overlap_observations'),
    'min_series_length': ('estimator', 'min_series_length'),
    'normalize_betweenness': ('centrality', 'normalize_betweenness'),
    'distance_transform': ('centrality', 'distance_transform'),
    'sector_edge_aggregation': ('sector', 'edge_aggregation'),
}


# =============================================================================
# Config Dataclasses
# =============================================================================

@dataclass
class EstimatorConfig:
    """Relationship estimator configuration."""
    method: str = DEFAULT_RELATIONSHIP_METHOD
    returns: str = DEFAULT_RETURNS_METHOD
    window: Optional[int] = DEFAULT_ESTIMATION_WINDOW
    period: Optional[str] = DEFAULT_PERIOD
    start: Optional[Any] = None
    end: Optional[Any] = None
    min_series_length: int = DEFAULT_MIN_SERIES_LENGTH
    min_overlap_observations: int = DEFAULT_MIN_OVERLAP_OBSERVATIONS


@dataclass
class ThresholdConfig:
    """Edge filter configuration for the graph builder."""
    min_absolute_strength: float = DEFAULT_MIN_ABSOLUTE_STRENGTH
    max_edges_per_node: Optional[int] = DEFAULT_MAX_EDGES_PER_NODE


@dataclass
class CentralityConfig:
    """Centrality calculator configuration."""
    normalize_betweenness: bool = DEFAULT_NORMALIZE_BETWEENNESS
    distance_transform: str = DEFAULT_DISTANCE_TRANSFORM
    max_workers: int = DEFAULT_CENTRALITY_WORKERS


@dataclass
class SectorConfig:
    """Sector aggregation configuration."""
    edge_aggregation: str = DEFAULT_SECTOR_AGGREGATION


@dataclass
class OutputConfig:
    """Output configuration."""
    top_n: int = DEFAULT_TOP_N
    report_prefix: str = DEFAULT_REPORT_PREFIX


@dataclass
class EngineConfig:
    """Main configuration container."""

    estimator: EstimatorConfig = field(default_factory=EstimatorConfig)
    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)
    centrality: CentralityConfig = field(default_factory=CentralityConfig)
    sector: SectorConfig = field(default_factory=SectorConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    # symbol -> sector code, sector code -> display name
    sectors: Dict[str, str] = field(default_factory=dict)
    sector_labels: Dict[str, str] = field(default_factory=dict)

    # Flat accessors for the options consumers know by name

    @property
    def min_absolute_strength(self) -> float:
        return self.thresholds.min_absolute_strength

    @property
    def max_edges_per_node(self) -> Optional[int]:
        return self.thresholds.max_edges_per_node

    @property
    def min_overlap_observations(self) -> int:
        return self.estimator.min_overlap_observations

    @property
    def normalize_betweenness(self) -> bool:
        return self.centrality.normalize_betweenness

    @property
    def sector_edge_aggregation(self) -> str:
        return self.sector.edge_aggregation

    def validate(self) -> None:
        """
        Check every option and report all problems at once.

        Raises:
            InvalidConfigurationError: If any value is out of range
        """
        errors = collect_errors(self)
        if errors:
            raise InvalidConfigurationError(errors)

    def fingerprint(self) -> str:
        """
        Stable JSON rendering of the options that affect results.

        Output settings are excluded since they never change a computation.
        """
        data = asdict(self)
        data.pop('output', None)
        return json.dumps(data, sort_keys=True, default=str)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_date(value: Any) -> dt.date:
    """
    Coerce a config date (date, datetime or ISO string) to a date.

    Raises:
        ValueError: If a string is not an ISO date
        TypeError: For any other type
    """
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        return dt.date.fromisoformat(value.strip())
    raise TypeError(f"expected a date, got {type(value).__name__}")


def collect_errors(config: EngineConfig) -> List[str]:
    """
    Collect validation errors for a configuration.

    Args:
        config: Configuration to check

    Returns:
        List of human readable problems (empty if valid)
    """
    errors = []
    est = config.estimator
    thr = config.thresholds
    cen = config.centrality

    if est.method not in RELATIONSHIP_METHODS:
        errors.append(
            f"estimator.method must be one of {RELATIONSHIP_METHODS}, got {est.method!r}"
        )
    if est.returns not in RETURNS_METHODS:
        errors.append(
            f"estimator.returns must be one of {RETURNS_METHODS}, got {est.returns!r}"
        )
    if est.window is not None and (not _is_int(est.window) or est.window < 2):
        errors.append(f"estimator.window must be an integer >= 2, got {est.window!r}")
    if est.period is not None and est.period not in PERIOD_DAYS:
        errors.append(f"estimator.period must be one of {list(PERIOD_DAYS)}, got {est.period!r}")
    bounds = {}
    for name in ('start', 'end'):
        value = getattr(est, name)
        if value is None:
            continue
        try:
            bounds[name] = parse_date(value)
        except (TypeError, ValueError):
            errors.append(f"estimator.{name} must be an ISO date, got {value!r}")
    if len(bounds) == 2 and bounds['start'] >= bounds['end']:
        errors.append(
            f"estimator.start must be before estimator.end, got {bounds['start']} >= {bounds['end']}"
        )
    if est.period is not None and est.start is not None:
        errors.append("estimator.period and estimator.start cannot both be set")
    if not _is_int(est.min_series_length) or est.min_series_length < 2:
        errors.append(
            f"estimator.min_series_length must be an integer >= 2, got {est.min_series_length!r}"
        )
    if not _is_int(est.min_overlap_observations) or est.min_overlap_observations < 1:
        errors.append(
            "min_overlap_observations must be a positive integer, "
            f"got {est.min_overlap_observations!r}"
        )

    if not _is_number(thr.min_absolute_strength) or not 0 < thr.min_absolute_strength <= 1:
        errors.append(
            f"min_absolute_strength must be in (0, 1], got {thr.min_absolute_strength!r}"
        )
    if thr.max_edges_per_node is not None and (
        not _is_int(thr.max_edges_per_node) or thr.max_edges_per_node < 1
    ):
        errors.append(
            f"max_edges_per_node must be a positive integer, got {thr.max_edges_per_node!r}"
        )

    if not isinstance(cen.normalize_betweenness, bool):
        errors.append(
            f"normalize_betweenness must be a boolean, got {cen.normalize_betweenness!r}"
        )
    if cen.distance_transform not in DISTANCE_TRANSFORMS:
        errors.append(
            f"centrality.distance_transform must be one of {DISTANCE_TRANSFORMS}, "
            f"got {cen.distance_transform!r}"
        )
    if not _is_int(cen.max_workers) or cen.max_workers < 1:
        errors.append(f"centrality.max_workers must be >= 1, got {cen.max_workers!r}")

    if config.sector.edge_aggregation not in SECTOR_AGGREGATIONS:
        errors.append(
            f"sector_edge_aggregation must be one of {SECTOR_AGGREGATIONS}, "
            f"got {config.sector.edge_aggregation!r}"
        )

    # Summed sector weights leave (0, 1), where sqrt(2(1 - w)) is no longer a distance
    if cen.distance_transform == DISTANCE_MANTEGNA and config.sector.edge_aggregation == "sum":
        errors.append(
            "distance_transform 'mantegna' needs weights in (0, 1) and cannot be "
            "combined with sector_edge_aggregation 'sum'"
        )

    if not _is_int(config.output.top_n) or config.output.top_n < 1:
        errors.append(f"output.top_n must be a positive integer, got {config.output.top_n!r}")

    return errors


# =============================================================================
# Config Loader
# =============================================================================

class ConfigLoader:
    """Configuration file loader and validator."""

    SECTIONS = ['estimator', 'thresholds', 'centrality', 'sector', 'output']

    @classmethod
    def load(cls, path: Path) -> EngineConfig:
        """
        Load configuration from YAML file.

        Args:
            path: Path to YAML config file

        Returns:
            EngineConfig object

        Raises:
            ConfigNotFoundError: If file doesn't exist
            InvalidConfigurationError: If validation fails
        """
        path = Path(path)
        if not path.exists():
            raise ConfigNotFoundError(str(path))

        logger.info(f"Loading configuration from {path}")

        try:
            with open(path, 'r', encoding='utf-8') as f:
                raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML: {e}") from e

        return cls.from_dict(raw_config or {})

    @classmethod
    def load_or_default(cls, path: Optional[Path] = None) -> EngineConfig:
        """
        Load config from path, falling back to default if not found.

        Args:
            path: Optional path to config file

        Returns:
            EngineConfig object (from file or default)
        """
        if path:
            try:
                return cls.load(path)
            except ConfigNotFoundError:
                logger.warning(f"Config not found at {path}, using default")

        default_paths = [
            Path('config/config.yaml'),
            Path('./config.yaml'),
        ]

        for p in default_paths:
            if p.exists():
                logger.info(f"Found config at {p}")
                return cls.load(p)

        logger.info("Using default configuration")
        return cls.get_default()

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> EngineConfig:
        """
        Build and validate a config from a dictionary.

        Accepts the nested section layout of the YAML file as well as the
        flat option names (``min_absolute_strength``, ``max_edges_per_node``,
        ``min_overlap_observations``, ``normalize_betweenness``,
        ``sector_edge_aggregation``). A flat option overrides its nested
        counterpart.

        Raises:
            InvalidConfigurationError: If structure or values are invalid
        """
        if not isinstance(raw, Mapping):
            raise InvalidConfigurationError(["configuration must be a mapping"])

        errors = []
        sections: Dict[str, Dict[str, Any]] = {}
        for name in cls.SECTIONS:
            section = raw.get(name) or {}
            if not isinstance(section, Mapping):
                errors.append(f"'{name}' must be a dictionary")
                section = {}
            sections[name] = dict(section)

        for key, (section, option) in FLAT_OPTIONS.items():
            if key in raw:
                sections[section][option] = raw[key]

        for mapping_key in ('sectors', 'sector_labels'):
            if mapping_key in raw and not isinstance(raw[mapping_key], Mapping):
                errors.append(f"'{mapping_key}' must be a dictionary")

        known = set(cls.SECTIONS) | set(FLAT_OPTIONS) | {'sectors', 'sector_labels'}
        for key in raw:
            if key not in known:
                errors.append(f"Unknown configuration key: '{key}'")

        if errors:
            raise InvalidConfigurationError(errors)

        try:
            config = EngineConfig(
                estimator=EstimatorConfig(**sections['estimator']),
                thresholds=ThresholdConfig(**sections['thresholds']),
                centrality=CentralityConfig(**sections['centrality']),
                sector=SectorConfig(**sections['sector']),
                output=OutputConfig(**sections['output']),
                sectors={str(k): str(v) for k, v in (raw.get('sectors') or {}).items()},
                sector_labels={
                    str(k): str(v) for k, v in (raw.get('sector_labels') or {}).items()
                },
            )
        except TypeError as e:
            raise InvalidConfigurationError([f"Unknown option: {e}"]) from e

        config.validate()
        return config

    @classmethod
    def get_default(cls) -> EngineConfig:
        """Get default configuration."""
        return EngineConfig(sector_labels=DEFAULT_SECTOR_LABELS.copy())
