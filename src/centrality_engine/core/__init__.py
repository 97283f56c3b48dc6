"""Core module - Configuration, Constants, and Exceptions"""

from .config import (
    EngineConfig,
    ConfigLoader,
    EstimatorConfig,
    ThresholdConfig,
    CentralityConfig,
    SectorConfig,
    OutputConfig,
)
from .constants import *
from .exceptions import (
    CentralityEngineError,
    ConfigError,
    InvalidConfigurationError,
    DataLoadError,
    AnalysisError,
    DataInsufficientError,
    EmptyGraphError,
    ComputationError,
    ComputationTimeoutError,
    ComputationCancelledError,
)

__all__ = [
    "EngineConfig",
    "ConfigLoader",
    "EstimatorConfig",
    "ThresholdConfig",
    "CentralityConfig",
    "SectorConfig",
    "OutputConfig",
    "CentralityEngineError",
    "ConfigError",
    "InvalidConfigurationError",
    "DataLoadError",
    "AnalysisError",
    "DataInsufficientError",
    "EmptyGraphError",
    "ComputationError",
    "ComputationTimeoutError",
    "ComputationCancelledError",
]
