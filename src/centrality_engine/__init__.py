"""
Centrality Engine - Correlation Network Centrality for Financial Instruments

Turns instrument price series into a thresholded correlation network and
scores every node with degree and betweenness centrality, at stock or
sector granularity.
"""

from .core.constants import VERSION as __version__
__author__ = "Centrality Engine Team"

from .core.config import EngineConfig, ConfigLoader
from .core.exceptions import CentralityEngineError
from .data.instrument import Instrument
from .cache import ResultCache
from .engine import NetworkAnalysisFacade, AnalysisResult, AnalysisMode, AnalysisState

__all__ = [
    "EngineConfig",
    "ConfigLoader",
    "CentralityEngineError",
    "Instrument",
    "ResultCache",
    "NetworkAnalysisFacade",
    "AnalysisResult",
    "AnalysisMode",
    "AnalysisState",
    "__version__",
]
