"""
Network analysis facade.

Orchestrates estimation, graph construction, optional sector aggregation
and scoring per requested mode, and serves repeated requests from an
injected ResultCache.

Usage:
    with NetworkAnalysisFacade() as facade:
        result = facade.analyze({"TCS.NS": tcs, "INFY.NS": infy}, "stock")
        for node in result.ranked(10):
            print(node.label, node.betweenness)
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union
import hashlib
import json
import logging
import threading

import pandas as pd

from .cache import ResultCache
from .core.config import EngineConfig
from .core.constants import DEFAULT_FACADE_WORKERS, MODE_SECTOR, MODE_STOCK
from .core.exceptions import (
    ComputationCancelledError,
    EmptyGraphError,
    InvalidConfigurationError,
    StateTransitionError,
)
from .data.instrument import Instrument, InstrumentInput, coerce_instruments
from .analysis.correlation import RelationshipEstimator, RelationshipMatrix, Pair
from .analysis.graph import Edge, Graph, GraphBuilder, Node
from .analysis.centrality import CentralityCalculator
from .analysis.sector import SectorAggregator
from .utils.logging import LogContext

logger = logging.getLogger(__name__)


# =============================================================================
# Modes and States
# =============================================================================

class AnalysisMode(str, Enum):
    """Network granularity."""
    STOCK = MODE_STOCK
    SECTOR = MODE_SECTOR

    @classmethod
    def parse(cls, value: Union[str, 'AnalysisMode']) -> 'AnalysisMode':
        try:
            return cls(value)
        except ValueError:
            raise InvalidConfigurationError(
                [f"mode must be one of {[m.value for m in cls]}, got {value!r}"]
            ) from None


class AnalysisState(str, Enum):
    """Lifecycle of one analysis request."""
    IDLE = "idle"
    ESTIMATING = "estimating"
    BUILDING = "building"
    AGGREGATING = "aggregating"
    SCORING = "scoring"
    READY = "ready"
    FAILED = "failed"


TRANSITIONS: Dict[AnalysisState, Tuple[AnalysisState, ...]] = {
    AnalysisState.IDLE: (AnalysisState.ESTIMATING, AnalysisState.READY, AnalysisState.FAILED),
    AnalysisState.ESTIMATING: (AnalysisState.BUILDING, AnalysisState.FAILED),
    AnalysisState.BUILDING: (AnalysisState.AGGREGATING, AnalysisState.SCORING, AnalysisState.FAILED),
    AnalysisState.AGGREGATING: (AnalysisState.SCORING, AnalysisState.FAILED),
    AnalysisState.SCORING: (AnalysisState.READY, AnalysisState.FAILED),
    AnalysisState.READY: (),
    AnalysisState.FAILED: (),
}

StateListener = Callable[[str, AnalysisState, AnalysisState], None]


class AnalysisRun:
    """State tracker for one request (IDLE -> ... -> READY | FAILED)."""

    def __init__(self, snapshot_id: str, mode: AnalysisMode, listener: Optional[StateListener] = None):
        self.snapshot_id = snapshot_id
        self.mode = mode
        self.listener = listener
        self.state = AnalysisState.IDLE
        self.history: List[AnalysisState] = [AnalysisState.IDLE]
        self.error: Optional[BaseException] = None

    def advance(self, new_state: AnalysisState) -> None:
        """
        Move to a new state.

        Raises:
            StateTransitionError: If the transition is not allowed
        """
        if new_state not in TRANSITIONS[self.state]:
            raise StateTransitionError(self.state.value, new_state.value)
        old, self.state = self.state, new_state
        self.history.append(new_state)
        logger.debug(f"[{self.snapshot_id[:8]}] {old.value} -> {new_state.value}")
        if self.listener is not None:
            self.listener(self.snapshot_id, old, new_state)

    def fail(self, error: BaseException) -> None:
        self.error = error
        if self.state not in (AnalysisState.READY, AnalysisState.FAILED):
            self.advance(AnalysisState.FAILED)


# =============================================================================
# Result
# =============================================================================

@dataclass(frozen=True, eq=False)
class AnalysisResult:
    """Scored network for one (mode, input snapshot, config)."""
    mode: str
    snapshot_id: str
    graph: Graph
    relationships: RelationshipMatrix
    rejected_instruments: Dict[str, str] = field(default_factory=dict)
    missing_pairs: Dict[Pair, str] = field(default_factory=dict)

    @property
    def nodes(self) -> Tuple[Node, ...]:
        """Scored nodes in discovery order."""
        return self.graph.nodes

    @property
    def edges(self) -> Tuple[Edge, ...]:
        return self.graph.edges

    def node(self, node_id: str) -> Node:
        return self.graph.node(node_id)

    def ranked(self, top_n: Optional[int] = None) -> List[Node]:
        """Nodes by betweenness desc, then degree desc, then id."""
        ranked = sorted(self.nodes, key=lambda n: (-n.betweenness, -n.degree, n.id))
        return ranked if top_n is None else ranked[:top_n]

    def to_frame(self) -> pd.DataFrame:
        """One row per node, discovery order."""
        return pd.DataFrame(
            [n.to_dict() for n in self.nodes],
            columns=['id', 'label', 'degree', 'betweenness', 'sector'],
        )


def snapshot_key(
    instruments: Sequence[Instrument],
    mode: AnalysisMode,
    config: EngineConfig,
) -> str:
    """
    Content hash of a request.

    Covers the mode, the result-affecting configuration, and for each
    instrument its id, label, sector, version and series content.
    """
    digest = hashlib.sha256()
    digest.update(mode.value.encode('utf-8'))
    digest.update(config.fingerprint().encode('utf-8'))
    for inst in instruments:
        meta = json.dumps([inst.symbol, inst.label, inst.sector, inst.version])
        digest.update(meta.encode('utf-8'))
        digest.update(pd.util.hash_pandas_object(inst.series, index=True).to_numpy().tobytes())
    return digest.hexdigest()


# =============================================================================
# Facade
# =============================================================================

class NetworkAnalysisFacade:
    """
    Entry point for network centrality analysis.

    Each computation runs on the facade's worker pool with no graph state
    shared between requests; the only shared resource is the cache.
    """

    def __init__(
        self,
        cache: Optional[ResultCache] = None,
        max_workers: int = DEFAULT_FACADE_WORKERS,
        listener: Optional[StateListener] = None,
    ):
        """
        Initialize facade.

        Args:
            cache: Result cache (default: a private, unbounded cache)
            max_workers: Worker threads for computations
            listener: Called with (snapshot_id, old_state, new_state)
        """
        self.cache = cache if cache is not None else ResultCache()
        self.listener = listener
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='analysis')
        self._count_lock = threading.Lock()
        self._computations = 0

    def __enter__(self) -> 'NetworkAnalysisFacade':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    def close(self) -> None:
        """Shut down the worker pool. Cached results stay in the cache."""
        self._executor.shutdown(wait=False, cancel_futures=True)

    @property
    def computation_count(self) -> int:
        """Number of pipeline executions (cache hits excluded)."""
        with self._count_lock:
            return self._computations

    def analyze(
        self,
        instruments: InstrumentInput,
        mode: Union[str, AnalysisMode],
        config: Optional[EngineConfig] = None,
        sectors: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> AnalysisResult:
        """
        Analyze a set of instruments.

        Args:
            instruments: Mapping symbol -> Instrument or price Series,
                or an iterable of Instrument
            mode: "stock" or "sector"
            config: Engine configuration (default: EngineConfig())
            sectors: symbol -> sector tag, overriding config.sectors and
                tags carried by the instruments
            timeout: Seconds to wait for the result

        Returns:
            AnalysisResult

        Raises:
            InvalidConfigurationError: Bad config, mode or timeout
            EmptyGraphError: No usable instruments (or no sector tags in
                sector mode)
            ComputationTimeoutError: Timeout elapsed
        """
        config = config if config is not None else EngineConfig()
        config.validate()
        mode = AnalysisMode.parse(mode)
        if timeout is not None and not timeout > 0:
            raise InvalidConfigurationError([f"timeout must be positive, got {timeout!r}"])

        tags = dict(config.sectors)
        tags.update(sectors or {})
        items = coerce_instruments(instruments, tags)
        if not items:
            raise EmptyGraphError("no instruments supplied")

        key = snapshot_key(items, mode, config)

        cached = self.cache.get(key)
        if cached is not None:
            return self._served(key, mode, cached, "served from cache")

        computed = []

        def compute(cancel_event: threading.Event) -> AnalysisResult:
            computed.append(key)
            return self._compute(key, items, mode, config, cancel_event)

        result = self.cache.get_or_compute(
            key, compute, executor=self._executor, timeout=timeout
        )
        if not computed:
            # Stored by another caller after the lookup above, or joined in flight
            return self._served(key, mode, result, "shared with a concurrent request")
        return result

    def _served(
        self,
        key: str,
        mode: AnalysisMode,
        result: AnalysisResult,
        how: str,
    ) -> AnalysisResult:
        """Report a result this caller did not compute (IDLE -> READY)."""
        AnalysisRun(key, mode, self.listener).advance(AnalysisState.READY)
        logger.info(f"[{key[:8]}] {mode.value} analysis {how}")
        return result

    def _compute(
        self,
        key: str,
        instruments: List[Instrument],
        mode: AnalysisMode,
        config: EngineConfig,
        cancel_event: threading.Event,
    ) -> AnalysisResult:
        """Run the pipeline once."""
        with self._count_lock:
            self._computations += 1

        run = AnalysisRun(key, mode, self.listener)
        tag = f"[{key[:8]}]"
        try:
            run.advance(AnalysisState.ESTIMATING)
            with LogContext(logger, "Estimating relationships", tag=tag):
                relationships = RelationshipEstimator(config.estimator).estimate(instruments)
            self._check_cancelled(cancel_event)

            run.advance(AnalysisState.BUILDING)
            with LogContext(logger, "Building graph", tag=tag):
                graph = GraphBuilder(config.thresholds).build(instruments, relationships)
            self._check_cancelled(cancel_event)

            if mode is AnalysisMode.SECTOR:
                run.advance(AnalysisState.AGGREGATING)
                with LogContext(logger, "Aggregating sectors", tag=tag):
                    graph = SectorAggregator(config.sector, config.sector_labels).aggregate(graph)
                self._check_cancelled(cancel_event)

            run.advance(AnalysisState.SCORING)
            with LogContext(logger, "Scoring graph", tag=tag):
                scored = CentralityCalculator(config.centrality).compute(graph, cancel_event)

            result = AnalysisResult(
                mode=mode.value,
                snapshot_id=key,
                graph=scored,
                relationships=relationships,
                rejected_instruments=dict(relationships.rejected),
                missing_pairs=dict(relationships.missing_pairs),
            )
            run.advance(AnalysisState.READY)
        except BaseException as e:
            run.fail(e)
            logger.warning(f"{tag} {mode.value} analysis failed: {e}")
            raise

        logger.info(
            f"{tag} {mode.value} analysis ready: {len(scored.nodes)} nodes, {len(scored.edges)} edges"
        )
        return result

    @staticmethod
    def _check_cancelled(cancel_event: threading.Event) -> None:
        if cancel_event.is_set():
            raise ComputationCancelledError()
