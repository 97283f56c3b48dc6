"""
Centrality calculation module.

Provides degree centrality and betweenness centrality (networkx Brandes)
on weighted undirected graphs.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Union
import logging
import math
import threading

import networkx as nx
import numpy as np

from ..core.config import CentralityConfig
from ..core.constants import (
    CHUNKS_PER_WORKER,
    DISTANCE_INVERSE,
    DISTANCE_MANTEGNA,
    DISTANCE_UNIT,
)
from ..core.exceptions import ComputationCancelledError, ComputationError
from .graph import Graph

logger = logging.getLogger(__name__)

DistanceTransform = Callable[[float], float]

# Edge attribute holding the path cost used for shortest paths
DISTANCE_ATTR = "distance"


# =============================================================================
# Weight -> Distance Transforms
# =============================================================================

def inverse_distance(weight: float) -> float:
    """Stronger relationship, shorter path: d = 1 / w."""
    return 1.0 / weight


def unit_distance(weight: float) -> float:
    """Hop count; the weight is ignored."""
    return 1.0


def mantegna_distance(weight: float) -> float:
    """
    Correlation distance d = sqrt(2 * (1 - w)).

    A weight of exactly 1 maps to distance 0, which is rejected.
    """
    return math.sqrt(max(0.0, 2.0 * (1.0 - weight)))


DISTANCE_TRANSFORMS: Dict[str, DistanceTransform] = {
    DISTANCE_INVERSE: inverse_distance,
    DISTANCE_UNIT: unit_distance,
    DISTANCE_MANTEGNA: mantegna_distance,
}


def resolve_transform(transform: Union[str, DistanceTransform]) -> DistanceTransform:
    if callable(transform):
        return transform
    try:
        return DISTANCE_TRANSFORMS[transform]
    except KeyError:
        raise ComputationError(
            "distance transform",
            f"unknown transform {transform!r}, expected one of {sorted(DISTANCE_TRANSFORMS)}"
        ) from None


# =============================================================================
# Centrality Calculator
# =============================================================================

class CentralityCalculator:
    """
    Degree and betweenness centrality calculator.

    Implements:
    - Degree centrality (unweighted count of incident edges)
    - Betweenness centrality (networkx Brandes; hop counts for the unit
      transform, the transformed distance otherwise)

    Betweenness is summed over unordered source/target pairs, so on the
    path A-B-C node B scores 1. With normalization on, values are divided
    by (n-1)(n-2)/2, the number of pairs not involving the node.
    """

    def __init__(
        self,
        config: Optional[CentralityConfig] = None,
        transform: Optional[DistanceTransform] = None,
    ):
        """
        Initialize centrality calculator.

        Args:
            config: Centrality configuration
            transform: Distance transform overriding config.distance_transform
        """
        self.config = config or CentralityConfig()
        self.transform = resolve_transform(transform or self.config.distance_transform)
        self.unweighted = self.transform is unit_distance

    def compute(
        self,
        graph: Graph,
        cancel_event: Optional[threading.Event] = None,
    ) -> Graph:
        """
        Score every node of a graph.

        Args:
            graph: Graph to score
            cancel_event: Checked between chunks of source nodes; when set,
                the computation stops

        Returns:
            New Graph with degree and betweenness populated

        Raises:
            ComputationError: If distances or results are not finite
            ComputationCancelledError: If cancel_event was set
        """
        G = graph.to_networkx()
        self._distances(G)
        betweenness = self.betweenness(G, cancel_event)

        nodes = [
            replace(node, degree=G.degree(node.id), betweenness=betweenness[node.id])
            for node in graph.nodes
        ]
        return graph.with_nodes(nodes)

    def betweenness(
        self,
        G: nx.Graph,
        cancel_event: Optional[threading.Event] = None,
    ) -> Dict[str, float]:
        """
        Betweenness centrality for every node.

        Sources are split into chunks scored with
        ``nx.betweenness_centrality_subset`` against all targets; the
        chunk sums equal the full Brandes result.

        Args:
            G: Graph carrying a ``distance`` attribute on every edge
            cancel_event: Optional cancellation flag

        Returns:
            Betweenness by node id
        """
        nodes = list(G)
        n = len(nodes)
        weight = None if self.unweighted else DISTANCE_ATTR

        workers = min(self.config.max_workers, n)
        size = max(1, math.ceil(n / (max(workers, 1) * CHUNKS_PER_WORKER)))
        chunks = [nodes[i:i + size] for i in range(0, n, size)]
        logger.debug(f"Betweenness over {n} nodes: {len(chunks)} source chunk(s), {max(workers, 1)} worker(s)")

        def score(chunk: List[str]) -> Dict[str, float]:
            if cancel_event is not None and cancel_event.is_set():
                raise ComputationCancelledError("betweenness")
            return nx.betweenness_centrality_subset(
                G, sources=chunk, targets=nodes, normalized=False, weight=weight
            )

        if workers > 1:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix='brandes') as pool:
                partials = list(pool.map(score, chunks))
        else:
            partials = [score(chunk) for chunk in chunks]

        # Unnormalized undirected subset scores are already halved per pair
        raw = np.zeros(n)
        for partial in partials:
            raw += np.array([partial[v] for v in nodes])

        if self.config.normalize_betweenness and n > 2:
            raw = raw / ((n - 1) * (n - 2) / 2.0)

        if not np.all(np.isfinite(raw)) or np.any(raw < 0):
            raise ComputationError("betweenness", "non-finite or negative centrality value")

        return {v: float(raw[i]) for i, v in enumerate(nodes)}

    def _distances(self, G: nx.Graph) -> None:
        """Put the transformed path cost on every edge, rejecting unusable ones."""
        for u, v, data in G.edges(data=True):
            weight = data['weight']
            d = self.transform(weight)
            if not math.isfinite(d) or d <= 0:
                raise ComputationError(
                    "distance transform",
                    f"weight {weight} maps to unusable distance {d} (nodes {u}, {v})"
                )
            data[DISTANCE_ATTR] = d
