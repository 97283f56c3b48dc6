"""
Sector aggregation module.

Collapses an instrument-level graph into a sector-level graph. Centrality
is not additive, so the derived graph is scored again from scratch.
"""

from typing import Dict, List, Mapping, Optional, Tuple
import logging
import math

from ..core.config import SectorConfig
from ..core.exceptions import EmptyGraphError, InvalidConfigurationError
from .graph import Edge, Graph, Node

logger = logging.getLogger(__name__)


def _aggregate(values: List[float], how: str) -> float:
    # fsum over sorted values: independent of input order
    total = math.fsum(sorted(values))
    if how == 'sum':
        return total
    return total / len(values)


class SectorAggregator:
    """
    Instrument graph -> sector graph.

    Policies:
    - one node per distinct sector tag, in order of first appearance
    - instruments without a sector tag are left out entirely (no synthetic
      "unknown" sector)
    - two sectors are linked when at least one instrument edge crosses
      between them; the edge weight is the mean (or sum) of the crossing
      weights, and strength aggregates the signed strengths the same way
    - edges inside a sector do not produce self-edges
    """

    def __init__(
        self,
        config: Optional[SectorConfig] = None,
        labels: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize sector aggregator.

        Args:
            config: Sector configuration
            labels: Optional sector code -> display name
        """
        self.config = config or SectorConfig()
        self.labels = dict(labels or {})
        if self.config.edge_aggregation not in ('mean', 'sum'):
            raise InvalidConfigurationError(
                [f"sector_edge_aggregation must be 'mean' or 'sum', got {self.config.edge_aggregation!r}"]
            )

    def aggregate(self, graph: Graph) -> Graph:
        """
        Build the sector-level graph.

        Args:
            graph: Instrument-level graph

        Returns:
            Unscored sector Graph

        Raises:
            EmptyGraphError: If no instrument carries a sector tag
        """
        members: Dict[str, List[str]] = {}
        sector_of: Dict[str, str] = {}
        for node in graph.nodes:
            if node.sector is None:
                continue
            members.setdefault(node.sector, []).append(node.id)
            sector_of[node.id] = node.sector

        untagged = len(graph.nodes) - len(sector_of)
        if not members:
            raise EmptyGraphError(
                f"none of the {len(graph.nodes)} instruments has a sector tag"
            )
        if untagged:
            logger.info(f"Excluded {untagged} instruments without sector tag")

        order = {code: i for i, code in enumerate(members)}
        crossing: Dict[Tuple[str, str], List[Tuple[float, float]]] = {}
        for edge in graph.edges:
            a = sector_of.get(edge.source)
            b = sector_of.get(edge.target)
            if a is None or b is None or a == b:
                continue
            key = (a, b) if order[a] < order[b] else (b, a)
            crossing.setdefault(key, []).append((edge.weight, edge.strength))

        how = self.config.edge_aggregation
        nodes = [
            Node(
                id=code,
                label=self.labels.get(code, code),
                sector=code,
                members=tuple(sorted(ids)),
            )
            for code, ids in members.items()
        ]
        edges = []
        for (a, b) in sorted(crossing, key=lambda k: (order[k[0]], order[k[1]])):
            pairs = crossing[(a, b)]
            edges.append(Edge(
                source=a,
                target=b,
                weight=_aggregate([w for w, _ in pairs], how),
                strength=_aggregate([s for _, s in pairs], how),
            ))

        sector_graph = Graph(nodes=tuple(nodes), edges=tuple(edges))
        logger.info(
            f"Aggregated {len(graph.nodes)} instruments into {len(nodes)} sectors, "
            f"{len(edges)} sector edges ({how})"
        )
        return sector_graph
