"""
Graph model and builder.

A Graph is an immutable, simple, undirected weighted graph whose nodes
carry degree and betweenness centrality once scored.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple
import logging
import math

import networkx as nx

from ..core.config import ThresholdConfig
from ..core.exceptions import EmptyGraphError, GraphConstructionError
from ..data.instrument import Instrument
from .correlation import RelationshipMatrix

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Node:
    """Graph node. Centrality fields are filled in by the calculator."""
    id: str
    label: str
    sector: Optional[str] = None
    degree: int = 0
    betweenness: float = 0.0
    members: Tuple[str, ...] = ()

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'label': self.label,
            'degree': self.degree,
            'betweenness': self.betweenness,
            'sector': self.sector,
        }


@dataclass(frozen=True)
class Edge:
    """Undirected weighted edge; strength keeps the signed relationship."""
    source: str
    target: str
    weight: float
    strength: float

    @property
    def key(self) -> Tuple[str, str]:
        return (self.source, self.target) if self.source <= self.target else (self.target, self.source)


@dataclass(frozen=True)
class Graph:
    """
    Simple undirected graph.

    Invariants (checked on construction):
        - node ids are unique
        - every edge endpoint is a node
        - no self-edges, at most one edge per unordered pair
        - every weight is finite and strictly positive
    """
    nodes: Tuple[Node, ...]
    edges: Tuple[Edge, ...] = ()
    _index: Dict[str, int] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, 'nodes', tuple(self.nodes))
        object.__setattr__(self, 'edges', tuple(self.edges))

        index: Dict[str, int] = {}
        for i, node in enumerate(self.nodes):
            if node.id in index:
                raise GraphConstructionError(f"duplicate node id {node.id!r}", len(self.nodes))
            index[node.id] = i
        object.__setattr__(self, '_index', index)

        seen: Set[Tuple[str, str]] = set()
        for edge in self.edges:
            if edge.source == edge.target:
                raise GraphConstructionError(f"self-edge on {edge.source!r}", len(self.nodes))
            for endpoint in (edge.source, edge.target):
                if endpoint not in index:
                    raise GraphConstructionError(
                        f"edge endpoint {endpoint!r} is not a node", len(self.nodes)
                    )
            if edge.key in seen:
                raise GraphConstructionError(
                    f"duplicate edge {edge.key[0]!r}-{edge.key[1]!r}", len(self.nodes)
                )
            if not (math.isfinite(edge.weight) and edge.weight > 0):
                raise GraphConstructionError(
                    f"edge {edge.key[0]!r}-{edge.key[1]!r} has invalid weight {edge.weight}",
                    len(self.nodes)
                )
            seen.add(edge.key)

    @property
    def node_ids(self) -> List[str]:
        return [n.id for n in self.nodes]

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._index

    def node(self, node_id: str) -> Node:
        try:
            return self.nodes[self._index[node_id]]
        except KeyError:
            raise KeyError(f"Unknown node: {node_id}") from None

    def adjacency(self) -> List[List[Tuple[int, float]]]:
        """
        Index-based adjacency list.

        Returns:
            For each node position, list of (neighbor position, weight)
            in edge order
        """
        adj: List[List[Tuple[int, float]]] = [[] for _ in self.nodes]
        for edge in self.edges:
            u = self._index[edge.source]
            v = self._index[edge.target]
            adj[u].append((v, edge.weight))
            adj[v].append((u, edge.weight))
        return adj

    def with_nodes(self, nodes: Sequence[Node]) -> 'Graph':
        """Copy of this graph with replacement nodes (same ids and order)."""
        if [n.id for n in nodes] != self.node_ids:
            raise GraphConstructionError("replacement nodes must keep ids and order", len(nodes))
        return Graph(nodes=tuple(nodes), edges=self.edges)

    def to_networkx(self) -> nx.Graph:
        """
        Export to a NetworkX graph.

        Node attributes: label, sector, degree, betweenness.
        Edge attributes: weight, strength.
        """
        G = nx.Graph()
        for node in self.nodes:
            G.add_node(
                node.id,
                label=node.label,
                sector=node.sector,
                degree=node.degree,
                betweenness=node.betweenness,
            )
        for edge in self.edges:
            G.add_edge(edge.source, edge.target, weight=edge.weight, strength=edge.strength)
        return G


# =============================================================================
# Graph Builder
# =============================================================================

class GraphBuilder:
    """
    Threshold-based graph builder.

    Keeps an edge between two instruments when the absolute relationship
    strength reaches ``min_absolute_strength``. With ``max_edges_per_node``
    set, each node keeps only its K strongest surviving edges (ties go to
    the lexicographically smaller neighbor) and an edge survives when at
    least one of its endpoints kept it.
    """

    def __init__(self, thresholds: ThresholdConfig):
        """
        Initialize graph builder.

        Args:
            thresholds: Edge filter configuration
        """
        self.thresholds = thresholds

    def build(
        self,
        instruments: Sequence[Instrument],
        relationships: RelationshipMatrix,
    ) -> Graph:
        """
        Build a graph from relationship strengths.

        Instruments rejected by the estimator are not nodes.

        Args:
            instruments: Instruments in discovery order
            relationships: Estimated relationships

        Returns:
            Unscored Graph (degree and betweenness are 0)

        Raises:
            EmptyGraphError: If there are no nodes
        """
        accepted = set(relationships.symbols)
        nodes = [
            Node(id=inst.symbol, label=inst.label, sector=inst.sector)
            for inst in instruments
            if inst.symbol in accepted
        ]
        if not nodes:
            if instruments:
                raise EmptyGraphError(
                    f"all {len(instruments)} instruments were rejected for insufficient data"
                )
            raise EmptyGraphError("no instruments supplied")

        order = {n.id: i for i, n in enumerate(nodes)}
        candidates = self._filter_edges(relationships, order)

        if self.thresholds.max_edges_per_node is not None:
            candidates = self._limit_degree(candidates, order, self.thresholds.max_edges_per_node)

        edges = [
            Edge(source=a, target=b, weight=abs(strength), strength=strength)
            for (a, b), strength in sorted(candidates.items(), key=lambda kv: (order[kv[0][0]], order[kv[0][1]]))
        ]

        graph = Graph(nodes=tuple(nodes), edges=tuple(edges))
        logger.info(
            f"Built graph: {len(graph.nodes)} nodes, {len(graph.edges)} edges "
            f"(|strength| >= {self.thresholds.min_absolute_strength})"
        )
        return graph

    def _filter_edges(
        self,
        relationships: RelationshipMatrix,
        order: Dict[str, int],
    ) -> Dict[Tuple[str, str], float]:
        """Pairs meeting the minimum strength, keyed in node order."""
        threshold = self.thresholds.min_absolute_strength
        kept: Dict[Tuple[str, str], float] = {}
        for a, b, strength in relationships.pairs():
            if a not in order or b not in order:
                continue
            if abs(strength) >= threshold:
                key = (a, b) if order[a] < order[b] else (b, a)
                kept[key] = strength
        return kept

    @staticmethod
    def _limit_degree(
        candidates: Dict[Tuple[str, str], float],
        order: Dict[str, int],
        k: int,
    ) -> Dict[Tuple[str, str], float]:
        """Keep each node's top-k edges, then take the union of the kept sets."""
        incident: Dict[str, List[Tuple[str, Tuple[str, str]]]] = {n: [] for n in order}
        for key in candidates:
            a, b = key
            incident[a].append((b, key))
            incident[b].append((a, key))

        retained: Set[Tuple[str, str]] = set()
        for node_id, entries in incident.items():
            entries.sort(key=lambda e: (-abs(candidates[e[1]]), e[0]))
            retained.update(key for _, key in entries[:k])

        dropped = len(candidates) - len(retained)
        if dropped:
            logger.debug(f"max_edges_per_node={k} dropped {dropped} edges")
        return {key: candidates[key] for key in candidates if key in retained}
