"""
Network summary module.

Condenses an analysis result into the headline figures a dashboard shows:
bridge nodes, connectivity, communities, sector betweenness and
strongest pairs.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
import logging

import numpy as np
import networkx as nx

from ..core.constants import DEFAULT_TOP_N, DEFAULT_TOP_PAIRS, HIGH_CONNECTIVITY_DENSITY
from .community import CommunityPartition, detect_communities
from .correlation import RelationshipMatrix, top_pairs
from .graph import Node

logger = logging.getLogger(__name__)


@dataclass
class NetworkSummary:
    """Headline metrics of a scored network."""
    mode: str
    node_count: int
    edge_count: int
    density: float
    components: int
    isolated: List[str]
    top_bridges: List[Node]
    top_hub: Optional[str]
    network_sync: Optional[float]
    sector_betweenness: Dict[str, float] = field(default_factory=dict)
    strongest_pairs: List[Tuple[str, str, float]] = field(default_factory=list)
    communities: Optional[CommunityPartition] = None

    @property
    def highly_interconnected(self) -> bool:
        return self.density > HIGH_CONNECTIVITY_DENSITY

    @property
    def connectivity_label(self) -> str:
        return "highly interconnected" if self.highly_interconnected else "moderately connected"


def calc_network_sync(relationships: RelationshipMatrix) -> Optional[float]:
    """
    Average relationship strength over defined pairs.

    Args:
        relationships: Relationship matrix

    Returns:
        Mean strength, or None when no pair is defined
    """
    values = [v for _, _, v in relationships.pairs()]
    if not values:
        return None
    return float(np.mean(values))


def summarize(
    result,
    top_n: int = DEFAULT_TOP_N,
    top_pair_count: int = DEFAULT_TOP_PAIRS,
) -> NetworkSummary:
    """
    Summarize an analysis result.

    Args:
        result: AnalysisResult from the facade
        top_n: Number of bridge nodes to keep
        top_pair_count: Number of strongest pairs to keep

    Returns:
        NetworkSummary
    """
    G = result.graph.to_networkx()
    n = G.number_of_nodes()

    bridges = result.ranked(top_n)
    top_hub = bridges[0].id if bridges and bridges[0].betweenness > 0 else None

    sector_bt: Dict[str, float] = {}
    if result.mode == "stock":
        for node in result.nodes:
            if node.sector is not None:
                sector_bt[node.sector] = sector_bt.get(node.sector, 0.0) + node.betweenness
        sector_bt = dict(sorted(sector_bt.items(), key=lambda kv: (-kv[1], kv[0])))

    summary = NetworkSummary(
        mode=result.mode,
        node_count=n,
        edge_count=G.number_of_edges(),
        density=nx.density(G) if n > 1 else 0.0,
        components=nx.number_connected_components(G) if n else 0,
        isolated=sorted(nx.isolates(G)),
        top_bridges=bridges,
        top_hub=top_hub,
        network_sync=calc_network_sync(result.relationships),
        sector_betweenness=sector_bt,
        strongest_pairs=top_pairs(result.relationships, top_pair_count),
        communities=detect_communities(result.graph),
    )
    logger.debug(
        f"Summary: {summary.node_count} nodes, density {summary.density:.3f}, "
        f"{summary.components} components, {len(summary.communities)} communities"
    )
    return summary
