"""Analysis module - Relationships, Graph construction, Centrality, Sectors, Shocks"""

from .correlation import (
    RelationshipEstimator,
    RelationshipMatrix,
    RelationshipFunction,
    PearsonRelationship,
    SpearmanRelationship,
    get_relationship_function,
    top_pairs,
)
from .graph import Node, Edge, Graph, GraphBuilder
from .centrality import CentralityCalculator, DISTANCE_TRANSFORMS
from .sector import SectorAggregator
from .summary import NetworkSummary, summarize
from .shock import ShockSimulator, ShockSimulation, ShockImpact

__all__ = [
    "RelationshipEstimator",
    "RelationshipMatrix",
    "RelationshipFunction",
    "PearsonRelationship",
    "SpearmanRelationship",
    "get_relationship_function",
    "top_pairs",
    "Node",
    "Edge",
    "Graph",
    "GraphBuilder",
    "CentralityCalculator",
    "DISTANCE_TRANSFORMS",
    "SectorAggregator",
    "NetworkSummary",
    "summarize",
    "ShockSimulator",
    "ShockSimulation",
    "ShockImpact",
]
