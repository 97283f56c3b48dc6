"""
Shock propagation module.

Estimates how a price shock on one node (instrument or sector) spreads
to the others, scaled by the shocked node's betweenness.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional
import logging

from ..core.constants import (
    DEFAULT_SHOCK_MAGNITUDE,
    MODE_SECTOR,
    SHOCK_AFFECTED_THRESHOLD,
    SHOCK_CENTRALITY_SCALE,
)
from ..core.exceptions import AnalysisError

logger = logging.getLogger(__name__)


@dataclass
class ShockImpact:
    symbol: str
    impact: float
    correlation: float
    betweenness: float
    sector: Optional[str] = None


@dataclass
class ShockSimulation:
    """Result of one shock simulation, impacts sorted by size."""
    symbol: str
    magnitude: float
    impacts: List[ShockImpact]
    missing: List[str] = field(default_factory=list)

    @property
    def total_affected(self) -> int:
        return sum(1 for i in self.impacts if i.impact > SHOCK_AFFECTED_THRESHOLD)

    @property
    def max_impact(self) -> float:
        return self.impacts[0].impact if self.impacts else 0.0

    @property
    def average_impact(self) -> float:
        if not self.impacts:
            return 0.0
        return sum(i.impact for i in self.impacts) / len(self.impacts)


@dataclass
class SectorImpact:
    sector: str
    total_impact: float
    count: int


class ShockSimulator:
    """
    Linear shock propagation over a scored network.

    impact(other) = |strength(symbol, other)| * (1 + bt(symbol) / scale) * magnitude

    On a stock-level result the strength is the estimated relationship;
    instruments whose relationship with the shocked symbol is undefined
    are listed in ``missing`` instead of receiving a zero impact. On a
    sector-level result the strength is the aggregated sector-edge
    strength, and sectors without an edge to the shocked sector get zero.
    """

    def __init__(self, centrality_scale: float = SHOCK_CENTRALITY_SCALE):
        self.centrality_scale = centrality_scale

    def simulate(
        self,
        result,
        symbol: str,
        magnitude: float = DEFAULT_SHOCK_MAGNITUDE,
    ) -> ShockSimulation:
        """
        Simulate a shock on one node.

        Args:
            result: AnalysisResult (stock or sector mode)
            symbol: Instrument (or sector code) receiving the shock
            magnitude: Shock size (e.g. 0.05 for a 5% move)

        Returns:
            ShockSimulation

        Raises:
            AnalysisError: Unknown symbol
        """
        if symbol not in result.graph:
            kind = "Sector" if result.mode == MODE_SECTOR else "Symbol"
            raise AnalysisError(f"{kind} {symbol} not found in the network")

        strength = self._strength_lookup(result, symbol)
        shock_bt = result.node(symbol).betweenness
        amplification = 1.0 + shock_bt / self.centrality_scale

        impacts: List[ShockImpact] = []
        missing: List[str] = []
        for node in result.nodes:
            if node.id == symbol:
                continue
            corr = strength(node.id)
            if corr is None:
                missing.append(node.id)
                continue
            impacts.append(ShockImpact(
                symbol=node.id,
                impact=abs(corr) * amplification * magnitude,
                correlation=corr,
                betweenness=node.betweenness,
                sector=node.sector,
            ))

        impacts.sort(key=lambda i: (-i.impact, i.symbol))
        logger.info(
            f"Shock on {symbol} ({magnitude:+.2%}, {result.mode} network): "
            f"{len(impacts)} impacts, {len(missing)} without defined strength"
        )
        return ShockSimulation(symbol=symbol, magnitude=magnitude, impacts=impacts, missing=missing)

    @staticmethod
    def _strength_lookup(result, symbol: str) -> Callable[[str], Optional[float]]:
        if result.mode != MODE_SECTOR:
            return lambda other: result.relationships.get(symbol, other)

        links: Dict[str, float] = {}
        for edge in result.edges:
            if edge.source == symbol:
                links[edge.target] = edge.strength
            elif edge.target == symbol:
                links[edge.source] = edge.strength
        return lambda other: links.get(other, 0.0)

    @staticmethod
    def affected_sectors(simulation: ShockSimulation) -> Dict[str, SectorImpact]:
        """
        Total impact per sector, largest first.

        Untagged instruments are not grouped into a catch-all sector.
        """
        totals: Dict[str, SectorImpact] = {}
        for impact in simulation.impacts:
            if impact.sector is None:
                continue
            entry = totals.setdefault(impact.sector, SectorImpact(impact.sector, 0.0, 0))
            entry.total_impact += impact.impact
            entry.count += 1
        return dict(sorted(totals.items(), key=lambda kv: (-kv[1].total_impact, kv[0])))
