"""
Report generation module.

Generates text reports and CSV exports of centrality rankings.
"""

from typing import List, Optional
from datetime import datetime
from pathlib import Path
import logging

import pandas as pd
from tabulate import tabulate

from ..core.config import EngineConfig
from ..core.constants import CSV_COLUMNS
from ..analysis.summary import NetworkSummary, summarize
from ..analysis.shock import ShockSimulation
from ..analysis.validation import DataValidator, ValidationReport

logger = logging.getLogger(__name__)

RULE = "━" * 82


def ranking_frame(result, top_n: Optional[int] = None) -> pd.DataFrame:
    """
    Ranked centrality table.

    Args:
        result: AnalysisResult
        top_n: Number of rows (None = all)

    Returns:
        DataFrame with the CSV_COLUMNS layout
    """
    rows = [
        {
            "Rank": rank,
            "Symbol": node.label,
            "Betweenness Centrality": node.betweenness,
            "Degree Centrality": node.degree,
            "Sector": node.sector or "N/A",
        }
        for rank, node in enumerate(result.ranked(top_n), 1)
    ]
    return pd.DataFrame(rows, columns=CSV_COLUMNS)


def export_csv(result, path: Path, top_n: Optional[int] = None) -> Path:
    """
    Write the ranked centrality table to CSV.

    Args:
        result: AnalysisResult
        path: Output file
        top_n: Number of rows (None = all)

    Returns:
        Path written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    ranking_frame(result, top_n).to_csv(path, index=False, float_format='%.6f')
    logger.info(f"Exported {result.mode} centrality table to {path}")
    return path


class ReportGenerator:
    """
    Text report generator.

    Generates a network report with the bridge ranking, connectivity,
    communities, sector betweenness, strongest pairs, data exclusions and
    data validation findings.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        """
        Initialize report generator.

        Args:
            config: Configuration object
        """
        self.config = config or EngineConfig()

    def generate(
        self,
        result,
        date: Optional[datetime] = None,
        shock: Optional[ShockSimulation] = None,
        validation: Optional[ValidationReport] = None,
    ) -> str:
        """
        Generate analysis report.

        Args:
            result: AnalysisResult
            date: Report date (default: now)
            shock: Optional shock simulation to append
            validation: Validation findings (default: computed here)

        Returns:
            Formatted report string
        """
        date = date or datetime.now()
        top_n = self.config.output.top_n
        summary = summarize(result, top_n=top_n)
        title = "Stock-Level Network" if result.mode == "stock" else "Sector-Level Network"

        lines: List[str] = [
            RULE,
            f"NETWORK CENTRALITY REPORT - {title}",
            f"{date.strftime('%Y-%m-%d %H:%M')}   snapshot {result.snapshot_id[:12]}",
            RULE,
            "",
            f"Nodes:        {summary.node_count}",
            f"Edges:        {summary.edge_count}",
            f"Density:      {summary.density:.4f} ({summary.connectivity_label})",
            f"Components:   {summary.components}",
            f"Top Hub:      {summary.top_hub or 'None'}",
        ]
        if summary.network_sync is not None:
            lines.append(f"Network Sync: {summary.network_sync:.4f}")

        lines += ["", f"Top {top_n} Bridge {'Stocks' if result.mode == 'stock' else 'Sectors'}:", ""]
        table = ranking_frame(result, top_n)
        lines.append(tabulate(
            table, headers='keys', tablefmt='simple', showindex=False, floatfmt='.4f'
        ))

        lines += self._community_section(summary)
        lines += self._sector_section(summary)
        lines += self._pairs_section(summary)
        lines += self._exclusions_section(result)
        lines += self._validation_section(validation or DataValidator().validate(result))
        if shock is not None:
            lines += self._shock_section(shock)

        lines.append(RULE)
        return "\n".join(lines) + "\n"

    def _sector_section(self, summary: NetworkSummary) -> List[str]:
        if not summary.sector_betweenness:
            return []
        lines = ["", "SECTOR BETWEENNESS", ""]
        for sector, val in summary.sector_betweenness.items():
            bar = '█' * int(val * 20)
            lines.append(f"  {sector:<10}: {val:.4f}  {bar}")
        return lines

    def _community_section(self, summary: NetworkSummary) -> List[str]:
        partition = summary.communities
        if partition is None or not len(partition):
            return []
        header = f"COMMUNITIES ({len(partition)})"
        if partition.modularity is not None:
            header += f"   modularity {partition.modularity:.4f}"
        lines = ["", header, ""]
        for index, members in enumerate(partition.communities, 1):
            if len(members) == 1:
                continue
            lines.append(f"  #{index:<3} {', '.join(members)}")
        singletons = sum(1 for members in partition.communities if len(members) == 1)
        if singletons:
            lines.append(f"  + {singletons} single-node communities")
        return lines

    def _pairs_section(self, summary: NetworkSummary) -> List[str]:
        if not summary.strongest_pairs:
            return []
        lines = ["", "STRONGEST RELATIONSHIPS", ""]
        for a, b, value in summary.strongest_pairs:
            lines.append(f"  ρ({a}, {b}): {value:+.4f}")
        return lines

    def _exclusions_section(self, result) -> List[str]:
        if not result.rejected_instruments and not result.missing_pairs:
            return []
        lines = ["", "DATA EXCLUSIONS", ""]
        for symbol, reason in result.rejected_instruments.items():
            lines.append(f"  rejected {symbol}: {reason}")
        if result.missing_pairs:
            lines.append(f"  {len(result.missing_pairs)} pair(s) without a defined relationship")
        return lines

    def _validation_section(self, validation: ValidationReport) -> List[str]:
        status = "OK" if validation.ok else f"{len(validation.issues)} issue(s)"
        lines = ["", f"DATA VALIDATION: {status}, {len(validation.warnings)} warning(s)", ""]
        lines += [f"  ✗ {issue}" for issue in validation.issues]
        lines += [f"  ! {warning}" for warning in validation.warnings]
        return lines

    def _shock_section(self, shock: ShockSimulation) -> List[str]:
        lines = [
            "",
            f"SHOCK SIMULATION: {shock.symbol} ({shock.magnitude:+.2%})",
            "",
            f"  Affected: {shock.total_affected}   Max: {shock.max_impact:.4f}   "
            f"Average: {shock.average_impact:.4f}",
        ]
        for impact in shock.impacts[:10]:
            lines.append(f"  {impact.symbol:<14} {impact.impact:.4f}  (ρ={impact.correlation:+.3f})")
        return lines
