"""
Data validation module.

Sanity checks over an analysis result: input coverage, relationship
matrix integrity and centrality ranges. Findings are graded as issues
(the result should not be trusted), warnings and info lines, and can be
exported as JSON next to the text report.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
import json
import logging
import math

import numpy as np

from ..core.constants import (
    STRONG_RELATIONSHIP,
    VALIDATION_MAX_LENGTH_SPREAD,
    VALIDATION_MIN_POINTS,
    VALIDATION_SAMPLE_NODES,
    VALIDATION_TOLERANCE,
)

logger = logging.getLogger(__name__)


@dataclass
class ValidationReport:
    """Graded findings of one validation run."""
    issues: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    info: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues

    def to_dict(self) -> Dict[str, List[str]]:
        return asdict(self)


class DataValidator:
    """
    Validates an AnalysisResult.

    Example:
        report = DataValidator().validate(result)
        if not report.ok:
            print(report.issues)
    """

    def __init__(
        self,
        min_points: int = VALIDATION_MIN_POINTS,
        max_length_spread: int = VALIDATION_MAX_LENGTH_SPREAD,
        tolerance: float = VALIDATION_TOLERANCE,
        strong: float = STRONG_RELATIONSHIP,
    ):
        self.min_points = min_points
        self.max_length_spread = max_length_spread
        self.tolerance = tolerance
        self.strong = strong

    def validate(self, result) -> ValidationReport:
        """
        Run every check against a result.

        Args:
            result: AnalysisResult (stock or sector mode)

        Returns:
            ValidationReport
        """
        report = ValidationReport()
        relationships = result.relationships

        lengths = relationships.series_lengths
        if not lengths:
            report.issues.append("No instrument data available")
            return report

        report.info.append(f"Total instruments loaded: {len(lengths)}")
        short = [s for s, n in lengths.items() if n < self.min_points]
        if short:
            report.warnings.append(
                f"{len(short)} instruments have less than {self.min_points} data points"
            )
        lo, hi = min(lengths.values()), max(lengths.values())
        if hi - lo > self.max_length_spread:
            report.warnings.append(
                f"Return series length varies significantly: min={lo}, max={hi}"
            )
        report.info.append(f"Return series length: {lo}-{hi} data points")

        self._check_matrix(relationships, report)
        self._check_network(result, report)

        values = [abs(v) for _, _, v in relationships.pairs() if math.isfinite(v)]
        if values:
            report.info.append(f"Average absolute correlation: {np.mean(values):.4f}")
            strong = sum(1 for v in values if v >= self.strong)
            report.info.append(f"Strong correlations (>={self.strong}): {strong}")

        logger.info(
            f"Validation: {len(report.issues)} issues, {len(report.warnings)} warnings"
        )
        return report

    def _check_matrix(self, relationships, report: ValidationReport) -> None:
        frame = relationships.to_frame()
        matrix = frame.to_numpy(dtype=float)
        n = len(matrix)
        if n == 0:
            report.issues.append("Relationship matrix is empty")
            return

        # Undefined pairs are NaN by design; only defined values are checked
        defined = [v for _, _, v in relationships.pairs()]
        invalid = sum(1 for v in defined if not math.isfinite(v) or v < -1 or v > 1)
        if invalid:
            report.issues.append(f"{invalid} invalid correlation values found")

        diagonal = int(np.sum(np.abs(np.diag(matrix) - 1.0) > self.tolerance))
        if diagonal:
            report.issues.append(f"{diagonal} diagonal values are not 1.0")

        upper = np.triu_indices(n, k=1)
        diff = np.abs(matrix[upper] - matrix.T[upper])
        asymmetric = int(np.sum(diff[~np.isnan(diff)] > self.tolerance))
        if asymmetric:
            report.issues.append(f"{asymmetric} correlation pairs are not symmetric")

        undefined = len(relationships.missing_pairs)
        if undefined:
            report.warnings.append(f"{undefined} pairs have no defined correlation")

    def _check_network(self, result, report: ValidationReport) -> None:
        nodes = result.nodes
        report.info.append(f"Network nodes: {len(nodes)}")
        report.info.append(f"Network edges: {len(result.edges)}")
        if not nodes:
            report.issues.append("Network graph is empty")
            return

        betweenness = [n.betweenness for n in nodes]
        report.info.append(
            f"Betweenness range: {min(betweenness):.4f} - {max(betweenness):.4f}"
        )
        negative = sum(1 for v in betweenness if v < 0)
        if negative:
            report.issues.append(f"{negative} nodes have negative betweenness")

        degrees = [n.degree for n in nodes]
        report.info.append(f"Average degree: {np.mean(degrees):.2f}")
        report.info.append(f"Max degree: {max(degrees)}")


def validation_payload(
    result,
    report: ValidationReport,
    timestamp: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    JSON-ready validation export with a sample of the data behind it.

    Args:
        result: AnalysisResult the report was built from
        report: ValidationReport
        timestamp: Export time (default: now)
    """
    relationships = result.relationships
    period = relationships.period
    symbols = list(relationships.symbols[:3])
    sample_matrix = relationships.to_frame().loc[symbols, symbols]

    return {
        'timestamp': (timestamp or datetime.now()).isoformat(),
        'mode': result.mode,
        'snapshot_id': result.snapshot_id,
        'period': [str(period[0]), str(period[1])] if period else None,
        'instrument_count': len(relationships.series_lengths),
        'validation': report.to_dict(),
        'sample_data': {
            'instruments': [
                {'symbol': s, 'data_points': relationships.series_lengths.get(s, 0)}
                for s in symbols
            ],
            'correlations': [
                [None if np.isnan(v) else float(v) for v in row]
                for row in sample_matrix.to_numpy(dtype=float)
            ],
            'top_nodes': [
                {'symbol': n.label, 'betweenness': n.betweenness, 'degree': n.degree}
                for n in result.ranked(VALIDATION_SAMPLE_NODES)
            ],
        },
    }


def export_validation_json(
    result,
    path: Path,
    report: Optional[ValidationReport] = None,
    timestamp: Optional[datetime] = None,
) -> Path:
    """
    Validate a result (unless a report is given) and write the JSON export.

    Returns:
        Path written
    """
    report = report if report is not None else DataValidator().validate(result)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(validation_payload(result, report, timestamp), f, indent=2)
    logger.info(f"Exported validation report to {path}")
    return path
