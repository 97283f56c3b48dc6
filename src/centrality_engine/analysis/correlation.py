"""
Relationship estimation module.

Turns aligned per-instrument price series into pairwise relationship
strengths (correlation of returns by default).
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Tuple
import logging
import math

import numpy as np
import pandas as pd

from ..core.config import EstimatorConfig, parse_date
from ..core.constants import PERIOD_DAYS
from ..core.exceptions import (
    ComputationError,
    DataInsufficientError,
    InvalidConfigurationError,
    describe_pair,
)
from ..data.instrument import Instrument

logger = logging.getLogger(__name__)

Pair = Tuple[str, str]

# Tolerance for floating point overshoot of the declared value range
RANGE_TOLERANCE = 1e-9


def _day(date, tz=None) -> pd.Timestamp:
    day = pd.Timestamp(date)
    return day.tz_localize(tz) if tz is not None else day


# =============================================================================
# Relationship Functions
# =============================================================================

class RelationshipFunction:
    """
    Strength of co-movement between two aligned, NaN-free series.

    Subclasses set ``name`` and ``value_range`` and implement ``compute``.
    """

    name: str = "base"
    value_range: Tuple[float, float] = (-1.0, 1.0)

    def compute(self, x: np.ndarray, y: np.ndarray) -> float:
        raise NotImplementedError

    def __call__(self, x: np.ndarray, y: np.ndarray) -> float:
        value = self.compute(x, y)
        return self._check_range(value)

    def _check_range(self, value: float) -> float:
        lo, hi = self.value_range
        if not math.isfinite(value):
            raise ComputationError(f"{self.name} relationship", f"non-finite value {value}")
        if value < lo - RANGE_TOLERANCE or value > hi + RANGE_TOLERANCE:
            raise ComputationError(
                f"{self.name} relationship",
                f"value {value} outside declared range [{lo}, {hi}]"
            )
        # Rounding overshoot only
        return min(max(value, lo), hi)


class PearsonRelationship(RelationshipFunction):
    """Pearson product-moment correlation."""

    name = "pearson"

    def compute(self, x: np.ndarray, y: np.ndarray) -> float:
        value = pd.Series(x).corr(pd.Series(y))
        # NaN when either side has zero variance
        if math.isnan(value):
            raise DataInsufficientError(2, len(x), "correlation", "zero variance")
        return float(value)


class SpearmanRelationship(PearsonRelationship):
    """Spearman rank correlation (Pearson on average ranks)."""

    name = "spearman"

    def compute(self, x: np.ndarray, y: np.ndarray) -> float:
        rx = pd.Series(x).rank().to_numpy(dtype=float)
        ry = pd.Series(y).rank().to_numpy(dtype=float)
        return super().compute(rx, ry)


RELATIONSHIP_FUNCTIONS = {
    PearsonRelationship.name: PearsonRelationship,
    SpearmanRelationship.name: SpearmanRelationship,
}


def get_relationship_function(name: str) -> RelationshipFunction:
    """
    Look up a relationship function by name.

    Raises:
        InvalidConfigurationError: If the name is unknown
    """
    try:
        return RELATIONSHIP_FUNCTIONS[name]()
    except KeyError:
        raise InvalidConfigurationError(
            [f"Unknown relationship method {name!r}, expected one of {sorted(RELATIONSHIP_FUNCTIONS)}"]
        ) from None


# =============================================================================
# Relationship Matrix
# =============================================================================

@dataclass(frozen=True, eq=False)
class RelationshipMatrix:
    """Pairwise relationship strengths for accepted instruments."""
    symbols: Tuple[str, ...]
    values: Dict[Pair, float]
    method: str
    observations: int
    missing_pairs: Dict[Pair, str] = field(default_factory=dict)
    rejected: Dict[str, str] = field(default_factory=dict)
    # Non-NaN return observations per input series, rejected ones included
    series_lengths: Dict[str, int] = field(default_factory=dict)
    period: Optional[Tuple[pd.Timestamp, pd.Timestamp]] = None

    def get(self, a: str, b: str) -> Optional[float]:
        """Strength of the pair in either order, or None when undefined."""
        if (a, b) in self.values:
            return self.values[(a, b)]
        return self.values.get((b, a))

    def pairs(self) -> Iterator[Tuple[str, str, float]]:
        for (a, b), value in self.values.items():
            yield a, b, value

    def __len__(self) -> int:
        return len(self.values)

    def to_frame(self) -> pd.DataFrame:
        """
        Symmetric matrix of strengths.

        Undefined pairs are NaN, never 0; the diagonal is 1.
        """
        frame = pd.DataFrame(np.nan, index=list(self.symbols), columns=list(self.symbols))
        for a, b, value in self.pairs():
            frame.loc[a, b] = value
            frame.loc[b, a] = value
        for s in self.symbols:
            frame.loc[s, s] = 1.0
        return frame


def top_pairs(matrix: RelationshipMatrix, top_n: int = 10) -> List[Tuple[str, str, float]]:
    """
    Strongest pairs by absolute strength.

    Args:
        matrix: Relationship matrix
        top_n: Number of pairs to return

    Returns:
        List of (symbol1, symbol2, strength), ties ordered by symbols
    """
    ranked = sorted(matrix.pairs(), key=lambda p: (-abs(p[2]), p[0], p[1]))
    return ranked[:top_n]


# =============================================================================
# Estimator
# =============================================================================

class RelationshipEstimator:
    """
    Pairwise relationship estimator.

    Aligns all series on a common timestamp index, transforms prices into
    returns, and evaluates the relationship function for every pair on its
    pairwise-complete observations. Pairs (or whole series) without enough
    data are reported, not scored.
    """

    def __init__(
        self,
        config: EstimatorConfig,
        function: Optional[RelationshipFunction] = None,
    ):
        """
        Initialize estimator.

        Args:
            config: Estimator configuration
            function: Relationship function (default: from config.method)
        """
        self.config = config
        self.function = function or get_relationship_function(config.method)

    def estimate(self, instruments: Sequence[Instrument]) -> RelationshipMatrix:
        """
        Estimate relationship strength for every pair of instruments.

        Args:
            instruments: Instruments in discovery order

        Returns:
            RelationshipMatrix over the accepted instruments
        """
        frame = self.align(instruments)

        rejected: Dict[str, str] = {}
        accepted: List[str] = []
        for symbol in frame.columns:
            try:
                self._validate_series(symbol, frame[symbol])
            except DataInsufficientError as e:
                logger.warning(f"Rejected {symbol}: {e.details}")
                rejected[symbol] = e.details or e.message
                continue
            accepted.append(symbol)

        data = frame[accepted].to_numpy(dtype=float) if accepted else np.empty((len(frame), 0))
        valid = ~np.isnan(data)

        values: Dict[Pair, float] = {}
        missing: Dict[Pair, str] = {}
        for i, a in enumerate(accepted):
            for j in range(i + 1, len(accepted)):
                b = accepted[j]
                try:
                    values[(a, b)] = self._pair_strength(data, valid, i, j, (a, b))
                except DataInsufficientError as e:
                    logger.debug(f"Skipping pair {describe_pair((a, b))}: {e.details}")
                    missing[(a, b)] = e.details or e.message

        logger.info(
            f"Estimated {len(values)} {self.function.name} relationships for "
            f"{len(accepted)} instruments ({len(missing)} pairs undefined, "
            f"{len(rejected)} series rejected)"
        )

        return RelationshipMatrix(
            symbols=tuple(accepted),
            values=values,
            method=self.function.name,
            observations=len(frame),
            missing_pairs=missing,
            rejected=rejected,
            series_lengths={s: int(frame[s].notna().sum()) for s in frame.columns},
            period=(frame.index[0], frame.index[-1]) if len(frame) else None,
        )

    def align(self, instruments: Sequence[Instrument]) -> pd.DataFrame:
        """
        Align series into one frame and apply the returns transform.

        Args:
            instruments: Instruments to align

        Returns:
            DataFrame indexed by timestamp, one column per instrument,
            restricted to the configured window
        """
        columns = {}
        for inst in instruments:
            series = pd.to_numeric(inst.series, errors='coerce')
            if not series.index.is_unique:
                logger.warning(f"{inst.symbol}: duplicate timestamps, keeping last value")
                series = series[~series.index.duplicated(keep='last')]
            columns[inst.symbol] = series

        if not columns:
            return pd.DataFrame()

        frame = pd.concat(columns, axis=1).sort_index()
        frame = self._restrict_dates(frame)
        frame = self._to_returns(frame)

        if self.config.window is not None and len(frame) > self.config.window:
            frame = frame.iloc[-self.config.window:]

        return frame

    def date_range(
        self,
        index: pd.Index,
    ) -> Tuple[Optional[pd.Timestamp], Optional[pd.Timestamp]]:
        """
        Resolve the configured date range against a timestamp index.

        A lookback period counts back from ``end`` when it is set and from
        the last timestamp in the data otherwise.

        Returns:
            (start, end) day bounds, either of which may be None
        """
        cfg = self.config
        tz = getattr(index, 'tz', None)
        start = _day(parse_date(cfg.start), tz) if cfg.start is not None else None
        end = _day(parse_date(cfg.end), tz) if cfg.end is not None else None
        if cfg.period is not None and len(index):
            anchor = end if end is not None else index.max().normalize()
            start = anchor - pd.Timedelta(days=PERIOD_DAYS[cfg.period])
        return start, end

    def _restrict_dates(self, prices: pd.DataFrame) -> pd.DataFrame:
        """Keep the rows inside the configured date range (both ends inclusive)."""
        cfg = self.config
        if cfg.period is None and cfg.start is None and cfg.end is None:
            return prices
        if not isinstance(prices.index, pd.DatetimeIndex):
            raise InvalidConfigurationError(
                ["a date range needs series indexed by timestamps"]
            )

        start, end = self.date_range(prices.index)
        days = prices.index.normalize()
        mask = np.ones(len(prices), dtype=bool)
        if start is not None:
            mask &= days >= start
        if end is not None:
            mask &= days <= end

        restricted = prices[mask]
        logger.info(
            f"Date range {start.date() if start is not None else '...'} ~ "
            f"{end.date() if end is not None else '...'}: "
            f"{len(restricted)} of {len(prices)} rows"
        )
        return restricted

    def _to_returns(self, prices: pd.DataFrame) -> pd.DataFrame:
        """
        Transform prices to returns.

        Non-positive prices give undefined log returns; they become NaN and
        are excluded pairwise like any other gap.
        """
        method = self.config.returns
        if method == "none":
            return prices

        prev = prices.shift(1)
        if method == "log":
            with np.errstate(divide='ignore', invalid='ignore'):
                returns = np.log(prices / prev)
        else:
            returns = prices / prev - 1

        returns = returns.replace([np.inf, -np.inf], np.nan)
        return returns.iloc[1:]

    def _validate_series(self, symbol: str, series: pd.Series) -> None:
        """
        Raises:
            DataInsufficientError: If the series is shorter than the minimum
        """
        count = int(series.notna().sum())
        if count < self.config.min_series_length:
            raise DataInsufficientError(
                self.config.min_series_length, count, f"series {symbol}"
            )

    def _pair_strength(
        self,
        data: np.ndarray,
        valid: np.ndarray,
        i: int,
        j: int,
        pair: Pair,
    ) -> float:
        """
        Relationship value on the pairwise-complete observations.

        Raises:
            DataInsufficientError: If the overlap is too short or the
                relationship is undefined
        """
        mask = valid[:, i] & valid[:, j]
        n = int(mask.sum())
        if n < self.config.min_overlap_observations:
            raise DataInsufficientError(
                self.config.min_overlap_observations, n, f"pair {describe_pair(pair)}",
                "overlapping observations"
            )
        return self.function(data[mask, i], data[mask, j])
