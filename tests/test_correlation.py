"""Tests for relationship estimation module."""

import pytest
import pandas as pd
import numpy as np

from centrality_engine.core.config import EstimatorConfig
from centrality_engine.core.exceptions import (
    ComputationError,
    DataInsufficientError,
    InvalidConfigurationError,
)
from centrality_engine.data.instrument import Instrument
from centrality_engine.analysis.correlation import (
    PearsonRelationship,
    RelationshipEstimator,
    RelationshipFunction,
    SpearmanRelationship,
    get_relationship_function,
    top_pairs,
)


def _series(values, start="2024-01-01"):
    return pd.Series(values, index=pd.date_range(start, periods=len(values), freq="B"))


class TestRelationshipFunctions:
    """Tests for the relationship functions."""

    def test_pearson_perfect(self):
        x = np.arange(10, dtype=float)
        assert PearsonRelationship()(x, 2 * x + 1) == pytest.approx(1.0)
        assert PearsonRelationship()(x, -x) == pytest.approx(-1.0)

    def test_pearson_matches_numpy(self):
        np.random.seed(42)
        x = np.random.randn(50)
        y = 0.5 * x + np.random.randn(50)

        assert PearsonRelationship()(x, y) == pytest.approx(np.corrcoef(x, y)[0, 1])

    def test_pearson_zero_variance(self):
        x = np.ones(10)
        with pytest.raises(DataInsufficientError):
            PearsonRelationship()(x, np.arange(10, dtype=float))

    def test_spearman_monotone(self):
        x = np.arange(1, 21, dtype=float)
        assert SpearmanRelationship()(x, x ** 3) == pytest.approx(1.0)
        assert PearsonRelationship()(x, x ** 3) < 1.0

    def test_range_violation_raises(self):
        class Broken(RelationshipFunction):
            name = "broken"

            def compute(self, x, y):
                return 1.5

        with pytest.raises(ComputationError):
            Broken()(np.ones(3), np.ones(3))

    def test_tiny_overshoot_clipped(self):
        class Overshoot(RelationshipFunction):
            name = "overshoot"

            def compute(self, x, y):
                return 1.0 + 1e-12

        assert Overshoot()(np.ones(3), np.ones(3)) == 1.0

    def test_lookup(self):
        assert isinstance(get_relationship_function("spearman"), SpearmanRelationship)
        with pytest.raises(InvalidConfigurationError):
            get_relationship_function("kendall")


class TestRelationshipEstimator:
    """Tests for RelationshipEstimator class."""

    @pytest.fixture
    def estimator(self):
        return RelationshipEstimator(EstimatorConfig(
            returns="log", min_series_length=20, min_overlap_observations=20
        ))

    def test_sector_structure(self, estimator, sample_instruments):
        """Same-sector pairs correlate strongly, unrelated pairs weakly."""
        matrix = estimator.estimate(list(sample_instruments.values()))

        assert matrix.method == "pearson"
        assert len(matrix.symbols) == 9
        assert len(matrix) == 36
        assert matrix.get("TCS.NS", "INFY.NS") > 0.6
        assert abs(matrix.get("TCS.NS", "GOLD")) < 0.3
        assert matrix.missing_pairs == {}
        assert matrix.rejected == {}

    def test_symmetric_lookup(self, estimator, sample_instruments):
        matrix = estimator.estimate(list(sample_instruments.values()))
        assert matrix.get("INFY.NS", "TCS.NS") == matrix.get("TCS.NS", "INFY.NS")

    def test_matches_pandas_corr(self, estimator, sample_instruments, sample_returns):
        """Log returns of the sample prices reproduce the generating returns."""
        matrix = estimator.estimate(list(sample_instruments.values()))
        expected = sample_returns.corr()

        assert matrix.get("HDFCBANK.NS", "SBIN.NS") == pytest.approx(
            expected.loc["HDFCBANK.NS", "SBIN.NS"], abs=1e-9
        )

    def test_short_series_rejected(self, estimator, sample_instruments):
        """A series below min_series_length is rejected, not a node with zeros."""
        instruments = list(sample_instruments.values())
        short = sample_instruments["GOLD"].series.iloc[:10]
        instruments[-1] = Instrument("GOLD", short)

        matrix = estimator.estimate(instruments)

        assert "GOLD" not in matrix.symbols
        assert "GOLD" in matrix.rejected
        assert all("GOLD" not in pair for pair in matrix.values)

    def test_pairwise_complete_observations(self):
        """Gaps in one series do not shorten unrelated pairs."""
        np.random.seed(0)
        base = np.random.randn(60).cumsum() + 100
        a = _series(base)
        b = _series(base + np.random.randn(60) * 0.1)
        c = _series(base + np.random.randn(60) * 0.1)
        c.iloc[5:40] = np.nan

        est = RelationshipEstimator(EstimatorConfig(
            returns="none", min_series_length=10, min_overlap_observations=10
        ))
        matrix = est.estimate([Instrument("A", a), Instrument("B", b), Instrument("C", c)])

        mask = c.notna()
        assert matrix.get("A", "C") == pytest.approx(np.corrcoef(a[mask], c[mask])[0, 1])
        assert matrix.get("A", "B") == pytest.approx(np.corrcoef(a, b)[0, 1])

    def test_insufficient_overlap_is_missing_not_zero(self):
        """Disjoint series give an undefined pair, never a zero."""
        np.random.seed(1)
        a = _series(np.random.randn(30).cumsum() + 50, start="2024-01-01")
        b = _series(np.random.randn(30).cumsum() + 50, start="2024-06-03")

        est = RelationshipEstimator(EstimatorConfig(
            returns="none", min_series_length=10, min_overlap_observations=10
        ))
        matrix = est.estimate([Instrument("A", a), Instrument("B", b)])

        assert matrix.get("A", "B") is None
        assert ("A", "B") in matrix.missing_pairs
        assert np.isnan(matrix.to_frame().loc["A", "B"])

    def test_zero_variance_pair_missing(self):
        flat = _series([5.0] * 30)
        moving = _series(np.linspace(1, 2, 30))

        est = RelationshipEstimator(EstimatorConfig(
            returns="none", min_series_length=10, min_overlap_observations=10
        ))
        matrix = est.estimate([Instrument("F", flat), Instrument("M", moving)])

        assert len(matrix) == 0
        assert ("F", "M") in matrix.missing_pairs

    def test_simple_vs_log_returns(self, sample_instruments):
        instruments = list(sample_instruments.values())[:3]
        log = RelationshipEstimator(EstimatorConfig(returns="log")).estimate(instruments)
        simple = RelationshipEstimator(EstimatorConfig(returns="simple")).estimate(instruments)

        a, b = instruments[0].symbol, instruments[1].symbol
        assert log.get(a, b) == pytest.approx(simple.get(a, b), abs=0.01)

    def test_window_uses_latest_rows(self, sample_instruments):
        instruments = list(sample_instruments.values())[:2]
        est = RelationshipEstimator(EstimatorConfig(window=60))

        frame = est.align(instruments)

        assert len(frame) == 60
        assert frame.index[-1] == instruments[0].series.index[-1]
        assert est.estimate(instruments).observations == 60

    def test_duplicate_timestamps_keep_last(self):
        idx = pd.to_datetime(["2024-01-01", "2024-01-02", "2024-01-02", "2024-01-03"])
        series = pd.Series([1.0, 2.0, 3.0, 4.0], index=idx)

        frame = RelationshipEstimator(EstimatorConfig(returns="none")).align(
            [Instrument("X", series)]
        )

        assert list(frame["X"]) == [1.0, 3.0, 4.0]

    def test_order_independent_values(self, estimator, sample_instruments):
        instruments = list(sample_instruments.values())
        forward = estimator.estimate(instruments)
        backward = estimator.estimate(instruments[::-1])

        for a, b, value in forward.pairs():
            assert backward.get(a, b) == pytest.approx(value, abs=1e-12)


    def test_series_lengths_include_rejected(self, estimator, sample_instruments):
        instruments = dict(sample_instruments)
        instruments["NEW"] = Instrument("NEW", sample_instruments["GOLD"].series.iloc[-5:])

        matrix = estimator.estimate(list(instruments.values()))

        assert "NEW" in matrix.rejected
        assert matrix.series_lengths["NEW"] == 4
        assert matrix.series_lengths["TCS.NS"] == 252
        assert matrix.period[1] == sample_instruments["TCS.NS"].series.index[-1]


class TestDateRange:
    """Tests for period and start/end selection."""

    @pytest.fixture
    def daily(self):
        idx = pd.date_range("2024-01-01", periods=100, freq="D")
        return [Instrument("X", pd.Series(np.arange(1.0, 101.0), index=idx))]

    def _frame(self, instruments, **options):
        return RelationshipEstimator(EstimatorConfig(returns="none", **options)).align(instruments)

    def test_period_counts_back_from_last_date(self, daily):
        frame = self._frame(daily, period="1M")

        assert frame.index[0] == pd.Timestamp("2024-03-10")
        assert frame.index[-1] == pd.Timestamp("2024-04-09")
        assert len(frame) == 31

    def test_period_counts_back_from_end(self, daily):
        frame = self._frame(daily, period="1M", end="2024-02-29")

        assert frame.index[0] == pd.Timestamp("2024-01-30")
        assert frame.index[-1] == pd.Timestamp("2024-02-29")

    def test_custom_start_and_end_inclusive(self, daily):
        frame = self._frame(daily, start="2024-02-01", end="2024-02-29")

        assert len(frame) == 29
        assert frame["X"].iloc[0] == 32.0

    def test_open_ended_start(self, daily):
        frame = self._frame(daily, start="2024-04-01")
        assert len(frame) == 9

    def test_range_applied_before_returns(self, daily):
        frame = RelationshipEstimator(
            EstimatorConfig(returns="simple", start="2024-02-01", end="2024-02-29")
        ).align(daily)

        # First price in range has no previous row to form a return
        assert len(frame) == 28

    def test_window_applies_inside_range(self, daily):
        frame = self._frame(daily, start="2024-02-01", end="2024-02-29", window=10)

        assert len(frame) == 10
        assert frame.index[-1] == pd.Timestamp("2024-02-29")

    def test_needs_timestamp_index(self):
        series = pd.Series(np.arange(1.0, 31.0))

        with pytest.raises(InvalidConfigurationError):
            self._frame([Instrument("X", series)], period="1M")


class TestMatrixHelpers:
    """Tests for RelationshipMatrix helpers."""

    def test_to_frame(self, make_matrix):
        matrix = make_matrix({("A", "B"): 0.8}, symbols=["A", "B", "C"])
        frame = matrix.to_frame()

        assert frame.loc["A", "B"] == frame.loc["B", "A"] == 0.8
        assert frame.loc["C", "C"] == 1.0
        assert np.isnan(frame.loc["A", "C"])

    def test_top_pairs(self, make_matrix):
        matrix = make_matrix({("A", "B"): 0.4, ("A", "C"): -0.9, ("B", "C"): 0.6})
        pairs = top_pairs(matrix, 2)

        assert pairs == [("A", "C", -0.9), ("B", "C", 0.6)]
