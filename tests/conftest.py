"""Pytest configuration and fixtures."""

import pytest
import pandas as pd
import numpy as np

from centrality_engine.core.config import EngineConfig, CentralityConfig, ThresholdConfig
from centrality_engine.data.instrument import Instrument
from centrality_engine.analysis.correlation import RelationshipMatrix
from centrality_engine.analysis.graph import GraphBuilder
from centrality_engine.analysis.centrality import CentralityCalculator
from centrality_engine.engine import AnalysisResult


SECTOR_MAP = {
    "TCS.NS": "IT",
    "INFY.NS": "IT",
    "WIPRO.NS": "IT",
    "HDFCBANK.NS": "BANK",
    "ICICIBANK.NS": "BANK",
    "SBIN.NS": "BANK",
    "RELIANCE.NS": "ENERGY",
    "ONGC.NS": "ENERGY",
}


@pytest.fixture
def sector_map():
    return dict(SECTOR_MAP)


@pytest.fixture
def sample_returns():
    """Daily returns with strong sector factors and one untagged asset."""
    np.random.seed(42)
    dates = pd.date_range("2024-01-01", periods=252, freq="B")
    n = len(dates)

    market = np.random.randn(n)
    factors = {s: np.random.randn(n) for s in ("IT", "BANK", "ENERGY")}

    data = {}
    for symbol, sector in SECTOR_MAP.items():
        data[symbol] = 0.3 * market + factors[sector] + 0.5 * np.random.randn(n)
    data["GOLD"] = np.random.randn(n)

    return pd.DataFrame(data, index=dates) * 0.01


@pytest.fixture
def sample_prices(sample_returns):
    """Price panel built from sample_returns."""
    prices = 100 * np.exp(sample_returns.cumsum())
    first = pd.DataFrame(
        100.0,
        index=[sample_returns.index[0] - pd.tseries.offsets.BDay(1)],
        columns=sample_returns.columns,
    )
    return pd.concat([first, prices])


@pytest.fixture
def sample_instruments(sample_prices):
    """Instruments for sample_prices; GOLD has no sector tag."""
    return {
        symbol: Instrument(symbol, sample_prices[symbol], sector=SECTOR_MAP.get(symbol))
        for symbol in sample_prices.columns
    }


@pytest.fixture
def sample_config_dict():
    """Sample configuration dictionary."""
    return {
        "estimator": {
            "method": "pearson",
            "returns": "log",
            "min_series_length": 20,
            "min_overlap_observations": 20,
        },
        "thresholds": {
            "min_absolute_strength": 0.5,
        },
        "centrality": {
            "normalize_betweenness": True,
            "distance_transform": "inverse",
        },
        "sector": {
            "edge_aggregation": "mean",
        },
        "sectors": dict(SECTOR_MAP),
        "sector_labels": {"IT": "Information Technology", "BANK": "Banking"},
    }


@pytest.fixture
def temp_config_file(tmp_path, sample_config_dict):
    """Create temporary config file."""
    import yaml

    config_path = tmp_path / "config.yaml"
    with open(config_path, "w") as f:
        yaml.dump(sample_config_dict, f)

    return config_path


@pytest.fixture
def make_matrix():
    """Build a RelationshipMatrix from {(a, b): strength}."""
    def _make(values, symbols=None, missing=None, lengths=None):
        if symbols is None:
            symbols = []
            for a, b in values:
                for s in (a, b):
                    if s not in symbols:
                        symbols.append(s)
        return RelationshipMatrix(
            symbols=tuple(symbols),
            values=dict(values),
            method="pearson",
            observations=100,
            missing_pairs=dict(missing or {}),
            series_lengths=dict(lengths) if lengths is not None else {s: 100 for s in symbols},
        )
    return _make


@pytest.fixture
def make_instruments():
    """Placeholder instruments (series content unused by the builder)."""
    def _make(symbols, sectors=None):
        sectors = sectors or {}
        series = pd.Series([1.0, 2.0, 3.0])
        return [Instrument(s, series, sector=sectors.get(s)) for s in symbols]
    return _make


@pytest.fixture
def make_result(make_matrix, make_instruments):
    """Scored AnalysisResult from relationship values, without the facade."""
    def _make(values, symbols=None, sectors=None, threshold=0.5, normalize=False):
        matrix = make_matrix(values, symbols)
        instruments = make_instruments(list(matrix.symbols), sectors)
        graph = GraphBuilder(ThresholdConfig(min_absolute_strength=threshold)).build(
            instruments, matrix
        )
        scored = CentralityCalculator(
            CentralityConfig(normalize_betweenness=normalize, distance_transform="unit")
        ).compute(graph)
        return AnalysisResult(
            mode="stock",
            snapshot_id="0" * 64,
            graph=scored,
            relationships=matrix,
        )
    return _make


@pytest.fixture
def engine_config(sample_config_dict):
    from centrality_engine.core.config import ConfigLoader
    return ConfigLoader.from_dict(sample_config_dict)


@pytest.fixture
def default_config():
    return EngineConfig()
