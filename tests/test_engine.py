"""Tests for the network analysis facade."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest
import pandas as pd

from centrality_engine.cache import ResultCache
from centrality_engine.core.config import EngineConfig
from centrality_engine.core.exceptions import (
    ComputationTimeoutError,
    EmptyGraphError,
    InvalidConfigurationError,
    StateTransitionError,
)
from centrality_engine.data.instrument import Instrument
from centrality_engine.engine import (
    AnalysisMode,
    AnalysisResult,
    AnalysisRun,
    AnalysisState,
    NetworkAnalysisFacade,
    snapshot_key,
)

S = AnalysisState


@pytest.fixture
def facade():
    with NetworkAnalysisFacade() as f:
        yield f


class TestAnalyze:
    """Tests for NetworkAnalysisFacade.analyze."""

    def test_stock_mode(self, facade, sample_instruments, engine_config):
        result = facade.analyze(sample_instruments, "stock", engine_config)

        assert isinstance(result, AnalysisResult)
        assert result.mode == "stock"
        assert [n.id for n in result.nodes] == list(sample_instruments)
        assert len(result.snapshot_id) == 64
        assert result.node("TCS.NS").label == "TCS"
        assert result.node("GOLD").degree == 0
        assert all(n.betweenness >= 0 for n in result.nodes)

    def test_stock_mode_structure(self, facade, sample_instruments, engine_config):
        """Same-sector instruments are linked, unrelated ones are not."""
        result = facade.analyze(sample_instruments, "stock", engine_config)
        keys = {e.key for e in result.edges}

        assert ("INFY.NS", "TCS.NS") in keys
        assert all("GOLD" not in k for k in keys)

    def test_sector_mode(self, facade, sample_instruments, engine_config):
        result = facade.analyze(sample_instruments, "sector", engine_config)

        assert result.mode == "sector"
        assert result.graph.node_ids == ["IT", "BANK", "ENERGY"]
        assert result.node("IT").label == "Information Technology"
        assert result.node("IT").members == ("INFY.NS", "TCS.NS", "WIPRO.NS")

    def test_accepts_series_mapping(self, facade, sample_prices, sector_map):
        series = {s: sample_prices[s] for s in sample_prices.columns}
        result = facade.analyze(series, AnalysisMode.STOCK, sectors=sector_map)

        assert result.node("SBIN.NS").sector == "BANK"
        assert result.node("GOLD").sector is None

    def test_accepts_instrument_list(self, facade, sample_instruments):
        result = facade.analyze(list(sample_instruments.values()), "stock")
        assert len(result.nodes) == len(sample_instruments)

    def test_ranked(self, facade, sample_instruments, engine_config):
        result = facade.analyze(sample_instruments, "stock", engine_config)
        ranked = result.ranked()

        keys = [(-n.betweenness, -n.degree, n.id) for n in ranked]
        assert keys == sorted(keys)
        assert len(result.ranked(3)) == 3

    def test_to_frame(self, facade, sample_instruments):
        frame = facade.analyze(sample_instruments, "stock").to_frame()

        assert list(frame.columns) == ["id", "label", "degree", "betweenness", "sector"]
        assert len(frame) == len(sample_instruments)

    def test_rejected_instrument_reported(self, facade, sample_instruments):
        instruments = dict(sample_instruments)
        instruments["NEW"] = Instrument("NEW", sample_instruments["GOLD"].series.iloc[-5:])

        result = facade.analyze(instruments, "stock")

        assert "NEW" in result.rejected_instruments
        assert "NEW" not in result.graph


class TestCaching:
    """Tests for idempotence and cache behavior."""

    def test_repeated_request_served_from_cache(self, facade, sample_instruments, engine_config):
        first = facade.analyze(sample_instruments, "stock", engine_config)
        second = facade.analyze(sample_instruments, "stock", engine_config)

        assert second is first
        assert facade.computation_count == 1

    def test_equal_content_hits_cache(self, facade, sample_instruments):
        first = facade.analyze(sample_instruments, "stock")
        copies = {
            s: Instrument(s, inst.series.copy(), sector=inst.sector)
            for s, inst in sample_instruments.items()
        }
        second = facade.analyze(copies, "stock")

        assert second is first
        assert facade.computation_count == 1

    def test_mode_and_config_change_key(self, facade, sample_instruments, engine_config):
        facade.analyze(sample_instruments, "stock", engine_config)
        facade.analyze(sample_instruments, "sector", engine_config)

        other = EngineConfig(sectors=dict(engine_config.sectors))
        other.thresholds.min_absolute_strength = 0.7
        facade.analyze(sample_instruments, "stock", other)

        assert facade.computation_count == 3

    def test_output_settings_do_not_change_key(self, facade, sample_instruments):
        a = EngineConfig()
        b = EngineConfig()
        b.output.top_n = 3

        assert facade.analyze(sample_instruments, "stock", a) is \
            facade.analyze(sample_instruments, "stock", b)

    def test_data_change_changes_key(self, facade, sample_instruments):
        facade.analyze(sample_instruments, "stock")
        changed = dict(sample_instruments)
        series = changed["GOLD"].series.copy()
        series.iloc[-1] *= 1.01
        changed["GOLD"] = Instrument("GOLD", series)

        facade.analyze(changed, "stock")
        assert facade.computation_count == 2

    def test_shared_cache_across_facades(self, sample_instruments):
        cache = ResultCache()
        with NetworkAnalysisFacade(cache=cache) as a, NetworkAnalysisFacade(cache=cache) as b:
            first = a.analyze(sample_instruments, "stock")
            second = b.analyze(sample_instruments, "stock")

        assert second is first
        assert b.computation_count == 0

    def test_concurrent_identical_requests(self, sample_instruments, engine_config):
        """N simultaneous identical requests run the pipeline once."""
        gate = threading.Event()

        def listener(snapshot_id, old, new):
            if new is S.ESTIMATING:
                gate.wait(5)

        n = 8
        barrier = threading.Barrier(n)
        with NetworkAnalysisFacade(listener=listener) as facade:
            def request():
                barrier.wait(5)
                return facade.analyze(sample_instruments, "stock", engine_config)

            with ThreadPoolExecutor(max_workers=n) as pool:
                futures = [pool.submit(request) for _ in range(n)]
                while facade.cache.stats.joins < n - 1:
                    time.sleep(0.01)
                gate.set()
                results = [f.result(10) for f in futures]

            assert facade.computation_count == 1
            assert all(r is results[0] for r in results)


    def test_concurrent_requests_all_reach_ready(self, sample_instruments, engine_config):
        """Callers that join an in-flight run also see IDLE -> READY."""
        gate = threading.Event()
        ready = []
        lock = threading.Lock()

        def listener(snapshot_id, old, new):
            if new is S.ESTIMATING:
                gate.wait(5)
            if new is S.READY:
                with lock:
                    ready.append(old)

        n = 4
        barrier = threading.Barrier(n)
        with NetworkAnalysisFacade(listener=listener) as facade:
            def request():
                barrier.wait(5)
                return facade.analyze(sample_instruments, "stock", engine_config)

            with ThreadPoolExecutor(max_workers=n) as pool:
                futures = [pool.submit(request) for _ in range(n)]
                while facade.cache.stats.joins < n - 1:
                    time.sleep(0.01)
                gate.set()
                for f in futures:
                    f.result(10)

        assert len(ready) == n
        assert sorted(ready) == sorted([S.SCORING] + [S.IDLE] * (n - 1))


class TestFailures:
    """Tests for validation, failure and timeout handling."""

    def test_invalid_mode(self, facade, sample_instruments):
        with pytest.raises(InvalidConfigurationError):
            facade.analyze(sample_instruments, "portfolio")
        assert facade.computation_count == 0

    def test_invalid_config_before_compute(self, facade, sample_instruments):
        config = EngineConfig()
        config.thresholds.min_absolute_strength = 0

        with pytest.raises(InvalidConfigurationError):
            facade.analyze(sample_instruments, "stock", config)
        assert facade.computation_count == 0

    def test_mantegna_with_summed_sectors_fails_fast(self, facade, sample_instruments):
        config = EngineConfig(sectors={"TCS.NS": "IT", "SBIN.NS": "BANK"})
        config.sector.edge_aggregation = "sum"
        config.centrality.distance_transform = "mantegna"

        with pytest.raises(InvalidConfigurationError):
            facade.analyze(sample_instruments, "sector", config)
        assert facade.computation_count == 0

    def test_invalid_timeout(self, facade, sample_instruments):
        with pytest.raises(InvalidConfigurationError):
            facade.analyze(sample_instruments, "stock", timeout=0)

    def test_no_instruments(self, facade):
        with pytest.raises(EmptyGraphError):
            facade.analyze({}, "stock")

    def test_sector_mode_without_tags(self, facade, sample_prices):
        series = {s: sample_prices[s] for s in sample_prices.columns}

        with pytest.raises(EmptyGraphError):
            facade.analyze(series, "sector")
        assert len(facade.cache) == 0

        # Retried from scratch, not served a cached failure
        with pytest.raises(EmptyGraphError):
            facade.analyze(series, "sector")
        assert facade.computation_count == 2

    def test_all_series_too_short(self, facade):
        idx = pd.date_range("2024-01-01", periods=5, freq="B")
        instruments = {s: pd.Series(range(1, 6), index=idx, dtype=float) for s in "ABC"}

        with pytest.raises(EmptyGraphError):
            facade.analyze(instruments, "stock")

    def test_timeout(self, sample_instruments):
        gate = threading.Event()
        blocked = []

        def listener(snapshot_id, old, new):
            if new is S.ESTIMATING and not blocked:
                blocked.append(snapshot_id)
                gate.wait(5)

        with NetworkAnalysisFacade(listener=listener) as facade:
            with pytest.raises(ComputationTimeoutError):
                facade.analyze(sample_instruments, "stock", timeout=0.2)

            key = blocked[0]
            assert key not in facade.cache
            assert not facade.cache.in_flight(key)

            gate.set()
            result = facade.analyze(sample_instruments, "stock")

        assert result.snapshot_id == key
        assert facade.computation_count == 2


class TestStateMachine:
    """Tests for the analysis lifecycle."""

    def _record(self):
        seen = []
        return seen, lambda sid, old, new: seen.append((old, new))

    def test_stock_sequence(self, sample_instruments):
        seen, listener = self._record()
        with NetworkAnalysisFacade(listener=listener) as facade:
            facade.analyze(sample_instruments, "stock")

        assert [new for _, new in seen] == [S.ESTIMATING, S.BUILDING, S.SCORING, S.READY]
        assert seen[0][0] is S.IDLE

    def test_sector_sequence(self, sample_instruments):
        seen, listener = self._record()
        with NetworkAnalysisFacade(listener=listener) as facade:
            facade.analyze(sample_instruments, "sector")

        assert [new for _, new in seen] == [
            S.ESTIMATING, S.BUILDING, S.AGGREGATING, S.SCORING, S.READY
        ]

    def test_cache_hit_goes_straight_to_ready(self, sample_instruments):
        seen, listener = self._record()
        with NetworkAnalysisFacade(listener=listener) as facade:
            facade.analyze(sample_instruments, "stock")
            seen.clear()
            facade.analyze(sample_instruments, "stock")

        assert seen == [(S.IDLE, S.READY)]

    def test_failure_sequence(self, sample_prices):
        seen, listener = self._record()
        series = {s: sample_prices[s] for s in sample_prices.columns}
        with NetworkAnalysisFacade(listener=listener) as facade:
            with pytest.raises(EmptyGraphError):
                facade.analyze(series, "sector")

        assert seen[-1] == (S.AGGREGATING, S.FAILED)

    def test_illegal_transition(self):
        run = AnalysisRun("0" * 64, AnalysisMode.STOCK)
        with pytest.raises(StateTransitionError):
            run.advance(S.SCORING)

    def test_terminal_states(self):
        run = AnalysisRun("0" * 64, AnalysisMode.STOCK)
        run.advance(S.READY)
        with pytest.raises(StateTransitionError):
            run.advance(S.ESTIMATING)

    def test_fail_records_history(self):
        run = AnalysisRun("0" * 64, AnalysisMode.SECTOR)
        run.advance(S.ESTIMATING)
        run.advance(S.BUILDING)
        run.fail(ValueError("boom"))

        assert run.history == [S.IDLE, S.ESTIMATING, S.BUILDING, S.FAILED]
        assert run.state is S.FAILED
        assert isinstance(run.error, ValueError)


class TestSnapshotKey:
    """Tests for snapshot_key."""

    def test_order_sensitive(self, sample_instruments):
        items = list(sample_instruments.values())
        config = EngineConfig()

        assert snapshot_key(items, AnalysisMode.STOCK, config) != \
            snapshot_key(items[::-1], AnalysisMode.STOCK, config)

    def test_sector_tag_in_key(self, sample_instruments):
        items = list(sample_instruments.values())
        retagged = items[:-1] + [Instrument("GOLD", items[-1].series, sector="COMMODITY")]
        config = EngineConfig()

        assert snapshot_key(items, AnalysisMode.STOCK, config) != \
            snapshot_key(retagged, AnalysisMode.STOCK, config)
