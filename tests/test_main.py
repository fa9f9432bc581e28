"""
Tests for the Command-Line Interface and Timing Utilities

Test Categories:
1. Single runs for every method and algorithm
2. Benchmark mode
3. Timer and BenchmarkResult

Run with: pytest tests/test_main.py -v
"""

import time

import pytest
import numpy as np

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from metricsearch.data_models import Point, PointType
from metricsearch.geometry.distance import CountingDistance
from metricsearch.main import main
from metricsearch.timing import BenchmarkResult, Timer, compute_speedup


class TestSingleRun:
    """Tests for running one algorithm from the command line."""

    @pytest.mark.parametrize("method", ["aesa", "laesa", "mtree"])
    @pytest.mark.parametrize("algorithm", ["insert", "knn", "range"])
    def test_every_combination(self, method, algorithm, capsys):
        """Test that each combination runs and passes the brute-force check."""
        code = main(["--method", method, "--algorithm", algorithm,
                     "--count", "25", "--seed", "3", "-q"])
        out = capsys.readouterr().out
        assert code == 0
        assert "Run Summary:" in out
        assert "FAILED" not in out

    def test_show_steps(self, capsys):
        main(["--method", "mtree", "--algorithm", "knn", "--count", "10",
              "--capacity", "3", "--show-steps", "-q"])
        out = capsys.readouterr().out
        assert "Steps:" in out
        assert "start" in out
        assert "M-Tree Statistics:" in out
        assert "Structural violations: 0" in out

    def test_custom_query(self, capsys):
        main(["--method", "aesa", "--count", "10", "--query-x", "1.5", "--query-y", "2.5"])
        out = capsys.readouterr().out
        assert "Query: (1.50, 2.50)" in out
        assert "METRIC SPACE SEARCH" in out

    def test_invalid_method(self, capsys):
        with pytest.raises(SystemExit):
            main(["--method", "kdtree"])


class TestBenchmarkMode:
    """Tests for the distance-computation benchmark."""

    def test_benchmark_runs(self, capsys):
        code = main(["--benchmark", "--sizes", "20,40", "--trials", "2", "-q"])
        out = capsys.readouterr().out
        assert code == 0
        assert "BENCHMARK SUMMARY" in out


class TestTiming:
    """Tests for timing helpers."""

    def test_timer_measures(self):
        with Timer() as t:
            time.sleep(0.01)
        assert t.elapsed >= 0.005
        assert np.isclose(t.elapsed_ms, t.elapsed * 1000)

    def test_timer_counts_distances(self):
        """Test that only evaluations inside the block are counted."""
        distance = CountingDistance()
        a, b = Point(0, PointType.OBJECT, 0.0, 0.0), Point(1, PointType.OBJECT, 3.0, 4.0)
        distance(a, b)
        with Timer(distance=distance) as t:
            assert distance(a, b) == 5.0
            distance(b, a)
        assert t.distance_calls == 2
        assert distance.calls == 3

    def test_compute_speedup(self):
        assert compute_speedup(100.0, 25.0) == 4.0
        assert compute_speedup(10.0, 0.0) == float('inf')

    def test_benchmark_result(self):
        """Test aggregation of timings and distance counts."""
        result = BenchmarkResult("aesa")
        result.add_trial(2.0, 10)
        result.add_trial(4.0, 20)
        assert result.num_trials == 2
        assert result.mean_ms == 3.0
        assert result.mean_distances == 15.0
        assert np.isclose(result.std_ms, np.sqrt(2.0))
        data = result.to_dict()
        assert data['name'] == "aesa"
        assert data['mean_distances'] == 15.0
        assert "aesa" in result.summary()

    def test_empty_result(self):
        result = BenchmarkResult("empty")
        assert result.mean_ms == 0.0
        assert result.std_ms == 0.0
        assert result.mean_distances == 0.0
