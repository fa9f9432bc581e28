"""
Tests for Distance Functions and the Distance Cache

Test Categories:
1. Euclidean distance and call counting
2. Brute-force baselines
3. Cache symmetry and idempotence
4. Initialization in all-pairs and pivot mode
5. Cloning

Run with: pytest tests/test_distance_cache.py -v
"""

import pytest
import numpy as np

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from metricsearch.data_models import Point, PointType
from metricsearch.geometry.distance import (
    CountingDistance,
    brute_force_knn,
    brute_force_range,
    euclidean_distance
)
from metricsearch.geometry.distance_cache import UNKNOWN_DISTANCE, DistanceCache
from metricsearch.synthetic_data import generate_point_store, store_from_coordinates


def make_point(pid, x, y):
    return Point(pid, PointType.OBJECT, float(x), float(y))


class TestDistanceFunction:
    """Tests for the metric and its counting wrapper."""

    def test_euclidean(self):
        """Test the 3-4-5 triangle."""
        assert np.isclose(euclidean_distance(make_point(0, 0, 0), make_point(1, 3, 4)), 5.0)

    def test_symmetry_and_identity(self):
        """Test d(a, b) == d(b, a) and d(a, a) == 0."""
        a, b = make_point(0, 1.5, -2.0), make_point(1, -3.0, 7.25)
        assert euclidean_distance(a, b) == euclidean_distance(b, a)
        assert euclidean_distance(a, a) == 0.0

    def test_counting_distance(self):
        """Test that every call is counted and reset clears the count."""
        dist = CountingDistance()
        a, b = make_point(0, 0, 0), make_point(1, 1, 1)
        dist(a, b)
        dist(b, a)
        assert dist.calls == 2
        dist.reset()
        assert dist.calls == 0


class TestBruteForce:
    """Tests for the brute-force baselines."""

    def test_knn_order(self):
        """Test that kNN returns the k closest sorted by distance."""
        points = [make_point(i, x, 0) for i, x in enumerate([5.0, 1.0, 3.0, 2.0])]
        result = brute_force_knn(points, make_point(9, 0, 0), 2)
        assert [p.id for p, _ in result] == [1, 3]
        assert np.allclose([d for _, d in result], [1.0, 2.0])

    def test_knn_invalid_k(self):
        """Test that k < 1 raises ValueError."""
        with pytest.raises(ValueError):
            brute_force_knn([make_point(0, 0, 0)], make_point(1, 1, 1), 0)

    def test_range_inclusive(self):
        """Test that points exactly on the radius are included."""
        points = [make_point(0, 3, 4), make_point(1, 6, 8)]
        result = brute_force_range(points, make_point(9, 0, 0), 5.0)
        assert [p.id for p, _ in result] == [0]

    def test_custom_metric(self):
        """Test that a non-Euclidean metric is honoured."""
        def manhattan(p1, p2):
            return abs(p1.x - p2.x) + abs(p1.y - p2.y)

        points = [make_point(0, 3, 4), make_point(1, 5, 0)]
        result = brute_force_knn(points, make_point(9, 0, 0), 1, manhattan)
        assert result[0][0].id == 1
        assert np.isclose(result[0][1], 5.0)


class TestDistanceCache:
    """Tests for request/lookup semantics."""

    def test_request_symmetric(self):
        """Test that request(a, b) == request(b, a)."""
        cache = DistanceCache()
        a, b = make_point(0, 0, 0), make_point(1, 3, 4)
        assert cache.request(a, b) == cache.request(b, a)
        assert len(cache) == 1

    def test_request_idempotent(self):
        """Test that a cached pair is not recomputed."""
        dist = CountingDistance()
        cache = DistanceCache(dist)
        a, b = make_point(0, 0, 0), make_point(1, 3, 4)
        first = cache.request(a, b)
        second = cache.request(b, a)
        assert first == second
        assert dist.calls == 1

    def test_add_distance_recomputes(self):
        """Test that add_distance always evaluates the metric."""
        dist = CountingDistance()
        cache = DistanceCache(dist)
        a, b = make_point(0, 0, 0), make_point(1, 3, 4)
        cache.add_distance(a, b)
        cache.add_distance(a, b)
        assert dist.calls == 2
        assert len(cache) == 1

    def test_lookup_unknown(self):
        """Test that an unknown pair yields the sentinel without computing."""
        dist = CountingDistance()
        cache = DistanceCache(dist)
        assert cache.lookup(0, 1) == UNKNOWN_DISTANCE == -1.0
        assert not cache.has_distance(0, 1)
        assert dist.calls == 0

    def test_distances_for(self):
        """Test collecting every cached distance of one point."""
        cache = DistanceCache()
        a, b, c = make_point(0, 0, 0), make_point(1, 3, 4), make_point(2, 0, 1)
        cache.request(a, b)
        cache.request(c, a)
        assert cache.distances_for(0) == {1: 5.0, 2: 1.0}


class TestCacheInitialization:
    """Tests for populating the cache from a store."""

    def test_all_pairs_without_pivots(self):
        """Test that AESA mode caches every data pair and never the query."""
        store = generate_point_store(count=10, seed=3)
        cache = DistanceCache()
        cache.initialize(store)
        query = store.get_query()

        assert not cache.pivot_mode
        assert len(cache) == 10 * 9 // 2
        for point in store.get_data_points():
            assert not cache.has_distance(point.id, query.id)

    def test_pivot_rows_with_pivots(self):
        """Test that LAESA mode caches only pivot-to-point distances."""
        store = store_from_coordinates(
            [(0, 0), (3, 0), (0, 4), (3, 4), (1, 1)],
            query=(2, 2),
            pivot_indices=[0, 3]
        )
        cache = DistanceCache()
        cache.initialize(store)

        assert cache.pivot_mode
        # 2 pivots × 4 other points, pivot pair counted once
        assert len(cache) == 2 * 4 - 1
        assert np.isclose(cache.lookup(0, 3), 5.0)
        assert cache.lookup(1, 2) == UNKNOWN_DISTANCE

    def test_initialize_clears_previous(self):
        """Test that re-initialization drops stale entries."""
        cache = DistanceCache()
        cache.request(make_point(100, 0, 0), make_point(101, 1, 1))
        cache.initialize(store_from_coordinates([(0, 0), (1, 0)]))
        assert not cache.has_distance(100, 101)
        assert len(cache) == 1

    def test_clone_independent(self):
        """Test that a clone does not share entries with the source."""
        cache = DistanceCache()
        cache.initialize(store_from_coordinates([(0, 0), (1, 0)]))
        copy = cache.clone()
        copy.request(make_point(5, 0, 0), make_point(6, 2, 0))
        assert len(copy) == 2
        assert len(cache) == 1
        assert copy.distance_function is cache.distance_function
