"""
Tests for the Bounded Nearest-Neighbor Collector

Test Categories:
1. Ordering and truncation
2. Bound reporting
3. Checked admission

Run with: pytest tests/test_neighbors.py -v
"""

import pytest
import numpy as np

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from metricsearch.algorithms.neighbors import NearestNeighbors
from metricsearch.data_models import Point, PointType


def pt(pid):
    return Point(pid, PointType.OBJECT, float(pid), 0.0)


class TestOrdering:
    """Tests for sorted insertion and truncation."""

    def test_sorted_ascending(self):
        """Test that items stay sorted by distance."""
        nn = NearestNeighbors(3)
        for pid, d in [(0, 3.0), (1, 1.0), (2, 2.0)]:
            nn.add(pt(pid), d)
        assert [p.id for p in nn.points()] == [1, 2, 0]
        assert nn.distances() == [1.0, 2.0, 3.0]

    def test_truncation_returns_dropped(self):
        """Test that adding beyond k drops and returns the worst point."""
        nn = NearestNeighbors(2)
        nn.add(pt(0), 1.0)
        nn.add(pt(1), 2.0)
        dropped = nn.add(pt(2), 0.5)
        assert dropped.id == 1
        assert [p.id for p in nn.points()] == [2, 0]

    def test_tie_drops_newcomer(self):
        """Test that a newcomer tied with the worst one is dropped."""
        nn = NearestNeighbors(1)
        nn.add(pt(0), 1.0)
        dropped = nn.add(pt(1), 1.0)
        assert dropped.id == 1

    def test_invalid_k(self):
        """Test that k < 1 is rejected."""
        with pytest.raises(ValueError):
            NearestNeighbors(0)


class TestBound:
    """Tests for the k-th distance bound."""

    def test_infinite_until_full(self):
        """Test that the bound is +inf until k items are held."""
        nn = NearestNeighbors(2)
        assert nn.furthest_distance == float('inf')
        nn.add(pt(0), 4.0)
        assert nn.furthest_distance == float('inf')
        assert not nn.is_full
        nn.add(pt(1), 2.0)
        assert nn.is_full
        assert np.isclose(nn.furthest_distance, 4.0)
        assert nn.furthest_point.id == 0

    def test_empty_furthest_point(self):
        assert NearestNeighbors(1).furthest_point is None


class TestAddWithCheck:
    """Tests for checked admission."""

    def test_rejects_not_better(self):
        """Test that a full collector rejects distances >= the bound."""
        nn = NearestNeighbors(1)
        assert nn.add_with_check(pt(0), 2.0)
        assert not nn.add_with_check(pt(1), 2.0)
        assert not nn.add_with_check(pt(2), 3.0)
        assert nn.add_with_check(pt(3), 1.0)
        assert [p.id for p in nn.points()] == [3]

    def test_updates_existing_id(self):
        """Test that a held point is updated, never duplicated."""
        nn = NearestNeighbors(3)
        nn.add_with_check(pt(0), 5.0)
        nn.add_with_check(pt(1), 4.0)
        assert nn.add_with_check(pt(0), 1.0)
        assert len(nn) == 2
        assert nn.items()[0][0].id == 0
        assert np.isclose(nn.items()[0][1], 1.0)

    def test_ignores_worse_duplicate(self):
        """Test that a larger distance for a held point is ignored."""
        nn = NearestNeighbors(3)
        nn.add_with_check(pt(0), 1.0)
        assert not nn.add_with_check(pt(0), 2.0)
        assert nn.distances() == [1.0]
        assert nn.contains(0)
        assert not nn.contains(1)
