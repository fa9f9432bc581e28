"""
Distance Functions and Brute-Force Baselines

The indexes only require a metric: a function (Point, Point) -> float that
is non-negative, symmetric and satisfies the triangle inequality. Euclidean
distance is the default.

Also provides:
- CountingDistance: wrapper that counts invocations, used to measure how
  many distance evaluations a search needs
- Brute-force kNN and range search, the baselines every index is checked
  against

Complexity:
- Single distance: O(1)
- Brute-force kNN / range: O(n) distance evaluations
"""

from typing import Callable, List, Tuple

import numpy as np

from ..data_models import Point, points_as_array

DistanceFunction = Callable[[Point, Point], float]


def euclidean_distance(p1: Point, p2: Point) -> float:
    """Euclidean distance between two points."""
    return float(np.hypot(p1.x - p2.x, p1.y - p2.y))


class CountingDistance:
    """
    Distance function wrapper that counts how often it is called.

    Example:
        >>> dist = CountingDistance()
        >>> _ = dist(a, b)
        >>> dist.calls
        1
    """

    def __init__(self, func: DistanceFunction = euclidean_distance):
        self.func = func
        self.calls = 0

    def __call__(self, p1: Point, p2: Point) -> float:
        self.calls += 1
        return self.func(p1, p2)

    def reset(self) -> None:
        self.calls = 0


def _euclidean_to_all(points: List[Point], query: Point) -> np.ndarray:
    coords = points_as_array(points)
    # Same hypot kernel as euclidean_distance, so boundary ties agree exactly
    return np.hypot(coords[:, 0] - query.x, coords[:, 1] - query.y)


def brute_force_knn(
    points: List[Point],
    query: Point,
    k: int,
    distance_function: DistanceFunction = euclidean_distance
) -> List[Tuple[Point, float]]:
    """
    Brute-force k-nearest neighbors (baseline).

    Args:
        points: Candidate points
        query: Query point
        k: Number of neighbors
        distance_function: Metric; the Euclidean case is vectorized

    Returns:
        Up to k (point, distance) pairs sorted by distance

    Complexity:
        Time: O(n log n)
    """
    if k < 1:
        raise ValueError("k must be at least 1")
    distances = _all_distances(points, query, distance_function)
    order = np.argsort(distances, kind="stable")[:k]
    return [(points[i], float(distances[i])) for i in order]


def brute_force_range(
    points: List[Point],
    query: Point,
    radius: float,
    distance_function: DistanceFunction = euclidean_distance
) -> List[Tuple[Point, float]]:
    """
    Brute-force range search (baseline).

    Returns:
        All (point, distance) pairs with distance <= radius, sorted by distance
    """
    distances = _all_distances(points, query, distance_function)
    order = np.argsort(distances, kind="stable")
    return [(points[i], float(distances[i])) for i in order if distances[i] <= radius]


def _all_distances(
    points: List[Point],
    query: Point,
    distance_function: DistanceFunction
) -> np.ndarray:
    if distance_function is euclidean_distance:
        return _euclidean_to_all(points, query)
    return np.array([distance_function(p, query) for p in points], dtype=np.float64)
