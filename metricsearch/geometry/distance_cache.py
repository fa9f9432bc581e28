"""
Distance Cache for AESA and LAESA

A symmetric sparse map from unordered point-id pairs to distances. Only
distances that were actually requested are stored, so the number of
entries doubles as a record of the work done.

Key Features:
- request(): compute on miss, return the stored value on hit
- lookup(): read-only, returns UNKNOWN_DISTANCE (-1.0) on miss
- initialize(): full matrix (AESA) or pivot rows (LAESA)

Complexity:
- request / lookup: O(1)
- initialize: O(n²) without pivots, O(k·n) with k pivots
- Space: one entry per requested pair
"""

from typing import Dict, Tuple

from ..data_models import Point
from ..logging import get_logger
from ..point_store import PointStore
from .distance import DistanceFunction, euclidean_distance

logger = get_logger("distance_cache")

UNKNOWN_DISTANCE = -1.0


def _pair_key(id1: int, id2: int) -> Tuple[int, int]:
    return (id1, id2) if id1 <= id2 else (id2, id1)


class DistanceCache:
    """
    Symmetric cache of pairwise distances.

    Example:
        >>> cache = DistanceCache()
        >>> cache.initialize(store)
        >>> d = cache.request(a, b)
        >>> assert cache.lookup(b.id, a.id) == d

    Attributes:
        distance_function: Metric used on cache misses
        pivot_mode: True if the last initialize() only covered pivot rows
    """

    def __init__(self, distance_function: DistanceFunction = euclidean_distance):
        self.distance_function = distance_function
        self._distances: Dict[Tuple[int, int], float] = {}
        self.pivot_mode = False

    def __len__(self) -> int:
        return len(self._distances)

    def add_distance(self, p1: Point, p2: Point) -> float:
        """Compute and store d(p1, p2) unconditionally."""
        distance = self.distance_function(p1, p2)
        self._distances[_pair_key(p1.id, p2.id)] = distance
        return distance

    def request(self, p1: Point, p2: Point) -> float:
        """Return d(p1, p2), computing and storing it only if absent."""
        key = _pair_key(p1.id, p2.id)
        cached = self._distances.get(key)
        if cached is not None:
            return cached
        distance = self.distance_function(p1, p2)
        self._distances[key] = distance
        return distance

    def lookup(self, id1: int, id2: int) -> float:
        """Return the cached distance, or UNKNOWN_DISTANCE. Never computes."""
        return self._distances.get(_pair_key(id1, id2), UNKNOWN_DISTANCE)

    def has_distance(self, id1: int, id2: int) -> bool:
        return _pair_key(id1, id2) in self._distances

    def distances_for(self, point_id: int) -> Dict[int, float]:
        """All cached distances involving `point_id`, keyed by the other id."""
        result = {}
        for (a, b), distance in self._distances.items():
            if a == point_id:
                result[b] = distance
            elif b == point_id:
                result[a] = distance
        return result

    def initialize(self, store: PointStore) -> None:
        """
        Populate the cache from a store.

        Without pivots every pair of data points is computed (AESA mode).
        With pivots only pivot-to-point distances are computed (LAESA mode).
        The query point is never included.
        """
        self.clear()
        points = store.get_data_points()
        pivots = store.get_pivots()
        self.pivot_mode = bool(pivots)

        if not pivots:
            for i in range(len(points)):
                for j in range(i + 1, len(points)):
                    self.add_distance(points[i], points[j])
        else:
            for pivot in pivots:
                for point in points:
                    if point.id != pivot.id:
                        self.request(pivot, point)

        logger.debug(
            "Initialized distance cache (%s mode): %d points, %d pivots, %d entries",
            "LAESA" if self.pivot_mode else "AESA", len(points), len(pivots), len(self)
        )

    def clear(self) -> None:
        self._distances.clear()

    def clone(self) -> "DistanceCache":
        """Independent copy sharing only the distance function."""
        copy = DistanceCache(self.distance_function)
        copy._distances = dict(self._distances)
        copy.pivot_mode = self.pivot_mode
        return copy
