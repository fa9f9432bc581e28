"""
Bounded Nearest-Neighbor Collector

Keeps the best k (point, distance) candidates sorted ascending and exposes
the current k-th distance as the pruning bound of a kNN search.
"""

from typing import List, Optional, Tuple

from ..data_models import Point


class NearestNeighbors:
    """
    Sorted list of at most k candidates.

    The bound reported by `furthest_distance` is +inf until k candidates
    have been collected.

    Example:
        >>> nn = NearestNeighbors(2)
        >>> nn.add(a, 3.0)
        >>> nn.furthest_distance
        inf
    """

    def __init__(self, k: int):
        if k < 1:
            raise ValueError("k must be at least 1")
        self.k = k
        self._items: List[Tuple[Point, float]] = []

    def __len__(self) -> int:
        return len(self._items)

    @property
    def is_full(self) -> bool:
        return len(self._items) >= self.k

    @property
    def furthest_distance(self) -> float:
        """Current k-th distance, +inf while fewer than k candidates are held."""
        if not self.is_full:
            return float('inf')
        return self._items[-1][1]

    @property
    def furthest_point(self) -> Optional[Point]:
        """Current worst candidate, None if empty."""
        return self._items[-1][0] if self._items else None

    def add(self, point: Point, distance: float) -> Optional[Point]:
        """
        Insert a candidate, keep the list sorted and truncated to k.

        Equal distances keep insertion order, so a new candidate tied with
        the worst one is the one dropped.

        Returns:
            The point dropped by truncation, or None
        """
        self._items.append((point, distance))
        self._items.sort(key=lambda item: item[1])
        if len(self._items) > self.k:
            return self._items.pop()[0]
        return None

    def add_with_check(self, point: Point, distance: float) -> bool:
        """
        Admit a candidate only if it improves the collector.

        A candidate already held (same id) is updated when the new distance
        is smaller and ignored otherwise. A new candidate is rejected when
        the collector is full and the distance is not below the bound.

        Returns:
            True if the collector changed
        """
        if self.is_full and distance >= self.furthest_distance:
            return False
        for index, (held, held_distance) in enumerate(self._items):
            if held.id == point.id:
                if distance >= held_distance:
                    return False
                self._items[index] = (point, distance)
                self._items.sort(key=lambda item: item[1])
                return True
        self.add(point, distance)
        return True

    def contains(self, point_id: int) -> bool:
        return any(p.id == point_id for p, _ in self._items)

    def points(self) -> List[Point]:
        return [p for p, _ in self._items]

    def items(self) -> List[Tuple[Point, float]]:
        """(point, distance) pairs in ascending distance order."""
        return list(self._items)

    def distances(self) -> List[float]:
        return [d for _, d in self._items]
