"""
Point Store

Holds the typed points (objects, pivots and the single query) that the
indexes are built over. Ids are unique and issued monotonically; the query
point is created lazily on first access.

Example:
    >>> store = PointStore()
    >>> a = store.create_point(PointType.OBJECT, 1.0, 2.0)
    >>> q = store.get_query()
    >>> [p.id for p in store.get_data_points()]
    [0]
"""

from typing import Dict, Iterable, List, Optional

import numpy as np

from .config import runtime_config
from .data_models import DEFAULT_POINT_ID, Point, PointType
from .logging import get_logger

logger = get_logger("point_store")


class PointStore:
    """
    Collection of points keyed by id.

    Attributes:
        next_id: Next candidate id; ids already in use are skipped
    """

    def __init__(self, points: Optional[Iterable[Point]] = None):
        self._points: Dict[int, Point] = {}
        self.next_id = 0
        for point in points or []:
            self.add_point(point)

    def __len__(self) -> int:
        return len(self._points)

    def __contains__(self, point_id: int) -> bool:
        return point_id in self._points

    def get_new_id(self) -> int:
        """Issue the next unused id."""
        while self.next_id in self._points:
            self.next_id += 1
        new_id = self.next_id
        self.next_id += 1
        return new_id

    def create_point(
        self,
        kind: PointType,
        x: float,
        y: float,
        point_id: int = DEFAULT_POINT_ID
    ) -> Point:
        """
        Create and store a new point.

        A default or already used id is replaced by a freshly issued one.
        """
        if point_id == DEFAULT_POINT_ID or point_id in self._points:
            point_id = self.get_new_id()
        point = Point(point_id, kind, float(x), float(y))
        self._store(point)
        return point

    def add_point(self, point: Point) -> Point:
        """
        Store an existing point object.

        The point's id is reassigned if it is the default id or collides
        with a stored point. Adding a second QUERY point replaces the first.
        """
        if point.id == DEFAULT_POINT_ID or point.id in self._points:
            point.id = self.get_new_id()
        self._store(point)
        return point

    def update_point(self, point: Point) -> bool:
        """Replace the stored point with the same id. Returns False if absent."""
        if point.id not in self._points:
            logger.warning("Point with id %d does not exist", point.id)
            return False
        self._store(point)
        return True

    def _store(self, point: Point) -> None:
        """Write `point` under its id; a QUERY point replaces any other query."""
        if point.kind == PointType.QUERY:
            existing = self._find_query()
            if existing is not None and existing.id != point.id:
                del self._points[existing.id]
        self._points[point.id] = point

    def remove_point(self, point_id: int) -> bool:
        """Remove a point by id. Returns False if absent."""
        return self._points.pop(point_id, None) is not None

    def get_point(self, point_id: int) -> Optional[Point]:
        return self._points.get(point_id)

    def get_points(self) -> List[Point]:
        return list(self._points.values())

    def get_data_points(self) -> List[Point]:
        """All points except the query."""
        return [p for p in self._points.values() if p.kind != PointType.QUERY]

    def get_objects(self) -> List[Point]:
        return [p for p in self._points.values() if p.kind == PointType.OBJECT]

    def get_pivots(self) -> List[Point]:
        return [p for p in self._points.values() if p.kind == PointType.PIVOT]

    def _find_query(self) -> Optional[Point]:
        for point in self._points.values():
            if point.kind == PointType.QUERY:
                return point
        return None

    def get_query(self) -> Point:
        """Return the query point, creating it at the default position if absent."""
        query = self._find_query()
        if query is None:
            cfg = runtime_config()
            query = self.create_point(PointType.QUERY, cfg.query_x, cfg.query_y)
        return query

    def set_query(self, x: float, y: float) -> Point:
        """Move the query point to the given coordinates."""
        query = self.get_query()
        query.x = float(x)
        query.y = float(y)
        return query

    def set_pivots(self, pivot_ids: Iterable[int]) -> List[Point]:
        """
        Designate pivots.

        Existing pivots are demoted to objects first. Unknown ids and the
        query point are ignored.

        Returns:
            The new pivot list
        """
        for point in self.get_pivots():
            point.kind = PointType.OBJECT
        for point_id in pivot_ids:
            point = self._points.get(point_id)
            if point is not None and point.kind != PointType.QUERY:
                point.kind = PointType.PIVOT
        return self.get_pivots()

    def designate_random_pivots(self, count: int, rng: np.random.Generator) -> List[Point]:
        """
        Designate `count` distinct random data points as pivots.

        Args:
            count: Number of pivots (clipped to the number of data points)
            rng: Random source

        Returns:
            The new pivot list
        """
        candidates = self.get_data_points()
        count = max(0, min(count, len(candidates)))
        chosen = rng.choice(len(candidates), size=count, replace=False) if count else []
        return self.set_pivots(candidates[int(i)].id for i in chosen)

    def generate_points(
        self,
        count: int,
        rng: np.random.Generator,
        domain_size: Optional[float] = None
    ) -> List[Point]:
        """
        Replace the contents with `count` uniform random objects plus the query.

        Args:
            count: Number of objects
            rng: Random source
            domain_size: Side of the sampling square, defaults to the config value

        Returns:
            The generated objects
        """
        if domain_size is None:
            domain_size = runtime_config().domain_size
        self.clear()
        coords = rng.uniform(0.0, domain_size, size=(count, 2))
        created = [self.create_point(PointType.OBJECT, x, y) for x, y in coords]
        self.get_query()
        return created

    def clear(self) -> None:
        self._points.clear()
        self.next_id = 0

    def clone(self) -> "PointStore":
        """Deep copy; the id counter is preserved."""
        copy = PointStore()
        for point in self._points.values():
            copy._points[point.id] = point.clone()
        copy.next_id = self.next_id
        return copy
