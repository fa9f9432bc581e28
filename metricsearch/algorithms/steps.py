"""
Step Recording Helpers

Every algorithm keeps its running result list and eliminated set in a
StepRecorder and asks it for an AlgorithmStep at each suspension point.
The recorder clones points into the snapshot, so emitted steps never change
afterwards.
"""

from typing import Dict, Iterable, List, Optional

import numpy as np

from ..data_models import (
    AlgorithmStep,
    BoundaryCircle,
    DecisionKind,
    DistanceEdge,
    Point,
    PointType
)
from ..point_store import PointStore


def known_edge(
    source: Point,
    target: Point,
    distance: float,
    kind: DecisionKind = DecisionKind.KNOWN_DISTANCE
) -> DistanceEdge:
    """Edge for a computed distance."""
    return DistanceEdge(source.clone(), target.clone(), kind, distance)


def unknown_edge(source: Point, target: Point) -> DistanceEdge:
    """Edge for a distance that has not been computed."""
    return DistanceEdge(source.clone(), target.clone(), DecisionKind.UNKNOWN_DISTANCE)


def circle(center: Point, radius: float, kind: DecisionKind) -> BoundaryCircle:
    return BoundaryCircle(center.clone(), radius, kind)


def pick_random(candidates: Dict[int, Point], rng: np.random.Generator) -> Optional[Point]:
    """Uniformly random value of `candidates`, None if empty."""
    if not candidates:
        return None
    values = list(candidates.values())
    return values[int(rng.integers(len(values)))]


def store_inserted_point(store: PointStore, point: Point) -> None:
    """Reclassify an inserted point as an object and write it to the store."""
    point.kind = PointType.OBJECT
    if point.id in store:
        store.update_point(point)
    else:
        store.add_point(point)


class StepRecorder:
    """
    Running state shared by the steps of one algorithm run.

    Attributes:
        results: Current result points, in result order
        eliminated: Points eliminated so far, keyed by id in elimination order
    """

    def __init__(self):
        self._next_index = 0
        self.results: List[Point] = []
        self.eliminated: Dict[int, Point] = {}

    def set_results(self, points: Iterable[Point]) -> None:
        self.results = list(points)

    def include(self, point: Point) -> None:
        """Append a point to the results unless already present."""
        if all(p.id != point.id for p in self.results):
            self.results.append(point)

    def eliminate(self, *points: Point) -> None:
        for point in points:
            self.eliminated[point.id] = point

    def step(
        self,
        active: Iterable[Point] = (),
        edges: Iterable[DistanceEdge] = (),
        circles: Iterable[BoundaryCircle] = (),
        note: str = ""
    ) -> AlgorithmStep:
        """Snapshot the current state. Results are never listed as eliminated."""
        result_ids = {p.id for p in self.results}
        snapshot = AlgorithmStep(
            step_index=self._next_index,
            active_points=tuple(p.clone() for p in active),
            eliminated_points=tuple(
                p.clone() for p in self.eliminated.values() if p.id not in result_ids
            ),
            result_points=tuple(p.clone() for p in self.results),
            distance_edges=tuple(edges),
            boundary_circles=tuple(circles),
            note=note
        )
        self._next_index += 1
        return snapshot
