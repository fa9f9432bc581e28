"""
Data Models for Metric-Space Indexing

This module defines the core data structures shared by the point store,
the indexes and the search algorithms. Uses Python dataclasses for clean,
type-hinted data containers.

Data Flow:
    Point → PointStore → DistanceCache / MTree
    Point → AlgorithmStep (DistanceEdge, BoundaryCircle) → consumers
"""

from dataclasses import dataclass
from typing import List, Dict, Optional, Any, Tuple
from enum import Enum
import numpy as np


DEFAULT_POINT_ID = -1


class PointType(Enum):
    """Role of a point inside a store."""
    OBJECT = "object"     # Regular data point
    PIVOT = "pivot"       # Designated reference point
    QUERY = "query"       # The single query point


class MethodType(Enum):
    """Indexing methods."""
    AESA = "aesa"
    LAESA = "laesa"
    MTREE = "mtree"


class AlgorithmType(Enum):
    """Operations every method supports."""
    INSERT = "insert"
    KNN = "knn"
    RANGE = "range"


class DecisionKind(Enum):
    """
    Why an edge or circle appears in a step.

    The tag is part of the algorithm's output: it records which decision
    was taken, not how to draw it.
    """
    KNOWN_DISTANCE = "known_distance"         # Distance was computed
    UNKNOWN_DISTANCE = "unknown_distance"     # Distance not (yet) computed
    ELIMINATION = "elimination"               # Candidate pruned
    INCLUSION = "inclusion"                   # Candidate kept or admitted
    RANGE_QUERY = "range_query"               # Query radius boundary
    KNN_BOUNDARY = "knn_boundary"             # Current k-th distance
    LOWER_BOUND = "lower_bound"               # Triangle-inequality bound
    TREE_REGION = "tree_region"               # M-tree covering region


@dataclass
class Point:
    """
    A typed 2D point.

    Attributes:
        id: Unique identifier inside its store
        kind: Role of the point (object, pivot or query)
        x: Horizontal coordinate
        y: Vertical coordinate
    """
    id: int
    kind: PointType
    x: float
    y: float

    @property
    def label(self) -> str:
        """Short display label, e.g. 'o3', 'p1' or 'q'."""
        if self.kind == PointType.QUERY:
            return "q"
        if self.kind == PointType.PIVOT:
            return f"p{self.id}"
        return f"o{self.id}"

    def clone(self) -> "Point":
        """Return an independent copy."""
        return Point(self.id, self.kind, self.x, self.y)

    def as_array(self) -> np.ndarray:
        """Return coordinates as numpy array for geometric operations."""
        return np.array([self.x, self.y], dtype=np.float64)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "x": self.x,
            "y": self.y
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Point":
        """Create from dictionary (JSON deserialization)."""
        return cls(
            id=int(data.get("id", DEFAULT_POINT_ID)),
            kind=PointType(data.get("kind", PointType.OBJECT.value)),
            x=float(data["x"]),
            y=float(data["y"])
        )


def points_as_array(points: List[Point]) -> np.ndarray:
    """Stack point coordinates into an array of shape (n, 2)."""
    if not points:
        return np.empty((0, 2), dtype=np.float64)
    return np.array([[p.x, p.y] for p in points], dtype=np.float64)


@dataclass(frozen=True)
class DistanceEdge:
    """
    A distance between two points, tagged with the decision it supports.

    Attributes:
        source: First endpoint
        target: Second endpoint
        kind: Decision tag (usually KNOWN_DISTANCE or UNKNOWN_DISTANCE)
        distance: Computed value, None if the distance is not known
    """
    source: Point
    target: Point
    kind: DecisionKind
    distance: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "source": self.source.id,
            "target": self.target.id,
            "kind": self.kind.value,
            "distance": self.distance
        }


@dataclass(frozen=True)
class BoundaryCircle:
    """
    A circle around a point: query radius, k-th bound, lower bound or region.

    Attributes:
        center: Center point
        radius: Circle radius (may be infinite for an unfilled kNN bound)
        kind: Decision tag
    """
    center: Point
    radius: float
    kind: DecisionKind

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "center": self.center.id,
            "radius": self.radius,
            "kind": self.kind.value
        }


@dataclass(frozen=True)
class AlgorithmStep:
    """
    Immutable snapshot emitted at each suspension point of an algorithm.

    Point tuples hold clones, so later mutation of the run's state never
    changes a step that has already been produced.

    Attributes:
        step_index: Sequential index within the run, starting at 0
        active_points: Points being processed in this step
        eliminated_points: Points pruned so far (never overlaps results)
        result_points: Current result set
        distance_edges: Tagged distances relevant to this step
        boundary_circles: Tagged circles relevant to this step
        note: Short label of the decision point (e.g. "eliminate")
    """
    step_index: int
    active_points: Tuple[Point, ...] = ()
    eliminated_points: Tuple[Point, ...] = ()
    result_points: Tuple[Point, ...] = ()
    distance_edges: Tuple[DistanceEdge, ...] = ()
    boundary_circles: Tuple[BoundaryCircle, ...] = ()
    note: str = ""

    @property
    def result_ids(self) -> List[int]:
        """Ids of the current result points."""
        return [p.id for p in self.result_points]

    @property
    def eliminated_ids(self) -> List[int]:
        """Ids of the points eliminated so far."""
        return [p.id for p in self.eliminated_points]

    def edges_of_kind(self, kind: DecisionKind) -> List[DistanceEdge]:
        """Return the edges tagged with the given kind."""
        return [e for e in self.distance_edges if e.kind == kind]

    def circles_of_kind(self, kind: DecisionKind) -> List[BoundaryCircle]:
        """Return the circles tagged with the given kind."""
        return [c for c in self.boundary_circles if c.kind == kind]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "step_index": self.step_index,
            "note": self.note,
            "active": [p.id for p in self.active_points],
            "eliminated": self.eliminated_ids,
            "results": self.result_ids,
            "distances": [e.to_dict() for e in self.distance_edges],
            "circles": [c.to_dict() for c in self.boundary_circles]
        }
