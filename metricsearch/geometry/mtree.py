"""
M-Tree: Balanced Covering Tree for Metric Spaces

Routing nodes hold (pivot, covering radius, child) records; leaves hold
(point, distance-to-parent-pivot) records. Every point below a routing
record lies within that record's radius of its pivot, which is what lets
searches discard whole subtrees with the triangle inequality.

Key Features:
- Bulk loading with k-means++ style pivot selection
- Single-point insertion (FindLeaf + recursive SplitNode)
- promote / partition split policy
- Consistency checker reporting violated invariants
- Non-stepping range search, statistics and region listing

Complexity Analysis:
- Bulk load: O(n · c · log_c n) distance evaluations for capacity c
- Insert: O(c · h) distance evaluations for height h, plus O(c²) per split
- Range search: O(n) worst case, typically far fewer evaluations
- Space: O(n)

Reference:
    Ciaccia, P., Patella, M., & Zezula, P. (1997). M-tree: An efficient
    access method for similarity search in metric spaces. VLDB, 426-435.
"""

import copy
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np

from ..config import runtime_config
from ..data_models import Point
from ..logging import get_logger
from ..point_store import PointStore
from .distance import DistanceFunction, euclidean_distance

logger = get_logger("mtree")

NESTING_TOLERANCE = 1e-9


class NodeType(Enum):
    """Kinds of M-tree nodes."""
    ROUTING = "routing"
    LEAF = "leaf"


@dataclass(eq=False)
class DataRecord:
    """
    Leaf entry.

    Attributes:
        point: The stored point
        parent_distance: Distance to the pivot of the parent routing record
    """
    point: Point
    parent_distance: float = 0.0


@dataclass(eq=False)
class RoutingRecord:
    """
    Routing entry.

    Attributes:
        point: Routing pivot
        radius: Covering radius of the subtree
        child: Subtree root
        parent_distance: Distance to the pivot of the parent routing record
    """
    point: Point
    radius: float
    child: "MTreeNode"
    parent_distance: float = 0.0


Record = Union[DataRecord, RoutingRecord]

# (node, record of that node that was descended into)
PathEntry = Tuple["MTreeNode", RoutingRecord]


@dataclass(eq=False)
class MTreeNode:
    """
    A node in the M-tree.

    Attributes:
        node_type: ROUTING or LEAF
        capacity: Maximum number of records
        records: Routing records or data records, depending on node_type
    """
    node_type: NodeType
    capacity: int
    records: List[Any] = field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return self.node_type == NodeType.LEAF

    @property
    def is_full(self) -> bool:
        return len(self.records) >= self.capacity

    def add_record(self, record: Record) -> bool:
        """Append a record. Returns False (and adds nothing) when full."""
        if self.is_full:
            return False
        self.records.append(record)
        return True

    def points(self) -> List[Point]:
        """Points (or pivots) referenced by this node's records."""
        return [record.point for record in self.records]


@dataclass
class SubtreeChoice:
    """
    Outcome of one FindLeaf step at a routing node.

    Attributes:
        record: Routing record chosen for descent
        distance: Distance from the new point to the chosen pivot
        distances: Distances to every pivot of the node, in record order
        covered: True if some region already contained the point
        previous_radius: Radius of the chosen record before enlargement
    """
    record: RoutingRecord
    distance: float
    distances: List[float]
    covered: bool
    previous_radius: float

    @property
    def enlarged(self) -> bool:
        return self.record.radius > self.previous_radius


@dataclass
class SplitOutcome:
    """
    One level of a node split.

    Attributes:
        node: The split node, now holding group 1
        sibling: The newly created node holding group 2
        pivot1: Pivot of group 1
        radius1: Covering radius of group 1
        pivot2: Pivot of group 2
        radius2: Covering radius of group 2
        pivot_distance: Distance between the two pivots
        new_root: True if the split created a new root
    """
    node: MTreeNode
    sibling: MTreeNode
    pivot1: Point
    radius1: float
    pivot2: Point
    radius2: float
    pivot_distance: float = 0.0
    new_root: bool = False


class MTree:
    """
    M-tree index over points of a PointStore.

    Example:
        >>> tree = MTree(node_capacity=3, rng=np.random.default_rng(0))
        >>> tree.initialize(store)
        >>> tree.validate()
        []

    Attributes:
        distance_function: Metric
        node_capacity: Maximum records per node (at least 2)
        rng: Random source for bulk-load pivot selection
        root: Root node, None when empty
        size: Number of stored points
    """

    def __init__(
        self,
        distance_function: DistanceFunction = euclidean_distance,
        node_capacity: Optional[int] = None,
        rng: Optional[np.random.Generator] = None
    ):
        if node_capacity is None:
            node_capacity = runtime_config().node_capacity
        if node_capacity < 2:
            raise ValueError(f"Node capacity must be at least 2, got {node_capacity}")
        self.distance_function = distance_function
        self.node_capacity = node_capacity
        self.rng = rng if rng is not None else np.random.default_rng()
        self.root: Optional[MTreeNode] = None
        self.size = 0

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def initialize(self, store: PointStore) -> None:
        """Bulk load the store's data points and log a consistency report."""
        self.bulk_load(store.get_data_points())
        errors = self.validate()
        if errors:
            logger.warning("M-tree validation found %d problem(s): %s", len(errors), "; ".join(errors))
        stats = self.statistics()
        logger.debug(
            "Initialized M-tree: %d points, %d nodes, height %d",
            stats["total_points"], stats["total_nodes"], stats["height"]
        )

    def bulk_load(self, points: List[Point]) -> None:
        """
        Build the tree from scratch.

        Small inputs become a single leaf. Larger inputs are clustered
        recursively into min(capacity, ceil(sqrt(n))) groups per routing
        node, down to a depth of ceil(log_capacity(n)) + 2. Points that do
        not fit into a leaf at that depth are inserted normally afterwards.

        Args:
            points: Points to index; the query point should not be included
        """
        self.clear()
        points = list(points)
        if not points:
            return

        capacity = self.node_capacity
        if len(points) <= capacity:
            self.root = self._make_leaf(points, None)
            self.size = len(points)
            return

        max_depth = math.ceil(math.log(len(points)) / math.log(capacity)) + 2
        overflow: List[Point] = []
        self.root = self._build_subtree(points, None, 0, max_depth, overflow)
        self.size = len(points) - len(overflow)

        if overflow:
            logger.debug("Bulk load depth limit reached; inserting %d overflow points", len(overflow))
        for point in overflow:
            self.insert(point)

    def _make_leaf(self, points: List[Point], parent_pivot: Optional[Point]) -> MTreeNode:
        leaf = MTreeNode(NodeType.LEAF, self.node_capacity)
        for point in points:
            parent_distance = 0.0
            if parent_pivot is not None:
                parent_distance = self.distance_function(parent_pivot, point)
            leaf.records.append(DataRecord(point, parent_distance))
        return leaf

    def _build_subtree(
        self,
        points: List[Point],
        parent_pivot: Optional[Point],
        depth: int,
        max_depth: int,
        overflow: List[Point]
    ) -> MTreeNode:
        capacity = self.node_capacity
        if len(points) <= capacity or depth >= max_depth:
            overflow.extend(points[capacity:])
            return self._make_leaf(points[:capacity], parent_pivot)

        node = MTreeNode(NodeType.ROUTING, capacity)
        num_clusters = min(capacity, math.ceil(math.sqrt(len(points))))
        pivots = self._select_pivots(points, num_clusters)
        clusters = self._assign_to_pivots(points, pivots)

        for pivot, cluster in zip(pivots, clusters):
            child = self._build_subtree(cluster, pivot, depth + 1, max_depth, overflow)
            radius = max(
                (self.distance_function(pivot, p) for p in self.all_points(child)),
                default=0.0
            )
            parent_distance = 0.0
            if parent_pivot is not None:
                parent_distance = self.distance_function(parent_pivot, pivot)
            node.records.append(RoutingRecord(pivot, radius, child, parent_distance))

        return node

    def _select_pivots(self, points: List[Point], num_pivots: int) -> List[Point]:
        """
        k-means++ seeding: each further pivot is drawn with probability
        proportional to its squared distance to the nearest chosen pivot.
        Stops early if every remaining point coincides with a pivot.
        """
        first = points[int(self.rng.integers(len(points)))]
        pivots = [first]
        chosen_ids = {first.id}

        while len(pivots) < num_pivots:
            weights = np.zeros(len(points), dtype=np.float64)
            for i, point in enumerate(points):
                if point.id in chosen_ids:
                    continue
                nearest = min(self.distance_function(point, pivot) for pivot in pivots)
                weights[i] = nearest * nearest

            candidates = np.flatnonzero(weights > 0)
            if candidates.size == 0:
                break

            cumulative = np.cumsum(weights[candidates])
            target = self.rng.random() * cumulative[-1]
            pos = min(int(np.searchsorted(cumulative, target, side="left")), candidates.size - 1)
            selected = points[int(candidates[pos])]
            pivots.append(selected)
            chosen_ids.add(selected.id)

        return pivots

    def _assign_to_pivots(self, points: List[Point], pivots: List[Point]) -> List[List[Point]]:
        """Each pivot heads its own cluster; other points join the nearest pivot."""
        pivot_ids = {pivot.id for pivot in pivots}
        clusters = [[pivot] for pivot in pivots]
        for point in points:
            if point.id in pivot_ids:
                continue
            best_index = 0
            best_distance = float('inf')
            for i, pivot in enumerate(pivots):
                distance = self.distance_function(point, pivot)
                if distance < best_distance:
                    best_distance = distance
                    best_index = i
            clusters[best_index].append(point)
        return clusters

    # ------------------------------------------------------------------
    # Split policy
    # ------------------------------------------------------------------

    def _farthest_pair(self, points: List[Point]) -> Tuple[int, int, float]:
        if len(points) < 2:
            raise ValueError("At least two points are required to promote pivots")
        best = (0, 1)
        max_distance = -1.0
        for i in range(len(points)):
            for j in range(i + 1, len(points)):
                distance = self.distance_function(points[i], points[j])
                if distance > max_distance:
                    max_distance = distance
                    best = (i, j)
        return best[0], best[1], max_distance

    def promote(self, points: List[Point]) -> Tuple[Point, Point]:
        """
        Choose the two points that are farthest apart.

        Ties keep the first pair found in (i, j), i < j scan order.

        Complexity:
            Time: O(n²) distance evaluations
        """
        i, j, _ = self._farthest_pair(points)
        return points[i], points[j]

    def _closer_to_first(self, point: Point, pivot1: Point, pivot2: Point) -> bool:
        # The pivots always head their own groups, even when they coincide
        if point is pivot1:
            return True
        if point is pivot2:
            return False
        return self.distance_function(point, pivot1) <= self.distance_function(point, pivot2)

    def partition(
        self,
        points: List[Point],
        pivot1: Point,
        pivot2: Point
    ) -> Tuple[List[Point], List[Point]]:
        """
        Assign each point to the closer pivot; ties go to pivot1.

        Returns:
            (group1, group2)
        """
        group1: List[Point] = []
        group2: List[Point] = []
        for point in points:
            if self._closer_to_first(point, pivot1, pivot2):
                group1.append(point)
            else:
                group2.append(point)
        return group1, group2

    # ------------------------------------------------------------------
    # Insertion
    # ------------------------------------------------------------------

    def choose_subtree(self, node: MTreeNode, point: Point) -> SubtreeChoice:
        """
        One FindLeaf step at a routing node.

        If some region covers the point, the closest covering pivot wins.
        Otherwise the record needing the smallest radius increase wins and
        its radius is enlarged to reach the point.
        """
        distances = [self.distance_function(point, record.point) for record in node.records]

        covering = [i for i, record in enumerate(node.records) if distances[i] <= record.radius]
        if covering:
            index = min(covering, key=lambda i: distances[i])
            record = node.records[index]
            return SubtreeChoice(record, distances[index], distances, True, record.radius)

        index = min(range(len(node.records)), key=lambda i: distances[i] - node.records[i].radius)
        record = node.records[index]
        previous_radius = record.radius
        record.radius = max(record.radius, distances[index])
        return SubtreeChoice(record, distances[index], distances, False, previous_radius)

    def find_leaf(self, point: Point) -> Tuple[MTreeNode, List[PathEntry], float]:
        """
        Descend to the leaf that should receive `point`.

        Returns:
            (leaf, path of (node, chosen record) from the root, distance to
            the leaf's parent pivot or 0 if the leaf is the root)
        """
        if self.root is None:
            raise ValueError("Cannot descend an empty tree")
        node = self.root
        path: List[PathEntry] = []
        parent_distance = 0.0
        while not node.is_leaf:
            choice = self.choose_subtree(node, point)
            path.append((node, choice.record))
            parent_distance = choice.distance
            node = choice.record.child
        return node, path, parent_distance

    def place(self, leaf: MTreeNode, path: List[PathEntry], record: DataRecord) -> List[SplitOutcome]:
        """
        Store a data record in `leaf`, splitting if the leaf is full.

        Returns:
            The split levels performed, empty if none
        """
        if leaf.add_record(record):
            self.size += 1
            return []
        outcomes = self.split(leaf, path, record)
        self.update_parent_distances()
        self.size += 1
        return outcomes

    def insert(self, point: Point) -> List[SplitOutcome]:
        """
        Insert a single point.

        Returns:
            The split levels performed, empty if none

        Complexity:
            Time: O(c · h) distance evaluations, plus O(c²) per split level
        """
        if self.root is None:
            self.root = MTreeNode(NodeType.LEAF, self.node_capacity)
            self.root.add_record(DataRecord(point, 0.0))
            self.size = 1
            return []
        leaf, path, parent_distance = self.find_leaf(point)
        return self.place(leaf, path, DataRecord(point, parent_distance))

    def split(self, node: MTreeNode, path: List[PathEntry], record: Record) -> List[SplitOutcome]:
        """
        Split a full node that must also take `record`.

        The node keeps group 1, a new sibling takes group 2. The parent's
        routing record is updated to pivot 1, and a record for pivot 2 is
        added to the parent; a full parent is split the same way, up to
        and including the creation of a new root.

        Args:
            node: Full node
            path: (node, record) entries from the root down to node's parent
            record: Record that did not fit

        Returns:
            One SplitOutcome per split level, bottom-up
        """
        records = node.records + [record]
        i1, i2, pivot_distance = self._farthest_pair([r.point for r in records])
        pivot1 = records[i1].point
        pivot2 = records[i2].point

        group1: List[Record] = []
        group2: List[Record] = []
        for r in records:
            if self._closer_to_first(r.point, pivot1, pivot2):
                group1.append(r)
            else:
                group2.append(r)

        sibling = MTreeNode(node.node_type, self.node_capacity)
        node.records = self._retag(group1, pivot1)
        sibling.records = self._retag(group2, pivot2)
        radius1 = self._covering_radius(node)
        radius2 = self._covering_radius(sibling)

        if not path:
            new_root = MTreeNode(NodeType.ROUTING, self.node_capacity)
            new_root.records = [
                RoutingRecord(pivot1, radius1, node, 0.0),
                RoutingRecord(pivot2, radius2, sibling, 0.0)
            ]
            self.root = new_root
            return [SplitOutcome(node, sibling, pivot1, radius1, pivot2, radius2,
                                 pivot_distance, new_root=True)]

        parent, parent_record = path[-1]
        parent_record.point = pivot1
        parent_record.radius = radius1
        outcome = SplitOutcome(node, sibling, pivot1, radius1, pivot2, radius2, pivot_distance)

        new_record = RoutingRecord(pivot2, radius2, sibling)
        if parent.add_record(new_record):
            return [outcome]
        return [outcome] + self.split(parent, path[:-1], new_record)

    def _retag(self, records: List[Record], pivot: Point) -> List[Record]:
        for record in records:
            record.parent_distance = self.distance_function(pivot, record.point)
        return records

    @staticmethod
    def _covering_radius(node: MTreeNode) -> float:
        """Radius from freshly tagged parent distances."""
        if node.is_leaf:
            return max((r.parent_distance for r in node.records), default=0.0)
        return max((r.parent_distance + r.radius for r in node.records), default=0.0)

    def update_parent_distances(self) -> None:
        """Recompute every record's distance to its parent pivot (0 at the root)."""
        if self.root is not None:
            self._update_parent_distances(self.root, None)

    def _update_parent_distances(self, node: MTreeNode, parent_pivot: Optional[Point]) -> None:
        for record in node.records:
            if parent_pivot is None:
                record.parent_distance = 0.0
            else:
                record.parent_distance = self.distance_function(parent_pivot, record.point)
            if not node.is_leaf:
                self._update_parent_distances(record.child, record.point)

    # ------------------------------------------------------------------
    # Queries and inspection
    # ------------------------------------------------------------------

    def range_search(self, query: Point, radius: float) -> List[Tuple[Point, float]]:
        """
        Non-stepping range search.

        Returns:
            (point, distance) pairs with distance <= radius, sorted by distance
        """
        results: List[Tuple[Point, float]] = []
        if self.root is not None:
            self._range_search(self.root, query, radius, None, results)
        return sorted(results, key=lambda item: item[1])

    def _range_search(
        self,
        node: MTreeNode,
        query: Point,
        radius: float,
        parent_distance: Optional[float],
        results: List[Tuple[Point, float]]
    ) -> None:
        for record in node.records:
            slack = 0.0 if node.is_leaf else record.radius
            if parent_distance is not None:
                if abs(parent_distance - record.parent_distance) > radius + slack:
                    continue
            distance = self.distance_function(record.point, query)
            if node.is_leaf:
                if distance <= radius:
                    results.append((record.point, distance))
            elif distance <= radius + record.radius:
                self._range_search(record.child, query, radius, distance, results)

    def all_points(self, node: Optional[MTreeNode] = None) -> List[Point]:
        """All points stored below `node` (default: the whole tree)."""
        if node is None:
            node = self.root
        if node is None:
            return []
        if node.is_leaf:
            return node.points()
        points: List[Point] = []
        for record in node.records:
            points.extend(self.all_points(record.child))
        return points

    def count_points(self) -> int:
        return len(self.all_points())

    def height(self) -> int:
        """Number of levels on the longest root-to-leaf path (0 if empty)."""
        def _height(node: MTreeNode) -> int:
            if node.is_leaf:
                return 1
            return 1 + max((_height(r.child) for r in node.records), default=0)

        return 0 if self.root is None else _height(self.root)

    def regions(self) -> List[Tuple[Point, float, int]]:
        """(pivot, radius, depth) for every routing record, depth starting at 1."""
        regions: List[Tuple[Point, float, int]] = []

        def _collect(node: MTreeNode, depth: int) -> None:
            if node.is_leaf:
                return
            for record in node.records:
                regions.append((record.point, record.radius, depth))
                _collect(record.child, depth + 1)

        if self.root is not None:
            _collect(self.root, 1)
        return regions

    def statistics(self) -> Dict[str, Any]:
        """
        Structural summary.

        Returns:
            Dictionary with point/node counts, height, average fill ratios
            and per-depth node and point distributions
        """
        stats: Dict[str, Any] = {
            "total_points": 0,
            "total_nodes": 0,
            "leaf_nodes": 0,
            "routing_nodes": 0,
            "height": self.height(),
            "average_leaf_fill": 0.0,
            "average_node_fill": 0.0,
            "nodes_per_depth": {},
            "points_per_depth": {}
        }
        if self.root is None:
            return stats

        leaf_fill: List[float] = []
        node_fill: List[float] = []
        stack = [(self.root, 0)]
        while stack:
            node, depth = stack.pop()
            stats["total_nodes"] += 1
            stats["nodes_per_depth"][depth] = stats["nodes_per_depth"].get(depth, 0) + 1
            fill = len(node.records) / node.capacity
            node_fill.append(fill)
            if node.is_leaf:
                stats["leaf_nodes"] += 1
                stats["total_points"] += len(node.records)
                stats["points_per_depth"][depth] = (
                    stats["points_per_depth"].get(depth, 0) + len(node.records)
                )
                leaf_fill.append(fill)
            else:
                stats["routing_nodes"] += 1
                for record in node.records:
                    stack.append((record.child, depth + 1))

        stats["average_leaf_fill"] = float(np.mean(leaf_fill)) if leaf_fill else 0.0
        stats["average_node_fill"] = float(np.mean(node_fill)) if node_fill else 0.0
        return stats

    def validate(self) -> List[str]:
        """
        Check the structural invariants.

        Reports capacity overflow, points outside an ancestor's covering
        radius, duplicate point ids inside a leaf and stale parent
        distances. Never raises.

        Returns:
            Human-readable descriptions of every violation (empty if valid)
        """
        errors: List[str] = []
        if self.root is None:
            return errors
        points = self._validate_node(self.root, None, "root", errors)
        if len(points) != self.size:
            errors.append(f"Size mismatch: tree reports {self.size} points, found {len(points)}")
        return errors

    def _validate_node(
        self,
        node: MTreeNode,
        parent_pivot: Optional[Point],
        label: str,
        errors: List[str]
    ) -> List[Point]:
        if len(node.records) > node.capacity:
            errors.append(f"Node {label} exceeds capacity: {len(node.records)} > {node.capacity}")

        if parent_pivot is not None:
            for record in node.records:
                expected = self.distance_function(parent_pivot, record.point)
                if abs(expected - record.parent_distance) > NESTING_TOLERANCE:
                    errors.append(
                        f"Stale parent distance for point {record.point.id} in node {label}: "
                        f"{record.parent_distance:.6f} != {expected:.6f}"
                    )

        if node.is_leaf:
            seen = set()
            for record in node.records:
                if record.point.id in seen:
                    errors.append(f"Duplicate point {record.point.id} in leaf {label}")
                seen.add(record.point.id)
            return node.points()

        points: List[Point] = []
        for index, record in enumerate(node.records):
            child_points = self._validate_node(record.child, record.point, f"{label}.{index}", errors)
            for point in child_points:
                distance = self.distance_function(record.point, point)
                if distance > record.radius + NESTING_TOLERANCE:
                    errors.append(
                        f"Point {point.id} lies outside the region of pivot {record.point.id} "
                        f"in node {label}: {distance:.6f} > {record.radius:.6f}"
                    )
            points.extend(child_points)
        return points

    def is_empty(self) -> bool:
        return self.root is None

    def clear(self) -> None:
        self.root = None
        self.size = 0

    def clone(self) -> "MTree":
        """Deep copy of the structure and points; the metric is shared."""
        clone = MTree(self.distance_function, self.node_capacity, copy.deepcopy(self.rng))
        clone.root = copy.deepcopy(self.root)
        clone.size = self.size
        return clone
