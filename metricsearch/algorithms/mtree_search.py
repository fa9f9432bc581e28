"""
M-Tree kNN and Range Search

Both searches use two pruning rules per record:

1. Parent-distance bound: with the distance d(q, parent) already known and
   d(record, parent) stored in the record, |d(q, parent) - d(record, parent)|
   bounds d(q, record) from below for free.
2. Covering radius: a routing record with pivot distance d and radius R can
   only hold points in [max(0, d - R), d + R].

kNN is best-first: a frontier of (node, dmin) entries is always expanded
at its smallest dmin, and the search radius shrinks as the collector
fills. Range search is a plain recursive descent.

Complexity:
- Both: O(n) distance evaluations worst case; far fewer for well-separated
  regions
"""

from dataclasses import dataclass
from typing import Iterator, List, Optional

from ..data_models import AlgorithmStep, DecisionKind, Point
from ..geometry.mtree import MTree, MTreeNode, RoutingRecord
from .neighbors import NearestNeighbors
from .steps import StepRecorder, circle, known_edge, unknown_edge

INF = float('inf')


@dataclass
class FrontierEntry:
    """
    A node waiting to be expanded.

    Attributes:
        node: Node to expand
        dmin: Smallest possible distance from the query to any point below
        parent_pivot: Pivot of the routing record pointing at `node`
        parent_distance: d(query, parent_pivot), None at the root
    """
    node: MTreeNode
    dmin: float
    parent_pivot: Optional[Point] = None
    parent_distance: Optional[float] = None


def _lower_bound(parent_distance: Optional[float], record) -> Optional[float]:
    if parent_distance is None:
        return None
    return abs(parent_distance - record.parent_distance)


def _region(record: RoutingRecord, kind: DecisionKind = DecisionKind.TREE_REGION):
    return circle(record.point, record.radius, kind)


class MTreeKnnSearch:
    """
    Stepwise best-first kNN search over an M-tree.

    Example:
        >>> search = MTreeKnnSearch(tree, query, k=3)
        >>> steps = list(search.run())
        >>> [p.id for p in steps[-1].result_points]

    Attributes:
        radius: Current search radius (k-th collected distance, +inf until full)
        frontier: Nodes still to expand
    """

    def __init__(self, tree: MTree, query: Point, k: int):
        self.tree = tree
        self.query = query
        self.neighbors = NearestNeighbors(k)
        self.recorder = StepRecorder()
        self.radius = INF
        self.frontier: List[FrontierEntry] = []

    def _boundary(self):
        return circle(self.query, self.radius, DecisionKind.KNN_BOUNDARY)

    def run(self) -> Iterator[AlgorithmStep]:
        yield self.recorder.step(active=[self.query], circles=[self._boundary()], note="start")

        if self.tree.root is not None:
            self.frontier.append(FrontierEntry(self.tree.root, 0.0))

        while self.frontier:
            self.frontier.sort(key=lambda entry: entry.dmin)
            entry = self.frontier.pop(0)
            active = [self.query] + entry.node.points()
            yield self.recorder.step(active=active, circles=[self._boundary()], note="visit_node")

            if entry.node.is_leaf:
                yield from self._expand_leaf(entry)
            else:
                yield from self._expand_routing(entry)

        self.recorder.set_results(self.neighbors.points())
        yield self.recorder.step(active=[self.query], circles=[self._boundary()], note="finished")

    def _expand_routing(self, entry: FrontierEntry) -> Iterator[AlgorithmStep]:
        query = self.query
        for record in entry.node.records:
            lower_bound = _lower_bound(entry.parent_distance, record)
            if lower_bound is not None and lower_bound > self.radius + record.radius:
                self._eliminate_subtree(record.child)
                yield self.recorder.step(
                    active=[query, record.point],
                    circles=[
                        self._boundary(),
                        _region(record, DecisionKind.ELIMINATION),
                        circle(query, lower_bound, DecisionKind.LOWER_BOUND)
                    ],
                    note="prune_by_lower_bound"
                )
                continue

            yield self.recorder.step(
                active=[query, record.point],
                edges=[unknown_edge(query, record.point)],
                circles=[self._boundary(), _region(record)],
                note="select_routing_record"
            )
            distance = self.tree.distance_function(record.point, query)
            dmin = max(0.0, distance - record.radius)
            dmax = distance + record.radius
            edge = known_edge(query, record.point, distance)

            if dmin <= self.radius:
                self.frontier.append(FrontierEntry(record.child, dmin, record.point, distance))
                yield self.recorder.step(
                    active=[query, record.point],
                    edges=[edge],
                    circles=[self._boundary(), _region(record, DecisionKind.INCLUSION)],
                    note="enqueue_subtree"
                )
            else:
                self._eliminate_subtree(record.child)
                yield self.recorder.step(
                    active=[query, record.point],
                    edges=[edge],
                    circles=[self._boundary(), _region(record, DecisionKind.ELIMINATION)],
                    note="prune_subtree"
                )

            if dmax <= self.radius:
                yield from self._offer(record.point, dmax, note="admit_pivot", provisional=True)

    def _expand_leaf(self, entry: FrontierEntry) -> Iterator[AlgorithmStep]:
        query = self.query
        for record in entry.node.records:
            point = record.point
            lower_bound = _lower_bound(entry.parent_distance, record)
            if lower_bound is not None and lower_bound > self.radius:
                if not self.neighbors.contains(point.id):
                    self.recorder.eliminate(point)
                yield self.recorder.step(
                    active=[query, point],
                    circles=[self._boundary(), circle(query, lower_bound, DecisionKind.LOWER_BOUND)],
                    note="prune_by_lower_bound"
                )
                continue

            yield self.recorder.step(
                active=[query, point],
                edges=[unknown_edge(query, point)],
                circles=[self._boundary()],
                note="select_point"
            )
            distance = self.tree.distance_function(point, query)
            yield self.recorder.step(
                active=[query, point],
                edges=[known_edge(query, point, distance)],
                circles=[self._boundary()],
                note="compute_distance"
            )

            if distance <= self.radius:
                yield from self._offer(point, distance, note="include")
            elif not self.neighbors.contains(point.id):
                self.recorder.eliminate(point)
                yield self.recorder.step(
                    active=[query, point],
                    edges=[known_edge(query, point, distance, DecisionKind.ELIMINATION)],
                    circles=[self._boundary()],
                    note="eliminate"
                )

    def _offer(
        self,
        point: Point,
        distance: float,
        note: str,
        provisional: bool = False
    ) -> Iterator[AlgorithmStep]:
        """
        Try to admit a candidate; on success shrink the radius and prune the frontier.

        A provisional candidate (a routing pivot offered at its upper bound)
        is not eliminated when rejected, since its own leaf decides later.
        """
        before = {p.id: p for p in self.neighbors.points()}
        if not self.neighbors.add_with_check(point, distance):
            if not provisional and point.id not in before:
                self.recorder.eliminate(point)
            return

        after_ids = {p.id for p in self.neighbors.points()}
        self.recorder.eliminate(*[p for pid, p in before.items() if pid not in after_ids])
        self.recorder.set_results(self.neighbors.points())
        yield self.recorder.step(
            active=[self.query, point],
            edges=[known_edge(self.query, point, distance, DecisionKind.INCLUSION)],
            circles=[self._boundary()],
            note=note
        )

        new_radius = self.neighbors.furthest_distance
        if new_radius < self.radius:
            self.radius = new_radius
            yield from self._prune_frontier()

    def _prune_frontier(self) -> Iterator[AlgorithmStep]:
        kept = [entry for entry in self.frontier if entry.dmin <= self.radius]
        pruned = [entry for entry in self.frontier if entry.dmin > self.radius]
        if not pruned:
            return
        self.frontier = kept
        for entry in pruned:
            self._eliminate_subtree(entry.node)
        yield self.recorder.step(
            active=[self.query] + [e.parent_pivot for e in pruned if e.parent_pivot is not None],
            circles=[self._boundary()],
            note="prune_frontier"
        )

    def _eliminate_subtree(self, node: MTreeNode) -> None:
        points = [p for p in self.tree.all_points(node) if not self.neighbors.contains(p.id)]
        self.recorder.eliminate(*points)


def mtree_knn(tree: MTree, query: Point, k: int) -> Iterator[AlgorithmStep]:
    """Stepwise kNN search; the last step holds the k nearest points."""
    return MTreeKnnSearch(tree, query, k).run()


def mtree_range(tree: MTree, query: Point, radius: float) -> Iterator[AlgorithmStep]:
    """
    Stepwise range search.

    Args:
        tree: M-tree to search
        query: Query point
        radius: Search radius

    Yields:
        Algorithm steps; the last one holds every point within `radius`
    """
    recorder = StepRecorder()
    boundary = circle(query, radius, DecisionKind.RANGE_QUERY)

    def visit(node: MTreeNode, parent_distance: Optional[float]) -> Iterator[AlgorithmStep]:
        for record in node.records:
            point = record.point
            slack = 0.0 if node.is_leaf else record.radius
            lower_bound = _lower_bound(parent_distance, record)
            if lower_bound is not None and lower_bound > radius + slack:
                if node.is_leaf:
                    recorder.eliminate(point)
                    circles = [boundary, circle(query, lower_bound, DecisionKind.LOWER_BOUND)]
                else:
                    recorder.eliminate(*tree.all_points(record.child))
                    circles = [boundary, _region(record, DecisionKind.ELIMINATION),
                               circle(query, lower_bound, DecisionKind.LOWER_BOUND)]
                yield recorder.step(active=[query, point], circles=circles,
                                    note="prune_by_lower_bound")
                continue

            circles = [boundary] if node.is_leaf else [boundary, _region(record)]
            yield recorder.step(active=[query, point], edges=[unknown_edge(query, point)],
                                circles=circles, note="select_record")
            distance = tree.distance_function(point, query)

            if node.is_leaf:
                if distance <= radius:
                    recorder.include(point)
                    kind, note = DecisionKind.INCLUSION, "include"
                else:
                    recorder.eliminate(point)
                    kind, note = DecisionKind.ELIMINATION, "eliminate"
                yield recorder.step(active=[query, point],
                                    edges=[known_edge(query, point, distance, kind)],
                                    circles=[boundary], note=note)
            elif distance <= radius + record.radius:
                yield recorder.step(
                    active=[query, point],
                    edges=[known_edge(query, point, distance, DecisionKind.INCLUSION)],
                    circles=[boundary, _region(record, DecisionKind.INCLUSION)],
                    note="descend"
                )
                yield from visit(record.child, distance)
            else:
                recorder.eliminate(*tree.all_points(record.child))
                yield recorder.step(
                    active=[query, point],
                    edges=[known_edge(query, point, distance, DecisionKind.ELIMINATION)],
                    circles=[boundary, _region(record, DecisionKind.ELIMINATION)],
                    note="prune_subtree"
                )

    yield recorder.step(active=[query], circles=[boundary], note="start")
    if tree.root is not None:
        yield from visit(tree.root, None)
    yield recorder.step(active=[query], circles=[boundary], note="finished")
