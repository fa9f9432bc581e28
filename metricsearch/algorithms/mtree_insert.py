"""
M-Tree Insertion (stepwise)

Descends from the root choosing, at each routing node, the closest region
that already covers the new point, or else the region needing the smallest
radius enlargement. At the leaf the point is stored directly or the leaf is
split, with splits propagating upward as far as needed.
"""

from typing import Iterator, List

from ..data_models import AlgorithmStep, DecisionKind, Point
from ..geometry.mtree import DataRecord, MTree, PathEntry
from ..point_store import PointStore
from .steps import StepRecorder, circle, known_edge, store_inserted_point, unknown_edge


def _node_regions(node) -> list:
    return [circle(r.point, r.radius, DecisionKind.TREE_REGION) for r in node.records]


def mtree_insert(store: PointStore, tree: MTree, point: Point) -> Iterator[AlgorithmStep]:
    """
    Insert `point` into the tree and the store.

    Args:
        store: Point store receiving the point as an object
        tree: M-tree to insert into
        point: New point (typically the current query point)

    Yields:
        Algorithm steps; the last one holds the inserted point as result
    """
    recorder = StepRecorder()
    all_regions = [circle(c, r, DecisionKind.TREE_REGION) for c, r, _ in tree.regions()]
    yield recorder.step(active=[point], circles=all_regions, note="start")

    if tree.root is None:
        tree.insert(point)
        yield recorder.step(active=[point], note="create_root")
    else:
        node = tree.root
        path: List[PathEntry] = []
        parent_distance = 0.0

        while not node.is_leaf:
            yield recorder.step(
                active=[point] + node.points(),
                edges=[unknown_edge(point, r.point) for r in node.records],
                circles=_node_regions(node),
                note="visit_node"
            )
            choice = tree.choose_subtree(node, point)
            edges = [
                known_edge(point, r.point, d) for r, d in zip(node.records, choice.distances)
            ]
            chosen = choice.record
            circles = [circle(chosen.point, chosen.radius, DecisionKind.INCLUSION)]
            if choice.enlarged:
                circles.insert(0, circle(chosen.point, choice.previous_radius,
                                         DecisionKind.TREE_REGION))
            yield recorder.step(
                active=[point, chosen.point],
                edges=edges,
                circles=circles,
                note="choose_subtree" if choice.covered else "enlarge_radius"
            )
            path.append((node, chosen))
            parent_distance = choice.distance
            node = chosen.child

        yield recorder.step(active=[point] + node.points(), note="reach_leaf")

        full = node.is_full
        outcomes = tree.place(node, path, DataRecord(point, parent_distance))
        if not full:
            yield recorder.step(active=[point] + node.points(), note="store_in_leaf")

        for outcome in outcomes:
            yield recorder.step(
                active=[outcome.pivot1, outcome.pivot2],
                edges=[known_edge(outcome.pivot1, outcome.pivot2, outcome.pivot_distance)],
                circles=[
                    circle(outcome.pivot1, outcome.radius1, DecisionKind.TREE_REGION),
                    circle(outcome.pivot2, outcome.radius2, DecisionKind.TREE_REGION)
                ],
                note="new_root" if outcome.new_root else "split_node"
            )

    store_inserted_point(store, point)
    recorder.set_results([point])
    all_regions = [circle(c, r, DecisionKind.TREE_REGION) for c, r, _ in tree.regions()]
    yield recorder.step(active=[point], circles=all_regions, note="finished")
