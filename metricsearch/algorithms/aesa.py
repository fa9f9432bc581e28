"""
AESA: Approximating and Eliminating Search Algorithm

Works on a full pairwise distance cache. Each computed query distance
d(q, p) turns every cached d(o, p) into a lower bound |d(q, p) - d(o, p)|
on d(q, o); candidates whose bound exceeds the current search radius are
discarded without computing their distance to the query. The candidate
with the smallest bound becomes the next pivot.

Complexity:
- Insert: exactly n distance evaluations
- kNN / Range: O(n) scans per pivot, typically O(1) pivots in practice
- Space: O(n²) cached distances
"""

from typing import Dict, Iterator, List

import numpy as np

from ..data_models import AlgorithmStep, DecisionKind, Point
from ..geometry.distance_cache import DistanceCache
from ..point_store import PointStore
from .neighbors import NearestNeighbors
from .steps import (
    StepRecorder,
    circle,
    known_edge,
    pick_random,
    store_inserted_point,
    unknown_edge
)

INF = float('inf')


def insert_into_cache(
    store: PointStore,
    cache: DistanceCache,
    point: Point,
    targets: List[Point]
) -> Iterator[AlgorithmStep]:
    """
    Request d(point, t) for every target, then store the point as an object.

    Shared by AESA (targets = all points) and LAESA (targets = pivots).
    """
    recorder = StepRecorder()
    yield recorder.step(active=[point], note="start")

    for target in targets:
        yield recorder.step(
            active=[point, target],
            edges=[unknown_edge(point, target)],
            note="request_distance"
        )
        distance = cache.request(target, point)
        yield recorder.step(
            active=[point, target],
            edges=[known_edge(point, target, distance)],
            note="distance_stored"
        )

    store_inserted_point(store, point)
    recorder.set_results([point])
    yield recorder.step(active=[point], note="finished")


def aesa_insert(store: PointStore, cache: DistanceCache, point: Point) -> Iterator[AlgorithmStep]:
    """Insert `point`, filling its full row of the distance matrix."""
    targets = [p for p in store.get_data_points() if p.id != point.id]
    return insert_into_cache(store, cache, point, targets)


def _scan_candidates(
    recorder: StepRecorder,
    cache: DistanceCache,
    query: Point,
    pivot: Point,
    query_distance: float,
    remaining: Dict[int, Point],
    bound: float,
    bound_kind: DecisionKind,
    rng: np.random.Generator
):
    """
    Eliminate candidates through the new pivot and choose the next pivot.

    Generator; its return value is the next pivot or None.
    """
    next_pivot = None
    min_lower_bound = INF

    for candidate in list(remaining.values()):
        pivot_distance = cache.request(candidate, pivot)
        lower_bound = abs(query_distance - pivot_distance)
        edges = [
            known_edge(query, pivot, query_distance),
            known_edge(pivot, candidate, pivot_distance),
            unknown_edge(query, candidate)
        ]
        circles = [
            circle(query, bound, bound_kind),
            circle(query, lower_bound, DecisionKind.LOWER_BOUND)
        ]

        if lower_bound > bound:
            del remaining[candidate.id]
            recorder.eliminate(candidate)
            circles.append(circle(candidate, 0.0, DecisionKind.ELIMINATION))
            yield recorder.step(active=[query, pivot, candidate], edges=edges,
                                circles=circles, note="eliminate")
            continue

        if lower_bound < min_lower_bound:
            min_lower_bound = lower_bound
            next_pivot = candidate
        circles.append(circle(candidate, 0.0, DecisionKind.INCLUSION))
        yield recorder.step(active=[query, pivot, candidate], edges=edges,
                            circles=circles, note="keep_candidate")

    if next_pivot is None:
        next_pivot = pick_random(remaining, rng)
    return next_pivot


def aesa_knn(
    store: PointStore,
    cache: DistanceCache,
    query: Point,
    k: int,
    rng: np.random.Generator
) -> Iterator[AlgorithmStep]:
    """
    k-nearest neighbors by pivot chaining.

    Args:
        store: Point store (query excluded from candidates)
        cache: Distance cache holding all pairwise data distances
        query: Query point
        k: Number of neighbors
        rng: Random source for the first (and fallback) pivot

    Yields:
        Algorithm steps; the last one holds the k nearest points
    """
    recorder = StepRecorder()
    neighbors = NearestNeighbors(k)
    remaining = {p.id: p for p in store.get_data_points() if p.id != query.id}

    yield recorder.step(
        active=[query],
        circles=[circle(query, INF, DecisionKind.KNN_BOUNDARY)],
        note="start"
    )

    pivot = pick_random(remaining, rng)
    while pivot is not None:
        del remaining[pivot.id]
        yield recorder.step(
            active=[query, pivot],
            edges=[unknown_edge(query, pivot)],
            circles=[circle(query, neighbors.furthest_distance, DecisionKind.KNN_BOUNDARY)],
            note="select_pivot"
        )

        distance = cache.request(query, pivot)
        yield recorder.step(
            active=[query, pivot],
            edges=[known_edge(query, pivot, distance)],
            circles=[circle(query, neighbors.furthest_distance, DecisionKind.KNN_BOUNDARY)],
            note="compute_distance"
        )

        if not neighbors.is_full or distance < neighbors.furthest_distance:
            evicted = neighbors.add(pivot, distance)
            if evicted is not None:
                recorder.eliminate(evicted)
            recorder.set_results(neighbors.points())
            yield recorder.step(
                active=[query, pivot],
                edges=[known_edge(query, pivot, distance, DecisionKind.INCLUSION)],
                circles=[circle(query, neighbors.furthest_distance, DecisionKind.KNN_BOUNDARY)],
                note="include"
            )
        else:
            recorder.eliminate(pivot)
            yield recorder.step(
                active=[query, pivot],
                edges=[known_edge(query, pivot, distance, DecisionKind.ELIMINATION)],
                circles=[circle(query, neighbors.furthest_distance, DecisionKind.KNN_BOUNDARY)],
                note="eliminate"
            )

        pivot = yield from _scan_candidates(
            recorder, cache, query, pivot, distance, remaining,
            neighbors.furthest_distance, DecisionKind.KNN_BOUNDARY, rng
        )

    recorder.set_results(neighbors.points())
    yield recorder.step(
        active=[query],
        circles=[circle(query, neighbors.furthest_distance, DecisionKind.KNN_BOUNDARY)],
        note="finished"
    )


def aesa_range(
    store: PointStore,
    cache: DistanceCache,
    query: Point,
    radius: float,
    rng: np.random.Generator
) -> Iterator[AlgorithmStep]:
    """
    Range search by pivot chaining.

    Yields:
        Algorithm steps; the last one holds every point within `radius`
    """
    recorder = StepRecorder()
    remaining = {p.id: p for p in store.get_data_points() if p.id != query.id}
    boundary = circle(query, radius, DecisionKind.RANGE_QUERY)

    yield recorder.step(active=[query], circles=[boundary], note="start")

    pivot = pick_random(remaining, rng)
    while pivot is not None:
        del remaining[pivot.id]
        yield recorder.step(
            active=[query, pivot],
            edges=[unknown_edge(query, pivot)],
            circles=[boundary],
            note="select_pivot"
        )

        distance = cache.request(query, pivot)
        yield recorder.step(
            active=[query, pivot],
            edges=[known_edge(query, pivot, distance)],
            circles=[boundary],
            note="compute_distance"
        )

        if distance <= radius:
            recorder.include(pivot)
            yield recorder.step(
                active=[query, pivot],
                edges=[known_edge(query, pivot, distance, DecisionKind.INCLUSION)],
                circles=[boundary],
                note="include"
            )
        else:
            recorder.eliminate(pivot)
            yield recorder.step(
                active=[query, pivot],
                edges=[known_edge(query, pivot, distance, DecisionKind.ELIMINATION)],
                circles=[boundary],
                note="eliminate"
            )

        pivot = yield from _scan_candidates(
            recorder, cache, query, pivot, distance, remaining,
            radius, DecisionKind.RANGE_QUERY, rng
        )

    yield recorder.step(active=[query], circles=[boundary], note="finished")
