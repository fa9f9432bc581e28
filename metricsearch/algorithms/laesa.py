"""
LAESA: Linear AESA

Only distances between a small set of pivots and every other point are
cached. A search first measures the query against all pivots, then bounds
every other point by max_p |d(q, p) - d(o, p)| and visits candidates in
ascending bound order. For kNN the visit stops as soon as the k-th distance
is no larger than the next bound, since every later bound is larger still.

Complexity:
- Insert: |pivots| distance evaluations
- kNN / Range: |pivots| + (number of surviving candidates) evaluations,
  plus O(n log n) for sorting the bounds
- Space: O(|pivots| · n) cached distances
"""

from typing import Dict, Iterator, List, Tuple

from ..data_models import AlgorithmStep, DecisionKind, Point, PointType
from ..geometry.distance_cache import DistanceCache
from ..point_store import PointStore
from .aesa import insert_into_cache
from .neighbors import NearestNeighbors
from .steps import StepRecorder, circle, known_edge, unknown_edge


def laesa_insert(store: PointStore, cache: DistanceCache, point: Point) -> Iterator[AlgorithmStep]:
    """Insert `point`, computing its distance to the pivots only."""
    targets = [p for p in store.get_pivots() if p.id != point.id]
    return insert_into_cache(store, cache, point, targets)


def _split_points(store: PointStore, query: Point) -> Tuple[List[Point], List[Point]]:
    pivots = [p for p in store.get_pivots() if p.id != query.id]
    others = [
        p for p in store.get_data_points()
        if p.kind != PointType.PIVOT and p.id != query.id
    ]
    return pivots, others


def _lower_bounds(
    recorder: StepRecorder,
    cache: DistanceCache,
    query: Point,
    pivots: List[Point],
    pivot_distances: Dict[int, float],
    candidates: List[Point],
    boundary_kind: DecisionKind,
    boundary_radius: float,
    bounds: List[Tuple[Point, float]]
):
    """Fill `bounds` with (candidate, max-over-pivots lower bound), one step per candidate."""
    for candidate in candidates:
        lower_bound = 0.0
        edges = []
        for pivot in pivots:
            pivot_distance = cache.request(candidate, pivot)
            lower_bound = max(lower_bound, abs(pivot_distances[pivot.id] - pivot_distance))
            edges.append(known_edge(pivot, candidate, pivot_distance))
        edges.append(unknown_edge(query, candidate))
        bounds.append((candidate, lower_bound))
        yield recorder.step(
            active=[query, candidate],
            edges=edges,
            circles=[
                circle(query, boundary_radius, boundary_kind),
                circle(query, lower_bound, DecisionKind.LOWER_BOUND)
            ],
            note="lower_bound"
        )
    bounds.sort(key=lambda item: item[1])


def laesa_knn(
    store: PointStore,
    cache: DistanceCache,
    query: Point,
    k: int
) -> Iterator[AlgorithmStep]:
    """
    k-nearest neighbors in two phases (pivots, then bounded candidates).

    Args:
        store: Point store whose pivots were used to initialize the cache
        cache: Distance cache with pivot rows
        query: Query point
        k: Number of neighbors

    Yields:
        Algorithm steps; the last one holds the k nearest points
    """
    recorder = StepRecorder()
    neighbors = NearestNeighbors(k)
    pivots, candidates = _split_points(store, query)
    pivot_distances: Dict[int, float] = {}

    def boundary():
        return circle(query, neighbors.furthest_distance, DecisionKind.KNN_BOUNDARY)

    def admit(point: Point, distance: float):
        if not neighbors.is_full or distance < neighbors.furthest_distance:
            evicted = neighbors.add(point, distance)
            if evicted is not None:
                recorder.eliminate(evicted)
            recorder.set_results(neighbors.points())
            return recorder.step(
                active=[query, point],
                edges=[known_edge(query, point, distance, DecisionKind.INCLUSION)],
                circles=[boundary()],
                note="include"
            )
        recorder.eliminate(point)
        return recorder.step(
            active=[query, point],
            edges=[known_edge(query, point, distance, DecisionKind.ELIMINATION)],
            circles=[boundary()],
            note="eliminate"
        )

    yield recorder.step(active=[query], circles=[boundary()], note="start")

    # Phase 1: exact distances to the pivots
    for pivot in pivots:
        yield recorder.step(active=[query, pivot], edges=[unknown_edge(query, pivot)],
                            circles=[boundary()], note="select_pivot")
        distance = cache.request(query, pivot)
        pivot_distances[pivot.id] = distance
        yield recorder.step(active=[query, pivot], edges=[known_edge(query, pivot, distance)],
                            circles=[boundary()], note="compute_distance")
        yield admit(pivot, distance)

    # Phase 2: candidates in ascending lower-bound order
    bounds: List[Tuple[Point, float]] = []
    yield from _lower_bounds(recorder, cache, query, pivots, pivot_distances, candidates,
                             DecisionKind.KNN_BOUNDARY, neighbors.furthest_distance, bounds)

    for index, (candidate, lower_bound) in enumerate(bounds):
        if neighbors.is_full and neighbors.furthest_distance <= lower_bound:
            unreachable = [c for c, _ in bounds[index:]]
            recorder.eliminate(*unreachable)
            yield recorder.step(
                active=[query, candidate],
                circles=[boundary(), circle(query, lower_bound, DecisionKind.LOWER_BOUND)],
                note="terminate"
            )
            break

        yield recorder.step(
            active=[query, candidate],
            edges=[unknown_edge(query, candidate)],
            circles=[boundary(), circle(query, lower_bound, DecisionKind.LOWER_BOUND)],
            note="select_candidate"
        )
        distance = cache.request(query, candidate)
        yield recorder.step(
            active=[query, candidate],
            edges=[known_edge(query, candidate, distance)],
            circles=[boundary()],
            note="compute_distance"
        )
        yield admit(candidate, distance)

    recorder.set_results(neighbors.points())
    yield recorder.step(active=[query], circles=[boundary()], note="finished")


def laesa_range(
    store: PointStore,
    cache: DistanceCache,
    query: Point,
    radius: float
) -> Iterator[AlgorithmStep]:
    """
    Range search in two phases (pivots, then bounded candidates).

    A candidate's true distance is computed only when its bound is within
    the radius.

    Yields:
        Algorithm steps; the last one holds every point within `radius`
    """
    recorder = StepRecorder()
    pivots, candidates = _split_points(store, query)
    pivot_distances: Dict[int, float] = {}
    boundary = circle(query, radius, DecisionKind.RANGE_QUERY)

    def admit(point: Point, distance: float):
        if distance <= radius:
            recorder.include(point)
            kind, note = DecisionKind.INCLUSION, "include"
        else:
            recorder.eliminate(point)
            kind, note = DecisionKind.ELIMINATION, "eliminate"
        return recorder.step(
            active=[query, point],
            edges=[known_edge(query, point, distance, kind)],
            circles=[boundary],
            note=note
        )

    yield recorder.step(active=[query], circles=[boundary], note="start")

    for pivot in pivots:
        yield recorder.step(active=[query, pivot], edges=[unknown_edge(query, pivot)],
                            circles=[boundary], note="select_pivot")
        distance = cache.request(query, pivot)
        pivot_distances[pivot.id] = distance
        yield recorder.step(active=[query, pivot], edges=[known_edge(query, pivot, distance)],
                            circles=[boundary], note="compute_distance")
        yield admit(pivot, distance)

    bounds: List[Tuple[Point, float]] = []
    yield from _lower_bounds(recorder, cache, query, pivots, pivot_distances, candidates,
                             DecisionKind.RANGE_QUERY, radius, bounds)

    for candidate, lower_bound in bounds:
        bound_circle = circle(query, lower_bound, DecisionKind.LOWER_BOUND)
        if lower_bound > radius:
            recorder.eliminate(candidate)
            yield recorder.step(
                active=[query, candidate],
                edges=[unknown_edge(query, candidate)],
                circles=[boundary, bound_circle],
                note="eliminate"
            )
            continue

        yield recorder.step(
            active=[query, candidate],
            edges=[unknown_edge(query, candidate)],
            circles=[boundary, bound_circle],
            note="select_candidate"
        )
        distance = cache.request(query, candidate)
        yield recorder.step(
            active=[query, candidate],
            edges=[known_edge(query, candidate, distance)],
            circles=[boundary],
            note="compute_distance"
        )
        yield admit(candidate, distance)

    yield recorder.step(active=[query], circles=[boundary], note="finished")
