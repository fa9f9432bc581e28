"""
Algorithm Runner

Single entry point that maps a (method, algorithm) pair to its stepwise
implementation. Arguments are validated before any step is produced, and
the point store, index and query are deep-cloned so a run never touches
the caller's objects.

Example:
    >>> algorithm_run = run(MethodType.AESA, AlgorithmType.KNN, store, cache,
    ...                     store.get_query(), k=3, seed=42)
    >>> final = algorithm_run.run_to_end()
    >>> [p.id for p in final.result_points]
"""

from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Tuple, Union

import numpy as np

from ..config import runtime_config
from ..data_models import DEFAULT_POINT_ID, AlgorithmStep, AlgorithmType, MethodType, Point
from ..geometry.distance import DistanceFunction, euclidean_distance
from ..geometry.distance_cache import DistanceCache
from ..geometry.mtree import MTree
from ..logging import get_logger
from ..point_store import PointStore
from .aesa import aesa_insert, aesa_knn, aesa_range
from .laesa import laesa_insert, laesa_knn, laesa_range
from .mtree_insert import mtree_insert
from .mtree_search import mtree_knn, mtree_range

logger = get_logger("runner")

Index = Union[DistanceCache, MTree]


class UnsupportedCombinationError(ValueError):
    """Raised when a method does not implement the requested algorithm."""


@dataclass
class RunContext:
    """Cloned inputs of one run."""
    store: PointStore
    index: Index
    query: Point
    k: Optional[int]
    radius: Optional[float]
    rng: np.random.Generator


_ALGORITHMS: Dict[Tuple[MethodType, AlgorithmType], Callable[[RunContext], Iterator[AlgorithmStep]]] = {
    (MethodType.AESA, AlgorithmType.INSERT): lambda c: aesa_insert(c.store, c.index, c.query),
    (MethodType.AESA, AlgorithmType.KNN): lambda c: aesa_knn(c.store, c.index, c.query, c.k, c.rng),
    (MethodType.AESA, AlgorithmType.RANGE): lambda c: aesa_range(c.store, c.index, c.query, c.radius, c.rng),
    (MethodType.LAESA, AlgorithmType.INSERT): lambda c: laesa_insert(c.store, c.index, c.query),
    (MethodType.LAESA, AlgorithmType.KNN): lambda c: laesa_knn(c.store, c.index, c.query, c.k),
    (MethodType.LAESA, AlgorithmType.RANGE): lambda c: laesa_range(c.store, c.index, c.query, c.radius),
    (MethodType.MTREE, AlgorithmType.INSERT): lambda c: mtree_insert(c.store, c.index, c.query),
    (MethodType.MTREE, AlgorithmType.KNN): lambda c: mtree_knn(c.index, c.query, c.k),
    (MethodType.MTREE, AlgorithmType.RANGE): lambda c: mtree_range(c.index, c.query, c.radius),
}

_INDEX_TYPES = {
    MethodType.AESA: DistanceCache,
    MethodType.LAESA: DistanceCache,
    MethodType.MTREE: MTree,
}


def supported_combinations() -> List[Tuple[MethodType, AlgorithmType]]:
    return list(_ALGORITHMS.keys())


def _coerce(value, enum_type, label: str):
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(str(value).lower())
    except ValueError as exc:
        raise UnsupportedCombinationError(f"Unknown {label}: {value!r}") from exc


class AlgorithmRun:
    """
    Lazy, non-restartable sequence of steps for one run.

    Steps are produced only when requested via step() or iteration.
    Closing the run abandons the remaining steps.

    Attributes:
        method: Indexing method
        algorithm: Operation being run
        store: The run's private copy of the point store
        index: The run's private copy of the index
        query: The run's private copy of the query point
        history: Steps produced so far
        finished: True once the sequence is exhausted or closed
    """

    def __init__(
        self,
        method: MethodType,
        algorithm: AlgorithmType,
        steps: Iterator[AlgorithmStep],
        context: RunContext
    ):
        self.method = method
        self.algorithm = algorithm
        self.store = context.store
        self.index = context.index
        self.query = context.query
        self._steps = steps
        self.history: List[AlgorithmStep] = []
        self.finished = False

    def __iter__(self) -> "AlgorithmRun":
        return self

    def __next__(self) -> AlgorithmStep:
        step = self.step()
        if step is None:
            raise StopIteration
        return step

    def step(self) -> Optional[AlgorithmStep]:
        """Produce the next step, or None when the run is over."""
        if self.finished:
            return None
        try:
            step = next(self._steps)
        except StopIteration:
            self.finished = True
            logger.info(
                "%s %s finished after %d steps",
                self.method.value, self.algorithm.value, len(self.history)
            )
            return None
        self.history.append(step)
        return step

    def run_to_end(self) -> Optional[AlgorithmStep]:
        """Drain the sequence and return the terminal step."""
        for _ in self:
            pass
        return self.last_step

    def close(self) -> None:
        """Stop early; no further steps will be produced."""
        self._steps.close()
        self.finished = True

    @property
    def last_step(self) -> Optional[AlgorithmStep]:
        return self.history[-1] if self.history else None

    @property
    def result_points(self) -> List[Point]:
        """Result set of the most recent step."""
        step = self.last_step
        return list(step.result_points) if step is not None else []


def run(
    method: Union[MethodType, str],
    algorithm: Union[AlgorithmType, str],
    store: PointStore,
    index: Index,
    query: Point,
    k: Optional[int] = None,
    radius: Optional[float] = None,
    rng: Optional[np.random.Generator] = None,
    seed: Optional[int] = None
) -> AlgorithmRun:
    """
    Start a run of `algorithm` on `method`.

    Args:
        method: AESA, LAESA or MTREE
        algorithm: INSERT, KNN or RANGE
        store: Point store (not modified)
        index: DistanceCache for AESA/LAESA, MTree for MTREE (not modified)
        query: Query point, or the point to insert
        k: Number of neighbors (kNN only)
        radius: Search radius (Range only)
        rng: Random source for pivot choices; built from `seed` if omitted
        seed: Seed used when `rng` is omitted, defaults to the config seed

    Returns:
        An AlgorithmRun; no step has been produced yet

    Raises:
        UnsupportedCombinationError: Unknown pair or wrong index type
        ValueError: Missing or invalid k / radius
    """
    method = _coerce(method, MethodType, "method")
    algorithm = _coerce(algorithm, AlgorithmType, "algorithm")

    factory = _ALGORITHMS.get((method, algorithm))
    if factory is None:
        raise UnsupportedCombinationError(
            f"Unsupported algorithm type: {algorithm.value} for method {method.value}"
        )
    expected = _INDEX_TYPES[method]
    if not isinstance(index, expected):
        raise UnsupportedCombinationError(
            f"Method {method.value} requires a {expected.__name__} index, got {type(index).__name__}"
        )
    if algorithm == AlgorithmType.KNN and (k is None or k < 1):
        raise ValueError(f"kNN requires k >= 1, got {k}")
    if algorithm == AlgorithmType.RANGE and (radius is None or radius < 0):
        raise ValueError(f"Range search requires radius >= 0, got {radius}")

    if rng is None:
        rng = np.random.default_rng(seed if seed is not None else runtime_config().seed)

    store_copy = store.clone()
    index_copy = index.clone()
    query_copy = query.clone()
    if query_copy.id == DEFAULT_POINT_ID:
        query_copy.id = store_copy.get_new_id()
    elif query_copy.id in store_copy:
        store_copy.update_point(query_copy)

    context = RunContext(store_copy, index_copy, query_copy, k, radius, rng)
    logger.info(
        "Starting %s %s (k=%s, radius=%s, %d points)",
        method.value, algorithm.value, k, radius, len(store_copy)
    )
    return AlgorithmRun(method, algorithm, factory(context), context)


def create_index(
    method: Union[MethodType, str],
    store: PointStore,
    distance_function: DistanceFunction = euclidean_distance,
    node_capacity: Optional[int] = None,
    rng: Optional[np.random.Generator] = None
) -> Index:
    """
    Build and initialize the index a method runs on.

    AESA and LAESA share DistanceCache, which covers all pairs when the
    store has no pivots and pivot rows otherwise.
    """
    method = _coerce(method, MethodType, "method")
    if method == MethodType.MTREE:
        tree = MTree(distance_function, node_capacity, rng)
        tree.initialize(store)
        return tree
    cache = DistanceCache(distance_function)
    cache.initialize(store)
    return cache
