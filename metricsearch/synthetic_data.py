"""
Synthetic Point Set Generator

All datasets are created programmatically. There is NO external dataset.

Key Features:
- Uniform, clustered and grid point layouts in a square domain
- Random pivot designation for LAESA
- Hand-specified point sets from coordinate lists
- Reproducible results via seeded numpy Generators

Example Usage:
    >>> from metricsearch.synthetic_data import generate_point_store
    >>> store = generate_point_store(count=15, num_pivots=2, seed=42)
    >>> len(store.get_pivots())
    2
"""

from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .config import runtime_config
from .data_models import PointType
from .point_store import PointStore


class PointPattern(Enum):
    """Spatial layouts for generated points."""
    UNIFORM = "uniform"       # Independent uniform samples
    CLUSTERED = "clustered"   # Gaussian blobs around random centers
    GRID = "grid"             # Jittered regular grid


def _generate_coordinates(
    count: int,
    pattern: PointPattern,
    domain_size: float,
    rng: np.random.Generator,
    num_clusters: int
) -> np.ndarray:
    if pattern == PointPattern.UNIFORM:
        return rng.uniform(0.0, domain_size, size=(count, 2))

    if pattern == PointPattern.CLUSTERED:
        num_clusters = max(1, min(num_clusters, count))
        centers = rng.uniform(0.15 * domain_size, 0.85 * domain_size, size=(num_clusters, 2))
        labels = rng.integers(num_clusters, size=count)
        coords = centers[labels] + rng.normal(0.0, 0.06 * domain_size, size=(count, 2))
        return np.clip(coords, 0.0, domain_size)

    if pattern == PointPattern.GRID:
        side = int(np.ceil(np.sqrt(count)))
        spacing = domain_size / side
        cells = np.arange(count)
        coords = np.column_stack([cells % side, cells // side]).astype(np.float64)
        coords = (coords + 0.5) * spacing
        coords += rng.uniform(-0.1 * spacing, 0.1 * spacing, size=(count, 2))
        return coords

    raise ValueError(f"Unknown point pattern: {pattern}")


def generate_point_store(
    count: Optional[int] = None,
    num_pivots: int = 0,
    pattern: PointPattern = PointPattern.UNIFORM,
    domain_size: Optional[float] = None,
    seed: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
    num_clusters: int = 3
) -> PointStore:
    """
    Generate a store of random objects plus the query point.

    Args:
        count: Number of objects, defaults to the config point count
        num_pivots: Number of objects promoted to pivots
        pattern: Spatial layout
        domain_size: Side of the square domain, defaults to the config value
        seed: Seed used when `rng` is omitted
        rng: Random source
        num_clusters: Cluster count for the CLUSTERED pattern

    Returns:
        PointStore with `count` data points and one query point

    Complexity:
        Time: O(count)
    """
    cfg = runtime_config()
    if count is None:
        count = cfg.point_count
    if count < 0:
        raise ValueError(f"Point count must be non-negative, got {count}")
    if domain_size is None:
        domain_size = cfg.domain_size
    if rng is None:
        rng = np.random.default_rng(seed)

    store = PointStore()
    if pattern == PointPattern.UNIFORM:
        store.generate_points(count, rng, domain_size)
    else:
        coords = _generate_coordinates(count, pattern, domain_size, rng, num_clusters)
        for x, y in coords:
            store.create_point(PointType.OBJECT, x, y)
        store.get_query()

    if num_pivots > 0:
        store.designate_random_pivots(num_pivots, rng)
    return store


def store_from_coordinates(
    coordinates: Iterable[Sequence[float]],
    query: Optional[Tuple[float, float]] = None,
    pivot_indices: Iterable[int] = ()
) -> PointStore:
    """
    Build a store from explicit coordinates.

    Objects get ids 0..n-1 in input order; the query (if given) gets id n.

    Args:
        coordinates: (x, y) pairs
        query: Optional query position
        pivot_indices: Positions in `coordinates` to designate as pivots

    Example:
        >>> store = store_from_coordinates([(0, 0), (3, 4)], query=(1, 1))
        >>> store.get_query().id
        2
    """
    store = PointStore()
    created = [store.create_point(PointType.OBJECT, x, y) for x, y in coordinates]
    if query is not None:
        store.create_point(PointType.QUERY, query[0], query[1])
    store.set_pivots(created[i].id for i in pivot_indices)
    return store


def generate_benchmark_stores(
    sizes: List[int],
    num_pivots: int = 0,
    pattern: PointPattern = PointPattern.UNIFORM,
    base_seed: int = 42
) -> List[PointStore]:
    """One store per size, each seeded with base_seed + size."""
    return [
        generate_point_store(size, num_pivots, pattern, seed=base_seed + size)
        for size in sizes
    ]
