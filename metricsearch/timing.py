"""
Timing and Benchmarking Utilities

Measures wall-clock time and distance-function calls of search runs, the
two costs the indexes trade against each other.

Features:
- Timer context manager for easy timing
- Benchmark result container holding timings and distance counts
- Speedup and distance-saving ratios

Example:
    >>> with Timer("AESA kNN", distance=counter) as t:
    ...     run.run_to_end()
    >>> print(f"Took {t.elapsed_ms:.2f} ms, {t.distance_calls} distances")
"""

import statistics
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .geometry.distance import CountingDistance


class Timer:
    """
    Context manager measuring a block's wall-clock time and, optionally,
    the distance evaluations made inside it.

    Attributes:
        name: Optional label printed when verbose
        distance: Optional CountingDistance observed during the block
        elapsed: Elapsed time in seconds
        distance_calls: Distance evaluations made inside the block
    """

    def __init__(
        self,
        name: Optional[str] = None,
        verbose: bool = False,
        distance: Optional[CountingDistance] = None
    ):
        self.name = name
        self.verbose = verbose
        self.distance = distance
        self._start: float = 0
        self._start_calls = 0
        self.elapsed: float = 0
        self.distance_calls = 0

    def __enter__(self) -> 'Timer':
        if self.distance is not None:
            self._start_calls = self.distance.calls
        self._start = time.perf_counter()
        return self

    def __exit__(self, *args) -> None:
        self.elapsed = time.perf_counter() - self._start
        if self.distance is not None:
            self.distance_calls = self.distance.calls - self._start_calls
        if self.verbose and self.name:
            print(f"{self.name}: {self.elapsed_ms:.2f} ms, {self.distance_calls} distances")

    @property
    def elapsed_ms(self) -> float:
        return self.elapsed * 1000


def compute_speedup(baseline: float, optimized: float) -> float:
    """
    Ratio baseline / optimized.

    Works for times and for distance counts alike. A value > 1 means the
    optimized variant is cheaper.

    Example:
        >>> compute_speedup(100.0, 25.0)
        4.0
    """
    if optimized <= 0:
        return float('inf')
    return baseline / optimized


@dataclass
class BenchmarkResult:
    """
    Container for benchmark results.

    Attributes:
        name: Name of the benchmarked operation
        times_ms: Timing results in milliseconds, one per trial
        distance_counts: Distance evaluations, one per trial
        metadata: Optional additional information
    """
    name: str
    times_ms: List[float] = field(default_factory=list)
    distance_counts: List[int] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def add_trial(self, time_ms: float, distance_count: Optional[int] = None) -> None:
        self.times_ms.append(time_ms)
        if distance_count is not None:
            self.distance_counts.append(distance_count)

    @property
    def mean_ms(self) -> float:
        if not self.times_ms:
            return 0.0
        return statistics.mean(self.times_ms)

    @property
    def std_ms(self) -> float:
        if len(self.times_ms) < 2:
            return 0.0
        return statistics.stdev(self.times_ms)

    @property
    def mean_distances(self) -> float:
        """Mean number of distance evaluations per trial."""
        if not self.distance_counts:
            return 0.0
        return statistics.mean(self.distance_counts)

    @property
    def num_trials(self) -> int:
        return len(self.times_ms)

    def summary(self) -> str:
        return (f"{self.name}: {self.mean_ms:.2f} ± {self.std_ms:.2f} ms, "
                f"{self.mean_distances:.1f} distances (n={self.num_trials})")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'mean_ms': self.mean_ms,
            'std_ms': self.std_ms,
            'mean_distances': self.mean_distances,
            'num_trials': self.num_trials,
            'metadata': self.metadata
        }
