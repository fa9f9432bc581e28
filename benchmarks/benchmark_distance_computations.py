#!/usr/bin/env python3
"""
Benchmark Script: Distance Computations per Query

Measures how many distance evaluations each index needs per query,
compared with the n evaluations of a brute-force scan:

1. AESA: full pairwise cache, O(n²) build
2. LAESA: pivot rows only, O(p·n) build
3. M-tree: bulk-loaded covering tree

Both kNN and range queries are run over several problem sizes and point
layouts; wall-clock time is reported alongside.

Usage:
    python benchmarks/benchmark_distance_computations.py
    python benchmarks/benchmark_distance_computations.py --sizes 100,200,400 --queries 20

Output:
    - Console table with mean distance counts and timings
    - Optional CSV file with detailed results
"""

import argparse
import csv
import sys
from pathlib import Path
from typing import Any, Dict, List

import numpy as np

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from metricsearch.data_models import AlgorithmType, MethodType
from metricsearch.geometry.distance import CountingDistance
from metricsearch.algorithms.runner import create_index, run
from metricsearch.synthetic_data import PointPattern, generate_point_store
from metricsearch.timing import BenchmarkResult, Timer, compute_speedup


def benchmark_method(
    method: MethodType,
    algorithm: AlgorithmType,
    size: int,
    pattern: PointPattern,
    queries: int,
    k: int,
    radius: float,
    num_pivots: int,
    capacity: int,
    seed: int
) -> BenchmarkResult:
    """
    Run `queries` random queries against one freshly built index.

    The index is built once; each run works on its own clone, so queries
    do not affect each other.
    """
    store = generate_point_store(
        size,
        num_pivots if method == MethodType.LAESA else 0,
        pattern,
        seed=seed
    )
    distance = CountingDistance()
    rng = np.random.default_rng(seed)
    with Timer(distance=distance) as build_timer:
        index = create_index(method, store, distance_function=distance,
                             node_capacity=capacity, rng=rng)

    result = BenchmarkResult(
        f"{method.value}-{algorithm.value}",
        metadata={
            'build_distances': build_timer.distance_calls,
            'build_ms': build_timer.elapsed_ms
        }
    )
    domain = float(max(max(p.x, p.y) for p in store.get_data_points()))
    for _ in range(queries):
        x, y = rng.uniform(0.0, domain, size=2)
        store.set_query(x, y)
        with Timer(distance=distance) as t:
            run(method, algorithm, store, index, store.get_query(),
                k=k, radius=radius, rng=rng).run_to_end()
        result.add_trial(t.elapsed_ms, t.distance_calls)
    return result


def run_benchmark_suite(args) -> List[Dict[str, Any]]:
    sizes = [int(s.strip()) for s in args.sizes.split(',')]
    patterns = [PointPattern(p.strip()) for p in args.patterns.split(',')]
    rows = []

    for pattern in patterns:
        for size in sizes:
            print(f"\nPattern: {pattern.value}, size: {size}")
            for algorithm in (AlgorithmType.KNN, AlgorithmType.RANGE):
                for method in MethodType:
                    result = benchmark_method(
                        method, algorithm, size, pattern, args.queries, args.k,
                        args.radius, args.pivots, args.capacity, args.seed + size
                    )
                    saving = compute_speedup(size, result.mean_distances)
                    rows.append({
                        'pattern': pattern.value,
                        'num_points': size,
                        'method': method.value,
                        'algorithm': algorithm.value,
                        'build_distances': result.metadata['build_distances'],
                        'mean_distances': result.mean_distances,
                        'saving_vs_brute': saving,
                        'mean_ms': result.mean_ms
                    })
                    print(f"  {result.summary()}  ({saving:.2f}× fewer than brute force)")
    return rows


def print_summary(rows: List[Dict[str, Any]]) -> None:
    print("\n" + "=" * 78)
    print("BENCHMARK SUMMARY")
    print("=" * 78)
    print(f"{'Pattern':<10} {'Size':>6} {'Method':<7} {'Alg':<6} "
          f"{'Build':>9} {'Dist/query':>11} {'Saving':>8} {'ms':>8}")
    print("-" * 78)
    for r in rows:
        print(f"{r['pattern']:<10} {r['num_points']:>6} {r['method']:<7} {r['algorithm']:<6} "
              f"{r['build_distances']:>9} {r['mean_distances']:>11.1f} "
              f"{r['saving_vs_brute']:>7.2f}× {r['mean_ms']:>8.2f}")
    print()


def main():
    parser = argparse.ArgumentParser(description='Distance-computation benchmark')
    parser.add_argument('--sizes', type=str, default='50,100,200',
                        help='Comma-separated problem sizes')
    parser.add_argument('--patterns', type=str, default='uniform,clustered',
                        help='Comma-separated point layouts')
    parser.add_argument('--queries', type=int, default=10, help='Queries per configuration')
    parser.add_argument('-k', type=int, default=3, help='kNN k')
    parser.add_argument('--radius', type=float, default=1.5, help='Range query radius')
    parser.add_argument('--pivots', type=int, default=4, help='LAESA pivot count')
    parser.add_argument('--capacity', type=int, default=4, help='M-tree node capacity')
    parser.add_argument('--seed', type=int, default=42, help='Random seed')
    parser.add_argument('--output', type=str, default=None,
                        help='Optional CSV output path')
    args = parser.parse_args()

    print("=" * 78)
    print("  DISTANCE COMPUTATIONS PER QUERY: AESA vs LAESA vs M-TREE")
    print("=" * 78)

    rows = run_benchmark_suite(args)
    print_summary(rows)

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=rows[0].keys())
            writer.writeheader()
            writer.writerows(rows)
        print(f"Results saved to: {output_path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
