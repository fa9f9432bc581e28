"""
Main Entry Point for Metric Space Search

Command-line interface that generates a synthetic point set, builds the
requested index and runs one algorithm step by step. It orchestrates:

1. Synthetic data generation (objects, pivots, query)
2. Index construction (distance cache or M-tree)
3. Stepwise execution of Insert, kNN or Range
4. Reporting of results, distance computations and tree statistics

Usage:
    # kNN with AESA
    python -m metricsearch.main --method aesa --algorithm knn -k 3 --seed 42

    # Range search on an M-tree, printing every step
    python -m metricsearch.main --method mtree --algorithm range --radius 2.5 --show-steps

    # Distance-computation benchmark against brute force
    python -m metricsearch.main --benchmark --sizes 50,100,200
"""

import argparse
import sys
from typing import List

import numpy as np

from .config import runtime_config
from .data_models import AlgorithmStep, AlgorithmType, MethodType
from .geometry.distance import CountingDistance, brute_force_knn, brute_force_range
from .geometry.mtree import MTree
from .algorithms.runner import AlgorithmRun, create_index, run
from .point_store import PointStore
from .synthetic_data import PointPattern, generate_point_store
from .timing import BenchmarkResult, Timer, compute_speedup


def print_header():
    """Print application header."""
    print("=" * 70)
    print("  METRIC SPACE SEARCH: AESA, LAESA AND M-TREE")
    print("  Stepwise Similarity Search with Triangle-Inequality Pruning")
    print("=" * 70)
    print()


def build_store(args, method: MethodType) -> PointStore:
    """
    Generate the dataset for a run.

    LAESA gets pivots; AESA and the M-tree use plain objects.
    """
    num_pivots = args.pivots if method == MethodType.LAESA else 0
    store = generate_point_store(
        count=args.count,
        num_pivots=num_pivots,
        pattern=PointPattern(args.pattern),
        seed=args.seed
    )
    if args.query_x is not None or args.query_y is not None:
        query = store.get_query()
        store.set_query(
            query.x if args.query_x is None else args.query_x,
            query.y if args.query_y is None else args.query_y
        )

    print("Generated Dataset:")
    print("-" * 40)
    print(f"  Objects: {len(store.get_objects())}")
    print(f"  Pivots: {len(store.get_pivots())}")
    query = store.get_query()
    print(f"  Query: ({query.x:.2f}, {query.y:.2f})")
    print(f"  Pattern: {args.pattern}")
    print(f"  Random seed: {args.seed}")
    print()
    return store


def format_step(step: AlgorithmStep) -> str:
    results = ", ".join(str(i) for i in step.result_ids) or "-"
    return (f"  [{step.step_index:>4}] {step.note:<24} "
            f"active={len(step.active_points):<3} "
            f"eliminated={len(step.eliminated_points):<3} results={results}")


def print_result(run_: AlgorithmRun, final: AlgorithmStep, distance_calls: int, elapsed_ms: float):
    print("Run Summary:")
    print("-" * 40)
    print(f"  Method: {run_.method.value}")
    print(f"  Algorithm: {run_.algorithm.value}")
    print(f"  Steps: {len(run_.history)}")
    print(f"  Distance computations: {distance_calls}")
    print(f"  Elapsed: {elapsed_ms:.2f} ms")
    print(f"  Eliminated points: {len(final.eliminated_points)}")
    print()
    print("Results:")
    for point in final.result_points:
        distance = np.hypot(point.x - run_.query.x, point.y - run_.query.y)
        print(f"  {point.label:<6} ({point.x:6.2f}, {point.y:6.2f})  d={distance:.4f}")
    print()


def print_tree_statistics(tree: MTree):
    stats = tree.statistics()
    print("M-Tree Statistics:")
    print("-" * 40)
    print(f"  Points: {stats['total_points']}")
    print(f"  Nodes: {stats['total_nodes']} "
          f"({stats['routing_nodes']} routing, {stats['leaf_nodes']} leaves)")
    print(f"  Height: {stats['height']}")
    print(f"  Average leaf fill: {stats['average_leaf_fill']:.1%}")
    violations = tree.validate()
    print(f"  Structural violations: {len(violations)}")
    print()


def verify_against_brute_force(args, algorithm: AlgorithmType, store: PointStore,
                               final: AlgorithmStep) -> bool:
    """Compare the final result set with the brute-force baseline."""
    query = store.get_query()
    candidates = [p for p in store.get_data_points() if p.id != query.id]
    if algorithm == AlgorithmType.KNN:
        expected = [d for _, d in brute_force_knn(candidates, query, args.k)]
        found = sorted(float(np.hypot(p.x - query.x, p.y - query.y))
                       for p in final.result_points)
        ok = len(found) == len(expected) and np.allclose(found, expected)
    elif algorithm == AlgorithmType.RANGE:
        expected_ids = {p.id for p, _ in brute_force_range(candidates, query, args.radius)}
        ok = expected_ids == set(final.result_ids)
    else:
        return True
    print(f"Brute-force check: {'PASSED' if ok else 'FAILED'}")
    print()
    return ok


def run_single(args) -> int:
    method = MethodType(args.method)
    algorithm = AlgorithmType(args.algorithm)
    store = build_store(args, method)

    distance = CountingDistance()
    index = create_index(method, store, distance_function=distance,
                         node_capacity=args.capacity,
                         rng=np.random.default_rng(args.seed))
    build_calls = distance.calls
    distance.reset()
    print(f"Index built with {build_calls} distance computations")
    print()

    algorithm_run = run(method, algorithm, store, index, store.get_query(),
                        k=args.k, radius=args.radius, seed=args.seed)
    with Timer(distance=distance) as t:
        if args.show_steps:
            print("Steps:")
            for step in algorithm_run:
                print(format_step(step))
            print()
        final = algorithm_run.run_to_end()

    print_result(algorithm_run, final, t.distance_calls, t.elapsed_ms)
    if method == MethodType.MTREE:
        print_tree_statistics(algorithm_run.index)

    ok = verify_against_brute_force(args, algorithm, store, final)
    return 0 if ok else 1


def run_benchmark(args) -> List[dict]:
    """Compare distance computations of each method against brute force."""
    print("Running Distance-Computation Benchmark...")
    print("-" * 40)
    sizes = [int(s.strip()) for s in args.sizes.split(',')]
    print(f"  Problem sizes: {sizes}")
    print(f"  Queries per size: {args.trials}")
    print()

    rows = []
    for size in sizes:
        row = {'num_points': size}
        for method in MethodType:
            num_pivots = args.pivots if method == MethodType.LAESA else 0
            store = generate_point_store(size, num_pivots, PointPattern(args.pattern),
                                         seed=args.seed + size)
            distance = CountingDistance()
            index = create_index(method, store, distance_function=distance,
                                 node_capacity=args.capacity,
                                 rng=np.random.default_rng(args.seed))
            result = BenchmarkResult(method.value, metadata={'build_distances': distance.calls})
            rng = np.random.default_rng(args.seed)
            for _ in range(args.trials):
                x, y = rng.uniform(0.0, runtime_config().domain_size, size=2)
                store.set_query(x, y)
                with Timer(distance=distance) as t:
                    run(method, AlgorithmType.KNN, store, index, store.get_query(),
                        k=args.k, rng=rng).run_to_end()
                result.add_trial(t.elapsed_ms, t.distance_calls)
            row[method.value] = result.mean_distances
            row[f'{method.value}_speedup'] = compute_speedup(size, result.mean_distances)
            print(f"  n={size:<6} {result.summary()}")
        rows.append(row)

    print("\n" + "=" * 70)
    print("BENCHMARK SUMMARY (mean distance computations per kNN query)")
    print("=" * 70)
    print(f"{'Size':>8} {'Brute':>8} {'AESA':>10} {'LAESA':>10} {'M-tree':>10}")
    print("-" * 70)
    for r in rows:
        print(f"{r['num_points']:>8} {r['num_points']:>8} {r['aesa']:>10.1f} "
              f"{r['laesa']:>10.1f} {r['mtree']:>10.1f}")
    print()
    return rows


def main(argv=None):
    """Main entry point."""
    cfg = runtime_config()
    parser = argparse.ArgumentParser(
        description='Stepwise metric space search with AESA, LAESA and M-tree',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m metricsearch.main --method aesa --algorithm knn -k 3 --seed 42
  python -m metricsearch.main --method laesa --algorithm range --radius 2.0 --pivots 3
  python -m metricsearch.main --method mtree --algorithm insert --show-steps
  python -m metricsearch.main --benchmark --sizes 50,100,200
        """
    )

    alg_group = parser.add_argument_group('Algorithm')
    alg_group.add_argument('--method', type=str, default='aesa',
                           choices=[m.value for m in MethodType],
                           help='Indexing method (default: aesa)')
    alg_group.add_argument('--algorithm', type=str, default='knn',
                           choices=[a.value for a in AlgorithmType],
                           help='Operation to run (default: knn)')
    alg_group.add_argument('-k', type=int, default=cfg.default_k,
                           help=f'Number of neighbors (default: {cfg.default_k})')
    alg_group.add_argument('--radius', type=float, default=cfg.default_radius,
                           help=f'Range query radius (default: {cfg.default_radius})')
    alg_group.add_argument('--capacity', type=int, default=cfg.node_capacity,
                           help=f'M-tree node capacity (default: {cfg.node_capacity})')

    gen_group = parser.add_argument_group('Data Generation')
    gen_group.add_argument('--count', type=int, default=cfg.point_count,
                           help=f'Number of objects (default: {cfg.point_count})')
    gen_group.add_argument('--pivots', type=int, default=cfg.pivot_count,
                           help=f'LAESA pivot count (default: {cfg.pivot_count})')
    gen_group.add_argument('--pattern', type=str, default='uniform',
                           choices=[p.value for p in PointPattern],
                           help='Point layout (default: uniform)')
    gen_group.add_argument('--seed', type=int,
                           default=cfg.seed if cfg.seed is not None else 42,
                           help='Random seed (default: 42)')
    gen_group.add_argument('--query-x', type=float, default=None, help='Query x coordinate')
    gen_group.add_argument('--query-y', type=float, default=None, help='Query y coordinate')

    bench_group = parser.add_argument_group('Benchmarking')
    bench_group.add_argument('--benchmark', '-b', action='store_true',
                             help='Compare distance computations against brute force')
    bench_group.add_argument('--sizes', type=str, default='50,100,200',
                             help='Comma-separated problem sizes (default: 50,100,200)')
    bench_group.add_argument('--trials', type=int, default=5,
                             help='Queries per size (default: 5)')

    out_group = parser.add_argument_group('Output')
    out_group.add_argument('--show-steps', action='store_true',
                           help='Print every algorithm step')
    out_group.add_argument('--quiet', '-q', action='store_true',
                           help='Skip the header')

    args = parser.parse_args(argv)

    if not args.quiet:
        print_header()

    if args.benchmark:
        run_benchmark(args)
        return 0

    return run_single(args)


if __name__ == "__main__":
    sys.exit(main())
