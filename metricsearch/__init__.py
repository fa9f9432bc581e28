"""
Metric Space Search with AESA, LAESA and M-Tree

This package implements three metric indexes and their Insert, k-nearest
neighbor and range search algorithms. Every algorithm runs stepwise and
emits an immutable snapshot of its decisions after each step.

Main modules:
- point_store: Typed points (objects, pivots, query) and dataset generation
- geometry: Distance functions, the pairwise distance cache and the M-tree
- algorithms: Stepwise AESA, LAESA and M-tree algorithms and the run entry point
- playback: Step-by-step and timed playback of a run
- synthetic_data: Random and hand-specified point sets
- timing: Timing and distance-count benchmarking utilities
"""

__version__ = "1.0.0"
__author__ = "Course Project Team"
