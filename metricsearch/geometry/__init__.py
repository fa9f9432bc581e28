"""
Geometry Module for Metric Space Search

This module provides the metric structures the search algorithms run on:
- Euclidean distance, a call-counting wrapper and brute-force baselines
- A symmetric cache of computed pairwise distances (AESA / LAESA)
- The M-tree covering tree with bulk loading and split-based insertion
"""

from .distance import (
    CountingDistance,
    DistanceFunction,
    brute_force_knn,
    brute_force_range,
    euclidean_distance
)
from .distance_cache import UNKNOWN_DISTANCE, DistanceCache
from .mtree import MTree, MTreeNode, DataRecord, RoutingRecord, SplitOutcome

__all__ = [
    'CountingDistance',
    'DistanceFunction',
    'brute_force_knn',
    'brute_force_range',
    'euclidean_distance',
    'UNKNOWN_DISTANCE',
    'DistanceCache',
    'MTree',
    'MTreeNode',
    'DataRecord',
    'RoutingRecord',
    'SplitOutcome'
]
