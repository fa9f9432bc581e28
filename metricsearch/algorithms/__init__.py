"""
Stepwise Search Algorithms

Insert, kNN and Range for each indexing method, written as generators of
AlgorithmStep snapshots, plus the run entry point that dispatches on
(method, algorithm) and isolates each run from its inputs.
"""

from .neighbors import NearestNeighbors
from .aesa import aesa_insert, aesa_knn, aesa_range
from .laesa import laesa_insert, laesa_knn, laesa_range
from .mtree_insert import mtree_insert
from .mtree_search import mtree_knn, mtree_range
from .runner import (
    AlgorithmRun,
    UnsupportedCombinationError,
    create_index,
    run,
    supported_combinations
)

__all__ = [
    'NearestNeighbors',
    'aesa_insert',
    'aesa_knn',
    'aesa_range',
    'laesa_insert',
    'laesa_knn',
    'laesa_range',
    'mtree_insert',
    'mtree_knn',
    'mtree_range',
    'AlgorithmRun',
    'UnsupportedCombinationError',
    'create_index',
    'run',
    'supported_combinations'
]
