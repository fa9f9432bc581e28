"""Shared fixtures for the metric search test suite."""

import os
import sys
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from metricsearch.config import reset_runtime_config_cache
from metricsearch.synthetic_data import generate_point_store, store_from_coordinates

SQUARE = [(0.0, 0.0), (3.0, 0.0), (0.0, 4.0), (3.0, 4.0)]
SQUARE_QUERY = (4.0, 3.0)


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Every test sees the default configuration."""
    for name in list(os.environ):
        if name.startswith("METRICSEARCH_"):
            monkeypatch.delenv(name, raising=False)
    reset_runtime_config_cache()
    yield
    reset_runtime_config_cache()


@pytest.fixture
def square_store():
    """Four corners of a 3×4 rectangle with the query at (4, 3)."""
    return store_from_coordinates(SQUARE, query=SQUARE_QUERY)


@pytest.fixture
def square_store_with_pivots():
    return store_from_coordinates(SQUARE, query=SQUARE_QUERY, pivot_indices=[0, 3])


@pytest.fixture
def random_store():
    return generate_point_store(count=40, seed=7)


@pytest.fixture
def rng():
    return np.random.default_rng(42)
