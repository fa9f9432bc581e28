"""
Tests for Runtime Configuration and Logging

Test Categories:
1. Defaults
2. Environment overrides and validation
3. Caching
4. Logger configuration

Run with: pytest tests/test_config.py -v
"""

import logging

import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from metricsearch.config import RuntimeConfig, reset_runtime_config_cache, runtime_config
from metricsearch.logging import get_logger


def config_with(monkeypatch, **env):
    for name, value in env.items():
        monkeypatch.setenv(f"METRICSEARCH_{name}", value)
    reset_runtime_config_cache()
    return runtime_config()


class TestDefaults:
    """Tests for the built-in defaults."""

    def test_default_values(self):
        cfg = runtime_config()
        assert cfg.log_level == "WARNING"
        assert cfg.node_capacity == 4
        assert cfg.default_k == 3
        assert cfg.default_radius == 2.0
        assert cfg.domain_size == 10.0
        assert cfg.seed is None
        assert (cfg.query_x, cfg.query_y) == (5.0, 5.0)

    def test_frozen(self):
        """Test that the configuration cannot be mutated."""
        cfg = runtime_config()
        with pytest.raises(Exception):
            cfg.node_capacity = 8

    def test_log_level_value(self):
        assert RuntimeConfig(log_level="DEBUG").log_level_value == logging.DEBUG


class TestEnvironmentOverrides:
    """Tests for METRICSEARCH_* variables."""

    def test_integer_and_float_overrides(self, monkeypatch):
        cfg = config_with(monkeypatch, NODE_CAPACITY="6", DEFAULT_K="5",
                          DEFAULT_RADIUS="1.5", SEED="123")
        assert cfg.node_capacity == 6
        assert cfg.default_k == 5
        assert cfg.default_radius == 1.5
        assert cfg.seed == 123

    def test_query_follows_domain(self, monkeypatch):
        """Test that the default query sits at the centre of the domain."""
        cfg = config_with(monkeypatch, DOMAIN_SIZE="20")
        assert (cfg.query_x, cfg.query_y) == (10.0, 10.0)

    def test_blank_value_uses_default(self, monkeypatch):
        cfg = config_with(monkeypatch, NODE_CAPACITY="  ", SEED="")
        assert cfg.node_capacity == 4
        assert cfg.seed is None

    def test_invalid_integer(self, monkeypatch):
        """Test that a non-numeric value is rejected."""
        with pytest.raises(ValueError):
            config_with(monkeypatch, POINT_COUNT="many")

    def test_invalid_float(self, monkeypatch):
        with pytest.raises(ValueError):
            config_with(monkeypatch, PLAYBACK_DELAY="fast")

    def test_capacity_below_two(self, monkeypatch):
        """Test that a node capacity below 2 is rejected."""
        with pytest.raises(ValueError):
            config_with(monkeypatch, NODE_CAPACITY="1")

    def test_log_level_normalised(self, monkeypatch):
        cfg = config_with(monkeypatch, LOG_LEVEL=" debug ")
        assert cfg.log_level == "DEBUG"

    def test_invalid_log_level(self, monkeypatch):
        with pytest.raises(ValueError):
            config_with(monkeypatch, LOG_LEVEL="chatty")


class TestCaching:
    """Tests for the cached accessor."""

    def test_cached_instance(self):
        assert runtime_config() is runtime_config()

    def test_reset_rereads_environment(self, monkeypatch):
        """Test that the environment is read again only after a reset."""
        before = runtime_config()
        monkeypatch.setenv("METRICSEARCH_DEFAULT_K", "9")
        assert runtime_config().default_k == before.default_k
        reset_runtime_config_cache()
        assert runtime_config().default_k == 9


class TestLogging:
    """Tests for logger configuration."""

    def test_logger_names(self):
        assert get_logger().name == "metricsearch"
        assert get_logger("mtree").name == "metricsearch.mtree"

    def test_logger_level_from_config(self, monkeypatch):
        """Test that loggers take the configured level."""
        config_with(monkeypatch, LOG_LEVEL="INFO")
        assert get_logger("runner").level == logging.INFO
