"""
Test Suite for Metric Space Search

This package contains unit tests and integration tests for:
- Point store, distance cache and M-tree structure
- Stepwise AESA, LAESA and M-tree algorithms against brute force
- Run isolation, determinism and playback

Run tests with: pytest -v
"""
