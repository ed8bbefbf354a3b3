"""Test suite for the M statistics pipeline.

This package contains unit tests for the per-variant meta-regression,
the residual and study-level statistics, validation and configuration,
plus integration tests that run the whole pipeline and the CLI. To run
the tests, execute `pytest` from the project root.
"""
