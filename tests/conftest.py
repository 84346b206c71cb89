"""Pytest fixtures for root-level tests (store integration, tenant isolation)."""

import os

import pytest

os.environ.setdefault("ENV", "test")
os.environ.setdefault("PYTEST_RUNNING", "1")
os.environ.setdefault("EMBED_PROVIDER", "deterministic")

from tests._db_bootstrap import postgres_reachable  # noqa: E402

# Marker for DB tests: skip if DATABASE_TEST_URL not set or Postgres not reachable
requires_db = pytest.mark.skipif(
    not postgres_reachable(os.environ.get("DATABASE_TEST_URL")),
    reason="DATABASE_TEST_URL not set or Postgres not reachable",
)
