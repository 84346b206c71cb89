"""Pytest fixtures for Sangam unit tests."""

import os
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

os.environ.setdefault("ENV", "test")
os.environ["EMBED_PROVIDER"] = "deterministic"
os.environ.setdefault("LLM_PROVIDER", "deterministic")

from apps.sangam.config import Settings
from apps.sangam.services.container import Services, build_services
from apps.sangam.services.embedding_provider import DeterministicEmbeddingProvider
from apps.sangam.services.llm_provider import DeterministicAnswerProvider
from apps.sangam.tests.fakes import InMemoryStore, StubExtractor

# Mirror: use shared marker from tests.conftest (single source of truth)
from tests.conftest import requires_db  # noqa: F401

BASE_TIME = datetime(2026, 10, 1, 9, 0, tzinfo=timezone.utc)


def at(minutes: int) -> datetime:
    return BASE_TIME + timedelta(minutes=minutes)


@pytest.fixture
def settings() -> Settings:
    return Settings(env="test", embed_retry_delay=0.0)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def extractor() -> StubExtractor:
    return StubExtractor()


@pytest.fixture
def services(settings, store, extractor) -> Services:
    """Fully wired services over in-memory collaborators. No network, no DB."""
    return build_services(
        settings,
        database=MagicMock(),
        store=store,
        embedding_provider=DeterministicEmbeddingProvider(dim=settings.embedding_dim),
        llm_provider=DeterministicAnswerProvider(),
        extractor=extractor,
    )
