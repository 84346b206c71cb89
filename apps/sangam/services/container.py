"""Service wiring. Components are built once per process and injected explicitly.

Routes depend on get_sangam_service (overridable via app.dependency_overrides);
tests call reset_services() or build_services() with fakes.
"""

import logging
from dataclasses import dataclass

from apps.sangam.config import Settings, load_settings
from apps.sangam.db import Database, get_database
from apps.sangam.services.embedding_provider import EmbeddingProvider, create_embedding_provider
from apps.sangam.services.embeddings import EmbeddingService
from apps.sangam.services.extract import ContentExtractor
from apps.sangam.services.llm_provider import LLMProvider, create_llm_provider
from apps.sangam.services.repo import VectorStoreGateway
from apps.sangam.services.sangam import SangamService
from apps.sangam.services.synthesis import SynthesisEngine

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    database: Database
    store: VectorStoreGateway
    embeddings: EmbeddingService
    synthesis: SynthesisEngine
    sangam: SangamService


def build_services(
    settings: Settings | None = None,
    *,
    database: Database | None = None,
    store: VectorStoreGateway | None = None,
    embedding_provider: EmbeddingProvider | None = None,
    llm_provider: LLMProvider | None = None,
    extractor: ContentExtractor | None = None,
) -> Services:
    """Wire every component. Any collaborator can be supplied to replace the default."""
    settings = settings or load_settings()
    database = database or get_database()
    store = store or VectorStoreGateway(database, settings.embedding_dim)
    embeddings = EmbeddingService(
        embedding_provider or create_embedding_provider(settings),
        store,
        extractor or ContentExtractor(settings.attachment_fetch_timeout),
        settings,
    )
    synthesis = SynthesisEngine(llm_provider or create_llm_provider(settings), settings.max_context_length)
    sangam = SangamService(embeddings, store, synthesis, settings)
    return Services(
        settings=settings,
        database=database,
        store=store,
        embeddings=embeddings,
        synthesis=synthesis,
        sangam=sangam,
    )


_services: Services | None = None


def get_services() -> Services:
    global _services
    if _services is None:
        _services = build_services()
        logger.info("services initialised env=%s", _services.settings.env or "default")
    return _services


def reset_services(services: Services | None = None) -> None:
    """Drop (or replace) the process-wide Services. Next get_services() rebuilds from settings."""
    global _services
    _services = services


def get_sangam_service() -> SangamService:
    """FastAPI dependency."""
    return get_services().sangam
