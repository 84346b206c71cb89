"""Sangam orchestrator: question -> query embedding -> retrieval -> synthesis -> envelope.

SangamService is the single error boundary: every public operation returns a
SangamResponse, with success=False and a readable error instead of raising.
Validation runs before any network call.
"""

import logging
import math
import time
from enum import Enum

from apps.sangam.config import Settings
from apps.sangam.errors import ValidationError
from apps.sangam.schemas.responses import ConfigurationReport, SangamResponse, ServiceHealth, StatsResponse
from apps.sangam.schemas.sangam import EmbeddingMatch, InfoType, IngestionResult
from apps.sangam.services.embeddings import EmbeddingService
from apps.sangam.services.repo import VectorStoreGateway
from apps.sangam.services.synthesis import SynthesisEngine
from apps.sangam.services.tenant_guard import require_tenant_id

logger = logging.getLogger(__name__)

INSUFFICIENT_CONTEXT_ANSWER = (
    "I don't have enough relevant context to answer your question. There may not be enough "
    "conversations in your community yet, or the question might be about topics that haven't "
    "been discussed recently."
)
NO_RECENT_ANSWER = "No recent conversations found to summarize."
NO_DOCUMENTS_ANSWER = "No relevant documents found for your query."

EXTRACTION_THRESHOLD = 0.3
DOCUMENT_THRESHOLD = 0.3
DOCUMENT_CONTENT_TYPES = ("document", "mixed")

SEARCH_PHRASES: dict[InfoType, tuple[str, ...]] = {
    InfoType.DECISIONS: (
        "decision made",
        "we decided",
        "agreed to",
        "concluded that",
        "final decision",
        "voted on",
        "approved",
    ),
    InfoType.DEADLINES: (
        "deadline",
        "due date",
        "by when",
        "schedule",
        "timeline",
        "meeting time",
        "event date",
        "deadline is",
    ),
    InfoType.DOCUMENTS: (
        "document shared",
        "file uploaded",
        "attachment",
        "PDF",
        "spreadsheet",
        "presentation",
        "report",
        "link to",
    ),
    InfoType.ACTION_ITEMS: (
        "action item",
        "todo",
        "task assigned",
        "need to do",
        "follow up",
        "next steps",
        "responsibility",
        "will handle",
    ),
}


class QueryStage(str, Enum):
    RECEIVE = "receive"
    EMBED_QUERY = "embed_query"
    RETRIEVE = "retrieve"
    SYNTHESIZE = "synthesize"


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class SangamService:
    """Facade over EmbeddingService, VectorStoreGateway and SynthesisEngine."""

    def __init__(
        self,
        embeddings: EmbeddingService,
        store: VectorStoreGateway,
        synthesis: SynthesisEngine,
        settings: Settings,
    ) -> None:
        self.embeddings = embeddings
        self.store = store
        self.synthesis = synthesis
        self.settings = settings

    def _failed(self, op: str, stage: QueryStage, tenant_id: str | None, e: Exception, started: float) -> SangamResponse:
        if isinstance(e, ValidationError):
            logger.info("%s: rejected stage=%s tenant_id=%s err=%s", op, stage.value, tenant_id, e)
        else:
            logger.error("%s: failed stage=%s tenant_id=%s err=%s", op, stage.value, tenant_id, e, exc_info=True)
        return SangamResponse(
            success=False,
            error=str(e) or "Unknown error occurred",
            processing_time=_elapsed_ms(started),
        )

    def _succeeded(self, answer: str, sources: list[EmbeddingMatch], started: float) -> SangamResponse:
        return SangamResponse(success=True, answer=answer, sources=sources, processing_time=_elapsed_ms(started))

    def process_query(
        self,
        tenant_id: str | None,
        question: str | None,
        max_results: int | None = None,
        similarity_threshold: float | None = None,
    ) -> SangamResponse:
        started = time.monotonic()
        stage = QueryStage.RECEIVE
        try:
            if not tenant_id or not str(tenant_id).strip() or not question or not question.strip():
                raise ValidationError("Tenant ID and question are required")
            tenant_id = str(tenant_id).strip()
            limit = max_results or self.settings.max_results
            threshold = (
                similarity_threshold if similarity_threshold is not None else self.settings.similarity_threshold
            )

            stage = QueryStage.EMBED_QUERY
            query_embedding = self.embeddings.generate_query_embedding(question)

            stage = QueryStage.RETRIEVE
            matches = self.store.match_messages(tenant_id, query_embedding, limit, threshold)
            logger.info("process_query: tenant_id=%s matches=%d", tenant_id, len(matches))
            if not matches:
                return self._succeeded(INSUFFICIENT_CONTEXT_ANSWER, [], started)

            stage = QueryStage.SYNTHESIZE
            answer = self.synthesis.answer_question(question, matches)
            return self._succeeded(answer, matches, started)
        except Exception as e:
            return self._failed("process_query", stage, tenant_id, e, started)

    def generate_summary(
        self,
        tenant_id: str | None,
        time_range: str | None = None,
        max_results: int = 20,
    ) -> SangamResponse:
        """Summarise the most recent records (recency, not similarity)."""
        started = time.monotonic()
        stage = QueryStage.RECEIVE
        try:
            tenant_id = require_tenant_id(tenant_id)

            stage = QueryStage.RETRIEVE
            recent = self.store.get_recent_embeddings(tenant_id, max_results * 2)
            recent.sort(key=lambda m: m.created_at, reverse=True)
            recent = recent[:max_results]
            if not recent:
                return self._succeeded(NO_RECENT_ANSWER, [], started)

            stage = QueryStage.SYNTHESIZE
            summary = self.synthesis.generate_summary(recent, time_range)
            return self._succeeded(summary, recent, started)
        except Exception as e:
            return self._failed("generate_summary", stage, tenant_id, e, started)

    def extract_information(
        self,
        tenant_id: str | None,
        info_type: InfoType | str,
        max_results: int = 15,
    ) -> SangamResponse:
        """Fan out over fixed search phrases for info_type, merge by chat_id, then synthesize."""
        started = time.monotonic()
        stage = QueryStage.RECEIVE
        try:
            tenant_id = require_tenant_id(tenant_id)
            try:
                kind = InfoType(info_type)
            except ValueError:
                raise ValidationError(f"Invalid info type: {info_type}") from None

            stage = QueryStage.RETRIEVE
            matches = self._matches_for_info_type(tenant_id, kind, max_results)
            if not matches:
                return self._succeeded(f"No relevant information found for {kind.label}.", [], started)

            stage = QueryStage.SYNTHESIZE
            answer = self.synthesis.extract_key_info(matches, kind)
            return self._succeeded(answer, matches, started)
        except Exception as e:
            return self._failed("extract_information", stage, tenant_id, e, started)

    def _matches_for_info_type(self, tenant_id: str, info_type: InfoType, max_results: int) -> list[EmbeddingMatch]:
        phrases = SEARCH_PHRASES[info_type]
        per_phrase = math.ceil(max_results / len(phrases))
        best: dict[str, EmbeddingMatch] = {}
        for phrase in phrases:
            try:
                vec = self.embeddings.generate_query_embedding(phrase)
                found = self.store.match_messages(tenant_id, vec, per_phrase, EXTRACTION_THRESHOLD)
            except Exception as e:
                logger.warning(
                    "extract_information: phrase skipped tenant_id=%s phrase=%r err=%s", tenant_id, phrase, e
                )
                continue
            for m in found:
                current = best.get(m.chat_id)
                if current is None or m.similarity > current.similarity:
                    best[m.chat_id] = m
        ranked = sorted(best.values(), key=lambda m: (-m.similarity, m.id))
        return ranked[:max_results]

    def search_documents(self, tenant_id: str | None, query: str | None, max_results: int = 10) -> SangamResponse:
        """Retrieval restricted to records derived from attachments."""
        started = time.monotonic()
        stage = QueryStage.RECEIVE
        try:
            if not tenant_id or not str(tenant_id).strip() or not query or not query.strip():
                raise ValidationError("Tenant ID and query are required")
            tenant_id = str(tenant_id).strip()

            stage = QueryStage.EMBED_QUERY
            vec = self.embeddings.generate_query_embedding(query)

            stage = QueryStage.RETRIEVE
            matches = self.store.match_messages(
                tenant_id, vec, max_results, DOCUMENT_THRESHOLD, content_types=DOCUMENT_CONTENT_TYPES
            )
            if not matches:
                return self._succeeded(NO_DOCUMENTS_ANSWER, [], started)

            stage = QueryStage.SYNTHESIZE
            answer = self.synthesis.answer_question(f"Find and summarize documents related to: {query}", matches)
            return self._succeeded(answer, matches, started)
        except Exception as e:
            return self._failed("search_documents", stage, tenant_id, e, started)

    def process_unembedded_messages(self, tenant_id: str | None, batch_size: int | None = None) -> IngestionResult:
        return self.embeddings.process_unembedded_messages(tenant_id, batch_size)

    def get_embedding_stats(self, tenant_id: str | None) -> StatsResponse:
        """Store failures come back as success=False with the error text."""
        try:
            stats = self.store.get_embedding_stats(tenant_id)
        except Exception as e:
            logger.error("get_embedding_stats: failed tenant_id=%s err=%s", tenant_id, e, exc_info=True)
            return StatsResponse(success=False, error=str(e) or "Failed to load embedding stats")
        return StatsResponse(success=True, stats=stats)

    def validate_configuration(self) -> ConfigurationReport:
        """Probe store, embedding API and generation API independently."""
        errors: list[str] = []
        services = ServiceHealth()

        try:
            self.store.ping()
            services.store = True
        except Exception as e:
            logger.warning("validate_configuration: store unreachable err=%s", e)
            errors.append(f"Store connection failed: {e}")

        ok, err = self.embeddings.validate_configuration()
        services.embeddings = ok
        if not ok:
            errors.append(err or "Embedding service unavailable")

        ok, err = self.synthesis.validate_configuration()
        services.generation = ok
        if not ok:
            errors.append(err or "Generation service unavailable")

        return ConfigurationReport(valid=not errors, errors=errors, services=services)
