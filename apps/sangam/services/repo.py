"""Vector store gateway. All methods require tenant_id as first argument; guard raises if None/empty.

RULE: the gateway is the ONLY place allowed to run DB reads/writes for Sangam.
All tenant-scoped queries MUST use tenant_filters (select_*_for_tenant / tenant_where)
or filter every table by :tenant_id in raw SQL.

Retrieval: the indexed match_messages SQL function is tried first; if it raises,
candidates are loaded and ranked in Python (similarity.rank_by_cosine).
"""

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import and_, delete, exists, func, or_, text
from sqlalchemy.dialects.postgresql import insert as pg_insert

from apps.sangam.db import Database
from apps.sangam.errors import RetrievalError, ValidationError
from apps.sangam.models.chat_embedding import EMBEDDING_DIM, ChatEmbedding
from apps.sangam.models.chat_message import ChatMessage
from apps.sangam.repositories.tenant_filters import (
    select_chat_embedding_for_tenant,
    select_chat_message_for_tenant,
    tenant_where,
)
from apps.sangam.schemas.sangam import (
    Attachment,
    EmbeddingMatch,
    EmbeddingRecordCreate,
    EmbeddingStats,
    RawMessage,
)
from apps.sangam.services.normalize import NON_BLANK_PATTERN
from apps.sangam.services.similarity import rank_by_cosine
from apps.sangam.services.tenant_guard import require_tenant_id

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

MATCH_COLUMNS = (
    "id",
    "chat_id",
    "content",
    "similarity",
    "created_at",
    "has_attachment",
    "attachment_file_name",
    "attachment_file_type",
    "content_type",
    "chunk_index",
    "chunk_total",
)

_MATCH_SQL = text("""
    SELECT id, chat_id, content, similarity, created_at, has_attachment,
           attachment_file_name, attachment_file_type, content_type, chunk_index, chunk_total
    FROM match_messages(
        CAST(:tenant_id AS text),
        CAST(:embedding AS vector),
        CAST(:threshold AS double precision),
        CAST(:match_count AS integer),
        CAST(:content_types AS text[])
    )
""")

_STATS_SQL = text("""
    SELECT
        (SELECT count(*) FROM chat_messages m WHERE m.tenant_id = :tenant_id) AS total_messages,
        (SELECT count(DISTINCT e.chat_id)
           FROM chat_embeddings e
           JOIN chat_messages m ON m.id = e.chat_id AND m.tenant_id = e.tenant_id
          WHERE e.tenant_id = :tenant_id AND m.tenant_id = :tenant_id) AS embedded_messages,
        (SELECT max(e.created_at) FROM chat_embeddings e WHERE e.tenant_id = :tenant_id) AS last_embedding_created
""")


def to_vector_literal(vec: Sequence[float]) -> str:
    """pgvector text form: '[0.1,0.2,...]'."""
    return "[" + ",".join(str(float(x)) for x in vec) + "]"


def _to_float_list(vec: Any) -> list[float]:
    if vec is None:
        return []
    if isinstance(vec, str):
        return [float(x) for x in vec.strip("[]").split(",") if x.strip()]
    return [float(x) for x in vec]


def _embedding_to_match(row: ChatEmbedding, similarity: float) -> EmbeddingMatch:
    return EmbeddingMatch(
        id=row.id,
        chat_id=row.chat_id,
        content=row.content,
        similarity=similarity,
        created_at=row.created_at,
        has_attachment=bool(row.has_attachment),
        attachment_file_name=row.attachment_file_name,
        attachment_file_type=row.attachment_file_type,
        content_type=row.content_type,
        chunk_index=row.chunk_index,
        chunk_total=row.chunk_total,
    )


def _message_to_raw(row: ChatMessage) -> RawMessage:
    attachment = None
    if row.attachment_url or row.attachment_name:
        attachment = Attachment(
            id=row.attachment_id or "",
            file_name=row.attachment_name or "",
            file_type=row.attachment_type or "",
            file_size=row.attachment_size or 0,
            file_url=row.attachment_url or "",
        )
    return RawMessage(
        id=row.id,
        tenant_id=row.tenant_id,
        content=row.content or "",
        created_at=row.created_at,
        attachment=attachment,
    )


class VectorStoreGateway:
    """Tenant-scoped access to chat_embeddings (and read-only chat_messages)."""

    def __init__(self, database: Database, embedding_dim: int = EMBEDDING_DIM) -> None:
        self.database = database
        self.embedding_dim = embedding_dim
        self.fallback_invocations = 0

    # --- retrieval -----------------------------------------------------------

    def match_messages(
        self,
        tenant_id: str | None,
        query_embedding: Sequence[float],
        match_count: int = 10,
        similarity_threshold: float = 0.5,
        content_types: Sequence[str] | None = None,
    ) -> list[EmbeddingMatch]:
        """
        Top match_count records for tenant with similarity >= threshold, similarity desc.
        Raises RetrievalError only when both the indexed path and the fallback fail.
        """
        tenant_id = require_tenant_id(tenant_id)
        self._check_dim(query_embedding)
        if match_count <= 0:
            return []
        types = list(content_types) if content_types else None
        try:
            rows = self._match_indexed(tenant_id, query_embedding, match_count, similarity_threshold, types)
            matches = [EmbeddingMatch(**dict(zip(MATCH_COLUMNS, r))) for r in rows]
        except Exception as e:
            self.fallback_invocations += 1
            logger.warning(
                "match_messages: indexed path failed, using fallback tenant_id=%s err=%s",
                tenant_id,
                e,
            )
            try:
                return self._match_fallback(tenant_id, query_embedding, match_count, similarity_threshold, types)
            except Exception as fe:
                logger.error("match_messages: fallback failed tenant_id=%s err=%s", tenant_id, fe, exc_info=True)
                raise RetrievalError(f"Vector search failed: {fe}") from fe
        matches = [m for m in matches if m.similarity >= similarity_threshold]
        matches.sort(key=lambda m: (-m.similarity, m.id))
        return matches[:match_count]

    def _match_indexed(
        self,
        tenant_id: str,
        query_embedding: Sequence[float],
        match_count: int,
        threshold: float,
        content_types: list[str] | None,
    ) -> list[tuple[Any, ...]]:
        with self.database.session() as session:
            return session.execute(
                _MATCH_SQL,
                {
                    "tenant_id": tenant_id,
                    "embedding": to_vector_literal(query_embedding),
                    "threshold": threshold,
                    "match_count": match_count,
                    "content_types": content_types,
                },
            ).fetchall()

    def _load_candidates(self, tenant_id: str, content_types: list[str] | None) -> list[ChatEmbedding]:
        stmt = select_chat_embedding_for_tenant(tenant_id)
        if content_types:
            stmt = stmt.where(ChatEmbedding.content_type.in_(content_types))
        with self.database.session() as session:
            return list(session.scalars(stmt).all())

    def _match_fallback(
        self,
        tenant_id: str,
        query_embedding: Sequence[float],
        match_count: int,
        threshold: float,
        content_types: list[str] | None,
    ) -> list[EmbeddingMatch]:
        rows = self._load_candidates(tenant_id, content_types)
        by_id = {r.id: r for r in rows}
        ranked = rank_by_cosine(
            list(query_embedding),
            ((r.id, _to_float_list(r.embedding)) for r in rows),
            threshold,
            match_count,
        )
        return [_embedding_to_match(by_id[rid], sim) for rid, sim in ranked]

    def get_recent_embeddings(self, tenant_id: str | None, limit: int) -> list[EmbeddingMatch]:
        """Newest records first. similarity is fixed at 1.0 (recency, not relevance)."""
        tenant_id = require_tenant_id(tenant_id)
        if limit <= 0:
            return []
        stmt = (
            select_chat_embedding_for_tenant(tenant_id)
            .order_by(ChatEmbedding.created_at.desc(), ChatEmbedding.id.desc())
            .limit(limit)
        )
        with self.database.session() as session:
            return [_embedding_to_match(r, 1.0) for r in session.scalars(stmt).all()]

    # --- ingestion -----------------------------------------------------------

    def insert_embeddings(
        self,
        tenant_id: str | None,
        records: Sequence[EmbeddingRecordCreate | dict[str, Any]],
    ) -> int:
        """
        Bulk insert chat_embeddings. Conflicts on (tenant_id, chat_id, chunk_index) are skipped.
        Returns number of rows actually inserted. [] => 0, no DB access.
        """
        tenant_id = require_tenant_id(tenant_id)
        if not records:
            return 0
        values = []
        for r in records:
            rec = r if isinstance(r, EmbeddingRecordCreate) else EmbeddingRecordCreate.model_validate(r)
            self._check_dim(rec.embedding)
            values.append({"tenant_id": tenant_id, **rec.model_dump()})
        stmt = (
            pg_insert(ChatEmbedding)
            .values(values)
            .on_conflict_do_nothing(constraint="uq_chat_embeddings_tenant_chat_chunk")
            .returning(ChatEmbedding.id)
        )
        with self.database.session() as session:
            inserted = len(session.execute(stmt).fetchall())
        logger.info(
            "insert_embeddings tenant_id=%s requested=%d inserted=%d", tenant_id, len(values), inserted
        )
        return inserted

    def get_unembedded_messages(self, tenant_id: str | None, limit: int = MAX_PAGE_SIZE) -> list[RawMessage]:
        """
        Oldest-first messages with no chat_embeddings row.
        Messages with neither non-blank text nor an attachment are skipped, using the same
        rules as _message_to_raw and normalize_text so every fetched message yields units.
        """
        tenant_id = require_tenant_id(tenant_id)
        limit = max(0, min(limit, MAX_PAGE_SIZE))
        if limit == 0:
            return []
        embedded = exists().where(
            and_(
                tenant_where(ChatEmbedding, tenant_id),
                ChatEmbedding.chat_id == ChatMessage.id,
            )
        )
        stmt = (
            select_chat_message_for_tenant(tenant_id)
            .where(~embedded)
            .where(
                or_(
                    ChatMessage.content.regexp_match(NON_BLANK_PATTERN),
                    func.coalesce(ChatMessage.attachment_url, "") != "",
                    func.coalesce(ChatMessage.attachment_name, "") != "",
                )
            )
            .order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc())
            .limit(limit)
        )
        with self.database.session() as session:
            return [_message_to_raw(r) for r in session.scalars(stmt).all()]

    def has_embedding(self, tenant_id: str | None, chat_id: str) -> bool:
        tenant_id = require_tenant_id(tenant_id)
        stmt = (
            select_chat_embedding_for_tenant(tenant_id)
            .where(ChatEmbedding.chat_id == chat_id)
            .with_only_columns(ChatEmbedding.id)
            .limit(1)
        )
        with self.database.session() as session:
            return session.execute(stmt).first() is not None

    def delete_embeddings_for_message(self, tenant_id: str | None, chat_id: str) -> int:
        """Remove every record derived from chat_id (message deleted upstream)."""
        tenant_id = require_tenant_id(tenant_id)
        stmt = delete(ChatEmbedding).where(tenant_where(ChatEmbedding, tenant_id), ChatEmbedding.chat_id == chat_id)
        with self.database.session() as session:
            deleted = session.execute(stmt).rowcount or 0
        logger.info("delete_embeddings tenant_id=%s chat_id=%s deleted=%d", tenant_id, chat_id, deleted)
        return deleted

    # --- stats / health ------------------------------------------------------

    def get_embedding_stats(self, tenant_id: str | None) -> EmbeddingStats:
        """Never None. A tenant with no rows yields zeros and a null timestamp."""
        tenant_id = require_tenant_id(tenant_id)
        row = self._fetch_stats_row(tenant_id)
        if not row:
            return EmbeddingStats()
        total = int(row[0] or 0)
        embedded = int(row[1] or 0)
        last: datetime | None = row[2]
        return EmbeddingStats(
            total_messages=total,
            embedded_messages=embedded,
            unembedded_messages=max(0, total - embedded),
            last_embedding_created=last,
        )

    def _fetch_stats_row(self, tenant_id: str) -> tuple[Any, ...] | None:
        with self.database.session() as session:
            return session.execute(_STATS_SQL, {"tenant_id": tenant_id}).first()

    def ping(self) -> None:
        """Raises if the store is unreachable."""
        self.database.ping()

    def _check_dim(self, vec: Sequence[float]) -> None:
        if len(vec) != self.embedding_dim:
            raise ValidationError(f"Embedding dimension mismatch: expected {self.embedding_dim}, got {len(vec)}")
