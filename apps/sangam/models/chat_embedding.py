"""chat_embeddings model. One row per embedded text unit (message, document chunk, or mixed)."""

from datetime import datetime

from pgvector.sqlalchemy import Vector
from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from apps.sangam.models.base import Base

# Embedding dimension (text-embedding-3-small = 1536). Must match the deployed column.
EMBEDDING_DIM = 1536

CONTENT_TYPES = ("message", "document", "mixed")


class ChatEmbedding(Base):
    __tablename__ = "chat_embeddings"
    __table_args__ = (
        Index("ix_chat_embeddings_tenant_chat", "tenant_id", "chat_id"),
        Index("ix_chat_embeddings_tenant_created", "tenant_id", "created_at"),
        UniqueConstraint("tenant_id", "chat_id", "chunk_index", name="uq_chat_embeddings_tenant_chat_chunk"),
        CheckConstraint("chunk_index >= 0 AND chunk_index < chunk_total", name="ck_chat_embeddings_chunk_index"),
        CheckConstraint(
            "content_type IN ('message', 'document', 'mixed')",
            name="ck_chat_embeddings_content_type",
        ),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False)  # indexed via __table_args__
    chat_id: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    embedding: Mapped[list[float]] = mapped_column(Vector(EMBEDDING_DIM), nullable=False)
    has_attachment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    attachment_file_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    attachment_file_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    content_type: Mapped[str] = mapped_column(String(16), nullable=False, default="message", server_default="message")
    chunk_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    chunk_total: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
