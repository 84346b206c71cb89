"""Sangam base schema: vector extension, chat_messages (if absent), chat_embeddings, match_messages().

chat_messages belongs to the chat service; it is only created here for fresh
databases (dev/test). chat_embeddings and match_messages are owned by Sangam.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from pgvector.sqlalchemy import Vector

revision: str = "000_sangam_base"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# text-embedding-3-small = 1536. Must match apps.sangam.models.chat_embedding.EMBEDDING_DIM
EMBEDDING_DIM = 1536

# Exact cosine ranking over one tenant's rows, found through the tenant index. The CTE is
# MATERIALIZED so the planner cannot swap in an approximate scan that filters by tenant afterwards.
MATCH_MESSAGES_SQL = f"""
CREATE OR REPLACE FUNCTION match_messages(
    p_tenant_id text,
    query_embedding vector({EMBEDDING_DIM}),
    match_threshold double precision,
    match_count integer,
    content_types text[] DEFAULT NULL
)
RETURNS TABLE (
    id bigint,
    chat_id text,
    content text,
    similarity double precision,
    created_at timestamptz,
    has_attachment boolean,
    attachment_file_name text,
    attachment_file_type text,
    content_type text,
    chunk_index integer,
    chunk_total integer
)
LANGUAGE sql STABLE
AS $$
    WITH scoped AS MATERIALIZED (
        SELECT e.*, (1 - (e.embedding <=> query_embedding))::double precision AS similarity
        FROM chat_embeddings e
        WHERE e.tenant_id = p_tenant_id
          AND (content_types IS NULL OR e.content_type = ANY(content_types))
    )
    SELECT
        s.id,
        s.chat_id::text,
        s.content,
        s.similarity,
        s.created_at,
        s.has_attachment,
        s.attachment_file_name,
        s.attachment_file_type::text,
        s.content_type::text,
        s.chunk_index,
        s.chunk_total
    FROM scoped s
    WHERE s.similarity >= match_threshold
    ORDER BY s.similarity DESC, s.id
    LIMIT match_count
$$;
"""


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    # 1) chat_messages (read-only input; skip when the chat service already created it)
    bind = op.get_bind()
    if not sa.inspect(bind).has_table("chat_messages"):
        op.create_table(
            "chat_messages",
            sa.Column("id", sa.String(255), primary_key=True),
            sa.Column("tenant_id", sa.String(255), nullable=False),
            sa.Column("content", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column("attachment_id", sa.String(255), nullable=True),
            sa.Column("attachment_name", sa.Text(), nullable=True),
            sa.Column("attachment_type", sa.String(255), nullable=True),
            sa.Column("attachment_size", sa.BigInteger(), nullable=True),
            sa.Column("attachment_url", sa.Text(), nullable=True),
        )
        op.create_index(
            "ix_chat_messages_tenant_created", "chat_messages", ["tenant_id", "created_at"], if_not_exists=True
        )

    # 2) chat_embeddings
    op.create_table(
        "chat_embeddings",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(255), nullable=False),
        sa.Column("chat_id", sa.String(255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("embedding", Vector(EMBEDDING_DIM), nullable=False),
        sa.Column("has_attachment", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("attachment_file_name", sa.Text(), nullable=True),
        sa.Column("attachment_file_type", sa.String(255), nullable=True),
        sa.Column("content_type", sa.String(16), nullable=False, server_default="message"),
        sa.Column("chunk_index", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("chunk_total", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("tenant_id", "chat_id", "chunk_index", name="uq_chat_embeddings_tenant_chat_chunk"),
        sa.CheckConstraint("chunk_index >= 0 AND chunk_index < chunk_total", name="ck_chat_embeddings_chunk_index"),
        sa.CheckConstraint(
            "content_type IN ('message', 'document', 'mixed')", name="ck_chat_embeddings_content_type"
        ),
    )
    op.create_index("ix_chat_embeddings_tenant_chat", "chat_embeddings", ["tenant_id", "chat_id"], if_not_exists=True)
    op.create_index(
        "ix_chat_embeddings_tenant_created", "chat_embeddings", ["tenant_id", "created_at"], if_not_exists=True
    )

    # 3) similarity search function used by VectorStoreGateway.match_messages
    op.execute(MATCH_MESSAGES_SQL)


def downgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS match_messages(text, vector, double precision, integer, text[])")
    op.drop_index("ix_chat_embeddings_tenant_created", table_name="chat_embeddings")
    op.drop_index("ix_chat_embeddings_tenant_chat", table_name="chat_embeddings")
    op.drop_table("chat_embeddings")
    # chat_messages is left in place: it belongs to the chat service.
