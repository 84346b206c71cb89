"""Tenant-scoped SQL helpers. All tenant-scoped queries MUST use these.

Provides:
  - tenant_where(model, tenant_id): binary expression for WHERE model.tenant_id == tenant_id
  - select_*_for_tenant(tenant_id): SQLAlchemy Select with tenant filter applied
  - Correlated subqueries MUST enforce tenant_id on each table involved (not just one).
"""

from sqlalchemy import BinaryExpression, Select, select

from apps.sangam.models.chat_embedding import ChatEmbedding
from apps.sangam.models.chat_message import ChatMessage


def tenant_where(model: type, tenant_id: str) -> BinaryExpression[bool]:
    """Return WHERE clause: model.tenant_id == tenant_id. Use for filters and joins."""
    col = getattr(model, "tenant_id", None)
    if col is None:
        raise ValueError(f"Model {model.__name__} has no tenant_id column")
    return col == tenant_id


def select_chat_message_for_tenant(tenant_id: str) -> Select[tuple[ChatMessage]]:
    """Select from chat_messages with tenant filter. Add .where() for further filters."""
    return select(ChatMessage).where(tenant_where(ChatMessage, tenant_id))


def select_chat_embedding_for_tenant(tenant_id: str) -> Select[tuple[ChatEmbedding]]:
    """Select from chat_embeddings with tenant filter. Add .where() for further filters."""
    return select(ChatEmbedding).where(tenant_where(ChatEmbedding, tenant_id))
