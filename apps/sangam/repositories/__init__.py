"""Repository layer: tenant-scoped queries and helpers."""

from apps.sangam.repositories.tenant_filters import (
    select_chat_embedding_for_tenant,
    select_chat_message_for_tenant,
    tenant_where,
)

__all__ = [
    "tenant_where",
    "select_chat_message_for_tenant",
    "select_chat_embedding_for_tenant",
]
