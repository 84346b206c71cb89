"""SQLAlchemy models. All tables include tenant_id; queries MUST filter by tenant_id."""

from apps.sangam.models.base import Base
from apps.sangam.models.chat_embedding import CONTENT_TYPES, EMBEDDING_DIM, ChatEmbedding
from apps.sangam.models.chat_message import ChatMessage

__all__ = [
    "Base",
    "CONTENT_TYPES",
    "ChatEmbedding",
    "ChatMessage",
    "EMBEDDING_DIM",
]
