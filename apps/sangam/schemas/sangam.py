"""Domain schemas for ingestion and retrieval."""

import json
from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

ContentType = Literal["message", "document", "mixed"]


class InfoType(str, Enum):
    """Structured extraction targets for SangamService.extract_information."""

    DECISIONS = "decisions"
    DEADLINES = "deadlines"
    DOCUMENTS = "documents"
    ACTION_ITEMS = "action-items"

    @property
    def label(self) -> str:
        return self.value.replace("-", " ")


class Attachment(BaseModel):
    """File attached to a chat message. file_url is a plain public URL."""

    id: str = ""
    file_name: str = ""
    file_type: str = ""
    file_size: int = 0
    file_url: str = ""


class RawMessage(BaseModel):
    """Chat message as read from chat_messages. Read-only input."""

    id: str
    tenant_id: str
    content: str = ""
    created_at: datetime
    attachment: Attachment | None = None


class ExtractionMetadata(BaseModel):
    file_name: str
    file_type: str
    file_size: int = 0
    extracted_at: datetime


class ExtractedContent(BaseModel):
    """Plain text decoded from an attachment."""

    text: str
    metadata: ExtractionMetadata


class PartialExtraction(BaseModel):
    """Attachment recognised but no text obtainable (image, legacy binary, scanned PDF)."""

    metadata: ExtractionMetadata
    reason: str


class EmbeddingRecordCreate(BaseModel):
    """Insert payload for chat_embeddings. tenant_id comes from the repo call, never the payload."""

    model_config = ConfigDict(extra="forbid")

    chat_id: str
    content: str
    embedding: list[float]
    has_attachment: bool = False
    attachment_file_name: str | None = None
    attachment_file_type: str | None = None
    content_type: ContentType = "message"
    chunk_index: int = Field(0, ge=0)
    chunk_total: int = Field(1, ge=1)

    @field_validator("embedding", mode="before")
    @classmethod
    def _parse_serialized_vector(cls, v):
        """Accept vectors pre-serialized as JSON strings ('[0.1, 0.2]')."""
        if isinstance(v, str):
            return json.loads(v)
        return v

    @field_validator("chunk_total")
    @classmethod
    def _chunk_index_in_range(cls, v, info):
        idx = info.data.get("chunk_index", 0)
        if idx >= v:
            raise ValueError(f"chunk_index {idx} must be < chunk_total {v}")
        return v


class EmbeddingMatch(BaseModel):
    """A retrieved record with its cosine similarity to the query."""

    id: int
    chat_id: str
    content: str
    similarity: float
    created_at: datetime
    has_attachment: bool = False
    attachment_file_name: str | None = None
    attachment_file_type: str | None = None
    content_type: str = "message"
    chunk_index: int = 0
    chunk_total: int = 1


class EmbeddingStats(BaseModel):
    """Per-tenant ingestion progress. Derived on read."""

    total_messages: int = 0
    embedded_messages: int = 0
    unembedded_messages: int = 0
    last_embedding_created: datetime | None = None


class QueryContext(BaseModel):
    """Input to SynthesisEngine.generate_response."""

    question: str
    relevant_messages: list[EmbeddingMatch] = Field(default_factory=list)
    system_prompt: str
    max_context_length: int = 8000


class IngestionResult(BaseModel):
    """Outcome of one process_unembedded_messages run."""

    processed_count: int = 0
    failed_batches: int = 0
    error: str | None = None
