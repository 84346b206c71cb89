"""Embedding service: turns chat messages into embedding records.

Flow per message: extract attachment -> chunk -> build units -> embed -> insert.
Every unit carries its source message id, so records never depend on list position.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterator, Sequence

from apps.sangam.config import Settings
from apps.sangam.errors import ConfigurationError
from apps.sangam.schemas.sangam import (
    ContentType,
    EmbeddingRecordCreate,
    ExtractedContent,
    IngestionResult,
    RawMessage,
)
from apps.sangam.services.chunking import chunk_document
from apps.sangam.services.embedding_provider import EmbeddingProvider, OpenAIEmbeddingProvider
from apps.sangam.services.extract import ContentExtractor, is_content_useful
from apps.sangam.services.normalize import normalize_text
from apps.sangam.services.repo import MAX_PAGE_SIZE, VectorStoreGateway
from apps.sangam.services.tenant_guard import require_tenant_id

logger = logging.getLogger(__name__)

PROCESSING_FAILED_SUFFIX = " - Processing failed"


@dataclass(frozen=True)
class EmbeddingUnit:
    """One embeddable text plus the provenance stored alongside its vector."""

    chat_id: str
    text: str
    chunk_index: int = 0
    chunk_total: int = 1
    content_type: ContentType = "message"
    has_attachment: bool = False
    attachment_file_name: str | None = None
    attachment_file_type: str | None = None

    def to_record(self, embedding: list[float]) -> EmbeddingRecordCreate:
        return EmbeddingRecordCreate(
            chat_id=self.chat_id,
            content=self.text,
            embedding=embedding,
            has_attachment=self.has_attachment,
            attachment_file_name=self.attachment_file_name,
            attachment_file_type=self.attachment_file_type,
            content_type=self.content_type,
            chunk_index=self.chunk_index,
            chunk_total=self.chunk_total,
        )


@dataclass
class GeneratedEmbeddings:
    embeddings: list[list[float]] = field(default_factory=list)
    processed_contents: list[str] = field(default_factory=list)
    chunk_info: list[tuple[int, int]] = field(default_factory=list)
    units: list[EmbeddingUnit] = field(default_factory=list)


def _content_type(message: RawMessage, text: str) -> ContentType:
    if message.attachment is None:
        return "message"
    return "mixed" if text else "document"


def _attachment_label(message: RawMessage) -> str:
    a = message.attachment
    return f"Document: {a.file_name} ({a.file_type})"


def pack_batches(
    groups: Sequence[tuple[RawMessage, list[EmbeddingUnit]]],
    max_units: int,
) -> Iterator[list[tuple[RawMessage, list[EmbeddingUnit]]]]:
    """Group whole messages so each batch holds <= max_units units. An oversized message gets its own batch."""
    batch: list[tuple[RawMessage, list[EmbeddingUnit]]] = []
    count = 0
    for msg, units in groups:
        if batch and count + len(units) > max_units:
            yield batch
            batch, count = [], 0
        batch.append((msg, units))
        count += len(units)
    if batch:
        yield batch


class EmbeddingService:
    """Builds units for messages, embeds them through the provider and persists them via the gateway."""

    def __init__(
        self,
        provider: EmbeddingProvider,
        store: VectorStoreGateway,
        extractor: ContentExtractor,
        settings: Settings,
    ) -> None:
        self.provider = provider
        self.store = store
        self.extractor = extractor
        self.settings = settings

    def normalize_text(self, text: str | None) -> str:
        return normalize_text(text, self.settings.max_normalized_chars)

    def build_units(self, message: RawMessage) -> list[EmbeddingUnit]:
        """Units for one message. [] when the message has neither text nor attachment."""
        text = self.normalize_text(message.content)
        attachment = message.attachment
        if attachment is None:
            if not text:
                return []
            return [EmbeddingUnit(chat_id=message.id, text=text)]

        base = {
            "chat_id": message.id,
            "content_type": _content_type(message, text),
            "has_attachment": True,
            "attachment_file_name": attachment.file_name or None,
            "attachment_file_type": attachment.file_type or None,
        }
        try:
            extracted = self.extractor.extract_content(attachment)
        except Exception as e:
            logger.error(
                "build_units: attachment failed chat_id=%s file=%s err=%s",
                message.id,
                attachment.file_name,
                e,
                exc_info=True,
            )
            return [EmbeddingUnit(text=self._fallback_text(message, text) + PROCESSING_FAILED_SUFFIX, **base)]

        if not isinstance(extracted, ExtractedContent) or not is_content_useful(extracted):
            return [EmbeddingUnit(text=self._fallback_text(message, text), **base)]

        chunks = chunk_document(
            extracted.text,
            max_chunk_size=self.settings.chunk_max_size,
            overlap=self.settings.chunk_overlap,
        )
        texts = [
            f"Document: {attachment.file_name}\n"
            f"Type: {extracted.metadata.file_type}\n"
            f"Chunk {c.chunk_index + 1}/{c.chunk_total}\n"
            f"Content: {c.text}"
            for c in chunks
        ]
        if text:
            texts.append(f"Message: {text}\n\n{_attachment_label(message)}")
        total = len(texts)
        return [EmbeddingUnit(text=t, chunk_index=i, chunk_total=total, **base) for i, t in enumerate(texts)]

    def _fallback_text(self, message: RawMessage, text: str) -> str:
        label = _attachment_label(message)
        return f"{text}\n\n{label}" if text else label

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed in provider calls of at most embed_api_batch_size inputs, preserving order."""
        size = max(1, self.settings.embed_api_batch_size)
        out: list[list[float]] = []
        for i in range(0, len(texts), size):
            out.extend(self.provider.embed(texts[i : i + size]))
        return out

    def generate_embeddings(self, messages: Sequence[RawMessage]) -> GeneratedEmbeddings:
        units = [u for m in messages for u in self.build_units(m)]
        if not units:
            return GeneratedEmbeddings()
        texts = [u.text for u in units]
        return GeneratedEmbeddings(
            embeddings=self.embed_texts(texts),
            processed_contents=texts,
            chunk_info=[(u.chunk_index, u.chunk_total) for u in units],
            units=units,
        )

    def process_unembedded_messages(self, tenant_id: str | None, batch_size: int | None = None) -> IngestionResult:
        """
        Embed one page of the tenant's backlog. Never raises.
        A failing batch is logged and counted; remaining batches still run.
        """
        try:
            tenant_id = require_tenant_id(tenant_id)
            page = min(batch_size or self.settings.embed_page_size, MAX_PAGE_SIZE)
            messages = self.store.get_unembedded_messages(tenant_id, page)
            if not messages:
                logger.info("ingest: backlog empty tenant_id=%s", tenant_id)
                return IngestionResult()

            groups = [(m, self.build_units(m)) for m in messages]
            empty = [m.id for m, units in groups if not units]
            if empty:
                logger.warning("ingest: no embeddable content tenant_id=%s chat_ids=%s", tenant_id, empty)
            groups = [(m, units) for m, units in groups if units]
            processed = 0
            failed = 0
            for batch in pack_batches(groups, max(1, self.settings.embed_api_batch_size)):
                units = [u for _, us in batch for u in us]
                try:
                    vectors = self.embed_texts([u.text for u in units])
                    records = [u.to_record(v) for u, v in zip(units, vectors)]
                    self.store.insert_embeddings(tenant_id, records)
                    processed += len(batch)
                except Exception as e:
                    failed += 1
                    logger.error(
                        "ingest: batch failed tenant_id=%s messages=%d units=%d err=%s",
                        tenant_id,
                        len(batch),
                        len(units),
                        e,
                        exc_info=True,
                    )
            logger.info(
                "ingest: done tenant_id=%s fetched=%d processed=%d failed_batches=%d",
                tenant_id,
                len(messages),
                processed,
                failed,
            )
            return IngestionResult(processed_count=processed, failed_batches=failed)
        except Exception as e:
            logger.error("ingest: aborted tenant_id=%s err=%s", tenant_id, e, exc_info=True)
            return IngestionResult(processed_count=0, error=str(e) or type(e).__name__)

    def generate_query_embedding(self, text: str) -> list[float]:
        return self.provider.embed([self.normalize_text(text)])[0]

    def validate_configuration(self) -> tuple[bool, str | None]:
        """Credential check, then a one-input live probe."""
        if isinstance(self.provider, OpenAIEmbeddingProvider) and not self.provider.api_key:
            return False, "OPENAI_API_KEY is not set"
        try:
            self.generate_query_embedding("test")
        except ConfigurationError as e:
            return False, str(e)
        except Exception as e:
            logger.warning("embeddings: probe failed err=%s", e)
            return False, f"Embedding probe failed: {e}"
        return True, None
