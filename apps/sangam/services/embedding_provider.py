"""
Embedding provider abstraction for dependency injection.

EMBED_PROVIDER=deterministic or ENV=test => no network, hashed bag-of-words vectors.
EMBED_PROVIDER=openai (or unset outside tests) => OpenAI-compatible embeddings endpoint over httpx.

No import-time client creation; the HTTP client is opened on first embed.
"""

import hashlib
import logging
import math
import re
from typing import Protocol, runtime_checkable

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from apps.sangam.config import Settings
from apps.sangam.errors import ConfigurationError, TransientAPIError, ValidationError
from apps.sangam.models.chat_embedding import EMBEDDING_DIM
from apps.sangam.services.retry import RetryPolicy

logger = logging.getLogger(__name__)

TOKEN_RE = re.compile(r"\w+", re.UNICODE)


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Protocol for embedding generation. Can be swapped for testing."""

    def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed texts into vectors, one per input, in input order."""
        ...


class DeterministicEmbeddingProvider:
    """
    Deterministic provider: hashed bag-of-words vectors, L2-normalized.
    Texts sharing tokens get positive cosine similarity. Pure: no network, no randomness.
    """

    def __init__(self, dim: int = EMBEDDING_DIM) -> None:
        self._dim = dim

    def embed(self, texts: list[str]) -> list[list[float]]:
        return [_bag_of_words_vector(t, self._dim) for t in texts]


def _bag_of_words_vector(text: str, dim: int = EMBEDDING_DIM) -> list[float]:
    vec = [0.0] * dim
    tokens = TOKEN_RE.findall((text or "").lower())
    if not tokens:
        vec[0] = 1.0
        return vec
    for tok in tokens:
        h = int(hashlib.sha256(tok.encode("utf-8")).hexdigest()[:8], 16)
        vec[h % dim] += 1.0
    norm = math.sqrt(sum(x * x for x in vec))
    return [x / norm for x in vec]


class _EmbeddingDatum(BaseModel):
    index: int = 0
    embedding: list[float]


class _EmbeddingResponseBody(BaseModel):
    data: list[_EmbeddingDatum]


def decode_embedding_response(payload: object, expected_count: int, dim: int) -> list[list[float]]:
    """
    Decode an embeddings response body into vectors in input order.
    Raises ValidationError on malformed body, wrong count, or wrong dimension.
    """
    try:
        body = _EmbeddingResponseBody.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(f"Malformed embeddings response: {e.error_count()} error(s)") from e
    if len(body.data) != expected_count:
        raise ValidationError(
            f"Embeddings response count mismatch: expected {expected_count}, got {len(body.data)}"
        )
    ordered = sorted(body.data, key=lambda d: d.index)
    for d in ordered:
        if len(d.embedding) != dim:
            raise ValidationError(f"Embedding dimension mismatch: expected {dim}, got {len(d.embedding)}")
    return [d.embedding for d in ordered]


def _api_error_message(resp: httpx.Response) -> str:
    try:
        detail = resp.json().get("error", {}).get("message") or "Unknown error"
    except (ValueError, AttributeError):
        detail = "Unknown error"
    return f"OpenAI API error: {resp.status_code} {resp.reason_phrase} - {detail}"


class OpenAIEmbeddingProvider:
    """
    OpenAI-compatible embeddings client. Each embed() call is one request wrapped in RetryPolicy.
    Missing api_key raises ConfigurationError before any request; it is not retried.
    """

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "text-embedding-3-small",
        url: str = "https://api.openai.com/v1/embeddings",
        dim: int = EMBEDDING_DIM,
        timeout: float = 30.0,
        retry_policy: RetryPolicy | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.url = url
        self.dim = dim
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self._client = client

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout)
        return self._client

    def _request(self, texts: list[str]) -> list[list[float]]:
        resp = self._get_client().post(
            self.url,
            json={"model": self.model, "input": texts, "encoding_format": "float"},
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        if not resp.is_success:
            raise TransientAPIError(_api_error_message(resp))
        try:
            payload = resp.json()
        except ValueError as e:
            raise ValidationError("Embeddings response is not JSON") from e
        return decode_embedding_response(payload, len(texts), self.dim)

    def embed(self, texts: list[str]) -> list[list[float]]:
        if not self.api_key:
            raise ConfigurationError("OPENAI_API_KEY is not set")
        if not texts:
            return []
        outcome = self.retry_policy.run(lambda: self._request(texts), label="embeddings")
        if not outcome.ok:
            raise TransientAPIError(
                f"Embedding request failed after {outcome.attempts} attempts: {outcome.error}"
            ) from outcome.error
        return outcome.value

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


def embedding_provider_name(settings: Settings) -> str:
    """
    EMBED_PROVIDER=deterministic => always deterministic.
    EMBED_PROVIDER=openai => always OpenAI (even under ENV=test).
    Otherwise ENV=test => deterministic.
    """
    if settings.embed_provider in ("deterministic", "openai"):
        return settings.embed_provider
    return "deterministic" if settings.is_test else "openai"


def create_embedding_provider(settings: Settings) -> EmbeddingProvider:
    """Build the embedding provider selected by settings."""
    if embedding_provider_name(settings) == "deterministic":
        logger.info("Using deterministic embedding provider (no network)")
        return DeterministicEmbeddingProvider(dim=settings.embedding_dim)
    logger.info("Using OpenAI embedding provider model=%s", settings.embedding_model)
    return OpenAIEmbeddingProvider(
        settings.openai_api_key,
        model=settings.embedding_model,
        url=settings.embedding_api_url,
        dim=settings.embedding_dim,
        timeout=settings.embed_timeout,
        retry_policy=RetryPolicy(max_attempts=max(1, settings.embed_max_retries), delay=settings.embed_retry_delay),
    )
