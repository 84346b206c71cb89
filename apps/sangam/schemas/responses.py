"""Response schemas for API endpoints. Contract-frozen: extra fields forbidden."""

from pydantic import BaseModel, ConfigDict, Field

from apps.sangam.schemas.sangam import EmbeddingMatch, EmbeddingStats


class SangamResponse(BaseModel):
    """Envelope for every query-side operation. error is set iff success is False."""

    model_config = ConfigDict(extra="forbid")

    success: bool
    answer: str | None = None
    sources: list[EmbeddingMatch] | None = None
    processing_time: int | None = Field(None, description="Milliseconds")
    error: str | None = None


class EmbedResponse(BaseModel):
    """Response for POST /sangam/embed."""

    model_config = ConfigDict(extra="forbid")

    success: bool
    message: str
    processed_count: int = 0
    failed_batches: int = 0
    error: str | None = None


class StatsResponse(BaseModel):
    """Response for GET /sangam/embed/stats."""

    model_config = ConfigDict(extra="forbid")

    success: bool
    stats: EmbeddingStats | None = None
    error: str | None = None


class ServiceHealth(BaseModel):
    model_config = ConfigDict(extra="forbid")

    store: bool = False
    embeddings: bool = False
    generation: bool = False


class ConfigurationReport(BaseModel):
    """Result of SangamService.validate_configuration."""

    model_config = ConfigDict(extra="forbid")

    valid: bool
    errors: list[str] = Field(default_factory=list)
    services: ServiceHealth
