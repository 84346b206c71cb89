"""Request schemas for API endpoints. tenant_id is never accepted in payload."""

from pydantic import BaseModel, ConfigDict, Field

from apps.sangam.schemas.sangam import InfoType


class AskRequest(BaseModel):
    """Request body for POST /sangam/ask."""

    model_config = ConfigDict(extra="forbid")

    question: str = Field(..., description="Question about past conversations")
    max_results: int | None = Field(None, ge=1, le=100, description="Max matches used as context")
    similarity_threshold: float | None = Field(None, ge=-1.0, le=1.0, description="Minimum cosine similarity")


class SummaryRequest(BaseModel):
    """Request body for POST /sangam/summary."""

    model_config = ConfigDict(extra="forbid")

    time_range: str | None = Field(None, description="Free-text period, e.g. 'last week'")
    max_results: int = Field(20, ge=1, le=100)


class ExtractRequest(BaseModel):
    """Request body for POST /sangam/extract."""

    model_config = ConfigDict(extra="forbid")

    info_type: InfoType
    max_results: int = Field(15, ge=1, le=100)


class DocumentSearchRequest(BaseModel):
    """Request body for POST /sangam/documents."""

    model_config = ConfigDict(extra="forbid")

    query: str = Field(..., description="What to look for in shared documents")
    max_results: int = Field(10, ge=1, le=100)


class EmbedRequest(BaseModel):
    """Request body for POST /sangam/embed."""

    model_config = ConfigDict(extra="forbid")

    batch_size: int | None = Field(None, ge=1, le=100, description="Messages per run (max 100)")
