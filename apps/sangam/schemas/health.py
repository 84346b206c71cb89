"""Health check response schema."""

from pydantic import BaseModel, ConfigDict


class HealthResponse(BaseModel):
    """Liveness plus which providers this process would use. Reachability lives behind GET /sangam/config."""

    model_config = ConfigDict(extra="forbid")

    ok: bool
    version: str
    time: str
    env: str
    embedding_provider: str
    llm_provider: str
