"""Sangam endpoints under /sangam.

Tenant injected server-side from auth; request bodies never carry tenant_id.
Routes are sync: every call below blocks on the store or an external API, so
Starlette runs them on its threadpool.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from apps.sangam.schemas.requests import (
    AskRequest,
    DocumentSearchRequest,
    EmbedRequest,
    ExtractRequest,
    SummaryRequest,
)
from apps.sangam.schemas.responses import (
    ConfigurationReport,
    EmbedResponse,
    SangamResponse,
    StatsResponse,
)
from apps.sangam.services.container import get_sangam_service
from apps.sangam.services.sangam import SangamService
from apps.sangam.services.tenant_context import TenantId

logger = logging.getLogger(__name__)

router = APIRouter()

Sangam = Annotated[SangamService, Depends(get_sangam_service)]


def require_operator(tenant_id: TenantId, sangam: Sangam) -> str:
    """403 unless the tenant is listed in SANGAM_OPERATOR_TENANTS."""
    if tenant_id not in sangam.settings.operator_tenants:
        logger.info("config: refused tenant_id=%s", tenant_id)
        raise HTTPException(status_code=403, detail="Configuration checks are limited to operator tenants")
    return tenant_id


OperatorTenantId = Annotated[str, Depends(require_operator)]


@router.post("/ask", response_model=SangamResponse)
def ask(body: AskRequest, tenant_id: TenantId, sangam: Sangam) -> SangamResponse:
    """Answer a question from the tenant's past conversations."""
    return sangam.process_query(tenant_id, body.question, body.max_results, body.similarity_threshold)


@router.post("/summary", response_model=SangamResponse)
def summary(body: SummaryRequest, tenant_id: TenantId, sangam: Sangam) -> SangamResponse:
    return sangam.generate_summary(tenant_id, body.time_range, body.max_results)


@router.post("/extract", response_model=SangamResponse)
def extract(body: ExtractRequest, tenant_id: TenantId, sangam: Sangam) -> SangamResponse:
    """Decisions, deadlines, documents or action items."""
    return sangam.extract_information(tenant_id, body.info_type, body.max_results)


@router.post("/documents", response_model=SangamResponse)
def documents(body: DocumentSearchRequest, tenant_id: TenantId, sangam: Sangam) -> SangamResponse:
    return sangam.search_documents(tenant_id, body.query, body.max_results)


@router.post("/embed", response_model=EmbedResponse)
def embed(tenant_id: TenantId, sangam: Sangam, body: EmbedRequest | None = None) -> EmbedResponse:
    """Embed one page of the tenant's backlog."""
    batch_size = body.batch_size if body else None
    result = sangam.process_unembedded_messages(tenant_id, batch_size)
    if result.error:
        message = "Embedding run failed"
    elif result.processed_count > 0:
        message = f"Successfully processed {result.processed_count} messages"
    else:
        message = "No unembedded messages found"
    return EmbedResponse(
        success=result.error is None,
        message=message,
        processed_count=result.processed_count,
        failed_batches=result.failed_batches,
        error=result.error,
    )


@router.get("/embed/stats", response_model=StatsResponse)
def embed_stats(tenant_id: TenantId, sangam: Sangam) -> StatsResponse:
    return sangam.get_embedding_stats(tenant_id)


@router.get("/config", response_model=ConfigurationReport)
def config(tenant_id: OperatorTenantId, sangam: Sangam) -> ConfigurationReport:
    """Probe store, embedding and generation services. Operator tenants only; each call hits the live providers."""
    return sangam.validate_configuration()
