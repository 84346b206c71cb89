"""Server-side tenant injection.

Tenant is taken from auth (see services.auth). Client-provided tenant_id in query/body is ignored.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request


def get_tenant_id(request: Request) -> str:
    """FastAPI dependency: tenant_id from request.state (set by auth middleware). 401 if missing."""
    tenant_id = getattr(request.state, "tenant_id", None)
    if not tenant_id or not str(tenant_id).strip():
        raise HTTPException(status_code=401, detail="Tenant ID required")
    return str(tenant_id).strip()


TenantId = Annotated[str, Depends(get_tenant_id)]
