"""Auth middleware: resolve the community (tenant) from the Authorization header only.

Accepted forms:
  Authorization: Bearer tenant:<id>   (or tenant=<id>)
  Authorization: Bearer <jwt>         (tenant_id claim; sub becomes actor_id)

tenant_id sent in query/body is never read. X-Tenant-Debug is honoured only when
ENV=test and ENABLE_TEST_TENANT_HEADER=1.
"""

import logging
import os
import re
from typing import Literal

import jwt
from starlette.requests import Request
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)

BEARER_TENANT_PATTERN = re.compile(r"^Bearer\s+tenant[:=](.+)$", re.IGNORECASE)

# Paths that answer without a tenant.
PUBLIC_PATHS = frozenset({"/health", "/docs", "/openapi.json"})


def _env() -> str:
    return (os.getenv("ENV") or os.getenv("ENVIRONMENT") or "").lower()


def _allow_tenant_debug_header() -> bool:
    if _env() != "test":
        return False
    return os.getenv("ENABLE_TEST_TENANT_HEADER", "").lower() in ("1", "true", "yes")


def _parse_tenant_from_jwt(token: str) -> tuple[str | None, str | None]:
    """Decode JWT and read (tenant_id, sub). Verifies HS256 signature when JWT_SECRET is set."""
    secret = os.getenv("JWT_SECRET", "").strip()
    try:
        if secret:
            payload = jwt.decode(token, secret, algorithms=["HS256"])
        else:
            payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as e:
        logger.info("auth: rejected token err=%s", type(e).__name__)
        return None, None
    tid = payload.get("tenant_id")
    aid = payload.get("sub")
    if not tid:
        return None, None
    return str(tid).strip(), (str(aid).strip() if aid else None)


def _extract_tenant_and_actor(auth_header: str) -> tuple[str | Literal[False], str | None]:
    if not auth_header or not auth_header.strip().lower().startswith("bearer "):
        return False, None
    m = BEARER_TENANT_PATTERN.match(auth_header.strip())
    if m:
        return m.group(1).strip() or False, None
    tid, aid = _parse_tenant_from_jwt(auth_header.strip()[7:].strip())
    return (tid if tid else False, aid)


async def auth_middleware(request: Request, call_next):
    """Set request.state.tenant_id (and actor_id) or answer 401. PUBLIC_PATHS are exempt."""
    if request.url.path.rstrip("/") in PUBLIC_PATHS:
        return await call_next(request)

    tenant_id: str | None = None
    actor_id: str | None = None

    auth_header = request.headers.get("Authorization")
    if auth_header:
        parsed, actor_id = _extract_tenant_and_actor(auth_header)
        if parsed is not False:
            tenant_id = parsed

    if tenant_id is None and _allow_tenant_debug_header():
        tenant_id = (request.headers.get("X-Tenant-Debug") or "").strip() or None

    if not tenant_id or not str(tenant_id).strip():
        return JSONResponse(
            status_code=401,
            content={"detail": "Missing or invalid tenant. Use Authorization: Bearer tenant:<id> or JWT with tenant_id claim"},
        )

    request.state.tenant_id = str(tenant_id).strip()
    if actor_id:
        request.state.actor_id = actor_id
    return await call_next(request)
