"""FastAPI application entry point."""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from apps.sangam.db import ensure_tables
from apps.sangam.routes import health, sangam
from apps.sangam.services.auth import auth_middleware

logging.basicConfig(level=logging.INFO)

# CORS: allow only specified origins (no wildcard).
# Env: CORS_ALLOW_ORIGINS="https://community.example.com,http://localhost:3000" (comma-separated).
CORS_DEFAULT_ORIGINS = ["http://localhost:3000"]
_cors_origins_raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
CORS_ORIGINS = (
    [o.strip() for o in _cors_origins_raw.split(",") if o.strip()]
    if _cors_origins_raw
    else CORS_DEFAULT_ORIGINS
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Alembic owns the schema; ensure_tables is a no-op outside the ensure_tables test strategy."""
    ensure_tables()
    yield


app = FastAPI(
    title="Sangam API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(CORSMiddleware, allow_origins=CORS_ORIGINS, allow_methods=["*"], allow_headers=["*"])
app.middleware("http")(auth_middleware)

app.include_router(health.router, tags=["health"])
app.include_router(sangam.router, prefix="/sangam", tags=["sangam"])
