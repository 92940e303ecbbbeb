from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from oceanus.api.routers import admin, ai, auth, dashboard, datasets, reporting, taxonomy, ui
from oceanus.infra.audit import AuditMiddleware
from oceanus.infra.db import check_db_ready, create_tables
from oceanus.infra.jobs import job_runner
from oceanus.infra.logging_config import setup_logging
from oceanus.infra.redis_state import check_redis_ready
from oceanus.services.dataset_service import DatasetService
from oceanus.services.identity_service import IdentityService

logger = logging.getLogger(__name__)

SEED_DEMO_DATA = os.getenv("SEED_DEMO_DATA", "true").strip().lower() not in {"0", "false", "no"}
SEED_DATASET_OWNER = "admin@oceanus.com"


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    setup_logging()
    create_tables()
    if SEED_DEMO_DATA:
        identity = IdentityService()
        identity.ensure_seed_users()
        admin_user = identity.get_user_by_email(SEED_DATASET_OWNER)
        DatasetService().ensure_seed_datasets(owner_id=admin_user.id if admin_user is not None else None)
    logger.info("oceanus started")
    try:
        yield
    finally:
        job_runner.shutdown()
        logger.info("oceanus stopped")


app = FastAPI(
    title="oceanus",
    description="Marine data platform: datasets, analysis tools and a role-guarded console.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(AuditMiddleware)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    logger.debug("rejected request payload: %s", exc.errors())
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": "Invalid request data"})


app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["dashboard"])
app.include_router(datasets.router, prefix="/api", tags=["datasets"])
app.include_router(ai.router, prefix="/api/ai", tags=["ai"])
app.include_router(taxonomy.router, prefix="/api/taxonomy", tags=["taxonomy"])
app.include_router(reporting.router, prefix="/api/reports", tags=["reports"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])

static_dir = Path(__file__).resolve().parent / "web" / "static"
app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/readyz")
def readyz() -> dict[str, object]:
    db_ok = check_db_ready()
    redis_ok = check_redis_ready()
    checks = {
        "db": "ok" if db_ok else "fail",
        "redis": "ok" if redis_ok else "fail",
    }
    if not (db_ok and redis_ok):
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "checks": checks},
        )
    return {"status": "ready", "checks": checks}


# console pages last: it ends with a catch-all not-found route
app.include_router(ui.router, tags=["ui"])
