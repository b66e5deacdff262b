from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from app.api.routers import announcements, attendance, auth, classes, fees, settings, students, teachers, users
from app.domain.errors import UpsertConflictError
from app.infra.audit import AuditMiddleware
from app.infra.db import check_db_ready
from app.infra.logging_config import configure_logging

configure_logging()
log = logging.getLogger(__name__)

app = FastAPI(
    title="school-core",
    description="Tenant-scoped authorization and consistency layer for the school management backend.",
    version="0.1.0",
)

app.add_middleware(AuditMiddleware)

app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(users.router, prefix="/api/users", tags=["users"])
app.include_router(teachers.router, prefix="/api/teachers", tags=["teachers"])
app.include_router(classes.router, prefix="/api/classes", tags=["classes"])
app.include_router(students.router, prefix="/api/students", tags=["students"])
app.include_router(attendance.router, prefix="/api/attendance", tags=["attendance"])
app.include_router(fees.router, prefix="/api/fees", tags=["fees"])
app.include_router(announcements.router, prefix="/api/announcements", tags=["announcements"])
app.include_router(settings.router, prefix="/api/settings", tags=["settings"])


@app.exception_handler(UpsertConflictError)
def upsert_conflict_handler(request: Request, exc: UpsertConflictError) -> JSONResponse:
    log.error("upsert.retry_failed path=%s error=%s", request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={"detail": {"kind": "internal_error", "message": "could not save record, please retry"}},
    )


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/readyz")
def readyz() -> dict[str, object]:
    db_ok = check_db_ready()
    checks = {"db": "ok" if db_ok else "fail"}
    if not db_ok:
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "checks": checks},
        )
    return {"status": "ready", "checks": checks}
