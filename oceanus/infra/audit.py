from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlmodel import Session, col, select
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from oceanus.domain.models import AuditLog, now_utc
from oceanus.infra.db import get_engine

logger = logging.getLogger(__name__)

WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
AUDITED_READ_PREFIXES = ("/api/admin/",)
UNAUDITED_PATHS = frozenset({"/healthz", "/readyz"})
AUDIT_STATE_KEY = "audit"


@dataclass
class AuditEntry:
    action: str
    resource: str
    method: str
    status_code: int
    actor_id: str | None = None
    actor_role: str | None = None
    detail: dict[str, Any] = field(default_factory=dict)

    def to_record(self) -> AuditLog:
        return AuditLog(
            actor_id=self.actor_id,
            actor_role=self.actor_role,
            action=self.action,
            resource=self.resource,
            method=self.method,
            status_code=self.status_code,
            detail=self.detail,
        )


def outcome_for(status_code: int) -> str:
    if status_code >= 500:
        return "error"
    if status_code in {401, 403}:
        return "denied"
    if status_code >= 400:
        return "rejected"
    return "ok"


def _merge_detail(base: dict[str, Any], extra: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in extra.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def is_audited(method: str, path: str) -> bool:
    if path in UNAUDITED_PATHS:
        return False
    return method in WRITE_METHODS or path.startswith(AUDITED_READ_PREFIXES)


def set_audit_context(
    request: Request,
    *,
    action: str | None = None,
    resource: str | None = None,
    detail: dict[str, Any] | None = None,
) -> None:
    """Annotate the current request; the middleware writes it after the response.

    Annotated requests are audited even when their method and path would not be.
    """
    context: dict[str, Any] = dict(getattr(request.state, AUDIT_STATE_KEY, None) or {})
    if action is not None:
        context["action"] = action
    if resource is not None:
        context["resource"] = resource
    if detail:
        context["detail"] = _merge_detail(context.get("detail") or {}, detail)
    setattr(request.state, AUDIT_STATE_KEY, context)


def build_entry(request: Request, response: Response, context: dict[str, Any]) -> AuditEntry:
    claims = getattr(request.state, "claims", None) or {}
    path = request.url.path
    action = context.get("action") or f"{request.method}:{path}"
    route = request.scope.get("route")
    detail: dict[str, Any] = {
        "request": {
            "path": path,
            "route": getattr(route, "path", path),
            "query": request.url.query,
            "client_ip": request.client.host if request.client is not None else None,
            "ts": now_utc().isoformat(),
        },
        "outcome": outcome_for(response.status_code),
    }
    detail = _merge_detail(detail, context.get("detail") or {})
    return AuditEntry(
        action=action,
        resource=context.get("resource") or path,
        method=request.method,
        status_code=response.status_code,
        actor_id=claims.get("sub"),
        actor_role=claims.get("role"),
        detail=detail,
    )


def record_audit(entry: AuditEntry) -> None:
    with Session(get_engine()) as session:
        session.add(entry.to_record())
        session.commit()


class AuditMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        context = getattr(request.state, AUDIT_STATE_KEY, None) or {}
        if not context and not is_audited(request.method, request.url.path):
            return response
        entry = build_entry(request, response, context)
        try:
            record_audit(entry)
        except Exception:
            # audit failures never change the response
            logger.warning("audit write failed for %s %s", entry.method, entry.resource, exc_info=True)
        return response


def list_audit_logs(limit: int = 100, action: str | None = None) -> list[AuditLog]:
    with Session(get_engine(), expire_on_commit=False) as session:
        statement = select(AuditLog)
        if action:
            statement = statement.where(AuditLog.action == action)
        statement = statement.order_by(col(AuditLog.ts).desc()).limit(limit)
        return list(session.exec(statement).all())
