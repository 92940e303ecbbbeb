from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from oceanus.api.deps import require_role
from oceanus.domain.models import AuditLogRead, Role, UserAdminRead
from oceanus.infra.audit import list_audit_logs
from oceanus.services.identity_service import IdentityService

router = APIRouter(dependencies=[Depends(require_role(Role.ADMIN))])


def get_identity_service() -> IdentityService:
    return IdentityService()


Service = Annotated[IdentityService, Depends(get_identity_service)]


@router.get("/users", response_model=list[UserAdminRead])
def admin_list_users(service: Service, search: str | None = Query(default=None)) -> list[UserAdminRead]:
    return service.list_users(search=search)


@router.get("/audit-logs", response_model=list[AuditLogRead])
def admin_audit_logs(
    limit: int = Query(default=100, ge=1, le=500),
    action: str | None = Query(default=None),
) -> list[AuditLogRead]:
    return [AuditLogRead.model_validate(item) for item in list_audit_logs(limit=limit, action=action)]
