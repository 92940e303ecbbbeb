from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from oceanus.api.deps import get_bearer_token, raise_http_error
from oceanus.domain.errors import AuthError
from oceanus.domain.models import AuthUser, LoginRequest, LoginResponse, RefreshResponse
from oceanus.infra.audit import set_audit_context
from oceanus.services.identity_service import IdentityService

router = APIRouter()


def get_identity_service() -> IdentityService:
    return IdentityService()


Service = Annotated[IdentityService, Depends(get_identity_service)]
BearerToken = Annotated[str, Depends(get_bearer_token)]


@router.post("/login", response_model=LoginResponse)
def login(payload: LoginRequest, request: Request, service: Service) -> LoginResponse:
    try:
        response = service.login(payload)
    except AuthError as exc:
        set_audit_context(request, action="auth.login", detail={"login": {"email": payload.email}})
        raise_http_error(exc)
    request.state.claims = {"sub": response.user.id, "role": response.role}
    set_audit_context(request, action="auth.login")
    return response


@router.post("/refresh", response_model=RefreshResponse)
def refresh(token: BearerToken, service: Service) -> RefreshResponse:
    try:
        return service.refresh(token)
    except AuthError as exc:
        raise_http_error(exc)


@router.get("/me", response_model=AuthUser)
def me(token: BearerToken, service: Service) -> AuthUser:
    try:
        return service.me(token)
    except AuthError as exc:
        raise_http_error(exc)
