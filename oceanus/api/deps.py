from __future__ import annotations

from collections.abc import Callable
from typing import Annotated, Any, NoReturn

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from oceanus.domain.errors import AccessDeniedError, AuthError, NotFoundError, OceanusError, ValidationError
from oceanus.services.identity_service import IdentityService, role_value

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def raise_http_error(exc: OceanusError) -> NoReturn:
    if isinstance(exc, ValidationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if isinstance(exc, AuthError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    if isinstance(exc, AccessDeniedError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    raise exc


def get_bearer_token(token: str = Depends(oauth2_scheme)) -> str:
    return token


def get_current_claims(
    request: Request,
    token: str = Depends(oauth2_scheme),
) -> dict[str, Any]:
    try:
        user, claims = IdentityService().resolve_token(token)
    except AuthError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from exc
    # role is read from the stored user record, not from the token
    claims = {**claims, "role": role_value(user.role)}
    request.state.claims = claims
    return claims


def require_role(*roles: str) -> Callable[[dict[str, Any]], dict[str, Any]]:
    allowed = frozenset(item for item in roles if item)

    def _checker(
        claims: Annotated[dict[str, Any], Depends(get_current_claims)],
    ) -> dict[str, Any]:
        if not allowed or claims.get("role") in allowed:
            return claims
        raise_http_error(AccessDeniedError(f"Role not permitted: {claims.get('role')}"))

    return _checker
