from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

import jwt

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me-oceanus-local-only")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_SECONDS = int(os.getenv("JWT_EXPIRES_SECONDS", "3600"))
JWT_REMEMBER_ME_EXPIRES_SECONDS = int(os.getenv("JWT_REMEMBER_ME_EXPIRES_SECONDS", str(7 * 24 * 3600)))


def create_access_token(
    *,
    user_id: str,
    role: str,
    expires_seconds: int | None = None,
) -> str:
    now = datetime.now(UTC)
    expire_delta = timedelta(seconds=JWT_EXPIRES_SECONDS if expires_seconds is None else expires_seconds)
    payload: dict[str, Any] = {
        "sub": user_id,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + expire_delta).timestamp()),
        "jti": uuid4().hex,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    decoded = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    if not isinstance(decoded, dict):
        raise ValueError("Invalid token payload")
    if not isinstance(decoded.get("sub"), str):
        raise ValueError("Invalid token subject")
    return decoded
