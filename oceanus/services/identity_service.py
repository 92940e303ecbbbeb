from __future__ import annotations

import hashlib
import logging
import os
import secrets
from typing import Any

import jwt
from sqlmodel import Session, col, select

from oceanus.domain.errors import AuthError, NotFoundError
from oceanus.domain.models import (
    AuthUser,
    LoginRequest,
    LoginResponse,
    RefreshResponse,
    Role,
    User,
    UserAdminRead,
    now_utc,
)
from oceanus.infra.auth import (
    JWT_EXPIRES_SECONDS,
    JWT_REMEMBER_ME_EXPIRES_SECONDS,
    create_access_token,
    decode_access_token,
)
from oceanus.infra.db import get_engine
from oceanus.infra.events import event_bus

logger = logging.getLogger(__name__)

DEFAULT_PASSWORD = "password"

SEED_USERS: tuple[dict[str, str], ...] = (
    {"email": "admin@oceanus.com", "name": "Dr. Sarah Chen", "role": Role.ADMIN},
    {"email": "researcher@oceanus.com", "name": "Dr. Michael Torres", "role": Role.RESEARCHER},
    {"email": "policy@oceanus.com", "name": "Emma Rodriguez", "role": Role.POLICY_USER},
    {"email": "guest@oceanus.com", "name": "Guest User", "role": Role.GUEST},
)


def role_value(role: Any) -> str:
    return str(getattr(role, "value", role))


def to_auth_user(user: User) -> AuthUser:
    return AuthUser(id=user.id, email=user.email, name=user.name, role=role_value(user.role))


class IdentityService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _hash_password(self, raw_password: str) -> str:
        salt = os.getenv("PASSWORD_SALT", "oceanus-dev-salt")
        return hashlib.sha256(f"{salt}:{raw_password}".encode()).hexdigest()

    def ensure_seed_users(self) -> list[User]:
        created: list[User] = []
        with self._session() as session:
            existing = {item.email for item in session.exec(select(User)).all()}
            for row in SEED_USERS:
                if row["email"] in existing:
                    continue
                user = User(
                    email=row["email"],
                    name=row["name"],
                    role=Role(row["role"]),
                    password_hash=self._hash_password(DEFAULT_PASSWORD),
                )
                session.add(user)
                created.append(user)
            session.commit()
        if created:
            logger.info("seeded %d user(s)", len(created))
        return created

    def get_user(self, user_id: str) -> User:
        with self._session() as session:
            user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("user not found")
        return user

    def get_user_by_email(self, email: str) -> User | None:
        with self._session() as session:
            return session.exec(select(User).where(User.email == email.lower())).first()

    def list_users(self, search: str | None = None) -> list[UserAdminRead]:
        with self._session() as session:
            rows = list(session.exec(select(User).order_by(col(User.created_at))).all())
        if search:
            needle = search.lower()
            rows = [item for item in rows if needle in item.name.lower() or needle in item.email.lower()]
        return [
            UserAdminRead(
                id=item.id,
                email=item.email,
                name=item.name,
                role=role_value(item.role),
                last_login_at=item.last_login_at,
                created_at=item.created_at,
            )
            for item in rows
        ]

    def login(self, payload: LoginRequest) -> LoginResponse:
        with self._session() as session:
            user = session.exec(select(User).where(User.email == payload.email.lower())).first()
            if user is None:
                logger.info("login rejected: unknown email")
                raise AuthError("Invalid credentials")
            if not secrets.compare_digest(user.password_hash, self._hash_password(payload.password)):
                logger.info("login rejected: bad password for user %s", user.id)
                raise AuthError("Invalid credentials")
            user.last_login_at = now_utc()
            session.add(user)
            session.commit()
            session.refresh(user)

        expires_in = JWT_REMEMBER_ME_EXPIRES_SECONDS if payload.remember_me else JWT_EXPIRES_SECONDS
        auth_user = to_auth_user(user)
        token = create_access_token(user_id=user.id, role=auth_user.role, expires_seconds=expires_in)
        event_bus.publish_dict(
            "auth.login",
            {"user_id": user.id, "role": auth_user.role, "remember_me": payload.remember_me},
            actor_id=user.id,
        )
        logger.info("user %s logged in as %s", user.id, auth_user.role)
        return LoginResponse(token=token, role=auth_user.role, user=auth_user, expires_in=expires_in)

    def resolve_token(self, token: str) -> tuple[User, dict[str, Any]]:
        try:
            claims = decode_access_token(token)
        except (jwt.PyJWTError, ValueError) as exc:
            raise AuthError("Invalid token") from exc
        try:
            user = self.get_user(claims["sub"])
        except NotFoundError as exc:
            raise AuthError("Invalid token") from exc
        return user, claims

    def refresh(self, token: str) -> RefreshResponse:
        user, _ = self.resolve_token(token)
        new_token = create_access_token(
            user_id=user.id,
            role=role_value(user.role),
            expires_seconds=JWT_EXPIRES_SECONDS,
        )
        return RefreshResponse(token=new_token, expires_in=JWT_EXPIRES_SECONDS)

    def me(self, token: str) -> AuthUser:
        user, _ = self.resolve_token(token)
        return to_auth_user(user)
