from __future__ import annotations

import logging
import secrets

from pydantic import ValidationError as PydanticValidationError

from oceanus.domain.models import AuthUser, SessionState
from oceanus.infra import redis_state

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "session:"
ANONYMOUS = SessionState()


class SessionStore:
    """Holds who is logged in, and with which role, for one browser session.

    Token and user are written as a single keyed record so a reader sees both
    or neither. The record lives in Redis under ``session:<id>``; the id is
    carried by the session cookie, so a page reload restores the session.
    """

    def __init__(self, session_id: str | None = None) -> None:
        self._session_id = session_id or None

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @staticmethod
    def _key(session_id: str) -> str:
        return f"{SESSION_KEY_PREFIX}{session_id}"

    def get(self) -> SessionState:
        if self._session_id is None:
            return ANONYMOUS
        record = redis_state.get_json(self._key(self._session_id))
        if record is None:
            return ANONYMOUS
        token = record.get("token")
        user_raw = record.get("user")
        if not isinstance(token, str) or not isinstance(user_raw, dict):
            logger.warning("discarding partial session record %s", self._session_id)
            return ANONYMOUS
        try:
            user = AuthUser.model_validate(user_raw)
        except PydanticValidationError:
            logger.warning("discarding unreadable session record %s", self._session_id)
            return ANONYMOUS
        return SessionState(token=token, user=user)

    @property
    def is_authenticated(self) -> bool:
        return self.get().is_authenticated

    def login(self, token: str, user: AuthUser, *, expires_in: int) -> str:
        previous = self._session_id
        session_id = secrets.token_urlsafe(32)
        redis_state.put_json(
            self._key(session_id),
            {"token": token, "user": user.model_dump(mode="json")},
            ttl_seconds=expires_in,
        )
        if previous is not None:
            redis_state.delete_keys(self._key(previous))
        self._session_id = session_id
        logger.info("session opened for user %s", user.id)
        return session_id

    def logout(self) -> None:
        if self._session_id is not None:
            redis_state.delete_keys(self._key(self._session_id))
        self._session_id = None
