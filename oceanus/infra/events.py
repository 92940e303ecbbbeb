from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

from sqlmodel import Session, col, select

from oceanus.domain.models import EventEnvelope, EventRecord
from oceanus.infra.db import get_engine

logger = logging.getLogger(__name__)

EventHandler = Callable[[EventEnvelope], None]
WILDCARD = "*"


class EventBus:
    """Persists domain events and fans them out to in-process subscribers.

    The record is written first; a subscriber that raises is logged and the
    remaining subscribers still run.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        self._subscribers[event_type].append(handler)

    def _store(self, event: EventEnvelope, session: Session) -> None:
        session.add(
            EventRecord(
                event_id=event.event_id,
                event_type=event.event_type,
                ts=event.ts,
                actor_id=event.actor_id,
                correlation_id=event.correlation_id,
                payload=event.payload,
            )
        )

    def publish(self, event: EventEnvelope, session: Session | None = None) -> None:
        if session is not None:
            self._store(event, session)
        else:
            with Session(get_engine()) as own_session:
                self._store(event, own_session)
                own_session.commit()

        for handler in [*self._subscribers.get(event.event_type, []), *self._subscribers.get(WILDCARD, [])]:
            try:
                handler(event)
            except Exception:
                logger.exception("subscriber failed for %s (%s)", event.event_type, event.event_id)

    def publish_dict(
        self,
        event_type: str,
        payload: dict[str, Any],
        *,
        actor_id: str | None = None,
        correlation_id: str | None = None,
    ) -> EventEnvelope:
        event = EventEnvelope(
            event_type=event_type,
            actor_id=actor_id,
            correlation_id=correlation_id,
            payload=payload,
        )
        self.publish(event)
        return event


def list_events(event_type: str | None = None, limit: int = 50) -> list[EventRecord]:
    with Session(get_engine(), expire_on_commit=False) as session:
        statement = select(EventRecord)
        if event_type:
            statement = statement.where(EventRecord.event_type == event_type)
        statement = statement.order_by(col(EventRecord.ts).desc()).limit(limit)
        return list(session.exec(statement).all())


event_bus = EventBus()
