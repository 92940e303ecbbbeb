from __future__ import annotations

from sqlmodel import Session, SQLModel, create_engine, select

from oceanus.domain.models import EventEnvelope, EventRecord
from oceanus.infra import db
from oceanus.infra.events import EventBus, list_events


def test_event_bus_publish_and_subscribe() -> None:
    engine = create_engine("sqlite:///:memory:")
    SQLModel.metadata.create_all(engine)

    bus = EventBus()
    seen: list[str] = []

    def handler(event: EventEnvelope) -> None:
        seen.append(event.event_id)

    event = EventEnvelope(
        event_type="dataset.uploaded",
        actor_id="user-1",
        payload={"dataset_id": "dataset-1"},
    )
    bus.subscribe("dataset.uploaded", handler)

    with Session(engine) as session:
        bus.publish(event, session=session)
        session.commit()

    with Session(engine) as session:
        stored = session.exec(select(EventRecord)).all()

    assert len(stored) == 1
    assert stored[0].event_id == event.event_id
    assert stored[0].payload == {"dataset_id": "dataset-1"}
    assert seen == [event.event_id]


def test_publish_dict_commits_with_own_session(monkeypatch) -> None:
    engine = create_engine("sqlite:///:memory:")
    SQLModel.metadata.create_all(engine)
    monkeypatch.setattr(db, "engine", engine)

    bus = EventBus()
    wildcard: list[str] = []
    bus.subscribe("*", lambda event: wildcard.append(event.event_type))

    bus.publish_dict("report.generated", {"report_id": "r-1"}, actor_id="user-2")

    with Session(engine) as session:
        stored = session.exec(select(EventRecord)).all()
    assert [item.event_type for item in stored] == ["report.generated"]
    assert stored[0].actor_id == "user-2"
    assert wildcard == ["report.generated"]


def test_failing_subscriber_does_not_block_others(monkeypatch) -> None:
    engine = create_engine("sqlite:///:memory:")
    SQLModel.metadata.create_all(engine)
    monkeypatch.setattr(db, "engine", engine)

    bus = EventBus()
    seen: list[str] = []

    def broken(_: EventEnvelope) -> None:
        raise RuntimeError("subscriber exploded")

    bus.subscribe("dataset.processed", broken)
    bus.subscribe("dataset.processed", lambda event: seen.append(event.event_type))
    bus.publish_dict("dataset.processed", {"dataset_id": "d-1"})

    assert seen == ["dataset.processed"]
    assert [item.event_type for item in list_events()] == ["dataset.processed"]
    assert list_events("auth.login") == []
