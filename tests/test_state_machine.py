from __future__ import annotations

from oceanus.domain.state_machine import DatasetStatus, can_transition


def test_pending_can_finish_or_fail() -> None:
    assert can_transition(DatasetStatus.PENDING, DatasetStatus.PROCESSED)
    assert can_transition(DatasetStatus.PENDING, DatasetStatus.PROCESSING)
    assert can_transition(DatasetStatus.PENDING, DatasetStatus.FAILED)
    assert can_transition(DatasetStatus.PROCESSING, DatasetStatus.PROCESSED)


def test_terminal_states_do_not_move() -> None:
    for target in DatasetStatus:
        assert not can_transition(DatasetStatus.PROCESSED, target)
        assert not can_transition(DatasetStatus.FAILED, target)
    assert not can_transition(DatasetStatus.PROCESSING, DatasetStatus.PENDING)
