from __future__ import annotations

from oceanus.infra.jobs import DeferredJobRunner


def test_job_runs_after_delay() -> None:
    runner = DeferredJobRunner()
    calls: list[str] = []
    job = runner.schedule("job-1", lambda: calls.append("ran"), delay_seconds=0.01)
    assert job.wait(5)
    assert job.succeeded
    assert calls == ["ran"]
    assert runner.get("job-1") is job
    assert runner.pending_keys() == []


def test_failed_job_records_error() -> None:
    runner = DeferredJobRunner()

    def boom() -> None:
        raise RuntimeError("processing failed")

    job = runner.schedule("job-err", boom, delay_seconds=0)
    assert job.wait(5)
    assert not job.succeeded
    assert isinstance(job.error, RuntimeError)


def test_rescheduling_replaces_pending_job() -> None:
    runner = DeferredJobRunner()
    calls: list[str] = []
    first = runner.schedule("job-2", lambda: calls.append("first"), delay_seconds=30)
    second = runner.schedule("job-2", lambda: calls.append("second"), delay_seconds=0)
    assert second.wait(5)
    assert calls == ["second"]
    assert not first.done.is_set()
    assert runner.get("job-2") is second


def test_shutdown_cancels_pending_jobs() -> None:
    runner = DeferredJobRunner()
    calls: list[str] = []
    job = runner.schedule("job-3", lambda: calls.append("ran"), delay_seconds=30)
    assert runner.pending_keys() == ["job-3"]
    runner.shutdown()
    assert job.wait(1)
    assert job.cancelled
    assert not job.succeeded
    assert calls == []
    assert runner.pending_keys() == []
