"""Tests for the queue worker."""

from conftest import FakeExecutor, RecordingNotifier
from stagerun.src import worker

PIPELINE = {
    "name": "queued",
    "environment": {"branch": "main"},
    "stages": [
        {"name": "build", "commands": ["make"]},
        {"name": "check", "commands": ['test "$BRANCH" = main']},
    ],
}

def test_process_job_mirrors_status(monkeypatch):
    statuses = []
    monkeypatch.setattr(worker, "update_run_status", lambda run_id, status: statuses.append((run_id, status)))
    executor = FakeExecutor()

    result = worker.process_job(
        {"run_id": "q1", "pipeline": PIPELINE, "context": {"repo_url": "https://example.com/x.git"}},
        executor_factory=lambda target: executor,
        notifier=RecordingNotifier(),
    )

    assert result.run_id == "q1"
    assert result.succeeded
    assert statuses == [("q1", "running"), ("q1", "succeeded")]

def test_worker_loop_rejects_invalid_job(monkeypatch):
    statuses = []
    jobs = [{"run_id": "bad", "pipeline": {"name": "no stages"}, "context": {}}]
    monkeypatch.setattr(worker, "dequeue_pipeline_run", lambda: jobs.pop(0) if jobs else None)
    monkeypatch.setattr(worker, "update_run_status", lambda run_id, status: statuses.append((run_id, status)))

    worker.worker_loop(max_jobs=1)

    assert statuses == [("bad", "failed")]

def test_worker_loop_survives_malformed_job(monkeypatch):
    statuses = []
    jobs = [
        {"pipeline": PIPELINE},
        {"run_id": "next", "pipeline": {"name": "no stages"}},
    ]
    monkeypatch.setattr(worker, "dequeue_pipeline_run", lambda: jobs.pop(0) if jobs else None)
    monkeypatch.setattr(worker, "update_run_status", lambda run_id, status: statuses.append((run_id, status)))

    worker.worker_loop(max_jobs=2)

    assert jobs == []
    assert statuses == [("next", "failed")]

def test_worker_loop_marks_unexpected_error_failed(monkeypatch):
    statuses = []
    jobs = [{"run_id": "boom", "pipeline": PIPELINE}]

    def explode(job):
        raise RuntimeError("disk full")

    monkeypatch.setattr(worker, "dequeue_pipeline_run", lambda: jobs.pop(0) if jobs else None)
    monkeypatch.setattr(worker, "update_run_status", lambda run_id, status: statuses.append((run_id, status)))
    monkeypatch.setattr(worker, "process_job", explode)

    worker.worker_loop(max_jobs=1)

    assert statuses == [("boom", "failed")]
