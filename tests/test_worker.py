from prometheus_client import REGISTRY

import worker
from server import _record_completion


def test_job_returns_success_payload(make_pipeline, monkeypatch):
    pipe, _ = make_pipeline("SELECT name, id FROM departments ORDER BY id")
    monkeypatch.setattr(worker, "_pipeline", pipe)

    out = worker.run_query_job(prompt="List departments")
    assert out["sql"] == "SELECT name, id FROM departments ORDER BY id"
    assert out["chartData"]["labels"] == ["Eng", "Sales"]


def test_job_reports_query_errors(make_pipeline, monkeypatch):
    pipe, _ = make_pipeline("No SQL for you.")
    monkeypatch.setattr(worker, "_pipeline", pipe)

    out = worker.run_query_job(prompt="List departments")
    assert out["status_code"] == 500
    assert out["error"].startswith("Failed to process your query: ")


def test_worker_reuses_and_closes_pipeline(monkeypatch):
    closed = []
    used = []

    class FakePipeline:
        def close(self):
            closed.append(True)

    class FakeWorker:
        def __init__(self, queues, connection=None):
            used.append(queues)

        def work(self, with_scheduler=False):
            monkeypatch.setattr(worker, "_pipeline", FakePipeline())
            return True

    monkeypatch.setattr(worker, "_pipeline", None)
    monkeypatch.setattr(worker, "get_redis", lambda url, timeout=10: object())
    monkeypatch.setattr(worker, "Queue", lambda name, connection=None: name)
    monkeypatch.setattr(worker, "SimpleWorker", FakeWorker)

    worker.main()

    assert len(used) == 1
    assert closed == [True]


class _FinishedJob:
    def __init__(self):
        self.meta = {}
        self.saves = 0

    def save_meta(self):
        self.saves += 1


def test_completion_counted_once_per_job():
    def _ok_count():
        return REGISTRY.get_sample_value("text2sql_jobs_completed_total", {"status": "ok"}) or 0.0

    job = _FinishedJob()
    before = _ok_count()
    _record_completion(job, "ok")
    _record_completion(job, "ok")
    _record_completion(job, "ok")

    assert _ok_count() == before + 1
    assert job.saves == 1
