from __future__ import annotations

from typing import Any, Dict, Optional

from rq import Queue, SimpleWorker

from errors import QueryError
from infra import configure_logging, get_redis
from pipeline import QueryPipeline
from settings import Settings

log = configure_logging()

_pipeline: Optional[QueryPipeline] = None


def _get_pipeline() -> QueryPipeline:
    global _pipeline
    if _pipeline is None:
        _pipeline = QueryPipeline.from_settings(Settings.from_env())
    return _pipeline


def run_query_job(*, prompt: str) -> Dict[str, Any]:
    """
    Background job:
    - Runs the query pipeline once
    - Returns the /api/query success payload, or {"error", "status_code"}
    """
    try:
        return _get_pipeline().answer(prompt).to_dict()
    except QueryError as e:
        log.warning("job_query_failed", extra={"kind": e.kind})
        return {"error": e.public_message(), "status_code": e.status_code}


def main() -> None:
    settings = Settings.from_env()
    r = get_redis(settings.redis_url, settings.redis_connect_timeout)
    if not r:
        raise RuntimeError("REDIS_URL is required to run the RQ worker.")

    q = Queue(settings.rq_queue_name, connection=r)
    # jobs run in this process so the pipeline and its pool outlive each job
    w = SimpleWorker([q], connection=r)
    log.info("rq_worker_start", extra={"queue": settings.rq_queue_name})
    try:
        w.work(with_scheduler=True)
    finally:
        if _pipeline is not None:
            _pipeline.close()


if __name__ == "__main__":
    main()
