from __future__ import annotations

import time
from typing import Any, Dict, Optional
from uuid import uuid4

from flask import Flask, g, jsonify, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from rq import Queue
from rq.exceptions import NoSuchJobError
from rq.job import Job

from errors import QueryError
from infra import configure_logging, get_redis, safe_error
from metrics import API_LATENCY_SECONDS, API_REQUESTS_TOTAL, JOBS_COMPLETED_TOTAL, JOBS_ENQUEUED_TOTAL
from pipeline import PROMPT_REQUIRED, QueryPipeline
from settings import Settings

log = configure_logging()


class QueryRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: Optional[str] = None
    run_async: bool = Field(default=False, alias="async")


def _record_completion(job: Job, status: str) -> None:
    """Count a finished job once, however often it is polled."""
    if job.meta.get("completion_counted"):
        return
    JOBS_COMPLETED_TOTAL.labels(status=status).inc()
    job.meta["completion_counted"] = True
    job.save_meta()


def _job_status(job: Job) -> str:
    if job.is_finished:
        return "finished"
    if job.is_failed:
        return "failed"
    if job.is_started:
        return "running"
    return "queued"


def create_app(pipeline: Optional[QueryPipeline] = None, settings: Optional[Settings] = None) -> Flask:
    settings = settings or Settings.from_env()
    pipeline = pipeline or QueryPipeline.from_settings(settings)

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = settings.max_content_length
    app.config["RATELIMIT_ENABLED"] = settings.rate_limit_enabled

    CORS(app, resources={r"/*": {"origins": settings.cors_origins}})

    limiter = Limiter(
        get_remote_address,
        app=app,
        default_limits=[],
        storage_uri=settings.rate_limit_storage_uri,
    )
    # the limiter is only weakly referenced by its decorators
    app.extensions["text2sql_limiter"] = limiter

    def _get_queue() -> Optional[Queue]:
        if not settings.async_enabled:
            return None
        r = get_redis(settings.redis_url, settings.redis_connect_timeout)
        if not r:
            return None
        return Queue(settings.rq_queue_name, connection=r, default_timeout=settings.rq_job_timeout_seconds)

    # ------------------------------------------------------------
    # Request lifecycle: request id + security headers + structured logs + metrics
    # ------------------------------------------------------------
    @app.before_request
    def _before_request():
        g.request_id = (request.headers.get("X-Request-ID") or str(uuid4())).strip()
        g.start_time = time.time()

    @app.after_request
    def _after_request(resp):
        resp.headers["X-Request-ID"] = getattr(g, "request_id", "")
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"

        latency_s = max(0.0, time.time() - getattr(g, "start_time", time.time()))
        path = request.url_rule.rule if request.url_rule else "unmatched"
        API_REQUESTS_TOTAL.labels(path=path, method=request.method, status=str(resp.status_code)).inc()
        API_LATENCY_SECONDS.labels(path=path).observe(latency_s)

        log.info(
            "request",
            extra={
                "request_id": getattr(g, "request_id", ""),
                "path": request.path,
                "method": request.method,
                "status": resp.status_code,
                "latency_ms": int(latency_s * 1000),
            },
        )
        return resp

    @app.errorhandler(QueryError)
    def _query_error(e: QueryError):
        if e.status_code >= 500:
            log.warning("query_failed", extra={"request_id": getattr(g, "request_id", ""), "kind": e.kind})
        return jsonify({"error": safe_error(e.public_message())}), e.status_code

    # ------------------------------------------------------------
    # Discovery / ops
    # ------------------------------------------------------------
    @app.route("/", methods=["GET"])
    @limiter.exempt
    def home():
        return "Text-to-SQL backend is running!", 200, {"Content-Type": "text/plain; charset=utf-8"}

    @app.route("/health", methods=["GET"])
    @limiter.exempt
    def health():
        return jsonify({"status": "ok"})

    @app.route("/metrics", methods=["GET"])
    @limiter.exempt
    def metrics():
        return generate_latest(), 200, {"Content-Type": CONTENT_TYPE_LATEST}

    # ------------------------------------------------------------
    # Main API
    # ------------------------------------------------------------
    @app.route("/api/query", methods=["POST"])
    @limiter.limit(lambda: settings.query_rate_limit)
    def query():
        try:
            body = QueryRequest.model_validate(request.get_json(silent=True) or {})
        except ValidationError:
            return jsonify({"error": PROMPT_REQUIRED}), 400

        if not body.prompt or not body.prompt.strip():
            return jsonify({"error": PROMPT_REQUIRED}), 400

        if body.run_async:
            q = _get_queue()
            if not q:
                return jsonify({"error": "Async requires Redis. Configure REDIS_URL and ASYNC_ENABLED=1."}), 400

            from worker import run_query_job  # local import to keep web lean

            job = q.enqueue(
                run_query_job,
                prompt=body.prompt,
                result_ttl=settings.job_result_ttl_seconds,
                ttl=settings.job_result_ttl_seconds,
                failure_ttl=settings.job_result_ttl_seconds,
            )
            JOBS_ENQUEUED_TOTAL.inc()
            return jsonify({"status": "queued", "job_id": job.id}), 202

        try:
            answer = pipeline.answer(body.prompt)
        except QueryError:
            raise
        except Exception as e:
            log.exception("api_failed", extra={"request_id": getattr(g, "request_id", "")})
            return jsonify({"error": safe_error(f"Failed to process your query: {e}")}), 500

        return jsonify(answer.to_dict())

    @app.route("/api/jobs/<job_id>", methods=["GET"])
    @limiter.exempt
    def job_get(job_id: str):
        q = _get_queue()
        if not q:
            return jsonify({"error": "Redis not configured"}), 400

        try:
            job = Job.fetch(job_id, connection=q.connection)
        except NoSuchJobError:
            return jsonify({"error": "Unknown job"}), 404

        status = _job_status(job)
        if status == "finished":
            result: Dict[str, Any] = job.return_value() or {}
            if "error" in result:
                _record_completion(job, "failed")
                return jsonify({"status": status, "error": safe_error(result["error"])}), int(result.get("status_code", 500))
            _record_completion(job, "ok")
            return jsonify({"status": status, "result": result})
        if status == "failed":
            _record_completion(job, "failed")
            return jsonify({"status": status, "error": "Background job failed."}), 500

        return jsonify({"status": status})

    return app


if __name__ == "__main__":
    _settings = Settings.from_env()
    _pipeline = QueryPipeline.from_settings(_settings)
    try:
        create_app(_pipeline, _settings).run(host="0.0.0.0", port=_settings.port, debug=_settings.debug)
    finally:
        _pipeline.close()
