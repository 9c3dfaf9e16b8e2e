from __future__ import annotations

from prometheus_client import Counter, Histogram

# Labels kept small to avoid cardinality explosions
API_REQUESTS_TOTAL = Counter(
    "text2sql_api_requests_total",
    "Total API requests",
    ["path", "method", "status"],
)

API_LATENCY_SECONDS = Histogram(
    "text2sql_api_latency_seconds",
    "API request latency (seconds)",
    ["path"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 3, 5, 8, 13, 21),
)

SCHEMA_LATENCY_SECONDS = Histogram(
    "text2sql_schema_latency_seconds",
    "Schema introspection latency (seconds)",
    buckets=(0.005, 0.01, 0.02, 0.05, 0.1, 0.2, 0.5, 1, 2, 5),
)

LLM_LATENCY_SECONDS = Histogram(
    "text2sql_llm_latency_seconds",
    "LLM generation latency (seconds)",
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 3, 5, 8, 13, 21),
)

DB_LATENCY_SECONDS = Histogram(
    "text2sql_db_latency_seconds",
    "Generated SQL execution latency (seconds)",
    buckets=(0.01, 0.02, 0.05, 0.1, 0.2, 0.35, 0.5, 0.8, 1.3, 2.1, 3.4, 5.5),
)

PIPELINE_FAILURES_TOTAL = Counter(
    "text2sql_pipeline_failures_total",
    "Failed pipeline runs",
    ["kind"],  # bad_request | schema_unavailable | generation_failed | execution_failed
)

JOBS_ENQUEUED_TOTAL = Counter(
    "text2sql_jobs_enqueued_total",
    "Background jobs enqueued",
)

JOBS_COMPLETED_TOTAL = Counter(
    "text2sql_jobs_completed_total",
    "Background jobs completed",
    ["status"],  # ok | failed
)
