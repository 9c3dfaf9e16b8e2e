from __future__ import annotations

import logging
import os
import re
import sys
from typing import Optional

import redis
from pythonjsonlogger.json import JsonFormatter

LOGGER_NAME = "text2sql"

_log = logging.getLogger(f"{LOGGER_NAME}.infra")


def get_redis(url: str, connect_timeout: int = 10) -> Optional[redis.Redis]:
    """Return a live Redis client for `url`, or None when unset/unreachable."""
    url = (url or "").strip()
    if not url:
        return None

    try:
        r = redis.Redis.from_url(
            url,
            socket_connect_timeout=connect_timeout,
            socket_timeout=None,          # RQ workers block on BLPOP
            health_check_interval=30,
            retry_on_timeout=True,
        )
        r.ping()
        return r
    except (redis.RedisError, ValueError) as e:
        _log.warning("redis_unavailable", extra={"error": safe_error(str(e))})
        return None


def safe_error(msg: str) -> str:
    """Best-effort redaction for user-facing errors."""
    msg = msg or "Request failed"
    msg = re.sub(r"(postgres(?:ql)?(?:\+\w+)?://)([^:@\s]+):([^@\s]+)@", r"\1***:***@", msg, flags=re.IGNORECASE)
    msg = re.sub(r"(mysql(?:\+\w+)?://)([^:@\s]+):([^@\s]+)@", r"\1***:***@", msg, flags=re.IGNORECASE)
    msg = re.sub(r"(redis://)([^@\s]*)@", r"\1***@", msg, flags=re.IGNORECASE)
    msg = re.sub(r"password=\S+", "password=***", msg, flags=re.IGNORECASE)
    msg = re.sub(r"gsk_[0-9A-Za-z]{20,}", "gsk_***REDACTED***", msg)
    msg = re.sub(r"AIza[0-9A-Za-z\-_]{20,}", "AIza***REDACTED***", msg)
    return msg


def configure_logging() -> logging.Logger:
    """
    Configure the service logger once.
    - JSON lines on stdout (python-json-logger).
    - LOG_LEVEL env supported.
    """
    level = (os.getenv("LOG_LEVEL") or "INFO").upper()
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # If handlers already exist (e.g. reloader), don't double-add
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s %(path)s %(method)s %(status)s %(latency_ms)s",
        )
    )
    logger.addHandler(handler)
    return logger
