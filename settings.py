from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv
from sqlalchemy.engine.url import URL

load_dotenv()

DEFAULT_MODELS = {
    "groq": "llama-3.3-70b-versatile",
    "google": "gemini-2.5-flash",
}


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip() == "1"


def _database_url_from_parts() -> str:
    url = URL.create(
        drivername="postgresql+psycopg2",
        username=os.getenv("PG_USER"),
        password=os.getenv("PG_PASSWORD"),
        host=os.getenv("PG_HOST", "localhost"),
        port=int(os.getenv("PG_PORT", "5432")),
        database=os.getenv("PG_DB"),
    )
    return url.render_as_string(hide_password=False)


@dataclass
class Settings:
    database_url: str = ""
    db_schema: str = "public"
    db_pool_size: int = 5
    db_max_overflow: int = 5
    db_pool_timeout: int = 30

    llm_provider: str = "groq"
    llm_model: str = DEFAULT_MODELS["groq"]
    groq_api_key: Optional[str] = None
    google_api_key: Optional[str] = None

    strict_single_statement: bool = False

    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    max_content_length: int = 262144
    rate_limit_enabled: bool = True
    query_rate_limit: str = "30 per minute"
    rate_limit_storage_uri: str = "memory://"

    redis_url: str = ""
    redis_connect_timeout: int = 10
    async_enabled: bool = True
    rq_queue_name: str = "text2sql"
    rq_job_timeout_seconds: int = 120
    job_result_ttl_seconds: int = 3600

    port: int = 3000
    debug: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        provider = (os.getenv("LLM_PROVIDER") or "groq").strip().lower()
        if provider not in DEFAULT_MODELS:
            raise ValueError(f"Unsupported LLM_PROVIDER: {provider}. Allowed: {', '.join(sorted(DEFAULT_MODELS))}")

        redis_url = os.getenv("REDIS_URL", "").strip()
        origins = os.getenv("CORS_ORIGINS", "*").split(",")

        return cls(
            database_url=os.getenv("DATABASE_URL", "").strip() or _database_url_from_parts(),
            db_schema=os.getenv("DB_SCHEMA", "public").strip() or "public",
            db_pool_size=int(os.getenv("DB_POOL_SIZE", "5")),
            db_max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "5")),
            db_pool_timeout=int(os.getenv("DB_POOL_TIMEOUT", "30")),
            llm_provider=provider,
            llm_model=(os.getenv("LLM_MODEL") or DEFAULT_MODELS[provider]).strip(),
            groq_api_key=os.getenv("GROQ_API_KEY") or None,
            google_api_key=os.getenv("GOOGLE_API_KEY") or None,
            strict_single_statement=_flag("STRICT_SINGLE_STATEMENT", "0"),
            cors_origins=[o.strip() for o in origins if o.strip()] or ["*"],
            max_content_length=int(os.getenv("MAX_CONTENT_LENGTH", "262144")),
            rate_limit_enabled=_flag("RATE_LIMIT_ENABLED", "1"),
            query_rate_limit=os.getenv("QUERY_RATE_LIMIT", "30 per minute"),
            rate_limit_storage_uri=os.getenv("RATE_LIMIT_STORAGE_URI") or redis_url or "memory://",
            redis_url=redis_url,
            redis_connect_timeout=int(os.getenv("REDIS_CONNECT_TIMEOUT", "10")),
            async_enabled=_flag("ASYNC_ENABLED", "1"),
            rq_queue_name=os.getenv("RQ_QUEUE_NAME", "text2sql"),
            rq_job_timeout_seconds=int(os.getenv("RQ_JOB_TIMEOUT_SECONDS", "120")),
            job_result_ttl_seconds=int(os.getenv("JOB_RESULT_TTL_SECONDS", "3600")),
            port=int(os.getenv("PORT", "3000")),
            debug=_flag("FLASK_DEBUG", "0"),
        )
