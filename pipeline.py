"""Question -> SQL -> rows -> table/chart.

One `answer()` call is one pass: introspect, generate, extract, execute, shape.
Nothing is retried; the caller re-submits to try again.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate
from langchain_core.runnables import Runnable
from sqlalchemy.engine import Engine

from db import create_db_engine, describe_schema, dialect_display_name, execute_sql
from errors import BadRequest, GenerationFailed, QueryError
from extract import extract_statement, is_single_statement
from metrics import DB_LATENCY_SECONDS, LLM_LATENCY_SECONDS, PIPELINE_FAILURES_TOTAL, SCHEMA_LATENCY_SECONDS
from settings import Settings
from shaping import ChartSeries, DisplayTable, shape_results

logger = logging.getLogger("text2sql.pipeline")

PROMPT_REQUIRED = "Prompt is required."


def make_sql_prompt(dialect: str) -> ChatPromptTemplate:
    return ChatPromptTemplate.from_messages(
        [
            (
                "system",
                f"You are a world-class SQL query generator. Respond only with a single, valid {dialect} SQL query. "
                "Do not include any other text, explanations, or code block formatting. "
                "The user will provide a database schema and a prompt. "
                "Your task is to generate a valid SQL query based on this information.",
            ),
            ("human", f'{dialect} schema:\n{{schema}}\n\nUser prompt: "{{prompt}}"'),
        ]
    )


@dataclass
class QueryAnswer:
    sql: str
    table: DisplayTable
    chart: ChartSeries

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sql": self.sql,
            "markdownTable": self.table.to_markdown(),
            "chartData": self.chart.to_dict(),
        }


class QueryPipeline:
    """Owns the engine (and its pool) plus the chat model used for generation."""

    def __init__(
        self,
        engine: Engine,
        llm: Runnable,
        *,
        db_schema: str = "public",
        strict_single_statement: bool = False,
    ):
        self.engine = engine
        self.db_schema = db_schema
        self.strict_single_statement = strict_single_statement
        self.dialect = dialect_display_name(engine)
        self.chain = make_sql_prompt(self.dialect) | llm | StrOutputParser()

    @classmethod
    def from_settings(cls, settings: Settings) -> "QueryPipeline":
        from llm import build_chat_model  # provider SDKs load only when needed

        return cls(
            create_db_engine(settings),
            build_chat_model(settings),
            db_schema=settings.db_schema,
            strict_single_statement=settings.strict_single_statement,
        )

    def close(self) -> None:
        self.engine.dispose()

    def answer(self, prompt: Optional[str]) -> QueryAnswer:
        try:
            return self._answer(prompt)
        except QueryError as e:
            PIPELINE_FAILURES_TOTAL.labels(kind=e.kind).inc()
            raise

    def generate(self, schema_text: str, prompt: str) -> str:
        """Ask the model once; return the extracted statement."""
        t0 = time.time()
        try:
            raw = self.chain.invoke({"schema": schema_text, "prompt": prompt})
        except Exception as e:
            logger.exception("llm_call_failed")
            raise GenerationFailed(f"Language model request failed: {e}") from e
        finally:
            LLM_LATENCY_SECONDS.observe(time.time() - t0)

        if not raw or not raw.strip():
            raise GenerationFailed("LLM did not generate a valid SQL query.")

        sql = extract_statement(raw)
        if sql is None:
            logger.warning("sql_not_found", extra={"raw_chars": len(raw)})
            raise GenerationFailed("LLM response did not contain a SQL statement.")
        if self.strict_single_statement and not is_single_statement(sql):
            raise GenerationFailed("LLM response contained more than one SQL statement.")
        return sql

    def _answer(self, prompt: Optional[str]) -> QueryAnswer:
        if not isinstance(prompt, str) or not prompt.strip():
            raise BadRequest(PROMPT_REQUIRED)

        t0 = time.time()
        try:
            schema = describe_schema(self.engine, self.db_schema)
        finally:
            SCHEMA_LATENCY_SECONDS.observe(time.time() - t0)
        logger.info("schema_loaded", extra={"tables": len(schema.tables)})

        sql = self.generate(schema.render(), prompt)
        logger.info("sql_generated", extra={"sql_chars": len(sql)})

        t1 = time.time()
        try:
            records = execute_sql(self.engine, sql)
        finally:
            DB_LATENCY_SECONDS.observe(time.time() - t1)
        logger.info("sql_executed", extra={"rows": len(records), "db_ms": int((time.time() - t1) * 1000)})

        shaped = shape_results(records)
        return QueryAnswer(sql=sql, table=shaped.table, chart=shaped.chart)
