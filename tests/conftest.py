import os
import sys

import pytest
from langchain_core.messages import AIMessage
from langchain_core.runnables import RunnableLambda
from sqlalchemy import create_engine, text

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from pipeline import QueryPipeline  # noqa: E402

HEADCOUNT = {"Eng": 12, "Sales": 7}


class FakeLLM:
    """Stand-in chat model: records the messages it gets, replies with `reply` (or raises it)."""

    def __init__(self, reply="SELECT 1"):
        self.reply = reply
        self.calls = []
        self.runnable = RunnableLambda(self._respond)

    def _respond(self, prompt_value):
        self.calls.append(prompt_value.to_messages())
        if isinstance(self.reply, Exception):
            raise self.reply
        return AIMessage(content=self.reply)


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'demo.db'}")
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE departments (id INTEGER PRIMARY KEY, name TEXT)"))
        conn.execute(text("CREATE TABLE employees (id INTEGER PRIMARY KEY, name TEXT, dept_id INTEGER)"))
        conn.execute(text("INSERT INTO departments (id, name) VALUES (1, 'Eng'), (2, 'Sales')"))
        emp_id = 1
        for dept_id, count in ((1, HEADCOUNT["Eng"]), (2, HEADCOUNT["Sales"])):
            for _ in range(count):
                conn.execute(
                    text("INSERT INTO employees (id, name, dept_id) VALUES (:id, :name, :dept)"),
                    {"id": emp_id, "name": f"e{emp_id}", "dept": dept_id},
                )
                emp_id += 1
    yield engine
    engine.dispose()


@pytest.fixture
def broken_engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'missing' / 'nested' / 'demo.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def make_pipeline(engine):
    def _make(reply="SELECT 1", *, db=None, strict=False):
        llm = FakeLLM(reply)
        return QueryPipeline(db or engine, llm.runnable, strict_single_statement=strict), llm

    return _make
