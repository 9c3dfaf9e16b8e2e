"""Pull one SQL statement out of free-form model output."""

from __future__ import annotations

import re
from typing import List, Optional

STATEMENT_KEYWORDS = ("SELECT", "INSERT", "UPDATE", "DELETE", "CREATE", "ALTER")

_LEADING_KEYWORD = re.compile(r"\b(?:%s)\b" % "|".join(STATEMENT_KEYWORDS), flags=re.IGNORECASE)
_CLOSING_FENCE = re.compile(r"\s*```\s*$")


def extract_statement(raw: Optional[str]) -> Optional[str]:
    """Return the text from the first statement keyword to the end, or None.

    Prose before the keyword is discarded; anything after it (commentary,
    further statements) is kept. A closing code fence at the very end is
    dropped so fenced answers come back as bare SQL.

    Keywords match as whole words only, so prose such as "selected" or
    "updated" is not mistaken for the start of a statement. A keyword glued
    to other word characters (e.g. "xSELECT") is therefore not found.
    """
    m = _LEADING_KEYWORD.search(raw or "")
    if not m:
        return None
    stmt = _CLOSING_FENCE.sub("", raw[m.start():]).strip()
    return stmt or None


def split_sql_statements(sql: str) -> List[str]:
    """Split on semicolons NOT inside quotes (good enough for LLM SQL)."""
    s = (sql or "").strip()
    if not s:
        return []
    stmts, buf = [], []
    in_single = False
    in_double = False
    for ch in s:
        if ch == "'" and not in_double:
            in_single = not in_single
        elif ch == '"' and not in_single:
            in_double = not in_double
        if ch == ";" and not in_single and not in_double:
            stmt = "".join(buf).strip()
            if stmt:
                stmts.append(stmt)
            buf = []
        else:
            buf.append(ch)
    tail = "".join(buf).strip()
    if tail:
        stmts.append(tail)
    return stmts


def is_single_statement(sql: str) -> bool:
    """True unless a semicolon is followed by more non-whitespace text."""
    return len(split_sql_statements(sql)) <= 1
