"""Turn a generic record set into a pipe table and a single-series chart."""

from __future__ import annotations

import datetime as dt
import math
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

NO_DATA_TABLE = "| No Data |"

# Leading numeric prefix, the way a lenient float parse reads "12.5kg" as 12.5.
# Only the exact, case-sensitive "Infinity" spells an infinity.
_NUMERIC_PREFIX = re.compile(r"^[+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def format_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dt.date, dt.time)):
        return value.isoformat()
    return str(value)


def to_number(value: Any) -> float:
    """Best-effort float coercion; anything unreadable becomes NaN."""
    if value is None or isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    if not isinstance(value, str):
        return math.nan
    m = _NUMERIC_PREFIX.match(value.strip())
    if not m:
        return math.nan
    return float(m.group(0))


@dataclass
class DisplayTable:
    header: List[str] = field(default_factory=list)
    rows: List[List[str]] = field(default_factory=list)

    def to_markdown(self) -> str:
        if not self.header:
            return NO_DATA_TABLE
        lines = [
            "| " + " | ".join(self.header) + " |",
            "| " + " | ".join("---" for _ in self.header) + " |",
        ]
        lines.extend("| " + " | ".join(row) + " |" for row in self.rows)
        return "\n".join(lines)


@dataclass
class ChartDataset:
    label: str
    data: List[float]

    def to_dict(self) -> Dict[str, Any]:
        # NaN and infinities are not valid JSON; the chart widget treats null as a gap
        return {
            "label": self.label,
            "data": [v if math.isfinite(v) else None for v in self.data],
        }


@dataclass
class ChartSeries:
    labels: List[str] = field(default_factory=list)
    dataset: Optional[ChartDataset] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "labels": list(self.labels),
            "datasets": [self.dataset.to_dict()] if self.dataset else [],
        }


@dataclass
class ShapedResult:
    table: DisplayTable
    chart: ChartSeries


def shape_results(records: Sequence[Dict[str, Any]]) -> ShapedResult:
    if not records:
        return ShapedResult(DisplayTable(), ChartSeries())

    header = list(records[0].keys())
    if not header:
        return ShapedResult(DisplayTable(), ChartSeries())
    rows = [[format_cell(rec.get(h)) for h in header] for rec in records]

    first = header[0]
    second = header[1] if len(header) > 1 else None
    labels = [format_cell(rec.get(first)) for rec in records]
    # one-column results have no value column: every point is NaN
    values = [to_number(rec.get(second)) if second else math.nan for rec in records]

    return ShapedResult(
        table=DisplayTable(header=header, rows=rows),
        chart=ChartSeries(labels=labels, dataset=ChartDataset(label=second or "", data=values)),
    )
