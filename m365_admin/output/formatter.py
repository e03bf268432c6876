"""
Output formatter — Renders command results as JSON, text, or CSV.
"""

from __future__ import annotations

import csv
import io
import json
from typing import Any


def format_output(data: Any, mode: str = "text") -> str:
    """
    Render a command result for stdout.

    Returns:
        The rendered string (without trailing newline).
    """
    if mode == "json":
        return json.dumps(data, indent=2, default=str, ensure_ascii=False)
    if mode == "csv":
        return _to_csv(data)
    return _to_text(data)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str, ensure_ascii=False)
    return str(value)


def _rows(data: Any) -> list[dict]:
    if isinstance(data, dict):
        return [data]
    if isinstance(data, list):
        return [r if isinstance(r, dict) else {"value": r} for r in data]
    return [{"value": data}]


def _columns(rows: list[dict], scalar_only: bool) -> list[str]:
    columns: list[str] = []
    for row in rows:
        for key, value in row.items():
            if scalar_only and isinstance(value, (dict, list)):
                continue
            if key not in columns:
                columns.append(key)
    return columns


def _to_text(data: Any) -> str:
    if isinstance(data, dict):
        if not data:
            return ""
        width = max(len(k) for k in data)
        return "\n".join(f"{k:<{width}}: {_cell(v)}" for k, v in data.items())

    if isinstance(data, list):
        rows = _rows(data)
        columns = _columns(rows, scalar_only=True)
        if not columns:
            return ""
        widths = {
            c: max([len(c)] + [len(_cell(r.get(c))) for r in rows])
            for c in columns
        }
        lines = [
            "  ".join(f"{c:<{widths[c]}}" for c in columns).rstrip(),
            "  ".join("-" * widths[c] for c in columns),
        ]
        for r in rows:
            lines.append("  ".join(f"{_cell(r.get(c)):<{widths[c]}}" for c in columns).rstrip())
        return "\n".join(lines)

    return _cell(data)


def _to_csv(data: Any) -> str:
    rows = _rows(data)
    columns = _columns(rows, scalar_only=False)
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=columns, extrasaction="ignore", lineterminator="\n")
    writer.writeheader()
    for r in rows:
        writer.writerow({c: _cell(r.get(c)) for c in columns})
    return buffer.getvalue().rstrip("\n")
