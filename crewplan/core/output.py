"""
Output formatters for CLI display.

Key/value results and row tables, each renderable as human-readable text,
JSON, or markdown.
"""

import json
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple


class OutputFormat(str, Enum):
    HUMAN = "human"
    JSON = "json"
    MARKDOWN = "markdown"


def _to_dict(result: Any) -> Dict:
    if hasattr(result, "to_dict"):
        return result.to_dict()
    if is_dataclass(result):
        return asdict(result)
    if isinstance(result, dict):
        return result
    return {"value": str(result)}


def _format_value(value: Any, list_sep: Optional[str] = None) -> str:
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, float):
        return f"{value:,.1f}" if abs(value) >= 100 else f"{value:.2f}"
    if isinstance(value, (list, tuple)) and list_sep is not None:
        return list_sep.join(str(v) for v in value) if value else "-"
    if value is None:
        return "-"
    return str(value)


def format_result(
    result: Any,
    fmt: OutputFormat = OutputFormat.HUMAN,
    title: Optional[str] = None,
) -> str:
    """Format a single result (dict, dataclass, or object with to_dict())."""
    data = _to_dict(result)
    if fmt == OutputFormat.JSON:
        return json.dumps(data, indent=2, default=str)

    lines = []
    if fmt == OutputFormat.MARKDOWN:
        if title:
            lines.extend([f"# {title}", ""])
        lines.extend(["| Field | Value |", "|-------|-------|"])
        for key, value in data.items():
            label = key.replace("_", " ").title()
            lines.append(f"| {label} | {_format_value(value, ', ')} |")
        return "\n".join(lines)

    if title:
        lines.extend([title, "=" * len(title), ""])
    width = max((len(str(k)) for k in data), default=0)
    for key, value in data.items():
        label = key.replace("_", " ").title()
        if isinstance(value, (list, tuple)):
            formatted = "(none)" if not value else "\n" + "\n".join(f"  - {v}" for v in value)
        else:
            formatted = _format_value(value)
        lines.append(f"{label:<{width + 2}}: {formatted}")
    return "\n".join(lines)


def format_table(
    rows: Sequence[Dict[str, Any]],
    columns: Sequence[Tuple[str, str]],
    fmt: OutputFormat = OutputFormat.HUMAN,
) -> str:
    """
    Format rows as a table.

    Args:
        rows: One dict per row
        columns: (key, header) pairs in display order
        fmt: Output format
    """
    if fmt == OutputFormat.JSON:
        return json.dumps([{k: r.get(k) for k, _ in columns} for r in rows], indent=2, default=str)

    cells: List[List[str]] = [
        [_format_value(row.get(key), ", ") for key, _ in columns] for row in rows
    ]
    headers = [header for _, header in columns]

    if fmt == OutputFormat.MARKDOWN:
        lines = ["| " + " | ".join(headers) + " |", "|" + "|".join("---" for _ in headers) + "|"]
        lines.extend("| " + " | ".join(row) + " |" for row in cells)
        return "\n".join(lines)

    widths = [
        max([len(h)] + [len(row[i]) for row in cells]) for i, h in enumerate(headers)
    ]
    lines = ["  ".join(h.ljust(w) for h, w in zip(headers, widths)).rstrip()]
    lines.append("  ".join("-" * w for w in widths))
    for row in cells:
        lines.append("  ".join(c.ljust(w) for c, w in zip(row, widths)).rstrip())
    if not cells:
        lines.append("(no rows)")
    return "\n".join(lines)
