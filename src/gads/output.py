"""Rendering helpers for CLI output.

JSON when asked for or when stdout is piped; otherwise tab-separated tables
that stay column-aligned through `column -t` / awk.
"""
from __future__ import annotations

import json
import sys
from typing import Any, List, Sequence, TextIO


def is_json(force_json: bool = False, pretty: bool = False, stream: TextIO | None = None) -> bool:
    if force_json or pretty:
        return True
    stream = stream or sys.stdout
    isatty = getattr(stream, "isatty", None)
    return not (isatty and isatty())


def print_json(data: Any, pretty: bool = False, stream: TextIO | None = None) -> None:
    stream = stream or sys.stdout
    if pretty:
        stream.write(json.dumps(data, indent=2, ensure_ascii=False) + "\n")
    else:
        stream.write(json.dumps(data, separators=(",", ":"), ensure_ascii=False) + "\n")


def sanitize_cell(s: Any) -> str:
    """Replace tab/newline with space so piped output stays column-aligned."""
    return str("" if s is None else s).replace("\t", " ").replace("\n", " ").replace("\r", " ").strip()


def truncate(s: str, n: int) -> str:
    if n <= 0 or len(s) <= n:
        return s
    if n <= 3:
        return s[:n]
    return s[: n - 3] + "..."


def print_table(headers: Sequence[str], rows: Sequence[Sequence[Any]], stream: TextIO | None = None) -> None:
    stream = stream or sys.stdout
    lines: List[str] = ["\t".join(sanitize_cell(h) for h in headers)]
    for row in rows:
        lines.append("\t".join(sanitize_cell(c) for c in row))
    stream.write("\n".join(lines) + "\n")


def mask(s: str) -> str:
    """Keep the first and last four characters of a secret."""
    if not s:
        return "(not set)"
    if len(s) <= 8:
        return "***"
    return f"{s[:4]}...{s[-4:]}"


def micros_to_currency(micros: Any) -> str:
    """Money fields come back in micros as strings: "5000000" -> "5.00"."""
    if micros is None or micros == "":
        return "0.00"
    try:
        n = int(micros)
    except (TypeError, ValueError):
        return str(micros)
    return f"{n / 1_000_000:.2f}"


def format_metric_int(s: Any) -> str:
    if s is None or s == "":
        return "0"
    try:
        return str(int(s))
    except (TypeError, ValueError):
        return str(s)


def format_ctr(ctr: float) -> str:
    return f"{ctr * 100:.2f}%"


def format_roas(conversions_value: float, cost_micros: Any) -> str:
    """Return on ad spend; "-" when there was no cost."""
    try:
        n = int(cost_micros)
    except (TypeError, ValueError):
        return "-"
    if n == 0:
        return "-"
    return f"{conversions_value / (n / 1_000_000):.2f}"
