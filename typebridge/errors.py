"""Human-readable rendering of conversion errors and warnings."""

from __future__ import annotations

from typing import Any

from typebridge.core.errors import TypeBridgeError

_CONTEXT_LINES = 2


def format_typebridge_error(err: Exception) -> str:
    if isinstance(err, TypeBridgeError):
        return format_error(f"[{type(err).__name__}] {err.message}", err.meta)
    return str(err)


def format_error(message: str, meta: dict[str, Any] | None = None) -> str:
    """Render message with a code frame when location and source are known."""
    meta = meta or {}
    loc = meta.get("loc") or {}
    source = meta.get("source")
    if not source or loc.get("start") is None:
        return message

    start = location_to_line_column(source, loc["start"])
    end = location_to_line_column(source, loc["end"]) if loc.get("end") is not None else None
    frame = code_frame(source, start, end, message)
    filename = meta.get("filename")
    return f"{filename}:{start[0]}:{start[1]}\n{frame}" if filename else frame


def location_to_line_column(source: str, location: Any) -> tuple[int, int]:
    """Convert an offset (or a {line, column} dict) to a 1-based (line, column)."""
    if isinstance(location, dict):
        return int(location["line"]), int(location.get("column", 1))
    offset = max(0, min(int(location), len(source)))
    before = source[:offset]
    line = before.count("\n") + 1
    column = offset - (before.rfind("\n") + 1) + 1
    return line, column


def code_frame(
    source: str,
    start: tuple[int, int],
    end: tuple[int, int] | None,
    message: str,
) -> str:
    lines = source.splitlines() or [""]
    line_no, column = start
    line_no = min(max(line_no, 1), len(lines))
    first = max(1, line_no - _CONTEXT_LINES)
    last = min(len(lines), line_no + _CONTEXT_LINES)
    width = len(str(last))

    if end is not None and end[0] == line_no and end[1] > column:
        marker_len = end[1] - column
    else:
        marker_len = 1

    out = []
    for n in range(first, last + 1):
        gutter = ">" if n == line_no else " "
        out.append(f"{gutter} {n:>{width}} | {lines[n - 1]}".rstrip())
        if n == line_no:
            pad = " " * (column - 1)
            out.append(f"  {' ' * width} | {pad}{'^' * marker_len} {message}")
    return "\n".join(out)
