"""Read/write helpers for the store's JSONC documents and JSONL record sets.

Whole-file writes are atomic (write to .tmp, rename). JSONL appends go
straight to the file; one record is one line.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import json5

from archiver.errors import MetadataParseError

logger = logging.getLogger(__name__)


def _atomic_write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(text, encoding="utf-8")
    tmp.replace(path)


# ---------------------------------------------------------------------------
# JSONC (single document, comments and trailing commas allowed)
# ---------------------------------------------------------------------------


def parse_jsonc(text: str, path: Path) -> Any:
    """Parse JSON-with-comments text.

    Raises:
        MetadataParseError: If the text is not valid JSONC.
    """
    try:
        return json5.loads(text)
    except ValueError as exc:
        raise MetadataParseError(path, str(exc)) from exc


def read_jsonc(path: Path) -> dict[str, Any] | None:
    """Load a JSONC object. Missing, blank, or non-object documents give None."""
    if not path.exists():
        return None
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return None
    data = parse_jsonc(text, path)
    if not isinstance(data, dict):
        logger.warning("%s does not hold a JSON object; using defaults", path)
        return None
    return data


def write_jsonc(path: Path, data: dict[str, Any], header: str = "") -> None:
    """Write *data* as pretty JSON preceded by ``//`` comment lines."""
    lines = [f"// {line}".rstrip() for line in header.splitlines()]
    lines.append(json.dumps(data, indent=2, ensure_ascii=False))
    _atomic_write(path, "\n".join(lines) + "\n")


# ---------------------------------------------------------------------------
# JSONL (one record per line)
# ---------------------------------------------------------------------------


def read_jsonl(path: Path) -> list[dict[str, Any]]:
    """Load every object line of a JSONL file.

    Blank lines are ignored. A line that is not a JSON object (for example
    the tail of an interrupted append) is skipped with a warning.
    """
    if not path.exists():
        return []
    rows: list[dict[str, Any]] = []
    with open(path, encoding="utf-8") as fp:
        for lineno, line in enumerate(fp, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                row = json.loads(line)
            except json.JSONDecodeError as exc:
                logger.warning("Skipping corrupt line %d in %s: %s", lineno, path, exc)
                continue
            if not isinstance(row, dict):
                logger.warning("Skipping non-object line %d in %s", lineno, path)
                continue
            rows.append(row)
    return rows


def write_jsonl(path: Path, rows: list[dict[str, Any]]) -> None:
    """Rewrite a JSONL file atomically."""
    text = "".join(json.dumps(row, ensure_ascii=False) + "\n" for row in rows)
    _atomic_write(path, text)


def append_jsonl(path: Path, row: dict[str, Any]) -> None:
    """Append one record as a single line."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as fp:
        fp.write(json.dumps(row, ensure_ascii=False) + "\n")
