"""CD hand-off: tell an outer shell wrapper which slot to enter.

A process cannot change its parent's working directory, so the path is
handed over instead: as a marker line on stdout, as a bare path in
print-only mode, or written to the file named by $ARV_CWD_HANDOFF_FILE.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import TextIO

from archiver.errors import ValidationError

CD_MARKER = "__ARCHIVER_CD__:"
CWD_HANDOFF_ENV = "ARV_CWD_HANDOFF_FILE"


def format_cd_line(slot: Path | str) -> str:
    """``__ARCHIVER_CD__:<absolute-slot-path>`` (single line)."""
    text = os.path.abspath(slot)
    if "\n" in text or "\r" in text:
        raise ValidationError(f"slot path {text!r} contains an unsupported newline")
    return f"{CD_MARKER}{text}"


def emit_cd_target(slot: Path | str, print_only: bool = False, stream: TextIO | None = None) -> str:
    """Write the hand-off line for *slot* and return it."""
    line = os.path.abspath(slot) if print_only else format_cd_line(slot)
    out = stream if stream is not None else sys.stdout
    out.write(line + "\n")
    out.flush()
    return line


def write_cwd_handoff(slot: Path | str, env: Mapping[str, str] | None = None) -> bool:
    """Write *slot* to the hand-off file if one is configured.

    Returns False (and writes nothing) when the variable is unset or blank.
    """
    target = (env if env is not None else os.environ).get(CWD_HANDOFF_ENV, "").strip()
    if not target:
        return False
    Path(target).write_text(f"{os.path.abspath(slot)}\n", encoding="utf-8")
    return True
