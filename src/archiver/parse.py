"""Parsers for user-supplied identifiers: id lists, log ranges, cd targets."""

from __future__ import annotations

from dataclasses import dataclass

from archiver.errors import DuplicateInput, EmptyBatch, InvalidCdTarget, ValidationError
from archiver.models import is_number


def parse_id_list(values: list[str]) -> list[int]:
    """Parse archive ids given as strings. Digits only, no repeats."""
    if not values:
        raise EmptyBatch("id")
    ids: list[int] = []
    for value in values:
        text = value.strip()
        if not is_number(text):
            raise ValidationError(f"'{value}' is not a valid id", hint="Ids are positive integers.")
        number = int(text)
        if number in ids:
            raise DuplicateInput(text)
        ids.append(number)
    return ids


# ---------------------------------------------------------------------------
# Log ranges
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LogRange:
    """Either every record (``mode='all'``) or an inclusive YYYYMM span."""

    mode: str = "all"
    start: str = ""
    end: str = ""

    def contains(self, period: str) -> bool:
        if self.mode == "all":
            return True
        return len(period) == 6 and self.start <= period <= self.end


def _valid_month(text: str) -> bool:
    return len(text) == 6 and is_number(text) and 1 <= int(text[4:]) <= 12


def parse_log_range(text: str | None) -> LogRange:
    """Accepts '', 'all', '*', 'a', 'YYYYMM', or 'YYYYMM-YYYYMM'."""
    if not text or text.lower() in ("all", "*", "a"):
        return LogRange()

    if len(text) == 6 and is_number(text):
        if not _valid_month(text):
            raise ValidationError(f"month '{text}' is out of range", hint="Use YYYYMM.")
        return LogRange(mode="month", start=text, end=text)

    parts = text.split("-")
    if len(parts) == 2 and all(len(p) == 6 and is_number(p) for p in parts):
        start, end = parts
        if not (_valid_month(start) and _valid_month(end)):
            raise ValidationError(f"range '{text}' has an invalid month", hint="Use YYYYMM-YYYYMM.")
        if start > end:
            raise ValidationError(f"range '{text}' ends before it starts")
        return LogRange(mode="month", start=start, end=end)

    raise ValidationError(
        f"log range '{text}' is not recognised",
        hint="Use all, YYYYMM, or YYYYMM-YYYYMM.",
    )


# ---------------------------------------------------------------------------
# cd targets
# ---------------------------------------------------------------------------


def parse_cd_target(target: str) -> tuple[str | None, int]:
    """Split ``<id>`` or ``<vaultRef>/<id>`` into (vault_ref, archive_id).

    The vault reference is everything before the last slash.
    """
    text = target.strip()
    if not text:
        raise InvalidCdTarget(target, "is empty")

    vault_ref, sep, id_text = text.rpartition("/")
    if not sep:
        if not is_number(text):
            raise InvalidCdTarget(target, "is not an archive id")
        return None, int(text)

    vault_ref, id_text = vault_ref.strip(), id_text.strip()
    if not vault_ref:
        raise InvalidCdTarget(target, "has an empty vault reference")
    if not is_number(id_text):
        raise InvalidCdTarget(target, "does not end in an archive id")
    return vault_ref, int(id_text)
