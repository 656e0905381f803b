"""Spreadsheet Columns - declarative header aliases for bulk record import.

Invariants:
    - Each canonical field maps to an ordered tuple of accepted header aliases
    - Headers resolved once per sheet; first matching alias wins
    - Matching ignores case, surrounding whitespace, and inner spaces/underscores/hyphens
    - Any canonical field without a matching header is an ImportFormatError

Design Decisions:
    - Table over per-row duck typing: adding an alias is a one-line data change
"""

import re
from dataclasses import dataclass
from datetime import date
from collections.abc import Sequence

from certbridge.core.errors import ImportFormatError

COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "full_name": ("name", "full name", "participant name", "holder name"),
    "event_id": ("conference id", "event id", "program id", "registration id"),
    "email": ("email", "email address", "e-mail"),
    "holder_id": ("digilocker id", "digilockerid", "holder id", "locker id"),
    "event_date": ("date", "event date", "conference date", "attendance date"),
}


@dataclass(frozen=True)
class ImportedRow:
    """One validated spreadsheet row, ready for upsert."""
    row_number: int
    full_name: str
    holder_id: str
    event_id: str
    email: str
    event_date: date

    @property
    def identity(self) -> tuple[str, str, str]:
        return (self.holder_id, self.event_id, self.email)


_SEPARATORS = re.compile(r"[\s_\-]+")


def normalize_header(value: object) -> str:
    if value is None:
        return ""
    return _SEPARATORS.sub("", str(value).strip().lower())


def resolve_columns(header_row: Sequence[object]) -> dict[str, int]:
    """Map each canonical field to its zero-based column index."""
    positions: dict[str, int] = {}
    for index, cell in enumerate(header_row):
        key = normalize_header(cell)
        if key and key not in positions:
            positions[key] = index

    resolved: dict[str, int] = {}
    missing: list[str] = []
    for field_name, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            index = positions.get(normalize_header(alias))
            if index is not None:
                resolved[field_name] = index
                break
        else:
            missing.append(field_name)

    if missing:
        raise ImportFormatError(
            f"Missing required columns: {', '.join(missing)}",
        )
    return resolved
