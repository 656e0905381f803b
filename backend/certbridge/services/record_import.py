"""Record Import - read a bulk-registration workbook into validated rows.

Invariants:
    - Only the first worksheet is read; row 1 is the header
    - Header resolved once per sheet through COLUMN_ALIASES
    - A row missing any field, or with an unparseable date, is skipped and reported;
      it never aborts the import
    - Fully blank rows are ignored silently

Design Decisions:
    - read_only workbook: registration sheets can run to tens of thousands of rows
    - Dates accepted as real date cells or ISO / day-first text, the formats the
      back office actually exports
"""

import io
import logging
import zipfile
from dataclasses import dataclass, field
from datetime import date, datetime

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from certbridge.core.column_aliases import COLUMN_ALIASES, ImportedRow, resolve_columns
from certbridge.core.errors import ImportFormatError

logger = logging.getLogger(__name__)

_TEXT_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%d.%m.%Y")


@dataclass
class SkippedRow:
    row_number: int
    reason: str


@dataclass
class ParsedWorkbook:
    rows: list[ImportedRow] = field(default_factory=list)
    skipped: list[SkippedRow] = field(default_factory=list)


def _cell_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        # Numeric ids typed into Excel come back as floats
        return str(int(value))
    return str(value).strip()


def parse_date(value: object) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = _cell_text(value)
    if not text:
        return None
    for fmt in _TEXT_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def parse_workbook(data: bytes) -> ParsedWorkbook:
    """Parse an .xlsx payload into importable rows and skipped-row reasons."""
    try:
        workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
        raise ImportFormatError(f"Unreadable workbook: {e}")

    try:
        if not workbook.worksheets:
            raise ImportFormatError("Workbook has no worksheets")
        rows = workbook.worksheets[0].iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            raise ImportFormatError("Worksheet is empty")
        columns = resolve_columns(header)

        parsed = ParsedWorkbook()
        for row_number, values in enumerate(rows, start=2):
            if not values or all(_cell_text(v) == "" for v in values):
                continue
            row = _build_row(row_number, values, columns, parsed)
            if row is not None:
                parsed.rows.append(row)
    finally:
        workbook.close()

    logger.info(
        f"Workbook parsed: {len(parsed.rows)} rows, {len(parsed.skipped)} skipped",
    )
    return parsed


def _build_row(
    row_number: int,
    values: tuple,
    columns: dict[str, int],
    parsed: ParsedWorkbook,
) -> ImportedRow | None:
    def cell(name: str) -> object:
        index = columns[name]
        return values[index] if index < len(values) else None

    text = {
        name: _cell_text(cell(name))
        for name in COLUMN_ALIASES if name != "event_date"
    }
    missing = [name for name, value in text.items() if not value]
    if missing:
        parsed.skipped.append(
            SkippedRow(row_number, f"missing {', '.join(missing)}"),
        )
        return None

    event_date = parse_date(cell("event_date"))
    if event_date is None:
        parsed.skipped.append(SkippedRow(row_number, "invalid event_date"))
        return None

    return ImportedRow(
        row_number=row_number,
        full_name=text["full_name"],
        holder_id=text["holder_id"],
        event_id=text["event_id"],
        email=text["email"],
        event_date=event_date,
    )
