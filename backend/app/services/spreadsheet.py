"""
Spreadsheet decoding for bulk imports.

Reads the first sheet of an xlsx, xls or csv file into RawRow records keyed by
the header row. Cells keep their native type (text, number, bool); blank cells
and columns missing from the header read as ``ABSENT`` rather than ``""``.

Row ordinals count the header as row 1, so the first data row is row 2. Fully
blank rows are skipped without shifting the ordinals of the rows after them.
"""

import csv
import io
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, time
from pathlib import PurePosixPath

import xlrd
from openpyxl import load_workbook

from app.services.errors import CorruptSpreadsheetError

logger = logging.getLogger(__name__)

SPREADSHEET_EXTENSIONS = (".xlsx", ".xls", ".csv")

SPREADSHEET_CONTENT_TYPES: dict[str, str] = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "xlsx",
    "application/vnd.ms-excel": "xls",
    "text/csv": "csv",
}

_XLSX_MAGIC = b"PK\x03\x04"
_XLS_MAGIC = b"\xd0\xcf\x11\xe0"


class _Absent:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT = _Absent()

CellValue = str | int | float | bool | _Absent


@dataclass
class RawRow:
    ordinal: int
    cells: dict[str, CellValue] = field(default_factory=dict)

    def get(self, column: str) -> CellValue:
        return self.cells.get(column, ABSENT)


def is_spreadsheet_name(filename: str) -> bool:
    return filename.lower().endswith(SPREADSHEET_EXTENSIONS)


def spreadsheet_kind(data: bytes, filename: str | None = None, content_type: str | None = None) -> str:
    suffix = PurePosixPath(filename or "").suffix.lower()
    if suffix in SPREADSHEET_EXTENSIONS:
        return suffix[1:]
    if content_type:
        kind = SPREADSHEET_CONTENT_TYPES.get(content_type.split(";")[0].strip().lower())
        if kind:
            return kind
    if data.startswith(_XLSX_MAGIC):
        return "xlsx"
    if data.startswith(_XLS_MAGIC):
        return "xls"
    return "csv"


def decode_spreadsheet(data: bytes, filename: str | None = None, content_type: str | None = None) -> list[RawRow]:
    kind = spreadsheet_kind(data, filename, content_type)
    if kind == "xlsx":
        table = _read_xlsx(data)
    elif kind == "xls":
        table = _read_xls(data)
    else:
        table = _read_csv(data)
    rows = _rows_from_table(table)
    logger.info(f"Decoded {len(rows)} data rows from {kind} spreadsheet {filename or '<upload>'}")
    return rows


def _normalize_cell(value) -> CellValue:
    if value is None:
        return ABSENT
    if isinstance(value, str):
        return value if value != "" else ABSENT
    if isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


def _header_name(cell: CellValue) -> str | None:
    if cell is ABSENT:
        return None
    return str(cell).strip() or None


def _rows_from_table(table: Iterable[Iterable]) -> list[RawRow]:
    header: list[str | None] | None = None
    rows: list[RawRow] = []
    for ordinal, values in enumerate(table, start=1):
        cells = [_normalize_cell(v) for v in values]
        if header is None:
            header = [_header_name(c) for c in cells]
            if not any(header):
                return []
            continue
        if all(c is ABSENT for c in cells):
            continue
        record: dict[str, CellValue] = {}
        for index, name in enumerate(header):
            if name is None or name in record:
                continue
            record[name] = cells[index] if index < len(cells) else ABSENT
        rows.append(RawRow(ordinal=ordinal, cells=record))
    return rows


def _read_csv(data: bytes) -> list[list[str]]:
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise CorruptSpreadsheetError("CSV file must be UTF-8 encoded") from exc
    try:
        return list(csv.reader(io.StringIO(text, newline="")))
    except csv.Error as exc:
        raise CorruptSpreadsheetError(f"Failed to read CSV file: {exc}") from exc


def _read_xlsx(data: bytes) -> list[tuple]:
    try:
        wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except Exception as exc:
        raise CorruptSpreadsheetError(f"Failed to read Excel file: {exc}") from exc
    try:
        if not wb.worksheets:
            return []
        # read_only mode parses the worksheet XML lazily
        return list(wb.worksheets[0].iter_rows(values_only=True))
    except Exception as exc:
        raise CorruptSpreadsheetError(f"Failed to read Excel file: {exc}") from exc
    finally:
        wb.close()


def _read_xls(data: bytes) -> list[list]:
    try:
        book = xlrd.open_workbook(file_contents=data)
    except Exception as exc:
        raise CorruptSpreadsheetError(f"Failed to read Excel file: {exc}") from exc
    if book.nsheets == 0:
        return []
    sheet = book.sheet_by_index(0)
    return [[_xls_cell_value(cell, book.datemode) for cell in sheet.row(r)] for r in range(sheet.nrows)]


def _xls_cell_value(cell, datemode: int):
    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK, xlrd.XL_CELL_ERROR):
        return None
    if cell.ctype == xlrd.XL_CELL_BOOLEAN:
        return bool(cell.value)
    if cell.ctype == xlrd.XL_CELL_NUMBER:
        return int(cell.value) if float(cell.value).is_integer() else cell.value
    if cell.ctype == xlrd.XL_CELL_DATE:
        return xlrd.xldate.xldate_as_datetime(cell.value, datemode)
    return cell.value
