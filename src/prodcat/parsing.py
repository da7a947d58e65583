"""Parse uploaded CSV/XLSX files into header -> value rows."""

import csv
import io
import logging
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Any, Literal

from prodcat.exceptions import ParseError

logger = logging.getLogger(__name__)

SheetKind = Literal["standard", "commercial_offer"]

OFFER_INDICATORS = (
    "commercial offer",
    "technical details",
    "price per unit",
    "unit",
    "quantity",
    "qty",
    "amount",
)
OFFER_MIN_SCORE = 3
OFFER_HEADER_TOKENS = ("technical", "description", "unit", "price", "quantity")
OFFER_HEADER_SEARCH_ROWS = 15
OFFER_SUMMARY_TOKENS = ("total", "sum", "terms")
FORMULA_ERRORS = {"#VALUE!", "#REF!", "#DIV/0!"}
SUPPORTED_EXTENSIONS = (".csv", ".xlsx")


@dataclass
class ParsedTable:
    """Rows extracted from one uploaded file."""

    rows: list[dict[str, Any]] = field(default_factory=list)
    kind: SheetKind = "standard"
    headers: list[str] = field(default_factory=list)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_csv(data: bytes) -> ParsedTable:
    """Parse CSV bytes with a header row. Malformed files raise ParseError."""
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ParseError(f"CSV parsing error: file is not UTF-8 encoded ({e.reason})") from e

    reader = csv.DictReader(io.StringIO(text, newline=""), strict=True)
    rows: list[dict[str, Any]] = []
    try:
        headers = [h.strip() for h in reader.fieldnames or []]
        if not any(headers):
            raise ParseError("CSV parsing error: missing header row")
        for row in reader:
            if None in row:
                raise ParseError(
                    f"CSV parsing error: too many fields on line {reader.line_num}",
                    details={"line": reader.line_num},
                )
            if all(_is_blank(v) for v in row.values()):
                continue
            rows.append({k.strip(): v for k, v in row.items() if k is not None})
    except csv.Error as e:
        raise ParseError(
            f"CSV parsing error: {e}", details={"line": reader.line_num}
        ) from e

    logger.info("Parsed CSV: %d rows, %d columns", len(rows), len(headers))
    return ParsedTable(rows=rows, kind="standard", headers=headers)


def detect_commercial_offer(grid: list[list[Any]]) -> bool:
    """True when enough offer indicators appear anywhere in the sheet."""
    score = 0
    for row in grid:
        for cell in row:
            text = str(cell if cell is not None else "").lower()
            score += sum(1 for indicator in OFFER_INDICATORS if indicator in text)
    return score >= OFFER_MIN_SCORE


def parse_commercial_offer(grid: list[list[Any]]) -> tuple[list[str], list[dict[str, Any]]]:
    """Find the item header row near the top and read line items below it."""
    headers: list[str] = []
    start = -1
    for index, row in enumerate(grid[:OFFER_HEADER_SEARCH_ROWS]):
        lowered = [str(c if c is not None else "").lower() for c in row]
        if any(token in cell for cell in lowered for token in OFFER_HEADER_TOKENS):
            headers = [str(c if c is not None else "").strip() for c in row]
            start = index + 1
            break

    rows: list[dict[str, Any]] = []
    if start == -1:
        return headers, rows

    for row in grid[start:]:
        if len(row) < 2:
            continue
        if all(_is_blank(c) or c in FORMULA_ERRORS for c in row):
            continue
        first = str(row[0] if row[0] is not None else "").strip().lower()
        if not first or any(token in first for token in OFFER_SUMMARY_TOKENS):
            continue

        item: dict[str, Any] = {}
        for header, value in zip(headers, row):
            if not header or value is None or value in FORMULA_ERRORS:
                continue
            item[header] = value
        if item:
            rows.append(item)
    return headers, rows


def parse_standard_sheet(grid: list[list[Any]]) -> tuple[list[str], list[dict[str, Any]]]:
    headers = [str(h).strip() if h is not None else "" for h in grid[0]]
    rows: list[dict[str, Any]] = []
    for row in grid[1:]:
        item = {h: v for h, v in zip(headers, row) if h}
        if any(not _is_blank(v) for v in item.values()):
            rows.append(item)
    return headers, rows


def parse_xlsx(data: bytes) -> ParsedTable:
    """Parse the first worksheet of an XLSX workbook."""
    from openpyxl import load_workbook

    try:
        workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except Exception as e:
        raise ParseError(f"Excel parsing failed: {e}") from e

    try:
        worksheet = workbook.worksheets[0]
        grid = [
            list(row)
            for row in worksheet.iter_rows(values_only=True)
            if any(not _is_blank(c) for c in row)
        ]
    finally:
        workbook.close()

    if len(grid) < 2:
        raise ParseError("Excel file is empty or has no data rows")

    if detect_commercial_offer(grid):
        kind: SheetKind = "commercial_offer"
        headers, rows = parse_commercial_offer(grid)
    else:
        kind = "standard"
        headers, rows = parse_standard_sheet(grid)

    if not rows:
        raise ParseError("No valid product data found in the file")

    logger.info("Parsed XLSX (%s): %d rows", kind, len(rows))
    return ParsedTable(rows=rows, kind=kind, headers=headers)


def parse_upload(filename: str, data: bytes) -> ParsedTable:
    """Dispatch on file extension."""
    suffix = PurePath(filename or "").suffix.lower()
    if suffix == ".csv":
        table = parse_csv(data)
    elif suffix == ".xlsx":
        table = parse_xlsx(data)
    elif suffix == ".xls":
        raise ParseError("Legacy .xls workbooks are not supported; save as .xlsx")
    else:
        raise ParseError(
            "Please upload a CSV or Excel file (.csv, .xlsx)",
            details={"filename": filename},
        )

    if not table.rows:
        raise ParseError("No valid data found in the file")
    return table
