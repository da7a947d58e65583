"""Serialize catalog records to CSV or XLSX."""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Literal, Optional, Sequence

from prodcat.models import CatalogRecord

logger = logging.getLogger(__name__)

ExportFormat = Literal["csv", "xlsx"]

CSV_MEDIA_TYPE = "text/csv"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@dataclass(frozen=True)
class ExportColumn:
    label: str
    getter: Callable[[CatalogRecord], Any]
    numeric: bool = False


@dataclass(frozen=True)
class ExportArtifact:
    """Downloadable export payload."""

    content: bytes
    media_type: str
    filename: str
    row_count: int


def export_columns(languages: Sequence[str]) -> list[ExportColumn]:
    """Fixed projection; ``specs``, ``seo`` extras and attributes are not exported."""
    columns = [
        ExportColumn(f"Name ({lang})", lambda r, lang=lang: r.name.get(lang, ""))
        for lang in languages
    ]
    columns += [
        ExportColumn("SKU", lambda r: r.sku),
        ExportColumn("Price", lambda r: r.price, numeric=True),
        ExportColumn("Cost", lambda r: r.cost, numeric=True),
        ExportColumn("Stock", lambda r: r.stock, numeric=True),
        ExportColumn("Low Stock Threshold", lambda r: r.low_stock_threshold, numeric=True),
        ExportColumn("Category", lambda r: r.category),
        ExportColumn("Status", lambda r: r.status),
        ExportColumn("Company", lambda r: r.company),
        ExportColumn("Description", lambda r: r.description),
        ExportColumn("Slug", lambda r: r.seo.slug),
        ExportColumn("Meta Title", lambda r: r.seo.title),
        ExportColumn("Meta Description", lambda r: r.seo.description),
    ]
    return columns


def format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def to_csv(records: Sequence[CatalogRecord], languages: Sequence[str]) -> str:
    """Header row plus one row per record, in input order."""
    columns = export_columns(languages)
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow([c.label for c in columns])
    for record in records:
        writer.writerow([format_value(c.getter(record)) for c in columns])
    return buffer.getvalue()


def to_xlsx(records: Sequence[CatalogRecord], languages: Sequence[str]) -> bytes:
    import xlsxwriter

    columns = export_columns(languages)
    buffer = io.BytesIO()
    workbook = xlsxwriter.Workbook(buffer, {"in_memory": True})
    try:
        worksheet = workbook.add_worksheet("Products")
        header_format = workbook.add_format({"bold": True, "bg_color": "#D9E1F2"})
        for col, column in enumerate(columns):
            worksheet.write_string(0, col, column.label, header_format)
            worksheet.set_column(col, col, max(12, len(column.label) + 2))

        for row, record in enumerate(records, start=1):
            for col, column in enumerate(columns):
                value = column.getter(record)
                if column.numeric and value is not None:
                    worksheet.write_number(row, col, float(value or 0))
                else:
                    worksheet.write_string(row, col, format_value(value))
        worksheet.freeze_panes(1, 0)
    finally:
        workbook.close()
    return buffer.getvalue()


def serialize(
    records: Sequence[CatalogRecord],
    fmt: ExportFormat = "csv",
    *,
    languages: Sequence[str] = ("EN", "RU", "UZ"),
    now: Optional[datetime] = None,
) -> Optional[ExportArtifact]:
    """Build the export artifact, or None when there is nothing to export."""
    if not records:
        logger.info("Nothing to export")
        return None

    stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%d-%H%M%S")
    if fmt == "csv":
        content = to_csv(records, languages).encode("utf-8")
        media_type = CSV_MEDIA_TYPE
    elif fmt == "xlsx":
        content = to_xlsx(records, languages)
        media_type = XLSX_MEDIA_TYPE
    else:
        raise ValueError(f"Unsupported export format: {fmt}")

    logger.info("Exported %d records as %s", len(records), fmt)
    return ExportArtifact(
        content=content,
        media_type=media_type,
        filename=f"products-export-{stamp}.{fmt}",
        row_count=len(records),
    )
