"""Import orchestration: parse upload, normalize rows, persist records."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from prodcat.config import CatalogConfig
from prodcat.exceptions import ContractError
from prodcat.models import CatalogRecord, ImportRowError, ImportSummary
from prodcat.normalizer import ImportNormalizer
from prodcat.parsing import ParsedTable, parse_upload
from prodcat.repositories.base import CatalogRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportPreview:
    """Normalized rows ready to persist, plus rows that were rejected."""

    table: ParsedTable
    records: list[CatalogRecord]
    row_numbers: list[int]
    errors: list[ImportRowError]
    skipped_count: int


def summary_status(imported: int, failed: int) -> str:
    if imported == 0 and failed == 0:
        return "empty"
    if imported == 0:
        return "failed"
    if failed > 0:
        return "partial_failed"
    return "completed"


class CatalogImportService:
    """Coordinates the import write path.

    Each record is created on its own; a store failure on one record is
    reported against its row and does not stop the rest.
    """

    def __init__(
        self,
        config: CatalogConfig,
        repository: Optional[CatalogRepository] = None,
        normalizer: Optional[ImportNormalizer] = None,
    ) -> None:
        self.config = config
        self.repository = repository
        self.normalizer = normalizer or ImportNormalizer.from_config(config)

    def preview(self, filename: str, data: bytes) -> ImportPreview:
        """Parse and normalize without writing anything."""
        table = parse_upload(filename, data)
        records: list[CatalogRecord] = []
        row_numbers: list[int] = []
        errors: list[ImportRowError] = []
        skipped = 0

        for index, raw_row in enumerate(table.rows):
            result = self.normalizer.normalize(raw_row, index)
            if result.ok:
                records.append(result.record)
                row_numbers.append(index + 1)
            elif result.error is not None:
                errors.append(result.error)
            else:
                skipped += 1

        logger.info(
            "Import preview for %s: %d records, %d rejected, %d skipped",
            filename,
            len(records),
            len(errors),
            skipped,
        )
        return ImportPreview(
            table=table,
            records=records,
            row_numbers=row_numbers,
            errors=errors,
            skipped_count=skipped,
        )

    def import_file(self, filename: str, data: bytes, *, dry_run: bool = False) -> ImportSummary:
        preview = self.preview(filename, data)
        if dry_run:
            return ImportSummary(
                status=summary_status(len(preview.records), len(preview.errors)),
                imported_count=len(preview.records),
                failed_count=len(preview.errors),
                skipped_count=preview.skipped_count,
                errors=preview.errors,
            )

        if self.repository is None:
            raise ContractError(
                "IMPORT_DISABLED",
                "Import requires a configured catalog store",
                status_code=501,
            )

        errors = list(preview.errors)
        record_ids: list[str] = []
        for record, row_number in zip(preview.records, preview.row_numbers):
            try:
                saved = self.repository.create(record)
            except ContractError as e:
                logger.warning("Import row %d failed to persist: %s", row_number, e.message)
                errors.append(
                    ImportRowError(row=row_number, reason=e.message, raw={"sku": record.sku})
                )
                continue
            record_ids.append(saved.id or "")

        errors.sort(key=lambda err: err.row)
        summary = ImportSummary(
            status=summary_status(len(record_ids), len(errors)),
            imported_count=len(record_ids),
            failed_count=len(errors),
            skipped_count=preview.skipped_count,
            record_ids=record_ids,
            errors=errors,
        )
        logger.info(
            "Imported %s: status=%s imported=%d failed=%d",
            filename,
            summary.status,
            summary.imported_count,
            summary.failed_count,
        )
        return summary

