"""Selection tracking and bulk operations over the selected records."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence, TypeVar

from prodcat.exporter import ExportArtifact, ExportFormat, serialize
from prodcat.models import BulkFailure, BulkResult, CatalogRecord, RecordStatus
from prodcat.session import CatalogSession

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _plural(count: int) -> str:
    return f"{count} product{'s' if count != 1 else ''}"


@dataclass(frozen=True)
class ExportOutcome:
    """Export artifact, or only a message when nothing was exported."""

    artifact: Optional[ExportArtifact]
    message: str


def fan_out(
    ids: Sequence[str],
    call: Callable[[str], T],
    *,
    max_workers: int,
) -> tuple[list[tuple[str, T]], list[BulkFailure]]:
    """Run ``call`` for every id concurrently and wait for all of them.

    Results come back in input order; one failure never stops the others.
    """
    if not ids:
        return [], []

    succeeded: list[tuple[str, T]] = []
    failures: list[BulkFailure] = []
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(ids)))) as pool:
        futures = [(record_id, pool.submit(call, record_id)) for record_id in ids]
        for record_id, future in futures:
            try:
                succeeded.append((record_id, future.result()))
            except Exception as e:
                logger.warning("Bulk item %s failed: %s", record_id, e)
                failures.append(BulkFailure(id=record_id, reason=str(e) or type(e).__name__))
    return succeeded, failures


class SelectionCoordinator:
    """Tracks selected ids across pages and applies bulk mutations to them."""

    def __init__(self, session: CatalogSession, *, max_workers: int = 8) -> None:
        self.session = session
        self.max_workers = max_workers
        self._selected: dict[str, None] = {}

    @property
    def selected_ids(self) -> list[str]:
        return list(self._selected)

    def __len__(self) -> int:
        return len(self._selected)

    def is_selected(self, record_id: str) -> bool:
        return record_id in self._selected

    def toggle(self, record_id: str) -> bool:
        """Flip membership; returns the new state."""
        if record_id in self._selected:
            del self._selected[record_id]
            return False
        self._selected[record_id] = None
        return True

    def select_all_visible(self, visible_ids: Iterable[str]) -> None:
        for record_id in visible_ids:
            self._selected.setdefault(record_id, None)

    def deselect_visible(self, visible_ids: Iterable[str]) -> None:
        for record_id in visible_ids:
            self._selected.pop(record_id, None)

    def clear(self) -> None:
        self._selected.clear()

    def bulk_set_status(self, status: RecordStatus) -> BulkResult:
        """Update every selected record that exists locally, then clear the selection.

        Partial success is kept; nothing is rolled back.
        """
        ids = [i for i in self.selected_ids if self.session.find(i) is not None]
        if not ids:
            self.clear()
            return BulkResult(action="status", message="Select products first")

        repository = self.session.repository
        succeeded, failures = fan_out(
            ids,
            lambda record_id: repository.update(record_id, {"status": status}),
            max_workers=self.max_workers,
        )
        for _, updated in succeeded:
            self.session.apply_local(updated)
        self.clear()

        if failures:
            message = (
                f"Updated status for {_plural(len(succeeded))}; "
                f"{len(failures)} failed"
            )
        else:
            message = f"Updated status for {_plural(len(succeeded))}"
        logger.info(message)
        return BulkResult(
            action="status",
            succeeded_ids=[record_id for record_id, _ in succeeded],
            failures=failures,
            message=message,
        )

    def bulk_delete(self, ids: Optional[Sequence[str]] = None) -> BulkResult:
        """Remove ids locally at once, then delete each one in the store.

        Failed remote deletes are reported but the local removal stays; call
        ``session.refresh()`` to reconcile.
        """
        target = list(dict.fromkeys(ids if ids is not None else self.selected_ids))
        if not target:
            return BulkResult(action="delete", message="Select products first")

        self.session.remove_local(target)
        repository = self.session.repository
        succeeded, failures = fan_out(target, repository.delete, max_workers=self.max_workers)
        self.deselect_visible(target)

        if failures:
            logger.warning(
                "Local set diverges from store: %d deletes failed (%s)",
                len(failures),
                ", ".join(f.id for f in failures),
            )
            message = f"Deleted {_plural(len(succeeded))}; {len(failures)} failed"
        else:
            message = f"Deleted {_plural(len(succeeded))}"
        return BulkResult(
            action="delete",
            succeeded_ids=[record_id for record_id, _ in succeeded],
            failures=failures,
            message=message,
        )

    def bulk_export(
        self,
        fmt: ExportFormat = "csv",
        *,
        ids: Optional[Sequence[str]] = None,
        ordered: Optional[Sequence[CatalogRecord]] = None,
    ) -> ExportOutcome:
        """Export exactly the selected records, in the order of ``ordered``."""
        wanted = set(ids if ids is not None else self.selected_ids)
        if not wanted:
            return ExportOutcome(artifact=None, message="Select products first")

        source = ordered if ordered is not None else self.session.records
        records = [r for r in source if r.id in wanted]
        artifact = serialize(records, fmt, languages=self.session.languages)
        if artifact is None:
            return ExportOutcome(artifact=None, message="No products to export")
        return ExportOutcome(
            artifact=artifact,
            message=f"Exported {_plural(artifact.row_count)} to {fmt.upper()}",
        )
