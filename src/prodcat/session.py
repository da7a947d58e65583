"""Catalog session: the caller-owned in-memory record set and its write paths."""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from pathlib import PurePath
from typing import Optional, Sequence

from prodcat.exceptions import RecordValidationError
from prodcat.filtering import apply
from prodcat.models import DRAFT_ID_PREFIX, CatalogRecord, FilterSpec
from prodcat.repositories.base import BlobStore, CatalogRepository, Unsubscribe

logger = logging.getLogger(__name__)

TRANSIENT_URL_PREFIXES = ("blob:", "data:")


def _base36(value: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    out = ""
    while value:
        value, rem = divmod(value, 36)
        out = digits[rem] + out
    return out or "0"


def new_draft_id() -> str:
    """Client-side placeholder id for records not yet persisted."""
    return f"{DRAFT_ID_PREFIX}{_base36(int(time.time() * 1000))}{uuid.uuid4().hex[:4]}"


def blank_record(
    languages: Sequence[str],
    *,
    company: str = "Innova",
    low_stock_threshold: int = 5,
    status: str = "draft",
) -> CatalogRecord:
    """New draft with every language present and default metadata."""
    return CatalogRecord(
        id=new_draft_id(),
        name={lang: "" for lang in languages},
        company=company,
        low_stock_threshold=low_stock_threshold,
        status=status,
    )


@dataclass(frozen=True)
class ImageUpload:
    """Image bytes picked for a record thumbnail."""

    filename: str
    content: bytes
    content_type: str

    @property
    def extension(self) -> str:
        return PurePath(self.filename).suffix.lstrip(".").lower() or "bin"


class CatalogSession:
    """Owns the in-memory record set for one client.

    Writes go to the repository; the local set may run ahead of the store
    after optimistic removals until the next ``refresh``.
    """

    def __init__(
        self,
        repository: CatalogRepository,
        blob_store: Optional[BlobStore] = None,
        *,
        languages: Sequence[str] = ("EN", "RU", "UZ"),
    ) -> None:
        self.repository = repository
        self.blob_store = blob_store
        self.languages = [lang.upper() for lang in languages]
        self._lock = threading.Lock()
        self._records: list[CatalogRecord] = []
        self._unsubscribe: Optional[Unsubscribe] = None

    @property
    def primary_language(self) -> str:
        return self.languages[0]

    @property
    def records(self) -> list[CatalogRecord]:
        with self._lock:
            return list(self._records)

    def find(self, record_id: str) -> Optional[CatalogRecord]:
        with self._lock:
            return next((r for r in self._records if r.id == record_id), None)

    def refresh(self) -> list[CatalogRecord]:
        """Reconcile with the store by replacing the local set with a fresh snapshot."""
        snapshot = self.repository.list_all()
        self.replace(snapshot)
        logger.debug("Session refreshed: %d records", len(snapshot))
        return snapshot

    def replace(self, snapshot: Sequence[CatalogRecord]) -> None:
        with self._lock:
            self._records = list(snapshot)

    def watch(self) -> None:
        """Replace the local set wholesale on every store push."""
        if self._unsubscribe is None:
            self._unsubscribe = self.repository.subscribe(self.replace)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def visible(self, spec: FilterSpec) -> list[CatalogRecord]:
        return apply(self.records, spec, language=self.primary_language)

    def apply_local(self, record: CatalogRecord) -> None:
        with self._lock:
            for index, current in enumerate(self._records):
                if current.id == record.id:
                    self._records[index] = record
                    return
            self._records.append(record)

    def remove_local(self, record_ids: Sequence[str]) -> int:
        doomed = set(record_ids)
        with self._lock:
            before = len(self._records)
            self._records = [r for r in self._records if r.id not in doomed]
            return before - len(self._records)

    def save(self, record: CatalogRecord, image: Optional[ImageUpload] = None) -> CatalogRecord:
        """Create or update a record, uploading its image first.

        Upload failures propagate and nothing is written.
        """
        if not record.has_name():
            raise RecordValidationError("Record needs a name in at least one language")

        to_save = record.model_copy(deep=True)
        if image is not None:
            to_save.thumbnail = self.upload_image(to_save.id or new_draft_id(), image)
        elif to_save.thumbnail.startswith(TRANSIENT_URL_PREFIXES):
            raise RecordValidationError(
                "Thumbnail is a local preview; upload the image before saving"
            )

        if to_save.is_draft:
            saved = self.repository.create(to_save.model_copy(update={"id": None}))
            logger.info("Created record %s (sku=%s)", saved.id, saved.sku)
        else:
            changes = to_save.to_document()
            changes.pop("createdAt", None)
            changes.pop("updatedAt", None)
            saved = self.repository.update(to_save.id, changes)
            logger.info("Updated record %s", saved.id)

        self.refresh()
        return saved

    def upload_image(self, record_id: str, image: ImageUpload) -> str:
        if self.blob_store is None:
            raise RecordValidationError("Image uploads are not configured")
        path = f"{record_id}-{int(time.time() * 1000)}.{image.extension}"
        return self.blob_store.upload(path, image.content, image.content_type)

    def duplicate(self, record: CatalogRecord) -> CatalogRecord:
        """Save a draft copy with a suffixed SKU and no thumbnail."""
        copy = record.model_copy(
            deep=True,
            update={
                "id": new_draft_id(),
                "sku": f"{record.sku}-COPY-{_base36(int(time.time() * 1000))}",
                "status": "draft",
                "thumbnail": "",
                "created_at": None,
                "updated_at": None,
            },
        )
        return self.save(copy)

    def delete(self, record_id: str) -> None:
        """Delete one record; the local copy goes only after the store confirms."""
        self.repository.delete(record_id)
        self.remove_local([record_id])
        logger.info("Deleted record %s", record_id)

    def delete_records(self, record_ids: Sequence[str]) -> list[str]:
        """Delete several records in one store batch (all or nothing)."""
        ids = [i for i in record_ids if i]
        if not ids:
            raise RecordValidationError("No record ids provided for deletion")
        self.repository.delete_many(ids)
        self.remove_local(ids)
        logger.info("Deleted %d records", len(ids))
        return ids
