"""Supabase-backed document collection, blob store and user profiles.

Each collection is a table with an ``id`` primary key and a ``data`` jsonb
column holding the document. Thumbnails live in a Storage bucket.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from supabase import Client

from prodcat.exceptions import ContractError, NotFoundError, PersistenceError, UploadError
from prodcat.models import CatalogRecord, UserProfile, utc_now_iso
from prodcat.repositories.base import (
    BlobStore,
    CatalogRepository,
    SnapshotListener,
    Unsubscribe,
    UserRepository,
)

logger = logging.getLogger(__name__)


def _row_to_record(row: dict[str, Any]) -> CatalogRecord:
    return CatalogRecord.model_validate({**(row.get("data") or {}), "id": str(row["id"])})


class SupabaseCatalogRepository(CatalogRepository):
    """Catalog records stored as jsonb documents in a Supabase table.

    The sync client has no realtime channel, so ``subscribe`` pushes a fresh
    snapshot after every write issued through this repository instance.
    """

    def __init__(self, client: Client, table: str = "products") -> None:
        self._client = client
        self._table = table
        self._lock = threading.Lock()
        self._listeners: list[SnapshotListener] = []

    def list_all(self) -> list[CatalogRecord]:
        try:
            response = self._client.table(self._table).select("id, data").execute()
        except Exception as e:
            logger.exception("Listing %s failed", self._table)
            raise PersistenceError(f"Failed to load records: {e}") from e
        return [_row_to_record(row) for row in response.data or []]

    def get(self, record_id: str) -> Optional[CatalogRecord]:
        try:
            response = (
                self._client.table(self._table)
                .select("id, data")
                .eq("id", record_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise PersistenceError(f"Failed to load record {record_id}: {e}") from e
        rows = response.data or []
        return _row_to_record(rows[0]) if rows else None

    def create(self, record: CatalogRecord) -> CatalogRecord:
        now = utc_now_iso()
        document = record.to_document()
        document["createdAt"] = now
        document["updatedAt"] = now
        try:
            response = self._client.table(self._table).insert({"data": document}).execute()
        except Exception as e:
            logger.exception("Creating record sku=%s failed", record.sku)
            raise PersistenceError(f"Failed to create record: {e}") from e

        rows = response.data or []
        if not rows:
            raise PersistenceError("Store returned no row for created record")
        created = _row_to_record(rows[0])
        logger.info("Record created: id=%s sku=%s", created.id, created.sku)
        self._notify()
        return created

    def update(self, record_id: str, changes: dict[str, Any]) -> CatalogRecord:
        current = self.get(record_id)
        if current is None:
            raise NotFoundError(f"Unknown record id: {record_id}")

        document = current.to_document()
        created_at = document.get("createdAt")
        document.update(changes)
        document.pop("id", None)
        document["createdAt"] = created_at
        document["updatedAt"] = utc_now_iso()
        merged = CatalogRecord.model_validate({**document, "id": record_id})

        try:
            (
                self._client.table(self._table)
                .update({"data": merged.to_document()})
                .eq("id", record_id)
                .execute()
            )
        except Exception as e:
            logger.exception("Updating record %s failed", record_id)
            raise PersistenceError(f"Failed to update record {record_id}: {e}") from e

        self._notify()
        return merged

    def delete(self, record_id: str) -> None:
        try:
            self._client.table(self._table).delete().eq("id", record_id).execute()
        except Exception as e:
            logger.exception("Deleting record %s failed", record_id)
            raise PersistenceError(f"Failed to delete record {record_id}: {e}") from e
        self._notify()

    def delete_many(self, record_ids: list[str]) -> None:
        if not record_ids:
            return
        try:
            self._client.table(self._table).delete().in_("id", record_ids).execute()
        except Exception as e:
            logger.exception("Deleting %d records failed", len(record_ids))
            raise PersistenceError(f"Failed to delete records: {e}") from e
        self._notify()

    def subscribe(self, listener: SnapshotListener) -> Unsubscribe:
        with self._lock:
            self._listeners.append(listener)
        listener(self.list_all())

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        if not listeners:
            return
        try:
            snapshot = self.list_all()
        except ContractError:
            logger.warning("Snapshot push skipped: store unavailable")
            return
        for listener in listeners:
            listener(list(snapshot))


class SupabaseBlobStore(BlobStore):
    """Supabase Storage bucket returning public URLs."""

    def __init__(self, client: Client, bucket: str = "product-images") -> None:
        self._client = client
        self._bucket = bucket

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        storage = self._client.storage.from_(self._bucket)
        try:
            storage.upload(path, data, file_options={"content-type": content_type})
            url = storage.get_public_url(path)
        except Exception as e:
            logger.exception("Upload of %s failed", path)
            raise UploadError(f"Failed to upload image: {e}") from e
        logger.info("Uploaded %s (%d bytes)", path, len(data))
        return url

    def delete(self, url_or_path: str) -> None:
        marker = f"/{self._bucket}/"
        path = url_or_path.split(marker, 1)[1] if marker in url_or_path else url_or_path
        path = path.split("?", 1)[0]
        try:
            self._client.storage.from_(self._bucket).remove([path])
        except Exception as e:
            logger.warning("Failed to delete image %s: %s", path, e)


class SupabaseUserRepository(UserRepository):
    """User profiles stored as jsonb documents."""

    def __init__(self, client: Client, table: str = "users") -> None:
        self._client = client
        self._table = table

    @staticmethod
    def _to_profile(row: dict[str, Any]) -> UserProfile:
        return UserProfile.model_validate({**(row.get("data") or {}), "id": str(row["id"])})

    def list_users(self, *, role: Optional[str] = None) -> list[UserProfile]:
        query = self._client.table(self._table).select("id, data")
        if role is not None:
            query = query.eq("data->>role", role)
        try:
            response = query.execute()
        except Exception as e:
            raise PersistenceError(f"Failed to load users: {e}") from e
        return [self._to_profile(row) for row in response.data or []]

    def get_user(self, user_id: str) -> Optional[UserProfile]:
        try:
            response = (
                self._client.table(self._table)
                .select("id, data")
                .eq("id", user_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise PersistenceError(f"Failed to load user {user_id}: {e}") from e
        rows = response.data or []
        return self._to_profile(rows[0]) if rows else None

    def update_user(self, user_id: str, changes: dict[str, Any]) -> UserProfile:
        current = self.get_user(user_id)
        if current is None:
            raise NotFoundError(f"Unknown user id: {user_id}")
        document = current.model_dump(mode="json", by_alias=True, exclude={"id"})
        document.update(changes)
        try:
            (
                self._client.table(self._table)
                .update({"data": document})
                .eq("id", user_id)
                .execute()
            )
        except Exception as e:
            raise PersistenceError(f"Failed to update user {user_id}: {e}") from e
        return UserProfile.model_validate({**document, "id": user_id})
