"""In-memory stores for mock mode and tests."""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from prodcat.exceptions import NotFoundError
from prodcat.models import CatalogRecord, UserProfile, utc_now_iso
from prodcat.repositories.base import (
    BlobStore,
    CatalogRepository,
    SnapshotListener,
    Unsubscribe,
    UserRepository,
)

logger = logging.getLogger(__name__)


class InMemoryCatalogRepository(CatalogRepository):
    """Thread-safe in-memory document collection with snapshot push."""

    def __init__(self, records: Optional[list[CatalogRecord]] = None) -> None:
        self._lock = threading.Lock()
        self._listeners: list[SnapshotListener] = []
        self.reset(records)

    def reset(self, records: Optional[list[CatalogRecord]] = None) -> None:
        """Reset all in-memory state (used by tests)."""
        with self._lock:
            self._documents: dict[str, dict[str, Any]] = {}
            self._seq = 1
            for record in records or []:
                record_id = record.id or self._next_id_locked()
                self._documents[record_id] = record.to_document()

    def _next_id_locked(self) -> str:
        record_id = f"prod_{self._seq}"
        self._seq += 1
        return record_id

    @staticmethod
    def _to_record(record_id: str, document: dict[str, Any]) -> CatalogRecord:
        return CatalogRecord.model_validate({**document, "id": record_id})

    def list_all(self) -> list[CatalogRecord]:
        with self._lock:
            return [self._to_record(rid, doc) for rid, doc in self._documents.items()]

    def get(self, record_id: str) -> Optional[CatalogRecord]:
        with self._lock:
            document = self._documents.get(record_id)
            return self._to_record(record_id, document) if document is not None else None

    def create(self, record: CatalogRecord) -> CatalogRecord:
        with self._lock:
            record_id = self._next_id_locked()
            now = utc_now_iso()
            document = record.to_document()
            document["createdAt"] = now
            document["updatedAt"] = now
            self._documents[record_id] = document
            created = self._to_record(record_id, document)
        self._notify()
        return created

    def update(self, record_id: str, changes: dict[str, Any]) -> CatalogRecord:
        with self._lock:
            current = self._documents.get(record_id)
            if current is None:
                raise NotFoundError(f"Unknown record id: {record_id}")

            merged = {**current, **changes}
            merged["createdAt"] = current.get("createdAt")
            merged["updatedAt"] = utc_now_iso()
            merged.pop("id", None)
            updated = self._to_record(record_id, merged)
            self._documents[record_id] = updated.to_document()
        self._notify()
        return updated

    def delete(self, record_id: str) -> None:
        with self._lock:
            self._documents.pop(record_id, None)
        self._notify()

    def delete_many(self, record_ids: list[str]) -> None:
        with self._lock:
            for record_id in record_ids:
                self._documents.pop(record_id, None)
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
        snapshot = self.list_all()
        for listener in listeners:
            listener(list(snapshot))


class InMemoryBlobStore(BlobStore):
    """Keeps uploaded objects in memory and hands out ``memory://`` URLs."""

    def __init__(self, base_url: str = "memory://product-images") -> None:
        self._lock = threading.Lock()
        self._base_url = base_url.rstrip("/")
        self.objects: dict[str, tuple[bytes, str]] = {}

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        with self._lock:
            self.objects[path] = (data, content_type)
        return f"{self._base_url}/{path}"

    def delete(self, url_or_path: str) -> None:
        path = url_or_path.removeprefix(f"{self._base_url}/")
        with self._lock:
            if self.objects.pop(path, None) is None:
                logger.warning("Blob not found for delete: %s", url_or_path)


class InMemoryUserRepository(UserRepository):
    """Thread-safe user profile storage."""

    def __init__(self, users: Optional[list[UserProfile]] = None) -> None:
        self._lock = threading.Lock()
        self._users: dict[str, dict[str, Any]] = {
            u.id: u.model_dump(mode="json", by_alias=True) for u in users or []
        }

    def list_users(self, *, role: Optional[str] = None) -> list[UserProfile]:
        with self._lock:
            return [
                UserProfile.model_validate(doc)
                for doc in self._users.values()
                if role is None or doc.get("role") == role
            ]

    def get_user(self, user_id: str) -> Optional[UserProfile]:
        with self._lock:
            doc = self._users.get(user_id)
            return UserProfile.model_validate(doc) if doc is not None else None

    def update_user(self, user_id: str, changes: dict[str, Any]) -> UserProfile:
        with self._lock:
            doc = self._users.get(user_id)
            if doc is None:
                raise NotFoundError(f"Unknown user id: {user_id}")
            doc.update(changes)
            return UserProfile.model_validate(doc)
