"""Repository interfaces for catalog persistence, blob storage and user profiles."""

from typing import Any, Callable, Optional, Protocol

from prodcat.models import CatalogRecord, UserProfile

SnapshotListener = Callable[[list[CatalogRecord]], None]
Unsubscribe = Callable[[], None]


class CatalogRepository(Protocol):
    """Document store operations for catalog records.

    Implementations never cache: every ``list_all`` is a fresh snapshot.
    Failures surface as ``PersistenceError``.
    """

    def list_all(self) -> list[CatalogRecord]:
        ...

    def get(self, record_id: str) -> Optional[CatalogRecord]:
        ...

    def create(self, record: CatalogRecord) -> CatalogRecord:
        ...

    def update(self, record_id: str, changes: dict[str, Any]) -> CatalogRecord:
        ...

    def delete(self, record_id: str) -> None:
        ...

    def delete_many(self, record_ids: list[str]) -> None:
        ...

    def subscribe(self, listener: SnapshotListener) -> Unsubscribe:
        ...


class BlobStore(Protocol):
    """Binary object storage returning a retrievable URL per object."""

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        ...

    def delete(self, url_or_path: str) -> None:
        ...


class UserRepository(Protocol):
    """User profile documents."""

    def list_users(self, *, role: Optional[str] = None) -> list[UserProfile]:
        ...

    def get_user(self, user_id: str) -> Optional[UserProfile]:
        ...

    def update_user(self, user_id: str, changes: dict[str, Any]) -> UserProfile:
        ...
