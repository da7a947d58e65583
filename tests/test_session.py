"""Tests for the catalog session write paths."""

import pytest

from conftest import make_record
from prodcat.exceptions import PersistenceError, RecordValidationError, UploadError
from prodcat.models import CatalogRecord
from prodcat.repositories.memory import InMemoryBlobStore, InMemoryCatalogRepository
from prodcat.session import CatalogSession, ImageUpload, blank_record, new_draft_id


class FailingBlobStore(InMemoryBlobStore):
    def upload(self, path: str, data: bytes, content_type: str) -> str:
        raise UploadError("Failed to upload image: bucket unavailable")


class FailingDeleteRepository(InMemoryCatalogRepository):
    def delete(self, record_id: str) -> None:
        raise PersistenceError(f"Failed to delete record {record_id}")

    def delete_many(self, record_ids: list[str]) -> None:
        raise PersistenceError("Failed to delete records")


@pytest.fixture
def repository() -> InMemoryCatalogRepository:
    return InMemoryCatalogRepository()


@pytest.fixture
def blobs() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def session(repository, blobs) -> CatalogSession:
    return CatalogSession(repository, blobs)


PNG = ImageUpload(filename="photo.PNG", content=b"\x89PNG", content_type="image/png")


def test_new_draft_ids_are_unique_and_prefixed():
    first, second = new_draft_id(), new_draft_id()
    assert first.startswith("p-")
    assert first != second


def test_blank_record_defaults():
    record = blank_record(["EN", "RU", "UZ"])

    assert record.is_draft
    assert record.name == {"EN": "", "RU": "", "UZ": ""}
    assert record.low_stock_threshold == 5
    assert record.status == "draft"
    assert record.company == "Innova"


def test_save_draft_creates_and_refreshes(session, repository):
    saved = session.save(make_record(id=new_draft_id()))

    assert not saved.is_draft
    assert saved.created_at is not None
    assert [r.id for r in session.records] == [saved.id]
    assert repository.get(saved.id) is not None


def test_save_existing_updates_in_place(session, repository):
    created = repository.create(make_record())
    session.refresh()

    updated = session.save(created.model_copy(update={"price": 42.0}))

    assert updated.id == created.id
    assert updated.price == 42.0
    assert updated.created_at == created.created_at
    assert len(repository.list_all()) == 1
    assert session.find(created.id).price == 42.0


def test_save_requires_a_name(session, repository):
    with pytest.raises(RecordValidationError):
        session.save(make_record(id=None, name={"EN": " ", "RU": ""}))
    assert repository.list_all() == []


def test_save_accepts_name_in_any_language(session):
    saved = session.save(make_record(id=None, name={"EN": "", "RU": "Насос"}))
    assert saved.display_name("EN") == "Насос"


def test_save_uploads_image_first(session, blobs):
    saved = session.save(make_record(id=None, thumbnail="blob:http://localhost/123"), PNG)

    assert saved.thumbnail.startswith("memory://product-images/p-")
    assert saved.thumbnail.endswith(".png")
    assert len(blobs.objects) == 1


def test_save_rejects_transient_preview_urls(session, repository):
    with pytest.raises(RecordValidationError, match="local preview"):
        session.save(make_record(id=None, thumbnail="data:image/png;base64,AAAA"))
    assert repository.list_all() == []


def test_upload_failure_propagates_and_nothing_is_saved(repository):
    session = CatalogSession(repository, FailingBlobStore())

    with pytest.raises(UploadError):
        session.save(make_record(id=None), PNG)
    assert repository.list_all() == []


def test_duplicate_creates_draft_copy(session, repository):
    original = repository.create(make_record(sku="W-1", thumbnail="https://x/img.png"))

    copy = session.duplicate(original)

    assert copy.id != original.id
    assert copy.sku.startswith("W-1-COPY-")
    assert copy.status == "draft"
    assert copy.thumbnail == ""
    assert copy.name == original.name
    assert len(repository.list_all()) == 2


def test_delete_removes_after_store_confirms(session, repository):
    record = repository.create(make_record())
    session.refresh()

    session.delete(record.id)

    assert session.records == []
    assert repository.list_all() == []


def test_single_delete_failure_keeps_local_record():
    repository = FailingDeleteRepository([make_record(id="keep")])
    session = CatalogSession(repository)
    session.refresh()

    with pytest.raises(PersistenceError):
        session.delete("keep")
    assert [r.id for r in session.records] == ["keep"]


def test_delete_records_batches(session, repository):
    ids = [repository.create(make_record(sku=f"S-{i}")).id for i in range(3)]
    session.refresh()

    deleted = session.delete_records(ids[:2])

    assert deleted == ids[:2]
    assert [r.id for r in session.records] == [ids[2]]
    assert [r.id for r in repository.list_all()] == [ids[2]]


def test_delete_records_requires_ids(session):
    with pytest.raises(RecordValidationError):
        session.delete_records(["", ""])


def test_watch_replaces_local_set_on_every_push(session, repository):
    session.watch()
    assert session.records == []

    created = repository.create(make_record())
    assert [r.id for r in session.records] == [created.id]

    repository.delete(created.id)
    assert session.records == []

    session.close()
    repository.create(make_record())
    assert session.records == []


def test_visible_uses_filters(session, repository):
    repository.create(make_record(name={"EN": "Pump"}))
    repository.create(make_record(name={"EN": "Valve"}))
    session.refresh()

    from prodcat.models import FilterSpec

    assert [r.display_name() for r in session.visible(FilterSpec(search="val"))] == ["Valve"]


def test_records_returns_copy(session, repository):
    repository.create(make_record())
    session.refresh()

    session.records.clear()

    assert len(session.records) == 1
    assert isinstance(session.records[0], CatalogRecord)
