"""Shared test fixtures."""

from collections.abc import Generator
from typing import Any

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from prodcat.api import create_app, limiter
from prodcat.auth import get_supabase_client
from prodcat.config import CatalogConfig, reload_config
from prodcat.dependencies import (
    get_app_config,
    get_blob_store,
    get_catalog_repository,
    get_user_repository,
)
from prodcat.models import CatalogRecord, UserProfile
from prodcat.repositories.memory import (
    InMemoryBlobStore,
    InMemoryCatalogRepository,
    InMemoryUserRepository,
)

TEST_SUPABASE_TOKEN = "test-supabase-jwt"
TEST_USER_TOKEN = "test-regular-user-jwt"
TEST_API_KEY = "test-api-key"


def make_record(**overrides: Any) -> CatalogRecord:
    """Build a catalog record with sensible defaults."""
    values: dict[str, Any] = {
        "name": {"EN": "Widget", "RU": "", "UZ": ""},
        "sku": "W-1",
        "price": 10.0,
        "cost": 8.0,
        "stock": 20,
        "low_stock_threshold": 5,
        "category": "Tools",
        "company": "Innova",
        "status": "published",
    }
    values.update(overrides)
    return CatalogRecord(**values)


@pytest.fixture(autouse=True)
def mock_supabase_auth(
    monkeypatch: pytest.MonkeyPatch, request: pytest.FixtureRequest
) -> Generator[None, None, None]:
    """Mock Supabase JWT verification for offline tests."""
    if request.module.__name__.endswith("test_config"):
        yield
        return

    monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")

    def _fake_fetch_supabase_user(token: str, client: object) -> dict[str, str]:
        _ = client
        if token == TEST_SUPABASE_TOKEN:
            return {"id": "owner-1", "email": "owner@example.com"}
        if token == TEST_USER_TOKEN:
            return {"id": "user-1", "email": "user@example.com"}
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    monkeypatch.setattr("prodcat.auth.fetch_supabase_user", _fake_fetch_supabase_user)
    yield


@pytest.fixture
def api_test_config() -> CatalogConfig:
    """Provide a test-owned API config instance for dependency overrides."""
    return CatalogConfig(
        _env_file=None,
        mock=True,
        api_keys=TEST_API_KEY,
        max_import_size_mb=1,
        max_image_size_mb=1,
        page_size=9,
    )


@pytest.fixture
def catalog_repository() -> InMemoryCatalogRepository:
    return InMemoryCatalogRepository()


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def user_repository() -> InMemoryUserRepository:
    return InMemoryUserRepository(
        [
            UserProfile(id="owner-1", email="owner@example.com", role="owner", approved=True),
            UserProfile(id="user-1", email="user@example.com", name="Pending Pat"),
            UserProfile(
                id="user-2",
                email="ok@example.com",
                approved=True,
                status="approved",
            ),
            UserProfile(id="user-3", email="no@example.com", status="rejected"),
        ]
    )


@pytest.fixture
def api_test_app(
    monkeypatch: pytest.MonkeyPatch,
    api_test_config: CatalogConfig,
    catalog_repository: InMemoryCatalogRepository,
    blob_store: InMemoryBlobStore,
    user_repository: InMemoryUserRepository,
) -> Generator[Any, None, None]:
    """Create a fresh FastAPI app with explicit dependency overrides."""
    monkeypatch.setenv("MOCK", "true")
    monkeypatch.setenv("ALLOWED_ORIGINS", "http://localhost:5173")
    reload_config()
    limiter.reset()
    app = create_app()
    app.dependency_overrides[get_app_config] = lambda: api_test_config
    app.dependency_overrides[get_catalog_repository] = lambda: catalog_repository
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    app.dependency_overrides[get_user_repository] = lambda: user_repository
    app.dependency_overrides[get_supabase_client] = lambda: object()
    try:
        yield app
    finally:
        app.dependency_overrides.clear()
        limiter.reset()
        reload_config()


@pytest.fixture
def api_test_client(api_test_app: Any) -> Generator[TestClient, None, None]:
    """Create a TestClient for the overridden API app."""
    with TestClient(api_test_app) as client:
        yield client


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {TEST_SUPABASE_TOKEN}"}
