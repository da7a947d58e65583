"""Shared FastAPI app resource container and provider dependencies."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, cast

from fastapi import Depends, HTTPException, Request, status

from prodcat.approvals import UserApprovalService
from prodcat.config import CatalogConfig
from prodcat.import_service import CatalogImportService
from prodcat.repositories.base import BlobStore, CatalogRepository, UserRepository
from prodcat.selection import SelectionCoordinator
from prodcat.session import CatalogSession

if TYPE_CHECKING:
    from prodcat.auth import SupabaseClientProvider


@dataclass
class AppResources:
    """App-scoped resources initialized during FastAPI lifespan."""

    config: CatalogConfig
    supabase_client_provider: SupabaseClientProvider
    repository: CatalogRepository
    blob_store: BlobStore
    user_repository: UserRepository


def get_app_resources(request: Request) -> AppResources:
    """Return initialized app resources from state."""
    resources = getattr(request.app.state, "prodcat_resources", None)
    if resources is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Application resources are not initialized",
        )
    return cast(AppResources, resources)


def get_app_config(resources: AppResources = Depends(get_app_resources)) -> CatalogConfig:
    """Get app-scoped config instance."""
    return resources.config


def get_supabase_client_provider(
    resources: AppResources = Depends(get_app_resources),
) -> "SupabaseClientProvider":
    """Get app-scoped Supabase client provider."""
    return resources.supabase_client_provider


def get_catalog_repository(
    resources: AppResources = Depends(get_app_resources),
) -> CatalogRepository:
    return resources.repository


def get_blob_store(resources: AppResources = Depends(get_app_resources)) -> BlobStore:
    return resources.blob_store


def get_user_repository(
    resources: AppResources = Depends(get_app_resources),
) -> UserRepository:
    return resources.user_repository


def get_catalog_session(
    config: CatalogConfig = Depends(get_app_config),
    repository: CatalogRepository = Depends(get_catalog_repository),
    blob_store: BlobStore = Depends(get_blob_store),
) -> CatalogSession:
    """Per-request session; its record set is loaded lazily by the handler."""
    return CatalogSession(repository, blob_store, languages=config.get_languages())


def get_selection(
    config: CatalogConfig = Depends(get_app_config),
    session: CatalogSession = Depends(get_catalog_session),
) -> SelectionCoordinator:
    return SelectionCoordinator(session, max_workers=config.bulk_max_workers)


def get_import_service(
    config: CatalogConfig = Depends(get_app_config),
    repository: CatalogRepository = Depends(get_catalog_repository),
) -> CatalogImportService:
    return CatalogImportService(config=config, repository=repository)


def get_approval_service(
    repository: UserRepository = Depends(get_user_repository),
) -> UserApprovalService:
    return UserApprovalService(repository)


def build_app_resources(config: CatalogConfig) -> AppResources:
    """Wire stores for the configured backend; mock mode keeps everything in memory."""
    from prodcat.auth import SupabaseClientProvider
    from prodcat.repositories.memory import (
        InMemoryBlobStore,
        InMemoryCatalogRepository,
        InMemoryUserRepository,
    )
    from prodcat.repositories.supabase_store import (
        SupabaseBlobStore,
        SupabaseCatalogRepository,
        SupabaseUserRepository,
    )

    provider = SupabaseClientProvider(config)
    if config.mock:
        return AppResources(
            config=config,
            supabase_client_provider=provider,
            repository=InMemoryCatalogRepository(),
            blob_store=InMemoryBlobStore(),
            user_repository=InMemoryUserRepository(),
        )

    client = provider.get_client()
    return AppResources(
        config=config,
        supabase_client_provider=provider,
        repository=SupabaseCatalogRepository(client, config.products_table),
        blob_store=SupabaseBlobStore(client, config.storage_bucket),
        user_repository=SupabaseUserRepository(client, config.users_table),
    )
