"""Supabase JWT authentication and role gating for FastAPI endpoints."""

import logging
from threading import Lock
from typing import Any, Callable, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from supabase import Client, create_client

from prodcat.config import CatalogConfig
from prodcat.dependencies import (
    get_app_config,
    get_supabase_client_provider,
    get_user_repository,
)
from prodcat.repositories.base import UserRepository

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

OWNER_ROLES = frozenset({"owner", "store_owner"})


class SupabaseClientProvider:
    """App-scoped lazy Supabase client provider bound to startup config."""

    def __init__(self, config: CatalogConfig) -> None:
        self._config = config
        self._client: Optional[Client] = None
        self._lock = Lock()

    def get_client(self) -> Client:
        if not self._config.supabase_url or not self._config.supabase_service_role_key:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Authentication service is not configured",
            )

        if self._client is not None:
            return self._client

        with self._lock:
            if self._client is None:
                self._client = create_client(
                    self._config.supabase_url,
                    self._config.supabase_service_role_key,
                )
        return self._client


def get_supabase_client(
    provider: SupabaseClientProvider = Depends(get_supabase_client_provider),
) -> Client:
    """Resolve a Supabase client through the app-scoped provider."""
    return provider.get_client()


def fetch_supabase_user(token: str, client: Client) -> dict[str, Any]:
    """Return user payload for a verified Supabase JWT."""
    response = client.auth.get_user(token)
    if response is None or response.user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    user = response.user
    if hasattr(user, "model_dump"):
        return user.model_dump(mode="json")
    return dict(user) if isinstance(user, dict) else {"id": getattr(user, "id", None)}


async def verify_supabase_jwt(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    config: CatalogConfig = Depends(get_app_config),
    client: Client = Depends(get_supabase_client),
) -> dict[str, Any]:
    """Verify Bearer token with Supabase and return authenticated user payload."""
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
        )

    token = credentials.credentials

    api_keys = config.get_api_keys()
    if config.allow_api_key_auth and api_keys and token in api_keys:
        return {"id": "api-key-user", "auth": "api_key"}

    try:
        return fetch_supabase_user(token, client)
    except HTTPException:
        raise
    except Exception as e:
        logger.info("Token verification failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )


def require_role(*roles: str) -> Callable[..., dict[str, Any]]:
    """Build a dependency that admits only users whose profile role is in ``roles``.

    API-key callers are treated as owners.
    """
    allowed = frozenset(roles)

    def _dependency(
        user: dict[str, Any] = Depends(verify_supabase_jwt),
        users: UserRepository = Depends(get_user_repository),
    ) -> dict[str, Any]:
        if user.get("auth") == "api_key":
            return {**user, "role": "owner"}

        profile = users.get_user(str(user.get("id")))
        if profile is None or profile.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {', '.join(sorted(allowed))}",
            )
        return {**user, "role": profile.role}

    return _dependency


require_owner = require_role(*OWNER_ROLES)
