"""Configuration management for the product catalog service."""

import logging
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

import pycountry

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGES = ["EN", "RU", "UZ"]


class CatalogConfig(BaseSettings):
    """Configuration for catalog storage, import and API."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    mock: bool = Field(
        default=False,
        description="Use in-memory stores instead of Supabase (for testing without credentials)",
    )

    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL",
    )

    supabase_service_role_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key used for table and storage access",
    )

    products_table: str = Field(
        default="products", description="Collection holding catalog records"
    )

    users_table: str = Field(default="users", description="Collection holding user profiles")

    storage_bucket: str = Field(
        default="product-images",
        description="Storage bucket for product thumbnails",
    )

    languages: str = Field(
        default="EN,RU,UZ",
        description="Comma-separated catalog language codes; the first one is primary",
    )

    default_company: str = Field(default="Innova", description="Company for new records")

    default_low_stock_threshold: int = Field(
        default=5,
        ge=0,
        description="Low stock threshold for new records",
    )

    default_status: str = Field(default="draft", description="Status for new records")

    max_import_size_mb: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum CSV/XLSX import size in megabytes",
    )

    max_image_size_mb: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum thumbnail upload size in megabytes",
    )

    bulk_max_workers: int = Field(
        default=8,
        ge=1,
        le=64,
        description="Concurrent store calls issued by one bulk operation",
    )

    page_size: int = Field(default=9, ge=1, le=200, description="Records per page")

    @field_validator("languages")
    @classmethod
    def validate_languages_format(cls, v: str) -> str:
        """Validate catalog languages are ISO 639-1 codes."""
        codes = [c.strip().upper() for c in v.split(",") if c.strip()]

        if not codes:
            raise ValueError("LANGUAGES cannot be empty")

        for code in codes:
            if len(code) != 2 or not code.isalpha():
                raise ValueError(
                    f"Invalid language code format: '{code}'. "
                    f"Must be 2-letter ISO 639-1 codes (e.g., EN, RU)."
                )

        invalid = sorted(
            code
            for code in codes
            if pycountry.languages.get(alpha_2=code.lower()) is None
        )
        if invalid:
            raise ValueError(f"Invalid ISO 639-1 codes: {', '.join(invalid)}")

        return v

    @field_validator("default_status")
    @classmethod
    def validate_default_status(cls, v: str) -> str:
        if v not in ("published", "draft", "archived"):
            raise ValueError("DEFAULT_STATUS must be one of: published, draft, archived")
        return v

    api_host: str = Field(
        default="0.0.0.0",
        description="API host address",
    )

    api_port: int = Field(
        default=8000,
        description="API port",
    )

    api_keys: str = Field(
        default="",
        description="Comma-separated API keys for authentication",
    )

    allow_api_key_auth: bool = Field(
        default=True,
        description="Accept configured API keys as bearer tokens",
    )

    allowed_origins: str = Field(
        default="http://localhost:5173",
        description="Comma-separated CORS origins",
    )

    def get_languages(self) -> list[str]:
        """Parse catalog languages, preserving declared order."""
        codes: list[str] = []
        for raw in self.languages.split(","):
            code = raw.strip().upper()
            if code and code not in codes:
                codes.append(code)

        if not codes:
            logger.warning(
                "LANGUAGES produced empty list (value: '%s'). Using safe default.",
                self.languages,
            )
            return list(DEFAULT_LANGUAGES)

        return codes

    @property
    def primary_language(self) -> str:
        return self.get_languages()[0]

    def get_api_keys(self) -> set[str]:
        return {k.strip() for k in self.api_keys.split(",") if k.strip()}

    def get_allowed_origins(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    def validate_config(self) -> None:
        """Validate configuration at startup. Raises ValueError if invalid."""
        errors = []

        if not self.get_languages():
            errors.append("LANGUAGES cannot be empty")

        # Remote stores are required unless running in mock mode
        if not self.mock:
            if not self.supabase_url:
                errors.append("SUPABASE_URL required when mock mode is disabled")
            if not self.supabase_service_role_key:
                errors.append(
                    "SUPABASE_SERVICE_ROLE_KEY required when mock mode is disabled"
                )

        for name, value in (
            ("PRODUCTS_TABLE", self.products_table),
            ("USERS_TABLE", self.users_table),
            ("STORAGE_BUCKET", self.storage_bucket),
        ):
            if not value.strip():
                errors.append(f"{name} cannot be empty")
            elif "/" in value:
                errors.append(f"{name} cannot contain '/'")

        if errors:
            raise ValueError(
                "Configuration validation failed:\n"
                + "\n".join(f"  - {e}" for e in errors)
            )


_config_instance = None


def get_config() -> CatalogConfig:
    """Get or create global configuration instance."""
    global _config_instance
    if _config_instance is None:
        _config_instance = CatalogConfig()
        _config_instance.validate_config()
        logger.info("Configuration validated successfully")
    return _config_instance


def get_config_unvalidated() -> CatalogConfig:
    """Get or create global configuration instance without validation."""
    global _config_instance
    if _config_instance is None:
        _config_instance = CatalogConfig()
    return _config_instance


def reload_config() -> CatalogConfig:
    """Reload configuration (useful for testing)."""
    global _config_instance
    _config_instance = CatalogConfig()
    return _config_instance
