"""Pydantic data models for catalog records and operation results."""

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

RecordStatus = Literal["published", "draft", "archived"]
StockFilter = Literal["all", "low", "out"]
SortField = Literal[
    "name", "sku", "price", "cost", "stock", "category", "createdAt", "updatedAt"
]
SortDirection = Literal["asc", "desc"]

STATUS_VALUES = ("published", "draft", "archived")
DRAFT_ID_PREFIX = "p-"

# Language code -> name, e.g. {"EN": "Pump", "RU": "Насос"}.
LocalizedName = Dict[str, str]


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def coerce_non_negative(value: Any) -> float:
    """Coerce loosely typed numeric input, clamping negatives and junk to 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


class SeoMeta(BaseModel):
    """Slug/title/description triple, independent of the record name."""

    slug: str = ""
    title: str = ""
    description: str = ""


class SpecEntry(BaseModel):
    """Single ordered key/value specification pair."""

    key: str
    value: str = ""


class CatalogRecord(BaseModel):
    """Catalog record as persisted in the document store."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(None, description="Store-assigned id; draft ids start with 'p-'")
    name: LocalizedName = Field(default_factory=dict, description="Language code -> name")
    sku: str = ""
    thumbnail: str = ""
    price: float = Field(0.0, ge=0)
    cost: float = Field(0.0, ge=0)
    stock: int = Field(0, ge=0)
    low_stock_threshold: Optional[int] = Field(
        None,
        ge=0,
        alias="lowStockThreshold",
        description="Unset on documents that never defined one; such records are never low stock",
    )
    category: str = ""
    company: str = ""
    status: RecordStatus = "draft"
    description: str = ""
    specs: List[SpecEntry] = Field(default_factory=list)
    seo: SeoMeta = Field(default_factory=SeoMeta)
    tags: List[str] = Field(default_factory=list)
    taxable: bool = False
    weight: float = Field(0.0, ge=0)
    dimensions: str = ""
    attributes: Dict[str, str] = Field(
        default_factory=dict,
        description="Unrecognized import columns, keyed by lowercased header",
    )
    created_at: Optional[str] = Field(None, alias="createdAt")
    updated_at: Optional[str] = Field(None, alias="updatedAt")

    @field_validator("price", "cost", "weight", mode="before")
    @classmethod
    def clamp_decimal(cls, v: Any) -> float:
        return coerce_non_negative(v)

    @field_validator("stock", mode="before")
    @classmethod
    def clamp_integer(cls, v: Any) -> int:
        return int(coerce_non_negative(v))

    @field_validator("low_stock_threshold", mode="before")
    @classmethod
    def clamp_threshold(cls, v: Any) -> Optional[int]:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return int(coerce_non_negative(v))

    @field_validator("name", mode="before")
    @classmethod
    def coerce_name(cls, v: Any) -> Dict[str, str]:
        if v is None:
            return {}
        if isinstance(v, str):
            return {"EN": v}
        return {str(k).upper(): "" if val is None else str(val) for k, val in dict(v).items()}

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, v: Any) -> str:
        if v is None or v == "":
            return "draft"
        return str(v).strip().lower()

    @property
    def is_draft(self) -> bool:
        """True until the store has assigned an id."""
        return not self.id or self.id.startswith(DRAFT_ID_PREFIX)

    def display_name(self, language: str = "EN") -> str:
        """Name in the requested language, falling back to any non-empty one."""
        preferred = (self.name.get(language) or "").strip()
        if preferred:
            return preferred
        for value in self.name.values():
            if value and value.strip():
                return value.strip()
        return ""

    def has_name(self) -> bool:
        return bool(self.display_name())

    def to_document(self) -> dict[str, Any]:
        """Serialize to the document shape (camelCase keys, no id)."""
        return self.model_dump(mode="json", by_alias=True, exclude={"id"})


class FilterSpec(BaseModel):
    """Filter and sort selection for the catalog view."""

    search: str = ""
    company: str = "all"
    category: str = "all"
    status: str = "all"
    stock: StockFilter = "all"
    sort_by: str = Field("updatedAt-desc", alias="sortBy")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("sort_by")
    @classmethod
    def validate_sort_by(cls, v: str) -> str:
        SortSpec.parse(v)
        return v

    @property
    def sort(self) -> "SortSpec":
        return SortSpec.parse(self.sort_by)

    @property
    def is_active(self) -> bool:
        """True when any filter (not sort) narrows the record set."""
        return bool(self.search) or any(
            value != "all" for value in (self.company, self.category, self.status, self.stock)
        )


class SortSpec(BaseModel):
    """Sort field and direction."""

    field: SortField = "updatedAt"
    direction: SortDirection = "desc"

    @classmethod
    def parse(cls, value: str) -> "SortSpec":
        """Parse the ``field-direction`` form, e.g. ``price-asc``."""
        field, sep, direction = value.rpartition("-")
        if not sep:
            raise ValueError(f"Invalid sort '{value}': expected '<field>-<asc|desc>'")
        return cls(field=field, direction=direction)


class ImportRowError(BaseModel):
    """Rejected import row."""

    row: int = Field(..., ge=1, description="1-based data row number")
    reason: str
    raw: Dict[str, Any] = Field(default_factory=dict)


class ImportSummary(BaseModel):
    """Aggregate import result."""

    status: Literal["completed", "partial_failed", "failed", "empty"]
    imported_count: int
    failed_count: int
    skipped_count: int
    record_ids: List[str] = Field(default_factory=list)
    errors: List[ImportRowError] = Field(default_factory=list)


class BulkFailure(BaseModel):
    """Single failed item inside a bulk operation."""

    id: str
    reason: str


class BulkResult(BaseModel):
    """Aggregate outcome of a bulk mutation."""

    action: Literal["status", "delete", "export"]
    succeeded_ids: List[str] = Field(default_factory=list)
    failures: List[BulkFailure] = Field(default_factory=list)
    message: str = ""

    @computed_field  # type: ignore[prop-decorator]
    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded_ids)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def failed_count(self) -> int:
        return len(self.failures)

    @property
    def failed_ids(self) -> List[str]:
        return [f.id for f in self.failures]


class CatalogStats(BaseModel):
    """Headline counts for the catalog."""

    total: int
    published: int
    draft: int
    archived: int
    low_stock: int
    out_of_stock: int
    inventory_value: float


class UserProfile(BaseModel):
    """User profile document used for approval and role gating."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    role: str = "user"
    approved: bool = False
    status: Optional[str] = None
    approved_at: Optional[str] = Field(None, alias="approvedAt")
    approved_by: Optional[str] = Field(None, alias="approvedBy")
    disapproved_at: Optional[str] = Field(None, alias="disapprovedAt")

    @property
    def approval_state(self) -> Literal["approved", "rejected", "pending"]:
        if self.approved:
            return "approved"
        if self.status == "rejected":
            return "rejected"
        return "pending"


class ProductPageResponse(BaseModel):
    """Response payload for the product listing endpoint."""

    items: List[CatalogRecord]
    page: int
    per_page: int
    total_pages: int
    filtered_count: int
    total_count: int
    companies: List[str]
    categories: List[str]
    stats: CatalogStats


class BulkStatusRequest(BaseModel):
    ids: List[str] = Field(..., min_length=1)
    status: RecordStatus


class BulkDeleteRequest(BaseModel):
    ids: List[str] = Field(..., min_length=1)


class ExportRequest(BaseModel):
    """Export either the given ids or the whole filtered set."""

    ids: Optional[List[str]] = None
    format: Literal["csv", "xlsx"] = "csv"
    filters: FilterSpec = Field(default_factory=FilterSpec)

    @model_validator(mode="after")
    def validate_ids(self) -> "ExportRequest":
        if self.ids is not None:
            self.ids = [i for i in self.ids if i]
        return self
