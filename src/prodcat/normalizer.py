"""Normalize loosely shaped import rows into catalog records.

Rows arrive as header -> value maps with arbitrary header spelling. Headers
are resolved through a fixed alias table; anything unrecognized is kept under
its lowercased header in ``attributes``. Normalization never raises for bad
input: each row yields a record, a row error, or nothing (blank row).
"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from prodcat.models import (
    STATUS_VALUES,
    CatalogRecord,
    ImportRowError,
    SeoMeta,
)
from prodcat.pricing import default_cost

logger = logging.getLogger(__name__)

# Canonical field -> accepted header spellings (lowercased, trimmed).
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "name": ("name", "product name", "product_name", "productname", "title", "product title"),
    "sku": (
        "sku",
        "product code",
        "product_code",
        "productcode",
        "item number",
        "item_number",
        "code",
        "id",
        "model",
        "model number",
    ),
    "price": ("price", "unit price", "unit_price", "price per unit", "sale price", "retail"),
    "cost": ("cost", "unit cost", "unit_cost", "cost price", "cost_price", "purchase price", "wholesale"),
    "quantity": (
        "quantity",
        "qty",
        "stock",
        "inventory",
        "number of units",
        "no. of unit",
        "count",
        "units",
        "available",
    ),
    "description": (
        "description",
        "desc",
        "product description",
        "details",
        "technical details",
        "technical description",
    ),
    "category": ("category", "cat", "product category", "type", "group"),
    "status": ("status", "active"),
    "vendor": ("vendor", "supplier", "brand", "manufacturer", "company"),
    "imageUrl": ("image", "imageurl", "image_url", "image url", "picture", "photo", "thumbnail"),
    "tags": ("tags", "tag", "keywords"),
    "taxable": ("taxable", "tax"),
    "weight": ("weight", "weight (kg)", "weight_kg"),
    "dimensions": ("dimensions", "size"),
    "lowStockThreshold": ("low stock threshold", "low_stock_threshold", "lowstockthreshold", "threshold"),
    "slug": ("slug", "seo slug"),
    "metaTitle": ("meta title", "seo title", "meta_title"),
    "metaDescription": ("meta description", "seo description", "meta_description"),
}

# Raw header priority lists for numeric extraction.
PRICE_HEADERS = ("price", "unit price", "price per unit", "cost", "amount", "rate")
QUANTITY_HEADERS = ("quantity", "qty", "number of units", "no. of unit", "count", "units")
COST_HEADERS = ("cost", "unit cost", "purchase price", "wholesale")

# Later matches override earlier ones; keep declared order.
CATEGORY_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("lock", "Safety Locks"),
    ("chain", "Safety Chains"),
    ("box", "Storage Solutions"),
    ("cabinet", "Storage Solutions"),
)
DEFAULT_IMPORT_CATEGORY = "Commercial Products"

NAME_FALLBACK_HEADERS = ("product", "item")
NAME_SCAN_EXCLUDED = ("price", "quantity", "sku", "code")
NAME_SCAN_MIN_LEN = 5
NAME_SCAN_MAX_LEN = 99

_LANG_NAME_PATTERN = re.compile(r"^name\s*[\s_(\-]\s*([a-z]{2})\)?$")
_NUMERIC_STRIP_PATTERN = re.compile(r"[^0-9.,\-]")
_SKU_PREFIX_PATTERN = re.compile(r"[^A-Z0-9]")
_TRUTHY = {"true", "1", "yes", "y", "on"}
_STATUS_ALIASES = {
    "active": "published",
    "true": "published",
    "yes": "published",
    "1": "published",
    "inactive": "draft",
    "false": "draft",
    "no": "draft",
    "0": "draft",
}

_ALIAS_LOOKUP: dict[str, str] = {}
for _field, _aliases in FIELD_ALIASES.items():
    for _alias in _aliases:
        _ALIAS_LOOKUP.setdefault(_alias, _field)


def clean_header(header: Any) -> str:
    return str(header if header is not None else "").strip().lower()


def cell_text(value: Any) -> str:
    """Render a cell as trimmed text; integral floats lose their ``.0``."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def resolve_header(header: Any) -> Optional[str]:
    """Return the canonical field for a header, or None when unrecognized."""
    return _ALIAS_LOOKUP.get(clean_header(header))


def parse_number(value: Any) -> float:
    """Parse a loosely formatted number; junk and negatives become 0.

    ``"$1,234.50"`` -> 1234.5, ``"abc"`` -> 0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = _NUMERIC_STRIP_PATTERN.sub("", str(value)).replace(",", "")
        negative = text.startswith("-")
        text = text.replace("-", "")
        if not text or text == ".":
            return 0.0
        try:
            number = float(text)
        except ValueError:
            return 0.0
        if negative:
            number = -number
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def infer_category(text: str) -> str:
    """Pick a category from keywords in ``text``; the last matching keyword wins."""
    category = DEFAULT_IMPORT_CATEGORY
    lowered = text.lower()
    for keyword, keyword_category in CATEGORY_KEYWORDS:
        if keyword in lowered:
            category = keyword_category
    return category


def synthesize_sku(name: str, row_index: int) -> str:
    prefix = _SKU_PREFIX_PATTERN.sub("", name.upper())[:6] or "ITEM"
    return f"IMP-{prefix}-{row_index + 1}"


@dataclass
class ResolvedRow:
    """Row split into canonical fields, per-language names and leftovers."""

    lowered: dict[str, str] = field(default_factory=dict)
    raw_values: dict[str, Any] = field(default_factory=dict)
    fields: dict[str, str] = field(default_factory=dict)
    names: dict[str, str] = field(default_factory=dict)
    unmatched: dict[str, str] = field(default_factory=dict)

    def first_positive(self, headers: tuple[str, ...], canonical: str) -> Optional[float]:
        """First strictly positive number among ``headers``, then the canonical field."""
        for header in headers:
            if header in self.raw_values:
                number = parse_number(self.raw_values[header])
                if number > 0:
                    return number
        if canonical in self.fields:
            number = parse_number(self.fields[canonical])
            if number > 0:
                return number
        return None


def resolve_row(raw_row: Mapping[Any, Any]) -> ResolvedRow:
    """Resolve every header of a raw row; the first column for a field wins."""
    resolved = ResolvedRow()
    for header, value in raw_row.items():
        key = clean_header(header)
        if not key:
            continue
        text = cell_text(value)
        resolved.raw_values.setdefault(key, value)
        resolved.lowered.setdefault(key, text)

        lang_match = _LANG_NAME_PATTERN.match(key)
        if lang_match:
            lang = lang_match.group(1).upper()
            if text and lang not in resolved.names:
                resolved.names[lang] = text
            continue

        canonical = _ALIAS_LOOKUP.get(key)
        if canonical is None:
            if text:
                resolved.unmatched.setdefault(key, text)
            continue
        if text and canonical not in resolved.fields:
            resolved.fields[canonical] = text
    return resolved


@dataclass(frozen=True)
class NormalizeResult:
    """Outcome for one row: a record, a row error, or a silent skip."""

    record: Optional[CatalogRecord] = None
    error: Optional[ImportRowError] = None

    @property
    def ok(self) -> bool:
        return self.record is not None

    @property
    def skipped(self) -> bool:
        return self.record is None and self.error is None


class ImportNormalizer:
    """Turn raw import rows into catalog records using heuristic field mapping."""

    def __init__(
        self,
        *,
        languages: Optional[list[str]] = None,
        default_company: str = "Innova",
        default_low_stock_threshold: int = 5,
        default_status: str = "draft",
    ) -> None:
        self.languages = [code.upper() for code in languages or ["EN", "RU", "UZ"]]
        self.default_company = default_company
        self.default_low_stock_threshold = default_low_stock_threshold
        self.default_status = default_status

    @classmethod
    def from_config(cls, config: Any) -> "ImportNormalizer":
        return cls(
            languages=config.get_languages(),
            default_company=config.default_company,
            default_low_stock_threshold=config.default_low_stock_threshold,
            default_status=config.default_status,
        )

    @property
    def primary_language(self) -> str:
        return self.languages[0]

    def normalize(self, raw_row: Mapping[Any, Any], row_index: int) -> NormalizeResult:
        """Normalize one 0-based data row."""
        if all(not cell_text(v) for v in raw_row.values()):
            return NormalizeResult()

        row = resolve_row(raw_row)

        price = row.first_positive(PRICE_HEADERS, "price") or 0.0
        quantity = row.first_positive(QUANTITY_HEADERS, "quantity")
        explicit_cost = row.first_positive(COST_HEADERS, "cost")

        name = self._extract_name(row) or f"Commercial Item {row_index + 1}"

        names = {lang: "" for lang in self.languages}
        names.update(row.names)
        if not (names.get(self.primary_language) or "").strip() and not any(
            value.strip() for value in row.names.values()
        ):
            names[self.primary_language] = name

        sku = row.fields.get("sku") or synthesize_sku(name, row_index)
        description = row.fields.get("description", "")
        category = row.fields.get("category") or infer_category(description or name)

        threshold_raw = row.fields.get("lowStockThreshold")
        threshold = (
            int(parse_number(threshold_raw))
            if threshold_raw is not None
            else self.default_low_stock_threshold
        )

        record = CatalogRecord(
            name=names,
            sku=sku,
            thumbnail=self._thumbnail(row.fields.get("imageUrl", "")),
            price=price,
            cost=default_cost(price, explicit_cost),
            stock=int(quantity) if quantity is not None else 1,
            low_stock_threshold=threshold,
            category=category,
            company=row.fields.get("vendor") or self.default_company,
            status=self._status(row.fields.get("status")),
            description=description,
            seo=SeoMeta(
                slug=row.fields.get("slug", ""),
                title=row.fields.get("metaTitle", ""),
                description=row.fields.get("metaDescription", ""),
            ),
            tags=[t.strip() for t in row.fields.get("tags", "").split(",") if t.strip()],
            taxable=row.fields.get("taxable", "").lower() in _TRUTHY,
            weight=parse_number(row.fields.get("weight")),
            dimensions=row.fields.get("dimensions", ""),
            attributes=row.unmatched,
        )
        if not record.has_name():
            return NormalizeResult(
                error=ImportRowError(
                    row=row_index + 1,
                    reason="Missing product name",
                    raw={clean_header(k): cell_text(v) for k, v in raw_row.items()},
                )
            )
        return NormalizeResult(record=record)

    def _extract_name(self, row: ResolvedRow) -> str:
        for lang in self.languages:
            if row.names.get(lang):
                return row.names[lang]
        for value in row.names.values():
            if value:
                return value

        for canonical in ("name", "description"):
            if row.fields.get(canonical):
                return row.fields[canonical]

        for header in NAME_FALLBACK_HEADERS:
            if row.lowered.get(header):
                return row.lowered[header]

        for header, value in row.raw_values.items():
            if not isinstance(value, str):
                continue
            text = value.strip()
            if not NAME_SCAN_MIN_LEN <= len(text) <= NAME_SCAN_MAX_LEN:
                continue
            if any(token in header for token in NAME_SCAN_EXCLUDED):
                continue
            return text
        return ""

    def _status(self, value: Optional[str]) -> str:
        if not value:
            return self.default_status
        lowered = value.strip().lower()
        if lowered in STATUS_VALUES:
            return lowered
        return _STATUS_ALIASES.get(lowered, self.default_status)

    @staticmethod
    def _thumbnail(value: str) -> str:
        if value.lower().startswith(("http://", "https://")):
            return value
        if value:
            logger.debug("Ignoring non-URL image value: %s", value[:60])
        return ""
