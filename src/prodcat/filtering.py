"""Filter, sort and paginate the in-memory record set. Pure functions, no I/O."""

import unicodedata
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Literal, Sequence

from prodcat.models import CatalogRecord, CatalogStats, FilterSpec
from prodcat.pricing import inventory_value

StockState = Literal["out", "low", "ok"]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def is_out_of_stock(record: CatalogRecord) -> bool:
    return record.stock <= 0


def is_low_stock(record: CatalogRecord) -> bool:
    return record.low_stock_threshold is not None and record.stock <= record.low_stock_threshold


def classify_stock(record: CatalogRecord) -> StockState:
    """Out of stock takes precedence over low stock."""
    if is_out_of_stock(record):
        return "out"
    if is_low_stock(record):
        return "low"
    return "ok"


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp; missing or invalid values map to the epoch."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return _EPOCH
    else:
        return _EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def collation_key(value: str) -> tuple[str, str]:
    """Case- and accent-insensitive ordering with a raw tiebreaker.

    Approximates locale collation without depending on the process locale:
    "é" sorts with "e" and "Ö" with "o", but language-specific rules such as
    Swedish "ö" after "z" are not applied.
    """
    folded = unicodedata.normalize("NFKD", value)
    folded = "".join(c for c in folded if not unicodedata.combining(c)).casefold()
    return folded, value


def matches(record: CatalogRecord, spec: FilterSpec, language: str = "EN") -> bool:
    """All filter predicates must pass.

    Search only looks at the primary-language name, SKU and category; names in
    other languages are not searched.
    """
    if spec.search:
        needle = spec.search.lower()
        haystacks = (record.name.get(language) or "", record.sku or "", record.category or "")
        if not any(needle in h.lower() for h in haystacks):
            return False

    if spec.company != "all" and record.company != spec.company:
        return False
    if spec.category != "all" and record.category != spec.category:
        return False
    if spec.status != "all" and record.status != spec.status:
        return False

    if spec.stock == "low":
        return is_low_stock(record)
    if spec.stock == "out":
        return is_out_of_stock(record)
    return True


def _sort_key(field: str, language: str) -> Callable[[CatalogRecord], Any]:
    if field == "name":
        return lambda r: collation_key(r.name.get(language) or "")
    if field in ("sku", "category"):
        return lambda r: collation_key(getattr(r, field) or "")
    if field in ("price", "cost", "stock"):
        return lambda r: getattr(r, field) or 0
    if field == "createdAt":
        return lambda r: parse_timestamp(r.created_at)
    if field == "updatedAt":
        return lambda r: parse_timestamp(r.updated_at)
    raise ValueError(f"Unsupported sort field: {field}")


def apply(
    records: Sequence[CatalogRecord], spec: FilterSpec, *, language: str = "EN"
) -> list[CatalogRecord]:
    """Return the visible subset in display order. Stable for equal keys."""
    visible = [r for r in records if matches(r, spec, language)]
    sort = spec.sort
    return sorted(
        visible,
        key=_sort_key(sort.field, language),
        reverse=sort.direction == "desc",
    )


@dataclass(frozen=True)
class Page:
    """One page of a filtered record list."""

    items: list[CatalogRecord]
    page: int
    per_page: int
    total_pages: int
    total_items: int


def paginate(records: Sequence[CatalogRecord], page: int, per_page: int) -> Page:
    """Slice a page; ``page`` is clamped to ``1..total_pages``."""
    if per_page < 1:
        raise ValueError("per_page must be positive")
    total_pages = max(1, -(-len(records) // per_page))
    page = min(max(1, page), total_pages)
    start = (page - 1) * per_page
    return Page(
        items=list(records[start : start + per_page]),
        page=page,
        per_page=per_page,
        total_pages=total_pages,
        total_items=len(records),
    )


def facets(records: Sequence[CatalogRecord]) -> tuple[list[str], list[str]]:
    """Distinct non-empty companies and categories in first-seen order."""
    companies = list(dict.fromkeys(r.company for r in records if r.company))
    categories = list(dict.fromkeys(r.category for r in records if r.category))
    return companies, categories


def compute_stats(records: Sequence[CatalogRecord]) -> CatalogStats:
    return CatalogStats(
        total=len(records),
        published=sum(1 for r in records if r.status == "published"),
        draft=sum(1 for r in records if r.status == "draft"),
        archived=sum(1 for r in records if r.status == "archived"),
        low_stock=sum(1 for r in records if is_low_stock(r)),
        out_of_stock=sum(1 for r in records if is_out_of_stock(r)),
        inventory_value=round(sum(inventory_value(r.price, r.stock) for r in records), 2),
    )
