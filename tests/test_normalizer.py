"""Tests for import row normalization."""

import pytest

from prodcat.normalizer import (
    ImportNormalizer,
    infer_category,
    parse_number,
    resolve_header,
    synthesize_sku,
)


@pytest.fixture
def normalizer() -> ImportNormalizer:
    return ImportNormalizer(languages=["EN", "RU", "UZ"])


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("$1,234.50", 1234.5),
        ("12", 12.0),
        (7, 7.0),
        (2.5, 2.5),
        ("abc", 0.0),
        ("", 0.0),
        (None, 0.0),
        ("-5", 0.0),
        (-3.2, 0.0),
        (True, 0.0),
    ],
)
def test_parse_number(value, expected):
    assert parse_number(value) == expected


def test_resolve_header_is_case_and_whitespace_insensitive():
    assert resolve_header("  Product Name ") == "name"
    assert resolve_header("QTY") == "quantity"
    assert resolve_header("Supplier") == "vendor"
    assert resolve_header("Colour") is None


def test_infer_category_last_keyword_wins():
    assert infer_category("Lock with chain") == "Safety Chains"
    assert infer_category("cabinet lock") == "Storage Solutions"
    assert infer_category("Door lock") == "Safety Locks"
    assert infer_category("Garden hose") == "Commercial Products"


def test_synthesize_sku():
    assert synthesize_sku("Pump X-100 deluxe", 0) == "IMP-PUMPX1-1"
    assert synthesize_sku("???", 4) == "IMP-ITEM-5"


def test_normalize_maps_aliased_headers(normalizer):
    result = normalizer.normalize(
        {"Product Name": "Pump X100", "Unit Price": "$10", "QTY": "4", "Supplier": "Acme"},
        0,
    )

    assert result.ok
    record = result.record
    assert record.name == {"EN": "Pump X100", "RU": "", "UZ": ""}
    assert record.price == 10.0
    assert record.cost == 8.0
    assert record.stock == 4
    assert record.company == "Acme"
    assert record.sku == "IMP-PUMPX1-1"
    assert record.status == "draft"
    assert record.low_stock_threshold == 5
    assert record.category == "Commercial Products"


def test_normalize_keeps_explicit_sku_cost_and_category(normalizer):
    result = normalizer.normalize(
        {"Name": "Valve", "SKU": "V-2", "Price": "20", "Cost": "11", "Category": "Valves"},
        0,
    )

    assert result.record.sku == "V-2"
    assert result.record.cost == 11.0
    assert result.record.category == "Valves"


def test_normalize_defaults_stock_to_one_without_quantity(normalizer):
    result = normalizer.normalize({"Name": "Hinge", "Price": "3"}, 0)
    assert result.record.stock == 1


def test_normalize_collects_language_columns(normalizer):
    result = normalizer.normalize(
        {"Name (EN)": "Lock", "Name (RU)": "Замок", "SKU": "L-1", "Price": "5"},
        0,
    )

    assert result.record.name == {"EN": "Lock", "RU": "Замок", "UZ": ""}


def test_normalize_keeps_unmatched_columns_as_attributes(normalizer):
    result = normalizer.normalize({"Name": "Widget", "Color": "Red", "Price": "1"}, 0)
    assert result.record.attributes == {"color": "Red"}


def test_normalize_synthesizes_name_for_sku_only_row(normalizer):
    result = normalizer.normalize({"SKU": "ABC-12"}, 0)

    assert result.ok
    assert result.record.name == {"EN": "Commercial Item 1", "RU": "", "UZ": ""}
    assert result.record.sku == "ABC-12"
    assert result.record.stock == 1


def test_normalize_synthesizes_name_when_no_column_holds_one(normalizer):
    result = normalizer.normalize({"Color": "red", "Finish": "matt"}, 2)

    assert result.ok
    assert result.record.display_name() == "Commercial Item 3"
    assert result.record.sku == "IMP-COMMER-3"
    assert result.record.attributes == {"color": "red", "finish": "matt"}


def test_normalize_is_deterministic_for_same_row_index(normalizer):
    row = {"Price": "12.50", "Color": "red"}

    first = normalizer.normalize(row, 7)
    second = normalizer.normalize(dict(row), 7)

    assert first.record.model_dump() == second.record.model_dump()
    assert first.record.sku == "IMP-COMMER-8"
    assert normalizer.normalize(row, 8).record.sku == "IMP-COMMER-9"


def test_normalize_synthesizes_name_when_row_has_price(normalizer):
    result = normalizer.normalize({"Price": "15", "Color": "red"}, 4)

    assert result.ok
    assert result.record.name["EN"] == "Commercial Item 5"
    assert result.record.sku == "IMP-COMMER-5"


def test_normalize_skips_blank_rows(normalizer):
    result = normalizer.normalize({"Name": "", "Price": "  ", "Qty": None}, 0)
    assert result.skipped


def test_normalize_maps_status_aliases(normalizer):
    active = normalizer.normalize({"Name": "A", "Price": "1", "Status": "Active"}, 0)
    archived = normalizer.normalize({"Name": "B", "Price": "1", "Status": "archived"}, 1)
    unknown = normalizer.normalize({"Name": "C", "Price": "1", "Status": "weird"}, 2)

    assert active.record.status == "published"
    assert archived.record.status == "archived"
    assert unknown.record.status == "draft"


def test_normalize_only_accepts_http_thumbnails(normalizer):
    remote = normalizer.normalize(
        {"Name": "A", "Price": "1", "Image": "https://cdn.example.com/a.png"}, 0
    )
    local = normalizer.normalize({"Name": "B", "Price": "1", "Image": "C:\\pics\\b.png"}, 1)

    assert remote.record.thumbnail == "https://cdn.example.com/a.png"
    assert local.record.thumbnail == ""


def test_normalize_clamps_negative_numbers(normalizer):
    result = normalizer.normalize({"Name": "A", "Price": "-4", "Quantity": "-2"}, 0)

    assert result.record.price == 0.0
    assert result.record.cost == 0.0
    assert result.record.stock == 1


def test_normalize_splits_tags_and_reads_seo_columns(normalizer):
    result = normalizer.normalize(
        {
            "Name": "Chain guard",
            "Price": "9",
            "Tags": "safety, kids ,",
            "Slug": "chain-guard",
            "Meta Title": "Chain guard",
        },
        0,
    )

    assert result.record.tags == ["safety", "kids"]
    assert result.record.seo.slug == "chain-guard"
    assert result.record.seo.title == "Chain guard"
    assert result.record.category == "Safety Chains"


def test_from_config_uses_configured_defaults():
    from prodcat.config import CatalogConfig

    config = CatalogConfig(
        _env_file=None,
        languages="RU,EN",
        default_company="Acme",
        default_low_stock_threshold=2,
    )
    normalizer = ImportNormalizer.from_config(config)
    result = normalizer.normalize({"Name": "Bolt", "Price": "1"}, 0)

    assert result.record.name == {"RU": "Bolt", "EN": ""}
    assert result.record.company == "Acme"
    assert result.record.low_stock_threshold == 2
