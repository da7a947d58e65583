"""Test suite for the product catalog CLI."""

import csv
from pathlib import Path

import pytest
from typer.testing import CliRunner

from conftest import make_record
from prodcat.auth import SupabaseClientProvider
from prodcat.cli import app
from prodcat.dependencies import AppResources
from prodcat.exceptions import PersistenceError
from prodcat.repositories.memory import (
    InMemoryBlobStore,
    InMemoryCatalogRepository,
    InMemoryUserRepository,
)

runner = CliRunner()


@pytest.fixture
def seeded_repository(monkeypatch: pytest.MonkeyPatch) -> InMemoryCatalogRepository:
    """Route CLI store access to a pre-filled in-memory repository."""
    repository = InMemoryCatalogRepository(
        [
            make_record(name={"EN": "Pump X100"}, sku="PX-100", stock=24, price=120),
            make_record(
                name={"EN": "Valve V2"},
                sku="VV-2",
                status="draft",
                stock=0,
                price=15,
            ),
        ]
    )

    def _resources(config):
        return AppResources(
            config=config,
            supabase_client_provider=SupabaseClientProvider(config),
            repository=repository,
            blob_store=InMemoryBlobStore(),
            user_repository=InMemoryUserRepository(),
        )

    monkeypatch.setattr("prodcat.cli.build_app_resources", _resources)
    return repository


@pytest.fixture
def product_sheet(tmp_path: Path) -> Path:
    path = tmp_path / "products.csv"
    path.write_text("Name,Price,QTY\nPump,10,4\n,,\nValve,5,2\n", encoding="utf-8")
    return path


def test_cli_version():
    """Test version command."""
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "prodcat version 0.1.0" in result.output


def test_cli_import_dry_run(product_sheet: Path):
    """Dry run reports what would be imported without a store."""
    result = runner.invoke(app, ["import", str(product_sheet), "--mock", "--dry-run"])
    assert result.exit_code == 0
    assert "Would import 2 products" in result.output
    assert "Import completed" in result.output


def test_cli_import_writes_records(product_sheet: Path, seeded_repository):
    result = runner.invoke(app, ["import", str(product_sheet), "--mock"])
    assert result.exit_code == 0
    assert "Imported 2 products" in result.output
    assert len(seeded_repository.list_all()) == 4


def test_cli_import_reports_row_errors(tmp_path: Path, seeded_repository, monkeypatch):
    """Rows the store refuses are reported by row number."""
    path = tmp_path / "products.csv"
    path.write_text("Name,Price,SKU\nPump,10,P-1\n,,LOST-1\n", encoding="utf-8")
    original_create = seeded_repository.create

    def create(record):
        if record.sku == "LOST-1":
            raise PersistenceError("Failed to create record: quota exceeded")
        return original_create(record)

    monkeypatch.setattr(seeded_repository, "create", create)

    result = runner.invoke(app, ["import", str(path), "--mock"])

    assert result.exit_code == 0
    assert "Imported 1 products (1 failed" in result.output
    assert "row 2:" in result.output
    assert "Import completed" not in result.output


def test_cli_import_synthesizes_missing_names(tmp_path: Path):
    path = tmp_path / "products.csv"
    path.write_text("Name,Price,SKU\nPump,10,P-1\n,,LOST-1\n", encoding="utf-8")

    result = runner.invoke(app, ["import", str(path), "--mock", "--dry-run"])

    assert result.exit_code == 0
    assert "Would import 2 products (0 failed" in result.output


def test_cli_import_invalid_file():
    """Test import with non-existent file."""
    result = runner.invoke(app, ["import", "nonexistent.csv", "--mock"])
    assert result.exit_code != 0
    assert "does not exist" in result.output.lower()


def test_cli_import_unsupported_type(tmp_path: Path):
    path = tmp_path / "invoice.pdf"
    path.write_bytes(b"%PDF-1.4")

    result = runner.invoke(app, ["import", str(path), "--mock"])

    assert result.exit_code == 1
    assert "CSV or Excel" in result.output


def test_cli_list(seeded_repository):
    result = runner.invoke(app, ["list", "--mock", "--sort", "sku-asc"])
    assert result.exit_code == 0
    assert "Products (2 of 2)" in result.output
    assert result.output.index("PX-100") < result.output.index("VV-2")


def test_cli_list_filters(seeded_repository):
    result = runner.invoke(app, ["list", "--mock", "--stock", "out"])
    assert result.exit_code == 0
    assert "Products (1 of 2)" in result.output
    assert "VV-2" in result.output
    assert "PX-100" not in result.output


def test_cli_list_invalid_sort(seeded_repository):
    result = runner.invoke(app, ["list", "--mock", "--sort", "colour"])
    assert result.exit_code == 1
    assert "Error" in result.output


def test_cli_export_csv(tmp_path: Path, seeded_repository):
    output_file = tmp_path / "out" / "products.csv"

    result = runner.invoke(
        app, ["export", str(output_file), "--mock", "--status", "published"]
    )

    assert result.exit_code == 0
    assert "Exported 1 products" in result.output
    with output_file.open(encoding="utf-8", newline="") as handle:
        rows = list(csv.DictReader(handle))
    assert [row["SKU"] for row in rows] == ["PX-100"]
    assert rows[0]["Price"] == "120"


def test_cli_export_format_from_option(tmp_path: Path, seeded_repository):
    output_file = tmp_path / "products.bin"

    result = runner.invoke(app, ["export", str(output_file), "--mock", "-f", "xlsx"])

    assert result.exit_code == 0
    assert output_file.read_bytes()[:2] == b"PK"


def test_cli_export_unsupported_format(tmp_path: Path):
    result = runner.invoke(app, ["export", str(tmp_path / "products.txt"), "--mock"])
    assert result.exit_code == 1
    assert "Unsupported format: txt" in result.output


def test_cli_export_nothing(tmp_path: Path):
    """An empty mock store exports nothing and writes no file."""
    output_file = tmp_path / "products.csv"
    result = runner.invoke(app, ["export", str(output_file), "--mock"])
    assert result.exit_code == 0
    assert "No products to export" in result.output
    assert not output_file.exists()


def test_cli_delete(seeded_repository):
    ids = [r.id for r in seeded_repository.list_all()]

    result = runner.invoke(app, ["delete", ids[0], "--mock", "--yes"])

    assert result.exit_code == 0
    assert "Deleted 1 records" in result.output
    assert [r.id for r in seeded_repository.list_all()] == ids[1:]


def test_cli_delete_aborts_without_confirmation(seeded_repository):
    ids = [r.id for r in seeded_repository.list_all()]

    result = runner.invoke(app, ["delete", *ids, "--mock"], input="n\n")

    assert result.exit_code == 1
    assert len(seeded_repository.list_all()) == 2
