from pathlib import Path

import pytest
from openpyxl import Workbook

from conftest import add_product, make_repo
from rsm.domain.errors import ValidationError
from rsm.domain.stock import GroupStock, StoreStock, UniqueStock, bucket_quantities
from rsm.services.catalog_import_service import CatalogImportService

PRODUCT_HEADERS = [
    "sku", "name", "price", "iva_rate", "min_stock", "category",
    "stock_mode", "stock", "stock_by_store", "store_groups", "physical_stores", "online_stores",
]


def _workbook(path: Path, stores=None, products=None, variants=None) -> Path:
    wb = Workbook()
    wb.remove(wb.active)
    if stores is not None:
        ws = wb.create_sheet("stores")
        ws.append(["name", "store_type", "is_active", "city"])
        for row in stores:
            ws.append(row)
    if products is not None:
        ws = wb.create_sheet("products")
        ws.append(PRODUCT_HEADERS)
        for row in products:
            ws.append(row)
    if variants is not None:
        ws = wb.create_sheet("variants")
        ws.append(["product_sku", "attributes", "price_adjustment", "sku", "stock_mode", "stock", "stock_by_store"])
        for row in variants:
            ws.append(row)
    wb.save(path)
    return path


def test_import_creates_stores_products_and_variants(tmp_path: Path):
    repo = make_repo(tmp_path)
    path = _workbook(
        tmp_path / "catalog.xlsx",
        stores=[
            ["Centre", "physical", "yes", "Madrid"],
            ["North", "physical", None, "Bilbao"],
            ["Web", "online", 1, ""],
        ],
        products=[
            ["LAMP", "Lamp", 40, 21, 1, "Home", "by_store", None, "Centre:5;North:3", None, "Centre", None],
            ["MUG", "Mug", 8.5, 10, 0, "Home", "unique", 12, None, None, None, "Web"],
            ["DESK", "Desk", 120, 21, 0, "Office", "by_group", None, None, "All=Centre,North:4", None, None],
            ["SHIRT", "Shirt", 20, 21, 2, "Clothing", None, None, None, None, None, None],
        ],
        variants=[
            ["SHIRT", "color=Red;size=M", 0, "SH-RM", "by_store", None, "Centre:2"],
            ["SHIRT", "color=Blue;size=L", 2.5, None, "unique", 3, None],
        ],
    )

    result = CatalogImportService(repo).import_catalog_excel(str(path))

    assert result == {"stores": (3, 0), "products": (4, 0)}
    stores = {s.name: s.id for s in repo.list_stores()}
    products = {p.sku: p for p in repo.list_products()}

    lamp = products["LAMP"]
    assert isinstance(lamp.stock_level, StoreStock)
    assert [(b.store_id, b.stock) for b in lamp.stock_level.buckets] == [(stores["Centre"], 5), (stores["North"], 3)]
    assert lamp.physical_stores == frozenset({stores["Centre"]})

    assert products["MUG"].stock_level == UniqueStock(12)
    assert products["MUG"].online_stores == frozenset({stores["Web"]})

    desk = products["DESK"].stock_level
    assert isinstance(desk, GroupStock)
    assert desk.groups[0].store_ids == frozenset({stores["Centre"], stores["North"]})

    shirt = products["SHIRT"]
    assert [v.attributes for v in shirt.variants] == [(("color", "Red"), ("size", "M")), (("color", "Blue"), ("size", "L"))]
    assert shirt.variants[1].price_adjustment == 2.5
    assert bucket_quantities(shirt.variants[0].stock_level) == [2]
    assert shirt.stock == 5


def test_existing_products_are_never_restocked(tmp_path: Path):
    repo = make_repo(tmp_path)
    pid = add_product(repo, "Mug", 8.0, UniqueStock(1), sku="MUG")
    path = _workbook(
        tmp_path / "catalog.xlsx",
        products=[["MUG", "Mug", 8.0, 21, 0, "", "unique", 50, None, None, None, None]],
    )

    result = CatalogImportService(repo).import_catalog_excel(str(path))

    assert result == {"products": (0, 1)}
    assert repo.get_product_by_id(pid).stock == 1


def test_bad_rows_are_skipped(tmp_path: Path):
    repo = make_repo(tmp_path)
    path = _workbook(
        tmp_path / "catalog.xlsx",
        stores=[["Kiosk", "popup", None, ""]],
        products=[
            ["NEG", "Negative", -1, 21, 0, "", "unique", 1, None, None, None, None],
            ["GHOST", "Ghost store", 5, 21, 0, "", "by_store", None, "Nowhere:3", None, None, None],
            ["BADVAR", "Bad variant", 5, 21, 0, "", None, None, None, None, None, None],
            ["OK", "Fine", 5, 21, 0, "", "unique", 2, None, None, None, None],
        ],
        variants=[["BADVAR", "size=S", 0, None, "unique", -4, None]],
    )

    result = CatalogImportService(repo).import_catalog_excel(str(path))

    assert result == {"stores": (0, 1), "products": (1, 3)}
    assert [p.sku for p in repo.list_products()] == ["OK"]


def test_missing_required_header_is_rejected(tmp_path: Path):
    repo = make_repo(tmp_path)
    wb = Workbook()
    ws = wb.active
    ws.title = "products"
    ws.append(["sku", "name"])
    ws.append(["MUG", "Mug"])
    path = tmp_path / "broken.xlsx"
    wb.save(path)

    with pytest.raises(ValidationError, match="price"):
        CatalogImportService(repo).import_catalog_excel(str(path))
