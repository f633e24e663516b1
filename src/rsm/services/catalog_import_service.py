from __future__ import annotations

import logging

from openpyxl import load_workbook

from rsm.domain.errors import ValidationError
from rsm.domain.models import Product, Store, StoreType, Variant
from rsm.domain.stock import GroupStock, StockLevel, StockMode, StoreBucket, StoreGroup, StoreStock, UniqueStock

log = logging.getLogger(__name__)

REQUIRED = {
    "stores": ["name", "store_type"],
    "products": ["sku", "name", "price"],
    "variants": ["product_sku"],
}


def _headers(ws, sheet: str) -> dict[str, int]:
    headers = {}
    for col in range(1, ws.max_column + 1):
        v = ws.cell(row=1, column=col).value
        if isinstance(v, str):
            headers[v.strip().lower()] = col
    for r in REQUIRED[sheet]:
        if r not in headers:
            raise ValidationError(f"Missing column header in '{sheet}': {r}")
    return headers


def _text(v) -> str:
    return str(v).strip() if v is not None else ""


def _truthy(v, default: bool = True) -> bool:
    if v is None or v == "":
        return default
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in ("1", "true", "yes", "y", "si")


class CatalogImportService:
    """Loads catalog feeds from an .xlsx workbook.

    Sheets (all optional, header row first):
      stores:   name | store_type | is_active | city | address
      products: sku | name | price | iva_rate | min_stock | is_active | category | barcode | image_url |
                description | stock_mode | stock | stock_by_store | store_groups |
                physical_stores | online_stores
      variants: product_sku | attributes | price_adjustment | sku | barcode | image_url |
                stock_mode | stock | stock_by_store | store_groups

    Cell formats:
      stock_by_store   ``Centro:5;Norte:3``
      store_groups     ``North=Centro,Norte:7;South=4:2``
      *_stores         ``Centro,Norte``
      attributes       ``color=red;size=M``
    Store references are store names from the ``stores`` sheet or existing store ids.

    New records only: rows whose sku already exists are skipped, so importing
    never changes the stock of a product that is already on sale.
    """

    def __init__(self, repo):
        self.repo = repo

    # ---------- cell parsing ----------
    @staticmethod
    def _store_ref(token: str, stores_by_name: dict[str, int]) -> int:
        token = token.strip()
        if token in stores_by_name:
            return stores_by_name[token]
        if token.isdigit():
            return int(token)
        raise ValueError(f"Unknown store: {token}")

    def _parse_ids(self, value, stores_by_name: dict[str, int]) -> frozenset[int]:
        raw = _text(value)
        if not raw:
            return frozenset()
        return frozenset(self._store_ref(t, stores_by_name) for t in raw.split(",") if t.strip())

    def _parse_level(self, mode_cell, stock_cell, buckets_cell, groups_cell, stores_by_name: dict[str, int]) -> StockLevel:
        mode = StockMode(_text(mode_cell).lower() or StockMode.UNIQUE.value)
        if mode is StockMode.UNIQUE:
            stock = int(float(stock_cell or 0))
            if stock < 0:
                raise ValueError("Stock must be >= 0.")
            return UniqueStock(stock=stock)

        if mode is StockMode.BY_STORE:
            buckets = []
            for part in _text(buckets_cell).split(";"):
                if not part.strip():
                    continue
                ref, qty = part.rsplit(":", 1)
                buckets.append(StoreBucket(store_id=self._store_ref(ref, stores_by_name), stock=int(qty)))
            if any(b.stock < 0 for b in buckets):
                raise ValueError("Stock must be >= 0.")
            return StoreStock(buckets=tuple(buckets))

        groups = []
        for part in _text(groups_cell).split(";"):
            if not part.strip():
                continue
            name, rest = part.split("=", 1)
            refs, qty = rest.rsplit(":", 1)
            groups.append(
                StoreGroup(
                    name=name.strip(),
                    store_ids=self._parse_ids(refs, stores_by_name),
                    stock=int(qty),
                )
            )
        if any(g.stock < 0 for g in groups):
            raise ValueError("Stock must be >= 0.")
        return GroupStock(groups=tuple(groups))

    @staticmethod
    def _parse_attributes(value) -> tuple[tuple[str, str], ...]:
        out = []
        for part in _text(value).split(";"):
            if "=" not in part:
                continue
            k, v = part.split("=", 1)
            out.append((k.strip(), v.strip()))
        return tuple(out)

    # ---------- sheets ----------
    def _import_stores(self, ws) -> tuple[int, int, dict[str, int]]:
        headers = _headers(ws, "stores")
        stores_by_name = {s.name: s.id for s in self.repo.list_stores()}
        ok = skipped = 0
        for row in range(2, ws.max_row + 1):
            cell = lambda key: ws.cell(row=row, column=headers[key]).value if key in headers else None  # noqa: E731
            try:
                name = _text(cell("name"))
                if not name or name in stores_by_name:
                    skipped += 1
                    continue
                store = Store(
                    id=0,
                    name=name,
                    store_type=StoreType(_text(cell("store_type")).lower()),
                    is_active=_truthy(cell("is_active")),
                    city=_text(cell("city")),
                    address=_text(cell("address")),
                )
                stores_by_name[name] = self.repo.add_store(store)
                ok += 1
            except (ValueError, TypeError) as e:
                log.warning("Catalog import skipped store row %s: %s", row, e)
                skipped += 1
        return ok, skipped, stores_by_name

    def _read_variants(self, ws, stores_by_name: dict[str, int]) -> tuple[dict[str, list[Variant]], set[str]]:
        headers = _headers(ws, "variants")
        by_sku: dict[str, list[Variant]] = {}
        broken: set[str] = set()
        for row in range(2, ws.max_row + 1):
            cell = lambda key: ws.cell(row=row, column=headers[key]).value if key in headers else None  # noqa: E731
            product_sku = _text(cell("product_sku"))
            if not product_sku:
                continue
            try:
                variant = Variant(
                    attributes=self._parse_attributes(cell("attributes")),
                    price_adjustment=float(cell("price_adjustment") or 0.0),
                    stock_level=self._parse_level(
                        cell("stock_mode"), cell("stock"), cell("stock_by_store"), cell("store_groups"), stores_by_name
                    ),
                    sku=_text(cell("sku")) or None,
                    barcode=_text(cell("barcode")) or None,
                    image_url=_text(cell("image_url")) or None,
                )
            except (ValueError, TypeError) as e:
                # One bad variant row invalidates its whole product.
                log.warning("Catalog import rejected variant row %s for %s: %s", row, product_sku, e)
                broken.add(product_sku)
                continue
            by_sku.setdefault(product_sku, []).append(variant)
        return by_sku, broken

    def _import_products(self, ws, variants_by_sku: dict[str, list[Variant]], broken: set[str], stores_by_name: dict[str, int]) -> tuple[int, int]:
        headers = _headers(ws, "products")
        existing = {p.sku for p in self.repo.list_products() if p.sku}
        ok = skipped = 0
        for row in range(2, ws.max_row + 1):
            cell = lambda key: ws.cell(row=row, column=headers[key]).value if key in headers else None  # noqa: E731
            try:
                sku = _text(cell("sku"))
                name = _text(cell("name"))
                price = cell("price")
                if not sku or not name or price is None or sku in existing or sku in broken:
                    skipped += 1
                    continue
                price = float(price)
                if price < 0:
                    skipped += 1
                    continue
                iva_rate = cell("iva_rate")
                product = Product(
                    id=0,
                    name=name,
                    price=price,
                    iva_rate=float(iva_rate) if iva_rate is not None else 21.0,
                    sku=sku,
                    barcode=_text(cell("barcode")),
                    image_url=_text(cell("image_url")),
                    category=_text(cell("category")),
                    description=_text(cell("description")),
                    min_stock=int(float(cell("min_stock") or 0)),
                    is_active=_truthy(cell("is_active")),
                    stock_level=self._parse_level(
                        cell("stock_mode"), cell("stock"), cell("stock_by_store"), cell("store_groups"), stores_by_name
                    ),
                    variants=tuple(variants_by_sku.get(sku, [])),
                    physical_stores=self._parse_ids(cell("physical_stores"), stores_by_name),
                    online_stores=self._parse_ids(cell("online_stores"), stores_by_name),
                )
                self.repo.add_product(product)
                existing.add(sku)
                ok += 1
            except (ValueError, TypeError) as e:
                log.warning("Catalog import skipped product row %s: %s", row, e)
                skipped += 1
        return ok, skipped

    def import_catalog_excel(self, path: str) -> dict[str, tuple[int, int]]:
        """Returns ``{sheet: (imported, skipped)}`` for the sheets present."""
        wb = load_workbook(path, read_only=False, data_only=True)
        sheets = {name.strip().lower(): wb[name] for name in wb.sheetnames}
        result: dict[str, tuple[int, int]] = {}

        stores_by_name = {s.name: s.id for s in self.repo.list_stores()}
        if "stores" in sheets:
            ok, skipped, stores_by_name = self._import_stores(sheets["stores"])
            result["stores"] = (ok, skipped)

        variants_by_sku: dict[str, list[Variant]] = {}
        broken: set[str] = set()
        if "variants" in sheets:
            variants_by_sku, broken = self._read_variants(sheets["variants"], stores_by_name)

        if "products" in sheets:
            result["products"] = self._import_products(sheets["products"], variants_by_sku, broken, stores_by_name)

        log.info("catalog_imported path=%s result=%s", path, result)
        return result
