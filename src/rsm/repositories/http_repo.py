from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Optional

import requests

from rsm.domain import reporting
from rsm.domain.errors import ConcurrentUpdateError, NotFoundError, PersistenceError
from rsm.domain.models import Channel, Customer, Invoice, Product, ProductSales, Sale, Store, StoreType
from rsm.repositories import codec

log = logging.getLogger(__name__)


class HttpEntityRepository:
    """Repository over a REST entity API.

    Each entity lives under ``<base_url>/entities/<Entity>``: ``GET`` lists
    (``sort``, ``limit`` and field filters as query params), ``GET /<id>``,
    ``POST`` creates, ``PUT /<id>`` updates. Writes are visible to the next
    read, which is all settlement relies on.
    """

    def __init__(self, base_url: str, token: str | None = None, timeout: float = 10, session: requests.Session | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def _url(self, entity: str, entity_id: int | None = None) -> str:
        url = f"{self.base_url}/entities/{entity}"
        return f"{url}/{entity_id}" if entity_id is not None else url

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            r = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            log.warning("entity_request_failed method=%s url=%s error=%s", method, url, e)
            raise PersistenceError(f"{method} {url} failed: {e}") from e
        return r

    def _json(self, r: requests.Response) -> Any:
        try:
            r.raise_for_status()
            return r.json()
        except (requests.RequestException, ValueError) as e:
            log.warning("entity_response_invalid status=%s url=%s error=%s", r.status_code, r.url, e)
            raise PersistenceError(f"Entity API error ({r.status_code}): {e}") from e

    def _get(self, entity: str, entity_id: int) -> Optional[dict]:
        r = self._request("GET", self._url(entity, entity_id))
        if r.status_code == 404:
            return None
        return self._json(r)

    def _list(self, entity: str, sort: str | None = None, limit: int | None = None, **filters) -> list[dict]:
        params: dict[str, Any] = {k: v for k, v in filters.items() if v is not None}
        if sort:
            params["sort"] = sort
        if limit is not None:
            params["limit"] = int(limit)
        r = self._request("GET", self._url(entity), params=params)
        return list(self._json(r) or [])

    def _create(self, entity: str, payload: dict) -> dict:
        payload = {k: v for k, v in payload.items() if k != "id"}
        r = self._request("POST", self._url(entity), json=payload)
        data = self._json(r)
        if not isinstance(data, dict) or data.get("id") is None:
            log.warning("entity_create_without_id entity=%s status=%s", entity, r.status_code)
            raise PersistenceError(f"Entity API created a {entity} but returned no id.")
        return data

    def _update(self, entity: str, entity_id: int, payload: dict, headers: dict | None = None) -> requests.Response:
        return self._request("PUT", self._url(entity, entity_id), json=payload, headers=headers or {})

    # ---------- Stores ----------
    def add_store(self, store: Store) -> int:
        return int(self._create("Store", codec.store_to_dict(store))["id"])

    def get_store(self, store_id: int) -> Optional[Store]:
        data = self._get("Store", store_id)
        return codec.store_from_dict(data) if data else None

    def list_stores(self, store_type: Optional[StoreType] = None, active_only: bool = False) -> list[Store]:
        rows = self._list(
            "Store",
            store_type=StoreType(store_type).value if store_type is not None else None,
            is_active=True if active_only else None,
        )
        return [codec.store_from_dict(r) for r in rows]

    # ---------- Products ----------
    def add_product(self, product: Product) -> int:
        return int(self._create("Product", codec.product_to_dict(product))["id"])

    def get_product_by_id(self, product_id: int) -> Optional[Product]:
        data = self._get("Product", product_id)
        return codec.product_from_dict(data) if data else None

    def list_products(self, active_only: bool = False) -> list[Product]:
        rows = self._list("Product", sort="id", is_active=True if active_only else None)
        return [codec.product_from_dict(r) for r in rows]

    def list_low_stock(self) -> list[Product]:
        return [p for p in self.list_products(active_only=True) if p.is_low_stock]

    def update_product_stock(self, product: Product, expected_version: Optional[int] = None) -> Product:
        encoded = codec.product_to_dict(product)
        payload = {
            k: encoded[k]
            for k in ("stock_mode", "stock", "stock_by_store", "store_groups", "variants")
            if k in encoded
        }
        new_version = (expected_version if expected_version is not None else product.version) + 1
        payload["version"] = new_version
        headers = {"If-Match": str(expected_version)} if expected_version is not None else None

        r = self._update("Product", product.id, payload, headers=headers)
        if r.status_code == 404:
            raise NotFoundError(f"Product not found: {product.id}")
        if r.status_code in (409, 412):
            raise ConcurrentUpdateError(f"Product {product.id} changed since it was read (expected version {expected_version}).")
        data = self._json(r)
        if isinstance(data, dict) and data.get("version") is not None:
            new_version = int(data["version"])
        return replace(product, version=new_version)

    # ---------- Customers ----------
    def add_customer(self, customer: Customer) -> int:
        return int(self._create("Customer", codec.customer_to_dict(customer))["id"])

    def get_customer(self, customer_id: int) -> Optional[Customer]:
        data = self._get("Customer", customer_id)
        return codec.customer_from_dict(data) if data else None

    def update_customer_totals(self, customer_id: int, total_purchases: float, purchase_count: int) -> None:
        r = self._update(
            "Customer",
            customer_id,
            {"total_purchases": float(total_purchases), "purchase_count": int(purchase_count)},
        )
        if r.status_code == 404:
            raise NotFoundError(f"Customer not found: {customer_id}")
        self._json(r)

    # ---------- Sales ----------
    def create_sale(self, sale: Sale) -> Sale:
        data = self._create("Sale", codec.sale_to_dict(sale))
        return replace(sale, id=int(data["id"]))

    def get_sale_by_number(self, sale_number: str) -> Optional[Sale]:
        rows = self._list("Sale", limit=1, sale_number=sale_number)
        return codec.sale_from_dict(rows[0]) if rows else None

    def list_sales(self, channel: Optional[Channel] = None, limit: Optional[int] = None) -> list[Sale]:
        rows = self._list(
            "Sale",
            sort="-sale_date",
            limit=limit,
            channel=Channel(channel).value if channel is not None else None,
        )
        return [codec.sale_from_dict(r) for r in rows]

    # ---------- Reporting ----------
    # The entity API has no aggregation endpoint; totals are computed over the sale list.
    def top_products(self, limit: int = 5) -> list[ProductSales]:
        return reporting.top_products(self.list_sales(), limit)

    def sales_summary_between(self, start_iso: str, end_iso: str) -> tuple[int, float]:
        return reporting.summary_between(self.list_sales(), start_iso, end_iso)

    def daily_sales_totals(self, start_iso: str, end_iso: str) -> list[tuple[str, int, float]]:
        return reporting.daily_totals(self.list_sales(), start_iso, end_iso)

    def monthly_sales_totals(self, months: int = 6) -> list[tuple[str, float]]:
        return reporting.monthly_totals(self.list_sales(), months)

    # ---------- Invoices ----------
    def create_invoice(self, invoice: Invoice) -> Invoice:
        data = self._create("Invoice", codec.invoice_to_dict(invoice))
        return replace(invoice, id=int(data["id"]))

    def get_invoice_for_sale(self, sale_id: int) -> Optional[Invoice]:
        rows = self._list("Invoice", limit=1, sale_id=int(sale_id))
        return codec.invoice_from_dict(rows[0]) if rows else None

    def list_invoices(self, limit: Optional[int] = None) -> list[Invoice]:
        rows = self._list("Invoice", sort="-invoice_date", limit=limit)
        return [codec.invoice_from_dict(r) for r in rows]
