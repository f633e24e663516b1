from __future__ import annotations

from typing import Optional, Protocol

from rsm.domain.models import Channel, Customer, Invoice, Product, ProductSales, Sale, Store, StoreType


class ProductRepository(Protocol):
    def add_product(self, product: Product) -> int: ...
    def get_product_by_id(self, product_id: int) -> Optional[Product]: ...
    def list_products(self, active_only: bool = False) -> list[Product]: ...
    def list_low_stock(self) -> list[Product]: ...
    def update_product_stock(self, product: Product, expected_version: Optional[int] = None) -> Product: ...


class StoreRepository(Protocol):
    def add_store(self, store: Store) -> int: ...
    def get_store(self, store_id: int) -> Optional[Store]: ...
    def list_stores(self, store_type: Optional[StoreType] = None, active_only: bool = False) -> list[Store]: ...


class CustomerRepository(Protocol):
    def add_customer(self, customer: Customer) -> int: ...
    def get_customer(self, customer_id: int) -> Optional[Customer]: ...
    def update_customer_totals(self, customer_id: int, total_purchases: float, purchase_count: int) -> None: ...


class SaleRepository(Protocol):
    def create_sale(self, sale: Sale) -> Sale: ...
    def get_sale_by_number(self, sale_number: str) -> Optional[Sale]: ...
    def list_sales(self, channel: Optional[Channel] = None, limit: Optional[int] = None) -> list[Sale]: ...
    def top_products(self, limit: int = 5) -> list[ProductSales]: ...
    def sales_summary_between(self, start_iso: str, end_iso: str) -> tuple[int, float]: ...
    def daily_sales_totals(self, start_iso: str, end_iso: str) -> list[tuple[str, int, float]]: ...
    def monthly_sales_totals(self, months: int = 6) -> list[tuple[str, float]]: ...


class InvoiceRepository(Protocol):
    def create_invoice(self, invoice: Invoice) -> Invoice: ...
    def get_invoice_for_sale(self, sale_id: int) -> Optional[Invoice]: ...
    def list_invoices(self, limit: Optional[int] = None) -> list[Invoice]: ...


class RetailRepository(
    ProductRepository,
    StoreRepository,
    CustomerRepository,
    SaleRepository,
    InvoiceRepository,
    Protocol,
):
    """Everything settlement needs. Each write must be visible to the next read."""
