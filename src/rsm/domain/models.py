from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from rsm.domain.stock import StockLevel, StockMode, UniqueStock

GENERAL_CUSTOMER = "General customer"


class Channel(str, Enum):
    PHYSICAL = "physical"
    ONLINE = "online"


class StoreType(str, Enum):
    PHYSICAL = "physical"
    ONLINE = "online"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    BIZUM = "bizum"
    TRANSFER = "transfer"


class SaleStatus(str, Enum):
    COMPLETED = "completed"
    PENDING = "pending"
    CANCELLED = "cancelled"


class InvoiceStatus(str, Enum):
    ISSUED = "issued"
    PAID = "paid"
    PENDING = "pending"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Store:
    id: int
    name: str
    store_type: StoreType
    is_active: bool = True
    city: str = ""
    address: str = ""


@dataclass(frozen=True)
class Variant:
    attributes: tuple[tuple[str, str], ...] = ()
    price_adjustment: float = 0.0
    stock_level: StockLevel = field(default_factory=UniqueStock)
    sku: Optional[str] = None
    barcode: Optional[str] = None
    image_url: Optional[str] = None

    @property
    def stock_mode(self) -> StockMode:
        return self.stock_level.mode

    @property
    def stock(self) -> int:
        return self.stock_level.total


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    price: float
    iva_rate: float = 21.0
    sku: str = ""
    barcode: str = ""
    image_url: str = ""
    category: str = ""
    description: str = ""
    min_stock: int = 0
    is_active: bool = True
    stock_level: StockLevel = field(default_factory=UniqueStock)
    variants: tuple[Variant, ...] = ()
    physical_stores: frozenset[int] = frozenset()
    online_stores: frozenset[int] = frozenset()
    version: int = 0

    @property
    def has_variants(self) -> bool:
        return len(self.variants) > 0

    @property
    def stock_mode(self) -> StockMode:
        return self.stock_level.mode

    @property
    def stock(self) -> int:
        if self.has_variants:
            return sum(v.stock for v in self.variants)
        return self.stock_level.total

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.min_stock


@dataclass(frozen=True)
class Customer:
    id: int
    name: str
    dni_cif: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    total_purchases: float = 0.0
    purchase_count: int = 0


@dataclass(frozen=True)
class OnlineCustomer:
    """Free-text buyer details captured at online checkout."""

    name: str
    email: str
    phone: str = ""
    address: str = ""


@dataclass(frozen=True)
class SellingContext:
    channel: Channel
    store_id: Optional[int] = None


@dataclass(frozen=True)
class SellableCandidate:
    cart_id: str
    product_id: int
    variant_index: Optional[int]
    name: str
    price: float
    iva_rate: float
    stock: int
    min_stock: int = 0
    sku: str = ""
    barcode: str = ""
    image_url: str = ""
    category: str = ""

    @property
    def low_stock(self) -> bool:
        return self.stock <= self.min_stock

    @property
    def price_with_iva(self) -> float:
        return self.price * (1 + self.iva_rate / 100)


@dataclass(frozen=True)
class CartLine:
    cart_id: str
    product_id: int
    variant_index: Optional[int]
    product_name: str
    sku: str
    quantity: int
    unit_price: float
    iva_rate: float
    max_stock: int

    @property
    def subtotal(self) -> float:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class CartTotals:
    subtotal: float
    discount_amount: float
    subtotal_after_discount: float
    iva_amount: float
    total: float


@dataclass(frozen=True)
class SaleItem:
    product_id: int
    variant_index: Optional[int]
    product_name: str
    sku: str
    quantity: int
    price: float
    iva_rate: float
    subtotal: float


@dataclass(frozen=True)
class Sale:
    id: Optional[int]
    sale_number: str
    sale_date: str
    channel: Channel
    store_id: Optional[int]
    items: tuple[SaleItem, ...]
    subtotal: float
    total_iva: float
    discount: float
    total: float
    payment_method: PaymentMethod
    status: SaleStatus = SaleStatus.COMPLETED
    customer_id: Optional[int] = None
    customer_name: str = GENERAL_CUSTOMER
    customer_email: str = ""


@dataclass(frozen=True)
class InvoiceItem:
    description: str
    quantity: int
    price: float
    iva_rate: float
    subtotal: float


@dataclass(frozen=True)
class IvaBreakdown:
    iva_rate: float
    base: float
    iva: float


@dataclass(frozen=True)
class Invoice:
    id: Optional[int]
    invoice_number: str
    sale_id: Optional[int]
    sale_number: str
    invoice_date: str
    store_id: Optional[int]
    items: tuple[InvoiceItem, ...]
    iva_breakdown: tuple[IvaBreakdown, ...]
    base_imponible: float
    total_iva: float
    total: float
    payment_method: PaymentMethod
    status: InvoiceStatus = InvoiceStatus.ISSUED
    customer_id: Optional[int] = None
    customer_name: str = GENERAL_CUSTOMER
    customer_dni_cif: str = ""
    customer_address: str = ""


@dataclass(frozen=True)
class ProductSales:
    product_id: int
    name: str
    quantity: int
    revenue: float
