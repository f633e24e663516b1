from .models import (
    Channel,
    Customer,
    Invoice,
    OnlineCustomer,
    PaymentMethod,
    Product,
    Sale,
    SellableCandidate,
    SellingContext,
    Store,
    StoreType,
    Variant,
)
from .stock import GroupStock, StockMode, StoreBucket, StoreGroup, StoreStock, UniqueStock
from .errors import (
    ValidationError,
    NotFoundError,
    InsufficientStockError,
    PersistenceError,
    ConcurrentUpdateError,
    PartialCompletionError,
)

__all__ = [
    "Channel",
    "Customer",
    "Invoice",
    "OnlineCustomer",
    "PaymentMethod",
    "Product",
    "Sale",
    "SellableCandidate",
    "SellingContext",
    "Store",
    "StoreType",
    "Variant",
    "GroupStock",
    "StockMode",
    "StoreBucket",
    "StoreGroup",
    "StoreStock",
    "UniqueStock",
    "ValidationError",
    "NotFoundError",
    "InsufficientStockError",
    "PersistenceError",
    "ConcurrentUpdateError",
    "PartialCompletionError",
]
