from .cart_service import CartAggregator
from .catalog_service import CatalogService, VariantExpander
from .catalog_import_service import CatalogImportService
from .sales_service import SalesService
from .settlement_service import SaleSettlementService

__all__ = [
    "CartAggregator",
    "CatalogService",
    "VariantExpander",
    "CatalogImportService",
    "SalesService",
    "SaleSettlementService",
]
