from __future__ import annotations

from typing import Iterable, Optional

from rsm.domain.errors import NotFoundError
from rsm.domain.models import Channel, Product, SellableCandidate, SellingContext, Store, StoreType, Variant
from rsm.domain.stock import resolve_for_store, resolve_total


def candidate_id(product_id: int, variant_index: Optional[int] = None) -> str:
    if variant_index is None:
        return str(product_id)
    return f"{product_id}_variant_{variant_index}"


def variant_label(product: Product, variant: Variant) -> str:
    values = " ".join(v for _k, v in variant.attributes if v).strip()
    return f"{product.name} - {values}" if values else product.name


class VariantExpander:
    """Flattens products into sellable lines for one selling context.

    Order is product order, then variant index; callers rely on it being stable.
    """

    @staticmethod
    def is_visible(product: Product, context: SellingContext) -> bool:
        stores = product.physical_stores if context.channel == Channel.PHYSICAL else product.online_stores
        return not stores or context.store_id in stores

    @staticmethod
    def resolve(entity, context: SellingContext) -> int:
        if context.channel == Channel.PHYSICAL:
            return resolve_for_store(entity, context.store_id)
        return resolve_total(entity)

    def expand_product(self, product: Product, context: SellingContext) -> list[SellableCandidate]:
        if not product.is_active or not self.is_visible(product, context):
            return []

        if not product.has_variants:
            stock = self.resolve(product, context)
            if stock <= 0:
                return []
            return [
                SellableCandidate(
                    cart_id=candidate_id(product.id),
                    product_id=product.id,
                    variant_index=None,
                    name=product.name,
                    price=float(product.price),
                    iva_rate=float(product.iva_rate),
                    stock=stock,
                    min_stock=product.min_stock,
                    sku=product.sku,
                    barcode=product.barcode,
                    image_url=product.image_url,
                    category=product.category,
                )
            ]

        out: list[SellableCandidate] = []
        for index, variant in enumerate(product.variants):
            stock = self.resolve(variant, context)
            if stock <= 0:
                continue
            out.append(
                SellableCandidate(
                    cart_id=candidate_id(product.id, index),
                    product_id=product.id,
                    variant_index=index,
                    name=variant_label(product, variant),
                    price=float(product.price) + float(variant.price_adjustment),
                    iva_rate=float(product.iva_rate),
                    stock=stock,
                    min_stock=product.min_stock,
                    sku=variant.sku or product.sku,
                    barcode=variant.barcode or product.barcode,
                    image_url=variant.image_url or product.image_url,
                    category=product.category,
                )
            )
        return out

    def expand(self, products: Iterable[Product], context: SellingContext) -> list[SellableCandidate]:
        out: list[SellableCandidate] = []
        for product in products:
            out.extend(self.expand_product(product, context))
        return out


class CatalogService:
    def __init__(self, repo, expander: VariantExpander | None = None):
        self.repo = repo
        self.expander = expander or VariantExpander()

    def sellable(self, context: SellingContext, products: Iterable[Product] | None = None) -> list[SellableCandidate]:
        """Candidates for ``context``. Pass ``products`` to work on an already-loaded snapshot."""
        if products is None:
            products = self.repo.list_products(active_only=True)
        return self.expander.expand(products, context)

    @staticmethod
    def search(candidates: Iterable[SellableCandidate], term: str = "", category: str | None = None) -> list[SellableCandidate]:
        term = (term or "").strip().lower()
        out = []
        for c in candidates:
            if category and c.category != category:
                continue
            if term and not (
                term in c.name.lower() or term in (c.sku or "").lower() or term in (c.barcode or "").lower()
            ):
                continue
            out.append(c)
        return out

    @staticmethod
    def categories(candidates: Iterable[SellableCandidate]) -> list[str]:
        seen: list[str] = []
        for c in candidates:
            if c.category and c.category not in seen:
                seen.append(c.category)
        return seen

    def low_stock_products(self) -> list[Product]:
        return self.repo.list_low_stock()

    def default_store(self) -> Store:
        stores = self.repo.list_stores(store_type=StoreType.PHYSICAL, active_only=True)
        if not stores:
            raise NotFoundError("No active physical store. Create a store before selling.")
        return stores[0]
