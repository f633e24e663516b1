import pytest

from rsm.domain.models import Channel, Product, SellingContext, Variant
from rsm.domain.stock import GroupStock, StoreBucket, StoreGroup, StoreStock, UniqueStock
from rsm.services.catalog_service import CatalogService, VariantExpander


def _shirt() -> Product:
    return Product(
        id=7,
        name="Shirt",
        price=20.0,
        iva_rate=21.0,
        sku="SH",
        category="Clothing",
        variants=(
            Variant(attributes=(("color", "Red"), ("size", "M")), stock_level=StoreStock((StoreBucket(1, 2),))),
            Variant(attributes=(("color", "Blue"), ("size", "L")), price_adjustment=5.0, sku="SH-BL",
                    stock_level=StoreStock((StoreBucket(1, 0), StoreBucket(2, 4)))),
        ),
    )


def test_variants_expand_to_one_candidate_each_with_stock():
    candidates = VariantExpander().expand([_shirt()], SellingContext(Channel.PHYSICAL, store_id=2))
    assert [c.cart_id for c in candidates] == ["7_variant_1"]
    blue = candidates[0]
    assert blue.name == "Shirt - Blue L"
    assert blue.price == 25.0
    assert blue.sku == "SH-BL"
    assert blue.stock == 4


def test_variant_inherits_product_sku_when_missing():
    candidates = VariantExpander().expand([_shirt()], SellingContext(Channel.PHYSICAL, store_id=1))
    assert [(c.cart_id, c.sku) for c in candidates] == [("7_variant_0", "SH")]


def test_online_uses_total_across_buckets():
    candidates = VariantExpander().expand([_shirt()], SellingContext(Channel.ONLINE))
    assert [(c.cart_id, c.stock) for c in candidates] == [("7_variant_0", 2), ("7_variant_1", 4)]


def test_simple_product_uses_plain_id_and_hides_when_empty():
    products = [
        Product(id=1, name="Mug", price=8.0, stock_level=UniqueStock(3)),
        Product(id=2, name="Cap", price=9.0, stock_level=UniqueStock(0)),
    ]
    candidates = VariantExpander().expand(products, SellingContext(Channel.PHYSICAL, store_id=1))
    assert [c.cart_id for c in candidates] == ["1"]


def test_inactive_and_restricted_products_are_hidden():
    products = [
        Product(id=1, name="Old", price=1.0, is_active=False, stock_level=UniqueStock(3)),
        Product(id=2, name="Local", price=1.0, physical_stores=frozenset({5}), stock_level=UniqueStock(3)),
        Product(id=3, name="Web only", price=1.0, online_stores=frozenset({9}), stock_level=UniqueStock(3)),
    ]
    expander = VariantExpander()
    at_store_1 = expander.expand(products, SellingContext(Channel.PHYSICAL, store_id=1))
    at_store_5 = expander.expand(products, SellingContext(Channel.PHYSICAL, store_id=5))
    online_9 = expander.expand(products, SellingContext(Channel.ONLINE, store_id=9))
    online_any = expander.expand(products, SellingContext(Channel.ONLINE))

    assert [c.product_id for c in at_store_1] == [3]
    assert [c.product_id for c in at_store_5] == [2, 3]
    assert [c.product_id for c in online_9] == [2, 3]
    assert [c.product_id for c in online_any] == [2]


def test_group_stock_resolves_through_membership():
    product = Product(
        id=4,
        name="Lamp",
        price=30.0,
        stock_level=GroupStock((StoreGroup("Centre", frozenset({1, 2}), 6),)),
    )
    expander = VariantExpander()
    assert expander.expand([product], SellingContext(Channel.PHYSICAL, store_id=2))[0].stock == 6
    assert expander.expand([product], SellingContext(Channel.PHYSICAL, store_id=3)) == []


def test_expansion_is_stable_across_calls():
    products = [_shirt(), Product(id=1, name="Mug", price=8.0, stock_level=UniqueStock(3))]
    ctx = SellingContext(Channel.ONLINE)
    expander = VariantExpander()
    assert expander.expand(products, ctx) == expander.expand(products, ctx)


def test_search_and_categories():
    products = [
        _shirt(),
        Product(id=1, name="Mug", price=8.0, barcode="8400001", category="Home", stock_level=UniqueStock(3)),
    ]
    candidates = CatalogService(repo=None).sellable(SellingContext(Channel.ONLINE), products=products)

    assert [c.cart_id for c in CatalogService.search(candidates, "blue")] == ["7_variant_1"]
    assert [c.cart_id for c in CatalogService.search(candidates, "84000")] == ["1"]
    assert [c.cart_id for c in CatalogService.search(candidates, "", category="Home")] == ["1"]
    assert CatalogService.categories(candidates) == ["Clothing", "Home"]


def test_candidate_price_with_iva_and_low_stock():
    product = Product(id=1, name="Mug", price=10.0, iva_rate=21.0, min_stock=3, stock_level=UniqueStock(3))
    candidate = VariantExpander().expand([product], SellingContext(Channel.ONLINE))[0]
    assert candidate.price_with_iva == pytest.approx(12.1)
    assert candidate.low_stock
