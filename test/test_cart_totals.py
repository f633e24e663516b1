import pytest

from rsm.domain.errors import InsufficientStockError, NotFoundError
from rsm.domain.models import Channel, SellableCandidate
from rsm.services.cart_service import CartAggregator


def _candidate(cart_id: str, price: float, iva_rate: float, stock: int = 10) -> SellableCandidate:
    return SellableCandidate(
        cart_id=cart_id,
        product_id=int(cart_id.split("_")[0]),
        variant_index=None,
        name=f"Item {cart_id}",
        price=price,
        iva_rate=iva_rate,
        stock=stock,
    )


def test_discount_is_shared_by_weight_before_tax():
    cart = CartAggregator(Channel.PHYSICAL)
    for _ in range(2):
        cart.add(_candidate("1", 50.0, 21.0))
    cart.add(_candidate("2", 50.0, 10.0))

    totals = cart.totals(10)

    assert totals.subtotal == pytest.approx(150.0)
    assert totals.discount_amount == pytest.approx(15.0)
    assert totals.subtotal_after_discount == pytest.approx(135.0)
    assert totals.iva_amount == pytest.approx(23.4)
    assert totals.total == pytest.approx(158.4)


def test_discount_is_clamped():
    cart = CartAggregator()
    cart.add(_candidate("1", 10.0, 21.0))
    assert cart.totals(150).total == pytest.approx(0.0)
    assert cart.totals(-5).total == pytest.approx(12.1)


def test_online_cart_ignores_discount():
    cart = CartAggregator(Channel.ONLINE)
    cart.add(_candidate("1", 100.0, 21.0))
    totals = cart.totals(50)
    assert totals.discount_amount == 0
    assert totals.total == pytest.approx(121.0)


def test_empty_cart_totals_are_zero():
    totals = CartAggregator().totals(10)
    assert totals.subtotal == 0
    assert totals.iva_amount == 0
    assert totals.total == 0


def test_adding_same_candidate_increments_line_until_snapshot_limit():
    cart = CartAggregator()
    candidate = _candidate("3", 5.0, 21.0, stock=2)
    cart.add(candidate)
    line = cart.add(candidate)
    assert line.quantity == 2
    assert cart.item_count == 2

    with pytest.raises(InsufficientStockError):
        cart.add(candidate)
    assert cart.get("3").quantity == 2


def test_candidate_without_stock_cannot_be_added():
    with pytest.raises(InsufficientStockError):
        CartAggregator().add(_candidate("4", 5.0, 21.0, stock=0))


def test_update_quantity_clamps_and_removes_at_zero():
    cart = CartAggregator()
    cart.add(_candidate("5", 5.0, 21.0, stock=3))

    assert cart.update_quantity("5", 5).quantity == 3
    with pytest.raises(InsufficientStockError):
        cart.update_quantity("5", 1)

    assert cart.update_quantity("5", -10) is None
    assert cart.is_empty


def test_update_unknown_line_raises_not_found():
    with pytest.raises(NotFoundError):
        CartAggregator().update_quantity("nope", 1)


def test_remove_and_clear():
    cart = CartAggregator()
    cart.add(_candidate("1", 5.0, 21.0))
    cart.add(_candidate("2", 5.0, 21.0))
    cart.remove("1")
    assert [line.cart_id for line in cart.lines] == ["2"]
    cart.clear()
    assert cart.is_empty
