from __future__ import annotations

import logging
from dataclasses import replace

from rsm.domain.errors import InsufficientStockError, NotFoundError
from rsm.domain.models import CartLine, CartTotals, Channel, SellableCandidate

log = logging.getLogger(__name__)


class CartAggregator:
    """In-progress selection for one selling session.

    Never touches stock: each line keeps the quantity that was available when
    it was added (``max_stock``) and is only checked against that snapshot.
    """

    def __init__(self, channel: Channel = Channel.PHYSICAL):
        self.channel = Channel(channel)
        self._lines: dict[str, CartLine] = {}

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines.values())

    @property
    def is_empty(self) -> bool:
        return not self._lines

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    def get(self, cart_id: str) -> CartLine:
        line = self._lines.get(cart_id)
        if line is None:
            raise NotFoundError(f"Cart line not found: {cart_id}")
        return line

    def add(self, candidate: SellableCandidate) -> CartLine:
        existing = self._lines.get(candidate.cart_id)
        if existing is not None:
            if existing.quantity >= existing.max_stock:
                raise InsufficientStockError(
                    f"Not enough stock for {existing.product_name}. Available: {existing.max_stock}"
                )
            line = replace(existing, quantity=existing.quantity + 1)
        else:
            if candidate.stock <= 0:
                raise InsufficientStockError(f"Not enough stock for {candidate.name}. Available: 0")
            line = CartLine(
                cart_id=candidate.cart_id,
                product_id=candidate.product_id,
                variant_index=candidate.variant_index,
                product_name=candidate.name,
                sku=candidate.sku,
                quantity=1,
                unit_price=float(candidate.price),
                iva_rate=float(candidate.iva_rate),
                max_stock=int(candidate.stock),
            )
        self._lines[line.cart_id] = line
        return line

    def update_quantity(self, cart_id: str, delta: int) -> CartLine | None:
        """Move a line's quantity by ``delta``, clamped to [0, max_stock].

        Returns the updated line, or None once it reaches 0 and is removed.
        """
        line = self.get(cart_id)
        if delta > 0 and line.quantity >= line.max_stock:
            raise InsufficientStockError(f"Not enough stock for {line.product_name}. Available: {line.max_stock}")

        quantity = max(0, min(line.max_stock, line.quantity + int(delta)))
        if quantity == 0:
            del self._lines[cart_id]
            return None
        updated = replace(line, quantity=quantity)
        self._lines[cart_id] = updated
        return updated

    def remove(self, cart_id: str) -> None:
        self._lines.pop(cart_id, None)

    def clear(self) -> None:
        self._lines.clear()

    def effective_discount(self, discount_percent: float) -> float:
        if self.channel == Channel.ONLINE:
            if discount_percent:
                log.warning("online_discount_ignored discount=%s", discount_percent)
            return 0.0
        return min(100.0, max(0.0, float(discount_percent or 0)))

    def totals(self, discount_percent: float = 0.0) -> CartTotals:
        discount = self.effective_discount(discount_percent)
        subtotal = sum(line.subtotal for line in self._lines.values())
        discount_amount = subtotal * discount / 100
        subtotal_after_discount = subtotal - discount_amount

        iva_amount = 0.0
        for line in self._lines.values():
            # The discount is shared across lines by weight before tax.
            item_after_discount = (line.subtotal / subtotal) * subtotal_after_discount if subtotal else 0.0
            iva_amount += item_after_discount * line.iva_rate / 100

        return CartTotals(
            subtotal=subtotal,
            discount_amount=discount_amount,
            subtotal_after_discount=subtotal_after_discount,
            iva_amount=iva_amount,
            total=subtotal_after_discount + iva_amount,
        )
