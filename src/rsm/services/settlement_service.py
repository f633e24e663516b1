from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional

from rsm.domain.depletion import deplete
from rsm.domain.errors import NotFoundError, PartialCompletionError, PersistenceError, ValidationError
from rsm.domain.invoicing import invoice_from_sale, time_number
from rsm.domain.models import (
    GENERAL_CUSTOMER,
    Channel,
    Customer,
    OnlineCustomer,
    PaymentMethod,
    Sale,
    SaleItem,
    SaleStatus,
    Store,
    StoreType,
)
from rsm.services.cart_service import CartAggregator

log = logging.getLogger("rsm.sales")


class SaleSettlementService:
    """Turns a cart into a sale, stock depletion, customer totals and an invoice.

    Every step is its own repository call and nothing is rolled back. A failure
    before the sale is written raises ``ValidationError`` or ``PersistenceError``
    (nothing happened); any later failure raises ``PartialCompletionError``.

    Stock is checked when lines enter the cart but not held, so two sessions
    settling the same product can both read the old stock and one update is
    lost. ``optimistic_locking=True`` makes each product write conditional on
    the version read just before it, turning that race into a
    ``ConcurrentUpdateError`` (reported through ``PartialCompletionError``).
    """

    def __init__(self, repo, clock: Callable[[], datetime] | None = None, optimistic_locking: bool = False):
        self.repo = repo
        self.clock = clock or datetime.now
        self.optimistic_locking = optimistic_locking

    # ---------- validation ----------
    @staticmethod
    def _store_id(store_id) -> Optional[int]:
        if store_id is None:
            return None
        try:
            return int(store_id)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid store id: {store_id!r}") from e

    def _physical_store(self, store_id: Optional[int]) -> Store:
        if store_id is None:
            raise ValidationError("Select a store first.")
        store = self.repo.get_store(store_id)
        if store is None or not store.is_active or store.store_type != StoreType.PHYSICAL:
            raise ValidationError(f"Store {store_id} is not an active physical store.")
        return store

    def _online_store(self, store_id: Optional[int]) -> Optional[Store]:
        if store_id is None:
            return None
        store = self.repo.get_store(store_id)
        if store is None or not store.is_active or store.store_type != StoreType.ONLINE:
            raise ValidationError(f"Store {store_id} is not an active online store.")
        return store

    @staticmethod
    def _validate_online_customer(online_customer: Optional[OnlineCustomer]) -> OnlineCustomer:
        if online_customer is None:
            raise ValidationError("Customer details are required for online orders.")
        if not (online_customer.name or "").strip():
            raise ValidationError("Customer name is required.")
        if not (online_customer.email or "").strip():
            raise ValidationError("Customer email is required.")
        return online_customer

    # ---------- steps ----------
    def _deplete_item(self, item: SaleItem, channel: Channel, store_id: Optional[int]) -> None:
        product = self.repo.get_product_by_id(item.product_id)
        if product is None:
            raise NotFoundError(f"Product not found: {item.product_id}")

        if item.variant_index is None:
            result = deplete(product.stock_level, item.quantity, channel, store_id)
            updated = replace(product, stock_level=result.level)
        else:
            if not 0 <= item.variant_index < len(product.variants):
                raise NotFoundError(f"Variant {item.variant_index} not found for product {product.id}")
            variants = list(product.variants)
            variant = variants[item.variant_index]
            result = deplete(variant.stock_level, item.quantity, channel, store_id)
            variants[item.variant_index] = replace(variant, stock_level=result.level)
            updated = replace(product, variants=tuple(variants))

        expected = product.version if self.optimistic_locking else None
        self.repo.update_product_stock(updated, expected_version=expected)
        if result.remaining:
            log.warning(
                "stock_short product_id=%s variant=%s qty=%s unmet=%s",
                item.product_id, item.variant_index, item.quantity, result.remaining,
            )

    def _update_customer(self, customer: Customer, sale: Sale) -> Customer:
        current = self.repo.get_customer(customer.id)
        if current is None:
            raise NotFoundError(f"Customer not found: {customer.id}")
        total_purchases = float(current.total_purchases) + float(sale.total)
        purchase_count = int(current.purchase_count) + 1
        self.repo.update_customer_totals(current.id, total_purchases, purchase_count)
        return replace(current, total_purchases=total_purchases, purchase_count=purchase_count)

    # ---------- entry point ----------
    def complete_sale(
        self,
        cart: CartAggregator,
        payment_method: PaymentMethod | str,
        discount_percent: float = 0.0,
        customer: Optional[Customer] = None,
        channel: Channel | str | None = None,
        store_id: Optional[int] = None,
        online_customer: Optional[OnlineCustomer] = None,
    ) -> Sale:
        channel = Channel(channel) if channel is not None else cart.channel
        if channel != cart.channel:
            raise ValidationError(f"Cart belongs to the {cart.channel.value} channel, not {channel.value}.")
        if cart.is_empty:
            raise ValidationError("Cart is empty.")
        try:
            payment_method = PaymentMethod(payment_method)
        except ValueError as e:
            raise ValidationError(f"Unknown payment method: {payment_method}") from e
        store_id = self._store_id(store_id)

        if channel == Channel.PHYSICAL:
            self._physical_store(store_id)
            customer_name = customer.name if customer else GENERAL_CUSTOMER
            customer_email = customer.email if customer else ""
        else:
            if customer is not None:
                raise ValidationError("Customer accounts are linked on the physical channel only.")
            self._online_store(store_id)
            buyer = self._validate_online_customer(online_customer)
            customer_name = buyer.name.strip()
            customer_email = buyer.email.strip()

        discount = cart.effective_discount(discount_percent)
        totals = cart.totals(discount)
        now = self.clock()
        sale = Sale(
            id=None,
            sale_number=time_number("V", now),
            sale_date=now.isoformat(timespec="seconds"),
            channel=channel,
            store_id=store_id,
            items=tuple(
                SaleItem(
                    product_id=line.product_id,
                    variant_index=line.variant_index,
                    product_name=line.product_name,
                    sku=line.sku,
                    quantity=line.quantity,
                    price=line.unit_price,
                    iva_rate=line.iva_rate,
                    subtotal=line.subtotal,
                )
                for line in cart.lines
            ),
            subtotal=totals.subtotal_after_discount,
            total_iva=totals.iva_amount,
            discount=discount,
            total=totals.total,
            payment_method=payment_method,
            status=SaleStatus.COMPLETED,
            customer_id=customer.id if customer else None,
            customer_name=customer_name,
            customer_email=customer_email,
        )

        try:
            sale = self.repo.create_sale(sale)
        except PersistenceError:
            log.exception("sale_not_persisted sale_number=%s", sale.sale_number)
            raise

        completed = ["sale"]
        step = "stock"
        try:
            for item in sale.items:
                step = f"stock:{item.product_id}" + (f"/{item.variant_index}" if item.variant_index is not None else "")
                self._deplete_item(item, channel, sale.store_id)
                completed.append(step)

            invoice_customer = customer
            if channel == Channel.PHYSICAL and customer is not None:
                step = "customer"
                invoice_customer = self._update_customer(customer, sale)
                completed.append(step)

            step = "invoice"
            invoice = invoice_from_sale(
                sale,
                invoice_number=time_number("F", self.clock()),
                invoice_date=now.date().isoformat(),
                customer=invoice_customer,
            )
            self.repo.create_invoice(invoice)
            completed.append(step)
        except Exception as e:
            log.error(
                "settlement_incomplete sale_number=%s failed_step=%s completed=%s error=%s",
                sale.sale_number, step, ",".join(completed), e,
            )
            raise PartialCompletionError(
                f"Sale {sale.sale_number} was recorded but settlement stopped at '{step}': {e}",
                sale_number=sale.sale_number,
                completed_steps=completed,
                failed_step=step,
            ) from e

        log.info(
            "sale_completed sale_number=%s channel=%s store_id=%s items=%s total=%.2f customer_id=%s",
            sale.sale_number, channel.value, sale.store_id, len(sale.items), sale.total, sale.customer_id,
        )
        cart.clear()
        return sale
