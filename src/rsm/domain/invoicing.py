from __future__ import annotations

from datetime import datetime
from typing import Optional

from rsm.domain.models import Customer, Invoice, InvoiceItem, IvaBreakdown, Sale


def time_number(prefix: str, now: datetime) -> str:
    """``<prefix>-<epoch millis>``. Two settlements in the same millisecond collide."""
    return f"{prefix}-{int(now.timestamp() * 1000)}"


def iva_breakdown(sale: Sale) -> tuple[IvaBreakdown, ...]:
    # The sale discount applies evenly to every line before tax.
    factor = 1 - float(sale.discount) / 100
    by_rate: dict[float, list[float]] = {}
    for it in sale.items:
        base = float(it.subtotal) * factor
        acc = by_rate.setdefault(float(it.iva_rate), [0.0, 0.0])
        acc[0] += base
        acc[1] += base * float(it.iva_rate) / 100
    return tuple(IvaBreakdown(iva_rate=rate, base=v[0], iva=v[1]) for rate, v in by_rate.items())


def invoice_from_sale(
    sale: Sale,
    invoice_number: str,
    invoice_date: str,
    customer: Optional[Customer] = None,
) -> Invoice:
    """Project a persisted sale into its invoice. One way only: invoices are never edited back."""
    return Invoice(
        id=None,
        invoice_number=invoice_number,
        sale_id=sale.id,
        sale_number=sale.sale_number,
        invoice_date=invoice_date,
        store_id=sale.store_id,
        items=tuple(
            InvoiceItem(
                description=it.product_name,
                quantity=it.quantity,
                price=it.price,
                iva_rate=it.iva_rate,
                subtotal=it.subtotal,
            )
            for it in sale.items
        ),
        iva_breakdown=iva_breakdown(sale),
        base_imponible=sale.subtotal,
        total_iva=sale.total_iva,
        total=sale.total,
        payment_method=sale.payment_method,
        customer_id=sale.customer_id,
        customer_name=sale.customer_name,
        customer_dni_cif=customer.dni_cif if customer else "",
        customer_address=customer.address if customer else "",
    )
