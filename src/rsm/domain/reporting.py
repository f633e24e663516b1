"""Aggregations over already-loaded sales, for backends without a query engine."""
from __future__ import annotations

from typing import Iterable

from rsm.domain.models import ProductSales, Sale


def top_products(sales: Iterable[Sale], limit: int = 5) -> list[ProductSales]:
    """Rank products by summed line subtotal. The first line seen names the product."""
    acc: dict[int, list] = {}
    for sale in sales:
        for it in sale.items:
            row = acc.setdefault(it.product_id, [it.product_name, 0, 0.0])
            row[1] += int(it.quantity)
            row[2] += float(it.subtotal)
    ranked = sorted(acc.items(), key=lambda kv: (-kv[1][2], kv[0]))
    return [
        ProductSales(product_id=pid, name=v[0], quantity=v[1], revenue=v[2])
        for pid, v in ranked[: int(limit)]
    ]


def _between(sales: Iterable[Sale], start_iso: str, end_iso: str) -> list[Sale]:
    return [s for s in sales if start_iso <= s.sale_date < end_iso]


def summary_between(sales: Iterable[Sale], start_iso: str, end_iso: str) -> tuple[int, float]:
    rows = _between(sales, start_iso, end_iso)
    return len(rows), sum(float(s.total) for s in rows)


def daily_totals(sales: Iterable[Sale], start_iso: str, end_iso: str) -> list[tuple[str, int, float]]:
    days: dict[str, list] = {}
    for s in _between(sales, start_iso, end_iso):
        row = days.setdefault(s.sale_date[:10], [0, 0.0])
        row[0] += 1
        row[1] += float(s.total)
    return [(d, v[0], v[1]) for d, v in sorted(days.items())]


def monthly_totals(sales: Iterable[Sale], months: int = 6) -> list[tuple[str, float]]:
    by_month: dict[str, float] = {}
    for s in sales:
        ym = s.sale_date[:7]
        by_month[ym] = by_month.get(ym, 0.0) + float(s.total)
    return sorted(by_month.items())[-int(months):] if months > 0 else []
