from __future__ import annotations

from datetime import date, timedelta
from typing import Optional

from rsm.domain.errors import NotFoundError, ValidationError
from rsm.domain.models import Channel, Invoice, ProductSales, Sale


class SalesService:
    def __init__(self, repo):
        self.repo = repo

    def list_sales(self, channel: Optional[Channel] = None, limit: Optional[int] = None) -> list[Sale]:
        return self.repo.list_sales(channel=channel, limit=limit)

    def get_sale(self, sale_number: str) -> Sale:
        sale = self.repo.get_sale_by_number(sale_number)
        if not sale:
            raise NotFoundError("Sale not found.")
        return sale

    def invoice_for_sale(self, sale_id: int) -> Invoice:
        invoice = self.repo.get_invoice_for_sale(int(sale_id))
        if not invoice:
            raise NotFoundError("Invoice not found.")
        return invoice

    def list_invoices(self, limit: Optional[int] = None) -> list[Invoice]:
        return self.repo.list_invoices(limit=limit)

    def channel_summary(self, channel: Channel) -> tuple[int, float]:
        sales = self.repo.list_sales(channel=channel)
        return len(sales), sum(float(s.total or 0) for s in sales)

    # ---------- reporting ----------
    def top_products(self, limit: int = 5) -> list[ProductSales]:
        """Best sellers by revenue (sum of line subtotals, before discount and tax)."""
        if int(limit) <= 0:
            raise ValidationError("Limit must be > 0.")
        return self.repo.top_products(int(limit))

    def sales_totals_between(self, start_iso: str, end_iso: str) -> tuple[int, float]:
        """``(count, total)`` of sales with ``start_iso <= sale_date < end_iso``."""
        if end_iso <= start_iso:
            raise ValidationError("End date must be after start date.")
        return self.repo.sales_summary_between(start_iso, end_iso)

    def daily_sales_totals(self, days: int = 7, today: Optional[date] = None) -> list[tuple[str, int, float]]:
        """One ``(day, count, total)`` row per day, oldest first, ending today; quiet days are zero."""
        if int(days) <= 0:
            raise ValidationError("Days must be > 0.")
        today = today or date.today()
        start = today - timedelta(days=int(days) - 1)
        end = today + timedelta(days=1)
        found = {d: (c, t) for d, c, t in self.repo.daily_sales_totals(start.isoformat(), end.isoformat())}

        out = []
        for i in range(int(days)):
            d = (start + timedelta(days=i)).isoformat()
            c, t = found.get(d, (0, 0.0))
            out.append((d, c, t))
        return out

    def monthly_sales_totals(self, months: int = 6) -> list[tuple[str, float]]:
        return self.repo.monthly_sales_totals(int(months))
