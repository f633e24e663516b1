from datetime import date
from pathlib import Path

import pytest

from conftest import make_repo
from rsm.domain.errors import ValidationError
from rsm.domain.models import Channel, PaymentMethod, Sale, SaleItem
from rsm.services.sales_service import SalesService


def _sale(number: str, sale_date: str, *items: SaleItem) -> Sale:
    subtotal = sum(it.subtotal for it in items)
    return Sale(
        id=None,
        sale_number=number,
        sale_date=sale_date,
        channel=Channel.PHYSICAL,
        store_id=None,
        items=items,
        subtotal=subtotal,
        total_iva=subtotal * 0.21,
        discount=0.0,
        total=subtotal * 1.21,
        payment_method=PaymentMethod.CARD,
    )


def _item(product_id: int, name: str, qty: int, price: float) -> SaleItem:
    return SaleItem(product_id, None, name, "", qty, price, 21.0, qty * price)


def _seeded(tmp_path: Path) -> SalesService:
    repo = make_repo(tmp_path)
    repo.create_sale(_sale("V-1", "2026-04-28T09:00:00", _item(1, "Lamp", 1, 100.0)))
    repo.create_sale(_sale("V-2", "2026-05-01T10:00:00", _item(2, "Mug", 5, 10.0), _item(3, "Cap", 1, 15.0)))
    repo.create_sale(_sale("V-3", "2026-05-03T18:30:00", _item(1, "Lamp", 1, 100.0), _item(2, "Mug", 1, 10.0)))
    return SalesService(repo)


def test_top_products_rank_by_revenue(tmp_path: Path):
    sales = _seeded(tmp_path)

    top = sales.top_products()
    assert [(p.product_id, p.name, p.quantity, p.revenue) for p in top] == [
        (1, "Lamp", 2, 200.0),
        (2, "Mug", 6, 60.0),
        (3, "Cap", 1, 15.0),
    ]
    assert [p.product_id for p in sales.top_products(limit=1)] == [1]


def test_top_products_rejects_non_positive_limit(tmp_path: Path):
    with pytest.raises(ValidationError):
        _seeded(tmp_path).top_products(limit=0)


def test_totals_between_is_half_open(tmp_path: Path):
    sales = _seeded(tmp_path)

    count, total = sales.sales_totals_between("2026-05-01", "2026-05-03")
    assert count == 1
    assert total == pytest.approx(78.65)

    count, total = sales.sales_totals_between("2026-04-01", "2026-06-01")
    assert count == 3
    assert total == pytest.approx(332.75)

    with pytest.raises(ValidationError):
        sales.sales_totals_between("2026-05-03", "2026-05-01")


def test_daily_totals_fill_quiet_days(tmp_path: Path):
    rows = _seeded(tmp_path).daily_sales_totals(days=7, today=date(2026, 5, 3))

    assert [d for d, _c, _t in rows] == [
        "2026-04-27", "2026-04-28", "2026-04-29", "2026-04-30", "2026-05-01", "2026-05-02", "2026-05-03",
    ]
    assert [c for _d, c, _t in rows] == [0, 1, 0, 0, 1, 0, 1]
    assert rows[-1][2] == pytest.approx(133.1)


def test_monthly_totals_oldest_first(tmp_path: Path):
    sales = _seeded(tmp_path)
    months = sales.monthly_sales_totals(months=6)

    assert [m for m, _t in months] == ["2026-04", "2026-05"]
    assert months[0][1] == pytest.approx(121.0)
    assert months[1][1] == pytest.approx(211.75)
    assert [m for m, _t in sales.monthly_sales_totals(months=1)] == ["2026-05"]
