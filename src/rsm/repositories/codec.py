"""Plain-dict encoding shared by the SQLite JSON columns and the HTTP entity API.

Stock shapes are written in the flat record layout the catalog uses
(``stock_mode``, ``stock``, ``stock_by_store``, ``store_groups``). When
decoding, only the fields of the declared ``stock_mode`` are read.
"""
from __future__ import annotations

from typing import Any, Optional

from rsm.domain.models import (
    Channel,
    Customer,
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    IvaBreakdown,
    PaymentMethod,
    Product,
    Sale,
    SaleItem,
    SaleStatus,
    Store,
    StoreType,
    Variant,
)
from rsm.domain.stock import GroupStock, StockLevel, StockMode, StoreBucket, StoreGroup, StoreStock, UniqueStock


def _opt_int(v) -> Optional[int]:
    return int(v) if v is not None else None


# ---------- Stock ----------
def stock_level_to_dict(level: StockLevel) -> dict[str, Any]:
    out: dict[str, Any] = {"stock_mode": level.mode.value, "stock": level.total}
    if isinstance(level, StoreStock):
        out["stock_by_store"] = [{"store_id": b.store_id, "stock": b.stock} for b in level.buckets]
    elif isinstance(level, GroupStock):
        out["store_groups"] = [
            {"name": g.name, "store_ids": sorted(g.store_ids), "stock": g.stock} for g in level.groups
        ]
    return out


def stock_level_from_dict(data: dict[str, Any]) -> StockLevel:
    mode = StockMode(data.get("stock_mode") or StockMode.UNIQUE.value)
    if mode is StockMode.UNIQUE:
        return UniqueStock(stock=int(data.get("stock") or 0))
    if mode is StockMode.BY_STORE:
        return StoreStock(
            buckets=tuple(
                StoreBucket(store_id=int(b["store_id"]), stock=int(b.get("stock") or 0))
                for b in data.get("stock_by_store") or []
            )
        )
    return GroupStock(
        groups=tuple(
            StoreGroup(
                name=str(g.get("name", "")),
                store_ids=frozenset(int(s) for s in g.get("store_ids") or []),
                stock=int(g.get("stock") or 0),
            )
            for g in data.get("store_groups") or []
        )
    )


# ---------- Catalog ----------
def variant_to_dict(v: Variant) -> dict[str, Any]:
    out = {
        "attributes": {k: val for k, val in v.attributes},
        "price_adjustment": float(v.price_adjustment),
        "sku": v.sku,
        "barcode": v.barcode,
        "image_url": v.image_url,
    }
    out.update(stock_level_to_dict(v.stock_level))
    return out


def variant_from_dict(data: dict[str, Any]) -> Variant:
    return Variant(
        attributes=tuple((str(k), str(val)) for k, val in (data.get("attributes") or {}).items()),
        price_adjustment=float(data.get("price_adjustment") or 0.0),
        stock_level=stock_level_from_dict(data),
        sku=data.get("sku") or None,
        barcode=data.get("barcode") or None,
        image_url=data.get("image_url") or None,
    )


def product_to_dict(p: Product) -> dict[str, Any]:
    out = {
        "id": p.id,
        "name": p.name,
        "price": float(p.price),
        "iva_rate": float(p.iva_rate),
        "sku": p.sku,
        "barcode": p.barcode,
        "image_url": p.image_url,
        "category": p.category,
        "description": p.description,
        "min_stock": int(p.min_stock),
        "is_active": bool(p.is_active),
        "has_variants": p.has_variants,
        "variants": [variant_to_dict(v) for v in p.variants],
        "physical_stores": sorted(p.physical_stores),
        "online_stores": sorted(p.online_stores),
        "version": int(p.version),
    }
    out.update(stock_level_to_dict(p.stock_level))
    # Aggregate shown to list/sort queries; includes variants.
    out["stock"] = p.stock
    return out


def product_from_dict(data: dict[str, Any]) -> Product:
    variants = tuple(variant_from_dict(v) for v in data.get("variants") or [])
    if not data.get("has_variants", bool(variants)):
        variants = ()
    return Product(
        id=int(data["id"]),
        name=str(data.get("name", "")),
        price=float(data.get("price") or 0.0),
        iva_rate=float(data.get("iva_rate") or 0.0),
        sku=str(data.get("sku") or ""),
        barcode=str(data.get("barcode") or ""),
        image_url=str(data.get("image_url") or ""),
        category=str(data.get("category") or ""),
        description=str(data.get("description") or ""),
        min_stock=int(data.get("min_stock") or 0),
        is_active=bool(data.get("is_active", True)),
        stock_level=stock_level_from_dict(data),
        variants=variants,
        physical_stores=frozenset(int(s) for s in data.get("physical_stores") or []),
        online_stores=frozenset(int(s) for s in data.get("online_stores") or []),
        version=int(data.get("version") or 0),
    )


def store_to_dict(s: Store) -> dict[str, Any]:
    return {
        "id": s.id,
        "name": s.name,
        "store_type": s.store_type.value,
        "is_active": bool(s.is_active),
        "city": s.city,
        "address": s.address,
    }


def store_from_dict(data: dict[str, Any]) -> Store:
    return Store(
        id=int(data["id"]),
        name=str(data.get("name", "")),
        store_type=StoreType(data.get("store_type")),
        is_active=bool(data.get("is_active", True)),
        city=str(data.get("city") or ""),
        address=str(data.get("address") or ""),
    )


def customer_to_dict(c: Customer) -> dict[str, Any]:
    return {
        "id": c.id,
        "name": c.name,
        "dni_cif": c.dni_cif,
        "email": c.email,
        "phone": c.phone,
        "address": c.address,
        "total_purchases": float(c.total_purchases),
        "purchase_count": int(c.purchase_count),
    }


def customer_from_dict(data: dict[str, Any]) -> Customer:
    return Customer(
        id=int(data["id"]),
        name=str(data.get("name", "")),
        dni_cif=str(data.get("dni_cif") or ""),
        email=str(data.get("email") or ""),
        phone=str(data.get("phone") or ""),
        address=str(data.get("address") or ""),
        total_purchases=float(data.get("total_purchases") or 0.0),
        purchase_count=int(data.get("purchase_count") or 0),
    )


# ---------- Sales ----------
def sale_item_to_dict(it: SaleItem) -> dict[str, Any]:
    return {
        "product_id": it.product_id,
        "variant_index": it.variant_index,
        "product_name": it.product_name,
        "sku": it.sku,
        "quantity": int(it.quantity),
        "price": float(it.price),
        "iva_rate": float(it.iva_rate),
        "subtotal": float(it.subtotal),
    }


def sale_item_from_dict(data: dict[str, Any]) -> SaleItem:
    return SaleItem(
        product_id=int(data["product_id"]),
        variant_index=_opt_int(data.get("variant_index")),
        product_name=str(data.get("product_name", "")),
        sku=str(data.get("sku") or ""),
        quantity=int(data["quantity"]),
        price=float(data["price"]),
        iva_rate=float(data.get("iva_rate") or 0.0),
        subtotal=float(data["subtotal"]),
    )


def sale_to_dict(s: Sale) -> dict[str, Any]:
    return {
        "id": s.id,
        "sale_number": s.sale_number,
        "sale_date": s.sale_date,
        "channel": s.channel.value,
        "store_id": s.store_id,
        "items": [sale_item_to_dict(it) for it in s.items],
        "subtotal": float(s.subtotal),
        "total_iva": float(s.total_iva),
        "discount": float(s.discount),
        "total": float(s.total),
        "payment_method": s.payment_method.value,
        "status": s.status.value,
        "customer_id": s.customer_id,
        "customer_name": s.customer_name,
        "customer_email": s.customer_email,
    }


def sale_from_dict(data: dict[str, Any]) -> Sale:
    return Sale(
        id=_opt_int(data.get("id")),
        sale_number=str(data["sale_number"]),
        sale_date=str(data.get("sale_date", "")),
        channel=Channel(data["channel"]),
        store_id=_opt_int(data.get("store_id")),
        items=tuple(sale_item_from_dict(it) for it in data.get("items") or []),
        subtotal=float(data.get("subtotal") or 0.0),
        total_iva=float(data.get("total_iva") or 0.0),
        discount=float(data.get("discount") or 0.0),
        total=float(data.get("total") or 0.0),
        payment_method=PaymentMethod(data["payment_method"]),
        status=SaleStatus(data.get("status") or SaleStatus.COMPLETED.value),
        customer_id=_opt_int(data.get("customer_id")),
        customer_name=str(data.get("customer_name") or ""),
        customer_email=str(data.get("customer_email") or ""),
    )


def invoice_to_dict(inv: Invoice) -> dict[str, Any]:
    return {
        "id": inv.id,
        "invoice_number": inv.invoice_number,
        "sale_id": inv.sale_id,
        "sale_number": inv.sale_number,
        "invoice_date": inv.invoice_date,
        "store_id": inv.store_id,
        "items": [
            {
                "description": it.description,
                "quantity": int(it.quantity),
                "price": float(it.price),
                "iva_rate": float(it.iva_rate),
                "subtotal": float(it.subtotal),
            }
            for it in inv.items
        ],
        "iva_breakdown": [{"iva_rate": b.iva_rate, "base": b.base, "iva": b.iva} for b in inv.iva_breakdown],
        "base_imponible": float(inv.base_imponible),
        "total_iva": float(inv.total_iva),
        "total": float(inv.total),
        "payment_method": inv.payment_method.value,
        "status": inv.status.value,
        "customer_id": inv.customer_id,
        "customer_name": inv.customer_name,
        "customer_dni_cif": inv.customer_dni_cif,
        "customer_address": inv.customer_address,
    }


def invoice_from_dict(data: dict[str, Any]) -> Invoice:
    return Invoice(
        id=_opt_int(data.get("id")),
        invoice_number=str(data["invoice_number"]),
        sale_id=_opt_int(data.get("sale_id")),
        sale_number=str(data.get("sale_number") or ""),
        invoice_date=str(data.get("invoice_date", "")),
        store_id=_opt_int(data.get("store_id")),
        items=tuple(
            InvoiceItem(
                description=str(it.get("description", "")),
                quantity=int(it["quantity"]),
                price=float(it["price"]),
                iva_rate=float(it.get("iva_rate") or 0.0),
                subtotal=float(it["subtotal"]),
            )
            for it in data.get("items") or []
        ),
        iva_breakdown=tuple(
            IvaBreakdown(iva_rate=float(b["iva_rate"]), base=float(b["base"]), iva=float(b["iva"]))
            for b in data.get("iva_breakdown") or []
        ),
        base_imponible=float(data.get("base_imponible") or 0.0),
        total_iva=float(data.get("total_iva") or 0.0),
        total=float(data.get("total") or 0.0),
        payment_method=PaymentMethod(data["payment_method"]),
        status=InvoiceStatus(data.get("status") or InvoiceStatus.ISSUED.value),
        customer_id=_opt_int(data.get("customer_id")),
        customer_name=str(data.get("customer_name") or ""),
        customer_dni_cif=str(data.get("customer_dni_cif") or ""),
        customer_address=str(data.get("customer_address") or ""),
    )
