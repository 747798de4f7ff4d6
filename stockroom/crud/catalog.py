"""Catalog store: inventory items and read-only projections over their stock."""

from __future__ import annotations

from typing import Any

from sqlalchemy import exists, or_, select
from sqlalchemy.orm import Session

from ..core.errors import NotFound, ValidationError
from ..core.money import to_decimal
from ..models.catalog import InventoryItem
from ..models.ledger import TRANSACTION_IN, InventoryTransaction
from ..models.orders import OrderItem
from ..models.purchasing import PurchaseOrderItem
from .parties import get_supplier

EDITABLE_FIELDS = frozenset(
    {
        "name",
        "description",
        "reorder_level",
        "reorder_quantity",
        "auto_reorder",
        "price",
        "unit_price",
        "supplier_id",
    }
)
STOCK_FIELDS = frozenset({"current_stock", "quantity"})
PRICE_FIELDS = ("price", "unit_price")
OPENING_BALANCE_NOTE = "Opening balance"


def _clean_price(field: str, value: Any):
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    amount = to_decimal(value)
    if amount is None or amount < 0:
        raise ValidationError(f"{field} must be a non-negative amount", details={"field": field})
    return amount


def _clean_count(field: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{field} must be a non-negative integer", details={"field": field})
    return value


def get_item(db: Session, item_id: int) -> InventoryItem:
    item = db.get(InventoryItem, item_id)
    if not item:
        raise NotFound("Inventory item", item_id)
    return item


def list_items(db: Session, limit: int = 100, offset: int = 0) -> list[InventoryItem]:
    stmt = select(InventoryItem).order_by(InventoryItem.id).limit(limit).offset(offset)
    return db.execute(stmt).scalars().all()


def create_item(db: Session, payload: dict) -> InventoryItem:
    """Add a catalog entry.

    A non-zero starting stock is written to the ledger as an ``IN`` entry in
    the same commit, so the item's ledger balance and counter start equal.
    """

    data = {k: v for k, v in payload.items() if k in EDITABLE_FIELDS or k in STOCK_FIELDS}
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required for inventory items", details={"field": "name"})
    data["name"] = name

    opening = data.pop("current_stock", None)
    if opening is None:
        opening = data.pop("quantity", 0)
    else:
        data.pop("quantity", None)
    opening = _clean_count("current_stock", opening)

    for key in PRICE_FIELDS:
        if key in data:
            data[key] = _clean_price(key, data[key])
    for key in ("reorder_level", "reorder_quantity"):
        if key in data and data[key] is not None:
            data[key] = _clean_count(key, data[key])
    if data.get("supplier_id") is not None:
        get_supplier(db, data["supplier_id"])

    item = InventoryItem(current_stock=opening, **data)
    db.add(item)
    if opening:
        db.flush()
        db.add(
            InventoryTransaction(
                inventory_item_id=item.id,
                quantity=opening,
                type=TRANSACTION_IN,
                note=OPENING_BALANCE_NOTE,
            )
        )
    db.commit()
    db.refresh(item)
    return item


def update_item(db: Session, item_id: int, payload: dict) -> InventoryItem:
    """Edit catalog fields in place.

    Unknown keys are ignored so stale clients do not break. Stock counters
    are refused; they only move through ``services.stock``.
    """

    item = get_item(db, item_id)
    touched = STOCK_FIELDS.intersection(payload)
    if touched:
        raise ValidationError(
            "Stock levels change only through stock adjustments",
            details={"fields": sorted(touched)},
        )
    for key, value in payload.items():
        if key not in EDITABLE_FIELDS:
            continue
        if key in PRICE_FIELDS:
            value = _clean_price(key, value)
        elif key in ("reorder_level", "reorder_quantity"):
            value = _clean_count(key, value)
        elif key == "supplier_id" and value is not None:
            get_supplier(db, value)
        elif key == "name":
            value = (value or "").strip()
            if not value:
                raise ValidationError("name is required for inventory items", details={"field": "name"})
        setattr(item, key, value)
    db.commit()
    db.refresh(item)
    return item


def delete_item(db: Session, item_id: int) -> None:
    """Remove an item that nothing references yet."""

    item = get_item(db, item_id)
    referenced = db.execute(
        select(
            or_(
                exists().where(InventoryTransaction.inventory_item_id == item_id),
                exists().where(OrderItem.inventory_item_id == item_id),
                exists().where(PurchaseOrderItem.inventory_item_id == item_id),
            )
        )
    ).scalar()
    if referenced:
        raise ValidationError(
            f"Inventory item {item_id} is referenced by transactions or orders",
            details={"id": item_id},
        )
    db.delete(item)
    db.commit()


def find_by_supplier(db: Session, supplier_id: int) -> list[InventoryItem]:
    stmt = select(InventoryItem).where(InventoryItem.supplier_id == supplier_id).order_by(InventoryItem.id)
    return db.execute(stmt).scalars().all()


def find_low_stock(db: Session, threshold: int) -> list[InventoryItem]:
    """Items with stock strictly below ``threshold``."""

    stmt = select(InventoryItem).where(InventoryItem.current_stock < threshold).order_by(InventoryItem.id)
    return db.execute(stmt).scalars().all()


def find_overstock(db: Session, threshold: int) -> list[InventoryItem]:
    """Items with stock strictly above ``threshold``."""

    stmt = select(InventoryItem).where(InventoryItem.current_stock > threshold).order_by(InventoryItem.id)
    return db.execute(stmt).scalars().all()


def find_out_of_stock(db: Session) -> list[InventoryItem]:
    stmt = select(InventoryItem).where(InventoryItem.current_stock == 0).order_by(InventoryItem.id)
    return db.execute(stmt).scalars().all()


def find_by_stock_range(db: Session, minimum: int, maximum: int) -> list[InventoryItem]:
    """Items whose stock lies in ``[minimum, maximum]``."""

    stmt = (
        select(InventoryItem)
        .where(InventoryItem.current_stock.between(minimum, maximum))
        .order_by(InventoryItem.id)
    )
    return db.execute(stmt).scalars().all()


def find_below_reorder_level(db: Session) -> list[InventoryItem]:
    stmt = (
        select(InventoryItem)
        .where(InventoryItem.current_stock < InventoryItem.reorder_level)
        .order_by(InventoryItem.id)
    )
    return db.execute(stmt).scalars().all()
