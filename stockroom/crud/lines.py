"""Line-item helpers shared by orders and purchase orders.

Both aggregates copy the catalog price onto each line when it is created and
keep ``total_price == quantity * unit_price`` on every later edit. Neither
helper here touches the parent's ``total_amount``; see ``refresh_total``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable, Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.errors import NotFound, ValidationError, require_positive
from ..core.money import line_total, sum_money, to_decimal
from ..models.catalog import InventoryItem


def _field(entry: Any, name: str, default: Any = None) -> Any:
    if isinstance(entry, Mapping):
        return entry.get(name, default)
    return getattr(entry, name, default)


def normalize_entries(entries: Iterable[Any] | None, *, allow_unit_price: bool = False) -> list[dict]:
    """Validate requested lines before anything is written.

    Each entry is a mapping or object with ``inventory_item_id`` and
    ``quantity``; purchase orders may also carry a quoted ``unit_price``.
    """

    cleaned: list[dict] = []
    for entry in entries or ():
        item_id = _field(entry, "inventory_item_id")
        if item_id is None:
            raise ValidationError("inventory_item_id is required for each line", details={"field": "inventory_item_id"})
        quantity = _field(entry, "quantity")
        if not isinstance(quantity, int):
            raise ValidationError("quantity must be a whole number", details={"field": "quantity"})
        require_positive(quantity, "quantity")
        line = {"inventory_item_id": item_id, "quantity": quantity, "unit_price": None}
        quoted = _field(entry, "unit_price") if allow_unit_price else None
        if quoted is not None:
            amount = to_decimal(quoted)
            if amount is None:
                raise ValidationError("unit_price must be a number", details={"field": "unit_price"})
            require_positive(amount, "unit_price")
            line["unit_price"] = amount
        cleaned.append(line)
    if not cleaned:
        raise ValidationError("At least one line item is required", details={"field": "items"})
    return cleaned


def snapshot_line(db: Session, line_cls: type, entry: dict, **parent: Any):
    """Build a line for ``entry`` with the catalog prices as they are right now."""

    item_id = entry["inventory_item_id"]
    item = db.get(InventoryItem, item_id)
    if not item:
        raise NotFound("Inventory item", item_id, f"Inventory item {item_id} not found")
    unit_price = entry.get("unit_price") or item.costing_price
    if unit_price is None or unit_price <= 0:
        raise ValidationError(
            f"Inventory item {item_id} has no positive unit price",
            details={"inventory_item_id": item_id},
        )
    unit_price = Decimal(unit_price)
    list_price = Decimal(item.price) if item.price is not None else unit_price
    return line_cls(
        inventory_item_id=item_id,
        quantity=entry["quantity"],
        unit_price=unit_price,
        price=list_price,
        total_price=line_total(entry["quantity"], unit_price),
        **parent,
    )


def get_line(db: Session, line_cls: type, label: str, line_id: int):
    line = db.get(line_cls, line_id)
    if not line:
        raise NotFound(label, line_id)
    return line


def find_lines(db: Session, line_cls: type, **criteria: Any) -> list:
    stmt = select(line_cls).filter_by(**criteria).order_by(line_cls.id)
    return db.execute(stmt).scalars().all()


def update_line(
    db: Session,
    line_cls: type,
    label: str,
    line_id: int,
    *,
    quantity: int | None = None,
    unit_price: Any = None,
):
    """Change a line's quantity and/or unit price, re-deriving ``total_price``."""

    line = get_line(db, line_cls, label, line_id)
    if quantity is not None:
        if not isinstance(quantity, int):
            raise ValidationError("quantity must be a whole number", details={"field": "quantity"})
        require_positive(quantity, "quantity")
        line.quantity = quantity
    if unit_price is not None:
        amount = to_decimal(unit_price)
        if amount is None:
            raise ValidationError("unit_price must be a number", details={"field": "unit_price"})
        require_positive(amount, "unit_price")
        line.unit_price = amount
    line.total_price = line_total(line.quantity, Decimal(line.unit_price))
    db.commit()
    db.refresh(line)
    return line


def line_subtotal(line) -> Decimal:
    return line_total(line.quantity, Decimal(line.unit_price))


def live_total(lines: Iterable) -> Decimal:
    """Sum of ``quantity * unit_price`` over the lines as they are now."""

    return sum_money(line_subtotal(line) for line in lines)


def stored_total(lines: Iterable) -> Decimal:
    """Sum of the persisted ``total_price`` values."""

    return sum_money(Decimal(line.total_price) for line in lines)


def bounded_total(stmt, column, minimum: Any = None, maximum: Any = None):
    """Apply the total-amount filter: both bounds inclusive, one bound strict."""

    if minimum is not None and maximum is not None:
        return stmt.where(column.between(minimum, maximum))
    if minimum is not None:
        return stmt.where(column > minimum)
    if maximum is not None:
        return stmt.where(column < maximum)
    return stmt
