"""Order aggregate builder and order queries."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable

from sqlalchemy import asc, select
from sqlalchemy.orm import Session

from ..core.errors import NotFound
from ..models.orders import Order, OrderItem
from ..services.notifier import ThresholdNotifier, fire
from ..services.transitions import ORDER_EFFECTS, OrderStatus, enter_status, parse_status, transition_row
from . import lines
from .parties import get_customer

logger = logging.getLogger("stockroom.orders")

ORDER_ITEM_LABEL = "Order item"


def get_order(db: Session, order_id: int) -> Order:
    order = db.get(Order, order_id)
    if not order:
        raise NotFound("Order", order_id)
    return order


def list_orders(db: Session, limit: int = 100, offset: int = 0) -> list[Order]:
    stmt = select(Order).order_by(Order.id).limit(limit).offset(offset)
    return db.execute(stmt).scalars().all()


def create_order(
    db: Session,
    *,
    customer_id: int,
    items: Iterable[Any],
    status: OrderStatus | str | None = None,
    order_date: datetime | None = None,
) -> Order:
    """Create an order and its lines as one unit.

    Prices are copied from the catalog onto every line and the order total is
    the sum of those line totals. Any failure (unknown customer or item, bad
    quantity) rolls back every row written by this call.
    """

    entries = lines.normalize_entries(items)
    initial = parse_status(status) if status is not None else OrderStatus.PENDING
    try:
        get_customer(db, customer_id)
        order = Order(customer_id=customer_id, total_amount=Decimal("0"))
        if order_date is not None:
            order.order_date = order_date
        enter_status(order, initial, ORDER_EFFECTS)
        db.add(order)
        db.flush()

        created = []
        for entry in entries:
            line = lines.snapshot_line(db, OrderItem, entry, order_id=order.id)
            db.add(line)
            created.append(line)
        db.flush()

        order.total_amount = lines.stored_total(created)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "order.created",
        extra={
            "extra_data": {
                "order_id": order.id,
                "customer_id": customer_id,
                "lines": len(created),
                "total_amount": str(order.total_amount),
            }
        },
    )
    return get_order(db, order.id)


def delete_order(db: Session, order_id: int) -> None:
    order = get_order(db, order_id)
    db.delete(order)
    db.commit()


def find_by_customer(db: Session, customer_id: int) -> list[Order]:
    stmt = select(Order).where(Order.customer_id == customer_id).order_by(Order.id)
    return db.execute(stmt).scalars().all()


def find_by_date_range(db: Session, start: datetime, end: datetime) -> list[Order]:
    stmt = select(Order).where(Order.order_date.between(start, end)).order_by(asc(Order.order_date), Order.id)
    return db.execute(stmt).scalars().all()


def find_by_status(db: Session, status: OrderStatus | str) -> list[Order]:
    stmt = select(Order).where(Order.status == parse_status(status).value).order_by(Order.id)
    return db.execute(stmt).scalars().all()


def find_by_total_amount(db: Session, minimum: Any = None, maximum: Any = None) -> list[Order]:
    """Both bounds: inclusive range. Only one: strict comparison. Neither: everything."""

    stmt = lines.bounded_total(select(Order), Order.total_amount, minimum, maximum)
    return db.execute(stmt.order_by(Order.id)).scalars().all()


def update_status(
    db: Session,
    order_id: int,
    status: OrderStatus | str,
    *,
    notifier: ThresholdNotifier | None = None,
    notify_user_id: int | None = None,
) -> Order:
    """Move an order to ``status``.

    Another session that already moved the order makes this raise
    ``InvalidTransition`` rather than overwrite its change.
    """

    order = get_order(db, order_id)
    previous = order.status
    try:
        changed = transition_row(db, Order, order, status, ORDER_EFFECTS, label="Order")
        if not changed:
            return order
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(order)
    logger.info(
        "order.status_changed",
        extra={"extra_data": {"order_id": order.id, "from": previous, "to": order.status}},
    )
    if notifier is not None:
        order_ref, new_status = order.id, order.status
        fire(lambda: notifier.notify_order_status(notify_user_id, order_ref, new_status), hook="order_status")
    return order


def calculate_order_total(db: Session, order_id: int) -> Decimal:
    """Recompute the total from the current lines; nothing is written."""

    return lines.live_total(get_order(db, order_id).items)


def refresh_order_total(db: Session, order_id: int) -> Order:
    """Persist the sum of line totals after lines were edited directly."""

    order = get_order(db, order_id)
    order.total_amount = lines.stored_total(order.items)
    db.commit()
    db.refresh(order)
    return order


def get_order_item(db: Session, item_id: int) -> OrderItem:
    return lines.get_line(db, OrderItem, ORDER_ITEM_LABEL, item_id)


def find_items_by_order(db: Session, order_id: int) -> list[OrderItem]:
    return lines.find_lines(db, OrderItem, order_id=order_id)


def find_items_by_inventory_item(db: Session, inventory_item_id: int) -> list[OrderItem]:
    return lines.find_lines(db, OrderItem, inventory_item_id=inventory_item_id)


def update_order_item(
    db: Session,
    item_id: int,
    *,
    quantity: int | None = None,
    unit_price: Any = None,
) -> OrderItem:
    """Edit one line. The order's stored total is not recomputed."""

    return lines.update_line(db, OrderItem, ORDER_ITEM_LABEL, item_id, quantity=quantity, unit_price=unit_price)


def calculate_item_subtotal(db: Session, item_id: int) -> Decimal:
    return lines.line_subtotal(get_order_item(db, item_id))


def delete_order_item(db: Session, item_id: int) -> None:
    line = get_order_item(db, item_id)
    db.delete(line)
    db.commit()
