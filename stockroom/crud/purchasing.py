"""Purchase order aggregate builder, receiving and pending-supply analytics."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable

from sqlalchemy import asc, func, select
from sqlalchemy.orm import Session

from ..core.clock import utcnow
from ..core.errors import InvalidTransition, NotFound
from ..core.logging import bind_log_context
from ..models.ledger import TRANSACTION_IN
from ..models.purchasing import PurchaseOrder, PurchaseOrderItem
from ..services.notifier import ThresholdNotifier, fire
from ..services.stock import Direction, adjust_stock
from ..services.transitions import (
    PURCHASE_ORDER_EFFECTS,
    OrderStatus,
    enter_status,
    parse_status,
    transition_row,
)
from . import lines
from .ledger import record_transaction
from .parties import get_supplier

logger = logging.getLogger("stockroom.purchasing")

PURCHASE_ORDER_ITEM_LABEL = "Purchase order item"


def get_purchase_order(db: Session, purchase_order_id: int) -> PurchaseOrder:
    purchase_order = db.get(PurchaseOrder, purchase_order_id)
    if not purchase_order:
        raise NotFound("Purchase order", purchase_order_id)
    return purchase_order


def list_purchase_orders(db: Session, limit: int = 100, offset: int = 0) -> list[PurchaseOrder]:
    stmt = select(PurchaseOrder).order_by(PurchaseOrder.id).limit(limit).offset(offset)
    return db.execute(stmt).scalars().all()


def create_purchase_order(
    db: Session,
    *,
    supplier_id: int,
    items: Iterable[Any],
    status: OrderStatus | str | None = None,
    expected_delivery_date: datetime | None = None,
    order_date: datetime | None = None,
) -> PurchaseOrder:
    """Create a purchase order and its lines as one unit.

    Lines take the catalog price unless the entry carries a supplier-quoted
    ``unit_price``. Creating directly as Completed stamps ``received_date``.
    """

    entries = lines.normalize_entries(items, allow_unit_price=True)
    initial = parse_status(status) if status is not None else OrderStatus.PENDING
    try:
        get_supplier(db, supplier_id)
        purchase_order = PurchaseOrder(
            supplier_id=supplier_id,
            total_amount=Decimal("0"),
            expected_delivery_date=expected_delivery_date,
        )
        if order_date is not None:
            purchase_order.order_date = order_date
        enter_status(purchase_order, initial, PURCHASE_ORDER_EFFECTS)
        db.add(purchase_order)
        db.flush()

        created = []
        for entry in entries:
            line = lines.snapshot_line(db, PurchaseOrderItem, entry, purchase_order_id=purchase_order.id)
            db.add(line)
            created.append(line)
        db.flush()

        purchase_order.total_amount = lines.stored_total(created)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "purchase_order.created",
        extra={
            "extra_data": {
                "purchase_order_id": purchase_order.id,
                "supplier_id": supplier_id,
                "lines": len(created),
                "total_amount": str(purchase_order.total_amount),
            }
        },
    )
    return get_purchase_order(db, purchase_order.id)


def delete_purchase_order(db: Session, purchase_order_id: int) -> None:
    purchase_order = get_purchase_order(db, purchase_order_id)
    db.delete(purchase_order)
    db.commit()


def find_by_supplier(db: Session, supplier_id: int) -> list[PurchaseOrder]:
    stmt = select(PurchaseOrder).where(PurchaseOrder.supplier_id == supplier_id).order_by(PurchaseOrder.id)
    return db.execute(stmt).scalars().all()


def find_by_date_range(db: Session, start: datetime, end: datetime) -> list[PurchaseOrder]:
    stmt = (
        select(PurchaseOrder)
        .where(PurchaseOrder.order_date.between(start, end))
        .order_by(asc(PurchaseOrder.order_date), PurchaseOrder.id)
    )
    return db.execute(stmt).scalars().all()


def find_by_status(db: Session, status: OrderStatus | str) -> list[PurchaseOrder]:
    stmt = select(PurchaseOrder).where(PurchaseOrder.status == parse_status(status).value).order_by(PurchaseOrder.id)
    return db.execute(stmt).scalars().all()


def find_pending_orders(db: Session) -> list[PurchaseOrder]:
    """Pending purchase orders, oldest order date first."""

    stmt = (
        select(PurchaseOrder)
        .where(PurchaseOrder.status == OrderStatus.PENDING.value)
        .order_by(asc(PurchaseOrder.order_date), PurchaseOrder.id)
    )
    return db.execute(stmt).scalars().all()


def find_overdue_orders(db: Session, now: datetime | None = None) -> list[PurchaseOrder]:
    """Pending purchase orders expected strictly before ``now``, earliest first."""

    cutoff = now or utcnow()
    stmt = (
        select(PurchaseOrder)
        .where(
            PurchaseOrder.status == OrderStatus.PENDING.value,
            PurchaseOrder.expected_delivery_date.is_not(None),
            PurchaseOrder.expected_delivery_date < cutoff,
        )
        .order_by(asc(PurchaseOrder.expected_delivery_date), PurchaseOrder.id)
    )
    return db.execute(stmt).scalars().all()


def update_status(
    db: Session,
    purchase_order_id: int,
    status: OrderStatus | str,
    *,
    notifier: ThresholdNotifier | None = None,
    notify_user_id: int | None = None,
) -> PurchaseOrder:
    """Move a purchase order to ``status``; entering Completed stamps ``received_date``."""

    purchase_order = get_purchase_order(db, purchase_order_id)
    previous = purchase_order.status
    try:
        changed = transition_row(
            db, PurchaseOrder, purchase_order, status, PURCHASE_ORDER_EFFECTS, label="Purchase order"
        )
        if not changed:
            return purchase_order
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(purchase_order)
    logger.info(
        "purchase_order.status_changed",
        extra={"extra_data": {"purchase_order_id": purchase_order.id, "from": previous, "to": purchase_order.status}},
    )
    _notify_status(purchase_order, notifier, notify_user_id)
    return purchase_order


def _notify_status(purchase_order: PurchaseOrder, notifier: ThresholdNotifier | None, user_id: int | None) -> None:
    if notifier is None:
        return
    order_ref, new_status = purchase_order.id, purchase_order.status
    fire(lambda: notifier.notify_order_status(user_id, order_ref, new_status), hook="order_status")


def receive_purchase_order(
    db: Session,
    purchase_order_id: int,
    *,
    user_id: int | None = None,
    notifier: ThresholdNotifier | None = None,
    notify_user_id: int | None = None,
) -> PurchaseOrder:
    """Book every line into stock and complete the purchase order.

    Each line becomes an ``IN`` ledger entry plus a counter increase; the
    status change and all stock writes commit together or not at all. The
    lines are booked only after this session has moved the row out of
    Pending, so a purchase order is never received twice.
    """

    purchase_order = get_purchase_order(db, purchase_order_id)
    with bind_log_context(purchase_order_id=purchase_order_id, user_id=user_id):
        try:
            if not transition_row(
                db,
                PurchaseOrder,
                purchase_order,
                OrderStatus.COMPLETED,
                PURCHASE_ORDER_EFFECTS,
                label="Purchase order",
            ):
                raise InvalidTransition(purchase_order.status, OrderStatus.COMPLETED.value)
            for line in purchase_order.items:
                adjust_stock(db, line.inventory_item_id, line.quantity, Direction.ADD, commit=False)
                record_transaction(
                    db,
                    inventory_item_id=line.inventory_item_id,
                    quantity=line.quantity,
                    type=TRANSACTION_IN,
                    note=f"Received on purchase order #{purchase_order.id}",
                    user_id=user_id,
                    commit=False,
                )
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(purchase_order)
        logger.info("purchase_order.received", extra={"extra_data": {"lines": len(purchase_order.items)}})
    _notify_status(purchase_order, notifier, notify_user_id)
    return purchase_order


def calculate_total(db: Session, purchase_order_id: int) -> Decimal:
    """Recompute the total from the current lines; nothing is written."""

    return lines.live_total(get_purchase_order(db, purchase_order_id).items)


def refresh_total(db: Session, purchase_order_id: int) -> PurchaseOrder:
    purchase_order = get_purchase_order(db, purchase_order_id)
    purchase_order.total_amount = lines.stored_total(purchase_order.items)
    db.commit()
    db.refresh(purchase_order)
    return purchase_order


def get_purchase_order_item(db: Session, item_id: int) -> PurchaseOrderItem:
    return lines.get_line(db, PurchaseOrderItem, PURCHASE_ORDER_ITEM_LABEL, item_id)


def find_items_by_purchase_order(db: Session, purchase_order_id: int) -> list[PurchaseOrderItem]:
    return lines.find_lines(db, PurchaseOrderItem, purchase_order_id=purchase_order_id)


def find_items_by_inventory_item(db: Session, inventory_item_id: int) -> list[PurchaseOrderItem]:
    return lines.find_lines(db, PurchaseOrderItem, inventory_item_id=inventory_item_id)


def update_purchase_order_item(
    db: Session,
    item_id: int,
    *,
    quantity: int | None = None,
    unit_price: Any = None,
) -> PurchaseOrderItem:
    return lines.update_line(
        db,
        PurchaseOrderItem,
        PURCHASE_ORDER_ITEM_LABEL,
        item_id,
        quantity=quantity,
        unit_price=unit_price,
    )


def calculate_item_subtotal(db: Session, item_id: int) -> Decimal:
    return lines.line_subtotal(get_purchase_order_item(db, item_id))


def delete_purchase_order_item(db: Session, item_id: int) -> None:
    line = get_purchase_order_item(db, item_id)
    db.delete(line)
    db.commit()


def find_pending_items_by_inventory_item(db: Session, inventory_item_id: int) -> list[PurchaseOrderItem]:
    """Lines for one inventory item that sit on Pending purchase orders."""

    stmt = (
        select(PurchaseOrderItem)
        .join(PurchaseOrder, PurchaseOrder.id == PurchaseOrderItem.purchase_order_id)
        .where(
            PurchaseOrderItem.inventory_item_id == inventory_item_id,
            PurchaseOrder.status == OrderStatus.PENDING.value,
        )
        .order_by(PurchaseOrderItem.id)
    )
    return db.execute(stmt).scalars().all()


def get_total_pending_quantity(db: Session, inventory_item_id: int) -> int:
    """Units of an item still on order; 0 when nothing is pending."""

    stmt = (
        select(func.coalesce(func.sum(PurchaseOrderItem.quantity), 0))
        .join(PurchaseOrder, PurchaseOrder.id == PurchaseOrderItem.purchase_order_id)
        .where(
            PurchaseOrderItem.inventory_item_id == inventory_item_id,
            PurchaseOrder.status == OrderStatus.PENDING.value,
        )
    )
    return int(db.execute(stmt).scalar() or 0)
