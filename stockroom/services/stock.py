"""Stock adjuster: the only code path that writes ``current_stock``.

Stock is changed with a single conditional UPDATE so two concurrent
subtractions cannot both pass the availability check. A subtraction that
matches no row is reported as ``InsufficientStock`` (or ``NotFound`` when the
item does not exist).

The ledger is the source of truth. ``record_movement`` appends the ledger
entry and moves the counter in one transaction; ``reconcile_stock`` rebuilds
the counter from the ledger when the two have drifted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..core.errors import InsufficientStock, NotFound, ValidationError, require_positive
from ..core.logging import bind_log_context
from ..crud.catalog import get_item
from ..crud.ledger import record_transaction, running_balance
from ..models.catalog import InventoryItem
from ..models.ledger import TRANSACTION_IN, TRANSACTION_OUT, InventoryTransaction
from .notifier import ThresholdNotifier, fire

logger = logging.getLogger("stockroom.stock")


class Direction(str, Enum):
    ADD = "add"
    SUBTRACT = "subtract"


def parse_direction(value: Any) -> Direction:
    if isinstance(value, Direction):
        return value
    if isinstance(value, str):
        try:
            return Direction(value.strip().lower())
        except ValueError:
            pass
    raise ValidationError(f"Unknown stock direction: {value!r}", details={"direction": str(value)})


@dataclass
class StockMovement:
    item: InventoryItem
    transaction: InventoryTransaction
    alerted: bool = False


def adjust_stock(
    db: Session,
    item_id: int,
    quantity: int,
    direction: Direction | str,
    *,
    commit: bool = True,
) -> InventoryItem:
    """Add to or subtract from an item's stock counter.

    No ledger entry is written here. With ``commit=False`` the UPDATE runs
    inside the caller's open transaction.
    """

    require_positive(quantity, "quantity")
    direction = parse_direction(direction)

    stmt = update(InventoryItem).where(InventoryItem.id == item_id)
    if direction is Direction.ADD:
        stmt = stmt.values(current_stock=InventoryItem.current_stock + quantity)
    else:
        stmt = stmt.where(InventoryItem.current_stock >= quantity).values(
            current_stock=InventoryItem.current_stock - quantity
        )
    result = db.execute(stmt.execution_options(synchronize_session=False))

    if result.rowcount == 0:
        item = db.get(InventoryItem, item_id, populate_existing=True)
        if item is None:
            raise NotFound("Inventory item", item_id)
        raise InsufficientStock(item_id, quantity, item.current_stock)

    if commit:
        db.commit()
    item = db.get(InventoryItem, item_id, populate_existing=True)
    logger.info(
        "stock.adjusted",
        extra={
            "extra_data": {
                "item_id": item_id,
                "direction": direction.value,
                "quantity": quantity,
                "current_stock": item.current_stock,
            }
        },
    )
    return item


def check_reorder(item: InventoryItem, notifier: ThresholdNotifier, user_id: int | None = None) -> bool:
    """Fire the low-stock hook when stock sits strictly below the reorder level.

    Returns ``True`` only when the hook was called and completed.
    """

    if not item.below_reorder_level:
        return False
    name, stock, level = item.name, item.current_stock, item.reorder_level
    return fire(lambda: notifier.notify_low_stock(user_id, name, stock, level), hook="low_stock")


def record_movement(
    db: Session,
    item_id: int,
    quantity: int,
    direction: Direction | str,
    *,
    note: str | None = None,
    user_id: int | None = None,
    notifier: ThresholdNotifier | None = None,
    notify_user_id: int | None = None,
) -> StockMovement:
    """Append a ledger entry and move the counter as one unit of work."""

    direction = parse_direction(direction)
    with bind_log_context(user_id=user_id):
        try:
            adjust_stock(db, item_id, quantity, direction, commit=False)
            entry = record_transaction(
                db,
                inventory_item_id=item_id,
                quantity=quantity,
                type=TRANSACTION_IN if direction is Direction.ADD else TRANSACTION_OUT,
                note=note,
                user_id=user_id,
                commit=False,
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(entry)
        item = get_item(db, item_id)
        movement = StockMovement(item=item, transaction=entry)
        if notifier is not None:
            movement.alerted = check_reorder(item, notifier, notify_user_id)
    return movement


def stock_drift(db: Session, item_id: int) -> int:
    """Cached counter minus ledger balance; zero when they agree."""

    item = get_item(db, item_id)
    return item.current_stock - running_balance(db, item_id)


def reconcile_stock(db: Session, item_id: int) -> InventoryItem:
    """Overwrite the cached counter with the ledger balance."""

    item = get_item(db, item_id)
    balance = running_balance(db, item_id)
    if balance < 0:
        raise ValidationError(
            f"Ledger balance for inventory item {item_id} is negative",
            details={"item_id": item_id, "balance": balance},
        )
    drift = item.current_stock - balance
    if not drift:
        return item
    logger.warning(
        "stock.drift",
        extra={
            "extra_data": {
                "item_id": item_id,
                "cached": item.current_stock,
                "ledger": balance,
                "drift": drift,
            }
        },
    )
    db.execute(
        update(InventoryItem)
        .where(InventoryItem.id == item_id)
        .values(current_stock=balance)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return db.get(InventoryItem, item_id, populate_existing=True)
