"""Inventory ledger: append-only transactions and the running-balance fold."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import asc, desc, select
from sqlalchemy.orm import Session

from ..core.errors import NotFound, ValidationError, require_positive
from ..models.ledger import TRANSACTION_IN, TRANSACTION_OUT, InventoryTransaction
from .catalog import get_item

logger = logging.getLogger("stockroom.ledger")

CORRECTABLE_FIELDS = frozenset({"quantity", "type", "note"})


def _clean_type(value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("type is required for inventory transactions", details={"field": "type"})
    tag = value.strip()
    # IN/OUT are matched case-insensitively; anything else is kept verbatim.
    if tag.upper() in (TRANSACTION_IN, TRANSACTION_OUT):
        return tag.upper()
    return tag


def record_transaction(
    db: Session,
    *,
    inventory_item_id: int,
    quantity: int,
    type: str,
    note: str | None = None,
    user_id: int | None = None,
    commit: bool = True,
) -> InventoryTransaction:
    """Append one entry to the ledger.

    The catalog counter is not touched; ``services.stock.record_movement``
    does both in one transaction. With ``commit=False`` the row is only
    flushed so the caller can finish its own unit of work.
    """

    require_positive(quantity, "quantity")
    get_item(db, inventory_item_id)
    entry = InventoryTransaction(
        inventory_item_id=inventory_item_id,
        quantity=quantity,
        type=_clean_type(type),
        note=(note or "").strip() or None,
        user_id=user_id,
    )
    db.add(entry)
    if commit:
        db.commit()
        db.refresh(entry)
    else:
        db.flush()
    return entry


def get_transaction(db: Session, transaction_id: int) -> InventoryTransaction:
    entry = db.get(InventoryTransaction, transaction_id)
    if not entry:
        raise NotFound("Inventory transaction", transaction_id)
    return entry


def list_transactions(db: Session, limit: int = 100, offset: int = 0) -> list[InventoryTransaction]:
    """Fetch a page of ledger entries ordered by recency."""

    stmt = (
        select(InventoryTransaction)
        .order_by(desc(InventoryTransaction.created_at), desc(InventoryTransaction.id))
        .limit(limit)
        .offset(offset)
    )
    return db.execute(stmt).scalars().all()


def list_for_item(db: Session, inventory_item_id: int) -> list[InventoryTransaction]:
    """Every entry for one item, oldest first."""

    stmt = (
        select(InventoryTransaction)
        .where(InventoryTransaction.inventory_item_id == inventory_item_id)
        .order_by(asc(InventoryTransaction.created_at), asc(InventoryTransaction.id))
    )
    return db.execute(stmt).scalars().all()


def running_balance(db: Session, inventory_item_id: int) -> int:
    """Net stock for an item derived purely from its ledger history.

    ``IN`` adds, ``OUT`` subtracts, any other tag is skipped. The catalog
    counter is never consulted.
    """

    balance = 0
    for entry in list_for_item(db, inventory_item_id):
        if entry.type == TRANSACTION_IN:
            balance += entry.quantity
        elif entry.type == TRANSACTION_OUT:
            balance -= entry.quantity
    return balance


def find_by_date_range(db: Session, start: datetime, end: datetime) -> list[InventoryTransaction]:
    stmt = (
        select(InventoryTransaction)
        .where(InventoryTransaction.created_at.between(start, end))
        .order_by(asc(InventoryTransaction.created_at), asc(InventoryTransaction.id))
    )
    return db.execute(stmt).scalars().all()


def find_by_type(db: Session, type: str) -> list[InventoryTransaction]:
    stmt = (
        select(InventoryTransaction)
        .where(InventoryTransaction.type == _clean_type(type))
        .order_by(asc(InventoryTransaction.created_at), asc(InventoryTransaction.id))
    )
    return db.execute(stmt).scalars().all()


def transaction_history(
    db: Session, inventory_item_id: int, start: datetime, end: datetime
) -> list[InventoryTransaction]:
    """Entries for one item inside ``[start, end]``, newest first."""

    stmt = (
        select(InventoryTransaction)
        .where(
            InventoryTransaction.inventory_item_id == inventory_item_id,
            InventoryTransaction.created_at.between(start, end),
        )
        .order_by(desc(InventoryTransaction.created_at), desc(InventoryTransaction.id))
    )
    return db.execute(stmt).scalars().all()


def update_transaction(db: Session, transaction_id: int, payload: dict) -> InventoryTransaction:
    """Correct a mistyped entry.

    The catalog counter is left alone; run ``services.stock.reconcile_stock``
    afterwards to bring it back in line with the ledger.
    """

    entry = get_transaction(db, transaction_id)
    for key, value in payload.items():
        if key not in CORRECTABLE_FIELDS:
            continue
        if key == "quantity":
            require_positive(value, "quantity")
        elif key == "type":
            value = _clean_type(value)
        elif key == "note":
            value = (value or "").strip() or None
        setattr(entry, key, value)
    db.commit()
    db.refresh(entry)
    logger.info(
        "ledger.corrected",
        extra={"extra_data": {"transaction_id": entry.id, "item_id": entry.inventory_item_id}},
    )
    return entry


def delete_transaction(db: Session, transaction_id: int) -> None:
    entry = get_transaction(db, transaction_id)
    db.delete(entry)
    db.commit()
