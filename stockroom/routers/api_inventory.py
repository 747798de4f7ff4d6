from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..core.clock import as_utc_naive
from ..core.config import settings
from ..crud import catalog, ledger
from ..crud.purchasing import get_total_pending_quantity
from ..db.session import get_db
from ..deps.hooks import get_notifier
from ..schemas.inventory import (
    InventoryItemCreate,
    InventoryItemOut,
    InventoryItemUpdate,
    StockAdjustment,
    StockBalanceOut,
    TransactionCreate,
    TransactionOut,
    TransactionUpdate,
)
from ..services import stock
from ..services.notifier import ThresholdNotifier

router = APIRouter(prefix="/api/v1/inventory", tags=["inventory"])


@router.get("/items", response_model=list[InventoryItemOut])
def api_list_items(
    low_stock_below: Optional[int] = None,
    overstock_above: Optional[int] = None,
    out_of_stock: bool = False,
    below_reorder_level: bool = False,
    min_stock: Optional[int] = None,
    max_stock: Optional[int] = None,
    supplier_id: Optional[int] = None,
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    if low_stock_below is not None:
        return catalog.find_low_stock(db, low_stock_below)
    if overstock_above is not None:
        return catalog.find_overstock(db, overstock_above)
    if out_of_stock:
        return catalog.find_out_of_stock(db)
    if below_reorder_level:
        return catalog.find_below_reorder_level(db)
    if min_stock is not None or max_stock is not None:
        if min_stock is None or max_stock is None:
            raise HTTPException(status_code=400, detail="min_stock and max_stock must be given together")
        return catalog.find_by_stock_range(db, min_stock, max_stock)
    if supplier_id is not None:
        return catalog.find_by_supplier(db, supplier_id)
    return catalog.list_items(db, limit=limit, offset=offset)


@router.post("/items", response_model=InventoryItemOut, status_code=201)
def api_create_item(payload: InventoryItemCreate, db: Session = Depends(get_db)):
    return catalog.create_item(db, payload.model_dump())


@router.get("/items/{item_id}", response_model=InventoryItemOut)
def api_get_item(item_id: int, db: Session = Depends(get_db)):
    return catalog.get_item(db, item_id)


@router.patch("/items/{item_id}", response_model=InventoryItemOut)
def api_update_item(item_id: int, payload: InventoryItemUpdate, db: Session = Depends(get_db)):
    return catalog.update_item(db, item_id, payload.model_dump(exclude_unset=True))


@router.delete("/items/{item_id}")
def api_delete_item(item_id: int, db: Session = Depends(get_db)):
    catalog.delete_item(db, item_id)
    return {"status": "deleted"}


@router.post("/items/{item_id}/adjust", response_model=InventoryItemOut)
def api_adjust_stock(
    item_id: int,
    payload: StockAdjustment,
    db: Session = Depends(get_db),
    notifier: ThresholdNotifier = Depends(get_notifier),
):
    recipient = payload.notify_user_id or settings.LOW_STOCK_NOTIFY_USER_ID
    if not payload.record:
        item = stock.adjust_stock(db, item_id, payload.quantity, payload.direction)
        stock.check_reorder(item, notifier, recipient)
        return item
    movement = stock.record_movement(
        db,
        item_id,
        payload.quantity,
        payload.direction,
        note=payload.note,
        user_id=payload.user_id,
        notifier=notifier,
        notify_user_id=recipient,
    )
    return movement.item


@router.post("/items/{item_id}/reconcile", response_model=InventoryItemOut)
def api_reconcile_stock(item_id: int, db: Session = Depends(get_db)):
    return stock.reconcile_stock(db, item_id)


@router.get("/items/{item_id}/balance", response_model=StockBalanceOut)
def api_stock_balance(item_id: int, db: Session = Depends(get_db)):
    item = catalog.get_item(db, item_id)
    balance = ledger.running_balance(db, item_id)
    return StockBalanceOut(
        inventory_item_id=item.id,
        running_balance=balance,
        current_stock=item.current_stock,
        drift=item.current_stock - balance,
        pending_quantity=get_total_pending_quantity(db, item_id),
    )


@router.get("/items/{item_id}/transactions", response_model=list[TransactionOut])
def api_item_transactions(
    item_id: int,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    db: Session = Depends(get_db),
):
    catalog.get_item(db, item_id)
    if start is not None and end is not None:
        return ledger.transaction_history(db, item_id, as_utc_naive(start), as_utc_naive(end))
    return ledger.list_for_item(db, item_id)


@router.get("/transactions", response_model=list[TransactionOut])
def api_list_transactions(
    type: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    if type:
        return ledger.find_by_type(db, type)
    if start is not None and end is not None:
        return ledger.find_by_date_range(db, as_utc_naive(start), as_utc_naive(end))
    return ledger.list_transactions(db, limit=limit, offset=offset)


@router.post("/transactions", response_model=TransactionOut, status_code=201)
def api_record_transaction(payload: TransactionCreate, db: Session = Depends(get_db)):
    return ledger.record_transaction(db, **payload.model_dump())


@router.patch("/transactions/{transaction_id}", response_model=TransactionOut)
def api_correct_transaction(transaction_id: int, payload: TransactionUpdate, db: Session = Depends(get_db)):
    return ledger.update_transaction(db, transaction_id, payload.model_dump(exclude_unset=True))


@router.delete("/transactions/{transaction_id}")
def api_delete_transaction(transaction_id: int, db: Session = Depends(get_db)):
    ledger.delete_transaction(db, transaction_id)
    return {"status": "deleted"}
