from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..core.clock import as_utc_naive
from ..crud import purchasing
from ..db.session import get_db
from ..deps.hooks import get_notifier
from ..schemas.orders import LineUpdate, StatusUpdate, TotalOut
from ..schemas.purchasing import PurchaseOrderCreate, PurchaseOrderItemOut, PurchaseOrderOut, ReceiveRequest
from ..services.notifier import ThresholdNotifier

router = APIRouter(prefix="/api/v1/purchase-orders", tags=["purchasing"])
items_router = APIRouter(prefix="/api/v1/purchase-order-items", tags=["purchasing"])


@router.get("", response_model=list[PurchaseOrderOut])
def api_list_purchase_orders(
    supplier_id: Optional[int] = None,
    status: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    if supplier_id is not None:
        return purchasing.find_by_supplier(db, supplier_id)
    if status:
        return purchasing.find_by_status(db, status)
    if start is not None or end is not None:
        if start is None or end is None:
            raise HTTPException(status_code=400, detail="start and end must be given together")
        return purchasing.find_by_date_range(db, as_utc_naive(start), as_utc_naive(end))
    return purchasing.list_purchase_orders(db, limit=limit, offset=offset)


@router.get("/pending", response_model=list[PurchaseOrderOut])
def api_pending_purchase_orders(db: Session = Depends(get_db)):
    return purchasing.find_pending_orders(db)


@router.get("/overdue", response_model=list[PurchaseOrderOut])
def api_overdue_purchase_orders(db: Session = Depends(get_db)):
    return purchasing.find_overdue_orders(db)


@router.post("", response_model=PurchaseOrderOut, status_code=201)
def api_create_purchase_order(payload: PurchaseOrderCreate, db: Session = Depends(get_db)):
    return purchasing.create_purchase_order(
        db,
        supplier_id=payload.supplier_id,
        items=payload.items,
        status=payload.status,
        expected_delivery_date=as_utc_naive(payload.expected_delivery_date),
        order_date=as_utc_naive(payload.order_date),
    )


@router.get("/{purchase_order_id}", response_model=PurchaseOrderOut)
def api_get_purchase_order(purchase_order_id: int, db: Session = Depends(get_db)):
    return purchasing.get_purchase_order(db, purchase_order_id)


@router.patch("/{purchase_order_id}/status", response_model=PurchaseOrderOut)
def api_update_purchase_order_status(
    purchase_order_id: int,
    payload: StatusUpdate,
    db: Session = Depends(get_db),
    notifier: ThresholdNotifier = Depends(get_notifier),
):
    return purchasing.update_status(
        db,
        purchase_order_id,
        payload.status,
        notifier=notifier,
        notify_user_id=payload.notify_user_id,
    )


@router.post("/{purchase_order_id}/receive", response_model=PurchaseOrderOut)
def api_receive_purchase_order(
    purchase_order_id: int,
    payload: ReceiveRequest,
    db: Session = Depends(get_db),
    notifier: ThresholdNotifier = Depends(get_notifier),
):
    return purchasing.receive_purchase_order(
        db,
        purchase_order_id,
        user_id=payload.user_id,
        notifier=notifier,
        notify_user_id=payload.notify_user_id,
    )


@router.get("/{purchase_order_id}/total", response_model=TotalOut)
def api_purchase_order_total(purchase_order_id: int, db: Session = Depends(get_db)):
    purchase_order = purchasing.get_purchase_order(db, purchase_order_id)
    return TotalOut(
        id=purchase_order.id,
        total=purchasing.calculate_total(db, purchase_order_id),
        stored_total=purchase_order.total_amount,
    )


@router.post("/{purchase_order_id}/refresh-total", response_model=PurchaseOrderOut)
def api_refresh_purchase_order_total(purchase_order_id: int, db: Session = Depends(get_db)):
    return purchasing.refresh_total(db, purchase_order_id)


@router.delete("/{purchase_order_id}")
def api_delete_purchase_order(purchase_order_id: int, db: Session = Depends(get_db)):
    purchasing.delete_purchase_order(db, purchase_order_id)
    return {"status": "deleted"}


@items_router.get("/{item_id}", response_model=PurchaseOrderItemOut)
def api_get_purchase_order_item(item_id: int, db: Session = Depends(get_db)):
    return purchasing.get_purchase_order_item(db, item_id)


@items_router.patch("/{item_id}", response_model=PurchaseOrderItemOut)
def api_update_purchase_order_item(item_id: int, payload: LineUpdate, db: Session = Depends(get_db)):
    return purchasing.update_purchase_order_item(
        db, item_id, quantity=payload.quantity, unit_price=payload.unit_price
    )
