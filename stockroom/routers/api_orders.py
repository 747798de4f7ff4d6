from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..core.clock import as_utc_naive
from ..crud import orders
from ..db.session import get_db
from ..deps.hooks import get_notifier
from ..schemas.orders import LineUpdate, OrderCreate, OrderItemOut, OrderOut, StatusUpdate, TotalOut
from ..services.notifier import ThresholdNotifier

router = APIRouter(prefix="/api/v1/orders", tags=["orders"])
items_router = APIRouter(prefix="/api/v1/order-items", tags=["orders"])


@router.get("", response_model=list[OrderOut])
def api_list_orders(
    customer_id: Optional[int] = None,
    status: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    min_total: Optional[Decimal] = None,
    max_total: Optional[Decimal] = None,
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    if customer_id is not None:
        return orders.find_by_customer(db, customer_id)
    if status:
        return orders.find_by_status(db, status)
    if start is not None or end is not None:
        if start is None or end is None:
            raise HTTPException(status_code=400, detail="start and end must be given together")
        return orders.find_by_date_range(db, as_utc_naive(start), as_utc_naive(end))
    if min_total is not None or max_total is not None:
        return orders.find_by_total_amount(db, min_total, max_total)
    return orders.list_orders(db, limit=limit, offset=offset)


@router.post("", response_model=OrderOut, status_code=201)
def api_create_order(payload: OrderCreate, db: Session = Depends(get_db)):
    return orders.create_order(
        db,
        customer_id=payload.customer_id,
        items=payload.items,
        status=payload.status,
        order_date=as_utc_naive(payload.order_date),
    )


@router.get("/{order_id}", response_model=OrderOut)
def api_get_order(order_id: int, db: Session = Depends(get_db)):
    return orders.get_order(db, order_id)


@router.patch("/{order_id}/status", response_model=OrderOut)
def api_update_order_status(
    order_id: int,
    payload: StatusUpdate,
    db: Session = Depends(get_db),
    notifier: ThresholdNotifier = Depends(get_notifier),
):
    return orders.update_status(
        db,
        order_id,
        payload.status,
        notifier=notifier,
        notify_user_id=payload.notify_user_id,
    )


@router.get("/{order_id}/total", response_model=TotalOut)
def api_order_total(order_id: int, db: Session = Depends(get_db)):
    order = orders.get_order(db, order_id)
    return TotalOut(
        id=order.id,
        total=orders.calculate_order_total(db, order_id),
        stored_total=order.total_amount,
    )


@router.post("/{order_id}/refresh-total", response_model=OrderOut)
def api_refresh_order_total(order_id: int, db: Session = Depends(get_db)):
    return orders.refresh_order_total(db, order_id)


@router.delete("/{order_id}")
def api_delete_order(order_id: int, db: Session = Depends(get_db)):
    orders.delete_order(db, order_id)
    return {"status": "deleted"}


@items_router.get("/{item_id}", response_model=OrderItemOut)
def api_get_order_item(item_id: int, db: Session = Depends(get_db)):
    return orders.get_order_item(db, item_id)


@items_router.patch("/{item_id}", response_model=OrderItemOut)
def api_update_order_item(item_id: int, payload: LineUpdate, db: Session = Depends(get_db)):
    return orders.update_order_item(db, item_id, quantity=payload.quantity, unit_price=payload.unit_price)
