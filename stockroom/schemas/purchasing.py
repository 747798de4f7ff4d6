from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PurchaseLineIn(BaseModel):
    inventory_item_id: int
    quantity: int = Field(gt=0)
    # Supplier quote; the catalog unit price is used when omitted.
    unit_price: Optional[Decimal] = Field(default=None, gt=0)


class PurchaseOrderCreate(BaseModel):
    supplier_id: int
    status: Optional[str] = None
    order_date: Optional[datetime] = None
    expected_delivery_date: Optional[datetime] = None
    items: List[PurchaseLineIn] = Field(min_length=1)


class ReceiveRequest(BaseModel):
    user_id: Optional[int] = None
    notify_user_id: Optional[int] = None


class PurchaseOrderItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    purchase_order_id: int
    inventory_item_id: int
    quantity: int
    unit_price: Decimal
    price: Decimal
    total_price: Decimal


class PurchaseOrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    supplier_id: int
    order_date: datetime
    status: str
    total_amount: Decimal
    expected_delivery_date: Optional[datetime] = None
    received_date: Optional[datetime] = None
    items: List[PurchaseOrderItemOut] = []
