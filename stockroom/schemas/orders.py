from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class OrderLineIn(BaseModel):
    inventory_item_id: int
    quantity: int = Field(gt=0)


class OrderCreate(BaseModel):
    customer_id: int
    status: Optional[str] = None
    order_date: Optional[datetime] = None
    items: List[OrderLineIn] = Field(min_length=1)


class StatusUpdate(BaseModel):
    status: str
    notify_user_id: Optional[int] = None


class LineUpdate(BaseModel):
    quantity: Optional[int] = Field(default=None, gt=0)
    unit_price: Optional[Decimal] = Field(default=None, gt=0)


class OrderItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    inventory_item_id: int
    quantity: int
    unit_price: Decimal
    price: Decimal
    total_price: Decimal


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    customer_id: int
    order_date: datetime
    status: str
    total_amount: Decimal
    items: List[OrderItemOut] = []


class TotalOut(BaseModel):
    id: int
    total: Decimal
    stored_total: Decimal
