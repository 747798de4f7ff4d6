from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class InventoryItemCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    current_stock: int = Field(default=0, ge=0)
    reorder_level: int = Field(default=0, ge=0)
    reorder_quantity: int = Field(default=0, ge=0)
    auto_reorder: bool = False
    price: Optional[Decimal] = Field(default=None, ge=0)
    unit_price: Optional[Decimal] = Field(default=None, ge=0)
    supplier_id: Optional[int] = None


class InventoryItemUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    reorder_level: Optional[int] = Field(default=None, ge=0)
    reorder_quantity: Optional[int] = Field(default=None, ge=0)
    auto_reorder: Optional[bool] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    unit_price: Optional[Decimal] = Field(default=None, ge=0)
    supplier_id: Optional[int] = None


class InventoryItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    current_stock: int
    quantity: int
    reorder_level: int
    reorder_quantity: int
    auto_reorder: bool
    price: Optional[Decimal] = None
    unit_price: Optional[Decimal] = None
    supplier_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class StockAdjustment(BaseModel):
    quantity: int = Field(gt=0)
    direction: Literal["add", "subtract"]
    note: Optional[str] = None
    user_id: Optional[int] = None
    notify_user_id: Optional[int] = None
    # False moves the counter without writing a ledger entry.
    record: bool = True


class TransactionCreate(BaseModel):
    inventory_item_id: int
    quantity: int = Field(gt=0)
    type: str = Field(min_length=1)
    note: Optional[str] = None
    user_id: Optional[int] = None


class TransactionUpdate(BaseModel):
    quantity: Optional[int] = Field(default=None, gt=0)
    type: Optional[str] = None
    note: Optional[str] = None


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    inventory_item_id: int
    quantity: int
    type: str
    note: Optional[str] = None
    user_id: Optional[int] = None
    created_at: datetime


class StockBalanceOut(BaseModel):
    inventory_item_id: int
    running_balance: int
    current_stock: int
    drift: int
    pending_quantity: int
