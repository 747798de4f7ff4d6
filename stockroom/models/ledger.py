"""Append-only record of stock movements."""

from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship

from ..core.clock import utcnow
from ..db.session import Base

TRANSACTION_IN = "IN"
TRANSACTION_OUT = "OUT"


class InventoryTransaction(Base):
    """One stock-affecting event for an inventory item.

    ``quantity`` is always positive; ``type`` carries the sign. Tags other
    than ``IN``/``OUT`` are stored as given and ignored by the balance fold.
    """

    __tablename__ = "inventory_transactions"

    id = Column(Integer, primary_key=True, index=True)
    inventory_item_id = Column(Integer, ForeignKey("inventory_items.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    type = Column("transaction_type", Text, nullable=False, index=True)
    note = Column(Text, nullable=True)
    user_id = Column(Integer, nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    inventory_item = relationship("InventoryItem", lazy="joined")

    @property
    def signed_quantity(self) -> int:
        if self.type == TRANSACTION_IN:
            return self.quantity
        if self.type == TRANSACTION_OUT:
            return -self.quantity
        return 0
