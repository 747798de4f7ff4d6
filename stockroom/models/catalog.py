from __future__ import annotations

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, Text
from sqlalchemy.orm import relationship, synonym

from ..core.clock import utcnow
from ..db.session import Base


class InventoryItem(Base):
    """A catalog entry and its cached stock counter.

    ``current_stock`` is only written through ``services.stock``; ``quantity``
    is the same column under the name older clients use.
    """

    __tablename__ = "inventory_items"
    __table_args__ = (CheckConstraint("current_stock >= 0", name="ck_inventory_items_stock_non_negative"),)

    id = Column(Integer, primary_key=True, index=True)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    current_stock = Column(Integer, nullable=False, default=0)
    reorder_level = Column(Integer, nullable=False, default=0)
    reorder_quantity = Column(Integer, nullable=False, default=0)
    auto_reorder = Column(Boolean, nullable=False, default=False)
    price = Column(Numeric(12, 2), nullable=True)
    unit_price = Column(Numeric(12, 2), nullable=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    quantity = synonym("current_stock")

    supplier = relationship("Supplier", lazy="joined")

    @property
    def below_reorder_level(self) -> bool:
        return self.current_stock < (self.reorder_level or 0)

    @property
    def costing_price(self):
        """Price snapshotted onto line items: ``unit_price``, else list ``price``."""

        return self.unit_price if self.unit_price is not None else self.price
