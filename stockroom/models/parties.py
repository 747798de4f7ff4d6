"""Customer and supplier records.

Both are owned by other systems; the tables hold just enough to satisfy
foreign keys and existence checks.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, Text

from ..core.clock import utcnow
from ..db.session import Base


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Supplier(Base):
    __tablename__ = "suppliers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(Text, nullable=False)
    contact_info = Column(Text, nullable=True)
    address = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
