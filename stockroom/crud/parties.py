"""Lookups for customers and suppliers, the records orders point at."""

from __future__ import annotations

from sqlalchemy.orm import Session

from ..core.errors import NotFound
from ..models.parties import Customer, Supplier


def get_customer(db: Session, customer_id: int) -> Customer:
    customer = db.get(Customer, customer_id)
    if not customer:
        raise NotFound("Customer", customer_id)
    return customer


def get_supplier(db: Session, supplier_id: int) -> Supplier:
    supplier = db.get(Supplier, supplier_id)
    if not supplier:
        raise NotFound("Supplier", supplier_id)
    return supplier


def create_customer(db: Session, payload: dict) -> Customer:
    data = {k: v.strip() if isinstance(v, str) else v for k, v in payload.items()}
    customer = Customer(**data)
    db.add(customer)
    db.commit()
    db.refresh(customer)
    return customer


def create_supplier(db: Session, payload: dict) -> Supplier:
    data = {k: v.strip() if isinstance(v, str) else v for k, v in payload.items()}
    supplier = Supplier(**data)
    db.add(supplier)
    db.commit()
    db.refresh(supplier)
    return supplier
