import json
import logging
import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from stockroom.db.session import Base
from stockroom.core.logging import JsonLogFormatter, bind_log_context, log_context_var, request_id_ctx_var
from stockroom.crud.catalog import create_item
from stockroom.crud.parties import create_supplier
from stockroom.crud.purchasing import create_purchase_order, receive_purchase_order

from stockroom import models  # noqa: F401


class JsonCapture(logging.Handler):
    """Formats at emit time, while the bound context is still active."""

    def __init__(self):
        super().__init__()
        self.setFormatter(JsonLogFormatter(service="Stockroom"))
        self.lines = []

    def emit(self, record):
        self.lines.append(json.loads(self.format(record)))


@pytest.fixture()
def capture():
    handler = JsonCapture()
    root = logging.getLogger()
    previous = root.level
    root.addHandler(handler)
    root.setLevel(logging.INFO)
    try:
        yield handler
    finally:
        root.removeHandler(handler)
        root.setLevel(previous)


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


def test_bound_fields_nest_and_unwind(capture):
    log = logging.getLogger("stockroom.test")
    token = request_id_ctx_var.set("req-1")
    try:
        with bind_log_context(method="POST", user_id=None):
            with bind_log_context(item_id=4):
                log.info("inner", extra={"extra_data": {"quantity": 2}})
            log.info("outer")
    finally:
        request_id_ctx_var.reset(token)
    log.info("after")

    inner, outer, after = capture.lines
    assert inner["service"] == "Stockroom"
    assert inner["request_id"] == "req-1"
    assert inner["method"] == "POST"
    assert inner["item_id"] == 4
    assert inner["quantity"] == 2
    assert "user_id" not in inner
    assert "item_id" not in outer
    assert outer["method"] == "POST"
    assert "method" not in after and "request_id" not in after
    assert log_context_var.get() == {}


def test_receiving_tags_stock_events_with_purchase_order(db_session, capture):
    supplier = create_supplier(db_session, {"name": "Acme Supply"})
    item = create_item(db_session, {"name": "Bolt", "price": "0.40"})
    po = create_purchase_order(db_session, supplier_id=supplier.id, items=[{"inventory_item_id": item.id, "quantity": 6}])

    receive_purchase_order(db_session, po.id, user_id=8)

    adjusted = [line for line in capture.lines if line["message"] == "stock.adjusted"]
    assert len(adjusted) == 1
    assert adjusted[0]["purchase_order_id"] == po.id
    assert adjusted[0]["user_id"] == 8
    assert adjusted[0]["item_id"] == item.id
    received = [line for line in capture.lines if line["message"] == "purchase_order.received"]
    assert received[0]["purchase_order_id"] == po.id
