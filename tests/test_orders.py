import os
import sys
from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from stockroom.db.session import Base
from stockroom.core.errors import InvalidTransition, NotFound, ValidationError
from stockroom.crud.catalog import create_item, update_item
from stockroom.crud.orders import (
    calculate_item_subtotal,
    calculate_order_total,
    create_order,
    delete_order,
    find_by_customer,
    find_by_date_range,
    find_by_status,
    find_by_total_amount,
    find_items_by_inventory_item,
    get_order,
    refresh_order_total,
    update_order_item,
    update_status,
)
from stockroom.crud.parties import create_customer
from stockroom.models.orders import Order, OrderItem

from stockroom import models  # noqa: F401


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


@pytest.fixture()
def customer(db_session):
    return create_customer(db_session, {"name": "Client A", "email": "a@example.com"})


@pytest.fixture()
def widget(db_session):
    return create_item(db_session, {"name": "Widget", "unit_price": "20.50", "price": "24.00", "current_stock": 50})


class RecordingNotifier:
    def __init__(self):
        self.statuses = []

    def notify_low_stock(self, user_id, item_name, current_stock, threshold):
        pass

    def notify_order_status(self, user_id, order_id, status):
        self.statuses.append((user_id, order_id, status))


def _count(db_session, model):
    return db_session.execute(select(func.count(model.id))).scalar()


def test_create_order_snapshots_prices_and_totals(db_session, customer, widget):
    order = create_order(
        db_session,
        customer_id=customer.id,
        items=[{"inventory_item_id": widget.id, "quantity": 2}],
    )

    assert order.status == "Pending"
    assert len(order.items) == 1
    line = order.items[0]
    assert line.unit_price == Decimal("20.50")
    assert line.price == Decimal("24.00")
    assert line.total_price == Decimal("41.00")
    assert order.total_amount == Decimal("41.00")
    assert line.inventory_item.name == "Widget"
    assert order.customer.name == "Client A"


def test_create_order_sums_multiple_lines(db_session, customer, widget):
    gadget = create_item(db_session, {"name": "Gadget", "price": "3.35"})

    order = create_order(
        db_session,
        customer_id=customer.id,
        items=[
            {"inventory_item_id": widget.id, "quantity": 1},
            {"inventory_item_id": gadget.id, "quantity": 3},
        ],
        status="completed",
    )

    assert order.status == "Completed"
    # Gadget has no unit price, so its list price is used.
    assert [line.unit_price for line in order.items] == [Decimal("20.50"), Decimal("3.35")]
    assert order.total_amount == Decimal("30.55")


def test_create_order_with_missing_item_persists_nothing(db_session, customer, widget):
    with pytest.raises(NotFound) as exc:
        create_order(
            db_session,
            customer_id=customer.id,
            items=[
                {"inventory_item_id": widget.id, "quantity": 1},
                {"inventory_item_id": 999, "quantity": 1},
            ],
        )

    assert str(exc.value) == "Inventory item 999 not found"
    assert _count(db_session, Order) == 0
    assert _count(db_session, OrderItem) == 0


def test_create_order_unknown_customer(db_session, widget):
    with pytest.raises(NotFound):
        create_order(db_session, customer_id=77, items=[{"inventory_item_id": widget.id, "quantity": 1}])
    assert _count(db_session, Order) == 0


@pytest.mark.parametrize("quantity", [0, -1, 1.5])
def test_create_order_rejects_bad_quantity(db_session, customer, widget, quantity):
    with pytest.raises(ValidationError):
        create_order(db_session, customer_id=customer.id, items=[{"inventory_item_id": widget.id, "quantity": quantity}])
    assert _count(db_session, Order) == 0


def test_create_order_requires_lines_and_priced_items(db_session, customer):
    unpriced = create_item(db_session, {"name": "Free sample"})

    with pytest.raises(ValidationError):
        create_order(db_session, customer_id=customer.id, items=[])
    with pytest.raises(ValidationError):
        create_order(db_session, customer_id=customer.id, items=[{"inventory_item_id": unpriced.id, "quantity": 1}])
    assert _count(db_session, Order) == 0


def test_snapshot_survives_catalog_price_change(db_session, customer, widget):
    order = create_order(db_session, customer_id=customer.id, items=[{"inventory_item_id": widget.id, "quantity": 2}])

    update_item(db_session, widget.id, {"unit_price": "99.99", "price": "120.00"})

    reloaded = get_order(db_session, order.id)
    assert reloaded.items[0].unit_price == Decimal("20.50")
    assert reloaded.total_amount == Decimal("41.00")
    assert calculate_order_total(db_session, order.id) == Decimal("41.00")


def test_line_edit_keeps_line_total_but_not_order_total(db_session, customer, widget):
    order = create_order(db_session, customer_id=customer.id, items=[{"inventory_item_id": widget.id, "quantity": 2}])
    line_id = order.items[0].id

    line = update_order_item(db_session, line_id, quantity=3)
    assert line.total_price == Decimal("61.50")
    assert calculate_item_subtotal(db_session, line_id) == Decimal("61.50")

    assert get_order(db_session, order.id).total_amount == Decimal("41.00")
    assert calculate_order_total(db_session, order.id) == Decimal("61.50")

    assert refresh_order_total(db_session, order.id).total_amount == Decimal("61.50")

    with pytest.raises(ValidationError):
        update_order_item(db_session, line_id, unit_price="0")
    with pytest.raises(NotFound):
        update_order_item(db_session, 999, quantity=1)


def test_find_by_total_amount_branches(db_session, customer, widget):
    small = create_order(db_session, customer_id=customer.id, items=[{"inventory_item_id": widget.id, "quantity": 1}])
    medium = create_order(db_session, customer_id=customer.id, items=[{"inventory_item_id": widget.id, "quantity": 2}])
    large = create_order(db_session, customer_id=customer.id, items=[{"inventory_item_id": widget.id, "quantity": 4}])

    def ids(rows):
        return [row.id for row in rows]

    assert ids(find_by_total_amount(db_session, Decimal("20.50"), Decimal("41.00"))) == [small.id, medium.id]
    assert ids(find_by_total_amount(db_session, minimum=Decimal("20.50"))) == [medium.id, large.id]
    assert ids(find_by_total_amount(db_session, maximum=Decimal("82.00"))) == [small.id, medium.id]
    assert ids(find_by_total_amount(db_session)) == [small.id, medium.id, large.id]


def test_find_by_customer_status_and_date(db_session, customer, widget):
    other = create_customer(db_session, {"name": "Client B"})
    mine = create_order(
        db_session,
        customer_id=customer.id,
        items=[{"inventory_item_id": widget.id, "quantity": 1}],
        order_date=datetime(2024, 6, 1),
    )
    theirs = create_order(
        db_session,
        customer_id=other.id,
        items=[{"inventory_item_id": widget.id, "quantity": 1}],
        status="Cancelled",
        order_date=datetime(2024, 7, 1),
    )

    assert [o.id for o in find_by_customer(db_session, customer.id)] == [mine.id]
    assert [o.id for o in find_by_status(db_session, "Cancelled")] == [theirs.id]
    assert [o.id for o in find_by_date_range(db_session, datetime(2024, 5, 1), datetime(2024, 6, 30))] == [mine.id]
    assert [line.id for line in find_items_by_inventory_item(db_session, widget.id)] == [
        mine.items[0].id,
        theirs.items[0].id,
    ]


def test_update_status_notifies_and_enforces_transitions(db_session, customer, widget):
    notifier = RecordingNotifier()
    order = create_order(db_session, customer_id=customer.id, items=[{"inventory_item_id": widget.id, "quantity": 1}])

    completed = update_status(db_session, order.id, "Completed", notifier=notifier, notify_user_id=5)
    assert completed.status == "Completed"
    assert notifier.statuses == [(5, order.id, "Completed")]

    # Re-applying the current status is a no-op.
    update_status(db_session, order.id, "Completed", notifier=notifier, notify_user_id=5)
    assert len(notifier.statuses) == 1

    with pytest.raises(InvalidTransition):
        update_status(db_session, order.id, "Pending")
    with pytest.raises(ValidationError):
        update_status(db_session, order.id, "Shipped")
    with pytest.raises(NotFound):
        update_status(db_session, 999, "Completed")


def test_delete_order_removes_lines(db_session, customer, widget):
    order = create_order(db_session, customer_id=customer.id, items=[{"inventory_item_id": widget.id, "quantity": 1}])

    delete_order(db_session, order.id)

    assert _count(db_session, Order) == 0
    assert _count(db_session, OrderItem) == 0


def test_stale_session_cannot_move_a_settled_order(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'orders.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    Factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    setup = Factory()
    customer_id = create_customer(setup, {"name": "Client A"}).id
    item_id = create_item(setup, {"name": "Widget", "price": "5.00"}).id
    order_id = create_order(setup, customer_id=customer_id, items=[{"inventory_item_id": item_id, "quantity": 1}]).id
    setup.close()

    first, second = Factory(), Factory()
    notifier = RecordingNotifier()
    try:
        # Both sessions have seen the order while it was Pending.
        assert get_order(first, order_id).status == "Pending"
        assert get_order(second, order_id).status == "Pending"

        update_status(second, order_id, "Completed")

        with pytest.raises(InvalidTransition) as exc:
            update_status(first, order_id, "Cancelled", notifier=notifier, notify_user_id=1)
        assert exc.value.current == "Completed"
        assert notifier.statuses == []
        assert get_order(first, order_id).status == "Completed"
    finally:
        first.close()
        second.close()
        engine.dispose()
