"""Status state machine shared by orders and purchase orders.

``ALLOWED_TRANSITIONS`` says where a status may go next. Each aggregate kind
passes its own effect table, keyed by the status being entered, so side
effects such as stamping ``received_date`` live next to the rule that
triggers them instead of inside the update functions.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Callable, Mapping

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..core.clock import utcnow
from ..core.errors import InvalidTransition, NotFound, ValidationError


class OrderStatus(str, Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

# An effect returns the extra column values to write when a status is entered.
Effect = Callable[[datetime], dict[str, Any]]
EffectTable = Mapping[OrderStatus, tuple[Effect, ...]]


def parse_status(value: Any) -> OrderStatus:
    """Accept an ``OrderStatus`` or its name in any case (``"PENDING"``, ``"pending"``)."""

    if isinstance(value, OrderStatus):
        return value
    if isinstance(value, str):
        for status in OrderStatus:
            if value.strip().casefold() == status.value.casefold():
                return status
    raise ValidationError(f"Unknown status: {value!r}", details={"status": str(value)})


def _stamp_received_date(now: datetime) -> dict[str, Any]:
    return {"received_date": now}


ORDER_EFFECTS: EffectTable = {}
PURCHASE_ORDER_EFFECTS: EffectTable = {
    OrderStatus.COMPLETED: (_stamp_received_date,),
}


def status_values(status: OrderStatus, effects: EffectTable, now: datetime | None = None) -> dict[str, Any]:
    """Column values for entering ``status``, the status itself included."""

    moment = now or utcnow()
    values: dict[str, Any] = {"status": status.value}
    for effect in effects.get(status, ()):
        values.update(effect(moment))
    return values


def enter_status(record: Any, status: OrderStatus, effects: EffectTable, now: datetime | None = None) -> None:
    """Set ``record.status`` and run the effects registered for entering it."""

    for key, value in status_values(status, effects, now).items():
        setattr(record, key, value)


def check_transition(current_value: Any, requested: Any) -> OrderStatus | None:
    """Validated target status, or ``None`` when ``requested`` is already current.

    Raises ``InvalidTransition`` for moves the table does not allow.
    """

    current = parse_status(current_value)
    target = parse_status(requested)
    if current is target:
        return None
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransition(current.value, target.value)
    return target


def transition_row(
    db: Session,
    model: type,
    record: Any,
    requested: Any,
    effects: EffectTable,
    now: datetime | None = None,
    *,
    label: str | None = None,
) -> bool:
    """Move a persisted order to ``requested`` with one conditional UPDATE.

    The row only changes while its stored status still equals the status
    ``record`` was loaded with, so of two sessions that both saw Pending only
    the first one moves it; the other gets ``InvalidTransition`` carrying the
    status it lost to. Nothing is committed here and ``record`` is not
    refreshed.
    """

    target = check_transition(record.status, requested)
    if target is None:
        return False
    current = parse_status(record.status)
    result = db.execute(
        update(model)
        .where(model.id == record.id, model.status == current.value)
        .values(**status_values(target, effects, now))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        fresh = db.get(model, record.id, populate_existing=True)
        if fresh is None:
            raise NotFound(label or model.__name__, record.id)
        raise InvalidTransition(fresh.status, target.value)
    return True
