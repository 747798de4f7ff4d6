"""Outbound hook for low-stock and order-status alerts.

The core only decides *when* an alert is due. Who receives it is supplied by
the caller, and delivery belongs to whatever ``ThresholdNotifier`` the caller
injects. Hook failures never undo the mutation that triggered them.
"""

from __future__ import annotations

import logging
from typing import Callable, Protocol

logger = logging.getLogger("stockroom.notifier")


class ThresholdNotifier(Protocol):
    def notify_low_stock(self, user_id: int | None, item_name: str, current_stock: int, threshold: int) -> None:
        ...

    def notify_order_status(self, user_id: int | None, order_id: int, status: str) -> None:
        ...


class LoggingNotifier:
    """Default hook: writes each alert as a structured log line."""

    def notify_low_stock(self, user_id: int | None, item_name: str, current_stock: int, threshold: int) -> None:
        logger.info(
            "Low Stock Alert",
            extra={
                "extra_data": {
                    "type": "LOW_STOCK",
                    "priority": "HIGH",
                    "user_id": user_id,
                    "detail": f"{item_name} is running low. Current stock: {current_stock} (Threshold: {threshold})",
                }
            },
        )

    def notify_order_status(self, user_id: int | None, order_id: int, status: str) -> None:
        logger.info(
            "Order Status Update",
            extra={
                "extra_data": {
                    "type": "ORDER_STATUS",
                    "priority": "MEDIUM",
                    "user_id": user_id,
                    "detail": f"Order #{order_id} status has been updated to: {status}",
                }
            },
        )


def fire(call: Callable[[], None], *, hook: str) -> bool:
    """Run a hook call, logging and swallowing any failure.

    Returns ``True`` when the hook completed.
    """

    try:
        call()
    except Exception:
        logger.warning("notifier.failed", exc_info=True, extra={"extra_data": {"hook": hook}})
        return False
    return True
