from __future__ import annotations

from ..services.notifier import LoggingNotifier, ThresholdNotifier

_default_notifier = LoggingNotifier()


def get_notifier() -> ThresholdNotifier:
    """FastAPI dependency for the alert hook; override it to plug in delivery."""

    return _default_notifier
