"""Typed errors raised by the stock and order core, plus their HTTP rendering.

Every core failure is a ``StockroomError`` subclass with a machine-readable
``code`` and the HTTP status the router layer answers with. Callers catch by
type; the API layer turns any of them into the same ``ErrorEnvelope`` JSON.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException


class StockroomError(Exception):
    code = "stockroom_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class NotFound(StockroomError):
    """A referenced record (item, order, customer, supplier, line item) is missing."""

    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, entity_id: Any, message: str | None = None) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            message or f"{entity} {entity_id} not found",
            details={"entity": entity, "id": entity_id},
        )


class InsufficientStock(StockroomError):
    code = "insufficient_stock"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, item_id: int, requested: int, available: int | None = None) -> None:
        self.item_id = item_id
        self.requested = requested
        self.available = available
        super().__init__(
            "Insufficient stock",
            details={"item_id": item_id, "requested": requested, "available": available},
        )


class ValidationError(StockroomError):
    code = "validation_error"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class InvalidTransition(ValidationError):
    code = "invalid_transition"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot move from {current} to {requested}",
            details={"current": current, "requested": requested},
        )


def require_positive(value: Any, field: str) -> None:
    """Reject zero, negative and missing numbers at the core boundary."""

    if value is None or isinstance(value, bool) or value <= 0:
        raise ValidationError(f"{field} must be greater than zero", details={"field": field, "value": str(value)})


class ErrorEnvelope(JSONResponse):
    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        payload: dict[str, Any] = {"code": code, "message": message}
        if details is not None:
            payload["details"] = details
        super().__init__(payload, status_code=status_code, headers=headers)


async def stockroom_exception_handler(request: Request, exc: StockroomError):
    return ErrorEnvelope(
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        details=exc.details,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    message = detail if isinstance(detail, str) else "Error"
    details = detail if isinstance(detail, dict) else None
    return ErrorEnvelope(status_code=exc.status_code, code="http_error", message=message, details=details)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return ErrorEnvelope(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        code="validation_error",
        message="Validation failed",
        details={"errors": jsonable_encoder(exc.errors())},
    )
