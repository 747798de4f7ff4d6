"""Application factory and top-level wiring.

Brings together configuration, logging, the database, the API routers and
the error envelope. ``app`` is the instance uvicorn serves.
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import settings
from .core.errors import (
    StockroomError,
    http_exception_handler,
    stockroom_exception_handler,
    validation_exception_handler,
)
from .core.logging import configure_logging
from .db.session import init_db
from .middlewares import RequestIdMiddleware
from .routers import api_inventory, api_orders, api_purchase_orders


def create_app() -> FastAPI:
    configure_logging(settings.LOG_LEVEL, settings.LOG_JSON, service=settings.APP_NAME)

    app = FastAPI(title=settings.APP_NAME)
    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(StockroomError, stockroom_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    app.include_router(api_inventory.router)
    app.include_router(api_orders.router)
    app.include_router(api_orders.items_router)
    app.include_router(api_purchase_orders.router)
    app.include_router(api_purchase_orders.items_router)

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    @app.on_event("startup")
    async def _create_tables() -> None:
        init_db()

    if settings.METRICS_ENABLED:
        Instrumentator().instrument(app).expose(app)

    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run("stockroom.main:app", host=settings.HOST, port=settings.PORT)


__all__ = ["app", "create_app", "run"]
