import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from . import models  # noqa: F401  registra las tablas antes de create_all
from .core.config import settings
from .core.errors import PosError
from .core.logging import configure_logging
from .db import Base, engine
from .middleware.idempotency import install_idempotency
from .routers import carts, coupons, health, orders, registers, rewards, stock

log = logging.getLogger(__name__)


async def pos_error_handler(request: Request, exc: PosError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        log.info("%s %s rejected: %s %s", request.method, request.url.path, exc.code, exc)
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


def create_app(create_tables: bool = True) -> FastAPI:
    configure_logging(settings.log_level)
    if create_tables:
        # Crea tablas faltantes (desarrollo)
        Base.metadata.create_all(bind=engine)

    app = FastAPI(title=settings.app_name, version=settings.app_version)
    app.add_exception_handler(PosError, pos_error_handler)
    install_idempotency(app)

    app.include_router(health.router)
    app.include_router(carts.router)
    app.include_router(orders.router)
    app.include_router(stock.router)
    app.include_router(registers.router)
    app.include_router(coupons.router)
    app.include_router(rewards.router)
    log.info("%s %s started (%s)", settings.app_name, settings.app_version, settings.app_env)
    return app


app = create_app()
