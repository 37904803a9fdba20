# expertease/__init__.py
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .routes import routers
from .errors import PaymentError

logger = logging.getLogger(__name__)


async def payment_error_handler(request: Request, exc: PaymentError):
    logger.info(f"{request.method} {request.url.path} rejected: {type(exc).__name__}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": type(exc).__name__}
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="ExpertEase Payments API",
        description="Protection fee and escrow payments for the ExpertEase marketplace",
        version="1.0.0"
    )

    # Include all routers
    for router in routers:
        app.include_router(router)
    app.add_exception_handler(PaymentError, payment_error_handler)

    return app
