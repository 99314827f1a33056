# marketplace/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from marketplace import models  # noqa: F401  registers every table on Base.metadata
from marketplace.core.config import get_settings
from marketplace.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    BaseServiceError,
    BusinessRuleError,
    DatabaseError,
    NotFoundError,
    ValidationError,
)
from marketplace.core.logging_config import configure_logging
from marketplace.routes import health, orders, reports

logger = logging.getLogger(__name__)

# Most specific first; the first isinstance match wins
ERROR_STATUS_CODES = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (BusinessRuleError, status.HTTP_409_CONFLICT),
    (DatabaseError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def status_code_for(exc: BaseServiceError) -> int:
    for exc_class, code in ERROR_STATUS_CODES:
        if isinstance(exc, exc_class):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def service_error_handler(request: Request, exc: BaseServiceError):
    code = status_code_for(exc)
    if code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=code,
        content={"success": False, "message": exc.message, **exc.details},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)
    logger.info("Starting marketplace order service (%s)", settings.ENVIRONMENT)
    yield
    logger.info("Shutting down marketplace order service")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Marketplace Order Service",
        description="Pincode-matched order placement and fulfilment",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(BaseServiceError, service_error_handler)

    app.include_router(health.router)
    app.include_router(orders.router)
    app.include_router(reports.router)
    return app


app = create_app()
