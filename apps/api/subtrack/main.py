from contextlib import asynccontextmanager
import logging

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from subtrack.api.errors import request_validation_handler
from subtrack.api.routes import router as api_router
from subtrack.core.config import get_settings
from subtrack.core.database import Base, engine
from subtrack.logging import configure_logging
from subtrack.middleware.correlation_id import CorrelationIdMiddleware
from subtrack.middleware.request_logging import RequestLoggingMiddleware
from subtrack.otel import configure_tracing, server_request_hook
from subtrack.subscriptions import models as subscription_models  # noqa: F401


settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger("subtrack.lifecycle")


@asynccontextmanager
async def lifespan(app: FastAPI):
    current = get_settings()
    if current.db_create_all:
        Base.metadata.create_all(bind=engine)
        logger.info("database.schema_ensured")
    logger.info("system.started")
    yield
    logger.info("system.stopped")


app = FastAPI(
    title="Subscriptions API",
    description="Manage user subscriptions and calculate their total cost over a period.",
    version=settings.app_version,
    docs_url="/swagger",
    lifespan=lifespan,
)
# CorrelationIdMiddleware is added last so it wraps request logging.
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.include_router(api_router)

configure_tracing(settings)
if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=server_request_hook)


if __name__ == "__main__":
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
