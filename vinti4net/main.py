"""
FastAPI integration entry point.

`create_app()` wires the checkout/callback routes with the exception handler,
request-logging middleware and rate limiter. Configuration comes from the
environment (`load_config()`) unless an `AppConfig` is passed in.
"""

from fastapi import FastAPI, Request
from contextlib import asynccontextmanager
from typing import Optional
from vinti4net.core.config import AppConfig, load_config, set_config
from vinti4net.core.handlers import setup_exception_handlers
from vinti4net.core.middleware import RequestLoggingMiddleware
from vinti4net.core.monitoring import setup_monitoring, error_monitor
from vinti4net.core.limiter import limiter
from vinti4net.routes.payments import router as payments_router
from slowapi import _rate_limit_exceeded_handler
from slowapi.middleware import SlowAPIMiddleware
from slowapi.errors import RateLimitExceeded
import logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle events"""
    setup_monitoring(app.state.config.logging.level)
    logger.info(
        f"Vinti4Net integration started (environment={app.state.config.environment}, "
        f"POS {app.state.config.gateway.pos_id})"
    )

    yield

    final_summary = error_monitor.get_error_summary()
    logger.info(f"Shutdown - Total errors handled: {final_summary['total_errors']}")


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Raises:
        ConfigurationError: If no config is given and the environment is incomplete
    """
    if config is None:
        config = load_config()
    else:
        set_config(config)

    app = FastAPI(
        title="Vinti4Net Gateway",
        description="SISP Vinti4Net checkout and callback integration",
        debug=config.debug,
        lifespan=lifespan,
    )
    app.state.config = config

    # Rate limiter shared via app.state
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    setup_exception_handlers(app)

    if config.logging.log_requests:
        app.add_middleware(RequestLoggingMiddleware)

    app.include_router(payments_router, prefix="/payments")

    @app.get("/")
    async def health_check(request: Request):
        return {
            "status": "active",
            "service": "Vinti4Net Gateway",
            "environment": config.environment,
        }

    return app
