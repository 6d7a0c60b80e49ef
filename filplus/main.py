# filplus/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from filplus.api.dependencies import close_container
from filplus.api.middleware import AuditTriggerMiddleware, CorrelationIdMiddleware
from filplus.api.responses import error_body, status_for
from filplus.api.routers import applications, health, roles
from filplus.application.bus import ErrorCategory, categorize
from filplus.application.exceptions import ApplicationError
from filplus.config.logging import configure_logging
from filplus.config.settings import get_settings
from filplus.domain.exceptions import DomainError
from filplus.infrastructure.database.session import create_schema, dispose_engine
from filplus.security.exceptions import SecurityError

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.storage_backend == "database":
        await create_schema(settings.database_url)
    yield
    await close_container()
    if settings.storage_backend == "database":
        await dispose_engine()


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    debug=settings.debug,
    lifespan=lifespan,
)

# Middleware order: last added runs first (outermost). Request flow: CorrelationId -> AuditTrigger.
app.add_middleware(AuditTriggerMiddleware)
app.add_middleware(CorrelationIdMiddleware)


def _categorized(exc: Exception) -> JSONResponse:
    category = categorize(exc)
    return JSONResponse(
        status_code=status_for(category),
        content=error_body(category, getattr(exc, "message", None) or str(exc)),
    )


@app.exception_handler(DomainError)
async def domain_error_handler(request, exc: DomainError):
    return _categorized(exc)


@app.exception_handler(ApplicationError)
async def application_error_handler(request, exc: ApplicationError):
    return _categorized(exc)


@app.exception_handler(SecurityError)
async def security_error_handler(request, exc: SecurityError):
    return _categorized(exc)


@app.exception_handler(Exception)
async def unexpected_error_handler(request, exc: Exception):
    logger.error("unhandled_exception", extra={"path": request.url.path}, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content=error_body(ErrorCategory.INTERNAL_ERROR, "Internal server error"),
    )


# Routers: /health, /applications, /roles
app.include_router(health.router)
app.include_router(applications.router, prefix="/applications")
app.include_router(roles.router, prefix="/roles")
