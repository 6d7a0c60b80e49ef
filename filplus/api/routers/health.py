# filplus/api/routers/health.py

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from filplus.api.dependencies import get_container
from filplus.bootstrap import Container

router = APIRouter()


@router.get("/health")
async def health(request: Request, container: Annotated[Container, Depends(get_container)]):
    """Liveness with correlation ID and the active storage backend."""
    settings = container.settings
    return {
        "status": "ok",
        "correlation_id": getattr(request.state, "correlation_id", None),
        "environment": settings.environment,
        "version": settings.version,
        "storage_backend": settings.storage_backend,
    }
