# Application layer: repository, buses, command/query/event handlers.

from filplus.application.exceptions import (
    ApplicationError,
    CollaboratorUnavailableError,
    ConcurrencyConflictError,
    NoHandlerRegisteredError,
    NotFoundError,
)

__all__ = [
    "ApplicationError",
    "CollaboratorUnavailableError",
    "ConcurrencyConflictError",
    "NoHandlerRegisteredError",
    "NotFoundError",
]
