"""Domain layer: aggregate, events, schemas, validators, exceptions. Pure business logic only."""

from filplus.domain.exceptions import (
    AlreadyExistsError,
    DomainError,
    DomainValidationError,
    InvalidTransitionError,
)
from filplus.domain.models import (
    Application,
    ApplicationAllocator,
    ApplicationStatus,
    DomainEvent,
    latest_instruction,
)
from filplus.domain.validators import normalize_github_handles

__all__ = [
    "AlreadyExistsError",
    "Application",
    "ApplicationAllocator",
    "ApplicationStatus",
    "DomainError",
    "DomainEvent",
    "DomainValidationError",
    "InvalidTransitionError",
    "latest_instruction",
    "normalize_github_handles",
]
