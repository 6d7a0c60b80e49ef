"""Domain-specific exceptions. Pure domain layer, no infrastructure."""


class DomainError(Exception):
    """Base for all domain-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class DomainValidationError(DomainError):
    """Raised when command or aggregate input is malformed (missing fields, empty instructions)."""


class AlreadyExistsError(DomainError):
    """Raised when create is invoked on an aggregate that already has events."""


class InvalidTransitionError(DomainError):
    """Raised when an operation is invoked from a status that is not a legal source for it."""
