"""Application-layer exceptions. Do not reuse domain exceptions."""


class ApplicationError(Exception):
    """Base for all application-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundError(ApplicationError):
    """Raised when an aggregate or read-model document does not exist."""


class ConcurrencyConflictError(ApplicationError):
    """Raised when the store's version for an aggregate differs from the expected version. Retryable."""


class NoHandlerRegisteredError(ApplicationError):
    """Raised when a command or query type has no (or more than one) registered handler."""


class CollaboratorUnavailableError(ApplicationError):
    """Raised when an external collaborator (chain, pull-request service) times out or fails."""
