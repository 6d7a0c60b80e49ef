"""Security: address roles and authorization. No FastAPI."""

from filplus.security.exceptions import AuthorizationError, SecurityError
from filplus.security.roles import Role, RoleConfig, RoleResolver

__all__ = [
    "AuthorizationError",
    "Role",
    "RoleConfig",
    "RoleResolver",
    "SecurityError",
]
