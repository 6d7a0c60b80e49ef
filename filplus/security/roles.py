"""Address-to-role resolution from configured address lists. No FastAPI, no global config reads."""

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable

from filplus.security.exceptions import AuthorizationError


class Role(str, Enum):
    USER = "USER"
    GOVERNANCE_TEAM = "GOVERNANCE_TEAM"
    ROOT_KEY_HOLDER = "ROOT_KEY_HOLDER"
    METADATA_ALLOCATOR = "METADATA_ALLOCATOR"


def _lowered(addresses: Iterable[str]) -> FrozenSet[str]:
    return frozenset(a.strip().lower() for a in addresses if a and a.strip())


@dataclass(frozen=True)
class RoleConfig:
    """The three configured address lists. Built once at startup and injected."""

    governance_review_addresses: FrozenSet[str] = field(default_factory=frozenset)
    rkh_addresses: FrozenSet[str] = field(default_factory=frozenset)
    ma_addresses: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_lists(
        cls,
        governance_review_addresses: Iterable[str] = (),
        rkh_addresses: Iterable[str] = (),
        ma_addresses: Iterable[str] = (),
    ) -> "RoleConfig":
        return cls(
            governance_review_addresses=_lowered(governance_review_addresses),
            rkh_addresses=_lowered(rkh_addresses),
            ma_addresses=_lowered(ma_addresses),
        )


# Action -> roles allowed to perform it.
# Action                      GOVERNANCE_TEAM  ROOT_KEY_HOLDER  METADATA_ALLOCATOR  USER
# submit_governance_review    ✓                ✗                ✗                   ✗
_ACTION_ROLES: dict[str, FrozenSet[Role]] = {
    "submit_governance_review": frozenset({Role.GOVERNANCE_TEAM}),
}


class RoleResolver:
    """Static, case-insensitive membership lookup. Priority: GOVERNANCE_TEAM, ROOT_KEY_HOLDER, METADATA_ALLOCATOR, USER."""

    def __init__(self, config: RoleConfig) -> None:
        self._config = config

    def role_of(self, address: str) -> Role:
        normalized = (address or "").strip().lower()
        if normalized in self._config.governance_review_addresses:
            return Role.GOVERNANCE_TEAM
        if normalized in self._config.rkh_addresses:
            return Role.ROOT_KEY_HOLDER
        if normalized in self._config.ma_addresses:
            return Role.METADATA_ALLOCATOR
        return Role.USER

    def check_permission(self, address: str, action: str) -> Role:
        """Return the address's role; raise AuthorizationError if it may not perform action."""
        role = self.role_of(address)
        if role not in _ACTION_ROLES.get(action, frozenset()):
            raise AuthorizationError(
                f"Role {role.value} of {address} does not have permission for action '{action}'"
            )
        return role
