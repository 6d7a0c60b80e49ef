"""RoleResolver: address lookup, priority order, action permissions."""

import pytest

from filplus.security.exceptions import AuthorizationError
from filplus.security.roles import Role, RoleConfig, RoleResolver


@pytest.fixture
def resolver():
    return RoleResolver(
        RoleConfig.from_lists(
            governance_review_addresses=["f1Gov", "f1shared"],
            rkh_addresses=["f1rkh", "f1shared", "f1both"],
            ma_addresses=["f1ma", "f1both", " "],
        )
    )


@pytest.mark.parametrize(
    "address, role",
    [
        ("f1gov", Role.GOVERNANCE_TEAM),
        ("  F1GOV ", Role.GOVERNANCE_TEAM),
        ("f1rkh", Role.ROOT_KEY_HOLDER),
        ("f1ma", Role.METADATA_ALLOCATOR),
        ("f1nobody", Role.USER),
        ("", Role.USER),
    ],
)
def test_role_of(resolver, address, role):
    assert resolver.role_of(address) == role


def test_priority_when_address_in_several_lists(resolver):
    assert resolver.role_of("f1shared") == Role.GOVERNANCE_TEAM
    assert resolver.role_of("f1both") == Role.ROOT_KEY_HOLDER


def test_blank_entries_are_ignored():
    config = RoleConfig.from_lists(ma_addresses=["", "  "])
    assert config.ma_addresses == frozenset()


def test_governance_team_may_submit_review(resolver):
    assert resolver.check_permission("F1GOV", "submit_governance_review") == Role.GOVERNANCE_TEAM


@pytest.mark.parametrize(
    "address, action",
    [
        ("f1rkh", "submit_governance_review"),
        ("f1ma", "submit_governance_review"),
        ("f1nobody", "submit_governance_review"),
        ("f1gov", "unknown_action"),
    ],
)
def test_denied_actions(resolver, address, action):
    with pytest.raises(AuthorizationError):
        resolver.check_permission(address, action)
