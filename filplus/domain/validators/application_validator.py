"""Validators for application commands. Pure functions, no infrastructure or DB access."""

import re
from typing import Any, List, Optional, Sequence

from filplus.domain.exceptions import DomainValidationError
from filplus.domain.models.application import ApplicationInstruction

_HANDLE_SEPARATORS = re.compile(r"[\s,]+")


def normalize_github_handles(raw: Optional[str]) -> List[str]:
    """
    Turn the free-text "additional GitHub handles" field into a clean list:
    split on commas/whitespace, strip a leading '@', lower-case, drop empties, de-duplicate.
    """
    if not raw or not isinstance(raw, str):
        return []
    handles: List[str] = []
    for part in _HANDLE_SEPARATORS.split(raw):
        handle = part.strip().removeprefix("@").strip().lower()
        if handle and handle not in handles:
            handles.append(handle)
    return handles


def require_non_empty(value: Any, field_name: str) -> None:
    """Raises DomainValidationError if a required command field is missing or blank."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise DomainValidationError(f"{field_name} must not be empty")


def validate_application_id(application_id: str) -> None:
    require_non_empty(application_id, "application_id")


def validate_datacap_amount(amount: Optional[float], field_name: str = "datacap_amount") -> None:
    if amount is None or amount <= 0:
        raise DomainValidationError(f"{field_name} must be positive, got {amount}")


def validate_instructions(instructions: Sequence[ApplicationInstruction]) -> None:
    """Each instruction carries a non-negative amount and ordered timestamps when both are set."""
    for index, instruction in enumerate(instructions):
        if instruction.datacap_amount < 0:
            raise DomainValidationError(
                f"instruction {index}: datacap_amount must not be negative"
            )
        if (
            instruction.start_timestamp is not None
            and instruction.end_timestamp is not None
            and instruction.end_timestamp < instruction.start_timestamp
        ):
            raise DomainValidationError(
                f"instruction {index}: end_timestamp precedes start_timestamp"
            )


def validate_approvals(approvals: Sequence[str]) -> None:
    for signer in approvals:
        if not isinstance(signer, str) or not signer.strip():
            raise DomainValidationError("approvals must be non-empty signer addresses")
