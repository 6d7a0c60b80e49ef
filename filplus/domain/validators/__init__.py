from filplus.domain.validators.application_validator import (
    normalize_github_handles,
    require_non_empty,
    validate_application_id,
    validate_approvals,
    validate_datacap_amount,
    validate_instructions,
)

__all__ = [
    "normalize_github_handles",
    "require_non_empty",
    "validate_application_id",
    "validate_approvals",
    "validate_datacap_amount",
    "validate_instructions",
]
