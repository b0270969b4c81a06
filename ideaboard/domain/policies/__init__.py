"""Domain policy modules."""

from ideaboard.domain.policies.capabilities import (
    Capability,
    denial_reason,
    is_allowed,
    role_grants,
)

__all__ = ["Capability", "denial_reason", "is_allowed", "role_grants"]
