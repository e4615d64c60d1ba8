"""
Role and permission matrices for the quote engine.

WHY: Every role-based branch in the services reads one of the matrices
below instead of comparing role strings inline. Role is a closed enum and
each matrix is checked at import time to cover every member, so adding a
role without deciding its permissions fails loudly.

ROLES:
- CUSTOMER: owns quotes, responds to sent quotes, never moves status directly
- OPERATOR: triages and estimates cutting cost on quotes they have claimed
- ADMIN:    prices, sends, forks revisions, may request any valid transition
- SYSTEM:   synthetic actor for provider callbacks (payment webhook)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    CUSTOMER = "customer"
    OPERATOR = "operator"
    ADMIN = "admin"
    SYSTEM = "system"

    @classmethod
    def parse(cls, value: str) -> "Role":
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unknown role '{value}'") from None


# Roles a person can hold (SYSTEM is never stored on a user row)
USER_ROLES = (Role.CUSTOMER, Role.OPERATOR, Role.ADMIN)


@dataclass(frozen=True)
class Actor:
    """Identity supplied per request by the identity collaborator."""
    user_id: int | None
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @property
    def is_operator(self) -> bool:
        return self.role is Role.OPERATOR

    @property
    def is_customer(self) -> bool:
        return self.role is Role.CUSTOMER


SYSTEM_ACTOR = Actor(user_id=None, role=Role.SYSTEM)


# =============================================================================
# STATUS TRANSITIONS
# =============================================================================

# Target statuses each role may request through the status endpoint.
# None means "any target the transition table allows".
DIRECT_TRANSITION_TARGETS: dict[Role, frozenset[str] | None] = {
    Role.CUSTOMER: frozenset(),
    Role.OPERATOR: frozenset({"needs_attention", "ready_for_pricing"}),
    Role.ADMIN: None,
    Role.SYSTEM: frozenset({"accepted"}),
}


# =============================================================================
# LINE ITEM MUTATIONS
# =============================================================================

CAN_ASSIGN_MATERIAL: dict[Role, bool] = {
    Role.CUSTOMER: False,
    Role.OPERATOR: True,
    Role.ADMIN: True,
    Role.SYSTEM: False,
}

CAN_WRITE_CUTTING_PRICE: dict[Role, bool] = {
    Role.CUSTOMER: False,
    Role.OPERATOR: True,
    Role.ADMIN: True,
    Role.SYSTEM: False,
}

# Operators must own the quote; admins bypass the ownership check
CUTTING_PRICE_REQUIRES_ASSIGNMENT: dict[Role, bool] = {
    Role.CUSTOMER: True,
    Role.OPERATOR: True,
    Role.ADMIN: False,
    Role.SYSTEM: True,
}

CAN_WRITE_CUSTOMER_PRICE: dict[Role, bool] = {
    Role.CUSTOMER: False,
    Role.OPERATOR: False,
    Role.ADMIN: True,
    Role.SYSTEM: False,
}


# =============================================================================
# QUOTE-LEVEL OPERATIONS
# =============================================================================

ADMIN_ONLY = {
    Role.CUSTOMER: False,
    Role.OPERATOR: False,
    Role.ADMIN: True,
    Role.SYSTEM: False,
}

STAFF_ONLY = {
    Role.CUSTOMER: False,
    Role.OPERATOR: True,
    Role.ADMIN: True,
    Role.SYSTEM: False,
}

# Comment visibilities each role may read and write
READABLE_VISIBILITIES: dict[Role, frozenset[str]] = {
    Role.CUSTOMER: frozenset({"public"}),
    Role.OPERATOR: frozenset({"public", "internal"}),
    Role.ADMIN: frozenset({"public", "internal"}),
    Role.SYSTEM: frozenset({"public", "internal"}),
}

WRITABLE_VISIBILITIES: dict[Role, frozenset[str]] = {
    Role.CUSTOMER: frozenset({"public"}),
    Role.OPERATOR: frozenset({"public", "internal"}),
    Role.ADMIN: frozenset({"public", "internal"}),
    Role.SYSTEM: frozenset({"internal"}),
}


def _assert_exhaustive(*matrices: dict) -> None:
    for matrix in matrices:
        missing = set(Role) - set(matrix)
        if missing:
            raise RuntimeError(
                f"Permission matrix missing roles: {', '.join(sorted(r.value for r in missing))}"
            )


_assert_exhaustive(
    DIRECT_TRANSITION_TARGETS,
    CAN_ASSIGN_MATERIAL,
    CAN_WRITE_CUTTING_PRICE,
    CUTTING_PRICE_REQUIRES_ASSIGNMENT,
    CAN_WRITE_CUSTOMER_PRICE,
    ADMIN_ONLY,
    STAFF_ONLY,
    READABLE_VISIBILITIES,
    WRITABLE_VISIBILITIES,
)
