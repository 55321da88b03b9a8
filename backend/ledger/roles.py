"""
Team role hierarchy.

Roles form a fixed total order where a lower rank carries more authority:
``owner (0) < admin (1) < deputy (2) < member (3)``. Every role value entering
the system is normalized to :class:`Role` exactly once, at the boundary, via
:func:`normalize_role`; comparisons below only ever see canonical roles.
"""

import logging

from django.db import models

from .exceptions import InvalidRole

logger = logging.getLogger(__name__)


class Role(models.TextChoices):
    OWNER = "owner", "Owner"
    ADMIN = "admin", "Admin"
    DEPUTY = "deputy", "Deputy"
    MEMBER = "member", "Member"


ROLE_RANKS = {
    Role.OWNER: 0,
    Role.ADMIN: 1,
    Role.DEPUTY: 2,
    Role.MEMBER: 3,
}

# Most privileged first
ROLE_HIERARCHY = sorted(ROLE_RANKS, key=ROLE_RANKS.get)


def normalize_role(value):
    """
    Convert an incoming role representation to the canonical :class:`Role`.

    Accepts ``Role`` members and case-insensitive strings (``"Owner"``,
    ``"owner"``, ``" OWNER "``).

    Raises:
        InvalidRole: If the value does not name one of the four team roles.
    """
    if isinstance(value, Role):
        return value

    if isinstance(value, str):
        candidate = value.strip().lower()
        if candidate in Role.values:
            return Role(candidate)

    logger.warning(
        "Unknown role value rejected",
        extra={
            "role_value": repr(value),
            "action": "role_normalization_failed",
            "component": "roles",
            "severity": "medium",
        },
    )
    raise InvalidRole(value)


def rank(role):
    """Return the numeric rank of a canonical role (lower = more authority)."""
    if not isinstance(role, Role):
        raise InvalidRole(role)
    return ROLE_RANKS[role]


def can_override_rank(actor_role, target_role):
    """True if ``actor_role`` is strictly more privileged than ``target_role``."""
    return rank(actor_role) < rank(target_role)


def can_assign_role(actor_role, new_role):
    """
    True if a member holding ``actor_role`` may grant ``new_role`` to someone.

    Only strictly lower roles can be granted, so nobody can promote anyone
    (themselves included) to their own rank or above, and the owner role can
    never be assigned.
    """
    return rank(actor_role) < rank(new_role)


def has_rank_of(actor_role, required_role):
    """True if ``actor_role`` is at least as privileged as ``required_role``."""
    return rank(actor_role) <= rank(required_role)
