"""
Ledger-specific exceptions.

Services raise Django ``ValidationError`` for bad input and DRF's
``PermissionDenied`` / ``NotFound`` for authority and lookup failures. The two
classes below fill the gaps those libraries leave: a 409 for stale or
duplicate state transitions, and a dedicated error for unknown role strings.
"""

from django.core.exceptions import ValidationError
from rest_framework import status
from rest_framework.exceptions import APIException


class Conflict(APIException):
    """
    Raised when a guarded state transition finds the entity in an unexpected state.

    Covers duplicate in-flight change requests, stale transaction status and
    attempts to resolve an already-resolved request.
    """

    status_code = status.HTTP_409_CONFLICT
    default_detail = "The resource was modified by another operation."
    default_code = "conflict"


class InvalidRole(ValidationError):
    """Raised for any role string outside the fixed team role set."""

    def __init__(self, role):
        self.role = role
        super().__init__(
            f"Invalid role: {role!r}. Must be one of: owner, admin, deputy, member.",
            code="invalid_role",
        )
