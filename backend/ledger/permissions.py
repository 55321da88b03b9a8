# permissions.py
import logging

from rest_framework import permissions

logger = logging.getLogger(__name__)


class IsTeamMember(permissions.BasePermission):
    """
    Team membership validation.

    Authorization granted to authenticated users holding any role in the
    team named by the URL. Trusts TeamContextMixin for the identity lookup;
    finer-grained rules (ownership, rank) live in the services.
    """

    message = "You are not a member of this team."

    def has_permission(self, request, view):
        """
        Validate membership using the identity resolved by TeamContextMixin.

        Returns:
            bool: True if the caller has an identity in the requested team
        """
        identity = getattr(request, "identity", None)

        if identity is None:
            logger.warning(
                "Team membership access denied",
                extra={
                    "user_id": getattr(request.user, "id", None),
                    "team_id": getattr(getattr(request, "team", None), "id", None),
                    "action": "team_membership_denied",
                    "component": "IsTeamMember",
                    "severity": "medium",
                },
            )
            return False

        logger.debug(
            "Team membership access granted",
            extra={
                "user_id": identity.user_id,
                "team_id": identity.team_id,
                "actual_role": identity.actual_role.value,
                "action": "team_membership_granted",
                "component": "IsTeamMember",
            },
        )
        return True
