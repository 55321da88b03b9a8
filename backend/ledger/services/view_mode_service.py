# ledger/services/view_mode_service.py
"""
View mode selection.
A view mode is a per-session display role that may narrow, never widen,
what a member sees. Nothing in the authorization path reads it.
"""

import logging

from django.conf import settings
from django.core.exceptions import ValidationError

from ..roles import ROLE_HIERARCHY, Role, normalize_role, rank

logger = logging.getLogger(__name__)

# The owner is presented as an admin in the interface
DISPLAY_LABELS = {
    Role.OWNER: "Admin",
    Role.ADMIN: "Admin",
    Role.DEPUTY: "Deputy",
    Role.MEMBER: "Member",
}


class ViewModeService:
    """Session-backed view mode per team."""

    @staticmethod
    def available_view_modes(actual_role):
        """Roles a member may display as, most privileged first."""
        return [mode for mode in ROLE_HIERARCHY if rank(mode) >= rank(actual_role)]

    @staticmethod
    def default_view_mode(actual_role):
        return actual_role

    @staticmethod
    def display_label(mode):
        return DISPLAY_LABELS[mode]

    @staticmethod
    def select_view_mode(session, identity, requested_mode):
        """
        Store the display role for ``identity``'s team in the session.

        Raises:
            InvalidRole: If ``requested_mode`` does not name a role
            ValidationError: If the mode is more privileged than the actual role
        """
        mode = normalize_role(requested_mode)

        if rank(mode) < rank(identity.actual_role):
            logger.warning(
                "View mode above actual role rejected",
                extra={
                    "user_id": identity.user_id,
                    "team_id": identity.team_id,
                    "actual_role": identity.actual_role.value,
                    "requested_mode": mode.value,
                    "action": "view_mode_rejected",
                    "component": "ViewModeService",
                    "severity": "low",
                },
            )
            raise ValidationError("View mode cannot be more privileged than your role")

        key = ViewModeService._session_key()
        selections = dict(session.get(key, {}))
        selections[str(identity.team_id)] = mode.value
        session[key] = selections

        logger.debug(
            "View mode selected",
            extra={
                "user_id": identity.user_id,
                "team_id": identity.team_id,
                "view_mode": mode.value,
                "action": "view_mode_selected",
                "component": "ViewModeService",
            },
        )
        return mode

    @staticmethod
    def get_view_mode(session, identity):
        """
        Current display role for ``identity``'s team.

        A stored selection that now outranks the member's actual role (after a
        demotion, for instance) is dropped in favour of the default.
        """
        key = ViewModeService._session_key()
        stored = session.get(key, {}).get(str(identity.team_id))
        if stored is None:
            return ViewModeService.default_view_mode(identity.actual_role)

        mode = Role(stored) if stored in Role.values else None
        if mode is None or rank(mode) < rank(identity.actual_role):
            selections = dict(session.get(key, {}))
            selections.pop(str(identity.team_id), None)
            session[key] = selections
            return ViewModeService.default_view_mode(identity.actual_role)

        return mode

    @staticmethod
    def _session_key():
        return settings.LEDGER["SESSION_VIEW_MODE_KEY"]
