"""
Call-scoped identity of the acting team member.
"""

from dataclasses import dataclass

from .roles import Role, normalize_role


@dataclass(frozen=True)
class IdentityContext:
    """
    Who is calling, in which team, and with what durable authority.

    Built once per request from the persisted membership. ``actual_role`` is
    always a canonical :class:`~ledger.roles.Role`; the session's display
    view mode is deliberately not part of this object.
    """

    user_id: int
    team_id: int
    actual_role: Role

    @classmethod
    def build(cls, user_id, team_id, role):
        """Create a context, normalizing ``role`` at this boundary."""
        return cls(user_id=int(user_id), team_id=int(team_id), actual_role=normalize_role(role))

    @property
    def is_owner(self):
        return self.actual_role == Role.OWNER
