# ledger/services/identity_context_service.py
"""
Identity context service.
Resolves the acting user's team and durable role into a call-scoped
IdentityContext, normalizing the persisted role exactly once.
"""

import logging

from django.db import DatabaseError
from rest_framework.exceptions import NotFound

from ..identity import IdentityContext
from ..models import Team, TeamMembership

logger = logging.getLogger(__name__)


class IdentityContextService:
    """
    Builds the per-request identity for team-scoped endpoints.

    Nothing is cached between calls: each request reads the membership row,
    so a role change takes effect on the very next call.
    """

    def build_request_context(self, request, view_kwargs=None):
        """
        Attach ``request.team`` and ``request.identity`` for the team in the URL.

        ``request.identity`` stays ``None`` for anonymous users and for
        authenticated users who are not members; permission classes turn
        that into a 403.

        Raises:
            NotFound: If the URL names a team that does not exist.
            DatabaseError: On database connectivity issues.
        """
        request.team = None
        request.identity = None

        if not request.user or not request.user.is_authenticated:
            return

        team_id = self._extract_team_id(view_kwargs)
        if team_id is None:
            return

        try:
            team = self._get_team(team_id)
            request.team = team
            request.identity = self.resolve_identity(request.user, team)
        except DatabaseError as e:
            logger.error(
                "Database error during identity resolution",
                extra={
                    "user_id": request.user.id,
                    "team_id": team_id,
                    "error": str(e),
                    "action": "identity_database_error",
                    "component": "IdentityContextService",
                    "severity": "high",
                },
            )
            raise

    def resolve_identity(self, user, team):
        """
        Return the IdentityContext of ``user`` in ``team`` or ``None`` for non-members.
        """
        membership = (
            TeamMembership.objects.filter(team=team, user=user)
            .only("role")
            .first()
        )
        if membership is None:
            logger.warning(
                "Team access by non-member",
                extra={
                    "user_id": user.id,
                    "team_id": team.id,
                    "action": "identity_not_member",
                    "component": "IdentityContextService",
                    "severity": "medium",
                },
            )
            return None

        identity = IdentityContext.build(user.id, team.id, membership.actual_role)

        logger.debug(
            "Identity context resolved",
            extra={
                "user_id": user.id,
                "team_id": team.id,
                "actual_role": identity.actual_role.value,
                "action": "identity_resolved",
                "component": "IdentityContextService",
            },
        )
        return identity

    def _extract_team_id(self, view_kwargs):
        if not view_kwargs:
            return None
        return view_kwargs.get("team_pk")

    def _get_team(self, team_id):
        try:
            return Team.objects.get(pk=int(team_id))
        except (Team.DoesNotExist, ValueError, TypeError):
            logger.warning(
                "Team not found during identity resolution",
                extra={
                    "team_id": team_id,
                    "action": "identity_team_not_found",
                    "component": "IdentityContextService",
                    "severity": "medium",
                },
            )
            raise NotFound("Team not found.")
