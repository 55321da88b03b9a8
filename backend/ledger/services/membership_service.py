"""
Membership service for team role management.
Handles member addition, role assignment and removal under the strict
owner > admin > deputy > member hierarchy, with audit logging.
"""

import logging

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from rest_framework.exceptions import NotFound, PermissionDenied

from ..exceptions import Conflict
from ..identity import IdentityContext
from ..models import TeamMembership
from ..roles import Role, can_assign_role, can_override_rank, normalize_role
from .change_request_service import ChangeRequestService

logger = logging.getLogger(__name__)

User = get_user_model()


class MembershipService:
    """
    Role-aware membership lifecycle for a single team.

    Authority is always read from ``actor.actual_role``; the team owner's
    membership is never reassigned or removed here.
    """

    def get_team_members(self, actor: IdentityContext):
        """All memberships of the actor's team, oldest first."""
        return (
            TeamMembership.objects.filter(team_id=actor.team_id)
            .select_related("user")
            .order_by("joined_at", "id")
        )

    @transaction.atomic
    def add_member(
        self, actor: IdentityContext, user_id: int, role=Role.MEMBER
    ) -> TeamMembership:
        """
        Add an existing user to the actor's team.

        Args:
            actor: IdentityContext of the inviting member
            user_id: ID of the user to add
            role: Role to grant, must rank strictly below the actor's

        Returns:
            TeamMembership: Newly created membership

        Raises:
            InvalidRole: If the role is unknown
            PermissionDenied: If the actor cannot grant the role
            NotFound: If the user does not exist
            Conflict: If the user is already a member
        """
        role = normalize_role(role)

        if not can_assign_role(actor.actual_role, role):
            logger.warning(
                "Member addition permission denied",
                extra={
                    "team_id": actor.team_id,
                    "requesting_user_id": actor.user_id,
                    "actual_role": actor.actual_role.value,
                    "requested_role": role.value,
                    "action": "member_add_denied",
                    "component": "MembershipService",
                    "severity": "high",
                },
            )
            raise PermissionDenied(f"You cannot grant the {role.label} role.")

        if not User.objects.filter(pk=user_id).exists():
            raise NotFound("User not found.")

        if TeamMembership.objects.filter(team_id=actor.team_id, user_id=user_id).exists():
            raise Conflict("User is already a member of this team.")

        try:
            with transaction.atomic():
                membership = TeamMembership.objects.create(
                    team_id=actor.team_id, user_id=user_id, role=role
                )
        except IntegrityError:
            raise Conflict("User is already a member of this team.")

        logger.info(
            "Team member added",
            extra={
                "team_id": actor.team_id,
                "target_user_id": user_id,
                "role": role.value,
                "requesting_user_id": actor.user_id,
                "action": "member_add_success",
                "component": "MembershipService",
            },
        )
        return membership

    @transaction.atomic
    def assign_role(
        self, actor: IdentityContext, target_user_id: int, new_role
    ) -> TeamMembership:
        """
        Change a member's durable role.

        The actor must outrank the member's current role and the new role,
        so nobody can promote themselves or anyone to their own level.

        Args:
            actor: IdentityContext of the member making the change
            target_user_id: ID of the member whose role changes
            new_role: Requested role, any case

        Returns:
            TeamMembership: Updated membership

        Raises:
            InvalidRole: If the role is unknown
            NotFound: If the target is not a team member
            ValidationError: If the target is the team owner
            PermissionDenied: If the actor lacks the rank for this change
        """
        new_role = normalize_role(new_role)
        target_membership = self._get_membership(actor, target_user_id)

        if target_membership.role == Role.OWNER:
            raise ValidationError("The team owner's role cannot be changed")

        current_role = target_membership.actual_role

        if not (
            can_override_rank(actor.actual_role, current_role)
            and can_assign_role(actor.actual_role, new_role)
        ):
            logger.warning(
                "Member role update permission denied",
                extra={
                    "team_id": actor.team_id,
                    "requesting_user_id": actor.user_id,
                    "actual_role": actor.actual_role.value,
                    "target_user_id": target_user_id,
                    "current_role": current_role.value,
                    "new_role": new_role.value,
                    "action": "member_role_update_denied",
                    "component": "MembershipService",
                    "severity": "high",
                },
            )
            raise PermissionDenied("You don't have permission to assign this role.")

        target_membership.role = new_role
        target_membership.save(update_fields=["role"])

        logger.info(
            "Team member role updated successfully",
            extra={
                "team_id": actor.team_id,
                "target_user_id": target_user_id,
                "old_role": current_role.value,
                "new_role": new_role.value,
                "requesting_user_id": actor.user_id,
                "action": "member_role_update_success",
                "component": "MembershipService",
            },
        )
        return target_membership

    @transaction.atomic
    def remove_member(self, actor: IdentityContext, target_user_id: int) -> int:
        """
        Remove a member from the team.

        Pending requests the member had filed, and pending requests against
        their transactions, are cancelled. Their transactions stay in the
        ledger, unlocked.

        Returns:
            int: Number of pending requests cancelled

        Raises:
            NotFound: If the target is not a team member
            ValidationError: If the target is the team owner
            PermissionDenied: If the actor does not outrank the target
        """
        target_membership = self._get_membership(actor, target_user_id)

        if target_membership.role == Role.OWNER:
            raise ValidationError("Cannot remove the team owner")

        if not can_override_rank(actor.actual_role, target_membership.actual_role):
            logger.warning(
                "Member removal permission denied",
                extra={
                    "team_id": actor.team_id,
                    "requesting_user_id": actor.user_id,
                    "target_user_id": target_user_id,
                    "action": "member_removal_denied",
                    "component": "MembershipService",
                    "severity": "high",
                },
            )
            raise PermissionDenied("You don't have permission to remove this member.")

        cancelled = ChangeRequestService.cancel_requests_filed_by(
            actor.team_id, target_user_id, actor_user_id=actor.user_id
        )
        # Nobody left in the team could resolve these
        cancelled += ChangeRequestService.cancel_requests_against(
            actor.team_id, target_user_id, actor_user_id=actor.user_id
        )
        target_membership.delete()

        logger.warning(
            "Team member removed",
            extra={
                "team_id": actor.team_id,
                "target_user_id": target_user_id,
                "requesting_user_id": actor.user_id,
                "cancelled_requests": cancelled,
                "action": "member_removal_success",
                "component": "MembershipService",
                "severity": "medium",
            },
        )
        return cancelled

    def _get_membership(self, actor: IdentityContext, target_user_id) -> TeamMembership:
        try:
            return TeamMembership.objects.get(team_id=actor.team_id, user_id=target_user_id)
        except (TeamMembership.DoesNotExist, ValueError, TypeError):
            logger.debug(
                "Target membership not found",
                extra={
                    "team_id": actor.team_id,
                    "target_user_id": target_user_id,
                    "action": "membership_not_found",
                    "component": "MembershipService",
                },
            )
            raise NotFound("User is not a member of this team.")
