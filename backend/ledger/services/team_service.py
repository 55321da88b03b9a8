"""
Team service for ledger team lifecycle.
Creates teams with their single owner membership, lists the teams a user
belongs to and manages role-gated team settings (name, currency, budget,
income target, categories, report access) and team deletion.
"""

import logging
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from rest_framework.exceptions import PermissionDenied

from ..exceptions import Conflict
from ..identity import IdentityContext
from ..models import SUPPORTED_CURRENCIES, Team
from ..roles import Role, has_rank_of
from .transaction_service import MAX_AMOUNT_DECIMAL_PLACES, MAX_AMOUNT_INTEGER_DIGITS

logger = logging.getLogger(__name__)

MAX_TEAM_NAME_LENGTH = 50
MAX_CATEGORY_FIELD_LENGTH = 50

# Least privileged role allowed to run each team setting operation
SETTING_ROLES = {
    "rename": Role.ADMIN,
    "currency": Role.ADMIN,
    "budget": Role.ADMIN,
    "income_target": Role.OWNER,
    "categories": Role.ADMIN,
    "report_access": Role.ADMIN,
    "delete": Role.ADMIN,
}


class TeamService:
    """
    Team lifecycle operations.
    """

    @transaction.atomic
    def create_team(self, user, name: str, currency: str = "VND") -> Team:
        """
        Atomically create a team owned by ``user``.

        The owner membership is created by ``Team.save`` in the same
        transaction, so a team never exists without its owner row.

        Args:
            user: User instance who will own the team
            name: Team name (1-50 characters after stripping)
            currency: One of the supported currency codes, case-insensitive

        Returns:
            Team: Created team instance

        Raises:
            ValidationError: If the name or currency is invalid
        """
        logger.info(
            "Team creation initiated",
            extra={
                "owner_id": user.id,
                "team_name": name,
                "action": "team_creation_start",
                "component": "TeamService",
            },
        )

        try:
            name = self._validate_team_name(name)
            currency = self._validate_currency(currency)

            team = Team.objects.create(name=name, owner=user, currency=currency)

            logger.info(
                "Team created successfully",
                extra={
                    "team_id": team.id,
                    "owner_id": user.id,
                    "currency": currency,
                    "action": "team_creation_success",
                    "component": "TeamService",
                },
            )
            return team

        except ValidationError:
            logger.warning(
                "Team creation failed - validation error",
                extra={
                    "owner_id": user.id,
                    "team_name": name,
                    "action": "team_creation_validation_failed",
                    "component": "TeamService",
                    "severity": "medium",
                },
            )
            raise

        except DatabaseError as e:
            logger.error(
                "Team creation failed - database error",
                extra={
                    "owner_id": user.id,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                    "action": "team_creation_database_error",
                    "component": "TeamService",
                    "severity": "high",
                },
                exc_info=True,
            )
            raise

    def list_user_teams(self, user):
        """Teams the user holds any membership in."""
        return Team.objects.filter(memberships__user=user).select_related("owner").distinct()

    # -------------------------------------------------------------------
    # SETTINGS (role-gated)
    # -------------------------------------------------------------------

    def rename_team(self, actor: IdentityContext, name) -> Team:
        self._ensure_rank(actor, "rename")
        return self._save_setting(actor, "name", self._validate_team_name(name))

    def set_currency(self, actor: IdentityContext, currency) -> Team:
        self._ensure_rank(actor, "currency")
        return self._save_setting(actor, "currency", self._validate_currency(currency))

    def set_budget(self, actor: IdentityContext, amount) -> Team:
        self._ensure_rank(actor, "budget")
        return self._save_setting(actor, "budget_amount", self._validate_money(amount, "Budget"))

    def set_income_target(self, actor: IdentityContext, target) -> Team:
        """Owner only."""
        self._ensure_rank(actor, "income_target")
        return self._save_setting(
            actor, "income_target", self._validate_money(target, "Income target")
        )

    def set_report_access(self, actor: IdentityContext, allow) -> Team:
        self._ensure_rank(actor, "report_access")
        if not isinstance(allow, bool):
            raise ValidationError("Report access must be true or false")
        return self._save_setting(actor, "allow_report_access", allow)

    @transaction.atomic
    def add_category(self, actor: IdentityContext, name, icon) -> Team:
        """
        Append a ``{"name", "icon"}`` category to the team.

        Raises:
            PermissionDenied: Unless the actor is an admin or the owner
            ValidationError: If name or icon is blank or too long
            Conflict: If a category with the same name (any case) exists
        """
        self._ensure_rank(actor, "categories")

        category = {}
        for field, value in (("name", name), ("icon", icon)):
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(f"Category {field} cannot be empty")
            if len(value.strip()) > MAX_CATEGORY_FIELD_LENGTH:
                raise ValidationError(
                    f"Category {field} cannot be longer than {MAX_CATEGORY_FIELD_LENGTH} characters"
                )
            category[field] = value.strip()

        team = Team.objects.select_for_update().get(pk=actor.team_id)
        categories = list(team.categories or [])
        if any(existing["name"].lower() == category["name"].lower() for existing in categories):
            raise Conflict(f'Category "{category["name"]}" already exists.')

        categories.append(category)
        return self._save_setting(actor, "categories", categories, team=team)

    @transaction.atomic
    def update_settings(self, actor: IdentityContext, changes: dict) -> Team:
        """
        Apply several settings at once; all succeed or none do.

        Args:
            changes: Subset of ``name``, ``currency``, ``budget_amount``,
                     ``income_target``, ``allow_report_access``

        Raises:
            ValidationError: If ``changes`` is empty or names an unknown setting
            PermissionDenied: If any single setting is beyond the actor's role
        """
        setters = {
            "name": self.rename_team,
            "currency": self.set_currency,
            "budget_amount": self.set_budget,
            "income_target": self.set_income_target,
            "allow_report_access": self.set_report_access,
        }
        if not changes:
            raise ValidationError("No settings to update.")
        unknown = sorted(set(changes) - set(setters))
        if unknown:
            raise ValidationError(f"Unknown team settings: {', '.join(unknown)}")

        team = None
        for field, value in changes.items():
            team = setters[field](actor, value)
        return team

    @transaction.atomic
    def delete_team(self, actor: IdentityContext) -> None:
        """Delete the team with its memberships, transactions and change requests."""
        self._ensure_rank(actor, "delete")

        _, per_model = Team.objects.filter(pk=actor.team_id).delete()

        logger.warning(
            "Team deleted",
            extra={
                "team_id": actor.team_id,
                "requesting_user_id": actor.user_id,
                "actual_role": actor.actual_role.value,
                "deleted_rows": per_model,
                "action": "team_delete_success",
                "component": "TeamService",
                "severity": "high",
            },
        )

    def _ensure_rank(self, actor: IdentityContext, operation):
        required = SETTING_ROLES[operation]
        if has_rank_of(actor.actual_role, required):
            return

        logger.warning(
            "Team setting permission denied",
            extra={
                "team_id": actor.team_id,
                "requesting_user_id": actor.user_id,
                "actual_role": actor.actual_role.value,
                "required_role": required.value,
                "operation": operation,
                "action": "team_setting_denied",
                "component": "TeamService",
                "severity": "high",
            },
        )
        raise PermissionDenied(f"This requires the {required.label} role or higher.")

    def _save_setting(self, actor: IdentityContext, field, value, team=None) -> Team:
        team = team or Team.objects.get(pk=actor.team_id)
        setattr(team, field, value)
        team.save(update_fields=[field, "updated_at"])

        logger.info(
            "Team setting updated",
            extra={
                "team_id": actor.team_id,
                "requesting_user_id": actor.user_id,
                "setting": field,
                "action": "team_setting_updated",
                "component": "TeamService",
            },
        )
        return team

    def _validate_team_name(self, name) -> str:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Team name cannot be empty")
        name = name.strip()
        if len(name) > MAX_TEAM_NAME_LENGTH:
            raise ValidationError(
                f"Team name cannot be longer than {MAX_TEAM_NAME_LENGTH} characters"
            )
        return name

    def _validate_currency(self, currency) -> str:
        if not isinstance(currency, str) or currency.strip().upper() not in SUPPORTED_CURRENCIES:
            raise ValidationError(
                f"Currency must be one of: {', '.join(SUPPORTED_CURRENCIES)}"
            )
        return currency.strip().upper()

    def _validate_money(self, value, label) -> Decimal:
        if isinstance(value, bool):
            raise ValidationError(f"{label} must be a valid number")
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationError(f"{label} must be a valid number")

        if not amount.is_finite():
            raise ValidationError(f"{label} must be a valid number")
        if amount < 0:
            raise ValidationError(f"{label} cannot be negative")
        if amount.as_tuple().exponent < -MAX_AMOUNT_DECIMAL_PLACES:
            raise ValidationError(
                f"{label} cannot have more than {MAX_AMOUNT_DECIMAL_PLACES} decimal places"
            )
        if amount and amount.adjusted() + 1 > MAX_AMOUNT_INTEGER_DIGITS:
            raise ValidationError(f"{label} is too large")
        return amount
