"""
Database models for the team ledger.

This module defines teams, role-based team memberships, ledger transactions
and the change requests non-owners file against someone else's transaction.
"""

import logging
from datetime import timedelta

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from .roles import Role

# Get structured logger for this module
logger = logging.getLogger(__name__)

SUPPORTED_CURRENCIES = ["VND", "USD", "EUR", "JPY"]

# -------------------------------------------------------------------
# TEAM & MEMBERSHIP
# -------------------------------------------------------------------
# Shared ledgers with a strict owner > admin > deputy > member hierarchy


class Team(models.Model):
    """
    Shared ledger owned by exactly one user.

    The owner is fixed at creation and mirrored into a single ``owner``
    membership row; role-editing operations never touch it.
    """

    CURRENCY_CHOICES = [(code, code) for code in SUPPORTED_CURRENCIES]

    name = models.CharField(max_length=50)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="owned_teams",
    )
    members = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        through="TeamMembership",
        through_fields=("team", "user"),
        related_name="teams",
    )
    currency = models.CharField(max_length=3, choices=CURRENCY_CHOICES, default="VND")
    budget_amount = models.DecimalField(max_digits=20, decimal_places=2, default=0)
    income_target = models.DecimalField(max_digits=20, decimal_places=2, default=0)
    # [{"name": ..., "icon": ...}], names unique case-insensitively
    categories = models.JSONField(default=list, blank=True)
    allow_report_access = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["owner"], name="idx_ledger_team_owner"),
            models.Index(fields=["created_at"], name="idx_ledger_team_created"),
        ]

    def __str__(self):
        """String representation of Team."""
        return f"{self.name} (Owner: {self.owner})"

    def clean(self):
        """Validate team data."""
        super().clean()

        if not self.name or not self.name.strip():
            raise ValidationError({"name": "Team name cannot be empty."})

        if self.currency not in SUPPORTED_CURRENCIES:
            raise ValidationError(
                {"currency": f"Currency must be one of: {', '.join(SUPPORTED_CURRENCIES)}"}
            )

    def save(self, *args, **kwargs):
        """Save team and create the owner membership on first save."""
        is_new = self.pk is None
        super().save(*args, **kwargs)
        if is_new:
            self._create_owner_membership()

    def _create_owner_membership(self):
        """Assign the owner role once, at team creation."""
        membership, created = TeamMembership.objects.get_or_create(
            team=self, user=self.owner, defaults={"role": Role.OWNER}
        )
        logger.debug(
            "Owner membership created for new team",
            extra={
                "team_id": self.id,
                "owner_id": self.owner_id,
                "membership_created": created,
                "action": "owner_membership_created",
                "component": "Team",
            },
        )


class TeamMembership(models.Model):
    """
    A user's durable authority level inside one team.

    Exactly one row per (team, user) and exactly one ``owner`` row per team.
    """

    team = models.ForeignKey(Team, on_delete=models.CASCADE, related_name="memberships")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="team_memberships",
    )
    role = models.CharField(max_length=10, choices=Role.choices, default=Role.MEMBER)
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "Team memberships"
        ordering = ["team", "joined_at"]
        indexes = [
            models.Index(fields=["user", "role"], name="idx_membership_user_role"),
            models.Index(fields=["team", "role"], name="idx_membership_team_role"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["team", "user"], name="unique_membership_per_team_user"
            ),
            models.UniqueConstraint(
                fields=["team"],
                condition=models.Q(role="owner"),
                name="unique_owner_per_team",
            ),
        ]

    def __str__(self):
        """String representation of TeamMembership."""
        return f"{self.user} in {self.team.name} as {self.role}"

    def clean(self):
        """Validate team membership data."""
        super().clean()

        if self.role not in Role.values:
            raise ValidationError({"role": f"Invalid role: {self.role}"})

        if self.role == Role.OWNER and self.user_id != self.team.owner_id:
            raise ValidationError({"role": "Only the team owner can hold the owner role."})

    @property
    def actual_role(self):
        """Stored role as a canonical :class:`~ledger.roles.Role`."""
        return Role(self.role)


# -------------------------------------------------------------------
# TRANSACTIONS
# -------------------------------------------------------------------
# Ledger entries; resolution authority belongs to the creating user


class Transaction(models.Model):
    """
    Income or expense entry recorded in a team ledger.

    ``owner`` is the member who created the entry. Only the owner mutates
    it directly; everyone else goes through a :class:`ChangeRequest`.
    ``status`` is ``approved`` unless exactly one pending change request
    targets this transaction.
    """

    class Type(models.TextChoices):
        INCOME = "income", "Income"
        EXPENSE = "expense", "Expense"

    class Status(models.TextChoices):
        APPROVED = "approved", "Approved"
        EDIT_REQUESTED = "edit_requested", "Edit requested"
        DELETE_REQUESTED = "delete_requested", "Delete requested"

    # Fields an owner may edit directly or another member may propose to change
    EDITABLE_FIELDS = ["amount", "type", "category", "description", "transaction_date"]

    team = models.ForeignKey(Team, on_delete=models.CASCADE, related_name="transactions")
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="ledger_transactions",
    )
    amount = models.DecimalField(max_digits=20, decimal_places=2)
    type = models.CharField(max_length=10, choices=Type.choices)
    category = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    transaction_date = models.DateField()
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.APPROVED
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-transaction_date", "-created_at"]
        indexes = [
            models.Index(fields=["team", "transaction_date"], name="idx_team_date"),
            models.Index(fields=["team", "status"], name="idx_team_status"),
            models.Index(fields=["team", "owner"], name="idx_team_owner"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(
                    status__in=["approved", "edit_requested", "delete_requested"]
                ),
                name="transaction_status_valid",
            ),
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="transaction_amount_positive",
            ),
        ]

    def __str__(self):
        """String representation of Transaction."""
        return f"{self.owner} | {self.type} | {self.amount} {self.team.currency} | {self.status}"

    def clean(self):
        """Validate transaction data and business rules."""
        super().clean()

        if self.amount is not None and self.amount <= 0:
            logger.warning(
                "Transaction validation failed - invalid amount",
                extra={
                    "transaction_id": self.id if self.id else "new",
                    "amount": str(self.amount),
                    "action": "transaction_validation_failed",
                    "component": "Transaction",
                    "severity": "medium",
                },
            )
            raise ValidationError({"amount": "Transaction amount must be positive."})

        if not self.category or not self.category.strip():
            raise ValidationError({"category": "Category cannot be empty."})

    @property
    def is_locked_by_request(self):
        """True while a pending change request targets this transaction."""
        return self.status != self.Status.APPROVED


# -------------------------------------------------------------------
# CHANGE REQUESTS
# -------------------------------------------------------------------
# Proposed edits/deletions of another member's transaction


def default_request_expiry():
    """Expiry timestamp for a request created now."""
    hours = settings.LEDGER["CHANGE_REQUEST_TTL_HOURS"]
    return timezone.now() + timedelta(hours=hours)


class ChangeRequest(models.Model):
    """
    Proposal by a non-owner to edit or delete someone else's transaction.

    Lifecycle: ``pending`` -> ``approved`` | ``rejected`` | ``cancelled`` |
    ``expired``; every non-pending status is terminal. At most one pending
    request may exist per transaction.
    """

    class Kind(models.TextChoices):
        EDIT = "edit", "Edit"
        DELETE = "delete", "Delete"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"
        CANCELLED = "cancelled", "Cancelled"
        EXPIRED = "expired", "Expired"

    team = models.ForeignKey(Team, on_delete=models.CASCADE, related_name="change_requests")
    # Nulled when an approved delete removes the transaction; history is kept
    target_transaction = models.ForeignKey(
        Transaction,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="change_requests",
    )
    target_owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="incoming_change_requests",
    )
    requester = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="outgoing_change_requests",
    )
    kind = models.CharField(max_length=10, choices=Kind.choices)
    proposed_changes = models.JSONField(default=dict, blank=True)
    reason = models.TextField(blank=True)
    status = models.CharField(
        max_length=10, choices=Status.choices, default=Status.PENDING
    )
    created_at = models.DateTimeField(auto_now_add=True)
    expires_at = models.DateTimeField(default=default_request_expiry)
    resolved_at = models.DateTimeField(null=True, blank=True)
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="resolved_change_requests",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["team", "status"], name="idx_request_team_status"),
            models.Index(fields=["target_owner", "status"], name="idx_request_owner_status"),
            models.Index(fields=["requester", "status"], name="idx_request_requester"),
            models.Index(fields=["status", "expires_at"], name="idx_request_expiry"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["target_transaction"],
                condition=models.Q(status="pending"),
                name="unique_pending_request_per_transaction",
            ),
        ]

    def __str__(self):
        """String representation of ChangeRequest."""
        return (
            f"{self.kind} request #{self.pk} on transaction "
            f"{self.target_transaction_id} by {self.requester} ({self.status})"
        )

    def clean(self):
        """Validate change request data."""
        super().clean()

        if self.requester_id and self.requester_id == self.target_owner_id:
            raise ValidationError("Owners change their own transactions directly.")

        if self.kind == self.Kind.DELETE and self.proposed_changes:
            raise ValidationError(
                {"proposed_changes": "Delete requests cannot carry proposed changes."}
            )

    @property
    def is_pending(self):
        return self.status == self.Status.PENDING

    def is_past_expiry(self, now=None):
        return self.expires_at <= (now or timezone.now())
