"""
Service for ledger transaction mutations with ownership routing.

This module provides the TransactionService class, the single gateway through
which transactions are created and changed. Owners mutate their own entries
directly; every other member has to file a change request, which locks the
transaction until the owner resolves it.
"""

import logging
from datetime import date
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError
from django.db import IntegrityError
from django.db import transaction as db_transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied

from ..exceptions import Conflict
from ..models import ChangeRequest, Transaction

# Get structured logger for this module
logger = logging.getLogger(__name__)

MAX_CATEGORY_LENGTH = 100
MAX_REASON_LENGTH = 500
# DecimalField(max_digits=20, decimal_places=2)
MAX_AMOUNT_DECIMAL_PLACES = 2
MAX_AMOUNT_INTEGER_DIGITS = 18


class TransactionService:
    """
    Gateway for creating, editing and deleting ledger transactions.

    All methods take the caller's IdentityContext as ``actor``. Rank never
    grants a bypass: only the transaction's owner mutates it directly.
    """

    # -------------------------------------------------------------------
    # CREATE & QUERY
    # -------------------------------------------------------------------

    @staticmethod
    def create_transaction(actor, data):
        """
        Record a new transaction owned by the actor.

        Args:
            actor: IdentityContext of the creating member
            data: Dictionary with amount, type, category, transaction_date
                  and optional description

        Returns:
            Transaction: Newly created transaction, born ``approved``

        Raises:
            ValidationError: If required fields are missing or invalid
        """
        changes = TransactionService.validate_changes(data, is_create=True)

        transaction = Transaction(
            team_id=actor.team_id,
            owner_id=actor.user_id,
            status=Transaction.Status.APPROVED,
            description="",
        )
        TransactionService.apply_changes(transaction, changes)
        transaction.save()

        logger.info(
            "Transaction created",
            extra={
                "user_id": actor.user_id,
                "team_id": actor.team_id,
                "transaction_id": transaction.id,
                "transaction_type": transaction.type,
                "amount": str(transaction.amount),
                "action": "transaction_create_success",
                "component": "TransactionService",
            },
        )
        return transaction

    @staticmethod
    def list_transactions(actor, filters=None):
        """
        Team-scoped transactions, newest first.

        Args:
            actor: IdentityContext of the calling member
            filters: Optional dict with ``type``, ``status``, ``owner``,
                     ``date_from`` and ``date_to``

        Returns:
            QuerySet: Filtered transactions of the actor's team
        """
        filters = filters or {}
        qs = Transaction.objects.filter(team_id=actor.team_id).select_related("owner")

        tx_type = filters.get("type")
        if tx_type:
            if tx_type not in Transaction.Type.values:
                raise ValidationError("Type must be 'income' or 'expense'")
            qs = qs.filter(type=tx_type)

        status = filters.get("status")
        if status:
            if status not in Transaction.Status.values:
                raise ValidationError(
                    f"Status must be one of: {', '.join(Transaction.Status.values)}"
                )
            qs = qs.filter(status=status)

        if filters.get("owner"):
            qs = qs.filter(owner_id=filters["owner"])
        if filters.get("date_from"):
            qs = qs.filter(transaction_date__gte=filters["date_from"])
        if filters.get("date_to"):
            qs = qs.filter(transaction_date__lte=filters["date_to"])

        return qs

    @staticmethod
    def get_team_transaction(actor, transaction_id):
        """
        Fetch a transaction of the actor's team.

        Raises:
            NotFound: If the transaction does not exist in the actor's team
        """
        try:
            return Transaction.objects.get(pk=transaction_id, team_id=actor.team_id)
        except (Transaction.DoesNotExist, ValueError, TypeError):
            logger.warning(
                "Transaction not found in team",
                extra={
                    "user_id": actor.user_id,
                    "team_id": actor.team_id,
                    "transaction_id": transaction_id,
                    "action": "transaction_not_found",
                    "component": "TransactionService",
                    "severity": "low",
                },
            )
            raise NotFound("Transaction not found.")

    # -------------------------------------------------------------------
    # DIRECT MUTATION (owner only)
    # -------------------------------------------------------------------

    @staticmethod
    @db_transaction.atomic
    def edit_own_transaction(actor, transaction_id, changes):
        """
        Apply changes to the actor's own transaction immediately.

        The status column is never written here, so a pending request
        against the entry keeps its lock.

        Returns:
            Transaction: Updated transaction

        Raises:
            NotFound: If the transaction is not in the actor's team
            PermissionDenied: If the actor is not the transaction's owner
            ValidationError: If the changes are invalid
        """
        transaction = TransactionService.get_team_transaction(actor, transaction_id)
        TransactionService._ensure_owner(actor, transaction, "edit")

        normalized = TransactionService.validate_changes(changes)
        TransactionService.apply_changes(transaction, normalized)
        transaction.save(update_fields=[*normalized.keys(), "updated_at"])

        logger.info(
            "Own transaction edited directly",
            extra={
                "user_id": actor.user_id,
                "team_id": actor.team_id,
                "transaction_id": transaction.id,
                "changed_fields": list(normalized.keys()),
                "action": "transaction_edit_own_success",
                "component": "TransactionService",
            },
        )
        return transaction

    @staticmethod
    @db_transaction.atomic
    def delete_own_transaction(actor, transaction_id):
        """
        Remove the actor's own transaction.

        A pending request against it is cancelled in the same unit so no
        pending request is ever left without a target.

        Raises:
            NotFound: If the transaction is not in the actor's team
            PermissionDenied: If the actor is not the transaction's owner
        """
        transaction = TransactionService.get_team_transaction(actor, transaction_id)
        TransactionService._ensure_owner(actor, transaction, "delete")

        cancelled = ChangeRequest.objects.filter(
            target_transaction=transaction, status=ChangeRequest.Status.PENDING
        ).update(
            status=ChangeRequest.Status.CANCELLED,
            resolved_at=timezone.now(),
            resolved_by_id=actor.user_id,
        )
        transaction_pk = transaction.pk
        transaction.delete()

        logger.info(
            "Own transaction deleted directly",
            extra={
                "user_id": actor.user_id,
                "team_id": actor.team_id,
                "transaction_id": transaction_pk,
                "cancelled_requests": cancelled,
                "action": "transaction_delete_own_success",
                "component": "TransactionService",
            },
        )

    # -------------------------------------------------------------------
    # REQUEST PATH (non-owners)
    # -------------------------------------------------------------------

    @staticmethod
    def request_edit_others(actor, transaction_id, changes, reason=""):
        """
        File an edit request against another member's transaction.

        Returns:
            ChangeRequest: The new pending request

        Raises:
            NotFound: If the transaction is not in the actor's team
            ValidationError: If the actor owns the transaction or the changes are invalid
            Conflict: If the transaction already has a pending request
        """
        return TransactionService._open_change_request(
            actor, transaction_id, ChangeRequest.Kind.EDIT, changes, reason
        )

    @staticmethod
    def request_delete_others(actor, transaction_id, reason=""):
        """
        File a delete request against another member's transaction.

        Same guards as :meth:`request_edit_others`; no proposed changes.
        """
        return TransactionService._open_change_request(
            actor, transaction_id, ChangeRequest.Kind.DELETE, None, reason
        )

    @staticmethod
    def _open_change_request(actor, transaction_id, kind, changes, reason):
        transaction = TransactionService.get_team_transaction(actor, transaction_id)

        if transaction.owner_id == actor.user_id:
            logger.warning(
                "Owner attempted to request a change on own transaction",
                extra={
                    "user_id": actor.user_id,
                    "team_id": actor.team_id,
                    "transaction_id": transaction.id,
                    "kind": kind,
                    "action": "change_request_own_transaction",
                    "component": "TransactionService",
                    "severity": "low",
                },
            )
            verb = "edit" if kind == ChangeRequest.Kind.EDIT else "delete"
            raise ValidationError(
                f"You own this transaction; {verb} it directly instead of filing a request."
            )

        if kind == ChangeRequest.Kind.EDIT:
            proposed_changes = TransactionService.validate_changes(changes)
            locked_status = Transaction.Status.EDIT_REQUESTED
        else:
            proposed_changes = {}
            locked_status = Transaction.Status.DELETE_REQUESTED

        reason = TransactionService._validate_reason(reason)

        try:
            with db_transaction.atomic():
                # Guarded transition: only an approved transaction can be locked
                locked = Transaction.objects.filter(
                    pk=transaction.pk, status=Transaction.Status.APPROVED
                ).update(status=locked_status, updated_at=timezone.now())

                if not locked:
                    raise Conflict("This transaction already has a pending change request.")

                change_request = ChangeRequest.objects.create(
                    team_id=actor.team_id,
                    target_transaction=transaction,
                    target_owner_id=transaction.owner_id,
                    requester_id=actor.user_id,
                    kind=kind,
                    proposed_changes=proposed_changes,
                    reason=reason,
                )
        except IntegrityError:
            logger.warning(
                "Pending request uniqueness violated",
                extra={
                    "user_id": actor.user_id,
                    "transaction_id": transaction.id,
                    "action": "change_request_integrity_conflict",
                    "component": "TransactionService",
                    "severity": "medium",
                },
            )
            raise Conflict("This transaction already has a pending change request.")
        except Conflict:
            logger.warning(
                "Change request rejected - transaction not approved",
                extra={
                    "user_id": actor.user_id,
                    "team_id": actor.team_id,
                    "transaction_id": transaction.id,
                    "kind": kind,
                    "action": "change_request_conflict",
                    "component": "TransactionService",
                    "severity": "medium",
                },
            )
            raise

        logger.info(
            "Change request filed",
            extra={
                "user_id": actor.user_id,
                "team_id": actor.team_id,
                "transaction_id": transaction.id,
                "request_id": change_request.id,
                "kind": kind,
                "target_owner_id": transaction.owner_id,
                "action": "change_request_created",
                "component": "TransactionService",
            },
        )
        return change_request

    # -------------------------------------------------------------------
    # VALIDATION & APPLICATION
    # -------------------------------------------------------------------

    @staticmethod
    def _ensure_owner(actor, transaction, operation):
        if transaction.owner_id == actor.user_id:
            return

        logger.warning(
            "Direct mutation by non-owner denied",
            extra={
                "user_id": actor.user_id,
                "team_id": actor.team_id,
                "actual_role": actor.actual_role.value,
                "transaction_id": transaction.id,
                "owner_id": transaction.owner_id,
                "operation": operation,
                "action": "transaction_direct_mutation_denied",
                "component": "TransactionService",
                "severity": "high",
            },
        )
        raise PermissionDenied(
            f"Only the transaction's owner can {operation} it directly; file a change request instead."
        )

    @staticmethod
    def validate_changes(data, is_create=False):
        """
        Validate transaction field values and normalize them to JSON-safe form.

        Args:
            data: Mapping of field name to new value
            is_create: Require every mandatory field when True

        Returns:
            dict: Normalized values (amount and dates as strings)

        Raises:
            ValidationError: On unknown fields, missing fields or invalid values
        """
        if not isinstance(data, dict) or (not data and not is_create):
            raise ValidationError("Changes must be a non-empty object.")

        unknown = sorted(set(data) - set(Transaction.EDITABLE_FIELDS))
        if unknown:
            raise ValidationError(f"Unknown transaction fields: {', '.join(unknown)}")

        if is_create:
            required_fields = ["amount", "type", "category", "transaction_date"]
            for field in required_fields:
                if data.get(field) in (None, ""):
                    raise ValidationError(f"Missing required field: {field}")

        normalized = {}

        if "amount" in data:
            normalized["amount"] = format(TransactionService._validate_amount(data["amount"]), "f")

        if "type" in data:
            if data["type"] not in Transaction.Type.values:
                raise ValidationError("Type must be 'income' or 'expense'")
            normalized["type"] = data["type"]

        if "category" in data:
            category = data["category"]
            if not isinstance(category, str) or not category.strip():
                raise ValidationError("Category cannot be empty")
            if len(category.strip()) > MAX_CATEGORY_LENGTH:
                raise ValidationError(
                    f"Category cannot be longer than {MAX_CATEGORY_LENGTH} characters"
                )
            normalized["category"] = category.strip()

        if "description" in data:
            description = data["description"]
            if description is None:
                description = ""
            if not isinstance(description, str):
                raise ValidationError("Description must be text")
            normalized["description"] = description

        if "transaction_date" in data:
            normalized["transaction_date"] = TransactionService._validate_date(
                data["transaction_date"]
            ).isoformat()

        return normalized

    @staticmethod
    def apply_changes(transaction, normalized):
        """Assign normalized values (see :meth:`validate_changes`) to a transaction."""
        for field, value in normalized.items():
            if field == "amount":
                value = Decimal(value)
            elif field == "transaction_date":
                value = date.fromisoformat(value)
            setattr(transaction, field, value)
        return transaction

    @staticmethod
    def _validate_amount(value):
        if isinstance(value, bool):
            raise ValidationError("Amount must be a valid number")
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationError("Amount must be a valid number")

        if not amount.is_finite():
            raise ValidationError("Amount must be a valid number")
        if amount <= 0:
            raise ValidationError("Amount must be positive")

        exponent = amount.as_tuple().exponent
        if exponent < -MAX_AMOUNT_DECIMAL_PLACES:
            raise ValidationError(
                f"Amount cannot have more than {MAX_AMOUNT_DECIMAL_PLACES} decimal places"
            )
        if amount.adjusted() + 1 > MAX_AMOUNT_INTEGER_DIGITS:
            raise ValidationError("Amount is too large")
        return amount

    @staticmethod
    def _validate_date(value):
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                return date.fromisoformat(value)
            except ValueError:
                pass
        raise ValidationError("Transaction date must be a valid date (YYYY-MM-DD)")

    @staticmethod
    def _validate_reason(reason):
        if reason is None:
            return ""
        if not isinstance(reason, str):
            raise ValidationError("Reason must be text")
        reason = reason.strip()
        if len(reason) > MAX_REASON_LENGTH:
            raise ValidationError(
                f"Reason cannot be longer than {MAX_REASON_LENGTH} characters"
            )
        return reason
