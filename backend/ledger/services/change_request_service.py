"""
Service for the change request state machine.

A change request moves from ``pending`` to exactly one terminal status:
``approved`` or ``rejected`` by the transaction's owner, ``cancelled`` by the
requester, or ``expired`` once its lifetime runs out. Every transition is a
guarded conditional update so concurrent resolvers cannot both win.
"""

import logging

from django.core.exceptions import ValidationError
from django.db import transaction as db_transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied

from ..exceptions import Conflict
from ..models import ChangeRequest, Transaction
from .transaction_service import TransactionService

# Get structured logger for this module
logger = logging.getLogger(__name__)

APPROVE = "approve"
REJECT = "reject"
RESOLUTION_ACTIONS = [APPROVE, REJECT]

LIST_SCOPES = ["incoming", "outgoing", "all"]

LOCKED_STATUSES = [Transaction.Status.EDIT_REQUESTED, Transaction.Status.DELETE_REQUESTED]


class ChangeRequestService:
    """
    Resolution, cancellation, expiry and listing of change requests.
    """

    # -------------------------------------------------------------------
    # QUERIES
    # -------------------------------------------------------------------

    @staticmethod
    def list_change_requests(actor, scope="incoming", status=None):
        """
        Change requests visible to the actor.

        Args:
            actor: IdentityContext of the calling member
            scope: ``incoming`` (pending requests the actor may resolve),
                   ``outgoing`` (requests the actor filed) or ``all``
                   (team-wide history)
            status: Optional status filter for ``outgoing`` and ``all``

        Returns:
            QuerySet: Change requests, newest first

        Raises:
            ValidationError: On an unknown scope or status
        """
        if scope not in LIST_SCOPES:
            raise ValidationError(f"Scope must be one of: {', '.join(LIST_SCOPES)}")

        qs = ChangeRequest.objects.filter(team_id=actor.team_id).select_related(
            "requester", "target_owner", "resolved_by", "target_transaction"
        )

        if scope == "incoming":
            return qs.filter(
                target_owner_id=actor.user_id, status=ChangeRequest.Status.PENDING
            )

        if scope == "outgoing":
            qs = qs.filter(requester_id=actor.user_id)

        if status:
            if status not in ChangeRequest.Status.values:
                raise ValidationError(
                    f"Status must be one of: {', '.join(ChangeRequest.Status.values)}"
                )
            qs = qs.filter(status=status)

        return qs

    @staticmethod
    def get_change_request(actor, request_id):
        """
        Fetch a change request of the actor's team.

        Raises:
            NotFound: If the request does not exist in the actor's team
        """
        try:
            return ChangeRequest.objects.select_related("target_transaction").get(
                pk=request_id, team_id=actor.team_id
            )
        except (ChangeRequest.DoesNotExist, ValueError, TypeError):
            logger.warning(
                "Change request not found in team",
                extra={
                    "user_id": actor.user_id,
                    "team_id": actor.team_id,
                    "request_id": request_id,
                    "action": "change_request_not_found",
                    "component": "ChangeRequestService",
                    "severity": "low",
                },
            )
            raise NotFound("Change request not found.")

    # -------------------------------------------------------------------
    # RESOLUTION (transaction owner)
    # -------------------------------------------------------------------

    @staticmethod
    def confirm_change(resolver, request_id, action):
        """
        Approve or reject a pending change request.

        Args:
            resolver: IdentityContext of the resolving member
            request_id: ID of the change request
            action: ``approve`` or ``reject``

        Returns:
            dict: ``change_request``, the surviving ``transaction`` (None after
                  an approved delete) and ``deleted``

        Raises:
            ValidationError: If the action is unknown
            NotFound: If the request does not exist in the resolver's team
            Conflict: If the request is no longer pending or has expired
            PermissionDenied: If the resolver does not own the target transaction
        """
        if action not in RESOLUTION_ACTIONS:
            raise ValidationError("Action must be 'approve' or 'reject'")

        change_request = ChangeRequestService.get_change_request(resolver, request_id)
        ChangeRequestService._ensure_pending(resolver, change_request)

        if change_request.target_owner_id != resolver.user_id:
            logger.warning(
                "Change request resolution by non-owner denied",
                extra={
                    "user_id": resolver.user_id,
                    "team_id": resolver.team_id,
                    "actual_role": resolver.actual_role.value,
                    "request_id": change_request.id,
                    "target_owner_id": change_request.target_owner_id,
                    "action": "change_request_resolve_denied",
                    "component": "ChangeRequestService",
                    "severity": "high",
                },
            )
            raise PermissionDenied(
                "Only the owner of the transaction can resolve this request."
            )

        now = timezone.now()
        if change_request.is_past_expiry(now):
            ChangeRequestService._close(
                change_request, ChangeRequest.Status.EXPIRED, None, now
            )
            logger.info(
                "Change request expired on resolution attempt",
                extra={
                    "user_id": resolver.user_id,
                    "request_id": change_request.id,
                    "action": "change_request_expired_on_resolve",
                    "component": "ChangeRequestService",
                },
            )
            raise Conflict("This change request has expired.")

        if change_request.target_transaction_id is None:
            ChangeRequestService._close(
                change_request, ChangeRequest.Status.CANCELLED, None, now
            )
            logger.warning(
                "Change request target no longer exists",
                extra={
                    "user_id": resolver.user_id,
                    "team_id": resolver.team_id,
                    "request_id": change_request.id,
                    "action": "change_request_target_missing",
                    "component": "ChangeRequestService",
                    "severity": "medium",
                },
            )
            raise Conflict("The transaction targeted by this request no longer exists.")

        if action == REJECT:
            result = ChangeRequestService._reject(change_request, resolver, now)
        elif change_request.kind == ChangeRequest.Kind.EDIT:
            result = ChangeRequestService._approve_edit(change_request, resolver, now)
        else:
            result = ChangeRequestService._approve_delete(change_request, resolver, now)

        logger.info(
            "Change request resolved",
            extra={
                "user_id": resolver.user_id,
                "team_id": resolver.team_id,
                "request_id": change_request.id,
                "kind": change_request.kind,
                "resolution": action,
                "transaction_deleted": result["deleted"],
                "action": "change_request_resolved",
                "component": "ChangeRequestService",
            },
        )
        return result

    @staticmethod
    @db_transaction.atomic
    def _reject(change_request, resolver, now):
        transaction = ChangeRequestService._close(
            change_request, ChangeRequest.Status.REJECTED, resolver.user_id, now
        )
        if transaction is None:
            raise Conflict("The transaction targeted by this request no longer exists.")

        return {"change_request": change_request, "transaction": transaction, "deleted": False}

    @staticmethod
    @db_transaction.atomic
    def _approve_edit(change_request, resolver, now):
        ChangeRequestService._transition_request(
            change_request, ChangeRequest.Status.APPROVED, resolver.user_id, now
        )

        transaction = (
            Transaction.objects.select_for_update()
            .filter(pk=change_request.target_transaction_id)
            .first()
        )
        if transaction is None:
            raise Conflict("The transaction targeted by this request no longer exists.")

        changes = change_request.proposed_changes
        TransactionService.apply_changes(transaction, changes)
        transaction.status = Transaction.Status.APPROVED
        transaction.save(update_fields=[*changes.keys(), "status", "updated_at"])

        return {"change_request": change_request, "transaction": transaction, "deleted": False}

    @staticmethod
    @db_transaction.atomic
    def _approve_delete(change_request, resolver, now):
        ChangeRequestService._transition_request(
            change_request, ChangeRequest.Status.APPROVED, resolver.user_id, now
        )

        # The request row keeps its history; its FK is nulled on delete
        Transaction.objects.filter(pk=change_request.target_transaction_id).delete()
        change_request.target_transaction = None

        return {"change_request": change_request, "transaction": None, "deleted": True}

    # -------------------------------------------------------------------
    # CANCELLATION & EXPIRY
    # -------------------------------------------------------------------

    @staticmethod
    def cancel_change_request(actor, request_id):
        """
        Withdraw a pending request filed by the actor.

        Raises:
            NotFound: If the request does not exist in the actor's team
            Conflict: If the request is no longer pending
            PermissionDenied: If the actor did not file the request
        """
        change_request = ChangeRequestService.get_change_request(actor, request_id)
        ChangeRequestService._ensure_pending(actor, change_request)

        if change_request.requester_id != actor.user_id:
            logger.warning(
                "Change request cancellation by non-requester denied",
                extra={
                    "user_id": actor.user_id,
                    "team_id": actor.team_id,
                    "request_id": change_request.id,
                    "requester_id": change_request.requester_id,
                    "action": "change_request_cancel_denied",
                    "component": "ChangeRequestService",
                    "severity": "medium",
                },
            )
            raise PermissionDenied("Only the requester can cancel this request.")

        ChangeRequestService._close(
            change_request, ChangeRequest.Status.CANCELLED, actor.user_id, timezone.now()
        )

        logger.info(
            "Change request cancelled",
            extra={
                "user_id": actor.user_id,
                "team_id": actor.team_id,
                "request_id": change_request.id,
                "action": "change_request_cancelled",
                "component": "ChangeRequestService",
            },
        )
        return change_request

    @staticmethod
    def cancel_requests_filed_by(team_id, user_id, actor_user_id=None):
        """
        Cancel every pending request ``user_id`` filed in ``team_id``.

        Returns:
            int: Number of requests cancelled
        """
        pending = ChangeRequest.objects.filter(
            team_id=team_id, requester_id=user_id, status=ChangeRequest.Status.PENDING
        )
        return ChangeRequestService._cancel_pending(pending, actor_user_id)

    @staticmethod
    def cancel_requests_against(team_id, user_id, actor_user_id=None):
        """
        Cancel every pending request targeting ``user_id``'s transactions in
        ``team_id`` and unlock those transactions.

        Returns:
            int: Number of requests cancelled
        """
        pending = ChangeRequest.objects.filter(
            team_id=team_id, target_owner_id=user_id, status=ChangeRequest.Status.PENDING
        )
        return ChangeRequestService._cancel_pending(pending, actor_user_id)

    @staticmethod
    def _cancel_pending(pending, actor_user_id):
        now = timezone.now()
        cancelled = 0
        for change_request in pending:
            try:
                ChangeRequestService._close(
                    change_request, ChangeRequest.Status.CANCELLED, actor_user_id, now
                )
                cancelled += 1
            except Conflict:
                # Resolved concurrently
                continue
        return cancelled

    @staticmethod
    def expire_stale_requests(now=None, dry_run=False):
        """
        Expire every pending request whose lifetime has run out.

        Args:
            now: Reference time, defaults to the current time
            dry_run: Count stale requests without changing them

        Returns:
            int: Number of requests expired (or that would be in a dry run)
        """
        now = now or timezone.now()
        stale = ChangeRequest.objects.filter(
            status=ChangeRequest.Status.PENDING, expires_at__lte=now
        ).order_by("expires_at")

        if dry_run:
            return stale.count()

        expired = 0
        for change_request in stale:
            try:
                ChangeRequestService._close(
                    change_request, ChangeRequest.Status.EXPIRED, None, now
                )
                expired += 1
            except Conflict:
                # Resolved between the query and the update
                continue

        logger.info(
            "Stale change requests expired",
            extra={
                "expired_count": expired,
                "reference_time": now.isoformat(),
                "action": "change_requests_expired",
                "component": "ChangeRequestService",
            },
        )
        return expired

    # -------------------------------------------------------------------
    # GUARDED TRANSITIONS
    # -------------------------------------------------------------------

    @staticmethod
    def _ensure_pending(actor, change_request):
        if change_request.is_pending:
            return

        logger.warning(
            "Change request already closed",
            extra={
                "user_id": actor.user_id,
                "request_id": change_request.id,
                "status": change_request.status,
                "action": "change_request_not_pending",
                "component": "ChangeRequestService",
                "severity": "low",
            },
        )
        raise Conflict(f"This change request is already {change_request.status}.")

    @staticmethod
    @db_transaction.atomic
    def _close(change_request, new_status, resolved_by_id, now):
        """
        Move a pending request to a non-approving terminal status and unlock its transaction.

        Returns:
            Transaction: The unlocked transaction, or None if it no longer exists
        """
        ChangeRequestService._transition_request(change_request, new_status, resolved_by_id, now)

        if change_request.target_transaction_id is None:
            return None

        Transaction.objects.filter(
            pk=change_request.target_transaction_id, status__in=LOCKED_STATUSES
        ).update(status=Transaction.Status.APPROVED, updated_at=now)
        return Transaction.objects.filter(pk=change_request.target_transaction_id).first()

    @staticmethod
    def _transition_request(change_request, new_status, resolved_by_id, now):
        updated = ChangeRequest.objects.filter(
            pk=change_request.pk, status=ChangeRequest.Status.PENDING
        ).update(status=new_status, resolved_at=now, resolved_by_id=resolved_by_id)

        if not updated:
            logger.warning(
                "Concurrent change request transition lost",
                extra={
                    "request_id": change_request.pk,
                    "attempted_status": new_status,
                    "action": "change_request_transition_conflict",
                    "component": "ChangeRequestService",
                    "severity": "medium",
                },
            )
            raise Conflict("This change request has already been resolved.")

        change_request.status = new_status
        change_request.resolved_at = now
        change_request.resolved_by_id = resolved_by_id
