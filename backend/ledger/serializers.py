"""
Serializers for the team ledger API.

Read serializers render models; input serializers only check the request
shape. Business rules (ownership, rank, request state) are enforced by the
services the views call.
"""

import logging

from rest_framework import serializers

from .models import ChangeRequest, Team, TeamMembership, Transaction
from .services.change_request_service import RESOLUTION_ACTIONS

logger = logging.getLogger(__name__)

# -------------------------------------------------------------------
# TEAM SERIALIZERS
# -------------------------------------------------------------------


class TeamSerializer(serializers.ModelSerializer):
    """
    Team representation with the caller's own role.

    ``currency`` accepts any case on input; TeamService validates and
    normalizes it.
    """

    owner_username = serializers.CharField(source="owner.username", read_only=True)
    currency = serializers.CharField(max_length=3, required=False, default="VND")
    user_role = serializers.SerializerMethodField()
    member_count = serializers.SerializerMethodField()

    class Meta:
        model = Team
        fields = [
            "id",
            "name",
            "currency",
            "budget_amount",
            "income_target",
            "categories",
            "allow_report_access",
            "owner",
            "owner_username",
            "user_role",
            "member_count",
            "created_at",
        ]
        read_only_fields = [
            "id",
            "budget_amount",
            "income_target",
            "categories",
            "allow_report_access",
            "owner",
            "owner_username",
            "created_at",
        ]

    def get_user_role(self, obj):
        """Caller's actual role in the team, or None."""
        request = self.context.get("request")
        if not request or not request.user.is_authenticated:
            return None
        membership = obj.memberships.filter(user=request.user).only("role").first()
        return membership.role if membership else None

    def get_member_count(self, obj):
        return obj.memberships.count()


class TeamSettingsSerializer(serializers.Serializer):
    """Partial team settings update; role rules are applied per field by TeamService."""

    name = serializers.CharField(required=False)
    currency = serializers.CharField(required=False)
    budget_amount = serializers.DecimalField(max_digits=20, decimal_places=2, required=False)
    income_target = serializers.DecimalField(max_digits=20, decimal_places=2, required=False)
    allow_report_access = serializers.BooleanField(required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("No settings to update.")
        return attrs


class CategorySerializer(serializers.Serializer):
    name = serializers.CharField()
    icon = serializers.CharField()


class TeamMembershipSerializer(serializers.ModelSerializer):
    """Member listing entry."""

    user_id = serializers.IntegerField(source="user.id", read_only=True)
    username = serializers.CharField(source="user.username", read_only=True)
    is_team_owner = serializers.SerializerMethodField()

    class Meta:
        model = TeamMembership
        fields = ["id", "user_id", "username", "role", "is_team_owner", "joined_at"]
        read_only_fields = fields

    def get_is_team_owner(self, obj):
        return obj.user_id == obj.team.owner_id


class MemberAddSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
    # Validated and normalized by normalize_role in the service
    role = serializers.CharField(required=False, default="member")


class RoleAssignSerializer(serializers.Serializer):
    role = serializers.CharField()


class ViewModeSerializer(serializers.Serializer):
    mode = serializers.CharField()


# -------------------------------------------------------------------
# TRANSACTION SERIALIZERS
# -------------------------------------------------------------------


class TransactionSerializer(serializers.ModelSerializer):
    """
    Transaction representation.

    ``is_mine`` tells the client whether edits go directly or through a
    change request.
    """

    owner_username = serializers.CharField(source="owner.username", read_only=True)
    is_mine = serializers.SerializerMethodField()

    class Meta:
        model = Transaction
        fields = [
            "id",
            "team",
            "owner",
            "owner_username",
            "amount",
            "type",
            "category",
            "description",
            "transaction_date",
            "status",
            "is_mine",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_is_mine(self, obj):
        request = self.context.get("request")
        if not request:
            return False
        return obj.owner_id == request.user.id


class TransactionInputSerializer(serializers.Serializer):
    """
    Shape check for create and direct edit payloads.

    Use ``partial=True`` for edits; amount positivity and other business
    rules are checked by TransactionService.
    """

    amount = serializers.DecimalField(max_digits=20, decimal_places=2)
    type = serializers.ChoiceField(choices=Transaction.Type.choices)
    category = serializers.CharField(max_length=100)
    description = serializers.CharField(required=False, allow_blank=True)
    transaction_date = serializers.DateField()

    def validate(self, attrs):
        if self.partial and not attrs:
            raise serializers.ValidationError("No fields to update.")
        return attrs


class EditRequestSerializer(serializers.Serializer):
    """Body of a request-edit call; ``changes`` is validated by the service."""

    changes = serializers.DictField()
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class DeleteRequestSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


# -------------------------------------------------------------------
# CHANGE REQUEST SERIALIZERS
# -------------------------------------------------------------------


class ChangeRequestSerializer(serializers.ModelSerializer):
    """Change request representation including resolution metadata."""

    requester_username = serializers.CharField(source="requester.username", read_only=True)
    target_owner_username = serializers.CharField(
        source="target_owner.username", read_only=True
    )
    resolved_by_username = serializers.CharField(
        source="resolved_by.username", read_only=True, default=None
    )

    class Meta:
        model = ChangeRequest
        fields = [
            "id",
            "team",
            "target_transaction",
            "target_owner",
            "target_owner_username",
            "requester",
            "requester_username",
            "kind",
            "proposed_changes",
            "reason",
            "status",
            "created_at",
            "expires_at",
            "resolved_at",
            "resolved_by",
            "resolved_by_username",
        ]
        read_only_fields = fields


class ResolveSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=RESOLUTION_ACTIONS)
