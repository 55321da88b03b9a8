"""
API views for the team ledger.

Thin viewsets: each action checks the request shape with a serializer, hands
the caller's IdentityContext to a service through handle_service_call and
renders the result.
"""

import logging

from django.conf import settings
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .mixins.service_exception_handler import ServiceExceptionHandlerMixin
from .mixins.team_context import TeamContextMixin
from .permissions import IsTeamMember
from .serializers import (CategorySerializer, ChangeRequestSerializer,
                          DeleteRequestSerializer, EditRequestSerializer,
                          MemberAddSerializer, ResolveSerializer,
                          RoleAssignSerializer, TeamMembershipSerializer,
                          TeamSerializer, TeamSettingsSerializer,
                          TransactionInputSerializer, TransactionSerializer,
                          ViewModeSerializer)
from .services.change_request_service import ChangeRequestService
from .services.membership_service import MembershipService
from .services.team_service import TeamService
from .services.transaction_service import TransactionService
from .services.view_mode_service import ViewModeService

# Get structured logger for this module
logger = logging.getLogger(__name__)


class LedgerPagination(PageNumberPagination):
    """Page/limit pagination sized from ``settings.LEDGER``."""

    page_size_query_param = "limit"

    def __init__(self):
        self.page_size = settings.LEDGER["TRANSACTION_PAGE_SIZE"]
        self.max_page_size = settings.LEDGER["MAX_TRANSACTION_PAGE_SIZE"]


class BaseTeamViewSet(TeamContextMixin, ServiceExceptionHandlerMixin, viewsets.GenericViewSet):
    """
    Base ViewSet for everything nested under ``/teams/{team_pk}/``.

    TeamContextMixin resolves the identity before DRF permission checks, so
    IsTeamMember can deny non-members with a 403.
    """

    permission_classes = [IsAuthenticated, IsTeamMember]


# -------------------------------------------------------------------
# TEAMS
# -------------------------------------------------------------------


class TeamViewSet(
    TeamContextMixin,
    ServiceExceptionHandlerMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    Teams of the caller; creation makes the caller the owner.

    Settings changes, categories and deletion are gated on the caller's
    actual role by TeamService.
    """

    serializer_class = TeamSerializer
    pagination_class = LedgerPagination
    lookup_url_kwarg = "team_pk"
    lookup_value_regex = r"\d+"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.team_service = TeamService()

    def get_permissions(self):
        if self.action in ("list", "create"):
            return [IsAuthenticated()]
        return [IsAuthenticated(), IsTeamMember()]

    def get_queryset(self):
        return self.team_service.list_user_teams(self.request.user)

    def get_object(self):
        # Resolved and membership-checked by TeamContextMixin / IsTeamMember
        return self.request.team

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        team = self.handle_service_call(
            self.team_service.create_team,
            request.user,
            serializer.validated_data["name"],
            serializer.validated_data["currency"],
        )

        logger.info(
            "Team created via API",
            extra={
                "user_id": request.user.id,
                "team_id": team.id,
                "action": "team_create_api",
                "component": "TeamViewSet",
            },
        )
        return Response(self.get_serializer(team).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):
        serializer = TeamSettingsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        team = self.handle_service_call(
            self.team_service.update_settings,
            self.get_identity(),
            dict(serializer.validated_data),
        )
        return Response(self.get_serializer(team).data)

    def destroy(self, request, *args, **kwargs):
        self.handle_service_call(self.team_service.delete_team, self.get_identity())
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"])
    def categories(self, request, team_pk=None):
        serializer = CategorySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        team = self.handle_service_call(
            self.team_service.add_category,
            self.get_identity(),
            serializer.validated_data["name"],
            serializer.validated_data["icon"],
        )
        return Response(self.get_serializer(team).data, status=status.HTTP_201_CREATED)


# -------------------------------------------------------------------
# MEMBERS & VIEW MODE
# -------------------------------------------------------------------


class TeamMemberViewSet(BaseTeamViewSet):
    """
    Member listing and role management.
    """

    serializer_class = TeamMembershipSerializer
    lookup_url_kwarg = "user_id"
    lookup_value_regex = r"\d+"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.membership_service = MembershipService()

    def list(self, request, team_pk=None):
        members = self.handle_service_call(
            self.membership_service.get_team_members, self.get_identity()
        )
        return Response(self.get_serializer(members, many=True).data)

    def create(self, request, team_pk=None):
        serializer = MemberAddSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        membership = self.handle_service_call(
            self.membership_service.add_member,
            self.get_identity(),
            serializer.validated_data["user_id"],
            serializer.validated_data["role"],
        )
        return Response(self.get_serializer(membership).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, team_pk=None, user_id=None):
        self.handle_service_call(
            self.membership_service.remove_member, self.get_identity(), user_id
        )
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["patch"], url_path="role")
    def role(self, request, team_pk=None, user_id=None):
        serializer = RoleAssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        membership = self.handle_service_call(
            self.membership_service.assign_role,
            self.get_identity(),
            user_id,
            serializer.validated_data["role"],
        )
        return Response(self.get_serializer(membership).data)


class ViewModeView(TeamContextMixin, ServiceExceptionHandlerMixin, APIView):
    """
    Read or change the caller's display role for one team.

    The response always carries ``actual_role`` separately; clients must
    never treat ``view_mode`` as authority.
    """

    permission_classes = [IsAuthenticated, IsTeamMember]

    def get(self, request, team_pk=None):
        identity = self.get_identity()
        mode = ViewModeService.get_view_mode(request.session, identity)
        return Response(self._render(identity, mode))

    def put(self, request, team_pk=None):
        serializer = ViewModeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        identity = self.get_identity()
        mode = self.handle_service_call(
            ViewModeService.select_view_mode,
            request.session,
            identity,
            serializer.validated_data["mode"],
        )
        return Response(self._render(identity, mode))

    def _render(self, identity, mode):
        return {
            "actual_role": identity.actual_role.value,
            "view_mode": mode.value,
            "label": ViewModeService.display_label(mode),
            "available_modes": [
                {"value": available.value, "label": ViewModeService.display_label(available)}
                for available in ViewModeService.available_view_modes(identity.actual_role)
            ],
        }


# -------------------------------------------------------------------
# TRANSACTIONS
# -------------------------------------------------------------------


class TransactionViewSet(BaseTeamViewSet):
    """
    Ledger entries of a team.

    PATCH and DELETE are direct mutations and only succeed for the entry's
    owner; everyone else uses ``request-edit`` / ``request-delete``.
    """

    serializer_class = TransactionSerializer
    pagination_class = LedgerPagination

    def get_queryset(self):
        params = self.request.query_params
        filters = {
            "type": params.get("type"),
            "status": params.get("status"),
            "owner": params.get("owner"),
            "date_from": params.get("date_from"),
            "date_to": params.get("date_to"),
        }
        return self.handle_service_call(
            TransactionService.list_transactions, self.get_identity(), filters
        )

    def list(self, request, team_pk=None):
        queryset = self.get_queryset()
        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(self.get_serializer(page, many=True).data)
        return Response(self.get_serializer(queryset, many=True).data)

    def retrieve(self, request, team_pk=None, pk=None):
        transaction = self.handle_service_call(
            TransactionService.get_team_transaction, self.get_identity(), pk
        )
        return Response(self.get_serializer(transaction).data)

    def create(self, request, team_pk=None):
        serializer = TransactionInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        transaction = self.handle_service_call(
            TransactionService.create_transaction,
            self.get_identity(),
            dict(serializer.validated_data),
        )
        return Response(self.get_serializer(transaction).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, team_pk=None, pk=None):
        serializer = TransactionInputSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        transaction = self.handle_service_call(
            TransactionService.edit_own_transaction,
            self.get_identity(),
            pk,
            dict(serializer.validated_data),
        )
        return Response(self.get_serializer(transaction).data)

    def destroy(self, request, team_pk=None, pk=None):
        self.handle_service_call(
            TransactionService.delete_own_transaction, self.get_identity(), pk
        )
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path="request-edit")
    def request_edit(self, request, team_pk=None, pk=None):
        serializer = EditRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        change_request = self.handle_service_call(
            TransactionService.request_edit_others,
            self.get_identity(),
            pk,
            serializer.validated_data["changes"],
            serializer.validated_data["reason"],
        )
        return Response(
            ChangeRequestSerializer(change_request).data, status=status.HTTP_201_CREATED
        )

    @action(detail=True, methods=["post"], url_path="request-delete")
    def request_delete(self, request, team_pk=None, pk=None):
        serializer = DeleteRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        change_request = self.handle_service_call(
            TransactionService.request_delete_others,
            self.get_identity(),
            pk,
            serializer.validated_data["reason"],
        )
        return Response(
            ChangeRequestSerializer(change_request).data, status=status.HTTP_201_CREATED
        )


# -------------------------------------------------------------------
# CHANGE REQUESTS
# -------------------------------------------------------------------


class ChangeRequestViewSet(BaseTeamViewSet):
    """
    Incoming/outgoing change requests and their resolution.
    """

    serializer_class = ChangeRequestSerializer
    pagination_class = LedgerPagination

    def get_queryset(self):
        params = self.request.query_params
        return self.handle_service_call(
            ChangeRequestService.list_change_requests,
            self.get_identity(),
            params.get("scope", "incoming"),
            params.get("status"),
        )

    def list(self, request, team_pk=None):
        queryset = self.get_queryset()
        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(self.get_serializer(page, many=True).data)
        return Response(self.get_serializer(queryset, many=True).data)

    def retrieve(self, request, team_pk=None, pk=None):
        change_request = self.handle_service_call(
            ChangeRequestService.get_change_request, self.get_identity(), pk
        )
        return Response(self.get_serializer(change_request).data)

    @action(detail=True, methods=["post"])
    def resolve(self, request, team_pk=None, pk=None):
        serializer = ResolveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = self.handle_service_call(
            ChangeRequestService.confirm_change,
            self.get_identity(),
            pk,
            serializer.validated_data["action"],
        )

        transaction = result["transaction"]
        return Response(
            {
                "change_request": self.get_serializer(result["change_request"]).data,
                "transaction": (
                    TransactionSerializer(transaction, context={"request": request}).data
                    if transaction is not None
                    else None
                ),
                "deleted": result["deleted"],
            }
        )

    @action(detail=True, methods=["post"])
    def cancel(self, request, team_pk=None, pk=None):
        change_request = self.handle_service_call(
            ChangeRequestService.cancel_change_request, self.get_identity(), pk
        )
        return Response(self.get_serializer(change_request).data)
