"""
Integration tests for the team ledger API endpoints.
Covers the identity context, team settings, direct vs request-based mutation,
change request resolution, role management and view mode over HTTP.
"""

from datetime import date, timedelta
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from ledger.models import ChangeRequest, Team, TeamMembership, Transaction
from ledger.roles import Role

from ..factories import TeamFactory, TeamMembershipFactory, TransactionFactory, UserFactory

# =============================================================================
# URL ENDPOINT CONSTANTS
# =============================================================================

TEAM_LIST = "team-list"
TEAM_DETAIL = "team-detail"
TEAM_CATEGORIES = "team-categories"
MEMBER_LIST = "team-member-list"
MEMBER_DETAIL = "team-member-detail"
MEMBER_ROLE = "team-member-role"
VIEW_MODE = "team-view-mode"
TRANSACTION_LIST = "team-transaction-list"
TRANSACTION_DETAIL = "team-transaction-detail"
TRANSACTION_REQUEST_EDIT = "team-transaction-request-edit"
TRANSACTION_REQUEST_DELETE = "team-transaction-request-delete"
CHANGE_REQUEST_LIST = "team-change-request-list"
CHANGE_REQUEST_DETAIL = "team-change-request-detail"
CHANGE_REQUEST_RESOLVE = "team-change-request-resolve"
CHANGE_REQUEST_CANCEL = "team-change-request-cancel"


class BaseAPITestCase(APITestCase):
    """Team with one user per role; authenticated as the plain member by default."""

    def setUp(self):
        super().setUp()
        self.owner = UserFactory(username="owner")
        self.admin = UserFactory(username="admin")
        self.deputy = UserFactory(username="deputy")
        self.member = UserFactory(username="member")
        self.outsider = UserFactory(username="outsider")

        self.team = TeamFactory(name="Household", owner=self.owner)
        TeamMembershipFactory(team=self.team, user=self.admin, role=Role.ADMIN)
        TeamMembershipFactory(team=self.team, user=self.deputy, role=Role.DEPUTY)
        TeamMembershipFactory(team=self.team, user=self.member, role=Role.MEMBER)

        self.transaction = TransactionFactory(
            team=self.team,
            owner=self.member,
            amount=Decimal("300000"),
            type=Transaction.Type.EXPENSE,
            category="Groceries",
            transaction_date=date(2024, 5, 10),
        )

        self.client.force_authenticate(user=self.member)

    def login(self, user):
        self.client.force_authenticate(user=user)

    def url(self, name, **kwargs):
        return reverse(name, kwargs={"team_pk": self.team.pk, **kwargs})

    def _get_response_data(self, response):
        """Handle both paginated and plain list responses."""
        if isinstance(response.data, dict) and "results" in response.data:
            return response.data["results"]
        return response.data


class IdentityContextAPITests(BaseAPITestCase):
    def test_unauthenticated_rejected(self):
        self.client.force_authenticate(user=None)

        response = self.client.get(self.url(TRANSACTION_LIST))

        self.assertIn(
            response.status_code, [status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN]
        )

    def test_non_member_forbidden(self):
        self.login(self.outsider)

        response = self.client.get(self.url(TRANSACTION_LIST))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_unknown_team_not_found(self):
        response = self.client.get(reverse(TRANSACTION_LIST, kwargs={"team_pk": 999999}))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_role_change_takes_effect_on_next_call(self):
        self.login(self.deputy)
        url = self.url(MEMBER_ROLE, user_id=self.member.id)
        self.assertEqual(
            self.client.patch(url, {"role": "deputy"}, format="json").status_code,
            status.HTTP_403_FORBIDDEN,
        )

        TeamMembership.objects.filter(team=self.team, user=self.deputy).update(role=Role.ADMIN)

        response = self.client.patch(url, {"role": "deputy"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)


class TeamAPITests(BaseAPITestCase):
    def test_create_team_makes_caller_owner(self):
        self.login(self.outsider)

        response = self.client.post(
            reverse(TEAM_LIST), {"name": "Trip", "currency": "eur"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["currency"], "EUR")
        self.assertEqual(response.data["user_role"], "owner")
        self.assertEqual(response.data["owner"], self.outsider.id)

    def test_create_team_invalid_currency(self):
        response = self.client.post(
            reverse(TEAM_LIST), {"name": "Trip", "currency": "GBP"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_only_own_teams(self):
        TeamFactory(name="Someone else's")

        response = self.client.get(reverse(TEAM_LIST))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 1)
        self.assertEqual([t["id"] for t in self._get_response_data(response)], [self.team.id])

    def test_team_detail_for_members_only(self):
        response = self.client.get(reverse(TEAM_DETAIL, kwargs={"team_pk": self.team.pk}))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["user_role"], "member")
        self.assertEqual(response.data["member_count"], 4)

        self.login(self.outsider)
        response = self.client.get(reverse(TEAM_DETAIL, kwargs={"team_pk": self.team.pk}))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_team_list_paginated_with_limit(self):
        for name in ("Trip", "Office"):
            TeamMembershipFactory(team=TeamFactory(name=name), user=self.member)

        response = self.client.get(reverse(TEAM_LIST), {"limit": 2})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 3)
        self.assertEqual(len(response.data["results"]), 2)
        self.assertIsNotNone(response.data["next"])


class TeamSettingsAPITests(BaseAPITestCase):
    def detail_url(self):
        return reverse(TEAM_DETAIL, kwargs={"team_pk": self.team.pk})

    def test_admin_updates_settings(self):
        self.login(self.admin)

        response = self.client.patch(
            self.detail_url(),
            {"name": "Flat share", "currency": "usd", "budget_amount": "1500000.00"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["name"], "Flat share")
        self.assertEqual(response.data["currency"], "USD")
        self.assertEqual(Decimal(response.data["budget_amount"]), Decimal("1500000"))

    def test_income_target_is_owner_only(self):
        self.login(self.admin)
        response = self.client.patch(self.detail_url(), {"income_target": "5000"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.login(self.owner)
        response = self.client.patch(self.detail_url(), {"income_target": "5000"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data["income_target"]), Decimal("5000"))

    def test_deputy_cannot_update_settings(self):
        self.login(self.deputy)

        response = self.client.patch(self.detail_url(), {"name": "Mine now"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.team.refresh_from_db()
        self.assertEqual(self.team.name, "Household")

    def test_empty_patch_is_400(self):
        self.login(self.owner)

        response = self.client.patch(self.detail_url(), {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_add_category_and_duplicate_conflicts(self):
        self.login(self.admin)
        url = reverse(TEAM_CATEGORIES, kwargs={"team_pk": self.team.pk})

        response = self.client.post(url, {"name": "Rent", "icon": "🏠"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["categories"], [{"name": "Rent", "icon": "🏠"}])

        response = self.client.post(url, {"name": "RENT", "icon": "🏢"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_member_cannot_add_category(self):
        response = self.client.post(
            reverse(TEAM_CATEGORIES, kwargs={"team_pk": self.team.pk}),
            {"name": "Rent", "icon": "🏠"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_delete_team(self):
        response = self.client.delete(self.detail_url())
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.login(self.admin)
        response = self.client.delete(self.detail_url())
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Team.objects.filter(pk=self.team.pk).exists())
        self.assertFalse(Transaction.objects.filter(pk=self.transaction.pk).exists())


class TransactionAPITests(BaseAPITestCase):
    def test_list_and_filter(self):
        TransactionFactory(team=self.team, owner=self.deputy, type=Transaction.Type.INCOME)

        response = self.client.get(self.url(TRANSACTION_LIST), {"type": "income"})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        rows = self._get_response_data(response)
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["type"], "income")
        self.assertFalse(rows[0]["is_mine"])

    def test_list_paginated_with_limit(self):
        for _ in range(3):
            TransactionFactory(team=self.team, owner=self.member)

        response = self.client.get(self.url(TRANSACTION_LIST), {"limit": 2, "page": 1})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 4)
        self.assertEqual(len(response.data["results"]), 2)

    def test_create_transaction(self):
        response = self.client.post(
            self.url(TRANSACTION_LIST),
            {
                "amount": "150000.00",
                "type": "income",
                "category": "Gift",
                "transaction_date": "2024-06-01",
            },
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["status"], "approved")
        self.assertEqual(response.data["owner"], self.member.id)
        self.assertTrue(response.data["is_mine"])

    def test_create_transaction_rejects_non_positive_amount(self):
        response = self.client.post(
            self.url(TRANSACTION_LIST),
            {"amount": "0", "type": "income", "category": "Gift", "transaction_date": "2024-06-01"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_owner_patch_applies_directly(self):
        response = self.client.patch(
            self.url(TRANSACTION_DETAIL, pk=self.transaction.pk),
            {"amount": "320000"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.transaction.refresh_from_db()
        self.assertEqual(self.transaction.amount, Decimal("320000"))
        self.assertEqual(self.transaction.status, Transaction.Status.APPROVED)

    def test_team_owner_patch_of_member_entry_forbidden(self):
        self.login(self.owner)

        response = self.client.patch(
            self.url(TRANSACTION_DETAIL, pk=self.transaction.pk),
            {"amount": "1"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_non_owner_delete_forbidden_and_owner_delete_succeeds(self):
        url = self.url(TRANSACTION_DETAIL, pk=self.transaction.pk)

        self.login(self.admin)
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_403_FORBIDDEN)

        self.login(self.member)
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Transaction.objects.filter(pk=self.transaction.pk).exists())

    def test_request_edit_on_own_entry_is_400(self):
        response = self.client.post(
            self.url(TRANSACTION_REQUEST_EDIT, pk=self.transaction.pk),
            {"changes": {"amount": "1"}},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_second_request_conflicts(self):
        self.login(self.admin)
        first = self.client.post(
            self.url(TRANSACTION_REQUEST_DELETE, pk=self.transaction.pk),
            {"reason": "duplicate"},
            format="json",
        )
        self.assertEqual(first.status_code, status.HTTP_201_CREATED)

        self.login(self.deputy)
        second = self.client.post(
            self.url(TRANSACTION_REQUEST_EDIT, pk=self.transaction.pk),
            {"changes": {"amount": "2"}, "reason": "typo"},
            format="json",
        )
        self.assertEqual(second.status_code, status.HTTP_409_CONFLICT)

    def test_request_edit_amount_in_exponent_form_too_large(self):
        self.login(self.admin)

        response = self.client.post(
            self.url(TRANSACTION_REQUEST_EDIT, pk=self.transaction.pk),
            {"changes": {"amount": 1e21}},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(ChangeRequest.objects.exists())
        self.transaction.refresh_from_db()
        self.assertEqual(self.transaction.status, Transaction.Status.APPROVED)

    def test_missing_transaction_404(self):
        response = self.client.patch(
            self.url(TRANSACTION_DETAIL, pk=999999), {"amount": "1"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class ChangeRequestAPITests(BaseAPITestCase):
    def _request_edit(self, user, changes, reason="wrong amount"):
        self.login(user)
        response = self.client.post(
            self.url(TRANSACTION_REQUEST_EDIT, pk=self.transaction.pk),
            {"changes": changes, "reason": reason},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        return response.data["id"]

    def test_edit_request_approved_by_owner(self):
        request_id = self._request_edit(self.admin, {"amount": 500000})
        self.transaction.refresh_from_db()
        self.assertEqual(self.transaction.status, Transaction.Status.EDIT_REQUESTED)

        self.login(self.member)
        incoming = self.client.get(self.url(CHANGE_REQUEST_LIST), {"scope": "incoming"})
        self.assertEqual([r["id"] for r in self._get_response_data(incoming)], [request_id])

        response = self.client.post(
            self.url(CHANGE_REQUEST_RESOLVE, pk=request_id), {"action": "approve"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data["deleted"])
        self.assertEqual(response.data["change_request"]["status"], "approved")
        self.assertEqual(Decimal(response.data["transaction"]["amount"]), Decimal("500000"))
        self.assertEqual(response.data["transaction"]["status"], "approved")

    def test_edit_request_rejected_by_owner(self):
        request_id = self._request_edit(self.admin, {"amount": 500000})

        self.login(self.member)
        response = self.client.post(
            self.url(CHANGE_REQUEST_RESOLVE, pk=request_id), {"action": "reject"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.transaction.refresh_from_db()
        self.assertEqual(self.transaction.amount, Decimal("300000"))
        self.assertEqual(self.transaction.status, Transaction.Status.APPROVED)
        self.assertEqual(ChangeRequest.objects.get(pk=request_id).status, "rejected")

    def test_resolution_by_non_owner_forbidden(self):
        request_id = self._request_edit(self.deputy, {"category": "Food"})

        for user in (self.owner, self.admin, self.deputy):
            self.login(user)
            response = self.client.post(
                self.url(CHANGE_REQUEST_RESOLVE, pk=request_id), {"action": "approve"}, format="json"
            )
            self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_double_resolution_conflicts(self):
        request_id = self._request_edit(self.admin, {"amount": 500000})
        url = self.url(CHANGE_REQUEST_RESOLVE, pk=request_id)

        self.login(self.member)
        self.assertEqual(
            self.client.post(url, {"action": "approve"}, format="json").status_code,
            status.HTTP_200_OK,
        )
        self.assertEqual(
            self.client.post(url, {"action": "reject"}, format="json").status_code,
            status.HTTP_409_CONFLICT,
        )

    def test_approved_delete_removes_transaction(self):
        self.login(self.deputy)
        created = self.client.post(
            self.url(TRANSACTION_REQUEST_DELETE, pk=self.transaction.pk), {}, format="json"
        )
        self.assertEqual(created.status_code, status.HTTP_201_CREATED)

        self.login(self.member)
        response = self.client.post(
            self.url(CHANGE_REQUEST_RESOLVE, pk=created.data["id"]),
            {"action": "approve"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["deleted"])
        self.assertIsNone(response.data["transaction"])
        self.assertFalse(Transaction.objects.filter(pk=self.transaction.pk).exists())

    def test_invalid_action_400(self):
        request_id = self._request_edit(self.admin, {"amount": 1})

        self.login(self.member)
        response = self.client.post(
            self.url(CHANGE_REQUEST_RESOLVE, pk=request_id), {"action": "maybe"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_requester_cancels(self):
        request_id = self._request_edit(self.admin, {"amount": 1})

        self.login(self.member)
        self.assertEqual(
            self.client.post(self.url(CHANGE_REQUEST_CANCEL, pk=request_id)).status_code,
            status.HTTP_403_FORBIDDEN,
        )

        self.login(self.admin)
        response = self.client.post(self.url(CHANGE_REQUEST_CANCEL, pk=request_id))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], "cancelled")
        self.transaction.refresh_from_db()
        self.assertEqual(self.transaction.status, Transaction.Status.APPROVED)

    def test_detail_and_outgoing_scope(self):
        request_id = self._request_edit(self.admin, {"amount": 1})

        detail = self.client.get(self.url(CHANGE_REQUEST_DETAIL, pk=request_id))
        self.assertEqual(detail.status_code, status.HTTP_200_OK)
        self.assertEqual(detail.data["requester_username"], "admin")

        outgoing = self.client.get(self.url(CHANGE_REQUEST_LIST), {"scope": "outgoing"})
        self.assertEqual([r["id"] for r in self._get_response_data(outgoing)], [request_id])

        bad_scope = self.client.get(self.url(CHANGE_REQUEST_LIST), {"scope": "mine"})
        self.assertEqual(bad_scope.status_code, status.HTTP_400_BAD_REQUEST)


class MemberAPITests(BaseAPITestCase):
    def test_list_members(self):
        response = self.client.get(self.url(MEMBER_LIST))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        roles = {m["username"]: m["role"] for m in response.data}
        self.assertEqual(
            roles, {"owner": "owner", "admin": "admin", "deputy": "deputy", "member": "member"}
        )

    def test_assign_role_case_insensitive(self):
        self.login(self.owner)

        response = self.client.patch(
            self.url(MEMBER_ROLE, user_id=self.member.id), {"role": "Deputy"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["role"], "deputy")

    def test_assign_invalid_role_400(self):
        self.login(self.owner)

        response = self.client.patch(
            self.url(MEMBER_ROLE, user_id=self.member.id), {"role": "viewer"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_self_promotion_forbidden(self):
        self.login(self.admin)

        response = self.client.patch(
            self.url(MEMBER_ROLE, user_id=self.admin.id), {"role": "admin"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_add_and_remove_member(self):
        self.login(self.admin)

        added = self.client.post(
            self.url(MEMBER_LIST), {"user_id": self.outsider.id, "role": "deputy"}, format="json"
        )
        self.assertEqual(added.status_code, status.HTTP_201_CREATED)
        self.assertEqual(added.data["role"], "deputy")

        duplicate = self.client.post(
            self.url(MEMBER_LIST), {"user_id": self.outsider.id}, format="json"
        )
        self.assertEqual(duplicate.status_code, status.HTTP_409_CONFLICT)

        removed = self.client.delete(self.url(MEMBER_DETAIL, user_id=self.outsider.id))
        self.assertEqual(removed.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(
            TeamMembership.objects.filter(team=self.team, user=self.outsider).exists()
        )

    def test_remove_owner_400(self):
        self.login(self.admin)

        response = self.client.delete(self.url(MEMBER_DETAIL, user_id=self.owner.id))

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ViewModeAPITests(BaseAPITestCase):
    def test_owner_default_mode_labelled_admin(self):
        self.login(self.owner)

        response = self.client.get(self.url(VIEW_MODE))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["actual_role"], "owner")
        self.assertEqual(response.data["view_mode"], "owner")
        self.assertEqual(response.data["label"], "Admin")
        self.assertEqual(
            [m["value"] for m in response.data["available_modes"]],
            ["owner", "admin", "deputy", "member"],
        )

    def test_select_lower_mode_persists_in_session(self):
        self.login(self.deputy)

        response = self.client.put(self.url(VIEW_MODE), {"mode": "member"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["view_mode"], "member")
        self.assertEqual(response.data["actual_role"], "deputy")

        response = self.client.get(self.url(VIEW_MODE))
        self.assertEqual(response.data["view_mode"], "member")

    def test_select_higher_mode_rejected(self):
        response = self.client.put(self.url(VIEW_MODE), {"mode": "admin"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_view_mode_does_not_change_authority(self):
        self.login(self.owner)
        self.client.put(self.url(VIEW_MODE), {"mode": "member"}, format="json")

        response = self.client.patch(
            self.url(MEMBER_ROLE, user_id=self.member.id), {"role": "admin"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)


class ExpireChangeRequestsCommandTests(BaseAPITestCase):
    def _stale_request(self):
        self.login(self.admin)
        response = self.client.post(
            self.url(TRANSACTION_REQUEST_DELETE, pk=self.transaction.pk), {}, format="json"
        )
        ChangeRequest.objects.filter(pk=response.data["id"]).update(
            expires_at=timezone.now() - timedelta(minutes=5)
        )
        return response.data["id"]

    def test_dry_run_changes_nothing(self):
        request_id = self._stale_request()
        out = StringIO()

        call_command("expire_change_requests", "--dry-run", stdout=out)

        self.assertIn("1 pending change request(s) would expire", out.getvalue())
        self.assertEqual(ChangeRequest.objects.get(pk=request_id).status, "pending")

    def test_sweep_expires_and_unlocks(self):
        request_id = self._stale_request()
        out = StringIO()

        call_command("expire_change_requests", stdout=out)

        self.assertIn("Expired 1 change request(s)", out.getvalue())
        self.assertEqual(ChangeRequest.objects.get(pk=request_id).status, "expired")
        self.transaction.refresh_from_db()
        self.assertEqual(self.transaction.status, Transaction.Status.APPROVED)

        self.login(self.member)
        response = self.client.post(
            self.url(CHANGE_REQUEST_RESOLVE, pk=request_id), {"action": "approve"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
