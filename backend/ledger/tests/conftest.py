# ledger/tests/conftest.py
from datetime import date
from decimal import Decimal

import pytest

from ledger.identity import IdentityContext
from ledger.models import Transaction
from ledger.roles import Role

from .factories import TeamFactory, TeamMembershipFactory, TransactionFactory, UserFactory

# =============================================================================
# USER & TEAM FIXTURES
# =============================================================================


@pytest.fixture
def owner_user(db):
    """Team owner"""
    return UserFactory(username="owner")


@pytest.fixture
def admin_user(db):
    return UserFactory(username="admin")


@pytest.fixture
def deputy_user(db):
    return UserFactory(username="deputy")


@pytest.fixture
def member_user(db):
    return UserFactory(username="member")


@pytest.fixture
def member_user2(db):
    return UserFactory(username="member2")


@pytest.fixture
def outsider_user(db):
    """Authenticated user without any membership in the team"""
    return UserFactory(username="outsider")


@pytest.fixture
def team(db, owner_user, admin_user, deputy_user, member_user, member_user2):
    """Team with one member per role (plus a second plain member)"""
    team = TeamFactory(name="Household", owner=owner_user)
    TeamMembershipFactory(team=team, user=admin_user, role=Role.ADMIN)
    TeamMembershipFactory(team=team, user=deputy_user, role=Role.DEPUTY)
    TeamMembershipFactory(team=team, user=member_user, role=Role.MEMBER)
    TeamMembershipFactory(team=team, user=member_user2, role=Role.MEMBER)
    return team


# =============================================================================
# IDENTITY FIXTURES
# =============================================================================


@pytest.fixture
def identity_for(team):
    """Build the IdentityContext of ``user`` in the shared team."""

    def build(user, target_team=None):
        target_team = target_team or team
        membership = target_team.memberships.get(user=user)
        return IdentityContext.build(user.id, target_team.id, membership.role)

    return build


@pytest.fixture
def owner_identity(identity_for, owner_user):
    return identity_for(owner_user)


@pytest.fixture
def admin_identity(identity_for, admin_user):
    return identity_for(admin_user)


@pytest.fixture
def deputy_identity(identity_for, deputy_user):
    return identity_for(deputy_user)


@pytest.fixture
def member_identity(identity_for, member_user):
    return identity_for(member_user)


@pytest.fixture
def member2_identity(identity_for, member_user2):
    return identity_for(member_user2)


# =============================================================================
# TRANSACTION FIXTURES
# =============================================================================


@pytest.fixture
def member_transaction(db, team, member_user):
    """Expense of 500000 VND owned by the plain member"""
    return TransactionFactory(
        team=team,
        owner=member_user,
        amount=Decimal("500000"),
        type=Transaction.Type.EXPENSE,
        category="Groceries",
        description="Weekly shopping",
        transaction_date=date(2024, 5, 10),
    )


@pytest.fixture
def deputy_transaction(db, team, deputy_user):
    """Income owned by the deputy"""
    return TransactionFactory(
        team=team,
        owner=deputy_user,
        amount=Decimal("1200000"),
        type=Transaction.Type.INCOME,
        category="Salary",
        transaction_date=date(2024, 5, 1),
    )
