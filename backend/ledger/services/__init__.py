# ledger/services/__init__.py
from .change_request_service import ChangeRequestService
from .identity_context_service import IdentityContextService
from .membership_service import MembershipService
from .team_service import TeamService
from .transaction_service import TransactionService
from .view_mode_service import ViewModeService

__all__ = [
    "IdentityContextService",
    "TeamService",
    "MembershipService",
    "TransactionService",
    "ChangeRequestService",
    "ViewModeService",
]
