# ledger/mixins/team_context.py
"""
Team context mixin.
Thin wrapper around the identity context service so the identity is
available BEFORE DRF runs permission checks.
"""

import logging

from ..services.identity_context_service import IdentityContextService

logger = logging.getLogger(__name__)


class TeamContextMixin:
    """
    Resolves ``request.team`` and ``request.identity`` from the URL's ``team_pk``.
    """

    context_service = IdentityContextService()

    def initial(self, request, *args, **kwargs):
        """
        Build identity context, then let DRF authenticate, check permissions
        and throttle.

        DRF authenticates lazily on first access to ``request.user``, so the
        context service triggers authentication itself here.
        """
        self.context_service.build_request_context(request, kwargs)

        logger.debug(
            "Team context initialized before permission checks",
            extra={
                "user_id": getattr(request.user, "id", None),
                "team_id": kwargs.get("team_pk"),
                "has_identity": request.identity is not None,
                "action": "team_context_pre_permissions",
                "component": "TeamContextMixin",
            },
        )

        super().initial(request, *args, **kwargs)

    def get_identity(self):
        """Identity of the caller; only valid after permission checks passed."""
        return self.request.identity
