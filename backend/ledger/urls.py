"""
URL configuration for the team ledger API.

Team-scoped resources are registered under ``teams/{team_pk}/`` so the team
context mixin can resolve the caller's identity from the URL.
"""

import logging

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from . import views

# Get structured logger for this module
logger = logging.getLogger(__name__)

TEAM_PREFIX = r"teams/(?P<team_pk>\d+)"

router = DefaultRouter()

# Team management endpoints
router.register(r"teams", views.TeamViewSet, basename="team")

# Member listing and role management
router.register(
    rf"{TEAM_PREFIX}/members",
    views.TeamMemberViewSet,
    basename="team-member",
)

# Ledger entries with direct and request-based mutation
router.register(
    rf"{TEAM_PREFIX}/transactions",
    views.TransactionViewSet,
    basename="team-transaction",
)

# Change request listing and resolution
router.register(
    rf"{TEAM_PREFIX}/change-requests",
    views.ChangeRequestViewSet,
    basename="team-change-request",
)

urlpatterns = [
    path("", include(router.urls)),
    path(
        "teams/<int:team_pk>/view-mode/",
        views.ViewModeView.as_view(),
        name="team-view-mode",
    ),
]

logger.debug(
    "Ledger API URLs configured",
    extra={
        "viewset_endpoints": len(router.registry),
        "total_routes": len(router.urls) + len(urlpatterns) - 1,
        "action": "url_configuration_loaded",
        "component": "urls",
    },
)
