"""
Root URL configuration for the Team Ledger backend.

Tokens are issued by the external identity service and only verified here
(JWTAuthentication), so no login or token endpoints are mounted.
"""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/", include("ledger.urls")),
]
