from django.contrib import admin

from .models import ChangeRequest, Team, TeamMembership, Transaction


class TeamMembershipInline(admin.TabularInline):
    model = TeamMembership
    extra = 0
    # Roles change through the API so rank rules apply
    readonly_fields = ["user", "role", "joined_at"]
    can_delete = False


@admin.register(Team)
class TeamAdmin(admin.ModelAdmin):
    list_display = ["name", "owner", "currency", "budget_amount", "allow_report_access", "created_at"]
    search_fields = ["name", "owner__username"]
    readonly_fields = ["owner", "created_at", "updated_at"]
    inlines = [TeamMembershipInline]


@admin.register(TeamMembership)
class TeamMembershipAdmin(admin.ModelAdmin):
    list_display = ["team", "user", "role", "joined_at"]
    list_filter = ["role"]
    search_fields = ["team__name", "user__username"]
    readonly_fields = ["team", "user", "role", "joined_at"]


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = ["id", "team", "owner", "type", "amount", "category", "transaction_date", "status"]
    list_filter = ["type", "status"]
    search_fields = ["category", "description", "owner__username"]
    date_hierarchy = "transaction_date"
    # status mirrors the pending change request and is only moved by the services
    readonly_fields = ["team", "owner", "status", "created_at", "updated_at"]


@admin.register(ChangeRequest)
class ChangeRequestAdmin(admin.ModelAdmin):
    list_display = ["id", "team", "kind", "requester", "target_owner", "status", "created_at", "expires_at"]
    list_filter = ["kind", "status"]
    search_fields = ["requester__username", "target_owner__username", "reason"]
    readonly_fields = [
        "team",
        "target_transaction",
        "target_owner",
        "requester",
        "kind",
        "proposed_changes",
        "status",
        "created_at",
        "expires_at",
        "resolved_at",
        "resolved_by",
    ]
