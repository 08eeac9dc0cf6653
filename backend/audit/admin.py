"""
Django Admin registration for the audit log.
"""
from django.contrib import admin

from audit.models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    """Admin interface for AuditLog (read-only)."""

    list_display = [
        "id",
        "action",
        "resource_type",
        "resource_id",
        "user",
        "company",
        "ip_address",
        "created_at",
    ]
    list_filter = ["action", "auditable_type"]
    search_fields = ["resource_type", "user__email", "company__name", "ip_address"]
    raw_id_fields = ["user", "company"]
    readonly_fields = [
        "user",
        "company",
        "auditable_type",
        "auditable_id",
        "action",
        "resource_type",
        "resource_id",
        "audit_changes",
        "ip_address",
        "user_agent",
        "created_at",
        "updated_at",
    ]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
