# audit/serializers.py
"""Read-only serializers for audit log entries."""

import json

from rest_framework import serializers

from accounts.serializers import ChoiceNameField
from audit.models import AuditLog


class AuditLogSerializer(serializers.ModelSerializer):
    action = ChoiceNameField(AuditLog.Action, read_only=True)
    changes = serializers.SerializerMethodField()

    class Meta:
        model = AuditLog
        fields = (
            "id",
            "user_id",
            "company_id",
            "auditable_type",
            "auditable_id",
            "action",
            "resource_type",
            "resource_id",
            "changes",
            "ip_address",
            "user_agent",
            "created_at",
        )
        read_only_fields = fields

    def get_changes(self, obj):
        if not obj.audit_changes:
            return None
        try:
            return json.loads(obj.audit_changes)
        except ValueError:
            # Rows written by other tools may hold non-JSON text.
            return obj.audit_changes
