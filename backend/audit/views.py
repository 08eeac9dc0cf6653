# audit/views.py
"""
Read-only audit log API.

There are no write endpoints: entries are appended by the accounts commands.
Administrators see every entry; other users see the entries they made.
"""

from django.http import Http404
from rest_framework import serializers, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.authz import resolve_actor
from audit.auditable import AuditableType
from audit.models import AuditLog
from audit.serializers import AuditLogSerializer


def _visible_entries(actor):
    if actor.is_administrator:
        return AuditLog.objects.all()
    return AuditLog.objects.for_user(actor.user)


def _int_param(request, name):
    raw = request.query_params.get(name)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError:
        raise serializers.ValidationError({name: ["A valid integer is required."]})


class AuditLogListView(APIView):
    """
    GET /api/audit-logs/ -> entries, most recent first

    Filters: ?user=<id>, ?company=<id>, ?action=<name>,
    ?auditable_type=<User|Company|CompanyUser>&auditable_id=<id>
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        entries = _visible_entries(actor)

        user_id = _int_param(request, "user")
        if user_id is not None:
            entries = entries.filter(user_id=user_id)

        company_id = _int_param(request, "company")
        if company_id is not None:
            entries = entries.filter(company_id=company_id)

        action = request.query_params.get("action")
        if action:
            try:
                entries = entries.filter(action=AuditLog.Action[action.upper()])
            except KeyError:
                raise serializers.ValidationError({"action": [f'"{action}" is not a valid choice.']})

        auditable_type = request.query_params.get("auditable_type")
        if auditable_type:
            if auditable_type not in AuditableType.values:
                raise serializers.ValidationError(
                    {"auditable_type": [f'"{auditable_type}" is not a valid choice.']}
                )
            entries = entries.filter(auditable_type=auditable_type)
            auditable_id = _int_param(request, "auditable_id")
            if auditable_id is not None:
                entries = entries.filter(auditable_id=auditable_id)

        serializer = AuditLogSerializer(entries.recent(), many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)


class AuditLogDetailView(APIView):
    """
    GET /api/audit-logs/<pk>/ -> one entry
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        actor = resolve_actor(request)
        entry = _visible_entries(actor).filter(pk=pk).first()
        if entry is None:
            raise Http404
        return Response(AuditLogSerializer(entry).data)
