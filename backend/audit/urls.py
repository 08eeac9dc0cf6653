# audit/urls.py
"""URL configuration for the audit log API (read-only)."""

from django.urls import path

from .views import AuditLogDetailView, AuditLogListView

app_name = "audit"

urlpatterns = [
    path("audit-logs/", AuditLogListView.as_view(), name="audit-log-list"),
    path("audit-logs/<int:pk>/", AuditLogDetailView.as_view(), name="audit-log-detail"),
]
