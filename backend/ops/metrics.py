"""
Prometheus metrics endpoint.

Metrics are row gauges computed at scrape time:
- tenantbase_users: users by active/soft-deleted state
- tenantbase_companies: companies by status
- tenantbase_company_users: memberships by role
- tenantbase_audit_logs: audit log entries by action

A fresh CollectorRegistry is built per scrape so gauges never carry labels
for rows that no longer exist.
"""
import logging

from django.db.models import Count
from django.http import HttpResponse
from django.views import View
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Gauge, generate_latest

logger = logging.getLogger(__name__)


def collect_metrics(registry: CollectorRegistry) -> None:
    """Populate gauges on ``registry`` from current table contents."""
    from accounts.models import Company, CompanyUser, User
    from audit.models import AuditLog

    users = Gauge(
        "tenantbase_users",
        "Number of users by lifecycle state",
        ["state"],
        registry=registry,
    )
    users.labels(state="active").set(User.objects.active().count())
    users.labels(state="deleted").set(User.objects.soft_deleted().count())

    companies = Gauge(
        "tenantbase_companies",
        "Number of companies by status",
        ["status"],
        registry=registry,
    )
    counts = dict(Company.objects.order_by().values_list("status").annotate(n=Count("id")))
    for status in Company.Status:
        companies.labels(status=status.name.lower()).set(counts.get(status.value, 0))

    memberships = Gauge(
        "tenantbase_company_users",
        "Number of company memberships by role",
        ["role"],
        registry=registry,
    )
    counts = dict(CompanyUser.objects.order_by().values_list("role").annotate(n=Count("id")))
    for role in CompanyUser.Role:
        memberships.labels(role=role.name.lower()).set(counts.get(role.value, 0))

    audit_logs = Gauge(
        "tenantbase_audit_logs",
        "Number of audit log entries by action",
        ["action"],
        registry=registry,
    )
    counts = dict(AuditLog.objects.order_by().values_list("action").annotate(n=Count("id")))
    for action in AuditLog.Action:
        audit_logs.labels(action=action.name.lower()).set(counts.get(action.value, 0))


def get_prometheus_response() -> HttpResponse:
    """Generate Prometheus metrics response."""
    registry = CollectorRegistry()
    collect_metrics(registry)
    return HttpResponse(generate_latest(registry), content_type=CONTENT_TYPE_LATEST)


class MetricsView(View):
    """
    Prometheus metrics endpoint.

    Exposes metrics in Prometheus format at /_metrics/.
    Should be protected in production (internal network only).
    """

    def get(self, request):
        return get_prometheus_response()
