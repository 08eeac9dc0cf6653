# tests/test_admin.py
"""
Tests for the Django admin registrations.
"""

import json

import pytest
from django.contrib.admin.sites import site
from django.contrib.auth import get_user_model

from accounts.authz import ActorContext
from accounts.models import Company, CompanyUser
from audit.commands import record_audit
from audit.models import AuditLog

User = get_user_model()


@pytest.mark.django_db
class TestAdmin:

    @pytest.mark.parametrize("url", [
        "/admin/accounts/user/",
        "/admin/accounts/company/",
        "/admin/audit/auditlog/",
    ])
    def test_administrator_sees_changelists(self, client, administrator, url):
        client.force_login(administrator)
        assert client.get(url).status_code == 200

    def test_viewer_is_refused(self, client, user):
        client.force_login(user)
        response = client.get("/admin/accounts/user/")
        assert response.status_code == 302

    def test_audit_log_admin_is_read_only(self, rf, administrator, admin_actor, company):
        entry = record_audit(admin_actor, AuditLog.Action.READ, company, company=company)
        request = rf.get("/admin/audit/auditlog/")
        request.user = administrator
        model_admin = site._registry[AuditLog]

        assert not model_admin.has_add_permission(request)
        assert not model_admin.has_change_permission(request, entry)
        assert not model_admin.has_delete_permission(request, entry)

    def test_soft_delete_action_goes_through_command(self, client, administrator, user):
        client.force_login(administrator)

        response = client.post(
            "/admin/accounts/user/",
            {"action": "soft_delete_selected", "_selected_action": [user.pk]},
        )

        assert response.status_code == 302
        user.refresh_from_db()
        assert user.deleted_at is not None
        assert AuditLog.objects.filter(auditable_type="User", auditable_id=user.pk).exists()


@pytest.mark.django_db
class TestAdminWritesUseCommands:

    def test_user_change_records_audit_entries(self, client, administrator, user):
        client.force_login(administrator)

        response = client.post(
            f"/admin/accounts/user/{user.pk}/change/",
            {
                "email": "viewer@example.com",
                "first_name": "Victor",
                "last_name": "Viewer",
                "role": str(User.Role.APPROVER_REVIEWER.value),
            },
        )

        assert response.status_code == 302
        user.refresh_from_db()
        assert user.first_name == "Victor"
        assert user.role == User.Role.APPROVER_REVIEWER

        changes = [
            json.loads(entry.audit_changes)
            for entry in AuditLog.objects.filter(auditable_type="User", auditable_id=user.pk).order_by("id")
        ]
        assert changes == [{"role": [0, 2]}, {"first_name": ["Vic", "Victor"]}]
        assert all(
            entry.user_id == administrator.pk
            for entry in AuditLog.objects.filter(auditable_type="User", auditable_id=user.pk)
        )

    def test_users_cannot_be_added_in_admin(self, client, administrator):
        client.force_login(administrator)
        assert client.get("/admin/accounts/user/add/").status_code == 403

    def test_user_delete_runs_ordered_cascade(self, client, administrator, user, company, membership):
        record_audit(ActorContext(user=user), AuditLog.Action.READ, company, company=company)
        user_id = user.pk
        client.force_login(administrator)

        response = client.post(f"/admin/accounts/user/{user_id}/delete/", {"post": "yes"})

        assert response.status_code == 302
        assert not User.objects.filter(pk=user_id).exists()
        assert not CompanyUser.objects.filter(user_id=user_id).exists()
        entry = AuditLog.objects.recent().first()
        assert entry.action == AuditLog.Action.DESTROY
        assert entry.auditable_type == "User"
        assert entry.auditable_id == user_id

    def test_company_add_with_member_inline(self, client, administrator, user):
        client.force_login(administrator)

        response = client.post(
            "/admin/accounts/company/add/",
            {
                "name": "Initech",
                "industry": "Software",
                "size": "small",
                "status": "0",
                "description": "",
                "fiscal_year_end": "",
                **_inline_management(total=1, initial=0),
                "company_users-0-user": str(user.pk),
                "company_users-0-role": str(CompanyUser.Role.OWNER.value),
            },
        )

        assert response.status_code == 302
        company = Company.objects.get(name="Initech")
        membership = CompanyUser.objects.get(company=company, user=user)
        assert membership.role == CompanyUser.Role.OWNER

        actions = set(
            AuditLog.objects.filter(company=company).values_list("auditable_type", "action")
        )
        assert actions == {
            ("Company", AuditLog.Action.CREATE),
            ("CompanyUser", AuditLog.Action.CREATE),
        }

    def test_company_inline_role_change_records_update(self, client, administrator, company, user, membership):
        client.force_login(administrator)

        response = client.post(
            f"/admin/accounts/company/{company.pk}/change/",
            {
                "name": company.name,
                "industry": company.industry,
                "size": company.size,
                "status": "0",
                "description": "",
                "fiscal_year_end": "",
                **_inline_management(total=1, initial=1),
                "company_users-0-id": str(membership.pk),
                "company_users-0-company": str(company.pk),
                "company_users-0-user": str(user.pk),
                "company_users-0-role": str(CompanyUser.Role.ADMIN.value),
            },
        )

        assert response.status_code == 302
        membership.refresh_from_db()
        assert membership.role == CompanyUser.Role.ADMIN
        entry = AuditLog.objects.get(auditable_type="CompanyUser", auditable_id=membership.pk)
        assert entry.action == AuditLog.Action.UPDATE
        assert json.loads(entry.audit_changes) == {"role": [0, 1]}

    def test_delete_selected_companies_runs_ordered_cascade(self, client, administrator, company, membership):
        company_id = company.pk
        client.force_login(administrator)

        response = client.post(
            "/admin/accounts/company/",
            {"action": "delete_selected", "_selected_action": [company_id], "post": "yes"},
        )

        assert response.status_code == 302
        assert not Company.objects.filter(pk=company_id).exists()
        assert not CompanyUser.objects.filter(company_id=company_id).exists()
        entry = AuditLog.objects.recent().first()
        assert entry.action == AuditLog.Action.DESTROY
        assert entry.auditable_type == "Company"
        assert entry.company is None


def _inline_management(total, initial):
    return {
        "company_users-TOTAL_FORMS": str(total),
        "company_users-INITIAL_FORMS": str(initial),
        "company_users-MIN_NUM_FORMS": "0",
        "company_users-MAX_NUM_FORMS": "1000",
    }
