# tests/test_commands.py
"""
Tests for the accounts command layer.

Tests cover:
- Registration and profile updates
- Authorization checks (PermissionDenied)
- Structured validation failures
- Ordered cascades of delete_user and delete_company
- Audit entries written alongside every change
"""

import json

import pytest
from django.contrib.auth import get_user_model
from django.core.exceptions import NON_FIELD_ERRORS, PermissionDenied

from accounts.authz import ActorContext
from accounts.commands import (
    DUPLICATE_EMAIL,
    register_user,
    update_user,
    change_user_role,
    soft_delete_user,
    delete_user,
    create_company,
    update_company,
    delete_company,
    add_user_to_company,
    change_member_role,
    remove_user_from_company,
)
from accounts.models import Company, CompanyUser
from audit.auditable import AuditableType
from audit.commands import record_audit
from audit.models import AuditLog

User = get_user_model()


def _last_entry():
    return AuditLog.objects.recent().first()


# =============================================================================
# Users
# =============================================================================

@pytest.mark.django_db
class TestRegisterUser:

    def test_register_creates_viewer_and_audit_entry(self):
        actor = ActorContext(ip_address="192.0.2.1", user_agent="curl/8.0")

        result = register_user(actor, "New.Person@Example.com", "Correct-Horse-42", "New", "Person")

        assert result.success
        user = result.data
        assert user.email == "new.person@example.com"
        assert user.role == User.Role.VIEWER
        assert user.check_password("Correct-Horse-42")

        entry = _last_entry()
        assert entry.user == user
        assert entry.action == AuditLog.Action.CREATE
        assert entry.auditable == user
        assert entry.ip_address == "192.0.2.1"
        assert "password" not in json.loads(entry.audit_changes)

    def test_register_fails_duplicate_email(self, user):
        result = register_user(ActorContext(), "Viewer@Example.com", "Correct-Horse-42", "Dup", "User")

        assert not result.success
        assert "email" in result.errors
        assert User.objects.count() == 1
        assert AuditLog.objects.count() == 0

    def test_register_reports_weak_password_with_other_errors(self):
        result = register_user(ActorContext(), "short@example.com", "abc", "", "Short")

        assert not result.success
        assert "password" in result.errors
        assert "first_name" in result.errors
        assert not User.objects.filter(email="short@example.com").exists()

    def test_unique_index_race_on_email_becomes_validation_failure(self, user, monkeypatch):
        # Simulate a concurrent registration committing between validation and insert
        monkeypatch.setattr(User, "validate_unique", lambda self, exclude=None: None)

        result = register_user(ActorContext(), "viewer@example.com", "Correct-Horse-42", "Dup", "User")

        assert not result.success
        assert result.errors == {"email": [DUPLICATE_EMAIL]}
        assert User.objects.count() == 1
        assert AuditLog.objects.count() == 0


@pytest.mark.django_db
class TestUpdateUser:

    def test_user_updates_own_profile(self, user, user_actor):
        result = update_user(user_actor, user, first_name="Victor", email=" VICTOR@example.com")

        assert result.success
        assert result.changes == {
            "first_name": ["Vic", "Victor"],
            "email": ["viewer@example.com", "victor@example.com"],
        }
        user.refresh_from_db()
        assert user.first_name == "Victor"

        entry = _last_entry()
        assert entry.action == AuditLog.Action.UPDATE
        assert json.loads(entry.audit_changes)["first_name"] == ["Vic", "Victor"]

    def test_no_changes_writes_no_entry(self, user, user_actor):
        result = update_user(user_actor, user, first_name="Vic")

        assert result.success
        assert result.changes == {}
        assert AuditLog.objects.count() == 0

    def test_non_administrator_cannot_update_others(self, other_user, user_actor):
        with pytest.raises(PermissionDenied):
            update_user(user_actor, other_user, first_name="Hacked")

        other_user.refresh_from_db()
        assert other_user.first_name == "Olga"

    def test_administrator_updates_anyone(self, user, admin_actor):
        result = update_user(admin_actor, user, last_name="Vance")
        assert result.success

    def test_invalid_email_returns_errors_and_keeps_stored_value(self, user, user_actor):
        result = update_user(user_actor, user, email="nope")

        assert not result.success
        assert "email" in result.errors
        assert user.email == "viewer@example.com"

    def test_email_taken_by_another_user(self, user, other_user, user_actor):
        result = update_user(user_actor, user, email="other@example.com")

        assert not result.success
        assert "email" in result.errors

    def test_unique_index_race_on_email_update(self, user, other_user, user_actor, monkeypatch):
        monkeypatch.setattr(User, "validate_unique", lambda self, exclude=None: None)

        result = update_user(user_actor, user, email="other@example.com")

        assert not result.success
        assert result.errors == {"email": [DUPLICATE_EMAIL]}
        assert user.email == "viewer@example.com"
        assert User.objects.filter(email="other@example.com").count() == 1
        assert AuditLog.objects.count() == 0

    def test_role_is_not_a_profile_field(self, user, user_actor):
        with pytest.raises(ValueError, match="role"):
            update_user(user_actor, user, role=User.Role.ADMINISTRATOR)


@pytest.mark.django_db
class TestChangeUserRole:

    def test_administrator_changes_role(self, user, admin_actor):
        result = change_user_role(admin_actor, user, User.Role.APPROVER_REVIEWER)

        assert result.success
        user.refresh_from_db()
        assert user.role == User.Role.APPROVER_REVIEWER
        assert json.loads(_last_entry().audit_changes) == {"role": [0, 2]}

    def test_non_administrator_cannot_change_role(self, user, user_actor):
        with pytest.raises(PermissionDenied):
            change_user_role(user_actor, user, User.Role.ADMINISTRATOR)

    def test_soft_deleted_administrator_has_no_authority(self, administrator, user):
        administrator.soft_delete()
        actor = ActorContext(user=administrator)

        with pytest.raises(PermissionDenied):
            change_user_role(actor, user, User.Role.DATA_CONTRIBUTOR)


@pytest.mark.django_db
class TestSoftDeleteUser:

    def test_user_soft_deletes_self(self, user, user_actor, membership):
        result = soft_delete_user(user_actor, user)

        assert result.success
        user.refresh_from_db()
        assert user.deleted_at is not None
        assert CompanyUser.objects.filter(pk=membership.pk).exists()

        entry = _last_entry()
        assert entry.action == AuditLog.Action.UPDATE
        assert "deleted_at" in json.loads(entry.audit_changes)

    def test_non_administrator_cannot_soft_delete_others(self, other_user, user_actor):
        with pytest.raises(PermissionDenied):
            soft_delete_user(user_actor, other_user)


@pytest.mark.django_db
class TestDeleteUser:

    def test_delete_removes_memberships_and_audit_entries(self, admin_actor, user, company, membership):
        own_actor = ActorContext(user=user)
        record_audit(own_actor, AuditLog.Action.READ, company, company=company)
        record_audit(own_actor, AuditLog.Action.READ, user)
        user_id = user.pk

        result = delete_user(admin_actor, user)

        assert result.success
        assert result.data == {"company_users": 1, "audit_logs": 2}
        assert not User.objects.filter(pk=user_id).exists()
        assert not CompanyUser.objects.filter(user_id=user_id).exists()
        assert not AuditLog.objects.filter(user_id=user_id).exists()

        entry = _last_entry()
        assert entry.action == AuditLog.Action.DESTROY
        assert entry.auditable_type == AuditableType.USER
        assert entry.auditable_id == user_id
        assert entry.auditable is None

    def test_administrator_cannot_delete_self(self, admin_actor, administrator):
        result = delete_user(admin_actor, administrator)

        assert not result.success
        assert User.objects.filter(pk=administrator.pk).exists()

    def test_non_administrator_cannot_delete(self, user_actor, other_user):
        with pytest.raises(PermissionDenied):
            delete_user(user_actor, other_user)


# =============================================================================
# Companies
# =============================================================================

@pytest.mark.django_db
class TestCompanyCommands:

    def test_create_company(self, admin_actor):
        result = create_company(admin_actor, "Initech", "Software", Company.Size.SMALL)

        assert result.success
        company = result.data
        assert company.status == Company.Status.ACTIVE

        entry = _last_entry()
        assert entry.action == AuditLog.Action.CREATE
        assert entry.company == company
        assert entry.auditable == company

    def test_create_company_requires_administrator(self, user_actor):
        with pytest.raises(PermissionDenied):
            create_company(user_actor, "Initech", "Software", Company.Size.SMALL)

    def test_create_company_invalid_size(self, admin_actor):
        result = create_company(admin_actor, "Initech", "Software", "enormous")

        assert not result.success
        assert "size" in result.errors
        assert Company.objects.count() == 0
        assert AuditLog.objects.count() == 0

    def test_update_company_status(self, admin_actor, company):
        result = update_company(admin_actor, company, status=Company.Status.SUSPENDED)

        assert result.success
        assert result.changes == {"status": [Company.Status.ACTIVE, Company.Status.SUSPENDED]}
        company.refresh_from_db()
        assert company.status == Company.Status.SUSPENDED

    def test_delete_company_cascades(self, admin_actor, company, membership):
        record_audit(admin_actor, AuditLog.Action.UPDATE, company, company=company)
        record_audit(ActorContext(user=membership.user), AuditLog.Action.READ, company, company=company)
        company_id = company.pk

        result = delete_company(admin_actor, company)

        assert result.success
        assert result.data == {"company_users": 1, "audit_logs": 2}
        assert not Company.objects.filter(pk=company_id).exists()
        assert not CompanyUser.objects.filter(company_id=company_id).exists()

        entry = _last_entry()
        assert entry.action == AuditLog.Action.DESTROY
        assert entry.company is None
        assert entry.auditable_id == company_id


# =============================================================================
# Memberships
# =============================================================================

@pytest.mark.django_db
class TestMembershipCommands:

    def test_add_user_to_company(self, admin_actor, company, user):
        result = add_user_to_company(admin_actor, company, user, CompanyUser.Role.ADMIN)

        assert result.success
        assert result.data.role == CompanyUser.Role.ADMIN
        entry = _last_entry()
        assert entry.auditable_type == AuditableType.COMPANY_USER
        assert entry.company == company

    def test_duplicate_membership_is_a_validation_failure(self, admin_actor, company, user, membership):
        result = add_user_to_company(admin_actor, company, user)

        assert not result.success
        assert NON_FIELD_ERRORS in result.errors

    def test_unique_index_race_becomes_validation_failure(self, admin_actor, company, user, membership, monkeypatch):
        # Simulate a concurrent writer committing between validation and insert
        monkeypatch.setattr(CompanyUser, "validate_constraints", lambda self, exclude=None: None)

        result = add_user_to_company(admin_actor, company, user)

        assert not result.success
        assert result.errors == {NON_FIELD_ERRORS: ["User is already a member of this company."]}
        assert CompanyUser.objects.filter(company=company, user=user).count() == 1

    def test_change_member_role(self, admin_actor, membership):
        result = change_member_role(admin_actor, membership, CompanyUser.Role.OWNER)

        assert result.success
        membership.refresh_from_db()
        assert membership.role == CompanyUser.Role.OWNER

    def test_remove_user_from_company(self, admin_actor, company, user, membership):
        result = remove_user_from_company(admin_actor, company, user)

        assert result.success
        assert not CompanyUser.objects.filter(pk=membership.pk).exists()
        entry = _last_entry()
        assert entry.action == AuditLog.Action.DESTROY
        assert entry.auditable_id == membership.pk

    def test_remove_non_member_fails(self, admin_actor, company, other_user):
        result = remove_user_from_company(admin_actor, company, other_user)
        assert not result.success

    def test_membership_commands_require_administrator(self, user_actor, company, other_user):
        with pytest.raises(PermissionDenied):
            add_user_to_company(user_actor, company, other_user)
