# accounts/commands.py
"""
Command layer for users, companies and memberships.

ALL mutations of accounts data go through these commands. Each command:
1. Checks the actor is allowed to act
2. Validates and writes inside one transaction
3. Appends an AuditLog entry in that same transaction

Validation failures do not raise; they come back as a failed CommandResult
whose ``errors`` maps field names to lists of messages. Authorization
failures raise django.core.exceptions.PermissionDenied.
"""

import dataclasses
import logging

from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import NON_FIELD_ERRORS, ValidationError
from django.db import IntegrityError, transaction

from accounts.authz import (
    ActorContext,
    require_administrator,
    require_self_or_administrator,
)
from accounts.models import Company, CompanyUser
from audit.auditable import AuditableRef
from audit.commands import record_audit
from audit.models import AuditLog

logger = logging.getLogger(__name__)

User = get_user_model()

USER_PROFILE_FIELDS = ("email", "first_name", "last_name")
COMPANY_FIELDS = ("name", "industry", "size", "description", "status", "fiscal_year_end")

DUPLICATE_EMAIL = "User with this email address already exists."
DUPLICATE_MEMBERSHIP = "User is already a member of this company."


class CommandResult:
    def __init__(self, success: bool, data=None, error: str = None, errors: dict = None, changes: dict = None):
        self.success = success
        self.data = data
        self.error = error
        self.errors = errors or {}
        self.changes = changes or {}

    @classmethod
    def ok(cls, data=None, changes=None):
        return cls(success=True, data=data, changes=changes)

    @classmethod
    def fail(cls, error: str, errors: dict = None):
        return cls(success=False, error=error, errors=errors)

    @classmethod
    def invalid(cls, exc: ValidationError):
        return cls.fail("Validation failed.", errors=_error_dict(exc))


def _error_dict(exc: ValidationError) -> dict:
    if hasattr(exc, "error_dict"):
        return exc.message_dict
    return {NON_FIELD_ERRORS: exc.messages}


def _actor_id(actor: ActorContext):
    return getattr(actor.user, "pk", None)


def _save(instance, unique_errors: dict = None, **save_kwargs):
    """
    Validate and save ``instance`` inside a savepoint.

    Returns None on success or a failed CommandResult. An IntegrityError is
    turned into ``unique_errors`` when given (a concurrent writer won the
    race past validation); otherwise it propagates.
    """
    try:
        with transaction.atomic():
            instance.save(**save_kwargs)
    except ValidationError as exc:
        return CommandResult.invalid(exc)
    except IntegrityError:
        if unique_errors is None:
            raise
        logger.warning(
            "Unique index rejected write",
            extra={"model": type(instance).__name__, "fields": sorted(unique_errors)},
        )
        return CommandResult.fail("Validation failed.", errors=unique_errors)
    return None


def _apply_changes(instance, allowed, changes: dict) -> dict:
    """Assign ``changes`` onto ``instance``; return {field: [old, new]} for what differs."""
    unknown = set(changes) - set(allowed)
    if unknown:
        raise ValueError(f"Cannot change {', '.join(sorted(unknown))} on {type(instance).__name__}")

    diff = {}
    for field, value in changes.items():
        old = getattr(instance, field)
        if old != value:
            setattr(instance, field, value)
            diff[field] = [old, value]
    return diff


def _save_changes(instance, diff: dict, unique_errors: dict = None):
    failure = _save(instance, unique_errors=unique_errors)
    if failure:
        # Drop the rejected values so the caller keeps the stored state.
        instance.refresh_from_db(fields=list(diff))
    return failure


def _snapshot(instance, fields) -> dict:
    return {field: getattr(instance, field) for field in fields}


# =============================================================================
# Users
# =============================================================================

@transaction.atomic
def register_user(
    actor: ActorContext,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
) -> CommandResult:
    """
    Register a new account with the viewer role.

    The password is checked against AUTH_PASSWORD_VALIDATORS and hashed by
    django.contrib.auth; the audit entry is attributed to the new user.

    Returns:
        CommandResult with the user
    """
    user = User(
        email=User.objects.normalize_email(email),
        first_name=first_name,
        last_name=last_name,
        role=User.Role.VIEWER,
    )

    errors = {}
    try:
        user.full_clean(exclude=["password"])
    except ValidationError as exc:
        errors.update(_error_dict(exc))
    try:
        validate_password(password, user=user)
    except ValidationError as exc:
        errors["password"] = exc.messages
    if errors:
        return CommandResult.fail("Validation failed.", errors=errors)

    user.set_password(password)
    failure = _save(user, unique_errors={"email": [DUPLICATE_EMAIL]})
    if failure:
        return failure

    record_audit(
        dataclasses.replace(actor, user=user),
        AuditLog.Action.CREATE,
        user,
        changes=_snapshot(user, USER_PROFILE_FIELDS + ("role",)),
    )

    logger.info("User registered", extra={"user_id": user.pk})
    return CommandResult.ok(user)


@transaction.atomic
def update_user(actor: ActorContext, user, **changes) -> CommandResult:
    """
    Update profile fields (email, first_name, last_name).

    Users may edit themselves; administrators may edit anyone.
    """
    require_self_or_administrator(actor, user)

    if "email" in changes:
        changes["email"] = User.objects.normalize_email(changes["email"])
    diff = _apply_changes(user, USER_PROFILE_FIELDS, changes)
    if not diff:
        return CommandResult.ok(user)

    failure = _save_changes(user, diff, unique_errors={"email": [DUPLICATE_EMAIL]})
    if failure:
        return failure

    record_audit(actor, AuditLog.Action.UPDATE, user, changes=diff)

    logger.info("User updated", extra={"user_id": user.pk, "actor_id": _actor_id(actor), "fields": sorted(diff)})
    return CommandResult.ok(user, changes=diff)


@transaction.atomic
def change_user_role(actor: ActorContext, user, role: int) -> CommandResult:
    """Assign one of User.Role. Administrators only."""
    require_administrator(actor)

    diff = _apply_changes(user, ("role",), {"role": role})
    if not diff:
        return CommandResult.ok(user)

    failure = _save_changes(user, diff)
    if failure:
        return failure

    record_audit(actor, AuditLog.Action.UPDATE, user, changes=diff)

    logger.info("User role changed", extra={"user_id": user.pk, "actor_id": _actor_id(actor), "role": user.role})
    return CommandResult.ok(user, changes=diff)


@transaction.atomic
def soft_delete_user(actor: ActorContext, user) -> CommandResult:
    """
    Mark the account deleted. The row and its memberships stay; the user
    can no longer authenticate. Repeating it moves deleted_at forward.
    """
    require_self_or_administrator(actor, user)

    previous = user.deleted_at
    try:
        with transaction.atomic():
            user.soft_delete()
    except ValidationError as exc:
        user.deleted_at = previous
        return CommandResult.invalid(exc)

    diff = {"deleted_at": [previous, user.deleted_at]}
    record_audit(actor, AuditLog.Action.UPDATE, user, changes=diff)

    logger.info("User soft-deleted", extra={"user_id": user.pk, "actor_id": _actor_id(actor)})
    return CommandResult.ok(user, changes=diff)


@transaction.atomic
def delete_user(actor: ActorContext, user) -> CommandResult:
    """
    Remove the account row for good.

    Memberships go first, then the user's audit entries, then the user,
    all in one transaction. Administrators only, and not on themselves.

    Returns:
        CommandResult with the number of rows removed per table
    """
    require_administrator(actor)
    if actor.user.pk == user.pk:
        return CommandResult.fail("Administrators cannot delete their own account.")

    ref = AuditableRef.for_instance(user)
    snapshot = _snapshot(user, USER_PROFILE_FIELDS + ("role",))

    company_users, _ = CompanyUser.objects.filter(user=user).delete()
    audit_logs, _ = AuditLog.objects.filter(user=user).delete()
    user.delete()

    record_audit(actor, AuditLog.Action.DESTROY, ref, changes=snapshot)

    removed = {"company_users": company_users, "audit_logs": audit_logs}
    logger.info("User deleted", extra={"user_id": ref.id, "actor_id": _actor_id(actor), **removed})
    return CommandResult.ok(removed)


# =============================================================================
# Companies
# =============================================================================

@transaction.atomic
def create_company(
    actor: ActorContext,
    name: str,
    industry: str,
    size: str,
    description: str = None,
    status: int = Company.Status.ACTIVE,
    fiscal_year_end=None,
) -> CommandResult:
    """
    Create a company (tenant). Administrators only.

    Returns:
        CommandResult with the company
    """
    require_administrator(actor)

    company = Company(
        name=name,
        industry=industry,
        size=size,
        description=description,
        status=status,
        fiscal_year_end=fiscal_year_end,
    )
    failure = _save(company)
    if failure:
        return failure

    record_audit(
        actor,
        AuditLog.Action.CREATE,
        company,
        company=company,
        changes=_snapshot(company, COMPANY_FIELDS),
    )

    logger.info("Company created", extra={"company_id": company.pk, "actor_id": _actor_id(actor)})
    return CommandResult.ok(company)


@transaction.atomic
def update_company(actor: ActorContext, company, **changes) -> CommandResult:
    """
    Update company attributes, status included. Any status may move to any
    other. Administrators only.
    """
    require_administrator(actor)

    diff = _apply_changes(company, COMPANY_FIELDS, changes)
    if not diff:
        return CommandResult.ok(company)

    failure = _save_changes(company, diff)
    if failure:
        return failure

    record_audit(actor, AuditLog.Action.UPDATE, company, company=company, changes=diff)

    logger.info("Company updated", extra={"company_id": company.pk, "actor_id": _actor_id(actor), "fields": sorted(diff)})
    return CommandResult.ok(company, changes=diff)


@transaction.atomic
def delete_company(actor: ActorContext, company) -> CommandResult:
    """
    Destroy a company with its memberships and audit entries.

    Deletes run in order (memberships, audit entries, company) inside one
    transaction. The destroy entry itself is written without a company so
    it outlives the tenant.

    Returns:
        CommandResult with the number of rows removed per table
    """
    require_administrator(actor)

    ref = AuditableRef.for_instance(company)
    snapshot = _snapshot(company, COMPANY_FIELDS)

    company_users, _ = CompanyUser.objects.filter(company=company).delete()
    audit_logs, _ = AuditLog.objects.filter(company=company).delete()
    company.delete()

    record_audit(actor, AuditLog.Action.DESTROY, ref, changes=snapshot)

    removed = {"company_users": company_users, "audit_logs": audit_logs}
    logger.info("Company deleted", extra={"company_id": ref.id, "actor_id": _actor_id(actor), **removed})
    return CommandResult.ok(removed)


# =============================================================================
# Memberships
# =============================================================================

@transaction.atomic
def add_user_to_company(
    actor: ActorContext,
    company,
    user,
    role: int = CompanyUser.Role.MEMBER,
) -> CommandResult:
    """
    Grant ``user`` a role in ``company``. Administrators only.

    Returns:
        CommandResult with the membership
    """
    require_administrator(actor)

    membership = CompanyUser(company=company, user=user, role=role)
    failure = _save(membership, unique_errors={NON_FIELD_ERRORS: [DUPLICATE_MEMBERSHIP]})
    if failure:
        return failure

    record_audit(
        actor,
        AuditLog.Action.CREATE,
        membership,
        company=company,
        changes=_snapshot(membership, ("user_id", "company_id", "role")),
    )

    logger.info(
        "User added to company",
        extra={"user_id": user.pk, "company_id": company.pk, "role": membership.role},
    )
    return CommandResult.ok(membership)


@transaction.atomic
def change_member_role(actor: ActorContext, membership, role: int) -> CommandResult:
    """Change a membership's role. Administrators only."""
    require_administrator(actor)

    diff = _apply_changes(membership, ("role",), {"role": role})
    if not diff:
        return CommandResult.ok(membership)

    failure = _save_changes(membership, diff)
    if failure:
        return failure

    record_audit(actor, AuditLog.Action.UPDATE, membership, company=membership.company, changes=diff)

    logger.info(
        "Membership role changed",
        extra={"membership_id": membership.pk, "company_id": membership.company_id, "role": membership.role},
    )
    return CommandResult.ok(membership, changes=diff)


@transaction.atomic
def remove_user_from_company(actor: ActorContext, company, user) -> CommandResult:
    """Delete the membership of ``user`` in ``company``. Administrators only."""
    require_administrator(actor)

    membership = CompanyUser.objects.filter(company=company, user=user).first()
    if membership is None:
        return CommandResult.fail("User is not a member of this company.")

    ref = AuditableRef.for_instance(membership)
    snapshot = _snapshot(membership, ("user_id", "company_id", "role"))
    membership.delete()

    record_audit(actor, AuditLog.Action.DESTROY, ref, company=company, changes=snapshot)

    logger.info("User removed from company", extra={"user_id": user.pk, "company_id": company.pk})
    return CommandResult.ok(ref)
