"""
Django Admin registration for accounts models.

Admin writes go through accounts.commands like the API does, so every
change made here leaves an AuditLog entry and deletions run the ordered
cascades.
"""
from django.contrib import admin, messages

from accounts.authz import resolve_actor
from accounts.commands import (
    COMPANY_FIELDS,
    USER_PROFILE_FIELDS,
    add_user_to_company,
    change_member_role,
    change_user_role,
    create_company,
    delete_company,
    delete_user,
    remove_user_from_company,
    soft_delete_user,
    update_company,
    update_user,
)
from accounts.models import Company, CompanyUser, User
from audit.models import AuditLog


def _adopt(obj, saved):
    """Copy the stored state of ``saved`` onto the admin's in-memory ``obj``."""
    for field in obj._meta.concrete_fields:
        setattr(obj, field.attname, getattr(saved, field.attname))
    obj._state.adding = False
    obj._state.db = saved._state.db


class CommandAdminMixin:
    """Reports failed CommandResults and lets deletions cascade over audit entries."""

    def report(self, request, *results):
        for result in results:
            if not result.success:
                detail = "; ".join(
                    f"{field}: {' '.join(errors)}" for field, errors in result.errors.items()
                )
                message = f"{result.error} {detail}".strip()
                self.message_user(request, message, messages.ERROR)

    def get_deleted_objects(self, objs, request):
        deleted_objects, model_count, perms_needed, protected = super().get_deleted_objects(objs, request)
        # Audit entries are read-only in the admin but removed by the delete commands.
        audit_name = str(AuditLog._meta.verbose_name)
        perms_needed = {name for name in perms_needed if str(name) != audit_name}
        return deleted_objects, model_count, perms_needed, protected


@admin.register(User)
class UserAdmin(CommandAdminMixin, admin.ModelAdmin):
    """Admin interface for User. Accounts are created through registration."""

    list_display = [
        "email",
        "first_name",
        "last_name",
        "role",
        "deleted_at",
        "created_at",
    ]
    list_filter = ["role"]
    search_fields = ["email", "first_name", "last_name"]
    ordering = ["email"]
    readonly_fields = [
        "password",
        "reset_password_token",
        "reset_password_sent_at",
        "remember_created_at",
        "deleted_at",
        "created_at",
        "updated_at",
    ]
    actions = ["soft_delete_selected"]

    fieldsets = (
        (None, {
            "fields": ("email", "first_name", "last_name", "role"),
        }),
        ("Credentials", {
            "fields": (
                "password",
                "reset_password_token",
                "reset_password_sent_at",
                "remember_created_at",
            ),
            "classes": ("collapse",),
        }),
        ("Timestamps", {
            "fields": ("deleted_at", "created_at", "updated_at"),
            "classes": ("collapse",),
        }),
    )

    def has_add_permission(self, request):
        return False

    def save_model(self, request, obj, form, change):
        actor = resolve_actor(request)
        stored = User.objects.get(pk=obj.pk)
        results = []

        if "role" in form.changed_data:
            results.append(change_user_role(actor, stored, obj.role))
        profile = {field: getattr(obj, field) for field in USER_PROFILE_FIELDS if field in form.changed_data}
        if profile:
            results.append(update_user(actor, stored, **profile))

        self.report(request, *results)
        _adopt(obj, stored)

    def delete_model(self, request, obj):
        self.report(request, delete_user(resolve_actor(request), obj))

    def delete_queryset(self, request, queryset):
        actor = resolve_actor(request)
        for user in queryset:
            self.report(request, delete_user(actor, user))

    @admin.action(description="Soft delete selected users")
    def soft_delete_selected(self, request, queryset):
        actor = resolve_actor(request)
        count = 0
        for user in queryset.filter(deleted_at__isnull=True):
            result = soft_delete_user(actor, user)
            if result.success:
                count += 1
        self.message_user(request, f"{count} user(s) soft-deleted.", messages.SUCCESS)


class CompanyUserInline(admin.TabularInline):
    model = CompanyUser
    extra = 0
    raw_id_fields = ["user"]
    readonly_fields = ["created_at", "updated_at"]


@admin.register(Company)
class CompanyAdmin(CommandAdminMixin, admin.ModelAdmin):
    """Admin interface for Company with its memberships inline."""

    list_display = [
        "name",
        "industry",
        "size",
        "status",
        "fiscal_year_end",
        "created_at",
    ]
    list_filter = ["status", "size"]
    search_fields = ["name", "industry"]
    readonly_fields = ["created_at", "updated_at"]
    inlines = [CompanyUserInline]

    def save_model(self, request, obj, form, change):
        actor = resolve_actor(request)

        if not change:
            result = create_company(actor, **{field: getattr(obj, field) for field in COMPANY_FIELDS})
            self.report(request, result)
            if result.success:
                _adopt(obj, result.data)
            return

        stored = Company.objects.get(pk=obj.pk)
        changes = {field: getattr(obj, field) for field in COMPANY_FIELDS if field in form.changed_data}
        if changes:
            self.report(request, update_company(actor, stored, **changes))
        _adopt(obj, stored)

    def save_formset(self, request, form, formset, change):
        company = form.instance
        if company.pk is None:
            return

        actor = resolve_actor(request)
        # commit=False fills new_objects, changed_objects and deleted_objects
        formset.save(commit=False)
        results = []

        for membership in formset.deleted_objects:
            stored = CompanyUser.objects.select_related("user").filter(pk=membership.pk).first()
            if stored is not None:
                results.append(remove_user_from_company(actor, company, stored.user))

        for membership, changed_fields in formset.changed_objects:
            stored = CompanyUser.objects.select_related("user").get(pk=membership.pk)
            if "user" in changed_fields:
                results.append(remove_user_from_company(actor, company, stored.user))
                results.append(add_user_to_company(actor, company, membership.user, membership.role))
            elif "role" in changed_fields:
                results.append(change_member_role(actor, stored, membership.role))

        for membership in formset.new_objects:
            results.append(add_user_to_company(actor, company, membership.user, membership.role))

        self.report(request, *results)

    def delete_model(self, request, obj):
        self.report(request, delete_company(resolve_actor(request), obj))

    def delete_queryset(self, request, queryset):
        actor = resolve_actor(request)
        for company in queryset:
            self.report(request, delete_company(actor, company))
