"""
Audit log model.

Entries are immutable once created: save() on an existing row, delete() on
an instance and QuerySet.update() all raise. Rows leave the table only as a
cascade of their user or company being destroyed.
"""
from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from accounts.models import ValidatedModel
from audit.auditable import AuditableRef, AuditableType


class AuditLogQuerySet(models.QuerySet):
    def recent(self):
        return self.order_by("-created_at", "-id")

    def for_user(self, user):
        return self.filter(user=user)

    def for_company(self, company):
        return self.filter(company=company)

    def update(self, **kwargs):
        raise ValueError("Audit log entries are immutable and cannot be updated.")


class AuditLog(ValidatedModel):
    """
    One action taken by a user, within a company, against an auditable row.

    user and company may be empty (system actions, actions outside any
    tenant). The auditable pair is optional here but NOT NULL in the table,
    so an entry without a target is refused by the database with an
    IntegrityError rather than by validation.
    """

    class Action(models.IntegerChoices):
        CREATE = 0, _("Create")
        UPDATE = 1, _("Update")
        DESTROY = 2, _("Destroy")
        READ = 3, _("Read")

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="audit_logs",
    )
    company = models.ForeignKey(
        "accounts.Company",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="audit_logs",
    )

    auditable_type = models.CharField(
        max_length=255,
        choices=AuditableType.choices,
        blank=True,
        default=None,
    )
    auditable_id = models.BigIntegerField(blank=True, default=None)

    action = models.IntegerField(choices=Action.choices, null=True)
    resource_type = models.CharField(max_length=255, null=True)
    resource_id = models.IntegerField(null=True, blank=True)

    # Opaque serialized diff; see audit.commands.serialize_changes
    audit_changes = models.TextField(null=True, blank=True)
    ip_address = models.CharField(max_length=255, null=True, blank=True)
    user_agent = models.CharField(max_length=255, null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = AuditLogQuerySet.as_manager()

    class Meta:
        db_table = "audit_logs"
        verbose_name = _("Audit log entry")
        verbose_name_plural = _("Audit log")
        indexes = [
            models.Index(fields=["auditable_type", "auditable_id"], name="index_audit_logs_on_auditable"),
        ]

    def __str__(self):
        return f"{self.get_action_display()} {self.resource_type}#{self.resource_id}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Audit log entries are immutable and cannot be modified.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError(
            "Audit log entries cannot be deleted. "
            "They are removed only with their user or company."
        )

    @property
    def auditable_ref(self) -> AuditableRef | None:
        if self.auditable_type is None or self.auditable_id is None:
            return None
        return AuditableRef(type=self.auditable_type, id=self.auditable_id)

    @property
    def auditable(self):
        ref = self.auditable_ref
        return ref.resolve() if ref else None

    @auditable.setter
    def auditable(self, target):
        if target is None:
            ref = None
        elif isinstance(target, AuditableRef):
            ref = target
        else:
            ref = AuditableRef.for_instance(target)
        self.auditable_type = ref.type if ref else None
        self.auditable_id = ref.id if ref else None
