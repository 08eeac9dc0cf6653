"""
Polymorphic target of an audit entry.

An AuditLog points at its target through two plain columns,
auditable_type and auditable_id. AuditableRef is that pair as a value; the
set of tags is closed and resolving a reference switches on the tag.
"""
from dataclasses import dataclass

from django.db import models


class AuditableType(models.TextChoices):
    USER = "User", "User"
    COMPANY = "Company", "Company"
    COMPANY_USER = "CompanyUser", "Company user"


class UnknownAuditableType(ValueError):
    pass


@dataclass(frozen=True)
class AuditableRef:
    type: str
    id: int

    @classmethod
    def for_instance(cls, instance) -> "AuditableRef":
        """Build the reference for a saved User, Company or CompanyUser."""
        from accounts.models import Company, CompanyUser, User

        if isinstance(instance, User):
            tag = AuditableType.USER
        elif isinstance(instance, Company):
            tag = AuditableType.COMPANY
        elif isinstance(instance, CompanyUser):
            tag = AuditableType.COMPANY_USER
        else:
            raise UnknownAuditableType(f"{type(instance).__name__} is not auditable")

        if instance.pk is None:
            raise ValueError(f"Cannot audit an unsaved {type(instance).__name__}")
        return cls(type=tag.value, id=instance.pk)

    def model(self):
        from accounts.models import Company, CompanyUser, User

        if self.type == AuditableType.USER:
            return User
        if self.type == AuditableType.COMPANY:
            return Company
        if self.type == AuditableType.COMPANY_USER:
            return CompanyUser
        raise UnknownAuditableType(f"Unknown auditable type {self.type!r}")

    def resolve(self):
        """Load the target row, or None if it no longer exists."""
        return self.model()._default_manager.filter(pk=self.id).first()
