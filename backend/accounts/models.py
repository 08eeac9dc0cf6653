"""
Users, companies (tenants) and the membership join between them.

Every model here validates itself on save(): an invalid row raises
django.core.exceptions.ValidationError carrying a {field: [messages]} dict
and is never written. Uniqueness is also backed by database indexes, which
remain the authority when two writers race past the validation check.
"""
from django.conf import settings
from django.contrib.auth.models import AbstractBaseUser, BaseUserManager
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class ValidatedModel(models.Model):
    """Runs full_clean() before every save."""

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


# =============================================================================
# User
# =============================================================================

class UserQuerySet(models.QuerySet):
    def active(self):
        return self.filter(deleted_at__isnull=True)

    def soft_deleted(self):
        return self.filter(deleted_at__isnull=False)


class UserManager(BaseUserManager.from_queryset(UserQuerySet)):
    use_in_migrations = True

    @classmethod
    def normalize_email(cls, email):
        return (email or "").strip().lower()

    def get_by_natural_key(self, username):
        return self.get(**{self.model.USERNAME_FIELD: self.normalize_email(username)})

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError("The given email must be set")
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        extra_fields.setdefault("role", self.model.Role.VIEWER)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password, **extra_fields):
        extra_fields.setdefault("role", self.model.Role.ADMINISTRATOR)

        if extra_fields.get("role") != self.model.Role.ADMINISTRATOR:
            raise ValueError("Superuser must have role=ADMINISTRATOR.")

        return self._create_user(email, password, **extra_fields)


class User(ValidatedModel, AbstractBaseUser):
    """
    Account holder.

    Users are never hard-deleted by the application: soft_delete() stamps
    deleted_at and the account stops authenticating. The row itself only
    goes away through accounts.commands.delete_user, which removes its
    memberships and audit entries in the same transaction.
    """

    class Role(models.IntegerChoices):
        VIEWER = 0, _("Viewer")
        DATA_CONTRIBUTOR = 1, _("Data contributor")
        APPROVER_REVIEWER = 2, _("Approver / reviewer")
        ADMINISTRATOR = 3, _("Administrator")

    email = models.EmailField(_("email address"), max_length=255, unique=True, default="", db_default="")

    # Credential columns are written by django.contrib.auth; the model only
    # keeps their shape.
    password = models.CharField(
        _("password"),
        max_length=128,
        db_column="encrypted_password",
        blank=True,
        default="",
        db_default="",
    )
    last_login = None
    reset_password_token = models.CharField(max_length=255, unique=True, null=True, blank=True)
    reset_password_sent_at = models.DateTimeField(null=True, blank=True)
    remember_created_at = models.DateTimeField(null=True, blank=True)

    first_name = models.CharField(max_length=255)
    last_name = models.CharField(max_length=255)
    role = models.IntegerField(choices=Role.choices, default=Role.VIEWER, db_default=Role.VIEWER)
    deleted_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = "email"
    EMAIL_FIELD = "email"
    REQUIRED_FIELDS = ["first_name", "last_name"]

    objects = UserManager()

    class Meta:
        db_table = "users"
        indexes = [
            models.Index(fields=["deleted_at"], name="index_users_on_deleted_at"),
            models.Index(fields=["role"], name="index_users_on_role"),
        ]

    def __str__(self):
        return self.email

    def clean(self):
        super().clean()
        self.email = type(self).objects.normalize_email(self.email)

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None

    def soft_delete(self):
        """Stamp deleted_at with the current time. Calling it again moves the stamp forward."""
        self.deleted_at = timezone.now()
        self.save(update_fields=["deleted_at", "updated_at"])

    @property
    def is_administrator(self) -> bool:
        return self.role == self.Role.ADMINISTRATOR

    # Django admin hooks: active administrators are staff with every permission.
    @property
    def is_staff(self) -> bool:
        return self.is_active and self.is_administrator

    def has_perm(self, perm, obj=None) -> bool:
        return self.is_staff

    def has_module_perms(self, app_label) -> bool:
        return self.is_staff

    def get_full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def get_short_name(self) -> str:
        return self.first_name


# =============================================================================
# Company
# =============================================================================

class CompanyQuerySet(models.QuerySet):
    def active(self):
        return self.filter(status=Company.Status.ACTIVE)


class Company(ValidatedModel):
    """A tenant organization."""

    class Size(models.TextChoices):
        SMALL = "small", _("Small")
        MEDIUM = "medium", _("Medium")
        LARGE = "large", _("Large")

    class Status(models.IntegerChoices):
        ACTIVE = 0, _("Active")
        INACTIVE = 1, _("Inactive")
        SUSPENDED = 2, _("Suspended")

    name = models.CharField(max_length=255)
    industry = models.CharField(max_length=255)
    size = models.CharField(max_length=255, choices=Size.choices)
    description = models.TextField(null=True, blank=True)
    status = models.IntegerField(
        choices=Status.choices,
        default=Status.ACTIVE,
        db_default=Status.ACTIVE,
        null=True,
    )
    fiscal_year_end = models.DateField(null=True, blank=True)

    users = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        through="CompanyUser",
        related_name="companies",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = CompanyQuerySet.as_manager()

    class Meta:
        db_table = "companies"
        verbose_name = _("Company")
        verbose_name_plural = _("Companies")
        indexes = [
            models.Index(fields=["name"], name="index_companies_on_name"),
            models.Index(fields=["industry"], name="index_companies_on_industry"),
            models.Index(fields=["status"], name="index_companies_on_status"),
        ]

    def __str__(self):
        return self.name

    @property
    def is_active(self) -> bool:
        return self.status == self.Status.ACTIVE


# =============================================================================
# CompanyUser (membership)
# =============================================================================

class CompanyUser(ValidatedModel):
    """
    Grants a user a role inside a company. A user holds at most one role per
    company; the unique index on (user_id, company_id) enforces it.
    """

    class Role(models.IntegerChoices):
        MEMBER = 0, _("Member")
        ADMIN = 1, _("Admin")
        OWNER = 2, _("Owner")

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="company_users",
    )
    company = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        related_name="company_users",
    )
    role = models.IntegerField(
        choices=Role.choices,
        default=Role.MEMBER,
        db_default=Role.MEMBER,
        null=True,
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "company_users"
        verbose_name = _("Company user")
        verbose_name_plural = _("Company users")
        constraints = [
            models.UniqueConstraint(
                fields=["user", "company"],
                name="index_company_users_on_user_id_and_company_id",
            ),
        ]

    def __str__(self):
        return f"{self.user_id}@{self.company_id} ({self.get_role_display()})"
