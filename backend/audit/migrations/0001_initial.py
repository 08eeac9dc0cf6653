"""
Initial migration for audit app.

Creates:
- audit_logs: append-only audit entries. auditable_type/auditable_id are
  NOT NULL in the table even though the model leaves them optional.
"""
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "auditable_type",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("User", "User"),
                            ("Company", "Company"),
                            ("CompanyUser", "Company user"),
                        ],
                        default=None,
                        max_length=255,
                    ),
                ),
                ("auditable_id", models.BigIntegerField(blank=True, default=None)),
                (
                    "action",
                    models.IntegerField(
                        choices=[(0, "Create"), (1, "Update"), (2, "Destroy"), (3, "Read")],
                        null=True,
                    ),
                ),
                ("resource_type", models.CharField(max_length=255, null=True)),
                ("resource_id", models.IntegerField(blank=True, null=True)),
                ("audit_changes", models.TextField(blank=True, null=True)),
                ("ip_address", models.CharField(blank=True, max_length=255, null=True)),
                ("user_agent", models.CharField(blank=True, max_length=255, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "company",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="audit_logs",
                        to="accounts.company",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="audit_logs",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Audit log entry",
                "verbose_name_plural": "Audit log",
                "db_table": "audit_logs",
                "indexes": [
                    models.Index(fields=["auditable_type", "auditable_id"], name="index_audit_logs_on_auditable"),
                ],
            },
        ),
    ]
