"""
Initial migration for accounts app.

Creates:
- users: account holders (credential columns owned by django.contrib.auth)
- companies: tenants
- company_users: user <-> company membership with a unique (user, company) index
"""
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion

import accounts.models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="User",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "email",
                    models.EmailField(
                        db_default="",
                        default="",
                        max_length=255,
                        unique=True,
                        verbose_name="email address",
                    ),
                ),
                (
                    "password",
                    models.CharField(
                        blank=True,
                        db_column="encrypted_password",
                        db_default="",
                        default="",
                        max_length=128,
                        verbose_name="password",
                    ),
                ),
                (
                    "reset_password_token",
                    models.CharField(blank=True, max_length=255, null=True, unique=True),
                ),
                ("reset_password_sent_at", models.DateTimeField(blank=True, null=True)),
                ("remember_created_at", models.DateTimeField(blank=True, null=True)),
                ("first_name", models.CharField(max_length=255)),
                ("last_name", models.CharField(max_length=255)),
                (
                    "role",
                    models.IntegerField(
                        choices=[
                            (0, "Viewer"),
                            (1, "Data contributor"),
                            (2, "Approver / reviewer"),
                            (3, "Administrator"),
                        ],
                        db_default=0,
                        default=0,
                    ),
                ),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "users",
                "indexes": [
                    models.Index(fields=["deleted_at"], name="index_users_on_deleted_at"),
                    models.Index(fields=["role"], name="index_users_on_role"),
                ],
            },
            managers=[
                ("objects", accounts.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name="Company",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("industry", models.CharField(max_length=255)),
                (
                    "size",
                    models.CharField(
                        choices=[("small", "Small"), ("medium", "Medium"), ("large", "Large")],
                        max_length=255,
                    ),
                ),
                ("description", models.TextField(blank=True, null=True)),
                (
                    "status",
                    models.IntegerField(
                        choices=[(0, "Active"), (1, "Inactive"), (2, "Suspended")],
                        db_default=0,
                        default=0,
                        null=True,
                    ),
                ),
                ("fiscal_year_end", models.DateField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Company",
                "verbose_name_plural": "Companies",
                "db_table": "companies",
                "indexes": [
                    models.Index(fields=["name"], name="index_companies_on_name"),
                    models.Index(fields=["industry"], name="index_companies_on_industry"),
                    models.Index(fields=["status"], name="index_companies_on_status"),
                ],
            },
        ),
        migrations.CreateModel(
            name="CompanyUser",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "role",
                    models.IntegerField(
                        choices=[(0, "Member"), (1, "Admin"), (2, "Owner")],
                        db_default=0,
                        default=0,
                        null=True,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "company",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="company_users",
                        to="accounts.company",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="company_users",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Company user",
                "verbose_name_plural": "Company users",
                "db_table": "company_users",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("user", "company"),
                        name="index_company_users_on_user_id_and_company_id",
                    ),
                ],
            },
        ),
        migrations.AddField(
            model_name="company",
            name="users",
            field=models.ManyToManyField(
                related_name="companies",
                through="accounts.CompanyUser",
                to=settings.AUTH_USER_MODEL,
            ),
        ),
    ]
