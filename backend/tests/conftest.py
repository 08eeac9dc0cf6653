# tests/conftest.py
"""
Pytest fixtures for tenantbase tests.

- Users: an administrator, a viewer and a second viewer
- Company: one active company with the viewer as member
- ActorContext fixtures for calling commands directly
- APIClient fixtures for the HTTP layer
"""

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from rest_framework.test import APIClient

from accounts.authz import ActorContext
from accounts.models import Company, CompanyUser

User = get_user_model()

PASSWORD = "Correct-Horse-42"


@pytest.fixture(autouse=True)
def _fast_password_hashing(settings):
    settings.PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]


@pytest.fixture(autouse=True)
def _clear_throttle_cache():
    """Throttle counters live in the cache; start every test with none."""
    cache.clear()
    yield
    cache.clear()


# =============================================================================
# Users
# =============================================================================

@pytest.fixture
def administrator(db):
    return User.objects.create_user(
        email="admin@example.com",
        password=PASSWORD,
        first_name="Ada",
        last_name="Admin",
        role=User.Role.ADMINISTRATOR,
    )


@pytest.fixture
def user(db):
    """A viewer."""
    return User.objects.create_user(
        email="viewer@example.com",
        password=PASSWORD,
        first_name="Vic",
        last_name="Viewer",
    )


@pytest.fixture
def other_user(db):
    return User.objects.create_user(
        email="other@example.com",
        password=PASSWORD,
        first_name="Olga",
        last_name="Other",
    )


# =============================================================================
# Companies
# =============================================================================

@pytest.fixture
def company(db):
    return Company.objects.create(
        name="Acme Manufacturing",
        industry="Manufacturing",
        size=Company.Size.MEDIUM,
    )


@pytest.fixture
def second_company(db):
    return Company.objects.create(
        name="Globex",
        industry="Energy",
        size=Company.Size.LARGE,
    )


@pytest.fixture
def membership(db, company, user):
    return CompanyUser.objects.create(company=company, user=user)


# =============================================================================
# Actor Contexts
# =============================================================================

@pytest.fixture
def admin_actor(administrator):
    return ActorContext(user=administrator, ip_address="203.0.113.7", user_agent="pytest")


@pytest.fixture
def user_actor(user):
    return ActorContext(user=user, ip_address="198.51.100.20", user_agent="pytest")


# =============================================================================
# API Clients
# =============================================================================

@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def admin_client(administrator):
    client = APIClient()
    client.force_authenticate(user=administrator)
    return client


@pytest.fixture
def user_client(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client
