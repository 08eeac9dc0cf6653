# accounts/urls.py
"""
URL configuration for accounts/auth API.

Endpoints:
- /auth/ - Authentication (register, login, refresh, logout, me)
- /users/ - User management
- /companies/ - Companies and their members
"""

from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView

from .views import (
    # Auth
    RegisterView,
    LoginView,
    LogoutView,
    MeView,
    # Users
    UserListView,
    UserDetailView,
    # Companies
    CompanyListCreateView,
    CompanyDetailView,
    # Memberships
    CompanyMemberListView,
    CompanyMemberDetailView,
)

app_name = "accounts"

urlpatterns = [
    # ==========================================================================
    # Authentication
    # ==========================================================================
    path("auth/register/", RegisterView.as_view(), name="register"),
    path("auth/login/", LoginView.as_view(), name="login"),
    path("auth/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
    path("auth/logout/", LogoutView.as_view(), name="logout"),
    path("auth/me/", MeView.as_view(), name="me"),

    # ==========================================================================
    # Users
    # ==========================================================================
    path("users/", UserListView.as_view(), name="user-list"),
    path("users/<int:pk>/", UserDetailView.as_view(), name="user-detail"),

    # ==========================================================================
    # Companies
    # ==========================================================================
    path("companies/", CompanyListCreateView.as_view(), name="company-list"),
    path("companies/<int:pk>/", CompanyDetailView.as_view(), name="company-detail"),

    # ==========================================================================
    # Memberships
    # ==========================================================================
    path("companies/<int:pk>/members/", CompanyMemberListView.as_view(), name="company-member-list"),
    path(
        "companies/<int:pk>/members/<int:user_id>/",
        CompanyMemberDetailView.as_view(),
        name="company-member-detail",
    ),
]
