# accounts/views.py
"""
Thin views that delegate to the commands layer.

Views handle: HTTP parsing, authentication, response formatting.
Commands handle: authorization, validation, audit entries.

All mutations (create, update, delete) MUST go through commands so that
every change leaves an AuditLog entry. Views never call .save() on models.
"""

import logging

from django.db import transaction
from django.http import Http404
from rest_framework import generics, permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from .authz import (
    anonymous_actor,
    require_administrator,
    resolve_actor,
)
from .commands import (
    # User commands
    register_user,
    update_user,
    change_user_role,
    soft_delete_user,
    # Company commands
    create_company,
    update_company,
    delete_company,
    # Membership commands
    add_user_to_company,
    change_member_role,
    remove_user_from_company,
)
from .models import Company, CompanyUser, User
from .serializers import (
    CompanyInputSerializer,
    CompanySerializer,
    CompanyUserSerializer,
    EmailTokenObtainPairSerializer,
    MembershipInputSerializer,
    MembershipRoleSerializer,
    MembershipSummarySerializer,
    RegistrationSerializer,
    UserSerializer,
    UserUpdateSerializer,
)
from .throttles import LoginThrottle, RegistrationThrottle

logger = logging.getLogger(__name__)


def _failure(result):
    return Response(
        {"detail": result.error, "errors": result.errors},
        status=status.HTTP_400_BAD_REQUEST,
    )


def _wants_active(request) -> bool:
    return request.query_params.get("active", "").lower() in ("1", "true", "yes")


def _get_or_404(queryset, **lookup):
    obj = queryset.filter(**lookup).first()
    if obj is None:
        raise Http404
    return obj


def _get_user_or_404(actor, pk):
    """Self or administrator, checked before the lookup so unknown ids answer 403 too."""
    if actor.user.pk != pk:
        require_administrator(actor)
    return _get_or_404(User.objects.all(), pk=pk)


# =============================================================================
# Auth Views
# =============================================================================

class RegisterView(APIView):
    """
    POST /api/auth/register/ -> create a viewer account and return tokens
    """
    permission_classes = [permissions.AllowAny]
    throttle_classes = [RegistrationThrottle]

    def post(self, request):
        input_serializer = RegistrationSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        result = register_user(anonymous_actor(request), **input_serializer.validated_data)
        if not result.success:
            return _failure(result)

        refresh = RefreshToken.for_user(result.data)
        return Response(
            {
                "user": UserSerializer(result.data).data,
                "access": str(refresh.access_token),
                "refresh": str(refresh),
            },
            status=status.HTTP_201_CREATED,
        )


class LoginView(generics.GenericAPIView):
    """
    POST /api/auth/login/ -> {"access", "refresh"} for email + password
    """
    serializer_class = EmailTokenObtainPairSerializer
    permission_classes = [permissions.AllowAny]
    throttle_classes = [LoginThrottle]

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return Response(serializer.validated_data, status=status.HTTP_200_OK)


class LogoutView(APIView):
    """
    POST /api/auth/logout/ -> blacklist the given refresh token
    """
    permission_classes = [permissions.AllowAny]

    def post(self, request, *args, **kwargs):
        refresh_token = request.data.get("refresh")
        if not refresh_token:
            return Response({"detail": "Refresh token required"}, status=status.HTTP_400_BAD_REQUEST)
        try:
            RefreshToken(refresh_token).blacklist()
        except TokenError:
            return Response({"detail": "Invalid token"}, status=status.HTTP_400_BAD_REQUEST)
        logger.info("Refresh token blacklisted", extra={"user_id": getattr(request.user, "pk", None)})
        return Response(status=status.HTTP_204_NO_CONTENT)


class MeView(APIView):
    """
    GET /api/auth/me/ -> current user with their company memberships
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        memberships = actor.user.company_users.select_related("company").order_by("company__name")
        data = UserSerializer(actor.user).data
        data["memberships"] = MembershipSummarySerializer(memberships, many=True).data
        return Response(data)


# =============================================================================
# User Views
# =============================================================================

class UserListView(APIView):
    """
    GET /api/users/ -> all users, ?active=true for non-deleted only (administrators)
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require_administrator(actor)

        users = User.objects.active() if _wants_active(request) else User.objects.all()
        serializer = UserSerializer(users.order_by("id"), many=True)
        return Response(serializer.data)


class UserDetailView(APIView):
    """
    GET /api/users/<pk>/ -> retrieve user
    PATCH /api/users/<pk>/ -> update profile; "role" requires an administrator
    DELETE /api/users/<pk>/ -> soft delete
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, pk):
        actor = resolve_actor(request)
        user = _get_user_or_404(actor, pk)
        return Response(UserSerializer(user).data)

    def patch(self, request, pk):
        actor = resolve_actor(request)
        user = _get_user_or_404(actor, pk)

        input_serializer = UserUpdateSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)
        changes = dict(input_serializer.validated_data)
        role = changes.pop("role", None)

        failed = None
        with transaction.atomic():
            if role is not None:
                result = change_user_role(actor, user, role)
                if not result.success:
                    failed = result
            if changes and failed is None:
                result = update_user(actor, user, **changes)
                if not result.success:
                    failed = result
            if failed is not None:
                transaction.set_rollback(True)

        if failed is not None:
            user.refresh_from_db()
            return _failure(failed)
        return Response(UserSerializer(user).data)

    def delete(self, request, pk):
        actor = resolve_actor(request)
        user = _get_user_or_404(actor, pk)

        result = soft_delete_user(actor, user)
        if not result.success:
            return _failure(result)
        return Response(status=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Company Views
# =============================================================================

def _visible_companies(actor):
    """Administrators see every company; other users see the ones they belong to."""
    if actor.is_administrator:
        return Company.objects.all()
    return Company.objects.filter(company_users__user=actor.user)


class CompanyListCreateView(APIView):
    """
    GET /api/companies/ -> visible companies, ?active=true for status active only
    POST /api/companies/ -> create company (administrators)
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        companies = _visible_companies(actor)
        if _wants_active(request):
            companies = companies.active()
        serializer = CompanySerializer(companies.order_by("name", "id"), many=True)
        return Response(serializer.data)

    def post(self, request):
        actor = resolve_actor(request)
        require_administrator(actor)

        input_serializer = CompanyInputSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        result = create_company(actor, **input_serializer.validated_data)
        if not result.success:
            return _failure(result)
        return Response(CompanySerializer(result.data).data, status=status.HTTP_201_CREATED)


class CompanyDetailView(APIView):
    """
    GET /api/companies/<pk>/ -> retrieve company (members and administrators)
    PATCH /api/companies/<pk>/ -> update company (administrators)
    DELETE /api/companies/<pk>/ -> delete company and its memberships (administrators)
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, pk):
        actor = resolve_actor(request)
        company = _get_or_404(_visible_companies(actor), pk=pk)
        return Response(CompanySerializer(company).data)

    def patch(self, request, pk):
        actor = resolve_actor(request)
        require_administrator(actor)
        company = _get_or_404(Company.objects.all(), pk=pk)

        input_serializer = CompanyInputSerializer(data=request.data, partial=True)
        input_serializer.is_valid(raise_exception=True)

        result = update_company(actor, company, **input_serializer.validated_data)
        if not result.success:
            return _failure(result)
        return Response(CompanySerializer(result.data).data)

    def delete(self, request, pk):
        actor = resolve_actor(request)
        require_administrator(actor)
        company = _get_or_404(Company.objects.all(), pk=pk)

        result = delete_company(actor, company)
        if not result.success:
            return _failure(result)
        return Response(status=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Membership Views
# =============================================================================

class CompanyMemberListView(APIView):
    """
    GET /api/companies/<pk>/members/ -> memberships of the company
    POST /api/companies/<pk>/members/ -> add a user (administrators)
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, pk):
        actor = resolve_actor(request)
        company = _get_or_404(_visible_companies(actor), pk=pk)
        memberships = company.company_users.select_related("user").order_by("id")
        return Response(CompanyUserSerializer(memberships, many=True).data)

    def post(self, request, pk):
        actor = resolve_actor(request)
        require_administrator(actor)
        company = _get_or_404(Company.objects.all(), pk=pk)

        input_serializer = MembershipInputSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        result = add_user_to_company(actor, company, **input_serializer.validated_data)
        if not result.success:
            return _failure(result)
        return Response(CompanyUserSerializer(result.data).data, status=status.HTTP_201_CREATED)


class CompanyMemberDetailView(APIView):
    """
    PATCH /api/companies/<pk>/members/<user_id>/ -> change role (administrators)
    DELETE /api/companies/<pk>/members/<user_id>/ -> remove user (administrators)
    """
    permission_classes = [permissions.IsAuthenticated]

    def patch(self, request, pk, user_id):
        actor = resolve_actor(request)
        require_administrator(actor)
        membership = _get_or_404(
            CompanyUser.objects.select_related("user", "company"),
            company_id=pk,
            user_id=user_id,
        )

        input_serializer = MembershipRoleSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        result = change_member_role(actor, membership, input_serializer.validated_data["role"])
        if not result.success:
            return _failure(result)
        return Response(CompanyUserSerializer(result.data).data)

    def delete(self, request, pk, user_id):
        actor = resolve_actor(request)
        require_administrator(actor)
        membership = _get_or_404(
            CompanyUser.objects.select_related("user", "company"),
            company_id=pk,
            user_id=user_id,
        )

        result = remove_user_from_company(actor, membership.company, membership.user)
        if not result.success:
            return _failure(result)
        return Response(status=status.HTTP_204_NO_CONTENT)
