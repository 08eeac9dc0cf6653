# accounts/serializers.py
"""
Serializers for the accounts API.

Note: These serializers are used for:
1. Input validation
2. Output formatting

Writes happen in commands.py; views pass validated_data to a command.
Integer-backed enums (roles, statuses) travel as lowercase names.
"""

from django.contrib.auth import authenticate
from rest_framework import serializers
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer
from rest_framework_simplejwt.tokens import RefreshToken

from .models import Company, CompanyUser, User


class ChoiceNameField(serializers.Field):
    """Maps an IntegerChoices member to and from its lowercase name."""

    default_error_messages = {
        "invalid_choice": '"{input}" is not a valid choice.',
    }

    def __init__(self, choices_class, **kwargs):
        self.choices_class = choices_class
        super().__init__(**kwargs)

    def to_representation(self, value):
        return self.choices_class(value).name.lower()

    def to_internal_value(self, data):
        if isinstance(data, str):
            try:
                return self.choices_class[data.strip().upper()]
            except KeyError:
                pass
        self.fail("invalid_choice", input=data)


# =============================================================================
# Users
# =============================================================================

class UserSerializer(serializers.ModelSerializer):
    role = ChoiceNameField(User.Role, read_only=True)
    is_active = serializers.BooleanField(read_only=True)

    class Meta:
        model = User
        fields = (
            "id",
            "email",
            "first_name",
            "last_name",
            "role",
            "is_active",
            "deleted_at",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields


class RegistrationSerializer(serializers.Serializer):
    email = serializers.EmailField(max_length=255)
    password = serializers.CharField(write_only=True, trim_whitespace=False)
    first_name = serializers.CharField(max_length=255)
    last_name = serializers.CharField(max_length=255)


class UserUpdateSerializer(serializers.Serializer):
    email = serializers.EmailField(max_length=255, required=False)
    first_name = serializers.CharField(max_length=255, required=False)
    last_name = serializers.CharField(max_length=255, required=False)
    role = ChoiceNameField(User.Role, required=False)


class EmailTokenObtainPairSerializer(TokenObtainPairSerializer):
    username_field = User.EMAIL_FIELD

    def validate(self, attrs):
        user = authenticate(
            request=self.context.get("request"),
            email=attrs.get("email"),
            password=attrs.get("password"),
        )
        # ModelBackend refuses soft-deleted users (is_active is False).
        if not user:
            raise AuthenticationFailed("Invalid credentials")
        refresh = RefreshToken.for_user(user)
        return {"access": str(refresh.access_token), "refresh": str(refresh)}


# =============================================================================
# Companies
# =============================================================================

class CompanySerializer(serializers.ModelSerializer):
    status = ChoiceNameField(Company.Status, read_only=True, allow_null=True)

    class Meta:
        model = Company
        fields = (
            "id",
            "name",
            "industry",
            "size",
            "description",
            "status",
            "fiscal_year_end",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields


class CompanyInputSerializer(serializers.Serializer):
    """POST body, and PATCH body when bound with partial=True."""

    name = serializers.CharField(max_length=255)
    industry = serializers.CharField(max_length=255)
    size = serializers.ChoiceField(choices=Company.Size.choices)
    description = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    status = ChoiceNameField(Company.Status, required=False)
    fiscal_year_end = serializers.DateField(required=False, allow_null=True)


# =============================================================================
# Memberships
# =============================================================================

class CompanyUserSerializer(serializers.ModelSerializer):
    user = UserSerializer(read_only=True)
    company_id = serializers.IntegerField(read_only=True)
    role = ChoiceNameField(CompanyUser.Role, read_only=True)

    class Meta:
        model = CompanyUser
        fields = ("id", "user", "company_id", "role", "created_at", "updated_at")
        read_only_fields = fields


class MembershipSummarySerializer(serializers.ModelSerializer):
    company = serializers.SerializerMethodField()
    role = ChoiceNameField(CompanyUser.Role, read_only=True)

    class Meta:
        model = CompanyUser
        fields = ("id", "company", "role")
        read_only_fields = fields

    def get_company(self, obj):
        return {"id": obj.company_id, "name": obj.company.name}


class MembershipInputSerializer(serializers.Serializer):
    user_id = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.active(),
        source="user",
    )
    role = ChoiceNameField(CompanyUser.Role, required=False)


class MembershipRoleSerializer(serializers.Serializer):
    role = ChoiceNameField(CompanyUser.Role)
