"""
Serializers for the users app.

Defines serializers for the current user with nested profile, registering a
new clinic account, password management, forgot/reset password, and
email-based login that returns JWT refresh/access tokens.
"""
from __future__ import annotations

from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.contrib.auth.tokens import PasswordResetTokenGenerator
from django.db import transaction
from django.utils.encoding import force_str
from django.utils.http import urlsafe_base64_decode
from rest_framework import serializers
from rest_framework.exceptions import AuthenticationFailed
from rest_framework.validators import UniqueValidator
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from clinics.models import Clinic

from .models import UserProfile

User = get_user_model()


class UserProfileSerializer(serializers.ModelSerializer):
    clinic_name = serializers.CharField(source="clinic.clinic_name", read_only=True, default=None)

    class Meta:
        model = UserProfile
        fields = ["full_name", "phone", "role", "clinic", "clinic_name"]
        read_only_fields = ["role", "clinic", "clinic_name"]


class UserSerializer(serializers.ModelSerializer):
    """Serializer for the Django User model with nested profile."""

    profile = UserProfileSerializer(required=False)

    class Meta:
        model = User
        fields = ["id", "username", "email", "first_name", "last_name", "profile", "is_staff", "date_joined"]
        read_only_fields = ["id", "username", "email", "is_staff", "date_joined"]

    # support nested profile writes
    def update(self, instance, validated_data):
        profile_data = validated_data.pop("profile", None)

        for attr, val in validated_data.items():
            setattr(instance, attr, val)
        instance.save()

        if profile_data:
            prof = instance.profile
            for attr, val in profile_data.items():
                setattr(prof, attr, val)
            prof.save()

        return instance


class RegisterSerializer(serializers.Serializer):
    """Create a clinic user together with its clinic.

    The email doubles as the username so clinics sign in with their email.
    """

    email = serializers.EmailField(
        validators=[UniqueValidator(queryset=User.objects.all(), lookup="iexact")],
    )
    password = serializers.CharField(write_only=True, style={"input_type": "password"}, trim_whitespace=False)
    clinic_name = serializers.CharField(max_length=255)
    contact_name = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    phone = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")

    def validate_email(self, value: str) -> str:
        return value.strip().lower()

    def validate(self, attrs):
        pseudo_user = User(username=attrs["email"], email=attrs["email"])
        validate_password(attrs["password"], user=pseudo_user)
        return attrs

    @transaction.atomic
    def create(self, validated_data):
        email = validated_data["email"]
        clinic = Clinic.objects.create(
            clinic_name=validated_data["clinic_name"].strip(),
            contact_name=validated_data.get("contact_name", ""),
            email=email,
            phone=validated_data.get("phone", ""),
        )
        user = User(username=email, email=email)
        user.set_password(validated_data["password"])
        user.save()

        profile = user.profile
        profile.role = UserProfile.ROLE_CLINIC
        profile.clinic = clinic
        profile.full_name = validated_data.get("contact_name", "")
        profile.phone = validated_data.get("phone", "")
        profile.save()
        return user

    def to_representation(self, instance):
        return UserSerializer(instance).data


class EmailTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Login using email + password and return SimpleJWT refresh/access tokens.
    POST body: {"email": "...", "password": "..."}
    """

    email = serializers.EmailField(write_only=True)
    password = serializers.CharField(write_only=True, trim_whitespace=False)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields.pop(self.username_field, None)

    def validate(self, attrs):
        email = attrs.get("email")
        password = attrs.get("password")

        try:
            user = User.objects.get(email__iexact=email)
        except User.DoesNotExist:
            raise AuthenticationFailed("No active account found with the given credentials")
        except User.MultipleObjectsReturned:
            user = User.objects.filter(email__iexact=email).order_by("id").first()

        if not user.is_active:
            raise AuthenticationFailed("User account is disabled")

        if not user.check_password(password):
            raise AuthenticationFailed("No active account found with the given credentials")

        refresh = self.get_token(user)
        return {"refresh": str(refresh), "access": str(refresh.access_token)}


class ChangePasswordSerializer(serializers.Serializer):
    old_password = serializers.CharField(write_only=True, trim_whitespace=False)
    new_password = serializers.CharField(write_only=True, trim_whitespace=False)
    confirm_new_password = serializers.CharField(write_only=True, trim_whitespace=False)

    def validate(self, attrs):
        if attrs["new_password"] != attrs["confirm_new_password"]:
            raise serializers.ValidationError({"confirm_new_password": "Passwords do not match."})
        validate_password(attrs["new_password"], self.context["request"].user)
        return attrs


class ForgotPasswordSerializer(serializers.Serializer):
    email = serializers.EmailField()

    def validate(self, attrs):
        email = (attrs["email"] or "").strip().lower()
        # Unknown emails still succeed so account existence is not revealed.
        attrs["user"] = User.objects.filter(email__iexact=email, is_active=True).first()
        return attrs


class ResetPasswordSerializer(serializers.Serializer):
    uid = serializers.CharField()
    token = serializers.CharField()
    new_password = serializers.CharField(write_only=True, trim_whitespace=False)
    confirm_new_password = serializers.CharField(write_only=True, trim_whitespace=False)

    def validate(self, attrs):
        if attrs["new_password"] != attrs["confirm_new_password"]:
            raise serializers.ValidationError({"confirm_new_password": "Passwords do not match."})

        try:
            uid_int = force_str(urlsafe_base64_decode(attrs["uid"]))
            user = User.objects.get(pk=uid_int)
        except (TypeError, ValueError, OverflowError, User.DoesNotExist):
            raise serializers.ValidationError({"uid": "Invalid user id."})

        if not PasswordResetTokenGenerator().check_token(user, attrs["token"]):
            raise serializers.ValidationError({"token": "Invalid or expired token."})

        validate_password(attrs["new_password"], user)
        attrs["user"] = user
        return attrs
