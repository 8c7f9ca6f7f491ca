"""
Models for the users app.

A `UserProfile` extends the built-in `auth.User` with the account role and
the clinic the user works for.  A `OneToOneField` links each profile to its
user; the profile is created automatically via signals when a new user is
saved.
"""
from django.contrib.auth.models import User
from django.db import models


class UserProfile(models.Model):
    """Extension of Django's built-in User model."""

    ROLE_ADMIN = "admin"
    ROLE_CLINIC = "clinic"
    ROLE_CHOICES = [
        (ROLE_ADMIN, "Platform admin"),
        (ROLE_CLINIC, "Clinic user"),
    ]

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name="profile")
    full_name = models.CharField(max_length=255, blank=True)
    phone = models.CharField(max_length=50, blank=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_CLINIC, db_index=True)
    clinic = models.ForeignKey(
        "clinics.Clinic",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="members",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"Profile<{self.user.username}>"

    @property
    def is_admin(self) -> bool:
        return self.role == self.ROLE_ADMIN
