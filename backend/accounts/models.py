"""
Accounts app models.

Defines the custom ``User`` model that extends Django's ``AbstractUser``
with the single hostel role (student / staff / warden) every complaint
operation is authorized against.
"""

from django.contrib.auth.models import AbstractUser
from django.db import models


class UserRole(models.TextChoices):
    """The three actor roles of the hostel complaint system."""

    STUDENT = "student", "Student"
    STAFF = "staff", "Staff"
    WARDEN = "warden", "Warden"


class User(AbstractUser):
    """
    Custom user model for the HostelFix system.

    Login is supported via either ``username`` or ``email`` together with
    the password.  Each user holds exactly **one** role; the role is
    trusted as-is at call time by the complaint service layer.
    """

    email = models.EmailField(
        unique=True,
        verbose_name="Email Address",
    )
    role = models.CharField(
        max_length=16,
        choices=UserRole.choices,
        default=UserRole.STUDENT,
        db_index=True,
        verbose_name="Role",
    )

    REQUIRED_FIELDS = ["email"]

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"

    def __str__(self):
        return f"{self.username} ({self.get_role_display()})"

    @property
    def display_name(self) -> str:
        """Full name, falling back to the username."""
        return self.get_full_name() or self.username
