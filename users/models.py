"""User model for authentication and role-based fan-out.

Extends Django's ``AbstractUser`` with a unique normalized email, an
optional phone and a ``role`` used by the notification dispatcher to find
administrators.
"""

from common.choices import UserRole
from django.contrib.auth.models import AbstractUser
from django.core.validators import RegexValidator
from django.db import models


class User(AbstractUser):
    """Custom user with unique email and a coarse role."""

    ROLE_CUSTOMER = UserRole.CUSTOMER
    ROLE_ADMIN = UserRole.ADMIN

    email = models.EmailField(unique=True)
    phone = models.CharField(
        max_length=16,
        blank=True,
        validators=[RegexValidator(r"^\+?[1-9]\d{1,14}$", message="Use E.164 format (e.g., +14155552671)")],
        help_text="Primary contact number for the account in E.164 format",
    )
    role = models.CharField(max_length=16, choices=UserRole.choices, default=ROLE_CUSTOMER, db_index=True)

    def save(self, *args, **kwargs):
        """Normalize email and phone before persisting."""
        if self.email:
            self.email = self.email.strip().lower()
        if self.phone:
            self.phone = self.phone.strip()
        super().save(*args, **kwargs)

    @property
    def is_admin(self) -> bool:
        return self.role == self.ROLE_ADMIN or self.is_staff or self.is_superuser
