from django.contrib.auth.models import AbstractUser
from django.db import models
from phonenumber_field.modelfields import PhoneNumberField
import uuid


class User(AbstractUser):
    """
    Custom User model extending Django's AbstractUser.
    Buyers place orders, farmers sell from verified farms, admins verify and refund.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    class UserRole(models.TextChoices):
        BUYER = 'BUYER', 'Buyer'
        FARMER = 'FARMER', 'Farmer'
        ADMIN = 'ADMIN', 'Administrator'

    role = models.CharField(
        max_length=20,
        choices=UserRole.choices,
        default=UserRole.BUYER,
        db_index=True,
        help_text="User's primary role in the marketplace"
    )

    phone = PhoneNumberField(
        blank=True,
        null=True,
        help_text="Contact phone number (E.164)"
    )

    is_verified = models.BooleanField(
        default=False,
        help_text="Farmer accounts must be verified before their products can be ordered"
    )

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'users'
        verbose_name = 'User'
        verbose_name_plural = 'Users'
        indexes = [
            models.Index(fields=['role', 'is_verified'], name='users_role_verified_idx'),
        ]

    def __str__(self):
        return f"{self.get_full_name()} ({self.get_role_display()})"

    def get_full_name(self):
        """Return the user's full name or username if name is not set."""
        full_name = super().get_full_name()
        return full_name if full_name else self.username

    @property
    def is_buyer(self):
        return self.role == self.UserRole.BUYER

    @property
    def is_farmer(self):
        return self.role == self.UserRole.FARMER

    @property
    def is_marketplace_admin(self):
        return self.role == self.UserRole.ADMIN or self.is_superuser
