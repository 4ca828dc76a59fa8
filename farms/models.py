"""
Farm Models

A farm belongs to one farmer and carries the admin verification state that
gates whether its products can be ordered:
- verification_status: pending -> approved | rejected
- is_active: farms can be switched off without losing their approval
"""

from django.conf import settings
from django.db import models
from django.utils import timezone
import uuid


class Farm(models.Model):
    """A farmer's farm. Only approved, active farms have orderable products."""

    class VerificationStatus(models.TextChoices):
        PENDING = 'pending', 'Pending Verification'
        APPROVED = 'approved', 'Approved'
        REJECTED = 'rejected', 'Rejected'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='farms',
        help_text="Farmer who owns this farm"
    )
    farm_name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    location = models.CharField(max_length=255, blank=True)

    # Verification workflow
    verification_status = models.CharField(
        max_length=20,
        choices=VerificationStatus.choices,
        default=VerificationStatus.PENDING,
        db_index=True
    )
    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='verified_farms'
    )
    verified_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True)

    is_active = models.BooleanField(default=True, db_index=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'farms'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['verification_status', 'is_active'], name='farms_verif_active_idx'),
        ]

    def __str__(self):
        return f"{self.farm_name} ({self.get_verification_status_display()})"

    @property
    def is_approved(self):
        return self.verification_status == self.VerificationStatus.APPROVED

    @property
    def accepts_orders(self):
        """Products of this farm may be ordered."""
        return self.is_approved and self.is_active

    def approve(self, admin_user):
        self.verification_status = self.VerificationStatus.APPROVED
        self.verified_by = admin_user
        self.verified_at = timezone.now()
        self.rejection_reason = ''
        self.save(update_fields=[
            'verification_status', 'verified_by', 'verified_at',
            'rejection_reason', 'updated_at'
        ])

    def reject(self, admin_user, reason):
        self.verification_status = self.VerificationStatus.REJECTED
        self.verified_by = admin_user
        self.verified_at = timezone.now()
        self.rejection_reason = reason
        self.save(update_fields=[
            'verification_status', 'verified_by', 'verified_at',
            'rejection_reason', 'updated_at'
        ])
