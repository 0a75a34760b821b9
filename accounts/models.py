from django.contrib.auth.models import AbstractUser
from django.core.validators import RegexValidator
from django.db import models


class User(AbstractUser):
    """Custom user model extending Django's AbstractUser."""

    # Django’s enum pattern for model fields.
    class Role(models.TextChoices):
        # actual value stored in the database, human-readable name
        SHIPPER = "shipper", "Shipper"
        CARRIER = "carrier", "Carrier"
        ADMIN = "admin", "Admin"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending verification"
        ACTIVE = "active", "Active"
        SUSPENDED = "suspended", "Suspended"
        BLOCKED = "blocked", "Blocked"

    role = models.CharField(
        choices=Role.choices,
        default=Role.SHIPPER,
        max_length=20,
        help_text="User role for permission management",
    )
    # suspended and blocked accounts also get is_active=False
    status = models.CharField(
        choices=Status.choices, default=Status.PENDING, max_length=20
    )
    email = models.EmailField(unique=True)
    phone_regex = RegexValidator(regex=r"^\+\d{10,15}$")
    phone = models.CharField(
        validators=[phone_regex], max_length=20, null=True, blank=True
    )

    # Company
    company_name = models.CharField(max_length=200, blank=True)
    country = models.CharField(
        max_length=2, blank=True, help_text="ISO 3166 alpha-2 country code"
    )
    fiscal_number = models.CharField(max_length=30, blank=True)

    # Verification
    is_email_verified = models.BooleanField(default=False)
    is_documents_verified = models.BooleanField(default=False)

    # Derived aggregates - recomputed from Rating, never edited directly
    rating_average = models.FloatField(default=0)
    rating_count = models.PositiveIntegerField(default=0)
    completed_trips = models.PositiveIntegerField(default=0)

    # timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.get_full_name()} ({self.username})"

    @property
    def display_name(self):
        return self.company_name or self.get_full_name() or self.username

    @property
    def is_shipper(self):
        return self.role == self.Role.SHIPPER

    @property
    def is_carrier(self):
        return self.role == self.Role.CARRIER

    @property
    def is_marketplace_admin(self):
        return self.role == self.Role.ADMIN or self.is_superuser
