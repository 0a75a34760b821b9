import logging
from datetime import timedelta

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models, transaction
from django.db.models import Q
from django.utils import timezone

from marketplace.services.exceptions import Conflict

logger = logging.getLogger(__name__)

OFFER_VALIDITY = timedelta(hours=48)
LOAD_PUBLICATION_WINDOW = timedelta(days=7)


class BaseModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        abstract = True


class StatusTransitionMixin:
    """
    All status changes go through ``_transition`` so the timestamps that
    belong to a state are written together with it.
    """

    def _transition(self, new_status, **extra_fields):
        old_status = self.status
        self.status = new_status
        for key, value in extra_fields.items():
            setattr(self, key, value)
        self.save()
        logger.info(
            "%s %s: %s -> %s", self.__class__.__name__, self.pk, old_status, new_status
        )


class Vehicle(BaseModel):
    """A carrier's truck. Assigned to a trip when an offer is accepted."""

    class VehicleType(models.TextChoices):
        VAN = "VAN", "Van"
        TRUCK_3_5T = "TRUCK_3_5T", "Truck 3.5t"
        TRUCK_7_5T = "TRUCK_7_5T", "Truck 7.5t"
        TRUCK_12T = "TRUCK_12T", "Truck 12t"
        TRUCK_18T = "TRUCK_18T", "Truck 18t"
        TRUCK_24T = "TRUCK_24T", "Truck 24t"
        SEMI_TRAILER = "SEMI_TRAILER", "Semi-trailer"
        REFRIGERATED = "REFRIGERATED", "Refrigerated"
        TANKER = "TANKER", "Tanker"

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="vehicles"
    )
    plate = models.CharField(max_length=20, unique=True)
    vehicle_type = models.CharField(max_length=20, choices=VehicleType.choices)
    capacity_kg = models.PositiveIntegerField(default=0)
    is_available = models.BooleanField(default=True)

    class Meta:
        ordering = ["created_at"]

    def __str__(self):
        return f"{self.plate} ({self.get_vehicle_type_display()})"

    @property
    def is_eligible(self):
        return self.is_active and self.is_available

    def occupy(self):
        self.is_available = False
        self.save(update_fields=["is_available", "updated_at"])

    def release(self):
        self.is_available = True
        self.save(update_fields=["is_available", "updated_at"])


class Load(StatusTransitionMixin, BaseModel):
    """Freight posted by a shipper for carriers to bid on."""

    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        PUBLISHED = "PUBLISHED", "Published"
        IN_NEGOTIATION = "IN_NEGOTIATION", "In negotiation"
        ACCEPTED = "ACCEPTED", "Accepted"
        IN_TRANSIT = "IN_TRANSIT", "In transit"
        DELIVERED = "DELIVERED", "Delivered"
        CANCELLED = "CANCELLED", "Cancelled"

    class LoadType(models.TextChoices):
        GENERAL = "GENERAL", "General"
        PALLETIZED = "PALLETIZED", "Palletized"
        REFRIGERATED = "REFRIGERATED", "Refrigerated"
        FRAGILE = "FRAGILE", "Fragile"
        HAZARDOUS = "HAZARDOUS", "Hazardous (ADR)"
        OVERSIZED = "OVERSIZED", "Oversized"
        LIQUID = "LIQUID", "Liquid"
        BULK = "BULK", "Bulk"

    # Route content is frozen once a carrier is committed
    LOCKED_STATUSES = (Status.ACCEPTED, Status.IN_TRANSIT, Status.DELIVERED)
    TERMINAL_STATUSES = (Status.DELIVERED, Status.CANCELLED)
    OPEN_FOR_OFFERS = (Status.PUBLISHED, Status.IN_NEGOTIATION)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="loads"
    )
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)

    # Route
    origin_address = models.CharField(max_length=255)
    origin_city = models.CharField(max_length=100)
    origin_postal_code = models.CharField(max_length=20, blank=True)
    origin_country = models.CharField(max_length=2)
    origin_lat = models.FloatField(null=True, blank=True)
    origin_lng = models.FloatField(null=True, blank=True)

    destination_address = models.CharField(max_length=255)
    destination_city = models.CharField(max_length=100)
    destination_postal_code = models.CharField(max_length=20, blank=True)
    destination_country = models.CharField(max_length=2)
    destination_lat = models.FloatField(null=True, blank=True)
    destination_lng = models.FloatField(null=True, blank=True)

    distance_km = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True
    )
    estimated_duration_minutes = models.PositiveIntegerField(null=True, blank=True)

    # Cargo
    load_type = models.CharField(
        max_length=20, choices=LoadType.choices, default=LoadType.GENERAL
    )
    weight_kg = models.DecimalField(max_digits=10, decimal_places=2)
    volume_m3 = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True
    )
    pallet_count = models.PositiveIntegerField(null=True, blank=True)

    pickup_date = models.DateTimeField()
    delivery_date = models.DateTimeField(null=True, blank=True)

    # Pricing
    suggested_price = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True
    )
    min_price = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True
    )
    max_price = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True
    )
    final_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Set when an offer is accepted, never edited afterwards",
    )

    # Requirements
    requires_refrigeration = models.BooleanField(default=False)
    requires_insurance = models.BooleanField(default=False)
    requires_adr = models.BooleanField(default=False)
    requires_cmr = models.BooleanField(default=False)
    required_vehicle_type = models.CharField(
        max_length=20, choices=Vehicle.VehicleType.choices, blank=True
    )

    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.DRAFT, db_index=True
    )
    published_at = models.DateTimeField(null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "origin_country", "destination_country"]),
        ]

    def __str__(self):
        return f"{self.title} ({self.origin_city} → {self.destination_city})"

    @property
    def is_international(self):
        return self.origin_country.upper() != self.destination_country.upper()

    @property
    def is_locked(self):
        return self.status in self.LOCKED_STATUSES

    @property
    def is_open_for_offers(self):
        return self.status in self.OPEN_FOR_OFFERS

    def accepted_offer(self):
        return self.offers.filter(status=Offer.Status.ACCEPTED).first()

    def assigned_carrier_id(self):
        offer = self.accepted_offer()
        return offer.carrier_id if offer else None

    # STATUS WORKFLOW
    # Every method checks its source state first and raises Conflict, so a
    # rejected call leaves the row untouched.

    @transaction.atomic
    def publish(self):
        """Transition: DRAFT → PUBLISHED, open for offers for seven days."""
        if self.status != self.Status.DRAFT:
            raise Conflict("Only draft loads can be published.")

        now = timezone.now()
        self._transition(
            new_status=self.Status.PUBLISHED,
            published_at=now,
            expires_at=now + LOAD_PUBLICATION_WINDOW,
        )

    def accept(self, final_price):
        """
        Transition: PUBLISHED / IN_NEGOTIATION → ACCEPTED.

        Only called from offer acceptance, which already holds the load row
        lock inside its own transaction.
        """
        if self.status not in self.OPEN_FOR_OFFERS:
            raise Conflict("Load is no longer accepting offers.")
        self._transition(new_status=self.Status.ACCEPTED, final_price=final_price)

    @transaction.atomic
    def start_transit(self):
        """Transition: ACCEPTED → IN_TRANSIT (the trip has been started)."""
        if self.status != self.Status.ACCEPTED:
            raise Conflict("Load is not in ACCEPTED status.")
        self._transition(new_status=self.Status.IN_TRANSIT)

    @transaction.atomic
    def mark_delivered(self):
        """Transition: IN_TRANSIT → DELIVERED (the trip has been completed)."""
        if self.status != self.Status.IN_TRANSIT:
            raise Conflict("Load is not in IN_TRANSIT status.")
        self._transition(
            new_status=self.Status.DELIVERED,
            delivered_at=timezone.now(),
        )

    @transaction.atomic
    def cancel(self):
        """
        Transition: (any non-terminal) → CANCELLED.

        ``final_price`` is kept as the historical value. An active trip is
        cancelled with the load and its vehicle freed.
        """
        if self.status in self.TERMINAL_STATUSES:
            raise Conflict("Load is already DELIVERED or CANCELLED.")

        self._transition(
            new_status=self.Status.CANCELLED,
            cancelled_at=timezone.now(),
        )

        trip = Trip.objects.filter(load=self, status__in=Trip.ACTIVE_STATUSES).first()
        if trip is not None:
            trip._cancel_without_load("Load cancelled")


class Offer(StatusTransitionMixin, BaseModel):
    """A carrier's bid on a published load."""

    class Status(models.TextChoices):
        PENDING = "PENDING", "Pending"
        ACCEPTED = "ACCEPTED", "Accepted"
        REJECTED = "REJECTED", "Rejected"
        CANCELLED = "CANCELLED", "Cancelled"
        EXPIRED = "EXPIRED", "Expired"

    load = models.ForeignKey(Load, on_delete=models.CASCADE, related_name="offers")
    carrier = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="offers"
    )
    vehicle = models.ForeignKey(
        Vehicle,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="offers",
    )
    price = models.DecimalField(
        max_digits=12, decimal_places=2, validators=[MinValueValidator(0)]
    )
    estimated_pickup_at = models.DateTimeField(null=True, blank=True)
    estimated_delivery_at = models.DateTimeField(null=True, blank=True)
    message = models.TextField(blank=True)

    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True
    )
    expires_at = models.DateTimeField()
    accepted_at = models.DateTimeField(null=True, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["price", "created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["load", "carrier"],
                condition=Q(status="PENDING"),
                name="one_pending_offer_per_carrier_and_load",
            ),
            models.UniqueConstraint(
                fields=["load"],
                condition=Q(status="ACCEPTED"),
                name="one_accepted_offer_per_load",
            ),
        ]

    def __str__(self):
        return f"Offer {self.pk} on load {self.load_id}: {self.price}"

    def save(self, *args, **kwargs):
        if self.expires_at is None:
            self.expires_at = timezone.now() + OFFER_VALIDITY
        super().save(*args, **kwargs)

    @property
    def is_expired(self):
        return self.expires_at is not None and self.expires_at <= timezone.now()

    def _require_pending(self, verb):
        if self.status != self.Status.PENDING:
            raise Conflict(f"Only pending offers can be {verb}.")

    def accept(self):
        self._require_pending("accepted")
        if self.is_expired:
            raise Conflict("Offer has expired.")
        self._transition(new_status=self.Status.ACCEPTED, accepted_at=timezone.now())

    def reject(self):
        self._require_pending("rejected")
        self._transition(new_status=self.Status.REJECTED, rejected_at=timezone.now())

    def cancel(self):
        self._require_pending("cancelled")
        self._transition(
            new_status=self.Status.CANCELLED, cancelled_at=timezone.now()
        )


class Trip(StatusTransitionMixin, BaseModel):
    """Execution of an accepted offer, from pickup to proof of delivery."""

    class Status(models.TextChoices):
        SCHEDULED = "SCHEDULED", "Scheduled"
        IN_PROGRESS = "IN_PROGRESS", "In progress"
        COMPLETED = "COMPLETED", "Completed"
        CANCELLED = "CANCELLED", "Cancelled"

    ACTIVE_STATUSES = (Status.SCHEDULED, Status.IN_PROGRESS)

    load = models.OneToOneField(Load, on_delete=models.CASCADE, related_name="trip")
    offer = models.OneToOneField(Offer, on_delete=models.CASCADE, related_name="trip")
    carrier = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="trips"
    )
    vehicle = models.ForeignKey(
        Vehicle, on_delete=models.PROTECT, related_name="trips"
    )

    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.SCHEDULED, db_index=True
    )
    scheduled_pickup_at = models.DateTimeField(null=True, blank=True)
    scheduled_delivery_at = models.DateTimeField(null=True, blank=True)
    actual_pickup_at = models.DateTimeField(null=True, blank=True)
    actual_delivery_at = models.DateTimeField(null=True, blank=True)

    # Latest known position, refreshed by every location ping
    current_lat = models.FloatField(null=True, blank=True)
    current_lng = models.FloatField(null=True, blank=True)
    last_location_at = models.DateTimeField(null=True, blank=True)

    pickup_checklist = models.JSONField(default=dict, blank=True)
    delivery_checklist = models.JSONField(default=dict, blank=True)

    # Proof of delivery
    pod_signature = models.TextField(blank=True)
    pod_photo = models.CharField(max_length=500, blank=True)
    pod_notes = models.TextField(blank=True)

    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"Trip {self.pk} for load {self.load_id}"

    @property
    def is_active_trip(self):
        return self.status in self.ACTIVE_STATUSES

    @transaction.atomic
    def start(self, checklist=None, position=None):
        if self.status != self.Status.SCHEDULED:
            raise Conflict("Trip is not in SCHEDULED status.")

        now = timezone.now()
        extra = {"actual_pickup_at": now, "pickup_checklist": checklist or {}}
        if position is not None:
            extra.update(
                current_lat=position.lat,
                current_lng=position.lng,
                last_location_at=now,
            )
        self._transition(new_status=self.Status.IN_PROGRESS, **extra)
        self.load.start_transit()

    @transaction.atomic
    def complete(self, proof, checklist=None):
        if self.status != self.Status.IN_PROGRESS:
            raise Conflict("Trip is not in IN_PROGRESS status.")

        now = timezone.now()
        self._transition(
            new_status=self.Status.COMPLETED,
            actual_delivery_at=now,
            completed_at=now,
            delivery_checklist=checklist or {},
            pod_signature=proof.signature,
            pod_photo=proof.photo,
            pod_notes=proof.notes,
        )
        self.load.mark_delivered()

        # F() keeps concurrent completions for the same carrier from losing counts
        type(self.carrier).objects.filter(pk=self.carrier_id).update(
            completed_trips=models.F("completed_trips") + 1
        )
        self.vehicle.release()

    @transaction.atomic
    def cancel(self, reason=""):
        """Cancel the trip and, with it, the load."""
        if self.status not in self.ACTIVE_STATUSES:
            raise Conflict("Trip is already COMPLETED or CANCELLED.")
        self._cancel_without_load(reason)
        if self.load.status not in Load.TERMINAL_STATUSES:
            self.load._transition(
                new_status=Load.Status.CANCELLED, cancelled_at=timezone.now()
            )

    def _cancel_without_load(self, reason):
        self._transition(
            new_status=self.Status.CANCELLED,
            cancelled_at=timezone.now(),
            cancellation_reason=reason,
        )
        self.vehicle.release()


class Location(models.Model):
    """GPS ping recorded during a trip. Rows are never updated."""

    trip = models.ForeignKey(Trip, on_delete=models.CASCADE, related_name="locations")
    lat = models.FloatField(
        validators=[MinValueValidator(-90), MaxValueValidator(90)]
    )
    lng = models.FloatField(
        validators=[MinValueValidator(-180), MaxValueValidator(180)]
    )
    speed = models.FloatField(null=True, blank=True)
    heading = models.FloatField(null=True, blank=True)
    accuracy = models.FloatField(null=True, blank=True)
    recorded_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["-recorded_at", "-id"]

    def __str__(self):
        return f"({self.lat}, {self.lng}) @ {self.recorded_at:%Y-%m-%d %H:%M}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise Conflict("Location history is append-only.")
        super().save(*args, **kwargs)


class Invoice(StatusTransitionMixin, BaseModel):
    class Status(models.TextChoices):
        ISSUED = "ISSUED", "Issued"
        PAID = "PAID", "Paid"
        CANCELLED = "CANCELLED", "Cancelled"
        OVERDUE = "OVERDUE", "Overdue"

    PAYABLE_STATUSES = (Status.ISSUED, Status.OVERDUE)

    load = models.OneToOneField(Load, on_delete=models.PROTECT, related_name="invoice")
    issuer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="invoices_issued",
    )
    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="invoices_received",
    )
    invoice_number = models.CharField(max_length=30, unique=True)

    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    vat_rate = models.DecimalField(max_digits=5, decimal_places=2)
    vat_amount = models.DecimalField(max_digits=12, decimal_places=2)
    platform_fee = models.DecimalField(max_digits=12, decimal_places=2)
    total = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, default="EUR")

    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.ISSUED, db_index=True
    )
    issue_date = models.DateTimeField(default=timezone.now)
    due_date = models.DateTimeField()
    paid_at = models.DateTimeField(null=True, blank=True)
    payment_method = models.CharField(max_length=30, blank=True)
    payment_reference = models.CharField(max_length=100, blank=True)
    document_url = models.CharField(max_length=500, blank=True)

    class Meta:
        ordering = ["-issue_date"]

    def __str__(self):
        return self.invoice_number

    @property
    def is_payable(self):
        return self.status in self.PAYABLE_STATUSES

    def mark_paid(self, method, reference):
        if not self.is_payable:
            raise Conflict("Invoice is not payable.")
        self._transition(
            new_status=self.Status.PAID,
            paid_at=timezone.now(),
            payment_method=method,
            payment_reference=reference,
        )

    def cancel(self):
        if self.status in (self.Status.PAID, self.Status.CANCELLED):
            raise Conflict("Paid or cancelled invoices cannot be cancelled.")
        self._transition(new_status=self.Status.CANCELLED)


class Rating(BaseModel):
    from_user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="ratings_given"
    )
    to_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="ratings_received",
    )
    load = models.ForeignKey(
        Load,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="ratings",
    )
    score = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(5)]
    )
    comment = models.TextField(blank=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["from_user", "to_user", "load"],
                name="one_rating_per_user_pair_and_load",
            ),
            models.CheckConstraint(
                condition=Q(score__gte=1) & Q(score__lte=5),
                name="rating_score_between_1_and_5",
            ),
        ]

    def __str__(self):
        return f"{self.from_user_id} → {self.to_user_id}: {self.score}"
