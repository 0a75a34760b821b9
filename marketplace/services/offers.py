"""
Offer lifecycle.

Offer acceptance is the one multi-row invariant of the marketplace: the
accepted offer, the rejected competitors, the load's final price and the trip
are written in a single transaction, or not at all.

Lock order is always load row first, then its offers, then the vehicle. Any
code path that locks more than one of these must follow the same order.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from marketplace.models import Load, Offer, Trip, Vehicle
from marketplace.policies.roles import can_manage_load, is_admin, is_carrier
from marketplace.services import notifications
from marketplace.services.exceptions import (
    Conflict,
    Forbidden,
    NotFound,
    ValidationFailed,
)

logger = logging.getLogger(__name__)


@dataclass
class AcceptanceResult:
    offer: Offer
    load: Load
    trip: Optional[Trip]
    rejected_count: int


def get_offer(pk) -> Offer:
    offer = Offer.objects.select_related("load", "carrier").filter(pk=pk).first()
    if offer is None:
        raise NotFound("Offer not found.")
    return offer


def _expire(queryset, now):
    return queryset.update(status=Offer.Status.EXPIRED, updated_at=now)


def expire_stale_offers(now=None) -> int:
    """Move every PENDING offer past its expiry to EXPIRED."""
    now = now or timezone.now()
    count = _expire(
        Offer.objects.filter(status=Offer.Status.PENDING, expires_at__lte=now), now
    )
    if count:
        logger.info("Expired %d stale offers", count)
    return count


def create_offer(*, actor, load, data) -> Offer:
    if not (is_carrier(actor) or is_admin(actor)):
        raise Forbidden("Only carriers can make offers.")

    vehicle = data.get("vehicle")
    if vehicle is not None and vehicle.owner_id != actor.pk:
        raise ValidationFailed(
            "Invalid request data.",
            details={"vehicle": [{"message": "Vehicle does not belong to you."}]},
        )

    try:
        with transaction.atomic():
            load = Load.objects.select_for_update().get(pk=load.pk)
            if load.status != Load.Status.PUBLISHED:
                raise Conflict("Load is not open for offers.")
            if load.created_by_id == actor.pk:
                raise ValidationFailed("You cannot make an offer on your own load.")

            now = timezone.now()
            mine = Offer.objects.filter(
                load=load, carrier=actor, status=Offer.Status.PENDING
            )
            _expire(mine.filter(expires_at__lte=now), now)
            if mine.exists():
                raise Conflict("You already have a pending offer on this load.")

            offer = Offer.objects.create(
                load=load,
                carrier=actor,
                vehicle=vehicle,
                price=data["price"],
                estimated_pickup_at=data.get("estimated_pickup_at"),
                estimated_delivery_at=data.get("estimated_delivery_at"),
                message=data.get("message") or "",
            )
            transaction.on_commit(lambda: notifications.notify_new_offer(offer))
    except IntegrityError:
        raise Conflict("You already have a pending offer on this load.")

    logger.info("Offer %s created on load %s by %s", offer.pk, load.pk, actor.pk)
    return offer


def _check_acceptable(actor, offer, load):
    if not can_manage_load(actor, load):
        raise Forbidden("Only the load owner can accept offers.")
    if offer.status != Offer.Status.PENDING:
        raise Conflict("Offer is no longer pending.")
    if offer.is_expired:
        raise Conflict("Offer has expired.")
    if not load.is_open_for_offers:
        raise Conflict("Load is no longer accepting offers.")


def _pick_vehicle(offer) -> Optional[Vehicle]:
    """The offer's own vehicle when eligible, else the carrier's first free one."""
    if offer.vehicle_id:
        vehicle = Vehicle.objects.select_for_update().get(pk=offer.vehicle_id)
        if vehicle.is_eligible:
            return vehicle
    return (
        Vehicle.objects.select_for_update()
        .filter(owner_id=offer.carrier_id, is_active=True, is_available=True)
        .order_by("created_at", "pk")
        .first()
    )


def _schedule_trip(offer, load) -> Optional[Trip]:
    vehicle = _pick_vehicle(offer)
    if vehicle is None:
        if settings.MARKETPLACE_REQUIRE_VEHICLE_ON_ACCEPT:
            raise Conflict("Carrier has no available vehicle for this trip.")
        logger.warning(
            "Offer %s accepted but carrier %s has no available vehicle; no trip created",
            offer.pk,
            offer.carrier_id,
        )
        return None

    vehicle.occupy()
    return Trip.objects.create(
        load=load,
        offer=offer,
        carrier_id=offer.carrier_id,
        vehicle=vehicle,
        scheduled_pickup_at=offer.estimated_pickup_at or load.pickup_date,
        scheduled_delivery_at=offer.estimated_delivery_at or load.delivery_date,
    )


def accept_offer(*, actor, offer) -> AcceptanceResult:
    """
    Accept ``offer`` for its load.

    Effects, all in one transaction:
      1. the offer becomes ACCEPTED;
      2. every other PENDING offer on the load becomes REJECTED;
      3. the load becomes ACCEPTED with ``final_price`` = offer price;
      4. a SCHEDULED trip is created with an available vehicle of the carrier.

    Guards are checked once on the caller's objects to fail fast, and again
    on freshly locked rows, so of two concurrent accepts the second one sees
    the first one's outcome and fails with Conflict.
    """
    _check_acceptable(actor, offer, offer.load)

    try:
        with transaction.atomic():
            load = Load.objects.select_for_update().get(pk=offer.load_id)
            locked = {
                o.pk: o
                for o in Offer.objects.select_for_update().filter(load_id=load.pk)
            }
            offer = locked[offer.pk]
            offer.load = load
            _check_acceptable(actor, offer, load)

            offer.accept()

            now = timezone.now()
            losing = [
                o
                for o in locked.values()
                if o.pk != offer.pk and o.status == Offer.Status.PENDING
            ]
            Offer.objects.filter(pk__in=[o.pk for o in losing]).update(
                status=Offer.Status.REJECTED, rejected_at=now, updated_at=now
            )

            load.accept(final_price=offer.price)
            trip = _schedule_trip(offer, load)

            losing_ids = [o.carrier_id for o in losing]
            transaction.on_commit(lambda: _notify_acceptance(offer, losing_ids))
    except IntegrityError:
        raise Conflict("Another offer was accepted for this load.")

    logger.info(
        "Offer %s accepted for load %s at %s (%d rejected, trip %s)",
        offer.pk,
        load.pk,
        offer.price,
        len(losing),
        trip.pk if trip else None,
    )
    return AcceptanceResult(
        offer=offer, load=load, trip=trip, rejected_count=len(losing)
    )


def _notify_acceptance(offer, losing_carrier_ids):
    notifications.notify_offer_accepted(offer)
    if losing_carrier_ids:
        User = type(offer.carrier)
        emails = User.objects.filter(pk__in=losing_carrier_ids).values_list(
            "email", flat=True
        )
        notifications.notify_offers_rejected(offer.load, emails)


def reject_offer(*, actor, offer) -> Offer:
    if not can_manage_load(actor, offer.load):
        raise Forbidden("Only the load owner can reject offers.")

    with transaction.atomic():
        Load.objects.select_for_update().get(pk=offer.load_id)
        offer = Offer.objects.select_for_update().get(pk=offer.pk)
        offer.reject()

    return offer


def cancel_offer(*, actor, offer) -> Offer:
    if offer.carrier_id != actor.pk and not is_admin(actor):
        raise Forbidden("Only the carrier who made the offer can cancel it.")

    with transaction.atomic():
        Load.objects.select_for_update().get(pk=offer.load_id)
        offer = Offer.objects.select_for_update().get(pk=offer.pk)
        offer.cancel()

    return offer


def offers_for_load(*, actor, load):
    if not can_manage_load(actor, load):
        raise Forbidden("Only the load owner can see its offers.")
    return (
        Offer.objects.filter(load=load)
        .select_related("carrier", "vehicle")
        .order_by("price", "created_at")
    )


def offers_of(actor, status=None):
    queryset = Offer.objects.filter(carrier=actor).select_related("load")
    if status:
        queryset = queryset.filter(status=status)
    return queryset.order_by("-created_at")
