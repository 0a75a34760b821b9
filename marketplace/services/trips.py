import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from marketplace.models import Load, Location, Trip
from marketplace.policies.roles import can_view_trip, is_admin
from marketplace.services import notifications
from marketplace.services.exceptions import Conflict, Forbidden, NotFound

logger = logging.getLogger(__name__)

RECENT_LOCATIONS = 50


@dataclass(frozen=True)
class LocationPing:
    lat: float
    lng: float
    speed: Optional[float] = None
    heading: Optional[float] = None
    accuracy: Optional[float] = None
    recorded_at: datetime = field(default_factory=timezone.now)


@dataclass(frozen=True)
class ProofOfDelivery:
    signature: str = ""
    photo: str = ""
    notes: str = ""


def _append_location(trip, ping: LocationPing) -> Location:
    return Location.objects.create(
        trip=trip,
        lat=ping.lat,
        lng=ping.lng,
        speed=ping.speed,
        heading=ping.heading,
        accuracy=ping.accuracy,
        recorded_at=ping.recorded_at,
    )


def _locked(trip):
    """Lock the load row, then the trip row (same order as offer acceptance)."""
    load = Load.objects.select_for_update().get(pk=trip.load_id)
    trip = Trip.objects.select_for_update().get(pk=trip.pk)
    trip.load = load
    return trip


def _require_driver(actor, trip):
    if trip.carrier_id != actor.pk and not is_admin(actor):
        raise Forbidden("Only the assigned carrier can do this.")


def get_trip(pk) -> Trip:
    trip = (
        Trip.objects.select_related("load", "carrier", "vehicle", "offer")
        .filter(pk=pk)
        .first()
    )
    if trip is None:
        raise NotFound("Trip not found.")
    return trip


def visible_trip(*, actor, pk) -> Trip:
    trip = get_trip(pk)
    if not can_view_trip(actor, trip):
        raise Forbidden("You cannot see this trip.")
    return trip


def start_trip(*, actor, trip, checklist=None, position: Optional[LocationPing] = None):
    _require_driver(actor, trip)

    with transaction.atomic():
        trip = _locked(trip)
        trip.start(checklist=checklist, position=position)
        if position is not None:
            _append_location(trip, position)

    return trip


def record_location(*, actor, trip, ping: LocationPing) -> Location:
    """
    Append a GPS ping and refresh the trip's position cache.

    High-frequency path: one conditional UPDATE plus one INSERT, without the
    trip row lock, so pings never wait on a status change in progress.
    """
    if trip.carrier_id != actor.pk:
        raise Forbidden("Only the assigned carrier can send locations.")

    with transaction.atomic():
        updated = Trip.objects.filter(
            pk=trip.pk, status=Trip.Status.IN_PROGRESS
        ).update(
            current_lat=ping.lat,
            current_lng=ping.lng,
            last_location_at=ping.recorded_at,
            updated_at=timezone.now(),
        )
        if not updated:
            raise Conflict("Trip is not in progress.")
        location = _append_location(trip, ping)

    return location


def complete_trip(
    *,
    actor,
    trip,
    proof: ProofOfDelivery,
    checklist=None,
    position: Optional[LocationPing] = None,
):
    _require_driver(actor, trip)

    with transaction.atomic():
        trip = _locked(trip)
        trip.complete(proof=proof, checklist=checklist)
        if position is not None:
            _append_location(trip, position)
            trip.current_lat = position.lat
            trip.current_lng = position.lng
            trip.last_location_at = position.recorded_at
            trip.save(update_fields=["current_lat", "current_lng", "last_location_at"])
        transaction.on_commit(lambda: notifications.notify_trip_completed(trip))

    logger.info("Trip %s completed, load %s delivered", trip.pk, trip.load_id)
    return trip


def cancel_trip(*, actor, trip, reason=""):
    if not (
        is_admin(actor)
        or trip.carrier_id == actor.pk
        or trip.load.created_by_id == actor.pk
    ):
        raise Forbidden("You cannot cancel this trip.")

    with transaction.atomic():
        trip = _locked(trip)
        trip.cancel(reason=reason)

    return trip


def trips_for(actor, status=None):
    queryset = Trip.objects.select_related("load", "carrier", "vehicle")
    if not is_admin(actor):
        queryset = queryset.filter(Q(carrier=actor) | Q(load__created_by=actor))
    if status:
        queryset = queryset.filter(status=status)
    return queryset.order_by("-created_at")


def recent_locations(trip, limit=RECENT_LOCATIONS):
    return list(trip.locations.order_by("-recorded_at", "-id")[:limit])
