import logging

from django.db import transaction

from marketplace import pricing
from marketplace.models import Load
from marketplace.policies.roles import (
    can_manage_load,
    is_admin,
    is_assigned_carrier,
    is_shipper,
)
from marketplace.services.exceptions import Conflict, Forbidden, NotFound
from marketplace.services.geocoding import Coordinates
from marketplace.signals import load_published

logger = logging.getLogger(__name__)

# Fields a shipper may change through create/edit. status, final_price and
# created_by only move through transitions.
EDITABLE_FIELDS = (
    "title",
    "description",
    "origin_address",
    "origin_city",
    "origin_postal_code",
    "origin_country",
    "origin_lat",
    "origin_lng",
    "destination_address",
    "destination_city",
    "destination_postal_code",
    "destination_country",
    "destination_lat",
    "destination_lng",
    "distance_km",
    "estimated_duration_minutes",
    "load_type",
    "weight_kg",
    "volume_m3",
    "pallet_count",
    "pickup_date",
    "delivery_date",
    "suggested_price",
    "min_price",
    "max_price",
    "requires_refrigeration",
    "requires_insurance",
    "requires_adr",
    "requires_cmr",
    "required_vehicle_type",
)


def requirement_flags(load) -> pricing.RequirementFlags:
    return pricing.RequirementFlags(
        insurance=load.requires_insurance,
        cmr=load.requires_cmr,
        adr=load.requires_adr,
    )


def _full_address(address, postal_code, city, country):
    return ", ".join(part for part in (address, postal_code, city, country) if part)


def _locate(load, geocoder):
    """Fill missing coordinates, distance and duration from the geocoder."""
    if load.origin_lat is None or load.origin_lng is None:
        point = geocoder.geocode(
            _full_address(
                load.origin_address,
                load.origin_postal_code,
                load.origin_city,
                load.origin_country,
            )
        )
        if point is not None:
            load.origin_lat, load.origin_lng = point.lat, point.lng

    if load.destination_lat is None or load.destination_lng is None:
        point = geocoder.geocode(
            _full_address(
                load.destination_address,
                load.destination_postal_code,
                load.destination_city,
                load.destination_country,
            )
        )
        if point is not None:
            load.destination_lat, load.destination_lng = point.lat, point.lng

    has_coordinates = None not in (
        load.origin_lat,
        load.origin_lng,
        load.destination_lat,
        load.destination_lng,
    )
    if has_coordinates and (
        load.distance_km is None or load.estimated_duration_minutes is None
    ):
        route = geocoder.distance(
            Coordinates(load.origin_lat, load.origin_lng),
            Coordinates(load.destination_lat, load.destination_lng),
        )
        # a distance sent by the client wins over the provider's
        if load.distance_km is None:
            load.distance_km = route.distance_km
        if load.estimated_duration_minutes is None:
            load.estimated_duration_minutes = route.duration_minutes


def _apply_pricing(load):
    if load.suggested_price is None and load.distance_km is not None:
        load.suggested_price = pricing.compute_price(
            load.distance_km,
            load.weight_kg,
            load.load_type,
            load.origin_country,
            load.destination_country,
            requirement_flags(load),
        )
    if load.suggested_price is not None:
        price_range = pricing.suggested_price_range(load.suggested_price)
        if load.min_price is None:
            load.min_price = price_range.min_price
        if load.max_price is None:
            load.max_price = price_range.max_price


def _assign(load, data):
    for field in EDITABLE_FIELDS:
        if field in data:
            setattr(load, field, data[field])
    load.origin_country = (load.origin_country or "").upper()
    load.destination_country = (load.destination_country or "").upper()


def _locked(load):
    return Load.objects.select_for_update().get(pk=load.pk)


def create_load(*, actor, data, geocoder) -> Load:
    """
    Create a DRAFT load owned by ``actor``.

    Coordinates are geocoded when missing, distance comes from the client or
    the geocoder, and the suggested price range is computed when not given.
    """
    if not (is_shipper(actor) or is_admin(actor)):
        raise Forbidden("Only shippers can create loads.")

    load = Load(created_by=actor, status=Load.Status.DRAFT)
    _assign(load, data)
    _locate(load, geocoder)
    _apply_pricing(load)

    with transaction.atomic():
        load.save()

    logger.info("Load %s created by user %s", load.pk, actor.pk)
    return load


def update_load(*, actor, load, data) -> Load:
    if not can_manage_load(actor, load):
        raise Forbidden("You cannot edit this load.")

    with transaction.atomic():
        load = _locked(load)
        if load.is_locked:
            raise Conflict(
                f"Load cannot be edited in {load.get_status_display()} status."
            )
        _assign(load, data)
        load.save()

    return load


def publish_load(*, actor, load) -> Load:
    if not can_manage_load(actor, load):
        raise Forbidden("You cannot publish this load.")

    with transaction.atomic():
        load = _locked(load)
        load.publish()
        transaction.on_commit(lambda: load_published.send(sender=Load, load=load))

    return load


def cancel_load(*, actor, load) -> Load:
    if not (can_manage_load(actor, load) or is_assigned_carrier(actor, load)):
        raise Forbidden("You cannot cancel this load.")

    with transaction.atomic():
        load = _locked(load)
        load.cancel()

    return load


def delete_load(*, actor, load):
    if not can_manage_load(actor, load):
        raise Forbidden("You cannot delete this load.")

    with transaction.atomic():
        load = _locked(load)
        if load.status != Load.Status.DRAFT:
            raise Conflict("Only draft loads can be deleted.")
        load_id = load.pk
        load.delete()

    logger.info("Load %s deleted by user %s", load_id, actor.pk)


def get_load(pk) -> Load:
    load = Load.objects.select_related("created_by").filter(pk=pk).first()
    if load is None:
        raise NotFound("Load not found.")
    return load


def visible_load(*, actor, pk) -> Load:
    """Published loads are public; anything else only to its parties."""
    load = get_load(pk)
    if load.status in Load.OPEN_FOR_OFFERS:
        return load
    if actor is None or not getattr(actor, "is_authenticated", False):
        raise NotFound("Load not found.")
    if can_manage_load(actor, load) or is_assigned_carrier(actor, load):
        return load
    raise NotFound("Load not found.")


def load_board(filters=None):
    """Open loads for carriers, newest first."""
    filters = filters or {}
    queryset = Load.objects.filter(status=Load.Status.PUBLISHED).select_related(
        "created_by"
    )
    if filters.get("origin_country"):
        queryset = queryset.filter(origin_country=filters["origin_country"].upper())
    if filters.get("destination_country"):
        queryset = queryset.filter(
            destination_country=filters["destination_country"].upper()
        )
    if filters.get("load_type"):
        queryset = queryset.filter(load_type=filters["load_type"])
    if filters.get("min_weight") is not None:
        queryset = queryset.filter(weight_kg__gte=filters["min_weight"])
    if filters.get("max_weight") is not None:
        queryset = queryset.filter(weight_kg__lte=filters["max_weight"])
    return queryset.order_by("-published_at", "-created_at")


def loads_of(actor, status=None):
    queryset = Load.objects.filter(created_by=actor)
    if status:
        queryset = queryset.filter(status=status)
    return queryset.order_by("-created_at")
