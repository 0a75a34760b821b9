import logging

from marketplace.models import Vehicle
from marketplace.policies.roles import is_admin, is_carrier
from marketplace.services.exceptions import Forbidden

logger = logging.getLogger(__name__)


def register_vehicle(*, actor, data) -> Vehicle:
    if not (is_carrier(actor) or is_admin(actor)):
        raise Forbidden("Only carriers can register vehicles.")
    vehicle = Vehicle.objects.create(
        owner=actor,
        plate=data["plate"].upper(),
        vehicle_type=data["vehicle_type"],
        capacity_kg=data.get("capacity_kg") or 0,
    )
    logger.info("Vehicle %s registered by carrier %s", vehicle.plate, actor.pk)
    return vehicle


def vehicles_of(actor):
    return Vehicle.objects.filter(owner=actor, is_active=True).order_by("created_at")
