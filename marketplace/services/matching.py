"""Find carriers that could take a load right now."""

from django.contrib.auth import get_user_model
from django.db.models import Prefetch

from marketplace.models import Vehicle

MAX_RESULTS = 20


def search_carriers(*, vehicle_type=None, limit=MAX_RESULTS):
    """
    Active carriers owning at least one active, available vehicle
    (of ``vehicle_type`` when given), best rated first.

    Each carrier carries its matching vehicles in ``matching_vehicles``.
    """
    User = get_user_model()
    vehicles = Vehicle.objects.filter(is_active=True, is_available=True)
    if vehicle_type:
        vehicles = vehicles.filter(vehicle_type=vehicle_type)

    return list(
        User.objects.filter(
            role=User.Role.CARRIER,
            status=User.Status.ACTIVE,
            is_active=True,
            pk__in=vehicles.values("owner_id"),
        )
        .prefetch_related(
            Prefetch(
                "vehicles",
                queryset=vehicles.order_by("created_at"),
                to_attr="matching_vehicles",
            )
        )
        .order_by("-rating_average", "pk")[: min(limit, MAX_RESULTS)]
    )
