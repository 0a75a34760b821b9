def is_shipper(user) -> bool:
    return getattr(user, "role", None) == "shipper"


def is_carrier(user) -> bool:
    return getattr(user, "role", None) == "carrier"


def is_admin(user) -> bool:
    return getattr(user, "role", None) == "admin" or getattr(user, "is_superuser", False)


def owns_load(user, load) -> bool:
    return load.created_by_id == getattr(user, "pk", None)


def can_manage_load(user, load) -> bool:
    """Owner or admin: edit, publish, delete, decide on offers."""
    return is_admin(user) or owns_load(user, load)


def is_assigned_carrier(user, load) -> bool:
    return load.assigned_carrier_id() == getattr(user, "pk", None)


def can_view_trip(user, trip) -> bool:
    return (
        is_admin(user)
        or trip.carrier_id == getattr(user, "pk", None)
        or trip.load.created_by_id == getattr(user, "pk", None)
    )
