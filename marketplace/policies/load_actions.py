from marketplace.models import Load, Offer
from marketplace.policies.roles import (
    can_manage_load,
    is_admin,
    is_assigned_carrier,
    is_carrier,
    owns_load,
)


def actions_for(user, load: Load) -> list[str]:
    actions: list[str] = []

    if can_manage_load(user, load):
        if load.status == Load.Status.DRAFT:
            actions.extend(["publish_load", "delete_load"])
        if not load.is_locked and load.status != Load.Status.CANCELLED:
            actions.append("edit_load")
        if load.is_open_for_offers:
            actions.append("review_offers")

    if is_carrier(user) and not owns_load(user, load) and load.is_open_for_offers:
        has_pending = load.offers.filter(
            carrier=user, status=Offer.Status.PENDING
        ).exists()
        if not has_pending:
            actions.append("make_offer")

    if load.status not in Load.TERMINAL_STATUSES and (
        can_manage_load(user, load) or is_assigned_carrier(user, load)
    ):
        actions.append("cancel_load")

    if load.status == Load.Status.DELIVERED and (
        is_admin(user) or is_assigned_carrier(user, load)
    ):
        if not hasattr(load, "invoice"):
            actions.append("issue_invoice")

    return actions
