"""Profile edits, admin account moderation and per-user activity counts."""

import logging

from django.contrib.auth import get_user_model
from django.db import transaction

from marketplace.models import Load, Offer, Trip
from marketplace.policies.roles import is_admin
from marketplace.services.exceptions import Forbidden, NotFound, ValidationFailed

logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    "first_name",
    "last_name",
    "phone",
    "company_name",
    "country",
    "fiscal_number",
)


def get_user(pk):
    user = get_user_model().objects.filter(pk=pk).first()
    if user is None:
        raise NotFound("User not found.")
    return user


def user_stats(user) -> dict:
    return {
        "loads": Load.objects.filter(created_by=user).count(),
        "offers": Offer.objects.filter(carrier=user).count(),
        "trips": Trip.objects.filter(carrier=user).count(),
        "completed_trips": user.completed_trips,
        "rating_average": user.rating_average,
        "rating_count": user.rating_count,
    }


def update_profile(*, actor, data):
    changed = [name for name in PROFILE_FIELDS if name in data]
    for name in changed:
        setattr(actor, name, data[name])
    actor.save(update_fields=[*changed, "updated_at"])
    return actor


def _require_admin(actor):
    if not is_admin(actor):
        raise Forbidden("Only admins can moderate accounts.")


def update_user_status(*, actor, user, status):
    _require_admin(actor)
    User = get_user_model()
    if status not in User.Status.values:
        raise ValidationFailed("Unknown account status.")
    if user.pk == actor.pk and status != User.Status.ACTIVE:
        raise ValidationFailed("You cannot suspend your own account.")

    with transaction.atomic():
        user = User.objects.select_for_update().get(pk=user.pk)
        user.status = status
        user.is_active = status not in (User.Status.SUSPENDED, User.Status.BLOCKED)
        user.save(update_fields=["status", "is_active", "updated_at"])

    logger.info("Admin %s set user %s to %s", actor.pk, user.pk, status)
    return user


def verify_documents(*, actor, user, verified):
    """Verified accounts become ACTIVE; revoking sends them back to PENDING."""
    _require_admin(actor)
    User = get_user_model()

    with transaction.atomic():
        user = User.objects.select_for_update().get(pk=user.pk)
        user.is_documents_verified = verified
        user.status = User.Status.ACTIVE if verified else User.Status.PENDING
        user.is_active = True
        user.save(
            update_fields=["is_documents_verified", "status", "is_active", "updated_at"]
        )

    logger.info(
        "Admin %s %s documents of user %s",
        actor.pk,
        "verified" if verified else "revoked",
        user.pk,
    )
    return user
