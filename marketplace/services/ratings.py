"""
Ratings and the per-user rating aggregate.

Every write recomputes ``rating_average``/``rating_count`` of the rated user
from scratch with one aggregate query inside the same transaction, with the
rated user's row locked so concurrent ratings are applied one at a time.
"""

import logging

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Avg, Count

from marketplace.models import Rating
from marketplace.policies.roles import is_admin
from marketplace.services.exceptions import Conflict, Forbidden, NotFound, ValidationFailed

logger = logging.getLogger(__name__)


def recompute_user_rating(user_id):
    User = get_user_model()
    user = User.objects.select_for_update().get(pk=user_id)
    stats = Rating.objects.filter(to_user_id=user_id).aggregate(
        average=Avg("score"), count=Count("id")
    )
    user.rating_average = float(stats["average"] or 0)
    user.rating_count = stats["count"]
    user.save(update_fields=["rating_average", "rating_count", "updated_at"])
    return user


def get_rating(pk) -> Rating:
    rating = Rating.objects.filter(pk=pk).first()
    if rating is None:
        raise NotFound("Rating not found.")
    return rating


def create_rating(*, actor, to_user, score, comment="", load=None) -> Rating:
    if to_user.pk == actor.pk:
        raise ValidationFailed("You cannot rate yourself.")

    try:
        with transaction.atomic():
            if (
                load is not None
                and Rating.objects.filter(
                    from_user=actor, to_user=to_user, load=load
                ).exists()
            ):
                raise Conflict("You already rated this user for this load.")
            rating = Rating.objects.create(
                from_user=actor,
                to_user=to_user,
                load=load,
                score=score,
                comment=comment or "",
            )
            recompute_user_rating(to_user.pk)
    except IntegrityError:
        raise Conflict("You already rated this user for this load.")

    logger.info("User %s rated user %s: %s", actor.pk, to_user.pk, score)
    return rating


def update_rating(*, actor, rating, score=None, comment=None) -> Rating:
    if rating.from_user_id != actor.pk:
        raise Forbidden("Only the author can edit a rating.")

    with transaction.atomic():
        if score is not None:
            rating.score = score
        if comment is not None:
            rating.comment = comment
        rating.save()
        recompute_user_rating(rating.to_user_id)

    return rating


def delete_rating(*, actor, rating):
    if rating.from_user_id != actor.pk and not is_admin(actor):
        raise Forbidden("You cannot delete this rating.")

    with transaction.atomic():
        to_user_id = rating.to_user_id
        rating.delete()
        recompute_user_rating(to_user_id)


def ratings_for_user(user_id):
    return (
        Rating.objects.filter(to_user_id=user_id)
        .select_related("from_user", "load")
        .order_by("-created_at")
    )


def ratings_given_by(user_id):
    return (
        Rating.objects.filter(from_user_id=user_id)
        .select_related("to_user", "load")
        .order_by("-created_at")
    )
