import pytest

from marketplace.models import Rating
from marketplace.services import ratings
from marketplace.services.exceptions import Conflict, Forbidden, ValidationFailed

pytestmark = pytest.mark.django_db


def test_average_follows_every_rating(carrier, shipper_factory):
    for score in (5, 3, 4):
        ratings.create_rating(actor=shipper_factory(), to_user=carrier, score=score)

    carrier.refresh_from_db()
    assert carrier.rating_count == 3
    assert carrier.rating_average == pytest.approx(4.0)


def test_average_is_not_rounded(carrier, shipper_factory):
    for score in (5, 4, 4):
        ratings.create_rating(actor=shipper_factory(), to_user=carrier, score=score)

    carrier.refresh_from_db()
    assert carrier.rating_average == pytest.approx(13 / 3)


def test_update_and_delete_recompute(carrier, shipper):
    rating = ratings.create_rating(actor=shipper, to_user=carrier, score=2)
    ratings.update_rating(actor=shipper, rating=rating, score=5, comment="Changed my mind")

    carrier.refresh_from_db()
    assert carrier.rating_average == pytest.approx(5.0)
    assert Rating.objects.get(pk=rating.pk).comment == "Changed my mind"

    ratings.delete_rating(actor=shipper, rating=rating)
    carrier.refresh_from_db()
    assert carrier.rating_count == 0
    assert carrier.rating_average == 0


def test_cannot_rate_yourself(carrier):
    with pytest.raises(ValidationFailed):
        ratings.create_rating(actor=carrier, to_user=carrier, score=5)


def test_one_rating_per_load(carrier, shipper, published_load_factory):
    load = published_load_factory(created_by=shipper)
    ratings.create_rating(actor=shipper, to_user=carrier, score=4, load=load)
    with pytest.raises(Conflict):
        ratings.create_rating(actor=shipper, to_user=carrier, score=1, load=load)

    carrier.refresh_from_db()
    assert carrier.rating_count == 1


def test_ratings_without_load_may_repeat(carrier, shipper):
    ratings.create_rating(actor=shipper, to_user=carrier, score=4)
    ratings.create_rating(actor=shipper, to_user=carrier, score=2)

    carrier.refresh_from_db()
    assert carrier.rating_count == 2


def test_only_author_edits(rating_factory, carrier_factory):
    rating = rating_factory()
    with pytest.raises(Forbidden):
        ratings.update_rating(actor=carrier_factory(), rating=rating, score=1)


def test_admin_may_delete(rating_factory, admin_factory):
    rating = rating_factory(score=1)
    ratings.delete_rating(actor=admin_factory(), rating=rating)
    assert not Rating.objects.filter(pk=rating.pk).exists()
    rating.to_user.refresh_from_db()
    assert rating.to_user.rating_count == 0
