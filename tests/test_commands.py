from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone

from accounts.models import User
from marketplace.models import Load, Offer, Vehicle

pytestmark = pytest.mark.django_db


def test_seed_demo_builds_a_marketplace():
    out = StringIO()
    call_command(
        "seed_demo",
        "--shippers=2",
        "--carriers=3",
        "--vehicles-per-carrier=1",
        "--loads=4",
        "--offers-per-load=2",
        "--seed=7",
        stdout=out,
    )

    assert User.objects.filter(role=User.Role.SHIPPER).count() == 2
    assert User.objects.filter(role=User.Role.CARRIER).count() == 3
    assert User.objects.filter(username="admin", role=User.Role.ADMIN).exists()
    assert Vehicle.objects.count() == 3
    assert Load.objects.filter(status=Load.Status.PUBLISHED).count() == 4
    assert Offer.objects.filter(status=Offer.Status.PENDING).count() == 8
    for load in Load.objects.all():
        assert load.min_price <= load.suggested_price <= load.max_price
    assert "Seed complete." in out.getvalue()


def test_expire_offers_command(offer_factory):
    offer_factory(expires_at=timezone.now() - timedelta(hours=1))
    offer_factory()

    out = StringIO()
    call_command("expire_offers", stdout=out)

    assert Offer.objects.filter(status=Offer.Status.EXPIRED).count() == 1
    assert "Expired offers: 1" in out.getvalue()
