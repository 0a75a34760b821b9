from decimal import Decimal

import pytest
from django.urls import reverse

from marketplace.models import Load, Offer
from marketplace.policies.navigation import get_sidebar_items

pytestmark = pytest.mark.django_db


def test_sidebar_depends_on_role(shipper, carrier):
    assert "create_load" in [item["url"] for item in get_sidebar_items(shipper)]
    assert "create_load" not in [item["url"] for item in get_sidebar_items(carrier)]
    assert get_sidebar_items(None) == []


def test_dashboard_requires_login(client):
    response = client.get(reverse("dashboard"))
    assert response.status_code == 302
    assert reverse("login") in response["Location"]


@pytest.mark.parametrize("role_fixture", ["shipper", "carrier"])
def test_dashboard_per_role(client, request, role_fixture):
    client.force_login(request.getfixturevalue(role_fixture))
    response = client.get(reverse("dashboard"))
    assert response.status_code == 200
    assert f"marketplace/_{role_fixture}_dashboard.html" in [
        t.name for t in response.templates
    ]


def test_owner_sees_offers_on_detail(client, offer_factory):
    offer = offer_factory(price=Decimal("640.00"))
    client.force_login(offer.load.created_by)

    response = client.get(reverse("load_detail", args=[offer.load_id]))

    assert response.status_code == 200
    assert response.context["show_offers"]
    assert b"640.00" in response.content


def test_carrier_does_not_see_competing_offers(client, offer_factory, carrier):
    offer = offer_factory()
    client.force_login(carrier)

    response = client.get(reverse("load_detail", args=[offer.load_id]))

    assert not response.context["show_offers"]
    assert "make_offer" in response.context["actions"]


def test_post_load_page_creates_draft(client, shipper):
    client.force_login(shipper)
    response = client.post(
        reverse("create_load"),
        {
            "title": "Cork boards",
            "origin_address": "Rua A 1",
            "origin_city": "Porto",
            "origin_country": "PT",
            "destination_address": "Calle B 2",
            "destination_city": "Madrid",
            "destination_country": "ES",
            "distance_km": "560",
            "weight_kg": "900",
            "pickup_date": "2030-01-10T08:00",
        },
    )

    load = Load.objects.get(title="Cork boards")
    assert response.status_code == 302
    assert response["Location"] == reverse("load_detail", args=[load.pk])
    assert load.status == Load.Status.DRAFT
    assert load.suggested_price is not None


def test_publish_and_accept_from_pages(client, load_factory, carrier_with_vehicle, offer_factory):
    load = load_factory()
    client.force_login(load.created_by)
    client.post(reverse("change_status", args=[load.pk, "publish"]))
    load.refresh_from_db()
    assert load.status == Load.Status.PUBLISHED

    offer = offer_factory(load=load, carrier=carrier_with_vehicle)
    response = client.post(reverse("decide_offer", args=[offer.pk, "accept"]), follow=True)

    assert Offer.objects.get(pk=offer.pk).status == Offer.Status.ACCEPTED
    assert "Trip scheduled" in response.content.decode()


def test_service_errors_become_messages(client, load_factory):
    load = load_factory(status=Load.Status.DELIVERED)
    client.force_login(load.created_by)

    response = client.post(reverse("change_status", args=[load.pk, "cancel"]), follow=True)

    messages = [str(m) for m in response.context["messages"]]
    assert messages == ["Load is already DELIVERED or CANCELLED."]
