from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from marketplace.models import Load, Offer, Trip
from marketplace.policies.load_actions import actions_for
from marketplace.services import loads
from marketplace.services.exceptions import Conflict, Forbidden, NotFound
from marketplace.services.geocoding import Coordinates, RouteEstimate
from marketplace.signals import load_published

pytestmark = pytest.mark.django_db


class FakeGeocoder:
    def __init__(self, distance_km=800, duration_minutes=540):
        self.route = RouteEstimate(distance_km, duration_minutes, "fake")
        self.geocoded = []

    def geocode(self, address):
        self.geocoded.append(address)
        return Coordinates(40.0, -8.0)

    def distance(self, origin, destination):
        return self.route


def load_data(**overrides):
    data = {
        "title": "12 pallets of tiles",
        "origin_address": "Rua Augusta 1",
        "origin_city": "Lisboa",
        "origin_country": "pt",
        "destination_address": "Gran Via 1",
        "destination_city": "Madrid",
        "destination_country": "es",
        "load_type": Load.LoadType.GENERAL,
        "weight_kg": Decimal("5000"),
        "pickup_date": timezone.now() + timedelta(days=2),
    }
    data.update(overrides)
    return data


def test_create_load_geocodes_and_prices(shipper):
    geocoder = FakeGeocoder()
    load = loads.create_load(actor=shipper, data=load_data(), geocoder=geocoder)

    load.refresh_from_db()
    assert load.status == Load.Status.DRAFT
    assert load.created_by == shipper
    assert load.origin_country == "PT"
    assert load.destination_country == "ES"
    assert load.origin_lat == 40.0
    assert len(geocoder.geocoded) == 2
    assert load.distance_km == Decimal("800")
    assert load.estimated_duration_minutes == 540
    assert load.suggested_price == Decimal("935.00")
    assert load.min_price == Decimal("794.75")
    assert load.max_price == Decimal("1028.50")


def test_client_distance_and_price_win(shipper):
    data = load_data(
        distance_km=Decimal("100"),
        suggested_price=Decimal("500.00"),
        origin_lat=38.7,
        origin_lng=-9.1,
        destination_lat=40.4,
        destination_lng=-3.7,
    )
    geocoder = FakeGeocoder(distance_km=999)
    load = loads.create_load(actor=shipper, data=data, geocoder=geocoder)

    assert geocoder.geocoded == []
    assert load.distance_km == Decimal("100")
    assert load.estimated_duration_minutes == 540
    assert load.suggested_price == Decimal("500.00")
    assert load.min_price == Decimal("425.00")


def test_carrier_cannot_create_load(carrier):
    with pytest.raises(Forbidden):
        loads.create_load(actor=carrier, data=load_data(), geocoder=FakeGeocoder())


def test_publish_opens_load_for_seven_days(load_factory, django_capture_on_commit_callbacks):
    load = load_factory()
    received = []

    def receiver(sender, load, **kwargs):
        received.append(load.pk)

    load_published.connect(receiver)
    try:
        with django_capture_on_commit_callbacks(execute=True):
            loads.publish_load(actor=load.created_by, load=load)
    finally:
        load_published.disconnect(receiver)

    load.refresh_from_db()
    assert load.status == Load.Status.PUBLISHED
    assert load.published_at is not None
    assert load.expires_at - load.published_at == timedelta(days=7)
    assert received == [load.pk]


def test_publish_twice_conflicts(load_factory):
    load = load_factory()
    loads.publish_load(actor=load.created_by, load=load)
    with pytest.raises(Conflict):
        loads.publish_load(actor=load.created_by, load=load)


def test_only_owner_publishes(load_factory, shipper_factory):
    load = load_factory()
    with pytest.raises(Forbidden):
        loads.publish_load(actor=shipper_factory(), load=load)
    load.refresh_from_db()
    assert load.status == Load.Status.DRAFT


def test_admin_manages_any_load(load_factory, admin_factory):
    load = load_factory()
    loads.publish_load(actor=admin_factory(), load=load)
    load.refresh_from_db()
    assert load.status == Load.Status.PUBLISHED


def test_update_load_while_open(published_load_factory):
    load = published_load_factory()
    updated = loads.update_load(
        actor=load.created_by, load=load, data={"title": "New title"}
    )
    assert updated.title == "New title"


@pytest.mark.parametrize(
    "status",
    [Load.Status.ACCEPTED, Load.Status.IN_TRANSIT, Load.Status.DELIVERED],
)
def test_update_locked_load_conflicts(load_factory, status):
    load = load_factory(status=status)
    with pytest.raises(Conflict):
        loads.update_load(actor=load.created_by, load=load, data={"title": "Nope"})
    load.refresh_from_db()
    assert load.title != "Nope"


def test_cancelled_load_stays_editable(load_factory):
    load = load_factory(status=Load.Status.CANCELLED)
    updated = loads.update_load(
        actor=load.created_by, load=load, data={"title": "Relisted copy"}
    )
    assert updated.title == "Relisted copy"
    assert updated.status == Load.Status.CANCELLED


def test_delete_only_drafts(load_factory, published_load_factory):
    draft = load_factory()
    loads.delete_load(actor=draft.created_by, load=draft)
    assert not Load.objects.filter(pk=draft.pk).exists()

    published = published_load_factory()
    with pytest.raises(Conflict):
        loads.delete_load(actor=published.created_by, load=published)


@pytest.mark.parametrize(
    "status",
    [
        Load.Status.DRAFT,
        Load.Status.PUBLISHED,
        Load.Status.IN_NEGOTIATION,
        Load.Status.ACCEPTED,
        Load.Status.IN_TRANSIT,
    ],
)
def test_cancel_from_non_terminal_states(load_factory, status):
    load = load_factory(status=status, final_price=Decimal("650.00"))
    loads.cancel_load(actor=load.created_by, load=load)
    load.refresh_from_db()
    assert load.status == Load.Status.CANCELLED
    assert load.cancelled_at is not None
    assert load.final_price == Decimal("650.00")


@pytest.mark.parametrize("status", [Load.Status.DELIVERED, Load.Status.CANCELLED])
def test_cancel_terminal_load_conflicts(load_factory, status):
    load = load_factory(status=status)
    with pytest.raises(Conflict):
        loads.cancel_load(actor=load.created_by, load=load)


def test_cancel_accepted_load_cancels_its_trip(
    published_load_factory, carrier_with_vehicle, offer_factory
):
    from marketplace.services import offers

    load = published_load_factory()
    offer = offer_factory(load=load, carrier=carrier_with_vehicle)
    result = offers.accept_offer(actor=load.created_by, offer=offer)

    loads.cancel_load(actor=load.created_by, load=load)

    trip = Trip.objects.get(pk=result.trip.pk)
    assert trip.status == Trip.Status.CANCELLED
    assert trip.cancellation_reason == "Load cancelled"
    trip.vehicle.refresh_from_db()
    assert trip.vehicle.is_available
    assert Offer.objects.get(pk=offer.pk).status == Offer.Status.ACCEPTED


def test_assigned_carrier_may_cancel(published_load_factory, carrier_with_vehicle, offer_factory):
    from marketplace.services import offers

    load = published_load_factory()
    offer = offer_factory(load=load, carrier=carrier_with_vehicle)
    offers.accept_offer(actor=load.created_by, offer=offer)

    loads.cancel_load(actor=carrier_with_vehicle, load=load)
    load.refresh_from_db()
    assert load.status == Load.Status.CANCELLED


def test_draft_is_hidden_from_strangers(load_factory, carrier):
    load = load_factory()
    with pytest.raises(NotFound):
        loads.visible_load(actor=carrier, pk=load.pk)
    with pytest.raises(NotFound):
        loads.visible_load(actor=None, pk=load.pk)
    assert loads.visible_load(actor=load.created_by, pk=load.pk) == load


def test_published_load_is_public(published_load_factory):
    load = published_load_factory()
    assert loads.visible_load(actor=None, pk=load.pk) == load


def test_load_board_filters(published_load_factory, load_factory):
    to_spain = published_load_factory(destination_country="ES", weight_kg=Decimal("800"))
    published_load_factory(destination_country="FR", weight_kg=Decimal("9000"))
    load_factory(destination_country="ES")  # draft, never on the board

    board = loads.load_board({"destination_country": "es"})
    assert list(board) == [to_spain]

    heavy = loads.load_board({"min_weight": Decimal("1000")})
    assert [load.destination_country for load in heavy] == ["FR"]


def test_actions_follow_status(load_factory, carrier):
    load = load_factory()
    assert {"publish_load", "delete_load"} <= set(actions_for(load.created_by, load))
    assert actions_for(carrier, load) == []

    load.status = Load.Status.PUBLISHED
    assert actions_for(carrier, load) == ["make_offer"]
