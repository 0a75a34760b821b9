import json

import pytest
from django.test import Client

from accounts.tokens import create_access_token
from marketplace.factories import (
    AdminFactory,
    CarrierFactory,
    LoadFactory,
    OfferFactory,
    PublishedLoadFactory,
    RatingFactory,
    ShipperFactory,
    VehicleFactory,
)
from marketplace.services.payments import ChargeResult


@pytest.fixture
def shipper_factory():
    return ShipperFactory


@pytest.fixture
def carrier_factory():
    return CarrierFactory


@pytest.fixture
def admin_factory():
    return AdminFactory


@pytest.fixture
def vehicle_factory():
    return VehicleFactory


@pytest.fixture
def load_factory():
    return LoadFactory


@pytest.fixture
def published_load_factory():
    return PublishedLoadFactory


@pytest.fixture
def offer_factory():
    return OfferFactory


@pytest.fixture
def rating_factory():
    return RatingFactory


@pytest.fixture
def shipper(shipper_factory):
    return shipper_factory(country="PT")


@pytest.fixture
def carrier(carrier_factory):
    return carrier_factory()


@pytest.fixture
def carrier_with_vehicle(carrier, vehicle_factory):
    vehicle_factory(owner=carrier)
    return carrier


class ApiClient:
    """Django test client speaking JSON with an optional bearer token."""

    def __init__(self, user=None):
        self.client = Client()
        self.user = user

    def _headers(self):
        if self.user is None:
            return {}
        return {"HTTP_AUTHORIZATION": f"Bearer {create_access_token(self.user)}"}

    def _send(self, method, path, data=None):
        body = json.dumps(data) if data is not None else ""
        return getattr(self.client, method)(
            path, data=body, content_type="application/json", **self._headers()
        )

    def get(self, path, params=None):
        return self.client.get(path, data=params or {}, **self._headers())

    def post(self, path, data=None):
        return self._send("post", path, data)

    def put(self, path, data=None):
        return self._send("put", path, data)

    def patch(self, path, data=None):
        return self._send("patch", path, data)

    def delete(self, path):
        return self._send("delete", path)


@pytest.fixture
def api_client():
    def make_client(user=None):
        return ApiClient(user)

    return make_client


class FakeGateway:
    """Payment gateway double: records charges, answers with a fixed result."""

    def __init__(self, success=True, status="succeeded"):
        self.success = success
        self.status = status
        self.charges = []

    def charge(self, **kwargs):
        self.charges.append(kwargs)
        if self.success:
            return ChargeResult(
                success=True, reference=f"pi_{len(self.charges)}", status=self.status
            )
        return ChargeResult(
            success=False,
            reference="",
            status=self.status,
            message="Your card was declined.",
        )


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def declining_gateway():
    return FakeGateway(success=False, status="card_declined")
