"""Factories for generating demo/test data with factory_boy and Faker.

Use sequences for unique identifiers and Faker for descriptive fields.
"""

import random
from datetime import timedelta
from decimal import Decimal

import factory
from django.contrib.auth import get_user_model
from django.utils import timezone
from factory import Faker
from factory.django import DjangoModelFactory

from . import models

EU_CITIES = [
    ("Lisboa", "PT", 38.7223, -9.1393),
    ("Porto", "PT", 41.1579, -8.6291),
    ("Madrid", "ES", 40.4168, -3.7038),
    ("Barcelona", "ES", 41.3874, 2.1686),
    ("Paris", "FR", 48.8566, 2.3522),
    ("Lyon", "FR", 45.7640, 4.8357),
    ("Berlin", "DE", 52.5200, 13.4050),
    ("Munich", "DE", 48.1351, 11.5820),
    ("Milan", "IT", 45.4642, 9.1900),
    ("Warsaw", "PL", 52.2297, 21.0122),
]


class UserFactory(DjangoModelFactory):
    class Meta:
        model = get_user_model()
        django_get_or_create = ("username",)

    username = factory.Sequence(lambda n: f"user{n}")
    email = factory.LazyAttribute(lambda obj: f"{obj.username}@example.com")
    first_name = Faker("first_name")
    last_name = Faker("last_name")
    role = "shipper"
    company_name = Faker("company")
    country = "PT"
    status = "active"
    is_active = True

    @classmethod
    def _create(cls, model_class, *args, **kwargs):
        password = kwargs.pop("password", "password123")
        user = super()._create(model_class, *args, **kwargs)
        user.set_password(password)
        user.save()
        return user


class ShipperFactory(UserFactory):
    username = factory.Sequence(lambda n: f"shipper{n}")
    role = "shipper"


class CarrierFactory(UserFactory):
    username = factory.Sequence(lambda n: f"carrier{n}")
    role = "carrier"
    is_documents_verified = True


class AdminFactory(UserFactory):
    username = factory.Sequence(lambda n: f"admin{n}")
    role = "admin"
    is_staff = True


class VehicleFactory(DjangoModelFactory):
    class Meta:
        model = models.Vehicle

    owner = factory.SubFactory(CarrierFactory)
    plate = factory.Sequence(lambda n: f"AA-{n % 100:02d}-{n // 100 % 100:02d}-{n}")
    vehicle_type = models.Vehicle.VehicleType.SEMI_TRAILER
    capacity_kg = 24000
    is_available = True


class LoadFactory(DjangoModelFactory):
    """A PT → ES general load; pass ``status`` to start elsewhere in the workflow."""

    class Meta:
        model = models.Load

    created_by = factory.SubFactory(ShipperFactory)
    title = Faker("catch_phrase")
    description = ""
    origin_address = Faker("street_address")
    origin_city = "Lisboa"
    origin_country = "PT"
    origin_lat = 38.7223
    origin_lng = -9.1393
    destination_address = Faker("street_address")
    destination_city = "Madrid"
    destination_country = "ES"
    destination_lat = 40.4168
    destination_lng = -3.7038
    distance_km = Decimal("800")
    estimated_duration_minutes = 600
    load_type = models.Load.LoadType.GENERAL
    weight_kg = Decimal("5000")
    pickup_date = factory.LazyFunction(lambda: timezone.now() + timedelta(days=2))
    delivery_date = factory.LazyFunction(lambda: timezone.now() + timedelta(days=3))
    suggested_price = Decimal("935.00")
    status = models.Load.Status.DRAFT


class PublishedLoadFactory(LoadFactory):
    status = models.Load.Status.PUBLISHED
    published_at = factory.LazyFunction(timezone.now)
    expires_at = factory.LazyFunction(lambda: timezone.now() + timedelta(days=7))


class OfferFactory(DjangoModelFactory):
    class Meta:
        model = models.Offer

    load = factory.SubFactory(PublishedLoadFactory)
    carrier = factory.SubFactory(CarrierFactory)
    price = Decimal("700.00")
    estimated_pickup_at = factory.LazyAttribute(lambda o: o.load.pickup_date)
    estimated_delivery_at = factory.LazyAttribute(lambda o: o.load.delivery_date)
    message = ""


class RatingFactory(DjangoModelFactory):
    class Meta:
        model = models.Rating

    from_user = factory.SubFactory(ShipperFactory)
    to_user = factory.SubFactory(CarrierFactory)
    load = None
    score = factory.LazyFunction(lambda: random.randint(1, 5))
    comment = Faker("sentence")


def random_route():
    origin, destination = random.sample(EU_CITIES, 2)
    return {
        "origin_city": origin[0],
        "origin_country": origin[1],
        "origin_lat": origin[2],
        "origin_lng": origin[3],
        "destination_city": destination[0],
        "destination_country": destination[1],
        "destination_lat": destination[2],
        "destination_lng": destination[3],
    }
