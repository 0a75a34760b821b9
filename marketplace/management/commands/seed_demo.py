"""Seed demo data: shippers, carriers with vehicles, published loads and offers."""

import random
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from factory import random as factory_random
from faker import Faker

from marketplace import factories, pricing
from marketplace.models import Load
from marketplace.services.geocoding import Coordinates, straight_line_estimate


class Command(BaseCommand):
    help = "Seed demo data for shippers, carriers, vehicles, loads and offers"

    def add_arguments(self, parser):
        parser.add_argument("--shippers", type=int, default=3)
        parser.add_argument("--carriers", type=int, default=5)
        parser.add_argument("--vehicles-per-carrier", type=int, default=2)
        parser.add_argument("--loads", type=int, default=10)
        parser.add_argument("--offers-per-load", type=int, default=2)
        parser.add_argument(
            "--seed", type=int, default=None, help="Seed for Faker/random"
        )

    @transaction.atomic
    def handle(self, *args, **options):
        seed = options.get("seed")
        if seed is not None:
            random.seed(seed)
            factory_random.reseed_random(seed)
            Faker.seed(seed)
            self.stdout.write(self.style.NOTICE(f"Seeding randomness with seed={seed}"))

        admin = self._get_or_create_user("admin", role="admin")
        self.stdout.write(self.style.SUCCESS(f"Using admin user: {admin.username}"))

        self.stdout.write("Creating shippers...")
        shippers = factories.ShipperFactory.create_batch(options["shippers"])

        self.stdout.write("Creating carriers with vehicles...")
        carriers = []
        for _ in range(options["carriers"]):
            carrier = factories.CarrierFactory()
            carriers.append(carrier)
            factories.VehicleFactory.create_batch(
                options["vehicles_per_carrier"], owner=carrier
            )

        self.stdout.write("Creating published loads with offers...")
        offers_created = 0
        for _ in range(options["loads"]):
            load = self._create_load(random.choice(shippers))
            bidders = random.sample(carriers, min(options["offers_per_load"], len(carriers)))
            for carrier in bidders:
                factor = Decimal(random.randint(85, 110)) / 100
                factories.OfferFactory(
                    load=load,
                    carrier=carrier,
                    price=pricing.to_cents(load.suggested_price * factor),
                )
                offers_created += 1

        self.stdout.write(self.style.SUCCESS("Seed complete."))
        self.stdout.write(
            self.style.SUCCESS(
                f"Shippers: {len(shippers)}, Carriers: {len(carriers)}, "
                f"Vehicles: {len(carriers) * options['vehicles_per_carrier']}, "
                f"Loads: {options['loads']}, Offers: {offers_created}"
            )
        )

    def _create_load(self, shipper):
        route = factories.random_route()
        estimate = straight_line_estimate(
            Coordinates(route["origin_lat"], route["origin_lng"]),
            Coordinates(route["destination_lat"], route["destination_lng"]),
        )
        load_type = random.choice(Load.LoadType.values)
        weight = Decimal(random.choice([800, 2500, 7000, 15000, 24000]))
        price = pricing.compute_price(
            estimate.distance_km,
            weight,
            load_type,
            route["origin_country"],
            route["destination_country"],
        )
        price_range = pricing.suggested_price_range(price)
        return factories.PublishedLoadFactory(
            created_by=shipper,
            load_type=load_type,
            weight_kg=weight,
            distance_km=Decimal(estimate.distance_km),
            estimated_duration_minutes=estimate.duration_minutes,
            suggested_price=price,
            min_price=price_range.min_price,
            max_price=price_range.max_price,
            **route,
        )

    def _get_or_create_user(self, username: str, role: str):
        User = get_user_model()
        user, created = User.objects.get_or_create(
            username=username,
            defaults={
                "email": f"{username}@example.com",
                "role": role,
                "status": "active",
                "is_staff": True,
            },
        )
        if created:
            user.set_password("password123")
            user.save()
        return user
