"""
Freight pricing engine.

Pure functions, no database access. All money is ``Decimal`` and every
published amount is rounded to cents with ROUND_HALF_UP (half away from zero
for the non-negative amounts handled here).

    price = distance * mean(origin zone rate, destination zone rate)
            * load type multiplier
            * weight tier multiplier
            * international surcharge (origin country != destination country)
            + insurance / CMR / ADR add-ons
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from django.conf import settings

from marketplace.services.exceptions import InvalidInput

CENT = Decimal("0.01")


@dataclass(frozen=True)
class Zone:
    name: str
    countries: frozenset
    base_rate: Decimal  # EUR per km


ZONES = (
    Zone("ZONE_1", frozenset({"PT", "ES"}), Decimal("0.85")),
    Zone("ZONE_2", frozenset({"FR", "BE", "NL", "LU"}), Decimal("0.95")),
    Zone("ZONE_3", frozenset({"DE", "AT", "CH"}), Decimal("1.05")),
    Zone("ZONE_4", frozenset({"IT", "GR"}), Decimal("0.90")),
    Zone("ZONE_5", frozenset({"PL", "CZ", "HU", "SK", "SI", "HR"}), Decimal("0.75")),
    Zone("ZONE_6", frozenset({"DK", "SE", "FI", "NO"}), Decimal("1.15")),
    Zone("ZONE_7", frozenset({"EE", "LV", "LT"}), Decimal("0.80")),
    Zone("ZONE_8", frozenset({"RO", "BG"}), Decimal("0.70")),
)
DEFAULT_ZONE = ZONES[0]

LOAD_TYPE_MULTIPLIERS = {
    "GENERAL": Decimal("1.0"),
    "PALLETIZED": Decimal("1.1"),
    "REFRIGERATED": Decimal("1.4"),
    "FRAGILE": Decimal("1.2"),
    "HAZARDOUS": Decimal("1.8"),  # ADR
    "OVERSIZED": Decimal("1.5"),
    "LIQUID": Decimal("1.3"),
    "BULK": Decimal("1.15"),
}

# (upper bound in kg inclusive, multiplier); heavier than the last bound -> 1.4
WEIGHT_TIERS = (
    (Decimal("1000"), Decimal("1.0")),
    (Decimal("5000"), Decimal("1.1")),
    (Decimal("10000"), Decimal("1.2")),
    (Decimal("20000"), Decimal("1.3")),
)
HEAVIEST_TIER_MULTIPLIER = Decimal("1.4")

INTERNATIONAL_MULTIPLIER = Decimal("1.25")

INSURANCE_FEE = Decimal("50")
CMR_FEE = Decimal("30")
ADR_FEE = Decimal("100")

RANGE_MIN_FACTOR = Decimal("0.85")
RANGE_MAX_FACTOR = Decimal("1.10")

# Operational cost model (carrier side)
FUEL_CONSUMPTION_L_PER_100KM = {
    "VAN": Decimal("8"),
    "TRUCK_3_5T": Decimal("12"),
    "TRUCK_7_5T": Decimal("18"),
    "TRUCK_12T": Decimal("22"),
    "TRUCK_18T": Decimal("28"),
    "TRUCK_24T": Decimal("32"),
    "SEMI_TRAILER": Decimal("35"),
    "REFRIGERATED": Decimal("40"),
    "TANKER": Decimal("38"),
}
DEFAULT_FUEL_CONSUMPTION = Decimal("25")
FUEL_PRICE_PER_LITER = Decimal("1.65")
TOLLS_PER_KM = Decimal("0.15")
MAINTENANCE_PER_KM = Decimal("0.08")
DRIVER_AVERAGE_SPEED_KMH = Decimal("80")
DRIVER_COST_PER_HOUR = Decimal("15")


@dataclass(frozen=True)
class RequirementFlags:
    insurance: bool = False
    cmr: bool = False
    adr: bool = False


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: Decimal
    platform_fee_rate: Decimal  # percent
    platform_fee: Decimal
    vat_rate: Decimal  # percent
    vat_amount: Decimal
    total: Decimal
    currency: str


@dataclass(frozen=True)
class PriceRange:
    min_price: Decimal
    suggested_price: Decimal
    max_price: Decimal
    currency: str


@dataclass(frozen=True)
class OperationalCost:
    fuel_cost: Decimal
    tolls_cost: Decimal
    maintenance_cost: Decimal
    driver_cost: Decimal
    total_cost: Decimal
    currency: str


def to_cents(amount) -> Decimal:
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def _decimal(value, name) -> Decimal:
    if value is None:
        raise InvalidInput(f"{name} is required.")
    try:
        number = Decimal(str(value))
    except ArithmeticError:
        raise InvalidInput(f"{name} must be a number.")
    if not number.is_finite():
        raise InvalidInput(f"{name} must be a finite number.")
    if number < 0:
        raise InvalidInput(f"{name} cannot be negative.")
    return number


def _country(code, name) -> str:
    if not code or not str(code).strip():
        raise InvalidInput(f"{name} is required.")
    return str(code).strip().upper()


def zone_for(country_code: str) -> Zone:
    """Unknown countries price as DEFAULT_ZONE."""
    code = (country_code or "").upper()
    for zone in ZONES:
        if code in zone.countries:
            return zone
    return DEFAULT_ZONE


def weight_multiplier(weight_kg) -> Decimal:
    weight = Decimal(weight_kg)
    for upper_bound, multiplier in WEIGHT_TIERS:
        if weight <= upper_bound:
            return multiplier
    return HEAVIEST_TIER_MULTIPLIER


def load_type_multiplier(load_type: Optional[str]) -> Decimal:
    return LOAD_TYPE_MULTIPLIERS.get((load_type or "GENERAL").upper(), Decimal("1.0"))


def compute_price(
    distance_km,
    weight_kg,
    load_type,
    origin_country,
    dest_country,
    flags: RequirementFlags = RequirementFlags(),
) -> Decimal:
    distance = _decimal(distance_km, "distance")
    weight = _decimal(weight_kg, "weight")
    origin = _country(origin_country, "origin country")
    destination = _country(dest_country, "destination country")

    base_rate = (zone_for(origin).base_rate + zone_for(destination).base_rate) / 2
    price = distance * base_rate
    price *= load_type_multiplier(load_type)
    price *= weight_multiplier(weight)

    if origin != destination:
        price *= INTERNATIONAL_MULTIPLIER

    if flags.insurance:
        price += INSURANCE_FEE
    if flags.cmr:
        price += CMR_FEE
    if flags.adr:
        price += ADR_FEE

    return to_cents(price)


def vat_rate_for(country_code: Optional[str]) -> Decimal:
    rates = settings.MARKETPLACE_VAT_RATES
    return Decimal(
        rates.get((country_code or "").upper(), settings.MARKETPLACE_DEFAULT_VAT_RATE)
    )


def price_breakdown(price, vat_country: Optional[str] = None) -> PriceBreakdown:
    """
    Split a freight price into platform fee, VAT and total.

    Each line item is rounded to cents on its own; the total is the exact sum
    of the rounded items, so ``total == subtotal + vat_amount + platform_fee``.
    """
    subtotal = to_cents(_decimal(price, "price"))
    fee_rate = Decimal(settings.MARKETPLACE_PLATFORM_FEE_PERCENT)
    vat_rate = vat_rate_for(vat_country)

    platform_fee = to_cents(subtotal * fee_rate / 100)
    vat_amount = to_cents(subtotal * vat_rate / 100)

    return PriceBreakdown(
        subtotal=subtotal,
        platform_fee_rate=fee_rate,
        platform_fee=platform_fee,
        vat_rate=vat_rate,
        vat_amount=vat_amount,
        total=subtotal + vat_amount + platform_fee,
        currency=settings.MARKETPLACE_CURRENCY,
    )


def suggested_price_range(price) -> PriceRange:
    """Bidding guide for carriers: -15% / +10% around the computed price."""
    suggested = to_cents(_decimal(price, "price"))
    return PriceRange(
        min_price=to_cents(suggested * RANGE_MIN_FACTOR),
        suggested_price=suggested,
        max_price=to_cents(suggested * RANGE_MAX_FACTOR),
        currency=settings.MARKETPLACE_CURRENCY,
    )


def estimate_operational_cost(distance_km, vehicle_type: Optional[str]) -> OperationalCost:
    distance = _decimal(distance_km, "distance")
    consumption = FUEL_CONSUMPTION_L_PER_100KM.get(
        (vehicle_type or "").upper(), DEFAULT_FUEL_CONSUMPTION
    )

    fuel = distance / 100 * consumption * FUEL_PRICE_PER_LITER
    tolls = distance * TOLLS_PER_KM
    maintenance = distance * MAINTENANCE_PER_KM
    driver = distance / DRIVER_AVERAGE_SPEED_KMH * DRIVER_COST_PER_HOUR

    return OperationalCost(
        fuel_cost=to_cents(fuel),
        tolls_cost=to_cents(tolls),
        maintenance_cost=to_cents(maintenance),
        driver_cost=to_cents(driver),
        total_cost=to_cents(fuel + tolls + maintenance + driver),
        currency=settings.MARKETPLACE_CURRENCY,
    )
