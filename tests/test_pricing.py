from decimal import Decimal

import pytest

from marketplace import pricing
from marketplace.pricing import RequirementFlags
from marketplace.services.exceptions import InvalidInput


def test_international_general_load():
    # (0.85 + 0.85) / 2 * 800 * 1.0 * 1.1 * 1.25
    price = pricing.compute_price(800, 5000, "GENERAL", "PT", "ES")
    assert price == Decimal("935.00")


def test_domestic_load_has_no_international_surcharge():
    assert pricing.compute_price(100, 500, "GENERAL", "FR", "FR") == Decimal("95.00")


def test_country_codes_are_case_insensitive():
    assert pricing.compute_price(800, 5000, "general", "pt", "es") == Decimal("935.00")


def test_unknown_country_prices_as_default_zone():
    assert pricing.zone_for("US") is pricing.DEFAULT_ZONE
    assert pricing.compute_price(100, 500, "GENERAL", "US", "US") == Decimal("85.00")


def test_unknown_load_type_prices_as_general():
    assert pricing.load_type_multiplier("SPACESHIP") == Decimal("1.0")
    assert pricing.load_type_multiplier(None) == Decimal("1.0")


@pytest.mark.parametrize(
    "weight,multiplier",
    [
        (0, "1.0"),
        (1000, "1.0"),
        (1001, "1.1"),
        (5000, "1.1"),
        (10000, "1.2"),
        (20000, "1.3"),
        (20001, "1.4"),
        (40000, "1.4"),
    ],
)
def test_weight_tiers(weight, multiplier):
    assert pricing.weight_multiplier(weight) == Decimal(multiplier)


def test_requirement_fees_are_added_after_multipliers():
    flags = RequirementFlags(insurance=True, cmr=True, adr=True)
    price = pricing.compute_price(800, 5000, "GENERAL", "PT", "ES", flags)
    assert price == Decimal("935.00") + 50 + 30 + 100


def test_price_grows_with_distance_and_weight():
    def price(distance, weight):
        return pricing.compute_price(distance, weight, "GENERAL", "DE", "PL")

    assert price(100, 3000) < price(200, 3000) < price(900, 3000)
    assert price(500, 800) < price(500, 4000) < price(500, 9000) < price(500, 30000)


def test_zero_distance_costs_only_the_fees():
    flags = RequirementFlags(insurance=True)
    assert pricing.compute_price(0, 100, "GENERAL", "PT", "PT", flags) == Decimal(
        "50.00"
    )


@pytest.mark.parametrize(
    "kwargs",
    [
        {"distance_km": -1},
        {"weight_kg": -5},
        {"distance_km": None},
        {"distance_km": "far"},
        {"origin_country": ""},
        {"dest_country": None},
    ],
)
def test_invalid_inputs_are_rejected(kwargs):
    args = {
        "distance_km": 100,
        "weight_kg": 1000,
        "load_type": "GENERAL",
        "origin_country": "PT",
        "dest_country": "ES",
    }
    args.update(kwargs)
    with pytest.raises(InvalidInput):
        pricing.compute_price(**args)


def test_breakdown_with_portuguese_vat():
    breakdown = pricing.price_breakdown(Decimal("935.00"), vat_country="PT")
    assert breakdown.subtotal == Decimal("935.00")
    assert breakdown.platform_fee_rate == Decimal("10")
    assert breakdown.platform_fee == Decimal("93.50")
    assert breakdown.vat_rate == Decimal("23")
    assert breakdown.vat_amount == Decimal("215.05")
    assert breakdown.total == Decimal("1243.55")
    assert breakdown.currency == "EUR"


def test_breakdown_total_is_sum_of_rounded_items():
    for amount in ("0.05", "19.99", "333.33", "1234.57"):
        breakdown = pricing.price_breakdown(Decimal(amount), vat_country="ES")
        assert breakdown.total == (
            breakdown.subtotal + breakdown.vat_amount + breakdown.platform_fee
        )


def test_breakdown_rounds_half_up():
    breakdown = pricing.price_breakdown(Decimal("0.05"), vat_country="PT")
    # 0.005 fee rounds up, 0.0115 VAT rounds down
    assert breakdown.platform_fee == Decimal("0.01")
    assert breakdown.vat_amount == Decimal("0.01")


def test_breakdown_unknown_vat_country_uses_default_rate():
    assert pricing.price_breakdown(100, vat_country="XX").vat_rate == Decimal("20")
    assert pricing.price_breakdown(100).vat_rate == Decimal("20")


def test_vat_rates_follow_settings(settings):
    settings.MARKETPLACE_VAT_RATES = {"PT": Decimal("6")}
    assert pricing.price_breakdown(100, vat_country="PT").vat_amount == Decimal("6.00")


def test_suggested_price_range():
    price_range = pricing.suggested_price_range(Decimal("935.00"))
    assert price_range.min_price == Decimal("794.75")
    assert price_range.suggested_price == Decimal("935.00")
    assert price_range.max_price == Decimal("1028.50")
    assert price_range.min_price <= price_range.suggested_price <= price_range.max_price


def test_operational_cost_for_van():
    cost = pricing.estimate_operational_cost(100, "VAN")
    assert cost.fuel_cost == Decimal("13.20")
    assert cost.tolls_cost == Decimal("15.00")
    assert cost.maintenance_cost == Decimal("8.00")
    assert cost.driver_cost == Decimal("18.75")
    assert cost.total_cost == Decimal("54.95")


def test_operational_cost_unknown_vehicle_uses_default_consumption():
    cost = pricing.estimate_operational_cost(100, "HOVERCRAFT")
    assert cost.fuel_cost == Decimal("41.25")
