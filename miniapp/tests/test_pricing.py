import pytest

from miniapp.models.catalog import FulfillmentMode
from miniapp.services.pricing_service import resolve_price, unit_price
from miniapp.utils.quantity import parse_quantity, quantity_key


class TestResolvePrice:
    """Tier and linear pricing"""

    def test_differentiated_tier_by_mode(self, sample_snapshot):
        _, product = sample_snapshot.find_product(1)

        assert resolve_price(product, 5, FulfillmentMode.PICKUP) == 40
        assert resolve_price(product, 5, FulfillmentMode.DELIVERY) == 45

    def test_no_tier_is_linear(self, sample_snapshot):
        _, product = sample_snapshot.find_product(1)

        assert resolve_price(product, 3, FulfillmentMode.PICKUP) == 30
        assert resolve_price(product, 3, FulfillmentMode.DELIVERY) == 30
        assert resolve_price(product, 6, FulfillmentMode.DELIVERY) == 60

    def test_no_interpolation_between_tiers(self, sample_snapshot):
        _, product = sample_snapshot.find_product(2)

        assert resolve_price(product, 10, FulfillmentMode.DELIVERY) == 110
        assert resolve_price(product, 9, FulfillmentMode.DELIVERY) == 9 * 12.5
        assert resolve_price(product, 11, FulfillmentMode.PICKUP) == 11 * 12.5

    def test_simple_tier_ignores_mode(self, sample_snapshot):
        _, product = sample_snapshot.find_product(2)

        assert resolve_price(product, 2.5, FulfillmentMode.DELIVERY) == 30
        assert resolve_price(product, 2.5, FulfillmentMode.PICKUP) == 30

    def test_fractional_quantity_matches_tier_key(self, sample_snapshot):
        _, product = sample_snapshot.find_product(2)

        assert resolve_price(product, parse_quantity("2,5"), FulfillmentMode.PICKUP) == 30
        assert resolve_price(product, 5.0, FulfillmentMode.PICKUP) == 5 * 12.5

    def test_product_without_tiers(self, sample_snapshot):
        _, product = sample_snapshot.find_product(3)

        assert product.custom_prices is None
        assert resolve_price(product, 4, FulfillmentMode.PICKUP) == 12

    def test_unit_price(self, sample_snapshot):
        _, product = sample_snapshot.find_product(1)

        assert unit_price(product, 5, FulfillmentMode.PICKUP) == 8
        assert unit_price(product, 2, FulfillmentMode.DELIVERY) == 10


class TestQuantityHelpers:
    """Quantity parsing and canonical keys"""

    @pytest.mark.parametrize("value, expected", [
        (5, "5"),
        (5.0, "5"),
        ("5", "5"),
        ("2,5", "2.5"),
        ("2.50", "2.5"),
        (0.5, "0.5"),
        ("10", "10"),
        (100, "100"),
    ])
    def test_quantity_key(self, value, expected):
        assert quantity_key(value) == expected

    def test_parse_quantity(self):
        assert parse_quantity("3") == 3
        assert isinstance(parse_quantity("3"), int)
        assert parse_quantity("1,5") == 1.5
        assert parse_quantity(2.0) == 2

    @pytest.mark.parametrize("value", ["abc", "", "nan", "inf", True, None])
    def test_invalid_quantity(self, value):
        with pytest.raises(ValueError):
            parse_quantity(value)
