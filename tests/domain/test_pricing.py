"""Unit price resolution: matched feed, fallback table, default."""

from decimal import Decimal

import pytest

from dairy_kernel.domain.pricing import PriceSource, PriceTable, resolve_unit_price

TABLE = PriceTable(
    fallback_prices={
        "dairy_meal": Decimal("45"),
        "Dairy Meal": Decimal("45"),
        "hay": Decimal("25"),
        "Calf Pellets": Decimal("60"),
    },
    default_price=Decimal("50"),
)


class TestResolveUnitPrice:
    def test_feed_price_wins(self):
        price = TABLE.resolve(Decimal("48"), feed_type_code="dairy_meal", feed_type_name="Dairy Meal")

        assert price.unit_price == Decimal("48")
        assert price.source is PriceSource.FEED

    def test_zero_feed_price_used_as_is(self):
        price = TABLE.resolve(Decimal("0"), feed_type_code="hay", feed_type_name="Hay")

        assert price.unit_price == Decimal("0")
        assert price.source is PriceSource.FEED

    def test_code_looked_up_before_name(self):
        price = TABLE.resolve(None, feed_type_code="hay", feed_type_name="Dairy Meal")

        assert price.unit_price == Decimal("25")
        assert price.source is PriceSource.FALLBACK_TABLE

    def test_name_used_when_code_unknown(self):
        price = TABLE.resolve(None, feed_type_code="pellets_v2", feed_type_name="Calf Pellets")

        assert price.unit_price == Decimal("60")

    def test_case_insensitive_fallback(self):
        price = TABLE.resolve(None, feed_type_code=None, feed_type_name="calf pellets")

        assert price.unit_price == Decimal("60")

    def test_default_price_when_nothing_matches(self):
        price = TABLE.resolve(None, feed_type_code=None, feed_type_name="Sunflower Cake")

        assert price.unit_price == Decimal("50")
        assert price.source is PriceSource.DEFAULT

    def test_function_form_matches_table(self):
        price = resolve_unit_price(
            None,
            feed_type_code="hay",
            feed_type_name=None,
            fallback_prices=TABLE.fallback_prices,
            default_price=Decimal("1"),
        )
        assert price.unit_price == Decimal("25")


@pytest.mark.parametrize(
    "unit_price, quantity, expected",
    [
        (Decimal("45"), Decimal("30"), Decimal("1350.00")),
        (Decimal("33.333"), Decimal("3"), Decimal("100.00")),
        (Decimal("0.125"), Decimal("1"), Decimal("0.13")),
    ],
)
def test_cost_is_rounded_to_cents(unit_price, quantity, expected):
    price = TABLE.resolve(unit_price, feed_type_code=None, feed_type_name="x")
    assert price.cost_for(quantity) == expected
