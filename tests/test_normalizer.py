"""
Unit tests for extraction response normalization.

Run with: pytest tests/test_normalizer.py -v
"""

from decimal import Decimal

import pytest

from quickcompare.extraction.normalizer import (
    canonical_fields, decode_envelope, normalize_key, normalize_products, normalize_record, parse_price
)


class TestParsePrice:
    """Prices end up as non-negative Decimals or None."""

    @pytest.mark.parametrize("raw, expected", [
        (45, Decimal("45")),
        (45.5, Decimal("45.5")),
        ("45", Decimal("45")),
        ("₹1,299.00", Decimal("1299.00")),
        ("Rs. 45", Decimal("45")),
        ("Rs.45", Decimal("45")),
        ("MRP Rs.120", Decimal("120")),
        ("inr.99.50", Decimal("99.50")),
        ("INR 120.50 per pack", Decimal("120.50")),
        ("₹ 0", Decimal("0")),
        (Decimal("12.30"), Decimal("12.30")),
    ])
    def test_parses_numbers_and_formatted_strings(self, raw, expected):
        assert parse_price(raw) == expected

    @pytest.mark.parametrize("raw", ["", "abc", "₹", "free", None, True, float("nan"), float("inf"), -5])
    def test_rejects_values_without_usable_digits(self, raw):
        assert parse_price(raw) is None


class TestFieldAliases:
    """Field-name drift is absorbed by the alias table."""

    @pytest.mark.parametrize("key, expected", [
        ("Product Name", "product_name"),
        ("productName", "product_name"),
        ("PRODUCT_NAME", "product_name"),
        ("out-of-stock", "out_of_stock"),
        ("unitSize", "unit_size"),
    ])
    def test_normalize_key(self, key, expected):
        assert normalize_key(key) == expected

    def test_aliases_map_to_canonical_fields(self):
        fields = canonical_fields({
            "Product Name": "Amul Butter",
            "priceInr": "₹56",
            "isOutOfStock": False,
            "Unit size/weight": "100 g",
            "Offer": "10% off",
        })
        assert fields == {
            "product_name": "Amul Butter",
            "price": "₹56",
            "out_of_stock": False,
            "unit_size": "100 g",
            "special_offer": "10% off",
        }

    def test_unknown_fields_ignored(self):
        fields = canonical_fields({"name": "Milk", "price": 30, "image_url": "x.png", "rating": 4.5})
        assert set(fields) == {"product_name", "price"}


class TestNormalizeRecord:

    def test_full_record(self):
        product = normalize_record({
            "product_name": "Amul Taaza Milk",
            "price": "₹27",
            "out_of_stock": False,
            "unit_size": "500 ml",
            "special_offer": "Buy 2 get 1",
        })
        assert product.product_name == "Amul Taaza Milk"
        assert product.price == Decimal("27")
        assert product.unit_size == "500 ml"
        assert product.special_offer == "Buy 2 get 1"
        assert product.is_available is True

    def test_optional_fields_default_to_none(self):
        product = normalize_record({"name": "Bread", "price": 40, "unit_size": "", "offer": "null"})
        assert product.unit_size is None
        assert product.special_offer is None

    def test_unparseable_price_dropped(self):
        assert normalize_record({"product_name": "Eggs", "price": "price on request"}) is None

    def test_missing_name_dropped(self):
        assert normalize_record({"price": 10}) is None

    def test_non_dict_dropped(self):
        assert normalize_record("Eggs ₹60") is None


class TestAvailability:

    @pytest.mark.parametrize("raw, expected", [
        ({"out_of_stock": True}, False),
        ({"out_of_stock": False}, True),
        ({"out_of_stock": "true"}, False),
        ({"in_stock": False}, False),
        ({"is_available": True}, True),
        ({"availability": "Out of Stock"}, False),
        ({"stock_status": "Sold out"}, False),
        ({"status": "In Stock"}, True),
        ({"availability": "Currently unavailable"}, False),
        ({"availability": "Out-of-stock"}, False),
        ({"stock_status": "Not in stock"}, False),
        ({"stock": 0}, False),
        ({"stock": 12}, True),
        ({}, True),
    ])
    def test_availability_signals(self, raw, expected):
        product = normalize_record({"name": "Atta", "price": 300, **raw})
        assert product.is_available is expected


class TestEnvelope:
    """Every known response shape decodes to the same record list."""

    RECORDS = [{"name": "A", "price": 1}, {"name": "B", "price": 2}]

    @pytest.mark.parametrize("payload", [
        RECORDS,
        {"products": RECORDS},
        {"items": RECORDS},
        {"data": {"products": RECORDS}},
        [{"products": RECORDS}],
    ])
    def test_decodes_envelopes(self, payload):
        assert decode_envelope(payload) == self.RECORDS

    def test_single_record(self):
        assert decode_envelope({"product_name": "A", "price": 1}) == [{"product_name": "A", "price": 1}]

    @pytest.mark.parametrize("payload", [{"message": "nothing found"}, {"status": "failed", "error": "blocked"}])
    def test_dict_without_name_or_price_is_malformed(self, payload):
        assert decode_envelope(payload) is None

    @pytest.mark.parametrize("payload", [None, "text", 42])
    def test_malformed_payload(self, payload):
        assert decode_envelope(payload) is None


class TestNormalizeProducts:

    def test_truncates_to_limit(self):
        raw = [{"name": f"P{i}", "price": i} for i in range(5)]
        products = normalize_products(raw)
        assert [p.product_name for p in products] == ["P0", "P1", "P2"]

    def test_dropped_records_do_not_count_toward_limit(self):
        raw = [{"name": "bad", "price": "n/a"}] + [{"name": f"P{i}", "price": i} for i in range(4)]
        products = normalize_products(raw)
        assert [p.product_name for p in products] == ["P0", "P1", "P2"]
