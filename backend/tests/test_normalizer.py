from datetime import date, datetime
from decimal import Decimal

import pytest

from savequest.services.normalizer import cents_to_str, normalize_plaid_transaction, parse_date, to_cents


class TestParseDate:
    def test_iso(self):
        assert parse_date("2026-01-15") == "2026-01-15"

    def test_iso_datetime(self):
        assert parse_date("2026-01-15T12:00:00Z") == "2026-01-15"

    def test_us_format(self):
        assert parse_date("01/15/2026") == "2026-01-15"

    def test_date_object(self):
        assert parse_date(date(2026, 1, 15)) == "2026-01-15"

    def test_datetime_object(self):
        assert parse_date(datetime(2026, 1, 15, 23, 59)) == "2026-01-15"

    def test_none_and_blank(self):
        assert parse_date(None) is None
        assert parse_date("   ") is None

    def test_garbage_raises(self):
        with pytest.raises(ValueError):
            parse_date("15th of January")


class TestToCents:
    def test_positive_standard(self):
        assert to_cents(42.99) == 4299

    def test_negative_value(self):
        assert to_cents(-42.99) == -4299

    def test_zero(self):
        assert to_cents(0.0) == 0

    def test_string_amount(self):
        assert to_cents("50.01") == 5001

    def test_decimal_amount(self):
        assert to_cents(Decimal("1234.56")) == 123456

    def test_round_half_up_pos(self):
        assert to_cents(0.005) == 1

    def test_round_half_up_neg(self):
        assert to_cents(-0.005) == -1

    def test_floating_point_repr(self):
        # str(0.1 + 0.2) is "0.30000000000000004", which rounds to 30 cents
        assert to_cents(0.1 + 0.2) == 30


class TestCentsToStr:
    def test_thousands(self):
        assert cents_to_str(123456) == "$1,234.56"

    def test_negative(self):
        assert cents_to_str(-5) == "-$0.05"


class TestNormalizePlaidTransaction:
    RAW = {
        "transaction_id": "tx-1",
        "account_id": "acc-1",
        "date": "2026-03-02",
        "authorized_date": "2026-03-01",
        "amount": 8.99,
        "name": "MCDONALD'S #123",
        "merchant_name": "McDonald's",
        "personal_finance_category": {
            "primary": "FOOD_AND_DRINK",
            "detailed": "FOOD_AND_DRINK_FAST_FOOD",
        },
        "pending": False,
    }

    def test_maps_columns(self):
        row = normalize_plaid_transaction(self.RAW)
        assert row["transaction_id"] == "tx-1"
        assert row["posted_date"] == "2026-03-02"
        assert row["authorized_date"] == "2026-03-01"
        assert row["amount_cents"] == 899
        assert row["category_detailed"] == "FOOD_AND_DRINK_FAST_FOOD"
        assert row["pending"] is False

    def test_credit_stays_negative(self):
        assert normalize_plaid_transaction({**self.RAW, "amount": -25})["amount_cents"] == -2500

    def test_legacy_category_fallback(self):
        raw = {**self.RAW, "personal_finance_category": None, "category": ["Food and Drink", "Restaurants"]}
        row = normalize_plaid_transaction(raw)
        assert row["category_primary"] == "FOOD_AND_DRINK"
        assert row["category_detailed"] == "FOOD_AND_DRINK_RESTAURANTS"

    def test_legacy_category_matches_catalog_codes(self):
        raw = {**self.RAW, "personal_finance_category": None, "category": ["General Merchandise"]}
        row = normalize_plaid_transaction(raw)
        assert "GENERAL_MERCHANDISE" in row["category_primary"]

    @pytest.mark.parametrize("amount", ["abc", "", "1.2.3"])
    def test_non_numeric_amount_is_value_error(self, amount):
        with pytest.raises(ValueError, match="invalid amount"):
            normalize_plaid_transaction({**self.RAW, "amount": amount})

    def test_blank_merchant_is_none(self):
        assert normalize_plaid_transaction({**self.RAW, "merchant_name": "  "})["merchant_name"] is None

    @pytest.mark.parametrize("missing", ["transaction_id", "date", "amount"])
    def test_required_fields(self, missing):
        raw = {k: v for k, v in self.RAW.items() if k != missing}
        with pytest.raises(ValueError):
            normalize_plaid_transaction(raw)
