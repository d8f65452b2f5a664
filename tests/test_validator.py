"""Tests for SubscriptionValidator."""

from datetime import date
from decimal import Decimal

import pytest

from subtracker.errors import ValidationError
from subtracker.models.subscription import RecurringDuration
from subtracker.validation import (
    SubscriptionValidator,
    normalize_charges,
    parse_date,
    parse_decimal,
    parse_int,
)


@pytest.fixture
def validator():
    return SubscriptionValidator()


def flat_input(**overrides):
    raw = {
        "title": "Spotify",
        "price": "9.99",
        "currency": "usd",
        "recurringDuration": "monthly",
        "startDate": "2024-01-05",
    }
    raw.update(overrides)
    return raw


class TestParsingHelpers:
    """Tests for the lenient field parsers."""

    def test_parse_decimal(self):
        assert parse_decimal("12.50") == Decimal("12.50")
        assert parse_decimal(3) == Decimal("3")
        assert parse_decimal("abc") is None
        assert parse_decimal(True) is None

    def test_parse_int(self):
        assert parse_int("15") == 15
        assert parse_int(15.0) == 15
        assert parse_int(15.5) is None
        assert parse_int("x") is None

    def test_parse_date_accepts_timestamp(self):
        assert parse_date("2024-01-31T00:00:00.000Z") == date(2024, 1, 31)
        assert parse_date("2024-01-31") == date(2024, 1, 31)
        assert parse_date("31/01/2024") is None

    def test_normalize_charges_requires_charges(self):
        with pytest.raises(ValueError):
            normalize_charges([])


class TestValidate:
    """Tests for validate() on new subscriptions."""

    def test_flat_subscription(self, validator):
        draft = validator.validate(flat_input())

        assert draft.title == "Spotify"
        assert draft.price == Decimal("9.99")
        assert draft.currency == "USD"
        assert draft.recurring_duration == RecurringDuration.MONTHLY
        assert draft.start_date == date(2024, 1, 5)
        assert draft.charges is None

    def test_snake_case_keys_accepted(self, validator):
        draft = validator.validate({
            "title": "Gym",
            "price": 40,
            "currency": "EUR",
            "recurring_duration": "yearly",
            "start_date": date(2024, 2, 1),
        })
        assert draft.recurring_duration == RecurringDuration.YEARLY

    def test_charges_override_price_and_start(self, validator):
        draft = validator.validate(flat_input(
            price="1",
            startDate="2023-01-01",
            charges=[
                {"amount": 50, "dayOfMonth": 1, "startDate": "2024-01-01"},
                {"amount": "30", "dayOfMonth": "15", "startDate": "2024-03-01"},
            ],
        ))

        assert draft.price == Decimal("80")
        assert draft.start_date == date(2024, 1, 1)
        assert len(draft.charges) == 2
        assert draft.charges[1].day_of_month == 15

    def test_empty_charges_mean_flat_price(self, validator):
        draft = validator.validate(flat_input(charges=[]))
        assert draft.charges is None
        assert draft.price == Decimal("9.99")

    def test_missing_title(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(flat_input(title="   "))
        assert "title" in exc_info.value.fields

    def test_collects_every_issue(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(flat_input(
                title="",
                price="-5",
                recurringDuration="daily",
                url="not a url",
            ))

        fields = exc_info.value.fields
        assert set(fields) >= {"title", "price", "recurringDuration", "url"}

    def test_non_numeric_price(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(flat_input(price="ten"))
        assert exc_info.value.fields["price"] == "Price must be a number"

    def test_zero_price_rejected(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(flat_input(price=0))
        assert "price" in exc_info.value.fields

    def test_url_must_be_http(self, validator):
        assert validator.validate(flat_input(url="https://spotify.com")).url == "https://spotify.com"
        with pytest.raises(ValidationError):
            validator.validate(flat_input(url="ftp://spotify.com"))

    def test_blank_url_becomes_none(self, validator):
        assert validator.validate(flat_input(url="  ")).url is None

    def test_charge_day_out_of_range(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(flat_input(charges=[
                {"amount": 10, "dayOfMonth": 1, "startDate": "2024-01-01"},
                {"amount": 10, "dayOfMonth": 32, "startDate": "2024-01-01"},
            ]))
        assert "charges[1].dayOfMonth" in exc_info.value.fields

    def test_charge_without_start_date(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(flat_input(charges=[{"amount": 10, "dayOfMonth": 1}]))
        assert "charges[0].startDate" in exc_info.value.fields

    def test_charge_amount_must_be_positive(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(flat_input(charges=[
                {"amount": 0, "dayOfMonth": 1, "startDate": "2024-01-01"},
            ]))
        assert "charges[0].amount" in exc_info.value.fields

    @pytest.mark.parametrize("price", ["1e309", "1e999999999", "Infinity", "NaN", "1e-400"])
    def test_price_must_fit_a_json_number(self, validator, price):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(flat_input(price=price))
        assert exc_info.value.fields["price"] == "Price must be a positive finite number"

    def test_charge_amount_must_fit_a_json_number(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(flat_input(charges=[
                {"amount": "1e309", "dayOfMonth": 1, "startDate": "2024-01-01"},
            ]))
        assert "charges[0].amount" in exc_info.value.fields

    def test_charge_total_must_fit_a_json_number(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(flat_input(charges=[
                {"amount": "1e308", "dayOfMonth": 1, "startDate": "2024-01-01"},
                {"amount": "1e308", "dayOfMonth": 15, "startDate": "2024-01-01"},
            ]))
        assert "charges" in exc_info.value.fields

    def test_excess_digits_are_dropped(self, validator):
        draft = validator.validate(flat_input(price="33.333333333333333333"))
        assert draft.price == Decimal(repr(float("33.333333333333333333")))
        assert validator.validate(flat_input(price="9.99")).price == Decimal("9.99")


class TestValidateUpdate:
    """Tests for validate_update() on existing subscriptions."""

    def test_partial_update_keeps_other_fields(self, validator, make_subscription):
        existing = make_subscription(description="Family plan")
        draft = validator.validate_update(existing, {"price": "17.99"})

        assert draft.price == Decimal("17.99")
        assert draft.title == existing.title
        assert draft.description == "Family plan"

    def test_price_edit_is_overridden_by_charges(self, validator, make_subscription):
        existing = make_subscription()
        with_charges = validator.validate_update(existing, {"charges": [
            {"amount": 5, "dayOfMonth": 1, "startDate": "2024-02-01"},
            {"amount": 7, "dayOfMonth": 10, "startDate": "2024-02-10"},
        ]})
        assert with_charges.price == Decimal("12")
        assert with_charges.start_date == date(2024, 2, 1)

    def test_id_cannot_be_changed(self, validator, make_subscription):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_update(make_subscription(), {"id": "other"})
        assert exc_info.value.issues[0].issue_type == "immutable"

    def test_created_at_cannot_be_changed(self, validator, make_subscription):
        with pytest.raises(ValidationError):
            validator.validate_update(make_subscription(), {"created_at": "2020-01-01"})

    def test_unknown_field_rejected(self, validator, make_subscription):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_update(make_subscription(), {"color": "red"})
        assert "color" in exc_info.value.fields
