"""Subscription validation package."""

from subtracker.validation.validator import (
    SubscriptionValidator,
    normalize_charges,
    parse_date,
    parse_decimal,
    parse_int,
    wire_amount,
)

__all__ = [
    "SubscriptionValidator",
    "normalize_charges",
    "parse_date",
    "parse_decimal",
    "parse_int",
    "wire_amount",
]
