"""Recurrence and billing calculation package."""

from subtracker.recurrence.calculator import (
    CYCLE_LENGTH_DAYS,
    MONTHLY_MULTIPLIERS,
    add_months,
    charge_occurrence,
    cycle_length_days,
    days_until_renewal,
    duration_label,
    duration_suffix,
    effective_charges,
    elapsed_cycles,
    last_day_of_month,
    monthly_cost,
    next_renewal_date,
    payment_history,
    renewal_label,
    subscription_monthly_cost,
    total_spent,
)

__all__ = [
    "CYCLE_LENGTH_DAYS",
    "MONTHLY_MULTIPLIERS",
    "add_months",
    "charge_occurrence",
    "cycle_length_days",
    "days_until_renewal",
    "duration_label",
    "duration_suffix",
    "effective_charges",
    "elapsed_cycles",
    "last_day_of_month",
    "monthly_cost",
    "next_renewal_date",
    "payment_history",
    "renewal_label",
    "subscription_monthly_cost",
    "total_spent",
]
