"""
Recurrence Calculator

DESIGN DECISION: Every function here is PURE and DETERMINISTIC.
The current date is always passed in as `as_of`; nothing reads the clock.
This makes leap-year and month-end behaviour testable with fixed dates.

Two notions of "cycle" are used, deliberately:
- cycle_length_days() is a coarse constant (monthly = 30 days) used only
  to count how many cycles have elapsed.
- charge_occurrence() places each billing date on the real calendar:
  weeks are added as days, months are stepped with the day clamped to the
  last day of the target month (Jan 31 -> Feb 29 in 2024).

A subscription without explicit charges behaves as a single implicit charge
of `price`, anchored on `start_date` and its day of month.
"""

import calendar
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional, Union

from subtracker.models.subscription import (
    Charge,
    PaymentEntry,
    PaymentStatus,
    RecurringDuration,
    SubscriptionDraft,
)


CYCLE_LENGTH_DAYS: dict[RecurringDuration, int] = {
    RecurringDuration.WEEKLY: 7,
    RecurringDuration.BI_WEEKLY: 14,
    RecurringDuration.MONTHLY: 30,
    RecurringDuration.QUARTERLY: 90,
    RecurringDuration.SEMI_ANNUALLY: 180,
    RecurringDuration.YEARLY: 365,
}

# Fixed-length cadences step in days, the rest step in calendar months.
_DAY_STEPS: dict[RecurringDuration, int] = {
    RecurringDuration.WEEKLY: 7,
    RecurringDuration.BI_WEEKLY: 14,
}
_MONTH_STEPS: dict[RecurringDuration, int] = {
    RecurringDuration.MONTHLY: 1,
    RecurringDuration.QUARTERLY: 3,
    RecurringDuration.SEMI_ANNUALLY: 6,
    RecurringDuration.YEARLY: 12,
}

_DAYS_PER_MONTH = Decimal(365) / Decimal(12)

MONTHLY_MULTIPLIERS: dict[RecurringDuration, Decimal] = {
    RecurringDuration.WEEKLY: _DAYS_PER_MONTH / Decimal(7),
    RecurringDuration.BI_WEEKLY: _DAYS_PER_MONTH / Decimal(14),
    RecurringDuration.MONTHLY: Decimal(1),
    RecurringDuration.QUARTERLY: Decimal(1) / Decimal(3),
    RecurringDuration.SEMI_ANNUALLY: Decimal(1) / Decimal(6),
    RecurringDuration.YEARLY: Decimal(1) / Decimal(12),
}

DURATION_LABELS: dict[RecurringDuration, str] = {
    RecurringDuration.WEEKLY: "Weekly",
    RecurringDuration.BI_WEEKLY: "Bi-weekly",
    RecurringDuration.MONTHLY: "Monthly",
    RecurringDuration.QUARTERLY: "Quarterly",
    RecurringDuration.SEMI_ANNUALLY: "Semi-annually",
    RecurringDuration.YEARLY: "Yearly",
}

DURATION_SUFFIXES: dict[RecurringDuration, str] = {
    RecurringDuration.WEEKLY: "/week",
    RecurringDuration.BI_WEEKLY: "/2 weeks",
    RecurringDuration.MONTHLY: "/month",
    RecurringDuration.QUARTERLY: "/quarter",
    RecurringDuration.SEMI_ANNUALLY: "/6 months",
    RecurringDuration.YEARLY: "/year",
}


# =============================================================================
# CALENDAR HELPERS
# =============================================================================

def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def add_months(d: date, n: int, day: Optional[int] = None) -> date:
    """
    Step `n` calendar months from `d`.

    The day of the result is `day` (defaults to d.day), clamped to the
    length of the target month.
    """
    month = d.month - 1 + n
    year = d.year + month // 12
    month = month % 12 + 1
    wanted = d.day if day is None else day
    return date(year, month, min(wanted, last_day_of_month(year, month)))


def cycle_length_days(duration: Union[RecurringDuration, str]) -> int:
    """Approximate length of one cycle, used to count elapsed cycles."""
    return CYCLE_LENGTH_DAYS[RecurringDuration(duration)]


def duration_label(duration: Union[RecurringDuration, str]) -> str:
    return DURATION_LABELS[RecurringDuration(duration)]


def duration_suffix(duration: Union[RecurringDuration, str]) -> str:
    return DURATION_SUFFIXES[RecurringDuration(duration)]


# =============================================================================
# CHARGE SCHEDULES
# =============================================================================

def effective_charges(subscription: SubscriptionDraft) -> list[Charge]:
    """
    The charges that drive a subscription's schedule.

    Simple subscriptions get one implicit charge built from price,
    start_date and the start date's day of month.
    """
    if subscription.charges:
        return list(subscription.charges)
    return [
        Charge(
            amount=subscription.price,
            day_of_month=subscription.start_date.day,
            start_date=subscription.start_date,
        )
    ]


def charge_occurrence(
    charge: Charge,
    duration: Union[RecurringDuration, str],
    index: int,
) -> date:
    """
    Date of the index-th billing of a charge (index 0 is the first).

    Monthly charges step by calendar months from the charge's start month
    and land on day_of_month (clamped), so index 0 can fall before the
    start date when day_of_month is earlier in the month. Quarterly,
    semi-annual and yearly charges always step from the original start
    date so a clamped February never drags later dates back.
    """
    duration = RecurringDuration(duration)
    start = charge.start_date

    if duration in _DAY_STEPS:
        return start + timedelta(days=index * _DAY_STEPS[duration])

    if duration == RecurringDuration.MONTHLY:
        return add_months(start, index, day=charge.day_of_month)

    return add_months(start, index * _MONTH_STEPS[duration])


def _next_charge_date(
    charge: Charge,
    duration: RecurringDuration,
    as_of: date,
) -> date:
    """First occurrence of a charge on or after as_of."""
    if charge.start_date > as_of:
        return charge.start_date

    # Start the search near the answer instead of walking from index 0.
    elapsed = (as_of - charge.start_date).days
    if duration in _DAY_STEPS:
        index = max(elapsed // _DAY_STEPS[duration] - 1, 0)
    else:
        months = (as_of.year - charge.start_date.year) * 12 + as_of.month - charge.start_date.month
        index = max(months // _MONTH_STEPS[duration] - 1, 0)

    while True:
        occurrence = charge_occurrence(charge, duration, index)
        if occurrence >= as_of:
            return occurrence
        index += 1


def next_renewal_date(subscription: SubscriptionDraft, as_of: date) -> date:
    """
    Next date on or after as_of on which any charge of the subscription recurs.

    If the subscription has not started yet, this is its start date.
    """
    duration = RecurringDuration(subscription.recurring_duration)
    if subscription.start_date > as_of:
        return subscription.start_date
    return min(
        _next_charge_date(charge, duration, as_of)
        for charge in effective_charges(subscription)
    )


def days_until_renewal(subscription: SubscriptionDraft, as_of: date) -> int:
    return (next_renewal_date(subscription, as_of) - as_of).days


def renewal_label(subscription: SubscriptionDraft, as_of: date) -> str:
    """Short human label for the next renewal, as shown on a subscription card."""
    days = days_until_renewal(subscription, as_of)
    if days == 0:
        return "Renews today"
    if days == 1:
        return "Renews tomorrow"
    if days < 7:
        return f"Renews in {days} days"
    return "Next renewal"


# =============================================================================
# PAYMENT HISTORY AND COST
# =============================================================================

def elapsed_cycles(
    charge: Charge,
    duration: Union[RecurringDuration, str],
    as_of: date,
) -> int:
    """
    Number of cycles of a charge up to and including the one covering as_of.

    Zero when the charge has not started.
    """
    if charge.start_date > as_of:
        return 0
    days = (as_of - charge.start_date).days
    return days // cycle_length_days(duration) + 1


def payment_history(subscription: SubscriptionDraft, as_of: date) -> list[PaymentEntry]:
    """
    Reconstruct every payment of a subscription up to as_of.

    Entries from all charges are merged and sorted by date. The status is
    decided by comparing each date with as_of, never by position: the
    30-day cycle approximation can place the last generated monthly entry
    slightly after as_of, and that entry is reported as scheduled.
    """
    duration = RecurringDuration(subscription.recurring_duration)
    payments: list[PaymentEntry] = []

    for charge in effective_charges(subscription):
        for index in range(elapsed_cycles(charge, duration, as_of)):
            due = charge_occurrence(charge, duration, index)
            payments.append(PaymentEntry(
                due_date=due,
                amount=charge.amount,
                status=PaymentStatus.PAID if due <= as_of else PaymentStatus.SCHEDULED,
            ))

    payments.sort(key=lambda p: p.due_date)
    return payments


def monthly_cost(price: Decimal, duration: Union[RecurringDuration, str]) -> Decimal:
    """Convert a per-cycle price to its average cost per calendar month."""
    return Decimal(price) * MONTHLY_MULTIPLIERS[RecurringDuration(duration)]


def subscription_monthly_cost(subscription: SubscriptionDraft) -> Decimal:
    return monthly_cost(subscription.price, subscription.recurring_duration)


def total_spent(subscription: SubscriptionDraft, as_of: date) -> Decimal:
    """Sum of every payment-history entry up to as_of."""
    return sum(
        (payment.amount for payment in payment_history(subscription, as_of)),
        Decimal("0"),
    )
