"""
Stats Aggregator

Folds the recurrence calculator over a collection of subscriptions to
produce portfolio figures.

CRITICAL: amounts in different currencies are NEVER added together.
The aggregate functions refuse a mixed-currency collection outright
with a ValidationError on the currency field;
callers group with group_by_currency() first, or use portfolio_stats()
which does the grouping for them.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from subtracker.errors import ValidationError
from subtracker.models.subscription import CurrencyStats, SubscriptionDraft, ValidationIssue
from subtracker.recurrence import calculator


def group_by_currency(
    subscriptions: Iterable[SubscriptionDraft],
) -> dict[str, list[SubscriptionDraft]]:
    """Partition by currency, keeping currencies in first-seen order."""
    groups: dict[str, list[SubscriptionDraft]] = {}
    for subscription in subscriptions:
        groups.setdefault(subscription.currency, []).append(subscription)
    return groups


def _require_single_currency(subscriptions: Sequence[SubscriptionDraft]) -> None:
    currencies = {s.currency for s in subscriptions}
    if len(currencies) > 1:
        raise ValidationError([ValidationIssue(
            field="currency",
            issue_type="mixed_currency",
            message=f"Cannot aggregate across currencies: {', '.join(sorted(currencies))}",
        )])


def total_monthly_cost(subscriptions: Sequence[SubscriptionDraft]) -> Decimal:
    _require_single_currency(subscriptions)
    return sum(
        (calculator.subscription_monthly_cost(s) for s in subscriptions),
        Decimal("0"),
    )


def total_spent(subscriptions: Sequence[SubscriptionDraft], as_of: date) -> Decimal:
    _require_single_currency(subscriptions)
    return sum(
        (calculator.total_spent(s, as_of) for s in subscriptions),
        Decimal("0"),
    )


def most_costly_subscription(
    subscriptions: Sequence[SubscriptionDraft],
) -> Optional[SubscriptionDraft]:
    """Highest monthly-equivalent cost; the first one wins a tie."""
    _require_single_currency(subscriptions)
    best: Optional[SubscriptionDraft] = None
    best_cost = Decimal("0")
    for subscription in subscriptions:
        cost = calculator.subscription_monthly_cost(subscription)
        if best is None or cost > best_cost:
            best, best_cost = subscription, cost
    return best


def average_monthly_cost(subscriptions: Sequence[SubscriptionDraft]) -> Decimal:
    if not subscriptions:
        return Decimal("0")
    return total_monthly_cost(subscriptions) / len(subscriptions)


def currency_stats(
    subscriptions: Iterable[SubscriptionDraft],
    currency: str,
    as_of: date,
) -> CurrencyStats:
    """
    Figures for the subscriptions billed in one currency.

    Subscriptions in other currencies are ignored.
    """
    selected = [s for s in subscriptions if s.currency == currency.upper()]
    return CurrencyStats(
        currency=currency.upper(),
        count=len(selected),
        total_monthly_cost=total_monthly_cost(selected),
        total_spent=total_spent(selected, as_of),
        average_monthly_cost=average_monthly_cost(selected),
        most_costly=most_costly_subscription(selected),
    )


def portfolio_stats(
    subscriptions: Iterable[SubscriptionDraft],
    as_of: date,
) -> list[CurrencyStats]:
    """One CurrencyStats per currency, in first-seen order."""
    return [
        currency_stats(group, currency, as_of)
        for currency, group in group_by_currency(subscriptions).items()
    ]
