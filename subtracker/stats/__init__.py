"""Portfolio statistics package."""

from subtracker.stats.aggregator import (
    average_monthly_cost,
    currency_stats,
    group_by_currency,
    most_costly_subscription,
    portfolio_stats,
    total_monthly_cost,
    total_spent,
)

__all__ = [
    "average_monthly_cost",
    "currency_stats",
    "group_by_currency",
    "most_costly_subscription",
    "portfolio_stats",
    "total_monthly_cost",
    "total_spent",
]
