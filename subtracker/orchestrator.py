"""
Main Orchestrator for the Subscription Tracker

This module ties together all the components and defines the
end-to-end flows used by the UI:
1. Dashboard (list → compute renewals and costs → group stats by currency)
2. Subscription CRUD and import/export, via the services

DESIGN DECISION: The orchestrator only wires things together.
- Calculations live in subtracker.recurrence and subtracker.stats
- Validation and storage rules live in the services
- The storage backend is chosen from settings, not from the UI
"""

from datetime import date
from decimal import Decimal
from typing import Optional

import structlog
from pydantic import BaseModel

from subtracker.audit import AuditLogger
from subtracker.config import get_settings
from subtracker.models.subscription import CurrencyStats, PaymentEntry, Subscription
from subtracker.recurrence import (
    duration_label,
    next_renewal_date,
    payment_history,
    renewal_label,
    subscription_monthly_cost,
    total_spent,
)
from subtracker.services.export_import import ExportImportService
from subtracker.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsSubscriptionRepository,
    InMemoryAuditStorage,
    InMemorySubscriptionRepository,
    SubscriptionRepository,
)
from subtracker.services.subscriptions import SubscriptionService
from subtracker.stats import portfolio_stats


logger = structlog.get_logger(__name__)


class SubscriptionCard(BaseModel):
    """Everything a subscription card shows, computed for one day."""

    subscription: Subscription
    cadence: str
    next_renewal: date
    renewal_label: str
    monthly_cost: Decimal
    total_spent: Decimal
    payments: list[PaymentEntry]


class Dashboard(BaseModel):
    cards: list[SubscriptionCard]
    stats: list[CurrencyStats]


class DashboardFlow:
    """
    Builds the dashboard for one user.

    Flow:
    1. Load → all of the user's subscriptions (auth checked by the service)
    2. Compute → renewal, monthly cost and spend per subscription
    3. Aggregate → stats per currency, never summed across currencies
    """

    def __init__(self, subscription_service: SubscriptionService):
        self._subscriptions = subscription_service

    async def build(self, user_id: Optional[str], as_of: date) -> Dashboard:
        subscriptions = await self._subscriptions.list_subscriptions(user_id)

        cards = []
        for subscription in subscriptions:
            history = payment_history(subscription, as_of)
            cards.append(SubscriptionCard(
                subscription=subscription,
                cadence=duration_label(subscription.recurring_duration),
                next_renewal=next_renewal_date(subscription, as_of),
                renewal_label=renewal_label(subscription, as_of),
                monthly_cost=subscription_monthly_cost(subscription),
                total_spent=total_spent(subscription, as_of),
                payments=history,
            ))
        cards.sort(key=lambda card: card.next_renewal)

        return Dashboard(cards=cards, stats=portfolio_stats(subscriptions, as_of))


def create_storage(
    backend: Optional[str] = None,
) -> tuple[SubscriptionRepository, Optional[AuditStorageInterface]]:
    """
    Build the repository and audit storage for a backend.

    Args:
        backend: "memory" or "google_sheets". Defaults to APP_STORAGE_BACKEND.

    Falls back to in-memory storage when Google Sheets isn't configured,
    so the UI still starts.
    """
    backend = backend or get_settings().app.storage_backend

    if backend == "google_sheets":
        try:
            sheets_client = GoogleSheetsClient()
            return (
                GoogleSheetsSubscriptionRepository(sheets_client),
                GoogleSheetsAuditStorage(sheets_client),
            )
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", backend=backend, error=str(e))

    return InMemorySubscriptionRepository(), InMemoryAuditStorage()


def create_app_components(
    backend: Optional[str] = None,
    repository: Optional[SubscriptionRepository] = None,
) -> tuple[SubscriptionService, ExportImportService, DashboardFlow]:
    """
    Factory function to create all application components.

    Args:
        backend: Storage backend name, see create_storage
        repository: Use this repository instead (tests)

    Returns:
        (subscription_service, export_import_service, dashboard_flow)
    """
    audit_storage: Optional[AuditStorageInterface] = None
    if repository is None:
        repository, audit_storage = create_storage(backend)

    audit_logger = AuditLogger(audit_storage)

    subscription_service = SubscriptionService(repository, audit_logger=audit_logger)
    export_import_service = ExportImportService(repository, audit_logger=audit_logger)
    dashboard_flow = DashboardFlow(subscription_service)

    return subscription_service, export_import_service, dashboard_flow
