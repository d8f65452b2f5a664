"""Tests for component wiring and the dashboard flow."""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from subtracker.errors import AuthError
from subtracker.orchestrator import create_app_components, create_storage
from subtracker.services.storage import (
    InMemoryAuditStorage,
    InMemorySubscriptionRepository,
)


USER = "user-1"


def run(coro):
    return asyncio.run(coro)


class TestWiring:
    """Tests for create_storage and create_app_components."""

    def test_memory_backend(self):
        repository, audit_storage = create_storage("memory")
        assert isinstance(repository, InMemorySubscriptionRepository)
        assert isinstance(audit_storage, InMemoryAuditStorage)

    def test_unconfigured_sheets_falls_back_to_memory(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)

        repository, _ = create_storage("google_sheets")
        assert isinstance(repository, InMemorySubscriptionRepository)

    def test_components_share_repository(self, repository):
        subscriptions, export_import, _ = create_app_components(repository=repository)
        run(subscriptions.create_subscription(USER, {
            "title": "Netflix",
            "price": "10",
            "currency": "USD",
            "recurringDuration": "monthly",
            "startDate": "2024-01-15",
        }))
        document = run(export_import.build_export(USER))
        assert [s.title for s in document.subscriptions] == ["Netflix"]


class TestDashboard:
    """Tests for DashboardFlow.build."""

    @pytest.fixture
    def components(self, repository):
        subscriptions, _, dashboard = create_app_components(repository=repository)
        for title, currency, start in [
            ("Later", "USD", "2024-01-25"),
            ("Sooner", "USD", "2024-01-21"),
            ("Hotstar", "INR", "2024-01-01"),
        ]:
            run(subscriptions.create_subscription(USER, {
                "title": title,
                "price": "10",
                "currency": currency,
                "recurringDuration": "monthly",
                "startDate": start,
            }))
        return dashboard

    def test_cards_sorted_by_next_renewal(self, components):
        dashboard = run(components.build(USER, date(2024, 3, 20)))
        assert [c.subscription.title for c in dashboard.cards] == ["Sooner", "Later", "Hotstar"]

    def test_card_figures(self, components):
        dashboard = run(components.build(USER, date(2024, 3, 20)))
        sooner = next(c for c in dashboard.cards if c.subscription.title == "Sooner")

        assert sooner.cadence == "Monthly"
        assert sooner.next_renewal == date(2024, 3, 21)
        assert sooner.renewal_label == "Renews tomorrow"
        assert sooner.monthly_cost == Decimal("10")
        assert sooner.total_spent == Decimal("20")
        assert len(sooner.payments) == 2

    def test_stats_per_currency(self, components):
        dashboard = run(components.build(USER, date(2024, 3, 20)))
        assert [(s.currency, s.count) for s in dashboard.stats] == [("USD", 2), ("INR", 1)]

    def test_requires_user(self, components):
        with pytest.raises(AuthError):
            run(components.build(None, date(2024, 3, 20)))
