"""
Shared fixtures.

Services are async; tests drive them with asyncio.run so no event-loop
plugin is needed. Everything runs against the in-memory backend.
"""

from datetime import date
from decimal import Decimal

import pytest

from subtracker.audit import AuditLogger
from subtracker.config import AppSettings
from subtracker.models.subscription import RecurringDuration, Subscription
from subtracker.services.export_import import ExportImportService
from subtracker.services.storage import InMemoryAuditStorage, InMemorySubscriptionRepository
from subtracker.services.subscriptions import SubscriptionService


@pytest.fixture
def repository():
    return InMemorySubscriptionRepository()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def app_settings():
    return AppSettings(_env_file=None, export_format_version="1.0.0")


@pytest.fixture
def subscription_service(repository, audit_logger):
    return SubscriptionService(repository, audit_logger=audit_logger)


@pytest.fixture
def export_import_service(repository, audit_logger, app_settings):
    return ExportImportService(repository, audit_logger=audit_logger, settings=app_settings)


@pytest.fixture
def make_subscription():
    """Build a flat-price Subscription with sensible defaults."""
    def _make(**overrides):
        fields = {
            "title": "Netflix",
            "price": Decimal("15.99"),
            "currency": "USD",
            "recurring_duration": RecurringDuration.MONTHLY,
            "start_date": date(2024, 1, 15),
        }
        fields.update(overrides)
        return Subscription(**fields)
    return _make
