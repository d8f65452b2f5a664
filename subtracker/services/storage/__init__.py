"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the hosted backend; the in-memory backend serves tests
and local runs. Both are swappable behind SubscriptionRepository.
"""

from subtracker.services.storage.interface import (
    AuditStorageInterface,
    NotFoundError,
    PersistenceError,
    SubscriptionRepository,
)
from subtracker.services.storage.memory import (
    InMemoryAuditStorage,
    InMemorySubscriptionRepository,
)
from subtracker.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsSubscriptionRepository,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "SubscriptionRepository",
    # Exceptions
    "NotFoundError",
    "PersistenceError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemorySubscriptionRepository",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsSubscriptionRepository",
]
