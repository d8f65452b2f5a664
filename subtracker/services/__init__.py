"""Services package."""

from subtracker.services.export_import import (
    ExportImportService,
    export_filename,
    parse_import_document,
)
from subtracker.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsSubscriptionRepository,
    InMemoryAuditStorage,
    InMemorySubscriptionRepository,
    NotFoundError,
    PersistenceError,
    SubscriptionRepository,
)
from subtracker.services.subscriptions import SubscriptionService, require_user

__all__ = [
    # Domain services
    "ExportImportService",
    "SubscriptionService",
    "export_filename",
    "parse_import_document",
    "require_user",
    # Storage services
    "AuditStorageInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsSubscriptionRepository",
    "InMemoryAuditStorage",
    "InMemorySubscriptionRepository",
    "NotFoundError",
    "PersistenceError",
    "SubscriptionRepository",
]
