"""
Data Models Package

This package contains all Pydantic models used by the Subscription Tracker.
Every subscription flowing through the system conforms to these schemas.
"""

from subtracker.models.subscription import (
    Charge,
    CurrencyStats,
    ExportDocument,
    ImportEnvelope,
    ImportOptions,
    ImportResult,
    PaymentEntry,
    PaymentStatus,
    RecurringDuration,
    Subscription,
    SubscriptionDraft,
    ValidationIssue,
)
from subtracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Subscription models
    "Charge",
    "CurrencyStats",
    "ExportDocument",
    "ImportEnvelope",
    "ImportOptions",
    "ImportResult",
    "PaymentEntry",
    "PaymentStatus",
    "RecurringDuration",
    "Subscription",
    "SubscriptionDraft",
    "ValidationIssue",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
