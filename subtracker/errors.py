"""
Error Taxonomy

Every failure surfaced to a caller is one of the classes below and carries a
human-readable message. Storage adapters translate backend exceptions into
PersistenceError so connection strings, sheet ids and stack traces stay in
the log, never in the message.

    SubscriptionTrackerError
    ├── ValidationError      field-level, user-fixable
    ├── FormatError          import document shape unrecognised
    ├── NotFoundError        record missing or owned by someone else
    ├── AuthError            no authenticated identity
    └── PersistenceError     underlying store failure
        └── PartialImportError   replace import deleted but could not recreate
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from subtracker.models.subscription import ValidationIssue


class SubscriptionTrackerError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SubscriptionTrackerError):
    """
    One or more fields failed validation.

    The issues are keyed by field (using the wire names, e.g. "charges[1].dayOfMonth")
    so a form can attach each message to its input.
    """

    def __init__(self, issues: list["ValidationIssue"], message: Optional[str] = None):
        self.issues = issues
        if message is None:
            message = "; ".join(f"{issue.field}: {issue.message}" for issue in issues)
        super().__init__(message or "Invalid subscription")

    @property
    def fields(self) -> dict[str, str]:
        """Map of field name to the first message reported for it."""
        result: dict[str, str] = {}
        for issue in self.issues:
            result.setdefault(issue.field, issue.message)
        return result


class FormatError(SubscriptionTrackerError):
    """The import document is not a list or an object with a subscriptions list."""
    pass


class NotFoundError(SubscriptionTrackerError):
    """Subscription not found for this user."""
    pass


class AuthError(SubscriptionTrackerError):
    """No authenticated user id was supplied."""
    pass


class PersistenceError(SubscriptionTrackerError):
    """Base exception for storage failures."""
    pass


class PartialImportError(PersistenceError):
    """
    A replace import removed the existing subscriptions but failed to create
    the imported ones. The user should re-run the import from their export.
    """

    def __init__(self, message: str, deleted_count: int):
        super().__init__(message)
        self.deleted_count = deleted_count
