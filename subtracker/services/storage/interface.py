"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a relational database later
2. Use in-memory storage for testing
3. Keep the calculation engine and services decoupled from storage

Services receive a repository through their constructor; there is no
module-level repository instance.

OWNERSHIP: every method takes the caller's user_id and only ever sees that
user's records. A record owned by someone else behaves exactly like a
record that does not exist.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from subtracker.errors import NotFoundError, PersistenceError
from subtracker.models.audit import AuditEvent
from subtracker.models.subscription import Subscription, SubscriptionDraft


class SubscriptionRepository(ABC):
    """
    Abstract interface for subscription storage operations.

    Any storage implementation (Google Sheets, PostgreSQL, in-memory)
    must implement these methods. Implementations assign id and created_at
    on create, and raise PersistenceError when the backend fails.
    """

    @abstractmethod
    async def get_all(self, user_id: str) -> list[Subscription]:
        """
        List every subscription owned by a user.

        Returns:
            Subscriptions in creation order
        """
        pass

    @abstractmethod
    async def get_by_id(self, user_id: str, subscription_id: str) -> Optional[Subscription]:
        """
        Retrieve one subscription.

        Returns:
            The subscription if it exists and belongs to user_id, None otherwise
        """
        pass

    @abstractmethod
    async def create(self, user_id: str, draft: SubscriptionDraft) -> Subscription:
        """
        Store a new subscription.

        Args:
            user_id: Owner of the new record
            draft: Validated fields

        Returns:
            The stored subscription with id and created_at assigned
        """
        pass

    @abstractmethod
    async def update(
        self,
        user_id: str,
        subscription_id: str,
        draft: SubscriptionDraft,
    ) -> Subscription:
        """
        Replace the editable fields of an existing subscription.

        id and created_at are preserved.

        Raises:
            NotFoundError: If the subscription doesn't exist for this user
        """
        pass

    @abstractmethod
    async def delete(self, user_id: str, subscription_id: str) -> bool:
        """
        Delete a subscription permanently.

        Returns:
            True if a record was deleted, False if none matched
        """
        pass

    @abstractmethod
    async def bulk_create(
        self,
        user_id: str,
        drafts: list[SubscriptionDraft],
    ) -> list[Subscription]:
        """
        Store several subscriptions in one call.

        Returns:
            The stored subscriptions, in input order
        """
        pass

    @abstractmethod
    async def bulk_delete(self, user_id: str, subscription_ids: list[str]) -> int:
        """
        Delete several subscriptions in one call.

        Ids that don't exist or belong to another user are ignored.

        Returns:
            Number of records deleted
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one import).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        user_id: str,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events of one user.

        Returns:
            List of recent events (newest first)
        """
        pass


__all__ = [
    "AuditStorageInterface",
    "NotFoundError",
    "PersistenceError",
    "SubscriptionRepository",
]
