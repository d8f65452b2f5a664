"""
In-Memory Storage Implementation

Used by the tests and by the local UI when no Google Sheets credentials
are configured. Data lives only as long as the process.

Records are kept per user, so cross-user access is impossible by
construction rather than by filtering.
"""

import asyncio
from typing import Optional
from uuid import UUID

from subtracker.errors import NotFoundError
from subtracker.models.audit import AuditEvent
from subtracker.models.subscription import Subscription, SubscriptionDraft, utcnow
from subtracker.services.storage.interface import (
    AuditStorageInterface,
    SubscriptionRepository,
)


class InMemorySubscriptionRepository(SubscriptionRepository):
    """Dictionary-backed subscription repository."""

    def __init__(self):
        self._records: dict[str, dict[str, Subscription]] = {}
        self._lock = asyncio.Lock()

    def _build(self, draft: SubscriptionDraft) -> Subscription:
        return Subscription(**draft.model_dump(exclude={"id", "created_at"}), created_at=utcnow())

    async def get_all(self, user_id: str) -> list[Subscription]:
        async with self._lock:
            return [s.model_copy(deep=True) for s in self._records.get(user_id, {}).values()]

    async def get_by_id(self, user_id: str, subscription_id: str) -> Optional[Subscription]:
        async with self._lock:
            found = self._records.get(user_id, {}).get(subscription_id)
            return found.model_copy(deep=True) if found else None

    async def create(self, user_id: str, draft: SubscriptionDraft) -> Subscription:
        async with self._lock:
            subscription = self._build(draft)
            self._records.setdefault(user_id, {})[subscription.id] = subscription
            return subscription.model_copy(deep=True)

    async def update(
        self,
        user_id: str,
        subscription_id: str,
        draft: SubscriptionDraft,
    ) -> Subscription:
        async with self._lock:
            existing = self._records.get(user_id, {}).get(subscription_id)
            if existing is None:
                raise NotFoundError(f"Subscription not found: {subscription_id}")
            updated = Subscription(
                **draft.model_dump(exclude={"id", "created_at"}),
                id=existing.id,
                created_at=existing.created_at,
            )
            self._records[user_id][subscription_id] = updated
            return updated.model_copy(deep=True)

    async def delete(self, user_id: str, subscription_id: str) -> bool:
        async with self._lock:
            return self._records.get(user_id, {}).pop(subscription_id, None) is not None

    async def bulk_create(
        self,
        user_id: str,
        drafts: list[SubscriptionDraft],
    ) -> list[Subscription]:
        async with self._lock:
            created = [self._build(draft) for draft in drafts]
            owned = self._records.setdefault(user_id, {})
            for subscription in created:
                owned[subscription.id] = subscription
            return [s.model_copy(deep=True) for s in created]

    async def bulk_delete(self, user_id: str, subscription_ids: list[str]) -> int:
        async with self._lock:
            owned = self._records.get(user_id, {})
            return sum(1 for sid in subscription_ids if owned.pop(sid, None) is not None)


class InMemoryAuditStorage(AuditStorageInterface):
    """List-backed audit log."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        user_id: str,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.user_id == user_id]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
