"""
Subscription Service

Create, read, update and delete for one user's subscriptions.

DESIGN DECISION: The service enforces the boundaries:
- No call proceeds without a user id (AuthError before anything else)
- Nothing is stored unless it passed the validator
- A record owned by another user is reported as not found
- Every change is audited

The repository is injected; there is no module-level instance.
"""

from collections.abc import Mapping
from typing import Any, Optional
from uuid import UUID

from subtracker.audit import AuditLogger, create_correlation_id
from subtracker.errors import AuthError, NotFoundError, PersistenceError, ValidationError
from subtracker.models.subscription import Subscription
from subtracker.services.storage.interface import SubscriptionRepository
from subtracker.validation import SubscriptionValidator


async def require_user(
    user_id: Optional[str],
    operation: str,
    audit_logger: Optional[AuditLogger] = None,
    correlation_id: Optional[UUID] = None,
) -> str:
    """
    Return the user id, or raise AuthError when there is none.

    Every service entry point calls this before any domain logic.
    """
    if isinstance(user_id, str) and user_id.strip():
        return user_id
    if audit_logger:
        await audit_logger.log_auth_rejected(
            operation=operation,
            correlation_id=correlation_id,
        )
    raise AuthError("You must be signed in to manage subscriptions")


class SubscriptionService:
    """Single-record subscription operations scoped to one user."""

    def __init__(
        self,
        repository: SubscriptionRepository,
        validator: Optional[SubscriptionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._repository = repository
        self._validator = validator or SubscriptionValidator()
        self._audit_logger = audit_logger

    async def _persistence_failed(
        self,
        user_id: str,
        operation: str,
        error: PersistenceError,
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_persistence_error(
                user_id=user_id,
                operation=operation,
                error_message=error.message,
                correlation_id=correlation_id,
            )

    async def _validation_failed(
        self,
        user_id: str,
        error: ValidationError,
        correlation_id: UUID,
        subscription_id: Optional[str] = None,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_validation_failed(
                user_id=user_id,
                issues=[issue.model_dump() for issue in error.issues],
                subscription_id=subscription_id,
                correlation_id=correlation_id,
            )

    async def list_subscriptions(self, user_id: Optional[str]) -> list[Subscription]:
        """All subscriptions of the user, in creation order."""
        correlation_id = create_correlation_id()
        user_id = await require_user(user_id, "list_subscriptions", self._audit_logger, correlation_id)
        try:
            return await self._repository.get_all(user_id)
        except PersistenceError as e:
            await self._persistence_failed(user_id, "list_subscriptions", e, correlation_id)
            raise

    async def get_subscription(
        self,
        user_id: Optional[str],
        subscription_id: str,
    ) -> Subscription:
        """
        Fetch one subscription.

        Raises:
            NotFoundError: If it doesn't exist or belongs to someone else
        """
        correlation_id = create_correlation_id()
        user_id = await require_user(user_id, "get_subscription", self._audit_logger, correlation_id)
        try:
            subscription = await self._repository.get_by_id(user_id, subscription_id)
        except PersistenceError as e:
            await self._persistence_failed(user_id, "get_subscription", e, correlation_id)
            raise
        if subscription is None:
            raise NotFoundError(f"Subscription not found: {subscription_id}")
        return subscription

    async def create_subscription(
        self,
        user_id: Optional[str],
        raw: Mapping[str, Any],
    ) -> Subscription:
        """
        Validate and store a new subscription.

        With charges, price and start date are derived from them and any
        supplied values are overridden.
        """
        correlation_id = create_correlation_id()
        user_id = await require_user(user_id, "create_subscription", self._audit_logger, correlation_id)

        try:
            draft = self._validator.validate(raw)
        except ValidationError as e:
            await self._validation_failed(user_id, e, correlation_id)
            raise

        try:
            created = await self._repository.create(user_id, draft)
        except PersistenceError as e:
            await self._persistence_failed(user_id, "create_subscription", e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_subscription_created(
                user_id=user_id,
                subscription_id=created.id,
                title=created.title,
                correlation_id=correlation_id,
            )
        return created

    async def update_subscription(
        self,
        user_id: Optional[str],
        subscription_id: str,
        changes: Mapping[str, Any],
    ) -> Subscription:
        """
        Apply a partial update.

        The merged record is re-validated, so the charge invariant holds
        after every edit. id and createdAt cannot be changed.
        """
        correlation_id = create_correlation_id()
        user_id = await require_user(user_id, "update_subscription", self._audit_logger, correlation_id)

        try:
            existing = await self._repository.get_by_id(user_id, subscription_id)
        except PersistenceError as e:
            await self._persistence_failed(user_id, "update_subscription", e, correlation_id)
            raise
        if existing is None:
            raise NotFoundError(f"Subscription not found: {subscription_id}")

        try:
            draft = self._validator.validate_update(existing, changes)
        except ValidationError as e:
            await self._validation_failed(user_id, e, correlation_id, subscription_id)
            raise

        try:
            updated = await self._repository.update(user_id, subscription_id, draft)
        except PersistenceError as e:
            await self._persistence_failed(user_id, "update_subscription", e, correlation_id)
            raise

        if self._audit_logger:
            before = existing.to_draft().model_dump()
            after = draft.model_dump()
            changed = [name for name in after if before.get(name) != after[name]]
            await self._audit_logger.log_subscription_updated(
                user_id=user_id,
                subscription_id=subscription_id,
                changed_fields=changed,
                correlation_id=correlation_id,
            )
        return updated

    async def delete_subscription(
        self,
        user_id: Optional[str],
        subscription_id: str,
    ) -> None:
        """
        Delete a subscription permanently.

        Raises:
            NotFoundError: If it doesn't exist or belongs to someone else
        """
        correlation_id = create_correlation_id()
        user_id = await require_user(user_id, "delete_subscription", self._audit_logger, correlation_id)

        try:
            deleted = await self._repository.delete(user_id, subscription_id)
        except PersistenceError as e:
            await self._persistence_failed(user_id, "delete_subscription", e, correlation_id)
            raise
        if not deleted:
            raise NotFoundError(f"Subscription not found: {subscription_id}")

        if self._audit_logger:
            await self._audit_logger.log_subscription_deleted(
                user_id=user_id,
                subscription_id=subscription_id,
                correlation_id=correlation_id,
            )
