"""Tests for SubscriptionService and the in-memory repository behind it."""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from subtracker.errors import AuthError, NotFoundError, PersistenceError, ValidationError
from subtracker.models.audit import AuditEventType
from subtracker.services.storage import InMemorySubscriptionRepository
from subtracker.services.subscriptions import SubscriptionService


USER = "user-1"
OTHER = "user-2"


def run(coro):
    return asyncio.run(coro)


def new_subscription(**overrides):
    raw = {
        "title": "Netflix",
        "price": "15.99",
        "currency": "USD",
        "recurringDuration": "monthly",
        "startDate": "2024-01-15",
    }
    raw.update(overrides)
    return raw


class BrokenRepository(InMemorySubscriptionRepository):
    async def get_all(self, user_id):
        raise PersistenceError("Failed to load subscriptions")


class TestAuthentication:
    """Every entry point rejects a missing user before doing anything else."""

    @pytest.mark.parametrize("user_id", [None, "", "   "])
    def test_create_requires_user(self, subscription_service, repository, user_id):
        with pytest.raises(AuthError):
            run(subscription_service.create_subscription(user_id, new_subscription()))
        assert run(repository.get_all(USER)) == []

    def test_auth_checked_before_validation(self, subscription_service):
        with pytest.raises(AuthError):
            run(subscription_service.create_subscription(None, {"title": ""}))

    def test_every_operation(self, subscription_service):
        with pytest.raises(AuthError):
            run(subscription_service.list_subscriptions(None))
        with pytest.raises(AuthError):
            run(subscription_service.get_subscription(None, "x"))
        with pytest.raises(AuthError):
            run(subscription_service.update_subscription(None, "x", {"title": "y"}))
        with pytest.raises(AuthError):
            run(subscription_service.delete_subscription(None, "x"))

    def test_rejection_is_audited(self, subscription_service, audit_storage):
        with pytest.raises(AuthError):
            run(subscription_service.list_subscriptions(None))
        assert audit_storage.events[-1].event_type == AuditEventType.AUTH_REJECTED


class TestCreate:
    """Tests for create_subscription."""

    def test_assigns_identity(self, subscription_service):
        created = run(subscription_service.create_subscription(USER, new_subscription()))

        assert created.id
        assert created.created_at is not None
        assert created.price == Decimal("15.99")

    def test_normalises_charges(self, subscription_service):
        created = run(subscription_service.create_subscription(USER, new_subscription(
            price="999",
            charges=[
                {"amount": 50, "dayOfMonth": 1, "startDate": "2024-01-01"},
                {"amount": 30, "dayOfMonth": 15, "startDate": "2024-01-01"},
            ],
        )))
        assert created.price == Decimal("80")
        assert created.start_date == date(2024, 1, 1)

    def test_invalid_input_stores_nothing(self, subscription_service, repository, audit_storage):
        with pytest.raises(ValidationError):
            run(subscription_service.create_subscription(USER, new_subscription(price="-1")))

        assert run(repository.get_all(USER)) == []
        assert audit_storage.events[-1].event_type == AuditEventType.VALIDATION_FAILED

    def test_audited(self, subscription_service, audit_storage):
        created = run(subscription_service.create_subscription(USER, new_subscription()))
        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.SUBSCRIPTION_CREATED
        assert event.entity_id == created.id
        assert event.user_id == USER


class TestReadAndOwnership:
    """Records are invisible to other users."""

    def test_list_is_per_user(self, subscription_service):
        run(subscription_service.create_subscription(USER, new_subscription(title="Mine")))
        run(subscription_service.create_subscription(OTHER, new_subscription(title="Theirs")))

        assert [s.title for s in run(subscription_service.list_subscriptions(USER))] == ["Mine"]

    def test_get_missing(self, subscription_service):
        with pytest.raises(NotFoundError):
            run(subscription_service.get_subscription(USER, "nope"))

    def test_get_other_users_record(self, subscription_service):
        theirs = run(subscription_service.create_subscription(OTHER, new_subscription()))
        with pytest.raises(NotFoundError):
            run(subscription_service.get_subscription(USER, theirs.id))

    def test_returned_records_are_copies(self, subscription_service):
        created = run(subscription_service.create_subscription(USER, new_subscription()))
        fetched = run(subscription_service.get_subscription(USER, created.id))
        fetched.title = "Changed"
        assert run(subscription_service.get_subscription(USER, created.id)).title == "Netflix"

    def test_reads_do_not_allocate_per_user_storage(self, repository):
        for index in range(50):
            assert run(repository.get_by_id(f"stranger-{index}", "nope")) is None
            assert run(repository.get_all(f"stranger-{index}")) == []
            assert run(repository.delete(f"stranger-{index}", "nope")) is False
            assert run(repository.bulk_delete(f"stranger-{index}", ["nope"])) == 0
        assert repository._records == {}

    def test_persistence_error_propagates(self, audit_logger, audit_storage):
        service = SubscriptionService(BrokenRepository(), audit_logger=audit_logger)
        with pytest.raises(PersistenceError) as exc_info:
            run(service.list_subscriptions(USER))
        assert exc_info.value.message == "Failed to load subscriptions"
        assert audit_storage.events[-1].event_type == AuditEventType.PERSISTENCE_ERROR


class TestUpdate:
    """Tests for update_subscription."""

    def test_partial_update(self, subscription_service):
        created = run(subscription_service.create_subscription(USER, new_subscription()))
        updated = run(subscription_service.update_subscription(USER, created.id, {"price": "17.99"}))

        assert updated.price == Decimal("17.99")
        assert updated.title == "Netflix"
        assert updated.id == created.id
        assert updated.created_at == created.created_at

    def test_price_follows_charges(self, subscription_service):
        created = run(subscription_service.create_subscription(USER, new_subscription(charges=[
            {"amount": 10, "dayOfMonth": 1, "startDate": "2024-01-01"},
            {"amount": 5, "dayOfMonth": 10, "startDate": "2024-01-01"},
        ])))
        updated = run(subscription_service.update_subscription(USER, created.id, {"price": "1"}))
        assert updated.price == Decimal("15")

    def test_clearing_charges(self, subscription_service):
        created = run(subscription_service.create_subscription(USER, new_subscription(charges=[
            {"amount": 10, "dayOfMonth": 1, "startDate": "2024-01-01"},
        ])))
        updated = run(subscription_service.update_subscription(USER, created.id, {"charges": []}))

        assert updated.charges is None
        assert updated.price == Decimal("10")

    def test_cannot_change_id(self, subscription_service):
        created = run(subscription_service.create_subscription(USER, new_subscription()))
        with pytest.raises(ValidationError):
            run(subscription_service.update_subscription(USER, created.id, {"id": "new"}))

    def test_invalid_update_leaves_record(self, subscription_service):
        created = run(subscription_service.create_subscription(USER, new_subscription()))
        with pytest.raises(ValidationError):
            run(subscription_service.update_subscription(USER, created.id, {"url": "nope"}))
        assert run(subscription_service.get_subscription(USER, created.id)).url is None

    def test_other_users_record(self, subscription_service):
        theirs = run(subscription_service.create_subscription(OTHER, new_subscription()))
        with pytest.raises(NotFoundError):
            run(subscription_service.update_subscription(USER, theirs.id, {"title": "Mine now"}))

    def test_audit_lists_changed_fields(self, subscription_service, audit_storage):
        created = run(subscription_service.create_subscription(USER, new_subscription()))
        run(subscription_service.update_subscription(USER, created.id, {"title": "Netflix 4K"}))
        assert audit_storage.events[-1].details["changed_fields"] == ["title"]


class TestDelete:
    """Tests for delete_subscription."""

    def test_delete(self, subscription_service):
        created = run(subscription_service.create_subscription(USER, new_subscription()))
        run(subscription_service.delete_subscription(USER, created.id))

        with pytest.raises(NotFoundError):
            run(subscription_service.get_subscription(USER, created.id))

    def test_delete_missing(self, subscription_service):
        with pytest.raises(NotFoundError):
            run(subscription_service.delete_subscription(USER, "nope"))

    def test_delete_other_users_record(self, subscription_service):
        theirs = run(subscription_service.create_subscription(OTHER, new_subscription()))
        with pytest.raises(NotFoundError):
            run(subscription_service.delete_subscription(USER, theirs.id))
        assert run(subscription_service.get_subscription(OTHER, theirs.id)).id == theirs.id
