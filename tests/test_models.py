"""
Tests for the Subscription Tracker models

Test strategy:
1. Unit tests for individual components (models, calculator, validator)
2. Service tests against the in-memory backend
3. No real Google Sheets calls in tests
"""

import json
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from pydantic import ValidationError as PydanticValidationError

from subtracker.errors import PartialImportError, PersistenceError, ValidationError
from subtracker.models.subscription import (
    Charge,
    ExportDocument,
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


class TestSubscriptionModels:
    """Tests for subscription-related Pydantic models."""

    def test_draft_creation(self):
        """Test SubscriptionDraft model creation."""
        draft = SubscriptionDraft(
            title="  Netflix  ",
            price=Decimal("15.99"),
            currency="usd",
            recurring_duration=RecurringDuration.MONTHLY,
            start_date=date(2024, 1, 15),
        )
        assert draft.title == "Netflix"
        assert draft.currency == "USD"
        assert draft.is_multi_charge is False

    def test_draft_accepts_camel_case(self):
        """Test population from wire (camelCase) names."""
        draft = SubscriptionDraft.model_validate({
            "title": "Gym",
            "price": "40",
            "currency": "EUR",
            "recurringDuration": "semi-annually",
            "startDate": "2024-02-01T00:00:00.000Z",
        })
        assert draft.recurring_duration == RecurringDuration.SEMI_ANNUALLY
        assert draft.start_date == date(2024, 2, 1)

    def test_draft_rejects_non_positive_price(self):
        with pytest.raises(PydanticValidationError):
            SubscriptionDraft(
                title="Free",
                price=Decimal("0"),
                currency="USD",
                recurring_duration="monthly",
                start_date=date(2024, 1, 1),
            )

    def test_draft_rejects_price_not_matching_charges(self):
        """Test the charge-sum invariant."""
        with pytest.raises(PydanticValidationError):
            SubscriptionDraft(
                title="SIP",
                price=Decimal("100"),
                currency="INR",
                recurring_duration="monthly",
                start_date=date(2024, 1, 1),
                charges=[Charge(amount=Decimal("50"), day_of_month=1, start_date=date(2024, 1, 1))],
            )

    def test_draft_rejects_start_not_earliest_charge(self):
        with pytest.raises(PydanticValidationError):
            SubscriptionDraft(
                title="SIP",
                price=Decimal("50"),
                currency="INR",
                recurring_duration="monthly",
                start_date=date(2023, 12, 1),
                charges=[Charge(amount=Decimal("50"), day_of_month=1, start_date=date(2024, 1, 1))],
            )

    def test_empty_charges_collapse_to_none(self):
        draft = SubscriptionDraft(
            title="Plain",
            price=Decimal("5"),
            currency="USD",
            recurring_duration="weekly",
            start_date=date(2024, 1, 1),
            charges=[],
        )
        assert draft.charges is None

    def test_charge_day_bounds(self):
        with pytest.raises(PydanticValidationError):
            Charge(amount=Decimal("5"), day_of_month=32, start_date=date(2024, 1, 1))

    def test_subscription_identity_defaults(self):
        sub = Subscription(
            title="Netflix",
            price=Decimal("15.99"),
            currency="USD",
            recurring_duration="monthly",
            start_date=date(2024, 1, 15),
        )
        assert sub.id
        assert sub.created_at.tzinfo is not None
        assert "id" not in sub.to_draft().model_dump()

    def test_json_uses_camel_case_and_numbers(self):
        sub = Subscription(
            title="SIP",
            price=Decimal("80"),
            currency="INR",
            recurring_duration=RecurringDuration.BI_WEEKLY,
            start_date=date(2024, 1, 1),
            charges=[
                Charge(amount=Decimal("50"), day_of_month=1, start_date=date(2024, 1, 1)),
                Charge(amount=Decimal("30"), day_of_month=15, start_date=date(2024, 1, 1)),
            ],
        )
        data = json.loads(sub.model_dump_json(by_alias=True))

        assert data["recurringDuration"] == "bi-weekly"
        assert data["startDate"] == "2024-01-01"
        assert data["price"] == 80.0
        assert data["charges"][1] == {"amount": 30.0, "dayOfMonth": 15, "startDate": "2024-01-01"}

    def test_payment_entry(self):
        entry = PaymentEntry(due_date=date(2024, 1, 1), amount=Decimal("5"), status=PaymentStatus.PAID)
        assert entry.model_dump(by_alias=True)["dueDate"] == date(2024, 1, 1)


class TestExchangeModels:
    """Tests for export/import models."""

    def test_export_document(self):
        doc = ExportDocument(
            version="1.0.0",
            export_date=datetime(2024, 3, 1, tzinfo=timezone.utc),
        )
        data = json.loads(doc.model_dump_json(by_alias=True))
        assert data == {
            "version": "1.0.0",
            "exportDate": "2024-03-01T00:00:00Z",
            "subscriptions": [],
        }

    def test_import_options_default_to_merge(self):
        options = ImportOptions()
        assert options.merge is True
        assert options.replace is False

    def test_overwrite_selects_replace(self):
        options = ImportOptions(overwrite=True)
        assert options.merge is False
        assert options.replace is True

    def test_import_result(self):
        assert ImportResult(imported=2).has_errors is False
        assert ImportResult(imported=1, errors=["bad"]).has_errors is True


class TestErrors:
    """Tests for the error taxonomy."""

    def test_validation_error_message_and_fields(self):
        error = ValidationError([
            ValidationIssue(field="price", issue_type="missing", message="Price is required"),
            ValidationIssue(field="price", issue_type="invalid_value", message="second"),
            ValidationIssue(field="url", issue_type="invalid_format", message="Bad URL"),
        ])
        assert error.fields == {"price": "Price is required", "url": "Bad URL"}
        assert "price: Price is required" in error.message

    def test_partial_import_is_persistence_error(self):
        error = PartialImportError("Removed 3", deleted_count=3)
        assert isinstance(error, PersistenceError)
        assert error.deleted_count == 3


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_CREATED,
            description="Subscription created",
        )
        assert event.event_type == AuditEventType.SUBSCRIPTION_CREATED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_UPDATED,
            description="Subscription updated",
            details={"changed_fields": ["price"]},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "subscription_updated"
        assert log_dict["details"]["changed_fields"] == ["price"]

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEventBuilder.import_failed(
            user_id="user-1",
            error_type="format_error",
            error_message="Unrecognised import format",
        )
        row = event.to_sheets_row()
        assert len(row) == 11  # Expected number of columns
        assert row[2] == "import_failed"  # event_type
        assert row[3] == "error"  # severity
        assert row[10] == "Unrecognised import format"  # error_message

    def test_audit_event_builder_subscription_created(self):
        """Test AuditEventBuilder.subscription_created."""
        correlation_id = uuid4()

        event = AuditEventBuilder.subscription_created(
            user_id="user-1",
            subscription_id="sub-1",
            title="Netflix",
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.SUBSCRIPTION_CREATED
        assert event.entity_id == "sub-1"
        assert event.correlation_id == correlation_id
        assert event.user_id == "user-1"

    def test_audit_event_builder_import_completed(self):
        """Skipped records raise the severity to a warning."""
        clean = AuditEventBuilder.import_completed("user-1", "merge", 3, [])
        partial = AuditEventBuilder.import_completed("user-1", "replace", 2, ["bad"], deleted=4)

        assert clean.severity == AuditSeverity.INFO
        assert partial.severity == AuditSeverity.WARNING
        assert partial.details == {"mode": "replace", "imported": 2, "skipped": 1, "deleted": 4}


class TestRecurringDurations:
    """Tests for the cadence enum."""

    def test_all_durations_exist(self):
        expected = ["weekly", "bi-weekly", "monthly", "quarterly", "semi-annually", "yearly"]
        assert [d.value for d in RecurringDuration] == expected
