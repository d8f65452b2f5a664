"""
Subscription Aggregate Validator

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - FIELD PARSING:
- Required field presence
- Numeric parsing (amounts, day of month) from numbers or strings
- Date parsing from ISO dates or ISO timestamps
- URL format (absolute http/https)

STAGE 2 - AGGREGATE NORMALISATION:
- With charges: price := sum of charge amounts,
  start_date := earliest charge start date
- Without charges: price and start_date are taken as given
- The result is built as a SubscriptionDraft, whose own model validator
  re-checks the invariant

All issues of stage 1 are collected before raising, so a form can show
every problem at once. The validator never touches storage; callers decide
whether a ValidationError aborts the operation (create/update) or just
skips one record (import).
"""

import math
from collections.abc import Mapping, Sequence
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from pydantic import HttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from subtracker.errors import ValidationError
from subtracker.models.subscription import (
    Charge,
    RecurringDuration,
    Subscription,
    SubscriptionDraft,
    ValidationIssue,
    coerce_date,
)


# Wire names of every field a caller may set.
EDITABLE_FIELDS = (
    "title",
    "description",
    "url",
    "price",
    "currency",
    "recurringDuration",
    "startDate",
    "charges",
)
IMMUTABLE_FIELDS = ("id", "createdAt")

_http_url = TypeAdapter(HttpUrl)


# =============================================================================
# PARSING HELPERS
# =============================================================================

def wire_key(key: str) -> str:
    """Map a snake_case field name to its camelCase wire name."""
    return to_camel(key) if "_" in key else key


def normalize_keys(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Accept either snake_case or camelCase keys, returning camelCase."""
    return {wire_key(str(k)): v for k, v in raw.items()}


def parse_decimal(value: Any) -> Optional[Decimal]:
    """Parse a number or numeric string. Returns None if it isn't one."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None


def wire_amount(amount: Decimal, as_float: Optional[float] = None) -> Decimal:
    """
    The amount as an export will carry it.

    Digits a double cannot hold are dropped, so export then import gives
    back the same value. Amounts that already fit are returned unchanged.
    """
    if as_float is None:
        as_float = float(amount)
    carried = Decimal(repr(as_float))
    return amount if carried == amount else carried


def parse_int(value: Any) -> Optional[int]:
    """Parse an integer or integer string. Returns None if it isn't one."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def parse_date(value: Any) -> Optional[date]:
    """Parse a date, datetime, ISO date or ISO timestamp. Returns None on failure."""
    value = coerce_date(value)
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        try:
            return date.fromisoformat(value)
        except ValueError:
            return None
    return None


def is_http_url(value: str) -> bool:
    try:
        _http_url.validate_python(value)
    except PydanticValidationError:
        return False
    return True


def normalize_charges(charges: Sequence[Charge]) -> tuple[Decimal, date]:
    """
    Canonical (price, start_date) of a non-empty charge list.

    price is the sum of the amounts, start_date the earliest charge start.
    """
    if not charges:
        raise ValueError("normalize_charges() needs at least one charge")
    price = sum((c.amount for c in charges), Decimal("0"))
    start_date = min(c.start_date for c in charges)
    return price, start_date


# =============================================================================
# VALIDATOR
# =============================================================================

class SubscriptionValidator:
    """
    Validates and normalises subscription input.

    validate() is used for creates and for each imported record;
    validate_update() merges a partial update over an existing record first.
    """

    def _positive_amount(
        self,
        value: Any,
        field: str,
        label: str,
        issues: list[ValidationIssue],
    ) -> Optional[Decimal]:
        amount = parse_decimal(value)
        if amount is None:
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_format",
                message=f"{label} must be a number",
            ))
            return None
        # Amounts travel as JSON numbers, so they must fit in a double.
        as_float = float(amount) if amount.is_finite() else math.inf
        if not math.isfinite(as_float) or as_float <= 0:
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message=f"{label} must be a positive finite number",
            ))
            return None
        return wire_amount(amount, as_float)

    def _validate_charges(
        self,
        raw_charges: Any,
        issues: list[ValidationIssue],
    ) -> Optional[list[Charge]]:
        """
        Parse the charge list.

        Returns None for absent/empty charges, or when any charge is invalid
        (in which case issues has been extended).
        """
        if raw_charges is None:
            return None
        if not isinstance(raw_charges, Sequence) or isinstance(raw_charges, (str, bytes)):
            issues.append(ValidationIssue(
                field="charges",
                issue_type="invalid_format",
                message="Charges must be a list",
            ))
            return None
        if len(raw_charges) == 0:
            return None

        charges: list[Charge] = []
        valid = True
        for index, raw in enumerate(raw_charges):
            prefix = f"charges[{index}]"
            if not isinstance(raw, Mapping):
                issues.append(ValidationIssue(
                    field=prefix,
                    issue_type="invalid_format",
                    message="Each charge must be an object",
                ))
                valid = False
                continue
            raw = normalize_keys(raw)

            amount = self._positive_amount(
                raw.get("amount"), f"{prefix}.amount", "Charge amount", issues
            )

            day = parse_int(raw.get("dayOfMonth"))
            if day is None or not 1 <= day <= 31:
                issues.append(ValidationIssue(
                    field=f"{prefix}.dayOfMonth",
                    issue_type="invalid_value",
                    message="Day of month must be between 1 and 31",
                ))

            start = parse_date(raw.get("startDate"))
            if start is None:
                issues.append(ValidationIssue(
                    field=f"{prefix}.startDate",
                    issue_type="missing",
                    message="All charges must have a start date",
                ))

            if amount is None or day is None or not 1 <= day <= 31 or start is None:
                valid = False
                continue
            charges.append(Charge(amount=amount, day_of_month=day, start_date=start))

        return charges if valid else None

    def validate(self, raw: Mapping[str, Any]) -> SubscriptionDraft:
        """
        Validate raw input and return the normalised draft.

        Raises:
            ValidationError: with one issue per failing field
        """
        raw = normalize_keys(raw)
        issues: list[ValidationIssue] = []

        title = raw.get("title")
        if not isinstance(title, str) or not title.strip():
            issues.append(ValidationIssue(
                field="title",
                issue_type="missing",
                message="Title is required",
            ))

        currency = raw.get("currency")
        if not isinstance(currency, str) or not currency.strip():
            issues.append(ValidationIssue(
                field="currency",
                issue_type="missing",
                message="Currency is required",
            ))

        duration = raw.get("recurringDuration")
        try:
            duration = RecurringDuration(duration)
        except ValueError:
            issues.append(ValidationIssue(
                field="recurringDuration",
                issue_type="invalid_value",
                message=(
                    "Recurring duration must be one of: "
                    + ", ".join(d.value for d in RecurringDuration)
                ),
            ))

        description = raw.get("description")
        if description is not None and not isinstance(description, str):
            issues.append(ValidationIssue(
                field="description",
                issue_type="invalid_format",
                message="Description must be text",
            ))
        elif isinstance(description, str) and not description.strip():
            description = None

        url = raw.get("url")
        if url is not None and not isinstance(url, str):
            issues.append(ValidationIssue(
                field="url",
                issue_type="invalid_format",
                message="URL must be text",
            ))
        elif isinstance(url, str):
            url = url.strip() or None
            if url and not is_http_url(url):
                issues.append(ValidationIssue(
                    field="url",
                    issue_type="invalid_format",
                    message="URL must be an absolute http or https address",
                ))

        raw_charges = raw.get("charges")
        if isinstance(raw_charges, (list, tuple)):
            charges_given = len(raw_charges) > 0
        else:
            charges_given = raw_charges is not None
        charges = self._validate_charges(raw_charges, issues)

        price: Optional[Decimal] = None
        start_date: Optional[date] = None
        if charges:
            price, start_date = normalize_charges(charges)
            if not math.isfinite(float(price)):
                issues.append(ValidationIssue(
                    field="charges",
                    issue_type="invalid_value",
                    message="Charges add up to more than a price can hold",
                ))
        elif not charges_given:
            if raw.get("price") in (None, ""):
                issues.append(ValidationIssue(
                    field="price",
                    issue_type="missing",
                    message="Price is required",
                ))
            else:
                price = self._positive_amount(raw.get("price"), "price", "Price", issues)

            start_date = parse_date(raw.get("startDate"))
            if start_date is None:
                issues.append(ValidationIssue(
                    field="startDate",
                    issue_type="missing",
                    message="Start date is required",
                ))

        if issues:
            raise ValidationError(issues)

        try:
            return SubscriptionDraft(
                title=title,
                description=description,
                url=url,
                price=price,
                currency=currency,
                recurring_duration=duration,
                start_date=start_date,
                charges=charges,
            )
        except PydanticValidationError as e:
            raise ValidationError([
                ValidationIssue(
                    field=".".join(wire_key(str(part)) for part in error["loc"]) or "subscription",
                    issue_type="invalid_value",
                    message=error["msg"],
                )
                for error in e.errors()
            ])

    def validate_update(
        self,
        existing: Subscription,
        changes: Mapping[str, Any],
    ) -> SubscriptionDraft:
        """
        Apply a partial update to an existing subscription and re-validate.

        The returned draft is the complete new state, so a price edit on a
        multi-charge subscription is overridden by the charge total, and
        clearing the charges turns it back into a flat-price subscription
        at its current total.
        """
        changes = normalize_keys(changes)
        issues: list[ValidationIssue] = []

        for key in changes:
            if key in IMMUTABLE_FIELDS:
                issues.append(ValidationIssue(
                    field=key,
                    issue_type="immutable",
                    message=f"{key} cannot be modified",
                ))
            elif key not in EDITABLE_FIELDS:
                issues.append(ValidationIssue(
                    field=key,
                    issue_type="unknown_field",
                    message=f"Unknown field: {key}",
                ))
        if issues:
            raise ValidationError(issues)

        merged = existing.model_dump(by_alias=True, exclude={"id", "created_at"})
        merged.update(changes)
        return self.validate(merged)
