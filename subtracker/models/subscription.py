"""
Core Data Models for the Subscription Tracker

These models define the schemas for every subscription flowing through the
system, from form input to storage to the export document.
They are designed to:
1. Enforce type safety at runtime
2. Read and write the camelCase wire format of the export document
3. Keep amounts as Decimal internally and emit JSON numbers on the wire
4. Refuse to represent a multi-charge subscription whose price is out of sync

DESIGN DECISION: SubscriptionDraft is the only way into storage. The
validator builds drafts, the repositories accept drafts and return
Subscription objects with an id and created_at attached.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def coerce_date(value: Any) -> Any:
    """
    Accept ISO timestamps where a date is expected.

    Exports from the web client carry dates as full timestamps
    ("2024-01-31T00:00:00.000Z"); only the calendar date matters here.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        value = value.strip()
        if len(value) > 10 and value[10] in ("T", " "):
            return value[:10]
    return value


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class RecurringDuration(str, Enum):
    """
    Billing cadence of a subscription.

    The values are the exact strings used in the export document.
    """
    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMI_ANNUALLY = "semi-annually"
    YEARLY = "yearly"


class PaymentStatus(str, Enum):
    """Status of a reconstructed payment relative to the as-of date."""
    PAID = "paid"
    SCHEDULED = "scheduled"


# =============================================================================
# SUBSCRIPTION MODELS
# =============================================================================

class WireModel(BaseModel):
    """Base for models that travel as camelCase JSON."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class Charge(WireModel):
    """
    One independent repeating payment within a subscription.

    A SIP that debits 50 on the 1st and 30 on the 15th is one subscription
    with two charges.
    """

    amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount charged each cycle"
    )
    day_of_month: int = Field(
        ...,
        ge=1,
        le=31,
        description="Day of month the charge lands on (monthly cadence)"
    )
    start_date: date = Field(
        ...,
        description="Date this charge begins recurring"
    )

    @field_validator("start_date", mode="before")
    @classmethod
    def parse_start_date(cls, v: Any) -> Any:
        return coerce_date(v)

    @field_serializer("amount", when_used="json")
    def serialize_amount(self, amount: Decimal) -> float:
        return float(amount)


class SubscriptionDraft(WireModel):
    """
    The storable fields of a subscription, without id and created_at.

    CRITICAL: when charges are present, price and start_date are derived
    values. The model refuses a draft where they disagree with the charges.
    """

    title: str = Field(
        ...,
        min_length=1,
        description="Subscription name"
    )
    description: Optional[str] = Field(
        default=None,
        description="Free-form notes"
    )
    url: Optional[str] = Field(
        default=None,
        description="Link to the service (http/https)"
    )
    price: Decimal = Field(
        ...,
        gt=0,
        description="Total charged per billing cycle"
    )
    currency: str = Field(
        ...,
        min_length=1,
        max_length=10,
        description="Currency code, e.g. USD"
    )
    recurring_duration: RecurringDuration = Field(
        ...,
        description="Billing cadence"
    )
    start_date: date = Field(
        ...,
        description="Earliest billing date"
    )
    charges: Optional[list[Charge]] = Field(
        default=None,
        description="Individual charges; absent for a flat-price subscription"
    )

    @field_validator("start_date", mode="before")
    @classmethod
    def parse_start_date(cls, v: Any) -> Any:
        return coerce_date(v)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()

    @model_validator(mode="after")
    def validate_charges_consistency(self) -> "SubscriptionDraft":
        """Empty charge lists collapse to None; non-empty ones must match price/start_date."""
        if self.charges is not None and len(self.charges) == 0:
            self.charges = None

        if self.charges:
            total = sum((c.amount for c in self.charges), Decimal("0"))
            if self.price != total:
                raise ValueError(
                    f"Price {self.price} does not equal the sum of charges {total}"
                )
            earliest = min(c.start_date for c in self.charges)
            if self.start_date != earliest:
                raise ValueError(
                    f"Start date {self.start_date} is not the earliest charge date {earliest}"
                )

        return self

    @field_serializer("price", when_used="json")
    def serialize_price(self, price: Decimal) -> float:
        return float(price)

    @property
    def is_multi_charge(self) -> bool:
        return bool(self.charges)


class Subscription(SubscriptionDraft):
    """
    A stored subscription.

    id and created_at are assigned by the repository on create and never
    change afterwards.
    """

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Opaque unique identifier"
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        description="When the subscription was created"
    )

    def to_draft(self) -> SubscriptionDraft:
        """Strip identity fields."""
        return SubscriptionDraft(**self.model_dump(exclude={"id", "created_at"}))


class PaymentEntry(WireModel):
    """A single reconstructed payment in a subscription's history."""

    due_date: date
    amount: Decimal
    status: PaymentStatus

    @field_serializer("amount", when_used="json")
    def serialize_amount(self, amount: Decimal) -> float:
        return float(amount)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue, using the wire name"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'invalid_format')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


# =============================================================================
# IMPORT / EXPORT MODELS
# =============================================================================

class ExportDocument(WireModel):
    """The durable interchange format for a user's subscriptions."""

    version: str
    export_date: datetime = Field(default_factory=utcnow)
    subscriptions: list[Subscription] = Field(default_factory=list)


class ImportEnvelope(BaseModel):
    """
    The wrapped import shape: any object with a subscriptions list.

    Records stay untyped here; each one is validated on its own so a single
    bad record cannot sink the whole document.
    """
    model_config = ConfigDict(extra="allow")

    subscriptions: list[Any]


class ImportOptions(BaseModel):
    """
    How imported records combine with existing ones.

    overwrite=True selects replace mode; otherwise records are merged.
    merge defaults to the opposite of overwrite.
    """

    merge: Optional[bool] = None
    overwrite: bool = False

    @model_validator(mode="after")
    def default_merge(self) -> "ImportOptions":
        if self.merge is None:
            self.merge = not self.overwrite
        return self

    @property
    def replace(self) -> bool:
        return self.overwrite


class ImportResult(BaseModel):
    """Outcome of an import. Partial success is a normal result."""

    imported: int = Field(default=0, ge=0)
    errors: list[str] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0


# =============================================================================
# STATS MODELS
# =============================================================================

class CurrencyStats(BaseModel):
    """Portfolio figures for the subscriptions billed in one currency."""

    currency: str
    count: int = Field(ge=0)
    total_monthly_cost: Decimal
    total_spent: Decimal
    average_monthly_cost: Decimal
    most_costly: Optional[SubscriptionDraft] = None
