"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the hosted storage backend because:
1. Users can view and back up their subscriptions directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions: a replace import deletes rows, then appends rows.
  The import service reports a failure between the two explicitly.
- Limited query capabilities (we filter by user_id in Python)

Every row carries its owner's user_id and every read filters on it.
Backend errors are logged with their details and re-raised as
PersistenceError with a generic message.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from subtracker.config import GoogleSheetsSettings, get_settings
from subtracker.errors import NotFoundError, PersistenceError
from subtracker.models.audit import AuditEvent, AuditEventType, AuditSeverity
from subtracker.models.subscription import (
    Charge,
    RecurringDuration,
    Subscription,
    SubscriptionDraft,
    utcnow,
)
from subtracker.services.storage.interface import (
    AuditStorageInterface,
    SubscriptionRepository,
)


logger = structlog.get_logger(__name__)


# Column mappings for Subscriptions sheet
SUBSCRIPTION_COLUMNS = [
    "id",
    "user_id",
    "created_at",
    "title",
    "description",
    "url",
    "price",
    "currency",
    "recurring_duration",
    "start_date",
    "charges_json",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]

_RETRY = dict(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(**_RETRY)
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError as e:
                logger.error("sheets_credentials_missing", path=self._settings.credentials_path)
                raise PersistenceError("Storage is not configured") from e
            except Exception as e:
                logger.error("sheets_connect_failed", error=str(e))
                raise PersistenceError("Could not connect to storage") from e

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound as e:
                logger.error("sheets_spreadsheet_missing", spreadsheet_id=self._settings.spreadsheet_id)
                raise PersistenceError("Storage is not configured") from e
        return self._spreadsheet

    def _get_or_create_sheet(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_subscriptions_sheet(self) -> gspread.Worksheet:
        """Get or create the Subscriptions worksheet."""
        return self._get_or_create_sheet(
            self._settings.subscriptions_sheet_name, SUBSCRIPTION_COLUMNS, 1000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, 5000
        )


def subscription_to_row(user_id: str, subscription: Subscription) -> list:
    """Convert a Subscription to a spreadsheet row."""
    charges = [
        {
            "amount": str(c.amount),
            "dayOfMonth": c.day_of_month,
            "startDate": c.start_date.isoformat(),
        }
        for c in subscription.charges or []
    ]
    return [
        subscription.id,
        user_id,
        subscription.created_at.isoformat(),
        subscription.title,
        subscription.description or "",
        subscription.url or "",
        str(subscription.price),
        subscription.currency,
        subscription.recurring_duration.value,
        subscription.start_date.isoformat(),
        json.dumps(charges) if charges else "",
    ]


def row_to_subscription(row: list) -> Subscription:
    """Convert a spreadsheet row to a Subscription."""
    # Handle missing columns gracefully
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default

    charges = None
    charges_json = safe_get(10)
    if charges_json:
        charges = [
            Charge(
                amount=Decimal(c["amount"]),
                day_of_month=int(c["dayOfMonth"]),
                start_date=date.fromisoformat(c["startDate"]),
            )
            for c in json.loads(charges_json)
        ]

    return Subscription(
        id=safe_get(0),
        created_at=datetime.fromisoformat(safe_get(2)),
        title=safe_get(3),
        description=safe_get(4) or None,
        url=safe_get(5) or None,
        price=Decimal(safe_get(6)),
        currency=safe_get(7),
        recurring_duration=RecurringDuration(safe_get(8)),
        start_date=date.fromisoformat(safe_get(9)),
        charges=charges,
    )


class GoogleSheetsSubscriptionRepository(SubscriptionRepository):
    """
    Google Sheets implementation of subscription storage.

    Subscriptions are stored as rows in a worksheet, one per row.
    Charges are JSON-serialized into a single cell.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _owned_rows(self, user_id: str) -> list[tuple[int, list]]:
        """(sheet row number, row) for every row owned by user_id."""
        sheet = self._client.get_subscriptions_sheet()
        all_rows = sheet.get_all_values()
        return [
            (idx, row)
            for idx, row in enumerate(all_rows[1:], start=2)  # Row 1 is the header
            if len(row) > 1 and row[0] and row[1] == user_id
        ]

    async def get_all(self, user_id: str) -> list[Subscription]:
        try:
            subscriptions = []
            for idx, row in self._owned_rows(user_id):
                try:
                    subscriptions.append(row_to_subscription(row))
                except Exception as e:
                    # Skip malformed rows rather than hide every other record
                    logger.warning("sheets_malformed_row", row_number=idx, error=str(e))
            return subscriptions
        except PersistenceError:
            raise
        except Exception as e:
            logger.error("sheets_list_failed", user_id=user_id, error=str(e))
            raise PersistenceError("Failed to load subscriptions") from e

    async def get_by_id(self, user_id: str, subscription_id: str) -> Optional[Subscription]:
        try:
            for _, row in self._owned_rows(user_id):
                if row[0] == subscription_id:
                    return row_to_subscription(row)
            return None
        except PersistenceError:
            raise
        except Exception as e:
            logger.error("sheets_get_failed", user_id=user_id, error=str(e))
            raise PersistenceError("Failed to load subscription") from e

    async def create(self, user_id: str, draft: SubscriptionDraft) -> Subscription:
        created = await self.bulk_create(user_id, [draft])
        return created[0]

    async def update(
        self,
        user_id: str,
        subscription_id: str,
        draft: SubscriptionDraft,
    ) -> Subscription:
        try:
            for idx, row in self._owned_rows(user_id):
                if row[0] != subscription_id:
                    continue
                existing = row_to_subscription(row)
                updated = Subscription(
                    **draft.model_dump(exclude={"id", "created_at"}),
                    id=existing.id,
                    created_at=existing.created_at,
                )
                sheet = self._client.get_subscriptions_sheet()
                sheet.update(
                    [subscription_to_row(user_id, updated)],
                    f"A{idx}",
                    value_input_option="RAW",
                )
                return updated

            raise NotFoundError(f"Subscription not found: {subscription_id}")
        except (NotFoundError, PersistenceError):
            raise
        except Exception as e:
            logger.error("sheets_update_failed", user_id=user_id, error=str(e))
            raise PersistenceError("Failed to update subscription") from e

    async def delete(self, user_id: str, subscription_id: str) -> bool:
        return await self.bulk_delete(user_id, [subscription_id]) > 0

    @retry(**_RETRY)
    async def bulk_create(
        self,
        user_id: str,
        drafts: list[SubscriptionDraft],
    ) -> list[Subscription]:
        if not drafts:
            return []
        try:
            created = [
                Subscription(**draft.model_dump(exclude={"id", "created_at"}), created_at=utcnow())
                for draft in drafts
            ]
            sheet = self._client.get_subscriptions_sheet()
            sheet.append_rows(
                [subscription_to_row(user_id, s) for s in created],
                value_input_option="RAW",
            )
            return created
        except PersistenceError:
            raise
        except Exception as e:
            logger.error("sheets_create_failed", user_id=user_id, count=len(drafts), error=str(e))
            raise PersistenceError("Failed to save subscriptions") from e

    async def bulk_delete(self, user_id: str, subscription_ids: list[str]) -> int:
        if not subscription_ids:
            return 0
        wanted = set(subscription_ids)
        try:
            targets = [idx for idx, row in self._owned_rows(user_id) if row[0] in wanted]
            sheet = self._client.get_subscriptions_sheet()
            # Bottom-up so earlier deletions don't shift later row numbers
            for idx in sorted(targets, reverse=True):
                sheet.delete_rows(idx)
            return len(targets)
        except PersistenceError:
            raise
        except Exception as e:
            logger.error("sheets_delete_failed", user_id=user_id, error=str(e))
            raise PersistenceError("Failed to delete subscriptions") from e


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            user_id=safe_get(4) or None,
            entity_type=safe_get(5) or None,
            entity_id=safe_get(6) or None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
        )

    def _all_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except Exception:
                logger.warning("sheets_malformed_audit_row", event_id=row[0])
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Don't raise - audit logging should not break the main flow
            logger.warning("sheets_audit_append_failed", event_id=str(event.event_id), error=str(e))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [e for e in self._all_events() if e.correlation_id == correlation_id]
        except Exception as e:
            logger.error("sheets_audit_read_failed", error=str(e))
            raise PersistenceError("Failed to load audit events") from e
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        user_id: str,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = [e for e in self._all_events() if e.user_id == user_id]
        except Exception as e:
            logger.error("sheets_audit_read_failed", error=str(e))
            raise PersistenceError("Failed to load audit events") from e
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
