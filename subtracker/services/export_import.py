"""
Export / Import Service

Export wraps a user's subscriptions in a versioned document:

    {"version": "1.0.0", "exportDate": "...", "subscriptions": [...]}

Import accepts that document, or a bare list of records, and stores every
record that validates.

DESIGN DECISION: Import is forgiving per record and strict per document.
- A document of the wrong shape is rejected before storage is touched
  (FormatError)
- A bad record is skipped and reported; the rest are still imported
- Replace mode deletes first and creates second. If the create fails
  after the delete, PartialImportError says how many records were removed
  so the user can re-run the import from their export file.
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Optional, Union

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from subtracker.audit import AuditLogger, create_correlation_id
from subtracker.config import AppSettings, get_settings
from subtracker.errors import (
    FormatError,
    PartialImportError,
    PersistenceError,
    ValidationError,
)
from subtracker.models.subscription import (
    ExportDocument,
    ImportEnvelope,
    ImportOptions,
    ImportResult,
    SubscriptionDraft,
    ValidationIssue,
    utcnow,
)
from subtracker.services.storage.interface import SubscriptionRepository
from subtracker.services.subscriptions import require_user
from subtracker.validation import SubscriptionValidator
from subtracker.validation.validator import normalize_keys


# Every imported record must carry these, even when charges are present.
REQUIRED_IMPORT_FIELDS = ("title", "price", "currency", "recurringDuration", "startDate")

# A bare list of records, or an object holding one under "subscriptions".
_import_document = TypeAdapter(Union[list[Any], ImportEnvelope])


def export_filename(exported_at: Optional[datetime] = None) -> str:
    """Download name for an export, e.g. subscriptions-2024-03-01.json."""
    exported_at = exported_at or utcnow()
    return f"subscriptions-{exported_at.date().isoformat()}.json"


def parse_import_document(data: Any) -> list[Any]:
    """
    Extract the candidate records from an import document.

    Args:
        data: JSON text (str or bytes) or an already-decoded value

    Raises:
        FormatError: If the text isn't JSON or the shape isn't recognised
    """
    try:
        if isinstance(data, (str, bytes, bytearray)):
            parsed = _import_document.validate_json(data)
        else:
            parsed = _import_document.validate_python(data)
    except PydanticValidationError as e:
        if any(error["type"] == "json_invalid" for error in e.errors()):
            raise FormatError("The import file is not valid JSON") from e
        raise FormatError(
            "Unrecognised import format: expected a list of subscriptions "
            "or an object with a \"subscriptions\" list"
        ) from e

    if isinstance(parsed, ImportEnvelope):
        return parsed.subscriptions
    return parsed


def import_error_message(title: Optional[str], reason: str) -> str:
    return f'Failed to import subscription "{title or "Unknown"}": {reason}'


class ExportImportService:
    """Moves a user's subscriptions in and out of the interchange format."""

    def __init__(
        self,
        repository: SubscriptionRepository,
        validator: Optional[SubscriptionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._repository = repository
        self._validator = validator or SubscriptionValidator()
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().app

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    async def build_export(
        self,
        user_id: Optional[str],
        exported_at: Optional[datetime] = None,
    ) -> ExportDocument:
        """Snapshot every subscription of the user into an export document."""
        correlation_id = create_correlation_id()
        user_id = await require_user(user_id, "export_subscriptions", self._audit_logger, correlation_id)

        try:
            subscriptions = await self._repository.get_all(user_id)
        except PersistenceError as e:
            if self._audit_logger:
                await self._audit_logger.log_persistence_error(
                    user_id=user_id,
                    operation="export_subscriptions",
                    error_message=e.message,
                    correlation_id=correlation_id,
                )
            raise

        document = ExportDocument(
            version=self._settings.export_format_version,
            export_date=exported_at or utcnow(),
            subscriptions=subscriptions,
        )

        if self._audit_logger:
            await self._audit_logger.log_export_generated(
                user_id=user_id,
                subscription_count=len(subscriptions),
                version=document.version,
                correlation_id=correlation_id,
            )
        return document

    async def export_subscriptions(
        self,
        user_id: Optional[str],
        exported_at: Optional[datetime] = None,
    ) -> str:
        """The export document as indented JSON text."""
        document = await self.build_export(user_id, exported_at)
        return document.model_dump_json(by_alias=True, indent=2)

    # -------------------------------------------------------------------------
    # Import
    # -------------------------------------------------------------------------

    def _parse_record(self, record: Any) -> SubscriptionDraft:
        """
        Validate one candidate record.

        Raises:
            ValidationError: describing why the record can't be imported
        """
        if not isinstance(record, Mapping):
            raise ValidationError(
                [],
                message="record is not an object",
            )

        fields = normalize_keys(record)
        missing = [
            name for name in REQUIRED_IMPORT_FIELDS
            if fields.get(name) is None or fields.get(name) == ""
        ]
        if missing:
            raise ValidationError(
                [
                    ValidationIssue(field=name, issue_type="missing", message=f"{name} is required")
                    for name in missing
                ],
                message=f"missing required fields: {', '.join(missing)}",
            )

        # Identity is always reassigned on import.
        fields.pop("id", None)
        fields.pop("createdAt", None)
        # Charges without their own start date begin with the subscription.
        charges = fields.get("charges")
        if isinstance(charges, list):
            filled = []
            for charge in charges:
                if isinstance(charge, Mapping):
                    charge = normalize_keys(charge)
                    charge.setdefault("startDate", fields["startDate"])
                    if charge["startDate"] in (None, ""):
                        charge["startDate"] = fields["startDate"]
                filled.append(charge)
            fields["charges"] = filled

        return self._validator.validate(fields)

    async def import_subscriptions(
        self,
        user_id: Optional[str],
        data: Any,
        options: Optional[ImportOptions] = None,
    ) -> ImportResult:
        """
        Import subscriptions from an export document or a bare list.

        Args:
            user_id: The importing user
            data: JSON text, or the already-decoded document
            options: merge (default) or overwrite=True for replace

        Returns:
            ImportResult with the number stored and one message per
            skipped record

        Raises:
            AuthError: No user id
            ValidationError: merge and overwrite both requested
            FormatError: Unusable document; nothing was changed
            PartialImportError: Replace deleted records, then failed to
                create the imported ones
            PersistenceError: Storage failed before anything was deleted
        """
        correlation_id = create_correlation_id()
        user_id = await require_user(user_id, "import_subscriptions", self._audit_logger, correlation_id)
        options = options or ImportOptions()

        if options.merge and options.overwrite:
            raise ValidationError(
                [ValidationIssue(
                    field="options",
                    issue_type="invalid_value",
                    message="Choose either merge or overwrite, not both",
                )],
                message="Choose either merge or overwrite, not both",
            )
        mode = "replace" if options.replace else "merge"

        try:
            records = parse_import_document(data)
        except FormatError as e:
            if self._audit_logger:
                await self._audit_logger.log_import_failed(
                    user_id=user_id,
                    error_type="format_error",
                    error_message=e.message,
                    correlation_id=correlation_id,
                )
            raise

        drafts: list[SubscriptionDraft] = []
        errors: list[str] = []
        for record in records:
            try:
                drafts.append(self._parse_record(record))
            except ValidationError as e:
                title = record.get("title") if isinstance(record, Mapping) else None
                title = title if isinstance(title, str) else None
                errors.append(import_error_message(title, e.message))
                if self._audit_logger:
                    await self._audit_logger.log_import_record_skipped(
                        user_id=user_id,
                        title=title or "Unknown",
                        reason=e.message,
                        correlation_id=correlation_id,
                    )

        deleted = 0
        try:
            if options.replace:
                existing = await self._repository.get_all(user_id)
                deleted = await self._repository.bulk_delete(user_id, [s.id for s in existing])
            created = await self._repository.bulk_create(user_id, drafts)
        except PersistenceError as e:
            if self._audit_logger:
                await self._audit_logger.log_import_failed(
                    user_id=user_id,
                    error_type="persistence_error",
                    error_message=e.message,
                    correlation_id=correlation_id,
                )
            if deleted:
                raise PartialImportError(
                    f"Removed {deleted} existing subscriptions but could not save "
                    f"the imported ones. Re-run the import to restore them.",
                    deleted_count=deleted,
                ) from e
            raise

        if self._audit_logger:
            await self._audit_logger.log_import_completed(
                user_id=user_id,
                mode=mode,
                imported=len(created),
                errors=errors,
                deleted=deleted,
                correlation_id=correlation_id,
            )
        return ImportResult(imported=len(created), errors=errors)

