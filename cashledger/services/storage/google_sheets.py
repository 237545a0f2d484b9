"""
Google Sheets Storage Implementation

DESIGN DECISION: A spreadsheet is the optional persistent backend; a
household ledger fits comfortably and stays readable by hand.

TRADEOFFS:
- Every query loads the whole worksheet and filters with select_records
- No multi-row transactions: patch() is serialized in-process with a
  lock, and the recurring engine compensates if its second write fails

Each record kind lives in its own worksheet whose header row is the
model's field names. Cells hold the JSON-mode value as a string.
"""

import asyncio
import json
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from cashledger.config import get_settings
from cashledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from cashledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    R,
    RecordNotFoundError,
    RecordStoreInterface,
    StorageError,
    select_records,
)

logger = structlog.get_logger(__name__)


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
    "is_user_action",
]


def record_columns(model: type[R]) -> list[str]:
    """Header row of the worksheet holding `model` records."""
    return list(model.model_fields)


class GoogleSheetsClient:
    """
    Owns the gspread session: service-account login, the spreadsheet
    handle and a cache of worksheets created on first use.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets
        self._worksheets: dict[str, gspread.Worksheet] = {}

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """Authorize once with the service account; later calls reuse the client."""
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
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
        if title in self._worksheets:
            return self._worksheets[title]
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        self._worksheets[title] = sheet
        return sheet

    def get_record_sheet(self, model: type[R]) -> gspread.Worksheet:
        title = f"{self._settings.worksheet_prefix}{model.record_kind}"
        return self.get_worksheet(title, record_columns(model))

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self.get_worksheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


class GoogleSheetsRecordStore(RecordStoreInterface):
    """
    Google Sheets implementation of the record store.

    Records are stored as rows, one worksheet per record kind, with the
    record ID in the first column.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._write_lock = asyncio.Lock()

    def _record_to_row(self, record: R) -> list:
        """Convert a record to a spreadsheet row."""
        data = record.model_dump(mode="json")
        row = []
        for column in record_columns(type(record)):
            value = data[column]
            if value is None:
                row.append("")
            elif isinstance(value, (dict, list)):
                row.append(json.dumps(value))
            else:
                row.append(str(value))
        return row

    def _row_to_record(self, model: type[R], row: list) -> R:
        """Convert a spreadsheet row to a record."""
        def safe_get(index: int) -> Optional[str]:
            try:
                return row[index] if row[index] != "" else None
            except IndexError:
                return None

        data = {
            column: safe_get(index)
            for index, column in enumerate(record_columns(model))
        }
        return model.model_validate({k: v for k, v in data.items() if v is not None})

    def _find_row(self, sheet: gspread.Worksheet, record_id: UUID) -> Optional[tuple[int, list]]:
        """Return (1-based sheet row index, row values) for a record ID."""
        all_rows = sheet.get_all_values()
        for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is the header
            if row and row[0] == str(record_id):
                return idx, row
        return None

    def _write_row(self, sheet: gspread.Worksheet, idx: int, record: R) -> None:
        sheet.update(
            range_name=f"A{idx}",
            values=[self._record_to_row(record)],
            value_input_option="RAW",
        )

    @retry(
        retry=retry_if_not_exception_type(DuplicateError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def insert(self, record: R) -> R:
        try:
            sheet = self._client.get_record_sheet(type(record))
            if self._find_row(sheet, record.id) is not None:
                raise DuplicateError(f"{record.record_kind} already exists: {record.id}")
            sheet.append_row(self._record_to_row(record), value_input_option="RAW")
            return record
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to insert {record.record_kind}: {e}")

    async def get(self, model: type[R], record_id: UUID) -> Optional[R]:
        try:
            sheet = self._client.get_record_sheet(model)
            found = self._find_row(sheet, record_id)
            return self._row_to_record(model, found[1]) if found else None
        except Exception as e:
            raise StorageError(f"Failed to get {model.record_kind}: {e}")

    async def update(self, record: R) -> R:
        async with self._write_lock:
            return self._replace(record)

    async def patch(
        self,
        model: type[R],
        record_id: UUID,
        changes: dict[str, Any],
    ) -> R:
        async with self._write_lock:
            current = await self.get(model, record_id)
            if current is None:
                raise RecordNotFoundError(f"{model.record_kind} not found: {record_id}")
            patched = model.model_validate({**current.model_dump(), **changes})
            return self._replace(patched)

    def _replace(self, record: R) -> R:
        try:
            sheet = self._client.get_record_sheet(type(record))
            found = self._find_row(sheet, record.id)
            if found is None:
                raise RecordNotFoundError(f"{record.record_kind} not found: {record.id}")
            self._write_row(sheet, found[0], record)
            return record
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update {record.record_kind}: {e}")

    async def delete(self, model: type[R], record_id: UUID) -> bool:
        async with self._write_lock:
            try:
                sheet = self._client.get_record_sheet(model)
                found = self._find_row(sheet, record_id)
                if found is None:
                    return False
                sheet.delete_rows(found[0])
                return True
            except Exception as e:
                raise StorageError(f"Failed to delete {model.record_kind}: {e}")

    async def list_records(
        self,
        model: type[R],
        user_id: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[R]:
        try:
            sheet = self._client.get_record_sheet(model)
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to list {model.record_kind}: {e}")

        records = []
        for row in all_rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                records.append(self._row_to_record(model, row))
            except Exception as e:
                logger.warning(
                    "malformed_row_skipped",
                    record_kind=model.record_kind,
                    row_id=row[0],
                    error=str(e),
                )

        return select_records(
            records,
            user_id=user_id,
            date_from=date_from,
            date_to=date_to,
            descending=descending,
            limit=limit,
            filters=filters,
        )


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Audit events as rows of one worksheet, appended and never rewritten.
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
            entity_id=UUID(safe_get(6)) if safe_get(6) else None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
            is_user_action=safe_get(11).lower() == "true",
        )

    def _load_events(self) -> list[AuditEvent]:
        try:
            all_rows = self._client.get_audit_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except Exception as e:
                logger.warning("malformed_audit_row_skipped", row_id=row[0], error=str(e))
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._load_events() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._load_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
        user_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._load_events()
            if user_id is None or e.user_id == user_id
        ]
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
