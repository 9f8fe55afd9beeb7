"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is a storage backend because:
1. Household members can view their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions (the UnitOfWork layer provides all-or-nothing writes)
- Limited query capabilities (we filter in Python)

Each collection lives in its own worksheet. A row is
[id, updated_at, record_json]; the JSON is the pydantic model dump, so
Decimal amounts round-trip exactly as strings.
"""

from typing import Any, Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from household_ledger.config import GoogleSheetsSettings, get_settings
from household_ledger.services.storage.interface import (
    COLLECTION_MODELS,
    Collection,
    ConnectionError,
    RecordStorageInterface,
    StorageError,
    matches,
)


RECORD_COLUMNS = ["id", "updated_at", "record_json"]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets
        self._worksheets: dict[Collection, gspread.Worksheet] = {}

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
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

    def get_worksheet(self, collection: Collection) -> gspread.Worksheet:
        """Get or create the worksheet holding a collection."""
        if collection in self._worksheets:
            return self._worksheets[collection]

        spreadsheet = self.get_spreadsheet()
        title = f"{self._settings.worksheet_prefix}{collection.value}"
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(RECORD_COLUMNS),
            )
            sheet.append_row(RECORD_COLUMNS)
        self._worksheets[collection] = sheet
        return sheet


class GoogleSheetsRecordStorage(RecordStorageInterface):
    """
    Google Sheets implementation of record storage.

    Records are stored one per row, serialized as JSON.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _record_to_row(self, record: Any) -> list:
        """Convert a record to a spreadsheet row."""
        updated_at = getattr(record, "updated_at", None) or getattr(record, "timestamp", None)
        return [
            record.id,
            updated_at.isoformat() if updated_at else "",
            record.model_dump_json(),
        ]

    def _row_to_record(self, collection: Collection, row: list) -> Any:
        """Convert a spreadsheet row to a record of the collection's model."""
        model = COLLECTION_MODELS[collection]
        return model.model_validate_json(row[2])

    def _find_row(self, rows: list[list], record_id: str) -> Optional[int]:
        """1-based sheet row index of a record, or None."""
        for idx, row in enumerate(rows[1:], start=2):  # Row 1 is header
            if row and row[0] == record_id:
                return idx
        return None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def get(self, collection: Collection, record_id: str) -> Optional[Any]:
        try:
            sheet = self._client.get_worksheet(collection)
            for row in sheet.get_all_values()[1:]:
                if row and row[0] == record_id:
                    return self._row_to_record(collection, row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get {collection.value} record: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def put(self, collection: Collection, record: Any) -> None:
        try:
            sheet = self._client.get_worksheet(collection)
            new_row = self._record_to_row(record)
            idx = self._find_row(sheet.get_all_values(), record.id)
            if idx is None:
                sheet.append_row(new_row, value_input_option="RAW")
            else:
                sheet.update(f"A{idx}:C{idx}", [new_row], value_input_option="RAW")
        except Exception as e:
            raise StorageError(f"Failed to save {collection.value} record: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def delete(self, collection: Collection, record_id: str) -> bool:
        try:
            sheet = self._client.get_worksheet(collection)
            idx = self._find_row(sheet.get_all_values(), record_id)
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete {collection.value} record: {e}")

    async def query(self, collection: Collection, **filters: Any) -> list[Any]:
        try:
            sheet = self._client.get_worksheet(collection)
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to list {collection.value}: {e}")

        records = []
        for row in all_rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            # A malformed row is a storage fault, never silently skipped
            try:
                record = self._row_to_record(collection, row)
            except Exception as e:
                raise StorageError(f"Malformed {collection.value} row {row[0]}: {e}")
            if matches(record, filters):
                records.append(record)
        return records
