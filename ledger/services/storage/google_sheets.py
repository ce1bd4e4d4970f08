"""
Google Sheets Storage Implementation

DESIGN DECISION: The whole ledger document lives in a single cell of a
dedicated worksheet. The ledger is small and always read and written as a
whole, so there is nothing to gain from spreading it over rows, and a single
cell keeps every write atomic from the reader's point of view.

TRADEOFFS:
- A cell holds at most 50,000 characters; larger documents are refused
- Every save is one API call (fine for one user editing by hand)
"""

from typing import Optional

import gspread
import requests
from google.auth.exceptions import TransportError
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ledger.config import GoogleSheetsSettings, get_settings
from ledger.services.storage.interface import (
    ConnectionError,
    LedgerStoreInterface,
    StorageError,
)

MAX_CELL_CHARS = 50_000

# Failures that may clear up on their own; retried, then reported as StorageError.
TRANSIENT_ERRORS = (
    gspread.exceptions.APIError,
    requests.exceptions.RequestException,
    TransportError,
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

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

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
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError as e:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                ) from e
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}") from e

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
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                ) from e
        return self._spreadsheet

    def get_ledger_sheet(self) -> gspread.Worksheet:
        """Get or create the worksheet holding the ledger document."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.ledger_sheet_name)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=self._settings.ledger_sheet_name,
                rows=10,
                cols=2,
            )
        return sheet


class GoogleSheetsLedgerStore(LedgerStoreInterface):
    """Google Sheets implementation of ledger storage."""

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        cell: Optional[str] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._cell = cell or self._client.settings.document_cell

    @retry(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _read_cell(self) -> Optional[str]:
        return self._client.get_ledger_sheet().acell(self._cell).value

    @retry(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _write_cell(self, blob: str) -> None:
        self._client.get_ledger_sheet().update_acell(self._cell, blob)

    def read_blob(self) -> Optional[str]:
        try:
            value = self._read_cell()
        except TRANSIENT_ERRORS as e:
            raise StorageError(f"Failed to read ledger from Google Sheets: {e}") from e
        return value or None

    def write_blob(self, blob: str) -> None:
        if len(blob) > MAX_CELL_CHARS:
            raise StorageError(
                f"Ledger document is {len(blob)} characters; "
                f"a Google Sheets cell holds at most {MAX_CELL_CHARS}"
            )
        try:
            self._write_cell(blob)
        except TRANSIENT_ERRORS as e:
            raise StorageError(f"Failed to save ledger to Google Sheets: {e}") from e
