"""
Storage Services Package

Provides the abstract ledger store and its implementations.
JSON file is the default backend; Google Sheets is optional.
"""

from ledger.services.storage.interface import (
    ConnectionError,
    LedgerStoreInterface,
    StorageError,
    parse_document,
)
from ledger.services.storage.local import InMemoryLedgerStore, JsonFileLedgerStore
from ledger.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
)

__all__ = [
    # Interface
    "LedgerStoreInterface",
    "parse_document",
    # Exceptions
    "ConnectionError",
    "StorageError",
    # Local implementations
    "InMemoryLedgerStore",
    "JsonFileLedgerStore",
    # Google Sheets implementation
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStore",
]
