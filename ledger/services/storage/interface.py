"""
Abstract Storage Interface

DESIGN DECISION: The ledger is one document, read and written as a whole.
A backend only has to move an opaque text blob in and out; parsing,
serialization and recovery from a damaged blob live here, once, so every
backend behaves the same way.

This allows us to:
1. Use in-memory storage for testing
2. Keep the document in a local JSON file
3. Keep it in Google Sheets where the user can see a backup
"""

import json
from abc import ABC, abstractmethod
from typing import Optional, Union

import structlog
from pydantic import ValidationError

from ledger.models.ledger import LedgerDocument

logger = structlog.get_logger(__name__)

# A stored document missing either of these is treated as unusable.
REQUIRED_FIELDS = ("accountBalance", "expensesByMonth")


def _parse_or_none(blob: Union[str, bytes]) -> Optional[LedgerDocument]:
    """Parse a serialized document; None (with a warning logged) if unusable."""
    if isinstance(blob, bytes):
        try:
            blob = blob.decode("utf-8")
        except UnicodeDecodeError as e:
            logger.warning("ledger_document_unreadable", reason="invalid_encoding", error=str(e))
            return None

    try:
        raw = json.loads(blob)
    except json.JSONDecodeError as e:
        logger.warning("ledger_document_unreadable", reason="invalid_json", error=str(e))
        return None

    if not isinstance(raw, dict):
        logger.warning("ledger_document_unreadable", reason="not_an_object")
        return None

    raw = {key: value for key, value in raw.items() if value is not None}
    missing = [field for field in REQUIRED_FIELDS if field not in raw]
    if missing:
        logger.warning("ledger_document_unreadable", reason="missing_fields", fields=missing)
        return None

    try:
        return LedgerDocument.model_validate(raw)
    except ValidationError as e:
        logger.warning(
            "ledger_document_unreadable",
            reason="schema",
            error_count=e.error_count(),
            errors=e.errors(include_url=False)[:5],
        )
        return None


def parse_document(blob: Union[str, bytes]) -> LedgerDocument:
    """
    Parse a serialized ledger document.

    Never raises: anything unreadable yields a fresh empty document.
    Optional maps that are missing or null default to empty.
    """
    document = _parse_or_none(blob)
    return document if document is not None else LedgerDocument.empty()


class LedgerStoreInterface(ABC):
    """
    Abstract interface for ledger document storage.

    Any storage implementation must implement read_blob and write_blob.

    `recovered` is True after a load that found a stored document it could
    not use and replaced it with an empty one.
    """

    recovered: bool = False

    @abstractmethod
    def read_blob(self) -> Optional[Union[str, bytes]]:
        """
        Read the stored document.

        Returns:
            The serialized document (text, or UTF-8 bytes left for `load` to
            decode), or None if nothing was ever saved

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def write_blob(self, blob: str) -> None:
        """
        Replace the stored document text.

        Raises:
            StorageError: If the write fails
        """
        pass

    def load(self) -> LedgerDocument:
        """
        Load the ledger document.

        A missing or malformed document yields an empty one instead of
        an error.
        """
        self.recovered = False
        blob = self.read_blob()
        if not blob:
            return LedgerDocument.empty()

        document = _parse_or_none(blob)
        if document is None:
            self.recovered = True
            return LedgerDocument.empty()
        return document

    def save(self, document: LedgerDocument) -> None:
        """Persist `document`, replacing whatever was stored."""
        self.write_blob(document.to_wire_json())


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
