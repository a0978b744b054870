"""
bulkload.errors — Typed error model for the import pipeline.

Parse and reconciliation problems are returned as data. These exceptions
cover the failures that abort an operation or a single product commit:
- sku: affected SKU (empty when the error is not tied to one)
- stage: pipeline stage where error occurred
- http_status: HTTP status code (if applicable)
- payload: snapshot of relevant data
- retryable: whether the operation can be retried
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class BulkLoadError(Exception):
    """Base error for all bulkload errors."""
    sku: str
    stage: str
    message: str
    http_status: int | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    retryable: bool = False

    def __str__(self) -> str:
        if self.sku:
            return f"[{self.stage}] SKU={self.sku}: {self.message}"
        return f"[{self.stage}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.__class__.__name__,
            "sku": self.sku,
            "stage": self.stage,
            "message": self.message,
            "http_status": self.http_status,
            "payload": self.payload,
            "retryable": self.retryable,
        }


@dataclass(frozen=True)
class InputError(BulkLoadError):
    """Input file rejected before parsing (size, type)."""
    pass


@dataclass(frozen=True)
class SpreadsheetError(BulkLoadError):
    """Spreadsheet could not be read."""
    pass


@dataclass(frozen=True)
class ArchiveError(BulkLoadError):
    """Archive could not be opened or flattened."""
    pass


@dataclass(frozen=True)
class StoreError(BulkLoadError):
    """Record store rejected a read or write."""
    pass


@dataclass(frozen=True)
class UploadError(BulkLoadError):
    """Asset upload or credential issuance failed."""
    pass


@dataclass(frozen=True)
class AuthError(BulkLoadError):
    """Authentication or authorization failed."""
    pass


@dataclass(frozen=True)
class TransportError(BulkLoadError):
    """Network or HTTP transport error."""
    retryable: bool = True


ERROR_TYPES = {
    "InputError": InputError,
    "SpreadsheetError": SpreadsheetError,
    "ArchiveError": ArchiveError,
    "StoreError": StoreError,
    "UploadError": UploadError,
    "AuthError": AuthError,
    "TransportError": TransportError,
}
