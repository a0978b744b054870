"""
bulkload — Bulk catalog import.

Spreadsheet + image archive ingestion: parse, reconcile, commit.
"""

__version__ = "0.1.0"

from bulkload.config import BulkLoadConfig
from bulkload.engine import ImportEngine
from bulkload.models import CommitResult, ConflictReport, ParsedProduct, ParseResult

__all__ = [
    "BulkLoadConfig",
    "CommitResult",
    "ConflictReport",
    "ImportEngine",
    "ParsedProduct",
    "ParseResult",
]
