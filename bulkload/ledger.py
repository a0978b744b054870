"""
bulkload.ledger — Uploaded asset ledger.

Maps content checksums to the URLs the asset host returned, so a re-run
after an aborted commit does not upload the same images again.
"""

import hashlib
import json
import threading
from datetime import datetime, timezone
from pathlib import Path

from bulkload.errors import BulkLoadError
from bulkload.logger import get_logger
from bulkload.models import AssetLedgerEntry


def compute_checksum(content: bytes, algorithm: str = "sha256") -> str:
    """Hex digest of an asset's content."""
    return hashlib.new(algorithm, content).hexdigest()


class AssetLedger:
    """Checksum to URL mapping persisted as one JSON document."""

    def __init__(self, path: Path):
        self._path = path
        self._entries: dict[str, AssetLedgerEntry] = {}
        self._dirty = False
        self._lock = threading.Lock()

    def load(self) -> None:
        """Load ledger from disk; an unreadable file starts an empty ledger."""
        if not self._path.exists():
            return

        with open(self._path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
                for checksum, entry_data in data.items():
                    self._entries[checksum] = AssetLedgerEntry.from_dict(entry_data)
            except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
                self._entries.clear()
                get_logger().warn(
                    f"Ignoring unreadable asset ledger: {e}",
                    stage="ledger_load",
                    path=str(self._path),
                )

    def get(self, checksum: str) -> AssetLedgerEntry | None:
        return self._entries.get(checksum)

    def get_url(self, checksum: str) -> str | None:
        entry = self._entries.get(checksum)
        return entry.url if entry else None

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, checksum: str, url: str, filename: str) -> None:
        """Record an uploaded asset. Safe to call from upload worker threads."""
        entry = AssetLedgerEntry(
            checksum=checksum,
            url=url,
            filename=filename,
            uploaded_at=datetime.now(timezone.utc).isoformat(),
        )
        with self._lock:
            self._entries[checksum] = entry
            self._dirty = True

    def save(self) -> None:
        """Save ledger to disk."""
        with self._lock:
            if not self._dirty:
                return

            data = {checksum: entry.to_dict() for checksum, entry in self._entries.items()}

            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                temp_path = self._path.with_suffix(".tmp")
                with open(temp_path, "w", encoding="utf-8") as f:
                    json.dump(data, f, ensure_ascii=False, indent=2)
                temp_path.replace(self._path)
            except OSError as e:
                raise BulkLoadError(
                    sku="",
                    stage="ledger_save",
                    message=f"Cannot write asset ledger: {e}",
                    payload={"path": str(self._path)},
                ) from e

            self._dirty = False


def open_asset_ledger(path: str | None) -> AssetLedger | None:
    """Load the ledger at ``path``; None when no ledger is configured."""
    if not path:
        return None
    ledger = AssetLedger(Path(path))
    ledger.load()
    return ledger
