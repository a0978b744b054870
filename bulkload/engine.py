"""
bulkload.engine — Import session orchestration.

Runs the forward pipeline: read files, parse, reconcile, then commit a
batch only when its review is clear. A batch with problems is never
repaired in place; the source files are fixed and the session is re-run.
"""

from pathlib import Path
from typing import Mapping

from bulkload.archive import extract_assets, inspect_archive
from bulkload.assets import AssetHost, CloudinaryHost, CredentialsIssuer, SignatureEndpoint
from bulkload.commit import CommitOrchestrator, ProgressCallback
from bulkload.config import BulkLoadConfig
from bulkload.errors import InputError
from bulkload.ledger import open_asset_ledger
from bulkload.logger import get_logger
from bulkload.models import (
    ArchiveInspection,
    CommitResult,
    ParseResult,
    ReplaceExisting,
    ReviewReport,
)
from bulkload.parser import parse_rows, read_rows
from bulkload.store import RecordStore, SupabaseStore
from bulkload.validator import check_image_references, validate


class ImportEngine:
    """One spreadsheet + archive import against a record store."""

    def __init__(
        self,
        config: BulkLoadConfig,
        store: RecordStore | None = None,
        asset_host: AssetHost | None = None,
        credentials: CredentialsIssuer | None = None,
    ):
        self._config = config
        self._store = store
        self._asset_host = asset_host
        self._credentials = credentials
        self._logger = get_logger()

    @property
    def store(self) -> RecordStore:
        if self._store is None:
            self._store = SupabaseStore(self._config)
        return self._store

    @property
    def asset_host(self) -> AssetHost:
        if self._asset_host is None:
            self._asset_host = CloudinaryHost(self._config)
        return self._asset_host

    @property
    def credentials(self) -> CredentialsIssuer:
        if self._credentials is None:
            self._credentials = SignatureEndpoint(self._config)
        return self._credentials

    def _read_limited(self, path: Path, limit: int, stage: str) -> bytes:
        if not path.is_file():
            raise InputError(
                sku="",
                stage=stage,
                message=f"File not found: {path}",
                payload={"path": str(path)},
            )

        size = path.stat().st_size
        if size > limit:
            raise InputError(
                sku="",
                stage=stage,
                message=f"{path.name} is {size} bytes; the limit is {limit}",
                payload={"path": str(path), "size": size, "limit": limit},
            )
        return path.read_bytes()

    def load_spreadsheet(self, path: Path) -> ParseResult:
        data = self._read_limited(path, self._config.limits.max_spreadsheet_bytes, "spreadsheet_read")
        rows = read_rows(data, suffix=path.suffix)
        return parse_rows(rows, self._config.catalog)

    def load_archive(self, path: Path) -> dict[str, bytes]:
        data = self._read_limited(path, self._config.limits.max_archive_bytes, "archive_open")
        return extract_assets(
            data,
            extension=self._config.catalog.image_extension,
            collision_policy=self._config.archive.collision_policy,
        )

    def inspect_archive(self, path: Path) -> ArchiveInspection:
        data = self._read_limited(path, self._config.limits.max_archive_bytes, "archive_open")
        return inspect_archive(data, extension=self._config.catalog.image_extension)

    def review(self, parsed: ParseResult, assets: Mapping[str, bytes]) -> ReviewReport:
        """Reconcile SKUs against the store and images against the archive."""
        report = ReviewReport(
            parse=parsed,
            conflicts=validate(parsed.products, self.store),
            images=check_image_references(parsed.products, assets),
        )
        self._logger.info(
            "Review complete",
            stage="review",
            ready=report.ready,
            blocking_errors=len(report.blocking_errors),
        )
        return report

    def commit(
        self,
        parsed: ParseResult,
        assets: Mapping[str, bytes],
        on_progress: ProgressCallback | None = None,
        replacements: Mapping[str, ReplaceExisting] | None = None,
    ) -> CommitResult:
        orchestrator = CommitOrchestrator(
            store=self.store,
            asset_host=self.asset_host,
            credentials=self.credentials,
            config=self._config,
            ledger=open_asset_ledger(self._config.upload.ledger_path),
        )
        return orchestrator.commit(
            parsed.products,
            assets,
            on_progress=on_progress,
            replacements=replacements,
        )

    def run(
        self,
        spreadsheet: Path,
        archive: Path,
        on_progress: ProgressCallback | None = None,
        dry_run: bool = False,
    ) -> tuple[ReviewReport, CommitResult | None]:
        """
        Parse, review and, when the review is clear, commit.

        Returns:
            The review, and the commit result (None when the review blocked
            the batch or ``dry_run`` is set).
        """
        parsed = self.load_spreadsheet(spreadsheet)
        assets = self.load_archive(archive)
        report = self.review(parsed, assets)

        if not report.ready:
            self._logger.warn(
                "Batch blocked; fix the source files and run again",
                stage="review",
                errors=len(report.blocking_errors),
            )
            return report, None

        if dry_run:
            self._logger.info("Dry run: skipping commit", stage="review")
            return report, None

        return report, self.commit(parsed, assets, on_progress=on_progress)

    def close(self) -> None:
        for client in (self._asset_host, self._credentials):
            close = getattr(client, "close", None)
            if close is not None:
                close()
