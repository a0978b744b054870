"""
bulkload.commit — Two-phase commit of a validated batch.

Phase A uploads every archive image in fixed-size concurrent batches; any
failed upload aborts the commit before a single record is written.
Phase B writes products one at a time; any failure, including a store that
stays unreachable after retries, is recorded against that product's SKU
and the remaining products still run. Uploaded images
are not rolled back when Phase B fails.

Callers must have run the validator first: commit() does not re-check SKU
conflicts or image references.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Mapping

from bulkload.assets import AssetHost, CredentialsIssuer
from bulkload.config import BulkLoadConfig
from bulkload.errors import BulkLoadError, UploadError
from bulkload.ledger import AssetLedger, compute_checksum
from bulkload.logger import get_logger
from bulkload.models import (
    CommitResult,
    ParsedProduct,
    ParsedVariant,
    ReplaceExisting,
    UploadCredentials,
    UploadResult,
)
from bulkload.store import RecordStore

ProgressCallback = Callable[[float], None]


class ProgressReporter:
    """Forwards percentages to the caller, never going backwards."""

    def __init__(self, callback: ProgressCallback | None):
        self._callback = callback
        self._last = 0.0

    @property
    def last(self) -> float:
        return self._last

    def report(self, percent: float) -> None:
        percent = min(100.0, max(self._last, float(percent)))
        self._last = percent
        if self._callback is not None:
            self._callback(percent)


def variant_record(
    variant: ParsedVariant,
    product_id: Any,
    urls: Mapping[str, str],
) -> dict[str, Any]:
    """Store row for a variant; image names without an uploaded URL are dropped."""
    return {
        "product_id": product_id,
        "color": variant.color,
        "stock": variant.stock,
        "price": variant.price,
        "price_retail": variant.price_retail,
        "price_wholesale": variant.price_wholesale,
        "image_urls": [urls[name] for name in variant.image_names if name in urls],
    }


class CommitOrchestrator:
    """Uploads assets, then creates or replaces product records."""

    def __init__(
        self,
        store: RecordStore,
        asset_host: AssetHost,
        credentials: CredentialsIssuer,
        config: BulkLoadConfig | None = None,
        ledger: AssetLedger | None = None,
    ):
        self._store = store
        self._asset_host = asset_host
        self._credentials = credentials
        self._config = config or BulkLoadConfig()
        self._ledger = ledger
        self._logger = get_logger()

    @property
    def _images_weight(self) -> float:
        return float(self._config.progress.images_weight)

    def commit(
        self,
        products: list[ParsedProduct],
        assets: Mapping[str, bytes],
        on_progress: ProgressCallback | None = None,
        replacements: Mapping[str, ReplaceExisting] | None = None,
    ) -> CommitResult:
        """
        Commit a validated batch.

        Args:
            products: Parsed products, committed in this order
            assets: Archive images by filename
            on_progress: Called with a percentage in [0, 100]
            replacements: SKU to ReplaceExisting for products that should
                overwrite a stored record instead of creating one

        Returns:
            CommitResult; ``errors`` lists per-product failures.

        Raises:
            UploadError: An asset upload failed; no record was written.
        """
        result = CommitResult()
        progress = ProgressReporter(on_progress)

        self._logger.info(
            "Starting commit",
            stage="commit",
            products=len(products),
            assets=len(assets),
        )

        urls = self._upload_assets(assets, progress, result)
        self._commit_records(products, urls, progress, result, replacements or {})

        self._logger.info(
            "Commit finished",
            stage="commit",
            products_created=result.products_created,
            products_updated=result.products_updated,
            variants_created=result.variants_created,
            errors=len(result.errors),
        )
        return result

    # ===================
    # PHASE A: ASSETS
    # ===================

    def _upload_one(
        self,
        filename: str,
        content: bytes,
        credentials: UploadCredentials,
    ) -> UploadResult:
        checksum = None
        if self._ledger is not None:
            checksum = compute_checksum(content)
            url = self._ledger.get_url(checksum)
            if url:
                return UploadResult(filename=filename, url=url, reused=True)

        url = self._asset_host.upload(filename, content, credentials)

        if self._ledger is not None:
            self._ledger.record(checksum, url, filename)
        return UploadResult(filename=filename, url=url)

    def _upload_assets(
        self,
        assets: Mapping[str, bytes],
        progress: ProgressReporter,
        result: CommitResult,
    ) -> dict[str, str]:
        urls: dict[str, str] = {}
        total = len(assets)

        if total == 0:
            progress.report(self._images_weight)
            return urls

        credentials = self._credentials.issue()
        entries = list(assets.items())
        batch_size = self._config.upload.batch_size
        completed = 0

        try:
            with ThreadPoolExecutor(max_workers=min(batch_size, total)) as executor:
                for start in range(0, total, batch_size):
                    batch = entries[start:start + batch_size]
                    futures = {
                        executor.submit(self._upload_one, name, content, credentials): name
                        for name, content in batch
                    }

                    failures: list[BulkLoadError] = []
                    for future in as_completed(futures):
                        filename = futures[future]
                        try:
                            upload = future.result()
                        except BulkLoadError as e:
                            failures.append(e)
                            result.uploads.append(UploadResult(filename=filename, error=e.message))
                            self._logger.error(
                                f"Upload failed: {filename}",
                                stage="asset_upload",
                                error=e.message,
                            )
                            continue

                        urls[filename] = upload.url
                        result.uploads.append(upload)
                        completed += 1
                        progress.report(completed / total * self._images_weight)

                    if failures:
                        raise UploadError(
                            sku="",
                            stage="asset_upload",
                            message=f"{len(failures)} image upload(s) failed; nothing was committed",
                            payload={
                                "failed": [u.filename for u in result.uploads if not u.ok],
                                "uploaded": completed,
                                "total": total,
                            },
                        ) from failures[0]
        finally:
            if self._ledger is not None:
                self._ledger.save()

        self._logger.info(
            f"Uploaded {completed} images",
            stage="asset_upload",
            reused=sum(1 for u in result.uploads if u.reused),
        )
        return urls

    # ===================
    # PHASE B: RECORDS
    # ===================

    def _create(
        self,
        product: ParsedProduct,
        urls: Mapping[str, str],
        result: CommitResult,
    ) -> None:
        product_id = self._store.create_product(product.base_fields())
        result.products_created += 1
        self._logger.info(
            "Product created",
            sku=product.sku,
            stage="product_insert",
            product_id=product_id,
        )

        rows = [variant_record(v, product_id, urls) for v in product.variants]
        self._store.create_variants(rows)
        result.variants_created += len(rows)

    def _replace(
        self,
        product: ParsedProduct,
        existing_id: Any,
        urls: Mapping[str, str],
        result: CommitResult,
    ) -> None:
        self._store.update_product(existing_id, product.base_fields())
        rows = [variant_record(v, existing_id, urls) for v in product.variants]
        self._store.replace_variants(existing_id, rows)
        result.products_updated += 1
        result.variants_created += len(rows)
        self._logger.info(
            "Product replaced",
            sku=product.sku,
            stage="product_update",
            product_id=existing_id,
        )

    def _commit_records(
        self,
        products: list[ParsedProduct],
        urls: Mapping[str, str],
        progress: ProgressReporter,
        result: CommitResult,
        replacements: Mapping[str, ReplaceExisting],
    ) -> None:
        total = len(products)
        weight = self._images_weight

        for index, product in enumerate(products):
            replacement = replacements.get(product.sku)
            try:
                if replacement is not None:
                    self._replace(product, replacement.existing_id, urls, result)
                else:
                    self._create(product, urls, result)
            except BulkLoadError as e:
                result.errors.append(f"Product {product.sku}: {e.message}")
                self._logger.error(
                    f"Product commit failed: {e.message}",
                    sku=product.sku,
                    stage=e.stage,
                    error_type=type(e).__name__,
                )
            except Exception as e:
                result.errors.append(f"Product {product.sku}: {e}")
                self._logger.error(
                    f"Product commit failed: {e}",
                    sku=product.sku,
                    stage="product_commit",
                    error_type=type(e).__name__,
                )

            progress.report(weight + (index + 1) / total * (100 - weight))

        if total == 0:
            progress.report(100)
