"""
bulkload.store — Record store interfaces and the Supabase adapter.

The pipeline reaches the relational store only through these operations:
SKU lookup for reconciliation, and product/variant writes for commit.
"""

from decimal import Decimal
from typing import Any, Callable, Protocol, TypeVar

import httpx
from supabase import Client, create_client

from bulkload.config import BulkLoadConfig
from bulkload.errors import StoreError, TransportError
from bulkload.logger import get_logger
from bulkload.models import ExistingProduct
from bulkload.retry import RetryHandler

T = TypeVar("T")

# Variant field -> product_variants column
VARIANT_COLUMNS = {
    "product_id": "product_id",
    "color": "color",
    "stock": "stock",
    "price": "price",
    "price_retail": "price_menudeo",
    "price_wholesale": "price_mayoreo",
    "image_urls": "image_urls",
}


def to_variant_columns(row: dict[str, Any]) -> dict[str, Any]:
    """Rename variant fields to table columns; decimals are sent as strings."""
    record = {}
    for key, value in row.items():
        if isinstance(value, Decimal):
            value = str(value)
        record[VARIANT_COLUMNS.get(key, key)] = value
    return record


class SkuLookup(Protocol):
    def lookup_existing(self, skus: list[str]) -> list[ExistingProduct]:
        """Return stored records whose SKU is in ``skus``."""
        ...


class RecordStore(SkuLookup, Protocol):
    def create_product(self, fields: dict[str, Any]) -> Any:
        """Insert a product and return its assigned id."""
        ...

    def create_variants(self, rows: list[dict[str, Any]]) -> None:
        ...

    def update_product(self, product_id: Any, fields: dict[str, Any]) -> None:
        ...

    def replace_variants(self, product_id: Any, rows: list[dict[str, Any]]) -> None:
        """Delete every variant of the product, then insert ``rows``."""
        ...


class SupabaseStore:
    """RecordStore over the products / product_variants tables."""

    def __init__(self, config: BulkLoadConfig, client: Client | None = None):
        self._config = config
        self._products = config.supabase.products_table
        self._variants = config.supabase.variants_table
        self._client = client or create_client(config.supabase.url, config.supabase.key)
        self._retry = RetryHandler(config.retry)
        self._logger = get_logger()

    def _run(self, operation: Callable[[], T], sku: str, stage: str) -> T:
        """Run one query; transport failures retry, anything else is a StoreError."""

        def attempt() -> T:
            try:
                return operation()
            except httpx.TransportError as e:
                raise TransportError(
                    sku=sku,
                    stage=stage,
                    message=f"Store unreachable: {e}",
                    retryable=True,
                ) from e
            except Exception as e:
                self._logger.error(
                    f"Store operation failed: {e}",
                    sku=sku,
                    stage=stage,
                    error_type=type(e).__name__,
                )
                raise StoreError(
                    sku=sku,
                    stage=stage,
                    message=str(e),
                    payload={"error_type": type(e).__name__},
                ) from e

        return self._retry.execute(attempt, sku=sku, stage=stage)

    def lookup_existing(self, skus: list[str]) -> list[ExistingProduct]:
        if not skus:
            return []

        result = self._run(
            lambda: self._client.table(self._products)
            .select("sku, name, id")
            .in_("sku", skus)
            .execute(),
            sku="",
            stage="sku_lookup",
        )
        rows = result.data or []

        self._logger.info(
            f"{len(rows)} of {len(skus)} SKUs already stored",
            stage="sku_lookup",
        )
        return [ExistingProduct(sku=r["sku"], name=r.get("name") or "", id=r["id"]) for r in rows]

    def create_product(self, fields: dict[str, Any]) -> Any:
        sku = fields.get("sku", "")
        result = self._run(
            lambda: self._client.table(self._products).insert(fields).execute(),
            sku=sku,
            stage="product_insert",
        )
        row = result.data[0] if result.data else None
        if not row or row.get("id") is None:
            raise StoreError(
                sku=sku,
                stage="product_insert",
                message="Insert returned no product id",
                payload={"row": row},
            )
        return row["id"]

    def create_variants(self, rows: list[dict[str, Any]]) -> None:
        if not rows:
            return
        records = [to_variant_columns(row) for row in rows]
        self._run(
            lambda: self._client.table(self._variants).insert(records).execute(),
            sku="",
            stage="variant_insert",
        )

    def update_product(self, product_id: Any, fields: dict[str, Any]) -> None:
        self._run(
            lambda: self._client.table(self._products)
            .update(fields)
            .eq("id", product_id)
            .execute(),
            sku=fields.get("sku", ""),
            stage="product_update",
        )

    def replace_variants(self, product_id: Any, rows: list[dict[str, Any]]) -> None:
        self._run(
            lambda: self._client.table(self._variants)
            .delete()
            .eq("product_id", product_id)
            .execute(),
            sku="",
            stage="variant_replace",
        )
        self.create_variants(rows)
