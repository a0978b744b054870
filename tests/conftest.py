"""Shared fixtures: in-memory collaborators and archive builders."""

import io
import threading
import zipfile
from decimal import Decimal
from typing import Any

import pytest

from bulkload.config import BulkLoadConfig
from bulkload.errors import StoreError, UploadError
from bulkload.models import ExistingProduct, ParsedProduct, ParsedVariant, UploadCredentials

HEADERS = (
    "SKU", "Name", "Description", "Category", "Color",
    "Stock", "Price", "PriceRetail", "PriceWholesale", "Images",
)


def make_row(**values: Any) -> dict[str, Any]:
    """Spreadsheet row keyed by header; unspecified cells are blank."""
    keys = {
        "sku": "SKU",
        "name": "Name",
        "description": "Description",
        "category": "Category",
        "color": "Color",
        "stock": "Stock",
        "price": "Price",
        "price_retail": "PriceRetail",
        "price_wholesale": "PriceWholesale",
        "images": "Images",
    }
    row = {header: "" for header in HEADERS}
    for key, value in values.items():
        row[keys[key]] = value
    return row


def variant_row(color: str, images: str = "", sku: str = "", **overrides: Any) -> dict[str, Any]:
    values = {
        "sku": sku,
        "color": color,
        "stock": "10",
        "price": "450",
        "price_retail": "650",
        "price_wholesale": "550",
        "images": images,
    }
    values.update(overrides)
    return make_row(**values)


def make_product(sku: str, name: str = "", colors: tuple[str, ...] = ("Rojo",), row: int | None = None) -> ParsedProduct:
    product = ParsedProduct(sku=sku, name=name or f"Product {sku}", category="Bolsa", row=row)
    for color in colors:
        product.variants.append(ParsedVariant(
            color=color,
            stock=5,
            price=Decimal("450"),
            price_retail=Decimal("650"),
            price_wholesale=Decimal("550"),
            image_names=[f"{sku}_{color.lower()}_1.webp"],
        ))
    return product


def make_zip(entries: dict[str, bytes]) -> bytes:
    """ZIP bytes; names ending in '/' become directory entries."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in entries.items():
            if name.endswith("/"):
                archive.writestr(zipfile.ZipInfo(name), b"")
            else:
                archive.writestr(name, content)
    return buffer.getvalue()


class FakeStore:
    """RecordStore keeping records in memory."""

    def __init__(self, existing: list[ExistingProduct] | None = None, fail_skus: set[str] | None = None):
        self.existing = list(existing or [])
        self.fail_skus = set(fail_skus or ())
        self.fail_variants_for: set[Any] = set()
        self.lookups: list[list[str]] = []
        self.products: dict[int, dict[str, Any]] = {}
        self.variants: list[dict[str, Any]] = []
        self.updates: list[tuple[Any, dict[str, Any]]] = []
        self._next_id = 1

    def lookup_existing(self, skus: list[str]) -> list[ExistingProduct]:
        self.lookups.append(list(skus))
        return [record for record in self.existing if record.sku in skus]

    def create_product(self, fields: dict[str, Any]) -> int:
        if fields["sku"] in self.fail_skus:
            raise StoreError(sku=fields["sku"], stage="product_insert", message="duplicate key value")
        product_id = self._next_id
        self._next_id += 1
        self.products[product_id] = dict(fields)
        return product_id

    def create_variants(self, rows: list[dict[str, Any]]) -> None:
        if rows and rows[0]["product_id"] in self.fail_variants_for:
            raise StoreError(sku="", stage="variant_insert", message="check constraint violated")
        self.variants.extend(rows)

    def update_product(self, product_id: Any, fields: dict[str, Any]) -> None:
        self.updates.append((product_id, dict(fields)))

    def replace_variants(self, product_id: Any, rows: list[dict[str, Any]]) -> None:
        self.variants = [v for v in self.variants if v["product_id"] != product_id]
        self.variants.extend(rows)


class FakeAssetHost:
    """AssetHost returning predictable URLs; tracks concurrency."""

    def __init__(self, fail_names: set[str] | None = None, delay: float = 0.0):
        self.fail_names = set(fail_names or ())
        self.delay = delay
        self.uploaded: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        # ("start" | "finish", filename) in the order they happened
        self.events: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def upload(self, filename: str, content: bytes, credentials: UploadCredentials) -> str:
        with self._lock:
            self.events.append(("start", filename))
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                threading.Event().wait(self.delay)
            if filename in self.fail_names:
                raise UploadError(sku="", stage="asset_upload", message=f"Upload of {filename} failed")
            with self._lock:
                self.uploaded.append(filename)
            return f"https://cdn.example.com/{credentials.folder}/{filename}"
        finally:
            with self._lock:
                self.in_flight -= 1
                self.events.append(("finish", filename))


class FakeIssuer:
    def __init__(self) -> None:
        self.calls = 0

    def issue(self) -> UploadCredentials:
        self.calls += 1
        return UploadCredentials(signature="sig", timestamp=1700000000, folder="rossel/products")


@pytest.fixture
def config() -> BulkLoadConfig:
    return BulkLoadConfig()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def asset_host() -> FakeAssetHost:
    return FakeAssetHost()


@pytest.fixture
def issuer() -> FakeIssuer:
    return FakeIssuer()
