"""
bulkload.models — Domain models for the import pipeline.

ParsedProduct / ParsedVariant are built fresh for every import attempt and
never persisted directly; only the records derived from them are.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any


@dataclass
class ParsedVariant:
    color: str
    stock: int
    price: Decimal
    price_retail: Decimal
    price_wholesale: Decimal
    image_names: list[str] = field(default_factory=list)
    row: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "color": self.color,
            "stock": self.stock,
            "price": str(self.price),
            "price_retail": str(self.price_retail),
            "price_wholesale": str(self.price_wholesale),
            "image_names": list(self.image_names),
            "row": self.row,
        }


@dataclass
class ParsedProduct:
    sku: str
    name: str
    description: str = ""
    category: str = ""
    variants: list[ParsedVariant] = field(default_factory=list)
    row: int | None = None

    def has_color(self, color: str) -> bool:
        key = color.casefold()
        return any(v.color.casefold() == key for v in self.variants)

    def image_names(self) -> list[str]:
        return [name for v in self.variants for name in v.image_names]

    def base_fields(self) -> dict[str, str]:
        return {
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "category": self.category,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.base_fields(),
            "row": self.row,
            "variants": [v.to_dict() for v in self.variants],
        }


@dataclass
class ParseResult:
    products: list[ParsedProduct] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def variant_count(self) -> int:
        return sum(len(p.variants) for p in self.products)

    def to_dict(self) -> dict[str, Any]:
        return {
            "products": [p.to_dict() for p in self.products],
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class ExistingProduct:
    sku: str
    name: str
    id: Any


@dataclass
class InternalDuplicate:
    sku: str
    indices: list[int]
    names: list[str]
    rows: list[int | None]

    def to_dict(self) -> dict[str, Any]:
        return {
            "sku": self.sku,
            "indices": list(self.indices),
            "names": list(self.names),
            "rows": list(self.rows),
        }


@dataclass
class StoreConflict:
    sku: str
    existing_id: Any
    existing_name: str
    batch_name: str
    batch_index: int
    row: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "sku": self.sku,
            "existing_id": self.existing_id,
            "existing_name": self.existing_name,
            "batch_name": self.batch_name,
            "batch_index": self.batch_index,
            "row": self.row,
        }


@dataclass
class ConflictReport:
    internal_duplicates: list[InternalDuplicate] = field(default_factory=list)
    store_conflicts: list[StoreConflict] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.internal_duplicates or self.store_conflicts)

    @property
    def total(self) -> int:
        return len(self.internal_duplicates) + len(self.store_conflicts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "internal_duplicates": [d.to_dict() for d in self.internal_duplicates],
            "store_conflicts": [c.to_dict() for c in self.store_conflicts],
        }


@dataclass
class ImageReferenceReport:
    missing: list[str] = field(default_factory=list)
    unused: list[str] = field(default_factory=list)

    @property
    def has_missing(self) -> bool:
        return bool(self.missing)

    @property
    def errors(self) -> list[str]:
        return [
            f"Missing image: {name} (listed in the spreadsheet but not found in the archive)"
            for name in self.missing
        ]

    def to_dict(self) -> dict[str, Any]:
        return {"missing": list(self.missing), "unused": list(self.unused)}


@dataclass
class ReviewReport:
    """Everything that must be clear before a batch may be committed."""
    parse: ParseResult
    conflicts: ConflictReport
    images: ImageReferenceReport

    @property
    def blocking_errors(self) -> list[str]:
        errors = list(self.parse.errors)
        for dup in self.conflicts.internal_duplicates:
            rows = ", ".join(str(r) for r in dup.rows)
            errors.append(f"SKU {dup.sku} is repeated in the file (rows {rows})")
        for conflict in self.conflicts.store_conflicts:
            errors.append(
                f"SKU {conflict.sku} already exists as \"{conflict.existing_name}\" "
                f"(file row {conflict.row}: \"{conflict.batch_name}\")"
            )
        errors.extend(self.images.errors)
        return errors

    @property
    def ready(self) -> bool:
        return not self.blocking_errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "ready": self.ready,
            "products": len(self.parse.products),
            "variants": self.parse.variant_count,
            "errors": self.blocking_errors,
            "warnings": list(self.parse.warnings),
            "conflicts": self.conflicts.to_dict(),
            "images": self.images.to_dict(),
        }


@dataclass
class ArchiveInspection:
    total_entries: int = 0
    image_entries: int = 0
    skipped_entries: int = 0
    directories: int = 0
    nested_entries: int = 0
    collisions: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_entries": self.total_entries,
            "image_entries": self.image_entries,
            "skipped_entries": self.skipped_entries,
            "directories": self.directories,
            "nested_entries": self.nested_entries,
            "collisions": list(self.collisions),
            "warnings": list(self.warnings),
            "errors": list(self.errors),
        }


@dataclass(frozen=True)
class UploadCredentials:
    """Time-limited signature issued by the upload signer."""
    signature: str
    timestamp: int
    folder: str
    api_key: str = ""


@dataclass
class UploadResult:
    filename: str
    url: str | None = None
    error: str | None = None
    reused: bool = False

    @property
    def ok(self) -> bool:
        return self.url is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "url": self.url,
            "error": self.error,
            "reused": self.reused,
        }


@dataclass(frozen=True)
class ReplaceExisting:
    """Commit a product by overwriting the stored record with this id."""
    existing_id: Any


@dataclass
class CommitResult:
    products_created: int = 0
    variants_created: int = 0
    products_updated: int = 0
    errors: list[str] = field(default_factory=list)
    uploads: list[UploadResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "products_created": self.products_created,
            "variants_created": self.variants_created,
            "products_updated": self.products_updated,
            "errors": list(self.errors),
            "uploads": [u.to_dict() for u in self.uploads],
            "success": self.success,
        }


@dataclass
class AssetLedgerEntry:
    checksum: str
    url: str
    filename: str
    uploaded_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "checksum": self.checksum,
            "url": self.url,
            "filename": self.filename,
            "uploaded_at": self.uploaded_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AssetLedgerEntry":
        return cls(
            checksum=data["checksum"],
            url=data["url"],
            filename=data["filename"],
            uploaded_at=data["uploaded_at"],
        )
