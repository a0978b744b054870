"""
bulkload.config — Configuration loading and validation.

All tunables live here: palette, column headers, size limits, upload batch
size, progress weighting and collaborator endpoints.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml


STANDARD_COLORS: tuple[str, ...] = tuple(sorted((
    "Amarillo", "Azul", "Beige", "Blanco", "Cafe", "Camel", "Celeste", "Gris",
    "Kaki", "Marino", "Morado", "Naranja", "Negro", "Rojo", "Rosa", "Tinto",
    "Verde", "Vino",
)))

DEFAULT_COLUMNS: dict[str, str] = {
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


class CollisionPolicy(str, Enum):
    LAST_WINS = "last_wins"
    ERROR = "error"


class LogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


@dataclass
class CatalogConfig:
    palette: tuple[str, ...] = STANDARD_COLORS
    image_extension: str = ".webp"
    columns: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_COLUMNS))


@dataclass
class LimitsConfig:
    max_spreadsheet_bytes: int = 10 * 1024 * 1024
    max_archive_bytes: int = 50 * 1024 * 1024


@dataclass
class ArchiveConfig:
    collision_policy: CollisionPolicy = CollisionPolicy.LAST_WINS


@dataclass
class UploadConfig:
    batch_size: int = 5
    folder: str = "rossel/products"
    ledger_path: str | None = None


@dataclass
class ProgressConfig:
    images_weight: int = 50


@dataclass
class RetryConfig:
    max_attempts: int = 3
    initial_delay_ms: int = 500
    max_delay_ms: int = 10000


@dataclass
class CloudinaryConfig:
    cloud_name: str = ""
    api_key: str = ""
    upload_url: str = "https://api.cloudinary.com/v1_1/{cloud_name}/image/upload"
    timeout_seconds: int = 60


@dataclass
class SignatureConfig:
    endpoint: str = ""
    token: str = ""


@dataclass
class SupabaseConfig:
    url: str = ""
    key: str = ""
    products_table: str = "products"
    variants_table: str = "product_variants"


@dataclass
class LoggingConfig:
    level: LogLevel = LogLevel.INFO


@dataclass
class BulkLoadConfig:
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    archive: ArchiveConfig = field(default_factory=ArchiveConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)
    progress: ProgressConfig = field(default_factory=ProgressConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    cloudinary: CloudinaryConfig = field(default_factory=CloudinaryConfig)
    signature: SignatureConfig = field(default_factory=SignatureConfig)
    supabase: SupabaseConfig = field(default_factory=SupabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BulkLoadConfig":
        """Parse configuration from a dictionary."""

        def parse_catalog(d: dict) -> CatalogConfig:
            columns = dict(DEFAULT_COLUMNS)
            columns.update(d.get("columns", {}))
            return CatalogConfig(
                palette=tuple(d.get("palette", STANDARD_COLORS)),
                image_extension=d.get("image_extension", ".webp"),
                columns=columns,
            )

        def parse_limits(d: dict) -> LimitsConfig:
            return LimitsConfig(
                max_spreadsheet_bytes=d.get("max_spreadsheet_bytes", 10 * 1024 * 1024),
                max_archive_bytes=d.get("max_archive_bytes", 50 * 1024 * 1024),
            )

        def parse_archive(d: dict) -> ArchiveConfig:
            return ArchiveConfig(
                collision_policy=CollisionPolicy(d.get("collision_policy", "last_wins")),
            )

        def parse_upload(d: dict) -> UploadConfig:
            return UploadConfig(
                batch_size=d.get("batch_size", 5),
                folder=d.get("folder", "rossel/products"),
                ledger_path=d.get("ledger_path"),
            )

        def parse_progress(d: dict) -> ProgressConfig:
            return ProgressConfig(
                images_weight=d.get("images_weight", 50),
            )

        def parse_retry(d: dict) -> RetryConfig:
            return RetryConfig(
                max_attempts=d.get("max_attempts", 3),
                initial_delay_ms=d.get("initial_delay_ms", 500),
                max_delay_ms=d.get("max_delay_ms", 10000),
            )

        def parse_cloudinary(d: dict) -> CloudinaryConfig:
            return CloudinaryConfig(
                cloud_name=d.get("cloud_name", ""),
                api_key=d.get("api_key", ""),
                upload_url=d.get(
                    "upload_url",
                    "https://api.cloudinary.com/v1_1/{cloud_name}/image/upload",
                ),
                timeout_seconds=d.get("timeout_seconds", 60),
            )

        def parse_signature(d: dict) -> SignatureConfig:
            return SignatureConfig(
                endpoint=d.get("endpoint", ""),
                token=d.get("token", ""),
            )

        def parse_supabase(d: dict) -> SupabaseConfig:
            return SupabaseConfig(
                url=d.get("url", ""),
                key=d.get("key", ""),
                products_table=d.get("products_table", "products"),
                variants_table=d.get("variants_table", "product_variants"),
            )

        def parse_logging(d: dict) -> LoggingConfig:
            return LoggingConfig(
                level=LogLevel(d.get("level", "info")),
            )

        return cls(
            catalog=parse_catalog(data.get("catalog", {})),
            limits=parse_limits(data.get("limits", {})),
            archive=parse_archive(data.get("archive", {})),
            upload=parse_upload(data.get("upload", {})),
            progress=parse_progress(data.get("progress", {})),
            retry=parse_retry(data.get("retry", {})),
            cloudinary=parse_cloudinary(data.get("cloudinary", {})),
            signature=parse_signature(data.get("signature", {})),
            supabase=parse_supabase(data.get("supabase", {})),
            logging=parse_logging(data.get("logging", {})),
        )

    @classmethod
    def from_yaml(cls, path: Path) -> "BulkLoadConfig":
        """Load configuration from a YAML file."""
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    def validate(self, require_remote: bool = True) -> list[str]:
        """
        Validate configuration and return list of errors.

        require_remote: also demand the collaborator credentials needed
        to commit. Offline checks only need the catalog section.
        """
        errors = []

        if not self.catalog.palette:
            errors.append("catalog.palette must not be empty")
        if not self.catalog.image_extension.startswith("."):
            errors.append("catalog.image_extension must start with '.'")
        unknown = set(self.catalog.columns) - set(DEFAULT_COLUMNS)
        for key in sorted(unknown):
            errors.append(f"catalog.columns has unknown field: {key}")

        if self.upload.batch_size < 1:
            errors.append("upload.batch_size must be >= 1")

        if not 0 <= self.progress.images_weight < 100:
            errors.append("progress.images_weight must be >= 0 and < 100")

        if self.retry.max_attempts < 1:
            errors.append("retry.max_attempts must be >= 1")

        if self.limits.max_spreadsheet_bytes < 1:
            errors.append("limits.max_spreadsheet_bytes must be >= 1")
        if self.limits.max_archive_bytes < 1:
            errors.append("limits.max_archive_bytes must be >= 1")

        if require_remote:
            if not self.supabase.url:
                errors.append("supabase.url is required")
            if not self.supabase.key:
                errors.append("supabase.key is required")
            if not self.cloudinary.cloud_name:
                errors.append("cloudinary.cloud_name is required")
            if not self.cloudinary.api_key:
                errors.append("cloudinary.api_key is required")
            if not self.signature.endpoint:
                errors.append("signature.endpoint is required")

        return errors
