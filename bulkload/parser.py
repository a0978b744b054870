"""
bulkload.parser — Spreadsheet rows to products with variants.

Rows are processed in order. A row with a SKU opens (or re-opens) a product
and sets the base fields; rows with a blank SKU inherit them and only add a
variant. Validation problems are collected as row-numbered messages and
parsing continues; the caller decides whether the batch may proceed.
"""

import csv
import io
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Iterable, Mapping

from openpyxl import load_workbook

from bulkload.config import CatalogConfig
from bulkload.errors import SpreadsheetError
from bulkload.logger import get_logger
from bulkload.models import ParsedProduct, ParsedVariant, ParseResult

# Spreadsheet row of the first data row: 1-based display plus the header row.
FIRST_DATA_ROW = 2

SUPPORTED_SUFFIXES = (".xlsx", ".xlsm", ".csv")


def _cell(row: Mapping[str, Any], column: str) -> str:
    """Cell value as a stripped string; None and NaN-like blanks become ''."""
    value = row.get(column)
    if value is None:
        return ""
    if isinstance(value, float):
        if value != value:
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def _parse_stock(raw: str) -> int | None:
    if not raw:
        return None
    try:
        number = Decimal(raw)
    except InvalidOperation:
        return None
    if not number.is_finite() or number != number.to_integral_value():
        return None
    return int(number)


def _parse_price(raw: str) -> Decimal | None:
    if not raw:
        return None
    try:
        number = Decimal(raw)
    except InvalidOperation:
        return None
    if not number.is_finite():
        return None
    return number


def split_images(raw: str) -> list[str]:
    """Comma-separated image cell to a list of trimmed, non-empty names."""
    return [token.strip() for token in raw.split(",") if token.strip()]


class RowParser:
    """Single-pass fold over spreadsheet rows."""

    def __init__(self, catalog: CatalogConfig | None = None):
        self._catalog = catalog or CatalogConfig()
        self._columns = self._catalog.columns
        self._palette = set(self._catalog.palette)
        self._extension = self._catalog.image_extension.lower()
        self._logger = get_logger()

    def parse(self, rows: Iterable[Mapping[str, Any]]) -> ParseResult:
        result = ParseResult()
        products: dict[str, ParsedProduct] = {}
        context: dict[str, str] | None = None
        last_sku: str | None = None

        for index, row in enumerate(rows):
            row_num = index + FIRST_DATA_ROW
            sku = _cell(row, self._columns["sku"])

            if sku:
                context = {
                    "sku": sku,
                    "name": _cell(row, self._columns["name"]),
                    "description": _cell(row, self._columns["description"]),
                    "category": _cell(row, self._columns["category"]),
                }
                if not context["name"]:
                    result.errors.append(
                        f"Row {row_num}: Name is required when a SKU is given"
                    )
                if not context["category"]:
                    result.errors.append(
                        f"Row {row_num}: Category is required when a SKU is given"
                    )

                if sku not in products:
                    products[sku] = ParsedProduct(row=row_num, variants=[], **context)
                    self._logger.debug(
                        f"Product opened: {context['name']}",
                        sku=sku,
                        stage="parse",
                        row=row_num,
                    )
                elif sku != last_sku:
                    result.warnings.append(
                        f"Row {row_num}: SKU {sku} appears again after other products; "
                        f"variants are merged into the product from row {products[sku].row}"
                    )
                last_sku = sku

            if context is None:
                result.errors.append(
                    f"Row {row_num}: Cannot determine the product SKU (no SKU above this row)"
                )
                continue

            product = products[context["sku"]]
            variant = self._parse_variant(row, row_num, product.sku, result.errors)
            if variant is None:
                continue

            if product.has_color(variant.color):
                result.errors.append(
                    f"Row {row_num}: Product {product.sku} already has a "
                    f"\"{variant.color}\" variant"
                )
                continue

            product.variants.append(variant)

        result.products = list(products.values())

        self._logger.info(
            f"Parsed {len(result.products)} products",
            stage="parse",
            variants=result.variant_count,
            errors=len(result.errors),
            warnings=len(result.warnings),
        )
        return result

    def _parse_variant(
        self,
        row: Mapping[str, Any],
        row_num: int,
        sku: str,
        errors: list[str],
    ) -> ParsedVariant | None:
        color = _cell(row, self._columns["color"])
        if not color:
            errors.append(f"Row {row_num}: Color is required")
            return None

        if color not in self._palette:
            errors.append(f"Row {row_num}: Color \"{color}\" is not in the standard palette")

        stock = _parse_stock(_cell(row, self._columns["stock"]))
        if stock is None or stock < 0:
            errors.append(f"Row {row_num}: Stock must be a whole number of 0 or more")
            stock = 0

        prices: dict[str, Decimal] = {}
        for field_name in ("price", "price_retail", "price_wholesale"):
            column = self._columns[field_name]
            price = _parse_price(_cell(row, column))
            if price is None or price <= 0:
                errors.append(f"Row {row_num}: {column} must be a number greater than 0")
                price = Decimal("0")
            prices[field_name] = price

        image_names = split_images(_cell(row, self._columns["images"]))
        expected_prefix = f"{sku}_{color.lower()}_"
        for image_name in image_names:
            lowered = image_name.lower()
            if not lowered.startswith(expected_prefix.lower()):
                errors.append(
                    f"Row {row_num}: Image \"{image_name}\" does not follow the naming "
                    f"\"{expected_prefix}N{self._extension}\""
                )
            if not lowered.endswith(self._extension):
                errors.append(
                    f"Row {row_num}: Image \"{image_name}\" must have the "
                    f"{self._extension} extension"
                )

        return ParsedVariant(
            color=color,
            stock=stock,
            image_names=image_names,
            row=row_num,
            **prices,
        )


def parse_rows(
    rows: Iterable[Mapping[str, Any]],
    catalog: CatalogConfig | None = None,
) -> ParseResult:
    """Parse spreadsheet rows keyed by column header."""
    return RowParser(catalog).parse(rows)


def _is_blank(values: Iterable[Any]) -> bool:
    return all(v is None or (isinstance(v, str) and not v.strip()) for v in values)


def _read_xlsx(data: bytes) -> list[dict[str, Any]]:
    try:
        workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except Exception as e:
        raise SpreadsheetError(
            sku="",
            stage="spreadsheet_read",
            message=f"Cannot open workbook: {e}",
        ) from e

    try:
        sheet = workbook.worksheets[0]
        rows = sheet.iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return []
        keys = [str(h).strip() if h is not None else "" for h in header]

        records = []
        for values in rows:
            if _is_blank(values):
                continue
            records.append({key: value for key, value in zip(keys, values) if key})
        return records
    finally:
        workbook.close()


def _read_csv(data: bytes) -> list[dict[str, Any]]:
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise SpreadsheetError(
            sku="",
            stage="spreadsheet_read",
            message=f"CSV is not valid UTF-8: {e}",
        ) from e

    reader = csv.DictReader(io.StringIO(text))
    if reader.fieldnames:
        reader.fieldnames = [name.strip() for name in reader.fieldnames]
    return [row for row in reader if not _is_blank(row.values())]


def read_rows(source: Path | bytes, suffix: str | None = None) -> list[dict[str, Any]]:
    """
    Read the first sheet of a spreadsheet into header-keyed rows.

    Args:
        source: File path, or raw bytes together with ``suffix``
        suffix: File suffix when ``source`` is bytes (".xlsx" or ".csv")

    Raises:
        SpreadsheetError: Unsupported type or unreadable file.
    """
    if isinstance(source, Path):
        suffix = suffix or source.suffix
        data = source.read_bytes()
    else:
        data = source

    suffix = (suffix or "").lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise SpreadsheetError(
            sku="",
            stage="spreadsheet_read",
            message=f"Unsupported spreadsheet type: {suffix or 'unknown'}",
            payload={"supported": list(SUPPORTED_SUFFIXES)},
        )

    if suffix == ".csv":
        records = _read_csv(data)
    else:
        records = _read_xlsx(data)

    get_logger().info(f"Read {len(records)} rows", stage="spreadsheet_read")
    return records
