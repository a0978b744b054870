"""
bulkload.template — Blank import workbook with example rows.

The example rows show the inheritance convention: only the first row of a
product carries SKU, name, description and category.
"""

from io import BytesIO
from pathlib import Path

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from bulkload.config import DEFAULT_COLUMNS, CatalogConfig

SHEET_TITLE = "Products"

FIELD_ORDER = (
    "sku", "name", "description", "category", "color",
    "stock", "price", "price_retail", "price_wholesale", "images",
)

COLUMN_WIDTHS = (8, 20, 30, 12, 10, 8, 10, 12, 12, 40)

# (sku, name, description, category, variants); each variant is
# (color, stock, price, price_retail, price_wholesale, image count).
EXAMPLE_PRODUCTS = (
    ("849", "Bolsa Luna", "Bolsa elegante de cuero sintético", "Bolsa", (
        ("Rojo", "10", "450", "650", "550", 2),
        ("Negro", "15", "450", "650", "550", 2),
        ("Azul", "8", "450", "650", "550", 1),
    )),
    ("850", "Mochila Star", "Mochila escolar resistente", "Mochila", (
        ("Verde", "20", "380", "580", "480", 2),
        ("Negro", "12", "380", "580", "480", 1),
    )),
)


def template_headers(catalog: CatalogConfig | None = None) -> list[str]:
    columns = catalog.columns if catalog else DEFAULT_COLUMNS
    return [columns[name] for name in FIELD_ORDER]


def _example_colors(palette: tuple[str, ...], wanted: list[str]) -> list[str]:
    if all(color in palette for color in wanted):
        return wanted
    # A custom palette may hold fewer colors than the example needs.
    return list(palette[:len(wanted)])


def template_rows(catalog: CatalogConfig | None = None) -> list[list[str]]:
    """
    Example rows that parse cleanly under ``catalog``.

    Colors outside a custom palette are swapped for the palette's first
    entries, and image names use the configured extension.
    """
    catalog = catalog or CatalogConfig()
    rows = []

    for sku, name, description, category, variants in EXAMPLE_PRODUCTS:
        colors = _example_colors(catalog.palette, [v[0] for v in variants])
        for index, (variant, color) in enumerate(zip(variants, colors)):
            _, stock, price, price_retail, price_wholesale, image_count = variant
            images = ",".join(
                f"{sku}_{color.lower()}_{n}{catalog.image_extension}"
                for n in range(1, image_count + 1)
            )
            base = [sku, name, description, category] if index == 0 else ["", "", "", ""]
            rows.append(base + [color, stock, price, price_retail, price_wholesale, images])

    return rows


def build_template(catalog: CatalogConfig | None = None) -> Workbook:
    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE

    ws.append(template_headers(catalog))
    header_font = Font(bold=True)
    header_fill = PatternFill(start_color="DDDDDD", end_color="DDDDDD", fill_type="solid")
    for cell in ws[1]:
        cell.font = header_font
        cell.fill = header_fill

    for row in template_rows(catalog):
        ws.append(row)

    for index, width in enumerate(COLUMN_WIDTHS, start=1):
        ws.column_dimensions[get_column_letter(index)].width = width

    ws.freeze_panes = "A2"
    return wb


def write_template(target: Path | BytesIO, catalog: CatalogConfig | None = None) -> None:
    """Write the template workbook to a path or buffer."""
    build_template(catalog).save(target)
