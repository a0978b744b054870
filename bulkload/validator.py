"""
bulkload.validator — Batch reconciliation.

Detects SKUs repeated inside the batch, SKUs that already exist in the
store, and image references the archive cannot satisfy. Nothing here
mutates its inputs; the only side effect is one store lookup, so a caller
can fix the source data and run the whole check again.
"""

from typing import Mapping

from bulkload.logger import get_logger
from bulkload.models import (
    ConflictReport,
    ImageReferenceReport,
    InternalDuplicate,
    ParsedProduct,
    StoreConflict,
)
from bulkload.store import SkuLookup


def find_internal_duplicates(products: list[ParsedProduct]) -> list[InternalDuplicate]:
    """One entry per SKU that occurs more than once, listing every occurrence."""
    groups: dict[str, InternalDuplicate] = {}

    for index, product in enumerate(products):
        group = groups.get(product.sku)
        if group is None:
            groups[product.sku] = InternalDuplicate(
                sku=product.sku,
                indices=[index],
                names=[product.name],
                rows=[product.row],
            )
        else:
            group.indices.append(index)
            group.names.append(product.name)
            group.rows.append(product.row)

    return [group for group in groups.values() if len(group.indices) > 1]


def find_store_conflicts(
    products: list[ParsedProduct],
    store: SkuLookup,
) -> list[StoreConflict]:
    """Pair every stored record sharing a SKU with the batch entry that claims it."""
    if not products:
        return []

    first_index: dict[str, int] = {}
    for index, product in enumerate(products):
        first_index.setdefault(product.sku, index)

    existing = store.lookup_existing(list(first_index))

    conflicts = []
    reported: set[str] = set()
    for record in existing:
        index = first_index.get(record.sku)
        if index is None or record.sku in reported:
            continue
        reported.add(record.sku)
        product = products[index]
        conflicts.append(StoreConflict(
            sku=record.sku,
            existing_id=record.id,
            existing_name=record.name,
            batch_name=product.name,
            batch_index=index,
            row=product.row,
        ))

    return conflicts


def validate(products: list[ParsedProduct], store: SkuLookup) -> ConflictReport:
    """
    Reconcile a parsed batch against itself and the store.

    The batch is cleared to commit only when the report has no conflicts.
    """
    logger = get_logger()

    report = ConflictReport(
        internal_duplicates=find_internal_duplicates(products),
        store_conflicts=find_store_conflicts(products, store),
    )

    if report.has_conflicts:
        logger.warn(
            f"Found {report.total} SKU conflicts",
            stage="reconcile",
            internal_duplicates=[d.sku for d in report.internal_duplicates],
            store_conflicts=[c.sku for c in report.store_conflicts],
        )
    else:
        logger.info("No SKU conflicts", stage="reconcile", products=len(products))

    return report


def check_image_references(
    products: list[ParsedProduct],
    assets: Mapping[str, bytes],
) -> ImageReferenceReport:
    """Every referenced image must be in the archive; extras are only reported."""
    referenced: dict[str, None] = {}
    for product in products:
        for name in product.image_names():
            referenced.setdefault(name, None)

    report = ImageReferenceReport(
        missing=[name for name in referenced if name not in assets],
        unused=sorted(name for name in assets if name not in referenced),
    )

    logger = get_logger()
    if report.unused:
        logger.warn(
            f"{len(report.unused)} images in the archive are not referenced",
            stage="cross_reference",
            unused=report.unused,
        )
    logger.info(
        f"Image references checked: {len(report.missing)} missing",
        stage="cross_reference",
        referenced=len(referenced),
    )
    return report
