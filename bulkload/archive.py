"""
bulkload.archive — Image archive extraction.

Archive entries are flattened to their base filename: folders inside the
ZIP are ignored, so two entries with the same name in different folders
collide. By default the later entry wins; CollisionPolicy.ERROR rejects
the archive instead.
"""

import io
import posixpath
import zipfile

from bulkload.config import CollisionPolicy
from bulkload.errors import ArchiveError
from bulkload.logger import get_logger
from bulkload.models import ArchiveInspection


def flatten_name(entry_name: str) -> str:
    """Strip any directory prefix from an archive entry name."""
    return posixpath.basename(entry_name.replace("\\", "/"))


def _open(data: bytes) -> zipfile.ZipFile:
    try:
        return zipfile.ZipFile(io.BytesIO(data))
    except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError) as e:
        raise ArchiveError(
            sku="",
            stage="archive_open",
            message=f"Cannot open archive: {e}",
        ) from e


def extract_assets(
    data: bytes,
    extension: str = ".webp",
    collision_policy: CollisionPolicy = CollisionPolicy.LAST_WINS,
) -> dict[str, bytes]:
    """
    Extract image entries from a ZIP archive.

    Returns:
        Mapping of flattened filename to file content, in archive order.

    Raises:
        ArchiveError: If the archive cannot be opened or read, or on a
            flattening collision under CollisionPolicy.ERROR.
    """
    logger = get_logger()
    extension = extension.lower()
    assets: dict[str, bytes] = {}
    origins: dict[str, str] = {}
    skipped = 0

    with _open(data) as archive:
        for info in archive.infolist():
            if info.is_dir():
                continue

            if not info.filename.lower().endswith(extension):
                skipped += 1
                logger.debug(
                    f"Skipping non-{extension} entry: {info.filename}",
                    stage="archive_extract",
                )
                continue

            try:
                content = archive.read(info)
            except (zipfile.BadZipFile, OSError, RuntimeError) as e:
                raise ArchiveError(
                    sku="",
                    stage="archive_extract",
                    message=f"Cannot read entry {info.filename}: {e}",
                    payload={"entry": info.filename},
                ) from e

            filename = flatten_name(info.filename)

            if not content:
                logger.warn(f"Empty entry dropped: {filename}", stage="archive_extract")
                continue

            if filename in assets:
                if collision_policy == CollisionPolicy.ERROR:
                    raise ArchiveError(
                        sku="",
                        stage="archive_extract",
                        message=f"Entries {origins[filename]} and {info.filename} "
                                f"both flatten to {filename}",
                        payload={"filename": filename},
                    )
                logger.warn(
                    f"Entry {info.filename} replaces {origins[filename]}",
                    stage="archive_extract",
                    filename=filename,
                )

            assets[filename] = content
            origins[filename] = info.filename

    logger.info(
        f"Extracted {len(assets)} images",
        stage="archive_extract",
        skipped=skipped,
    )
    return assets


def inspect_archive(data: bytes, extension: str = ".webp") -> ArchiveInspection:
    """Describe an archive's layout without extracting content."""
    extension = extension.lower()
    inspection = ArchiveInspection()

    try:
        archive = _open(data)
    except ArchiveError as e:
        inspection.errors.append(e.message)
        return inspection

    seen: set[str] = set()
    with archive:
        for info in archive.infolist():
            inspection.total_entries += 1

            if info.is_dir():
                inspection.directories += 1
                continue

            if "/" in info.filename.replace("\\", "/"):
                inspection.nested_entries += 1
                inspection.warnings.append(
                    f"Entry in a folder: {info.filename} (moved to the archive root)"
                )

            if not info.filename.lower().endswith(extension):
                inspection.skipped_entries += 1
                inspection.warnings.append(
                    f"Entry without {extension} extension will be skipped: {info.filename}"
                )
                continue

            inspection.image_entries += 1
            filename = flatten_name(info.filename)
            if filename in seen and filename not in inspection.collisions:
                inspection.collisions.append(filename)
                inspection.warnings.append(
                    f"Several entries flatten to {filename}; the last one is kept"
                )
            seen.add(filename)

    if inspection.total_entries == 0:
        inspection.errors.append("The archive is empty")
    elif inspection.image_entries == 0:
        inspection.errors.append(f"No {extension} files found in the archive")

    return inspection
