"""
bulkload.cli — Command-line interface.

Usage:
    bulkload template OUTPUT [--config CONFIG]
    bulkload inspect ARCHIVE [--config CONFIG]
    bulkload validate SPREADSHEET ARCHIVE [--config CONFIG]
    bulkload run SPREADSHEET ARCHIVE [--config CONFIG] [--dry-run]
"""

import argparse
import json
import sys
from pathlib import Path

from bulkload.config import BulkLoadConfig
from bulkload.engine import ImportEngine
from bulkload.errors import BulkLoadError
from bulkload.logger import configure_logger, get_logger
from bulkload.template import write_template
from bulkload.validator import check_image_references

CONFIG_CANDIDATES = ("bulkload.yaml", "bulkload.yml", ".bulkload.yaml", ".bulkload.yml")


def _emit(data: dict) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2, default=str))


def _config_errors(config: BulkLoadConfig, require_remote: bool) -> bool:
    logger = get_logger()
    errors = config.validate(require_remote=require_remote)
    for error in errors:
        logger.error(error, stage="config_validation")
    return bool(errors)


def cmd_template(args: argparse.Namespace) -> int:
    """Write the blank import template."""
    config = load_config(args.config, required=False)
    configure_logger(config.logging.level)

    output = Path(args.output)
    write_template(output, config.catalog)
    get_logger().info(f"Template written to {output}", stage="template")
    return 0


def cmd_inspect(args: argparse.Namespace) -> int:
    """Describe an image archive."""
    config = load_config(args.config, required=False)
    configure_logger(config.logging.level)

    engine = ImportEngine(config)
    inspection = engine.inspect_archive(Path(args.archive))
    _emit(inspection.to_dict())
    return 0 if inspection.is_valid else 1


def cmd_validate(args: argparse.Namespace) -> int:
    """Parse the spreadsheet and check image references without touching the store."""
    config = load_config(args.config, required=False)
    configure_logger(config.logging.level)

    if _config_errors(config, require_remote=False):
        return 1

    engine = ImportEngine(config)
    parsed = engine.load_spreadsheet(Path(args.spreadsheet))
    assets = engine.load_archive(Path(args.archive))
    images = check_image_references(parsed.products, assets)

    errors = parsed.errors + images.errors
    _emit({
        "products": len(parsed.products),
        "variants": parsed.variant_count,
        "images": len(assets),
        "errors": errors,
        "warnings": parsed.warnings,
        "unused_images": images.unused,
    })
    return 1 if errors else 0


def cmd_run(args: argparse.Namespace) -> int:
    """Review and commit a spreadsheet + archive."""
    config = load_config(args.config)
    configure_logger(config.logging.level)
    logger = get_logger()

    if _config_errors(config, require_remote=True):
        return 1

    logger.info("Starting import", stage="startup", dry_run=args.dry_run)

    def on_progress(percent: float) -> None:
        logger.debug(f"Progress {percent:.0f}%", stage="progress", percent=percent)

    engine = ImportEngine(config)
    try:
        report, result = engine.run(
            Path(args.spreadsheet),
            Path(args.archive),
            on_progress=on_progress,
            dry_run=args.dry_run,
        )
    finally:
        engine.close()

    output = {"review": report.to_dict()}
    if result is not None:
        output["commit"] = result.to_dict()
    _emit(output)

    if not report.ready:
        return 1
    if result is not None and not result.success:
        logger.error(
            "Import finished with failures",
            stage="complete",
            failed=len(result.errors),
            products_created=result.products_created,
        )
        return 1

    logger.info("Import complete", stage="complete")
    return 0


def load_config(config_path: str | None, required: bool = True) -> BulkLoadConfig:
    """Load configuration from file; defaults when optional and absent."""
    if config_path:
        path = Path(config_path)
    else:
        for candidate in CONFIG_CANDIDATES:
            path = Path(candidate)
            if path.exists():
                break
        else:
            if not required:
                return BulkLoadConfig()
            print("No configuration file found", file=sys.stderr)
            sys.exit(1)

    if not path.exists():
        print(f"Configuration file not found: {path}", file=sys.stderr)
        sys.exit(1)

    return BulkLoadConfig.from_yaml(path)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="bulkload",
        description="Bulk catalog import from a spreadsheet and an image archive",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    template_parser = subparsers.add_parser("template", help="Write the import template")
    template_parser.add_argument("output", help="Path of the .xlsx file to write")
    template_parser.add_argument("-c", "--config", help="Path to configuration file")

    inspect_parser = subparsers.add_parser("inspect", help="Describe an image archive")
    inspect_parser.add_argument("archive", help="ZIP archive of images")
    inspect_parser.add_argument("-c", "--config", help="Path to configuration file")

    validate_parser = subparsers.add_parser(
        "validate", help="Check a spreadsheet and archive offline"
    )
    validate_parser.add_argument("spreadsheet", help="Product spreadsheet (.xlsx or .csv)")
    validate_parser.add_argument("archive", help="ZIP archive of images")
    validate_parser.add_argument("-c", "--config", help="Path to configuration file")

    run_parser = subparsers.add_parser("run", help="Review and commit an import")
    run_parser.add_argument("spreadsheet", help="Product spreadsheet (.xlsx or .csv)")
    run_parser.add_argument("archive", help="ZIP archive of images")
    run_parser.add_argument("-c", "--config", help="Path to configuration file")
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Review only; do not upload or write records",
    )

    args = parser.parse_args(argv)

    commands = {
        "template": cmd_template,
        "inspect": cmd_inspect,
        "validate": cmd_validate,
        "run": cmd_run,
    }
    command = commands.get(args.command)
    if command is None:
        parser.print_help()
        return 0

    try:
        return command(args)
    except BulkLoadError as e:
        get_logger().error(str(e), stage=e.stage, error=e.to_dict())
        return 1


if __name__ == "__main__":
    sys.exit(main())
