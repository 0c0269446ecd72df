# File: local2py/cli.py
"""
local2py - Command-Line Interface
==================================

Built with the standard-library ``argparse`` module.

Usage examples::

    # Write a starter document next to you
    local2py --init

    # Generate ./build/local_db from local2py.yaml
    local2py -o ./build

    # Another document, package name and a clean target
    python -m local2py -s app.yaml -o ./build --package-name app_db --clean -v

    # Validate only (no file output)
    local2py -s app.yaml --validate-only

Exit codes:
    0 - success
    1 - validation error
    2 - generation error
    3 - export error
    4 - input/argument error
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional, Sequence

# ---------------------------------------------------------------------------
# Logger (configured in _setup_logging)
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("local2py")


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_VALIDATION_ERROR: int = 1
EXIT_GENERATION_ERROR: int = 2
EXIT_EXPORT_ERROR: int = 3
EXIT_INPUT_ERROR: int = 4


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int) -> None:
    """
    Configure the ``local2py`` logger.

    Args:
        verbosity: 0 = WARNING, 1 = INFO, 2+ = DEBUG.
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler: logging.StreamHandler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    fmt: str = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"
    datefmt: str = "%H:%M:%S"
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root_logger: logging.Logger = logging.getLogger("local2py")
    root_logger.setLevel(level)

    # Repeated cli_main calls (tests) must not stack handlers
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.propagate = False


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    from local2py import __version__
    from local2py.example import EXAMPLE_FILE_NAME

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="local2py",
        description=(
            "local2py: local SQLite access-layer generator.\n\n"
            "Turns a YAML description of tables, queries, views, triggers and "
            "seeds into a Python package of row models, table services and a "
            "database lifecycle module."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s --init\n"
            "  %(prog)s -o ./build\n"
            "  %(prog)s -s app.yaml -o ./build --package-name app_db --clean\n"
            "  %(prog)s -s app.yaml --validate-only\n"
        ),
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"local2py v{__version__}",
    )

    parser.add_argument(
        "-s", "--schema",
        type=str,
        default=EXAMPLE_FILE_NAME,
        metavar="PATH",
        help=f"Path to the YAML schema document (default: {EXAMPLE_FILE_NAME}).",
    )
    parser.add_argument(
        "-o", "--output",
        type=str,
        default=None,
        metavar="DIR",
        help=(
            "Directory that receives <package_name>/ and manifest.json. "
            "Required unless --validate-only or --init is set."
        ),
    )

    # --- Modes ---
    mode_group = parser.add_argument_group("operation modes")
    mode_group.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Only validate the document without generating code.",
    )
    mode_group.add_argument(
        "--init",
        action="store_true",
        default=False,
        help="Write an annotated starter document at --schema if none exists.",
    )

    # --- Config overrides ---
    config_group = parser.add_argument_group("configuration overrides")
    config_group.add_argument(
        "--package-name",
        type=str,
        default=None,
        metavar="NAME",
        help="Override the generated package name.",
    )
    config_group.add_argument(
        "--no-format",
        action="store_true",
        default=False,
        help="Skip running black over the generated package.",
    )
    config_group.add_argument(
        "--clean",
        action="store_true",
        default=False,
        help="Remove the package directory before generation.",
    )
    config_group.add_argument(
        "--sort-tables",
        action="store_true",
        default=False,
        help="Order CREATE TABLE statements by foreign-key dependency.",
    )

    # --- Verbosity ---
    verbosity_group = parser.add_argument_group("verbosity")
    verbosity_group.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for INFO, -vv for DEBUG).",
    )
    verbosity_group.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Suppress all output except errors.",
    )

    return parser


# ---------------------------------------------------------------------------
# Config override builder
# ---------------------------------------------------------------------------


def _build_config_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Only flags the user actually set override the document's config."""
    overrides: Dict[str, Any] = {}

    if args.package_name is not None:
        overrides["package_name"] = args.package_name
    if args.no_format:
        overrides["format_output"] = False
    if args.clean:
        overrides["clean_output"] = True
    if args.sort_tables:
        overrides["sort_tables_by_dependency"] = True

    return overrides


# ---------------------------------------------------------------------------
# Init mode
# ---------------------------------------------------------------------------


def _run_init(schema_path: Path) -> int:
    from local2py.example import EXAMPLE_DOCUMENT

    if schema_path.exists():
        logger.error("Refusing to overwrite existing file: %s", schema_path)
        return EXIT_INPUT_ERROR
    try:
        schema_path.parent.mkdir(parents=True, exist_ok=True)
        schema_path.write_text(EXAMPLE_DOCUMENT, encoding="utf-8")
    except OSError as exc:
        logger.error("Cannot write %s: %s", schema_path, exc)
        return EXIT_EXPORT_ERROR
    print(f"Wrote starter document: {schema_path}")
    return EXIT_SUCCESS


# ---------------------------------------------------------------------------
# Validate-only mode
# ---------------------------------------------------------------------------


def _run_validate_only(schema_path: Path) -> int:
    """
    Run validation only (no code generation).

    Returns the appropriate exit code.
    """
    from local2py.errors import SchemaError
    from local2py.loader import load_document, load_generation_config, load_schema
    from local2py.utils import Timer
    from local2py.validators import ValidationResult, validate_document

    logger.info("Running validation-only mode for: %s", schema_path)

    try:
        raw: Dict[str, Any] = load_document(schema_path)
    except SchemaError as exc:
        logger.error("Failed to load schema: %s", exc)
        return EXIT_INPUT_ERROR

    with Timer("validation") as t:
        result: ValidationResult = validate_document(raw)
        if result.is_valid:
            # Model-level checks the structural pass does not cover
            try:
                load_schema(raw)
                load_generation_config(raw)
            except SchemaError as exc:
                result.add_error(exc.kind, exc.message, exc.path)

    print(f"\n{'='*50}")
    print("  Schema Validation Report")
    print(f"{'='*50}")
    print(f"  File:     {schema_path.name}")
    print(f"  Tables:   {len(raw.get('table') or {})}")
    print(f"  Time:     {t.elapsed:.3f}s")
    print(f"  Valid:    {'Yes' if result.is_valid else 'No'}")

    if result.errors:
        print(f"\n  Errors ({len(result.errors)}):")
        for err in result.errors:
            print(f"    ✗ {err}")

    if result.warnings:
        print(f"\n  Warnings ({len(result.warnings)}):")
        for warn in result.warnings:
            print(f"    ⚠ {warn}")

    if result.is_valid and not result.warnings:
        print("\n  ✅ All validations passed!")

    print(f"{'='*50}\n")

    return EXIT_SUCCESS if result.is_valid else EXIT_VALIDATION_ERROR


# ---------------------------------------------------------------------------
# Full generation mode
# ---------------------------------------------------------------------------


def _run_generation(schema_path: Path, output_dir: Path, args: argparse.Namespace) -> int:
    from local2py.generator import GenerationReport, Local2PyGenerator

    report: GenerationReport = Local2PyGenerator().generate_from_file(
        schema_path,
        output_dir,
        overrides=_build_config_overrides(args) or None,
    )

    print(report.summary())

    if report.success:
        return EXIT_SUCCESS
    if report.input_errors:
        return EXIT_INPUT_ERROR
    if report.schema_errors:
        return EXIT_VALIDATION_ERROR
    if report.generation_errors:
        return EXIT_GENERATION_ERROR
    if report.export_errors:
        return EXIT_EXPORT_ERROR
    return EXIT_GENERATION_ERROR


# ---------------------------------------------------------------------------
# Banner
# ---------------------------------------------------------------------------


def _print_banner() -> None:
    banner: str = r"""
    ╔═══════════════════════════════════════════════════╗
    ║                                                   ║
    ║    local2py: SQLite Access-Layer Generator        ║
    ║    YAML schema  ->  models + services + db        ║
    ║                                                   ║
    ╚═══════════════════════════════════════════════════╝
    """
    print(banner, file=sys.stderr)


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def cli_main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """
    Main CLI entry point.

    Can be called from ``__main__.py`` or directly for testing.

    Args:
        argv: Optional argument list (defaults to sys.argv[1:]).
    """
    parser: argparse.ArgumentParser = _build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    if args.quiet:
        verbosity: int = -1
        logging.disable(logging.CRITICAL)
    else:
        verbosity = args.verbose
        logging.disable(logging.NOTSET)

    _setup_logging(verbosity)

    if verbosity >= 1:
        _print_banner()

    schema_path: Path = Path(args.schema).resolve()

    if args.init:
        sys.exit(_run_init(schema_path))

    if not schema_path.exists():
        logger.error("Schema file not found: %s (run with --init to create one)", schema_path)
        sys.exit(EXIT_INPUT_ERROR)

    if not schema_path.is_file():
        logger.error("Schema path is not a file: %s", schema_path)
        sys.exit(EXIT_INPUT_ERROR)

    if args.validate_only:
        sys.exit(_run_validate_only(schema_path))

    if args.output is None:
        logger.error(
            "Output directory is required for generation. "
            "Use -o/--output or --validate-only."
        )
        parser.print_usage(sys.stderr)
        sys.exit(EXIT_INPUT_ERROR)

    output_dir: Path = Path(args.output).resolve()

    logger.info("Schema:  %s", schema_path)
    logger.info("Output:  %s", output_dir)
    logger.info("Clean:   %s", args.clean)

    exit_code: int = _run_generation(schema_path, output_dir, args)

    if exit_code == EXIT_SUCCESS:
        logger.info("Generation completed successfully.")
    else:
        logger.error("Generation failed with exit code %d.", exit_code)

    sys.exit(exit_code)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "cli_main",
    "EXIT_SUCCESS",
    "EXIT_VALIDATION_ERROR",
    "EXIT_GENERATION_ERROR",
    "EXIT_EXPORT_ERROR",
    "EXIT_INPUT_ERROR",
]

logger.debug("local2py.cli loaded.")
