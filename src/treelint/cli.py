"""Command-line interface for treelint."""

import os
import sys
import logging
import argparse
from dataclasses import dataclass
from pathlib import Path
import importlib.metadata as im
from .output import output

# Exit codes
EXIT_SUCCESS = 0
EXIT_VALIDATION_ERROR = 1
EXIT_USAGE_ERROR = 2  # Command-line argument errors
EXIT_KEYBOARD_INTERRUPT = 130

# Logging verbosity level constants
VERBOSITY_QUIET = 0  # Default verbosity level (WARNING)
VERBOSITY_VERBOSE = 1  # Single -v flag (INFO)

# Windows path length constants
WINDOWS_MAX_PATH_LIMIT = 260
WINDOWS_SAFE_PATH_BUFFER = 20
WINDOWS_MAX_SAFE_PATH_LENGTH = WINDOWS_MAX_PATH_LIMIT - WINDOWS_SAFE_PATH_BUFFER

# Rule file looked up in the checked root when --rules is not given
DEFAULT_RULES_FILENAME = "treelint.yaml"

PACKAGE_NAME = "treelint"
FALLBACK_VERSION = "0.0.0+local"


LOG = logging.getLogger("treelint.cli")


class RichArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that reports errors through the output manager."""

    def __init__(self, *args, output_manager, **kwargs):
        super().__init__(*args, **kwargs)
        self._output_manager = output_manager

    def error(self, message: str) -> None:
        if "required:" in message and "path" in message:
            friendly_message = "Missing required argument 'path'"
        elif "required:" in message:
            friendly_message = message.replace(
                "the following arguments are required: ",
                "Missing required argument: ",
            )
        elif "unrecognized arguments:" in message:
            args = message.replace("unrecognized arguments: ", "")
            friendly_message = f"Unrecognized argument: {args}"
        else:
            friendly_message = message.capitalize()

        self._output_manager.print_usage_error(self.prog, friendly_message)
        self.exit(EXIT_USAGE_ERROR)


@dataclass(frozen=True)
class LintContext:
    """Configuration for one treelint run."""

    root_path: Path
    rules_path: Path | None = None
    show_report: bool = False


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse and return command-line arguments."""
    parser = RichArgumentParser(
        prog="treelint",
        description=(
            "Check that a directory tree, and the archives inside it, "
            "match a declarative rule file"
        ),
        output_manager=output,
    )
    parser.add_argument(
        "path",
        type=Path,
        help="Path to the directory to check",
    )
    parser.add_argument(
        "-r",
        "--rules",
        type=Path,
        help=f"Path to the YAML rule file (default: {DEFAULT_RULES_FILENAME} in the checked directory)",
    )
    parser.add_argument(
        "--report",
        action="store_true",
        help="Print the match evidence even when the check passes",
    )
    try:
        pkg_version = im.version(PACKAGE_NAME)
    except im.PackageNotFoundError:
        pkg_version = FALLBACK_VERSION
    parser.add_argument(
        "-V", "--version", action="version", version=f"%(prog)s {pkg_version}"
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (use -vv for debug)",
    )
    return parser.parse_args(argv)


def _configure_logging(verbosity: int) -> None:
    """Configure logging without clobbering existing handlers (e.g., pytest caplog)."""
    if verbosity <= VERBOSITY_QUIET:
        level = logging.WARNING
    elif verbosity == VERBOSITY_VERBOSE:
        level = logging.INFO
    else:
        level = logging.DEBUG

    pkg_logger = logging.getLogger("treelint")
    pkg_logger.setLevel(level)

    # Standalone CLI run (no handlers anywhere): attach a plain handler
    root = logging.getLogger()
    if not root.handlers and not pkg_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
        pkg_logger.addHandler(handler)
        pkg_logger.propagate = False


def _resolve_path_safely(path: Path, *, use_warnings: bool = False) -> Path | None:
    """Resolve a user-supplied path, reporting problems instead of raising.

    Args:
        path: Path to resolve
        use_warnings: Report failures as warnings (for optional inputs like
            the rule file) instead of errors

    Returns:
        Resolved Path, or None if resolution failed
    """
    report = output.print_warning if use_warnings else output.print_error
    what = "Rule file" if use_warnings else "The path"
    try:
        expanded = path.expanduser()
        if os.name == "nt" and len(str(expanded)) > WINDOWS_MAX_SAFE_PATH_LENGTH:
            report("Path exceeds maximum safe length", str(path))
            return None
        return expanded.resolve(strict=True)
    except FileNotFoundError:
        report(f"{what} does not exist", str(path))
        return None
    except (OSError, ValueError) as exc:
        report(f"Could not resolve {what.lower()}: {exc}", str(path))
        return None


def validate_root_path(path: Path) -> bool:
    """Validate that the given path exists, is a directory, and is readable."""
    resolved = _resolve_path_safely(path)
    if resolved is None:
        return False

    if not resolved.is_dir():
        output.print_error("The path is not a directory", str(resolved))
        return False
    try:
        next(resolved.iterdir(), None)
    except PermissionError:
        output.print_error("The directory is not readable", str(resolved))
        return False
    except OSError as exc:
        output.print_error(f"Could not access directory: {exc}", str(resolved))
        return False
    return True


def resolve_rules_file(root_path: Path, rules_arg: Path | None = None) -> Path | None:
    """Find the rule file to use.

    Priority:
    1. Explicit --rules argument (warning if not found, the run continues)
    2. treelint.yaml in the checked root
    3. None (nothing to check)

    Args:
        root_path: Path to the checked directory (already resolved)
        rules_arg: Optional rule file path from the command line

    Returns:
        Resolved Path to the rule file, or None if not found
    """
    if rules_arg:
        return _resolve_path_safely(rules_arg, use_warnings=True)

    default_rules = root_path / DEFAULT_RULES_FILENAME
    if default_rules.exists():
        return default_rules.resolve()

    return None


def run(
    root_path: Path, rules_path: Path | None = None, show_report: bool = False
) -> int:
    """Core runner: validate the path and run the checks."""
    output.start_timing()

    if not validate_root_path(root_path):
        return EXIT_VALIDATION_ERROR

    resolved_root = _resolve_path_safely(root_path)
    if resolved_root is None:
        return EXIT_VALIDATION_ERROR

    output.print_checking_tree(str(resolved_root))

    resolved_rules = resolve_rules_file(resolved_root, rules_path)
    if resolved_rules:
        output.print_using_rules(resolved_rules.name)
    else:
        output.print_no_rules()

    context = LintContext(
        root_path=resolved_root, rules_path=resolved_rules, show_report=show_report
    )
    LOG.info("treelint ready. Checking: %s", resolved_root)

    from .checks.check_manager import check_manager

    result = check_manager(context)

    return EXIT_SUCCESS if result else EXIT_VALIDATION_ERROR


def main(argv: list[str] | None = None) -> int:
    """Entry point for the treelint command."""
    args = parse_arguments(argv)
    _configure_logging(args.verbose)
    try:
        return run(args.path, args.rules, args.report)
    except KeyboardInterrupt:
        output.print_error("Operation interrupted by user")
        return EXIT_KEYBOARD_INTERRUPT


if __name__ == "__main__":
    sys.exit(main())
