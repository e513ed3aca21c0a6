"""Check manager that coordinates execution of all validation checks."""

import logging
from typing import TYPE_CHECKING

from treelint.checks.structure.struct_checker import struct_checker
from treelint.output import output

if TYPE_CHECKING:
    from treelint.cli import LintContext

LOG = logging.getLogger("treelint.checks.check_manager")


def check_manager(context: "LintContext") -> bool:
    """Run all registered checks with the given lint context.

    Args:
        context: LintContext containing root_path, rules_path, and other configuration

    Returns:
        bool: True if all checks passed, False otherwise
    """
    with output.show_progress("Running structure checks") as progress:
        progress.add_task("Running structure checks", total=None)
        report = struct_checker(context)

    rules_name = context.rules_path.name if context.rules_path else None
    result = bool(report)

    if context.show_report or not result:
        if report.diagnostics.messages or report.diagnostics.children:
            output.print_diagnostics(report.diagnostics, label=rules_name or "rules")

    if result:
        LOG.info("All checks completed successfully")
        output.print_summary_success(
            root_path=str(context.root_path),
            rules_name=rules_name,
            checks_run=1,
        )
    else:
        LOG.error("Some checks failed")
        output.print_summary_failure(
            root_path=str(context.root_path),
            rules_name=rules_name,
            checks_run=1,
            issues=report.diagnostics.failures() or ["Structure validation failed"],
        )

    return result
