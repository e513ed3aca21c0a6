"""Tree structure check driven by a YAML rule file."""

import logging
from typing import TYPE_CHECKING

from treelint.engine import Diagnostic, MatchReport, Tester
from treelint.errors import SpecError
from treelint.rules import load_spec

if TYPE_CHECKING:  # pragma: no cover
    from treelint.cli import LintContext

LOG = logging.getLogger("treelint.checks.struct_checker")


def _failed(message: str) -> MatchReport:
    diagnostics = Diagnostic()
    diagnostics.bind("rules", f"ERROR: {message}")
    return MatchReport(ok=False, diagnostics=diagnostics)


def struct_checker(context: "LintContext") -> MatchReport:
    """Check the tree structure against the rule file.

    Args:
        context: LintContext containing root_path and rules_path

    Returns:
        MatchReport: verdict plus diagnostics; truthy if the check passed
    """
    if context.rules_path is None:
        # No rule file - nothing to assert
        return MatchReport(ok=True, diagnostics=Diagnostic())

    try:
        test = load_spec(context.rules_path)
    except SpecError as e:
        LOG.error("Invalid rule file %s: %s", context.rules_path, e)
        return _failed(str(e))
    except PermissionError as e:
        LOG.error("Permission denied when accessing rule file: %s", e)
        return _failed(str(e))
    except OSError as e:
        LOG.error("I/O error while reading rule file: %s", e)
        return _failed(str(e))

    LOG.debug("Loaded rules from: %s", context.rules_path)
    LOG.debug("Rule tree: %s", test)

    tester = Tester()
    try:
        ok = tester.test_dir(test, context.root_path)
    except OSError as e:
        LOG.error("Cannot examine %s: %s", context.root_path, e)
        return _failed(str(e))

    LOG.info("Structure check %s", "passed" if ok else "failed")
    return MatchReport(ok=ok, diagnostics=tester.diagnostics)
