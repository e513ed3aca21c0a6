"""Rule matching engine.

Evaluates a rule tree (``FileTest``/``DirTest``) against a ``Node`` and
records per-field evidence in a ``Diagnostic`` tree of the same shape.
The rule tree itself is never modified, so one tree can be reused across
runs.

Evaluation order inside a rule record:
  1. the direct fields, in a fixed order; a failing field returns False,
  2. the first combinator present (``and``, ``or``, ``not``), whose verdict
     is returned on its own.

A ``filename`` mismatch is recorded as NOT_APPLICABLE and does not fail the
file rule, unlike ``dirname``. This asymmetry is long-standing behavior that
existing rule files rely on.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Union

from .archive import is_archive_name
from .errors import (
    ArchiveReadError,
    ParseError,
    PathNotFoundError,
    UnsupportedNestingError,
)
from .names import describe_name_spec, match_name
from .nodes import LiveNode, Node
from .rules import DirRule, DirTest, FileRule, FileTest, Test, parse_test
from .sizes import match_size

LOG = logging.getLogger("treelint.engine")

FAILURE_OUTCOMES = ("ILLEGAL", "MISSING", "ERROR")

# ---------- Diagnostics ----------


@dataclass
class Diagnostic:
    """Evidence recorded while evaluating one rule-tree node."""

    messages: dict[str, Union[str, list[str]]] = field(default_factory=dict)
    children: dict[str, "Diagnostic"] = field(default_factory=dict)

    def bind(self, key: str, message: str) -> None:
        self.messages[key] = message

    def append(self, key: str, message: str) -> None:
        existing = self.messages.setdefault(key, [])
        existing.append(message)

    def child(self, key: str) -> "Diagnostic":
        if key not in self.children:
            self.children[key] = Diagnostic()
        return self.children[key]

    def failures(self, path: str = "") -> list[str]:
        """List the ILLEGAL/MISSING/ERROR outcomes, prefixed by where they occurred."""
        found = []
        for key, value in self.messages.items():
            for message in value if isinstance(value, list) else [value]:
                if message.startswith(FAILURE_OUTCOMES):
                    found.append(f"{path}{key}: {message}")
        for key, child in self.children.items():
            found.extend(child.failures(f"{path}{key}."))
        return found

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = dict(self.messages)
        for key, child in self.children.items():
            data[key] = child.to_dict()
        return data


@dataclass(frozen=True)
class MatchReport:
    ok: bool
    diagnostics: Diagnostic

    def __bool__(self) -> bool:
        return self.ok


# ---------- Engine ----------


class Tester:
    """Matches rule trees against nodes.

    After ``test_dir`` the evaluated rule tree and its diagnostics are
    available as ``test_object`` and ``diagnostics``.
    """

    __test__ = False

    def __init__(self):
        self.test_object: Test | None = None
        self.diagnostics: Diagnostic | None = None
        self._file_checks: tuple[tuple[str, Callable[..., bool]], ...] = (
            ("filename", self._check_filename),
            ("size", self._check_size),
            ("subtype", self._check_subtype),
        )
        self._dir_checks: tuple[tuple[str, Callable[..., bool]], ...] = (
            ("dirname", self._check_dirname),
            ("size", self._check_size),
            ("has", self._check_has),
        )

    # ----- entry points -----

    def test_dir(self, test: Union[Test, dict], root_path) -> bool:
        """Evaluate ``test`` against the filesystem object at ``root_path``.

        Raises:
            SpecError: If ``test`` is a mapping that is not a valid rule tree.
            OSError: If ``root_path`` cannot be examined.
        """
        self.test_object = parse_test(test)
        self.diagnostics = Diagnostic()
        root = LiveNode(root_path)
        LOG.debug("Testing %s", root.path)
        return self.match_rule(self.test_object, root, self.diagnostics)

    def match_rule(self, test: Test, node: Node, diag: Diagnostic) -> bool:
        kind = node.kind()
        if test.type:
            if kind != test.type:
                diag.bind("type", f"ILLEGAL: {test.type}")
                LOG.debug("%r is a %s, expected %s", node, kind, test.type)
                return False
            diag.bind("type", f"MATCH: {test.type}")

        if test.rules is None:
            return True
        if isinstance(test, FileTest):
            return self.match_file_rules(test.rules, node, diag.child("rules"))
        if isinstance(test, DirTest):
            return self.match_dir_rules(test.rules, node, diag.child("rules"))
        return False

    def match_file_rules(self, rule: FileRule, node: Node, diag: Diagnostic) -> bool:
        for key, check in self._file_checks:
            if getattr(rule, key) is None:
                continue
            if not check(rule, node, diag):
                return False
        return self._match_combinators(rule, node, diag, self.match_file_rules)

    def match_dir_rules(self, rule: DirRule, node: Node, diag: Diagnostic) -> bool:
        for key, check in self._dir_checks:
            if getattr(rule, key) is None:
                continue
            if not check(rule, node, diag):
                return False
        return self._match_combinators(rule, node, diag, self.match_dir_rules)

    # ----- field checks -----

    def _check_filename(self, rule: FileRule, node: Node, diag: Diagnostic) -> bool:
        spec = describe_name_spec(rule.filename)
        if match_name(node.name, rule.filename):
            diag.bind("filename", f"MATCH: {spec}")
        else:
            diag.bind("filename", f"NOT_APPLICABLE: {spec}")
        return True

    def _check_dirname(self, rule: DirRule, node: Node, diag: Diagnostic) -> bool:
        spec = describe_name_spec(rule.dirname)
        if not match_name(node.name, rule.dirname):
            diag.bind("dirname", f"ILLEGAL: {spec}")
            return False
        diag.bind("dirname", f"MATCH: {spec}")
        return True

    def _check_size(self, rule, node: Node, diag: Diagnostic) -> bool:
        try:
            ok = match_size(node.stat().size, rule.size)
        except ParseError as exc:
            diag.bind("size", f"ERROR: {exc}")
            return False
        diag.bind("size", f"{'MATCH' if ok else 'ILLEGAL'}: {rule.size}")
        return ok

    def _check_subtype(self, rule: FileRule, node: Node, diag: Diagnostic) -> bool:
        if rule.subtype != "compressed":
            # text/binary classification is not implemented yet
            diag.bind("subtype", f"MATCH: {rule.subtype}")
            return True

        if not is_archive_name(node.name):
            diag.bind("subtype", f"ILLEGAL: {rule.subtype} ({node.name})")
            return False
        if rule.content is None:
            diag.bind("subtype", f"MATCH: {rule.subtype}")
            return True

        try:
            archive = node.open_archive()
        except UnsupportedNestingError as exc:
            LOG.info("Skipping content checks: %s", exc)
            diag.bind("subtype", f"MATCH: {rule.subtype}")
            diag.bind("content", "UNSUPPORTED: nested archive")
            return True

        try:
            ok = self.match_dir_rules(rule.content, archive, diag.child("content"))
        except ArchiveReadError as exc:
            LOG.warning("%s", exc)
            diag.bind("subtype", f"ERROR: {exc}")
            return False
        diag.bind("subtype", f"{'MATCH' if ok else 'ILLEGAL'}: {rule.subtype}")
        return ok

    def _check_has(self, rule: DirRule, node: Node, diag: Diagnostic) -> bool:
        try:
            children = {child.name: child for child in node.enumerate()}
        except (NotADirectoryError, PathNotFoundError) as exc:
            LOG.debug("Cannot list %r: %s", node, exc)
            children = {}

        ok = True
        for key, expected in rule.has.items():
            child = children.get(key)
            if child is None:
                diag.append("has", f'MISSING: "{key}"')
                ok = False
            elif isinstance(expected, str):
                diag.append("has", f'FOUND: "{key}"')
            elif self.match_rule(expected, child, diag.child(f"has:{key}")):
                diag.append("has", f'MATCH: "{key}"')
            else:
                diag.append("has", f'ILLEGAL: "{key}"')
                ok = False
        return ok

    # ----- combinators -----

    def _match_combinators(self, rule, node: Node, diag: Diagnostic, match) -> bool:
        if rule.and_ is not None:
            return all(
                match(sub, node, diag.child(f"and[{i}]"))
                for i, sub in enumerate(rule.and_)
            )
        if rule.or_ is not None:
            return any(
                match(sub, node, diag.child(f"or[{i}]"))
                for i, sub in enumerate(rule.or_)
            )
        if rule.not_ is not None:
            return not match(rule.not_, node, diag.child("not"))
        return True


def check_tree(test: Union[Test, dict], root_path) -> MatchReport:
    """Evaluate ``test`` against ``root_path`` and return verdict plus evidence."""
    tester = Tester()
    ok = tester.test_dir(test, Path(root_path))
    return MatchReport(ok=ok, diagnostics=tester.diagnostics)
