"""treelint: assert that a directory tree matches a declarative rule tree."""

from .engine import Diagnostic, MatchReport, Tester, check_tree
from .errors import (
    ArchiveReadError,
    ParseError,
    PathNotFoundError,
    SpecError,
    TreeLintError,
    UnsupportedNestingError,
)
from .nodes import ArchiveNode, LiveNode, Node, NodeStat
from .rules import DirRule, DirTest, FileRule, FileTest, load_spec, parse_test

__all__ = [
    "ArchiveNode",
    "ArchiveReadError",
    "Diagnostic",
    "DirRule",
    "DirTest",
    "FileRule",
    "FileTest",
    "LiveNode",
    "MatchReport",
    "Node",
    "NodeStat",
    "ParseError",
    "PathNotFoundError",
    "SpecError",
    "Tester",
    "TreeLintError",
    "UnsupportedNestingError",
    "check_tree",
    "load_spec",
    "parse_test",
]
