"""Exceptions raised by treelint."""


class TreeLintError(Exception):
    """Base class for all treelint errors."""


class SpecError(TreeLintError, ValueError):
    """The rule tree (or the file it was loaded from) is malformed."""


class ParseError(TreeLintError, ValueError):
    """A size specifier could not be parsed."""


class PathNotFoundError(TreeLintError, LookupError):
    """An entry path does not exist inside an archive index."""

    def __init__(self, archive_path: str, entry_path: str):
        super().__init__(f"'{entry_path}' not found in archive '{archive_path}'")
        self.archive_path = archive_path
        self.entry_path = entry_path


class ArchiveReadError(TreeLintError, OSError):
    """An archive could not be listed (missing, corrupt or unsupported)."""


class UnsupportedNestingError(TreeLintError):
    """Content checks on an archive stored inside another archive."""
