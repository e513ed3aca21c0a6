"""Uniform handles over live filesystem objects and archive locations.

The rule engine only talks to ``Node`` objects, so the same directory rule
can walk a real directory or the inside of a zip file.
"""

import os
import stat as stat_mod
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from .archive import ArchiveDir, ArchiveEntry, ArchiveIndex, split_entry_path
from .errors import UnsupportedNestingError

FILE = "file"
DIR = "dir"
SYMLINK = "symlink"
UNKNOWN = "unknown"
FILE_TYPES = (FILE, DIR, SYMLINK, UNKNOWN)


@dataclass(frozen=True)
class NodeStat:
    name: str
    size: int
    mtime: float
    is_file: bool
    is_dir: bool
    is_symlink: bool = False
    compressed_size: int = 0
    comment: str = ""


class Node(ABC):
    """A file or directory that rules can be evaluated against."""

    @abstractmethod
    def stat(self) -> NodeStat:
        """Return the current attributes of this node."""

    @abstractmethod
    def enumerate(self) -> list["Node"]:
        """Return the immediate children of a directory-like node.

        Raises:
            NotADirectoryError: If the node is file-like.
        """

    def is_file(self) -> bool:
        return self.stat().is_file

    def is_dir(self) -> bool:
        return self.stat().is_dir

    def kind(self) -> str:
        """Return ``dir``, ``file``, ``symlink`` or ``unknown``."""
        st = self.stat()
        if st.is_dir:
            return DIR
        if st.is_file:
            return FILE
        if st.is_symlink:
            return SYMLINK
        return UNKNOWN

    @property
    def name(self) -> str:
        return self.stat().name

    @abstractmethod
    def open_archive(self) -> "ArchiveNode":
        """Return the root of the archive stored in this file.

        Raises:
            UnsupportedNestingError: If the file is itself inside an archive.
        """


class LiveNode(Node):
    """A path on the local filesystem. Symlinks are reported, never followed."""

    def __init__(self, path):
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"LiveNode({str(self.path)!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, LiveNode) and other.path == self.path

    def __hash__(self) -> int:
        return hash(("live", self.path))

    @property
    def name(self) -> str:
        return self.path.name

    def stat(self) -> NodeStat:
        st = os.lstat(self.path)
        return NodeStat(
            name=self.path.name,
            size=st.st_size,
            mtime=st.st_mtime,
            is_file=stat_mod.S_ISREG(st.st_mode),
            is_dir=stat_mod.S_ISDIR(st.st_mode),
            is_symlink=stat_mod.S_ISLNK(st.st_mode),
        )

    def enumerate(self) -> list[Node]:
        if not self.is_dir():
            raise NotADirectoryError(f"Not a directory: '{self.path}'")
        with os.scandir(self.path) as it:
            names = sorted(entry.name for entry in it)
        return [LiveNode(self.path / name) for name in names]

    def open_archive(self) -> "ArchiveNode":
        return ArchiveNode(self.path)


class ArchiveNode(Node):
    """A location inside an archive: the root, a directory or an entry.

    All nodes derived from one root share a single ``ArchiveIndex``, which
    reads the archive on first use.
    """

    def __init__(self, archive_path, entry_path: str = "", index=None):
        self.archive_path = str(archive_path)
        self.entry_path = "/".join(split_entry_path(entry_path))
        self._index = index

    def __repr__(self) -> str:
        return f"ArchiveNode({self.archive_path!r}, {self.entry_path!r})"

    def __eq__(self, other) -> bool:
        return (
            isinstance(other, ArchiveNode)
            and other.archive_path == self.archive_path
            and other.entry_path == self.entry_path
        )

    def __hash__(self) -> int:
        return hash(("archive", self.archive_path, self.entry_path))

    @property
    def index(self) -> ArchiveIndex:
        if self._index is None:
            self._index = ArchiveIndex(self.archive_path)
        return self._index

    @property
    def name(self) -> str:
        if not self.entry_path:
            return Path(self.archive_path).name
        return self.entry_path.rsplit("/", 1)[-1]

    def stat(self) -> NodeStat:
        target = self.index.resolve(self.entry_path)
        if isinstance(target, ArchiveEntry):
            return NodeStat(
                name=self.name,
                size=target.size,
                compressed_size=target.compressed_size,
                mtime=target.mtime,
                comment=target.comment,
                is_file=True,
                is_dir=False,
            )
        mtime = target.entry.mtime if target.entry is not None else 0.0
        return NodeStat(name=self.name, size=0, mtime=mtime, is_file=False, is_dir=True)

    def enumerate(self) -> list[Node]:
        target = self.index.resolve(self.entry_path)
        if not isinstance(target, ArchiveDir):
            raise NotADirectoryError(
                f"Not a directory: '{self.entry_path}' in '{self.archive_path}'"
            )
        prefix = f"{self.entry_path}/" if self.entry_path else ""
        return [
            ArchiveNode(self.archive_path, f"{prefix}{key}", index=self.index)
            for key in target
        ]

    def open_archive(self) -> "ArchiveNode":
        raise UnsupportedNestingError(
            f"Archive '{self.entry_path}' is stored inside '{self.archive_path}'"
        )
