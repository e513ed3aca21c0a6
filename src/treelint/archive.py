"""Archive indexes built from an archive's flat entry list.

Archives are never extracted: only their entry metadata is read, and the
slash-delimited entry names are folded into a nested tree::

    ArchiveDir {"docs": ArchiveDir {"a.txt": ArchiveEntry(...)},
                "README": ArchiveEntry(...)}

Directories implied by entry paths are synthesized as ``ArchiveDir``
mappings; real file entries are ``ArchiveEntry`` leaves.
"""

import logging
import tarfile
import zipfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Union

from .errors import ArchiveReadError, PathNotFoundError

LOG = logging.getLogger("treelint.archive")

ZIP_SUFFIXES = (".zip", ".jar")
TAR_SUFFIXES = (".tar", ".tar.gz", ".tgz", ".tar.bz2", ".tbz2", ".tar.xz", ".txz")
ARCHIVE_SUFFIXES = ZIP_SUFFIXES + TAR_SUFFIXES


@dataclass(frozen=True)
class ArchiveEntry:
    """One real entry of an archive."""

    name: str
    size: int
    compressed_size: int
    mtime: float
    comment: str = ""
    is_dir: bool = False


class ArchiveDir(dict):
    """A directory level of an archive index.

    ``entry`` holds the archive's own record for the directory when the
    archive lists it explicitly (``docs/`` in a zip), otherwise ``None``.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.entry: ArchiveEntry | None = None


IndexNode = Union[ArchiveDir, ArchiveEntry]
EntryReader = Callable[[str], list[ArchiveEntry]]


def archive_format(name: str) -> str | None:
    """Return ``"zip"`` or ``"tar"`` for a recognized archive name, else None."""
    lowered = str(name).lower()
    if lowered.endswith(ZIP_SUFFIXES):
        return "zip"
    if lowered.endswith(TAR_SUFFIXES):
        return "tar"
    return None


def is_archive_name(name: str) -> bool:
    return archive_format(name) is not None


def split_entry_path(entry_path: str) -> list[str]:
    return [part for part in entry_path.split("/") if part not in ("", ".")]


# ---------- Readers ----------


def _zip_mtime(date_time: tuple) -> float:
    # zeroed DOS dates are reported as month 0, day 0
    year, month, day, hour, minute, second = date_time
    try:
        return datetime(
            year, max(month, 1), max(day, 1), hour, minute, second
        ).timestamp()
    except ValueError:
        return 0.0


def _read_zip_entries(path: str) -> list[ArchiveEntry]:
    with zipfile.ZipFile(path, "r") as zf:
        return [
            ArchiveEntry(
                name=info.filename,
                size=info.file_size,
                compressed_size=info.compress_size,
                mtime=_zip_mtime(info.date_time),
                comment=info.comment.decode("utf-8", errors="replace"),
                is_dir=info.is_dir(),
            )
            for info in zf.infolist()
        ]


def _read_tar_entries(path: str) -> list[ArchiveEntry]:
    # tar compresses the stream as a whole, so members carry no compressed size
    with tarfile.open(path, "r:*") as tf:
        return [
            ArchiveEntry(
                name=member.name,
                size=member.size,
                compressed_size=member.size,
                mtime=float(member.mtime),
                is_dir=member.isdir(),
            )
            for member in tf.getmembers()
        ]


def read_entries(path: str) -> list[ArchiveEntry]:
    """List the entries of the archive at ``path``.

    Raises:
        ArchiveReadError: If the archive format is not supported or the
            archive cannot be read.
    """
    kind = archive_format(path)
    if kind is None:
        raise ArchiveReadError(f"Unsupported archive format: {path}")

    try:
        if kind == "zip":
            return _read_zip_entries(path)
        return _read_tar_entries(path)
    except (zipfile.BadZipFile, tarfile.TarError, EOFError, OSError) as exc:
        raise ArchiveReadError(f"Cannot read archive '{path}': {exc}") from exc


# ---------- Index ----------


def build_index(entries: Iterable[ArchiveEntry]) -> ArchiveDir:
    """Fold a flat entry list into a nested ``ArchiveDir`` tree.

    Raises:
        ArchiveReadError: If one path is used both as a file and as a directory.
    """
    root = ArchiveDir()
    for entry in entries:
        parts = split_entry_path(entry.name)
        if not parts:
            continue

        level = root
        for part in parts[:-1]:
            child = level.get(part)
            if child is None:
                child = level[part] = ArchiveDir()
            elif isinstance(child, ArchiveEntry):
                raise ArchiveReadError(
                    f"Archive entry '{child.name}' is both a file and a directory"
                )
            level = child

        last = parts[-1]
        existing = level.get(last)
        if entry.is_dir:
            if existing is None:
                existing = level[last] = ArchiveDir()
            elif isinstance(existing, ArchiveEntry):
                raise ArchiveReadError(
                    f"Archive entry '{entry.name}' is both a file and a directory"
                )
            existing.entry = entry
        else:
            if isinstance(existing, ArchiveDir):
                raise ArchiveReadError(
                    f"Archive entry '{entry.name}' is both a file and a directory"
                )
            # duplicate names: the later entry wins, as when extracting
            level[last] = entry
    return root


def flatten_index(tree: ArchiveDir, prefix: str = "") -> list[str]:
    """Return the slash-joined path of every real entry in ``tree``."""
    paths = []
    for name, child in tree.items():
        path = f"{prefix}{name}"
        if isinstance(child, ArchiveEntry):
            paths.append(path)
            continue
        if child.entry is not None:
            paths.append(path)
        paths.extend(flatten_index(child, prefix=f"{path}/"))
    return paths


class ArchiveIndex:
    """Lazily built index of one archive, shared by all nodes inside it."""

    def __init__(self, archive_path, reader: EntryReader = read_entries):
        self.archive_path = str(archive_path)
        self._reader = reader
        self._tree: ArchiveDir | None = None

    @property
    def tree(self) -> ArchiveDir:
        if self._tree is None:
            LOG.debug("Reading archive index: %s", self.archive_path)
            entries = self._reader(self.archive_path)
            self._tree = build_index(entries)
            LOG.debug("Indexed %d entries from %s", len(entries), self.archive_path)
        return self._tree

    @property
    def name(self) -> str:
        return Path(self.archive_path).name

    def resolve(self, entry_path: str) -> IndexNode:
        """Descend ``entry_path`` into the index.

        Raises:
            PathNotFoundError: If any component of ``entry_path`` is absent.
        """
        node: IndexNode = self.tree
        for part in split_entry_path(entry_path):
            if not isinstance(node, ArchiveDir) or part not in node:
                raise PathNotFoundError(self.archive_path, entry_path)
            node = node[part]
        return node
