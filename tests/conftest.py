"""Shared pytest fixtures for treelint tests."""

import tarfile
import zipfile
from pathlib import Path

import pytest


def make_zip(path: Path, files: dict, dirs=()) -> Path:
    """Write a zip archive with the given {name: content} files and directory entries."""
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name in dirs:
            zf.writestr(zipfile.ZipInfo(name.rstrip("/") + "/"), "")
        for name, content in files.items():
            zf.writestr(name, content)
    return path


def make_tar(path: Path, files: dict) -> Path:
    """Write a gzipped tar archive with the given {name: content} files."""
    source = path.parent / (path.name + ".src")
    source.mkdir()
    with tarfile.open(path, "w:gz") as tf:
        for name, content in files.items():
            member = source / name
            member.parent.mkdir(parents=True, exist_ok=True)
            member.write_text(content)
            tf.add(member, arcname=name)
    return path


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    """A directory named 'test' with a few files, a subdirectory and two zips."""
    root = tmp_path / "test"
    root.mkdir()
    (root / "a.zip").write_bytes(b"")
    (root / "notes.txt").write_text("hello world")
    (root / "sub").mkdir()
    (root / "sub" / "y.txt").write_text("y" * 2048)
    make_zip(
        root / "b.zip",
        {"readme.txt": "read me", "folder/a.txt": "a", "folder/deep/c.bin": "c" * 10},
    )
    return root


@pytest.fixture
def zip_factory():
    return make_zip


@pytest.fixture
def tar_factory():
    return make_tar
