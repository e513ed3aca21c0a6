"""Tests for the rule matching engine."""

import logging
import re
import zipfile

import pytest

from treelint.archive import ArchiveEntry, ArchiveIndex
from treelint.engine import Diagnostic, MatchReport, Tester, check_tree
from treelint.errors import SpecError
from treelint.nodes import ArchiveNode, LiveNode
from treelint.rules import DirRule, DirTest, FileRule, FileTest

ZIP_WITH_README = {
    "type": "file",
    "rules": {
        "size": "1M",
        "subtype": "compressed",
        "content": {"has": {"readme.txt": "file"}},
    },
}


# ---------- Scenarios ----------


def test_dirname_and_bare_child(tree):
    """A directory named 'test' containing a zero-byte a.zip matches."""
    tester = Tester()
    result = tester.test_dir(
        {"type": "dir", "rules": {"dirname": "test", "has": {"a.zip": "file"}}}, tree
    )

    assert result is True
    rules = tester.diagnostics.children["rules"]
    assert rules.messages["dirname"] == "MATCH: test"
    assert rules.messages["has"] == ['FOUND: "a.zip"']


def test_zip_containing_readme(tree):
    tester = Tester()
    assert tester.test_dir(ZIP_WITH_README, tree / "b.zip") is True

    rules = tester.diagnostics.children["rules"]
    assert rules.messages["size"] == "MATCH: 1M"
    assert rules.messages["subtype"] == "MATCH: compressed"
    assert rules.children["content"].messages["has"] == ['FOUND: "readme.txt"']


def test_zip_missing_readme(tmp_path, zip_factory):
    archive = zip_factory(tmp_path / "c.zip", {"other.txt": "x"})

    tester = Tester()
    assert tester.test_dir(ZIP_WITH_README, archive) is False

    rules = tester.diagnostics.children["rules"]
    assert rules.children["content"].messages["has"] == ['MISSING: "readme.txt"']
    assert rules.messages["subtype"] == "ILLEGAL: compressed"


def test_missing_nested_directory(tree):
    report = check_tree(
        {
            "type": "dir",
            "rules": {"has": {"x": {"type": "dir", "rules": {"has": {"y.txt": "file"}}}}},
        },
        tree,
    )

    assert report.ok is False
    assert report.diagnostics.children["rules"].messages["has"] == ['MISSING: "x"']


def test_nested_content_in_archive_subdirectory(tree):
    test = {
        "type": "dir",
        "rules": {
            "has": {
                "b.zip": {
                    "type": "file",
                    "rules": {
                        "subtype": "compressed",
                        "content": {
                            "has": {
                                "folder": {
                                    "type": "dir",
                                    "rules": {"has": {"a.txt": "file", "deep": "dir"}},
                                }
                            }
                        },
                    },
                },
                "a.zip": "file",
            }
        },
    }

    report = check_tree(test, tree)

    assert report.ok is True
    folder = (
        report.diagnostics.children["rules"]
        .children["has:b.zip"]
        .children["rules"]
        .children["content"]
        .children["has:folder"]
    )
    assert folder.messages["type"] == "MATCH: dir"
    assert folder.children["rules"].messages["has"] == [
        'FOUND: "a.txt"',
        'FOUND: "deep"',
    ]


# ---------- Type checks ----------


def test_type_mismatch(tree):
    tester = Tester()
    assert tester.test_dir({"type": "file"}, tree) is False
    assert tester.diagnostics.messages["type"] == "ILLEGAL: file"


def test_type_without_rules(tree):
    assert check_tree({"type": "dir"}, tree).ok is True
    assert check_tree(FileTest(), tree / "notes.txt").ok is True


def test_archive_entries_are_files_or_dirs(tree):
    tester = Tester()
    node = ArchiveNode(tree / "b.zip", "folder")
    assert tester.match_rule(DirTest(), node, Diagnostic()) is True
    assert tester.match_rule(FileTest(), node, Diagnostic()) is False


def test_nested_child_with_wrong_type_is_illegal(tree):
    tester = Tester()
    result = tester.test_dir(
        {"type": "dir", "rules": {"has": {"sub": {"type": "file"}}}}, tree
    )

    assert result is False
    rules = tester.diagnostics.children["rules"]
    assert rules.messages["has"] == ['ILLEGAL: "sub"']
    assert rules.children["has:sub"].messages["type"] == "ILLEGAL: file"


def test_bare_tag_does_not_recheck_type(tree):
    # "sub" is a directory, but a bare tag only asserts existence
    assert check_tree({"type": "dir", "rules": {"has": {"sub": "file"}}}, tree).ok


# ---------- Field checks ----------


def test_dirname_mismatch_fails(tree):
    tester = Tester()
    assert tester.test_dir({"type": "dir", "rules": {"dirname": "prod"}}, tree) is False
    assert tester.diagnostics.children["rules"].messages["dirname"] == "ILLEGAL: prod"


def test_filename_mismatch_does_not_fail(tree):
    tester = Tester()
    rule = {"type": "file", "rules": {"filename": "other.txt", "size": "1K"}}

    assert tester.test_dir(rule, tree / "notes.txt") is True
    rules = tester.diagnostics.children["rules"]
    assert rules.messages["filename"] == "NOT_APPLICABLE: other.txt"
    # evaluation continued past the filename check
    assert rules.messages["size"] == "MATCH: 1K"


def test_filename_pattern(tree):
    tester = Tester()
    rule = FileTest(FileRule(filename=re.compile(r"notes\.\w+")))

    assert tester.test_dir(rule, tree / "notes.txt") is True
    assert tester.diagnostics.children["rules"].messages["filename"] == (
        r"MATCH: /notes\.\w+/"
    )


def test_size_mismatch_fails(tree):
    tester = Tester()
    assert tester.test_dir({"type": "file", "rules": {"size": "1K"}}, tree / "sub" / "y.txt") is False
    assert tester.diagnostics.children["rules"].messages["size"] == "ILLEGAL: 1K"


def test_bad_size_in_built_rule_is_reported_not_raised(tree):
    tester = Tester()
    rule = FileTest(FileRule(size="12 parsecs"))

    assert tester.test_dir(rule, tree / "notes.txt") is False
    assert tester.diagnostics.children["rules"].messages["size"].startswith("ERROR:")


def test_size_failure_stops_later_fields(tree):
    tester = Tester()
    rule = {"type": "file", "rules": {"size": 1, "subtype": "compressed"}}

    assert tester.test_dir(rule, tree / "b.zip") is False
    assert "subtype" not in tester.diagnostics.children["rules"].messages


def test_compressed_subtype_requires_archive_suffix(tree):
    tester = Tester()
    rule = {"type": "file", "rules": {"subtype": "compressed"}}

    assert tester.test_dir(rule, tree / "notes.txt") is False
    assert tester.diagnostics.children["rules"].messages["subtype"].startswith(
        "ILLEGAL: compressed"
    )


def test_compressed_without_content_does_not_read_archive(tree):
    # a.zip is empty and would not open as a zip
    assert check_tree(
        {"type": "file", "rules": {"subtype": "compressed"}}, tree / "a.zip"
    ).ok


@pytest.mark.parametrize("subtype", ["text", "binary"])
def test_text_and_binary_subtypes_impose_nothing(tree, subtype):
    assert check_tree({"type": "file", "rules": {"subtype": subtype}}, tree / "b.zip").ok


def test_unreadable_archive_fails_content_checks(tree, caplog):
    caplog.set_level(logging.WARNING, logger="treelint.engine")
    tester = Tester()

    result = tester.test_dir(
        {
            "type": "file",
            "rules": {"subtype": "compressed", "content": {"not": {"has": {"x": "file"}}}},
        },
        tree / "a.zip",
    )

    assert result is False
    assert tester.diagnostics.children["rules"].messages["subtype"].startswith("ERROR:")
    assert any("Cannot read archive" in r.getMessage() for r in caplog.records)


def test_tar_archive_content(tmp_path, tar_factory):
    archive = tar_factory(tmp_path / "docs.tar.gz", {"docs/index.md": "# hi"})
    rule = {
        "type": "file",
        "rules": {
            "subtype": "compressed",
            "content": {"has": {"docs": {"type": "dir", "rules": {"has": {"index.md": "file"}}}}},
        },
    }
    assert check_tree(rule, archive).ok


def test_nested_archive_is_not_descended(tree):
    index = ArchiveIndex(
        "outer.zip", reader=lambda _p: [ArchiveEntry("inner.zip", 10, 5, 0.0)]
    )
    node = ArchiveNode("outer.zip", "inner.zip", index=index)
    rule = FileRule(subtype="compressed", content=DirRule(has={"anything": "file"}))
    diag = Diagnostic()

    assert Tester().match_file_rules(rule, node, diag) is True
    assert diag.messages["content"] == "UNSUPPORTED: nested archive"


# ---------- has ----------


def test_has_records_every_entry(tree):
    tester = Tester()
    result = tester.test_dir(
        {"type": "dir", "rules": {"has": {"missing1": "file", "a.zip": "file", "missing2": "dir"}}},
        tree,
    )

    assert result is False
    assert tester.diagnostics.children["rules"].messages["has"] == [
        'MISSING: "missing1"',
        'FOUND: "a.zip"',
        'MISSING: "missing2"',
    ]


def test_has_failure_skips_combinators(tree):
    tester = Tester()
    rule = {"type": "dir", "rules": {"has": {"nope": "file"}, "or": [{"size": ">0"}]}}

    assert tester.test_dir(rule, tree) is False
    assert "or[0]" not in tester.diagnostics.children["rules"].children


def test_has_on_file_like_node_reports_missing():
    index = ArchiveIndex("x.zip", reader=lambda _p: [ArchiveEntry("f.txt", 1, 1, 0.0)])
    node = ArchiveNode("x.zip", "f.txt", index=index)
    diag = Diagnostic()

    assert Tester().match_dir_rules(DirRule(has={"a": "file"}), node, diag) is False
    assert diag.messages["has"] == ['MISSING: "a"']


# ---------- Combinators ----------


@pytest.fixture
def dir_node(tree):
    return LiveNode(tree)


def test_empty_and_succeeds(dir_node):
    assert Tester().match_dir_rules(DirRule(and_=[]), dir_node, Diagnostic()) is True


def test_empty_or_fails(dir_node):
    assert Tester().match_dir_rules(DirRule(or_=[]), dir_node, Diagnostic()) is False


def test_not_inverts(dir_node):
    tester = Tester()
    present = DirRule(has={"a.zip": "file"})
    absent = DirRule(has={"zzz": "file"})

    assert tester.match_dir_rules(DirRule(not_=present), dir_node, Diagnostic()) is False
    assert tester.match_dir_rules(DirRule(not_=absent), dir_node, Diagnostic()) is True


def test_and_or_with_diagnostics(dir_node):
    tester = Tester()
    diag = Diagnostic()
    rule = DirRule(
        or_=[DirRule(dirname="nope"), DirRule(and_=[DirRule(dirname="test"), DirRule(size=">=0")])]
    )

    assert tester.match_dir_rules(rule, dir_node, diag) is True
    assert diag.children["or[0]"].messages["dirname"] == "ILLEGAL: nope"
    assert diag.children["or[1]"].children["and[0]"].messages["dirname"] == "MATCH: test"


def test_or_short_circuits(dir_node):
    diag = Diagnostic()
    rule = DirRule(or_=[DirRule(dirname="test"), DirRule(dirname="other")])

    assert Tester().match_dir_rules(rule, dir_node, diag) is True
    assert "or[1]" not in diag.children


def test_combinator_result_is_returned_on_its_own(tree):
    # the direct size check passes; the verdict is the combinator's
    rule = FileRule(size="1M", not_=FileRule(size="1M"))
    assert Tester().match_file_rules(rule, LiveNode(tree / "notes.txt"), Diagnostic()) is False


def test_file_combinators(tree):
    rule = {
        "type": "file",
        "rules": {"or": [{"size": ">1K"}, {"subtype": "compressed"}]},
    }
    assert check_tree(rule, tree / "a.zip").ok is True
    assert check_tree(rule, tree / "notes.txt").ok is False


# ---------- Entry point ----------


def test_rule_tree_is_not_mutated_and_verdict_is_stable(tree):
    test = DirTest(DirRule(dirname="test", has={"sub": DirTest(DirRule(has={"y.txt": "file"}))}))
    before = repr(test)
    tester = Tester()

    first = tester.test_dir(test, tree)
    first_diag = tester.diagnostics.to_dict()
    second = tester.test_dir(test, tree)

    assert first is second is True
    assert tester.diagnostics.to_dict() == first_diag
    assert repr(test) == before
    assert tester.test_object is test


def test_malformed_mapping_raises(tree):
    with pytest.raises(SpecError):
        Tester().test_dir({"type": "dir", "rules": {"size": "huge"}}, tree)


def test_missing_root_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        Tester().test_dir({"type": "dir"}, tmp_path / "missing")


def test_match_report_truthiness():
    assert MatchReport(ok=True, diagnostics=Diagnostic())
    assert not MatchReport(ok=False, diagnostics=Diagnostic())


def test_diagnostic_failures_and_dict():
    diag = Diagnostic()
    diag.bind("type", "MATCH: dir")
    rules = diag.child("rules")
    rules.append("has", 'FOUND: "a"')
    rules.append("has", 'MISSING: "b"')
    rules.child("has:c").bind("size", "ILLEGAL: 1K")

    assert diag.failures() == ['rules.has: MISSING: "b"', "rules.has:c.size: ILLEGAL: 1K"]
    assert diag.to_dict() == {
        "type": "MATCH: dir",
        "rules": {
            "has": ['FOUND: "a"', 'MISSING: "b"'],
            "has:c": {"size": "ILLEGAL: 1K"},
        },
    }


def test_zip_with_zeroed_entry_date(tmp_path):
    archive = tmp_path / "z.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr(zipfile.ZipInfo("x.txt", date_time=(1980, 0, 0, 0, 0, 0)), "x")
    test = {
        "type": "file",
        "rules": {"subtype": "compressed", "content": {"has": {"x.txt": "file"}}},
    }

    tester = Tester()
    assert tester.test_dir(test, archive) is True
    assert tester.diagnostics.children["rules"].messages["subtype"] == "MATCH: compressed"


def test_tester_is_not_collected_as_a_test_class():
    assert Tester.__test__ is False
