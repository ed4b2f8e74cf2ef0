"""Tests for pure path conversions and layout reference parsing."""

import pytest

from lfslocker.errors import PathDomainError
from lfslocker.models import WorkspaceContext
from lfslocker.paths import (
    combine_paths,
    display_name,
    is_layout_source,
    resolve_indirect_reference,
    to_absolute,
    to_repo_relative,
)


class TestRepoRelative:
    def test_posix_path_inside_root(self):
        assert to_repo_relative("/work/repo", "/work/repo/assets/logo.psd") == "assets/logo.psd"

    def test_windows_separators_are_normalized(self):
        assert to_repo_relative("C:\\work\\repo", "C:\\work\\repo\\assets\\logo.psd") == "assets/logo.psd"

    def test_different_drives_raise(self):
        with pytest.raises(PathDomainError):
            to_repo_relative("C:\\work\\repo", "D:\\other\\file.txt")

    def test_relative_input_raises(self):
        with pytest.raises(PathDomainError):
            to_repo_relative("/work/repo", "assets/logo.psd")

    @pytest.mark.parametrize(
        "root, relative",
        [
            ("/work/repo", "assets/logo.psd"),
            ("/work/repo", "a/./b/../c.bin"),
            ("/work/repo/", "deep/nested/dir/file.txt"),
            ("C:\\work\\repo", "assets/logo.psd"),
            ("C:\\work\\repo", "assets\\sub\\logo.psd"),
        ],
    )
    def test_round_trip(self, root, relative):
        absolute = to_absolute(root, relative)
        assert to_absolute(root, to_repo_relative(root, absolute)) == absolute


class TestCombinePaths:
    def test_overlap_is_collapsed(self):
        assert combine_paths("/a/b/c", "b/c/d/x.txt") == "/a/b/c/d/x.txt"

    def test_no_overlap_concatenates(self):
        assert combine_paths("/a/b/c", "d/x.txt") == "/a/b/c/d/x.txt"

    def test_longest_overlap_wins(self):
        assert combine_paths("/a/c/c", "c/c/x.txt") == "/a/c/c/x.txt"

    def test_full_overlap_returns_base(self):
        assert combine_paths("/a/b/c", "b/c") == "/a/b/c"

    def test_leading_dot_segment_is_ignored(self):
        assert combine_paths("/repo", "./layouts/Invoice.docx") == "/repo/layouts/Invoice.docx"

    def test_windows_base(self):
        assert combine_paths("C:\\a\\b", "b\\d\\x.txt") == "C:\\a\\b\\d\\x.txt"


class TestIndirectReference:
    def test_layout_file(self):
        text = "report 1 X\n{\n    LayoutFile = 'forms/invoice.docx';\n}"
        assert resolve_indirect_reference(text) == "forms/invoice.docx"

    def test_alternate_key_case_insensitive(self):
        assert resolve_indirect_reference("RDLCLAYOUT='./x/report.rdl' ;") == "./x/report.rdl"

    def test_first_match_wins(self):
        text = "RDLCLayout = 'first.rdl';\nLayoutFile = 'second.docx';"
        assert resolve_indirect_reference(text) == "first.rdl"

    def test_no_key_returns_none(self):
        assert resolve_indirect_reference("codeunit 50100 Helper { }") is None

    def test_missing_semicolon_is_not_a_reference(self):
        assert resolve_indirect_reference("LayoutFile = 'forms/invoice.docx'") is None

    def test_similar_key_is_not_matched(self):
        assert resolve_indirect_reference("DefaultLayoutFile2 = 'x.docx';") is None


def test_is_layout_source():
    assert is_layout_source("/repo/src/Invoice.Report.AL", ".al")
    assert is_layout_source("src\\Invoice.al", "al")
    assert not is_layout_source("/repo/layouts/Invoice.docx", ".al")


def test_display_name():
    assert display_name("layouts/Invoice.docx") == "Invoice.docx"
    assert display_name("C:\\repo\\x.bin") == "x.bin"


class TestWorkspaceContext:
    def test_deepest_owning_folder_wins(self, tmp_path):
        outer = tmp_path / "outer"
        inner = outer / "inner"
        inner.mkdir(parents=True)
        ctx = WorkspaceContext.for_path([str(outer), str(inner)], str(inner / "file.txt"))
        assert ctx.root == str(inner)

    def test_falls_back_to_first_folder(self, tmp_path):
        ctx = WorkspaceContext.for_path([str(tmp_path / "a"), str(tmp_path / "b")], "/elsewhere/file.txt")
        assert ctx.root == str(tmp_path / "a")

    def test_no_folders_raises(self):
        with pytest.raises(PathDomainError):
            WorkspaceContext.for_path([])
