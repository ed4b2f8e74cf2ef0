"""Tests for the lock panel and lock tree adapters."""

from lfslocker.models import LockRecord, LockSnapshot
from lfslocker.surfaces import LockPanel, LockTree


def _snapshot(root="/work/repo"):
    return LockSnapshot(
        records=(
            LockRecord(id="1", path="repo/layouts/Invoice.docx", owner_name="alice", locked_at="t1"),
            LockRecord(id="2", path="assets/logo.psd", owner_name="bob", locked_at="t2"),
            LockRecord(id="3", path="README.bin", owner_name="carol", locked_at="t3"),
        ),
        version=4,
        root=root,
    )


def test_panel_rows_resolve_absolute_paths():
    panel = LockPanel()
    panel.update(_snapshot())

    rows = panel.rows()

    assert [row.id for row in rows] == ["1", "2", "3"]
    assert rows[0].absolute_path == "/work/repo/layouts/Invoice.docx"
    assert rows[1].absolute_path == "/work/repo/assets/logo.psd"


def test_update_clears_previous_error():
    panel = LockPanel()
    panel.error("Failed to fetch LFS locks")
    panel.update(_snapshot())
    assert panel.last_error is None


def test_notices_are_drained_once():
    panel = LockPanel()
    panel.notify("ok", "Locked assets/logo.psd.")
    assert panel.pop_notices() == [("ok", "Locked assets/logo.psd.")]
    assert panel.pop_notices() == []


def test_closed_panel_ignores_events():
    panel = LockPanel()
    panel.close()
    panel.update(_snapshot())
    panel.error("boom")
    panel.notify("ok", "late")
    assert len(panel.snapshot) == 0
    assert panel.last_error is None
    assert panel.pop_notices() == []


def test_tree_groups_by_directory():
    tree = LockTree()
    tree.update(_snapshot())

    nodes = tree.nodes()

    assert [n["name"] for n in nodes] == ["assets", "repo", "README.bin"]
    assert nodes[0]["children"] == [{"name": "logo.psd", "path": "assets/logo.psd", "lock_id": "2", "owner": "bob"}]
    layouts = nodes[1]["children"][0]
    assert layouts["path"] == "repo/layouts"
    assert layouts["children"][0]["lock_id"] == "1"
    assert nodes[2]["lock_id"] == "3"
