"""Shared pytest fixtures for lfslocker tests."""

import asyncio

import pytest

from lfslocker.app_factory import create_app
from lfslocker.authority import INSTALL_HINT
from lfslocker.config import AppConfig
from lfslocker.errors import AuthorityUnavailableError, LockConflictError
from lfslocker.models import LockRecord, LockSnapshot


class FakeAuthority:
    """In-memory stand-in for ``git lfs`` that records every call."""

    def __init__(self, owner="alice"):
        self.owner = owner
        self.locks = {}
        self.calls = []
        self.available = True
        self.list_error = None
        self.list_gate = None
        self.list_hold = None
        self._next_id = 1

    def count(self, verb):
        return sum(1 for call in self.calls if call[0] == verb)

    def seed(self, path, owner=None):
        record = LockRecord(
            id=str(self._next_id),
            path=path,
            owner_name=owner or self.owner,
            locked_at="2024-05-01T10:00:00Z",
        )
        self._next_id += 1
        self.locks[path] = record
        return record

    def command_line(self, verb, argument):
        if argument.startswith("--"):
            return f"git lfs {verb} {argument}"
        return f'git lfs {verb} "{argument}"'

    async def verify_authority_available(self, root):
        self.calls.append(("version", root))
        if not self.available:
            raise AuthorityUnavailableError(INSTALL_HINT)

    async def list_locks(self, root):
        self.calls.append(("list", root))
        if self.list_gate is not None:
            await self.list_gate.wait()
        if self.list_error is not None:
            raise self.list_error
        snapshot = LockSnapshot(records=tuple(self.locks.values()), root=root)
        if self.list_hold is not None:
            await self.list_hold.wait()
        return snapshot

    async def acquire(self, root, relative_path):
        self.calls.append(("lock", relative_path))
        await asyncio.sleep(0)
        existing = self.locks.get(relative_path)
        if existing is not None:
            raise LockConflictError(f"Lock exists: {relative_path} locked by {existing.owner_name}")
        self.seed(relative_path)

    async def release(self, root, lock_id):
        self.calls.append(("unlock", lock_id))
        await asyncio.sleep(0)
        for path, record in list(self.locks.items()):
            if record.id == lock_id:
                del self.locks[path]
                return
        raise LockConflictError(f"Unable to get lock id: {lock_id}")

    async def release_path(self, root, relative_path):
        self.calls.append(("unlock", relative_path))
        await asyncio.sleep(0)
        if self.locks.pop(relative_path, None) is None:
            raise LockConflictError(f"{relative_path} is not locked")


@pytest.fixture
def fake_authority():
    return FakeAuthority()


@pytest.fixture
def repo(tmp_path):
    """A working tree with plain files and layout sources."""

    root = tmp_path / "repo"
    (root / "src").mkdir(parents=True)
    (root / "layouts").mkdir()
    (root / "assets").mkdir()
    (root / ".git").mkdir()

    (root / "layouts" / "Invoice.docx").write_bytes(b"docx")
    (root / "assets" / "logo.psd").write_bytes(b"psd")
    (root / "src" / "Invoice.Report.al").write_text(
        "report 50100 Invoice\n{\n    DefaultLayout = Word;\n    LayoutFile = 'layouts/Invoice.docx';\n}\n"
    )
    (root / "src" / "Legacy.Report.al").write_text(
        "report 50101 Legacy\n{\n    rdlclayout = './layouts/Invoice.docx';\n}\n"
    )
    (root / "src" / "Broken.Report.al").write_text(
        "report 50102 Broken\n{\n    LayoutFile = 'layouts/Missing.docx';\n}\n"
    )
    (root / "src" / "Codeunit.al").write_text("codeunit 50100 Helper\n{\n}\n")
    (root / ".git" / "Ignored.al").write_text("LayoutFile = 'layouts/Invoice.docx';")
    return root


@pytest.fixture
def app_config(repo):
    return AppConfig(
        secret_key="test-secret",
        workspace_folders=(str(repo),),
        git_executable="git",
        layout_extension=".al",
        session_ttl_seconds=3600,
        refresh_interval_seconds=0,
        command_timeout_seconds=5,
    )


@pytest.fixture
def app(app_config, fake_authority):
    app = create_app(app_config, client=fake_authority)
    app.config["TESTING"] = True
    yield app
    app.extensions["session_manager"].close_all()
    app.extensions["lock_runtime"].stop()


@pytest.fixture
def client(app):
    return app.test_client()
