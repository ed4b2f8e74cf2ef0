"""Presentation adapters fed by the lock store and the controller."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .models import LockSnapshot
from .paths import combine_paths


class Surface:
    """Receives ``update``/``error``/``notify`` events until it is closed."""

    def __init__(self) -> None:
        self.snapshot = LockSnapshot.empty()
        self.last_error: str | None = None
        self.closed = False

    def update(self, snapshot: LockSnapshot) -> None:
        if self.closed:
            return
        self.snapshot = snapshot
        self.last_error = None

    def error(self, message: str) -> None:
        if self.closed:
            return
        self.last_error = message

    def notify(self, category: str, message: str) -> None:
        pass

    def close(self) -> None:
        self.closed = True


@dataclass(frozen=True)
class LockRow:
    """One row of the lock panel."""

    id: str
    path: str
    absolute_path: str
    owner_name: str
    locked_at: str


class LockPanel(Surface):
    """Detail panel listing every lock with unlock and reveal actions."""

    def __init__(self) -> None:
        super().__init__()
        self._notices: list[tuple[str, str]] = []

    def notify(self, category: str, message: str) -> None:
        if self.closed:
            return
        self._notices.append((category, message))

    def pop_notices(self) -> list[tuple[str, str]]:
        notices, self._notices = self._notices, []
        return notices

    def rows(self) -> list[LockRow]:
        """Rows for the current snapshot, with paths resolved to disk locations."""

        snapshot = self.snapshot
        return [
            LockRow(
                id=record.id,
                path=record.path,
                absolute_path=combine_paths(snapshot.root, record.path) if snapshot.root else record.path,
                owner_name=record.owner_name,
                locked_at=record.locked_at,
            )
            for record in snapshot
        ]


class LockTree(Surface):
    """Passive tree grouping locked paths by directory."""

    def nodes(self) -> list[dict[str, Any]]:
        root: dict[str, Any] = {"dirs": {}, "files": []}
        for record in self.snapshot:
            *dirs, name = record.path.split("/")
            node = root
            for part in dirs:
                node = node["dirs"].setdefault(part, {"dirs": {}, "files": []})
            node["files"].append(
                {"name": name, "path": record.path, "lock_id": record.id, "owner": record.owner_name}
            )
        return _render(root, "")


def _render(node: dict[str, Any], prefix: str) -> list[dict[str, Any]]:
    children = []
    for name in sorted(node["dirs"]):
        path = f"{prefix}{name}"
        children.append({"name": name, "path": path, "children": _render(node["dirs"][name], path + "/")})
    children.extend(sorted(node["files"], key=lambda leaf: leaf["name"]))
    return children
