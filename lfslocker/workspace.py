"""Session-scoped lock panels for concurrent users."""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from threading import RLock
from typing import Callable
from uuid import uuid4

from flask import session

from .controller import ReconciliationController
from .errors import PathDomainError
from .models import LockSnapshot, MutationOutcome
from .paths import combine_paths, to_repo_relative
from .references import find_referencing_sources
from .runtime import LockRuntime
from .surfaces import LockPanel, LockTree


@dataclass
class LockSession:
    """One open lock view: a controller plus the panel and tree it drives."""

    controller: ReconciliationController
    panel: LockPanel = field(default_factory=LockPanel)
    tree: LockTree = field(default_factory=LockTree)
    last_access: datetime = field(default_factory=datetime.utcnow)
    _unsubscribers: list[Callable[[], None]] = field(default_factory=list, repr=False)

    @classmethod
    def open(cls, controller: ReconciliationController) -> "LockSession":
        """Create a session whose surfaces follow the shared store."""

        lock_session = cls(controller=controller)
        store = controller.store
        for surface in (lock_session.panel, lock_session.tree):
            surface.update(store.current())
            lock_session._unsubscribers.append(store.subscribe(surface.update))
        return lock_session

    @property
    def closed(self) -> bool:
        return self.panel.closed

    def touch(self) -> None:
        """Refresh last-access timestamp for cleanup bookkeeping."""

        self.last_access = datetime.utcnow()

    def dispose(self) -> None:
        """Stop following the store; late results for this session are dropped."""

        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        self.panel.close()
        self.tree.close()

    async def show(self, root: str) -> LockSnapshot | None:
        return await self.controller.refresh(root, self.panel)

    async def refresh(self, root: str) -> LockSnapshot | None:
        return await self.controller.refresh(root, self.panel)

    async def lock(self, root: str, file_path: str) -> MutationOutcome:
        return await self.controller.request_lock(root, file_path, self.panel)

    async def unlock(self, root: str, lock_id: str) -> MutationOutcome:
        return await self.controller.request_unlock(root, lock_id, self.panel)

    async def unlock_path(self, root: str, file_path: str) -> MutationOutcome:
        return await self.controller.request_unlock_path(root, file_path, self.panel)

    async def reveal(self, root: str, path: str) -> dict[str, object]:
        """Resolve a rendered repository path to its location on disk."""

        absolute = combine_paths(root, path)
        relative = to_repo_relative(root, absolute)
        if relative == ".." or relative.startswith("../"):
            raise PathDomainError(f"{path!r} is outside the repository")
        exists = await asyncio.to_thread(os.path.exists, absolute)
        return {"path": path, "absolute_path": absolute, "exists": exists}

    async def references(self, root: str, path: str) -> list[str]:
        """List the layout sources that point at the repository path ``path``."""

        if not path:
            raise PathDomainError("A repository path is required")
        return await find_referencing_sources(root, path, self.controller.layout_extension)


class SessionManager:
    """Store and retrieve per-browser-session lock views."""

    def __init__(
        self,
        runtime: LockRuntime,
        factory: Callable[[], ReconciliationController],
        ttl_seconds: int,
    ) -> None:
        self._runtime = runtime
        self._factory = factory
        self._ttl = timedelta(seconds=ttl_seconds)
        self._state: dict[str, LockSession] = {}
        self._lock = RLock()

    def __len__(self) -> int:
        return len(self._state)

    def current(self) -> LockSession:
        """Return the lock view for the current session, opening one if needed."""

        with self._lock:
            self._purge_expired()
            sid = session.get("sid")
            if not sid:
                sid = uuid4().hex
                session["sid"] = sid

            lock_session = self._state.get(sid)
            if lock_session is None:
                lock_session = self._runtime.call(LockSession.open, self._factory())
                self._state[sid] = lock_session

            lock_session.touch()
            return lock_session

    def close(self) -> bool:
        """Tear down the current session's lock view, if it has one."""

        with self._lock:
            sid = session.pop("sid", None)
            lock_session = self._state.pop(sid, None) if sid else None
            if lock_session is None:
                return False
            self._runtime.call(lock_session.dispose)
            return True

    def close_all(self) -> None:
        with self._lock:
            for lock_session in self._state.values():
                self._runtime.call(lock_session.dispose)
            self._state.clear()

    def _purge_expired(self) -> None:
        cutoff = datetime.utcnow() - self._ttl
        stale = [sid for sid, ls in self._state.items() if ls.last_access < cutoff]
        for sid in stale:
            self._runtime.call(self._state.pop(sid).dispose)
