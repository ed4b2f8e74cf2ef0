"""Fetch, store and broadcast cycles, plus lock and unlock requests."""

from __future__ import annotations

import asyncio
import functools
import logging
from enum import Enum
from typing import Awaitable, Callable

from .authority import LockAuthorityClient
from .errors import (
    AuthorityUnavailableError,
    LockConflictError,
    LockerError,
    NotRedirectedError,
    PathDomainError,
    ReferenceMissingError,
)
from .models import LockSnapshot, LockTarget, MutationOutcome, OutcomeStatus
from .paths import display_name
from .references import resolve_lock_target
from .store import LockStateStore
from .surfaces import Surface
from .terminal import CommandEcho

logger = logging.getLogger(__name__)


class ControllerState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    RESOLVING = "resolving"
    MUTATING = "mutating"
    ERROR = "error"


_OUTCOME_STATUS = (
    (NotRedirectedError, OutcomeStatus.NOT_REDIRECTED),
    (ReferenceMissingError, OutcomeStatus.REFERENCE_MISSING),
    (LockConflictError, OutcomeStatus.REJECTED),
    (PathDomainError, OutcomeStatus.INVALID_PATH),
    (AuthorityUnavailableError, OutcomeStatus.UNAVAILABLE),
)


def _status_for(exc: LockerError) -> OutcomeStatus:
    for error_type, status in _OUTCOME_STATUS:
        if isinstance(exc, error_type):
            return status
    return OutcomeStatus.UNAVAILABLE


class FetchRegistry:
    """In-flight lock list fetches, at most one running per repository root.

    A ``fresh`` join never settles for a fetch that was already running when
    it was requested. It queues one follow-up fetch behind the running one,
    and later fresh joins share that follow-up.
    """

    def __init__(self) -> None:
        self._inflight: dict[str, asyncio.Future[LockSnapshot]] = {}
        self._queued: dict[str, asyncio.Future[LockSnapshot]] = {}

    def __contains__(self, root: str) -> bool:
        return root in self._inflight or root in self._queued

    async def join(
        self, root: str, start: Callable[[], Awaitable[LockSnapshot]], *, fresh: bool = False
    ) -> LockSnapshot:
        """Await the fetch running for ``root``, starting one if none is."""

        running = self._inflight.get(root)
        if running is None:
            task = asyncio.ensure_future(start())
            self._inflight[root] = task
            task.add_done_callback(functools.partial(self._finished, root))
        elif not fresh:
            task = running
        else:
            task = self._queued.get(root)
            if task is None:
                task = asyncio.ensure_future(self._follow(root, running, start))
                self._queued[root] = task
                task.add_done_callback(functools.partial(self._finished, root))
        # One caller giving up must not cancel the fetch the others wait on.
        return await asyncio.shield(task)

    async def _follow(
        self, root: str, previous: asyncio.Future[LockSnapshot], start: Callable[[], Awaitable[LockSnapshot]]
    ) -> LockSnapshot:
        await asyncio.wait({previous})
        this = asyncio.current_task()
        if self._queued.get(root) is this:
            del self._queued[root]
        if root not in self._inflight:
            self._inflight[root] = this
        return await start()

    def _finished(self, root: str, task: asyncio.Future[LockSnapshot]) -> None:
        for table in (self._inflight, self._queued):
            if table.get(root) is task:
                del table[root]


class ReconciliationController:
    """State machine for one presentation session over a shared lock store.

    Every operation names the repository root it applies to and, optionally,
    the surface that asked for it. Failures are reported to that surface only;
    successful fetches reach every surface through the store.
    """

    def __init__(
        self,
        client: LockAuthorityClient,
        store: LockStateStore,
        *,
        layout_extension: str = ".al",
        fetches: FetchRegistry | None = None,
        echo: CommandEcho | None = None,
    ) -> None:
        self.client = client
        self.store = store
        self.layout_extension = layout_extension
        self.fetches = fetches if fetches is not None else FetchRegistry()
        self.echo = echo if echo is not None else CommandEcho()
        self.state = ControllerState.IDLE

    async def refresh(
        self, root: str, surface: Surface | None = None, *, fresh: bool = False
    ) -> LockSnapshot | None:
        """Fetch the lock list for ``root`` and publish it to the store.

        Returns the stored snapshot, or None when the fetch failed. A failed
        fetch leaves the previous snapshot in place. With ``fresh`` the result
        comes from a fetch started after this call, never an earlier one.
        """

        self.state = ControllerState.FETCHING
        try:
            snapshot = await self.fetches.join(root, lambda: self._fetch(root), fresh=fresh)
        except LockerError as exc:
            self.state = ControllerState.ERROR
            logger.warning("Refreshing locks for %s failed: %s", root, exc)
            if surface is not None:
                surface.error(exc.report())
            return None

        self.state = ControllerState.IDLE
        return snapshot

    async def _fetch(self, root: str) -> LockSnapshot:
        await self.client.verify_authority_available(root)
        snapshot = await self.client.list_locks(root)
        return self.store.replace(snapshot)

    async def request_lock(self, root: str, file_path: str, surface: Surface | None = None) -> MutationOutcome:
        """Lock ``file_path``, or the layout file it references."""

        self.state = ControllerState.RESOLVING
        try:
            target = await resolve_lock_target(root, file_path, self.layout_extension)
            await self.client.verify_authority_available(root)
        except LockerError as exc:
            return self._abort("lock", display_name(file_path), exc, surface)

        return await self._mutate(
            root,
            "lock",
            target.relative,
            target.relative,
            self._success_message("Locked", target),
            lambda: self.client.acquire(root, target.relative),
            surface,
        )

    async def request_unlock(self, root: str, lock_id: str, surface: Surface | None = None) -> MutationOutcome:
        """Release the lock identified by ``lock_id``."""

        self.state = ControllerState.MUTATING
        try:
            await self.client.verify_authority_available(root)
        except LockerError as exc:
            return self._abort("unlock", lock_id, exc, surface)

        return await self._mutate(
            root,
            "unlock",
            f"--id={lock_id}",
            lock_id,
            f"Successfully unlocked file (ID: {lock_id}).",
            lambda: self.client.release(root, lock_id),
            surface,
        )

    async def request_unlock_path(
        self, root: str, file_path: str, surface: Surface | None = None
    ) -> MutationOutcome:
        """Release the lock on ``file_path``, or on the layout file it references."""

        self.state = ControllerState.RESOLVING
        try:
            target = await resolve_lock_target(root, file_path, self.layout_extension)
            await self.client.verify_authority_available(root)
        except LockerError as exc:
            return self._abort("unlock", display_name(file_path), exc, surface)

        return await self._mutate(
            root,
            "unlock",
            target.relative,
            target.relative,
            self._success_message("Unlocked", target),
            lambda: self.client.release_path(root, target.relative),
            surface,
        )

    @staticmethod
    def _success_message(verb: str, target: LockTarget) -> str:
        if target.reference is not None:
            return f"{verb} {target.relative} (layout of {display_name(target.reference.source)})."
        return f"{verb} {target.relative}."

    async def _mutate(
        self,
        root: str,
        action: str,
        argument: str,
        subject: str,
        success: str,
        operation: Callable[[], Awaitable[None]],
        surface: Surface | None,
    ) -> MutationOutcome:
        self.state = ControllerState.MUTATING
        command = self.client.command_line(action, argument)
        self.echo.echo(root, command)
        if surface is not None:
            surface.notify("info", f"Attempting to {action} {subject} with Git LFS... ({command})")

        try:
            await operation()
        except LockerError as exc:
            logger.warning("git lfs %s %s failed: %s", action, argument, exc)
            outcome = MutationOutcome(action, _status_for(exc), subject, exc.report(), command)
        else:
            outcome = MutationOutcome(action, OutcomeStatus.SUCCEEDED, subject, success, command)

        # The authority may have changed even when the mutation failed.
        await self.refresh(root, surface, fresh=True)

        if surface is not None:
            surface.notify("ok" if outcome.ok else "error", outcome.message)
        return outcome

    def _abort(self, action: str, subject: str, exc: LockerError, surface: Surface | None) -> MutationOutcome:
        self.state = ControllerState.ERROR
        logger.warning("%s of %s aborted: %s", action.capitalize(), subject, exc)
        outcome = MutationOutcome(action, _status_for(exc), subject, exc.report())
        if surface is not None:
            surface.notify("error", outcome.message)
        return outcome
