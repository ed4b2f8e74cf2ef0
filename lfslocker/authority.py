"""Git LFS lock authority client."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any

from .errors import AuthorityUnavailableError, LockConflictError, ParseError
from .models import LockRecord, LockSnapshot

logger = logging.getLogger(__name__)

INSTALL_HINT = (
    "Git LFS does not seem to be installed or configured for this repository. "
    'Please run "git lfs install" in the repository root.'
)


@dataclass(frozen=True)
class CommandResult:
    """Exit status and decoded output of one authority invocation."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def message(self) -> str:
        return self.stderr.strip() or self.stdout.strip() or f"exit status {self.returncode}"


def parse_locks(payload: str, root: str = "") -> LockSnapshot:
    """Normalise ``git lfs locks --json`` output into a snapshot.

    Accepts empty output, a bare JSON array, or an object wrapping the array
    under ``locks``. Anything else raises ParseError with the raw payload.
    """

    if not payload or not payload.strip():
        return LockSnapshot.empty(root)

    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Lock list is not valid JSON: {exc}", payload) from exc

    if isinstance(parsed, list):
        entries = parsed
    elif isinstance(parsed, dict):
        entries = parsed.get("locks", [])
        if entries is None:
            entries = []
    else:
        raise ParseError("Lock list has an unexpected shape", payload)

    if not isinstance(entries, list):
        raise ParseError("Lock list has an unexpected shape", payload)

    records = tuple(_parse_record(entry, payload) for entry in entries)

    ids = [r.id for r in records]
    if len(set(ids)) != len(ids):
        raise ParseError("Lock list reports the same lock id twice", payload)
    paths = [r.path for r in records]
    if len(set(paths)) != len(paths):
        raise ParseError("Lock list reports the same path twice", payload)

    return LockSnapshot(records=records, root=root)


def _parse_record(entry: Any, payload: str) -> LockRecord:
    if not isinstance(entry, dict):
        raise ParseError("Lock entry is not an object", payload)

    lock_id = entry.get("id")
    path = entry.get("path")
    if lock_id in (None, "") or not isinstance(path, str) or not path:
        raise ParseError("Lock entry is missing its id or path", payload)

    owner = entry.get("owner") or {}
    owner_name = owner.get("name", "") if isinstance(owner, dict) else str(owner)

    return LockRecord(
        id=str(lock_id),
        path=path.replace("\\", "/"),
        owner_name=str(owner_name or ""),
        locked_at=str(entry.get("locked_at") or ""),
    )


class LockAuthorityClient:
    """Run ``git lfs`` lock verbs for a repository root."""

    def __init__(self, git: str = "git", timeout: float = 30.0) -> None:
        self.git = git
        self.timeout = timeout

    def command_line(self, verb: str, argument: str) -> str:
        """Return the shell form of a mutating command for display."""

        if argument.startswith("--"):
            return f"{self.git} lfs {verb} {argument}"
        return f'{self.git} lfs {verb} "{argument}"'

    async def verify_authority_available(self, root: str) -> None:
        result = await self._run(root, "version")
        if result.returncode != 0:
            raise AuthorityUnavailableError(INSTALL_HINT)

    async def list_locks(self, root: str) -> LockSnapshot:
        result = await self._run(root, "locks", "--json")
        if result.returncode != 0:
            raise AuthorityUnavailableError(f"Failed to fetch LFS locks: {result.message}")
        return parse_locks(result.stdout, root)

    async def acquire(self, root: str, relative_path: str) -> None:
        await self._mutate(root, "lock", relative_path)

    async def release(self, root: str, lock_id: str) -> None:
        await self._mutate(root, "unlock", f"--id={lock_id}")

    async def release_path(self, root: str, relative_path: str) -> None:
        await self._mutate(root, "unlock", relative_path)

    async def _mutate(self, root: str, *args: str) -> None:
        result = await self._run(root, *args)
        if result.returncode != 0:
            raise LockConflictError(result.message)
        logger.info("git lfs %s succeeded in %s", " ".join(args), root)

    async def _run(self, root: str, *args: str) -> CommandResult:
        logger.debug("Running %s lfs %s in %s", self.git, " ".join(args), root)
        try:
            process = await asyncio.create_subprocess_exec(
                self.git,
                "lfs",
                *args,
                cwd=root,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, NotADirectoryError, PermissionError) as exc:
            raise AuthorityUnavailableError(f"{INSTALL_HINT} ({exc})") from exc

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            raise AuthorityUnavailableError(
                f"git lfs {args[0]} did not answer within {self.timeout:g} seconds"
            ) from exc

        return CommandResult(
            returncode=process.returncode,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )
