"""Data models used by lfslocker."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Iterator, Sequence

from .errors import PathDomainError


@dataclass(frozen=True)
class LockRecord:
    """One active lock as reported by the lock authority."""

    id: str
    path: str
    owner_name: str
    locked_at: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class LockSnapshot:
    """The full set of locks known after one successful fetch."""

    records: tuple[LockRecord, ...] = ()
    version: int = 0
    root: str = ""
    fetched_at: datetime = field(default_factory=_utcnow, compare=False)

    @classmethod
    def empty(cls, root: str = "") -> "LockSnapshot":
        return cls(records=(), version=0, root=root)

    def __iter__(self) -> Iterator[LockRecord]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def find(self, lock_id: str) -> LockRecord | None:
        """Return the record holding ``lock_id`` if it is still active."""

        return next((r for r in self.records if r.id == lock_id), None)

    def by_path(self, path: str) -> LockRecord | None:
        return next((r for r in self.records if r.path == path), None)


@dataclass(frozen=True)
class WorkspaceContext:
    """Repository root a single request is anchored to."""

    root: str

    @classmethod
    def for_path(cls, folders: Sequence[str], path: str | None = None) -> "WorkspaceContext":
        """Pick the workspace folder owning ``path``, else the first folder."""

        if not folders:
            raise PathDomainError("Please open a folder or workspace.")

        if path:
            target = os.path.normcase(os.path.abspath(path))
            owners = []
            for folder in folders:
                candidate = os.path.normcase(os.path.abspath(folder))
                if target == candidate or target.startswith(candidate.rstrip(os.sep) + os.sep):
                    owners.append(folder)
            if owners:
                return cls(root=os.path.abspath(max(owners, key=len)))

        return cls(root=os.path.abspath(folders[0]))


@dataclass(frozen=True)
class IndirectReference:
    """A layout reference found inside a source file."""

    source: str
    value: str
    target: str


@dataclass(frozen=True)
class LockTarget:
    """The file a lock request actually applies to."""

    absolute: str
    relative: str
    reference: IndirectReference | None = None

    @property
    def redirected(self) -> bool:
        return self.reference is not None


class OutcomeStatus(str, Enum):
    SUCCEEDED = "succeeded"
    NOT_REDIRECTED = "not_redirected"
    REFERENCE_MISSING = "reference_missing"
    REJECTED = "rejected"
    UNAVAILABLE = "unavailable"
    INVALID_PATH = "invalid_path"


@dataclass(frozen=True)
class MutationOutcome:
    """Result of a lock or unlock request, as reported to the user."""

    action: str
    status: OutcomeStatus
    subject: str
    message: str
    command: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.SUCCEEDED
