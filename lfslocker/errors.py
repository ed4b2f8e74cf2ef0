"""Error taxonomy for lock reconciliation and path resolution."""

from __future__ import annotations


class LockerError(Exception):
    """Base class for every failure the controller turns into a user report."""

    def report(self) -> str:
        """Return the text shown to the user for this failure."""

        return str(self)


class AuthorityUnavailableError(LockerError):
    """The lock authority is missing, unconfigured, or did not answer."""


class ParseError(LockerError):
    """The lock authority produced output of an unexpected shape."""

    def __init__(self, message: str, payload: str) -> None:
        super().__init__(message)
        self.payload = payload

    def report(self) -> str:
        return f"{self}\nRaw output:\n{self.payload}"


class LockConflictError(LockerError):
    """The lock authority rejected a lock or unlock request."""


class PathDomainError(LockerError):
    """A path could not be resolved within the repository."""


class NotRedirectedError(LockerError):
    """A layout source file carries no layout reference."""


class ReferenceMissingError(LockerError):
    """A layout reference names a file that does not exist on disk."""

    def __init__(self, message: str, reference: str) -> None:
        super().__init__(message)
        self.reference = reference
