"""Process-wide cache of the most recently fetched lock snapshot."""

from __future__ import annotations

import dataclasses
import logging
from typing import Callable

from .models import LockSnapshot

logger = logging.getLogger(__name__)

Observer = Callable[[LockSnapshot], None]


class LockStateStore:
    """Own the current snapshot and fan replacements out to observers."""

    def __init__(self) -> None:
        self._snapshot = LockSnapshot.empty()
        self._observers: list[Observer] = []

    @property
    def version(self) -> int:
        return self._snapshot.version

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def current(self) -> LockSnapshot:
        return self._snapshot

    def replace(self, snapshot: LockSnapshot) -> LockSnapshot:
        """Swap in ``snapshot`` under the next version and notify observers."""

        stored = dataclasses.replace(snapshot, version=self._snapshot.version + 1)
        self._snapshot = stored
        logger.debug("Lock snapshot v%d holds %d lock(s)", stored.version, len(stored))

        for observer in list(self._observers):
            try:
                observer(stored)
            except Exception:
                logger.exception("Lock observer %r failed on snapshot v%d", observer, stored.version)
        return stored

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register ``observer`` and return a callable that removes it again."""

        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe
