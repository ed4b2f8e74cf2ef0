"""Side channel that shows the shell command equivalent to each mutation."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EchoedCommand:
    root: str
    command: str
    at: datetime


class CommandEcho:
    """Keep the most recent echoed command lines for display."""

    def __init__(self, limit: int = 50) -> None:
        self._lines: deque[EchoedCommand] = deque(maxlen=limit)

    def echo(self, root: str, command: str) -> None:
        logger.info("[%s] $ %s", root, command)
        self._lines.append(EchoedCommand(root=root, command=command, at=datetime.now(timezone.utc)))

    def recent(self) -> list[EchoedCommand]:
        return list(self._lines)
