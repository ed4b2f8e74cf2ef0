"""Application configuration for lfslocker."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class AppConfig:
    """Runtime configuration values used by Flask and the lock engine."""

    secret_key: str
    workspace_folders: tuple[str, ...]
    git_executable: str
    layout_extension: str
    session_ttl_seconds: int
    refresh_interval_seconds: float
    command_timeout_seconds: float


def build_config() -> AppConfig:
    """Build configuration from environment variables with safe defaults."""

    raw_folders = os.environ.get("LFSLOCKER_WORKSPACES", "")
    folders = tuple(os.path.abspath(f) for f in raw_folders.split(os.pathsep) if f.strip())
    extension = os.environ.get("LFSLOCKER_LAYOUT_EXTENSION", ".al")
    if not extension.startswith("."):
        extension = "." + extension

    return AppConfig(
        secret_key=os.environ.get("LFSLOCKER_SECRET_KEY", "lfslocker-local-dev"),
        workspace_folders=folders or (os.getcwd(),),
        git_executable=os.environ.get("LFSLOCKER_GIT", "git"),
        layout_extension=extension,
        session_ttl_seconds=int(os.environ.get("LFSLOCKER_SESSION_TTL", 6 * 60 * 60)),
        refresh_interval_seconds=float(os.environ.get("LFSLOCKER_REFRESH_INTERVAL", 0)),
        command_timeout_seconds=float(os.environ.get("LFSLOCKER_COMMAND_TIMEOUT", 30)),
    )
