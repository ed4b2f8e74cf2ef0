"""Flask app factory for lfslocker."""

from __future__ import annotations

import logging

from flask import Flask

from .authority import LockAuthorityClient
from .config import AppConfig, build_config
from .controller import FetchRegistry, ReconciliationController
from .routes import build_blueprint
from .runtime import LockRuntime
from .store import LockStateStore
from .terminal import CommandEcho
from .workspace import SessionManager


def create_app(cfg: AppConfig | None = None, client: LockAuthorityClient | None = None) -> Flask:
    """Create and configure the Flask app instance."""

    cfg = cfg or build_config()
    client = client or LockAuthorityClient(cfg.git_executable, timeout=cfg.command_timeout_seconds)

    app = Flask(__name__)
    app.config["SECRET_KEY"] = cfg.secret_key
    app.config["LFSLOCKER_WORKSPACES"] = cfg.workspace_folders
    app.config["LFSLOCKER_LAYOUT_EXTENSION"] = cfg.layout_extension

    runtime = LockRuntime().start()
    store = LockStateStore()
    fetches = FetchRegistry()
    echo = CommandEcho()

    def controller_factory() -> ReconciliationController:
        return ReconciliationController(
            client,
            store,
            layout_extension=cfg.layout_extension,
            fetches=fetches,
            echo=echo,
        )

    if cfg.refresh_interval_seconds > 0:
        background = controller_factory()
        root = cfg.workspace_folders[0]
        runtime.start_periodic(cfg.refresh_interval_seconds, lambda: background.refresh(root))

    app.extensions["lock_runtime"] = runtime
    app.extensions["lock_store"] = store
    app.extensions["command_echo"] = echo
    app.extensions["session_manager"] = SessionManager(runtime, controller_factory, cfg.session_ttl_seconds)
    app.register_blueprint(build_blueprint())
    return app


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = create_app()
    try:
        app.run(host="127.0.0.1", port=5000)
    finally:
        app.extensions["session_manager"].close_all()
        app.extensions["lock_runtime"].stop()
