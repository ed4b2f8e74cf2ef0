"""HTTP routes for lfslocker."""

from __future__ import annotations

import os
from dataclasses import asdict

from flask import Blueprint, Response, current_app, flash, jsonify, redirect, render_template, request, url_for
from werkzeug.exceptions import BadRequest

from .errors import PathDomainError
from .models import MutationOutcome, WorkspaceContext
from .paths import to_absolute
from .workspace import LockSession


def build_blueprint() -> Blueprint:
    """Create and return the application's route blueprint."""

    bp = Blueprint("lfslocker", __name__)

    @bp.get("/")
    def index() -> str:
        lock_session = _sessions().current()
        _runtime().run(lock_session.show(_context().root))
        for category, message in _runtime().call(lock_session.panel.pop_notices):
            flash(message, category)
        return render_template(
            "locks.html",
            panel=lock_session.panel,
            rows=lock_session.panel.rows(),
            tree=lock_session.tree.nodes(),
            commands=current_app.extensions["command_echo"].recent()[-5:],
        )

    @bp.get("/locks.json")
    def locks_json() -> Response:
        lock_session = _sessions().current()
        return jsonify(_state_payload(lock_session))

    @bp.post("/refresh")
    def refresh() -> Response:
        lock_session = _sessions().current()
        snapshot = _runtime().run(lock_session.refresh(_context().root))
        if _wants_json_response():
            payload = _state_payload(lock_session)
            payload["ok"] = snapshot is not None
            return jsonify(payload), 200 if snapshot is not None else 502
        return redirect(url_for("lfslocker.index"))

    @bp.post("/lock")
    def lock_file() -> Response:
        absolute = _absolute_form_path()
        lock_session = _sessions().current()
        outcome = _runtime().run(lock_session.lock(_context(absolute).root, absolute))
        return _outcome_response(lock_session, outcome)

    @bp.post("/unlock/<lock_id>")
    def unlock_file(lock_id: str) -> Response:
        lock_session = _sessions().current()
        outcome = _runtime().run(lock_session.unlock(_context().root, lock_id))
        return _outcome_response(lock_session, outcome)

    @bp.post("/unlock-path")
    def unlock_path() -> Response:
        absolute = _absolute_form_path()
        lock_session = _sessions().current()
        outcome = _runtime().run(lock_session.unlock_path(_context(absolute).root, absolute))
        return _outcome_response(lock_session, outcome)

    @bp.get("/reveal")
    def reveal() -> Response:
        path = _required(request.args.get("path"), "path")
        lock_session = _sessions().current()
        try:
            located = _runtime().run(lock_session.reveal(_context().root, path))
        except PathDomainError as exc:
            return jsonify({"ok": False, "error": exc.report()}), 400
        return jsonify(located)

    @bp.get("/references")
    def references() -> Response:
        path = _required(request.args.get("path"), "path")
        lock_session = _sessions().current()
        try:
            sources = _runtime().run(lock_session.references(_context().root, path))
        except PathDomainError as exc:
            return jsonify({"ok": False, "error": exc.report()}), 400
        return jsonify({"ok": True, "path": path, "sources": sources})

    @bp.post("/close")
    def close() -> Response:
        closed = _sessions().close()
        if _wants_json_response():
            return jsonify({"ok": True, "closed": closed})
        return redirect(url_for("lfslocker.index"))

    return bp


def _runtime():
    return current_app.extensions["lock_runtime"]


def _sessions():
    return current_app.extensions["session_manager"]


def _context(path: str | None = None) -> WorkspaceContext:
    return WorkspaceContext.for_path(current_app.config["LFSLOCKER_WORKSPACES"], path)


def _required(value: str | None, name: str) -> str:
    if not value or not value.strip():
        raise BadRequest(f"Missing required parameter: {name}")
    return value.strip()


def _absolute_form_path() -> str:
    """Read the ``path`` form field, resolving repository paths against the first workspace."""

    path = _required(request.form.get("path"), "path")
    if os.path.isabs(path):
        return path
    return to_absolute(_context().root, path)


def _state_payload(lock_session: LockSession) -> dict:
    panel = lock_session.panel
    return {
        "version": panel.snapshot.version,
        "root": panel.snapshot.root,
        "locks": [asdict(row) for row in panel.rows()],
        "tree": lock_session.tree.nodes(),
        "error": panel.last_error,
        "notices": [list(n) for n in _runtime().call(panel.pop_notices)],
    }


def _outcome_response(lock_session: LockSession, outcome: MutationOutcome) -> Response:
    if _wants_json_response():
        payload = _state_payload(lock_session)
        payload.update(
            ok=outcome.ok,
            action=outcome.action,
            status=outcome.status.value,
            subject=outcome.subject,
            message=outcome.message,
            command=outcome.command,
        )
        return jsonify(payload), 200 if outcome.ok else 400
    return redirect(url_for("lfslocker.index"))


def _wants_json_response() -> bool:
    """Detect AJAX requests made by the lock panel script."""

    return request.headers.get("X-Requested-With") == "XMLHttpRequest"
