"""Local web app: document list, reader surface and the session JSON API."""

from __future__ import annotations

import inspect
import logging
import os
import re
from typing import Any, Callable, Dict, Optional

from flask import (
    Blueprint,
    Flask,
    abort,
    current_app,
    jsonify,
    render_template_string,
    request,
    send_from_directory,
)

from .config import DEFAULTS, ReaderSettings, default_data_dir
from .content import ContentKind, FileContentSource, display_name_for, resolve_path
from .errors import InvalidEvent, PermissionDenied, StaleSession, UnknownDocument
from .pages import LIST_PAGE, READER_PAGE, TEXT_PAGE
from .rsvp import ExitReason
from .sequencer import Sequencer
from .session import ReadingSession, SessionManager, parse_zoom
from .store import DocumentRecord, ProgressStore

logger = logging.getLogger(__name__)

HEAD_RE = re.compile(r"<head\b[^>]*>", re.IGNORECASE)

bp = Blueprint("docreader", __name__)


class Reader:
    """Everything a running app shares: store, content source and the session loop."""

    def __init__(self, store: ProgressStore, source: FileContentSource, settings: ReaderSettings) -> None:
        self.store = store
        self.source = source
        self.settings = settings
        self.sequencer = Sequencer()
        self.manager = SessionManager(store, source, settings)
        self._closed = False

    def call(self, fn: Callable[..., Any], *args: Any) -> Any:
        return self.sequencer.call(fn, *args)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self.sequencer.call(self.manager.close)
        finally:
            self.sequencer.stop()


def get_reader() -> Reader:
    return current_app.extensions["docreader"]


def normalize_identity(path: str) -> str:
    path = path.strip()
    if path.startswith("file:"):
        return path
    return os.path.abspath(os.path.expanduser(path))


def record_or_404(key: str) -> DocumentRecord:
    record = get_reader().store.find_by_key(key)
    if record is None:
        abort(404)
    return record


def current_session_for(manager: SessionManager, record: DocumentRecord) -> Optional[ReadingSession]:
    session = manager.current
    if session is None or session.identity != record.identity:
        return None
    return session


def inject_base(markup: str, href: str) -> str:
    tag = f'<base href="{href}">'
    m = HEAD_RE.search(markup)
    if m:
        return markup[: m.end()] + tag + markup[m.end():]
    return tag + markup


# ----------------------------------------------------------------
# errors
# ----------------------------------------------------------------


@bp.errorhandler(StaleSession)
def stale_session(e):
    logger.debug("Stale session event: %s", e)
    return jsonify({"ok": False, "error": "Session is no longer open", "stale": True}), 409


@bp.errorhandler(PermissionDenied)
def permission_denied(e):
    return jsonify({"ok": False, "error": str(e)}), 403


@bp.errorhandler(InvalidEvent)
def invalid_event(e):
    return jsonify({"ok": False, "error": f"Bad request: {e}"}), 400


@bp.errorhandler(UnknownDocument)
def unknown_document(e):
    return jsonify({"ok": False, "error": f"Unknown document: {e}"}), 404


# ----------------------------------------------------------------
# pages
# ----------------------------------------------------------------


@bp.route("/", methods=["GET"])
def index():
    return render_template_string(LIST_PAGE)


@bp.route("/read/<key>", methods=["GET"])
def reader_page(key: str):
    record = record_or_404(key)
    cfg = current_app.config
    return render_template_string(
        READER_PAGE,
        record=record,
        observe_interval_ms=cfg["OBSERVE_INTERVAL_MS"],
        default_wpm=cfg["DEFAULT_WPM"],
        min_wpm=cfg["MIN_WPM"],
        max_wpm=cfg["MAX_WPM"],
    )


@bp.route("/read/<key>/content", methods=["GET", "HEAD"])
def reader_content(key: str):
    record = record_or_404(key)
    reader = get_reader()
    session = reader.call(current_session_for, reader.manager, record)
    if session is None:
        abort(409)
    content = session.content
    if content.kind is ContentKind.HTML:
        return inject_base(content.body, f"/read/{key}/files/")
    return render_template_string(TEXT_PAGE, text=content.body)


@bp.route("/read/<key>/files/<path:name>", methods=["GET"])
def reader_files(key: str, name: str):
    record = record_or_404(key)
    base_dir = os.path.dirname(resolve_path(record.identity))
    return send_from_directory(base_dir, name)


# ----------------------------------------------------------------
# document list API
# ----------------------------------------------------------------


@bp.route("/api/documents", methods=["GET"])
def api_documents():
    docs = get_reader().store.all()
    return jsonify({"ok": True, "documents": [d.to_dict() for d in docs]})


@bp.route("/api/documents", methods=["POST"])
def api_add_document():
    payload = request.get_json(silent=True) or {}
    path = str(payload.get("path") or "").strip()
    if not path:
        return jsonify({"ok": False, "error": "Missing path"}), 400

    reader = get_reader()
    identity = normalize_identity(path)
    try:
        reader.source.open_stream(identity).close()
    except PermissionDenied as e:
        return jsonify({"ok": False, "error": str(e)}), 400

    name = str(payload.get("name") or "").strip() or display_name_for(identity)
    record = reader.store.add(identity, name)
    logger.info("Added %s as %r", identity, name)
    return jsonify({"ok": True, "document": record.to_dict()})


@bp.route("/api/documents/<key>", methods=["DELETE"])
def api_remove_document(key: str):
    reader = get_reader()
    record = record_or_404(key)
    reader.call(reader.manager.closing, record.identity)
    reader.store.remove_document(record.identity)
    return jsonify({"ok": True})


# ----------------------------------------------------------------
# session API
# ----------------------------------------------------------------


@bp.route("/api/read/<key>/open", methods=["POST"])
def api_open(key: str):
    reader = get_reader()
    record = record_or_404(key)
    session = reader.call(reader.manager.open, record.identity)
    data = reader.call(session.snapshot)
    data.update({"name": record.display_name, "zoom": session.surface.zoom})
    return jsonify(data)


def _wpm(payload: Dict[str, Any]) -> int:
    try:
        return int(payload["wpm"])
    except KeyError:
        raise InvalidEvent("Missing wpm") from None
    except (TypeError, ValueError, OverflowError) as e:
        raise InvalidEvent(f"wpm must be a whole number, got {payload['wpm']!r}") from e


def _zoom(payload: Dict[str, Any]) -> float:
    if "zoom" not in payload:
        raise InvalidEvent("Missing zoom")
    return parse_zoom(payload["zoom"])


async def _toggle(session: ReadingSession, payload: Dict[str, Any]) -> dict:
    session.sync(payload)
    await session.coordinator.toggle()
    return {}


async def _load_error(session: ReadingSession, payload: Dict[str, Any]) -> dict:
    await session.load_error(str(payload.get("description") or "Unknown"))
    return {"reload": True}


def _layout(session: ReadingSession, payload: Dict[str, Any]) -> dict:
    pending = session.take_pending_offset()
    return {"offset": pending.to_dict() if pending else None}


def _observe(session: ReadingSession, payload: Dict[str, Any]) -> dict:
    return {"accepted_height": session.observe(payload)}


SESSION_EVENTS: Dict[str, Callable[[ReadingSession, Dict[str, Any]], Any]] = {
    "load-finished": lambda s, p: s.load_finished(p),
    "observe": _observe,
    "scroll": lambda s, p: s.scroll(p),
    "background": lambda s, p: s.background(p),
    "load-error": _load_error,
    "layout": _layout,
    "zoom": lambda s, p: s.set_zoom(_zoom(p)),
    "rsvp/toggle": _toggle,
    "rsvp/pause": lambda s, p: s.coordinator.toggle_pause(),
    "rsvp/exit": lambda s, p: s.coordinator.exit(ExitReason.EXPLICIT),
    "rsvp/tap": lambda s, p: s.coordinator.tap(),
    "rsvp/wpm": lambda s, p: s.coordinator.set_wpm(_wpm(p)),
}


async def dispatch(manager: SessionManager, generation: int, event: str, payload: Dict[str, Any]) -> dict:
    session = manager.get(generation)
    if event == "back":
        session.sync(payload)
        action = manager.back(generation, bool(payload.get("can_go_back")))
        data = manager.current.snapshot() if manager.current else {"ok": True}
        return {**data, "action": action.value}
    if event == "close":
        session.sync(payload)
        manager.close()
        return {"ok": True}

    result = SESSION_EVENTS[event](session, payload)
    if inspect.isawaitable(result):
        result = await result
    extra = result if isinstance(result, dict) else {}
    return {**session.snapshot(), **extra}


@bp.route("/api/session/<int:generation>/<path:event>", methods=["POST"])
def api_session_event(generation: int, event: str):
    if event not in SESSION_EVENTS and event not in ("back", "close"):
        return jsonify({"ok": False, "error": f"Unknown event: {event}"}), 404

    reader = get_reader()
    payload = request.get_json(force=True, silent=True)
    if not isinstance(payload, dict):
        payload = {}
    return jsonify(reader.call(dispatch, reader.manager, generation, event, payload))


@bp.route("/api/session/<int:generation>/state", methods=["GET"])
def api_session_state(generation: int):
    reader = get_reader()
    return jsonify(reader.call(lambda: reader.manager.get(generation).snapshot()))


# ----------------------------------------------------------------
# app
# ----------------------------------------------------------------


def create_app(test_config: Optional[Dict[str, Any]] = None) -> Flask:
    app = Flask(__name__)
    app.config.from_mapping(DEFAULTS)
    app.config.from_prefixed_env("DOCREADER")
    if test_config:
        app.config.update(test_config)

    data_dir = app.config["DATA_DIR"] or default_data_dir()
    store = ProgressStore(os.path.join(data_dir, "progress.db"))
    settings = ReaderSettings.from_config(app.config)
    app.extensions["docreader"] = Reader(store, FileContentSource(), settings)
    app.register_blueprint(bp)
    return app


def main() -> None:
    app = create_app()
    logging.basicConfig(
        level=str(app.config["LOG_LEVEL"]).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    host, port = app.config["HOST"], int(app.config["PORT"])
    logger.info("Starting local document reader on http://%s:%d", host, port)
    try:
        app.run(host=host, port=port, debug=False, threaded=True)
    finally:
        app.extensions["docreader"].close()


if __name__ == "__main__":
    main()
