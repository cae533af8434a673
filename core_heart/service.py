# service.py
"""
HTTP boundary for the core heart pipeline.

One route per boundary operation. Every handler is wrapped by
`api_operation`, which turns store exceptions into the structured
{"ok": false, "error": <code>, "message": ...} body:
  ValidationError -> 400, NotFoundError -> 404, anything else -> 500.
Nothing raised inside a handler reaches the client as a stack trace.
"""
import logging
import os
from functools import wraps

from dotenv import load_dotenv
from flask import Flask, current_app, jsonify, request

from core_heart.core.config import CoreHeartConfig, get_config
from core_heart.core.error_handler import (
    ErrorCategory,
    ErrorCodes,
    ErrorSeverity,
    NotFoundError,
    ValidationError,
)
from core_heart.core.identifiers import now_ms
from core_heart.core.pipeline import CoreHeart

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _heart() -> CoreHeart:
    return current_app.extensions["core_heart"]


def _fail(code: str, message: str, status: int):
    return jsonify({"ok": False, "error": code, "message": message}), status


def _body() -> dict:
    """
    JSON request body as a dict. A missing body is an empty dict, like
    the clients expect; anything that isn't a JSON object is rejected.
    """
    payload = request.get_json(silent=True)
    if payload is None:
        if request.get_data():
            raise ValidationError("request body is not JSON", ErrorCodes.NO_JSON)
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("request body must be a JSON object", ErrorCodes.NO_JSON)
    return payload


def api_operation(operation: str, category: ErrorCategory = ErrorCategory.GENERAL):
    """Convert store outcomes to JSON responses for one named operation."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except ValidationError as e:
                logger.info(f"[{operation}] rejected: {e.code} ({e.message})")
                return _fail(e.code, e.message, 400)
            except NotFoundError as e:
                logger.info(f"[{operation}] not found: {e.message}")
                return _fail(e.code, e.message, 404)
            except Exception as e:
                logger.error(f"Error in {operation}: {e}")
                _heart().error_handler.handle_error(
                    e, category, ErrorSeverity.HIGH_DEGRADE, operation=operation
                )
                return _fail(ErrorCodes.INTERNAL, f"{operation} failed", 500)
        return wrapper
    return decorator


def create_app(config: CoreHeartConfig = None, heart: CoreHeart = None) -> Flask:
    """Build the Flask app around one CoreHeart pipeline."""
    heart = heart or CoreHeart(config)

    app = Flask(__name__)
    app.json.ensure_ascii = False
    app.extensions["core_heart"] = heart

    # CORS: every origin, preflight answered here
    @app.before_request
    def handle_preflight():
        if request.method == "OPTIONS":
            return '', 204
        return None

    @app.after_request
    def after_request(response):
        response.headers['Access-Control-Allow-Origin'] = '*'
        response.headers['Access-Control-Allow-Headers'] = 'Content-Type'
        response.headers['Access-Control-Allow-Methods'] = 'GET,POST,DELETE,OPTIONS'
        return response

    @app.errorhandler(404)
    def route_not_found(_error):
        return _fail(ErrorCodes.NOT_FOUND, f"no route for {request.path}", 404)

    @app.errorhandler(405)
    def method_not_allowed(_error):
        return _fail("method_not_allowed", f"{request.method} not allowed on {request.path}", 405)

    # Health / debug -------------------------------------------------------

    @app.route("/api/health", methods=["GET"])
    def health_check():
        return jsonify({"ok": True, "ts": now_ms(), "errors": _heart().error_handler.get_error_summary()})

    @app.route("/api/debug/paths", methods=["GET"])
    def debug_paths():
        paths = _heart().config.get_paths()
        return jsonify({"ok": True, "cwd": os.getcwd(), **paths})

    # Breath log -----------------------------------------------------------

    @app.route("/api/breath-log.json", methods=["GET"])
    @api_operation("breath_snapshot", ErrorCategory.BREATH_LOG)
    def breath_snapshot():
        return jsonify(_heart().breath.snapshot())

    @app.route("/api/breath", methods=["POST"])
    @api_operation("breath_submit_raw", ErrorCategory.BREATH_LOG)
    def breath_submit_raw():
        result = _heart().breath.submit(_body(), apply_filter=False)
        return jsonify({"ok": True, "id": result.item.id})

    @app.route("/api/breath/log", methods=["POST"])
    @api_operation("breath_submit", ErrorCategory.BREATH_LOG)
    def breath_submit():
        result = _heart().breath.submit(_body())
        if result.dropped:
            return jsonify({"ok": True, "dropped": True})
        return jsonify({"ok": True, "id": result.item.id})

    @app.route("/api/breath/recent", methods=["GET"])
    @api_operation("breath_recent", ErrorCategory.BREATH_LOG)
    def breath_recent():
        items = _heart().breath.recent(request.args.get("limit"))
        return jsonify({"ok": True, "items": [item.to_dict() for item in items]})

    @app.route("/api/breath/consume", methods=["POST"])
    @api_operation("breath_consume", ErrorCategory.BREATH_LOG)
    def breath_consume():
        body = _body()
        result = _heart().breath.mark_consumed(
            body.get("id"),
            to=body.get("to"),
            reason=body.get("reason"),
            user_id=body.get("userId"),
            persona=body.get("persona"),
            tags=body.get("tags"),
        )
        if result.warning:
            return jsonify({"ok": True, "warning": result.warning})
        return jsonify({"ok": True})

    # Inhale (same storage, recall lens) -----------------------------------

    @app.route("/api/inhale/recent", methods=["GET"])
    @api_operation("inhale_recent", ErrorCategory.BREATH_LOG)
    def inhale_recent():
        items = _heart().breath.recent_inhales(request.args.get("limit"))
        return jsonify({"ok": True, "items": [item.to_dict() for item in items]})

    @app.route("/api/inhale/<item_id>", methods=["GET"])
    @api_operation("inhale_get", ErrorCategory.BREATH_LOG)
    def inhale_get(item_id):
        item = _heart().breath.get_by_id(item_id)
        return jsonify({"ok": True, "item": item.to_dict()})

    @app.route("/api/inhale/<item_id>", methods=["DELETE"])
    @api_operation("inhale_delete", ErrorCategory.BREATH_LOG)
    def inhale_delete(item_id):
        removed = _heart().breath.delete_by_id(item_id)
        return jsonify({"ok": True, "removed": removed})

    # Purify bin -----------------------------------------------------------

    @app.route("/api/purify-bin", methods=["GET"])
    @api_operation("purify_list", ErrorCategory.PURIFY_BIN)
    def purify_list():
        return jsonify(_heart().purify.list())

    @app.route("/api/purify-bin/move", methods=["POST"])
    @api_operation("purify_move", ErrorCategory.PURIFY_BIN)
    def purify_move():
        body = _body()
        item = _heart().purify.move(
            body.get("text"),
            reason=body.get("reason"),
            room_id=body.get("roomId"),
            message_id=body.get("messageId"),
            received_at=body.get("receivedAt"),
            tags=body.get("tags"),
        )
        return jsonify({"ok": True, "id": item.id})

    @app.route("/api/purify-bin/restore", methods=["POST"])
    @api_operation("purify_restore", ErrorCategory.PURIFY_BIN)
    def purify_restore():
        restored = _heart().purify.restore(_body().get("id"))
        return jsonify({"ok": True, "id": restored.id})

    @app.route("/api/purify-bin/send-to-meeting", methods=["POST"])
    @api_operation("purify_send_to_meeting", ErrorCategory.PURIFY_BIN)
    def purify_send_to_meeting():
        meeting = _heart().purify.send_to_meeting(_body().get("id"))
        return jsonify({"ok": True, "meetingId": meeting.meeting_id})

    @app.route("/api/purify-bin/delete", methods=["POST"])
    @api_operation("purify_delete", ErrorCategory.PURIFY_BIN)
    def purify_delete():
        _heart().purify.delete(_body().get("id"))
        return jsonify({"ok": True})

    # Meetings -------------------------------------------------------------

    @app.route("/api/meetings", methods=["GET"])
    @api_operation("meeting_list", ErrorCategory.MEETING)
    def meeting_list():
        return jsonify({"ok": True, "meetingIds": _heart().meetings.list_ids()})

    @app.route("/api/meetings", methods=["POST"])
    @api_operation("meeting_create", ErrorCategory.MEETING)
    def meeting_create():
        body = _body()
        source = body.get("source") if isinstance(body.get("source"), dict) else {}

        def pick(key):
            return source.get(key) or body.get(key)

        meeting = _heart().meetings.create(
            pick("text"),
            meeting_id=body.get("meetingId"),
            message_id=pick("messageId"),
            room_id=pick("roomId"),
            created_at=pick("createdAt"),
            received_at=pick("receivedAt"),
        )
        meeting_path = _heart().config.meetings_dir / f"{meeting.meeting_id}.json"
        return jsonify({"ok": True, "meetingId": meeting.meeting_id, "meetingPath": str(meeting_path)})

    @app.route("/api/meetings/<meeting_id>", methods=["GET"])
    @api_operation("meeting_get", ErrorCategory.MEETING)
    def meeting_get(meeting_id):
        meeting = _heart().meetings.get(meeting_id)
        return jsonify({"ok": True, "meeting": meeting.to_dict()})

    @app.route("/api/meetings/<meeting_id>/after-language", methods=["POST"])
    @api_operation("meeting_after_language", ErrorCategory.MEETING)
    def meeting_after_language(meeting_id):
        body = _body()
        version = _heart().meetings.add_after_language_version(
            meeting_id, body.get("lines"), spec_snapshot=body.get("specSnapshot")
        )
        return jsonify({"ok": True, "version": version.to_dict()})

    @app.route("/api/meetings/<meeting_id>/close", methods=["POST"])
    @api_operation("meeting_close", ErrorCategory.MEETING)
    def meeting_close(meeting_id):
        meeting = _heart().meetings.close(meeting_id)
        return jsonify({"ok": True, "meeting": meeting.to_dict()})

    # Central memory -------------------------------------------------------

    @app.route("/api/central/definitions", methods=["GET"])
    @api_operation("central_list", ErrorCategory.CENTRAL_MEMORY)
    def central_list():
        return jsonify(_heart().central.list())

    @app.route("/api/central/definitions", methods=["POST"])
    @api_operation("central_direct_write", ErrorCategory.CENTRAL_MEMORY)
    def central_direct_write():
        definition = _heart().central.direct_write(_body())
        return jsonify({"ok": True, "definition": definition.to_dict()})

    @app.route("/api/central/promote", methods=["POST"])
    @api_operation("central_promote", ErrorCategory.CENTRAL_MEMORY)
    def central_promote():
        body = _body()
        heart = _heart()
        definition = heart.central.promote(
            body.get("meetingId"),
            body.get("text"),
            summary=body.get("summary"),
            topic=body.get("topic"),
        )
        with heart.error_handler.create_context_manager(
            ErrorCategory.MEETING, ErrorSeverity.MEDIUM_ALERT,
            operation="record_promotion", context=definition.meta["meetingId"]
        ):
            heart.meetings.record_promotion(definition.meta["meetingId"], definition.id)
        return jsonify({"ok": True, "definition": definition.to_dict()})

    # Ha-coin --------------------------------------------------------------

    @app.route("/api/hacoin/ledger", methods=["GET"])
    @api_operation("hacoin_ledger", ErrorCategory.HACOIN)
    def hacoin_ledger():
        return jsonify(_heart().ledger.get_ledger(request.args.get("limit")))

    @app.route("/api/hacoin/event", methods=["POST"])
    @api_operation("hacoin_event", ErrorCategory.HACOIN)
    def hacoin_event():
        body = _body()
        event = _heart().ledger.post_event(
            body.get("delta"),
            reason=body.get("reason"),
            user_id=body.get("userId"),
            message_id=body.get("messageId"),
            inhale_id=body.get("inhaleId"),
            summary=body.get("summary"),
        )
        return jsonify({"ok": True, "event": event.to_dict()})

    return app


def main():
    load_dotenv()
    config = get_config()

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT
    )

    app = create_app(config)
    logger.info(f"Core heart listening on {config.host}:{config.port}")
    for name, path in config.get_paths().items():
        logger.info(f"- {name}: {path}")

    app.run(
        host=config.host,
        port=config.port,
        debug=config.debug,
        use_reloader=False
    )


if __name__ == "__main__":
    main()
