"""
Station HTTP API and push channel.

Flask serves the JSON and audio endpoints; Flask-SocketIO pushes download
progress to each owner's room. Services hang off the StationContext stored
in app.config["STATION"].
"""

import functools
import logging
import shutil

from flask import Flask, Blueprint, current_app, g, jsonify, request
from flask_cors import CORS
from flask_socketio import SocketIO, join_room, leave_room
from werkzeug.exceptions import HTTPException

from acquisition.reacquisition import DEFAULT_REACQUIRE_LIMIT
from shared.config import StationConfig
from shared.constants import OWNER_HEADER
from shared.errors import NotFoundError, StationError, UnauthorizedError, ValidationError
from shared.logging_setup import configure_logging
from shared.models import utc_now_iso
from shared.notifications import SocketIONotifier, owner_room
from storage_tiers.migration import migrate_to_durable_tier
from .context import StationContext, build_context
from .delivery import EXPOSED_HEADERS

logger = logging.getLogger(__name__)

socketio = SocketIO()
api = Blueprint('api', __name__, url_prefix='/api')


def station() -> StationContext:
    return current_app.config["STATION"]


def require_owner() -> str:
    owner_id = (request.headers.get(OWNER_HEADER) or "").strip()
    if not owner_id:
        raise UnauthorizedError("Authentication required")
    return owner_id


def _rate_key() -> str:
    return (request.headers.get(OWNER_HEADER) or "").strip() or request.remote_addr or 'unknown'


def rate_limited(limiter_name: str):
    """Apply one of the context's rate limiters to a route."""
    def decorator(view):
        @functools.wraps(view)
        def wrapper(*args, **kwargs):
            decision = getattr(station(), limiter_name).hit(_rate_key())
            g.rate_limit = decision
            if not decision.allowed:
                return jsonify({"error": "Too many requests, please try again later."}), 429
            return view(*args, **kwargs)
        return wrapper
    return decorator


@api.after_request
def add_rate_limit_headers(response):
    # Also runs for error responses raised out of a rate-limited view
    decision = g.pop("rate_limit", None)
    if decision is not None:
        response.headers.update(decision.headers())
    return response


def _parse_limit(data, default=None):
    limit = (data or {}).get('limit', default)
    if limit is None:
        return None
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValidationError("limit must be a positive integer")
    return limit


# --- Downloads ---

@api.route('/download', methods=['POST'])
@rate_limited('download_limiter')
def submit_download():
    owner_id = require_owner()
    data = request.get_json(silent=True) or {}
    url = (data.get('url') or '').strip()
    if not url:
        raise ValidationError("URL is required")

    result = station().orchestrator.submit(url, owner_id)
    message = "Track added to your library" if result.reused else "Download started"
    return jsonify({"message": message, **result.to_dict()})


# --- Playback ---

@api.route('/audio/<content_id>', methods=['GET'])
def get_audio(content_id):
    return station().delivery.get_asset(content_id)


@api.route('/stream-url/<content_id>', methods=['GET'])
@rate_limited('resolve_limiter')
def get_stream_url(content_id):
    url = station().delivery.resolve_stream_url(content_id)
    return jsonify({"stream_url": url})


# --- Maintenance ---

@api.route('/migrate-to-storage', methods=['POST'])
def migrate_to_storage():
    ctx = station()
    limit = _parse_limit(request.get_json(silent=True))
    report = migrate_to_durable_tier(ctx.registry, ctx.resolver, limit=limit)
    return jsonify({
        "message": f"Migration complete: {report.migrated} migrated, {report.skipped} skipped, {report.failed} failed",
        **report.to_dict(),
    })


@api.route('/redownload-tracks', methods=['POST'])
def redownload_tracks():
    limit = _parse_limit(request.get_json(silent=True), default=DEFAULT_REACQUIRE_LIMIT)
    return jsonify(station().reacquisition.reacquire(limit=limit))


@api.route('/redownload-status', methods=['GET'])
def redownload_status():
    return jsonify(station().reacquisition.status())


# --- Library ---

@api.route('/tracks/mine', methods=['GET'])
def my_tracks():
    owner_id = require_owner()
    tracks = station().registry.list_for_owner(owner_id)
    return jsonify([t.to_dict() for t in tracks])


@api.route('/tracks/shared', methods=['GET'])
def shared_tracks():
    return jsonify([t.to_dict() for t in station().registry.list_shared()])


@api.route('/tracks/<int:track_id>', methods=['GET'])
def get_track(track_id):
    track = station().registry.get(track_id)
    if track is None:
        raise NotFoundError("Track not found")
    return jsonify(track.to_dict())


@api.route('/tracks/<int:track_id>', methods=['DELETE'])
def delete_track(track_id):
    owner_id = require_owner()
    track = station().orchestrator.remove(track_id, owner_id)
    return jsonify({"message": "Track deleted", "track": track.to_dict()})


@api.route('/tracks/<int:track_id>/share', methods=['PUT'])
def toggle_share(track_id):
    owner_id = require_owner()
    track = station().orchestrator.toggle_shared(track_id, owner_id)
    message = "Track shared with the community" if track.shared else "Track is now private"
    return jsonify({"message": message, "shared": track.shared, "track": track.to_dict()})


@api.route('/tracks/<int:track_id>/add-to-library', methods=['POST'])
def add_to_library(track_id):
    owner_id = require_owner()
    result = station().orchestrator.adopt(track_id, owner_id)
    return jsonify({"message": "Track added to your library", **result.to_dict()})


# --- Health ---

@api.route('/health', methods=['GET'])
def health():
    return jsonify({"status": "ok", "time": utc_now_iso()})


@api.route('/diagnostic', methods=['GET'])
def diagnostic():
    ctx = station()
    durable = ctx.resolver.durable
    return jsonify({
        "yt_dlp_version": ctx.extractor.version(),
        "ffmpeg": shutil.which('ffmpeg'),
        "music_dir": str(ctx.config.music_dir),
        "cookies_file": str(ctx.config.cookies_file) if ctx.config.cookies_file and ctx.config.cookies_file.exists() else None,
        "durable_storage": {
            "configured": durable is not None,
            "reachable": durable.probe() if durable is not None else False,
            **(durable.describe() if durable is not None else {}),
        },
        "tracks": ctx.registry.status_counts(),
        "stream_url_cache_size": len(ctx.stream_cache),
        "reacquisition_in_progress": ctx.reacquisition.tracker.snapshot(),
    })


# --- Push channel ---

@socketio.on('subscribe')
def on_subscribe(data):
    """Join room owner:{owner_id} to receive download_progress events."""
    owner_id = (data or {}).get('owner_id')
    if not owner_id:
        return
    join_room(owner_room(owner_id), sid=request.sid)


@socketio.on('unsubscribe')
def on_unsubscribe(data):
    owner_id = (data or {}).get('owner_id')
    if owner_id:
        leave_room(owner_room(owner_id), sid=request.sid)


# --- App factory ---

def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(StationError)
    def handle_station_error(err: StationError):
        if err.status_code >= 500:
            logger.error(f"API: {err.message}")
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(Exception)
    def handle_unexpected(err: Exception):
        if isinstance(err, HTTPException):
            return err
        logger.exception(f"API: Unhandled error on {request.method} {request.path}")
        return jsonify({"error": "Internal server error"}), 500


def create_app(context: StationContext, async_mode=None) -> Flask:
    app = Flask(__name__)
    CORS(app, expose_headers=EXPOSED_HEADERS.split(', '))
    app.config["STATION"] = context
    app.register_blueprint(api)
    _register_error_handlers(app)
    socketio.init_app(app, cors_allowed_origins="*", async_mode=async_mode)
    return app


def start_api(port=None, debug=False, env_file=None):
    config = StationConfig.from_env(env_file)
    configure_logging(config.log_level)
    context = build_context(config, notifier=SocketIONotifier(socketio))
    app = create_app(context)
    port = port or config.port

    logger.info("=" * 40)
    logger.info("       SOUNDRELAY STATION ONLINE")
    logger.info("=" * 40)
    logger.info(f"Local:  http://localhost:{port}/api/health")
    logger.info(f"API: Starting SocketIO server on 0.0.0.0:{port}...")
    socketio.run(app, host='0.0.0.0', port=port, debug=debug)


if __name__ == '__main__':
    start_api()
