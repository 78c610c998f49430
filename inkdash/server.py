import io
import logging
from datetime import datetime

from flask import Blueprint, Flask, abort, current_app, jsonify, send_file

from .app import Dashboard

logger = logging.getLogger(__name__)

bitmaps_bp = Blueprint('bitmaps', __name__)


def _dashboard() -> Dashboard:
    return current_app.extensions['inkdash']


def serve_cached_image(slot: str):
    cache = _dashboard().cache
    if slot not in cache:
        abort(404, description=f"Unknown image '{slot}'")

    data, updated_at = cache.get(slot)
    if not data:
        abort(503, description="image not ready")

    return send_file(
        io.BytesIO(data),
        mimetype='image/bmp',
        download_name=f"{slot}.bmp",
        last_modified=updated_at,
        max_age=0,
    )


@bitmaps_bp.route('/dashboard.bmp')
def get_dashboard_image():
    slot = _dashboard().dispatcher.dispatch(datetime.now())
    logger.debug("dashboard request served from %s", slot)
    return serve_cached_image(slot)


@bitmaps_bp.route('/<slot>.bmp')
def get_slot_image(slot):
    return serve_cached_image(slot)


@bitmaps_bp.route('/healthz')
def healthz():
    cache = _dashboard().cache
    slots = {}
    for slot in cache.slots:
        data, updated_at = cache.get(slot)
        slots[slot] = {
            'ready': bool(data),
            'updated_at': updated_at.isoformat() if updated_at else None,
        }
    return jsonify({'scheduler_running': _dashboard().scheduler.running, 'slots': slots})


def create_app(dashboard: Dashboard) -> Flask:
    app = Flask(__name__)
    app.extensions['inkdash'] = dashboard
    app.register_blueprint(bitmaps_bp)
    return app
