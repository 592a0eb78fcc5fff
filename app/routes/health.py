from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from app.extensions import db
from app.services.score_cache_service import ScoreCacheService

health_bp = Blueprint('health', __name__)


@health_bp.route('/health')
def health():
    return jsonify({'status': 'ok'})


@health_bp.route('/ready')
def ready():
    """DB reachability plus the size of the recalculation backlog."""
    try:
        db.session.execute(text('SELECT 1'))
        stale_scores = ScoreCacheService().count_stale()
    except SQLAlchemyError:
        db.session.rollback()
        return jsonify({'status': 'not_ready', 'db': False}), 503

    return jsonify({'status': 'ready', 'db': True, 'stale_scores': stale_scores})
