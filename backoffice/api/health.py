# backoffice/api/health.py

from flask import Blueprint, jsonify, current_app
from sqlalchemy import text
from backoffice import db

bp = Blueprint('health', __name__)


@bp.route('/health', methods=['GET'])
def health_route():
    """Unauthenticated check used by deploys; reports database connectivity."""
    try:
        db.session.execute(text('SELECT 1'))
        database = {"status": "connected"}
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Health check database error: {e}")
        database = {"status": "disconnected"}

    healthy = database["status"] == "connected"
    return jsonify({
        "success": healthy,
        "status": "healthy" if healthy else "degraded",
        "database": database,
    }), 200 if healthy else 503
