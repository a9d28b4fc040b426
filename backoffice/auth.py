# auth.py

from flask import Blueprint, jsonify, g, current_app
from backoffice.jwt_auth import require_jwt

bp = Blueprint('auth', __name__)


@bp.route('/me', methods=['GET'])
@require_jwt
def get_current_user():
    """
    Returns the current user's profile from the verified JWT, plus the list
    of gated modules the role may open. The SPA uses it to build navigation.
    """
    user = g.current_user
    modules = [name for name in current_app.config['MODULE_ROLES'] if user.can_access(name)]

    return jsonify({
        "is_authenticated": True,
        "username": user.username,
        "email": user.email,
        "role": user.role,
        "user_id": user.id,
        "read_only": user.is_read_only,
        "modules": modules,
    }), 200

# Sign-up, login, logout and password reset are handled by Supabase Auth
# in the browser; the backend only verifies the resulting access token.
