# backoffice/api/admin.py
# (User and role management; full-access tier only.)

from flask import Blueprint, request, jsonify
from backoffice.jwt_auth import require_jwt, roles_required, ROLE_FULL_ACCESS
from backoffice.utils import _handle_service_result, current_actor_id
from backoffice.services.users import get_all_users, update_user_role

bp = Blueprint('admin', __name__)


@bp.route('/admin/users', methods=['GET'])
@require_jwt
@roles_required(ROLE_FULL_ACCESS)
def get_all_users_route():
    """Returns a list of all users for the settings screen."""
    result = get_all_users()
    return _handle_service_result(result)


@bp.route('/admin/users/<string:user_id>/role', methods=['POST'])
@require_jwt
@roles_required(ROLE_FULL_ACCESS)
def update_user_role_route(user_id):
    """Updates the role of a specified user."""
    data = request.get_json(silent=True) or {}
    new_role = data.get('role')

    if not new_role:
        return jsonify({"success": False, "error": "Role missing in request body."}), 400

    result = update_user_role(user_id, new_role, actor_id=current_actor_id())
    return _handle_service_result(result)
