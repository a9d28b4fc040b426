# backoffice/api/settings.py
# (Broker settings and the audit log.)

from flask import Blueprint, request, jsonify
from backoffice.jwt_auth import require_jwt, module_required
from backoffice.utils import _handle_service_result
from backoffice.services.settings import get_broker_settings, upsert_broker_settings
from backoffice.services.audit import get_audit_logs

bp = Blueprint('settings', __name__)


@bp.route('/settings/broker', methods=['GET'])
@require_jwt
def get_broker_settings_route():
    return _handle_service_result(get_broker_settings())


@bp.route('/settings/broker', methods=['PUT'])
@require_jwt
@module_required('settings')
def update_broker_settings_route():
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"success": False, "error": "No data provided in the request"}), 400
    return _handle_service_result(upsert_broker_settings(data))


@bp.route('/audit-logs', methods=['GET'])
@require_jwt
@module_required('audit')
def get_audit_logs_route():
    result = get_audit_logs(
        module=request.args.get('module'),
        action=request.args.get('action'),
        limit=request.args.get('limit', 200, type=int),
    )
    return _handle_service_result(result)
