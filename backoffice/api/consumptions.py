# backoffice/api/consumptions.py
# (Policy consumptions and the usage type catalog. Gated by the 'consumptions' module roles.)

from flask import Blueprint, request, jsonify
from backoffice.jwt_auth import require_jwt, write_required, module_required
from backoffice.utils import _handle_service_result, current_actor_id
from backoffice.services.consumptions import (
    get_usage_types,
    create_usage_type,
    get_consumptions,
    get_consumption_summary,
    save_consumption,
    delete_consumption,
)

bp = Blueprint('consumptions', __name__)


# --- 1. USAGE TYPES ---

@bp.route('/consumptions/usage-types', methods=['GET'])
@require_jwt
@module_required('consumptions')
def get_usage_types_route():
    return _handle_service_result(get_usage_types(include_inactive=request.args.get('all') == 'true'))


@bp.route('/consumptions/usage-types', methods=['POST'])
@require_jwt
@module_required('consumptions')
@write_required
def create_usage_type_route():
    data = request.get_json(silent=True) or {}
    return _handle_service_result(create_usage_type(data.get('name')))


# --- 2. CONSUMPTIONS ---

@bp.route('/consumptions', methods=['GET'])
@require_jwt
@module_required('consumptions')
def get_consumptions_route():
    """Filters: ?policy_id, ?usage_type_id, ?from_date, ?to_date, ?beneficiary."""
    result = get_consumptions(
        policy_id=request.args.get('policy_id'),
        usage_type_id=request.args.get('usage_type_id'),
        from_date=request.args.get('from_date'),
        to_date=request.args.get('to_date'),
        beneficiary=request.args.get('beneficiary'),
    )
    return _handle_service_result(result)


@bp.route('/consumptions/summary/<string:policy_id>', methods=['GET'])
@require_jwt
@module_required('consumptions')
def consumption_summary_route(policy_id):
    return _handle_service_result(get_consumption_summary(policy_id))


@bp.route('/consumptions', methods=['POST'])
@require_jwt
@module_required('consumptions')
@write_required
def create_consumption_route():
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"success": False, "error": "No data provided in the request"}), 400
    return _handle_service_result(save_consumption(data, actor_id=current_actor_id()))


@bp.route('/consumptions/<string:consumption_id>', methods=['PUT'])
@require_jwt
@module_required('consumptions')
@write_required
def update_consumption_route(consumption_id):
    data = request.get_json(silent=True) or {}
    return _handle_service_result(save_consumption(data, consumption_id, actor_id=current_actor_id()))


@bp.route('/consumptions/<string:consumption_id>', methods=['DELETE'])
@require_jwt
@module_required('consumptions')
@write_required
def delete_consumption_route(consumption_id):
    return _handle_service_result(delete_consumption(consumption_id, actor_id=current_actor_id()))
