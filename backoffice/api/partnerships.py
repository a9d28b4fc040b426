# backoffice/api/partnerships.py
# (Partners, their services and discount codes.)

from flask import Blueprint, request, jsonify
from backoffice.jwt_auth import require_jwt, write_required
from backoffice.utils import _handle_service_result
from backoffice.services.partnerships import (
    get_partners,
    save_partner,
    delete_partner,
    save_service,
    delete_service,
    get_codes,
    create_code,
    mark_sent,
    redeem,
)

bp = Blueprint('partnerships', __name__)


@bp.route('/partners', methods=['GET'])
@require_jwt
def get_partners_route():
    return _handle_service_result(get_partners(active_only=request.args.get('active') == 'true'))


@bp.route('/partners', methods=['POST'])
@require_jwt
@write_required
def create_partner_route():
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"success": False, "error": "No data provided in the request"}), 400
    return _handle_service_result(save_partner(data))


@bp.route('/partners/<string:partner_id>', methods=['PUT'])
@require_jwt
@write_required
def update_partner_route(partner_id):
    data = request.get_json(silent=True) or {}
    return _handle_service_result(save_partner(data, partner_id))


@bp.route('/partners/<string:partner_id>', methods=['DELETE'])
@require_jwt
@write_required
def delete_partner_route(partner_id):
    return _handle_service_result(delete_partner(partner_id))


@bp.route('/partners/<string:partner_id>/services', methods=['POST'])
@require_jwt
@write_required
def create_service_route(partner_id):
    data = request.get_json(silent=True) or {}
    return _handle_service_result(save_service(partner_id, data))


@bp.route('/partners/<string:partner_id>/services/<string:service_id>', methods=['PUT'])
@require_jwt
@write_required
def update_service_route(partner_id, service_id):
    data = request.get_json(silent=True) or {}
    return _handle_service_result(save_service(partner_id, data, service_id))


@bp.route('/partner-services/<string:service_id>', methods=['DELETE'])
@require_jwt
@write_required
def delete_service_route(service_id):
    return _handle_service_result(delete_service(service_id))


# --- DISCOUNT CODES ---

@bp.route('/discount-codes', methods=['GET'])
@require_jwt
def get_codes_route():
    result = get_codes(status=request.args.get('status'), service_id=request.args.get('service_id'))
    return _handle_service_result(result)


@bp.route('/discount-codes', methods=['POST'])
@require_jwt
@write_required
def create_code_route():
    data = request.get_json(silent=True) or {}
    return _handle_service_result(create_code(data))


@bp.route('/discount-codes/<string:code_id>/sent', methods=['POST'])
@require_jwt
@write_required
def mark_sent_route(code_id):
    return _handle_service_result(mark_sent(code_id))


@bp.route('/discount-codes/redeem', methods=['POST'])
@require_jwt
@write_required
def redeem_route():
    data = request.get_json(silent=True) or {}
    if not data.get('code'):
        return jsonify({"success": False, "error": "Code missing in request body."}), 400
    return _handle_service_result(redeem(data['code']))
