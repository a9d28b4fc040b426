# backoffice/api/sales.py
# (Sales pipeline routes.)

from flask import Blueprint, request, jsonify
from backoffice.jwt_auth import require_jwt, write_required
from backoffice.utils import _handle_service_result, current_actor_id
from backoffice.services.sales import (
    SALES_STAGES,
    get_opportunities,
    get_pipeline_summary,
    save_opportunity,
    update_stage,
    advance_stage,
    save_opportunity_product,
    delete_opportunity_product,
    toggle_product_selection,
    get_notes,
    add_note,
    delete_note,
    get_investments,
    add_investment,
    delete_investment,
)

bp = Blueprint('sales', __name__)


@bp.route('/sales/stages', methods=['GET'])
@require_jwt
def get_stages_route():
    stages = [{"value": value, "label": label} for value, label in SALES_STAGES]
    return jsonify({"success": True, "data": stages}), 200


@bp.route('/sales/pipeline', methods=['GET'])
@require_jwt
def pipeline_summary_route():
    return _handle_service_result(get_pipeline_summary())


@bp.route('/sales/opportunities', methods=['GET'])
@require_jwt
def get_opportunities_route():
    return _handle_service_result(get_opportunities(stage=request.args.get('stage')))


@bp.route('/sales/opportunities', methods=['POST'])
@require_jwt
@write_required
def create_opportunity_route():
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"success": False, "error": "No data provided in the request"}), 400
    return _handle_service_result(save_opportunity(data, actor_id=current_actor_id()))


@bp.route('/sales/opportunities/<string:opportunity_id>', methods=['PUT'])
@require_jwt
@write_required
def update_opportunity_route(opportunity_id):
    data = request.get_json(silent=True) or {}
    return _handle_service_result(save_opportunity(data, opportunity_id, actor_id=current_actor_id()))


@bp.route('/sales/opportunities/<string:opportunity_id>/stage', methods=['POST'])
@require_jwt
@write_required
def update_stage_route(opportunity_id):
    """Moves the card to {"stage": ...}, or to the next stage when omitted."""
    data = request.get_json(silent=True) or {}
    if data.get('stage'):
        result = update_stage(opportunity_id, data['stage'], actor_id=current_actor_id())
    else:
        result = advance_stage(opportunity_id, actor_id=current_actor_id())
    return _handle_service_result(result)


# --- PRODUCTS ---

@bp.route('/sales/opportunities/<string:opportunity_id>/products', methods=['POST'])
@require_jwt
@write_required
def add_product_route(opportunity_id):
    data = request.get_json(silent=True) or {}
    return _handle_service_result(save_opportunity_product(opportunity_id, data))


@bp.route('/sales/opportunities/<string:opportunity_id>/products/<string:product_row_id>', methods=['PUT'])
@require_jwt
@write_required
def update_product_route(opportunity_id, product_row_id):
    data = request.get_json(silent=True) or {}
    return _handle_service_result(save_opportunity_product(opportunity_id, data, product_row_id))


@bp.route('/sales/products/<string:product_row_id>', methods=['DELETE'])
@require_jwt
@write_required
def delete_product_route(product_row_id):
    return _handle_service_result(delete_opportunity_product(product_row_id))


@bp.route('/sales/products/<string:product_row_id>/select', methods=['POST'])
@require_jwt
@write_required
def select_product_route(product_row_id):
    data = request.get_json(silent=True) or {}
    return _handle_service_result(toggle_product_selection(product_row_id, data.get('selected', True)))


# --- NOTES ---

@bp.route('/sales/opportunities/<string:opportunity_id>/notes', methods=['GET'])
@require_jwt
def get_notes_route(opportunity_id):
    return _handle_service_result(get_notes(opportunity_id))


@bp.route('/sales/opportunities/<string:opportunity_id>/notes', methods=['POST'])
@require_jwt
@write_required
def add_note_route(opportunity_id):
    data = request.get_json(silent=True) or {}
    return _handle_service_result(add_note(opportunity_id, data.get('content'), actor_id=current_actor_id()))


@bp.route('/sales/notes/<string:note_id>', methods=['DELETE'])
@require_jwt
@write_required
def delete_note_route(note_id):
    return _handle_service_result(delete_note(note_id))


# --- INVESTMENTS ---

@bp.route('/sales/opportunities/<string:opportunity_id>/investments', methods=['GET'])
@require_jwt
def get_investments_route(opportunity_id):
    return _handle_service_result(get_investments(opportunity_id))


@bp.route('/sales/opportunities/<string:opportunity_id>/investments', methods=['POST'])
@require_jwt
@write_required
def add_investment_route(opportunity_id):
    data = request.get_json(silent=True) or {}
    return _handle_service_result(add_investment(opportunity_id, data, actor_id=current_actor_id()))


@bp.route('/sales/investments/<string:investment_id>', methods=['DELETE'])
@require_jwt
@write_required
def delete_investment_route(investment_id):
    return _handle_service_result(delete_investment(investment_id))
