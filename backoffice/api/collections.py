# backoffice/api/collections.py
# (Premium collections routes.)

from flask import Blueprint, request, jsonify
from backoffice.jwt_auth import require_jwt, write_required
from backoffice.utils import _handle_service_result, parse_date, current_actor_id
from backoffice.services.collections import (
    get_collections,
    get_collection_stats,
    get_collection_history,
    mark_as_paid,
    mark_advisor_contact,
    revert_to_pending,
    sync_collections,
)

bp = Blueprint('collections', __name__)


@bp.route('/collections', methods=['GET'])
@require_jwt
def get_collections_route():
    try:
        due_from = parse_date(request.args.get('due_from'))
        due_to = parse_date(request.args.get('due_to'))
    except ValueError:
        return jsonify({"success": False, "error": "Rango de fechas inválido."}), 400

    result = get_collections(
        status=request.args.get('status'),
        search=request.args.get('search'),
        due_from=due_from,
        due_to=due_to,
        days_overdue_min=request.args.get('days_overdue_min', type=int),
        days_overdue_max=request.args.get('days_overdue_max', type=int),
    )
    return _handle_service_result(result)


@bp.route('/collections/stats', methods=['GET'])
@require_jwt
def get_collection_stats_route():
    return _handle_service_result(get_collection_stats())


@bp.route('/collections/<string:collection_id>/history', methods=['GET'])
@require_jwt
def get_collection_history_route(collection_id):
    return _handle_service_result(get_collection_history(collection_id), default_error_status=404)


@bp.route('/collections/<string:collection_id>/paid', methods=['POST'])
@require_jwt
@write_required
def mark_paid_route(collection_id):
    result = mark_as_paid(collection_id, current_actor_id())
    return _handle_service_result(result)


@bp.route('/collections/<string:collection_id>/advisor-contact', methods=['POST'])
@require_jwt
@write_required
def advisor_contact_route(collection_id):
    data = request.get_json(silent=True) or {}
    try:
        promised_date = parse_date(data.get('promised_date'))
    except ValueError:
        return jsonify({"success": False, "error": "Fecha prometida inválida."}), 400

    result = mark_advisor_contact(collection_id, promised_date, data.get('notes'), current_actor_id())
    return _handle_service_result(result)


@bp.route('/collections/<string:collection_id>/revert', methods=['POST'])
@require_jwt
@write_required
def revert_collection_route(collection_id):
    return _handle_service_result(revert_to_pending(collection_id, current_actor_id()))


@bp.route('/collections/sync', methods=['POST'])
@require_jwt
@write_required
def sync_collections_route():
    """Opens pending collections for active policies that have none."""
    return _handle_service_result(sync_collections())
