# backoffice/api/renewals.py
# (Renewal listing, configuration and the daily dispatch trigger.)

from flask import Blueprint, request, jsonify
from backoffice.jwt_auth import require_jwt, write_required, module_required
from backoffice.utils import _handle_service_result, parse_date, parse_float, current_actor_id
from backoffice.services.renewals import (
    get_renewal_policies,
    get_renewal_stats,
    preview_renewal,
    upsert_renewal_config,
    update_renewal_status,
    run_renewal_dispatch,
)

bp = Blueprint('renewals', __name__)


@bp.route('/renewals', methods=['GET'])
@require_jwt
def get_renewals_route():
    days_ahead = request.args.get('days', 30, type=int)
    status = request.args.get('status', 'all')
    search = request.args.get('search', '')
    result = get_renewal_policies(days_ahead=days_ahead, status=status, search=search)
    return _handle_service_result(result)


@bp.route('/renewals/stats', methods=['GET'])
@require_jwt
def get_renewal_stats_route():
    return _handle_service_result(get_renewal_stats())


@bp.route('/renewals/preview', methods=['POST'])
@require_jwt
def preview_renewal_route():
    """
    Stateless calculation for the renewal dialog: variance, percentage and
    the date the notice will be sent. Nothing is persisted.
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"success": False, "error": "No data provided in the request"}), 400
    try:
        renewal_date = parse_date(data.get('renewal_date'))
    except ValueError:
        return jsonify({"success": False, "error": "Fecha de renovación inválida."}), 400

    result = preview_renewal(data.get('current_amount'), data.get('new_amount'), renewal_date)
    return _handle_service_result(result)


@bp.route('/renewals/policy/<string:policy_id>', methods=['PUT'])
@require_jwt
@write_required
def upsert_renewal_route(policy_id):
    data = request.get_json(silent=True)
    if not data or data.get('new_amount') is None:
        return jsonify({"success": False, "error": "new_amount es obligatorio."}), 400
    try:
        renewal_date = parse_date(data.get('renewal_date'))
        current_amount = parse_float(data.get('current_amount'))
    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400

    result = upsert_renewal_config(
        policy_id,
        data.get('new_amount'),
        renewal_date=renewal_date,
        current_amount=current_amount,
        notes=data.get('notes'),
        actor_id=current_actor_id(),
    )
    return _handle_service_result(result)


@bp.route('/renewals/<string:renewal_id>/status', methods=['POST'])
@require_jwt
@write_required
def update_renewal_status_route(renewal_id):
    data = request.get_json(silent=True) or {}
    status = data.get('status')
    if not status:
        return jsonify({"success": False, "error": "Status missing in request body."}), 400

    result = update_renewal_status(
        renewal_id, status,
        notes=data.get('notes'),
        reopen=bool(data.get('reopen')),
        actor_id=current_actor_id(),
    )
    return _handle_service_result(result)


@bp.route('/renewals/process', methods=['POST'])
@require_jwt
@module_required('renewal_dispatch')
def process_renewals_route():
    """
    Daily dispatch of renewal notices whose send date is today.
    Called by the external scheduler (scripts/process_renewals.py).
    Optional body: {"date": "YYYY-MM-DD"} to run for another day.
    """
    data = request.get_json(silent=True) or {}
    try:
        today = parse_date(data.get('date'))
    except ValueError:
        return jsonify({"success": False, "error": "Fecha inválida."}), 400

    result = run_renewal_dispatch(today=today, actor_id=current_actor_id())
    return _handle_service_result(result)
