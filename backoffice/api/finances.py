# backoffice/api/finances.py
# (Finance ledger routes. Every route is gated by the 'finances' module roles.)

from flask import Blueprint, request, jsonify
from backoffice.jwt_auth import require_jwt, write_required, module_required
from backoffice.utils import _handle_service_result, current_actor_id
from backoffice.services.finances import (
    LEDGER_MODELS,
    get_exchange_rates,
    get_latest_rates,
    record_exchange_rate,
    get_ledger,
    save_ledger_entry,
    delete_ledger_entry,
    mark_settled,
    get_monthly_summary,
    get_employees,
    save_employee,
    deactivate_employee,
)

bp = Blueprint('finances', __name__)


def _unknown_kind(kind):
    return jsonify({"success": False, "error": f"Tipo de registro no soportado: {kind}"}), 404


# --- 1. EXCHANGE RATES ---

@bp.route('/finances/exchange-rates', methods=['GET'])
@require_jwt
@module_required('finances')
def get_rates_route():
    result = get_exchange_rates(
        currency=request.args.get('currency'),
        source=request.args.get('source'),
        limit=request.args.get('limit', 100, type=int),
    )
    return _handle_service_result(result)


@bp.route('/finances/exchange-rates/latest', methods=['GET'])
@require_jwt
@module_required('finances')
def latest_rates_route():
    return _handle_service_result(get_latest_rates())


@bp.route('/finances/exchange-rates', methods=['POST'])
@require_jwt
@module_required('finances')
@write_required
def record_rate_route():
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"success": False, "error": "No data provided in the request"}), 400
    return _handle_service_result(record_exchange_rate(data, actor_id=current_actor_id()))


# --- 2. LEDGER (INCOME, EXPENSES, DEBTS, LOANS) ---

@bp.route('/finances/<string:kind>', methods=['GET'])
@require_jwt
@module_required('finances')
def get_ledger_route(kind):
    """kind: income, expense, debt or loan. ?month=YYYY-MM, ?unpaid=true keeps open rows."""
    if kind not in LEDGER_MODELS:
        return _unknown_kind(kind)
    result = get_ledger(kind, month=request.args.get('month'), unpaid_only=request.args.get('unpaid') == 'true')
    return _handle_service_result(result)


@bp.route('/finances/<string:kind>', methods=['POST'])
@require_jwt
@module_required('finances')
@write_required
def create_ledger_route(kind):
    if kind not in LEDGER_MODELS:
        return _unknown_kind(kind)
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"success": False, "error": "No data provided in the request"}), 400
    return _handle_service_result(save_ledger_entry(kind, data, actor_id=current_actor_id()))


@bp.route('/finances/<string:kind>/<string:entry_id>', methods=['PUT'])
@require_jwt
@module_required('finances')
@write_required
def update_ledger_route(kind, entry_id):
    if kind not in LEDGER_MODELS:
        return _unknown_kind(kind)
    data = request.get_json(silent=True) or {}
    return _handle_service_result(save_ledger_entry(kind, data, entry_id))


@bp.route('/finances/<string:kind>/<string:entry_id>', methods=['DELETE'])
@require_jwt
@module_required('finances')
@write_required
def delete_ledger_route(kind, entry_id):
    if kind not in LEDGER_MODELS:
        return _unknown_kind(kind)
    return _handle_service_result(delete_ledger_entry(kind, entry_id))


@bp.route('/finances/<string:kind>/<string:entry_id>/settle', methods=['POST'])
@require_jwt
@module_required('finances')
@write_required
def settle_ledger_route(kind, entry_id):
    """Body: {"settled": true|false}. Paid for expenses and debts, collected for loans."""
    if kind not in LEDGER_MODELS:
        return _unknown_kind(kind)
    data = request.get_json(silent=True) or {}
    return _handle_service_result(mark_settled(kind, entry_id, settled=data.get('settled', True)))


@bp.route('/finances/summary/<string:month>', methods=['GET'])
@require_jwt
@module_required('finances')
def monthly_summary_route(month):
    return _handle_service_result(get_monthly_summary(month))


# --- 3. PAYROLL ---

@bp.route('/finances/payroll', methods=['GET'])
@require_jwt
@module_required('finances')
def get_employees_route():
    return _handle_service_result(get_employees(include_inactive=request.args.get('all') == 'true'))


@bp.route('/finances/payroll', methods=['POST'])
@require_jwt
@module_required('finances')
@write_required
def create_employee_route():
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"success": False, "error": "No data provided in the request"}), 400
    return _handle_service_result(save_employee(data, actor_id=current_actor_id()))


@bp.route('/finances/payroll/<string:employee_id>', methods=['PUT'])
@require_jwt
@module_required('finances')
@write_required
def update_employee_route(employee_id):
    data = request.get_json(silent=True) or {}
    return _handle_service_result(save_employee(data, employee_id))


@bp.route('/finances/payroll/<string:employee_id>', methods=['DELETE'])
@require_jwt
@module_required('finances')
@write_required
def deactivate_employee_route(employee_id):
    return _handle_service_result(deactivate_employee(employee_id))
