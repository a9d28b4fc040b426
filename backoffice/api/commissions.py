# backoffice/api/commissions.py
# (Commission batches, entries, verification, rules and advisor assignments.)

from flask import Blueprint, request, jsonify
from backoffice.jwt_auth import require_jwt, write_required, module_required
from backoffice.utils import allowed_file, _handle_service_result, current_actor_id
from backoffice.services.commissions import (
    get_batches,
    create_batch,
    update_batch_status,
    get_batch_entries,
    save_entries,
    update_entry,
    import_entries_from_excel,
    verify_entry,
    verify_batch_entries,
    reconcile_entry,
    get_rules,
    save_rule,
    delete_rule,
    suggested_percentage,
    get_assignments,
    save_assignments,
    get_batch_breakdown,
)

bp = Blueprint('commissions', __name__)


# --- 1. BATCHES ---

@bp.route('/commissions/batches', methods=['GET'])
@require_jwt
@module_required('commissions')
def get_batches_route():
    return _handle_service_result(get_batches(status=request.args.get('status')))


@bp.route('/commissions/batches', methods=['POST'])
@require_jwt
@module_required('commissions')
@write_required
def create_batch_route():
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"success": False, "error": "No data provided in the request"}), 400
    return _handle_service_result(create_batch(data, actor_id=current_actor_id()))


@bp.route('/commissions/batches/<string:batch_id>/status', methods=['POST'])
@require_jwt
@module_required('commissions')
@write_required
def update_batch_status_route(batch_id):
    data = request.get_json(silent=True) or {}
    status = data.get('status')
    if not status:
        return jsonify({"success": False, "error": "Status missing in request body."}), 400
    return _handle_service_result(update_batch_status(batch_id, status, actor_id=current_actor_id()))


@bp.route('/commissions/batches/<string:batch_id>/breakdown', methods=['GET'])
@require_jwt
@module_required('commissions')
def batch_breakdown_route(batch_id):
    """Commission per advisor for one batch."""
    return _handle_service_result(get_batch_breakdown(batch_id), default_error_status=404)


# --- 2. ENTRIES ---

@bp.route('/commissions/batches/<string:batch_id>/entries', methods=['GET'])
@require_jwt
@module_required('commissions')
def get_entries_route(batch_id):
    return _handle_service_result(get_batch_entries(batch_id), default_error_status=404)


@bp.route('/commissions/batches/<string:batch_id>/entries', methods=['POST'])
@require_jwt
@module_required('commissions')
@write_required
def save_entries_route(batch_id):
    data = request.get_json(silent=True) or {}
    entries = data.get('entries')
    if not isinstance(entries, list) or not entries:
        return jsonify({"success": False, "error": "entries debe ser una lista no vacía."}), 400
    return _handle_service_result(save_entries(batch_id, entries, actor_id=current_actor_id()))


@bp.route('/commissions/batches/<string:batch_id>/import', methods=['POST'])
@require_jwt
@module_required('commissions')
@write_required
def import_entries_route(batch_id):
    if 'file' not in request.files:
        return jsonify({"success": False, "error": "No file part in the request"}), 400
    file = request.files['file']
    if file.filename == '':
        return jsonify({"success": False, "error": "No file selected"}), 400
    if not allowed_file(file.filename):
        return jsonify(
            {"success": False, "error": "Invalid file type. Please upload an Excel file (.xlsx, .xls)."}), 400

    result = import_entries_from_excel(batch_id, file, actor_id=current_actor_id())
    return _handle_service_result(result)


@bp.route('/commissions/entries/<string:entry_id>', methods=['PUT'])
@require_jwt
@module_required('commissions')
@write_required
def update_entry_route(entry_id):
    data = request.get_json(silent=True) or {}
    return _handle_service_result(update_entry(entry_id, data))


@bp.route('/commissions/entries/<string:entry_id>/verify', methods=['POST'])
@require_jwt
@module_required('commissions')
@write_required
def verify_entry_route(entry_id):
    return _handle_service_result(verify_entry(entry_id, actor_id=current_actor_id()))


@bp.route('/commissions/batches/<string:batch_id>/verify', methods=['POST'])
@require_jwt
@module_required('commissions')
@write_required
def verify_batch_route(batch_id):
    """Verifies every entry of the batch and reports how many disagree."""
    return _handle_service_result(verify_batch_entries(batch_id, actor_id=current_actor_id()))


@bp.route('/commissions/entries/<string:entry_id>/reconcile', methods=['POST'])
@require_jwt
@module_required('commissions')
@write_required
def reconcile_entry_route(entry_id):
    """Accepts a flagged amount: {"note": "..."}."""
    data = request.get_json(silent=True) or {}
    return _handle_service_result(reconcile_entry(entry_id, data.get('note'), actor_id=current_actor_id()))


# --- 3. RULES ---

@bp.route('/commissions/rules', methods=['GET'])
@require_jwt
@module_required('commissions')
def get_rules_route():
    return _handle_service_result(get_rules())


@bp.route('/commissions/rules', methods=['POST'])
@require_jwt
@module_required('commissions')
@write_required
def create_rule_route():
    data = request.get_json(silent=True) or {}
    return _handle_service_result(save_rule(data))


@bp.route('/commissions/rules/<string:rule_id>', methods=['PUT'])
@require_jwt
@module_required('commissions')
@write_required
def update_rule_route(rule_id):
    data = request.get_json(silent=True) or {}
    return _handle_service_result(save_rule(data, rule_id))


@bp.route('/commissions/rules/<string:rule_id>', methods=['DELETE'])
@require_jwt
@module_required('commissions')
@write_required
def delete_rule_route(rule_id):
    return _handle_service_result(delete_rule(rule_id))


@bp.route('/commissions/rules/suggest', methods=['GET'])
@require_jwt
@module_required('commissions')
def suggest_rule_route():
    percentage = suggested_percentage(
        request.args.get('advisor_id'),
        request.args.get('insurer_id'),
        request.args.get('plan_type'),
    )
    return jsonify({"success": True, "percentage": percentage}), 200


# --- 4. ASSIGNMENTS ---

@bp.route('/commissions/assignments', methods=['GET'])
@require_jwt
@module_required('commissions')
def get_assignments_route():
    entry_ids = [e for e in request.args.get('entry_ids', '').split(',') if e]
    return _handle_service_result(get_assignments(entry_ids))


@bp.route('/commissions/entries/<string:entry_id>/assignments', methods=['PUT'])
@require_jwt
@module_required('commissions')
@write_required
def save_assignments_route(entry_id):
    """Replaces every advisor assignment of the entry."""
    data = request.get_json(silent=True) or {}
    items = data.get('assignments')
    if not isinstance(items, list):
        return jsonify({"success": False, "error": "assignments debe ser una lista."}), 400
    return _handle_service_result(save_assignments(entry_id, items, actor_id=current_actor_id()))
