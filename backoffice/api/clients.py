# backoffice/api/clients.py
# (Clients, policies, advisors, catalog, attachments, dashboard and bulk actions.)

from datetime import date
from flask import Blueprint, request, jsonify, g, Response
from backoffice.jwt_auth import require_jwt, write_required
from backoffice.utils import _handle_service_result, current_actor_id
from backoffice.services.clients import (
    get_advisors,
    save_advisor,
    delete_advisor,
    get_catalog,
    create_insurer,
    create_product,
    get_clients,
    get_client,
    save_client,
    save_policy,
    export_clients_csv,
    get_dashboard_stats,
)
from backoffice.services.attachments import (
    list_attachments,
    register_attachment,
    get_signed_url,
    delete_attachment,
)
from backoffice.services.bulk import bulk_delete_resource

bp = Blueprint('clients', __name__)


def _client_filters():
    return {
        'search': request.args.get('search'),
        'advisor_id': request.args.get('advisor_id'),
        'insurer_id': request.args.get('insurer_id'),
        'policy_status': request.args.get('policy_status'),
    }


# --- 1. DASHBOARD ---

@bp.route('/dashboard/stats', methods=['GET'])
@require_jwt
def dashboard_stats_route():
    result = get_dashboard_stats()
    return _handle_service_result(result)


# --- 2. ADVISORS ---

@bp.route('/advisors', methods=['GET'])
@require_jwt
def get_advisors_route():
    active_only = request.args.get('active') == 'true'
    return _handle_service_result(get_advisors(active_only=active_only))


@bp.route('/advisors', methods=['POST'])
@require_jwt
@write_required
def create_advisor_route():
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"success": False, "error": "No data provided in the request"}), 400
    return _handle_service_result(save_advisor(data))


@bp.route('/advisors/<string:advisor_id>', methods=['PUT'])
@require_jwt
@write_required
def update_advisor_route(advisor_id):
    data = request.get_json(silent=True) or {}
    return _handle_service_result(save_advisor(data, advisor_id))


@bp.route('/advisors/<string:advisor_id>', methods=['DELETE'])
@require_jwt
@write_required
def delete_advisor_route(advisor_id):
    return _handle_service_result(delete_advisor(advisor_id))


# --- 3. CATALOG ---

@bp.route('/catalog', methods=['GET'])
@require_jwt
def get_catalog_route():
    """Insurers, products and payment frequencies for the policy form."""
    return _handle_service_result(get_catalog())


@bp.route('/insurers', methods=['POST'])
@require_jwt
@write_required
def create_insurer_route():
    data = request.get_json(silent=True) or {}
    return _handle_service_result(create_insurer(data))


@bp.route('/products', methods=['POST'])
@require_jwt
@write_required
def create_product_route():
    data = request.get_json(silent=True) or {}
    return _handle_service_result(create_product(data))


# --- 4. CLIENTS & POLICIES ---

@bp.route('/clients', methods=['GET'])
@require_jwt
def get_clients_route():
    result = get_clients(**_client_filters())
    return _handle_service_result(result)


@bp.route('/clients/export', methods=['GET'])
@require_jwt
def export_clients_route():
    csv_text = export_clients_csv(**_client_filters())
    filename = f"clientes_{date.today().isoformat()}.csv"
    return Response(
        csv_text,
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={filename}'},
    )


@bp.route('/clients/<string:client_id>', methods=['GET'])
@require_jwt
def get_client_route(client_id):
    result = get_client(client_id)
    return _handle_service_result(result, default_error_status=404)


@bp.route('/clients', methods=['POST'])
@require_jwt
@write_required
def create_client_route():
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"success": False, "error": "No data provided in the request"}), 400
    return _handle_service_result(save_client(data))


@bp.route('/clients/<string:client_id>', methods=['PUT'])
@require_jwt
@write_required
def update_client_route(client_id):
    data = request.get_json(silent=True) or {}
    return _handle_service_result(save_client(data, client_id))


@bp.route('/policies', methods=['POST'])
@require_jwt
@write_required
def create_policy_route():
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"success": False, "error": "No data provided in the request"}), 400
    return _handle_service_result(save_policy(data))


@bp.route('/policies/<string:policy_id>', methods=['PUT'])
@require_jwt
@write_required
def update_policy_route(policy_id):
    data = request.get_json(silent=True) or {}
    return _handle_service_result(save_policy(data, policy_id))


# --- 5. ATTACHMENTS ---

@bp.route('/clients/<string:client_id>/attachments', methods=['GET'])
@require_jwt
def list_attachments_route(client_id):
    result = list_attachments(client_id, policy_id=request.args.get('policy_id'))
    return _handle_service_result(result)


@bp.route('/clients/<string:client_id>/attachments', methods=['POST'])
@require_jwt
@write_required
def register_attachment_route(client_id):
    """Stores the metadata of a file the browser already uploaded to storage."""
    data = request.get_json(silent=True) or {}
    return _handle_service_result(register_attachment(client_id, data, actor_id=current_actor_id()))


@bp.route('/attachments/<string:attachment_id>/url', methods=['GET'])
@require_jwt
def attachment_url_route(attachment_id):
    return _handle_service_result(get_signed_url(attachment_id))


@bp.route('/attachments/<string:attachment_id>', methods=['DELETE'])
@require_jwt
@write_required
def delete_attachment_route(attachment_id):
    return _handle_service_result(delete_attachment(attachment_id))


# --- 6. BULK ACTIONS ---

@bp.route('/bulk/<string:resource>/delete', methods=['POST'])
@require_jwt
@write_required
def bulk_delete_route(resource):
    """
    Deletes a multi-select of records: {"ids": [...]}.
    Returns the ids deleted and the per-row failures.
    """
    if resource.startswith('commission_') and not g.current_user.can_access('commissions'):
        return jsonify({"success": False, "message": "No tienes permisos para realizar esta acción."}), 403

    data = request.get_json(silent=True) or {}
    result = bulk_delete_resource(resource, data.get('ids'))
    return _handle_service_result(result)
