# backoffice/api/birthdays.py

from flask import Blueprint, request
from backoffice.jwt_auth import require_jwt, write_required
from backoffice.utils import _handle_service_result, current_actor_id
from backoffice.services.birthdays import get_birthdays, record_send

bp = Blueprint('birthdays', __name__)


@bp.route('/birthdays', methods=['GET'])
@require_jwt
def get_birthdays_route():
    """?month=previous|current|next (default current)."""
    result = get_birthdays(month_filter=request.args.get('month', 'current'))
    return _handle_service_result(result)


@bp.route('/birthdays/<string:client_id>/send', methods=['POST'])
@require_jwt
@write_required
def record_send_route(client_id):
    data = request.get_json(silent=True) or {}
    result = record_send(client_id, data.get('channels'), actor_id=current_actor_id(), year=data.get('year'))
    return _handle_service_result(result)
