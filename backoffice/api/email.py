# backoffice/api/email.py

from flask import Blueprint, request, jsonify
from backoffice.jwt_auth import require_jwt
from backoffice.services.email_service import send_email, EmailDeliveryError

bp = Blueprint('email', __name__)


@bp.route('/email/send', methods=['POST'])
@require_jwt
def send_email_route():
    """
    Sends one message through the email provider.

    Body: {"to", "subject", "html" | "text", "from"?}

    Response:
        200: {"success": true, "id": <provider id>}
        400: missing fields
        500: provider not configured
        4xx/5xx: provider status on rejection, 502 when unreachable
    """
    data = request.get_json(silent=True) or {}
    to = data.get('to')
    subject = data.get('subject')
    html = data.get('html')
    text = data.get('text')

    if not to or not subject or not (html or text):
        return jsonify({"success": False, "error": "Missing required fields: to, subject, and html or text"}), 400

    try:
        message_id = send_email(to, subject, html=html, text=text, sender=data.get('from'))
    except EmailDeliveryError as e:
        body = {"success": False, "error": e.message}
        if e.details:
            body["details"] = e.details
        return jsonify(body), e.status_code

    return jsonify({"success": True, "id": message_id}), 200
