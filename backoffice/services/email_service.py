# backoffice/services/email_service.py
# This service is responsible for all outgoing email (Resend HTTP API).

import requests
from flask import current_app


class EmailDeliveryError(Exception):
    """Raised when the provider rejects a message or cannot be reached."""
    def __init__(self, message, status_code=500, details=None):
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


def _ensure_configured():
    if not current_app.config.get('RESEND_API_KEY'):
        raise EmailDeliveryError("RESEND_API_KEY not configured", 500)
    if not current_app.config.get('MAIL_DEFAULT_SENDER'):
        raise EmailDeliveryError("MAIL_DEFAULT_SENDER not configured", 500)


def send_email(to, subject, html=None, text=None, sender=None):
    """
    Sends one message through Resend and returns the provider message id.

    NOTE: Runs synchronously. The caller decides what a failure means;
    nothing here retries.

    Raises:
        EmailDeliveryError: missing configuration, provider rejection
            (carrying the provider's HTTP status) or a transport failure.
    """
    _ensure_configured()
    config = current_app.config

    recipients = to if isinstance(to, list) else [to]
    payload = {
        'from': sender or config['MAIL_DEFAULT_SENDER'],
        'to': recipients,
        'subject': subject,
    }
    if html:
        payload['html'] = html
    if text:
        payload['text'] = text

    try:
        response = requests.post(
            config['RESEND_API_URL'],
            json=payload,
            headers={'Authorization': f"Bearer {config['RESEND_API_KEY']}"},
            timeout=config['MAIL_TIMEOUT_SECONDS'],
        )
    except requests.RequestException as e:
        current_app.logger.error(f"[send-email] Connection error: {e}")
        raise EmailDeliveryError(f"Network error contacting email provider: {e}", 502)

    try:
        data = response.json()
    except ValueError:
        data = {}

    if not response.ok:
        current_app.logger.error(f"[send-email] Resend error ({response.status_code}): {data}")
        raise EmailDeliveryError(data.get('message') or 'Failed to send email', response.status_code, details=data)

    current_app.logger.info(f"[send-email] Email sent successfully. ID: {data.get('id')}")
    return data.get('id')


def deliver_renewal_notice(to, subject, body):
    """
    Renewal notices honour RENEWAL_EMAIL_DELIVERY: 'log' writes the composed
    message to the log and reports success, 'resend' sends it for real.
    """
    mode = current_app.config.get('RENEWAL_EMAIL_DELIVERY', 'log')
    if mode == 'resend':
        return send_email(to, subject, text=body)

    current_app.logger.info(f"[process-renewals] Email (log only) to {to}: {subject}\n{body}")
    return None
