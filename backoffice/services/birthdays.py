# backoffice/services/birthdays.py
# Monthly birthday greetings: who has a birthday, who was already greeted.

import calendar
from datetime import date, timedelta
from flask import current_app
from sqlalchemy import extract
from backoffice import db
from backoffice.models import Client, BirthdaySend
from backoffice.services.email_service import send_email, EmailDeliveryError
from backoffice.services.errors import handle_service_error
from backoffice.services.settings import broker_display_name

MONTH_FILTERS = ['previous', 'current', 'next']
CHANNELS = ['whatsapp', 'email']
PENDING_WINDOW_DAYS = 3


def target_month(month_filter, today):
    """Returns (year, month) for the filter, rolling over the year boundary."""
    if month_filter == 'previous':
        return (today.year - 1, 12) if today.month == 1 else (today.year, today.month - 1)
    if month_filter == 'next':
        return (today.year + 1, 1) if today.month == 12 else (today.year, today.month + 1)
    return today.year, today.month


def _birthday_in(year, birth_date):
    # Feb 29 birthdays fall on Feb 28 in common years.
    day = min(birth_date.day, calendar.monthrange(year, birth_date.month)[1])
    return date(year, birth_date.month, day)


def birthday_status(birth_date, year, today, sent):
    if sent:
        return 'enviado'
    birthday = _birthday_in(year, birth_date)
    if birthday == today:
        return 'hoy'
    if birthday < today:
        return 'pasado'
    if birthday < today + timedelta(days=PENDING_WINDOW_DAYS):
        return 'pendiente'
    return 'proximo'


def get_birthdays(month_filter='current', today=None):
    if month_filter not in MONTH_FILTERS:
        return {"success": False, "error": f"Filtro de mes inválido: {month_filter}"}, 400

    today = today or date.today()
    year, month = target_month(month_filter, today)
    try:
        clients = Client.query.filter(
            Client.birth_date.isnot(None),
            extract('month', Client.birth_date) == month,
        ).all()
        sends = {s.client_id: s for s in BirthdaySend.query.filter_by(send_year=year).all()}

        birthdays = []
        for client in clients:
            send = sends.get(client.id)
            birthdays.append({
                'id': f"{client.id}-{year}",
                'client_id': client.id,
                'full_name': client.full_name,
                'birth_date': client.birth_date.isoformat(),
                'birth_day': client.birth_date.day,
                'age': year - client.birth_date.year,
                'email': client.email,
                'phone': client.mobile or client.phone,
                'advisor_name': client.advisor.full_name if client.advisor else None,
                'status': birthday_status(client.birth_date, year, today, send is not None),
                'status_whatsapp': send.status_whatsapp if send else None,
                'status_email': send.status_email if send else None,
            })
        birthdays.sort(key=lambda b: b['birth_day'])

        stats = {
            'total': len(birthdays),
            'sent': sum(1 for b in birthdays if b['status'] == 'enviado'),
            'pending': sum(1 for b in birthdays if b['status'] in ('pendiente', 'hoy', 'proximo')),
            'today': sum(1 for b in birthdays if b['status'] == 'hoy'),
            'passed': sum(1 for b in birthdays if b['status'] == 'pasado'),
        }
        return {"success": True, "year": year, "month": month, "data": birthdays, "stats": stats}
    except Exception as e:
        return handle_service_error(e, "Error fetching birthdays")


def compose_greeting(client, broker_name):
    subject = f"¡Feliz cumpleaños, {client.first_name}!"
    body = (
        f"Estimado(a) {client.full_name},\n\n"
        f"En {broker_name} le deseamos un muy feliz cumpleaños. "
        "Gracias por confiar en nosotros.\n\n"
        "Un cordial saludo."
    )
    return subject, body


def record_send(client_id, channels, actor_id=None, year=None):
    """
    Records the greeting for (client, year). WhatsApp is sent by the user
    from their own device and only registered here; email goes through the
    email service and its outcome is stored on the row.
    """
    client = db.session.get(Client, client_id)
    if client is None:
        return {"success": False, "error": "Cliente no encontrado."}, 404

    channels = [c for c in (channels or []) if c in CHANNELS]
    if not channels:
        return {"success": False, "error": "Selecciona al menos un canal (whatsapp, email)."}, 400
    if 'email' in channels and not client.email:
        return {"success": False, "error": "El cliente no tiene correo registrado."}, 400

    year = year or date.today().year
    if BirthdaySend.query.filter_by(client_id=client_id, send_year=year).first() is not None:
        return {"success": False, "error": "La felicitación de este año ya fue registrada."}, 409

    send = BirthdaySend(client_id=client_id, send_year=year, channels=channels, sent_by=actor_id)
    if 'whatsapp' in channels:
        send.status_whatsapp = 'enviado'
    if 'email' in channels:
        subject, body = compose_greeting(client, broker_display_name())
        try:
            send_email(client.email, subject, text=body)
            send.status_email = 'enviado'
        except EmailDeliveryError as e:
            current_app.logger.warning(f"Birthday email to client {client_id} failed: {e.message}")
            send.status_email = 'error'

    try:
        db.session.add(send)
        db.session.commit()
        return {"success": True, "data": send.to_dict()}
    except Exception as e:
        return handle_service_error(e, f"Error recording birthday send for client {client_id}")
