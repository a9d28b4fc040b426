# backoffice/services/clients.py
"""
Client portfolio: advisors, the insurer/product catalog, clients and their
policies, CSV export and the dashboard counters.
"""

import io
from datetime import date, datetime, timedelta
import pandas as pd
from sqlalchemy import or_
from backoffice import db
from backoffice.models import Advisor, Insurer, Product, Client, Policy
from backoffice.services.errors import handle_service_error
from backoffice.services.premiums import INSTALLMENT_DIVISORS, calculate_installment, installment_label
from backoffice.utils import parse_date, parse_float

POLICY_STATUSES = ['vigente', 'vencida', 'cancelada', 'pendiente', 'en_tramite']

CLIENT_FIELDS = ('first_name', 'last_name', 'identification', 'email', 'phone', 'mobile', 'address', 'advisor_id')
ADVISOR_FIELDS = ('full_name', 'email', 'phone', 'is_active')

STATUS_LABELS = {
    'vigente': 'Vigente',
    'pendiente': 'Pendiente',
    'cancelada': 'Cancelada',
    'vencida': 'Vencida',
    'en_tramite': 'En trámite',
}


# --- 1. ADVISORS ---

def get_advisors(active_only=False):
    query = Advisor.query.order_by(Advisor.full_name)
    if active_only:
        query = query.filter_by(is_active=True)
    return {"success": True, "data": [a.to_dict() for a in query.all()]}


def save_advisor(data, advisor_id=None):
    if not advisor_id and not (data.get('full_name') or '').strip():
        return {"success": False, "error": "El nombre del asesor es obligatorio."}, 400

    if advisor_id:
        advisor = db.session.get(Advisor, advisor_id)
        if advisor is None:
            return {"success": False, "error": "Asesor no encontrado."}, 404
    else:
        advisor = Advisor()
        db.session.add(advisor)

    try:
        for field in ADVISOR_FIELDS:
            if field in data:
                setattr(advisor, field, data[field])
        db.session.commit()
        return {"success": True, "data": advisor.to_dict()}
    except Exception as e:
        return handle_service_error(e, "Error saving advisor")


def delete_advisor(advisor_id):
    advisor = db.session.get(Advisor, advisor_id)
    if advisor is None:
        return {"success": False, "error": "Asesor no encontrado."}, 404
    try:
        db.session.delete(advisor)
        db.session.commit()
        return {"success": True}
    except Exception as e:
        return handle_service_error(e, f"Error deleting advisor {advisor_id}")


# --- 2. CATALOG ---

def get_catalog():
    insurers = Insurer.query.order_by(Insurer.name).all()
    products = Product.query.order_by(Product.name).all()
    return {
        "success": True,
        "insurers": [i.to_dict() for i in insurers],
        "products": [p.to_dict() for p in products],
        "payment_frequencies": [
            {"value": freq, "label": installment_label(freq)} for freq in INSTALLMENT_DIVISORS
        ],
    }


def create_insurer(data):
    if not (data.get('name') or '').strip():
        return {"success": False, "error": "El nombre de la aseguradora es obligatorio."}, 400
    try:
        insurer = Insurer(name=data['name'].strip(), short_name=data.get('short_name'))
        db.session.add(insurer)
        db.session.commit()
        return {"success": True, "data": insurer.to_dict()}
    except Exception as e:
        return handle_service_error(e, "Error creating insurer")


def create_product(data):
    if not (data.get('name') or '').strip():
        return {"success": False, "error": "El nombre del producto es obligatorio."}, 400
    try:
        product = Product(name=data['name'].strip(), insurer_id=data.get('insurer_id'), category=data.get('category'))
        db.session.add(product)
        db.session.commit()
        return {"success": True, "data": product.to_dict()}
    except Exception as e:
        return handle_service_error(e, "Error creating product")


# --- 3. CLIENTS ---

def _client_query(search=None, advisor_id=None, insurer_id=None, policy_status=None):
    query = Client.query
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Client.first_name.ilike(pattern),
            Client.last_name.ilike(pattern),
            Client.identification.ilike(pattern),
            Client.email.ilike(pattern),
        ))
    if advisor_id:
        query = query.filter(Client.advisor_id == advisor_id)
    if insurer_id or policy_status:
        policy_filter = Policy.client_id == Client.id
        if insurer_id:
            policy_filter = policy_filter & (Policy.insurer_id == insurer_id)
        if policy_status:
            policy_filter = policy_filter & (Policy.status == policy_status)
        query = query.filter(Client.policies.any(policy_filter))
    return query.order_by(Client.last_name, Client.first_name)


def get_clients(search=None, advisor_id=None, insurer_id=None, policy_status=None):
    try:
        clients = _client_query(search, advisor_id, insurer_id, policy_status).all()
        return {"success": True, "data": [c.to_dict() for c in clients]}
    except Exception as e:
        return handle_service_error(e, "Error fetching clients")


def get_client(client_id):
    client = db.session.get(Client, client_id)
    if client is None:
        return {"success": False, "error": "Cliente no encontrado."}, 404
    return {"success": True, "data": client.to_dict(include_policies=True)}


def save_client(data, client_id=None):
    """Creates a client, or updates the given fields of an existing one."""
    if client_id:
        client = db.session.get(Client, client_id)
        if client is None:
            return {"success": False, "error": "Cliente no encontrado."}, 404
    else:
        if not (data.get('first_name') or '').strip() or not (data.get('last_name') or '').strip():
            return {"success": False, "error": "Nombres y apellidos son obligatorios."}, 400
        client = Client()
        db.session.add(client)

    try:
        for field in CLIENT_FIELDS:
            if field in data:
                setattr(client, field, data[field] or None)
        if 'birth_date' in data:
            client.birth_date = parse_date(data['birth_date'])
    except ValueError:
        db.session.rollback()
        return {"success": False, "error": "Fecha de nacimiento inválida."}, 400

    try:
        db.session.commit()
        return {"success": True, "data": client.to_dict(include_policies=True)}
    except Exception as e:
        return handle_service_error(e, "Error saving client")


# --- 4. POLICIES ---

def _invalid_policy(message):
    # Discards attribute changes already applied to a persistent policy.
    db.session.rollback()
    return {"success": False, "error": message}, 400


def save_policy(data, policy_id=None):
    """
    Creates or updates a policy. The end date may not precede the start
    date and the premium may not be negative.
    """
    if policy_id:
        policy = db.session.get(Policy, policy_id)
        if policy is None:
            return {"success": False, "error": "Póliza no encontrada."}, 404
    else:
        if not data.get('client_id') or db.session.get(Client, data['client_id']) is None:
            return {"success": False, "error": "Cliente no encontrado."}, 400
        policy = Policy(client_id=data['client_id'])

    try:
        for field in ('insurer_id', 'product_id', 'policy_number'):
            if field in data:
                setattr(policy, field, data[field] or None)
        for field in ('start_date', 'end_date', 'premium_payment_date'):
            if field in data:
                setattr(policy, field, parse_date(data[field]))
        if 'premium' in data:
            policy.premium = parse_float(data['premium'])
    except ValueError as e:
        return _invalid_policy(f"Datos de póliza inválidos: {e}")

    frequency = data.get('payment_frequency', policy.payment_frequency or 'anual')
    if frequency not in INSTALLMENT_DIVISORS:
        return _invalid_policy(f"Frecuencia de pago inválida: {frequency}")
    policy.payment_frequency = frequency

    status = data.get('status', policy.status or 'vigente')
    if status not in POLICY_STATUSES:
        return _invalid_policy(f"Estado de póliza inválido: {status}")
    policy.status = status

    if policy.start_date is None or policy.end_date is None:
        return _invalid_policy("Fecha de inicio y de renovación son obligatorias.")
    if policy.end_date < policy.start_date:
        return _invalid_policy("La fecha de renovación no puede ser anterior a la de inicio.")
    if policy.premium is not None and policy.premium < 0:
        return _invalid_policy("La prima no puede ser negativa.")

    try:
        if not policy_id:
            db.session.add(policy)
        db.session.commit()
        data = policy.to_dict()
        data['installment'] = calculate_installment(policy.premium, policy.payment_frequency)
        return {"success": True, "data": data}
    except Exception as e:
        return handle_service_error(e, "Error saving policy")


# --- 5. EXPORT & DASHBOARD ---

def export_clients_csv(search=None, advisor_id=None, insurer_id=None, policy_status=None):
    """
    One row per policy (clients without policies get a single row).
    Returns the CSV text; the blueprint wraps it in a download response.
    """
    rows = []
    for client in _client_query(search, advisor_id, insurer_id, policy_status).all():
        holder = {
            'Cédula Tomador': client.identification or '',
            'Nombres Tomador': client.first_name,
            'Apellidos Tomador': client.last_name,
            'Email Tomador': client.email or '',
            'Teléfono Tomador': client.phone or '',
            'Móvil Tomador': client.mobile or '',
            'Dirección Tomador': client.address or '',
            'F. Nacimiento Tomador': client.birth_date.isoformat() if client.birth_date else '',
            'Asesor': client.advisor.full_name if client.advisor else '',
        }
        if not client.policies:
            rows.append({'Número Póliza': '', **holder})
            continue
        for policy in client.policies:
            rows.append({
                'Número Póliza': policy.policy_number or '',
                'Aseguradora': policy.insurer.name if policy.insurer else '',
                'Producto': policy.product.name if policy.product else '',
                'Fecha Inicio': policy.start_date.isoformat() if policy.start_date else '',
                'Fecha Renovación': policy.end_date.isoformat() if policy.end_date else '',
                'Estado': STATUS_LABELS.get(policy.status, policy.status or ''),
                'Prima Anual': policy.premium if policy.premium is not None else '',
                'Frecuencia Pago': installment_label(policy.payment_frequency),
                'Fecha Pago Prima': policy.premium_payment_date.isoformat() if policy.premium_payment_date else '',
                **holder,
            })

    buffer = io.StringIO()
    pd.DataFrame(rows).to_csv(buffer, index=False)
    return buffer.getvalue()


def get_dashboard_stats(today=None):
    today = today or date.today()
    try:
        month_start = datetime(today.year, today.month, 1)
        renewals = Policy.query.filter(
            Policy.status == 'vigente',
            Policy.end_date >= today,
            Policy.end_date <= today + timedelta(days=30),
        ).all()
        week_limit = today + timedelta(days=7)

        return {
            "success": True,
            "data": {
                "clientes": {
                    "total": Client.query.count(),
                    "thisMonth": Client.query.filter(Client.created_at >= month_start).count(),
                },
                "renovaciones": {
                    "count": len(renewals),
                    "amount": round(sum(p.premium or 0.0 for p in renewals), 2),
                    "thisWeek": sum(1 for p in renewals if p.end_date <= week_limit),
                },
            },
        }
    except Exception as e:
        return handle_service_error(e, "Error computing dashboard stats")
