# backoffice/services/consumptions.py
# Policy consumptions: each use of a policy's coverage, typed by a usage catalog.

from datetime import datetime
from flask import current_app
from sqlalchemy import func
from backoffice import db
from backoffice.models import Policy, PolicyConsumption, UsageType
from backoffice.services.audit import record_audit
from backoffice.services.errors import handle_service_error
from backoffice.utils import parse_date, parse_float

UNTYPED_LABEL = 'Sin tipo'


# --- 1. USAGE TYPES ---

def get_usage_types(include_inactive=False):
    query = UsageType.query.order_by(UsageType.name)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return {"success": True, "data": [t.to_dict() for t in query.all()]}


def create_usage_type(name):
    name = (name or '').strip()
    if not name:
        return {"success": False, "error": "El nombre del tipo de uso es obligatorio."}, 400
    if UsageType.query.filter(func.lower(UsageType.name) == name.lower()).first():
        return {"success": False, "error": f"El tipo de uso '{name}' ya existe."}, 409
    try:
        usage_type = UsageType(name=name)
        db.session.add(usage_type)
        db.session.commit()
        current_app.logger.info(f"Usage type created: {name}")
        return {"success": True, "data": usage_type.to_dict()}
    except Exception as e:
        return handle_service_error(e, "Error creating usage type")


# --- 2. CONSUMPTIONS ---

def get_consumptions(policy_id=None, usage_type_id=None, from_date=None, to_date=None, beneficiary=None):
    """Live consumptions, newest first. beneficiary matches by substring."""
    try:
        query = PolicyConsumption.query.filter_by(deleted=False)
        if policy_id:
            query = query.filter_by(policy_id=policy_id)
        if usage_type_id:
            query = query.filter_by(usage_type_id=usage_type_id)
        start = parse_date(from_date)
        end = parse_date(to_date)
        if start:
            query = query.filter(PolicyConsumption.usage_date >= start)
        if end:
            query = query.filter(PolicyConsumption.usage_date <= end)
        if beneficiary:
            query = query.filter(PolicyConsumption.beneficiary_name.ilike(f'%{beneficiary}%'))
        rows = query.order_by(PolicyConsumption.usage_date.desc()).all()
        return {"success": True, "data": [r.to_dict() for r in rows]}
    except ValueError as e:
        return {"success": False, "error": str(e)}, 400


def get_consumption_summary(policy_id):
    """Totals for one policy, overall and per usage type."""
    if db.session.get(Policy, policy_id) is None:
        return {"success": False, "error": "Póliza no encontrada."}, 404

    rows = PolicyConsumption.query.filter_by(policy_id=policy_id, deleted=False).all()
    by_type = {}
    for row in rows:
        label = row.usage_type.name if row.usage_type else UNTYPED_LABEL
        bucket = by_type.setdefault(label, {'type_name': label, 'count': 0, 'total_bs': 0.0, 'total_usd': 0.0})
        bucket['count'] += 1
        bucket['total_bs'] += row.amount_bs or 0.0
        bucket['total_usd'] += row.amount_usd or 0.0

    for bucket in by_type.values():
        bucket['total_bs'] = round(bucket['total_bs'], 2)
        bucket['total_usd'] = round(bucket['total_usd'], 2)

    return {"success": True, "data": {
        'policy_id': policy_id,
        'count': len(rows),
        'total_bs': round(sum(r.amount_bs or 0.0 for r in rows), 2),
        'total_usd': round(sum(r.amount_usd or 0.0 for r in rows), 2),
        'by_type': sorted(by_type.values(), key=lambda b: b['type_name']),
    }}


def save_consumption(data, consumption_id=None, actor_id=None):
    if consumption_id:
        consumption = db.session.get(PolicyConsumption, consumption_id)
        if consumption is None or consumption.deleted:
            return {"success": False, "error": "Consumo no encontrado."}, 404
    else:
        policy_id = data.get('policy_id')
        if not policy_id or db.session.get(Policy, policy_id) is None:
            return {"success": False, "error": "Póliza no encontrada."}, 404
        consumption = PolicyConsumption(policy_id=policy_id, created_by=actor_id)

    usage_type_id = data.get('usage_type_id')
    if usage_type_id and db.session.get(UsageType, usage_type_id) is None:
        return {"success": False, "error": "Tipo de uso no encontrado."}, 400

    try:
        if 'usage_date' in data or not consumption_id:
            usage_date = parse_date(data.get('usage_date'))
            if usage_date is None:
                raise ValueError("La fecha de uso es obligatoria")
            consumption.usage_date = usage_date
        for field in ('amount_bs', 'amount_usd'):
            if field in data or not consumption_id:
                value = parse_float(data.get(field), 0.0)
                if value < 0:
                    raise ValueError("Los montos no pueden ser negativos")
                setattr(consumption, field, value)
    except ValueError as e:
        if consumption_id:
            db.session.rollback()
        return {"success": False, "error": str(e)}, 400

    if 'usage_type_id' in data:
        consumption.usage_type_id = usage_type_id or None
    if 'beneficiary_name' in data:
        consumption.beneficiary_name = (data.get('beneficiary_name') or '').strip() or None
    if 'description' in data:
        consumption.description = data['description']

    try:
        if not consumption_id:
            db.session.add(consumption)
            db.session.flush()
        record_audit('consumos', 'consumption_saved', 'policy_consumption', consumption.id, actor_id,
                     {'policy_id': consumption.policy_id, 'amount_usd': consumption.amount_usd})
        db.session.commit()
        return {"success": True, "data": consumption.to_dict()}
    except Exception as e:
        return handle_service_error(e, "Error saving policy consumption")


def delete_consumption(consumption_id, actor_id=None):
    """Soft delete. The row stays for the audit trail but leaves every total."""
    consumption = db.session.get(PolicyConsumption, consumption_id)
    if consumption is None or consumption.deleted:
        return {"success": False, "error": "Consumo no encontrado."}, 404
    try:
        consumption.deleted = True
        consumption.deleted_at = datetime.utcnow()
        consumption.deleted_by = actor_id
        record_audit('consumos', 'consumption_deleted', 'policy_consumption', consumption.id, actor_id,
                     {'policy_id': consumption.policy_id})
        db.session.commit()
        current_app.logger.info(f"Policy consumption {consumption_id} deleted")
        return {"success": True}
    except Exception as e:
        return handle_service_error(e, f"Error deleting policy consumption {consumption_id}")
