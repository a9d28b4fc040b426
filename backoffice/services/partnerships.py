# backoffice/services/partnerships.py
"""
Commercial partners, the services they offer to our clients and the
discount codes issued against those services.
"""

import secrets
from datetime import datetime
from flask import current_app
from backoffice import db
from backoffice.models import Partner, PartnerService, DiscountCode
from backoffice.services.errors import handle_service_error
from backoffice.utils import parse_float

CODE_PREFIX = 'KVR-'
CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
CODE_LENGTH = 8
CODE_ATTEMPTS = 5

DISCOUNT_TYPES = ['porcentaje', 'monto_fijo']
CODE_STATUSES = ['generado', 'enviado', 'utilizado', 'expirado']

PARTNER_FIELDS = ('name', 'contact_name', 'phone', 'email', 'rif', 'address', 'category', 'notes', 'is_active')


# --- 1. PARTNERS ---

def get_partners(active_only=False):
    query = Partner.query.order_by(Partner.name)
    if active_only:
        query = query.filter_by(is_active=True)
    return {"success": True, "data": [p.to_dict() for p in query.all()]}


def save_partner(data, partner_id=None):
    if partner_id:
        partner = db.session.get(Partner, partner_id)
        if partner is None:
            return {"success": False, "error": "Aliado no encontrado."}, 404
    else:
        if not (data.get('name') or '').strip():
            return {"success": False, "error": "El nombre del aliado es obligatorio."}, 400
        partner = Partner()
        db.session.add(partner)

    try:
        for field in PARTNER_FIELDS:
            if field in data:
                setattr(partner, field, data[field])
        db.session.commit()
        return {"success": True, "data": partner.to_dict()}
    except Exception as e:
        return handle_service_error(e, "Error saving partner")


def delete_partner(partner_id):
    partner = db.session.get(Partner, partner_id)
    if partner is None:
        return {"success": False, "error": "Aliado no encontrado."}, 404
    try:
        db.session.delete(partner)
        db.session.commit()
        return {"success": True}
    except Exception as e:
        return handle_service_error(e, f"Error deleting partner {partner_id}")


# --- 2. SERVICES ---

def save_service(partner_id, data, service_id=None):
    if db.session.get(Partner, partner_id) is None:
        return {"success": False, "error": "Aliado no encontrado."}, 404

    discount_type = data.get('discount_type', 'porcentaje')
    if discount_type not in DISCOUNT_TYPES:
        return {"success": False, "error": f"Tipo de descuento inválido: {discount_type}"}, 400
    try:
        discount_value = parse_float(data.get('discount_value'), 0.0)
    except ValueError as e:
        return {"success": False, "error": str(e)}, 400
    if discount_value < 0 or (discount_type == 'porcentaje' and discount_value > 100):
        return {"success": False, "error": "El valor del descuento está fuera de rango."}, 400

    if service_id:
        service = db.session.get(PartnerService, service_id)
        if service is None or service.partner_id != partner_id:
            return {"success": False, "error": "Servicio no encontrado."}, 404
    else:
        if not (data.get('name') or '').strip():
            return {"success": False, "error": "El nombre del servicio es obligatorio."}, 400
        service = PartnerService(partner_id=partner_id)
        db.session.add(service)

    try:
        for field in ('name', 'description', 'is_active'):
            if field in data:
                setattr(service, field, data[field])
        service.discount_type = discount_type
        service.discount_value = discount_value
        db.session.commit()
        return {"success": True, "data": service.to_dict()}
    except Exception as e:
        return handle_service_error(e, "Error saving partner service")


def delete_service(service_id):
    service = db.session.get(PartnerService, service_id)
    if service is None:
        return {"success": False, "error": "Servicio no encontrado."}, 404
    try:
        db.session.delete(service)
        db.session.commit()
        return {"success": True}
    except Exception as e:
        return handle_service_error(e, f"Error deleting partner service {service_id}")


# --- 3. DISCOUNT CODES ---

def generate_discount_code():
    return CODE_PREFIX + ''.join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def _unused_code():
    for _ in range(CODE_ATTEMPTS):
        code = generate_discount_code()
        if DiscountCode.query.filter_by(code=code).first() is None:
            return code
    return None


def _is_expired(code, now):
    return code.expires_at is not None and code.expires_at < now


def get_codes(status=None, service_id=None, now=None):
    """Lists codes; codes past their expiry are reported as 'expirado'."""
    now = now or datetime.utcnow()
    query = DiscountCode.query.order_by(DiscountCode.created_at.desc())
    if service_id:
        query = query.filter_by(service_id=service_id)

    rows = []
    for code in query.all():
        data = code.to_dict()
        if data['status'] in ('generado', 'enviado') and _is_expired(code, now):
            data['status'] = 'expirado'
        if status and data['status'] != status:
            continue
        rows.append(data)
    return {"success": True, "data": rows}


def create_code(data):
    service = db.session.get(PartnerService, data.get('service_id'))
    if service is None:
        return {"success": False, "error": "Servicio no encontrado."}, 400
    if not service.is_active:
        return {"success": False, "error": "El servicio no está activo."}, 400

    max_uses = data.get('max_uses') or 1
    if not isinstance(max_uses, int) or max_uses < 1:
        return {"success": False, "error": "max_uses debe ser un entero positivo."}, 400

    expires_at = None
    if data.get('expires_at'):
        try:
            expires_at = datetime.fromisoformat(str(data['expires_at']))
        except ValueError:
            return {"success": False, "error": "Fecha de expiración inválida."}, 400

    code = _unused_code()
    if code is None:
        current_app.logger.error("Could not generate a unique discount code")
        return {"success": False, "error": "No se pudo generar un código único, intenta de nuevo."}, 500

    try:
        discount = DiscountCode(
            service_id=service.id,
            client_id=data.get('client_id'),
            code=code,
            max_uses=max_uses,
            expires_at=expires_at,
            notes=data.get('notes'),
            status='generado',
        )
        db.session.add(discount)
        db.session.commit()
        return {"success": True, "data": discount.to_dict()}
    except Exception as e:
        return handle_service_error(e, "Error creating discount code")


def mark_sent(code_id):
    code = db.session.get(DiscountCode, code_id)
    if code is None:
        return {"success": False, "error": "Código no encontrado."}, 404
    if code.status != 'generado':
        return {"success": False, "error": f"No se puede enviar un código en estado '{code.status}'."}, 409
    try:
        code.status = 'enviado'
        code.sent_at = datetime.utcnow()
        db.session.commit()
        return {"success": True, "data": code.to_dict()}
    except Exception as e:
        return handle_service_error(e, f"Error marking code {code_id} as sent")


def redeem(code_value, now=None):
    """
    Registers one use of a code. Expired codes are flagged 'expirado' and
    rejected; a code that reaches max_uses becomes 'utilizado'.
    """
    now = now or datetime.utcnow()
    code = DiscountCode.query.filter_by(code=(code_value or '').strip().upper()).first()
    if code is None:
        return {"success": False, "error": "Código no encontrado."}, 404

    if code.status == 'expirado' or _is_expired(code, now):
        if code.status != 'expirado':
            code.status = 'expirado'
            db.session.commit()
        return {"success": False, "error": "El código ha expirado."}, 409
    if code.status == 'utilizado' or code.current_uses >= code.max_uses:
        return {"success": False, "error": "El código ya alcanzó su límite de usos."}, 409

    try:
        code.current_uses += 1
        code.used_at = now
        if code.current_uses >= code.max_uses:
            code.status = 'utilizado'
        db.session.commit()
        current_app.logger.info(f"Discount code {code.code} redeemed ({code.current_uses}/{code.max_uses})")
        return {"success": True, "data": code.to_dict()}
    except Exception as e:
        return handle_service_error(e, f"Error redeeming code {code.code}")
