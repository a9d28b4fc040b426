# backoffice/services/sales.py
# Sales pipeline: opportunities, quoted products, follow-up notes and the money invested in each deal.

from flask import current_app
from backoffice import db
from backoffice.models import SalesOpportunity, SalesOpportunityProduct, SalesNote, SalesInvestment
from backoffice.services.audit import record_audit
from backoffice.services.errors import handle_service_error
from backoffice.services.premiums import INSTALLMENT_DIVISORS
from backoffice.utils import parse_date, parse_float

SALES_STAGES = [
    ('lead_identificado', 'Lead Identificado'),
    ('reunion_inicial', 'Reunión Inicial'),
    ('propuesta', 'Propuesta'),
    ('envio_propuesta', 'Envío Propuesta'),
    ('seguimiento_1', 'Seguimiento 1'),
    ('seguimiento_2', 'Seguimiento 2'),
    ('seguimiento_3', 'Seguimiento 3'),
    ('propuesta_aceptada', 'Propuesta Aceptada'),
    ('ganado', 'Ganado'),
    ('perdido', 'Perdido'),
    ('postergado', 'Postergado'),
]
STAGE_VALUES = [value for value, _ in SALES_STAGES]
TERMINAL_STAGES = ['ganado', 'perdido', 'postergado']

OPPORTUNITY_FIELDS = ('client_id', 'prospect_name', 'prospect_email', 'prospect_phone', 'prospect_company', 'notes')


def opportunity_total_premium(opportunity):
    return sum(p.annual_premium or 0.0 for p in opportunity.products)


def get_opportunities(stage=None):
    try:
        query = SalesOpportunity.query.order_by(SalesOpportunity.created_at.desc())
        if stage:
            query = query.filter_by(stage=stage)
        rows = []
        for opportunity in query.all():
            data = opportunity.to_dict()
            data['total_premium'] = round(opportunity_total_premium(opportunity), 2)
            rows.append(data)
        return {"success": True, "data": rows}
    except Exception as e:
        return handle_service_error(e, "Error fetching opportunities")


def get_pipeline_summary():
    """Count and quoted premium per stage, in pipeline order."""
    try:
        opportunities = SalesOpportunity.query.all()
        summary = []
        for value, label in SALES_STAGES:
            in_stage = [o for o in opportunities if o.stage == value]
            summary.append({
                'stage': value,
                'label': label,
                'terminal': value in TERMINAL_STAGES,
                'count': len(in_stage),
                'total_premium': round(sum(opportunity_total_premium(o) for o in in_stage), 2),
            })
        return {"success": True, "data": summary}
    except Exception as e:
        return handle_service_error(e, "Error building pipeline summary")


def save_opportunity(data, opportunity_id=None, actor_id=None):
    stage = data.get('stage')
    if stage is not None and stage not in STAGE_VALUES:
        return {"success": False, "error": f"Etapa inválida: {stage}"}, 400

    if opportunity_id:
        opportunity = db.session.get(SalesOpportunity, opportunity_id)
        if opportunity is None:
            return {"success": False, "error": "Oportunidad no encontrada."}, 404
    else:
        if not (data.get('prospect_name') or '').strip():
            return {"success": False, "error": "El nombre del prospecto es obligatorio."}, 400
        opportunity = SalesOpportunity(created_by=actor_id, stage=stage or 'lead_identificado')

    try:
        expected_close = parse_date(data['expected_close_date']) if 'expected_close_date' in data else None
    except ValueError:
        return {"success": False, "error": "Fecha de cierre inválida."}, 400

    try:
        for field in OPPORTUNITY_FIELDS:
            if field in data:
                setattr(opportunity, field, data[field])
        if 'expected_close_date' in data:
            opportunity.expected_close_date = expected_close
        if stage is not None:
            opportunity.stage = stage
        if not opportunity_id:
            db.session.add(opportunity)
        db.session.commit()
        return {"success": True, "data": opportunity.to_dict()}
    except Exception as e:
        return handle_service_error(e, "Error saving opportunity")


def update_stage(opportunity_id, stage, actor_id=None):
    if stage not in STAGE_VALUES:
        return {"success": False, "error": f"Etapa inválida: {stage}"}, 400

    opportunity = db.session.get(SalesOpportunity, opportunity_id)
    if opportunity is None:
        return {"success": False, "error": "Oportunidad no encontrada."}, 404

    previous = opportunity.stage
    if previous == stage:
        return {"success": True, "data": opportunity.to_dict()}

    try:
        opportunity.stage = stage
        record_audit('ventas', 'stage_changed', 'sales_opportunities', opportunity_id, actor_id,
                     {'previous_stage': previous, 'new_stage': stage})
        db.session.commit()
        current_app.logger.info(f"Opportunity {opportunity_id}: {previous} -> {stage}")
        return {"success": True, "data": opportunity.to_dict()}
    except Exception as e:
        return handle_service_error(e, f"Error updating stage of opportunity {opportunity_id}")


def advance_stage(opportunity_id, actor_id=None):
    """Moves an opportunity to the next stage in pipeline order."""
    opportunity = db.session.get(SalesOpportunity, opportunity_id)
    if opportunity is None:
        return {"success": False, "error": "Oportunidad no encontrada."}, 404

    index = STAGE_VALUES.index(opportunity.stage)
    if index >= len(STAGE_VALUES) - 1:
        return {"success": False, "error": "La oportunidad ya está en la última etapa."}, 400
    return update_stage(opportunity_id, STAGE_VALUES[index + 1], actor_id)


# --- PRODUCTS ---

def save_opportunity_product(opportunity_id, data, product_row_id=None):
    if db.session.get(SalesOpportunity, opportunity_id) is None:
        return {"success": False, "error": "Oportunidad no encontrada."}, 404

    frequency = data.get('payment_frequency', 'anual')
    if frequency not in INSTALLMENT_DIVISORS:
        return {"success": False, "error": f"Frecuencia de pago inválida: {frequency}"}, 400

    try:
        premium = parse_float(data.get('annual_premium'), 0.0)
        rate = parse_float(data.get('commission_rate'), 0.0)
    except ValueError as e:
        return {"success": False, "error": str(e)}, 400
    if premium < 0 or rate < 0:
        return {"success": False, "error": "La prima y la comisión no pueden ser negativas."}, 400

    if product_row_id:
        row = db.session.get(SalesOpportunityProduct, product_row_id)
        if row is None or row.opportunity_id != opportunity_id:
            return {"success": False, "error": "Producto no encontrado."}, 404
    else:
        row = SalesOpportunityProduct(opportunity_id=opportunity_id)
        db.session.add(row)

    try:
        row.insurer_id = data.get('insurer_id', row.insurer_id)
        row.product_id = data.get('product_id', row.product_id)
        row.annual_premium = premium
        row.commission_rate = rate
        row.payment_frequency = frequency
        row.notes = data.get('notes', row.notes)
        db.session.commit()
        return {"success": True, "data": row.to_dict()}
    except Exception as e:
        return handle_service_error(e, "Error saving opportunity product")


def delete_opportunity_product(product_row_id):
    row = db.session.get(SalesOpportunityProduct, product_row_id)
    if row is None:
        return {"success": False, "error": "Producto no encontrado."}, 404
    try:
        db.session.delete(row)
        db.session.commit()
        return {"success": True}
    except Exception as e:
        return handle_service_error(e, f"Error deleting opportunity product {product_row_id}")


def toggle_product_selection(product_row_id, selected):
    """At most one quoted product per opportunity is selected."""
    row = db.session.get(SalesOpportunityProduct, product_row_id)
    if row is None:
        return {"success": False, "error": "Producto no encontrado."}, 404

    try:
        if selected:
            SalesOpportunityProduct.query.filter_by(opportunity_id=row.opportunity_id) \
                .update({'is_selected': False})
        row.is_selected = bool(selected)
        db.session.commit()
        siblings = SalesOpportunityProduct.query.filter_by(opportunity_id=row.opportunity_id).all()
        return {"success": True, "data": [p.to_dict() for p in siblings]}
    except Exception as e:
        return handle_service_error(e, f"Error toggling product {product_row_id}")


# --- NOTES ---

def get_notes(opportunity_id):
    notes = SalesNote.query.filter_by(opportunity_id=opportunity_id) \
        .order_by(SalesNote.created_at.desc()).all()
    return {"success": True, "data": [n.to_dict() for n in notes]}


def add_note(opportunity_id, content, actor_id=None):
    if db.session.get(SalesOpportunity, opportunity_id) is None:
        return {"success": False, "error": "Oportunidad no encontrada."}, 404
    if not (content or '').strip():
        return {"success": False, "error": "La nota no puede estar vacía."}, 400
    try:
        note = SalesNote(opportunity_id=opportunity_id, content=content.strip(), created_by=actor_id)
        db.session.add(note)
        db.session.commit()
        return {"success": True, "data": note.to_dict()}
    except Exception as e:
        return handle_service_error(e, "Error adding sales note")


def delete_note(note_id):
    note = db.session.get(SalesNote, note_id)
    if note is None:
        return {"success": False, "error": "Nota no encontrada."}, 404
    try:
        db.session.delete(note)
        db.session.commit()
        return {"success": True}
    except Exception as e:
        return handle_service_error(e, f"Error deleting sales note {note_id}")


# --- INVESTMENTS ---

def get_investments(opportunity_id):
    rows = SalesInvestment.query.filter_by(opportunity_id=opportunity_id) \
        .order_by(SalesInvestment.investment_date.desc()).all()
    return {"success": True, "data": {
        'items': [r.to_dict() for r in rows],
        'total': round(sum(r.amount or 0.0 for r in rows), 2),
    }}


def add_investment(opportunity_id, data, actor_id=None):
    if db.session.get(SalesOpportunity, opportunity_id) is None:
        return {"success": False, "error": "Oportunidad no encontrada."}, 404
    description = (data.get('description') or '').strip()
    if not description:
        return {"success": False, "error": "La descripción es obligatoria."}, 400
    try:
        amount = parse_float(data.get('amount'))
        investment_date = parse_date(data.get('investment_date'))
    except ValueError as e:
        return {"success": False, "error": str(e)}, 400
    if amount is None or amount <= 0:
        return {"success": False, "error": "El monto debe ser mayor que cero."}, 400
    if investment_date is None:
        return {"success": False, "error": "La fecha es obligatoria."}, 400

    try:
        investment = SalesInvestment(
            opportunity_id=opportunity_id,
            description=description,
            amount=amount,
            investment_date=investment_date,
            created_by=actor_id,
        )
        db.session.add(investment)
        db.session.commit()
        return {"success": True, "data": investment.to_dict()}
    except Exception as e:
        return handle_service_error(e, "Error adding sales investment")


def delete_investment(investment_id):
    investment = db.session.get(SalesInvestment, investment_id)
    if investment is None:
        return {"success": False, "error": "Inversión no encontrada."}, 404
    try:
        db.session.delete(investment)
        db.session.commit()
        return {"success": True}
    except Exception as e:
        return handle_service_error(e, f"Error deleting sales investment {investment_id}")
