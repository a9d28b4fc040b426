# backoffice/services/commissions.py
"""
Commission batches reported by insurers: loading entries (manual or Excel),
verifying each reported amount against premium x rate, and splitting the
verified commission among advisors.
"""

from datetime import datetime

import pandas as pd
from flask import current_app
from backoffice import db
from backoffice.models import (
    CommissionBatch, CommissionEntry, CommissionRule, CommissionAssignment, Advisor, Insurer
)
from backoffice.services.audit import record_audit
from backoffice.services.errors import handle_service_error
from backoffice.utils import parse_date, parse_float

BATCH_STATUSES = ['pendiente', 'verificado', 'asignado']
CURRENCIES = ['USD', 'BS', 'EUR']

# Accepted header spellings for each entry field in the import sheet.
EXCEL_COLUMNS = {
    'policy_number': ['Póliza', 'poliza', 'POLIZA', 'policy_number'],
    'client_name': ['Cliente', 'cliente', 'CLIENTE', 'client_name'],
    'plan_type': ['Plan', 'plan', 'PLAN', 'plan_type'],
    'premium': ['Prima', 'prima', 'PRIMA', 'premium'],
    'commission_rate': ['% Comisión', '% comisión', '% COMISION', 'commission_rate'],
    'commission_amount': ['Monto Comisión', 'monto comisión', 'MONTO COMISION', 'commission_amount'],
}


# --- 1. DISCREPANCY DETECTION ---

def expected_commission(premium, rate):
    return float(premium or 0) * float(rate or 0) / 100


def detect_discrepancy(premium, rate, reported_amount, tolerance=0.01):
    """
    True when the reported commission differs from premium x rate / 100 by
    strictly more than the tolerance (a difference of exactly 0.01 passes).
    """
    expected = expected_commission(premium, rate)
    # 1e-9 absorbs float noise such as 100.01 - 100.0 == 0.010000000000005116
    return abs(expected - float(reported_amount or 0)) - tolerance > 1e-9


def currency_symbol(currency):
    return 'Bs.' if currency == 'BS' else '$'


def discrepancy_note(premium, rate, reported_amount, currency):
    symbol = currency_symbol(currency)
    expected = expected_commission(premium, rate)
    return f"Esperado: {symbol}{expected:.2f}, Recibido: {symbol}{float(reported_amount or 0):.2f}"


def _apply_verification(entry, currency, tolerance):
    """
    Checks one entry. A flagged entry stays unverified until someone
    reconciles it with reconcile_entry().
    """
    flagged = detect_discrepancy(entry.premium, entry.commission_rate, entry.commission_amount, tolerance)
    entry.has_discrepancy = flagged
    entry.discrepancy_note = (
        discrepancy_note(entry.premium, entry.commission_rate, entry.commission_amount, currency)
        if flagged else None
    )
    entry.is_verified = not flagged
    return flagged


def verify_entry(entry_id, actor_id=None):
    entry = db.session.get(CommissionEntry, entry_id)
    if entry is None:
        return {"success": False, "error": "Entrada no encontrada."}, 404
    if entry.is_verified:
        return {"success": True, "data": entry.to_dict()}

    try:
        tolerance = current_app.config['COMMISSION_DISCREPANCY_TOLERANCE']
        _apply_verification(entry, entry.batch.currency, tolerance)
        db.session.commit()
        return {"success": True, "data": entry.to_dict()}
    except Exception as e:
        return handle_service_error(e, f"Error verifying commission entry {entry_id}")


def verify_batch_entries(batch_id, actor_id=None):
    """
    Verifies the entries of a batch that are not verified yet and reports
    how many were flagged. Verified or reconciled entries are left as they are.
    """
    batch = db.session.get(CommissionBatch, batch_id)
    if batch is None:
        return {"success": False, "error": "Lote no encontrado."}, 404

    try:
        tolerance = current_app.config['COMMISSION_DISCREPANCY_TOLERANCE']
        pending = [entry for entry in batch.entries if not entry.is_verified]
        flagged = sum(1 for entry in pending if _apply_verification(entry, batch.currency, tolerance))
        record_audit('comisiones', 'entries_verified', 'commission_batches', batch_id, actor_id,
                     {'entries': len(pending), 'discrepancies': flagged})
        db.session.commit()
        return {
            "success": True,
            "data": [e.to_dict() for e in batch.entries],
            "checked": len(pending),
            "discrepancies": flagged,
        }
    except Exception as e:
        return handle_service_error(e, f"Error verifying batch {batch_id}")


def reconcile_entry(entry_id, note, actor_id=None):
    """
    Accepts a flagged amount by hand. The discrepancy stays recorded;
    the entry counts as verified for the batch gate.
    """
    entry = db.session.get(CommissionEntry, entry_id)
    if entry is None:
        return {"success": False, "error": "Entrada no encontrada."}, 404
    if not entry.has_discrepancy:
        return {"success": False, "error": "La entrada no tiene discrepancias por conciliar."}, 409

    note = (note or '').strip()
    if not note:
        return {"success": False, "error": "Indica el motivo de la conciliación."}, 400

    try:
        entry.is_verified = True
        entry.reconciliation_note = note[:255]
        entry.reconciled_by = actor_id
        entry.reconciled_at = datetime.utcnow()
        record_audit('comisiones', 'entry_reconciled', 'commission_entries', entry_id, actor_id,
                     {'discrepancy_note': entry.discrepancy_note, 'reconciliation_note': entry.reconciliation_note})
        db.session.commit()
        current_app.logger.info(f"Commission entry {entry_id} reconciled by {actor_id}")
        return {"success": True, "data": entry.to_dict()}
    except Exception as e:
        return handle_service_error(e, f"Error reconciling commission entry {entry_id}")


# --- 2. BATCHES ---

def _recompute_batch_totals(batch):
    batch.total_premium = round(sum(e.premium or 0.0 for e in batch.entries), 2)
    batch.total_commission = round(sum(e.commission_amount or 0.0 for e in batch.entries), 2)


def get_batches(status=None):
    try:
        query = CommissionBatch.query.order_by(CommissionBatch.batch_date.desc())
        if status:
            query = query.filter_by(status=status)
        return {"success": True, "data": [b.to_dict() for b in query.all()]}
    except Exception as e:
        return handle_service_error(e, "Error fetching commission batches")


def create_batch(data, actor_id=None):
    try:
        batch_date = parse_date(data.get('batch_date'))
    except ValueError:
        return {"success": False, "error": "Fecha de lote inválida."}, 400
    if batch_date is None:
        return {"success": False, "error": "La fecha del lote es obligatoria."}, 400

    currency = (data.get('currency') or 'USD').upper()
    if currency not in CURRENCIES:
        return {"success": False, "error": f"Moneda inválida: {currency}"}, 400

    try:
        batch = CommissionBatch(
            insurer_id=data.get('insurer_id'),
            batch_date=batch_date,
            currency=currency,
            notes=data.get('notes'),
            created_by=actor_id,
        )
        db.session.add(batch)
        db.session.commit()
        return {"success": True, "data": batch.to_dict()}
    except Exception as e:
        return handle_service_error(e, "Error creating commission batch")


def update_batch_status(batch_id, status, actor_id=None):
    """
    pendiente -> verificado requires every entry to be verified, flagged
    entries through reconciliation;
    asignado requires the batch to be verificado first.
    """
    if status not in BATCH_STATUSES:
        return {"success": False, "error": f"Estado inválido: {status}"}, 400

    batch = db.session.get(CommissionBatch, batch_id)
    if batch is None:
        return {"success": False, "error": "Lote no encontrado."}, 404

    if status == 'verificado':
        if not batch.entries:
            return {"success": False, "error": "El lote no tiene entradas para verificar."}, 400
        if any(entry.has_discrepancy and not entry.is_verified for entry in batch.entries):
            return {"success": False, "error": "Hay discrepancias sin conciliar en el lote."}, 400
        if not all(entry.is_verified for entry in batch.entries):
            return {"success": False, "error": "Verifica todas las entradas primero"}, 400

    if status == 'asignado' and batch.status != 'verificado':
        return {"success": False, "error": "El lote debe estar verificado antes de asignarse."}, 400

    try:
        previous = batch.status
        batch.status = status
        record_audit('comisiones', 'batch_status_changed', 'commission_batches', batch_id, actor_id,
                     {'from': previous, 'to': status})
        db.session.commit()
        return {"success": True, "data": batch.to_dict()}
    except Exception as e:
        return handle_service_error(e, f"Error updating batch {batch_id}")


# --- 3. ENTRIES ---

def get_batch_entries(batch_id):
    try:
        entries = CommissionEntry.query.filter_by(batch_id=batch_id) \
            .order_by(CommissionEntry.created_at.asc()).all()
        return {"success": True, "data": [e.to_dict() for e in entries]}
    except Exception as e:
        return handle_service_error(e, f"Error fetching entries for batch {batch_id}")


def normalize_entry(raw):
    """
    Builds a clean entry dict. The commission amount defaults to
    premium x rate / 100 when it is missing or zero.
    Returns None for rows without a client or with premium <= 0.
    """
    client_name = str(raw.get('client_name') or '').strip()
    premium = parse_float(raw.get('premium'), 0.0)
    rate = parse_float(raw.get('commission_rate'), 0.0)
    amount = parse_float(raw.get('commission_amount'), 0.0)

    if not client_name or premium <= 0:
        return None

    return {
        'policy_number': str(raw.get('policy_number') or '').strip() or None,
        'client_name': client_name,
        'client_id': raw.get('client_id') or None,
        'plan_type': str(raw.get('plan_type') or '').strip() or None,
        'premium': premium,
        'commission_rate': rate,
        'commission_amount': round(amount or expected_commission(premium, rate), 2),
    }


def save_entries(batch_id, raw_entries, actor_id=None):
    """Bulk-inserts entries into a batch and recomputes the batch totals."""
    batch = db.session.get(CommissionBatch, batch_id)
    if batch is None:
        return {"success": False, "error": "Lote no encontrado."}, 404

    try:
        entries = [e for e in (normalize_entry(r) for r in raw_entries) if e is not None]
    except ValueError as e:
        return {"success": False, "error": str(e)}, 400

    if not entries:
        return {"success": False, "error": "No hay entradas válidas para guardar."}, 400

    try:
        for data in entries:
            batch.entries.append(CommissionEntry(insurer_id=batch.insurer_id, **data))
        _recompute_batch_totals(batch)
        db.session.commit()

        current_app.logger.info(f"Saved {len(entries)} commission entries in batch {batch_id}")
        return {
            "success": True,
            "saved": len(entries),
            "skipped": len(raw_entries) - len(entries),
            "batch": batch.to_dict(),
        }
    except Exception as e:
        return handle_service_error(e, f"Error saving entries for batch {batch_id}")


def update_entry(entry_id, data):
    entry = db.session.get(CommissionEntry, entry_id)
    if entry is None:
        return {"success": False, "error": "Entrada no encontrada."}, 404

    try:
        for field in ('policy_number', 'client_name', 'client_id', 'plan_type'):
            if field in data:
                setattr(entry, field, data[field])
        for field in ('premium', 'commission_rate', 'commission_amount'):
            if field in data:
                setattr(entry, field, parse_float(data[field], 0.0))
    except ValueError as e:
        db.session.rollback()
        return {"success": False, "error": str(e)}, 400

    try:
        # Edited figures need a fresh verification.
        if {'premium', 'commission_rate', 'commission_amount'} & set(data):
            entry.is_verified = False
            entry.has_discrepancy = False
            entry.discrepancy_note = None
            entry.reconciliation_note = None
            entry.reconciled_by = None
            entry.reconciled_at = None
        _recompute_batch_totals(entry.batch)
        db.session.commit()
        return {"success": True, "data": entry.to_dict()}
    except Exception as e:
        return handle_service_error(e, f"Error updating commission entry {entry_id}")


def recompute_totals_for(batch_ids):
    """Used after bulk-deleting entries."""
    for batch_id in set(batch_ids):
        batch = db.session.get(CommissionBatch, batch_id)
        if batch is not None:
            _recompute_batch_totals(batch)
    db.session.commit()


# --- 4. EXCEL IMPORT ---

def _pick(row, aliases):
    for name in aliases:
        if name in row and pd.notna(row[name]):
            return row[name]
    return None


def parse_commission_excel(excel_file):
    """
    Reads the first sheet of an insurer statement and returns
    (entries, skipped_rows). Column headers follow EXCEL_COLUMNS.
    """
    df = pd.read_excel(excel_file, sheet_name=0)
    df.columns = [str(c).strip() for c in df.columns]
    rows = df.dropna(how='all').to_dict('records')

    entries = []
    skipped = 0
    for row in rows:
        raw = {field: _pick(row, aliases) for field, aliases in EXCEL_COLUMNS.items()}
        try:
            entry = normalize_entry(raw)
        except ValueError:
            entry = None
        if entry is None:
            skipped += 1
            continue
        entries.append(entry)

    current_app.logger.info(f"Commission import: read {len(rows)} rows, {len(entries)} valid, {skipped} skipped")
    return entries, skipped


def import_entries_from_excel(batch_id, excel_file, actor_id=None):
    try:
        entries, skipped = parse_commission_excel(excel_file)
    except Exception as e:
        current_app.logger.error(f"Error reading commission Excel: {str(e)}", exc_info=True)
        return {"success": False, "error": "Error leyendo el archivo Excel."}, 400

    if not entries:
        return {"success": False, "error": "El archivo no contiene entradas válidas."}, 400

    result = save_entries(batch_id, entries, actor_id)
    if isinstance(result, dict):
        result['skipped'] = skipped
    return result


# --- 5. RULES ---

def get_rules():
    try:
        rules = CommissionRule.query.order_by(CommissionRule.created_at.desc()).all()
        return {"success": True, "data": [r.to_dict() for r in rules]}
    except Exception as e:
        return handle_service_error(e, "Error fetching commission rules")


def save_rule(data, rule_id=None):
    """Creates a rule, or updates it when rule_id is given."""
    try:
        percentage = parse_float(data.get('commission_percentage'))
    except ValueError as e:
        return {"success": False, "error": str(e)}, 400

    if not data.get('advisor_id') or not data.get('insurer_id') or not data.get('plan_type'):
        return {"success": False, "error": "Asesor, aseguradora y tipo de plan son obligatorios."}, 400
    if percentage is None or percentage < 0 or percentage > 100:
        return {"success": False, "error": "El porcentaje debe estar entre 0 y 100."}, 400

    if rule_id:
        rule = db.session.get(CommissionRule, rule_id)
        if rule is None:
            return {"success": False, "error": "Regla no encontrada."}, 404
    else:
        rule = CommissionRule()
        db.session.add(rule)

    try:
        rule.advisor_id = data['advisor_id']
        rule.insurer_id = data['insurer_id']
        rule.plan_type = data['plan_type']
        rule.commission_percentage = percentage
        db.session.commit()
        return {"success": True, "data": rule.to_dict()}
    except Exception as e:
        return handle_service_error(e, "Error saving commission rule")


def delete_rule(rule_id):
    rule = db.session.get(CommissionRule, rule_id)
    if rule is None:
        return {"success": False, "error": "Regla no encontrada."}, 404
    try:
        db.session.delete(rule)
        db.session.commit()
        return {"success": True}
    except Exception as e:
        return handle_service_error(e, f"Error deleting commission rule {rule_id}")


def suggested_percentage(advisor_id, insurer_id, plan_type):
    """Percentage from the matching rule, or 0 when no rule exists."""
    rule = CommissionRule.query.filter_by(
        advisor_id=advisor_id, insurer_id=insurer_id, plan_type=plan_type
    ).first()
    return rule.commission_percentage if rule else 0.0


# --- 6. ASSIGNMENTS ---

def get_assignments(entry_ids):
    try:
        if not entry_ids:
            return {"success": True, "data": []}
        assignments = CommissionAssignment.query.filter(CommissionAssignment.entry_id.in_(entry_ids)).all()
        return {"success": True, "data": [a.to_dict() for a in assignments]}
    except Exception as e:
        return handle_service_error(e, "Error fetching commission assignments")


def save_assignments(entry_id, items, actor_id=None):
    """
    Replaces the advisor split of one entry. Each amount is
    commission_amount x percentage / 100; shares may not exceed 100%.
    Items without an advisor or with a non-positive percentage are ignored.
    """
    entry = db.session.get(CommissionEntry, entry_id)
    if entry is None:
        return {"success": False, "error": "Entrada no encontrada."}, 404

    try:
        shares = [
            (item['advisor_id'], parse_float(item.get('percentage'), 0.0))
            for item in items if item.get('advisor_id')
        ]
    except ValueError as e:
        return {"success": False, "error": str(e)}, 400
    shares = [(advisor_id, pct) for advisor_id, pct in shares if pct > 0]

    if sum(pct for _, pct in shares) > 100:
        return {"success": False, "error": "La suma de porcentajes no puede superar el 100%."}, 400

    missing = [a for a, _ in shares if db.session.get(Advisor, a) is None]
    if missing:
        return {"success": False, "error": f"Asesor no encontrado: {missing[0]}"}, 400

    try:
        CommissionAssignment.query.filter_by(entry_id=entry_id).delete()
        for advisor_id, pct in shares:
            db.session.add(CommissionAssignment(
                entry_id=entry_id,
                advisor_id=advisor_id,
                percentage=pct,
                amount=round((entry.commission_amount or 0.0) * pct / 100, 2),
            ))
        db.session.commit()
        saved = CommissionAssignment.query.filter_by(entry_id=entry_id).all()
        return {"success": True, "data": [a.to_dict() for a in saved]}
    except Exception as e:
        return handle_service_error(e, f"Error saving assignments for entry {entry_id}")


def get_batch_breakdown(batch_id):
    """Per-advisor totals of a batch, used for the payout breakdown."""
    batch = db.session.get(CommissionBatch, batch_id)
    if batch is None:
        return {"success": False, "error": "Lote no encontrado."}, 404

    totals = {}
    for entry in batch.entries:
        for assignment in entry.assignments:
            row = totals.setdefault(assignment.advisor_id, {
                'advisor_id': assignment.advisor_id,
                'advisor_name': assignment.advisor.full_name if assignment.advisor else None,
                'entries': 0,
                'amount': 0.0,
            })
            row['entries'] += 1
            row['amount'] = round(row['amount'] + assignment.amount, 2)

    insurer = db.session.get(Insurer, batch.insurer_id) if batch.insurer_id else None
    return {
        "success": True,
        "batch": batch.to_dict(),
        "insurer": insurer.name if insurer else None,
        "data": sorted(totals.values(), key=lambda r: r['amount'], reverse=True),
    }
