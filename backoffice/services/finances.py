# backoffice/services/finances.py
"""
Finance ledger for the brokerage itself: exchange rates against the
bolívar (VES), the monthly ledger (income, expenses, debts and loans),
the payroll roster and the monthly summary.
"""

from datetime import datetime
from flask import current_app
from backoffice import db
from backoffice.models import (
    ExchangeRate, FinanceIncome, FinanceExpense, FinanceDebt, FinanceLoan, PayrollEmployee,
)
from backoffice.services.errors import handle_service_error
from backoffice.utils import parse_date, parse_float, parse_month

RATE_CURRENCIES = ['USD', 'EUR', 'USDT']
RATE_SOURCES = ['BCV', 'Binance', 'Kontigo']


# --- 1. EXCHANGE RATES ---

def get_exchange_rates(currency=None, source=None, limit=100):
    query = ExchangeRate.query.order_by(ExchangeRate.recorded_at.desc())
    if currency:
        query = query.filter_by(currency=currency)
    if source:
        query = query.filter_by(source=source)
    rates = query.limit(min(int(limit), 1000)).all()
    return {"success": True, "data": [r.to_dict() for r in rates]}


def get_latest_rates():
    """One entry per (currency, source); rate is None when nothing was recorded."""
    latest = []
    for currency in RATE_CURRENCIES:
        for source in RATE_SOURCES:
            row = ExchangeRate.query.filter_by(currency=currency, source=source) \
                .order_by(ExchangeRate.recorded_at.desc()).first()
            latest.append({
                'currency': currency,
                'source': source,
                'rate': row.rate if row else None,
                'recorded_at': row.recorded_at if row else None,
                'is_manual': row.is_manual if row else None,
            })
    return {"success": True, "data": latest}


def record_exchange_rate(data, actor_id=None):
    currency = (data.get('currency') or '').upper()
    source = data.get('source') or 'BCV'
    if currency not in RATE_CURRENCIES:
        return {"success": False, "error": f"Moneda inválida: {currency}"}, 400
    if source not in RATE_SOURCES:
        return {"success": False, "error": f"Fuente inválida: {source}"}, 400

    try:
        rate = parse_float(data.get('rate'))
    except ValueError as e:
        return {"success": False, "error": str(e)}, 400
    if rate is None or rate <= 0:
        return {"success": False, "error": "La tasa debe ser mayor que cero."}, 400

    is_manual = bool(data.get('is_manual'))
    reason = (data.get('manual_reason') or '').strip() or None
    if is_manual and not reason:
        return {"success": False, "error": "Indica el motivo de la tasa manual."}, 400

    try:
        row = ExchangeRate(
            currency=currency,
            source=source,
            rate=rate,
            recorded_by=actor_id,
            is_manual=is_manual,
            manual_reason=reason,
        )
        db.session.add(row)
        db.session.commit()
        current_app.logger.info(f"Exchange rate recorded: {currency}/{source} = {rate}")
        return {"success": True, "data": row.to_dict()}
    except Exception as e:
        return handle_service_error(e, "Error recording exchange rate")


# --- 2. INCOME, EXPENSES, DEBTS & LOANS ---

# kind -> (model, date field, settle flag, settle timestamp)
LEDGER_MODELS = {
    'income': (FinanceIncome, 'income_date', None, None),
    'expense': (FinanceExpense, 'expense_date', 'is_paid', 'paid_at'),
    'debt': (FinanceDebt, 'debt_date', 'is_paid', 'paid_at'),
    'loan': (FinanceLoan, 'loan_date', 'is_collected', 'collected_at'),
}
# Debts and loans are always owed to or by someone.
BENEFICIARY_REQUIRED = ('debt', 'loan')


def get_ledger(kind, month=None, unpaid_only=False):
    """unpaid_only keeps the open rows of kinds that can be settled."""
    model, date_field, flag, _ = LEDGER_MODELS[kind]
    try:
        query = model.query.order_by(getattr(model, date_field).desc())
        if month:
            query = query.filter_by(month=parse_month(month))
        if unpaid_only and flag:
            query = query.filter_by(**{flag: False})
        return {"success": True, "data": [row.to_dict() for row in query.all()]}
    except ValueError as e:
        return {"success": False, "error": str(e)}, 400


def _set_settled(entry, flag, stamp, settled):
    setattr(entry, flag, bool(settled))
    setattr(entry, stamp, datetime.utcnow() if settled else None)


def save_ledger_entry(kind, data, entry_id=None, actor_id=None):
    """
    Creates or updates a ledger line of any kind. The ledger month is
    derived from the entry date.
    """
    model, date_field, flag, stamp = LEDGER_MODELS[kind]

    if entry_id:
        entry = db.session.get(model, entry_id)
        if entry is None:
            return {"success": False, "error": "Registro no encontrado."}, 404
    else:
        entry = model(created_by=actor_id)

    try:
        if date_field in data or not entry_id:
            entry_date = parse_date(data.get(date_field))
            if entry_date is None:
                raise ValueError("La fecha es obligatoria")
            setattr(entry, date_field, entry_date)
            entry.month = entry_date.strftime('%Y-%m')
        for field in ('amount_usd', 'amount_ves'):
            if field in data or not entry_id:
                value = parse_float(data.get(field), 0.0)
                if value < 0:
                    raise ValueError("Los montos no pueden ser negativos")
                setattr(entry, field, value)
        if 'exchange_rate' in data:
            entry.exchange_rate = parse_float(data['exchange_rate'])
    except ValueError as e:
        if entry_id:
            db.session.rollback()
        return {"success": False, "error": str(e)}, 400

    if 'description' in data:
        entry.description = (data.get('description') or '').strip()
    if not entry.description:
        if entry_id:
            db.session.rollback()
        return {"success": False, "error": "La descripción es obligatoria."}, 400

    if 'beneficiary' in data and hasattr(entry, 'beneficiary'):
        entry.beneficiary = (data.get('beneficiary') or '').strip() or None
    if kind in BENEFICIARY_REQUIRED and not entry.beneficiary:
        if entry_id:
            db.session.rollback()
        return {"success": False, "error": "El beneficiario es obligatorio."}, 400

    if 'notes' in data:
        entry.notes = data['notes']
    if flag and flag in data:
        _set_settled(entry, flag, stamp, data[flag])

    try:
        if not entry_id:
            db.session.add(entry)
        db.session.commit()
        return {"success": True, "data": entry.to_dict()}
    except Exception as e:
        return handle_service_error(e, f"Error saving finance {kind}")


def delete_ledger_entry(kind, entry_id):
    model = LEDGER_MODELS[kind][0]
    entry = db.session.get(model, entry_id)
    if entry is None:
        return {"success": False, "error": "Registro no encontrado."}, 404
    try:
        db.session.delete(entry)
        db.session.commit()
        return {"success": True}
    except Exception as e:
        return handle_service_error(e, f"Error deleting finance {kind} {entry_id}")


def mark_settled(kind, entry_id, settled=True):
    """Marks an expense or debt as paid, or a loan as collected."""
    model, _, flag, stamp = LEDGER_MODELS[kind]
    if flag is None:
        return {"success": False, "error": f"Los registros de tipo {kind} no se liquidan."}, 400
    entry = db.session.get(model, entry_id)
    if entry is None:
        return {"success": False, "error": "Registro no encontrado."}, 404
    try:
        _set_settled(entry, flag, stamp, settled)
        db.session.commit()
        current_app.logger.info(f"Finance {kind} {entry_id} {flag}={bool(settled)}")
        return {"success": True, "data": entry.to_dict()}
    except Exception as e:
        return handle_service_error(e, f"Error updating finance {kind} {entry_id}")


def get_monthly_summary(month):
    """
    Totals for one ledger month, in USD and VES. Debts and loans are
    reported apart from the net result; they move cash without being
    income or expense.
    """
    try:
        month = parse_month(month)
    except ValueError as e:
        return {"success": False, "error": str(e)}, 400

    income = FinanceIncome.query.filter_by(month=month).all()
    expenses = FinanceExpense.query.filter_by(month=month).all()
    debts = FinanceDebt.query.filter_by(month=month).all()
    loans = FinanceLoan.query.filter_by(month=month).all()

    def total(rows, field):
        return round(sum(getattr(r, field) or 0.0 for r in rows), 2)

    paid = [e for e in expenses if e.is_paid]
    unpaid = [e for e in expenses if not e.is_paid]
    open_debts = [d for d in debts if not d.is_paid]
    open_loans = [loan for loan in loans if not loan.is_collected]
    summary = {'month': month}
    for currency in ('usd', 'ves'):
        field = f'amount_{currency}'
        summary[currency] = {
            'income': total(income, field),
            'expenses': total(expenses, field),
            'paid_expenses': total(paid, field),
            'unpaid_expenses': total(unpaid, field),
            'net': round(total(income, field) - total(expenses, field), 2),
            'pending_debts': total(open_debts, field),
            'pending_loans': total(open_loans, field),
        }
    summary['counts'] = {
        'income': len(income),
        'expenses': len(expenses),
        'unpaid': len(unpaid),
        'debts': len(debts),
        'loans': len(loans),
    }
    summary['payroll_usd'] = get_active_payroll_total()
    return {"success": True, "data": summary}


# --- 3. PAYROLL ---

def get_employees(include_inactive=False):
    query = PayrollEmployee.query.order_by(PayrollEmployee.full_name)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return {"success": True, "data": [e.to_dict() for e in query.all()]}


def get_active_payroll_total():
    rows = PayrollEmployee.query.filter_by(is_active=True).all()
    return round(sum(e.base_salary_usd or 0.0 for e in rows), 2)


def save_employee(data, employee_id=None, actor_id=None):
    if employee_id:
        employee = db.session.get(PayrollEmployee, employee_id)
        if employee is None:
            return {"success": False, "error": "Empleado no encontrado."}, 404
    else:
        employee = PayrollEmployee(created_by=actor_id)

    if 'full_name' in data or not employee_id:
        employee.full_name = (data.get('full_name') or '').strip()
    if not employee.full_name:
        if employee_id:
            db.session.rollback()
        return {"success": False, "error": "El nombre es obligatorio."}, 400

    if 'base_salary_usd' in data or not employee_id:
        try:
            salary = parse_float(data.get('base_salary_usd'), 0.0)
        except ValueError as e:
            if employee_id:
                db.session.rollback()
            return {"success": False, "error": str(e)}, 400
        if salary < 0:
            if employee_id:
                db.session.rollback()
            return {"success": False, "error": "El salario no puede ser negativo."}, 400
        employee.base_salary_usd = salary

    if 'notes' in data:
        employee.notes = data['notes']
    if 'is_active' in data:
        employee.is_active = bool(data['is_active'])

    try:
        if not employee_id:
            db.session.add(employee)
        db.session.commit()
        current_app.logger.info(f"Payroll employee saved: {employee.full_name}")
        return {"success": True, "data": employee.to_dict()}
    except Exception as e:
        return handle_service_error(e, "Error saving payroll employee")


def deactivate_employee(employee_id):
    """Employees are never deleted; they drop out of the active payroll."""
    employee = db.session.get(PayrollEmployee, employee_id)
    if employee is None:
        return {"success": False, "error": "Empleado no encontrado."}, 404
    try:
        employee.is_active = False
        db.session.commit()
        return {"success": True, "data": employee.to_dict()}
    except Exception as e:
        return handle_service_error(e, f"Error deactivating employee {employee_id}")
