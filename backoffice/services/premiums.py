# backoffice/services/premiums.py
"""
Premium and installment math shared by policies, collections and sales.
All functions here are pure: no database or Flask context required.
"""

import math
from datetime import date
from dateutil.relativedelta import relativedelta

# Installments per year for each payment frequency.
INSTALLMENT_DIVISORS = {
    'anual': 1,
    'semestral': 2,
    'trimestral': 4,
    'bimensual': 6,
    'mensual_10_cuotas': 10,
    'mensual_12_cuotas': 12,
    'mensual': 12,  # legacy value, paid in 12 installments
}

# Months between two consecutive collections.
PAYMENT_INTERVAL_MONTHS = {
    'mensual': 1,
    'mensual_10_cuotas': 1,
    'mensual_12_cuotas': 1,
    'bimensual': 2,
    'trimestral': 3,
    'semestral': 6,
    'anual': 12,
}


def get_installment_divisor(frequency):
    return INSTALLMENT_DIVISORS.get(frequency, 1)


def calculate_installment(annual_premium, frequency):
    """
    Returns the amount of one installment, or None when the premium is
    missing, not numeric or not positive.
    """
    if not annual_premium:
        return None
    try:
        premium = float(annual_premium)
    except (TypeError, ValueError):
        return None
    if math.isnan(premium) or premium <= 0:
        return None
    return premium / get_installment_divisor(frequency)


def installment_label(frequency):
    divisor = get_installment_divisor(frequency)
    if divisor == 1:
        return '1 pago anual'
    return f'{divisor} cuotas anuales'


def next_payment_date(current_due, frequency):
    """
    Due date of the collection following `current_due`.
    Month-end dates are clamped (Jan 31 + 1 month -> Feb 28/29).
    """
    months = PAYMENT_INTERVAL_MONTHS.get(frequency, 1)
    return current_due + relativedelta(months=months)


def days_overdue(due_date, status, today=None):
    """Positive when overdue, negative when upcoming, 0 once collected."""
    if status == 'cobrada':
        return 0
    today = today or date.today()
    return (today - due_date).days
