# tests/test_premiums.py
from datetime import date

import pytest

from backoffice.services.premiums import (
    get_installment_divisor,
    calculate_installment,
    installment_label,
    next_payment_date,
    days_overdue,
)


@pytest.mark.parametrize(
    "frequency,divisor",
    [
        ("anual", 1),
        ("semestral", 2),
        ("trimestral", 4),
        ("bimensual", 6),
        ("mensual_10_cuotas", 10),
        ("mensual_12_cuotas", 12),
        ("mensual", 12),
        ("quincenal", 1),   # unknown
        (None, 1),
    ],
)
def test_installment_divisor_table(frequency, divisor):
    assert get_installment_divisor(frequency) == divisor


@pytest.mark.parametrize(
    "premium,frequency,expected",
    [
        (1200, "mensual", 100.0),
        (1200, "mensual_10_cuotas", 120.0),
        (1000, "semestral", 500.0),
        ("900", "trimestral", 225.0),
        (750, "desconocida", 750.0),
    ],
)
def test_calculate_installment(premium, frequency, expected):
    assert calculate_installment(premium, frequency) == pytest.approx(expected)


@pytest.mark.parametrize("bad", [None, 0, -50, "", "abc", float("nan")])
def test_calculate_installment_rejects_non_positive_or_garbage(bad):
    assert calculate_installment(bad, "mensual") is None


def test_installment_label():
    assert installment_label("anual") == "1 pago anual"
    assert installment_label("trimestral") == "4 cuotas anuales"
    assert installment_label("otra") == "1 pago anual"


@pytest.mark.parametrize(
    "due,frequency,expected",
    [
        (date(2024, 1, 31), "mensual", date(2024, 2, 29)),
        (date(2023, 1, 31), "mensual", date(2023, 2, 28)),
        (date(2024, 11, 15), "bimensual", date(2025, 1, 15)),
        (date(2024, 5, 10), "semestral", date(2024, 11, 10)),
        (date(2024, 2, 29), "anual", date(2025, 2, 28)),
    ],
)
def test_next_payment_date_clamps_month_end(due, frequency, expected):
    assert next_payment_date(due, frequency) == expected


def test_days_overdue():
    today = date(2024, 3, 10)
    assert days_overdue(date(2024, 3, 1), "pendiente", today) == 9
    assert days_overdue(date(2024, 3, 15), "contacto_asesor", today) == -5
    assert days_overdue(date(2024, 1, 1), "cobrada", today) == 0
