# tests/test_finances.py
import pytest

from backoffice.services.finances import (
    record_exchange_rate,
    get_latest_rates,
    save_ledger_entry,
    mark_settled,
    get_ledger,
    get_monthly_summary,
    save_employee,
    deactivate_employee,
    get_employees,
)


def test_manual_rate_requires_reason(app):
    _, status = record_exchange_rate({"currency": "usd", "rate": 36.5, "is_manual": True})
    assert status == 400

    row = record_exchange_rate({"currency": "usd", "rate": 36.5, "is_manual": True,
                                "manual_reason": "BCV sin publicar"})["data"]
    assert row["currency"] == "USD"
    assert row["source"] == "BCV"


@pytest.mark.parametrize(
    "payload",
    [
        {"currency": "COP", "rate": 10},
        {"currency": "USD", "source": "Paralelo", "rate": 10},
        {"currency": "USD", "rate": 0},
        {"currency": "USD", "rate": "abc"},
    ],
)
def test_invalid_rates(app, payload):
    _, status = record_exchange_rate(payload)
    assert status == 400


def test_latest_rates_cover_every_pair(app):
    record_exchange_rate({"currency": "EUR", "source": "BCV", "rate": 39.1})
    latest = get_latest_rates()["data"]
    assert len(latest) == 9
    eur = next(r for r in latest if r["currency"] == "EUR" and r["source"] == "BCV")
    assert eur["rate"] == 39.1
    assert next(r for r in latest if r["currency"] == "USDT")["rate"] is None


def test_ledger_month_comes_from_date(app):
    entry = save_ledger_entry("income", {"income_date": "2024-03-05", "description": "Comisiones marzo",
                                         "amount_usd": 500})["data"]
    assert entry["month"] == "2024-03"

    moved = save_ledger_entry("income", {"income_date": "2024-04-01"}, entry_id=entry["id"])["data"]
    assert moved["month"] == "2024-04"


@pytest.mark.parametrize(
    "payload",
    [
        {"expense_date": "2024-03-05", "description": "Alquiler", "amount_usd": -1},
        {"expense_date": "2024-03-05", "description": "  "},
        {"description": "Alquiler"},
    ],
)
def test_invalid_ledger_entries(app, payload):
    _, status = save_ledger_entry("expense", payload)
    assert status == 400


def test_monthly_summary(app):
    save_ledger_entry("income", {"income_date": "2024-03-05", "description": "Comisiones",
                                 "amount_usd": 1000, "amount_ves": 36500})
    rent = save_ledger_entry("expense", {"expense_date": "2024-03-10", "description": "Alquiler",
                                         "amount_usd": 300})["data"]
    save_ledger_entry("expense", {"expense_date": "2024-03-20", "description": "Internet",
                                  "amount_usd": 50.25})
    save_ledger_entry("expense", {"expense_date": "2024-04-01", "description": "Abril",
                                  "amount_usd": 999})
    mark_settled("expense", rent["id"])

    summary = get_monthly_summary("2024-03")["data"]
    assert summary["usd"] == {
        "income": 1000.0,
        "expenses": 350.25,
        "paid_expenses": 300.0,
        "unpaid_expenses": 50.25,
        "net": 649.75,
        "pending_debts": 0.0,
        "pending_loans": 0.0,
    }
    assert summary["ves"]["net"] == 36500.0
    assert summary["counts"] == {"income": 1, "expenses": 2, "unpaid": 1, "debts": 0, "loans": 0}

    _, status = get_monthly_summary("03-2024")
    assert status == 400


def test_unknown_ledger_kind_route(client, auth_headers):
    response = client.get("/api/finances/budgets", headers=auth_headers())
    assert response.status_code == 404


@pytest.mark.parametrize("kind, date_field", [("debt", "debt_date"), ("loan", "loan_date")])
def test_debts_and_loans_require_beneficiary(app, kind, date_field):
    payload = {date_field: "2024-03-05", "description": "Adelanto", "amount_usd": 200}
    _, status = save_ledger_entry(kind, payload)
    assert status == 400

    entry = save_ledger_entry(kind, dict(payload, beneficiary="  Carlos Rojas "))["data"]
    assert entry["beneficiary"] == "Carlos Rojas"
    assert entry["month"] == "2024-03"


def test_settle_uses_the_flag_of_each_kind(app):
    debt = save_ledger_entry("debt", {"debt_date": "2024-03-01", "description": "Préstamo banco",
                                      "beneficiary": "Banco Plaza", "amount_usd": 500})["data"]
    loan = save_ledger_entry("loan", {"loan_date": "2024-03-02", "description": "Adelanto",
                                      "beneficiary": "Carlos Rojas", "amount_usd": 120})["data"]
    income = save_ledger_entry("income", {"income_date": "2024-03-03", "description": "Comisiones",
                                          "amount_usd": 900})["data"]

    paid = mark_settled("debt", debt["id"])["data"]
    assert paid["is_paid"] is True
    assert paid["paid_at"] is not None

    collected = mark_settled("loan", loan["id"])["data"]
    assert collected["is_collected"] is True
    assert collected["collected_at"] is not None

    reopened = mark_settled("loan", loan["id"], settled=False)["data"]
    assert reopened["is_collected"] is False
    assert reopened["collected_at"] is None

    _, status = mark_settled("income", income["id"])
    assert status == 400
    _, status = mark_settled("debt", "missing")
    assert status == 404


def test_summary_reports_open_debts_and_loans(app):
    save_ledger_entry("income", {"income_date": "2024-03-05", "description": "Comisiones", "amount_usd": 1000})
    settled = save_ledger_entry("debt", {"debt_date": "2024-03-01", "description": "Cuota",
                                         "beneficiary": "Banco Plaza", "amount_usd": 100})["data"]
    save_ledger_entry("debt", {"debt_date": "2024-03-15", "description": "Cuota",
                               "beneficiary": "Banco Plaza", "amount_usd": 250})
    save_ledger_entry("loan", {"loan_date": "2024-03-20", "description": "Adelanto",
                               "beneficiary": "Carlos Rojas", "amount_usd": 80})
    mark_settled("debt", settled["id"])
    save_employee({"full_name": "María Gómez", "base_salary_usd": 400})

    summary = get_monthly_summary("2024-03")["data"]
    assert summary["usd"]["pending_debts"] == 250.0
    assert summary["usd"]["pending_loans"] == 80.0
    # Debts and loans stay out of the net result.
    assert summary["usd"]["net"] == 1000.0
    assert summary["counts"]["debts"] == 2
    assert summary["payroll_usd"] == 400.0

    open_debts = get_ledger("debt", month="2024-03", unpaid_only=True)["data"]
    assert [d["amount_usd"] for d in open_debts] == [250.0]


def test_payroll_roster(app):
    ana = save_employee({"full_name": "Ana Torres", "base_salary_usd": 500})["data"]
    save_employee({"full_name": "Beatriz León", "base_salary_usd": 350})
    assert [e["full_name"] for e in get_employees()["data"]] == ["Ana Torres", "Beatriz León"]

    updated = save_employee({"base_salary_usd": 550}, employee_id=ana["id"])["data"]
    assert updated["full_name"] == "Ana Torres"
    assert updated["base_salary_usd"] == 550.0

    deactivate_employee(ana["id"])
    assert [e["full_name"] for e in get_employees()["data"]] == ["Beatriz León"]
    assert len(get_employees(include_inactive=True)["data"]) == 2


@pytest.mark.parametrize(
    "payload",
    [
        {"full_name": "  ", "base_salary_usd": 300},
        {"full_name": "Luis Pardo", "base_salary_usd": -1},
        {"full_name": "Luis Pardo", "base_salary_usd": "mucho"},
    ],
)
def test_invalid_employees(app, payload):
    _, status = save_employee(payload)
    assert status == 400


@pytest.mark.parametrize(
    "role, expected",
    [
        ("acceso_total", 200),
        ("revision_edicion_1", 200),
        ("revision_edicion_2", 403),
        ("revision", 403),
    ],
)
def test_payroll_route_is_gated_like_finances(client, auth_headers, role, expected):
    response = client.get("/api/finances/payroll", headers=auth_headers(role))
    assert response.status_code == expected


def test_settle_route(client, auth_headers):
    headers = auth_headers()
    created = client.post("/api/finances/loan", headers=headers, json={
        "loan_date": "2024-05-02", "description": "Adelanto", "beneficiary": "Carlos Rojas", "amount_usd": 60,
    }).get_json()["data"]

    response = client.post(f"/api/finances/loan/{created['id']}/settle", headers=headers, json={"settled": True})
    assert response.status_code == 200
    assert response.get_json()["data"]["is_collected"] is True

    response = client.post(f"/api/finances/loan/{created['id']}/settle", headers=auth_headers("revision"))
    assert response.status_code == 403
