# tests/test_commissions.py
import pytest

from backoffice import db
from backoffice.models import Advisor, CommissionBatch, CommissionEntry
from backoffice.services.commissions import (
    detect_discrepancy,
    discrepancy_note,
    normalize_entry,
    save_entries,
    verify_batch_entries,
    reconcile_entry,
    update_batch_status,
    save_assignments,
)


@pytest.mark.parametrize(
    "premium,rate,amount,flagged",
    [
        (1000, 10, 100.00, False),
        (1000, 10, 100.01, False),   # exactly at the tolerance
        (1000, 10, 99.99, False),
        (1000, 10, 100.02, True),
        (1000, 10, 99.98, True),
        (2500, 12.5, 312.5, False),
        (1000, 10, 0, True),
    ],
)
def test_discrepancy_boundary(premium, rate, amount, flagged):
    assert detect_discrepancy(premium, rate, amount) is flagged


def test_discrepancy_note_currency_symbol():
    assert discrepancy_note(1000, 10, 95, 'USD') == "Esperado: $100.00, Recibido: $95.00"
    assert discrepancy_note(1000, 10, 95, 'BS') == "Esperado: Bs.100.00, Recibido: Bs.95.00"


def test_normalize_entry_defaults_amount_and_skips_invalid_rows():
    entry = normalize_entry({"client_name": " Ana Pérez ", "premium": "1000", "commission_rate": 10})
    assert entry["client_name"] == "Ana Pérez"
    assert entry["commission_amount"] == 100.0

    assert normalize_entry({"client_name": "", "premium": 1000}) is None
    assert normalize_entry({"client_name": "Ana", "premium": 0}) is None


def test_save_entries_recomputes_totals_over_whole_batch(app, make_batch):
    batch = make_batch()
    save_entries(batch.id, [{"client_name": "A", "premium": 1000, "commission_rate": 10}])
    result = save_entries(batch.id, [
        {"client_name": "B", "premium": 500, "commission_rate": 10, "commission_amount": 45},
        {"client_name": "", "premium": 500},
    ])

    assert result["saved"] == 1
    assert result["skipped"] == 1
    db.session.refresh(batch)
    assert batch.total_premium == 1500.0
    assert batch.total_commission == 145.0


def test_verification_gate(app, make_batch):
    batch = make_batch(currency='BS')

    _, status = update_batch_status(batch.id, 'verificado')
    assert status == 400   # empty batch

    save_entries(batch.id, [
        {"client_name": "A", "premium": 1000, "commission_rate": 10, "commission_amount": 100.01},
        {"client_name": "B", "premium": 1000, "commission_rate": 10, "commission_amount": 100.02},
    ])
    payload, status = update_batch_status(batch.id, 'verificado')
    assert status == 400
    assert payload["error"] == "Verifica todas las entradas primero"

    _, status = update_batch_status(batch.id, 'asignado')
    assert status == 400

    result = verify_batch_entries(batch.id)
    assert result["discrepancies"] == 1
    flagged = CommissionEntry.query.filter_by(has_discrepancy=True).one()
    assert flagged.client_name == "B"
    assert flagged.is_verified is False
    assert flagged.discrepancy_note == "Esperado: Bs.100.00, Recibido: Bs.100.02"

    payload, status = update_batch_status(batch.id, 'verificado')
    assert status == 400
    assert payload["error"] == "Hay discrepancias sin conciliar en el lote."

    _, status = reconcile_entry(flagged.id, "  ")
    assert status == 400
    reconciled = reconcile_entry(flagged.id, "Redondeo de la aseguradora", actor_id="user-1")["data"]
    assert reconciled["is_verified"] is True
    assert reconciled["has_discrepancy"] is True
    assert reconciled["reconciled_by"] == "user-1"

    assert update_batch_status(batch.id, 'verificado')["data"]["status"] == 'verificado'
    assert update_batch_status(batch.id, 'asignado')["data"]["status"] == 'asignado'


def test_unreconciled_discrepancy_blocks_verification(app, make_batch):
    batch = make_batch()
    save_entries(batch.id, [{"client_name": "A", "premium": 1000, "commission_rate": 10, "commission_amount": 50}])

    verify_batch_entries(batch.id)
    _, status = update_batch_status(batch.id, 'verificado')
    assert status == 400
    assert db.session.get(CommissionBatch, batch.id).status == 'pendiente'


def test_batch_verification_keeps_reconciled_entries(app, make_batch):
    batch = make_batch()
    save_entries(batch.id, [
        {"client_name": "A", "premium": 1000, "commission_rate": 10},
        {"client_name": "B", "premium": 1000, "commission_rate": 10, "commission_amount": 90},
    ])
    verify_batch_entries(batch.id)
    flagged = CommissionEntry.query.filter_by(client_name="B").one()
    reconcile_entry(flagged.id, "Descuento pactado")

    result = verify_batch_entries(batch.id)
    assert result["checked"] == 0
    assert result["discrepancies"] == 0
    db.session.refresh(flagged)
    assert flagged.is_verified is True
    assert flagged.reconciliation_note == "Descuento pactado"

    _, status = reconcile_entry(CommissionEntry.query.filter_by(client_name="A").one().id, "sin motivo")
    assert status == 409


def test_reconcile_route(client, auth_headers, make_batch):
    batch = make_batch()
    save_entries(batch.id, [{"client_name": "A", "premium": 1000, "commission_rate": 10, "commission_amount": 99}])
    verify_batch_entries(batch.id)
    entry = CommissionEntry.query.one()

    r = client.post(f'/api/commissions/entries/{entry.id}/reconcile', headers=auth_headers('revision_edicion_1'),
                    json={"note": "Ajuste por tasa"})
    assert r.status_code == 200
    assert r.get_json()["data"]["reconciliation_note"] == "Ajuste por tasa"
    assert client.post(f'/api/commissions/batches/{batch.id}/status', headers=auth_headers(),
                       json={"status": "verificado"}).status_code == 200


def test_assignments_replace_and_cap_at_hundred_percent(app, make_batch):
    batch = make_batch()
    save_entries(batch.id, [{"client_name": "A", "premium": 1000, "commission_rate": 10}])
    entry = CommissionEntry.query.one()
    ana, luis = Advisor(full_name="Ana Asesora"), Advisor(full_name="Luis Asesor")
    db.session.add_all([ana, luis])
    db.session.commit()

    _, status = save_assignments(entry.id, [
        {"advisor_id": ana.id, "percentage": 70},
        {"advisor_id": luis.id, "percentage": 40},
    ])
    assert status == 400

    result = save_assignments(entry.id, [
        {"advisor_id": ana.id, "percentage": 60},
        {"advisor_id": luis.id, "percentage": 40},
    ])
    assert sorted(a["amount"] for a in result["data"]) == [40.0, 60.0]

    result = save_assignments(entry.id, [{"advisor_id": luis.id, "percentage": 100}])
    assert [(a["advisor_id"], a["amount"]) for a in result["data"]] == [(luis.id, 100.0)]


def test_commission_routes_are_gated(client, auth_headers):
    assert client.get('/api/commissions/batches', headers=auth_headers('revision_edicion_2')).status_code == 403
    assert client.get('/api/commissions/batches', headers=auth_headers('revision_edicion_1')).status_code == 200


def test_import_rejects_non_excel_upload(client, auth_headers, make_batch):
    import io
    batch = make_batch()
    r = client.post(
        f'/api/commissions/batches/{batch.id}/import',
        headers=auth_headers(),
        data={"file": (io.BytesIO(b"a,b"), "comisiones.csv")},
        content_type='multipart/form-data',
    )
    assert r.status_code == 400


def test_excel_import_skips_invalid_rows(app, make_batch):
    import io
    import pandas as pd
    from backoffice.services.commissions import import_entries_from_excel

    buffer = io.BytesIO()
    pd.DataFrame([
        {"Póliza": "POL-1", "Cliente": "Ana Pérez", "Plan": "Salud", "Prima": 1000, "% Comisión": 10,
         "Monto Comisión": None},
        {"Póliza": "POL-2", "Cliente": "Luis Rojas", "Plan": "Vida", "Prima": 500, "% Comisión": 12,
         "Monto Comisión": 61},
        {"Póliza": "POL-3", "Cliente": None, "Plan": "Vida", "Prima": 800, "% Comisión": 10,
         "Monto Comisión": 80},
        {"Póliza": "POL-4", "Cliente": "Sin Prima", "Plan": "Auto", "Prima": 0, "% Comisión": 10,
         "Monto Comisión": 0},
    ]).to_excel(buffer, index=False)
    buffer.seek(0)

    batch = make_batch()
    result = import_entries_from_excel(batch.id, buffer)
    assert result["saved"] == 2
    assert result["skipped"] == 2
    assert result["batch"]["total_premium"] == 1500.0
    assert result["batch"]["total_commission"] == 161.0


def test_breakdown_sums_per_advisor(app, make_batch):
    from backoffice.services.commissions import get_batch_breakdown

    batch = make_batch()
    save_entries(batch.id, [
        {"client_name": "A", "premium": 1000, "commission_rate": 10},
        {"client_name": "B", "premium": 2000, "commission_rate": 10},
    ])
    first, second = CommissionEntry.query.order_by(CommissionEntry.premium).all()
    ana, luis = Advisor(full_name="Ana Asesora"), Advisor(full_name="Luis Asesor")
    db.session.add_all([ana, luis])
    db.session.commit()

    save_assignments(first.id, [{"advisor_id": ana.id, "percentage": 100}])
    save_assignments(second.id, [{"advisor_id": ana.id, "percentage": 50},
                                 {"advisor_id": luis.id, "percentage": 50}])

    rows = get_batch_breakdown(batch.id)["data"]
    assert [(r["advisor_name"], r["entries"], r["amount"]) for r in rows] == [
        ("Ana Asesora", 2, 200.0),
        ("Luis Asesor", 1, 100.0),
    ]
