# tests/test_consumptions.py
import pytest

from backoffice import db
from backoffice.models import AuditLog, PolicyConsumption
from backoffice.services.consumptions import (
    create_usage_type,
    get_usage_types,
    get_consumptions,
    get_consumption_summary,
    save_consumption,
    delete_consumption,
)


@pytest.fixture
def usage_types(app):
    return {name: create_usage_type(name)["data"]["id"] for name in ("Consulta", "Farmacia")}


def test_usage_type_names_are_unique(app):
    create_usage_type("Emergencia")
    _, status = create_usage_type("  emergencia ")
    assert status == 409
    _, status = create_usage_type("")
    assert status == 400
    assert [t["name"] for t in get_usage_types()["data"]] == ["Emergencia"]


def test_summary_groups_by_usage_type(app, make_policy, usage_types):
    policy = make_policy()
    other = make_policy(email="otro@gip.test")
    save_consumption({"policy_id": policy.id, "usage_type_id": usage_types["Consulta"],
                      "usage_date": "2024-02-01", "amount_usd": 40, "amount_bs": 1460})
    save_consumption({"policy_id": policy.id, "usage_type_id": usage_types["Consulta"],
                      "usage_date": "2024-02-10", "amount_usd": 35.5})
    save_consumption({"policy_id": policy.id, "usage_type_id": usage_types["Farmacia"],
                      "usage_date": "2024-02-12", "amount_usd": 12})
    save_consumption({"policy_id": policy.id, "usage_date": "2024-02-15", "amount_usd": 8})
    save_consumption({"policy_id": other.id, "usage_date": "2024-02-15", "amount_usd": 999})

    summary = get_consumption_summary(policy.id)["data"]
    assert summary["count"] == 4
    assert summary["total_usd"] == 95.5
    assert summary["total_bs"] == 1460.0
    assert summary["by_type"] == [
        {"type_name": "Consulta", "count": 2, "total_bs": 1460.0, "total_usd": 75.5},
        {"type_name": "Farmacia", "count": 1, "total_bs": 0.0, "total_usd": 12.0},
        {"type_name": "Sin tipo", "count": 1, "total_bs": 0.0, "total_usd": 8.0},
    ]

    _, status = get_consumption_summary("missing")
    assert status == 404


def test_deleted_consumptions_leave_totals(app, make_policy):
    policy = make_policy()
    kept = save_consumption({"policy_id": policy.id, "usage_date": "2024-02-01", "amount_usd": 40})["data"]
    dropped = save_consumption({"policy_id": policy.id, "usage_date": "2024-02-02", "amount_usd": 60},
                               actor_id="user-1")["data"]

    assert delete_consumption(dropped["id"], actor_id="user-1") == {"success": True}
    _, status = delete_consumption(dropped["id"])
    assert status == 404

    row = db.session.get(PolicyConsumption, dropped["id"])
    assert row.deleted is True
    assert row.deleted_by == "user-1"
    assert row.deleted_at is not None

    assert [c["id"] for c in get_consumptions(policy_id=policy.id)["data"]] == [kept["id"]]
    assert get_consumption_summary(policy.id)["data"]["total_usd"] == 40.0

    actions = [log.action for log in AuditLog.query.filter_by(module="consumos").all()]
    assert "consumption_deleted" in actions


def test_consumption_filters(app, make_policy, usage_types):
    policy = make_policy()
    save_consumption({"policy_id": policy.id, "usage_type_id": usage_types["Consulta"],
                      "usage_date": "2024-01-10", "beneficiary_name": "Luis Pérez", "amount_usd": 10})
    save_consumption({"policy_id": policy.id, "usage_type_id": usage_types["Farmacia"],
                      "usage_date": "2024-03-10", "beneficiary_name": "Ana Pérez", "amount_usd": 20})

    by_type = get_consumptions(usage_type_id=usage_types["Farmacia"])["data"]
    assert [c["amount_usd"] for c in by_type] == [20.0]
    assert by_type[0]["usage_type_name"] == "Farmacia"

    in_range = get_consumptions(from_date="2024-01-01", to_date="2024-01-31")["data"]
    assert [c["beneficiary_name"] for c in in_range] == ["Luis Pérez"]

    assert len(get_consumptions(beneficiary="pérez")["data"]) == 2
    assert len(get_consumptions(beneficiary="luis")["data"]) == 1

    _, status = get_consumptions(from_date="10/01/2024")
    assert status == 400


@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"usage_date": "2024-02-01"}, 404),
        ({"policy_id": "missing", "usage_date": "2024-02-01"}, 404),
        ({"usage_date": None}, 400),
        ({"usage_date": "2024-02-01", "amount_usd": -5}, 400),
        ({"usage_date": "2024-02-01", "usage_type_id": "missing"}, 400),
    ],
)
def test_invalid_consumptions(app, make_policy, payload, expected):
    policy = make_policy()
    if "policy_id" not in payload and expected == 400:
        payload = dict(payload, policy_id=policy.id)
    _, status = save_consumption(payload)
    assert status == expected


@pytest.mark.parametrize(
    "role, expected",
    [
        ("acceso_total", 200),
        ("revision_edicion_1", 200),
        ("revision_edicion_2", 403),
        ("revision", 403),
    ],
)
def test_consumption_routes_are_gated_like_finances(client, auth_headers, role, expected):
    response = client.get("/api/consumptions", headers=auth_headers(role))
    assert response.status_code == expected


def test_consumption_routes(client, auth_headers, make_policy):
    policy = make_policy()
    headers = auth_headers("revision_edicion_1")

    usage = client.post("/api/consumptions/usage-types", headers=headers, json={"name": "Laboratorio"})
    assert usage.status_code == 200
    usage_id = usage.get_json()["data"]["id"]

    created = client.post("/api/consumptions", headers=headers, json={
        "policy_id": policy.id, "usage_type_id": usage_id, "usage_date": "2024-04-02", "amount_usd": 25,
    })
    assert created.status_code == 200
    consumption_id = created.get_json()["data"]["id"]

    updated = client.put(f"/api/consumptions/{consumption_id}", headers=headers, json={"amount_usd": 30})
    assert updated.get_json()["data"]["amount_usd"] == 30.0

    summary = client.get(f"/api/consumptions/summary/{policy.id}", headers=headers).get_json()["data"]
    assert summary["by_type"][0]["type_name"] == "Laboratorio"

    assert client.delete(f"/api/consumptions/{consumption_id}", headers=headers).status_code == 200
    assert client.get("/api/consumptions", headers=headers).get_json()["data"] == []
