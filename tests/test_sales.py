# tests/test_sales.py
from backoffice.models import AuditLog, SalesOpportunityProduct
from backoffice.services.sales import (
    save_opportunity,
    update_stage,
    advance_stage,
    save_opportunity_product,
    toggle_product_selection,
    get_pipeline_summary,
    add_note,
    add_investment,
    get_investments,
    delete_investment,
)


def _opportunity(name="Constructora Delta", stage=None):
    data = {"prospect_name": name}
    if stage:
        data["stage"] = stage
    return save_opportunity(data, actor_id="user-1")["data"]


def test_new_opportunity_starts_as_lead(app):
    assert _opportunity()["stage"] == "lead_identificado"
    _, status = save_opportunity({"prospect_name": ""})
    assert status == 400


def test_stage_change_is_audited(app):
    opp = _opportunity()
    assert update_stage(opp["id"], "propuesta", actor_id="user-1")["data"]["stage"] == "propuesta"
    assert advance_stage(opp["id"])["data"]["stage"] == "envio_propuesta"

    details = [log.details for log in AuditLog.query.filter_by(module="ventas", action="stage_changed")]
    assert {"previous_stage": "lead_identificado", "new_stage": "propuesta"} in details
    assert len(details) == 2

    _, status = update_stage(opp["id"], "inventada")
    assert status == 400


def test_single_selected_product(app):
    opp = _opportunity()
    first = save_opportunity_product(opp["id"], {"annual_premium": 1000, "commission_rate": 10})["data"]
    second = save_opportunity_product(opp["id"], {"annual_premium": 1500, "commission_rate": 12})["data"]

    toggle_product_selection(first["id"], True)
    result = toggle_product_selection(second["id"], True)

    selected = [p["id"] for p in result["data"] if p["is_selected"]]
    assert selected == [second["id"]]
    assert SalesOpportunityProduct.query.filter_by(is_selected=True).count() == 1


def test_pipeline_summary_sums_quoted_premiums(app):
    won = _opportunity("A", stage="ganado")
    save_opportunity_product(won["id"], {"annual_premium": 1000})
    save_opportunity_product(won["id"], {"annual_premium": 250.5})
    _opportunity("B")

    summary = {row["stage"]: row for row in get_pipeline_summary()["data"]}
    assert len(summary) == 11
    assert summary["ganado"]["count"] == 1
    assert summary["ganado"]["total_premium"] == 1250.5
    assert summary["ganado"]["terminal"] is True
    assert summary["lead_identificado"]["count"] == 1
    assert summary["propuesta"]["count"] == 0


def test_notes(app):
    opp = _opportunity()
    _, status = add_note(opp["id"], "   ")
    assert status == 400
    assert add_note(opp["id"], "Llamar el lunes")["data"]["content"] == "Llamar el lunes"


def test_investments_are_totalled_per_opportunity(app):
    opp = _opportunity()
    other = _opportunity("Farmacia Central")
    lunch = add_investment(opp["id"], {"description": "Almuerzo", "amount": 45.5,
                                       "investment_date": "2024-05-02"}, actor_id="user-1")["data"]
    add_investment(opp["id"], {"description": "Traslado", "amount": 20, "investment_date": "2024-05-09"})
    add_investment(other["id"], {"description": "Regalo", "amount": 80, "investment_date": "2024-05-09"})

    listed = get_investments(opp["id"])["data"]
    assert listed["total"] == 65.5
    assert [i["description"] for i in listed["items"]] == ["Traslado", "Almuerzo"]

    delete_investment(lunch["id"])
    assert get_investments(opp["id"])["data"]["total"] == 20.0

    _, status = add_investment(opp["id"], {"description": "Cena", "amount": 0, "investment_date": "2024-05-10"})
    assert status == 400
    _, status = add_investment("missing", {"description": "Cena", "amount": 10, "investment_date": "2024-05-10"})
    assert status == 404
