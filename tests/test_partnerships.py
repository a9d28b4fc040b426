# tests/test_partnerships.py
import re
from datetime import datetime

import pytest

from backoffice import db
from backoffice.models import DiscountCode
from backoffice.services.partnerships import (
    generate_discount_code,
    save_partner,
    save_service,
    create_code,
    mark_sent,
    redeem,
)


def _service(discount_type='porcentaje', value=15):
    partner = save_partner({"name": "Clínica El Ávila"})["data"]
    return save_service(partner["id"], {"name": "Chequeo anual", "discount_type": discount_type,
                                        "discount_value": value})["data"]


def test_code_format():
    for _ in range(20):
        assert re.fullmatch(r"KVR-[ABCDEFGHJKLMNPQRSTUVWXYZ23456789]{8}", generate_discount_code())


@pytest.mark.parametrize("discount_type,value", [("porcentaje", 120), ("porcentaje", -1), ("regalo", 10)])
def test_service_discount_validation(app, discount_type, value):
    partner = save_partner({"name": "Óptica Central"})["data"]
    _, status = save_service(partner["id"], {"name": "Lentes", "discount_type": discount_type,
                                             "discount_value": value})
    assert status == 400


def test_code_lifecycle(app):
    service = _service()
    code = create_code({"service_id": service["id"], "max_uses": 2})["data"]
    assert code["status"] == "generado"

    assert mark_sent(code["id"])["data"]["status"] == "enviado"
    _, status = mark_sent(code["id"])
    assert status == 409

    assert redeem(code["code"])["data"]["current_uses"] == 1
    final = redeem(code["code"].lower())["data"]
    assert final["current_uses"] == 2
    assert final["status"] == "utilizado"

    _, status = redeem(code["code"])
    assert status == 409


def test_expired_code_is_rejected(app):
    service = _service('monto_fijo', 20)
    code = create_code({"service_id": service["id"], "expires_at": "2024-01-31T23:59:59"})["data"]

    payload, status = redeem(code["code"], now=datetime(2024, 2, 1))
    assert status == 409
    assert payload["error"] == "El código ha expirado."
    assert db.session.get(DiscountCode, code["id"]).status == "expirado"
