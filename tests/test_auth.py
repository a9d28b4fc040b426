# tests/test_auth.py
import pytest

from backoffice.models import User


def test_missing_token_is_rejected(client):
    r = client.get('/api/clients')
    assert r.status_code == 401
    assert r.get_json()["message"] == "Missing Authorization header"


def test_expired_token_is_rejected(client, auth_headers):
    r = client.get('/api/clients', headers=auth_headers(expires_in=-60))
    assert r.status_code == 401
    assert r.get_json()["message"] == "Token has expired"


def test_wrong_signature_is_rejected(client):
    import jwt
    token = jwt.encode({"sub": "x", "email": "x@gip.test", "aud": "authenticated"},
                       "another-secret-that-is-long-enough-for-hs256", algorithm="HS256")
    r = client.get('/api/clients', headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


def test_me_provisions_user_and_lists_modules(client, auth_headers):
    r = client.get('/auth/me', headers=auth_headers('revision_edicion_1', email='maria@gip.test'))
    body = r.get_json()

    assert r.status_code == 200
    assert body["username"] == "maria"
    assert body["read_only"] is False
    assert "finances" in body["modules"]
    assert "settings" not in body["modules"]
    assert User.query.filter_by(email='maria@gip.test').one().role == 'revision_edicion_1'


def test_unknown_role_falls_back_to_read_only(client, auth_headers):
    body = client.get('/auth/me', headers=auth_headers('superadmin')).get_json()
    assert body["role"] == "revision"
    assert body["read_only"] is True


@pytest.mark.parametrize("role,status", [
    ("acceso_total", 200),
    ("revision_edicion_1", 200),
    ("revision_edicion_2", 403),
    ("revision", 403),
])
def test_finances_gate(client, auth_headers, role, status):
    assert client.get('/api/finances/income', headers=auth_headers(role)).status_code == status


@pytest.mark.parametrize("role,status", [
    ("acceso_total", 200),
    ("revision_edicion_1", 403),
])
def test_settings_write_gate(client, auth_headers, role, status):
    r = client.put('/api/settings/broker', headers=auth_headers(role), json={"name": "Corretaje Andino"})
    assert r.status_code == status


def test_read_only_role_can_read_but_not_write(client, auth_headers):
    headers = auth_headers('revision')
    assert client.get('/api/clients', headers=headers).status_code == 200
    r = client.post('/api/clients', headers=headers, json={"first_name": "Ana", "last_name": "Pérez"})
    assert r.status_code == 403
    assert r.get_json()["message"] == "Tu rol solo permite consultar información."


def test_health_is_public(client):
    r = client.get('/api/health')
    assert r.status_code == 200
    assert r.get_json()["database"]["status"] == "connected"
