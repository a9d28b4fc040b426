# tests/test_email.py
import requests


class FakeResponse:
    def __init__(self, status_code, payload):
        self.status_code = status_code
        self._payload = payload

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        return self._payload


def test_send_email_posts_to_resend(client, auth_headers, monkeypatch):
    calls = []

    def fake_post(url, json=None, headers=None, timeout=None):
        calls.append({"url": url, "json": json, "headers": headers})
        return FakeResponse(200, {"id": "email-123"})

    monkeypatch.setattr(requests, "post", fake_post)
    r = client.post('/api/email/send', headers=auth_headers(),
                    json={"to": "ana@gip.test", "subject": "Hola", "html": "<p>Hola</p>"})

    assert r.status_code == 200
    assert r.get_json() == {"success": True, "id": "email-123"}
    assert calls[0]["json"]["to"] == ["ana@gip.test"]
    assert calls[0]["headers"]["Authorization"] == "Bearer re_test_key"


def test_missing_fields(client, auth_headers):
    r = client.post('/api/email/send', headers=auth_headers(), json={"to": "ana@gip.test", "subject": "Hola"})
    assert r.status_code == 400


def test_provider_error_keeps_provider_status(client, auth_headers, monkeypatch):
    monkeypatch.setattr(requests, "post",
                        lambda *a, **kw: FakeResponse(422, {"message": "Invalid `to` field"}))
    r = client.post('/api/email/send', headers=auth_headers(),
                    json={"to": "nope", "subject": "Hola", "text": "x"})
    assert r.status_code == 422
    assert r.get_json()["error"] == "Invalid `to` field"


def test_network_failure_is_bad_gateway(client, auth_headers, monkeypatch):
    def boom(*args, **kwargs):
        raise requests.ConnectionError("unreachable")

    monkeypatch.setattr(requests, "post", boom)
    r = client.post('/api/email/send', headers=auth_headers(),
                    json={"to": "ana@gip.test", "subject": "Hola", "text": "x"})
    assert r.status_code == 502


def test_not_configured(app, client, auth_headers):
    app.config['RESEND_API_KEY'] = None
    r = client.post('/api/email/send', headers=auth_headers(),
                    json={"to": "ana@gip.test", "subject": "Hola", "text": "x"})
    assert r.status_code == 500
    assert r.get_json()["error"] == "RESEND_API_KEY not configured"


def test_requires_token(client):
    assert client.post('/api/email/send', json={"to": "a@b.c", "subject": "s", "text": "t"}).status_code == 401
