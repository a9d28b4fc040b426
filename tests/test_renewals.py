# tests/test_renewals.py
from datetime import date

import pytest

from backoffice import db
from backoffice.models import RenewalConfig, AuditLog, BrokerSettings
from backoffice.services.renewals import (
    calculate_renewal,
    format_percentage,
    RenewalValidationError,
    upsert_renewal_config,
    update_renewal_status,
    process_scheduled_renewals,
    compose_renewal_notice,
)


# --- calculation ---

@pytest.mark.parametrize(
    "current,new,difference,percentage",
    [
        (1000, 1150, 150.0, 15.0),
        (1000, 900, -100.0, -10.0),
        (1000, 1000, 0.0, 0.0),
        (300, 400, 100.0, 33.33),
    ],
)
def test_variance_sign_and_rounding(current, new, difference, percentage):
    calc = calculate_renewal(current, new, date(2024, 6, 30))
    assert calc.difference == difference
    assert calc.percentage == percentage


def test_zero_current_premium_gives_zero_percentage():
    calc = calculate_renewal(0, 500, date(2024, 6, 30))
    assert calc.difference == 500.0
    assert calc.percentage == 0.0


@pytest.mark.parametrize(
    "renewal_date,send_date",
    [
        (date(2024, 1, 15), date(2023, 12, 16)),
        (date(2024, 3, 1), date(2024, 1, 31)),
        (date(2023, 3, 1), date(2023, 1, 30)),
        (date(2024, 7, 31), date(2024, 7, 1)),
    ],
)
def test_send_date_is_thirty_days_before(renewal_date, send_date):
    assert calculate_renewal(100, 110, renewal_date).scheduled_send_date == send_date


@pytest.mark.parametrize("current,new", [(-1, 100), (100, -5), ("abc", 100), (None, 100)])
def test_invalid_amounts_are_rejected(current, new):
    with pytest.raises(RenewalValidationError):
        calculate_renewal(current, new, date(2024, 6, 30))


def test_format_percentage():
    assert format_percentage(15) == "+15.00%"
    assert format_percentage(-10) == "-10.00%"
    assert format_percentage(0) == "0.00%"


# --- persistence ---

def test_upsert_creates_then_updates_same_row(app, make_policy):
    policy = make_policy(premium=1000.0, end_date=date(2024, 6, 30))

    first = upsert_renewal_config(policy.id, 1100)
    assert first["success"] is True
    assert first["data"]["status"] == "programada"
    assert first["data"]["scheduled_send_date"] == "2024-05-31"

    second = upsert_renewal_config(policy.id, 1200)
    assert second["data"]["id"] == first["data"]["id"]
    assert RenewalConfig.query.count() == 1
    assert RenewalConfig.query.one().percentage == 20.0


def test_upsert_rejects_negative_amount(app, make_policy):
    policy = make_policy()
    payload, status = upsert_renewal_config(policy.id, -10)
    assert status == 400
    assert payload["success"] is False
    assert RenewalConfig.query.count() == 0


def test_sent_renewal_needs_reopen(app, make_policy):
    policy = make_policy()
    renewal_id = upsert_renewal_config(policy.id, 1300)["data"]["id"]
    renewal = db.session.get(RenewalConfig, renewal_id)
    renewal.status = 'enviada'
    renewal.email_sent = True
    db.session.commit()

    _, status = upsert_renewal_config(policy.id, 1400)
    assert status == 409
    _, status = update_renewal_status(renewal_id, 'programada')
    assert status == 409

    result = update_renewal_status(renewal_id, 'programada', reopen=True)
    assert result["success"] is True
    assert result["data"]["email_sent"] is False


# --- dispatch ---

def _schedule(policy, today):
    config = RenewalConfig(
        policy_id=policy.id,
        renewal_date=policy.end_date,
        current_amount=policy.premium,
        new_amount=policy.premium * 1.1,
        difference=round(policy.premium * 0.1, 2),
        percentage=10.0,
        status='programada',
        scheduled_send_date=today,
    )
    db.session.add(config)
    db.session.commit()
    return config.id


def test_dispatch_counts_missing_emails_as_errors(app, make_policy):
    today = date(2024, 5, 31)
    with_email = [_schedule(make_policy(email=f'c{i}@gip.test'), today) for i in range(3)]
    without_email = [_schedule(make_policy(email=None), today) for _ in range(2)]
    # Not due today: must be ignored.
    _schedule(make_policy(email='later@gip.test'), date(2024, 6, 1))

    results = process_scheduled_renewals(today=today)

    assert results["processed"] == 5
    assert results["sent"] == 3
    assert len(results["errors"]) == 2

    for renewal_id in with_email:
        renewal = db.session.get(RenewalConfig, renewal_id)
        assert renewal.status == 'enviada'
        assert renewal.email_sent is True
        assert renewal.email_sent_at is not None
    for renewal_id in without_email:
        renewal = db.session.get(RenewalConfig, renewal_id)
        assert renewal.status == 'error'
        assert renewal.notes == 'No se encontró email del cliente'

    assert AuditLog.query.filter_by(module='renovaciones', action='renewal_sent').count() == 3


def test_dispatch_delivery_failure_marks_record_and_continues(app, make_policy, monkeypatch):
    import backoffice.services.renewals as renewals

    today = date(2024, 5, 31)
    failing = _schedule(make_policy(email='falla@gip.test'), today)
    ok = _schedule(make_policy(email='ok@gip.test'), today)

    def fake_deliver(to, subject, body):
        if to == 'falla@gip.test':
            raise RuntimeError('smtp down')
        return 'msg-1'

    monkeypatch.setattr(renewals, 'deliver_renewal_notice', fake_deliver)
    results = process_scheduled_renewals(today=today)

    assert results == {"processed": 2, "sent": 1, "errors": [f"{failing}: smtp down"]}
    assert db.session.get(RenewalConfig, failing).status == 'error'
    assert db.session.get(RenewalConfig, failing).notes == 'Error: smtp down'
    assert db.session.get(RenewalConfig, ok).status == 'enviada'


def test_dispatch_survives_failure_while_flagging_error(app, make_policy, monkeypatch):
    import backoffice.services.renewals as renewals
    from datetime import datetime

    today = date(2024, 5, 31)
    ids = [_schedule(make_policy(email=f'falla{n}@gip.test'), today) for n in range(2)]

    def fake_deliver(to, subject, body):
        raise RuntimeError('smtp down')

    class FlakyClock:
        calls = 0

        @classmethod
        def utcnow(cls):
            cls.calls += 1
            if cls.calls == 1:
                raise RuntimeError('database is locked')
            return datetime.utcnow()

    monkeypatch.setattr(renewals, 'deliver_renewal_notice', fake_deliver)
    monkeypatch.setattr(renewals, 'datetime', FlakyClock)
    results = process_scheduled_renewals(today=today)

    assert results["processed"] == 2
    assert results["sent"] == 0
    assert len(results["errors"]) == 2
    statuses = sorted(db.session.get(RenewalConfig, i).status for i in ids)
    assert statuses == ['error', 'programada']


def test_dispatch_with_nothing_due(app):
    assert process_scheduled_renewals(today=date(2024, 1, 1)) == {"processed": 0, "sent": 0, "errors": []}


def test_notice_uses_broker_signature(app, make_policy):
    policy = make_policy(premium=1000.0, end_date=date(2024, 6, 30))
    renewal_id = upsert_renewal_config(policy.id, 1150)["data"]["id"]
    broker = BrokerSettings(name='Corretaje Andino', email='info@andino.test', phone='0212-5550000')

    subject, body = compose_renewal_notice(db.session.get(RenewalConfig, renewal_id), policy, policy.client, broker)

    assert policy.policy_number in subject
    assert "vence el 30/6/2024" in body
    assert "Prima actual: $1000.00" in body
    assert "Prima nuevo período: $1150.00" in body
    assert "Variación: +15.00%" in body
    assert "Corretaje Andino" in body
    assert "Email: info@andino.test" in body


# --- routes ---

def test_preview_route(client, auth_headers):
    r = client.post('/api/renewals/preview', headers=auth_headers('revision'),
                    json={"current_amount": 1000, "new_amount": 900, "renewal_date": "2024-01-15"})
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["difference"] == -100.0
    assert data["percentage_text"] == "-10.00%"
    assert data["scheduled_send_date"] == "2023-12-16"


def test_preview_route_rejects_negative(client, auth_headers):
    r = client.post('/api/renewals/preview', headers=auth_headers(),
                    json={"current_amount": -1, "new_amount": 900, "renewal_date": "2024-01-15"})
    assert r.status_code == 400
    assert r.get_json()["error_code"] == 400


@pytest.mark.parametrize("role,status", [
    ("acceso_total", 200),
    ("revision_edicion_1", 200),
    ("revision_edicion_2", 403),
    ("revision", 403),
])
def test_process_route_is_restricted(client, auth_headers, role, status):
    r = client.post('/api/renewals/process', headers=auth_headers(role), json={"date": "2024-05-31"})
    assert r.status_code == status


def test_process_route_reports_results(client, auth_headers, make_policy):
    _schedule(make_policy(email='c@gip.test'), date(2024, 5, 31))
    r = client.post('/api/renewals/process', headers=auth_headers(), json={"date": "2024-05-31"})
    body = r.get_json()
    assert body["success"] is True
    assert body["results"] == {"processed": 1, "sent": 1, "errors": []}
    assert body["message"] == "Processed 1 renewals, sent 1"


# --- listing ---

def test_listing_and_stats_join_configs(app, make_policy):
    from backoffice.services.renewals import get_renewal_policies, get_renewal_stats

    today = date(2024, 6, 1)
    configured = make_policy(premium=1000.0, end_date=date(2024, 6, 5))
    bare = make_policy(premium=500.0, end_date=date(2024, 6, 25))
    make_policy(premium=900.0, end_date=date(2024, 8, 1))
    upsert_renewal_config(configured.id, 1100)

    rows = get_renewal_policies(days_ahead=30, today=today)["data"]
    assert [r["id"] for r in rows] == [configured.id, bare.id]
    assert rows[0]["renewal_config"]["status"] == "programada"

    assert [r["id"] for r in get_renewal_policies(status="sin_config", today=today)["data"]] == [bare.id]
    assert [r["id"] for r in get_renewal_policies(status="programada", today=today)["data"]] == [configured.id]

    stats = get_renewal_stats(today=today)["data"]
    assert stats["total30Days"] == 2
    assert stats["thisWeek"] == 1
    assert stats["totalPremium"] == 1500.0
    assert stats["withoutConfig"] == 1
    assert stats["programadas"] == 1
